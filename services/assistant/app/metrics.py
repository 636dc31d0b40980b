from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Assistant service metrics
assistant_requests_total = Counter('assistant_requests_total', 'Total assistant turns', ['outcome'])
assistant_request_duration_seconds = Histogram('assistant_request_duration_seconds', 'Assistant turn duration')
assistant_intent_confidence = Histogram(
    'assistant_intent_confidence', 'Recognized intent confidence',
    buckets=(0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1.0)
)
assistant_intents_detected = Counter('assistant_intents_detected_total', 'Intents detected', ['intent'])
assistant_clarifications_total = Counter('assistant_clarifications_total', 'Clarifications requested', ['reason'])
assistant_config_errors_total = Counter('assistant_config_errors_total', 'Internal configuration errors')
assistant_active_sessions = Gauge('assistant_active_sessions', 'Number of live conversation contexts')

def record_assistant_request(outcome: str, duration: float, confidence: float = None, intent: str = None):
    """Record assistant turn metrics"""
    assistant_requests_total.labels(outcome=outcome).inc()
    assistant_request_duration_seconds.observe(duration)
    if confidence is not None:
        assistant_intent_confidence.observe(confidence)
    if intent:
        assistant_intents_detected.labels(intent=intent).inc()

def record_clarification(reason: str):
    """Record a clarification request"""
    assistant_clarifications_total.labels(reason=reason).inc()

def record_config_error():
    """Record an internal configuration error"""
    assistant_config_errors_total.inc()

def update_active_sessions(count: int):
    """Update live session count"""
    assistant_active_sessions.set(count)

async def metrics_endpoint():
    """Prometheus metrics endpoint"""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
