"""
HVAC Assistant Service
Intent understanding and UI composition for the HVAC dashboard assistant
"""

import asyncio
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from uuid import uuid4

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
import structlog

from .config import settings
from .composition_generator import CompositionGenerator
from .context_persistence import RedisContextPersistence
from .context_store import ContextStore
from .entity_extractor import EntityExtractor
from .intent_classifier import IntentClassifier
from .intent_recognizer import IntentRecognizer
from .intent_registry import INTENT_REGISTRY
from .metrics import metrics_endpoint, update_active_sessions
from .models import (
    AssistRequest,
    AssistantResponse,
    EntityResult,
    IntentContext,
    IntentRecognitionResult,
    TextRequest,
)
from .orchestrator import AssistantOrchestrator
from .utils.logging import setup_logging
from .utils.redis_pool import redis_pool

# Setup structured logging
setup_logging()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info("🧠 Starting HVAC Assistant Service")

    extractor = EntityExtractor()
    app.state.entity_extractor = extractor
    app.state.recognizer = IntentRecognizer(extractor, IntentClassifier())
    app.state.context_store = ContextStore()
    # Raises on an inconsistent intent registry, aborting startup
    app.state.generator = CompositionGenerator(extractor.producible_types())
    app.state.orchestrator = AssistantOrchestrator(
        app.state.context_store, app.state.recognizer, app.state.generator
    )

    app.state.persistence = None
    if settings.persist_contexts:
        await redis_pool.initialize()
        app.state.persistence = RedisContextPersistence(await redis_pool.get_client())
        logger.info("✅ Context snapshots enabled")

    app.state.sweeper = asyncio.create_task(
        session_sweeper(app.state.context_store, settings.sweep_interval_seconds)
    )

    logger.info("✅ Assistant pipeline ready", intents=len(INTENT_REGISTRY))

    yield

    logger.info("🛑 Shutting down HVAC Assistant Service")
    app.state.sweeper.cancel()
    await asyncio.gather(app.state.sweeper, return_exceptions=True)
    if app.state.persistence is not None:
        await redis_pool.close()


app = FastAPI(
    title="HVAC Assistant Service",
    description="Intent recognition and component composition for the HVAC dashboard",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


async def session_sweeper(store: ContextStore, interval: int):
    """Periodically evict expired conversation contexts"""
    while True:
        await asyncio.sleep(interval)
        try:
            await store.sweep(datetime.now(timezone.utc))
            update_active_sessions(store.active_count())
        except Exception as e:
            logger.error("Session sweep failed", error=str(e))


@app.post("/assist", response_model=AssistantResponse)
async def assist(request: AssistRequest):
    """Process one user utterance within a session"""
    if not request.text.strip():
        raise HTTPException(status_code=400, detail="Text must not be empty")

    session_id = request.session_id or str(uuid4())
    store: ContextStore = app.state.context_store
    persistence = app.state.persistence

    try:
        if persistence is not None and store.get(session_id) is None:
            snapshot = await persistence.load(session_id)
            if snapshot is not None:
                store.restore(snapshot)

        response = await app.state.orchestrator.handle(session_id, request.text)

        if persistence is not None:
            context = store.get(session_id)
            if context is not None:
                await persistence.save(context)

        update_active_sessions(store.active_count())
        return response

    except Exception as e:
        logger.error("Assistant request failed", session_id=session_id, error=str(e))
        raise HTTPException(status_code=500, detail="Assistant request failed")


@app.post("/recognize", response_model=IntentRecognitionResult)
async def recognize(request: TextRequest):
    """Recognize intent and entities without touching any session"""
    try:
        return app.state.recognizer.recognize(request.text)
    except Exception as e:
        logger.error("Intent recognition failed", error=str(e))
        raise HTTPException(status_code=500, detail="Intent recognition failed")


@app.post("/extract-entities", response_model=EntityResult)
async def extract_entities(request: TextRequest):
    """Extract entities from text"""
    start_time = time.perf_counter()
    entities = app.state.entity_extractor.extract(request.text)
    return EntityResult(
        entities=entities,
        processing_time_ms=(time.perf_counter() - start_time) * 1000
    )


@app.get("/sessions/{session_id}", response_model=IntentContext)
async def get_session(session_id: str):
    """Get the live conversation context of a session"""
    context = app.state.context_store.get(session_id)
    if context is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return context


@app.delete("/sessions/{session_id}")
async def delete_session(session_id: str):
    """Forget a session and its snapshot"""
    deleted = app.state.context_store.destroy(session_id)
    if app.state.persistence is not None:
        await app.state.persistence.delete(session_id)
    update_active_sessions(app.state.context_store.active_count())
    return {"session_id": session_id, "deleted": deleted}


@app.get("/intents")
async def get_supported_intents():
    """Get supported intents with their slots"""
    return {
        "intents": [
            {
                "intent": intent.value,
                "required_slots": [slot.value for slot in spec.required_slots],
                "optional_slots": [slot.value for slot in spec.optional_slots],
            }
            for intent, spec in INTENT_REGISTRY.items()
        ],
        "entities": [entity_type.value for entity_type in app.state.entity_extractor.get_supported_entities()]
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    health = {
        "status": "healthy",
        "service": "assistant",
        "active_sessions": app.state.context_store.active_count(),
        "persistence": app.state.persistence is not None,
    }
    if app.state.persistence is not None:
        health["redis"] = await redis_pool.health_check()
        if not health["redis"]:
            health["status"] = "degraded"
    return health


@app.get("/metrics")
async def get_metrics():
    """Get service metrics in Prometheus format"""
    update_active_sessions(app.state.context_store.active_count())
    return await metrics_endpoint()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
