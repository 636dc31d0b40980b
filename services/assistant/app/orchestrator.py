"""Assistant orchestrator: one conversation turn per call"""

import time
from datetime import datetime, timezone
from typing import List, Optional, Tuple

import structlog

from .composition_generator import CompositionGenerator
from .context_store import ContextStore, recognized_intent
from .exceptions import InternalConfigurationError
from .intent_recognizer import IntentRecognizer
from .intent_registry import example_requests
from .metrics import record_assistant_request, record_clarification, record_config_error
from .models import (
    AssistantResponse,
    AssistantState,
    ClarificationReason,
    ClarificationRequest,
    IntentContext,
    IntentRecognitionResult,
    PendingClarification,
    RecognitionStatus,
    ResponseKind,
    UserIntent,
)

logger = structlog.get_logger(__name__)

GENERIC_ERROR_MESSAGE = "I couldn't process that request."

INTENT_LABELS = {
    UserIntent.QUERY_STATUS: "check equipment status",
    UserIntent.SHOW_CHART: "show a chart",
    UserIntent.TEMPERATURE_CHECK: "monitor temperatures",
    UserIntent.ANALYZE_PERFORMANCE: "analyze performance",
    UserIntent.COMPARE_METRICS: "compare metrics",
    UserIntent.CONTROL_EQUIPMENT: "control equipment",
    UserIntent.SET_THRESHOLD: "set a threshold",
    UserIntent.ACKNOWLEDGE: "acknowledge alarms",
    UserIntent.TROUBLESHOOT: "troubleshoot a fault",
    UserIntent.OPTIMIZE_SYSTEM: "optimize the system",
    UserIntent.GENERATE_REPORT: "generate a report",
    UserIntent.PREDICT_TREND: "predict a trend",
    UserIntent.EXPLAIN_CONCEPT: "explain a concept",
}


class AssistantOrchestrator:
    """Runs recognize -> merge -> clarify or compose for one session.

    Requests for the same session are serialized on the store's session
    lock. The context is committed once per request, after the response
    is built.
    """

    def __init__(self, store: ContextStore, recognizer: IntentRecognizer, generator: CompositionGenerator):
        self.store = store
        self.recognizer = recognizer
        self.generator = generator

    async def handle(self, session_id: str, utterance: str, now: Optional[datetime] = None) -> AssistantResponse:
        now = now or datetime.now(timezone.utc)
        start_time = time.perf_counter()

        async with self.store.session_lock(session_id):
            context = self.store.get_or_create(session_id, now)
            self._transition(session_id, context.state, AssistantState.RECOGNIZING)

            pending = context.pending_clarification
            preferred = pending.for_intent if pending is not None and pending.missing_slot is not None else None
            recognition = self.recognizer.recognize(utterance, preferred)
            context = self.store.merge(context, recognition, utterance, now)
            context = self._bind_reply_unit(pending, recognition, utterance, context)

            try:
                response, context = self._respond(session_id, recognition, context)
            except InternalConfigurationError as fault:
                logger.error("Internal configuration error", session_id=session_id, **fault.to_log())
                record_config_error()
                response = AssistantResponse(
                    session_id=session_id,
                    kind=ResponseKind.ERROR,
                    message=GENERIC_ERROR_MESSAGE,
                    recognition=recognition,
                )
                context = self.store.with_pending(context, None)

            source = AssistantState.COMPOSING if response.kind == ResponseKind.COMPOSITION else AssistantState.RECOGNIZING
            self._transition(session_id, source, context.state)
            context = self.store.append_assistant_turn(context, response.message, recognized_intent(recognition), now)
            self.store.save(context)

        record_assistant_request(
            outcome=response.kind.value,
            duration=time.perf_counter() - start_time,
            confidence=recognition.confidence,
            intent=recognition.intent.value,
        )
        return response

    def _respond(
        self,
        session_id: str,
        recognition: IntentRecognitionResult,
        context: IntentContext,
    ) -> Tuple[AssistantResponse, IntentContext]:
        if recognition.status == RecognitionStatus.FAILED:
            clarification = ClarificationRequest(
                reason=ClarificationReason.UNRECOGNIZED,
                prompt_text=self._help_prompt(),
            )
            return self._clarify(session_id, recognition, context, clarification, None)

        if recognition.status == RecognitionStatus.AMBIGUOUS:
            options = self._ambiguous_options(recognition)
            clarification = ClarificationRequest(
                intent=recognition.intent,
                reason=ClarificationReason.AMBIGUOUS_INTENT,
                prompt_text="Did you want to {}?".format(" or ".join(INTENT_LABELS[option] for option in options)),
                options=options,
            )
            pending = PendingClarification(
                for_intent=recognition.intent,
                reason=ClarificationReason.AMBIGUOUS_INTENT,
                options=options,
            )
            return self._clarify(session_id, recognition, context, clarification, pending)

        self._transition(session_id, AssistantState.RECOGNIZING, AssistantState.COMPOSING)
        result = self.generator.generate(recognition.intent, recognition.entities, context)

        if isinstance(result, ClarificationRequest):
            pending = PendingClarification(
                for_intent=recognition.intent,
                missing_slot=result.missing_slot,
                reason=result.reason,
            )
            return self._clarify(session_id, recognition, context, result, pending)

        response = AssistantResponse(
            session_id=session_id,
            kind=ResponseKind.COMPOSITION,
            message=self.generator.describe(recognition.intent, recognition.entities, context),
            composition=result,
            recognition=recognition,
        )
        return response, self.store.with_pending(context, None)

    def _clarify(
        self,
        session_id: str,
        recognition: IntentRecognitionResult,
        context: IntentContext,
        clarification: ClarificationRequest,
        pending: Optional[PendingClarification],
    ) -> Tuple[AssistantResponse, IntentContext]:
        record_clarification(clarification.reason.value)
        logger.info(
            "Requesting clarification",
            session_id=session_id,
            intent=recognition.intent.value,
            reason=clarification.reason.value,
            missing_slot=clarification.missing_slot.value if clarification.missing_slot else None,
        )
        response = AssistantResponse(
            session_id=session_id,
            kind=ResponseKind.CLARIFICATION,
            message=clarification.prompt_text,
            clarification=clarification,
            recognition=recognition,
        )
        return response, self.store.with_pending(context, pending)

    def _bind_reply_unit(
        self,
        pending: Optional[PendingClarification],
        recognition: IntentRecognitionResult,
        utterance: str,
        context: IntentContext,
    ) -> IntentContext:
        """A bare unit answering a missing-unit question completes the remembered quantity"""
        if pending is None or pending.reason != ClarificationReason.MISSING_UNIT or pending.missing_slot is None:
            return context
        if any(entity.type == pending.missing_slot for entity in recognition.entities):
            return context

        unit = self.recognizer.extractor.extract_unit(utterance)
        if unit is None:
            return context
        return self.store.bind_unit(context, pending.missing_slot, unit)

    @staticmethod
    def _ambiguous_options(recognition: IntentRecognitionResult) -> List[UserIntent]:
        options = [recognition.intent]
        for alternative in recognition.alternatives:
            if alternative.intent != UserIntent.UNKNOWN:
                options.append(alternative.intent)
                break
        return options

    @staticmethod
    def _help_prompt() -> str:
        examples = "; ".join(f'"{example}"' for example in example_requests())
        return f"Sorry, I didn't understand that. Try something like {examples}."

    @staticmethod
    def _transition(session_id: str, source: AssistantState, target: AssistantState):
        if source != target:
            logger.debug("State transition", session_id=session_id, source=source.value, target=target.value)
