"""Conversation context store with per-session locking and expiry"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import AsyncIterator, Dict, List, Optional

import structlog

from .config import settings
from .models import (
    ConversationTurn,
    EntityType,
    IntentContext,
    IntentRecognitionResult,
    PendingClarification,
    Quantity,
    RecognitionStatus,
    TurnRole,
    UserIntent,
)

logger = structlog.get_logger(__name__)


def recognized_intent(recognition: IntentRecognitionResult) -> UserIntent:
    """Intent recorded for a turn; failed recognitions count as UNKNOWN"""
    if recognition.status == RecognitionStatus.FAILED:
        return UserIntent.UNKNOWN
    return recognition.intent


class ContextStore:
    """In-memory IntentContext store.

    Contexts are treated as values: merge/with_pending/append_assistant_turn
    return new contexts and never touch the store. save() is the only write
    and replaces the stored context in one assignment, so a request that is
    abandoned before saving leaves the previous context intact.
    """

    def __init__(self, session_timeout: Optional[int] = None, max_turns: Optional[int] = None):
        self.session_timeout = timedelta(
            seconds=session_timeout if session_timeout is not None else settings.session_timeout
        )
        self.max_turns = max_turns if max_turns is not None else settings.max_turns
        self._contexts: Dict[str, IntentContext] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        # holders plus waiters per session lock
        self._lock_users: Dict[str, int] = {}

    def lock(self, session_id: str) -> asyncio.Lock:
        """Lock serializing requests for one session"""
        if session_id not in self._locks:
            self._locks[session_id] = asyncio.Lock()
        return self._locks[session_id]

    @asynccontextmanager
    async def session_lock(self, session_id: str) -> AsyncIterator[None]:
        """Hold the session lock; counted so eviction never drops a lock someone awaits"""
        self._lock_users[session_id] = self._lock_users.get(session_id, 0) + 1
        try:
            async with self.lock(session_id):
                yield
        finally:
            self._lock_users[session_id] -= 1
            if not self._lock_users[session_id]:
                del self._lock_users[session_id]

    def get(self, session_id: str) -> Optional[IntentContext]:
        return self._contexts.get(session_id)

    def get_or_create(self, session_id: str, now: datetime) -> IntentContext:
        """Live context for the session, or a fresh one if absent or expired"""
        context = self._contexts.get(session_id)
        if context is not None and self.expire(context, now) is not None:
            return context

        return IntentContext(session_id=session_id, created_at=now, last_updated=now)

    def expire(self, context: IntentContext, now: datetime) -> Optional[IntentContext]:
        """Evict the context if it has been idle too long; None when evicted"""
        if now - context.last_updated <= self.session_timeout:
            return context

        if self._contexts.get(context.session_id) is context:
            del self._contexts[context.session_id]
        logger.info(
            "Session expired",
            session_id=context.session_id,
            idle_seconds=int((now - context.last_updated).total_seconds()),
        )
        return None

    def merge(
        self,
        context: IntentContext,
        recognition: IntentRecognitionResult,
        utterance: str,
        now: datetime,
    ) -> IntentContext:
        """Fold a recognition result into a new context value"""
        active_slots = dict(context.active_slots)
        for entity in recognition.entities:
            active_slots[entity.type] = entity

        turn = ConversationTurn(
            role=TurnRole.USER,
            text=utterance,
            recognized_intent=recognized_intent(recognition),
            timestamp=now,
        )

        return context.model_copy(update={
            "turns": self._trim(context.turns + [turn]),
            "active_slots": active_slots,
            "last_updated": now,
        })

    @staticmethod
    def bind_unit(context: IntentContext, slot: EntityType, unit: str) -> IntentContext:
        """Attach a unit to the remembered unitless quantity in slot"""
        entity = context.active_slots.get(slot)
        if entity is None or not isinstance(entity.value, Quantity) or entity.value.unit is not None:
            return context

        bound = entity.model_copy(update={"value": entity.value.model_copy(update={"unit": unit})})
        return context.model_copy(update={"active_slots": {**context.active_slots, slot: bound}})

    @staticmethod
    def with_pending(context: IntentContext, pending: Optional[PendingClarification]) -> IntentContext:
        return context.model_copy(update={"pending_clarification": pending})

    def append_assistant_turn(
        self,
        context: IntentContext,
        text: str,
        intent: Optional[UserIntent],
        now: datetime,
    ) -> IntentContext:
        turn = ConversationTurn(role=TurnRole.ASSISTANT, text=text, recognized_intent=intent, timestamp=now)
        return context.model_copy(update={
            "turns": self._trim(context.turns + [turn]),
            "last_updated": now,
        })

    def save(self, context: IntentContext):
        """Commit a context"""
        self._contexts[context.session_id] = context

    def restore(self, context: IntentContext) -> bool:
        """Load a persisted snapshot unless the session is already live"""
        if context.session_id in self._contexts:
            return False
        self._contexts[context.session_id] = context
        logger.info("Restored session context", session_id=context.session_id, turns=len(context.turns))
        return True

    def destroy(self, session_id: str) -> bool:
        existed = self._contexts.pop(session_id, None) is not None
        self._drop_lock(session_id)
        return existed

    async def sweep(self, now: datetime) -> List[str]:
        """Evict every expired context; returns the evicted session ids"""
        expired = []

        for session_id in list(self._contexts):
            async with self.session_lock(session_id):
                context = self._contexts.get(session_id)
                if context is not None and self.expire(context, now) is None:
                    expired.append(session_id)

        for session_id in expired:
            if session_id not in self._contexts:
                self._drop_lock(session_id)

        if expired:
            logger.info("Cleaned up expired sessions", count=len(expired))

        return expired

    def active_count(self) -> int:
        return len(self._contexts)

    def _drop_lock(self, session_id: str):
        # locks with holders or waiters are kept
        if session_id not in self._lock_users:
            self._locks.pop(session_id, None)

    def _trim(self, turns: List[ConversationTurn]) -> List[ConversationTurn]:
        if len(turns) > self.max_turns:
            return turns[-self.max_turns:]
        return turns
