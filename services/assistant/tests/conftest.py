"""
Shared fixtures for the assistant tests.

Every pipeline component is built fresh per test; the clock is pinned so
expiry and timestamps are deterministic.
"""

from datetime import datetime, timezone

import pytest

from app.composition_generator import CompositionGenerator
from app.context_store import ContextStore
from app.entity_extractor import EntityExtractor
from app.intent_classifier import IntentClassifier
from app.intent_recognizer import IntentRecognizer
from app.models import IntentContext
from app.orchestrator import AssistantOrchestrator


@pytest.fixture
def now() -> datetime:
    return datetime(2025, 3, 14, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def extractor() -> EntityExtractor:
    return EntityExtractor()


@pytest.fixture
def classifier() -> IntentClassifier:
    return IntentClassifier()


@pytest.fixture
def recognizer(extractor, classifier) -> IntentRecognizer:
    return IntentRecognizer(extractor, classifier)


@pytest.fixture
def generator(extractor) -> CompositionGenerator:
    return CompositionGenerator(extractor.producible_types())


@pytest.fixture
def store() -> ContextStore:
    return ContextStore(session_timeout=1800, max_turns=20)


@pytest.fixture
def orchestrator(store, recognizer, generator) -> AssistantOrchestrator:
    return AssistantOrchestrator(store, recognizer, generator)


@pytest.fixture
def empty_context(now) -> IntentContext:
    return IntentContext(session_id="session-1", created_at=now, last_updated=now)
