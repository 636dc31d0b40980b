"""Data models for the HVAC Assistant service"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class UserIntent(str, Enum):
    """Closed set of business intents, in registry declaration order"""
    QUERY_STATUS = "query_status"
    SHOW_CHART = "show_chart"
    TEMPERATURE_CHECK = "temperature_check"
    ANALYZE_PERFORMANCE = "analyze_performance"
    COMPARE_METRICS = "compare_metrics"
    CONTROL_EQUIPMENT = "control_equipment"
    SET_THRESHOLD = "set_threshold"
    ACKNOWLEDGE = "acknowledge"
    TROUBLESHOOT = "troubleshoot"
    OPTIMIZE_SYSTEM = "optimize_system"
    GENERATE_REPORT = "generate_report"
    PREDICT_TREND = "predict_trend"
    EXPLAIN_CONCEPT = "explain_concept"
    UNKNOWN = "unknown"


class EntityType(str, Enum):
    """Entity (slot) types the extractor can emit"""
    DEVICE = "device"
    LOCATION = "location"
    METRIC = "metric"
    TIME_RANGE = "time_range"
    THRESHOLD = "threshold"
    MODE = "mode"
    SEVERITY = "severity"


class RecognitionStatus(str, Enum):
    SUCCESS = "success"
    AMBIGUOUS = "ambiguous"
    FAILED = "failed"


class TurnRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class AssistantState(str, Enum):
    """Orchestrator states"""
    IDLE = "idle"
    RECOGNIZING = "recognizing"
    CLARIFYING = "clarifying"
    COMPOSING = "composing"


class ClarificationReason(str, Enum):
    MISSING_SLOT = "missing_slot"
    MISSING_UNIT = "missing_unit"
    AMBIGUOUS_INTENT = "ambiguous_intent"
    UNRECOGNIZED = "unrecognized"


class LayoutKind(str, Enum):
    SINGLE = "single"
    GRID = "grid"
    DASHBOARD = "dashboard"
    COMPARISON = "comparison"


class ResponseKind(str, Enum):
    COMPOSITION = "composition"
    CLARIFICATION = "clarification"
    ERROR = "error"


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------

class Quantity(BaseModel):
    """Numeric value with a normalized unit (None when the text gave none)"""
    model_config = ConfigDict(frozen=True)

    value: float
    unit: Optional[str] = None


class TimeRange(BaseModel):
    """Relative time window, anchored later by the data collaborator"""
    model_config = ConfigDict(frozen=True)

    expression: str
    duration: str  # compact code: 15m, 1h, 24h, 7d
    seconds: int
    kind: str = "historical"  # realtime, historical, future
    granularity: str = "hour"
    offset_seconds: int = 0  # window ends this long before now


class Entity(BaseModel):
    """Extracted entity"""
    model_config = ConfigDict(frozen=True)

    type: EntityType
    value: Union[Quantity, TimeRange, str]
    text: str
    span: Tuple[int, int]
    confidence: float = Field(ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _check_span(self) -> "Entity":
        start, end = self.span
        if start < 0 or start >= end:
            raise ValueError(f"invalid span {self.span}")
        return self


class IntentCandidate(BaseModel):
    """Scored intent candidate"""
    model_config = ConfigDict(frozen=True)

    intent: UserIntent
    confidence: float


class IntentRecognitionResult(BaseModel):
    """Intent recognition result for a single utterance"""
    model_config = ConfigDict(frozen=True)

    intent: UserIntent
    confidence: float
    entities: List[Entity] = []
    alternatives: List[IntentCandidate] = []
    status: RecognitionStatus = RecognitionStatus.SUCCESS

    @model_validator(mode="after")
    def _check_confidence(self) -> "IntentRecognitionResult":
        for alternative in self.alternatives:
            if alternative.confidence > self.confidence:
                raise ValueError("alternative scored above the recognized intent")
        return self

    def entity_types(self) -> List[EntityType]:
        return [entity.type for entity in self.entities]


# ---------------------------------------------------------------------------
# Conversation context
# ---------------------------------------------------------------------------

class ConversationTurn(BaseModel):
    """Immutable conversation log entry"""
    model_config = ConfigDict(frozen=True)

    role: TurnRole
    text: str
    recognized_intent: Optional[UserIntent] = None
    timestamp: datetime


class PendingClarification(BaseModel):
    """Question the assistant is waiting on"""
    model_config = ConfigDict(frozen=True)

    for_intent: UserIntent
    missing_slot: Optional[EntityType] = None
    reason: ClarificationReason = ClarificationReason.MISSING_SLOT
    options: List[UserIntent] = []


class IntentContext(BaseModel):
    """Per-session conversation memory"""
    session_id: str
    turns: List[ConversationTurn] = []
    active_slots: Dict[EntityType, Entity] = {}
    pending_clarification: Optional[PendingClarification] = None
    created_at: datetime
    last_updated: datetime

    @property
    def state(self) -> AssistantState:
        if self.pending_clarification is not None:
            return AssistantState.CLARIFYING
        return AssistantState.IDLE

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: Union[str, bytes]) -> "IntentContext":
        return cls.model_validate_json(data)


# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------

class LayoutConfig(BaseModel):
    """Layout descriptor for the renderer"""
    model_config = ConfigDict(frozen=True)

    kind: LayoutKind
    columns: int = Field(default=1, ge=1)
    gap: int = 24
    size: str = "md"  # sm, md, lg


class DataQuery(BaseModel):
    """What to fetch; interpreted by the external data collaborator"""
    model_config = ConfigDict(frozen=True)

    query_id: str
    metrics: List[str] = []
    device_ids: List[str] = []
    location: Optional[str] = None
    time_range: str = "24h"
    granularity: str = "hour"
    aggregation: str = "avg"
    filters: Dict[str, Any] = {}


class DataConfig(BaseModel):
    """Data queries backing a composition"""
    model_config = ConfigDict(frozen=True)

    source: str
    queries: List[DataQuery] = Field(min_length=1)
    refresh_interval_seconds: int = 30
    cache_ttl_seconds: int = 300


class ComponentSpec(BaseModel):
    """A renderable component, resolved by kind in the external catalog"""
    model_config = ConfigDict(frozen=True)

    kind: str = Field(min_length=1)
    title: str = ""
    props: Dict[str, Any] = {}
    data_binding: Optional[str] = None


class ComponentComposition(BaseModel):
    """Final renderer-agnostic artifact"""
    model_config = ConfigDict(frozen=True)

    intent: UserIntent
    layout: LayoutConfig
    data: DataConfig
    components: List[ComponentSpec] = Field(min_length=1)

    @model_validator(mode="after")
    def _check_bindings(self) -> "ComponentComposition":
        query_ids = {query.query_id for query in self.data.queries}
        for component in self.components:
            if component.data_binding is not None and component.data_binding not in query_ids:
                raise ValueError(
                    f"component {component.kind} bound to unknown query {component.data_binding}"
                )
        return self


class ClarificationRequest(BaseModel):
    """Follow-up question for the user"""
    model_config = ConfigDict(frozen=True)

    intent: Optional[UserIntent] = None
    missing_slot: Optional[EntityType] = None
    reason: ClarificationReason = ClarificationReason.MISSING_SLOT
    prompt_text: str
    options: List[UserIntent] = []


class AssistantResponse(BaseModel):
    """Exactly one of composition, clarification or error per request"""
    session_id: str
    kind: ResponseKind
    message: str
    composition: Optional[ComponentComposition] = None
    clarification: Optional[ClarificationRequest] = None
    recognition: Optional[IntentRecognitionResult] = None


# ---------------------------------------------------------------------------
# HTTP payloads
# ---------------------------------------------------------------------------

class AssistRequest(BaseModel):
    """Assistant turn request"""
    text: str
    session_id: Optional[str] = None


class TextRequest(BaseModel):
    """Stateless text analysis request"""
    text: str


class EntityResult(BaseModel):
    """Entity extraction result"""
    entities: List[Entity]
    processing_time_ms: float
