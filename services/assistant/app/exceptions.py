"""Error taxonomy for the assistant pipeline.

User-facing problems (missing slots, unknown or ambiguous requests) are not
exceptions; they travel as ClarificationRequest values. Everything here
signals a misconfigured intent/slot registry and must surface in tests.
"""

from typing import Dict, List, Optional


class InternalConfigurationError(Exception):
    """Registry or composition table is inconsistent"""

    def __init__(self, message: str, intent: Optional[str] = None):
        super().__init__(message)
        self.intent = intent

    def to_log(self) -> Dict[str, object]:
        return {"fault": type(self).__name__, "intent": self.intent, "detail": str(self)}


class MissingCompositionTemplateError(InternalConfigurationError):
    """An intent reached the generator without a composition table entry"""


class UnproducibleSlotError(InternalConfigurationError):
    """An intent requires an entity type the extractor never emits"""

    def __init__(self, message: str, intent: Optional[str] = None, slot: Optional[str] = None):
        super().__init__(message, intent)
        self.slot = slot

    def to_log(self) -> Dict[str, object]:
        data = super().to_log()
        data["slot"] = self.slot
        return data


class CompositionValidationError(InternalConfigurationError):
    """A generated composition failed schema validation"""

    def __init__(self, message: str, intent: Optional[str] = None, errors: Optional[List[Dict[str, str]]] = None):
        super().__init__(message, intent)
        self.errors = errors or []

    def to_log(self) -> Dict[str, object]:
        data = super().to_log()
        data["errors"] = self.errors
        return data
