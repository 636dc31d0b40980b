"""Intent recognition: entity extraction followed by intent scoring"""

from typing import List, Optional

import structlog

from .config import settings
from .entity_extractor import EntityExtractor, normalize_text
from .intent_classifier import IntentClassifier
from .models import (
    IntentCandidate,
    IntentRecognitionResult,
    RecognitionStatus,
    UserIntent,
)

logger = structlog.get_logger(__name__)


class IntentRecognizer:
    """Turns an utterance into an IntentRecognitionResult.

    Status is FAILED when the best candidate is UNKNOWN or scores below
    the confidence threshold, AMBIGUOUS when the two best non-unknown
    candidates are within the ambiguity margin, SUCCESS otherwise.
    """

    def __init__(
        self,
        extractor: Optional[EntityExtractor] = None,
        classifier: Optional[IntentClassifier] = None,
    ):
        self.extractor = extractor or EntityExtractor()
        self.classifier = classifier or IntentClassifier()

    def recognize(self, text: str, preferred_intent: Optional[UserIntent] = None) -> IntentRecognitionResult:
        text = normalize_text(text)
        entities = self.extractor.extract(text)
        candidates = self.classifier.classify(text, entities, preferred_intent)

        top = candidates[0]
        status = self._status(top, candidates)

        result = IntentRecognitionResult(
            intent=top.intent,
            confidence=top.confidence,
            entities=entities,
            alternatives=candidates[1:settings.max_alternatives + 1],
            status=status,
        )

        logger.info(
            "Recognized intent",
            intent=result.intent.value,
            confidence=result.confidence,
            status=status.value,
            entities=[entity.type.value for entity in entities],
        )
        return result

    @staticmethod
    def _status(top: IntentCandidate, candidates: List[IntentCandidate]) -> RecognitionStatus:
        if top.intent == UserIntent.UNKNOWN or top.confidence < settings.confidence_threshold:
            return RecognitionStatus.FAILED

        known = [candidate for candidate in candidates if candidate.intent != UserIntent.UNKNOWN]
        if len(known) > 1 and round(known[0].confidence - known[1].confidence, 4) <= settings.ambiguity_margin:
            return RecognitionStatus.AMBIGUOUS

        return RecognitionStatus.SUCCESS
