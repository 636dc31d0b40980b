"""Intent classification engine with pattern scoring"""

import re
from typing import Dict, FrozenSet, List, Optional, Sequence, Set

import structlog

from .config import settings
from .intent_registry import INTENT_REGISTRY, IntentSpec
from .models import Entity, EntityType, IntentCandidate, UserIntent

logger = structlog.get_logger(__name__)

# Each CJK character counts as one token
TOKEN_RE = re.compile(r"[a-z0-9]+|[\u4e00-\u9fff]")


def tokenize(text: str) -> List[str]:
    return TOKEN_RE.findall(text.lower())


class IntentClassifier:
    """Scores every registered intent against an utterance.

    Score per intent, clamped to [0, 1]:

        keyword_weight * min(1, hits / min(len(keywords), keyword_saturation))
        + phrase_boost          if any phrase pattern matches
        + entity_boost          per required slot type present
        - disqualifier_penalty  if any disqualifier token is present
        + pending_intent_bias   for the preferred intent on terse utterances

    An intent with no keyword hit, no phrase match and no bias is not a
    candidate. UNKNOWN is always present at a fixed floor so the list is
    never empty.
    """

    def __init__(self, registry: Optional[Dict[UserIntent, IntentSpec]] = None):
        self.registry = registry if registry is not None else INTENT_REGISTRY
        self._order = {intent: index for index, intent in enumerate(self.registry)}

    def classify(
        self,
        text: str,
        entities: Sequence[Entity],
        preferred_intent: Optional[UserIntent] = None,
    ) -> List[IntentCandidate]:
        """Return candidates sorted by confidence, best first"""
        tokens = tokenize(text)
        token_set = set(tokens)
        entity_types = {entity.type for entity in entities}
        terse = 0 < len(tokens) <= settings.terse_token_limit

        scored = []
        for intent, spec in self.registry.items():
            biased = terse and intent == preferred_intent
            score = self._score(spec, text, token_set, entity_types, biased)
            if score is None or score <= 0:
                continue
            scored.append((score, self._satisfied(spec, entity_types), intent))

        scored.sort(key=lambda item: (-item[0], -item[1], self._order[item[2]]))

        candidates = [IntentCandidate(intent=intent, confidence=score) for score, _, intent in scored]
        if not any(candidate.confidence > settings.unknown_floor for candidate in candidates):
            # Unknown leads when nothing scored above the floor
            candidates.insert(0, IntentCandidate(intent=UserIntent.UNKNOWN, confidence=settings.unknown_floor))
        else:
            candidates.append(IntentCandidate(intent=UserIntent.UNKNOWN, confidence=settings.unknown_floor))
            candidates.sort(key=lambda candidate: -candidate.confidence)

        logger.debug(
            "Classified utterance",
            top=candidates[0].intent.value,
            confidence=candidates[0].confidence,
            candidates=len(candidates),
        )
        return candidates

    def _score(
        self,
        spec: IntentSpec,
        text: str,
        tokens: Set[str],
        entity_types: Set[EntityType],
        biased: bool,
    ) -> Optional[float]:
        hits = self._matches(spec.keywords, text, tokens)
        phrase_hit = any(pattern.search(text) for pattern in spec.phrases)
        if not (hits or phrase_hit or biased):
            return None

        score = 0.0
        if spec.keywords:
            saturation = min(len(spec.keywords), settings.keyword_saturation)
            score += settings.keyword_weight * min(1.0, hits / saturation)
        if phrase_hit:
            score += settings.phrase_boost
        score += settings.entity_boost * self._satisfied(spec, entity_types)
        if self._matches(spec.disqualifiers, text, tokens):
            score -= settings.disqualifier_penalty
        if biased:
            score = self._apply_contextual_boosting(score)

        return round(min(1.0, max(0.0, score)), 4)

    @staticmethod
    def _apply_contextual_boosting(score: float) -> float:
        """Bias toward the intent a pending clarification is waiting on"""
        return score + settings.pending_intent_bias

    @staticmethod
    def _matches(words: FrozenSet[str], text: str, tokens: Set[str]) -> int:
        # ASCII words match whole tokens, CJK words match anywhere in the text
        return sum(1 for word in words if word in tokens or (not word.isascii() and word in text))

    @staticmethod
    def _satisfied(spec: IntentSpec, entity_types: Set[EntityType]) -> int:
        return sum(1 for slot in spec.required_slots if slot in entity_types)

    def get_supported_intents(self) -> List[str]:
        """Get list of supported intents"""
        return [intent.value for intent in self.registry]
