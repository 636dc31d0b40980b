"""
Tests for intent scoring.

Scores below are pinned against the default weights in app.config.
"""

import re

import pytest

from app.intent_classifier import IntentClassifier, tokenize
from app.intent_registry import INTENT_REGISTRY, IntentSpec, registered_intents
from app.models import EntityType, UserIntent


def classify(classifier, extractor, text, preferred=None):
    return classifier.classify(text, extractor.extract(text), preferred)


class TestScoring:
    """Keyword, phrase, entity and disqualifier contributions."""

    def test_full_chart_request(self, classifier, extractor):
        candidates = classify(classifier, extractor, "show temperature chart for Zone A last hour")

        assert candidates[0].intent == UserIntent.SHOW_CHART
        assert candidates[0].confidence == pytest.approx(0.8)

    def test_chart_request_without_metric(self, classifier, extractor):
        candidates = classify(classifier, extractor, "show chart")

        assert candidates[0].intent == UserIntent.SHOW_CHART
        assert candidates[0].confidence == pytest.approx(0.7)

    def test_threshold_request(self, classifier, extractor):
        candidates = classify(classifier, extractor, "set threshold to 26")

        assert candidates[0].intent == UserIntent.SET_THRESHOLD
        assert candidates[0].confidence == pytest.approx(0.8)
        assert UserIntent.CONTROL_EQUIPMENT not in [candidate.intent for candidate in candidates]

    def test_disqualifier_lowers_score(self, classifier, extractor):
        candidates = classify(classifier, extractor, "what is the status of Chiller 2")
        scores = {candidate.intent: candidate.confidence for candidate in candidates}

        assert candidates[0].intent == UserIntent.QUERY_STATUS
        assert scores[UserIntent.QUERY_STATUS] == pytest.approx(0.45)
        assert scores[UserIntent.EXPLAIN_CONCEPT] == pytest.approx(0.15)

    def test_mode_request_prefers_control(self, classifier, extractor):
        candidates = classify(classifier, extractor, "set chiller 2 to cooling mode")

        assert candidates[0].intent == UserIntent.CONTROL_EQUIPMENT
        assert candidates[0].confidence == pytest.approx(0.65)

    def test_unknown_always_present(self, classifier, extractor):
        for text in ["show chart", "hello there", "turn off AHU-3"]:
            intents = [candidate.intent for candidate in classify(classifier, extractor, text)]
            assert UserIntent.UNKNOWN in intents

    def test_unmatched_text_is_unknown(self, classifier, extractor):
        candidates = classify(classifier, extractor, "hello there")

        assert len(candidates) == 1
        assert candidates[0].intent == UserIntent.UNKNOWN
        assert candidates[0].confidence == pytest.approx(0.1)

    def test_sorted_and_bounded(self, classifier, extractor):
        candidates = classify(classifier, extractor, "compare and forecast the temperature trend")
        confidences = [candidate.confidence for candidate in candidates]

        assert confidences == sorted(confidences, reverse=True)
        assert all(0 < confidence <= 1 for confidence in confidences)


class TestPendingBias:
    """Terse follow-ups lean toward the intent awaiting a slot."""

    def test_terse_follow_up(self, classifier, extractor):
        candidates = classify(classifier, extractor, "temperature", UserIntent.SHOW_CHART)

        assert candidates[0].intent == UserIntent.SHOW_CHART
        assert candidates[0].confidence == pytest.approx(0.6)

    def test_without_preference_terse_metric_is_unknown(self, classifier, extractor):
        candidates = classify(classifier, extractor, "temperature")

        assert candidates[0].intent == UserIntent.UNKNOWN

    def test_long_utterance_gets_no_bias(self, classifier, extractor):
        candidates = classify(
            classifier, extractor, "what is wrong with Pump 2 today", UserIntent.SHOW_CHART
        )

        assert UserIntent.SHOW_CHART not in [candidate.intent for candidate in candidates]


class TestTieBreak:
    """Equal confidence resolves by satisfied slots, then declaration order."""

    def test_declaration_order(self, classifier, extractor):
        candidates = classify(classifier, extractor, "forecast versus temperature")

        assert [candidate.intent for candidate in candidates[:2]] == [
            UserIntent.COMPARE_METRICS,
            UserIntent.PREDICT_TREND,
        ]
        assert candidates[0].confidence == candidates[1].confidence

    def test_more_satisfied_slots_wins(self, extractor):
        phrases = (re.compile(r"\bshow\b.*\bchart\b"),)
        registry = {
            UserIntent.SHOW_CHART: IntentSpec(
                intent=UserIntent.SHOW_CHART,
                keywords=frozenset(["show", "chart"]),
                phrases=phrases,
                required_slots=(EntityType.METRIC, EntityType.DEVICE, EntityType.LOCATION),
            ),
            UserIntent.PREDICT_TREND: IntentSpec(
                intent=UserIntent.PREDICT_TREND,
                keywords=frozenset(["show", "chart"]),
                phrases=phrases,
                required_slots=(EntityType.METRIC, EntityType.DEVICE, EntityType.LOCATION, EntityType.TIME_RANGE),
            ),
        }
        text = "show temperature chart for Chiller 1 in Zone A last hour"

        candidates = IntentClassifier(registry).classify(text, extractor.extract(text))

        assert candidates[0].confidence == candidates[1].confidence == 1.0
        assert candidates[0].intent == UserIntent.PREDICT_TREND


class TestRegistry:
    """Registry shape."""

    def test_every_intent_but_unknown_registered(self):
        assert set(registered_intents()) == set(UserIntent) - {UserIntent.UNKNOWN}

    def test_supported_intents_in_declaration_order(self, classifier):
        assert classifier.get_supported_intents() == [intent.value for intent in INTENT_REGISTRY]

    def test_tokenize(self):
        assert tokenize("What's the COP of CH-01?") == ["what", "s", "the", "cop", "of", "ch", "01"]


class TestChineseScoring:
    """CJK keywords have no spaces around them."""

    def test_tokenize_cjk_per_character(self):
        assert tokenize("显示AHU3温度") == ["显", "示", "ahu3", "温", "度"]

    def test_cjk_keywords_match_inside_text(self, classifier, extractor):
        candidates = classify(classifier, extractor, "显示机房温度")

        assert candidates[0].intent == UserIntent.SHOW_CHART
        assert candidates[0].confidence == pytest.approx(0.55)

    def test_cjk_disqualifier(self, classifier, extractor):
        scores = {candidate.intent: candidate.confidence
                  for candidate in classify(classifier, extractor, "2号水泵出了什么问题")}

        assert UserIntent.EXPLAIN_CONCEPT not in scores
        assert scores[UserIntent.TROUBLESHOOT] == pytest.approx(0.55)

    def test_terse_cjk_reply_gets_bias(self, classifier, extractor):
        candidates = classify(classifier, extractor, "摄氏度", UserIntent.SET_THRESHOLD)

        assert candidates[0].intent == UserIntent.SET_THRESHOLD
        assert candidates[0].confidence == pytest.approx(0.5)
