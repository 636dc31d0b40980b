"""
Tests for IntentRecognizer status decisions.
"""

import pytest

from app.config import settings
from app.models import EntityType, IntentRecognitionResult, IntentCandidate, RecognitionStatus, UserIntent


class TestRecognitionStatus:

    def test_success(self, recognizer):
        result = recognizer.recognize("show temperature chart for Zone A last hour")

        assert result.status == RecognitionStatus.SUCCESS
        assert result.intent == UserIntent.SHOW_CHART
        assert result.entity_types() == [EntityType.METRIC, EntityType.LOCATION, EntityType.TIME_RANGE]

    def test_unrecognized_fails(self, recognizer):
        result = recognizer.recognize("hello there")

        assert result.status == RecognitionStatus.FAILED
        assert result.intent == UserIntent.UNKNOWN
        assert result.alternatives == []

    def test_weak_match_fails(self, recognizer):
        # one keyword hit and nothing else scores below the threshold
        result = recognizer.recognize("monitor")

        assert result.confidence < settings.confidence_threshold
        assert result.status == RecognitionStatus.FAILED

    def test_ambiguous(self, recognizer):
        result = recognizer.recognize("forecast versus temperature")

        assert result.status == RecognitionStatus.AMBIGUOUS
        assert result.intent == UserIntent.COMPARE_METRICS
        assert result.alternatives[0].intent == UserIntent.PREDICT_TREND

    def test_preferred_intent_passed_through(self, recognizer):
        result = recognizer.recognize("temperature", preferred_intent=UserIntent.SHOW_CHART)

        assert result.status == RecognitionStatus.SUCCESS
        assert result.intent == UserIntent.SHOW_CHART


class TestRecognitionResult:

    @pytest.mark.parametrize("text", [
        "compare and forecast the temperature trend",
        "what is the status of Chiller 2",
        "set threshold to 26",
    ])
    def test_confidence_dominates_alternatives(self, recognizer, text):
        result = recognizer.recognize(text)

        assert len(result.alternatives) <= settings.max_alternatives
        assert all(alternative.confidence <= result.confidence for alternative in result.alternatives)

    def test_alternative_above_result_rejected(self):
        with pytest.raises(ValueError):
            IntentRecognitionResult(
                intent=UserIntent.SHOW_CHART,
                confidence=0.5,
                alternatives=[IntentCandidate(intent=UserIntent.PREDICT_TREND, confidence=0.6)],
            )

    def test_deterministic(self, recognizer):
        text = "compare energy of Chiller 1 and Chiller 2 this week"

        assert recognizer.recognize(text) == recognizer.recognize(text)


class TestChartPhrasings:
    """Asking to see a metric is a chart request even without the word chart."""

    @pytest.mark.parametrize("text", [
        "show temperature for Zone A",
        "display humidity in the server room",
        "show me the energy consumption last week",
    ])
    def test_show_metric(self, recognizer, text):
        result = recognizer.recognize(text)

        assert result.status == RecognitionStatus.SUCCESS
        assert result.intent == UserIntent.SHOW_CHART
        assert result.confidence == pytest.approx(0.55)

    def test_monitoring_is_not_a_chart(self, recognizer):
        result = recognizer.recognize("show temperature readings for Zone A")

        assert result.status == RecognitionStatus.SUCCESS
        assert result.intent == UserIntent.TEMPERATURE_CHECK


class TestChineseInput:

    @pytest.mark.parametrize("text, intent", [
        ("显示机房温度", UserIntent.SHOW_CHART),
        ("1号冷水机组运行状态如何", UserIntent.QUERY_STATUS),
        ("监控机房温度", UserIntent.TEMPERATURE_CHECK),
        ("分析1号冷水机组本周的性能", UserIntent.ANALYZE_PERFORMANCE),
        ("对比1号冷水机组和2号冷水机组的能耗", UserIntent.COMPARE_METRICS),
        ("关闭2号冷却塔", UserIntent.CONTROL_EQUIPMENT),
        ("把温度阈值设为26度", UserIntent.SET_THRESHOLD),
        ("确认所有严重报警", UserIntent.ACKNOWLEDGE),
        ("2号水泵出了什么问题", UserIntent.TROUBLESHOOT),
        ("如何优化系统节能", UserIntent.OPTIMIZE_SYSTEM),
        ("生成上周能耗报告", UserIntent.GENERATE_REPORT),
        ("预测未来24小时的能耗", UserIntent.PREDICT_TREND),
        ("什么是COP", UserIntent.EXPLAIN_CONCEPT),
    ])
    def test_intents(self, recognizer, text, intent):
        result = recognizer.recognize(text)

        assert result.status == RecognitionStatus.SUCCESS
        assert result.intent == intent

    def test_full_width_input(self, recognizer):
        result = recognizer.recognize("把温度阈值设为２６度！")

        assert result.intent == UserIntent.SET_THRESHOLD
        threshold = [entity for entity in result.entities if entity.type == EntityType.THRESHOLD]
        assert threshold[0].value.value == 26.0
        assert threshold[0].value.unit == "celsius"
