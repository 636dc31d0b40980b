"""
Tests for composition generation from intents and slots.
"""

import dataclasses

import pytest

from app.composition_generator import CompositionGenerator, verify_registry
from app.composition_templates import COMPOSITION_TABLE, ComponentTemplate, chart_kind_for
from app.exceptions import (
    CompositionValidationError,
    MissingCompositionTemplateError,
    UnproducibleSlotError,
)
from app.models import (
    ClarificationReason,
    ClarificationRequest,
    ComponentComposition,
    EntityType,
    LayoutKind,
    UserIntent,
)


def compose(recognizer, generator, context, text):
    recognition = recognizer.recognize(text)
    return generator.generate(recognition.intent, recognition.entities, context), recognition


class TestTemplates:
    """Every registered intent composes from its example request."""

    @pytest.mark.parametrize("text, intent, layout, kinds", [
        ("what is the status of Chiller 2", UserIntent.QUERY_STATUS, LayoutKind.DASHBOARD,
         ["HVACDashboardLayout", "AlertPanel"]),
        ("show temperature chart for Zone A last hour", UserIntent.SHOW_CHART, LayoutKind.SINGLE,
         ["TemperatureRangeChart"]),
        ("monitor temperature in the server room", UserIntent.TEMPERATURE_CHECK, LayoutKind.SINGLE,
         ["TemperatureMonitor"]),
        ("analyze Chiller 1 performance this week", UserIntent.ANALYZE_PERFORMANCE, LayoutKind.DASHBOARD,
         ["PerformanceAnalysis", "TemperatureMonitor", "EnergyReductionChart"]),
        ("compare energy of Chiller 1 and Chiller 2", UserIntent.COMPARE_METRICS, LayoutKind.COMPARISON,
         ["EnergyReductionChart", "EnergyReductionChart"]),
        ("turn off AHU-3", UserIntent.CONTROL_EQUIPMENT, LayoutKind.SINGLE, ["HVACControlPanel"]),
        ("set threshold to 26°C for Zone A", UserIntent.SET_THRESHOLD, LayoutKind.SINGLE, ["HVACControlPanel"]),
        ("acknowledge critical alarms", UserIntent.ACKNOWLEDGE, LayoutKind.SINGLE, ["AlertPanel"]),
        ("what is wrong with Pump 2", UserIntent.TROUBLESHOOT, LayoutKind.GRID, ["AlertPanel", "LineChart"]),
        ("optimize the system to improve efficiency", UserIntent.OPTIMIZE_SYSTEM, LayoutKind.SINGLE,
         ["EnergyEfficiency"]),
        ("generate an energy report for last week", UserIntent.GENERATE_REPORT, LayoutKind.SINGLE,
         ["ChartFactory"]),
        ("forecast energy for the next 24 hours", UserIntent.PREDICT_TREND, LayoutKind.SINGLE, ["LineChart"]),
        ("what is COP", UserIntent.EXPLAIN_CONCEPT, LayoutKind.SINGLE, ["ConceptExplainer"]),
    ])
    def test_example_requests(self, recognizer, generator, empty_context, text, intent, layout, kinds):
        composition, recognition = compose(recognizer, generator, empty_context, text)

        assert recognition.intent == intent
        assert isinstance(composition, ComponentComposition)
        assert composition.intent == intent
        assert composition.layout.kind == layout
        assert [component.kind for component in composition.components] == kinds

        query_ids = {query.query_id for query in composition.data.queries}
        assert all(component.data_binding in query_ids for component in composition.components)

    def test_every_registered_intent_has_a_template(self):
        assert set(COMPOSITION_TABLE) == set(UserIntent) - {UserIntent.UNKNOWN}

    @pytest.mark.parametrize("metric, kind", [
        ("temperature", "TemperatureRangeChart"),
        ("efficiency", "PerformanceScoreChart"),
        ("cop", "PerformanceScoreChart"),
        ("power", "EnergyReductionChart"),
        ("flow", "FlowMonitoringChart"),
        ("pressure", "BarChart"),
        ("humidity", "LineChart"),
        ("co2", "DonutChart"),
    ])
    def test_metric_chart_kinds(self, metric, kind):
        assert chart_kind_for(metric) == kind


class TestSlotSubstitution:

    def test_chart_props_and_query(self, recognizer, generator, empty_context):
        composition, _ = compose(recognizer, generator, empty_context,
                                 "show temperature chart for Zone A last hour")

        chart = composition.components[0]
        assert chart.props["zone"] == "Zone A"
        assert chart.props["range"] == "1h"
        assert chart.props["metric"] == "temperature"
        assert "device" not in chart.props
        assert chart.data_binding == "q0"

        query = composition.data.queries[0]
        assert query.metrics == ["temperature"]
        assert query.location == "Zone A"
        assert query.time_range == "1h"
        assert query.granularity == "minute"

    def test_defaults_for_missing_optional_slots(self, recognizer, generator, empty_context):
        composition, _ = compose(recognizer, generator, empty_context, "show humidity chart")

        chart = composition.components[0]
        assert chart.kind == "LineChart"
        assert chart.props["zone"] == "all"
        assert chart.props["range"] == "24h"
        assert composition.data.queries[0].location is None

    def test_comparison_one_chart_per_device(self, recognizer, generator, empty_context):
        composition, _ = compose(recognizer, generator, empty_context,
                                 "compare energy of Chiller 1 and Chiller 2")

        assert [component.props["device"] for component in composition.components] == ["Chiller 1", "Chiller 2"]
        assert [query.device_ids for query in composition.data.queries] == [["Chiller 1"], ["Chiller 2"]]
        assert [component.data_binding for component in composition.components] == ["q0", "q1"]
        assert composition.layout.columns == 2

    def test_threshold_passes_unit_through(self, recognizer, generator, empty_context):
        composition, _ = compose(recognizer, generator, empty_context, "set threshold to 78°F")

        panel = composition.components[0]
        assert panel.props["control"] == "threshold"
        assert panel.props["threshold"] == {"value": 78.0, "unit": "fahrenheit"}
        assert panel.props["requires_confirmation"] is True

    def test_variant_from_business_semantics(self, recognizer, generator, empty_context):
        composition, _ = compose(recognizer, generator, empty_context, "turn off AHU-3")

        assert composition.components[0].props["variant"] == "muted"
        assert composition.components[0].props["mode"] == "off"

    def test_custom_semantic_lookup(self, extractor, recognizer, empty_context):
        generator = CompositionGenerator(extractor.producible_types(), lookup=lambda key: f"token-{key}")

        composition, _ = compose(recognizer, generator, empty_context, "turn off AHU-3")

        assert composition.components[0].props["variant"] == "token-off"

    def test_context_slots_fill_gaps(self, recognizer, generator, store, empty_context, now):
        earlier = recognizer.recognize("show temperature for Zone A")
        context = store.merge(empty_context, earlier, "show temperature for Zone A", now)

        composition, _ = compose(recognizer, generator, context, "show chart")

        assert composition.components[0].props["zone"] == "Zone A"
        assert composition.components[0].kind == "TemperatureRangeChart"

    def test_current_turn_overrides_context(self, recognizer, generator, store, empty_context, now):
        earlier = recognizer.recognize("show temperature for Zone A")
        context = store.merge(empty_context, earlier, "show temperature for Zone A", now)

        composition, _ = compose(recognizer, generator, context, "show pressure chart for Zone B")

        assert composition.components[0].kind == "BarChart"
        assert composition.components[0].props["zone"] == "Zone B"

    def test_describe(self, recognizer, generator, empty_context):
        recognition = recognizer.recognize("show temperature chart for Zone A last hour")

        message = generator.describe(recognition.intent, recognition.entities, empty_context)

        assert message == "Here is the temperature chart for Zone A."

    @pytest.mark.parametrize("text, message", [
        ("show power chart for AHU-3", "Here is the power chart for AHU-3."),
        ("forecast energy for Chiller 1 next 24 hours", "Here is the energy forecast for Chiller 1."),
        ("show humidity chart", "Here is the humidity chart for all zones."),
    ])
    def test_describe_names_device(self, recognizer, generator, empty_context, text, message):
        recognition = recognizer.recognize(text)

        assert generator.describe(recognition.intent, recognition.entities, empty_context) == message

    def test_temperature_monitor_props(self, recognizer, generator, empty_context):
        composition, _ = compose(recognizer, generator, empty_context,
                                 "monitor temperature in the server room")

        monitor = composition.components[0]
        assert monitor.props["zone"] == "Server Room"
        assert monitor.props["metric"] == "temperature"
        assert monitor.props["show_internal_temperature"] is True
        assert composition.data.queries[0].metrics == ["temperature", "supply_temperature", "return_temperature"]

    def test_efficiency_recommendations(self, recognizer, generator, empty_context):
        composition, _ = compose(recognizer, generator, empty_context,
                                 "optimize energy savings for Chiller 1")

        panel = composition.components[0]
        assert panel.kind == "EnergyEfficiency"
        assert panel.props["show_recommendations"] is True
        assert panel.props["device"] == "Chiller 1"
        assert panel.props["zone"] == "all"

    def test_chinese_request_composes(self, recognizer, generator, empty_context):
        composition, recognition = compose(recognizer, generator, empty_context, "显示机房温度")

        assert recognition.intent == UserIntent.SHOW_CHART
        assert composition.components[0].kind == "TemperatureRangeChart"
        assert composition.components[0].props["zone"] == "Machine Room"


class TestClarifications:
    """Missing information never yields a partial composition."""

    def test_missing_metric(self, recognizer, generator, empty_context):
        result, _ = compose(recognizer, generator, empty_context, "show chart")

        assert isinstance(result, ClarificationRequest)
        assert result.missing_slot == EntityType.METRIC
        assert result.reason == ClarificationReason.MISSING_SLOT

    def test_missing_unit(self, recognizer, generator, empty_context):
        result, _ = compose(recognizer, generator, empty_context, "set threshold to 26")

        assert isinstance(result, ClarificationRequest)
        assert result.reason == ClarificationReason.MISSING_UNIT
        assert result.missing_slot == EntityType.THRESHOLD
        assert "26" in result.prompt_text

    def test_missing_mode_names_device(self, recognizer, generator, empty_context):
        recognition = recognizer.recognize("restart Chiller 2")
        devices_only = [entity for entity in recognition.entities if entity.type == EntityType.DEVICE]

        result = generator.generate(UserIntent.CONTROL_EQUIPMENT, devices_only, empty_context)

        assert isinstance(result, ClarificationRequest)
        assert result.missing_slot == EntityType.MODE
        assert "Chiller 2" in result.prompt_text


class TestConfigurationErrors:
    """Registry and table faults are fatal, never clarifications."""

    def test_unknown_has_no_template(self, generator, empty_context):
        with pytest.raises(MissingCompositionTemplateError):
            generator.generate(UserIntent.UNKNOWN, [], empty_context)

    def test_missing_table_entry_detected_at_construction(self, extractor):
        table = {intent: template for intent, template in COMPOSITION_TABLE.items()
                 if intent != UserIntent.EXPLAIN_CONCEPT}

        with pytest.raises(MissingCompositionTemplateError):
            CompositionGenerator(extractor.producible_types(), table=table)

    def test_unproducible_slot(self, extractor):
        producible = extractor.producible_types() - {EntityType.METRIC}

        with pytest.raises(UnproducibleSlotError) as exc_info:
            verify_registry(producible)

        assert exc_info.value.slot == "metric"
        assert exc_info.value.to_log()["fault"] == "UnproducibleSlotError"

    def test_unknown_component_kind_fails_validation(self, extractor, recognizer, empty_context):
        template = COMPOSITION_TABLE[UserIntent.EXPLAIN_CONCEPT]
        broken = dataclasses.replace(
            template,
            components=(ComponentTemplate("MysteryWidget", "?", {"concept": "cop"}),),
        )
        table = {**COMPOSITION_TABLE, UserIntent.EXPLAIN_CONCEPT: broken}
        generator = CompositionGenerator(extractor.producible_types(), table=table)
        recognition = recognizer.recognize("what is COP")

        with pytest.raises(CompositionValidationError) as exc_info:
            generator.generate(recognition.intent, recognition.entities, empty_context)

        assert exc_info.value.errors

    def test_invalid_props_fail_validation(self, extractor, recognizer, empty_context):
        template = COMPOSITION_TABLE[UserIntent.EXPLAIN_CONCEPT]
        broken = dataclasses.replace(
            template,
            components=(ComponentTemplate("ConceptExplainer", "?", {}),),
        )
        table = {**COMPOSITION_TABLE, UserIntent.EXPLAIN_CONCEPT: broken}
        generator = CompositionGenerator(extractor.producible_types(), table=table)
        recognition = recognizer.recognize("what is COP")

        with pytest.raises(CompositionValidationError):
            generator.generate(recognition.intent, recognition.entities, empty_context)
