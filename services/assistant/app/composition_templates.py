"""Static composition table: intent -> layout, data queries and components.

Slot values enter templates only through SlotRef placeholders, which the
generator resolves against the effective slots of a request. A SlotRef
without a default whose slot is absent drops the key it sits under.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from .models import EntityType, LayoutKind, UserIntent

# Component kind placeholder resolved from the metric slot
METRIC_CHART = "@metric_chart"

DEFAULT_ZONE = "all"
DEFAULT_RANGE = "24h"
DEFAULT_GRANULARITY = "hour"
DEFAULT_METRIC = "temperature"

METRIC_CHART_KINDS: Dict[str, str] = {
    "temperature": "TemperatureRangeChart",
    "efficiency": "PerformanceScoreChart",
    "cop": "PerformanceScoreChart",
    "energy": "EnergyReductionChart",
    "power": "EnergyReductionChart",
    "flow": "FlowMonitoringChart",
    "pressure": "BarChart",
    "humidity": "LineChart",
}
FALLBACK_CHART_KIND = "DonutChart"


def chart_kind_for(metric: str) -> str:
    return METRIC_CHART_KINDS.get(metric, FALLBACK_CHART_KIND)


@dataclass(frozen=True)
class SlotRef:
    """Placeholder for a slot value.

    attr selects a field of structured values (TimeRange.duration,
    Quantity.value); without it a TimeRange yields its duration and a
    Quantity yields {"value", "unit"}.
    """
    slot: EntityType
    attr: Optional[str] = None
    default: Any = None


@dataclass(frozen=True)
class QueryTemplate:
    metrics: Tuple[Any, ...]
    devices: bool = True
    aggregation: str = "avg"
    filters: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ComponentTemplate:
    kind: str
    title: str
    props: Dict[str, Any]
    query: int = 0


@dataclass(frozen=True)
class CompositionTemplate:
    layout: LayoutKind
    queries: Tuple[QueryTemplate, ...]
    components: Tuple[ComponentTemplate, ...]
    message: str
    columns: int = 1
    variant_key: Any = None
    per_device: bool = False


METRIC = SlotRef(EntityType.METRIC)
DEVICE = SlotRef(EntityType.DEVICE)
ZONE = SlotRef(EntityType.LOCATION, default=DEFAULT_ZONE)
RANGE = SlotRef(EntityType.TIME_RANGE, attr="duration", default=DEFAULT_RANGE)
SEVERITY = SlotRef(EntityType.SEVERITY, default="all")


def _chart_props(metric: Any = METRIC, **extra: Any) -> Dict[str, Any]:
    props = {"metric": metric, "zone": ZONE, "range": RANGE, "device": DEVICE}
    props.update(extra)
    return props


COMPOSITION_TABLE: Dict[UserIntent, CompositionTemplate] = {
    UserIntent.SHOW_CHART: CompositionTemplate(
        layout=LayoutKind.SINGLE,
        queries=(QueryTemplate(metrics=(METRIC,)),),
        components=(ComponentTemplate(METRIC_CHART, "{Metric} Chart", _chart_props()),),
        message="Here is the {metric} chart for {subject}.",
    ),
    UserIntent.TEMPERATURE_CHECK: CompositionTemplate(
        layout=LayoutKind.SINGLE,
        queries=(
            QueryTemplate(metrics=(METRIC, "supply_temperature", "return_temperature"), aggregation="latest"),
        ),
        components=(
            ComponentTemplate("TemperatureMonitor", "{Metric} Monitoring",
                              _chart_props(show_internal_temperature=True)),
        ),
        message="Here is live {metric} monitoring for {subject}.",
    ),
    UserIntent.QUERY_STATUS: CompositionTemplate(
        layout=LayoutKind.DASHBOARD,
        columns=2,
        queries=(QueryTemplate(metrics=("status", "temperature", "pressure")),),
        components=(
            ComponentTemplate("HVACDashboardLayout", "{Location} Status", {"zone": ZONE, "range": RANGE}),
            ComponentTemplate("AlertPanel", "Active Alarms", {"zone": ZONE, "severity": SEVERITY, "device": DEVICE}),
        ),
        message="Here is the current status of {subject}.",
        variant_key=SlotRef(EntityType.SEVERITY, default="normal"),
    ),
    UserIntent.ANALYZE_PERFORMANCE: CompositionTemplate(
        layout=LayoutKind.DASHBOARD,
        columns=3,
        queries=(
            QueryTemplate(metrics=("efficiency", "cop", "power")),
            QueryTemplate(metrics=("temperature",)),
            QueryTemplate(metrics=("energy",), aggregation="sum"),
        ),
        components=(
            ComponentTemplate("PerformanceAnalysis", "{device} Performance Analysis",
                              {"device": DEVICE, "range": RANGE}, query=0),
            ComponentTemplate("TemperatureMonitor", "Temperature Monitoring",
                              _chart_props("temperature"), query=1),
            ComponentTemplate("EnergyReductionChart", "Energy Efficiency Analysis",
                              _chart_props("energy"), query=2),
        ),
        message="Here is the performance analysis for {device}.",
    ),
    UserIntent.COMPARE_METRICS: CompositionTemplate(
        layout=LayoutKind.COMPARISON,
        columns=2,
        queries=(QueryTemplate(metrics=(METRIC,)),),
        components=(ComponentTemplate(METRIC_CHART, "{device} {Metric}", _chart_props()),),
        message="Here is the {metric} comparison for {devices}.",
        per_device=True,
    ),
    UserIntent.CONTROL_EQUIPMENT: CompositionTemplate(
        layout=LayoutKind.SINGLE,
        queries=(QueryTemplate(metrics=("status", "mode")),),
        components=(
            ComponentTemplate("HVACControlPanel", "{device} Control", {
                "control": "mode",
                "device": DEVICE,
                "mode": SlotRef(EntityType.MODE),
                "requires_confirmation": True,
            }),
        ),
        message="Ready to switch {device} to {mode}. Please confirm.",
        variant_key=SlotRef(EntityType.MODE),
    ),
    UserIntent.SET_THRESHOLD: CompositionTemplate(
        layout=LayoutKind.SINGLE,
        queries=(QueryTemplate(metrics=(SlotRef(EntityType.METRIC, default=DEFAULT_METRIC),)),),
        components=(
            ComponentTemplate("HVACControlPanel", "{Metric} Threshold", {
                "control": "threshold",
                "device": DEVICE,
                "zone": ZONE,
                "metric": SlotRef(EntityType.METRIC, default=DEFAULT_METRIC),
                "threshold": SlotRef(EntityType.THRESHOLD),
                "requires_confirmation": True,
            }),
        ),
        message="Ready to set the {metric} threshold to {threshold} for {location}. Please confirm.",
        variant_key=UserIntent.SET_THRESHOLD.value,
    ),
    UserIntent.ACKNOWLEDGE: CompositionTemplate(
        layout=LayoutKind.SINGLE,
        queries=(
            QueryTemplate(metrics=("alarms",), aggregation="latest",
                          filters={"severity": SEVERITY, "acknowledged": False}),
        ),
        components=(
            ComponentTemplate("AlertPanel", "Acknowledge Alarms", {
                "zone": ZONE,
                "severity": SEVERITY,
                "device": DEVICE,
                "mode": "acknowledge",
            }),
        ),
        message="Here are the {severity} alarms to acknowledge.",
        variant_key=UserIntent.ACKNOWLEDGE.value,
    ),
    UserIntent.TROUBLESHOOT: CompositionTemplate(
        layout=LayoutKind.GRID,
        columns=2,
        queries=(
            QueryTemplate(metrics=("alarms", "status"), aggregation="latest"),
            QueryTemplate(metrics=(SlotRef(EntityType.METRIC, default=DEFAULT_METRIC), "pressure", "flow")),
        ),
        components=(
            ComponentTemplate("AlertPanel", "Fault Diagnosis",
                              {"zone": ZONE, "severity": SEVERITY, "device": DEVICE}, query=0),
            ComponentTemplate("LineChart", "{device} Recent Readings",
                              _chart_props(SlotRef(EntityType.METRIC, default=DEFAULT_METRIC)), query=1),
        ),
        message="Here is the diagnostic view for {device}.",
        variant_key=SlotRef(EntityType.SEVERITY, default="warning"),
    ),
    UserIntent.OPTIMIZE_SYSTEM: CompositionTemplate(
        layout=LayoutKind.SINGLE,
        queries=(QueryTemplate(metrics=("efficiency", "cop", "energy")),),
        components=(
            ComponentTemplate("EnergyEfficiency", "Energy Efficiency Recommendations", {
                "zone": ZONE,
                "range": RANGE,
                "device": DEVICE,
                "show_recommendations": True,
            }),
        ),
        message="Here are energy efficiency recommendations for {subject}.",
        variant_key="eco",
    ),
    UserIntent.GENERATE_REPORT: CompositionTemplate(
        layout=LayoutKind.SINGLE,
        queries=(QueryTemplate(metrics=(SlotRef(EntityType.METRIC, default="energy"),), aggregation="sum"),),
        components=(
            ComponentTemplate("ChartFactory", "Data Report", {
                "range": RANGE,
                "report_mode": True,
                "metric": SlotRef(EntityType.METRIC, default="energy"),
                "zone": ZONE,
            }),
        ),
        message="Here is the report for {range}.",
    ),
    UserIntent.PREDICT_TREND: CompositionTemplate(
        layout=LayoutKind.SINGLE,
        queries=(QueryTemplate(metrics=(METRIC,), filters={"predictive": True}),),
        components=(ComponentTemplate("LineChart", "{Metric} Forecast", _chart_props(predictive=True)),),
        message="Here is the {metric} forecast for {subject}.",
    ),
    UserIntent.EXPLAIN_CONCEPT: CompositionTemplate(
        layout=LayoutKind.SINGLE,
        queries=(QueryTemplate(metrics=(METRIC,), devices=False),),
        components=(ComponentTemplate("ConceptExplainer", "What is {Metric}?", {"concept": METRIC}),),
        message="Here is an explanation of {metric}.",
    ),
}


# Follow-up questions per missing slot
SLOT_PROMPTS: Dict[EntityType, str] = {
    EntityType.METRIC: "Which metric would you like? For example temperature or energy.",
    EntityType.DEVICE: "Which device do you mean? For example Chiller 1 or AHU-3.",
    EntityType.MODE: "Which mode should {device} switch to? For example on or off.",
    EntityType.THRESHOLD: "What value should the threshold be set to?",
    EntityType.TIME_RANGE: "Which time period should it cover? For example last week.",
    EntityType.LOCATION: "Which zone do you mean?",
    EntityType.SEVERITY: "Which alarm severity do you mean?",
}

MISSING_UNIT_PROMPT = "Which unit is {value} in? For example {value}°C or {value}°F."
