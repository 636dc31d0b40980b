"""Schema validation collaborator.

validate(schema, value) -> ValidationOutcome, backed by pydantic. The
generator calls it once per composition and once per component's props.
"""

from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, ValidationError


class ValidationOutcome(BaseModel):
    """Result of a schema check"""
    ok: bool
    errors: List[Dict[str, str]] = []
    value: Optional[Any] = None


def validate(schema: Type[BaseModel], value: Any) -> ValidationOutcome:
    """Validate a payload (dict or model instance) against a pydantic schema"""
    if isinstance(value, BaseModel):
        value = value.model_dump()

    try:
        parsed = schema.model_validate(value)
    except ValidationError as e:
        return ValidationOutcome(
            ok=False,
            errors=[
                {
                    "field": ".".join(str(part) for part in error["loc"]) or "__root__",
                    "message": error["msg"],
                }
                for error in e.errors()
            ],
        )

    return ValidationOutcome(ok=True, value=parsed)


# ---------------------------------------------------------------------------
# Props schemas per component kind
# ---------------------------------------------------------------------------

class _Props(BaseModel):
    model_config = ConfigDict(extra="allow")

    size: str = "md"
    variant: str = "primary"


class ChartProps(_Props):
    metric: str
    zone: str
    range: str
    device: Optional[str] = None


class QuantityProps(BaseModel):
    value: float
    unit: str


class ControlPanelProps(_Props):
    control: str
    device: Optional[str] = None
    mode: Optional[str] = None
    requires_confirmation: bool = True
    threshold: Optional[QuantityProps] = None


class AlertPanelProps(_Props):
    zone: str
    severity: str = "all"
    device: Optional[str] = None


class DashboardLayoutProps(_Props):
    zone: str
    range: str


class AnalysisProps(_Props):
    device: str
    range: str


class ReportProps(_Props):
    range: str
    report_mode: bool = True


class EfficiencyProps(_Props):
    zone: str
    range: str
    device: Optional[str] = None
    show_recommendations: bool = True


class ConceptProps(_Props):
    concept: str


CHART_KINDS = (
    "TemperatureRangeChart",
    "PerformanceScoreChart",
    "EnergyReductionChart",
    "FlowMonitoringChart",
    "BarChart",
    "LineChart",
    "DonutChart",
    "TemperatureMonitor",
)

PROPS_SCHEMAS: Dict[str, Type[BaseModel]] = {
    **{kind: ChartProps for kind in CHART_KINDS},
    "HVACControlPanel": ControlPanelProps,
    "AlertPanel": AlertPanelProps,
    "HVACDashboardLayout": DashboardLayoutProps,
    "PerformanceAnalysis": AnalysisProps,
    "ChartFactory": ReportProps,
    "ConceptExplainer": ConceptProps,
    "EnergyEfficiency": EfficiencyProps,
}
