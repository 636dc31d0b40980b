"""Composition generator: intent plus slots to a validated ComponentComposition"""

from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

import structlog

from .business_mapping import lookup_business_semantic
from .composition_templates import (
    COMPOSITION_TABLE,
    DEFAULT_GRANULARITY,
    DEFAULT_METRIC,
    DEFAULT_RANGE,
    METRIC_CHART,
    MISSING_UNIT_PROMPT,
    SLOT_PROMPTS,
    CompositionTemplate,
    ComponentTemplate,
    QueryTemplate,
    SlotRef,
    chart_kind_for,
)
from .config import settings
from .exceptions import (
    CompositionValidationError,
    MissingCompositionTemplateError,
    UnproducibleSlotError,
)
from .intent_registry import INTENT_REGISTRY, IntentSpec
from .models import (
    ClarificationReason,
    ClarificationRequest,
    ComponentComposition,
    Entity,
    EntityType,
    IntentContext,
    Quantity,
    TimeRange,
    UserIntent,
)
from .validation import PROPS_SCHEMAS, validate

logger = structlog.get_logger(__name__)

Slots = Dict[EntityType, Entity]

UNIT_SYMBOLS = {"celsius": "°C", "fahrenheit": "°F", "percent": "%"}
METRIC_LABELS = {"cop": "COP", "co2": "CO2"}


def verify_registry(producible: Iterable[EntityType], registry: Optional[Dict[UserIntent, IntentSpec]] = None,
                    table: Optional[Dict[UserIntent, CompositionTemplate]] = None):
    """Check that every registered intent can be composed from extractable slots"""
    registry = registry if registry is not None else INTENT_REGISTRY
    table = table if table is not None else COMPOSITION_TABLE
    producible = set(producible)

    for intent, spec in registry.items():
        if intent not in table:
            raise MissingCompositionTemplateError(
                f"no composition template for intent {intent.value}", intent=intent.value
            )
        for slot in spec.required_slots + spec.unit_required:
            if slot not in producible:
                raise UnproducibleSlotError(
                    f"intent {intent.value} requires {slot.value}, which is never extracted",
                    intent=intent.value,
                    slot=slot.value,
                )


class CompositionGenerator:
    """Maps (intent, slots) through COMPOSITION_TABLE"""

    def __init__(
        self,
        producible: Iterable[EntityType],
        registry: Optional[Dict[UserIntent, IntentSpec]] = None,
        table: Optional[Dict[UserIntent, CompositionTemplate]] = None,
        lookup: Optional[Callable[[str], str]] = None,
    ):
        self.registry = registry if registry is not None else INTENT_REGISTRY
        self.table = table if table is not None else COMPOSITION_TABLE
        self.lookup = lookup or lookup_business_semantic
        verify_registry(producible, self.registry, self.table)

    def generate(
        self,
        intent: UserIntent,
        entities: Sequence[Entity],
        context: IntentContext,
    ) -> Union[ComponentComposition, ClarificationRequest]:
        """Build a composition, or a clarification when a slot cannot be resolved"""
        template = self.table.get(intent)
        spec = self.registry.get(intent)
        if template is None or spec is None:
            raise MissingCompositionTemplateError(
                f"no composition template for intent {intent.value}", intent=intent.value
            )

        slots = self.effective_slots(entities, context)

        clarification = self._check_slots(intent, spec, slots)
        if clarification is not None:
            return clarification

        devices = self._devices(entities, slots) if template.per_device else [None]
        composition = self._validated(intent, self._build(intent, template, slots, devices))

        logger.info(
            "Generated composition",
            intent=intent.value,
            layout=composition.layout.kind.value,
            components=[component.kind for component in composition.components],
        )
        return composition

    def describe(self, intent: UserIntent, entities: Sequence[Entity], context: IntentContext) -> str:
        """Short assistant reply for a generated composition"""
        template = self.table[intent]
        slots = self.effective_slots(entities, context)
        return template.message.format(**self._slot_text(slots, self._devices(entities, slots)))

    @staticmethod
    def effective_slots(entities: Sequence[Entity], context: IntentContext) -> Slots:
        """Context slots overridden by the current turn"""
        slots = dict(context.active_slots)
        for entity in entities:
            slots[entity.type] = entity
        return slots

    # ------------------------------------------------------------------
    # Slot checks
    # ------------------------------------------------------------------

    def _check_slots(self, intent: UserIntent, spec: IntentSpec, slots: Slots) -> Optional[ClarificationRequest]:
        text = self._slot_text(slots, [])

        for slot in spec.required_slots:
            if slot not in slots:
                return ClarificationRequest(
                    intent=intent,
                    missing_slot=slot,
                    reason=ClarificationReason.MISSING_SLOT,
                    prompt_text=SLOT_PROMPTS[slot].format(**text),
                )

        for slot in spec.unit_required:
            entity = slots.get(slot)
            if entity is None:
                continue
            if isinstance(entity.value, Quantity) and entity.value.unit is None:
                return ClarificationRequest(
                    intent=intent,
                    missing_slot=slot,
                    reason=ClarificationReason.MISSING_UNIT,
                    prompt_text=MISSING_UNIT_PROMPT.format(value=f"{entity.value.value:g}"),
                )

        return None

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    def _build(
        self,
        intent: UserIntent,
        template: CompositionTemplate,
        slots: Slots,
        devices: List[Optional[str]],
    ) -> Dict[str, Any]:
        variant = self.lookup(self._variant_key(template, intent, slots))
        queries = []
        components = []

        for device in devices:
            # per-device slots: the device overrides the device slot
            scoped = dict(slots)
            if device is not None:
                scoped[EntityType.DEVICE] = slots[EntityType.DEVICE].model_copy(update={"value": device})

            offset = len(queries)
            for query in template.queries:
                queries.append(self._query(f"q{len(queries)}", query, scoped))
            for component in template.components:
                components.append(self._component(component, scoped, f"q{offset + component.query}", variant))

        return {
            "intent": intent,
            "layout": {
                "kind": template.layout,
                "columns": template.columns,
                "gap": settings.layout_gap,
                "size": "md",
            },
            "data": {
                "source": settings.data_source,
                "queries": queries,
                "refresh_interval_seconds": settings.refresh_interval_seconds,
                "cache_ttl_seconds": settings.cache_ttl_seconds,
            },
            "components": components,
        }

    def _query(self, query_id: str, query: QueryTemplate, slots: Slots) -> Dict[str, Any]:
        time_range = slots.get(EntityType.TIME_RANGE)
        location = slots.get(EntityType.LOCATION)
        device = slots.get(EntityType.DEVICE)

        metrics = []
        for metric in self._resolve(list(query.metrics), slots):
            if metric not in metrics:
                metrics.append(metric)

        return {
            "query_id": query_id,
            "metrics": metrics,
            "device_ids": [device.value] if query.devices and device is not None else [],
            "location": location.value if location is not None else None,
            "time_range": time_range.value.duration if time_range is not None else DEFAULT_RANGE,
            "granularity": time_range.value.granularity if time_range is not None else DEFAULT_GRANULARITY,
            "aggregation": query.aggregation,
            "filters": self._resolve(dict(query.filters), slots),
        }

    def _component(self, component: ComponentTemplate, slots: Slots, query_id: str, variant: str) -> Dict[str, Any]:
        props = self._resolve(dict(component.props), slots)
        props.setdefault("size", "md")
        props["variant"] = variant

        kind = component.kind
        if kind == METRIC_CHART:
            kind = chart_kind_for(props.get("metric", ""))

        return {
            "kind": kind,
            "title": component.title.format(**self._slot_text(slots, [])),
            "props": props,
            "data_binding": query_id,
        }

    def _variant_key(self, template: CompositionTemplate, intent: UserIntent, slots: Slots) -> str:
        if template.variant_key is None:
            return intent.value
        key = self._resolve(template.variant_key, slots)
        return key if isinstance(key, str) else intent.value

    def _resolve(self, value: Any, slots: Slots) -> Any:
        if isinstance(value, SlotRef):
            entity = slots.get(value.slot)
            if entity is None:
                return value.default
            return self._slot_value(entity.value, value.attr)
        if isinstance(value, dict):
            resolved = {key: self._resolve(item, slots) for key, item in value.items()}
            return {key: item for key, item in resolved.items() if item is not None}
        if isinstance(value, list):
            return [item for item in (self._resolve(item, slots) for item in value) if item is not None]
        return value

    @staticmethod
    def _slot_value(value: Any, attr: Optional[str]) -> Any:
        if attr is not None:
            return getattr(value, attr)
        if isinstance(value, TimeRange):
            return value.duration
        if isinstance(value, Quantity):
            return {"value": value.value, "unit": value.unit}
        return value

    @staticmethod
    def _devices(entities: Sequence[Entity], slots: Slots) -> List[Optional[str]]:
        """Devices named in the current turn, else the remembered one"""
        devices = []
        for entity in entities:
            if entity.type == EntityType.DEVICE and entity.value not in devices:
                devices.append(entity.value)
        if devices:
            return devices
        if EntityType.DEVICE in slots:
            return [slots[EntityType.DEVICE].value]
        return [None]

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def _validated(intent: UserIntent, payload: Dict[str, Any]) -> ComponentComposition:
        outcome = validate(ComponentComposition, payload)
        if not outcome.ok:
            raise CompositionValidationError(
                f"composition for {intent.value} failed validation", intent=intent.value, errors=outcome.errors
            )
        composition = outcome.value

        for component in composition.components:
            schema = PROPS_SCHEMAS.get(component.kind)
            if schema is None:
                raise CompositionValidationError(
                    f"no props schema for component kind {component.kind}",
                    intent=intent.value,
                    errors=[{"field": "kind", "message": f"unknown kind {component.kind}"}],
                )
            props_outcome = validate(schema, component.props)
            if not props_outcome.ok:
                raise CompositionValidationError(
                    f"props of {component.kind} failed validation",
                    intent=intent.value,
                    errors=props_outcome.errors,
                )

        return composition

    # ------------------------------------------------------------------
    # Text
    # ------------------------------------------------------------------

    @staticmethod
    def _slot_text(slots: Slots, devices: List[Optional[str]]) -> Dict[str, str]:
        def value(slot: EntityType) -> Optional[Any]:
            entity = slots.get(slot)
            return entity.value if entity is not None else None

        metric = value(EntityType.METRIC)
        metric = metric or DEFAULT_METRIC
        metric_label = METRIC_LABELS.get(metric, metric.replace("_", " "))
        location = value(EntityType.LOCATION)
        device = value(EntityType.DEVICE)
        mode = value(EntityType.MODE)
        threshold = value(EntityType.THRESHOLD)
        time_range = value(EntityType.TIME_RANGE)
        named_devices = [name for name in devices if name] or ([device] if device else [])

        threshold_text = ""
        if isinstance(threshold, Quantity):
            symbol = UNIT_SYMBOLS.get(threshold.unit or "", f" {threshold.unit}" if threshold.unit else "")
            threshold_text = f"{threshold.value:g}{symbol}"

        return {
            "metric": metric_label,
            "Metric": metric_label[:1].upper() + metric_label[1:],
            "location": location or "all zones",
            "Location": location or "All Zones",
            "device": device or "the system",
            "devices": " and ".join(named_devices) or "all equipment",
            "subject": device or location or "all zones",
            "mode": mode.replace("_", " ") if mode else "",
            "threshold": threshold_text,
            "severity": value(EntityType.SEVERITY) or "all",
            "range": time_range.expression if isinstance(time_range, TimeRange) else "the last 24 hours",
        }
