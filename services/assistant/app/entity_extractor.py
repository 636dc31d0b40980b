"""Entity extraction engine with typed rule-based extractors"""

import re
from typing import Callable, List, Optional, Pattern, Set, Tuple

import structlog

from .models import Entity, EntityType, Quantity, TimeRange

logger = structlog.get_logger(__name__)

# Full-width forms and CJK punctuation, mapped one character to one
# character so spans computed on normalized text stay valid on the input
FULL_WIDTH_TABLE = {code: code - 0xFEE0 for code in range(0xFF01, 0xFF5F)}
FULL_WIDTH_TABLE.update({0x3000: " ", ord("。"): ",", ord("、"): ","})

# (regex, normalized unit); order matters, first full match wins
UNIT_ALIASES: List[Tuple[str, str]] = [
    (r"°\s*c|℃|degrees?\s+c(?:elsius)?\b|celsius\b|c\b|摄氏度?", "celsius"),
    (r"°\s*f|℉|degrees?\s+f(?:ahrenheit)?\b|fahrenheit\b|f\b|华氏度?", "fahrenheit"),
    (r"degrees?\b|°|度", "celsius"),
    (r"%\s*rh\b|%|percent\b", "percent"),
    (r"kpa\b", "kpa"),
    (r"bar\b", "bar"),
    (r"psi\b", "psi"),
    (r"kw\b", "kw"),
    (r"l/min\b", "l_per_min"),
    (r"m³/h|m3/h", "m3_per_h"),
    (r"rpm\b", "rpm"),
    (r"hz\b", "hz"),
]
UNIT_ALTERNATION = "|".join(f"(?:{pattern})" for pattern, _ in UNIT_ALIASES)

NUMBER = r"-?\d+(?:\.\d+)?"
TIME_UNITS = r"minutes?|mins?|hours?|hrs?|days?|weeks?|months?"
CJK_TIME_UNITS = r"分钟|个?小时|天|周|个?星期|个?月"
CJK_DURATION_UNITS = {"分钟": "min", "小时": "hour", "天": "day", "周": "week", "星期": "week", "月": "month"}

QUANTITY_RE = re.compile(
    r"(?<![a-z0-9_.\-])(?P<num>" + NUMBER + r")\s*(?P<unit>" + UNIT_ALTERNATION + ")",
    re.IGNORECASE,
)
CUED_NUMBER_RE = re.compile(
    r"(?:\b(?:to|at|above|below|over|under|than|is)\s+|=\s*|(?:为|到|至|成)\s*)(?P<num>" + NUMBER + r")"
    r"(?![\w.%°℃℉/])(?!\s*(?:" + TIME_UNITS + r")\b)",
    re.IGNORECASE,
)
BARE_NUMBER_RE = re.compile(r"^\s*(?P<num>" + NUMBER + r")\s*$")
# A reply that is only a unit, e.g. "celsius" after being asked for one
UNIT_REPLY_RE = re.compile(
    r"^\s*(?:in\s+|use\s+|用)?(?P<unit>" + UNIT_ALTERNATION + r")\s*(?:please)?\s*[.!,]*\s*$",
    re.IGNORECASE,
)

# (regex, kind); numbered windows first
TIME_RANGE_PATTERNS: List[Tuple[Pattern, str]] = [
    (re.compile(r"\b(?:last|past|previous|recent)\s+(?P<n>\d+)\s*(?P<u>" + TIME_UNITS + r")\b", re.I), "historical"),
    (re.compile(r"\b(?P<n>\d+)\s*(?P<u>" + TIME_UNITS + r")\s+ago\b", re.I), "historical"),
    (re.compile(r"\b(?:next|coming)\s+(?P<n>\d+)\s*(?P<u>" + TIME_UNITS + r")\b", re.I), "future"),
    (re.compile(r"(?:最近|过去)\s*(?P<n>\d+)\s*(?P<u>" + CJK_TIME_UNITS + r")(?:内)?"), "historical"),
    (re.compile(r"(?P<n>\d+)\s*(?P<u>" + CJK_TIME_UNITS + r")(?:以)?前"), "historical"),
    (re.compile(r"(?:未来|接下来)\s*(?P<n>\d+)\s*(?P<u>" + CJK_TIME_UNITS + r")"), "future"),
]

# phrase -> (duration, seconds, kind, granularity, offset_seconds)
FIXED_TIME_RANGES: List[Tuple[str, Tuple[str, int, str, str, int]]] = [
    (r"(?:last|past|previous)\s+hour|最近一小时|过去一小时", ("1h", 3600, "historical", "minute", 0)),
    (r"(?:last|past|previous)\s+day|最近一天", ("24h", 86400, "historical", "hour", 0)),
    (r"(?:this|last|past|previous)\s+week|本周|这周|上周|最近一周", ("7d", 604800, "historical", "day", 0)),
    (r"(?:this|last|past|previous)\s+month|本月|这个月|上个?月|最近一个月", ("30d", 2592000, "historical", "day", 0)),
    (r"today|今天|今日", ("24h", 86400, "historical", "hour", 0)),
    (r"yesterday|昨天|昨日", ("1d", 86400, "historical", "hour", 86400)),
    (r"next\s+hour", ("1h", 3600, "future", "minute", 0)),
    (r"tomorrow|明天|明日", ("24h", 86400, "future", "hour", 0)),
    (r"right\s+now|now|real[\s\-]?time|live|currently|current|实时|现在|当前|目前",
     ("15m", 900, "realtime", "minute", 0)),
]

# (type, canonical value, regex)
VOCABULARY: List[Tuple[EntityType, str, str]] = [
    (EntityType.MODE, "fan_only", r"fan[\s\-]only|仅送风"),
    (EntityType.MODE, "on", r"(?:turn|switch|power)\s+on|start|enable|开启|打开|启动|开机"),
    (EntityType.MODE, "off", r"(?:turn|switch|power)\s+off|shut\s*down|stop|disable|关闭|停止|停机|关机"),
    (EntityType.MODE, "auto", r"auto(?:matic)?(?:\s+mode)?|自动(?:模式)?"),
    (EntityType.MODE, "cooling", r"cooling(?!\s+towers?)(?:\s+mode)?|cool\s+mode|制冷(?![机])(?:模式)?"),
    (EntityType.MODE, "heating", r"heating(?:\s+mode)?|heat\s+mode|制热(?:模式)?|供暖"),
    (EntityType.MODE, "eco", r"eco(?:nomy)?(?:\s+mode)?|节能模式"),
    (EntityType.MODE, "standby", r"standby|待机"),
    (EntityType.METRIC, "temperature", r"temperatures?|temps?|温度"),
    (EntityType.METRIC, "humidity", r"humidity|rh|湿度"),
    (EntityType.METRIC, "pressure", r"pressures?|压力"),
    (EntityType.METRIC, "flow", r"flow\s+rates?|flows?|流量"),
    (EntityType.METRIC, "power", r"power\s+draw|power|demand|功率"),
    (EntityType.METRIC, "energy", r"energy\s+consumption|energy|consumption|能耗|耗电量|用电量"),
    (EntityType.METRIC, "efficiency", r"efficiency|eer|能效|效率"),
    (EntityType.METRIC, "cop", r"coefficient\s+of\s+performance|cop|性能系数"),
    (EntityType.METRIC, "co2", r"co2|carbon\s+dioxide|二氧化碳"),
    (EntityType.METRIC, "air_quality", r"air\s+quality|iaq|空气质量"),
    (EntityType.SEVERITY, "critical", r"critical|严重|紧急"),
    (EntityType.SEVERITY, "major", r"major|重要"),
    (EntityType.SEVERITY, "warning", r"warnings?|警告"),
    (EntityType.SEVERITY, "minor", r"minor|轻微"),
    (EntityType.SEVERITY, "info", r"info(?:rmational)?|提示"),
    (EntityType.LOCATION, "Server Room", r"server\s+room|data\s+cent(?:er|re)|服务器机房|数据中心"),
    (EntityType.LOCATION, "Machine Room", r"machine\s+room|plant\s+room|机房"),
    (EntityType.LOCATION, "Chiller Plant", r"chiller\s+plant|冷冻站|冷站"),
    (EntityType.LOCATION, "Rooftop", r"rooftop|roof|屋顶|楼顶"),
    (EntityType.LOCATION, "Basement", r"basement|地下室"),
    (EntityType.LOCATION, "Lobby", r"lobby|大堂|大厅"),
    (EntityType.LOCATION, "East Zone", r"east\s+zone|东区"),
    (EntityType.LOCATION, "West Zone", r"west\s+zone|西区"),
    (EntityType.LOCATION, "South Zone", r"south\s+zone|南区"),
    (EntityType.LOCATION, "North Zone", r"north\s+zone|北区"),
]

DEVICE_KINDS = (
    r"cooling\s+towers?|air\s+handl(?:er|ing\s+unit)s?|chillers?|ahu|vav|fcu|rtu"
    r"|pumps?|fans?|boilers?|compressors?|condensers?|evaporators?"
)

# keyword prefix -> canonical device name
DEVICE_CANONICAL: List[Tuple[str, str, str]] = [
    # (prefix regex, numbered template, bare name)
    (r"cooling\s+tower", "Cooling Tower {id}", "Cooling Tower"),
    (r"air\s+handl", "AHU-{id}", "AHU"),
    (r"chiller", "Chiller {id}", "Chiller"),
    (r"ahu", "AHU-{id}", "AHU"),
    (r"vav", "VAV-{id}", "VAV"),
    (r"fcu", "FCU-{id}", "FCU"),
    (r"rtu", "RTU-{id}", "RTU"),
    (r"ch", "CH-{id}", "Chiller"),
    (r"pump", "Pump {id}", "Pump"),
    (r"fan", "Fan {id}", "Fan"),
    (r"boiler", "Boiler {id}", "Boiler"),
    (r"compressor", "Compressor {id}", "Compressor"),
    (r"condenser", "Condenser {id}", "Condenser"),
    (r"evaporator", "Evaporator {id}", "Evaporator"),
]

# Chinese device names map onto the same canonical templates
CJK_DEVICE_CANONICAL: List[Tuple[str, str, str]] = [
    (r"冷水机组?|制冷机组?", "Chiller {id}", "Chiller"),
    (r"冷却塔", "Cooling Tower {id}", "Cooling Tower"),
    (r"空调机组|空气处理机组?", "AHU-{id}", "AHU"),
    (r"(?:冷冻|冷却)?水泵", "Pump {id}", "Pump"),
    (r"(?:送|排)?风机", "Fan {id}", "Fan"),
    (r"锅炉", "Boiler {id}", "Boiler"),
    (r"压缩机", "Compressor {id}", "Compressor"),
    (r"冷凝器", "Condenser {id}", "Condenser"),
    (r"蒸发器", "Evaporator {id}", "Evaporator"),
]

NUMBERED_DEVICE_RE = re.compile(
    r"(?<![a-z0-9])(?P<kind>" + DEVICE_KINDS + r"|ch)[\s\-#]*(?P<id>\d{1,3}[a-z]?)(?![a-z0-9])", re.IGNORECASE
)
BARE_DEVICE_RE = re.compile(r"(?<![a-z0-9])(?P<kind>" + DEVICE_KINDS + r")(?![a-z0-9])", re.IGNORECASE)
# "2号冷水机组", "冷水机组2", "冷却塔1号" or a bare "冷却塔"
CJK_DEVICE_RE = re.compile(
    r"(?:(?P<pre>\d{1,3})\s*号\s*)?(?P<kind>"
    + "|".join(pattern for pattern, _, _ in CJK_DEVICE_CANONICAL)
    + r")(?:\s*(?P<post>\d{1,3})(?![\d.%°℃度])(?:\s*号)?)?"
)

# (regex, canonical template)
LOCATION_PATTERNS: List[Tuple[Pattern, str]] = [
    (re.compile(r"\bzone\s+(?P<id>[a-z]|\d{1,3})\b", re.I), "Zone {id}"),
    (re.compile(r"\b(?:floor|level)\s+(?P<id>\d{1,3})\b", re.I), "Floor {id}"),
    (re.compile(r"\b(?P<id>\d{1,3})(?:st|nd|rd|th)\s+floor\b", re.I), "Floor {id}"),
    (re.compile(r"\bbuilding\s+(?P<id>[a-z]|\d{1,3})\b", re.I), "Building {id}"),
    (re.compile(r"\broom\s+(?P<id>\d{1,4}[a-z]?)\b", re.I), "Room {id}"),
    (re.compile(r"区域\s*(?P<id>[a-z]|\d{1,3})(?![a-z0-9])", re.I), "Zone {id}"),
    (re.compile(r"(?<![a-z])(?P<id>[a-z])\s*区(?![域])", re.I), "Zone {id}"),
    (re.compile(r"(?<![\d.])(?P<id>\d{1,3})\s*(?:楼|层)"), "Floor {id}"),
]

NUMERIC_CONFIDENCE = 0.95
TIME_CONFIDENCE = 0.9
VOCABULARY_CONFIDENCE = 0.85
NAME_CONFIDENCE = 0.8


def normalize_text(text: str) -> str:
    """Fold full-width characters and CJK punctuation to ASCII, one for one"""
    return text.translate(FULL_WIDTH_TABLE)


def _bounded(pattern: str) -> Pattern:
    # ASCII word boundaries; CJK text has no spaces between words
    return re.compile(r"(?<![a-z0-9])(?:" + pattern + r")(?![a-z0-9])", re.IGNORECASE)


def normalize_unit(unit_text: str) -> Optional[str]:
    """Map a raw unit suffix to its normalized name"""
    unit_text = unit_text.strip()
    for pattern, unit in UNIT_ALIASES:
        if re.fullmatch(pattern, unit_text, re.IGNORECASE):
            return unit
    return None


def _duration(amount: int, unit: str) -> Tuple[str, int]:
    unit = CJK_DURATION_UNITS.get(unit.lstrip("个"), unit.lower())
    if unit.startswith("min"):
        return f"{amount}m", amount * 60
    if unit.startswith("h"):
        return f"{amount}h", amount * 3600
    if unit.startswith("d"):
        return f"{amount}d", amount * 86400
    if unit.startswith("w"):
        return f"{amount * 7}d", amount * 7 * 86400
    return f"{amount * 30}d", amount * 30 * 86400


def _granularity(seconds: int) -> str:
    if seconds <= 2 * 3600:
        return "minute"
    if seconds <= 72 * 3600:
        return "hour"
    return "day"


class EntityExtractor:
    """Typed entity extraction.

    Extractors run in priority order (numeric, time range, vocabulary,
    names). A later candidate overlapping an accepted span is dropped, so
    the result is stable for identical input.
    """

    def __init__(self):
        self.extractors: List[Tuple[str, Callable[[str], List[Entity]]]] = [
            ("numeric", self._extract_quantities),
            ("time_range", self._extract_time_ranges),
            ("vocabulary", self._extract_vocabulary),
            ("names", self._extract_names),
        ]
        self._vocabulary = [
            (entity_type, canonical, _bounded(pattern))
            for entity_type, canonical, pattern in VOCABULARY
        ]
        self._fixed_time_ranges = [
            (_bounded(pattern), spec)
            for pattern, spec in FIXED_TIME_RANGES
        ]

    def extract(self, text: str) -> List[Entity]:
        """Extract entities from text; never raises"""
        try:
            text = normalize_text(text)
            candidates: List[Entity] = []
            for _, extractor in self.extractors:
                candidates.extend(extractor(text))
            return self._resolve_overlaps(candidates, len(text))
        except Exception as e:
            logger.error("Entity extraction failed", error=str(e), text=text[:100])
            return []

    def extract_unit(self, text: str) -> Optional[str]:
        """The normalized unit when the whole reply names only a unit, else None"""
        match = UNIT_REPLY_RE.match(normalize_text(text))
        if match is None:
            return None
        return normalize_unit(match.group("unit"))

    def get_supported_entities(self) -> List[EntityType]:
        """Entity types this extractor can produce"""
        return [
            EntityType.THRESHOLD,
            EntityType.TIME_RANGE,
            EntityType.METRIC,
            EntityType.MODE,
            EntityType.SEVERITY,
            EntityType.LOCATION,
            EntityType.DEVICE,
        ]

    def producible_types(self) -> Set[EntityType]:
        """Entity types the composition registry may require"""
        return set(self.get_supported_entities())

    # ------------------------------------------------------------------
    # Typed extractors
    # ------------------------------------------------------------------

    def _extract_quantities(self, text: str) -> List[Entity]:
        entities = []

        for match in QUANTITY_RE.finditer(text):
            entities.append(self._entity(
                text, EntityType.THRESHOLD,
                Quantity(value=float(match.group("num")), unit=normalize_unit(match.group("unit"))),
                match.start("num"), match.end("unit"), NUMERIC_CONFIDENCE,
            ))

        for pattern in (CUED_NUMBER_RE, BARE_NUMBER_RE):
            for match in pattern.finditer(text):
                entities.append(self._entity(
                    text, EntityType.THRESHOLD,
                    Quantity(value=float(match.group("num")), unit=None),
                    match.start("num"), match.end("num"), NUMERIC_CONFIDENCE,
                ))

        return entities

    def _extract_time_ranges(self, text: str) -> List[Entity]:
        entities = []

        for pattern, kind in TIME_RANGE_PATTERNS:
            for match in pattern.finditer(text):
                amount = int(match.group("n"))
                if amount <= 0:
                    continue
                duration, seconds = _duration(amount, match.group("u"))
                entities.append(self._entity(
                    text, EntityType.TIME_RANGE,
                    TimeRange(
                        expression=match.group().lower(),
                        duration=duration,
                        seconds=seconds,
                        kind=kind,
                        granularity=_granularity(seconds),
                    ),
                    match.start(), match.end(), TIME_CONFIDENCE,
                ))

        for pattern, (duration, seconds, kind, granularity, offset) in self._fixed_time_ranges:
            for match in pattern.finditer(text):
                entities.append(self._entity(
                    text, EntityType.TIME_RANGE,
                    TimeRange(
                        expression=re.sub(r"\s+", " ", match.group().lower()),
                        duration=duration,
                        seconds=seconds,
                        kind=kind,
                        granularity=granularity,
                        offset_seconds=offset,
                    ),
                    match.start(), match.end(), TIME_CONFIDENCE,
                ))

        return entities

    def _extract_vocabulary(self, text: str) -> List[Entity]:
        entities = []

        for entity_type, canonical, pattern in self._vocabulary:
            for match in pattern.finditer(text):
                entities.append(self._entity(
                    text, entity_type, canonical,
                    match.start(), match.end(), VOCABULARY_CONFIDENCE,
                ))

        return entities

    def _extract_names(self, text: str) -> List[Entity]:
        entities = []

        for match in NUMBERED_DEVICE_RE.finditer(text):
            template, _ = self._device_templates(match.group("kind"))
            entities.append(self._entity(
                text, EntityType.DEVICE,
                template.format(id=match.group("id").upper()),
                match.start(), match.end(), NAME_CONFIDENCE,
            ))

        for match in BARE_DEVICE_RE.finditer(text):
            _, bare_name = self._device_templates(match.group("kind"))
            entities.append(self._entity(
                text, EntityType.DEVICE, bare_name,
                match.start(), match.end(), NAME_CONFIDENCE,
            ))

        for match in CJK_DEVICE_RE.finditer(text):
            template, bare_name = self._cjk_device_templates(match.group("kind"))
            number = match.group("pre") or match.group("post")
            entities.append(self._entity(
                text, EntityType.DEVICE,
                template.format(id=number) if number else bare_name,
                match.start(), match.end(), NAME_CONFIDENCE,
            ))

        for pattern, template in LOCATION_PATTERNS:
            for match in pattern.finditer(text):
                entities.append(self._entity(
                    text, EntityType.LOCATION,
                    template.format(id=match.group("id").upper()),
                    match.start(), match.end(), NAME_CONFIDENCE,
                ))

        return entities

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _device_templates(kind: str) -> Tuple[str, str]:
        for prefix, template, bare_name in DEVICE_CANONICAL:
            if re.match(prefix, kind, re.IGNORECASE):
                return template, bare_name
        return kind.title() + " {id}", kind.title()

    @staticmethod
    def _cjk_device_templates(kind: str) -> Tuple[str, str]:
        for pattern, template, bare_name in CJK_DEVICE_CANONICAL:
            if re.fullmatch(pattern, kind):
                return template, bare_name
        return kind + " {id}", kind

    @staticmethod
    def _entity(text: str, entity_type: EntityType, value, start: int, end: int, confidence: float) -> Entity:
        return Entity(
            type=entity_type,
            value=value,
            text=text[start:end],
            span=(start, end),
            confidence=confidence,
        )

    @staticmethod
    def _resolve_overlaps(candidates: List[Entity], text_length: int) -> List[Entity]:
        """Keep candidates in priority order, dropping any that overlap an accepted span"""
        accepted: List[Entity] = []

        for candidate in candidates:
            start, end = candidate.span
            if end > text_length:
                continue
            if any(start < other.span[1] and other.span[0] < end for other in accepted):
                continue
            accepted.append(candidate)

        return sorted(accepted, key=lambda entity: entity.span)
