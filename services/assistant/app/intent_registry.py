"""Static intent registry: patterns and slot requirements per intent.

Declaration order is significant: it is the final classifier tie-break.
New intents are additions to this table and to COMPOSITION_TABLE.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Pattern, Tuple

from .models import EntityType, UserIntent


@dataclass(frozen=True)
class IntentSpec:
    """Triggering patterns and slot requirements for one intent"""
    intent: UserIntent
    keywords: FrozenSet[str]
    phrases: Tuple[Pattern, ...] = ()
    disqualifiers: FrozenSet[str] = frozenset()
    required_slots: Tuple[EntityType, ...] = ()
    optional_slots: Tuple[EntityType, ...] = ()
    unit_required: Tuple[EntityType, ...] = ()
    examples: Tuple[str, ...] = field(default=(), compare=False)

    @property
    def slots(self) -> Tuple[EntityType, ...]:
        return self.required_slots + self.optional_slots


def _phrases(*patterns: str) -> Tuple[Pattern, ...]:
    return tuple(re.compile(pattern, re.IGNORECASE) for pattern in patterns)


def _words(words: Iterable[str]) -> FrozenSet[str]:
    return frozenset(words)


INTENT_REGISTRY: Dict[UserIntent, IntentSpec] = {
    spec.intent: spec
    for spec in (
        IntentSpec(
            intent=UserIntent.QUERY_STATUS,
            keywords=_words(["status", "state", "running", "online", "offline", "health",
                             "healthy", "check", "monitor", "overview", "operating", "condition",
                             "状态", "运行", "检查", "概况"]),
            phrases=_phrases(
                r"\b(?:what\s+is|what's|check|show|display|get)\b.*\bstatus\b",
                r"\bhow\s+(?:is|are)\b.*\b(?:running|doing|operating)\b",
                r"\bis\b.*\b(?:running|online|offline)\b",
                r"(?:检查|查看|监控).*(?:状态|运行)",
                r"(?:状态|运行).*(?:如何|怎样|怎么样|正常吗)",
            ),
            disqualifiers=_words(["chart", "graph", "plot", "acknowledge", "ack", "threshold", "setpoint",
                                  "图表", "曲线", "阈值", "报警"]),
            optional_slots=(EntityType.DEVICE, EntityType.LOCATION),
            examples=("what is the status of Chiller 2", "check status for Zone A"),
        ),
        IntentSpec(
            intent=UserIntent.SHOW_CHART,
            keywords=_words(["show", "display", "chart", "graph", "plot", "view", "visualize",
                             "see", "curve", "history", "显示", "查看", "展示", "图表", "曲线"]),
            phrases=_phrases(
                r"\b(?:show|display|plot|view|see)\b.*\b(?:chart|graph|plot|curve|history|trend)\b",
                r"\b(?:chart|graph|plot)\s+(?:of|for)\b",
                r"\b(?:show|display|view|see)\b.*\b(?:temperatures?|humidity|pressure|flow|power|energy"
                r"|efficiency|cop|co2)\b",
                r"(?:显示|查看|展示|我想看).*(?:图表|曲线|数据|温度|压力|流量|功率|效率|湿度|能耗)",
            ),
            disqualifiers=_words(["compare", "versus", "vs", "predict", "forecast", "report", "export",
                                  "monitor", "monitoring", "reading", "readings",
                                  "对比", "比较", "预测", "报告", "监控"]),
            required_slots=(EntityType.METRIC,),
            optional_slots=(EntityType.DEVICE, EntityType.LOCATION, EntityType.TIME_RANGE),
            examples=("show temperature chart for Zone A last hour",),
        ),
        IntentSpec(
            intent=UserIntent.TEMPERATURE_CHECK,
            keywords=_words(["monitor", "monitoring", "reading", "readings", "监控", "读数"]),
            phrases=_phrases(
                r"\bmonitor(?:ing)?\b.*\btemperatures?\b",
                r"\btemperatures?\b.*\bmonitor(?:ing)?\b",
                r"\btemperatures?\s+readings?\b",
                r"监控.*温度",
                r"温度.*(?:监控|读数)",
            ),
            disqualifiers=_words(["chart", "graph", "compare", "predict", "forecast", "图表", "对比", "预测"]),
            required_slots=(EntityType.METRIC,),
            optional_slots=(EntityType.DEVICE, EntityType.LOCATION),
            examples=("monitor temperature in the server room",),
        ),
        IntentSpec(
            intent=UserIntent.ANALYZE_PERFORMANCE,
            keywords=_words(["analyze", "analyse", "analysis", "performance", "performing",
                             "efficiency", "efficient", "evaluate", "assess", "benchmark",
                             "分析", "性能", "评估"]),
            phrases=_phrases(
                r"\b(?:analy[sz]e|evaluate|assess)\b",
                r"\bhow\s+(?:efficient|well)\b",
                r"分析|评估",
            ),
            disqualifiers=_words(["compare", "versus", "vs", "predict", "forecast",
                                  "optimize", "optimise", "improve", "对比", "预测", "优化", "提高"]),
            required_slots=(EntityType.DEVICE,),
            optional_slots=(EntityType.METRIC, EntityType.TIME_RANGE),
            examples=("analyze Chiller 1 performance this week",),
        ),
        IntentSpec(
            intent=UserIntent.COMPARE_METRICS,
            keywords=_words(["compare", "comparison", "versus", "vs", "against", "difference", "between",
                             "对比", "比较", "差异"]),
            phrases=_phrases(r"\bcompare\b", r"\b(?:vs\.?|versus)\b", r"对比|比较"),
            required_slots=(EntityType.METRIC,),
            optional_slots=(EntityType.DEVICE, EntityType.LOCATION, EntityType.TIME_RANGE),
            examples=("compare energy of Chiller 1 and Chiller 2",),
        ),
        IntentSpec(
            intent=UserIntent.CONTROL_EQUIPMENT,
            keywords=_words(["turn", "switch", "start", "stop", "shut", "enable", "disable",
                             "mode", "restart", "put",
                             "启动", "停止", "开启", "关闭", "打开", "停机", "模式", "切换"]),
            phrases=_phrases(
                r"\b(?:turn|switch|power)\s+(?:on|off)\b",
                r"\b(?:start|stop|restart|shut\s*down)\b",
                r"\b(?:set|put|switch)\b.*\bmode\b",
                r"启动|停止|开启|关闭|打开|停机",
                r"(?:切换|设为|设置|调到).*模式",
            ),
            disqualifiers=_words(["threshold", "setpoint", "limit", "acknowledge", "ack", "chart", "graph",
                                  "阈值", "报警", "图表"]),
            required_slots=(EntityType.DEVICE, EntityType.MODE),
            optional_slots=(EntityType.LOCATION,),
            examples=("turn off AHU-3", "put Chiller 2 in eco mode"),
        ),
        IntentSpec(
            intent=UserIntent.SET_THRESHOLD,
            keywords=_words(["set", "threshold", "thresholds", "setpoint", "limit", "limits",
                             "adjust", "change", "raise", "lower",
                             "设置", "设定", "设为", "阈值", "设定值", "上限", "下限", "调整"]),
            phrases=_phrases(
                r"\bset\b.*\b(?:threshold|setpoint|set-point|limit)\b",
                r"\b(?:threshold|setpoint|set-point|limit)\b.*\b(?:to|at)\b",
                r"\b(?:raise|lower|adjust|change)\b.*\b(?:threshold|setpoint|limit|temperature)\b",
                r"\bset\b.*\b(?:to|at)\s+-?\d",
                r"(?:设置|设定|调整).*(?:阈值|设定值|上限|下限|温度)",
                r"(?:阈值|设定值|上限|下限|温度).*(?:设为|调到|为|到)\s*-?\d",
            ),
            disqualifiers=_words(["chart", "graph", "acknowledge", "ack", "图表", "模式"]),
            required_slots=(EntityType.THRESHOLD,),
            optional_slots=(EntityType.METRIC, EntityType.DEVICE, EntityType.LOCATION),
            unit_required=(EntityType.THRESHOLD,),
            examples=("set threshold to 26°C for Zone A",),
        ),
        IntentSpec(
            intent=UserIntent.ACKNOWLEDGE,
            keywords=_words(["acknowledge", "acknowledged", "ack", "confirm", "dismiss", "silence",
                             "mute", "clear", "alarm", "alarms", "alert", "alerts",
                             "确认", "消除", "静音", "报警", "告警"]),
            phrases=_phrases(
                r"\b(?:acknowledge|ack|dismiss|silence|clear|mute)\b.*\b(?:alarms?|alerts?|warnings?)\b",
                r"(?:确认|消除|静音).*(?:报警|告警)",
            ),
            disqualifiers=_words(["chart", "graph", "threshold", "图表", "阈值"]),
            optional_slots=(EntityType.SEVERITY, EntityType.DEVICE, EntityType.LOCATION),
            examples=("acknowledge critical alarms",),
        ),
        IntentSpec(
            intent=UserIntent.TROUBLESHOOT,
            keywords=_words(["fault", "faults", "error", "errors", "problem", "problems", "issue",
                             "issues", "broken", "failure", "failing", "troubleshoot", "diagnose",
                             "diagnostics", "wrong", "tripped",
                             "故障", "问题", "异常", "排查", "诊断"]),
            phrases=_phrases(
                r"\bwhy\b.*\b(?:not|isn't|won't|failing|alarm)",
                r"\bwhat(?:'s|\s+is)\s+wrong\b",
                r"\b(?:troubleshoot|diagnose)\b",
                r"什么问题|为什么.*(?:不正常|有问题|报警)|(?:排查|诊断).*(?:故障|问题)",
            ),
            disqualifiers=_words(["acknowledge", "ack", "dismiss", "确认", "消除"]),
            required_slots=(EntityType.DEVICE,),
            optional_slots=(EntityType.LOCATION, EntityType.SEVERITY, EntityType.TIME_RANGE),
            examples=("what is wrong with Pump 2",),
        ),
        IntentSpec(
            intent=UserIntent.OPTIMIZE_SYSTEM,
            keywords=_words(["optimize", "optimise", "optimization", "optimisation", "improve", "enhance",
                             "recommendation", "recommendations", "suggestion", "suggestions",
                             "saving", "savings", "优化", "提高", "改善", "节能", "建议"]),
            phrases=_phrases(
                r"\boptimi[sz](?:e|ation)\b",
                r"\bimprove\b.*\b(?:efficiency|performance)\b",
                r"\b(?:energy[\s\-]saving|save\s+energy)\b",
                r"优化",
                r"(?:如何|怎么|怎样).*(?:提高|改善).*(?:效率|性能|能效)",
                r"(?:节能|降耗).*建议",
            ),
            disqualifiers=_words(["compare", "versus", "predict", "forecast", "report",
                                  "模式", "对比", "预测", "报告"]),
            optional_slots=(EntityType.DEVICE, EntityType.METRIC, EntityType.LOCATION),
            examples=("optimize the system to improve efficiency",),
        ),
        IntentSpec(
            intent=UserIntent.GENERATE_REPORT,
            keywords=_words(["report", "reports", "summary", "summarize", "export", "generate", "download",
                             "生成", "报告", "报表", "导出"]),
            phrases=_phrases(
                r"\b(?:generate|create|make|build|export)\b.*\b(?:report|summary)\b",
                r"\bexport\b",
                r"(?:生成|导出).*(?:报告|报表)",
            ),
            required_slots=(EntityType.TIME_RANGE,),
            optional_slots=(EntityType.METRIC, EntityType.DEVICE, EntityType.LOCATION),
            examples=("generate an energy report for last week",),
        ),
        IntentSpec(
            intent=UserIntent.PREDICT_TREND,
            keywords=_words(["predict", "prediction", "forecast", "projection", "project", "future",
                             "trend", "trends", "expect", "expected", "will",
                             "预测", "趋势", "未来", "走向"]),
            phrases=_phrases(r"\b(?:predict|forecast|project)\b", r"\bwhat\s+will\b", r"预测|趋势"),
            required_slots=(EntityType.METRIC,),
            optional_slots=(EntityType.DEVICE, EntityType.LOCATION, EntityType.TIME_RANGE),
            examples=("forecast energy for the next 24 hours",),
        ),
        IntentSpec(
            intent=UserIntent.EXPLAIN_CONCEPT,
            keywords=_words(["what", "explain", "meaning", "mean", "means", "define", "definition", "describe",
                             "什么", "解释", "含义", "意思"]),
            phrases=_phrases(r"\bwhat\s+(?:is|are|does)\b", r"\bexplain\b", r"\bdefine\b",
                             r"什么是|是什么|解释"),
            disqualifiers=_words(["status", "running", "wrong", "chart", "graph", "will",
                                  "状态", "问题", "故障", "图表"]),
            required_slots=(EntityType.METRIC,),
            examples=("what is COP",),
        ),
    )
}


def get_intent_spec(intent: UserIntent) -> IntentSpec:
    return INTENT_REGISTRY[intent]


def registered_intents() -> List[UserIntent]:
    """Registered intents in declaration order (UNKNOWN is never registered)"""
    return list(INTENT_REGISTRY.keys())


def example_requests(limit: int = 4) -> List[str]:
    examples = [spec.examples[0] for spec in INTENT_REGISTRY.values() if spec.examples]
    return examples[:limit]
