"""pcrcall analysis — rule matching, decisions, propagation, overrides."""

from pcrcall.analysis.analyzer import Analyzer, synthesize_placeholders
from pcrcall.analysis.context import EvaluationContext, finalize_concentration
from pcrcall.analysis.ct_index import ChannelCtIndex
from pcrcall.analysis.matcher import RuleAmbiguity, RuleMatcher
from pcrcall.analysis.overrides import (
    CombinedCutoffOverride,
    InstrumentOverride,
    OverrideRegistry,
    PredicateOverride,
    normalize_instrument,
)
from pcrcall.analysis.propagation import propagate_channels
from pcrcall.analysis.service import (
    AnalysisReport,
    analyze,
    analyze_async,
    build_analyzer,
    run_analysis,
)
from pcrcall.analysis.validation import validate_configuration

__all__ = [
    "AnalysisReport",
    "Analyzer",
    "ChannelCtIndex",
    "CombinedCutoffOverride",
    "EvaluationContext",
    "InstrumentOverride",
    "OverrideRegistry",
    "PredicateOverride",
    "RuleAmbiguity",
    "RuleMatcher",
    "analyze",
    "analyze_async",
    "build_analyzer",
    "finalize_concentration",
    "normalize_instrument",
    "propagate_channels",
    "run_analysis",
    "synthesize_placeholders",
    "validate_configuration",
]
