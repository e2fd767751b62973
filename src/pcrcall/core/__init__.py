"""pcrcall core — data models, well patterns, exceptions."""

from pcrcall.core.exceptions import (
    AmbiguousRuleError,
    AnalysisError,
    ConfigurationError,
    FormulaError,
    PatternError,
    PlateFormatError,
)
from pcrcall.core.models import (
    CT_UPPER_BOUND,
    DEFAULT_CHANNELS,
    AnalysisConfiguration,
    AnalysisResultItem,
    AnalysisRule,
    DetectionResult,
    PatientInfo,
    Plate,
    PropagationRule,
    WellMeasurement,
)
from pcrcall.core.wells import WellPattern, normalize_position

__all__ = [
    "CT_UPPER_BOUND",
    "DEFAULT_CHANNELS",
    "AnalysisConfiguration",
    "AnalysisResultItem",
    "AnalysisRule",
    "DetectionResult",
    "PatientInfo",
    "Plate",
    "PropagationRule",
    "WellMeasurement",
    "WellPattern",
    "normalize_position",
    "AnalysisError",
    "ConfigurationError",
    "PatternError",
    "AmbiguousRuleError",
    "FormulaError",
    "PlateFormatError",
]
