"""Exception classes for the pcrcall core module."""


class AnalysisError(Exception):
    """Base exception for all analysis-related errors."""


class ConfigurationError(AnalysisError):
    """Raised when a rule configuration is missing, empty, or malformed."""

    def __init__(self, message: str | None = None, key: str | None = None) -> None:
        if message is None:
            message = f"Invalid configuration key: {key}" if key else "Invalid configuration"
        super().__init__(message)
        self.key = key


class PatternError(ConfigurationError):
    """Raised when a well position pattern cannot be parsed."""

    def __init__(self, pattern: str | None = None, reason: str | None = None) -> None:
        msg = f"Invalid well pattern: {pattern!r}" if pattern is not None else "Invalid well pattern"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg)
        self.pattern = pattern
        self.reason = reason


class AmbiguousRuleError(ConfigurationError):
    """Raised when more than one rule matches the same well and channel."""

    def __init__(self, position: str | None = None, channel: str | None = None,
                 rule_indexes: list[int] | None = None) -> None:
        if position and channel:
            msg = f"Ambiguous rules for {position}/{channel}"
            if rule_indexes:
                msg += f": rules {', '.join(str(i) for i in rule_indexes)}"
        else:
            msg = "Ambiguous rules"
        super().__init__(msg)
        self.position = position
        self.channel = channel
        self.rule_indexes = rule_indexes or []


class FormulaError(AnalysisError):
    """Raised when a formula cannot be parsed or evaluated."""

    def __init__(self, expression: str | None = None, reason: str | None = None) -> None:
        msg = f"Formula error in {expression!r}" if expression is not None else "Formula error"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)
        self.expression = expression
        self.reason = reason


class PlateFormatError(AnalysisError):
    """Raised when a plate or patient table cannot be read."""

    def __init__(self, path: str | None = None, reason: str | None = None) -> None:
        msg = f"Cannot read plate data from {path}" if path else "Cannot read plate data"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)
        self.path = path
        self.reason = reason
