# Config/exceptions.py
"""
Custom exceptions for configuration validation.
These provide clear, actionable error messages when config is invalid.
"""

from typing import Optional, Any, Sequence


class ConfigError(Exception):
    """Base exception for all configuration errors."""
    pass


class ConfigValidationError(ConfigError):
    """Raised when a config value fails validation."""

    def __init__(self, key: str, value: Any, reason: str, suggestion: Optional[str] = None):
        self.key = key
        self.value = value
        self.reason = reason
        self.suggestion = suggestion

        msg = f"Invalid config: {key}={value!r}\n  Reason: {reason}"
        if suggestion:
            msg += f"\n  Suggestion: {suggestion}"
        super().__init__(msg)


class ConfigChoiceError(ConfigValidationError):
    """Raised when a value is not one of the accepted options."""

    def __init__(self, key: str, value: Any, choices: Sequence[Any]):
        options = ', '.join(repr(c) for c in choices)
        super().__init__(
            key,
            value,
            f"Must be one of: {options}",
            f"Try setting {key}={choices[0]!r}",
        )
        self.choices = tuple(choices)
