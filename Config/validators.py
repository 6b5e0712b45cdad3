# Config/validators.py
"""
Configuration validation system for the silo ledger.

Validates the constants from Config/constants_silo.py with:
- Type correctness (int, Decimal, str)
- Range constraints (min/max values)
- Relationship constraints (e.g., MIN_MOVEMENT_KG < MAX_MOVEMENT_KG)

Usage:
    from Config.validators import validate_all_config

    # At startup
    validate_all_config()  # Raises ConfigError if invalid

    # Or get a validation report
    result = validate_all_config(raise_on_error=False)
    if not result.is_valid:
        print(result.format_report())
"""

from __future__ import annotations
from decimal import Decimal
from typing import Any, Optional, List, Tuple, Callable

from .exceptions import ConfigError


# ============================================================================
# Validation Rule System
# ============================================================================

class ValidationRule:
    """Base class for validation rules."""

    def __init__(self, key: str, description: str):
        self.key = key
        self.description = description

    def validate(self, value: Any) -> Optional[str]:
        """
        Validate a value.

        Returns:
            None if valid
            Error message string if invalid
        """
        raise NotImplementedError


class TypeRule(ValidationRule):
    """Validates value is correct type."""

    def __init__(self, key: str, expected_type: type, description: str = ""):
        super().__init__(key, description or f"Must be {expected_type.__name__}")
        self.expected_type = expected_type

    def validate(self, value: Any) -> Optional[str]:
        if self.expected_type in (int, float, Decimal):
            if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
                return f"Expected numeric type, got {type(value).__name__}"
            if self.expected_type == int and not isinstance(value, int):
                return f"Expected integer, got {type(value).__name__}: {value}"
        elif not isinstance(value, self.expected_type):
            return f"Expected {self.expected_type.__name__}, got {type(value).__name__}"
        return None


class RangeRule(ValidationRule):
    """Validates numeric value is within range."""

    def __init__(
            self,
            key: str,
            min_val: Optional[float] = None,
            max_val: Optional[float] = None,
            min_inclusive: bool = True,
            max_inclusive: bool = True,
            description: str = "",
    ):
        self.min_val = min_val
        self.max_val = max_val
        self.min_inclusive = min_inclusive
        self.max_inclusive = max_inclusive

        if not description:
            parts = []
            if min_val is not None:
                parts.append(f"{'>=' if min_inclusive else '>'} {min_val}")
            if max_val is not None:
                parts.append(f"{'<=' if max_inclusive else '<'} {max_val}")
            description = " and ".join(parts) if parts else "no range constraint"

        super().__init__(key, description)

    def validate(self, value: Any) -> Optional[str]:
        try:
            num = Decimal(str(value))
        except (TypeError, ValueError, ArithmeticError):
            return f"Cannot convert to number: {value!r}"

        if self.min_val is not None:
            low = Decimal(str(self.min_val))
            if self.min_inclusive and num < low:
                return f"Must be >= {self.min_val}, got {num}"
            elif not self.min_inclusive and num <= low:
                return f"Must be > {self.min_val}, got {num}"

        if self.max_val is not None:
            high = Decimal(str(self.max_val))
            if self.max_inclusive and num > high:
                return f"Must be <= {self.max_val}, got {num}"
            elif not self.max_inclusive and num >= high:
                return f"Must be < {self.max_val}, got {num}"

        return None


class ChoiceRule(ValidationRule):
    """Validates value is one of allowed choices."""

    def __init__(self, key: str, choices: List[Any], description: str = ""):
        self.choices = choices
        desc = description or f"Must be one of: {', '.join(str(c) for c in choices)}"
        super().__init__(key, desc)

    def validate(self, value: Any) -> Optional[str]:
        if value not in self.choices:
            return f"Must be one of {self.choices}, got {value!r}"
        return None


class RelationshipRule(ValidationRule):
    """Validates relationship between two config values."""

    def __init__(
            self,
            key1: str,
            key2: str,
            relationship: Callable[[Any, Any], bool],
            description: str,
    ):
        self.key1 = key1
        self.key2 = key2
        self.relationship = relationship
        super().__init__(f"{key1}/{key2}", description)

    def validate(self, val1: Any, val2: Any) -> Optional[str]:
        """Note: Takes two values, not one."""
        try:
            if not self.relationship(val1, val2):
                return self.description
        except (TypeError, ArithmeticError) as e:
            return f"Error checking relationship: {e}"
        return None


# ============================================================================
# Silo Constants Validation Rules
# ============================================================================

SILO_RULES = [
    TypeRule("LEDGER_PROCESSING_ORDER", str, "FIFO processing order"),
    ChoiceRule("LEDGER_PROCESSING_ORDER", ["chronological", "phased"]),

    TypeRule("QUANTITY_DECIMALS", int, "Decimal places for kilograms"),
    RangeRule("QUANTITY_DECIMALS", min_val=0, max_val=3),  # DECIMAL(14, 3) columns

    TypeRule("MIN_MOVEMENT_KG", Decimal, "Smallest movement accepted"),
    RangeRule("MIN_MOVEMENT_KG", min_val=0, min_inclusive=False),

    TypeRule("MAX_MOVEMENT_KG", Decimal, "Largest movement accepted"),
    RangeRule("MAX_MOVEMENT_KG", min_val=1, max_val=10_000_000),

    TypeRule("MAX_SILO_CAPACITY_KG", Decimal, "Largest silo capacity"),
    RangeRule("MAX_SILO_CAPACITY_KG", min_val=1, max_val=100_000_000),

    TypeRule("MOVEMENT_EDIT_WINDOW_HOURS", int, "Edit window for movements"),
    RangeRule("MOVEMENT_EDIT_WINDOW_HOURS", min_val=0, max_val=24 * 30, description="0 hours to 30 days"),

    TypeRule("SILO_DELETE_QUIET_DAYS", int, "Quiet period before a silo may be removed"),
    RangeRule("SILO_DELETE_QUIET_DAYS", min_val=0, max_val=365),
]

SILO_RELATIONSHIP_RULES = [
    RelationshipRule(
        "MIN_MOVEMENT_KG", "MAX_MOVEMENT_KG",
        lambda low, high: low < high,
        "MIN_MOVEMENT_KG must be < MAX_MOVEMENT_KG"
    ),
    RelationshipRule(
        "BUCKET_LOW_MAX", "BUCKET_MEDIUM_MAX",
        lambda low, medium: 0 < low < medium,
        "BUCKET_LOW_MAX must be positive and < BUCKET_MEDIUM_MAX"
    ),
    RelationshipRule(
        "BUCKET_MEDIUM_MAX", "BUCKET_HIGH_MAX",
        lambda medium, high: medium < high < 100,
        "BUCKET_MEDIUM_MAX must be < BUCKET_HIGH_MAX < 100"
    ),
]


# ============================================================================
# Validation Engine
# ============================================================================

class ValidationResult:
    """Result of validation check."""

    def __init__(self):
        self.errors: List[Tuple[str, str]] = []  # (key, error_message)
        self.warnings: List[Tuple[str, str]] = []  # (key, warning_message)

    def add_error(self, key: str, message: str):
        self.errors.append((key, message))

    def add_warning(self, key: str, message: str):
        self.warnings.append((key, message))

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def __bool__(self) -> bool:
        return self.is_valid

    def format_report(self, include_warnings: bool = True) -> str:
        """Format validation result as human-readable report."""
        lines = []

        if self.errors:
            lines.append("VALIDATION ERRORS:")
            for key, msg in self.errors:
                lines.append(f"  ❌ {key}: {msg}")

        if include_warnings and self.warnings:
            if lines:
                lines.append("")
            lines.append("VALIDATION WARNINGS:")
            for key, msg in self.warnings:
                lines.append(f"  ⚠️  {key}: {msg}")

        if not self.errors and not self.warnings:
            lines.append("✅ All validation checks passed!")

        return "\n".join(lines)


def validate_config_dict(
        config: dict,
        rules: List[ValidationRule],
        relationship_rules: Optional[List[RelationshipRule]] = None,
) -> ValidationResult:
    """
    Validate a config dictionary against a set of rules.

    Args:
        config: Dictionary of config values
        rules: List of validation rules
        relationship_rules: Optional list of relationship rules

    Returns:
        ValidationResult with errors/warnings
    """
    result = ValidationResult()

    for rule in rules:
        if rule.key not in config:
            result.add_warning(rule.key, "Not found in config (using default)")
            continue

        error = rule.validate(config[rule.key])
        if error:
            result.add_error(rule.key, error)

    if relationship_rules:
        for rule in relationship_rules:
            if rule.key1 not in config or rule.key2 not in config:
                continue

            error = rule.validate(config[rule.key1], config[rule.key2])
            if error:
                result.add_error(rule.key, error)

    return result


def validate_silo_constants() -> ValidationResult:
    """Validate all constants from constants_silo.py."""
    from . import constants_silo as cs

    config = {
        "LEDGER_PROCESSING_ORDER": cs.LEDGER_PROCESSING_ORDER,
        "QUANTITY_DECIMALS": cs.QUANTITY_DECIMALS,
        "MIN_MOVEMENT_KG": cs.MIN_MOVEMENT_KG,
        "MAX_MOVEMENT_KG": cs.MAX_MOVEMENT_KG,
        "MAX_SILO_CAPACITY_KG": cs.MAX_SILO_CAPACITY_KG,
        "MOVEMENT_EDIT_WINDOW_HOURS": cs.MOVEMENT_EDIT_WINDOW_HOURS,
        "SILO_DELETE_QUIET_DAYS": cs.SILO_DELETE_QUIET_DAYS,
        "BUCKET_LOW_MAX": cs.BUCKET_LOW_MAX,
        "BUCKET_MEDIUM_MAX": cs.BUCKET_MEDIUM_MAX,
        "BUCKET_HIGH_MAX": cs.BUCKET_HIGH_MAX,
    }

    return validate_config_dict(config, SILO_RULES, SILO_RELATIONSHIP_RULES)


def validate_all_config(raise_on_error: bool = True) -> Optional[ValidationResult]:
    """
    Validate all configuration.

    Args:
        raise_on_error: If True, raise ConfigError on validation failure

    Returns:
        ValidationResult if raise_on_error=False
        None if raise_on_error=True (raises on error instead)

    Raises:
        ConfigError: If validation fails and raise_on_error=True
    """
    result = validate_silo_constants()

    if not result.is_valid and raise_on_error:
        raise ConfigError(f"Config validation failed:\n{result.format_report(include_warnings=False)}")

    return result if not raise_on_error else None


if __name__ == "__main__":
    """Run validation from command line: python -m Config.validators"""
    import sys

    report = validate_all_config(raise_on_error=False)
    print(report.format_report())
    sys.exit(0 if report.is_valid else 1)
