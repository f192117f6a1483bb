"""Configuration validation for medoidkit.

This module provides validation utilities for configuration values.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from ..utils.metric import MetricType
from .schema import MedoidkitConfig

VALID_DATA_TYPES = {"points", "distance_matrix"}
VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

# Above this a full pairwise matrix needs more than ~1 GiB of float64
LARGE_CACHE_LIMIT = 11_585


def _builtin_metric_names() -> set[str]:
    return {m.value for m in MetricType if m != MetricType.USER_DEFINED}


@dataclass
class ValidationError:
    """Represents a configuration validation error."""

    key: str
    message: str
    value: Any = None

    def __str__(self) -> str:
        if self.value is not None:
            return f"{self.key}: {self.message} (got: {self.value!r})"
        return f"{self.key}: {self.message}"


@dataclass
class ValidationResult:
    """Result of configuration validation."""

    valid: bool
    errors: list[ValidationError]
    warnings: list[ValidationError]

    def __bool__(self) -> bool:
        return self.valid


class ConfigValidationError(Exception):
    """Raised when an invalid configuration is used or saved.

    Attributes:
        errors: List of ValidationError objects describing what failed
        warnings: List of ValidationError objects for non-fatal issues
    """

    def __init__(
        self,
        message: str,
        errors: list[ValidationError],
        warnings: Optional[list[ValidationError]] = None,
    ) -> None:
        super().__init__(message)
        self.errors = errors
        self.warnings = warnings or []

    def __str__(self) -> str:
        lines = [super().__str__()]
        if self.errors:
            lines.append("Errors:")
            for error in self.errors:
                lines.append(f"  - {error}")
        if self.warnings:
            lines.append("Warnings:")
            for warning in self.warnings:
                lines.append(f"  - {warning}")
        return "\n".join(lines)


def validate_config(config: MedoidkitConfig) -> ValidationResult:
    """Validate a configuration instance.

    Args:
        config: Configuration to validate

    Returns:
        ValidationResult with errors and warnings
    """
    errors: list[ValidationError] = []
    warnings: list[ValidationError] = []

    _validate_kmedoids(config, errors, warnings)
    _validate_strategy(config, errors, warnings)
    _validate_logging(config, errors, warnings)

    return ValidationResult(
        valid=len(errors) == 0,
        errors=errors,
        warnings=warnings,
    )


def _validate_kmedoids(
    config: MedoidkitConfig,
    errors: list[ValidationError],
    warnings: list[ValidationError],
) -> None:
    """Validate optimizer defaults."""
    kmedoids = config.kmedoids

    if not isinstance(kmedoids.tolerance, (int, float)) or kmedoids.tolerance <= 0:
        errors.append(
            ValidationError("kmedoids.tolerance", "must be greater than 0", kmedoids.tolerance)
        )
    elif kmedoids.tolerance > 1.0:
        warnings.append(
            ValidationError(
                "kmedoids.tolerance",
                "large tolerance may stop the optimizer after one swap",
                kmedoids.tolerance,
            )
        )

    if not isinstance(kmedoids.itermax, int) or kmedoids.itermax < 1:
        errors.append(
            ValidationError("kmedoids.itermax", "must be an integer >= 1", kmedoids.itermax)
        )

    metric_names = _builtin_metric_names()
    if kmedoids.metric not in metric_names:
        errors.append(
            ValidationError(
                "kmedoids.metric",
                f"must be one of {sorted(metric_names)}",
                kmedoids.metric,
            )
        )
    elif kmedoids.metric == "gower" and "max_range" not in kmedoids.metric_params:
        errors.append(
            ValidationError("kmedoids.metric_params", "gower metric requires 'max_range'")
        )
    elif kmedoids.metric == "minkowski":
        degree = kmedoids.metric_params.get("degree", 2.0)
        if not isinstance(degree, (int, float)) or degree <= 0:
            errors.append(
                ValidationError("kmedoids.metric_params.degree", "must be greater than 0", degree)
            )

    if kmedoids.data_type not in VALID_DATA_TYPES:
        errors.append(
            ValidationError(
                "kmedoids.data_type",
                f"must be one of {sorted(VALID_DATA_TYPES)}",
                kmedoids.data_type,
            )
        )

    if kmedoids.pairwise_cache_limit < 0:
        errors.append(
            ValidationError(
                "kmedoids.pairwise_cache_limit",
                "must be non-negative",
                kmedoids.pairwise_cache_limit,
            )
        )
    elif kmedoids.pairwise_cache_limit > LARGE_CACHE_LIMIT:
        warnings.append(
            ValidationError(
                "kmedoids.pairwise_cache_limit",
                "pairwise matrices this large may exhaust memory",
                kmedoids.pairwise_cache_limit,
            )
        )


def _validate_strategy(
    config: MedoidkitConfig,
    errors: list[ValidationError],
    warnings: list[ValidationError],
) -> None:
    """Validate clustering strategy defaults."""
    strategy = config.strategy

    if not isinstance(strategy.n_clusters, int) or strategy.n_clusters < 1:
        errors.append(
            ValidationError("strategy.n_clusters", "must be an integer >= 1", strategy.n_clusters)
        )

    if strategy.random_state is not None and not isinstance(strategy.random_state, int):
        errors.append(
            ValidationError(
                "strategy.random_state", "must be an integer or unset", strategy.random_state
            )
        )


def _validate_logging(
    config: MedoidkitConfig,
    errors: list[ValidationError],
    warnings: list[ValidationError],
) -> None:
    """Validate logging configuration."""
    logging_cfg = config.logging

    if logging_cfg.level.upper() not in VALID_LOG_LEVELS:
        errors.append(
            ValidationError(
                "logging.level",
                f"must be one of {sorted(VALID_LOG_LEVELS)}",
                logging_cfg.level,
            )
        )

    if not logging_cfg.console and not logging_cfg.file:
        warnings.append(
            ValidationError("logging", "console and file output are both disabled")
        )


def validate_value(key: str, value: Any) -> Optional[ValidationError]:
    """Validate a single configuration value.

    Args:
        key: Configuration key (dot notation)
        value: Value to validate

    Returns:
        ValidationError if invalid, None if valid
    """
    validators = {
        "kmedoids.tolerance": lambda v: (
            None if v > 0 else ValidationError(key, "must be greater than 0", v)
        ),
        "kmedoids.itermax": lambda v: (
            None
            if isinstance(v, int) and v >= 1
            else ValidationError(key, "must be an integer >= 1", v)
        ),
        "kmedoids.metric": lambda v: (
            None
            if v in _builtin_metric_names()
            else ValidationError(key, "must be a built-in metric name", v)
        ),
        "kmedoids.data_type": lambda v: (
            None
            if v in VALID_DATA_TYPES
            else ValidationError(key, "must be points or distance_matrix", v)
        ),
        "kmedoids.pairwise_cache_limit": lambda v: (
            None if v >= 0 else ValidationError(key, "must be non-negative", v)
        ),
        "strategy.n_clusters": lambda v: (
            None
            if isinstance(v, int) and v >= 1
            else ValidationError(key, "must be an integer >= 1", v)
        ),
        "logging.level": lambda v: (
            None
            if str(v).upper() in VALID_LOG_LEVELS
            else ValidationError(key, f"must be one of {sorted(VALID_LOG_LEVELS)}", v)
        ),
    }

    validator = validators.get(key)
    if validator is None:
        return None

    try:
        return validator(value)
    except TypeError:
        return ValidationError(key, "has the wrong type", value)
