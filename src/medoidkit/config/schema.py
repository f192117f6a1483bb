"""Configuration schema dataclasses for medoidkit.

This module defines all configuration options as typed dataclasses,
providing a single source of truth for default values and types.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

_HANDLER_MARKER = "_medoidkit_handler"


@dataclass
class KMedoidsDefaults:
    """Default parameters of the K-Medoids optimizer."""

    tolerance: float = 0.0001  # Stop when the max per-cluster change is below this
    itermax: int = 100  # Maximum swap/assignment iterations
    metric: str = "euclidean_square"  # Name of a built-in distance metric
    metric_params: dict[str, Any] = field(default_factory=dict)  # e.g. {"degree": 3}
    data_type: str = "points"  # "points" or "distance_matrix"
    pairwise_cache_limit: int = 4096  # Precompute all distances up to this many points

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "tolerance": self.tolerance,
            "itermax": self.itermax,
            "metric": self.metric,
            "metric_params": dict(self.metric_params),
            "data_type": self.data_type,
            "pairwise_cache_limit": self.pairwise_cache_limit,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> KMedoidsDefaults:
        """Create from dictionary."""
        return cls(
            tolerance=data.get("tolerance", 0.0001),
            itermax=data.get("itermax", 100),
            metric=data.get("metric", "euclidean_square"),
            metric_params=dict(data.get("metric_params", {})),
            data_type=data.get("data_type", "points"),
            pairwise_cache_limit=data.get("pairwise_cache_limit", 4096),
        )


@dataclass
class StrategyDefaults:
    """Defaults for the keyed-input clustering strategy."""

    n_clusters: int = 8
    random_state: Optional[int] = 42  # Seed for choosing initial medoids
    compute_metrics: bool = True  # Compute silhouette score after clustering

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "n_clusters": self.n_clusters,
            "random_state": self.random_state,
            "compute_metrics": self.compute_metrics,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StrategyDefaults:
        """Create from dictionary."""
        return cls(
            n_clusters=data.get("n_clusters", 8),
            random_state=data.get("random_state", 42),
            compute_metrics=data.get("compute_metrics", True),
        )


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: str = "%(levelname)s - %(name)s - %(message)s"
    file: Optional[str] = None
    console: bool = True

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "level": self.level,
            "format": self.format,
            "file": self.file,
            "console": self.console,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LoggingConfig:
        """Create from dictionary."""
        return cls(
            level=data.get("level", "INFO"),
            format=data.get("format", "%(levelname)s - %(name)s - %(message)s"),
            file=data.get("file"),
            console=data.get("console", True),
        )

    def apply(self, logger_name: str = "medoidkit") -> logging.Logger:
        """Attach handlers for this configuration to the package logger.

        Handlers added by an earlier call are replaced, so calling this twice
        does not duplicate output. The root logger is left alone.

        Args:
            logger_name: Logger to configure

        Returns:
            The configured logger
        """
        target = logging.getLogger(logger_name)
        for handler in list(target.handlers):
            if getattr(handler, _HANDLER_MARKER, False):
                target.removeHandler(handler)
                handler.close()

        target.setLevel(self.level.upper())
        formatter = logging.Formatter(self.format)

        handlers: list[logging.Handler] = []
        if self.console:
            handlers.append(logging.StreamHandler())
        if self.file:
            handlers.append(logging.FileHandler(self.file))

        for handler in handlers:
            handler.setFormatter(formatter)
            setattr(handler, _HANDLER_MARKER, True)
            target.addHandler(handler)

        return target


@dataclass
class MedoidkitConfig:
    """Main configuration container for medoidkit.

    Configuration is loaded from multiple sources with the following priority:
    1. Programmatic (highest) - Direct API calls
    2. Environment Variables - MEDOIDKIT_* prefixed
    3. Project Config - ./medoidkit.toml
    4. User Config - ~/.config/medoidkit/config.toml
    5. Defaults (lowest) - Built-in defaults
    """

    kmedoids: KMedoidsDefaults = field(default_factory=KMedoidsDefaults)
    strategy: StrategyDefaults = field(default_factory=StrategyDefaults)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "kmedoids": self.kmedoids.to_dict(),
            "strategy": self.strategy.to_dict(),
            "logging": self.logging.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MedoidkitConfig:
        """Create configuration from dictionary."""
        return cls(
            kmedoids=KMedoidsDefaults.from_dict(data.get("kmedoids", {})),
            strategy=StrategyDefaults.from_dict(data.get("strategy", {})),
            logging=LoggingConfig.from_dict(data.get("logging", {})),
        )

    def get_nested(self, key: str, default: Any = None) -> Any:
        """Get a nested configuration value using dot notation.

        Args:
            key: Dot-separated key path (e.g., "kmedoids.tolerance")
            default: Default value if key not found

        Returns:
            The configuration value or default
        """
        obj: Any = self
        for part in key.split("."):
            if isinstance(obj, dict) and part in obj:
                obj = obj[part]
            elif hasattr(obj, part):
                obj = getattr(obj, part)
            else:
                return default
        return obj

    def set_nested(self, key: str, value: Any) -> None:
        """Set a nested configuration value using dot notation.

        Args:
            key: Dot-separated key path (e.g., "kmedoids.itermax")
            value: Value to set
        """
        parts = key.split(".")
        obj: Any = self
        for part in parts[:-1]:
            if hasattr(obj, part):
                obj = getattr(obj, part)
            else:
                raise KeyError(f"Invalid configuration key: {key}")
        if not hasattr(obj, parts[-1]):
            raise KeyError(f"Invalid configuration key: {key}")
        setattr(obj, parts[-1], value)
