"""Configuration system for medoidkit.

This module provides a hierarchical configuration system for the optimizer
defaults, the keyed clustering strategy and logging.

Configuration Sources (Priority Order):
1. Programmatic (highest) - Direct API calls
2. Environment Variables - MEDOIDKIT_* prefixed variables
3. Project Config - ./medoidkit.toml
4. User Config - ~/.config/medoidkit/config.toml (global)
5. Defaults (lowest) - Built-in defaults

Example Usage:
    from medoidkit.config import load_config

    config = load_config(project_path=Path("."))
    print(config.kmedoids.tolerance)  # 0.0001
    print(config.kmedoids.metric)     # "euclidean_square"

Environment Variables:
    All settings can be overridden with MEDOIDKIT_ prefixed variables:
    - MEDOIDKIT_KMEDOIDS_ITERMAX=50
    - MEDOIDKIT_KMEDOIDS_PAIRWISE_CACHE_LIMIT=0
    - MEDOIDKIT_LOGGING_LEVEL=DEBUG
"""

from .loader import (
    ConfigLoader,
    get_default_config,
    load_config,
)
from .schema import (
    KMedoidsDefaults,
    LoggingConfig,
    MedoidkitConfig,
    StrategyDefaults,
)
from .validation import (
    ConfigValidationError,
    ValidationError,
    ValidationResult,
    validate_config,
    validate_value,
)

__all__ = [
    # Main config class
    "MedoidkitConfig",
    # Section configs
    "KMedoidsDefaults",
    "StrategyDefaults",
    "LoggingConfig",
    # Loader
    "ConfigLoader",
    "load_config",
    "get_default_config",
    # Validation
    "validate_config",
    "validate_value",
    "ValidationError",
    "ValidationResult",
    "ConfigValidationError",
]
