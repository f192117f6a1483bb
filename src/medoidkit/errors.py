"""Exception types shared across medoidkit."""


class MedoidkitError(Exception):
    """Base exception for medoidkit operations."""

    pass


class InvalidConfigurationError(MedoidkitError, ValueError):
    """Raised when clustering parameters are invalid.

    Covers empty, duplicate or out-of-range initial medoids, a medoid set
    larger than the dataset, and non-positive tolerance or iteration limits.
    """

    pass


class DimensionalityError(MedoidkitError, ValueError):
    """Raised when points (or distance matrix rows) have inconsistent lengths."""

    pass
