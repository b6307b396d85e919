"""Exception hierarchy for the classification pipeline.

Only InitializationError (and ModelLoadError) and InvalidInputError are ever
raised to callers. ClassificationFault and MetadataFault are raised and
caught inside the engine and the resolver, which turn them into degraded
results.
"""

from __future__ import annotations


class ComponentIdError(Exception):
    """Base class for all pipeline errors."""


class InitializationError(ComponentIdError):
    """A pipeline component could not be constructed."""


class ModelLoadError(InitializationError):
    """The model or label asset is missing, corrupt, or inconsistent."""


class InvalidInputError(ComponentIdError):
    """The input image is absent, empty, or malformed."""


class ClassificationFault(ComponentIdError):
    """Inference failed at runtime."""


class MetadataFault(ComponentIdError):
    """The metadata catalog is unavailable or has no record for a label."""
