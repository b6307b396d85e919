"""Result records passed between pipeline stages and back to callers.

Every per-call result whose failures are recovered rather than raised
carries an Outcome, so the degraded path is part of the return type.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from componentid.ml.metadata import ComponentMetadata

UNKNOWN_LABEL = "Unknown"


class Outcome(StrEnum):
    OK = "ok"
    DEGRADED = "degraded"


@dataclass(frozen=True)
class InferenceOutput:
    """Raw output of a single forward pass.

    A degraded output has empty confidences and labels.
    """

    confidences: list[float]
    labels: list[str]
    outcome: Outcome = Outcome.OK
    fault: str | None = None

    @classmethod
    def degraded(cls, fault: str) -> InferenceOutput:
        return cls(confidences=[], labels=[], outcome=Outcome.DEGRADED, fault=fault)


@dataclass(frozen=True)
class ClassificationResult:
    """Top-1 classification: the winning label and its score."""

    label: str
    confidence: float
    outcome: Outcome = Outcome.OK


@dataclass(frozen=True)
class MetadataLookup:
    """A resolved metadata record, or the default record with the reason."""

    metadata: ComponentMetadata
    outcome: Outcome = Outcome.OK
    fault: str | None = None


@dataclass(frozen=True)
class ClassificationOutput:
    """Combined pipeline output for one image."""

    result: ClassificationResult
    metadata: ComponentMetadata
    metadata_outcome: Outcome = Outcome.OK
    faults: tuple[str, ...] = field(default_factory=tuple)

    @property
    def label(self) -> str:
        return self.result.label

    @property
    def confidence(self) -> float:
        return self.result.confidence

    @property
    def degraded(self) -> bool:
        return self.result.outcome is Outcome.DEGRADED or self.metadata_outcome is Outcome.DEGRADED
