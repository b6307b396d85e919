"""Top-1 label selection from a confidence vector."""

from __future__ import annotations

from typing import TYPE_CHECKING

from componentid.ml.results import UNKNOWN_LABEL, ClassificationResult, Outcome

if TYPE_CHECKING:
    from collections.abc import Sequence


def rank(confidences: Sequence[float], labels: Sequence[str]) -> ClassificationResult:
    """Return the label with the highest confidence.

    The scan starts from a best score of 0 at index 0 and only moves on a
    strictly greater score. The first index wins ties, and a vector whose
    maximum is 0 (all zeros) yields label 0 with confidence 0.

    An empty vector or label set yields ("Unknown", 0.0), tagged degraded.
    """
    if len(confidences) == 0 or len(labels) == 0:
        return ClassificationResult(label=UNKNOWN_LABEL, confidence=0.0, outcome=Outcome.DEGRADED)

    best_index = 0
    best_score = 0.0
    for index, score in enumerate(confidences[: len(labels)]):
        if score > best_score:
            best_score = float(score)
            best_index = index

    return ClassificationResult(label=labels[best_index], confidence=best_score)
