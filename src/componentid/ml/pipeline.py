"""Classification pipeline: image in, label + confidence + metadata out."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from componentid.ml.assets import create_asset_store
from componentid.ml.engine import InferenceEngine
from componentid.ml.metadata import MetadataResolver
from componentid.ml.preprocessing import ImagePreprocessor
from componentid.ml.ranking import rank
from componentid.ml.results import ClassificationOutput

if TYPE_CHECKING:
    from types import TracebackType

    import numpy as np
    from numpy.typing import NDArray

    from componentid.config import Settings

logger = logging.getLogger(__name__)


class ClassificationPipeline:
    """Preprocess, infer, rank, and resolve metadata for a single image.

    The pipeline owns its engine: close() (or leaving a ``with`` block)
    releases the model.
    """

    def __init__(
        self,
        preprocessor: ImagePreprocessor,
        engine: InferenceEngine,
        resolver: MetadataResolver,
    ) -> None:
        self._preprocessor = preprocessor
        self._engine = engine
        self._resolver = resolver

    @classmethod
    def from_settings(cls, settings: Settings) -> ClassificationPipeline:
        """Build a pipeline from settings, loading the model once.

        Raises:
            ModelLoadError: If the model or label asset cannot be loaded.
        """
        assets = create_asset_store(settings)
        engine = InferenceEngine(settings, assets)
        preprocessor = ImagePreprocessor(settings.input_size, max_image_pixels=settings.max_image_pixels)
        resolver = MetadataResolver(assets, settings.catalog_file, cache=settings.cache_catalog)
        return cls(preprocessor, engine, resolver)

    @property
    def labels(self) -> list[str]:
        return self._engine.labels

    @property
    def is_closed(self) -> bool:
        return self._engine.is_closed

    def classify(self, image: NDArray[np.uint8]) -> ClassificationOutput:
        """Classify an HxWx3 RGB image.

        Raises:
            InvalidInputError: If the image is absent, empty, or malformed.
        """
        tensor = self._preprocessor.preprocess(image)
        inference = self._engine.infer(tensor)
        result = rank(inference.confidences, inference.labels)
        lookup = self._resolver.resolve(result.label)

        faults = tuple(fault for fault in (inference.fault, lookup.fault) if fault)
        logger.info(
            "Classified image as %r (confidence=%.3f, outcome=%s, metadata=%s)",
            result.label,
            result.confidence,
            result.outcome,
            lookup.outcome,
        )
        return ClassificationOutput(
            result=result,
            metadata=lookup.metadata,
            metadata_outcome=lookup.outcome,
            faults=faults,
        )

    def classify_bytes(self, image_bytes: bytes) -> ClassificationOutput:
        """Decode an encoded image and classify it.

        Raises:
            InvalidInputError: If the bytes cannot be decoded into an image.
        """
        return self.classify(self._preprocessor.decode_image(image_bytes))

    def close(self) -> None:
        self._engine.close()

    def __enter__(self) -> ClassificationPipeline:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
