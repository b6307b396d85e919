"""Inference engine: owns the ONNX session and the label set.

The engine loads the model and labels once at construction and keeps them
until close(). Construction failures raise ModelLoadError. Failures during
inference are logged and returned as a degraded InferenceOutput instead.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

import numpy as np
from onnxruntime import GraphOptimizationLevel, InferenceSession, SessionOptions
from onnxruntime.capi.onnxruntime_pybind11_state import ExecutionMode

from componentid.errors import ClassificationFault, ModelLoadError
from componentid.ml.results import InferenceOutput

if TYPE_CHECKING:
    from types import TracebackType

    from numpy.typing import NDArray

    from componentid.config import Settings
    from componentid.ml.assets import AssetStore

logger = logging.getLogger(__name__)


def parse_labels(text: str) -> list[str]:
    """Split label text into one label per line, preserving order."""
    return text.splitlines()


class InferenceEngine:
    """Runs the component classifier on preprocessed tensors."""

    def __init__(self, settings: Settings, assets: AssetStore) -> None:
        self._settings = settings
        self._input_size = settings.input_size
        self._lock = threading.Lock()

        self._providers = self._build_providers()
        self._session_options = self._build_session_options()

        self._labels = self._load_labels(assets, settings.labels_file)
        session = self._load_session(assets, settings.model_file)
        self._check_output_size(session)
        self._input_name = session.get_inputs()[0].name
        self._session: InferenceSession | None = session

        logger.info(
            "Loaded %s with %d labels (device=%s, input=%dx%d)",
            settings.model_file,
            len(self._labels),
            settings.device,
            self._input_size,
            self._input_size,
        )

    # -- Public API ---------------------------------------------------------

    @property
    def labels(self) -> list[str]:
        """Labels in model output order."""
        return list(self._labels)

    @property
    def input_size(self) -> int:
        return self._input_size

    @property
    def is_closed(self) -> bool:
        return self._session is None

    def infer(self, tensor: NDArray[np.float32]) -> InferenceOutput:
        """Run one forward pass and return a confidence per label.

        Args:
            tensor: SxSx3 float32 array from the preprocessor.

        Returns:
            Confidences aligned with the labels, or a degraded output with
            empty confidences and labels if inference failed.

        Raises:
            RuntimeError: If the engine has been closed.
        """
        with self._lock:
            session = self._session
            if session is None:
                raise RuntimeError("InferenceEngine is closed")
            try:
                confidences = self._run(session, tensor)
            except Exception as exc:
                fault = exc if isinstance(exc, ClassificationFault) else ClassificationFault(str(exc))
                logger.warning("Classification failed: %s", fault)
                return InferenceOutput.degraded(str(fault))

        return InferenceOutput(confidences=confidences, labels=list(self._labels))

    def close(self) -> None:
        """Release the session and labels. Safe to call more than once."""
        with self._lock:
            if self._session is None:
                return
            self._session = None
            self._labels = []
            logger.info("Released %s", self._settings.model_file)

    def __enter__(self) -> InferenceEngine:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    # -- Internal -----------------------------------------------------------

    def _run(self, session: InferenceSession, tensor: NDArray[np.float32]) -> list[float]:
        batch = np.asarray(tensor, dtype=np.float32)
        expected = (self._input_size, self._input_size, 3)
        if batch.shape != expected:
            raise ClassificationFault(f"Expected tensor of shape {expected}, got {batch.shape}")

        outputs = session.run(None, {self._input_name: batch[np.newaxis, ...]})
        scores = np.asarray(outputs[0], dtype=np.float32).reshape(-1)
        if scores.shape[0] != len(self._labels):
            raise ClassificationFault(f"Model returned {scores.shape[0]} scores for {len(self._labels)} labels")
        return [float(score) for score in scores]

    @staticmethod
    def _load_labels(assets: AssetStore, name: str) -> list[str]:
        try:
            labels = parse_labels(assets.read_text(name))
        except (OSError, UnicodeDecodeError) as exc:
            raise ModelLoadError(f"Cannot read label asset '{name}': {exc}") from exc
        if not labels:
            raise ModelLoadError(f"Label asset '{name}' is empty")
        return labels

    def _load_session(self, assets: AssetStore, name: str) -> InferenceSession:
        try:
            model_bytes = assets.read_bytes(name)
        except OSError as exc:
            raise ModelLoadError(f"Cannot read model asset '{name}': {exc}") from exc

        try:
            return InferenceSession(
                model_bytes,
                sess_options=self._session_options,
                providers=self._providers,
            )
        except Exception as exc:
            raise ModelLoadError(f"Cannot load model '{name}': {exc}") from exc

    def _check_output_size(self, session: InferenceSession) -> None:
        shape = session.get_outputs()[0].shape
        # Symbolic dimensions (e.g. "batch") come back as strings or None.
        if shape and isinstance(shape[-1], int) and shape[-1] != len(self._labels):
            raise ModelLoadError(
                f"Model outputs {shape[-1]} scores but '{self._settings.labels_file}' has {len(self._labels)} labels"
            )

    def _build_providers(self) -> list[str | tuple[str, dict[str, object]]]:
        device = self._settings.device
        if device == "cuda":
            return [
                (
                    "CUDAExecutionProvider",
                    {
                        "device_id": 0,
                        "gpu_mem_limit": self._settings.gpu_mem_limit,
                        "arena_extend_strategy": "kSameAsRequested",
                    },
                ),
                "CPUExecutionProvider",
            ]
        if device == "openvino":
            return [
                ("OpenVINOExecutionProvider", {"device_type": "CPU"}),
                "CPUExecutionProvider",
            ]
        return ["CPUExecutionProvider"]

    def _build_session_options(self) -> SessionOptions:
        opts = SessionOptions()
        opts.intra_op_num_threads = self._settings.intra_op_threads
        opts.inter_op_num_threads = self._settings.inter_op_threads
        opts.execution_mode = ExecutionMode.ORT_SEQUENTIAL

        if self._settings.device == "openvino":
            # OpenVINO does its own graph optimization
            opts.graph_optimization_level = GraphOptimizationLevel.ORT_DISABLE_ALL
        return opts
