"""Shared fixtures: a tiny ONNX classifier and an asset directory around it."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest
from onnx import TensorProto, helper

from componentid.config import Settings

if TYPE_CHECKING:
    from pathlib import Path

INPUT_SIZE = 8
LABELS = ["Red", "Green", "Blue"]

CATALOG = {
    "components": [
        {
            "name": "Red",
            "description": "Red LED, 5mm through-hole.",
            "specs": ["Forward voltage: 2.0V", "Max current: 20mA"],
            "common_projects": ["Status indicator", "Blink sketch"],
        },
        {
            "name": "Green",
            "description": "Green LED, 5mm through-hole.",
            "specs": ["Forward voltage: 2.2V"],
            "common_projects": ["Power indicator"],
        },
    ]
}


def build_channel_mean_model(input_size: int = INPUT_SIZE, num_outputs: int = 3) -> bytes:
    """Return an ONNX model that scores each label by the mean of one color channel.

    Input is 1xSxSx3 float32, output is 1x3 float32. With num_outputs other
    than 3 the declared output shape is wrong on purpose.
    """
    graph = helper.make_graph(
        nodes=[helper.make_node("ReduceMean", inputs=["image"], outputs=["scores"], axes=[1, 2], keepdims=0)],
        name="channel_mean",
        inputs=[helper.make_tensor_value_info("image", TensorProto.FLOAT, [1, input_size, input_size, 3])],
        outputs=[helper.make_tensor_value_info("scores", TensorProto.FLOAT, [1, num_outputs])],
    )
    model = helper.make_model(graph, opset_imports=[helper.make_opsetid("", 13)], ir_version=8)
    return model.SerializeToString()


def make_settings(**overrides: object) -> Settings:
    defaults: dict[str, object] = {
        "device": "cpu",
        "input_size": INPUT_SIZE,
        "cache_catalog": False,
        "hub_repo_id": None,
        "api_key": None,
        "max_concurrent": 1,
    }
    defaults.update(overrides)
    return Settings(**defaults)  # type: ignore[arg-type]


def write_assets(
    root: Path,
    *,
    labels: list[str] | None = None,
    catalog: dict[str, object] | None = None,
    model: bytes | None = None,
) -> Path:
    root.mkdir(parents=True, exist_ok=True)
    (root / "labels.txt").write_text("\n".join(LABELS if labels is None else labels) + "\n", encoding="utf-8")
    (root / "component_info.json").write_text(json.dumps(CATALOG if catalog is None else catalog), encoding="utf-8")
    (root / "component_classifier.onnx").write_bytes(build_channel_mean_model() if model is None else model)
    return root


@pytest.fixture()
def assets_dir(tmp_path: Path) -> Path:
    """A directory holding a working model, labels, and catalog."""
    return write_assets(tmp_path / "assets")


@pytest.fixture()
def settings(assets_dir: Path) -> Settings:
    return make_settings(assets_dir=str(assets_dir))
