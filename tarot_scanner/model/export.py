"""Writing of Keras models as TF.js layers-model artifacts.

Produces the same ``model.json`` + ``weights.bin`` + ``metadata.json``
layout the adapter and inspector read, including the neutral placeholder
model shipped before a real classifier has been trained.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import numpy as np
import tf_keras

from ..core.constants import MODEL_FORMAT
from ..core.types import Card
from ..utils.log import get_logger

logger = get_logger(__name__)

WEIGHTS_FILE = "weights.bin"
BOOTSTRAP_INPUT_SHAPE = (8, 8, 3)


def weight_name(variable: Any) -> str:
    """Manifest name of a Keras weight, e.g. ``dense/kernel``."""
    return variable.name.split(":")[0]


def _weight_dtype(value: np.ndarray) -> Tuple[str, np.ndarray]:
    if value.dtype == np.bool_:
        return "bool", value.astype(np.bool_)
    if value.dtype.kind in "iu":
        return "int32", value.astype(np.int32)
    return "float32", value.astype(np.float32)


def export_layers_model(
    model: tf_keras.Model,
    directory: Union[str, Path],
    labels: List[str],
    placeholder: bool = False,
    extra_metadata: Optional[Dict[str, Any]] = None,
) -> Path:
    """Write ``model`` and its labels into ``directory``.

    Returns:
        Path of the written model.json.
    """
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    specs = []
    chunks = []
    for variable, value in zip(model.weights, model.get_weights()):
        dtype, data = _weight_dtype(np.asarray(value))
        specs.append({"name": weight_name(variable), "shape": list(data.shape), "dtype": dtype})
        chunks.append(data.tobytes())

    model_json = {
        "format": MODEL_FORMAT,
        "generatedBy": "tarot-scanner",
        "convertedBy": None,
        "modelTopology": json.loads(model.to_json()),
        "weightsManifest": [{"paths": [WEIGHTS_FILE], "weights": specs}],
    }
    metadata = {
        "labels": list(labels),
        "placeholder": placeholder,
        "createdAt": datetime.now(timezone.utc).isoformat(),
        **(extra_metadata or {}),
    }

    model_path = directory / "model.json"
    model_path.write_text(json.dumps(model_json, indent=2), encoding="utf-8")
    (directory / WEIGHTS_FILE).write_bytes(b"".join(chunks))
    (directory / "metadata.json").write_text(json.dumps(metadata, indent=2), encoding="utf-8")

    logger.info(
        "Layers model exported",
        directory=str(directory),
        labels=len(labels),
        weights=len(specs),
        placeholder=placeholder,
    )
    return model_path


def bootstrap_labels(cards: Iterable[Card]) -> List[str]:
    """One label per card and orientation, e.g. ``00_fool_vertical``."""
    labels = []
    for card in cards:
        stem = Path(card.image_url).stem or f"{card.id:02d}"
        labels.append(f"{stem}_vertical")
        labels.append(f"{stem}_invertido")
    return labels


def build_bootstrap_model(classes: int) -> tf_keras.Model:
    """Tiny zero-initialized classifier with one output per class."""
    return tf_keras.Sequential([
        tf_keras.Input(shape=BOOTSTRAP_INPUT_SHAPE),
        tf_keras.layers.Flatten(),
        tf_keras.layers.Dense(
            classes,
            activation="softmax",
            kernel_initializer="zeros",
            bias_initializer="zeros",
        ),
    ])


def write_bootstrap_model(cards: Iterable[Card], directory: Union[str, Path]) -> Path:
    """Write the neutral placeholder model for a catalog.

    The metadata is flagged ``placeholder`` so recognition never runs it and
    falls back to local captures instead.
    """
    labels = bootstrap_labels(cards)
    model = build_bootstrap_model(len(labels))
    return export_layers_model(
        model,
        directory,
        labels,
        placeholder=True,
        extra_metadata={
            "modelType": "bootstrap-neutral",
            "notes": "Neutral bootstrap model. Replace with a trained model for recognition.",
        },
    )
