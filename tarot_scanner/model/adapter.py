"""
Trained classifier adapter for TF.js layers-model artifacts.

The network is rebuilt from ``modelTopology`` with the Keras 2 API
(``tf_keras``), which reads both the topologies TF.js writes
(``keras_version: "tfjs-layers ..."``) and those written by
:mod:`tarot_scanner.model.export`. Weights are decoded from the binary
shards listed in ``weightsManifest``.
"""

import asyncio
import json
from typing import Any, Dict, List, Optional, Tuple

import cv2
import numpy as np
import tensorflow as tf
import tf_keras

from ..core.constants import DEFAULT_INPUT_SIZE
from ..core.types import ModelPrediction
from ..utils.error_handler import ArtifactError, ModelLoadError
from ..utils.log import LoggerMixin
from ..vision.signature import as_bgr
from .artifacts import ArtifactFetcher, relative_artifact_url
from .backend import ensure_initialized
from .export import weight_name
from .metadata import extract_labels

WEIGHT_DTYPES = {
    "float32": np.float32,
    "int32": np.int32,
    "uint8": np.uint8,
    "bool": np.bool_,
}

QUANTIZED_DTYPES = {
    "uint8": np.uint8,
    "uint16": np.uint16,
    "float16": np.float16,
}


def _element_count(shape: List[int]) -> int:
    return int(np.prod(shape, dtype=np.int64)) if shape else 1


def decode_weight_group(specs: List[Dict[str, Any]], buffer: bytes) -> List[np.ndarray]:
    """Slice one manifest group's concatenated shard bytes into arrays."""
    arrays = []
    offset = 0

    for spec in specs:
        shape = list(spec.get("shape") or [])
        dtype_name = spec.get("dtype", "float32")
        if dtype_name not in WEIGHT_DTYPES:
            raise ModelLoadError(f"Unsupported weight dtype {dtype_name!r} for {spec.get('name')}")

        quantization = spec.get("quantization")
        stored = np.dtype(QUANTIZED_DTYPES[quantization["dtype"]] if quantization else WEIGHT_DTYPES[dtype_name])
        count = _element_count(shape)
        size = count * stored.itemsize

        if offset + size > len(buffer):
            raise ModelLoadError(
                f"Weight data for {spec.get('name')} is truncated",
                details={"needed": offset + size, "available": len(buffer)},
            )

        values = np.frombuffer(buffer, dtype=stored, count=count, offset=offset)
        offset += size

        if quantization and stored != np.float16:
            values = values.astype(np.float32) * quantization.get("scale", 1.0) + quantization.get("min", 0.0)
        values = values.astype(WEIGHT_DTYPES[dtype_name], copy=False)
        arrays.append(values.reshape(shape))

    return arrays


def _topology_config(topology: Any) -> Dict[str, Any]:
    if isinstance(topology, dict) and "class_name" not in topology and isinstance(topology.get("model_config"), dict):
        return topology["model_config"]
    if not isinstance(topology, dict):
        raise ModelLoadError("model.json has no modelTopology")
    return topology


def _in_model_order(model: tf_keras.Model, weights: List[Tuple[str, np.ndarray]]) -> List[np.ndarray]:
    """Manifest tensors ordered like ``model.weights``.

    Tensors are matched by name when every model weight has a uniquely
    named manifest entry; otherwise manifest order is kept.
    """
    by_name = dict(weights)
    names = [weight_name(variable) for variable in model.weights]
    if len(by_name) == len(weights) and all(name in by_name for name in names):
        return [by_name[name] for name in names]
    return [array for _, array in weights]


class TrainedModelAdapter(LoggerMixin):
    """Keras classifier loaded from TF.js layers-model artifacts."""

    def __init__(self, fetcher: Optional[ArtifactFetcher] = None):
        self.fetcher = fetcher or ArtifactFetcher()
        self.model: Optional[tf_keras.Model] = None
        self.labels: List[str] = []
        self.input_size: Tuple[int, int] = DEFAULT_INPUT_SIZE

    @property
    def is_loaded(self) -> bool:
        return self.model is not None

    async def _read_weights(
        self, model_url: str, manifest: List[Dict[str, Any]]
    ) -> List[Tuple[str, np.ndarray]]:
        weights: List[Tuple[str, np.ndarray]] = []
        for group in manifest:
            chunks = [
                await self.fetcher.fetch_bytes(relative_artifact_url(model_url, path))
                for path in group.get("paths", [])
            ]
            specs = group.get("weights", [])
            arrays = decode_weight_group(specs, b"".join(chunks))
            weights.extend(zip((spec.get("name", "") for spec in specs), arrays))
        return weights

    @staticmethod
    def _build(topology: Dict[str, Any], weights: List[Tuple[str, np.ndarray]]) -> tf_keras.Model:
        try:
            model = tf_keras.models.model_from_json(json.dumps(topology))
        except (ValueError, TypeError, KeyError) as e:
            raise ModelLoadError(f"Could not rebuild model topology: {e}") from e

        expected = len(model.weights)
        if expected != len(weights):
            raise ModelLoadError(
                f"Weights manifest lists {len(weights)} tensors, model expects {expected}",
                details={"manifest": len(weights), "model": expected},
            )
        try:
            model.set_weights(_in_model_order(model, weights))
        except ValueError as e:
            raise ModelLoadError(f"Weights do not fit the model topology: {e}") from e
        return model

    @staticmethod
    def _input_size(model: tf_keras.Model) -> Tuple[int, int]:
        shape = model.inputs[0].shape if model.inputs else None
        if shape is None or len(shape) < 3:
            return DEFAULT_INPUT_SIZE
        height = shape[1] or DEFAULT_INPUT_SIZE[0]
        width = shape[2] or DEFAULT_INPUT_SIZE[1]
        return int(height), int(width)

    async def load(self, model_url: str, metadata_url: Optional[str] = None) -> None:
        """Fetch artifacts and build the model.

        Raises:
            ModelLoadError: the model could not be fetched or built; ``status``
                is 404 when model.json or a shard is missing.
        """
        try:
            await self._load(model_url, metadata_url)
        finally:
            # Every artifact is read here; nothing is fetched at predict time
            await self.fetcher.close()

    async def _load(self, model_url: str, metadata_url: Optional[str]) -> None:
        context = self.log_start("model_load", model_url=model_url)
        await asyncio.to_thread(ensure_initialized)

        try:
            model_json = await self.fetcher.fetch_json(model_url)
            if not isinstance(model_json, dict):
                raise ModelLoadError("model.json is not an object")
            topology = _topology_config(model_json.get("modelTopology"))
            weights = await self._read_weights(model_url, model_json.get("weightsManifest") or [])
            model = await asyncio.to_thread(self._build, topology, weights)
        except ArtifactError as e:
            self.log_error(context, e, status=e.status)
            raise ModelLoadError(e.message, status=e.status, details=e.details) from e
        except ModelLoadError as e:
            self.log_error(context, e)
            raise

        labels: List[str] = []
        if metadata_url:
            try:
                labels = extract_labels(await self.fetcher.fetch_json(metadata_url))
            except ArtifactError as e:
                self.logger.warning("Model metadata unavailable, labels left empty", error=e.message)

        self.model = model
        self.labels = labels
        self.input_size = self._input_size(model)
        self.log_success(context, labels=len(labels), input_size=list(self.input_size))

    def get_labels(self) -> List[str]:
        return self.labels

    def _forward(self, frame: np.ndarray) -> List[float]:
        height, width = self.input_size
        resized = cv2.resize(frame, (width, height), interpolation=cv2.INTER_LINEAR)
        rgb = cv2.cvtColor(as_bgr(resized), cv2.COLOR_BGR2RGB)
        batch = None
        output = None
        try:
            with tf.device(ensure_initialized()):
                batch = tf.convert_to_tensor(rgb[np.newaxis].astype(np.float32) / 255.0)
                output = self.model(batch, training=False)
                return np.asarray(output).reshape(-1).astype(float).tolist()
        finally:
            del batch, output

    async def predict(self, frame: Optional[np.ndarray]) -> Optional[ModelPrediction]:
        """Classify one BGR frame; ``None`` when no model or no frame."""
        if self.model is None or frame is None or frame.size == 0:
            return None

        scores = await asyncio.to_thread(self._forward, frame)
        if not scores:
            return None

        index = int(np.argmax(scores))
        label = self.labels[index] if index < len(self.labels) else str(index)
        return ModelPrediction(index=index, label=label, confidence=float(scores[index]), scores=scores)
