"""Readers for model.json / metadata.json documents.

Metadata files written by different training tools over time put the class
names under different keys. ``LABEL_ACCESSORS`` lists every known location
in priority order; the first one holding a list of strings wins.
"""

from typing import Any, Callable, List, Optional, Tuple


def _get(value: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


LABEL_ACCESSORS: Tuple[Callable[[Any], Any], ...] = (
    lambda m: _get(m, "labels"),
    lambda m: _get(m, "classNames"),
    lambda m: _get(m, "classes"),
    lambda m: _get(m, "wordLabels"),
    lambda m: _get(m, "modelSettings", "labels"),
    lambda m: _get(m, "tfjsMetadata", "labels"),
)


def extract_labels(metadata: Any) -> List[str]:
    if not isinstance(metadata, dict):
        return []
    for accessor in LABEL_ACCESSORS:
        candidate = accessor(metadata)
        if isinstance(candidate, list) and candidate and all(isinstance(item, str) for item in candidate):
            return list(candidate)
    return []


def is_placeholder(metadata: Any) -> bool:
    return isinstance(metadata, dict) and bool(metadata.get("placeholder"))


def model_format(model_json: Any) -> Optional[str]:
    value = _get(model_json, "format")
    return value if isinstance(value, str) else None


def _positive_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number > 0 and number.is_integer():
        return int(number)
    return None


def topology_layers(model_json: Any) -> List[Any]:
    topology = _get(model_json, "modelTopology")
    for path in (("config", "layers"), ("model_config", "config", "layers")):
        layers = _get(topology, *path)
        if isinstance(layers, list):
            return layers
    return []


def extract_output_classes(model_json: Any) -> Optional[int]:
    """Number of output classes declared by a layers-model document.

    The last layer declaring ``units`` wins; otherwise the first 1-D bias
    tensor in the weights manifest.
    """
    for layer in reversed(topology_layers(model_json)):
        units = _positive_int(_get(layer, "config", "units"))
        if units:
            return units

    manifests = _get(model_json, "weightsManifest")
    if isinstance(manifests, list):
        for manifest in manifests:
            weights = _get(manifest, "weights")
            if not isinstance(weights, list):
                continue
            for weight in weights:
                shape = _get(weight, "shape")
                name = _get(weight, "name")
                if not isinstance(shape, list) or len(shape) != 1:
                    continue
                if not isinstance(name, str) or "/bias" not in name.lower():
                    continue
                units = _positive_int(shape[0])
                if units:
                    return units

    return None
