"""
Trained model package: artifact fetching, readiness inspection and inference.
"""

from .adapter import TrainedModelAdapter, decode_weight_group
from .artifacts import ArtifactFetcher
from .backend import ensure_initialized
from .export import export_layers_model, write_bootstrap_model
from .inspector import ModelReadinessInspector
from .metadata import LABEL_ACCESSORS, extract_labels, extract_output_classes, is_placeholder

__all__ = [
    "TrainedModelAdapter",
    "decode_weight_group",
    "ArtifactFetcher",
    "ensure_initialized",
    "export_layers_model",
    "write_bootstrap_model",
    "ModelReadinessInspector",
    "LABEL_ACCESSORS",
    "extract_labels",
    "extract_output_classes",
    "is_placeholder",
]
