"""
Pre-flight checks on trained model artifacts.

The inspector reads metadata.json and model.json without building the
network. It separates artifacts that are absent (nothing has been trained
yet) from artifacts that exist but cannot be used, so that the recognition
orchestrator can pick between the ``no-model`` and ``error`` states.
"""

from typing import Any, List, Optional

from ..core.constants import MODEL_FORMAT
from ..core.types import InspectionResult, ModelDiagnostics
from ..utils.error_handler import ArtifactError
from ..utils.log import LoggerMixin
from .artifacts import ArtifactFetcher
from .metadata import (
    extract_labels,
    extract_output_classes,
    is_placeholder,
    model_format,
    topology_layers,
)


def _not_found(name: str, error: ArtifactError) -> str:
    return f"{name} not found ({error.status})."


class ModelReadinessInspector(LoggerMixin):
    """Inspects model.json and metadata.json before the model is loaded."""

    def __init__(self, fetcher: Optional[ArtifactFetcher] = None):
        self.fetcher = fetcher or ArtifactFetcher()

    async def inspect(self, model_url: str, metadata_url: str, expected_classes: int) -> InspectionResult:
        context = self.log_start("model_inspection", model_url=model_url, metadata_url=metadata_url)
        result = await self._inspect(model_url, metadata_url, expected_classes)

        if result.fatal_error:
            self.logger.warning(
                "Model artifacts not usable",
                fatal_error=result.fatal_error,
                missing_artifact=result.missing_artifact,
                placeholder=result.diagnostics.placeholder,
            )
        self.log_success(
            context,
            placeholder=result.diagnostics.placeholder,
            labels=result.diagnostics.labels_count,
            output_classes=result.diagnostics.output_classes,
            warnings=len(result.diagnostics.warnings),
        )
        return result

    async def _inspect(self, model_url: str, metadata_url: str, expected_classes: int) -> InspectionResult:
        diagnostics = ModelDiagnostics(checked=True, expected_classes=expected_classes)

        try:
            metadata = await self.fetcher.fetch_json(metadata_url)
        except ArtifactError as e:
            if e.is_missing:
                return InspectionResult(diagnostics, [], _not_found("metadata.json", e), missing_artifact=True)
            return InspectionResult(diagnostics, [], "Failed to read model metadata.json.")

        labels = extract_labels(metadata)
        diagnostics.placeholder = is_placeholder(metadata)
        diagnostics.labels_count = len(labels)

        try:
            model_json = await self.fetcher.fetch_json(model_url)
        except ArtifactError as e:
            if e.is_missing:
                return InspectionResult(diagnostics, labels, _not_found("model.json", e), missing_artifact=True)
            return InspectionResult(diagnostics, labels, "Failed to read model.json.")

        fmt = model_format(model_json)
        output_classes = extract_output_classes(model_json)
        diagnostics.format = fmt
        diagnostics.output_classes = output_classes
        diagnostics.warnings = self._warnings(labels, output_classes, expected_classes)

        if fmt != MODEL_FORMAT:
            return InspectionResult(
                diagnostics,
                labels,
                f'Invalid format in model.json: expected "{MODEL_FORMAT}", got "{fmt or "unknown"}".',
            )

        if not output_classes:
            return InspectionResult(
                diagnostics, labels, "Could not determine the number of classes in model.json."
            )

        return InspectionResult(diagnostics, labels)

    @staticmethod
    def _warnings(labels: List[str], output_classes: Optional[int], expected_classes: int) -> List[str]:
        warnings = []

        if not labels:
            warnings.append("metadata.json has no valid labels for mapping.")

        if output_classes and labels and output_classes != len(labels):
            warnings.append(f"Model classes ({output_classes}) differ from labels ({len(labels)}).")

        compared = len(labels) or output_classes or 0
        if compared > 0 and compared != expected_classes:
            warnings.append(
                f"Recommended for this app: {expected_classes} classes (card + orientation). "
                f"Current: {compared}."
            )

        return warnings

    async def verify(self, model_url: str, metadata_url: str, expected_classes: int) -> List[str]:
        """Strict release check for a trained model.

        Unlike :meth:`inspect`, nothing here is a warning: the artifacts must
        be a real (non-placeholder) layers-model whose ``labels`` and final
        layer both carry exactly ``expected_classes`` entries.

        Returns:
            A list of failure messages, empty when the model is ready.
        """
        try:
            metadata = await self.fetcher.fetch_json(metadata_url)
            model_json = await self.fetcher.fetch_json(model_url)
        except ArtifactError as e:
            return [e.message]

        failures = []

        if is_placeholder(metadata):
            failures.append("metadata.json is still marked placeholder=true.")

        labels: Any = metadata.get("labels") if isinstance(metadata, dict) else None
        if not isinstance(labels, list) or len(labels) != expected_classes:
            received = len(labels) if isinstance(labels, list) else "not a list"
            failures.append(
                f"Invalid labels in metadata.json: expected {expected_classes}, got {received}."
            )

        fmt = model_format(model_json)
        if fmt != MODEL_FORMAT:
            failures.append(f"model.json has an invalid format: {fmt or 'unknown'}.")

        units = None
        for layer in reversed(topology_layers(model_json)):
            value = (layer.get("config") or {}).get("units") if isinstance(layer, dict) else None
            if isinstance(value, int) and not isinstance(value, bool):
                units = value
                break
        if units != expected_classes:
            failures.append(f"model.json has invalid classes: expected {expected_classes}, got {units}.")

        if failures:
            self.logger.warning("Model verification failed", failures=failures)
        else:
            self.logger.info("Model verification passed", classes=expected_classes)
        return failures
