"""
Recognition orchestrator.

Chooses between the trained classifier and the local capture matcher,
polls the frame source on a fixed interval and turns repeated predictions
into one confirmation per card showing.

State machine::

    idle -> loading -> running | running-local | no-model | error

``idle`` is entered whenever recognition is disabled; enabling it again or
calling :meth:`RecognitionOrchestrator.reload` re-enters ``loading``.
"""

import asyncio
import inspect
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable, List, Optional, Tuple, Union

import structlog

from ..capture.frames import FrameSource
from ..core.constants import LOCAL_RICH_BAND, LOCAL_SMALL_BAND, LOCAL_SMALL_CATALOG_CARDS
from ..core.types import (
    Card,
    LabelDiagnostics,
    LocalPrediction,
    MatcherStats,
    ModelDiagnostics,
    ModelPrediction,
    Orientation,
    RecognitionResult,
    RecognitionStatus,
)
from ..labels import LabelMapping, build_lookup, match_label
from ..match import LocalCaptureMatcher, MatcherCalibration
from ..model.adapter import TrainedModelAdapter
from ..model.inspector import ModelReadinessInspector
from ..store.captures import CaptureStore
from ..utils.config import settings
from ..utils.error_handler import ErrorContext, safe_execute_async
from ..utils.log import LoggerMixin
from .votes import VoteTracker, vote_key

PLACEHOLDER_MESSAGE = (
    "Placeholder model detected. For trained recognition, replace the files "
    "in public/model with a trained model."
)
MISSING_MODEL_MESSAGE = "Model not found and no local captures available for recognition."

ACTIVE_STATES = (RecognitionStatus.RUNNING, RecognitionStatus.RUNNING_LOCAL)

ConfirmCallback = Callable[[RecognitionResult], Union[None, Awaitable[None]]]


@dataclass
class RecognitionOptions:
    model_url: str = field(default_factory=lambda: settings.MODEL_URL)
    metadata_url: str = field(default_factory=lambda: settings.METADATA_URL)
    interval_ms: int = field(default_factory=lambda: settings.RECOGNITION_INTERVAL_MS)
    confidence_threshold: float = field(default_factory=lambda: settings.CONFIDENCE_THRESHOLD)
    min_votes: int = field(default_factory=lambda: settings.MIN_VOTES)
    enabled: bool = True


def local_policy(usable_cards: int, confidence_threshold: float, min_votes: int) -> Tuple[float, int]:
    """Threshold and required votes for the local matcher.

    Catalogs with very few captured cards get a looser band and fewer votes;
    richer catalogs a stricter band and more votes.
    """
    if usable_cards <= LOCAL_SMALL_CATALOG_CARDS:
        low, high = LOCAL_SMALL_BAND
        votes = max(2, min_votes)
    else:
        low, high = LOCAL_RICH_BAND
        votes = max(4, min_votes + 1)
    return max(low, min(confidence_threshold, high)), votes


def _message(error: Exception) -> str:
    return getattr(error, "message", None) or str(error)


def _is_missing(error: Exception) -> bool:
    if getattr(error, "is_missing", False):
        return True
    return "404" in _message(error)


class RecognitionOrchestrator(LoggerMixin):
    """Drives card recognition for one frame source and card catalog."""

    def __init__(
        self,
        cards: Iterable[Card],
        frame_source: FrameSource,
        store: Optional[CaptureStore] = None,
        options: Optional[RecognitionOptions] = None,
        on_confirmed: Optional[ConfirmCallback] = None,
        inspector: Optional[ModelReadinessInspector] = None,
        adapter_factory: Optional[Callable[[], TrainedModelAdapter]] = None,
        matcher_factory: Optional[Callable[[], Optional[LocalCaptureMatcher]]] = None,
    ):
        self.cards: List[Card] = list(cards)
        self.lookup = build_lookup(self.cards)
        self.frame_source = frame_source
        self.store = store
        self.options = options or RecognitionOptions()
        self.on_confirmed = on_confirmed
        self.inspector = inspector or ModelReadinessInspector()
        self.adapter_factory = adapter_factory or TrainedModelAdapter
        self.matcher_factory = matcher_factory or self._default_matcher

        self.adapter: Optional[TrainedModelAdapter] = None
        self.matcher: Optional[LocalCaptureMatcher] = None
        self.votes = VoteTracker()

        self.status = RecognitionStatus.IDLE
        self.error: Optional[str] = None
        self.last_result: Optional[RecognitionResult] = None
        self.labels: List[str] = []
        self.label_mapping = LabelMapping()
        self.model_diagnostics = ModelDiagnostics(expected_classes=self.expected_classes)
        self.local_stats = MatcherStats()

        self._generation = 0
        self._predicting = False
        self._poll_task: Optional[asyncio.Task] = None
        self._tick_task: Optional[asyncio.Task] = None

    @property
    def expected_classes(self) -> int:
        return len(self.cards) * 2

    @property
    def label_diagnostics(self) -> LabelDiagnostics:
        return self.label_mapping.diagnostics

    def _default_matcher(self) -> Optional[LocalCaptureMatcher]:
        # No store means no captures
        if self.store is None:
            return None
        return LocalCaptureMatcher(
            self.store,
            calibration=MatcherCalibration.from_settings(settings),
            max_samples=settings.LOCAL_MAX_SAMPLES,
        )

    def _set_status(self, status: RecognitionStatus, error: Optional[str] = None) -> None:
        self.status = status
        self.error = error
        self.logger.info("Recognition status changed", status=status.value, error=error)

    def _set_labels(self, labels: List[str]) -> None:
        self.labels = list(labels)
        self.label_mapping = LabelMapping.from_labels(self.labels, self.lookup)
        diagnostics = self.label_mapping.diagnostics
        if diagnostics.unmapped_labels:
            self.logger.warning(
                "Model labels without a catalog card",
                mapped=diagnostics.mapped_labels,
                total=diagnostics.total_labels,
                unmapped=diagnostics.unmapped_labels,
                suggestions=diagnostics.suggestions,
            )

    def _clear(self) -> None:
        self.error = None
        self.labels = []
        self.label_mapping = LabelMapping()
        self.model_diagnostics = ModelDiagnostics(expected_classes=self.expected_classes)
        self.local_stats = MatcherStats()
        self.matcher = None
        self.adapter = None

    def _is_stale(self, generation: int) -> bool:
        return generation != self._generation

    async def set_enabled(self, enabled: bool) -> RecognitionStatus:
        self.options.enabled = enabled
        return await self.load()

    async def reload(self) -> RecognitionStatus:
        return await self.load()

    async def _fallback_to_local(self, generation: int) -> Tuple[bool, str]:
        """Hand recognition to the local matcher if it has any candidate.

        Returns:
            Whether local recognition took over, and the matcher's own
            reason when it could not.
        """
        matcher = self.matcher_factory()
        if matcher is None:
            return False, ""

        stats = await matcher.load(self.cards)
        if self._is_stale(generation):
            return False, ""

        self.local_stats = stats
        if matcher.has_candidates():
            self.matcher = matcher
            self._set_labels([])
            self._set_status(RecognitionStatus.RUNNING_LOCAL)
            return True, ""

        return False, matcher.unusable_reason()

    async def _load_model(self, generation: int) -> Optional[Tuple[RecognitionStatus, str]]:
        """Inspect the artifacts and bring up the trained model.

        Returns:
            ``None`` once the model runs or the load went stale, otherwise
            the status and message to report when local captures cannot
            take over.
        """
        options = self.options
        inspection = await self.inspector.inspect(
            options.model_url, options.metadata_url, self.expected_classes
        )
        if self._is_stale(generation):
            return None
        self.model_diagnostics = inspection.diagnostics

        if inspection.diagnostics.placeholder:
            return RecognitionStatus.NO_MODEL, PLACEHOLDER_MESSAGE
        if inspection.fatal_error:
            status = RecognitionStatus.NO_MODEL if inspection.missing_artifact else RecognitionStatus.ERROR
            return status, inspection.fatal_error

        # Each load owns its adapter; only a current load may install it
        adapter = self.adapter_factory()
        await adapter.load(options.model_url, options.metadata_url)
        if self._is_stale(generation):
            return None

        self.adapter = adapter
        labels = adapter.labels or inspection.labels
        self._set_labels(labels)
        self.model_diagnostics.labels_count = len(labels) or self.model_diagnostics.labels_count
        self._set_status(RecognitionStatus.RUNNING)
        return None

    async def load(self) -> RecognitionStatus:
        """(Re)load the recognition backend.

        A newer call supersedes an older one still in flight: results of the
        older call are dropped instead of overwriting the current state.
        Failures end in ``no-model`` or ``error``; this never raises.

        Returns:
            The status reached by this load (or the current status if the
            load was superseded).
        """
        self._generation += 1
        generation = self._generation
        self._clear()

        if not self.options.enabled:
            self._set_status(RecognitionStatus.IDLE)
            return self.status

        with structlog.contextvars.bound_contextvars(load_generation=generation):
            return await self._load(generation)

    async def _load(self, generation: int) -> RecognitionStatus:
        self._set_status(RecognitionStatus.LOADING)
        context = self.log_start("recognition_load")

        try:
            failure = await self._load_model(generation)
        except Exception as e:
            self.log_error(context, e)
            if _is_missing(e):
                failure = RecognitionStatus.NO_MODEL, MISSING_MODEL_MESSAGE
            else:
                failure = RecognitionStatus.ERROR, _message(e)

        if self._is_stale(generation):
            return self.status
        if failure is None:
            self.log_success(context, status=self.status, labels=len(self.labels))
            return self.status

        status, message = failure
        try:
            enabled, reason = await self._fallback_to_local(generation)
        except Exception as e:
            self.log_error(context, e, stage="local_fallback")
            if not self._is_stale(generation):
                self._set_status(
                    RecognitionStatus.ERROR,
                    f"{message}. Loading local captures also failed: {_message(e)}",
                )
            return self.status

        if self._is_stale(generation):
            return self.status
        if enabled:
            self.log_success(context, status=self.status, candidates=self.local_stats.candidate_count)
        else:
            self._set_status(status, reason or message)
        return self.status

    def _resolve_model_prediction(self, prediction: Optional[ModelPrediction]) -> Optional[RecognitionResult]:
        if prediction is None or prediction.confidence < self.options.confidence_threshold:
            return None

        mapped = self.label_mapping.get(prediction.label)
        matched = match_label(prediction.label, self.lookup)
        card = (mapped.card if mapped else None) or matched.card or self.lookup.get(str(prediction.index))
        if card is None:
            return None

        is_reversed = mapped.is_reversed if mapped else matched.orientation.is_reversed
        return RecognitionResult(
            card=card, is_reversed=is_reversed, confidence=prediction.confidence, label=prediction.label
        )

    def _resolve_local_prediction(
        self, prediction: Optional[LocalPrediction], threshold: float
    ) -> Optional[RecognitionResult]:
        if prediction is None or prediction.confidence < threshold:
            return None

        card = self.lookup.get(str(prediction.card_id))
        if card is None:
            return None

        return RecognitionResult(
            card=card,
            is_reversed=prediction.orientation.is_reversed,
            confidence=prediction.confidence,
            label=prediction.label,
        )

    async def handle_result(self, result: Optional[RecognitionResult], required_votes: int) -> Optional[RecognitionResult]:
        """Feed one resolved prediction into vote aggregation.

        Returns the result when this observation confirms it.
        """
        if result is None:
            return None

        key = vote_key(result.card.id, Orientation.from_reversed(result.is_reversed))
        if not self.votes.observe(key, required_votes):
            return None

        self.last_result = result
        self.logger.info(
            "Card recognized",
            card_id=result.card.id,
            reversed=result.is_reversed,
            confidence=round(result.confidence, 3),
            label=result.label,
        )
        if self.on_confirmed is not None:
            outcome = self.on_confirmed(result)
            if inspect.isawaitable(outcome):
                await outcome
        return result

    async def _predict_once(self) -> Optional[RecognitionResult]:
        generation = self._generation
        status, adapter, matcher = self.status, self.adapter, self.matcher

        frame = await asyncio.to_thread(self.frame_source.read_frame)
        if frame is None or self._is_stale(generation):
            return None

        if status is RecognitionStatus.RUNNING and adapter is not None:
            prediction = await adapter.predict(frame)
            result, required_votes = self._resolve_model_prediction(prediction), self.options.min_votes
        elif status is RecognitionStatus.RUNNING_LOCAL and matcher is not None:
            threshold, required_votes = local_policy(
                self.local_stats.cards_with_usable_candidates,
                self.options.confidence_threshold,
                self.options.min_votes,
            )
            prediction = await asyncio.to_thread(matcher.predict, frame)
            result = self._resolve_local_prediction(prediction, threshold)
        else:
            return None

        # A reload or disable while predicting makes this result obsolete
        if self._is_stale(generation):
            return None
        return await self.handle_result(result, required_votes)

    async def tick(self) -> Optional[RecognitionResult]:
        """Run one prediction unless one is already in flight.

        Never raises: a failing tick is logged and yields ``None``.
        """
        if self._predicting or self.status not in ACTIVE_STATES:
            return None

        self._predicting = True
        try:
            return await safe_execute_async(
                self._predict_once,
                context=ErrorContext(
                    operation="recognition_tick",
                    module=__name__,
                    function="tick",
                    input_data={"status": self.status.value},
                ),
                logger=self.logger,
            )
        finally:
            self._predicting = False

    async def _poll(self) -> None:
        interval = self.options.interval_ms / 1000.0
        while True:
            await asyncio.sleep(interval)
            if self._predicting or not self.options.enabled or self.status not in ACTIVE_STATES:
                continue
            self._tick_task = asyncio.create_task(self.tick())

    def start(self) -> None:
        """Start the polling loop on the running event loop."""
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = asyncio.create_task(self._poll())

    async def stop(self) -> None:
        for task in (self._poll_task, self._tick_task):
            if task is None or task.done():
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._poll_task = None
        self._tick_task = None

    def reset_confirmation(self) -> None:
        """Forget the current vote and last confirmation.

        Call whenever the target reading position changes so the same card
        can be confirmed again for the new position.
        """
        self.votes.reset()
        self.last_result = None
