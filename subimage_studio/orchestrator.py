"""
orchestrator.py — The Studio: owns all state and runs every user operation.

Usage:
    studio = Studio(EnvCredentials(), StudioConfig.from_env())
    studio.apply(SetDescription("Stainless steel water bottle, 500 ml"))
    studio.apply(SetAppealText(0, "Keeps drinks cold for 24 hours"))
    result = await studio.generate(0)

Flow per image operation:
  preconditions → mark requesting → assemble (off-thread) → remote call → commit

Every await is a point where reset() may have run. Each panel (and the
resize job) carries a generation stamp; reset bumps it, and a completion
whose stamp no longer matches is discarded instead of committed.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from .client import GeminiBackend, ModelClient, RequestKind
from .commands import Command
from .config import StudioConfig
from .credentials import CredentialProvider
from .encoding import EncodedImage, encode_image
from .errors import (
    GLOBAL_SCOPE,
    AlreadyInProgress,
    EmptyAppealText,
    EmptyInstruction,
    MissingCredential,
    MissingDescription,
    MissingResizeSource,
    NoAssetForPreserveMode,
    NoImageToEdit,
    PreconditionFailure,
    StudioError,
    StyleSourceNotReady,
    UnknownPanel,
)
from .events import (
    DISCARDED,
    FAILED,
    PREPARING,
    REQUESTING,
    RESIZE_TOPIC,
    SUCCEEDED,
    WAITING,
    EventBus,
    ProgressEvent,
    copy_topic,
    panel_topic,
)
from .models import StudioSnapshot, StudioState, to_transport_ratio
from .panel import HistoryDirection, PanelConfig, PanelStatus
from .prompts import (
    assemble_edit,
    assemble_generation,
    assemble_resize,
    build_copy_prompt,
    collect_product_images,
)

logger = logging.getLogger(__name__)

SEED_LIMIT = 2 ** 31 - 1

ClientFactory = Callable[[str], ModelClient]


@dataclass(frozen=True)
class OperationResult:
    success: bool
    panel_id: Optional[int] = None
    error: Optional[StudioError] = None
    discarded: bool = False
    image: Optional[EncodedImage] = None
    text: Optional[str] = None
    elapsed_seconds: float = 0.0

    @property
    def message(self) -> str:
        return self.error.message if self.error is not None else ""


class Studio:
    """Single owner of StudioState. Run every operation on one event loop."""

    def __init__(
        self,
        credentials: CredentialProvider,
        config: Optional[StudioConfig] = None,
        events: Optional[EventBus] = None,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        self.credentials = credentials
        self.config = config or StudioConfig()
        self.events = events or EventBus()
        self.state = StudioState(panel_count=self.config.panel_count)

        self._client_factory = client_factory or self._gemini_client
        self._client: Optional[ModelClient] = None
        self._client_key = ""
        self._stamps: Dict[int, int] = {i: 0 for i in range(self.config.panel_count)}
        self._resize_stamp = 0

        self.events.subscribe(self._track_progress)

    # ── State access ──────────────────────────────────────────────────────────

    def snapshot(self) -> StudioSnapshot:
        return self.state.snapshot()

    def apply(self, command: Command) -> StudioSnapshot:
        command.apply(self.state)
        return self.state.snapshot()

    def _panel(self, panel_id: int) -> PanelConfig:
        if not 0 <= panel_id < len(self.state.panels):
            raise UnknownPanel(panel_id)
        return self.state.panels[panel_id]

    # ── Generation ────────────────────────────────────────────────────────────

    async def generate(self, panel_id: int) -> OperationResult:
        """
        Generate (or regenerate) one panel's image.

        Preconditions, checked in order:
          credential → description → not in flight → style source → preserve assets

        On success the result is appended to history, the cursor moves to it
        and the feedback text is cleared. On failure the panel is `failed` and
        its history is untouched.
        """
        panel = self._panel(panel_id)
        topic = panel_topic(panel_id)
        started = time.perf_counter()

        try:
            client = self._require_client()
            if not self.state.settings.description.strip():
                raise MissingDescription()
            if panel.is_busy:
                raise AlreadyInProgress()
            style_source = None
            if panel.inherits_style:
                style_source = self.state.panels[0].result
                if style_source is None:
                    raise StyleSourceNotReady()
            if panel.preserve_original and not collect_product_images(self.state.settings, panel):
                raise NoAssetForPreserveMode()
        except PreconditionFailure as exc:
            return self._reject(panel_id, exc, started, mark_panel=True)

        self.state.error = None
        stamp = self._stamps[panel_id]
        settings = self.state.settings.snapshot()
        config = panel.snapshot()
        seed = random.randrange(SEED_LIMIT)

        panel.begin_request("Preparing request…")
        self.events.emit(topic, PREPARING, "Preparing request…")
        logger.info("Panel %d: generating (seed=%d, ratio=%s)", panel_id, seed, settings.aspect_ratio.value)

        try:
            blocks = await asyncio.to_thread(
                assemble_generation, settings, config, style_source, str(seed),
            )
            if self._is_stale(panel_id, stamp):
                return self._discard(panel_id, topic, started)
            image = await client.invoke(
                RequestKind.GENERATION,
                blocks,
                to_transport_ratio(settings.aspect_ratio),
                seed=seed,
                topic=topic,
            )
        except StudioError as exc:
            if self._is_stale(panel_id, stamp):
                return self._discard(panel_id, topic, started)
            return self._fail(panel_id, exc, started)
        except Exception as exc:
            if not self._is_stale(panel_id, stamp):
                panel.fail(f"Unexpected error: {exc}")
                self.events.emit(topic, FAILED, panel.error)
            logger.exception("Panel %d: generation crashed", panel_id)
            raise

        if self._is_stale(panel_id, stamp):
            return self._discard(panel_id, topic, started)

        panel.push_result(image)
        panel.feedback = ""
        elapsed = time.perf_counter() - started
        self.events.emit(topic, SUCCEEDED, f"Done in {elapsed:.1f}s")
        logger.info("Panel %d: done in %.1fs (history=%d)", panel_id, elapsed, len(panel.history))
        return OperationResult(True, panel_id, image=image, elapsed_seconds=elapsed)

    # ── Localized edit ────────────────────────────────────────────────────────

    async def edit(
        self,
        panel_id: int,
        instruction: str,
        x_percent: float,
        y_percent: float,
    ) -> OperationResult:
        """Patch the current result around (x%, y%). A failed edit leaves the panel as it was."""
        panel = self._panel(panel_id)
        topic = panel_topic(panel_id)
        started = time.perf_counter()

        try:
            client = self._require_client()
            if panel.is_busy:
                raise AlreadyInProgress()
            if panel.result is None:
                raise NoImageToEdit()
            if not instruction.strip():
                raise EmptyInstruction()
        except PreconditionFailure as exc:
            return self._reject(panel_id, exc, started, mark_panel=False)

        stamp = self._stamps[panel_id]
        source = panel.result
        ratio = self.state.settings.transport_ratio

        panel.begin_request("Editing…")
        self.events.emit(topic, PREPARING, "Editing…")
        logger.info("Panel %d: edit at (%.1f%%, %.1f%%): %s", panel_id, x_percent, y_percent, instruction)

        try:
            blocks = assemble_edit(source, instruction, x_percent, y_percent)
            image = await client.invoke(RequestKind.EDIT, blocks, ratio, topic=topic)
        except StudioError as exc:
            if self._is_stale(panel_id, stamp):
                return self._discard(panel_id, topic, started)
            panel.abandon_request()
            logger.warning("Panel %d: edit failed: %s", panel_id, exc.message)
            self.events.emit(topic, FAILED, exc.message)
            return OperationResult(False, panel_id, error=exc, elapsed_seconds=time.perf_counter() - started)
        except Exception:
            if not self._is_stale(panel_id, stamp):
                panel.abandon_request()
            logger.exception("Panel %d: edit crashed", panel_id)
            raise

        if self._is_stale(panel_id, stamp):
            return self._discard(panel_id, topic, started)

        panel.push_result(image)
        elapsed = time.perf_counter() - started
        self.events.emit(topic, SUCCEEDED, f"Edited in {elapsed:.1f}s")
        return OperationResult(True, panel_id, image=image, elapsed_seconds=elapsed)

    # ── Copy refinement ───────────────────────────────────────────────────────

    async def refine_copy(self, panel_id: int) -> OperationResult:
        """Ask the text model for a catch copy. Never touches the image lifecycle."""
        panel = self._panel(panel_id)
        topic = copy_topic(panel_id)
        started = time.perf_counter()

        try:
            client = self._require_client()
            if not panel.appeal_text.strip():
                raise EmptyAppealText()
            if panel.refining_copy:
                raise AlreadyInProgress()
        except PreconditionFailure as exc:
            return self._reject(panel_id, exc, started, mark_panel=False)

        if not self.state.settings.description.strip():
            logger.warning("Panel %d: refining copy without a product description", panel_id)

        stamp = self._stamps[panel_id]
        prompt = build_copy_prompt(self.state.settings, panel.appeal_text)
        panel.refining_copy = True
        panel.suggested_copy = None
        self.events.emit(topic, PREPARING, "Thinking of copy…")

        try:
            suggestion = await client.suggest_copy(prompt, topic=topic)
        except StudioError as exc:
            if self._is_stale(panel_id, stamp):
                return self._discard(panel_id, topic, started)
            panel.refining_copy = False
            logger.warning("Panel %d: copy refinement failed: %s", panel_id, exc.message)
            self.events.emit(topic, FAILED, exc.message)
            return OperationResult(False, panel_id, error=exc, elapsed_seconds=time.perf_counter() - started)

        if self._is_stale(panel_id, stamp):
            return self._discard(panel_id, topic, started)

        panel.refining_copy = False
        panel.suggested_copy = suggestion
        self.events.emit(topic, SUCCEEDED, suggestion)
        return OperationResult(True, panel_id, text=suggestion, elapsed_seconds=time.perf_counter() - started)

    def apply_suggested_copy(self, panel_id: int) -> OperationResult:
        panel = self._panel(panel_id)
        if panel.suggested_copy is None:
            return OperationResult(False, panel_id, text=panel.appeal_text)
        panel.appeal_text = panel.suggested_copy
        panel.suggested_copy = None
        return OperationResult(True, panel_id, text=panel.appeal_text)

    # ── History ───────────────────────────────────────────────────────────────

    def navigate_history(self, panel_id: int, direction: HistoryDirection) -> OperationResult:
        panel = self._panel(panel_id)
        moved = panel.step_history(int(direction))
        return OperationResult(moved, panel_id, image=panel.result)

    # ── Reset ─────────────────────────────────────────────────────────────────

    def reset(self) -> OperationResult:
        """Back to a fresh creator. In-flight requests finish but are discarded."""
        for panel_id in self._stamps:
            self._stamps[panel_id] += 1
        self.state.reset_creator()
        logger.info("Studio reset")
        return OperationResult(True)

    # ── Resize tool ───────────────────────────────────────────────────────────

    async def resize(self) -> OperationResult:
        """Re-layout the resize job's source image onto its target ratio."""
        job = self.state.resize
        started = time.perf_counter()

        try:
            client = self._require_client()
            if job.source is None:
                raise MissingResizeSource()
            if job.is_busy:
                raise AlreadyInProgress()
        except PreconditionFailure as exc:
            if exc.scope == GLOBAL_SCOPE:
                self.state.error = exc.message
            elif not isinstance(exc, AlreadyInProgress):
                job.status = PanelStatus.FAILED
                job.error = exc.message
            return OperationResult(False, error=exc, elapsed_seconds=time.perf_counter() - started)

        stamp = self._resize_stamp
        source = job.source
        ratio = to_transport_ratio(job.target_ratio)

        job.status = PanelStatus.REQUESTING
        job.status_message = "Resizing…"
        job.error = None
        self.events.emit(RESIZE_TOPIC, PREPARING, "Resizing…")
        logger.info("Resizing %s to %s (%s)", source.name, job.target_ratio.value, ratio)

        try:
            encoded = await asyncio.to_thread(encode_image, source)
            if stamp != self._resize_stamp:
                return self._discard(None, RESIZE_TOPIC, started)
            image = await client.invoke(
                RequestKind.RESIZE, assemble_resize(encoded, ratio), ratio, topic=RESIZE_TOPIC,
            )
        except StudioError as exc:
            if stamp != self._resize_stamp:
                return self._discard(None, RESIZE_TOPIC, started)
            job.status = PanelStatus.FAILED
            job.status_message = None
            job.error = exc.message
            logger.warning("Resize failed: %s", exc.message)
            self.events.emit(RESIZE_TOPIC, FAILED, exc.message)
            return OperationResult(False, error=exc, elapsed_seconds=time.perf_counter() - started)
        except Exception as exc:
            if stamp == self._resize_stamp:
                job.status = PanelStatus.FAILED
                job.status_message = None
                job.error = f"Unexpected error: {exc}"
                self.events.emit(RESIZE_TOPIC, FAILED, job.error)
            logger.exception("Resize crashed")
            raise

        if stamp != self._resize_stamp:
            return self._discard(None, RESIZE_TOPIC, started)

        job.result = image
        job.status = PanelStatus.SUCCEEDED
        job.status_message = None
        elapsed = time.perf_counter() - started
        self.events.emit(RESIZE_TOPIC, SUCCEEDED, f"Done in {elapsed:.1f}s")
        return OperationResult(True, image=image, elapsed_seconds=elapsed)

    def clear_resize(self) -> OperationResult:
        self._resize_stamp += 1
        self.state.resize = type(self.state.resize)()
        return OperationResult(True)

    # ── Internals ─────────────────────────────────────────────────────────────

    def _gemini_client(self, api_key: str) -> ModelClient:
        return ModelClient(GeminiBackend(api_key), self.config, events=self.events)

    def _require_client(self) -> ModelClient:
        if not self.credentials.is_ready:
            raise MissingCredential()
        key = self.credentials.current_key
        if self._client is None or key != self._client_key:
            self._client = self._client_factory(key)
            self._client_key = key
        return self._client

    def _is_stale(self, panel_id: int, stamp: int) -> bool:
        return self._stamps[panel_id] != stamp

    def _reject(
        self,
        panel_id: int,
        error: PreconditionFailure,
        started: float,
        mark_panel: bool,
    ) -> OperationResult:
        logger.warning("Panel %d: %s", panel_id, error.message)
        if error.scope == GLOBAL_SCOPE:
            self.state.error = error.message
        elif mark_panel and not isinstance(error, AlreadyInProgress):
            self.state.panels[panel_id].fail(error.message)
        return OperationResult(False, panel_id, error=error, elapsed_seconds=time.perf_counter() - started)

    def _fail(self, panel_id: int, error: StudioError, started: float) -> OperationResult:
        panel = self.state.panels[panel_id]
        panel.fail(error.message)
        logger.warning("Panel %d: failed (%s): %s", panel_id, type(error).__name__, error.message)
        self.events.emit(panel_topic(panel_id), FAILED, error.message)
        return OperationResult(False, panel_id, error=error, elapsed_seconds=time.perf_counter() - started)

    def _discard(self, panel_id: Optional[int], topic: str, started: float) -> OperationResult:
        logger.info("Discarding stale result for %s", topic)
        self.events.emit(topic, DISCARDED, "Stale result discarded")
        return OperationResult(False, panel_id, discarded=True, elapsed_seconds=time.perf_counter() - started)

    def _track_progress(self, event: ProgressEvent) -> None:
        """Mirror retry/wait messages from the client onto the busy panel."""
        if event.stage not in (REQUESTING, WAITING):
            return
        if event.topic == RESIZE_TOPIC:
            if self.state.resize.is_busy:
                self.state.resize.status_message = event.message
            return
        for panel in self.state.panels:
            if event.topic == panel_topic(panel.index) and panel.is_busy:
                panel.status_message = event.message
                return
