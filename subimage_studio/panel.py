"""
panel.py — Lifecycle of one sub-image slot.

  idle ──generate/edit──▶ requesting ──success──▶ succeeded
                              │                      │
                              └──failure──▶ failed ◀─┘ (both re-enterable)

History is an arena of results indexed by a cursor. Pushing a result after
stepping back drops the redo tail first.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from .encoding import EncodedImage, ImageAsset
from .errors import AlreadyInProgress


class PanelStatus(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class HistoryDirection(int, Enum):
    PREV = -1
    NEXT = 1


@dataclass(frozen=True)
class PanelSnapshot:
    index: int
    appeal_text: str
    feedback: str
    result: Optional[EncodedImage]
    history: Tuple[EncodedImage, ...]
    cursor: int
    status: PanelStatus
    error: Optional[str]
    status_message: Optional[str]
    product_images: Tuple[ImageAsset, ...]
    style_image: Optional[ImageAsset]
    inherit_style: bool
    preserve_original: bool
    suggested_copy: Optional[str]
    refining_copy: bool

    @property
    def inherits_style(self) -> bool:
        return self.index > 0 and self.inherit_style

    @property
    def is_busy(self) -> bool:
        return self.status is PanelStatus.REQUESTING


@dataclass
class PanelConfig:
    index: int
    appeal_text: str = ""
    feedback: str = ""
    result: Optional[EncodedImage] = None
    history: List[EncodedImage] = field(default_factory=list)
    cursor: int = -1
    status: PanelStatus = PanelStatus.IDLE
    error: Optional[str] = None
    status_message: Optional[str] = None
    product_images: List[ImageAsset] = field(default_factory=list)
    style_image: Optional[ImageAsset] = None
    inherit_style: bool = False
    preserve_original: bool = False
    suggested_copy: Optional[str] = None
    refining_copy: bool = False
    # state to fall back to when an edit fails
    resume_status: PanelStatus = field(default=PanelStatus.IDLE, repr=False, compare=False)
    resume_error: Optional[str] = field(default=None, repr=False, compare=False)

    @classmethod
    def default(cls, index: int) -> "PanelConfig":
        return cls(index=index, inherit_style=index > 0)

    @property
    def is_busy(self) -> bool:
        return self.status is PanelStatus.REQUESTING

    @property
    def inherits_style(self) -> bool:
        """Panel 0 is the style source and never inherits from itself."""
        return self.index > 0 and self.inherit_style

    # ── Transitions ───────────────────────────────────────────────────────────

    def begin_request(self, message: str) -> None:
        if self.is_busy:
            raise AlreadyInProgress()
        self.resume_status = self.status
        self.resume_error = self.error
        self.status = PanelStatus.REQUESTING
        self.status_message = message
        self.error = None

    def push_result(self, image: EncodedImage) -> None:
        del self.history[self.cursor + 1:]
        self.history.append(image)
        self.cursor = len(self.history) - 1
        self.result = image
        self.status = PanelStatus.SUCCEEDED
        self.status_message = None
        self.error = None

    def fail(self, message: str) -> None:
        self.status = PanelStatus.FAILED
        self.status_message = None
        self.error = message

    def abandon_request(self) -> None:
        """Leave `requesting` exactly as the panel was before the request."""
        self.status = self.resume_status
        self.error = self.resume_error
        self.status_message = None

    def step_history(self, direction: int) -> bool:
        if not self.history:
            return False
        step = 1 if direction > 0 else -1
        new_cursor = max(0, min(self.cursor + step, len(self.history) - 1))
        moved = new_cursor != self.cursor
        self.cursor = new_cursor
        self.result = self.history[new_cursor]
        return moved

    def set_style_image(self, asset: Optional[ImageAsset]) -> None:
        self.style_image = asset
        if asset is not None:
            self.inherit_style = False

    def snapshot(self) -> PanelSnapshot:
        return PanelSnapshot(
            index=self.index,
            appeal_text=self.appeal_text,
            feedback=self.feedback,
            result=self.result,
            history=tuple(self.history),
            cursor=self.cursor,
            status=self.status,
            error=self.error,
            status_message=self.status_message,
            product_images=tuple(self.product_images),
            style_image=self.style_image,
            inherit_style=self.inherit_style,
            preserve_original=self.preserve_original,
            suggested_copy=self.suggested_copy,
            refining_copy=self.refining_copy,
        )
