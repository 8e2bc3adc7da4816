"""
commands.py — User-input mutations, applied by Studio.apply().

Each command is a small frozen value with an `apply(state)` method that
touches only its own target: one settings field, one panel field, or the
resize job. Commands never start remote work.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from .encoding import ImageAsset
from .errors import UnknownPanel
from .models import AspectRatio, StudioState
from .panel import PanelConfig, PanelStatus


def _panel(state: StudioState, panel_id: int) -> PanelConfig:
    if not 0 <= panel_id < len(state.panels):
        raise UnknownPanel(panel_id)
    return state.panels[panel_id]


class Command:
    def apply(self, state: StudioState) -> None:
        raise NotImplementedError


# ── Shared settings ───────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SetDescription(Command):
    text: str

    def apply(self, state: StudioState) -> None:
        state.settings.description = self.text


@dataclass(frozen=True)
class SetCompetitorUrl(Command):
    url: str

    def apply(self, state: StudioState) -> None:
        state.settings.competitor_url = self.url.strip()


@dataclass(frozen=True)
class SetAspectRatio(Command):
    ratio: AspectRatio

    def apply(self, state: StudioState) -> None:
        state.settings.aspect_ratio = AspectRatio(self.ratio)


@dataclass(frozen=True)
class AddProductImages(Command):
    assets: Tuple[ImageAsset, ...]

    def apply(self, state: StudioState) -> None:
        state.settings.product_images.extend(self.assets)


@dataclass(frozen=True)
class RemoveProductImage(Command):
    asset_id: str

    def apply(self, state: StudioState) -> None:
        images = state.settings.product_images
        images[:] = [a for a in images if a.asset_id != self.asset_id]


@dataclass(frozen=True)
class SetBrandLogo(Command):
    asset: Optional[ImageAsset]

    def apply(self, state: StudioState) -> None:
        state.settings.brand_logo = self.asset


@dataclass(frozen=True)
class SetStyleReference(Command):
    asset: Optional[ImageAsset]

    def apply(self, state: StudioState) -> None:
        state.settings.style_reference = self.asset


# ── Per panel ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SetAppealText(Command):
    panel_id: int
    text: str

    def apply(self, state: StudioState) -> None:
        _panel(state, self.panel_id).appeal_text = self.text


@dataclass(frozen=True)
class SetFeedback(Command):
    panel_id: int
    text: str

    def apply(self, state: StudioState) -> None:
        _panel(state, self.panel_id).feedback = self.text


@dataclass(frozen=True)
class AddPanelProductImages(Command):
    panel_id: int
    assets: Tuple[ImageAsset, ...]

    def apply(self, state: StudioState) -> None:
        _panel(state, self.panel_id).product_images.extend(self.assets)


@dataclass(frozen=True)
class RemovePanelProductImage(Command):
    panel_id: int
    asset_id: str

    def apply(self, state: StudioState) -> None:
        images = _panel(state, self.panel_id).product_images
        images[:] = [a for a in images if a.asset_id != self.asset_id]


@dataclass(frozen=True)
class SetPanelStyleImage(Command):
    """Choosing a local style image switches inheritance off for the panel."""

    panel_id: int
    asset: Optional[ImageAsset]

    def apply(self, state: StudioState) -> None:
        _panel(state, self.panel_id).set_style_image(self.asset)


@dataclass(frozen=True)
class SetInheritStyle(Command):
    panel_id: int
    enabled: bool

    def apply(self, state: StudioState) -> None:
        _panel(state, self.panel_id).inherit_style = bool(self.enabled)


@dataclass(frozen=True)
class SetPreserveOriginal(Command):
    panel_id: int
    enabled: bool

    def apply(self, state: StudioState) -> None:
        _panel(state, self.panel_id).preserve_original = bool(self.enabled)


# ── Resize tool ───────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SetResizeSource(Command):
    asset: Optional[ImageAsset]

    def apply(self, state: StudioState) -> None:
        job = state.resize
        job.source = self.asset
        job.result = None
        job.error = None
        if not job.is_busy:
            job.status = PanelStatus.IDLE


@dataclass(frozen=True)
class SetResizeRatio(Command):
    ratio: AspectRatio

    def apply(self, state: StudioState) -> None:
        state.resize.target_ratio = AspectRatio(self.ratio)
