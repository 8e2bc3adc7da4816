"""
models.py — Shared settings, aspect ratios, the resize job and the state container.

The UI-facing ratio set is larger than what the image model accepts, so
several UI ratios collapse onto one transport ratio. That loss is accepted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .encoding import EncodedImage, ImageAsset
from .panel import PanelConfig, PanelSnapshot, PanelStatus

DEFAULT_PANEL_COUNT = 8


# ── Aspect ratios ─────────────────────────────────────────────────────────────

class AspectRatio(str, Enum):
    PORTRAIT_1000_1500 = "PORTRAIT_1000_1500"
    PORTRAIT_1200_1500 = "PORTRAIT_1200_1500"
    SQUARE_1000_1000 = "SQUARE_1000_1000"
    # Amazon A+ content sizes
    APLUS_PREMIUM_DESKTOP = "APLUS_PREMIUM_DESKTOP"
    APLUS_PREMIUM_MOBILE = "APLUS_PREMIUM_MOBILE"
    APLUS_IMAGE_TEXT = "APLUS_IMAGE_TEXT"
    APLUS_HQ_IMAGE_TEXT = "APLUS_HQ_IMAGE_TEXT"

    @property
    def size(self) -> Tuple[int, int]:
        return ASPECT_RATIO_SIZES[self]

    @property
    def label(self) -> str:
        w, h = self.size
        return f"{w}×{h}"


ASPECT_RATIO_MAP: Dict[AspectRatio, str] = {
    AspectRatio.PORTRAIT_1000_1500: "3:4",     # 2:3 requested, closest supported
    AspectRatio.PORTRAIT_1200_1500: "3:4",     # 4:5 requested, closest supported
    AspectRatio.SQUARE_1000_1000: "1:1",
    AspectRatio.APLUS_PREMIUM_DESKTOP: "16:9", # ~2.44:1
    AspectRatio.APLUS_PREMIUM_MOBILE: "4:3",
    AspectRatio.APLUS_IMAGE_TEXT: "16:9",      # ~1.85:1
    AspectRatio.APLUS_HQ_IMAGE_TEXT: "4:3",
}

ASPECT_RATIO_SIZES: Dict[AspectRatio, Tuple[int, int]] = {
    AspectRatio.PORTRAIT_1000_1500: (1000, 1500),
    AspectRatio.PORTRAIT_1200_1500: (1200, 1500),
    AspectRatio.SQUARE_1000_1000: (1000, 1000),
    AspectRatio.APLUS_PREMIUM_DESKTOP: (1464, 600),
    AspectRatio.APLUS_PREMIUM_MOBILE: (600, 450),
    AspectRatio.APLUS_IMAGE_TEXT: (650, 350),
    AspectRatio.APLUS_HQ_IMAGE_TEXT: (800, 600),
}

DEFAULT_ASPECT_RATIO = AspectRatio.PORTRAIT_1000_1500


def to_transport_ratio(ratio: AspectRatio) -> str:
    return ASPECT_RATIO_MAP[AspectRatio(ratio)]


def parse_aspect_ratio(value: str) -> AspectRatio:
    """Accept an enum name (case-insensitive) or a 'WxH' size label."""
    text = value.strip()
    try:
        return AspectRatio(text.upper())
    except ValueError:
        pass
    normalized = text.lower().replace("×", "x").replace(" ", "")
    for ratio, (w, h) in ASPECT_RATIO_SIZES.items():
        if normalized == f"{w}x{h}":
            return ratio
    valid = ", ".join(r.value for r in AspectRatio)
    raise ValueError(f"Unknown aspect ratio '{value}'. Choose one of: {valid}")


# ── Shared settings ───────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SettingsSnapshot:
    aspect_ratio: AspectRatio
    description: str
    competitor_url: str
    brand_logo: Optional[ImageAsset]
    style_reference: Optional[ImageAsset]
    product_images: Tuple[ImageAsset, ...]


@dataclass
class SharedSettings:
    aspect_ratio: AspectRatio = DEFAULT_ASPECT_RATIO
    description: str = ""
    competitor_url: str = ""
    brand_logo: Optional[ImageAsset] = None
    style_reference: Optional[ImageAsset] = None
    product_images: List[ImageAsset] = field(default_factory=list)

    @property
    def transport_ratio(self) -> str:
        return to_transport_ratio(self.aspect_ratio)

    def snapshot(self) -> SettingsSnapshot:
        return SettingsSnapshot(
            aspect_ratio=self.aspect_ratio,
            description=self.description,
            competitor_url=self.competitor_url,
            brand_logo=self.brand_logo,
            style_reference=self.style_reference,
            product_images=tuple(self.product_images),
        )


# ── Resize tool ───────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ResizeSnapshot:
    source: Optional[ImageAsset]
    target_ratio: AspectRatio
    result: Optional[EncodedImage]
    status: PanelStatus
    error: Optional[str]
    status_message: Optional[str]


@dataclass
class ResizeJob:
    source: Optional[ImageAsset] = None
    target_ratio: AspectRatio = DEFAULT_ASPECT_RATIO
    result: Optional[EncodedImage] = None
    status: PanelStatus = PanelStatus.IDLE
    error: Optional[str] = None
    status_message: Optional[str] = None

    @property
    def is_busy(self) -> bool:
        return self.status is PanelStatus.REQUESTING

    def snapshot(self) -> ResizeSnapshot:
        return ResizeSnapshot(
            source=self.source,
            target_ratio=self.target_ratio,
            result=self.result,
            status=self.status,
            error=self.error,
            status_message=self.status_message,
        )


# ── State container ───────────────────────────────────────────────────────────

@dataclass(frozen=True)
class StudioSnapshot:
    settings: SettingsSnapshot
    panels: Tuple[PanelSnapshot, ...]
    resize: ResizeSnapshot
    error: Optional[str]

    def panel(self, panel_id: int) -> PanelSnapshot:
        return self.panels[panel_id]


@dataclass
class StudioState:
    panel_count: int = DEFAULT_PANEL_COUNT
    settings: SharedSettings = field(default_factory=SharedSettings)
    panels: List[PanelConfig] = field(default_factory=list)
    resize: ResizeJob = field(default_factory=ResizeJob)
    error: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.panels:
            self.panels = default_panels(self.panel_count)

    def reset_creator(self) -> None:
        """Restore every panel and the shared settings; the resize tool is separate."""
        self.settings = SharedSettings()
        self.panels = default_panels(self.panel_count)
        self.error = None

    def snapshot(self) -> StudioSnapshot:
        return StudioSnapshot(
            settings=self.settings.snapshot(),
            panels=tuple(p.snapshot() for p in self.panels),
            resize=self.resize.snapshot(),
            error=self.error,
        )


def default_panels(count: int = DEFAULT_PANEL_COUNT) -> List[PanelConfig]:
    return [PanelConfig.default(i) for i in range(count)]
