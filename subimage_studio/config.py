"""
config.py — Runtime settings read from the environment (and .env).

  GEMINI_API_KEY        API key for the Gemini backend (see credentials.py)
  STUDIO_IMAGE_MODEL    image model            (default gemini-3-pro-image-preview)
  STUDIO_TEXT_MODEL     copywriting model      (default gemini-2.5-flash)
  STUDIO_IMAGE_SIZE     1K | 2K                (default 1K)
  STUDIO_PANEL_COUNT    number of sub-images   (default 8)
  STUDIO_MAX_ATTEMPTS   attempts per request   (default 3)
  STUDIO_RETRY_DELAY    backoff step, seconds  (default 5.0)
  STUDIO_OUTPUT_DIR     where the CLI saves    (default outputs)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

IMAGE_SIZES = ("1K", "2K")


@dataclass(frozen=True)
class StudioConfig:
    image_model: str = "gemini-3-pro-image-preview"
    text_model: str = "gemini-2.5-flash"
    image_size: str = "1K"
    panel_count: int = 8
    max_attempts: int = 3
    retry_delay: float = 5.0
    output_dir: Path = Path("outputs")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "StudioConfig":
        if environ is None:
            load_dotenv()
            environ = os.environ
        defaults = cls()

        image_size = environ.get("STUDIO_IMAGE_SIZE", defaults.image_size).upper()
        if image_size not in IMAGE_SIZES:
            logger.warning("Ignoring STUDIO_IMAGE_SIZE=%s (expected one of %s)", image_size, IMAGE_SIZES)
            image_size = defaults.image_size

        return cls(
            image_model=environ.get("STUDIO_IMAGE_MODEL", defaults.image_model),
            text_model=environ.get("STUDIO_TEXT_MODEL", defaults.text_model),
            image_size=image_size,
            panel_count=_positive_int(environ, "STUDIO_PANEL_COUNT", defaults.panel_count),
            max_attempts=_positive_int(environ, "STUDIO_MAX_ATTEMPTS", defaults.max_attempts),
            retry_delay=_non_negative_float(environ, "STUDIO_RETRY_DELAY", defaults.retry_delay),
            output_dir=Path(environ.get("STUDIO_OUTPUT_DIR", str(defaults.output_dir))),
        )


def _positive_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r (not an integer)", name, raw)
        return default
    if value < 1:
        logger.warning("Ignoring %s=%r (must be at least 1)", name, raw)
        return default
    return value


def _non_negative_float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r (not a number)", name, raw)
        return default
    return max(0.0, value)
