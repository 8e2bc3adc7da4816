"""
errors.py — Typed failures raised across the studio.

Every failure carries a user-facing `message` and a `scope`:
  panel  — attached to the panel that triggered the operation
  global — attached to the studio-wide error field (settings-level problems)

Hierarchy:
  StudioError
    PreconditionFailure   — checked before any remote call, never retried
    DecodeError           — an asset could not be read or decoded
    RemoteError           — the model call completed badly or failed in transport
      ModelRefusal, EmptyResponse, RetryableError, NonRetryableError → PayloadTooLarge
"""

from __future__ import annotations

from typing import Optional

PANEL_SCOPE = "panel"
GLOBAL_SCOPE = "global"


class StudioError(Exception):
    """Base class for every failure the studio reports to the user."""

    default_message = "Something went wrong."
    scope = PANEL_SCOPE
    retryable = False

    def __init__(self, message: str = "") -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


# ── Preconditions ─────────────────────────────────────────────────────────────

class PreconditionFailure(StudioError):
    default_message = "The request cannot be started yet."


class MissingDescription(PreconditionFailure):
    default_message = "Enter a product description before generating."
    scope = GLOBAL_SCOPE


class MissingCredential(PreconditionFailure):
    default_message = "No API key is selected. Set GEMINI_API_KEY and try again."
    scope = GLOBAL_SCOPE


class StyleSourceNotReady(PreconditionFailure):
    default_message = (
        "This image is set to match the style of image 1, but image 1 has not "
        "been generated yet. Generate image 1 first."
    )


class NoAssetForPreserveMode(PreconditionFailure):
    default_message = (
        "Keep-original mode needs at least one product image "
        "(shared or for this panel)."
    )


class AlreadyInProgress(PreconditionFailure):
    default_message = "A request for this panel is already running."


class NoImageToEdit(PreconditionFailure):
    default_message = "Generate an image for this panel before editing it."


class EmptyInstruction(PreconditionFailure):
    default_message = "Describe the change you want to make."


class EmptyAppealText(PreconditionFailure):
    default_message = "Enter an appeal point before asking for copy suggestions."


class MissingResizeSource(PreconditionFailure):
    default_message = "Choose an image to resize first."


class UnknownPanel(StudioError, LookupError):
    default_message = "No such panel."

    def __init__(self, panel_id: int) -> None:
        self.panel_id = panel_id
        super().__init__(f"No panel with id {panel_id}.")


# ── Assets ────────────────────────────────────────────────────────────────────

class DecodeError(StudioError):
    default_message = "An image file could not be read."


# ── Remote model ──────────────────────────────────────────────────────────────

class RemoteError(StudioError):
    default_message = "Image generation failed."

    def __init__(self, message: str = "", status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class ModelRefusal(RemoteError):
    """The model answered with text instead of an image."""

    default_message = "The model did not return an image."

    def __init__(self, text: str, transient: bool = False) -> None:
        self.text = text
        self.transient = transient
        if transient:
            message = "The model hit a processing error. Please try again."
        else:
            message = f"Model response: {text}"
        super().__init__(message)


class EmptyResponse(RemoteError):
    default_message = "The model returned no image data."


class RetryableError(RemoteError):
    default_message = "The image service is busy. Please try again shortly."
    retryable = True


class NonRetryableError(RemoteError):
    default_message = "The image service rejected the request."


class PayloadTooLarge(NonRetryableError):
    default_message = (
        "The request was rejected (400), usually because the images are too large "
        "or too many. Remove some images or use smaller files."
    )
