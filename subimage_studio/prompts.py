"""
prompts.py — Builds the ordered instruction/asset blocks sent to the image model.

Three request shapes:
  assemble_generation()  — full sub-image generation
  assemble_edit()        — localized edit at a clicked point
  assemble_resize()      — re-layout of a finished design onto a new canvas

Generation block order (fixed):
  intro → preserve? → style? → logo? → product → feedback? → requirements

Every block is an explicit {kind, section, payload} value so tests can assert
the exact sequence. Nothing here talks to the network; images are encoded
through the encoding adapter.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from .encoding import EncodedImage, ImageAsset, encode_image
from .errors import StyleSourceNotReady


class BlockKind(str, Enum):
    TEXT = "text"
    IMAGE = "image"


@dataclass(frozen=True)
class Block:
    kind: BlockKind
    section: str
    text: str = ""
    image: Optional[EncodedImage] = None

    @classmethod
    def of_text(cls, section: str, text: str) -> "Block":
        return cls(kind=BlockKind.TEXT, section=section, text=text)

    @classmethod
    def of_image(cls, section: str, image: EncodedImage) -> "Block":
        return cls(kind=BlockKind.IMAGE, section=section, image=image)


def new_request_id() -> str:
    return secrets.token_hex(4)


# ── Generation ────────────────────────────────────────────────────────────────

_INTRO = """\
Request ID: {request_id}
You are a specialist in Amazon product catalog images.
Follow the instructions below and produce an attractive product image that converts.{competitor}

IMPORTANT — VARIETY & FRESHNESS
This request asks for a new proposal.
- Think from zero: do not rely on earlier outputs, cached patterns or generic templates. \
Work out the best composition for this appeal point from scratch.
- Forget previous attempts: even if you produced a similar image before, deliberately \
ignore it and take a different approach.
- Variation: every regeneration should try a different layout, camera angle and background treatment."""

_COMPETITOR = "\nCompetitor / reference URL: {url} (use it to understand market trends and common ways this product is shown)."

_PRESERVE = """\
STRICT — KEEP ORIGINAL ASSET MODE
The user wants the supplied product photos kept exactly as they are.
1. Do not change the product: no warping, re-drawing, recolouring or filters on the product images.
2. Composite approach: treat the product as if it were cut out and placed on a new background.
3. Generate only the background, text placement and decoration. The product is a fixed asset.
4. Realism: a natural drop shadow is fine so the product does not float, but never alter the product's own pixels."""

_STYLE_INHERITED = """\
DESIGN CONSISTENCY — COLOUR & TONE ONLY
Take only the colour palette and the overall mood (tone & manner) from the reference image below \
(image 1 of this set) and apply them to the new image.

EXTRACT ONLY:
- Colours: base, main and accent colours. Reproduce them as if sampled with an eyedropper.
- Tone: overall brightness and atmosphere (e.g. premium, pop, natural).

ABSOLUTELY IGNORE:
- Products: the product in the reference may differ from this one. Never draw it.
- Text: ignore every piece of text in the reference. Do not copy a single character.
- Objects: ignore every product, person and decorative asset shown in the reference.
- Composition: do not reuse the reference's layout.

The reference is a colour and mood sample only; everything in it must be created anew."""

_STYLE_REFERENCE = """\
STRICT STYLE GUIDE — {scope} STYLE REFERENCE
The image below exists only to extract colour information and mood.
Treat everything it depicts (text, products, people, objects, layout) as 100% noise and ignore it.

EXTRACT ONLY:
1. Base colour: the background or dominant colour.
2. Main colour: the principal colour.
3. Accent colour: the highlight colour.
4. Tone & manner: premium, pop, simple, natural and so on.

FORBIDDEN — never include any of these in the output:
- Products shown in the reference (they are unrelated to this product).
- Any text from the reference, not even one character.
- People or models from the reference.
- Graphic elements or decorations unique to the reference.

Borrow only the colours and mood, and create an image of a completely different product \
(the one supplied in this request) from scratch."""

_LOGO = """\
BRAND LOGO
Use the image below as the brand logo.
- Placement: put it somewhere visible but unobtrusive (a corner or header area).
- Do not distort it: keep the logo's aspect ratio and shape exactly."""

_PRODUCT = """\
PRODUCT IMAGES (MAIN SUBJECT)
Use the following image(s) as the main subject.
{strength}
- Photo first: use the supplied photos as much as possible and generate or composite only the background and effects."""

_PRODUCT_PRESERVE = "- Composite mode: use these images as they are. No re-drawing. Keep every pixel."
_PRODUCT_FAITHFUL = (
    "- Keep the shape: never distort or change the product's shape, proportions, logo or details. "
    "Keep the look of the uploaded photos."
)

_NO_PRODUCT = """\
ABOUT THE PRODUCT IMAGE
No product photo was supplied.
Render the product's appearance realistically from the product description text.
Produce a high-quality product render that looks natural as an Amazon product image."""

_FEEDBACK = """\
USER CORRECTION — HIGHEST PRIORITY
The user asked for changes to the previous result. Apply the following instruction before anything else:
"{feedback}\""""

_REQUIREMENTS = """\
PRODUCTION REQUIREMENTS
- Product description: {description}
- Copy / appeal shown in the image: {appeal}

STEPS
1. Palette: apply the colour palette (base, main, accent) taken from the reference.
2. Placement: {placement}{logo}
3. Text: place the appeal copy so it is clearly readable.
4. Background: generate a background and effects that make the product stand out.{feedback_step}

Output a high-quality Amazon product image that communicates the product's appeal."""


def _style_blocks(settings, panel, style_source: Optional[EncodedImage]) -> List[Block]:
    if panel.index > 0 and panel.inherit_style:
        if style_source is None:
            raise StyleSourceNotReady()
        return [
            Block.of_text("style", _STYLE_INHERITED),
            Block.of_image("style", style_source),
        ]
    if panel.style_image is not None:
        return [
            Block.of_text("style", _STYLE_REFERENCE.format(scope="PANEL")),
            Block.of_image("style", encode_image(panel.style_image)),
        ]
    if settings.style_reference is not None:
        return [
            Block.of_text("style", _STYLE_REFERENCE.format(scope="SHARED")),
            Block.of_image("style", encode_image(settings.style_reference)),
        ]
    return []


def collect_product_images(settings, panel) -> List[ImageAsset]:
    """Shared product images first, then the panel's own."""
    return list(settings.product_images) + list(panel.product_images)


def assemble_generation(
    settings,
    panel,
    style_source: Optional[EncodedImage] = None,
    request_id: Optional[str] = None,
) -> List[Block]:
    """
    Build the full generation request for one panel.

    Args:
        settings:      SharedSettings or its snapshot
        panel:         PanelConfig or its snapshot
        style_source:  panel 0's current result, required when the panel inherits style
        request_id:    correlation token embedded in the intro; random when omitted

    Raises:
        StyleSourceNotReady: the panel inherits style but no style source was given
        DecodeError:         an attached asset could not be read
    """
    request_id = request_id or new_request_id()
    products = collect_product_images(settings, panel)
    preserve = bool(panel.preserve_original)
    feedback = (panel.feedback or "").strip()

    competitor = _COMPETITOR.format(url=settings.competitor_url) if settings.competitor_url else ""
    blocks = [Block.of_text("intro", _INTRO.format(request_id=request_id, competitor=competitor))]

    if preserve and products:
        blocks.append(Block.of_text("preserve", _PRESERVE))

    blocks.extend(_style_blocks(settings, panel, style_source))

    if settings.brand_logo is not None:
        blocks.append(Block.of_text("logo", _LOGO))
        blocks.append(Block.of_image("logo", encode_image(settings.brand_logo)))

    if products:
        strength = _PRODUCT_PRESERVE if preserve else _PRODUCT_FAITHFUL
        blocks.append(Block.of_text("product", _PRODUCT.format(strength=strength)))
        blocks.extend(Block.of_image("product", encode_image(asset)) for asset in products)
    else:
        blocks.append(Block.of_text("product", _NO_PRODUCT))

    if feedback:
        blocks.append(Block.of_text("feedback", _FEEDBACK.format(feedback=feedback)))

    placement = (
        "place the supplied product images exactly as they are (no re-drawing)."
        if preserve else
        "place the product attractively."
    )
    blocks.append(Block.of_text("requirements", _REQUIREMENTS.format(
        description=settings.description,
        appeal=panel.appeal_text,
        placement=placement,
        logo=" Place the brand logo as well." if settings.brand_logo is not None else "",
        feedback_step="\n5. Corrections: apply the user's correction instruction." if feedback else "",
    )))
    return blocks


# ── Localized edit ────────────────────────────────────────────────────────────

_EDIT = """\
ADVANCED IMAGE EDITING
Modify the element around the point the user selected, following the instruction.

TARGET POSITION
Coordinates where the top-left of the image is (0,0) and the bottom-right is (100,100):
X: {x:.1f}%, Y: {y:.1f}%
Identify the text or object at this position and work on it.

USER INSTRUCTION
"{instruction}"

SUPPORTED EDITS — pick whichever matches the instruction:
1. Text edit / removal / recolour:
   - Remove: erase the text cleanly and fill in the background (inpainting).
   - Change: rewrite the content while keeping the original font design, colour and size.
   - Recolour: change only the text colour.
2. Object add / replace:
   - Add: blend a new element (icon, light, decoration) naturally at the position.
   - Replace: swap the existing object for another one.
3. Colour / brightness adjustment:
   - Change the colour or adjust the brightness of the selected region.

HARD CONSTRAINTS
- Keep the product's shape: the product itself must not be deformed.
- Keep the design: do not break the original font style or the overall design mood."""


def _clamp_percent(value: float) -> float:
    return max(0.0, min(100.0, float(value)))


def assemble_edit(
    image: EncodedImage,
    instruction: str,
    x_percent: float,
    y_percent: float,
) -> List[Block]:
    text = _EDIT.format(
        x=_clamp_percent(x_percent),
        y=_clamp_percent(y_percent),
        instruction=instruction.strip(),
    )
    return [Block.of_text("edit", text), Block.of_image("source", image)]


# ── Resize ────────────────────────────────────────────────────────────────────

_RESIZE = """\
SMART DESIGN RESIZE
Recompose the supplied design image for the target aspect ratio {ratio}.

STRICT RULES
1. Keep every element: product photos, logos, text and decorations stay as they are.
2. No distortion: never stretch or squash the image. When the ratio changes, extend the \
background (outpainting) or rearrange elements naturally (smart layout).
3. Keep the design: reproduce the original mood, colours and font style exactly.
4. New space: fill any area created by the new ratio by naturally extending the original \
background design. Do not fill it with a solid colour; continue the design pattern.

GOAL
A natural, high-quality resized image that looks as if the original design was moved onto a new canvas."""


def assemble_resize(image: EncodedImage, target_ratio: str) -> List[Block]:
    return [
        Block.of_text("resize", _RESIZE.format(ratio=target_ratio)),
        Block.of_image("source", image),
    ]


# ── Copy refinement ───────────────────────────────────────────────────────────

_COPY = """\
You are an Amazon product page optimisation expert and copywriter.
Using the product information and the appeal point the user is considering, propose exactly one short, \
catchy catch-copy line that drives purchase intent and fits inside a product image.

PRODUCT DESCRIPTION
{description}

COMPETITOR / REFERENCE URL
{url}

CURRENT APPEAL POINT DRAFT
{appeal}

CONSTRAINTS
- It goes inside an image, so keep it short (about 15 characters recommended, two lines at most).
- Be concrete and make the benefit obvious.
- Write in the same language as the appeal point draft.
- Return only the proposed copy, no explanation."""


def build_copy_prompt(settings, appeal_text: str) -> str:
    return _COPY.format(
        description=settings.description or "(none)",
        url=settings.competitor_url or "(none)",
        appeal=appeal_text.strip(),
    )
