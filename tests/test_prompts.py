"""
Unit tests for request assembly.
"""
import pytest

from subimage_studio.encoding import EncodedImage, ImageAsset
from subimage_studio.errors import StyleSourceNotReady
from subimage_studio.models import SharedSettings
from subimage_studio.panel import PanelConfig
from subimage_studio.prompts import (
    BlockKind,
    assemble_edit,
    assemble_generation,
    assemble_resize,
    build_copy_prompt,
)


def sections(blocks):
    return [(b.section, b.kind) for b in blocks]


@pytest.fixture
def settings():
    return SharedSettings(description="Insulated steel bottle, 500 ml")


@pytest.fixture
def style_source():
    return EncodedImage.from_bytes(b"panel-0-result")


class TestAssembleGeneration:
    """Tests for generation block order and content."""

    def test_minimal_request(self, settings):
        panel = PanelConfig.default(0)
        panel.appeal_text = "Cold for 24 hours"
        blocks = assemble_generation(settings, panel, request_id="abc")
        assert [b.section for b in blocks] == ["intro", "product", "requirements"]
        assert all(b.kind is BlockKind.TEXT for b in blocks)
        assert "Request ID: abc" in blocks[0].text
        assert "No product photo was supplied" in blocks[1].text
        assert "Cold for 24 hours" in blocks[-1].text
        assert settings.description in blocks[-1].text

    def test_full_order(self, settings, product_asset, png_bytes, style_source):
        settings.brand_logo = ImageAsset.from_bytes(png_bytes, name="logo.png")
        settings.product_images.append(product_asset)
        panel = PanelConfig.default(2)
        panel.preserve_original = True
        panel.feedback = "Make the background darker"
        panel.product_images.append(ImageAsset.from_bytes(png_bytes, name="side.png"))

        blocks = assemble_generation(settings, panel, style_source=style_source, request_id="r1")

        assert sections(blocks) == [
            ("intro", BlockKind.TEXT),
            ("preserve", BlockKind.TEXT),
            ("style", BlockKind.TEXT),
            ("style", BlockKind.IMAGE),
            ("logo", BlockKind.TEXT),
            ("logo", BlockKind.IMAGE),
            ("product", BlockKind.TEXT),
            ("product", BlockKind.IMAGE),
            ("product", BlockKind.IMAGE),
            ("feedback", BlockKind.TEXT),
            ("requirements", BlockKind.TEXT),
        ]
        assert blocks[3].image == style_source
        assert "Make the background darker" in blocks[9].text
        assert "Corrections" in blocks[-1].text
        assert "logo" in blocks[-1].text

    def test_deterministic_for_fixed_request_id(self, settings, product_asset):
        settings.product_images.append(product_asset)
        panel = PanelConfig.default(0)
        assert assemble_generation(settings, panel, request_id="x") == \
            assemble_generation(settings, panel, request_id="x")

    def test_random_request_id_when_omitted(self, settings):
        panel = PanelConfig.default(0)
        first = assemble_generation(settings, panel)[0].text
        second = assemble_generation(settings, panel)[0].text
        assert first != second

    def test_global_products_come_first(self, settings, png_bytes):
        shared = ImageAsset.from_bytes(png_bytes, name="shared.png", content_type="image/png")
        local = ImageAsset.from_bytes(png_bytes, name="local.png", content_type="image/webp")
        settings.product_images.append(shared)
        panel = PanelConfig.default(0)
        panel.product_images.append(local)
        images = [b.image for b in assemble_generation(settings, panel) if b.section == "product" and b.image]
        assert [i.mime_type for i in images] == ["image/png", "image/webp"]

    def test_preserve_without_products_has_no_preserve_block(self, settings):
        panel = PanelConfig.default(0)
        panel.preserve_original = True
        assert "preserve" not in [b.section for b in assemble_generation(settings, panel)]

    def test_blank_feedback_skipped(self, settings):
        panel = PanelConfig.default(0)
        panel.feedback = "   "
        assert "feedback" not in [b.section for b in assemble_generation(settings, panel)]

    def test_competitor_url_in_intro(self, settings):
        settings.competitor_url = "https://example.com/item"
        blocks = assemble_generation(settings, PanelConfig.default(0))
        assert "https://example.com/item" in blocks[0].text


class TestStylePriority:
    """Inherited style > panel style image > shared reference > none."""

    def test_inheriting_panel_needs_source(self, settings):
        with pytest.raises(StyleSourceNotReady):
            assemble_generation(settings, PanelConfig.default(1))

    def test_inherited_style_beats_everything(self, settings, png_bytes, style_source):
        settings.style_reference = ImageAsset.from_bytes(png_bytes)
        panel = PanelConfig.default(1)
        panel.style_image = ImageAsset.from_bytes(png_bytes)
        style = [b for b in assemble_generation(settings, panel, style_source) if b.section == "style"]
        assert style[1].image == style_source
        assert "COLOUR & TONE ONLY" in style[0].text

    def test_panel_style_beats_shared(self, settings, png_bytes):
        settings.style_reference = ImageAsset.from_bytes(png_bytes, content_type="image/png")
        panel = PanelConfig.default(1)
        panel.set_style_image(ImageAsset.from_bytes(png_bytes, content_type="image/webp"))
        style = [b for b in assemble_generation(settings, panel) if b.section == "style"]
        assert "PANEL STYLE REFERENCE" in style[0].text
        assert style[1].image.mime_type == "image/webp"

    def test_shared_reference(self, settings, png_bytes):
        settings.style_reference = ImageAsset.from_bytes(png_bytes)
        style = [b for b in assemble_generation(settings, PanelConfig.default(0)) if b.section == "style"]
        assert "SHARED STYLE REFERENCE" in style[0].text
        assert len(style) == 2

    def test_panel_zero_ignores_inherit_flag(self, settings):
        panel = PanelConfig.default(0)
        panel.inherit_style = True
        assert "style" not in [b.section for b in assemble_generation(settings, panel)]

    def test_style_text_excludes_depicted_content(self, settings, png_bytes):
        settings.style_reference = ImageAsset.from_bytes(png_bytes)
        text = assemble_generation(settings, PanelConfig.default(0))[1].text
        for word in ("text", "products", "people", "layout"):
            assert word in text.lower()


class TestEditAndResize:

    def test_edit_blocks(self, style_source):
        blocks = assemble_edit(style_source, " remove the red text ", 12.34, 80)
        assert sections(blocks) == [("edit", BlockKind.TEXT), ("source", BlockKind.IMAGE)]
        assert "X: 12.3%, Y: 80.0%" in blocks[0].text
        assert '"remove the red text"' in blocks[0].text
        assert blocks[1].image == style_source

    def test_edit_coordinates_clamped(self, style_source):
        text = assemble_edit(style_source, "brighten", -5, 140)[0].text
        assert "X: 0.0%, Y: 100.0%" in text

    def test_resize_blocks(self, style_source):
        blocks = assemble_resize(style_source, "16:9")
        assert sections(blocks) == [("resize", BlockKind.TEXT), ("source", BlockKind.IMAGE)]
        assert "16:9" in blocks[0].text
        assert "solid colour" in blocks[0].text


def test_copy_prompt_mentions_inputs(settings):
    settings.competitor_url = "https://example.com/rival"
    prompt = build_copy_prompt(settings, "  keeps ice for a day  ")
    assert "keeps ice for a day" in prompt
    assert settings.description in prompt
    assert "https://example.com/rival" in prompt


def test_copy_prompt_without_description():
    prompt = build_copy_prompt(SharedSettings(), "light")
    assert "(none)" in prompt
