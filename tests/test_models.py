"""
Unit tests for aspect ratios, settings and the state container.
"""
import pytest

from subimage_studio.models import (
    ASPECT_RATIO_MAP,
    AspectRatio,
    DEFAULT_ASPECT_RATIO,
    SharedSettings,
    StudioState,
    parse_aspect_ratio,
    to_transport_ratio,
)


class TestAspectRatio:

    @pytest.mark.parametrize("ratio,transport", [
        (AspectRatio.PORTRAIT_1000_1500, "3:4"),
        (AspectRatio.PORTRAIT_1200_1500, "3:4"),
        (AspectRatio.SQUARE_1000_1000, "1:1"),
        (AspectRatio.APLUS_PREMIUM_DESKTOP, "16:9"),
        (AspectRatio.APLUS_PREMIUM_MOBILE, "4:3"),
        (AspectRatio.APLUS_IMAGE_TEXT, "16:9"),
        (AspectRatio.APLUS_HQ_IMAGE_TEXT, "4:3"),
    ])
    def test_transport_mapping(self, ratio, transport):
        assert to_transport_ratio(ratio) == transport

    def test_mapping_is_total(self):
        assert set(ASPECT_RATIO_MAP) == set(AspectRatio)

    def test_default(self):
        assert DEFAULT_ASPECT_RATIO is AspectRatio.PORTRAIT_1000_1500

    def test_settings_transport_ratio(self):
        settings = SharedSettings(aspect_ratio=AspectRatio.APLUS_HQ_IMAGE_TEXT)
        assert settings.transport_ratio == "4:3"

    def test_label(self):
        assert AspectRatio.APLUS_PREMIUM_DESKTOP.label == "1464×600"

    @pytest.mark.parametrize("text,expected", [
        ("square_1000_1000", AspectRatio.SQUARE_1000_1000),
        ("APLUS_IMAGE_TEXT", AspectRatio.APLUS_IMAGE_TEXT),
        ("800x600", AspectRatio.APLUS_HQ_IMAGE_TEXT),
        ("1200×1500", AspectRatio.PORTRAIT_1200_1500),
    ])
    def test_parse(self, text, expected):
        assert parse_aspect_ratio(text) is expected

    def test_parse_unknown(self):
        with pytest.raises(ValueError):
            parse_aspect_ratio("21:9")


class TestStudioState:

    def test_eight_panels_by_default(self):
        state = StudioState()
        assert [p.index for p in state.panels] == list(range(8))

    def test_reset_creator_restores_defaults(self, product_asset):
        state = StudioState()
        state.settings.description = "bottle"
        state.settings.product_images.append(product_asset)
        state.panels[3].appeal_text = "leak-proof"
        state.error = "oops"

        state.reset_creator()

        assert state.snapshot() == StudioState().snapshot()

    def test_reset_creator_keeps_resize_job(self, product_asset):
        state = StudioState()
        state.resize.source = product_asset
        state.reset_creator()
        assert state.resize.source == product_asset

    def test_snapshot_is_immutable(self):
        snap = StudioState().snapshot()
        with pytest.raises(AttributeError):
            snap.error = "x"
        assert isinstance(snap.panels, tuple)
