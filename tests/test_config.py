"""
Unit tests for configuration and credentials.
"""
from pathlib import Path

from subimage_studio.config import StudioConfig
from subimage_studio.credentials import EnvCredentials, StaticCredentials


class TestStudioConfig:

    def test_defaults(self):
        config = StudioConfig.from_env({})
        assert config == StudioConfig()
        assert config.image_model == "gemini-3-pro-image-preview"
        assert config.text_model == "gemini-2.5-flash"
        assert config.image_size == "1K"
        assert config.panel_count == 8
        assert config.max_attempts == 3
        assert config.retry_delay == 5.0

    def test_overrides(self):
        config = StudioConfig.from_env({
            "STUDIO_IMAGE_MODEL": "gemini-2.5-flash-image",
            "STUDIO_IMAGE_SIZE": "2k",
            "STUDIO_PANEL_COUNT": "4",
            "STUDIO_MAX_ATTEMPTS": "5",
            "STUDIO_RETRY_DELAY": "0.5",
            "STUDIO_OUTPUT_DIR": "/tmp/studio",
        })
        assert config.image_model == "gemini-2.5-flash-image"
        assert config.image_size == "2K"
        assert config.panel_count == 4
        assert config.max_attempts == 5
        assert config.retry_delay == 0.5
        assert config.output_dir == Path("/tmp/studio")

    def test_invalid_values_fall_back(self, caplog):
        config = StudioConfig.from_env({
            "STUDIO_IMAGE_SIZE": "8K",
            "STUDIO_PANEL_COUNT": "zero",
            "STUDIO_MAX_ATTEMPTS": "0",
            "STUDIO_RETRY_DELAY": "soon",
        })
        assert config == StudioConfig()
        assert "STUDIO_PANEL_COUNT" in caplog.text

    def test_negative_delay_clamped(self):
        assert StudioConfig.from_env({"STUDIO_RETRY_DELAY": "-3"}).retry_delay == 0.0


class TestCredentials:

    def test_env_prefers_gemini_key(self):
        creds = EnvCredentials({"GEMINI_API_KEY": " g-key ", "API_KEY": "other"})
        assert creds.is_ready
        assert creds.current_key == "g-key"

    def test_env_falls_back_to_api_key(self):
        assert EnvCredentials({"API_KEY": "fallback"}).current_key == "fallback"

    def test_env_without_key(self):
        creds = EnvCredentials({"GEMINI_API_KEY": "   "})
        assert not creds.is_ready
        assert creds.current_key == ""

    def test_static(self):
        assert StaticCredentials("k").is_ready
        assert not StaticCredentials().is_ready
