"""Tests for environment-driven settings."""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from tumorlens.config import MAX_UPLOAD_BYTES, Settings, get_settings


class TestSettings:
    def test_defaults(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            settings = get_settings()
        assert settings.port == 8083
        assert settings.api_key is None
        assert settings.predict_path == "api/predict/"
        assert settings.request_timeout is None
        assert settings.max_file_size == MAX_UPLOAD_BYTES == 10 * 1024 * 1024
        assert settings.sample_image is None

    def test_env_overrides(self) -> None:
        env = {
            "TUMORLENS_API_URL": "http://localhost:7860/",
            "TUMORLENS_REQUEST_TIMEOUT": "12.5",
            "tumorlens_log_level": "DEBUG",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = get_settings()
        assert settings.api_url == "http://localhost:7860/"
        assert settings.request_timeout == 12.5
        assert settings.log_level == "DEBUG"

    @pytest.mark.parametrize("field,value", [("request_timeout", 0), ("max_file_size", 0), ("log_level", "LOUD")])
    def test_invalid_values_rejected(self, field: str, value: object) -> None:
        with pytest.raises(ValidationError):
            Settings(**{field: value})  # type: ignore[arg-type]
