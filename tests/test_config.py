from __future__ import annotations

from pathlib import Path

import pytest

from wavespeed_studio.config import load_config

ENV_KEYS = (
    "WAVESPEED_API_KEY",
    "WAVESPEED_API_URL",
    "WAVESPEED_POLL_INTERVAL",
    "WAVESPEED_MAX_POLL_ATTEMPTS",
    "WAVESPEED_REQUEST_TIMEOUT",
    "OUTPUT_ROOT_DIR",
    "OUTPUT_INCLUDE_METADATA",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


class TestLoadConfig:
    def test_defaults(self) -> None:
        config = load_config()

        assert config.wavespeed.api_url == "https://api.wavespeed.ai"
        assert config.wavespeed.api_key is None
        assert config.wavespeed.poll_interval_seconds == 2.0
        assert config.wavespeed.max_poll_attempts == 90
        assert config.output.root_dir == Path("output")
        assert config.output.include_metadata is True
        assert config.log_level == "INFO"
        assert "max_poll_attempts" not in config.wavespeed.model_fields_set

    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("WAVESPEED_API_KEY", "ws-123")
        monkeypatch.setenv("WAVESPEED_POLL_INTERVAL", "0.5")
        monkeypatch.setenv("WAVESPEED_MAX_POLL_ATTEMPTS", "150")
        monkeypatch.setenv("OUTPUT_INCLUDE_METADATA", "no")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        config = load_config()

        assert config.wavespeed.api_key == "ws-123"
        assert config.wavespeed.poll_interval_seconds == 0.5
        assert config.wavespeed.max_poll_attempts == 150
        assert "max_poll_attempts" in config.wavespeed.model_fields_set
        assert config.output.include_metadata is False
        assert config.log_level == "DEBUG"

    def test_reads_dotenv_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        # Registers the key with monkeypatch so the value load_dotenv writes is undone.
        monkeypatch.setenv("WAVESPEED_API_KEY", "placeholder")
        monkeypatch.delenv("WAVESPEED_API_KEY")
        dotenv = tmp_path / "custom.env"
        dotenv.write_text("WAVESPEED_API_KEY=from-dotenv\n")

        config = load_config(dotenv)

        assert config.wavespeed.api_key == "from-dotenv"

    def test_malformed_number(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("WAVESPEED_MAX_POLL_ATTEMPTS", "many")
        with pytest.raises(RuntimeError, match="Invalid integer"):
            load_config()

    def test_out_of_range_value_names_the_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("WAVESPEED_POLL_INTERVAL", "120")
        with pytest.raises(RuntimeError, match="wavespeed/poll_interval_seconds"):
            load_config()
