"""
Tests for settings, logging setup and the composition root.
"""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
import structlog

from ecoscan.application.scan.orchestrator import ScanState
from ecoscan.bootstrap import EcoScanApp
from ecoscan.config import DEFAULT_OFF_BASE_URL, Settings
from ecoscan.infrastructure.logging_setup import configure_logging
from ecoscan.infrastructure.storage.json_store import InMemoryStore

ENV_KEYS = [
    "OPENAI_API_KEY",
    "ECOSCAN_OPENAI_MODEL",
    "ECOSCAN_OFF_BASE_URL",
    "ECOSCAN_HTTP_TIMEOUT",
    "ECOSCAN_HTTP_MAX_RETRIES",
    "ECOSCAN_STORAGE_DIR",
    "ECOSCAN_LOG_LEVEL",
    "ECOSCAN_LOG_JSON",
]


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    # setenv first so teardown also removes values written by load_dotenv
    for key in ENV_KEYS:
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
    return monkeypatch


# ═══════════════════════════════════════════════════════════
# SETTINGS
# ═══════════════════════════════════════════════════════════


class TestSettings:
    def test_defaults(self, clean_env: pytest.MonkeyPatch, tmp_path: Path) -> None:
        settings = Settings.from_env(env_file=tmp_path / "missing.env")

        assert settings.openai_api_key is None
        assert settings.openai_model == "gpt-4o-mini"
        assert settings.off_base_url == DEFAULT_OFF_BASE_URL
        assert settings.http_timeout == 8.0
        assert settings.http_max_retries == 3
        assert settings.log_level == "INFO"
        assert not settings.log_json

    def test_environment_overrides(self, clean_env: pytest.MonkeyPatch, tmp_path: Path) -> None:
        clean_env.setenv("ECOSCAN_HTTP_TIMEOUT", "2.5")
        clean_env.setenv("ECOSCAN_HTTP_MAX_RETRIES", "0")
        clean_env.setenv("ECOSCAN_STORAGE_DIR", str(tmp_path / "data"))
        clean_env.setenv("ECOSCAN_LOG_LEVEL", "debug")
        clean_env.setenv("ECOSCAN_LOG_JSON", "1")
        clean_env.setenv("ECOSCAN_OFF_BASE_URL", "https://off.example.org/")

        settings = Settings.from_env(env_file=tmp_path / "missing.env")

        assert settings.http_timeout == 2.5
        assert settings.http_max_retries == 1
        assert settings.storage_dir == tmp_path / "data"
        assert settings.log_level == "DEBUG"
        assert settings.log_json
        assert settings.off_base_url == "https://off.example.org"

    def test_invalid_numbers_fall_back(self, clean_env: pytest.MonkeyPatch, tmp_path: Path) -> None:
        clean_env.setenv("ECOSCAN_HTTP_TIMEOUT", "fast")
        clean_env.setenv("ECOSCAN_HTTP_MAX_RETRIES", "many")

        settings = Settings.from_env(env_file=tmp_path / "missing.env")

        assert settings.http_timeout == 8.0
        assert settings.http_max_retries == 3

    def test_dotenv_file(self, clean_env: pytest.MonkeyPatch, tmp_path: Path) -> None:
        env_file = tmp_path / ".env"
        env_file.write_text("ECOSCAN_OPENAI_MODEL=gpt-4o\nOPENAI_API_KEY=sk-dotenv\n", "utf-8")

        settings = Settings.from_env(env_file=env_file)

        assert settings.openai_model == "gpt-4o"
        assert settings.openai_api_key == "sk-dotenv"


@pytest.mark.parametrize("json_output", [False, True])
def test_configure_logging(json_output: bool) -> None:
    configure_logging("DEBUG", json_output=json_output)

    structlog.get_logger("ecoscan.test").info("Logging configured", json_output=json_output)
    structlog.reset_defaults()


# ═══════════════════════════════════════════════════════════
# COMPOSITION ROOT
# ═══════════════════════════════════════════════════════════


def test_app_requires_key_without_generator(clean_env: pytest.MonkeyPatch, tmp_path: Path) -> None:
    settings = Settings(storage_dir=tmp_path)

    with pytest.raises(ValueError):
        EcoScanApp(settings, configure_logs=False)


@pytest.mark.asyncio
async def test_app_wires_and_scans(tmp_path: Path) -> None:
    store = InMemoryStore()
    generator = AsyncMock()
    generator.generate = AsyncMock(return_value="Total: 0.30 kg CO2e")
    not_found = MagicMock()
    not_found.status_code = 404

    async with EcoScanApp(
        Settings(storage_dir=tmp_path),
        store=store,
        text_generator=generator,
        configure_logs=False,
    ) as app:
        assert app.cache.size() == 4
        await app.off_client._session.aclose()
        app.off_client._session = AsyncMock()
        app.off_client._session.get = AsyncMock(return_value=not_found)

        snapshot = await app.orchestrator.scan("0194253408079")

    assert snapshot.state == ScanState.RESOLVED
    assert snapshot.record.name == "iPhone-14"
    assert snapshot.carbon_display == "0.30 kg CO₂e"
    assert len(app.ledger) == 1
    assert set(store.keys()) == {"product_cache", "scan_history"}


@pytest.mark.asyncio
async def test_failed_startup_closes_http_session(tmp_path: Path) -> None:
    app = EcoScanApp(
        Settings(storage_dir=tmp_path),
        store=InMemoryStore(),
        text_generator=AsyncMock(),
        configure_logs=False,
    )
    app.cache.initialize = AsyncMock(side_effect=RuntimeError("storage exploded"))

    with pytest.raises(RuntimeError, match="storage exploded"):
        async with app:
            pass

    assert app.off_client._session is None
