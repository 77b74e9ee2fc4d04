"""Unit tests for ConfigService."""

from pathlib import Path

import pytest
import yaml

from agentkb.app_utils.config_schema import (
    API_TOKEN_ENV,
    API_URL_ENV,
    AgentKBConfig,
)
from agentkb.app_utils.paths import DATA_DIR_ENV, get_config_file
from agentkb.services.config_service import ConfigService


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch):
    """Keep the developer's environment out of config tests."""
    monkeypatch.delenv(API_URL_ENV, raising=False)
    monkeypatch.delenv(API_TOKEN_ENV, raising=False)


@pytest.fixture
def temp_config_file(tmp_path: Path) -> Path:
    """Create a temporary config file path."""
    return tmp_path / "config.yaml"


@pytest.fixture
def config_service(temp_config_file: Path) -> ConfigService:
    """Create a ConfigService instance with a temp file."""
    return ConfigService(temp_config_file)


class TestConfigServiceLoad:
    """Tests for ConfigService.load()."""

    def test_load_creates_default_when_missing(
        self, config_service: ConfigService, temp_config_file: Path
    ):
        """Load creates default config when file doesn't exist."""
        config = config_service.load()

        assert config.api.base_url == "http://localhost:8000/api/"
        assert config.sync.debounce_seconds == 0.5
        assert config.training.poll_interval == 5.0
        assert config.training.progress_step == 10
        assert config.notifications.history_size == 100

        assert temp_config_file.exists()

    def test_load_partial_config_uses_defaults(
        self, config_service: ConfigService, temp_config_file: Path
    ):
        """Load uses defaults for missing fields and ignores unknown ones."""
        temp_config_file.write_text(
            yaml.safe_dump(
                {
                    "api": {"base_url": "https://kb.example/api/", "legacy": 1},
                    "training": {"poll_interval": 2},
                }
            )
        )

        config = config_service.load()

        assert config.api.base_url == "https://kb.example/api/"
        assert config.training.poll_interval == 2
        assert config.training.max_polls == 720
        assert config.sync.debounce_seconds == 0.5

    def test_corrupt_file_falls_back_to_defaults(
        self, config_service: ConfigService, temp_config_file: Path
    ):
        temp_config_file.write_text("api: [unclosed")
        config = config_service.load()
        assert config.api.base_url == "http://localhost:8000/api/"

    def test_env_overrides_file(
        self, config_service: ConfigService, monkeypatch
    ):
        monkeypatch.setenv(API_URL_ENV, "https://env.example/api/")
        monkeypatch.setenv(API_TOKEN_ENV, "tok")

        config = config_service.load()

        assert config.api.base_url == "https://env.example/api/"
        assert config.api.token == "tok"

    def test_default_location_follows_home_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv(DATA_DIR_ENV, str(tmp_path / "kb"))
        service = ConfigService()
        assert service.config_file == get_config_file()
        assert service.config_file == tmp_path / "kb" / "config.yaml"


class TestConfigServiceSave:
    """Tests for ConfigService.save()."""

    def test_save_creates_parent_directory(self, tmp_path: Path):
        """Save creates parent directory if needed."""
        nested_path = tmp_path / "subdir" / "config.yaml"
        service = ConfigService(nested_path)

        service.save(AgentKBConfig.create_default())

        assert nested_path.exists()

    def test_round_trip(self, config_service: ConfigService, temp_config_file: Path):
        config = AgentKBConfig.create_default()
        config.sync.debounce_seconds = 1.5
        config_service.save(config)

        saved_data = yaml.safe_load(temp_config_file.read_text())
        assert saved_data["sync"]["debounce_seconds"] == 1.5
        assert config_service.load().sync.debounce_seconds == 1.5


class TestConfigServiceUpdate:
    """Tests for ConfigService.update()."""

    def test_update_api_config(self, config_service: ConfigService):
        """Update modifies service connection values."""
        config = config_service.update(api_base_url="https://kb.example/api/")

        assert config.api.base_url == "https://kb.example/api/"

    def test_update_multiple_sections(self, config_service: ConfigService):
        config = config_service.update(
            sync_debounce_seconds=0.25,
            training_max_polls=10,
            notifications_history_size=5,
        )

        assert config.sync.debounce_seconds == 0.25
        assert config.training.max_polls == 10
        assert config.notifications.history_size == 5

    def test_update_persists_changes(
        self, config_service: ConfigService, temp_config_file: Path
    ):
        """Update saves changes to disk."""
        config_service.update(training_poll_interval=1.0)

        saved_data = yaml.safe_load(temp_config_file.read_text())
        assert saved_data["training"]["poll_interval"] == 1.0

    def test_unknown_keys_are_ignored(self, config_service: ConfigService, caplog):
        config = config_service.update(api_nope=1, bogus=2)

        assert config.api.base_url == "http://localhost:8000/api/"
        assert "api_nope" in caplog.text
        assert "bogus" in caplog.text
