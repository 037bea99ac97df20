"""
asset_config: YAML loading, environment overrides, validation and the
bridges into kernel inputs.
"""

import textwrap

import pytest
import yaml

from asset_config import CONFIG_PATH_ENV, DATABASE_URL_ENV, get_active_config
from asset_config.bridges import build_kernel_settings, init_engine_from_config
from asset_config.loader import compute_checksum, merge_overrides
from asset_kernel.db.engine import get_engine, reset_engine
from asset_kernel.domain.settings import KernelSettings

MINIMAL = textwrap.dedent(
    """
    config_id: test-config
    version: 3
    database:
      url: sqlite:///kernel.db
    """
)


@pytest.fixture(autouse=True)
def _no_env(monkeypatch):
    monkeypatch.delenv(CONFIG_PATH_ENV, raising=False)
    monkeypatch.delenv(DATABASE_URL_ENV, raising=False)


@pytest.fixture
def write_config(tmp_path):
    def _write(text: str, name: str = "kernel.yaml"):
        path = tmp_path / name
        path.write_text(text)
        return path

    return _write


class TestGetActiveConfig:

    def test_packaged_defaults(self):
        config = get_active_config()

        assert config.config_id == "asset-kernel-default"
        assert config.database.url.startswith("postgresql")
        assert config.database.statement_timeout_ms == 30000
        assert config.order_numbering.prefix == "TO"
        assert config.order_numbering.bulk_prefix == "TO-MT"
        assert config.logging.level == "INFO"

    def test_explicit_path_and_section_defaults(self, write_config):
        config = get_active_config(write_config(MINIMAL))

        assert config.config_id == "test-config"
        assert config.version == 3
        assert config.database.pool_size == 20
        assert config.database.statement_timeout_ms is None
        assert config.order_numbering.padding == 3
        assert "{order_id}" in config.notifications.receive_link_template

    def test_path_from_environment(self, write_config, monkeypatch):
        monkeypatch.setenv(CONFIG_PATH_ENV, str(write_config(MINIMAL)))

        assert get_active_config().config_id == "test-config"

    def test_database_url_from_environment(self, write_config, monkeypatch):
        monkeypatch.setenv(DATABASE_URL_ENV, "postgresql://u:p@db:5432/assets")

        config = get_active_config(write_config(MINIMAL))

        assert config.database.url == "postgresql://u:p@db:5432/assets"

    def test_overrides_win(self, write_config, monkeypatch):
        monkeypatch.setenv(DATABASE_URL_ENV, "postgresql://env/db")

        config = get_active_config(
            write_config(MINIMAL),
            overrides={"database": {"url": "sqlite://"}, "order_numbering": {"prefix": "TRF"}},
        )

        assert config.database.url == "sqlite://"
        assert config.order_numbering.prefix == "TRF"

    def test_checksum_is_stable_and_content_sensitive(self, write_config):
        path = write_config(MINIMAL)

        first = get_active_config(path)
        second = get_active_config(path)
        changed = get_active_config(path, overrides={"version": 4})

        assert first.checksum == second.checksum
        assert first.checksum != changed.checksum
        assert len(first.checksum) == 64

    def test_load_is_logged(self, write_config, captured_logs):
        config = get_active_config(write_config(MINIMAL))

        (record,) = [r for r in captured_logs() if r["message"] == "asset_config_loaded"]
        assert record["logger"] == "asset_kernel.config"
        assert record["checksum"] == config.checksum
        assert record["database_dialect"] == "sqlite"


class TestValidation:

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "nope.yaml")

    def test_top_level_must_be_mapping(self, write_config):
        with pytest.raises(ValueError, match="mapping"):
            get_active_config(write_config("- a\n- b\n"))

    def test_malformed_yaml(self, write_config):
        with pytest.raises(yaml.YAMLError):
            get_active_config(write_config("config_id: [unclosed\n"))

    def test_database_required(self, write_config):
        with pytest.raises(KeyError):
            get_active_config(write_config("config_id: x\nversion: 1\n"))

    def test_empty_url(self, write_config):
        with pytest.raises(ValueError, match="database.url"):
            get_active_config(write_config(MINIMAL), overrides={"database": {"url": ""}})

    def test_pool_size_positive(self, write_config):
        with pytest.raises(ValueError, match="pool_size"):
            get_active_config(write_config(MINIMAL), overrides={"database": {"pool_size": 0}})

    def test_prefixes_must_differ(self, write_config):
        with pytest.raises(ValueError, match="differ"):
            get_active_config(
                write_config(MINIMAL), overrides={"order_numbering": {"bulk_prefix": "TO"}}
            )

    def test_template_placeholder_required(self, write_config):
        with pytest.raises(ValueError, match="order_id"):
            get_active_config(
                write_config(MINIMAL),
                overrides={"notifications": {"receive_link_template": "/receive"}},
            )

    def test_unknown_log_level(self, write_config):
        with pytest.raises(ValueError, match="logging level"):
            get_active_config(write_config(MINIMAL), overrides={"logging": {"level": "LOUD"}})


class TestLoaderHelpers:

    def test_merge_is_recursive(self):
        base = {"database": {"url": "a", "echo": False}, "version": 1}

        merged = merge_overrides(base, {"database": {"echo": True}})

        assert merged == {"database": {"url": "a", "echo": True}, "version": 1}
        assert base["database"]["echo"] is False

    def test_checksum_ignores_key_order(self):
        assert compute_checksum({"a": 1, "b": 2}) == compute_checksum({"b": 2, "a": 1})


class TestBridges:

    def test_kernel_settings(self, write_config):
        config = get_active_config(
            write_config(MINIMAL),
            overrides={"order_numbering": {"prefix": "TRF", "bulk_prefix": "TRF-MT", "padding": 4}},
        )

        settings = build_kernel_settings(config)

        assert isinstance(settings, KernelSettings)
        assert settings.order_number_prefix == "TRF"
        assert settings.bulk_order_number_prefix == "TRF-MT"
        assert settings.order_number_padding == 4
        assert settings.receive_link("42") == "/receive-orders?orderId=42"

    def test_engine_from_config(self, write_config, tmp_path):
        config = get_active_config(
            write_config(MINIMAL),
            overrides={"database": {"url": f"sqlite:///{tmp_path / 'bridge.db'}"}},
        )

        try:
            engine = init_engine_from_config(config)
            assert engine.dialect.name == "sqlite"
            assert get_engine() is engine
        finally:
            reset_engine()
