import shutil
import tempfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from topicgateway.gateway.app import GatewaySettings
from topicgateway.gateway.main import apply_args, build_store, create_app_from_config, main, parse_args
from topicgateway.store.disk import DiskLogStore
from topicgateway.store.memory import InMemoryLogStore
from topicgateway.utils.config import Config, reset_config


@pytest.fixture
def temp_dir():
    """Create temporary directory."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path)


class TestEntryPoint:
    """Test command-line wiring."""

    def test_args_override_config(self):
        """Test that given flags replace config values and omitted ones do not."""
        config = Config()
        args = parse_args(["--port", "9000", "--store", "memory"])

        apply_args(config, args)

        assert config.get("server.port") == 9000
        assert config.get("store.backend") == "memory"
        assert config.get("server.host") == "0.0.0.0"

    def test_rejects_unknown_store_flag(self):
        """Test that argparse limits --store choices."""
        with pytest.raises(SystemExit):
            parse_args(["--store", "cloud"])

    def test_build_memory_store(self):
        """Test memory backend selection."""
        config = Config()
        config.set("store.backend", "memory")

        assert isinstance(build_store(config), InMemoryLogStore)

    @pytest.mark.asyncio
    async def test_build_store_applies_entry_limit(self, temp_dir):
        """Test that store.max_entry_bytes reaches both backends."""
        config = Config()
        config.set("store.max_entry_bytes", 4096)
        config.set("store.data_dir", str(temp_dir / "data"))

        config.set("store.backend", "memory")
        assert build_store(config).max_entry_bytes == 4096

        config.set("store.backend", "disk")
        store = build_store(config)
        try:
            assert store.max_entry_bytes == 4096
            assert store._topics.log_config["max_entry_bytes"] == 4096
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_build_disk_store(self, temp_dir):
        """Test disk backend selection uses the data directory."""
        config = Config()
        config.set("store.backend", "disk")
        config.set("store.data_dir", str(temp_dir / "data"))

        store = build_store(config)
        try:
            assert isinstance(store, DiskLogStore)
            assert (temp_dir / "data").is_dir()
        finally:
            await store.close()

    def test_unknown_backend(self):
        """Test that an unknown backend is a configuration error."""
        config = Config()
        config.set("store.backend", "cloud")

        with pytest.raises(ValueError, match="Unknown store backend"):
            build_store(config)

    def test_settings_from_config(self):
        """Test that gateway limits are read from config."""
        config = Config()
        config.set("gateway.max_poll_duration", "30s")
        config.set("gateway.disconnect_check_interval_ms", 100)

        settings = GatewaySettings.from_config(config)

        assert settings.max_poll_duration_s == 30.0
        assert settings.disconnect_check_interval_s == pytest.approx(0.1)

    def test_app_from_config_serves_requests(self, temp_dir):
        """Test the full config-to-app path against a disk store."""
        config = Config()
        config.set("store.data_dir", str(temp_dir))

        with TestClient(create_app_from_config(config)) as client:
            resp = client.post(
                "/produce?topic=orders",
                json={"key": "aw==", "value": "dg==", "timestamp": "2024-01-02T03:04:05Z"},
            )
            consumed = client.get("/consume?topic=orders&offset=0")

        assert resp.status_code == 201
        assert consumed.json()["value"] == "dg=="

    def test_main_rejects_invalid_config(self, temp_dir, capsys):
        """Test that bad configuration exits before serving."""
        path = temp_dir / "bad.yaml"
        path.write_text("store:\n  disk_io_threads: 0\n")

        reset_config()
        try:
            assert main(["--config", str(path)]) == 2
        finally:
            reset_config()

        assert "store.disk_io_threads" in capsys.readouterr().err
