"""Tests for the application entry point."""

import pytest
import yaml

from fdns.core.errors import LibraryInitError
from fdns.main import FDNSApp, main


@pytest.fixture
def config_file(tmp_path, resolv_conf, monkeypatch):
    for key in ("FDNS_RESOLVER_INITIAL_SERVER", "FDNS_WEB_ENABLED"):
        monkeypatch.delenv(key, raising=False)

    path = tmp_path / "fdns.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "resolver": {
                    "initial_server": "192.0.2.53",
                    "resolv_conf": resolv_conf,
                    "default_timeout_ms": 500,
                },
                "logging": {"level": "DEBUG", "format": "simple"},
                "web": {"enabled": False},
            }
        )
    )
    return str(path)


class TestFDNSApp:
    """Test application wiring"""

    def test_initialize(self, config_file):
        app = FDNSApp(config_file)
        app.initialize()
        try:
            assert app.web_server is None
            assert app.dispatcher.store.initialized
            assert app.dispatcher.get_current_server() == "192.0.2.53"
            assert app.dispatcher.default_timeout_ms == 500
            assert app.dispatcher.lookup_logger is app.lookup_logger
            assert app.dispatcher.get_systems_server() == "192.0.2.1, 192.0.2.2"
        finally:
            app.dispatcher.uninitialize()

    @pytest.mark.asyncio
    async def test_stop_uninitializes(self, config_file):
        app = FDNSApp(config_file)
        app.initialize()

        await app.stop()
        assert not app.dispatcher.store.initialized

    def test_missing_config_file(self, tmp_path):
        app = FDNSApp(str(tmp_path / "missing.yaml"))
        with pytest.raises(FileNotFoundError):
            app.initialize()

    def test_unbindable_initial_server(self, config_file, monkeypatch):
        def failing_parse(spec):
            raise LibraryInitError("bind failed")

        monkeypatch.setattr("fdns.core.channel.parse_server_spec", failing_parse)
        app = FDNSApp(config_file)
        with pytest.raises(LibraryInitError):
            app.initialize()


class TestCommandLine:
    """Test the one-shot command line mode"""

    @pytest.mark.asyncio
    async def test_resolve_once(self, config_file, fake_dns_server, capsys):
        await main(
            [
                "--config",
                config_file,
                "--resolve",
                "example.com",
                "--server",
                fake_dns_server.spec,
            ]
        )

        output = capsys.readouterr().out
        assert '"hostname": "example.com"' in output
        assert '"value": "93.184.216.34"' in output
