"""Tests for router.persistence: config.env parsing and writing."""

import fcntl
from pathlib import Path

import pytest

from router.errors import ValidationError
from router.models import Route, RouterConfig
from router.persistence import dumps, file_lock, loads, read_config, write_config


def make_config() -> RouterConfig:
    config = RouterConfig(
        primary_port=1440,
        ports=[1440, 9443],
        public_host="203.0.113.7",
        routes_dir=Path("/etc/nginx/n8s-routes"),
        app_dir=Path("/root/rfp/n8n"),
        nginx_conf=Path("/etc/nginx/sites-available/n8s-router.conf"),
        installed={"n8n": True, "docker": True, "nginx": False},
    )
    for route in (
        Route(port=1440, path="/api/", backend_port=8080, name="api1"),
        Route(port=1440, path="/n8n/", backend_port=5678, name="n8n"),
        Route(port=9443, path="/x/", backend_port=9000, name="x1"),
    ):
        config.routes[route.key] = route
    return config


class TestFormat:
    def test_layout(self) -> None:
        text = dumps(make_config())
        assert "NGINX_PORT=1440\n" in text
        assert "SERVER_IP=203.0.113.7\n" in text
        assert "N8N_INSTALLED=true\n" in text
        assert "NGINX_INSTALLED=false\n" in text
        assert "NGINX_PORTS=( 1440 9443 )\n" in text
        assert "PORT_MAPPINGS[\"1440:/api/\"]='8080'\n" in text
        assert "ROUTE_NAMES[\"9443:/x/\"]='x1'\n" in text

    def test_round_trip(self) -> None:
        config = make_config()
        assert loads(dumps(config)) == config

    def test_round_trip_quotes_odd_values(self) -> None:
        config = make_config()
        config.public_host = "my host's name"
        config.app_dir = Path("/srv/n8n data")
        assert loads(dumps(config)) == config

    def test_extra_components_survive(self) -> None:
        config = make_config()
        config.installed["redis"] = True
        text = dumps(config)
        assert "REDIS_INSTALLED=true" in text
        assert loads(text).installed["redis"] is True

    def test_dumps_refuses_inconsistent_config(self) -> None:
        config = make_config()
        config.routes[(7000, "/y/")] = Route(port=7000, path="/y/", backend_port=1, name="y")
        with pytest.raises(ValidationError):
            dumps(config)


class TestParsing:
    def test_values_are_never_executed(self, tmp_path) -> None:
        marker = tmp_path / "pwned"
        text = f"NGINX_PORT=1440\nSERVER_IP='$(touch {marker})'\n"
        config = loads(text)
        assert config.public_host == f"$(touch {marker})"
        assert not marker.exists()

    def test_malformed_line(self) -> None:
        with pytest.raises(ValidationError):
            loads("NGINX_PORT=1440\nrm -rf /\n")

    def test_unbalanced_quote(self) -> None:
        with pytest.raises(ValidationError):
            loads("SERVER_IP='oops\n")

    def test_route_on_unknown_port(self) -> None:
        with pytest.raises(ValidationError):
            loads('NGINX_PORT=1440\nNGINX_PORTS=( 1440 )\nPORT_MAPPINGS["9443:/x/"]=\'9000\'\n')

    def test_primary_port_moved_to_front(self) -> None:
        config = loads("NGINX_PORT=9443\nNGINX_PORTS=( 1440 9443 )\n")
        assert config.ports == [9443, 1440]

    def test_unknown_keys_ignored(self) -> None:
        config = loads("NGINX_PORT=1440\nFUTURE_SETTING=1\n")
        assert config.ports == [1440]

    def test_legacy_v1_file(self) -> None:
        text = (
            "NGINX_PORT=8443\n"
            "SERVER_IP=198.51.100.4\n"
            "N8N_INSTALLED=true\n"
            "DOCKER_INSTALLED=true\n"
            "N8N_DIR=/root/rfp/n8n\n"
            'declare -A PORT_MAPPINGS=(["/n8n/"]="5678" ["/api/"]="8080" )\n'
        )
        config = loads(text)

        assert config.ports == [8443]
        assert config.installed == {"n8n": True, "docker": True, "nginx": False}
        assert config.routes[(8443, "/n8n/")] == Route(port=8443, path="/n8n/", backend_port=5678, name="n8n")
        assert config.routes[(8443, "/api/")].name == "api"

    def test_names_default_from_path_when_missing(self) -> None:
        config = loads("NGINX_PORT=1440\nPORT_MAPPINGS[\"1440:/a/b/\"]='8080'\n")
        assert config.routes[(1440, "/a/b/")].name == "a-b"


class TestFiles:
    def test_missing_file(self, tmp_path) -> None:
        assert read_config(tmp_path / "nope.env") is None

    def test_write_fully_overwrites(self, tmp_path) -> None:
        path = tmp_path / "etc" / "config.env"
        path.parent.mkdir()
        path.write_text("NGINX_PORT=1\nSTALE=1\n")
        config = make_config()

        write_config(path, config)

        assert "STALE" not in path.read_text()
        assert read_config(path) == config
        assert [p.name for p in path.parent.iterdir()] == ["config.env"]

    def test_file_lock_is_reusable(self, tmp_path) -> None:
        lock = tmp_path / "locks" / ".config.lock"
        with file_lock(lock):
            assert lock.exists()
        with file_lock(lock):
            pass

    def test_file_lock_is_exclusive(self, tmp_path) -> None:
        lock = tmp_path / ".config.lock"
        with file_lock(lock):
            with open(lock, "a") as other:
                with pytest.raises(BlockingIOError):
                    fcntl.flock(other.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)

        with open(lock, "a") as other:
            fcntl.flock(other.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
            fcntl.flock(other.fileno(), fcntl.LOCK_UN)
