"""Tests for router.nginx: fragment and server config rendering."""

from pathlib import Path

import pytest

from router.errors import ValidationError
from router.models import Route, RouterConfig
from router.nginx import (
    activate, enabled_link_path, parse_fragment, remove_legacy_artifacts,
    render_fragment, render_server_config, write_fragment,
)


class TestFragment:
    def test_render(self) -> None:
        text = render_fragment(Route(port=1440, path="/api/", backend_port=8080, name="api1"))
        assert "location /api/ {" in text
        assert "proxy_pass http://127.0.0.1:8080/;" in text
        assert "proxy_set_header Upgrade $http_upgrade;" in text
        assert 'proxy_set_header Connection "upgrade";' in text
        assert "proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;" in text
        assert "proxy_set_header X-Forwarded-Proto $scheme;" in text

    def test_parse_back(self) -> None:
        route = Route(port=9443, path="/x/y/", backend_port=9000, name="xy")
        assert parse_fragment(render_fragment(route)) == ("/x/y/", 9000)

    def test_parse_foreign_file(self) -> None:
        with pytest.raises(ValidationError):
            parse_fragment("server { listen 80; }")

    def test_written_with_port_prefix(self, tmp_path) -> None:
        path = write_fragment(tmp_path / "routes", Route(port=1440, path="/a/", backend_port=1, name="a"))
        assert path == tmp_path / "routes" / "1440-a.conf"


class TestServerConfig:
    def make_config(self, ports) -> RouterConfig:
        return RouterConfig(primary_port=ports[0], ports=ports, routes_dir=Path("/etc/nginx/n8s-routes"))

    def test_one_block_per_port_in_order(self) -> None:
        text = render_server_config(self.make_config([1440, 9443, 8080]))
        listens = [line.strip() for line in text.splitlines() if line.strip().startswith("listen ")]
        assert listens == [
            "listen 1440 default_server;",
            "listen [::]:1440 default_server;",
            "listen 9443;",
            "listen [::]:9443;",
            "listen 8080;",
            "listen [::]:8080;",
        ]

    def test_health_and_info_locations(self) -> None:
        text = render_server_config(self.make_config([1440]))
        assert "location = /health {" in text
        assert "location = / {" in text
        assert "include /etc/nginx/n8s-routes/1440-*.conf;" in text

    def test_deterministic(self) -> None:
        config = self.make_config([1440, 9443])
        assert render_server_config(config) == render_server_config(config.copy())


class TestActivation:
    def test_enabled_link_path(self) -> None:
        conf = Path("/etc/nginx/sites-available/n8s-router.conf")
        assert enabled_link_path(conf) == Path("/etc/nginx/sites-enabled/n8s-router.conf")

    def test_activate_replaces_regular_file(self, tmp_path) -> None:
        conf = tmp_path / "sites-available" / "n8s-router.conf"
        conf.parent.mkdir()
        conf.write_text("server {}\n")
        enabled = tmp_path / "sites-enabled"
        enabled.mkdir()
        (enabled / "n8s-router.conf").write_text("copied by hand\n")

        link = activate(conf)

        assert link.is_symlink()
        assert link.read_text() == "server {}\n"

    def test_legacy_cleanup_keeps_current_name(self, tmp_path) -> None:
        available = tmp_path / "sites-available"
        available.mkdir()
        current = available / "8443-router.conf"
        current.write_text("server {}\n")

        assert remove_legacy_artifacts(current) == []
        assert current.exists()
