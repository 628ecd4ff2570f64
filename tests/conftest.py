"""Shared fixtures: a fake command runner and a store rooted in tmp_path."""

import subprocess
from pathlib import Path
from types import SimpleNamespace

import pytest

from router.errors import ExternalCommandError
from router.executor import NginxService
from router.models import RouterConfig
from router.store import RouterStore

PUBLIC_IP = "203.0.113.7"


class FakeRunner:
    """Stands in for CommandRunner.

    `nginx -t` fails when any fragment in routes_dir contains BROKEN, or
    when nginx_ok is False. Other commands succeed unless a response is
    registered for their prefix.
    """

    def __init__(self, routes_dir, binaries=("nginx", "docker", "systemctl")):
        self.routes_dir = Path(routes_dir)
        self.binaries = set(binaries)
        self.nginx_ok = True
        self.responses = {}
        self.calls = []

    def which(self, name):
        return f"/usr/bin/{name}" if name in self.binaries else None

    def run(self, command, check=True, timeout=None, cwd=None, message=None):
        command = [str(part) for part in command]
        self.calls.append(command)
        if command[0] not in self.binaries:
            raise ExternalCommandError(command, output=f"{command[0]}: command not found")

        returncode, stdout, stderr = self._respond(command)
        if check and returncode != 0:
            raise ExternalCommandError(command, returncode, stderr + stdout)
        return subprocess.CompletedProcess(command, returncode, stdout, stderr)

    def _respond(self, command):
        if command[:2] == ["nginx", "-t"]:
            broken = []
            if self.routes_dir.exists():
                broken = [p.name for p in sorted(self.routes_dir.glob("*.conf"))
                          if "BROKEN" in p.read_text()]
            if broken or not self.nginx_ok:
                where = broken[0] if broken else "n8s-router.conf"
                return 1, "", f"nginx: [emerg] unknown directive in {where}\nnginx: configuration file test failed\n"
            return 0, "", "nginx: configuration file /etc/nginx/nginx.conf test is successful\n"

        for prefix, response in self.responses.items():
            if tuple(command[:len(prefix)]) == prefix:
                return response
        return 0, "", ""

    def commands(self, *prefix):
        return [c for c in self.calls if c[:len(prefix)] == list(prefix)]


class FakeProbe:
    def __init__(self, observed=None):
        self.observed = dict(observed or {})

    def observe(self):
        return dict(self.observed)


@pytest.fixture
def paths(tmp_path):
    nginx_dir = tmp_path / "nginx"
    return SimpleNamespace(
        config_file=tmp_path / "n8s" / "config.env",
        nginx_dir=nginx_dir,
        routes_dir=nginx_dir / "n8s-routes",
        nginx_conf=nginx_dir / "sites-available" / "n8s-router.conf",
        enabled_dir=nginx_dir / "sites-enabled",
        app_dir=tmp_path / "n8n",
    )


@pytest.fixture
def runner(paths):
    return FakeRunner(paths.routes_dir)


@pytest.fixture
def probe():
    return FakeProbe()


@pytest.fixture
def store(paths, runner, probe):
    return RouterStore(
        config_file=paths.config_file,
        runner=runner,
        nginx=NginxService(runner),
        probe=probe,
        ip_resolver=lambda: PUBLIC_IP,
    )


@pytest.fixture
def config(store, paths):
    """A saved single-port config with no routes"""
    config = RouterConfig(
        primary_port=1440,
        ports=[1440],
        public_host=PUBLIC_IP,
        routes_dir=paths.routes_dir,
        app_dir=paths.app_dir,
        nginx_conf=paths.nginx_conf,
    )
    store.save(config)
    return config
