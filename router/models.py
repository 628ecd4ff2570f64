# N8S v2.1
import copy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from router.errors import ValidationError
from config import (
    DEFAULT_PORT, PUBLIC_IP_FALLBACK, ROUTES_DIR, APP_DIR, NGINX_CONF
)

# Components whose provisioning state is tracked in the config file
COMPONENTS = ('n8n', 'docker', 'nginx')


@dataclass
class Route:
    """One location block: (port, path) -> 127.0.0.1:backend_port"""
    port: int
    path: str
    backend_port: int
    name: str

    @property
    def key(self) -> Tuple[int, str]:
        return (self.port, self.path)

    @property
    def mapping_key(self) -> str:
        '''Composite key as written in the config file, e.g. "1440:/api/"'''
        return f"{self.port}:{self.path}"

    @property
    def fragment_name(self) -> str:
        return f"{self.port}-{self.name}.conf"


@dataclass
class RouterConfig:
    """Persisted router state for one host"""
    primary_port: int = DEFAULT_PORT
    ports: List[int] = field(default_factory=lambda: [DEFAULT_PORT])
    public_host: str = PUBLIC_IP_FALLBACK
    routes_dir: Path = ROUTES_DIR
    app_dir: Path = APP_DIR
    nginx_conf: Path = NGINX_CONF
    installed: Dict[str, bool] = field(default_factory=lambda: {c: False for c in COMPONENTS})
    routes: Dict[Tuple[int, str], Route] = field(default_factory=dict)

    def copy(self) -> 'RouterConfig':
        return copy.deepcopy(self)

    def is_installed(self, component: str) -> bool:
        return self.installed.get(component, False)

    def routes_for_port(self, port: int) -> List[Route]:
        return sorted(
            (r for r in self.routes.values() if r.port == port),
            key=lambda r: r.path
        )

    def find_routes_by_name(self, name: str, port: Optional[int] = None) -> List[Route]:
        return [
            r for r in self.ordered_routes()
            if r.name == name and (port is None or r.port == port)
        ]

    def ordered_routes(self) -> List[Route]:
        '''Routes in port order, then by path'''
        ordered = []
        for port in self.ports:
            ordered.extend(self.routes_for_port(port))
        return ordered

    def url_for(self, route: Route) -> str:
        return f"http://{self.public_host}:{route.port}{route.path}"

    def check_invariants(self):
        '''Raise ValidationError if the aggregate is inconsistent'''
        if not self.ports:
            raise ValidationError("At least one listening port is required")
        if len(set(self.ports)) != len(self.ports):
            raise ValidationError(f"Duplicate listening ports: {self.ports}")
        if self.primary_port != self.ports[0]:
            raise ValidationError(
                f"Primary port {self.primary_port} must be the first listening port"
            )
        for (port, path), route in self.routes.items():
            if port not in self.ports:
                raise ValidationError(f"Route {port}:{path} references unknown port {port}")
            if route.key != (port, path):
                raise ValidationError(f"Route {route.mapping_key} stored under {port}:{path}")
