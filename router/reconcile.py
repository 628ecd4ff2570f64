# N8S v2.1 - align stored install flags with the live system
import logging
from dataclasses import dataclass, field
from typing import Dict, List

import psutil

from config import APP_CONTAINER
from router.models import RouterConfig
from utils.docker_utils import container_exists

logger = logging.getLogger(__name__)


@dataclass
class FlagChange:
    component: str
    stored: bool
    observed: bool

    def describe(self):
        before = 'installed' if self.stored else 'not installed'
        after = 'installed' if self.observed else 'not installed'
        return f"{self.component}: {before} -> {after}"


@dataclass
class ReconcileReport:
    config: RouterConfig
    changes: List[FlagChange] = field(default_factory=list)

    @property
    def changed(self):
        return bool(self.changes)


class SystemProbe:
    """Observes what is actually installed and running on this host"""

    def __init__(self, runner, app_container=APP_CONTAINER):
        self.runner = runner
        self.app_container = app_container

    def nginx_running(self):
        for proc in psutil.process_iter(['name']):
            try:
                if proc.info['name'] == 'nginx':
                    return True
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue
        return False

    def observe(self) -> Dict[str, bool]:
        nginx = self.runner.which('nginx') is not None and self.nginx_running()
        docker = self.runner.which('docker') is not None
        n8n = docker and container_exists(self.runner, self.app_container)
        return {'nginx': nginx, 'docker': docker, 'n8n': n8n}


def reconcile(config, observed):
    '''Return a report whose config carries the observed flags.

    Only components present in `observed` are compared; the input config is
    not modified.
    '''
    updated = config.copy()
    report = ReconcileReport(config=updated)

    for component, actual in observed.items():
        stored = updated.is_installed(component)
        if stored != actual:
            updated.installed[component] = actual
            report.changes.append(FlagChange(component, stored, actual))
            logger.info("Reconciled %s flag: %s -> %s", component, stored, actual)

    return report
