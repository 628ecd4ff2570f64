# N8S v2.1 - Router configuration store
'''
RouterStore owns the persisted router config and the nginx files derived
from it. Every mutation follows the same order:

    write fragment(s) -> regenerate server config -> nginx -t
        -> valid:   save config, reload nginx
        -> invalid: undo the file changes, raise ConfigInvalidError

so a route is only ever persisted once nginx has accepted it. The store
does not lock by itself; callers wrap load-mutate-save in `locked()`.
'''
import logging
import os
from pathlib import Path

from config import CONFIG_FILE, LOCK_FILE, AUDIT_LOG_FILE, DEFAULT_PORT, APP_DIR
from router import nginx as nginx_files
from router.errors import ConfigInvalidError, ExternalCommandError, NotFoundError, ValidationError
from router.executor import CommandRunner, NginxService
from router.models import Route, RouterConfig
from router.persistence import file_lock, read_config, write_config
from router.reconcile import SystemProbe, reconcile as reconcile_flags
from utils.audit_logger import AuditEventType, AuditLogger
from utils.docker_utils import restart_app, update_app_descriptor
from utils.system import detect_public_ip
from utils.validation import normalize_path, sanitize_route_name, validate_port

logger = logging.getLogger(__name__)


def _snapshot(path):
    '''Current text of a file, or None if it does not exist'''
    path = Path(path)
    return path.read_text(encoding='utf-8') if path.exists() else None


def _restore(path, text):
    path = Path(path)
    if text is None:
        if path.is_symlink() or path.exists():
            path.unlink()
    else:
        path.write_text(text, encoding='utf-8')


def _snapshot_entry(path):
    '''("link", target), ("file", text), or None if nothing is there'''
    path = Path(path)
    if path.is_symlink():
        return ('link', os.readlink(path))
    if path.exists():
        return ('file', path.read_text(encoding='utf-8'))
    return None


def _restore_entry(path, entry):
    path = Path(path)
    if path.is_symlink() or path.exists():
        path.unlink()
    if entry is None:
        return
    kind, value = entry
    path.parent.mkdir(parents=True, exist_ok=True)
    if kind == 'link':
        path.symlink_to(value)
    else:
        path.write_text(value, encoding='utf-8')


class RouterStore:
    """Persistence and nginx reconciliation for a RouterConfig"""

    def __init__(self, config_file=CONFIG_FILE, runner=None, nginx=None, probe=None,
                 audit=None, ip_resolver=detect_public_ip):
        self.config_file = Path(config_file)
        if self.config_file == CONFIG_FILE:
            self.lock_file = LOCK_FILE
            audit_file = AUDIT_LOG_FILE
        else:
            self.lock_file = self.config_file.parent / LOCK_FILE.name
            audit_file = self.config_file.parent / AUDIT_LOG_FILE.name
        self.runner = runner or CommandRunner()
        self.nginx = nginx or NginxService(self.runner)
        self.probe = probe or SystemProbe(self.runner)
        self.audit = audit or AuditLogger(audit_file)
        self.ip_resolver = ip_resolver

    # ── Persistence ───────────────────────────────────────────────────────

    def exists(self):
        return self.config_file.exists()

    def locked(self):
        return file_lock(self.lock_file)

    def initialize(self, primary_port=DEFAULT_PORT, app_dir=None, public_host=None):
        '''Create and persist a fresh config (first run)'''
        primary_port = validate_port(primary_port)
        config = RouterConfig(
            primary_port=primary_port,
            ports=[primary_port],
            public_host=public_host or self.ip_resolver(),
            app_dir=Path(app_dir).expanduser() if app_dir else APP_DIR,
        )
        self.save(config)
        logger.info("Created router config %s (port %s)", self.config_file, primary_port)
        return config

    def load(self, reconcile=True):
        config = read_config(self.config_file)
        if config is None:
            config = self.initialize()

        if reconcile:
            report = self.reconcile(config)
            if report.changed:
                self.save(report.config)
                self.audit.log_event(
                    AuditEventType.FLAGS_RECONCILED, 'installed',
                    {c.component: c.observed for c in report.changes}
                )
            config = report.config

        return config

    def save(self, config):
        write_config(self.config_file, config)

    def reconcile(self, config):
        '''Compare stored install flags with the live system (no side effects)'''
        return reconcile_flags(config, self.probe.observe())

    # ── nginx ─────────────────────────────────────────────────────────────

    def regenerate_proxy_config(self, config):
        '''Render and activate the server config for every listening port'''
        routes_dir = Path(config.routes_dir)
        routes_dir.mkdir(parents=True, exist_ok=True)

        for route in config.ordered_routes():
            fragment = nginx_files.fragment_path(routes_dir, route)
            if not fragment.exists():
                nginx_files.write_fragment(routes_dir, route)
                logger.warning("Restored missing fragment %s", fragment)

        path = nginx_files.write_server_config(config)
        nginx_files.activate(path)
        nginx_files.remove_legacy_artifacts(path)
        logger.debug("Regenerated %s for ports %s", path, config.ports)
        return path

    def validate_and_apply(self):
        '''nginx -t, then reload. A rejected config is never reloaded.'''
        ok, output = self.nginx.test_config()
        if not ok:
            raise ConfigInvalidError("nginx rejected the configuration, nothing was reloaded", output)
        self.nginx.reload()

    def apply(self, config):
        '''Regenerate and reload from config as-is (menu "Regenerate")'''
        self._commit(config)
        self.audit.log_event(AuditEventType.CONFIG_REGENERATED, str(config.nginx_conf))
        return config

    def _commit(self, updated, undo=None):
        conf_path = Path(updated.nginx_conf)
        # Everything regenerate_proxy_config may write, repoint or delete
        watched = [conf_path, nginx_files.enabled_link_path(conf_path)]
        watched.extend(nginx_files.legacy_artifact_paths(conf_path))
        previous = {p: _snapshot_entry(p) for p in watched}

        def rollback():
            if undo:
                undo()
            for p, entry in previous.items():
                _restore_entry(p, entry)

        try:
            self.regenerate_proxy_config(updated)
            ok, output = self.nginx.test_config()
        except (OSError, ExternalCommandError):
            rollback()
            raise

        if not ok:
            rollback()
            raise ConfigInvalidError(
                "nginx rejected the new configuration; the previous configuration is still active",
                output
            )

        self.save(updated)
        self.nginx.reload()

    # ── Operations ────────────────────────────────────────────────────────

    def add_port(self, config, port):
        port = validate_port(port)
        if port in config.ports:
            raise ValidationError(f"Port {port} is already a listening port")

        updated = config.copy()
        updated.ports.append(port)
        self._commit(updated)

        self.audit.log_event(AuditEventType.PORT_ADDED, str(port))
        logger.info("Added listening port %s", port)
        return updated

    def add_route(self, config, port, path, name, backend_port):
        port = validate_port(port)
        if port not in config.ports:
            raise ValidationError(f"Port {port} is not a listening port, add it first")
        path = normalize_path(path)
        name = sanitize_route_name(name)
        if backend_port is None or not str(backend_port).strip():
            raise ValidationError("Backend port is required")
        backend_port = validate_port(backend_port)

        route = Route(port=port, path=path, backend_port=backend_port, name=name)
        routes_dir = Path(config.routes_dir)
        new_fragment = nginx_files.fragment_path(routes_dir, route)

        # Same (port, path) or same fragment name on this port: the new route wins
        displaced = [r for r in config.routes.values()
                     if r.key == route.key or (r.port == port and r.name == name)]

        updated = config.copy()
        for old in displaced:
            del updated.routes[old.key]
        updated.routes[route.key] = route

        touched = {new_fragment} | {nginx_files.fragment_path(routes_dir, r) for r in displaced}
        snapshots = {p: _snapshot(p) for p in touched}

        def undo():
            for p, text in snapshots.items():
                _restore(p, text)

        for p in touched - {new_fragment}:
            if p.exists():
                p.unlink()
        nginx_files.write_fragment(routes_dir, route)

        try:
            self._commit(updated, undo)
        except ConfigInvalidError as e:
            self.audit.log_event(AuditEventType.ROUTE_REJECTED, route.mapping_key,
                                 {'name': name, 'backend_port': backend_port, 'output': e.output})
            raise

        self.audit.log_event(AuditEventType.ROUTE_ADDED, route.mapping_key,
                             {'name': name, 'backend_port': backend_port})
        logger.info("Added route %s -> 127.0.0.1:%s", route.mapping_key, backend_port)
        return updated

    def remove_route(self, config, name, port=None):
        name = sanitize_route_name(name)
        if port is not None:
            port = validate_port(port)

        matches = config.find_routes_by_name(name, port)
        if not matches:
            where = f" on port {port}" if port is not None else ""
            raise NotFoundError(f"No route named '{name}'{where}")
        if len(matches) > 1:
            ports = ', '.join(str(r.port) for r in matches)
            raise ValidationError(f"Route '{name}' exists on ports {ports}, specify the port")

        route = matches[0]
        fragment = nginx_files.fragment_path(config.routes_dir, route)
        previous = _snapshot(fragment)
        if previous is None:
            logger.warning("Fragment %s was already missing", fragment)

        updated = config.copy()
        del updated.routes[route.key]
        if fragment.exists():
            fragment.unlink()

        self._commit(updated, lambda: _restore(fragment, previous))

        self.audit.log_event(AuditEventType.ROUTE_REMOVED, route.mapping_key, {'name': name})
        logger.info("Removed route %s (%s)", route.mapping_key, name)
        return updated

    def change_settings(self, config, primary_port=None, public_host=None, app_dir=None):
        updated = config.copy()
        changes = {}

        if public_host is not None:
            host = str(public_host).strip()
            if not host or any(c.isspace() for c in host):
                raise ValidationError("Server host must be a non-empty hostname or IP")
            if host != updated.public_host:
                updated.public_host = host
                changes['public_host'] = host

        if app_dir is not None:
            if not str(app_dir).strip():
                raise ValidationError("App directory must not be empty")
            new_dir = Path(str(app_dir).strip()).expanduser()
            if new_dir != updated.app_dir:
                updated.app_dir = new_dir
                changes['app_dir'] = str(new_dir)

        undo = None
        if primary_port is not None:
            new_port = validate_port(primary_port)
            old_port = updated.primary_port
            if new_port != old_port:
                if new_port in updated.ports:
                    raise ValidationError(f"Port {new_port} is already a listening port")
                undo = self._move_primary_port(updated, old_port, new_port)
                changes['primary_port'] = new_port

        if not changes:
            return config

        if 'primary_port' in changes:
            self._commit(updated, undo)
        else:
            self.save(updated)

        urls_changed = 'primary_port' in changes or 'public_host' in changes
        if urls_changed and updated.is_installed('n8n'):
            if update_app_descriptor(updated.app_dir, updated.public_host, updated.primary_port):
                restart_app(self.runner, updated.app_dir)

        self.audit.log_event(AuditEventType.SETTINGS_CHANGED, 'settings', changes)
        return updated

    def _move_primary_port(self, config, old_port, new_port):
        '''Re-key the primary port's routes in place. Returns an undo callable.'''
        routes_dir = Path(config.routes_dir)
        config.ports[0] = new_port
        config.primary_port = new_port

        moved = [r for r in config.routes.values() if r.port == old_port]
        snapshots = {}
        for old in moved:
            del config.routes[old.key]
            new = Route(port=new_port, path=old.path, backend_port=old.backend_port, name=old.name)
            config.routes[new.key] = new

            old_fragment = nginx_files.fragment_path(routes_dir, old)
            new_fragment = nginx_files.fragment_path(routes_dir, new)
            snapshots[old_fragment] = _snapshot(old_fragment)
            snapshots[new_fragment] = _snapshot(new_fragment)
            nginx_files.write_fragment(routes_dir, new)
            if old_fragment.exists():
                old_fragment.unlink()

        def undo():
            for p, text in snapshots.items():
                _restore(p, text)

        return undo

    def provision_proxy(self, config):
        '''Set up the router on a host where nginx is already installed'''
        if not self.nginx.is_installed():
            raise ExternalCommandError(
                ['nginx'],
                output="nginx is not installed. Install it with your package manager "
                       "(e.g. apt install nginx) and run provisioning again."
            )

        updated = config.copy()
        updated.installed['nginx'] = True
        Path(updated.routes_dir).mkdir(parents=True, exist_ok=True)

        # The distribution's default site also claims default_server
        default_site = nginx_files.enabled_link_path(updated.nginx_conf).parent / 'default'
        default_target = None
        if default_site.is_symlink():
            default_target = os.readlink(default_site)
            default_site.unlink()

        def undo():
            if default_target is not None and not default_site.is_symlink():
                default_site.symlink_to(default_target)

        self.nginx.enable_now()
        self._commit(updated, undo)

        self.audit.log_event(AuditEventType.PROXY_PROVISIONED, str(updated.nginx_conf),
                             {'ports': updated.ports})
        return updated

    def list_routes(self, config):
        '''[(route, url)] in port order, then path'''
        return [(route, config.url_for(route)) for route in config.ordered_routes()]
