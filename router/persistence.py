# N8S v2.1 - config.env reader/writer
'''
The config file keeps the shell-compatible layout of earlier n8s versions
(KEY=value lines, an NGINX_PORTS=( ... ) list and PORT_MAPPINGS["port:path"]
entries) but is only ever parsed, never sourced or executed.
'''
import fcntl
import logging
import os
import re
import shlex
import stat
import tempfile
from contextlib import contextmanager
from pathlib import Path

from config import DEFAULT_PORT, PUBLIC_IP_FALLBACK, ROUTES_DIR, APP_DIR, NGINX_CONF
from router.errors import ValidationError
from router.models import COMPONENTS, Route, RouterConfig
from utils.validation import normalize_path, sanitize_route_name, validate_port

logger = logging.getLogger(__name__)

HEADER = '# Managed by n8s. Parsed, never executed. Manual edits are overwritten.'

PORTS_RE = re.compile(r'^NGINX_PORTS=\((.*)\)$')
ENTRY_RE = re.compile(r'^(PORT_MAPPINGS|ROUTE_NAMES)\[(.+?)\]=(.*)$')
ASSIGN_RE = re.compile(r'^([A-Z][A-Z0-9_]*)=(.*)$')
# v1 files were written with `declare -p PORT_MAPPINGS`
LEGACY_DECLARE_RE = re.compile(r'^declare\s+-A\s+PORT_MAPPINGS=\((.*)\)$')
LEGACY_ITEM_RE = re.compile(r'\["([^"]*)"\]="([^"]*)"')

KNOWN_SCALARS = {'NGINX_PORT', 'SERVER_IP', 'N8N_DIR', 'ROUTES_DIR', 'NGINX_CONF'}


def _unquote(raw, lineno):
    try:
        tokens = shlex.split(raw)
    except ValueError as e:
        raise ValidationError(f"Config line {lineno}: {e}")
    if len(tokens) > 1:
        raise ValidationError(f"Config line {lineno}: expected a single value, got {raw!r}")
    return tokens[0] if tokens else ''


def _parse_bool(value):
    return value.strip().lower() == 'true'


def _legacy_route_name(path):
    return sanitize_route_name(path.strip('/').replace('/', '-') or 'root')


def dumps(config):
    '''Serialize a RouterConfig to config.env text'''
    config.check_invariants()

    lines = [
        HEADER,
        f"NGINX_PORT={config.primary_port}",
        f"SERVER_IP={shlex.quote(config.public_host)}",
    ]

    extra = sorted(c for c in config.installed if c not in COMPONENTS)
    for component in list(COMPONENTS) + extra:
        flag = 'true' if config.is_installed(component) else 'false'
        lines.append(f"{component.upper()}_INSTALLED={flag}")

    lines.extend([
        f"N8N_DIR={shlex.quote(str(config.app_dir))}",
        f"ROUTES_DIR={shlex.quote(str(config.routes_dir))}",
        f"NGINX_CONF={shlex.quote(str(config.nginx_conf))}",
        f"NGINX_PORTS=( {' '.join(str(p) for p in config.ports)} )",
        'declare -A PORT_MAPPINGS ROUTE_NAMES',
    ])

    for route in config.ordered_routes():
        lines.append(f"PORT_MAPPINGS[\"{route.mapping_key}\"]='{route.backend_port}'")
        lines.append(f"ROUTE_NAMES[\"{route.mapping_key}\"]='{route.name}'")

    return '\n'.join(lines) + '\n'


def loads(text):
    '''Parse config.env text into a RouterConfig'''
    scalars = {}
    ports = None
    mappings = {}
    names = {}

    for lineno, raw_line in enumerate(text.splitlines(), 1):
        line = raw_line.strip()
        if not line or line.startswith('#'):
            continue

        m = PORTS_RE.match(line)
        if m:
            ports = [validate_port(tok) for tok in shlex.split(m.group(1))]
            continue

        m = LEGACY_DECLARE_RE.match(line)
        if m:
            for key, value in LEGACY_ITEM_RE.findall(m.group(1)):
                mappings[key] = value
            continue

        if line.startswith('declare '):
            continue

        m = ENTRY_RE.match(line)
        if m:
            target = mappings if m.group(1) == 'PORT_MAPPINGS' else names
            target[_unquote(m.group(2), lineno)] = _unquote(m.group(3), lineno)
            continue

        m = ASSIGN_RE.match(line)
        if m:
            scalars[m.group(1)] = _unquote(m.group(2), lineno)
            continue

        raise ValidationError(f"Config line {lineno} is malformed: {line}")

    primary_port = validate_port(scalars.get('NGINX_PORT', DEFAULT_PORT))

    if not ports:
        ports = [primary_port]
    if len(set(ports)) != len(ports):
        raise ValidationError(f"Duplicate ports in NGINX_PORTS: {ports}")
    if ports[0] != primary_port:
        logger.warning("NGINX_PORT %s is not first in NGINX_PORTS, reordering", primary_port)
        ports = [primary_port] + [p for p in ports if p != primary_port]

    installed = {c: False for c in COMPONENTS}
    for key, value in scalars.items():
        if key.endswith('_INSTALLED'):
            installed[key[:-len('_INSTALLED')].lower()] = _parse_bool(value)
        elif key not in KNOWN_SCALARS:
            logger.warning("Ignoring unknown config key %s", key)

    config = RouterConfig(
        primary_port=primary_port,
        ports=ports,
        public_host=scalars.get('SERVER_IP') or PUBLIC_IP_FALLBACK,
        routes_dir=Path(scalars.get('ROUTES_DIR') or ROUTES_DIR),
        app_dir=Path(scalars.get('N8N_DIR') or APP_DIR),
        nginx_conf=Path(scalars.get('NGINX_CONF') or NGINX_CONF),
        installed=installed,
    )

    for key, value in mappings.items():
        port_part, sep, path_part = key.partition(':')
        if sep and port_part.isdigit():
            port = validate_port(port_part)
            path = normalize_path(path_part)
        else:
            # v1 keys carry only the path and belong to the primary port
            port = primary_port
            path = normalize_path(key)

        if port not in config.ports:
            raise ValidationError(f"Route {key} references port {port} missing from NGINX_PORTS")

        name = names.get(key)
        name = sanitize_route_name(name) if name else _legacy_route_name(path)

        route = Route(port=port, path=path, backend_port=validate_port(value), name=name)
        config.routes[route.key] = route

    config.check_invariants()
    return config


def read_config(path):
    '''Load the config file. Returns None if it does not exist yet.'''
    path = Path(path)
    if not path.exists():
        return None
    return loads(path.read_text(encoding='utf-8'))


def write_config(path, config):
    '''Replace the config file atomically with mode 0600'''
    path = Path(path)
    text = dumps(config)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix='.config.', suffix='.tmp')
    try:
        os.fchmod(fd, stat.S_IRUSR | stat.S_IWUSR)
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise

    logger.debug("Saved router config to %s", path)


@contextmanager
def file_lock(lock_path):
    '''Exclusive advisory lock held for a load-mutate-save sequence'''
    lock_path = Path(lock_path)
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    with open(lock_path, 'a') as handle:
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
