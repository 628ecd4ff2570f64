# N8S v2.1 - nginx config rendering
import logging
import re
from pathlib import Path

from config import HEALTH_PATH, LEGACY_CONF_NAMES
from router.errors import ValidationError

logger = logging.getLogger(__name__)

FRAGMENT_TEMPLATE = '''# n8s route {name} (port {port})
location {path} {{
    proxy_pass http://127.0.0.1:{backend_port}/;
    proxy_http_version 1.1;
    proxy_set_header Upgrade $http_upgrade;
    proxy_set_header Connection "upgrade";
    proxy_set_header Host $host;
    proxy_set_header X-Real-IP $remote_addr;
    proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;
    proxy_set_header X-Forwarded-Proto $scheme;
}}
'''

SERVER_TEMPLATE = '''server {{
    listen {port}{default};
    listen [::]:{port}{default};
    server_name _;

    location = {health_path} {{
        access_log off;
        return 200 'ok\\n';
        add_header Content-Type text/plain;
    }}

    location = / {{
        return 200 'n8s router is alive on port {port}\\n';
        add_header Content-Type text/plain;
    }}

    include {routes_dir}/{port}-*.conf;
}}
'''

LOCATION_RE = re.compile(r'^\s*location\s+(\S+)\s*\{', re.MULTILINE)
PROXY_PASS_RE = re.compile(r'proxy_pass\s+http://127\.0\.0\.1:(\d+)/;')


def render_fragment(route):
    return FRAGMENT_TEMPLATE.format(
        name=route.name,
        port=route.port,
        path=route.path,
        backend_port=route.backend_port,
    )


def parse_fragment(text):
    '''Return (path, backend_port) from a fragment written by render_fragment'''
    location = LOCATION_RE.search(text)
    proxy_pass = PROXY_PASS_RE.search(text)
    if not location or not proxy_pass:
        raise ValidationError("Not an n8s route fragment")
    return location.group(1), int(proxy_pass.group(1))


def render_server_config(config):
    '''One server block per listening port, first port is the default listener'''
    blocks = []
    for index, port in enumerate(config.ports):
        blocks.append(SERVER_TEMPLATE.format(
            port=port,
            default=' default_server' if index == 0 else '',
            health_path=HEALTH_PATH,
            routes_dir=config.routes_dir,
        ))
    header = '# Managed by n8s. Regenerated on every route change, do not edit.\n\n'
    return header + '\n'.join(blocks)


def fragment_path(routes_dir, route):
    return Path(routes_dir) / route.fragment_name


def write_fragment(routes_dir, route):
    path = fragment_path(routes_dir, route)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_fragment(route), encoding='utf-8')
    logger.debug("Wrote fragment %s", path)
    return path


def enabled_link_path(nginx_conf):
    '''sites-available/<name> -> sites-enabled/<name>'''
    nginx_conf = Path(nginx_conf)
    return nginx_conf.parent.parent / 'sites-enabled' / nginx_conf.name


def write_server_config(config):
    path = Path(config.nginx_conf)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_server_config(config), encoding='utf-8')
    return path


def activate(nginx_conf):
    '''Point the sites-enabled symlink at nginx_conf, replacing any old link'''
    nginx_conf = Path(nginx_conf)
    link = enabled_link_path(nginx_conf)
    link.parent.mkdir(parents=True, exist_ok=True)
    if link.is_symlink() or link.exists():
        link.unlink()
    link.symlink_to(nginx_conf)
    return link


def legacy_artifact_paths(nginx_conf):
    '''Server configs and enabled links of schema versions 1 and 2'''
    nginx_conf = Path(nginx_conf)
    paths = []
    for name in LEGACY_CONF_NAMES:
        if name == nginx_conf.name:
            continue
        paths.extend([nginx_conf.parent / name, enabled_link_path(nginx_conf.parent / name)])
    return paths


def remove_legacy_artifacts(nginx_conf):
    '''Delete server configs left behind by schema versions 1 and 2'''
    removed = []
    for candidate in legacy_artifact_paths(nginx_conf):
        if candidate.is_symlink() or candidate.exists():
            candidate.unlink()
            removed.append(candidate)
            logger.info("Removed deprecated nginx config %s", candidate)
    return removed
