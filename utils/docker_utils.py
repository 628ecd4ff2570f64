import logging
from pathlib import Path

import yaml

from config import APP_COMPOSE_FILE
from router.errors import ExternalCommandError

logger = logging.getLogger(__name__)


def get_docker_compose_command(runner):
    """Get the correct docker compose command for the system"""
    for candidate in (['docker', 'compose'], ['docker-compose']):
        try:
            result = runner.run(candidate + ['version'], check=False, timeout=10)
        except ExternalCommandError:
            continue
        if result.returncode == 0:
            return candidate

    # Default to new format (will provide helpful error if neither available)
    return ['docker', 'compose']


def container_exists(runner, name):
    """True if a container with exactly this name exists (running or not)."""
    try:
        result = runner.run(
            ['docker', 'ps', '-a', '--filter', f'name=^{name}$', '--format', '{{.Names}}'],
            check=False,
            timeout=10
        )
    except ExternalCommandError:
        return False
    if result.returncode != 0:
        return False
    return name in result.stdout.split()


def app_urls(public_host, port):
    '''Editor and webhook URLs n8n must advertise behind the router'''
    return {
        'N8N_EDITOR_BASE_URL': f"http://{public_host}:{port}/n8n/",
        'WEBHOOK_URL': f"http://{public_host}:{port}/",
    }


def update_app_descriptor(app_dir, public_host, port):
    '''Rewrite the n8n URLs in <app_dir>/docker-compose.yml.

    Returns True if the file changed, False if it is missing or already current.
    '''
    compose_file = Path(app_dir) / APP_COMPOSE_FILE
    if not compose_file.exists():
        return False

    with open(compose_file, 'r') as f:
        compose = yaml.safe_load(f) or {}

    urls = app_urls(public_host, port)
    changed = False

    for service in (compose.get('services') or {}).values():
        env = service.get('environment')
        if isinstance(env, dict):
            for key, value in urls.items():
                if key in env and env[key] != value:
                    env[key] = value
                    changed = True
        elif isinstance(env, list):
            for i, entry in enumerate(env):
                key = str(entry).split('=', 1)[0]
                if key in urls and entry != f"{key}={urls[key]}":
                    env[i] = f"{key}={urls[key]}"
                    changed = True

    if changed:
        with open(compose_file, 'w') as f:
            yaml.dump(compose, f, default_flow_style=False, sort_keys=False)
        logger.info("Updated app URLs in %s", compose_file)

    return changed


def restart_app(runner, app_dir):
    """Recreate the app containers so they pick up a changed descriptor."""
    compose_cmd = get_docker_compose_command(runner)
    compose_file = Path(app_dir) / APP_COMPOSE_FILE
    runner.run(
        compose_cmd + ['-f', str(compose_file), 'up', '-d'],
        cwd=str(app_dir),
        message="Restarting n8n"
    )
