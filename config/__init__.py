# N8S v2.1
import os
from pathlib import Path

# Central config directory for all N8S data files
N8S_CONFIG_DIR = Path(os.environ.get('N8S_CONFIG_DIR', '/etc/n8s'))
CONFIG_FILE = N8S_CONFIG_DIR / 'config.env'
LOCK_FILE = N8S_CONFIG_DIR / '.config.lock'
AUDIT_LOG_FILE = N8S_CONFIG_DIR / 'audit.log'

# nginx layout (Debian/Ubuntu style sites-available / sites-enabled)
NGINX_DIR = Path(os.environ.get('N8S_NGINX_DIR', '/etc/nginx'))
ROUTES_DIR = NGINX_DIR / 'n8s-routes'
NGINX_CONF = NGINX_DIR / 'sites-available' / 'n8s-router.conf'

# Server config names used by schema versions 1 and 2
LEGACY_CONF_NAMES = ('8443-router.conf', 'multi-port-router.conf')

# Managed application (n8n)
APP_DIR = Path(os.environ.get('N8S_APP_DIR', str(Path.home() / 'rfp' / 'n8n')))
APP_CONTAINER = 'n8n'
APP_COMPOSE_FILE = 'docker-compose.yml'

DEFAULT_PORT = 1440
HEALTH_PATH = '/health'

PUBLIC_IP_URL = os.environ.get('N8S_PUBLIC_IP_URL', 'https://ifconfig.me')
PUBLIC_IP_FALLBACK = 'localhost'
PUBLIC_IP_TIMEOUT = 5

COMMAND_TIMEOUT = int(os.environ.get('N8S_COMMAND_TIMEOUT', '60'))
