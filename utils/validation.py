# N8S v2.1 - Input validation and sanitization
import re

from router.errors import ValidationError

ROUTE_NAME_DISALLOWED = re.compile(r'[^A-Za-z0-9_-]')
PATH_ALLOWED = re.compile(r'^[A-Za-z0-9/_.~-]+$')


def validate_port(port):
    '''Validate port number. Returns int or raises ValidationError.'''
    if isinstance(port, bool):
        raise ValidationError("Port must be a number")
    try:
        port = int(str(port).strip())
    except (ValueError, TypeError):
        raise ValidationError("Port must be a number")

    if not (1 <= port <= 65535):
        raise ValidationError("Port must be between 1 and 65535")

    return port


def normalize_path(path):
    '''Normalize a location path so it always starts and ends with "/".

    "/api", "/api/" and "api/" all become "/api/". Normalizing an already
    normalized path returns it unchanged.
    '''
    if path is None or not str(path).strip():
        raise ValidationError("Path is required")

    path = str(path).strip()

    # The path is written verbatim into "location <path> {"
    if not PATH_ALLOWED.match(path):
        raise ValidationError("Path may only contain letters, digits, '/', '_', '.', '~' and '-'")
    if '..' in path.split('/'):
        raise ValidationError("Path must not contain '..' segments")

    if not path.startswith('/'):
        path = '/' + path
    if not path.endswith('/'):
        path = path + '/'

    return path


def sanitize_route_name(name):
    '''Strip characters outside [A-Za-z0-9_-] from a route name.

    Lenient on purpose: "my api!" becomes "myapi". Two different inputs can
    collapse to the same name, in which case the later route replaces the
    earlier fragment on that port. Raises ValidationError if nothing is left.
    '''
    if name is None:
        raise ValidationError("Route name is required")

    sanitized = ROUTE_NAME_DISALLOWED.sub('', str(name))

    if not sanitized:
        raise ValidationError("Route name is required (letters, digits, '-' and '_')")
    if len(sanitized) > 64:
        raise ValidationError("Route name too long (max 64 chars)")

    return sanitized
