# N8S v2.1
# Import RouterStore from router.store; importing it here would cycle through utils.validation.
from router.errors import (
    RouterError, ValidationError, NotFoundError, ConfigInvalidError, ExternalCommandError
)
from router.models import Route, RouterConfig
