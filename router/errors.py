# N8S v2.1 - Router error hierarchy


class RouterError(Exception):
    """Base class for all router configuration errors"""


class ValidationError(RouterError, ValueError):
    """Malformed or conflicting input (bad port, duplicate key, bad name)"""


class NotFoundError(RouterError):
    """Operation targets a route or fragment that does not exist"""


class ConfigInvalidError(RouterError):
    """Generated nginx configuration failed the syntax check"""

    def __init__(self, message, output=''):
        super().__init__(message)
        self.output = output

    def __str__(self):
        if self.output:
            return f"{self.args[0]}\n{self.output.strip()}"
        return self.args[0]


class ExternalCommandError(RouterError):
    """An external command exited non-zero, timed out or is missing"""

    def __init__(self, command, returncode=None, output=''):
        self.command = list(command)
        self.returncode = returncode
        self.output = output
        if returncode is None:
            message = f"Command failed: {' '.join(self.command)}"
        else:
            message = f"Command failed ({returncode}): {' '.join(self.command)}"
        super().__init__(message)

    def __str__(self):
        if self.output:
            return f"{self.args[0]}\n{self.output.strip()}"
        return self.args[0]
