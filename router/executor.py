# N8S v2.1 - external command execution
import logging
import shutil
import subprocess

from config import COMMAND_TIMEOUT
from router.errors import ExternalCommandError
from utils.progress import ProgressMonitor

logger = logging.getLogger(__name__)


class CommandRunner:
    """Runs external commands with a hard timeout.

    A missing binary or a timeout always raises ExternalCommandError. A
    non-zero exit raises only when check=True; probes pass check=False and
    read the return code themselves.
    """

    def __init__(self, timeout=COMMAND_TIMEOUT):
        self.timeout = timeout

    def run(self, command, check=True, timeout=None, cwd=None, message=None):
        command = [str(part) for part in command]
        timeout = timeout or self.timeout
        logger.debug("Running %s (timeout %ss)", ' '.join(command), timeout)

        try:
            if message:
                with ProgressMonitor(message) as monitor:
                    result = self._run(command, timeout, cwd)
                    monitor.set_result(result)
            else:
                result = self._run(command, timeout, cwd)
        except FileNotFoundError:
            raise ExternalCommandError(command, output=f"{command[0]}: command not found")
        except subprocess.TimeoutExpired:
            raise ExternalCommandError(command, output=f"Timed out after {timeout}s")

        if check and result.returncode != 0:
            raise ExternalCommandError(
                command, result.returncode, (result.stderr or '') + (result.stdout or '')
            )
        return result

    def _run(self, command, timeout, cwd):
        return subprocess.run(
            command,
            capture_output=True,
            text=True,
            encoding='utf-8',
            errors='ignore',
            timeout=timeout,
            cwd=cwd
        )

    def which(self, name):
        return shutil.which(name)


class NginxService:
    """nginx binary plus its systemd unit"""

    def __init__(self, runner, binary='nginx', unit='nginx'):
        self.runner = runner
        self.binary = binary
        self.unit = unit

    def is_installed(self):
        return self.runner.which(self.binary) is not None

    def test_config(self):
        '''Run `nginx -t`. Returns (ok, output).'''
        result = self.runner.run([self.binary, '-t'], check=False)
        output = (result.stderr or '') + (result.stdout or '')
        return result.returncode == 0, output

    def reload(self):
        self.runner.run(['systemctl', 'reload', self.unit], message="Reloading nginx")

    def enable_now(self):
        self.runner.run(['systemctl', 'enable', '--now', self.unit], message="Enabling nginx service")
