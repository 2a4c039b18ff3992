"""Common subprocess execution for the external tools the restore drives."""

import subprocess
import time
from pathlib import Path
from typing import Dict, List, Optional, Union


class SubprocessRunner:
    """Blocking subprocess execution with both output streams captured."""

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout

    def run_command(self,
                    cmd: List[str],
                    env: Optional[Dict[str, str]] = None,
                    cwd: Optional[Union[str, Path]] = None,
                    output_file: Optional[Union[str, Path]] = None) -> Dict[str, Union[bool, str, float, int]]:
        """
        Execute command and collect its output in full.

        With output_file, stdout and stderr are appended to that file instead
        of a pipe. Commands that leave a daemon behind (pg_ctl start) need
        this: the daemon inherits the streams, and reading a pipe would block
        until the daemon exits. stdout then holds what this run appended.

        Returns dict with keys: success, error, duration, returncode, stdout, stderr
        """
        result = {
            'success': False,
            'error': None,
            'duration': 0,
            'returncode': -1,
            'stdout': '',
            'stderr': ''
        }

        start = time.time()
        try:
            if output_file:
                process = self._run_to_file(cmd, env, cwd, Path(output_file), result)
            else:
                process = subprocess.run(
                    cmd,
                    env=env,
                    cwd=cwd,
                    capture_output=True,
                    text=True,
                    timeout=self.timeout
                )
                result['stdout'] = process.stdout
                result['stderr'] = process.stderr
            result['duration'] = time.time() - start
            result['returncode'] = process.returncode

            if process.returncode == 0:
                result['success'] = True
            else:
                result['error'] = f"Command failed with exit code {process.returncode}"

        except subprocess.TimeoutExpired as e:
            result['duration'] = time.time() - start
            result['error'] = f"Command timed out after {self.timeout} seconds"
            if not output_file:
                result['stdout'] = _decode(e.stdout)
                result['stderr'] = _decode(e.stderr)
        except FileNotFoundError:
            result['error'] = f"Command not found: {cmd[0] if cmd else 'unknown'}"
        except OSError as e:
            result['error'] = f"Cannot execute {cmd[0] if cmd else 'unknown'}: {e}"

        return result

    def _run_to_file(self, cmd, env, cwd, output_file: Path, result):
        output_file.parent.mkdir(parents=True, exist_ok=True)
        with open(output_file, 'ab') as out:
            offset = out.tell()
            try:
                return subprocess.run(
                    cmd,
                    env=env,
                    cwd=cwd,
                    stdin=subprocess.DEVNULL,
                    stdout=out,
                    stderr=subprocess.STDOUT,
                    timeout=self.timeout
                )
            finally:
                out.flush()
                with open(output_file, 'rb') as log:
                    log.seek(offset)
                    result['stdout'] = _decode(log.read())


def _decode(output) -> str:
    if not output:
        return ''
    if isinstance(output, bytes):
        return output.decode('utf-8', errors='replace')
    return str(output)
