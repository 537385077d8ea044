"""Strategy that runs the host's native empty-trash command."""

from __future__ import annotations

import logging
import re
import subprocess
from collections.abc import Sequence

from ..errors import ReclaimStrategyFailed

logger = logging.getLogger(__name__)

# PowerShell error records continue with "At line:..." and "+ ..." lines
_CONTINUATION = re.compile(r"^(?:\+|At line:\d|At char:\d)")


class CommandReclaimStrategy:
    """Runs a command-line facility and judges it by its error stream.

    The exit status is not trusted: these tools exit non-zero on benign
    conditions such as an already empty trash. Only non-benign text on
    stderr counts as failure.
    """

    def __init__(
        self,
        command: Sequence[str],
        name: str = "native-command",
        timeout: float = 30.0,
        benign_errors: Sequence[str] = (),
    ) -> None:
        self.command = list(command)
        self.name = name
        self.timeout = timeout
        self._benign = [re.compile(pattern, re.IGNORECASE) for pattern in benign_errors]

    def _error_lines(self, stderr: str) -> list[str]:
        """Get the head line of every error record that is not benign."""
        errors: list[str] = []
        in_record = False
        for raw in stderr.splitlines():
            line = raw.strip()
            if not line:
                continue
            if _CONTINUATION.match(line):
                # Position and category lines belong to the record above them
                if not in_record:
                    errors.append(line)
                continue
            in_record = True
            if not any(pattern.search(line) for pattern in self._benign):
                errors.append(line)
        return errors

    def run(self) -> str:
        """Run the command once."""
        try:
            result = subprocess.run(
                self.command,
                capture_output=True,
                text=True,
                errors="replace",
                check=False,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise ReclaimStrategyFailed(f"{self.command[0]} not found") from e
        except subprocess.TimeoutExpired as e:
            raise ReclaimStrategyFailed(f"{self.command[0]} timed out after {self.timeout:.0f}s") from e
        except (subprocess.SubprocessError, OSError) as e:
            raise ReclaimStrategyFailed(f"{self.command[0]} could not be started: {e}") from e

        if errors := self._error_lines(result.stderr or ""):
            raise ReclaimStrategyFailed(errors[0])

        if result.returncode != 0:
            logger.debug("%s exited with %d without error output", self.command[0], result.returncode)
        return f"{self.command[0]} reported no errors"
