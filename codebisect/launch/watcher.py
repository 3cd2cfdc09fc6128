#!/usr/bin/env python3
"""Output watcher for spawned builds.

Reads a child's stdout and stderr on background threads, hands every line
to a handler and fires a single readiness signal the first time the
handler reports a match.
"""

import logging
import subprocess
import threading
from typing import IO, Callable, List, Optional

from codebisect.errors import LaunchError


logger = logging.getLogger(__name__)

# Constants
POLL_INTERVAL = 0.1  # Seconds between readiness and exit checks

# Returns a value once the build is ready, None otherwise
LineHandler = Callable[[str], Optional[str]]


class OutputWatcher:
    """Watch the output of a child process.

    Attributes:
        process: Child process with piped stdout and stderr
        label: Prefix for logged output lines
        ready: Set once the handler reported readiness
        value: Value returned by the handler on readiness
    """

    def __init__(
        self,
        process: subprocess.Popen,
        label: str,
        handler: Optional[LineHandler] = None,
    ) -> None:
        self.process = process
        self.label = label
        self.handler = handler
        self.ready = threading.Event()
        self.value: Optional[str] = None
        self._lock = threading.Lock()
        self._threads: List[threading.Thread] = []

    def start(self) -> "OutputWatcher":
        """Start reader threads for stdout and stderr."""
        for name, stream in (("stdout", self.process.stdout), ("stderr", self.process.stderr)):
            if stream is None:
                continue
            thread = threading.Thread(
                target=self._read,
                args=(stream, name == "stderr"),
                name=f"{self.label}-{name}",
                daemon=True,
            )
            thread.start()
            self._threads.append(thread)
        return self

    def _read(self, stream: IO[str], is_stderr: bool) -> None:
        for raw in iter(stream.readline, ""):
            line = raw.rstrip()
            if not line:
                continue

            if is_stderr:
                logger.debug(f"[{self.label}] stderr: {line}")
            else:
                logger.debug(f"[{self.label}] {line}")

            if self.handler is None or self.ready.is_set():
                continue

            with self._lock:
                value = self.handler(line)
                if value is not None and not self.ready.is_set():
                    self.value = value
                    self.ready.set()
        stream.close()

    @property
    def finished(self) -> bool:
        """Whether all output was consumed."""
        return all(not thread.is_alive() for thread in self._threads)

    def wait_ready(self) -> Optional[str]:
        """Block until the handler reports readiness.

        There is no timeout; a build that hangs is resolved by the user.

        Returns:
            Value returned by the handler

        Raises:
            LaunchError: If the process exits before becoming ready
        """
        while not self.ready.wait(POLL_INTERVAL):
            if self.process.poll() is not None and self.finished:
                if self.ready.is_set():
                    break
                raise LaunchError(
                    f"[{self.label}] process exited with code {self.process.returncode} "
                    f"before it was ready"
                )
        return self.value
