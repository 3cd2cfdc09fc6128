#!/usr/bin/env python3
"""Abstract base class for launched builds.

Provides the interface the bisection loop uses to stop a running build
before the next one is requested.
"""

import logging
import subprocess
import time
from abc import ABC, abstractmethod
from typing import Optional

import psutil


logger = logging.getLogger(__name__)

# Constants
KILL_WAIT_TIMEOUT = 5  # Seconds to wait for killed processes to exit


class Instance(ABC):
    """A running build.

    Attributes:
        started_at: Monotonic time the instance was created
    """

    def __init__(self) -> None:
        self.started_at = time.monotonic()

    @property
    def elapsed(self) -> Optional[float]:
        """Seconds the build took to become ready, if it was measured."""
        return None

    @abstractmethod
    def stop(self) -> None:
        """Stop the build.

        Must be idempotent and must not raise when the build is already gone.
        """


class NoopInstance(Instance):
    """Instance for flows with nothing to stop (hosted web, performance runs).

    Attributes:
        url: URL that was opened, if any
    """

    def __init__(self, url: str = "", elapsed: Optional[float] = None) -> None:
        super().__init__()
        self.url = url
        self._elapsed = elapsed

    @property
    def elapsed(self) -> Optional[float]:
        return self._elapsed

    def stop(self) -> None:
        pass


class ProcessInstance(Instance):
    """Instance backed by a child process and all of its descendants.

    Attributes:
        process: Child process
        url: URL the build reported as ready, if any
    """

    def __init__(self, process: subprocess.Popen, url: str = "") -> None:
        super().__init__()
        self.process = process
        self.url = url
        self._stopped = False
        self._handle = self._attach(process)

    @property
    def pid(self) -> int:
        return self.process.pid

    @staticmethod
    def _attach(process: subprocess.Popen) -> Optional[psutil.Process]:
        # An unreaped child keeps its pid, so the handle cannot point at a reused one
        if process.poll() is not None:
            return None
        try:
            return psutil.Process(process.pid)
        except psutil.NoSuchProcess:
            return None

    def stop(self) -> None:
        """Kill the process tree.

        A process that already exited counts as stopped.
        """
        if self._stopped:
            return
        self._stopped = True

        procs = []
        if self._handle is not None:
            try:
                procs = self._handle.children(recursive=True) + [self._handle]
            except psutil.NoSuchProcess:
                procs = []
        if not procs:
            logger.debug(f"Process {self.process.pid} already exited")

        for proc in procs:
            try:
                proc.kill()
            except psutil.NoSuchProcess:
                # already gone
                continue

        if procs:
            _, alive = psutil.wait_procs(procs, timeout=KILL_WAIT_TIMEOUT)
            for proc in alive:
                logger.warning(f"Process {proc.pid} did not exit after kill")

        # Reap the direct child
        try:
            self.process.wait(timeout=KILL_WAIT_TIMEOUT)
        except subprocess.TimeoutExpired:
            logger.warning(f"Process {self.process.pid} did not exit after kill")
