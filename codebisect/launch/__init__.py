"""Launching builds and stopping them again."""

from codebisect.launch.base import Instance, NoopInstance, ProcessInstance
from codebisect.launch.launcher import Launcher


__all__ = [
    "Instance",
    "Launcher",
    "NoopInstance",
    "ProcessInstance",
]
