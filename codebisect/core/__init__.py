"""Core orchestration components for build bisection."""

from codebisect.core.orchestrator import BisectOutcome, BuildBisector, OutcomeKind
from codebisect.core.sanity import SanityChecker


__all__ = [
    "BisectOutcome",
    "BuildBisector",
    "OutcomeKind",
    "SanityChecker",
]
