"""System health checker for codebisect dependencies and configuration."""

import logging
import shlex
import shutil
import tempfile
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..builds.kinds import BuildKind, OperatingSystem, Platform, detect_platform
from ..catalog.client import CatalogClient
from ..config.config import BisectConfig
from ..errors import CatalogError, UnsupportedPlatform
from ..launch.desktop import clipboard_command


logger = logging.getLogger(__name__)


@dataclass
class CheckResult:
    """Result of a single check operation."""

    category: str
    name: str
    passed: bool
    message: str
    details: Optional[str] = None
    warning: bool = False


class SystemChecker:
    """Validates codebisect system dependencies and configuration."""

    def __init__(
        self,
        config: BisectConfig,
        catalog: Optional[CatalogClient] = None,
        platform: Optional[Platform] = None,
    ):
        """Initialize system checker with configuration.

        Args:
            config: Session configuration
            catalog: Update service client (created from config when None)
            platform: Host platform (detected when None)
        """
        self.config = config
        self.platform = platform or detect_platform()
        self.catalog = catalog or CatalogClient(config, self.platform)
        self.results: List[CheckResult] = []

    def _tool(self, tool: str, required: bool, purpose: str) -> CheckResult:
        tool_path = shutil.which(tool)
        if tool_path:
            return CheckResult(
                category="Local System",
                name=f"{tool} command",
                passed=True,
                message=f"Found at {tool_path}",
            )
        return CheckResult(
            category="Local System",
            name=f"{tool} command",
            passed=not required,
            message=f"{tool} not found in PATH ({purpose})",
            warning=not required,
        )

    def check_local_tools(self) -> List[CheckResult]:
        """Check availability of external command-line tools.

        Returns:
            List of check results for local tools
        """
        results = [self._tool("tar", required=True, purpose="needed to extract .tar.gz builds")]

        if self.platform.os is not OperatingSystem.WINDOWS:
            results.append(self._tool("unzip", required=True, purpose="needed to extract .zip builds"))

        results.append(
            self._tool(
                self.config.container_runtime,
                required=False,
                purpose="only needed for containerized CLI flavors",
            )
        )

        if self.config.performance:
            command = shlex.split(self.config.performance_command)[0]
            results.append(self._tool(command, required=True, purpose="needed for --perf"))

        clipboard = clipboard_command(self.platform)
        if clipboard:
            results.append(
                CheckResult(
                    category="Local System",
                    name="clipboard",
                    passed=True,
                    message=f"Using {clipboard[0]}",
                )
            )
        else:
            results.append(
                CheckResult(
                    category="Local System",
                    name="clipboard",
                    passed=True,
                    message="No clipboard tool found, login codes must be copied by hand",
                    warning=True,
                )
            )

        return results

    def check_cache_root(self) -> List[CheckResult]:
        """Check that the cache root can be written to.

        Returns:
            List of check results for the cache folder
        """
        root = self.config.cache_root
        try:
            root.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(dir=root):
                pass
        except OSError as exc:
            return [
                CheckResult(
                    category="Cache",
                    name="cache root",
                    passed=False,
                    message=f"{root} is not writable",
                    details=str(exc),
                )
            ]

        return [
            CheckResult(
                category="Cache",
                name="cache root",
                passed=True,
                message=f"{root} is writable",
            )
        ]

    def check_catalog(self, kind: Optional[BuildKind] = None) -> List[CheckResult]:
        """Check that the update service lists builds for the host.

        Returns:
            List of check results for the update service
        """
        kind = kind or BuildKind()
        try:
            builds = self.catalog.list_commits(kind)
        except (CatalogError, UnsupportedPlatform) as exc:
            return [
                CheckResult(
                    category="Update Service",
                    name="list builds",
                    passed=False,
                    message=f"Failed to list builds from {self.config.catalog_url}",
                    details=str(exc),
                )
            ]

        return [
            CheckResult(
                category="Update Service",
                name="list builds",
                passed=True,
                message=f"{len(builds)} {kind.quality.value} builds available for {self.platform}",
            )
        ]

    def run_all_checks(self) -> bool:
        """Run all system checks and collect results.

        Returns:
            True if all checks passed, False otherwise
        """
        self.results = []

        logger.info("Checking local tools...")
        self.results.extend(self.check_local_tools())

        logger.info("Checking cache folder...")
        self.results.extend(self.check_cache_root())

        logger.info("Checking update service...")
        self.results.extend(self.check_catalog())

        return all(r.passed for r in self.results)

    def print_results(self):
        """Print formatted check results to console."""
        if not self.results:
            print("No checks performed.")
            return

        print("\nRunning codebisect system checks...\n")

        categories: Dict[str, List[CheckResult]] = {}
        for result in self.results:
            categories.setdefault(result.category, []).append(result)

        for category, results in categories.items():
            print(f"[{category}]")
            for result in results:
                symbol = ("⚠" if result.warning else "✓") if result.passed else "✗"

                print(f"{symbol} {result.name}: {result.message}")
                if result.details:
                    print(f"  {result.details}")
            print()

        passed = sum(1 for r in self.results if r.passed and not r.warning)
        failed = sum(1 for r in self.results if not r.passed)
        warnings = sum(1 for r in self.results if r.warning)

        print(f"Summary: {passed} passed, {failed} failed, {warnings} warning(s)")

        if failed > 0:
            print(
                "\n⚠ Some checks failed. Please address the issues above before running bisection."
            )
