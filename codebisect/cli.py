#!/usr/bin/env python3
"""codebisect - VS Code Build Bisection CLI Tool.

Main command-line interface for bisecting released VS Code builds.
"""

import argparse
import logging
import shutil
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from codebisect import __version__
from codebisect.artifacts import BuildCache
from codebisect.builds.kinds import (
    BuildKind,
    Flavor,
    Quality,
    flavor_from_string,
    quality_from_string,
    runtime_from_string,
)
from codebisect.catalog import CatalogClient
from codebisect.config import BisectConfig
from codebisect.core.checker import SystemChecker
from codebisect.core.orchestrator import BuildBisector, OutcomeKind, log_troubleshoot
from codebisect.core.prompts import ConsolePrompter
from codebisect.core.sanity import SanityChecker
from codebisect.errors import BisectError, CommitNotFound
from codebisect.launch import Launcher
from codebisect.persistence import StateManager


# Constants
DEFAULT_CONFIG_PATH = "codebisect.yaml"
RUNTIME_CHOICES = ["desktop", "web", "vscode.dev"]
QUALITY_CHOICES = [quality.value for quality in Quality]
FLAVOR_CHOICES = [flavor.value for flavor in Flavor]

# Configure logging
logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity level.

    Args:
        verbose: If True, enable DEBUG level logging
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s [%(levelname)s] %(message)s")

    # Request lines are logged by the catalog client itself
    logging.getLogger("httpx").setLevel(logging.WARNING)


def load_config(config_path: Optional[str]) -> Dict[str, Any]:
    """Load configuration from YAML file.

    A missing default config file means defaults; a missing file that was
    given explicitly is an error.

    Args:
        config_path: Path to YAML configuration file (None for the default)

    Returns:
        Configuration dictionary

    Raises:
        SystemExit: If an explicitly given config file is not found or invalid
    """
    path = Path(config_path or DEFAULT_CONFIG_PATH)

    if not path.exists():
        if config_path:
            logger.error(f"Config file not found: {config_path}")
            logger.info("Create one with: codebisect init-config")
            sys.exit(1)
        return {}

    with path.open() as f:
        try:
            config_dict = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            logger.error(f"Invalid config file {path}: {exc}")
            sys.exit(1)

    if not isinstance(config_dict, dict):
        logger.error(f"Invalid config file {path}: expected a mapping")
        sys.exit(1)

    # Resolve relative paths in config relative to config file location
    config_dir = path.parent.resolve()
    for section, key in (("cache", "root"), ("history", "database"), ("performance", "folder")):
        value = (config_dict.get(section) or {}).get(key)
        if not value:
            continue

        value_path = Path(value).expanduser()
        if not value_path.is_absolute():
            resolved_path = (config_dir / value_path).resolve()
            config_dict[section][key] = str(resolved_path)
            logger.debug(f"Resolved {section}.{key} path: {value} -> {resolved_path}")
        else:
            config_dict[section][key] = str(value_path)

    return config_dict


def _section(config_dict: Dict[str, Any], name: str) -> Dict[str, Any]:
    return config_dict.get(name) or {}


def create_bisect_config(config_dict: Dict[str, Any], args: Any) -> BisectConfig:
    """Create BisectConfig from config dict and CLI args.

    Args:
        config_dict: Configuration dictionary from YAML
        args: Parsed command-line arguments

    Returns:
        BisectConfig object
    """
    config = BisectConfig()

    cache_root = _section(config_dict, "cache").get("root")
    if cache_root:
        config.cache_root = Path(cache_root)

    config.catalog_url = _section(config_dict, "catalog").get("url", config.catalog_url)
    config.request_timeout = float(
        _section(config_dict, "network").get("timeout", config.request_timeout)
    )

    database = _section(config_dict, "history").get("database")
    if database:
        config.database_path = Path(database)

    config.container_runtime = _section(config_dict, "container").get(
        "runtime", config.container_runtime
    )

    performance = _section(config_dict, "performance")
    config.performance_command = performance.get("command", config.performance_command)
    if performance.get("folder"):
        config.performance_folder = Path(performance["folder"])

    config.released_only = bool(_section(config_dict, "defaults").get("released_only", False))

    # Command line overrides
    config.verbose = getattr(args, "verbose", False)
    if getattr(args, "released_only", False):
        config.released_only = True
    config.token = getattr(args, "token", None)

    perf = getattr(args, "perf", None)
    if perf:
        config.performance = True
        if isinstance(perf, str):
            config.performance_file = Path(perf).resolve()
            if config.performance_file.exists():
                config.performance_file.write_text("")

    return config


def create_build_kind(config_dict: Dict[str, Any], args: Any) -> BuildKind:
    """Create the build kind from CLI args, falling back to config defaults.

    Raises:
        ValueError: If a runtime, quality or flavor name is unknown
    """
    defaults = _section(config_dict, "defaults")
    return BuildKind(
        runtime=runtime_from_string(getattr(args, "runtime", None) or defaults.get("runtime")),
        quality=quality_from_string(getattr(args, "quality", None) or defaults.get("quality")),
        flavor=flavor_from_string(getattr(args, "flavor", None) or defaults.get("flavor")),
    )


def cmd_bisect(args: argparse.Namespace) -> int:
    """Bisect builds.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    config_dict = load_config(args.config)
    config = create_bisect_config(config_dict, args)
    try:
        kind = create_build_kind(config_dict, args)
    except ValueError as exc:
        print(f"✗ {exc}")
        return 1

    prompter = ConsolePrompter()

    good, bad = args.good, args.bad
    if good is None and bad is None:
        print("Leave empty to bisect from the oldest or up to the newest build.")
        good = prompter.ask_commit("Good commit or version (major.minor)")
        bad = prompter.ask_commit("Bad commit or version (major.minor)")

    state = StateManager(str(config.history_path))
    try:
        with CatalogClient(config) as catalog:
            cache = BuildCache(config, catalog)
            launcher = Launcher(config, cache, prompter)
            bisector = BuildBisector(config, catalog, launcher, prompter, state)

            outcome = bisector.start(kind, good, bad, exclude=args.exclude)
            bisector.finish(outcome)
    finally:
        state.close()

    return 1 if outcome.kind is OutcomeKind.ABORTED else 0


def cmd_run(args: argparse.Namespace) -> int:
    """Launch a single build.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    config_dict = load_config(args.config)
    config = create_bisect_config(config_dict, args)
    try:
        kind = create_build_kind(config_dict, args)
    except ValueError as exc:
        print(f"✗ {exc}")
        return 1

    prompter = ConsolePrompter()

    with CatalogClient(config) as catalog:
        launcher = Launcher(config, BuildCache(config, catalog), prompter)

        if args.commit == "latest":
            builds = catalog.list_commits(kind, config.released_only)
            if not builds:
                raise CommitNotFound(f"No {kind.quality.value} builds found")
            build = builds[0]
        else:
            bisector = BuildBisector(config, catalog, launcher, prompter)
            build = kind.with_commit(bisector.resolve_commit(kind, args.version or args.commit))

        instance = launcher.launch(build)
        if instance is None:
            return 0

        try:
            if instance.elapsed is not None:
                print(f"\nBuild {build.commit} took {instance.elapsed:.1f}s")
            else:
                prompter.wait(f"\nRunning {build.commit}. Press Enter to stop it...")
        finally:
            instance.stop()

    return 0


def cmd_sanity(args: argparse.Namespace) -> int:
    """Sanity check all flavors of a Stable build.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, 1 if the check was quit)
    """
    config_dict = load_config(args.config)
    config = create_bisect_config(config_dict, args)
    prompter = ConsolePrompter()

    with CatalogClient(config) as catalog:
        launcher = Launcher(config, BuildCache(config, catalog), prompter)
        bisector = BuildBisector(config, catalog, launcher, prompter)
        commit = bisector.resolve_commit(BuildKind(quality=Quality.STABLE), args.commit)

        if SanityChecker(launcher, prompter).run(commit):
            print("\n✓ Sanity check complete")
            return 0

    print("\n✗ Sanity check quit")
    return 1


def cmd_check(args: argparse.Namespace) -> int:
    """Check system dependencies and configuration.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 if all checks passed, 1 if any check failed)
    """
    logger.info("Running system health checks...")

    config = create_bisect_config(load_config(args.config), args)

    with CatalogClient(config) as catalog:
        checker = SystemChecker(config, catalog)
        all_passed = checker.run_all_checks()
        checker.print_results()

    if all_passed:
        logger.info("✓ All checks passed - system is ready for bisection")
        return 0

    logger.error("✗ Some checks failed - please address issues before running bisection")
    return 1


def cmd_history(args: argparse.Namespace) -> int:
    """Show past bisection sessions.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    config = create_bisect_config(load_config(args.config), args)
    state = StateManager(str(config.history_path))

    try:
        if args.session_id is not None:
            report = state.export_report(args.session_id, format=args.format)
            if not report:
                print(f"✗ Session {args.session_id} not found")
                return 1
            print(report)
            return 0

        sessions = state.list_sessions(limit=args.limit)
        if not sessions:
            print("No bisection sessions found")
            return 0

        print(f"{'ID':>4}  {'Started':<25} {'Kind':<30} {'Status':<10} First bad")
        print("-" * 100)
        for session in sessions:
            kind = f"{session.runtime}/{session.quality}/{session.flavor}"
            first_bad = session.first_bad_commit or "-"
            print(
                f"{session.session_id:>4}  {session.start_time[:25]:<25} "
                f"{kind:<30} {session.status:<10} {first_bad}"
            )
        return 0
    finally:
        state.close()


def cmd_reset(args: argparse.Namespace) -> int:
    """Delete all cached builds, user data and history.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    config = create_bisect_config(load_config(args.config), args)

    if config.cache_root.exists():
        logger.info(f"Deleting {config.cache_root}...")
        shutil.rmtree(config.cache_root)

    print(f"✓ Reset {config.cache_root}")
    return 0


def cmd_init_config(args: argparse.Namespace) -> int:
    """Generate example configuration file.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    # Locate the example config file in the package
    source_file = Path(__file__).parent / "config" / "codebisect.yaml.example"

    if not source_file.exists():
        print(f"Error: Example config file not found at {source_file}")
        print("This might indicate a corrupted installation.")
        return 1

    output_file = Path(args.output) if args.output else Path(DEFAULT_CONFIG_PATH)

    if output_file.exists() and not args.force:
        response = input(f"File '{output_file}' already exists. Overwrite? [y/N]: ")
        if response.lower() not in ["y", "yes"]:
            print("Aborted.")
            return 1

    try:
        shutil.copy(source_file, output_file)
    except OSError as exc:
        print(f"Error copying config file: {exc}")
        return 1

    print(f"✓ Example configuration created: {output_file}")
    print("\nNext steps:")
    print(f"  1. Edit {output_file} to pick your default runtime, quality and flavor")
    print("  2. Run: codebisect bisect --good <commit-or-version> --bad <commit-or-version>")
    return 0


def _add_build_kind_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-r", "--runtime", choices=RUNTIME_CHOICES, help="Runtime to use (default: desktop)"
    )
    parser.add_argument(
        "-q", "--quality", choices=QUALITY_CHOICES, help="Quality to use (default: insider)"
    )
    parser.add_argument(
        "-f", "--flavor", choices=FLAVOR_CHOICES, help="Flavor to use (default: default)"
    )
    parser.add_argument(
        "--released-only",
        action="store_true",
        help="Only use released builds (supports older builds)",
    )
    parser.add_argument(
        "-p",
        "--perf",
        nargs="?",
        const=True,
        default=None,
        metavar="PATH",
        help="Measure startup performance; optional file to append timings to",
    )
    parser.add_argument(
        "-t", "--token", help="GitHub token for authenticated vscode.dev sessions"
    )


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser.

    Returns:
        Configured ArgumentParser
    """
    parser = argparse.ArgumentParser(
        description="Bisect released VS Code builds to find the first bad one",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "-c", "--config", default=None, help=f"Configuration file path (default: {DEFAULT_CONFIG_PATH})"
    )

    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # bisect command
    parser_bisect = subparsers.add_parser("bisect", help="Bisect builds")
    parser_bisect.add_argument(
        "-g", "--good", help="Commit or major.minor version of a good build (older)"
    )
    parser_bisect.add_argument(
        "-b", "--bad", help="Commit or major.minor version of a bad build (newer)"
    )
    parser_bisect.add_argument(
        "--exclude", nargs="+", default=[], metavar="COMMIT", help="Commits to skip"
    )
    _add_build_kind_arguments(parser_bisect)

    # run command
    parser_run = subparsers.add_parser("run", help="Launch a single build")
    target = parser_run.add_mutually_exclusive_group(required=True)
    target.add_argument("--commit", help="Commit to launch, or 'latest' for the newest build")
    target.add_argument("--version", dest="version", help="Version to launch (major.minor)")
    _add_build_kind_arguments(parser_run)

    # sanity command
    parser_sanity = subparsers.add_parser(
        "sanity", help="Sanity check all flavors of a Stable build"
    )
    parser_sanity.add_argument("commit", help="Stable commit or version (major.minor)")

    # check command
    subparsers.add_parser("check", help="Check system dependencies and configuration")

    # history command
    parser_history = subparsers.add_parser("history", help="Show past bisection sessions")
    parser_history.add_argument("--session-id", type=int, help="Show the steps of one session")
    parser_history.add_argument(
        "--format", choices=["text", "json"], default="text", help="Report format"
    )
    parser_history.add_argument(
        "--limit", type=int, default=20, help="Number of sessions to list (default: 20)"
    )

    # reset command
    subparsers.add_parser("reset", help="Delete all cached builds, user data and history")

    # init-config command
    parser_init_config = subparsers.add_parser(
        "init-config", help="Generate example configuration file"
    )
    parser_init_config.add_argument(
        "--output", "-o", help=f"Output file path (default: {DEFAULT_CONFIG_PATH})"
    )
    parser_init_config.add_argument(
        "--force", "-f", action="store_true", help="Overwrite existing file without prompting"
    )

    return parser


def main() -> int:
    """Main entry point.

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args()

    setup_logging(args.verbose)

    # Route to command handlers
    try:
        if args.command == "bisect":
            return cmd_bisect(args)
        if args.command == "run":
            return cmd_run(args)
        if args.command == "sanity":
            return cmd_sanity(args)
        if args.command == "check":
            return cmd_check(args)
        if args.command == "history":
            return cmd_history(args)
        if args.command == "reset":
            return cmd_reset(args)
        if args.command == "init-config":
            return cmd_init_config(args)

        parser.print_help()
        return 1

    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        return 130
    except BisectError as exc:
        logger.error(str(exc))
        log_troubleshoot()
        return 1
    except Exception as exc:
        logger.error(f"Fatal error: {exc}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
