import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Optional, Sequence

from rich.logging import RichHandler

from reclaim import __version__
from reclaim.config import (
    build_configuration,
    flag_is_set,
    load_config_file,
    overrides_from_env,
    overrides_from_pairs,
)
from reclaim.engine import ExecutionEngine
from reclaim.exceptions import ReclaimError, UnknownTaskError
from reclaim.privileges import require_root
from reclaim.registry import DEFAULT_REGISTRY, Override, Registry
from reclaim.ui import (
    console,
    print_report,
    print_task_list,
    print_task_result,
    show_exception,
    write_step_summary,
)

logger = logging.getLogger(__name__)

EXIT_STARTUP_ERROR = 2
EXIT_INTERRUPTED = 130

OVERRIDE_PREFIXES = ("--keep-", "--remove-")


def _dest(action: str, task_name: str) -> str:
    return f"{action}_{task_name.replace('-', '_')}"


def build_parser(registry: Registry) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reclaim",
        description="Free disk space on GitHub-hosted Ubuntu runners by removing unneeded software",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        # --keep-dot must never silently mean --keep-dotnet
        allow_abbrev=False,
        epilog="""
Examples:
  sudo reclaim                         # remove everything enabled by default
  sudo reclaim --keep-android          # keep the Android SDK
  sudo reclaim --remove-dotnet         # also remove .NET
  reclaim --dry-run                    # show what would be removed
  reclaim --list                       # show the task catalog

Environment Variables:
  INPUT_KEEP-<TASK>     Keep a task (set by the Actions runner for action inputs)
  INPUT_REMOVE-<TASK>   Force-remove a task
  GITHUB_STEP_SUMMARY   Markdown summary destination
        """,
    )

    parser.add_argument("--version", "-V", action="version", version=f"reclaim {__version__}")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show detailed output")
    parser.add_argument("--dry-run", action="store_true", help="Show what would be removed")
    parser.add_argument("--list", action="store_true", help="List tasks and exit")
    parser.add_argument("--json", action="store_true", help="Print the report as JSON")
    parser.add_argument("--config", type=Path, help="YAML file with keep/remove overrides")
    parser.add_argument(
        "--no-background",
        action="store_true",
        help="Run every removal in the foreground",
    )
    parser.add_argument(
        "--workers", type=int, default=4, help="Background removal workers (default: 4)"
    )
    parser.add_argument(
        "--no-size-estimate",
        action="store_true",
        help="Skip measuring directories before deleting them",
    )
    parser.add_argument(
        "--summary-file",
        default=os.environ.get("GITHUB_STEP_SUMMARY"),
        help="Append a markdown summary to this file (default: $GITHUB_STEP_SUMMARY)",
    )

    keep_group = parser.add_argument_group("keep overrides")
    remove_group = parser.add_argument_group("remove overrides")
    for task in registry:
        default = "removed" if task.default_enabled else "kept"
        keep_group.add_argument(
            f"--keep-{task.name}",
            dest=_dest("keep", task.name),
            nargs="?",
            const="true",
            metavar="BOOL",
            help=f"Keep {task.label} (default: {default})",
        )
        remove_group.add_argument(
            f"--remove-{task.name}",
            dest=_dest("remove", task.name),
            nargs="?",
            const="true",
            metavar="BOOL",
            help=argparse.SUPPRESS if task.default_enabled else f"Remove {task.label}",
        )
    return parser


def _reject_unknown(
    parser: argparse.ArgumentParser, registry: Registry, extras: Sequence[str]
) -> None:
    for arg in extras:
        for prefix in OVERRIDE_PREFIXES:
            if arg.startswith(prefix):
                name = arg[len(prefix):].split("=", 1)[0]
                raise UnknownTaskError(name, registry.names())
    if extras:
        parser.error(f"unrecognized arguments: {' '.join(extras)}")


def overrides_from_args(args: argparse.Namespace, registry: Registry) -> dict[str, Override]:
    keep, remove = [], []
    for task in registry:
        keep_value = getattr(args, _dest("keep", task.name), None)
        remove_value = getattr(args, _dest("remove", task.name), None)
        if keep_value is not None and flag_is_set(keep_value):
            keep.append(task.name)
        if remove_value is not None and flag_is_set(remove_value):
            remove.append(task.name)
    return overrides_from_pairs(keep, remove, source="command-line flags")


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console.rich_err, show_path=False, markup=False)],
        force=True,
    )


def main(argv: Optional[Sequence[str]] = None, registry: Registry = DEFAULT_REGISTRY) -> int:
    parser = build_parser(registry)
    args, extras = parser.parse_known_args(argv)
    setup_logging(args.verbose)

    try:
        _reject_unknown(parser, registry, extras)

        layers = []
        if args.config:
            layers.append(load_config_file(args.config))
        layers.append(overrides_from_env(os.environ))
        layers.append(overrides_from_args(args, registry))

        configuration = build_configuration(
            registry,
            layers,
            dry_run=args.dry_run,
            background=not args.no_background,
            max_workers=args.workers,
            estimate_sizes=not args.no_size_estimate,
        )

        if args.list:
            print_task_list(registry, registry.resolve_enabled(configuration))
            return 0

        if not configuration.dry_run:
            require_root()
    except ReclaimError as e:
        show_exception(e)
        return EXIT_STARTUP_ERROR

    on_result = None
    if not args.json:
        console.rule(f"reclaim {__version__}" + (" (dry run)" if args.dry_run else ""))

        def on_result(result):
            print_task_result(result, verbose=args.verbose)

    engine = ExecutionEngine(registry, on_result=on_result)
    try:
        report = engine.run(configuration)
    except KeyboardInterrupt:
        console.error("Operation cancelled")
        return EXIT_INTERRUPTED
    except ReclaimError as e:
        show_exception(e)
        return EXIT_STARTUP_ERROR

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        print_report(report)

    write_step_summary(report, args.summary_file)
    return report.exit_code


if __name__ == "__main__":
    sys.exit(main())
