"""
Action Timeline CLI - run and inspect sequence definitions.

Entry point:
    action-timeline run FILE        - play a sequence on an asyncio loop
    action-timeline validate FILE   - check a sequence definition
    action-timeline list            - list stored sequences
"""

import argparse
import asyncio
import json
import logging
import sys
from collections import defaultdict
from typing import Any, Dict, List, Optional

from .config import get_settings
from .logging_config import configure_logging
from .scheduler import AsyncioScheduler
from .sequence import SequenceStorage, build_timeline, validate_definition

logger = logging.getLogger(__name__)


def validate_timeout(value: str) -> float:
    """Validate timeout is a positive number of seconds."""
    try:
        timeout = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid timeout: {value}")

    if timeout <= 0:
        raise argparse.ArgumentTypeError(f"Timeout must be positive, got: {timeout}")
    return timeout


def _read_definition(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def builtin_handlers() -> Dict[str, Any]:
    """Functions available to "call" actions from the command line."""

    def log(*args):
        logger.info(" ".join(str(a) for a in args))

    def echo(*args):
        print(*args)

    return {"log": log, "print": echo}


async def _play(definition: Dict[str, Any], targets, timeout: Optional[float]) -> None:
    timeline = build_timeline(
        definition,
        handlers=builtin_handlers(),
        targets=targets,
        scheduler=AsyncioScheduler(),
    )
    await asyncio.wait_for(timeline.run(), timeout)


def cmd_run(args) -> int:
    try:
        definition = _read_definition(args.file)
        targets = defaultdict(dict)
        asyncio.run(_play(definition, targets, args.timeout))
    except asyncio.TimeoutError:
        print(f"Error: sequence did not finish within {args.timeout}s", file=sys.stderr)
        return 1
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    for name, values in targets.items():
        print(f"{name}: {json.dumps(values, sort_keys=True)}")
    return 0


def cmd_validate(args) -> int:
    try:
        count = validate_definition(_read_definition(args.file))
    except (OSError, ValueError) as e:
        print(f"Invalid: {e}", file=sys.stderr)
        return 1
    print(f"OK: {count} actions")
    return 0


def cmd_list(args) -> int:
    storage = SequenceStorage(args.dir)
    sequences = storage.list_sequences()
    if not sequences:
        print(f"No sequences in {storage.storage_dir}")
        return 0
    for seq in sequences:
        print(f"{seq['name']:<24} {seq['actions']:>4} actions  {seq['filepath']}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="action-timeline",
        description="Run and inspect action timeline sequences",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  action-timeline run intro.json              # Play a sequence
  action-timeline run intro.json --timeout 5  # Give up after 5 seconds
  action-timeline validate intro.json         # Check a definition
  action-timeline list --dir sequences/       # List stored sequences
        """,
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level (default: $ACTIONLINE_LOG_LEVEL or INFO)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Play a sequence definition")
    run.add_argument("file", help="Sequence JSON file")
    run.add_argument(
        "--timeout",
        type=validate_timeout,
        default=None,
        help="Maximum run time in seconds (default: no limit)",
    )
    run.set_defaults(func=cmd_run)

    validate = subparsers.add_parser("validate", help="Check a sequence definition")
    validate.add_argument("file", help="Sequence JSON file")
    validate.set_defaults(func=cmd_validate)

    list_cmd = subparsers.add_parser("list", help="List stored sequences")
    list_cmd.add_argument(
        "--dir",
        default=None,
        help="Sequence directory (default: $ACTIONLINE_SEQUENCE_DIR or sequences/)",
    )
    list_cmd.set_defaults(func=cmd_list)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(get_settings(), level=args.log_level)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
