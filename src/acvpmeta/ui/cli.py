from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from acvpmeta.app import poll_requests, sync_definitions
from acvpmeta.config import configure_logging
from acvpmeta.domain.errors import ConfigError
from acvpmeta.domain.poller import DEFAULT_POLL_ATTEMPTS
from acvpmeta.domain.policy import ReconcileOptions

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from types import FrameType

log = logging.getLogger(__name__)

_YES = frozenset({"y", "yes"})


def _add_selection_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--definitions",
        type=Path,
        help="Directory holding one subdirectory per module (defaults to ACVP_DEFINITIONS_DIR)",
    )
    parser.add_argument(
        "--module",
        action="append",
        dest="modules",
        metavar="NAME",
        help="Only process this module (directory or module name); may be repeated",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log registry documents and requests",
    )


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Keep module, vendor and environment definitions in sync with the registry"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync = subparsers.add_parser("sync", help="Reconcile definitions with the registry")
    _add_selection_arguments(sync)
    sync.add_argument(
        "--register",
        action="store_true",
        help="Register entities missing from the registry without asking",
    )
    sync.add_argument(
        "--delete-on-mismatch",
        action="store_true",
        help="Delete registry entries that differ from the local definition without asking",
    )
    sync.add_argument(
        "--show-only",
        action="store_true",
        help="Only report differences; never change the registry",
    )
    sync.add_argument(
        "--revalidate",
        action="store_true",
        help="Compare entities that already have a registry id against the registry",
    )

    poll = subparsers.add_parser("poll", help="Ask the registry about open requests")
    _add_selection_arguments(poll)
    poll.add_argument(
        "--wait",
        type=float,
        metavar="SECONDS",
        help="Keep polling with this interval until all requests are settled",
    )
    poll.add_argument(
        "--attempts",
        type=int,
        default=DEFAULT_POLL_ATTEMPTS,
        help="Maximum number of polling rounds with --wait (default: %(default)s)",
    )

    args = parser.parse_args(list(argv))
    if getattr(args, "wait", None) is not None and args.wait < 0:
        raise ValueError("--wait must be non-negative")
    if getattr(args, "attempts", 1) < 1:
        raise ValueError("--attempts must be at least 1")
    return args


def ask_user(prompt: str, *, reader: Callable[[str], str] = input) -> bool:
    """Ask a yes/no question on the terminal; anything but yes declines."""

    try:
        answer = reader(f"{prompt}? [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in _YES


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
    except ValueError:
        configure_logging()
        log.exception("CLI validation error")
        sys.exit(2)

    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)

    try:
        if parsed_args.command == "sync":
            options = ReconcileOptions(
                auto_register=parsed_args.register,
                auto_delete_on_mismatch=parsed_args.delete_on_mismatch,
                show_only=parsed_args.show_only,
                revalidate=parsed_args.revalidate,
            )
            result = sync_definitions(
                definitions_dir=parsed_args.definitions,
                modules=parsed_args.modules,
                options=options,
                confirm=ask_user,
            )
            failed = result.failed
        elif parsed_args.command == "poll":
            summary = poll_requests(
                definitions_dir=parsed_args.definitions,
                modules=parsed_args.modules,
                wait=parsed_args.wait,
                attempts=parsed_args.attempts,
            )
            for key in summary.waiting:
                log.info("Still waiting for the registry: %s", key)
            failed = False
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301
    except ConfigError as exc:
        log.error("Configuration error: %s", exc)  # noqa: TRY400
        sys.exit(2)
    except Exception:
        log.exception("Fatal error during reconciliation")
        sys.exit(1)

    if failed:
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
