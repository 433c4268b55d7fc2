"""Command-line entrypoint for qcmt."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Callable, Optional

from . import __version__
from .config import load_config
from .core import RED, RESET, run_workflow
from .exceptions import ConfigError
from .git import find_git_repo_root
from .push import is_background_push, run_background_push

INTERACTIVE_LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"
BACKGROUND_LOG_FORMAT = "%(asctime)s %(levelname)s [qcmt push] %(message)s"


def configure_logging(level: str, background: bool = False) -> None:
    """Send log records to stderr; in background runs that is the push log."""
    root = logging.getLogger("qcmt")
    for handler in list(root.handlers):
        root.removeHandler(handler)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(BACKGROUND_LOG_FORMAT if background else INTERACTIVE_LOG_FORMAT)
    )
    root.addHandler(handler)
    root.setLevel(level)
    root.propagate = False


class CLI:
    """Stage, summarise, commit and push in the background."""

    def __init__(self, prompt: Callable[[str], str] = input) -> None:
        self.prompt = prompt
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            prog="qcmt",
            description=(
                "Stage every change in the working tree, show a summary, "
                "commit it and push in the background."
            ),
        )
        parser.add_argument(
            "--repo-path",
            help="Path to the repository (default: discover from the current directory)",
        )
        parser.add_argument(
            "-m",
            "--message",
            help="Commit message; skips the interactive prompt",
        )
        parser.add_argument(
            "--remote",
            help="Remote to push to (default: branch upstream, then origin)",
        )
        parser.add_argument(
            "--no-push",
            action="store_true",
            help="Commit only; do not start the background push",
        )
        parser.add_argument(
            "-v",
            "--verbose",
            action="store_true",
            help="Enable debug logging",
        )
        parser.add_argument(
            "--version", action="version", version=f"%(prog)s {__version__}"
        )
        return parser

    def run(self, args: Optional[list[str]] = None) -> int:
        try:
            parsed = self.parser.parse_args(args)
        except SystemExit as exc:
            return int(exc.code or 0)

        background = is_background_push()
        # Config lives at the repository root, wherever qcmt is started from.
        explicit_path = parsed.repo_path or os.environ.get("QCMT_REPO_PATH")
        start = Path(explicit_path or Path.cwd()).expanduser().resolve(strict=False)
        repo_root = find_git_repo_root(start) or start
        overrides = {
            "repo_path": str(start) if explicit_path else None,
            "remote": parsed.remote,
            "log_level": "DEBUG" if parsed.verbose else None,
        }
        if parsed.no_push:
            overrides["auto_push"] = "0"

        try:
            config = load_config(repo_root=repo_root, overrides=overrides)
        except ConfigError as exc:
            print(f"{RED}Configuration error: {exc}{RESET}")
            return 2

        if background:
            level = "DEBUG" if parsed.verbose else "INFO"
            configure_logging(level, background=True)
            return run_background_push(config)

        configure_logging(config.log_level)
        return run_workflow(config, prompt=self.prompt, message=parsed.message)


def main(argv: Optional[list[str]] = None) -> int:
    return CLI().run(argv)


if __name__ == "__main__":
    sys.exit(main())
