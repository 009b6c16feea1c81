"""mirror every repository visible on a Gitea server

config file (KEY=VALUE):
  GITEA_HOST
  GITEA_ACCESS_TOKEN
  TARGET_DIR
  GIT_CLONE_ARGS (optional)
"""

import argparse
import logging
from typing import Sequence

from ._mirror import mirror_repos
from .config import CONFIG_FILE_PATH, load_config, resolve_owner_filter
from .errors import MirrorError
from .logging_config import setup_logging

logger = logging.getLogger(__name__)


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: {value!r}") from None
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1: {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gitea-mirror",
        description=__doc__,
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument(
        "--onlyme",
        action="store_true",
        help="Fetch repositories owned by the user only",
    )
    parser.add_argument(
        "--user", default="", help="Specify a username to fetch their repositories"
    )
    parser.add_argument(
        "--config", default=str(CONFIG_FILE_PATH), help="Path of the config file"
    )
    parser.add_argument(
        "--jobs",
        type=positive_int,
        default=None,
        help="Max number of concurrent clones (default: no limit)",
    )
    parser.add_argument(
        "--no-progress", action="store_true", help="Hide the progress bar"
    )
    parser.add_argument("--debug", action="store_true", help="Set log level as DEBUG")
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    setup_logging(args.debug)
    logger.debug(f"{args=}")

    try:
        config = load_config(args.config)
        owner_filter = resolve_owner_filter(args.onlyme, args.user)
        mirror_repos(
            config,
            owner_filter,
            max_concurrency=args.jobs,
            show_progress=not args.no_progress,
        )
    except (MirrorError, OSError) as e:
        logger.error(f"Error: {e}")


if __name__ == "__main__":
    main()
