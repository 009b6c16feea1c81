import asyncio
import logging
from pathlib import Path
from typing import List

from ..config import Config, OwnerFilter
from .clone import CloneOutcome, clone_repositories, report_outcomes
from .rest import Repository, list_repositories

__all__ = [
    "CloneOutcome",
    "Repository",
    "clone_repositories",
    "list_repositories",
    "mirror_repos",
    "report_outcomes",
]

logger = logging.getLogger(__name__)


async def _mirror_repos(
    config: Config,
    owner_filter: OwnerFilter,
    max_concurrency: int | None,
    show_progress: bool,
) -> List[CloneOutcome]:
    repos = await list_repositories(config.host, config.access_token, owner_filter)
    logger.info(f"Found {len(repos)} repositories")

    return await clone_repositories(
        repos,
        Path(config.target_dir),
        git_args=config.git_args,
        max_concurrency=max_concurrency,
        show_progress=show_progress,
    )


def mirror_repos(
    config: Config,
    owner_filter: OwnerFilter,
    *,
    max_concurrency: int | None = None,
    show_progress: bool = False,
) -> List[CloneOutcome]:
    target_dir = Path(config.target_dir)
    if not target_dir.exists():
        logger.info(f"Creating target directory: {target_dir}")
        target_dir.mkdir(parents=True, exist_ok=True)

    logger.debug("into asyncio runtime")
    outcomes = asyncio.run(
        _mirror_repos(config, owner_filter, max_concurrency, show_progress)
    )
    report_outcomes(outcomes)
    return outcomes
