import asyncio
import logging
import os
from contextlib import nullcontext
from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence

from rich.progress import Progress

from ..errors import CloneError, CloneTimeout
from .rest import Repository

logger = logging.getLogger(__name__)

CLONE_TIMEOUT = 5 * 60  # seconds
GIT = "git"


@dataclass(frozen=True)
class CloneOutcome:
    full_name: str
    error: Exception | None = None
    skipped: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


async def _git_clone(
    clone_url: str,
    dst: Path,
    timeout: float,
    git_args: Sequence[str],
) -> None:
    cmd = [GIT, "clone", *git_args, clone_url, str(dst)]
    logger.debug(f"Running: {' '.join(cmd)}")

    proc = await asyncio.create_subprocess_exec(
        *cmd,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.DEVNULL,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        async with asyncio.timeout(timeout):
            _, stderr = await proc.communicate()
    except TimeoutError:
        proc.kill()
        await proc.wait()
        raise CloneTimeout(f"git clone timed out after {timeout}s") from None

    if proc.returncode != 0:
        detail = stderr.decode(errors="replace").strip() if stderr else ""
        raise CloneError(f"git clone exited with status {proc.returncode}: {detail}")


async def clone_repository(
    repo: Repository,
    base_dir: Path,
    *,
    timeout: float = CLONE_TIMEOUT,
    git_args: Sequence[str] = (),
) -> CloneOutcome:
    base_dir = Path(base_dir)
    dst = base_dir / repo.full_name

    # lexical check, symlinked clones inside base_dir stay valid
    base = Path(os.path.abspath(base_dir))
    target = Path(os.path.abspath(dst))
    if target == base or not target.is_relative_to(base):
        error = CloneError(f"destination {dst} is outside {base_dir}")
        return CloneOutcome(repo.full_name, error=error)

    # presence only, the content of an existing entry is not checked
    if dst.exists():
        logger.info(f"Repo {repo.full_name} already exists, skipping.")
        return CloneOutcome(repo.full_name, skipped=True)

    logger.info(f"Cloning {repo.name} from {repo.clone_url}")
    try:
        await _git_clone(repo.clone_url, dst, timeout, git_args)
    except (CloneError, OSError) as e:
        return CloneOutcome(repo.full_name, error=e)

    logger.debug(f"cloned {repo.full_name}")
    return CloneOutcome(repo.full_name)


async def clone_repositories(
    repos: Sequence[Repository],
    base_dir: Path,
    *,
    timeout: float = CLONE_TIMEOUT,
    git_args: Sequence[str] = (),
    max_concurrency: int | None = None,
    show_progress: bool = False,
) -> List[CloneOutcome]:
    """Clone every repository into `base_dir` concurrently.

    One task per repository, each with its own timeout. A failure stays in
    that repository's outcome, so the result always has one outcome per repo.
    `max_concurrency` caps the number of simultaneous `git clone` processes.
    """
    if max_concurrency is not None and max_concurrency < 1:
        raise ValueError(f"max_concurrency must be at least 1, got {max_concurrency}")
    semaphore = asyncio.Semaphore(max_concurrency) if max_concurrency else None

    with Progress(transient=True, disable=not show_progress) as progress:
        task_id = progress.add_task("cloning", total=len(repos))

        async def run(repo: Repository) -> CloneOutcome:
            async with semaphore or nullcontext():
                outcome = await clone_repository(
                    repo, base_dir, timeout=timeout, git_args=git_args
                )
            progress.advance(task_id)
            return outcome

        return list(await asyncio.gather(*(run(repo) for repo in repos)))


def report_outcomes(outcomes: Sequence[CloneOutcome]) -> int:
    failed = [outcome for outcome in outcomes if not outcome.ok]
    for outcome in failed:
        logger.error(f"Error cloning repository {outcome.full_name}: {outcome.error}")

    skipped = sum(outcome.skipped for outcome in outcomes)
    cloned = len(outcomes) - skipped - len(failed)
    logger.info(f"cloned {cloned}, skipped {skipped}, failed {len(failed)}")
    return len(failed)
