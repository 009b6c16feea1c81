import enum
import logging
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Sequence

from mashumaro import DataClassDictMixin, field_options

from .errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Config(DataClassDictMixin):
    host: str = field(metadata=field_options(alias="GITEA_HOST"))
    access_token: str = field(
        repr=False, metadata=field_options(alias="GITEA_ACCESS_TOKEN")
    )
    target_dir: str = field(metadata=field_options(alias="TARGET_DIR"))
    # extra arguments for `git clone`, shell quoted
    git_clone_args: str = field(
        default="", metadata=field_options(alias="GIT_CLONE_ARGS")
    )

    @property
    def git_args(self) -> Sequence[str]:
        return shlex.split(self.git_clone_args)


CONFIG_FILE_PATH = Path("config.env")
REQUIRED_KEYS = ("GITEA_HOST", "GITEA_ACCESS_TOKEN", "TARGET_DIR")


def parse_env(content: str) -> Dict[str, str]:
    """Parse `KEY=VALUE` lines.

    Blank lines and lines starting with `#` are skipped, everything else
    must carry a `=`. Only the first `=` separates key and value.
    """
    values = {}
    for line in content.splitlines():
        if line.strip() == "" or line.startswith("#"):
            continue

        key, sep, value = line.partition("=")
        if not sep:
            raise ConfigError(f"bad line in config file: {line}")
        values[key.strip()] = value.strip()

    return values


def load_config(path: Path | str = CONFIG_FILE_PATH) -> Config:
    cfg_path = Path(path)

    try:
        content = cfg_path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"cannot read {cfg_path}: {e}") from e

    logger.info(f"use config from {cfg_path}")
    values = parse_env(content)
    missing = [key for key in REQUIRED_KEYS if not values.get(key)]
    if missing:
        raise ConfigError(f"missing {', '.join(missing)} in {cfg_path}")
    config = Config.from_dict(values)

    logger.debug(f"{config=}")
    return config


class FilterMode(enum.Enum):
    NONE = "none"
    CURRENT_USER = "current_user"
    NAMED_USER = "named_user"


@dataclass(frozen=True)
class OwnerFilter:
    mode: FilterMode = FilterMode.NONE
    username: str | None = None


def resolve_owner_filter(onlyme: bool, user: str | None) -> OwnerFilter:
    # --onlyme is checked first and wins over --user
    if onlyme:
        return OwnerFilter(FilterMode.CURRENT_USER)
    if user:
        return OwnerFilter(FilterMode.NAMED_USER, user)
    return OwnerFilter()
