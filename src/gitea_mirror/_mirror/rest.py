import logging
from dataclasses import dataclass
from typing import List, Sequence

import aiohttp
import orjson
from aiohttp import ClientSession as Session
from mashumaro.exceptions import InvalidFieldValue, MissingField
from mashumaro.mixins.orjson import DataClassORJSONMixin

from ..config import FilterMode, OwnerFilter
from ..errors import GiteaAPIError

logger = logging.getLogger(__name__)

USER_ENDPOINT = "/api/v1/user"
USER_REPOS_ENDPOINT = "/api/v1/user/repos"
REPOSITORY_FIELDS = ("name", "clone_url", "full_name")

_DECODE_ERRORS = (orjson.JSONDecodeError, MissingField, InvalidFieldValue)


def _check_strings(data: dict, fields: Sequence[str]) -> None:
    # mashumaro would turn null or numbers into "None" or "3"
    for name in fields:
        if not isinstance(data.get(name), str):
            raise GiteaAPIError(f"field {name!r} is not a string: {data.get(name)!r}")


@dataclass(frozen=True)
class Repository(DataClassORJSONMixin):
    name: str
    clone_url: str
    full_name: str

    @property
    def owner(self) -> str:
        return self.full_name.split("/", 1)[0]

    def __str__(self) -> str:
        return self.full_name


@dataclass(frozen=True)
class User(DataClassORJSONMixin):
    login: str


def auth_headers(token: str) -> dict:
    return {"Authorization": f"token {token}"}


async def _get(client: Session, url: str, **kwargs) -> bytes:
    try:
        async with client.get(url, **kwargs) as resp:
            if resp.status != 200:
                raise GiteaAPIError(
                    f"API request {url} failed with HTTP status code: {resp.status}"
                )
            return await resp.read()
    except aiohttp.ClientError as e:
        raise GiteaAPIError(f"API request {url} failed: {e}") from e


async def fetch_username(client: Session, host: str) -> str:
    url = f"{host.rstrip('/')}{USER_ENDPOINT}"
    content = await _get(client, url)
    try:
        data = orjson.loads(content)
        if not isinstance(data, dict):
            raise GiteaAPIError("user details is not an object")
        _check_strings(data, ("login",))
        user = User.from_dict(data)
    except _DECODE_ERRORS as e:
        raise GiteaAPIError(f"malformed user details: {e}") from e

    logger.debug(f"current user is {user.login}")
    return user.login


def _decode_page(content: bytes, page: int) -> Sequence[Repository]:
    try:
        data = orjson.loads(content)
    except orjson.JSONDecodeError as e:
        raise GiteaAPIError(f"malformed repository page {page}: {e}") from e

    if not isinstance(data, list):
        raise GiteaAPIError(f"repository page {page} is not a list")
    if not all(isinstance(item, dict) for item in data):
        raise GiteaAPIError(f"repository page {page} holds non-object entries")
    for item in data:
        _check_strings(item, REPOSITORY_FIELDS)

    try:
        return [Repository.from_dict(item) for item in data]
    except _DECODE_ERRORS as e:
        raise GiteaAPIError(f"malformed repository on page {page}: {e}") from e


async def fetch_repositories(
    client: Session,
    host: str,
    username: str | None = None,
) -> List[Repository]:
    """Walk `/user/repos` page by page.

    Stops at the first empty page, the total count header is not used.
    With `username` set, only repositories owned by it are kept.
    """
    url = f"{host.rstrip('/')}{USER_REPOS_ENDPOINT}"
    all_repos: List[Repository] = []
    page = 1
    while True:
        content = await _get(client, url, params={"page": page})
        repos = _decode_page(content, page)
        logger.debug(f"page {page} has {len(repos)} repos")

        if len(repos) == 0:
            break

        if username:
            all_repos.extend(repo for repo in repos if repo.owner == username)
        else:
            all_repos.extend(repos)

        page += 1

    return all_repos


async def list_repositories(
    host: str,
    token: str,
    owner_filter: OwnerFilter,
) -> List[Repository]:
    async with aiohttp.ClientSession(headers=auth_headers(token)) as client:
        match owner_filter.mode:
            case FilterMode.CURRENT_USER:
                username = await fetch_username(client, host)
            case FilterMode.NAMED_USER:
                username = owner_filter.username
            case _:
                username = None

        if username:
            logger.info(f"only repos owned by {username}")
        return await fetch_repositories(client, host, username)
