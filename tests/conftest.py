import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

TOKEN = "abc"


def repo_json(full_name: str) -> dict:
    owner, name = full_name.split("/", 1)
    return {
        "id": hash(full_name) & 0xFFFF,
        "name": name,
        "full_name": full_name,
        "clone_url": f"https://git.example.com/{full_name}.git",
        "owner": {"login": owner},
        "private": False,
    }


class FakeGitea:
    """In-process stand-in for the two Gitea endpoints."""

    def __init__(self):
        self.host = ""
        self.login = "alice"
        self.pages: list = []
        self.fail_page: int | None = None
        self.raw_page: dict[int, bytes] = {}
        self.user_status = 200
        self.requested_pages: list[int] = []

    def _authorized(self, request: web.Request) -> bool:
        return request.headers.get("Authorization") == f"token {TOKEN}"

    async def user(self, request: web.Request) -> web.Response:
        if not self._authorized(request):
            return web.Response(status=401)
        if self.user_status != 200:
            return web.Response(status=self.user_status)
        return web.json_response({"id": 1, "login": self.login})

    async def user_repos(self, request: web.Request) -> web.Response:
        if not self._authorized(request):
            return web.Response(status=401)

        page = int(request.query.get("page", "1"))
        self.requested_pages.append(page)

        if page == self.fail_page:
            return web.Response(status=500, text="boom")
        if page in self.raw_page:
            return web.Response(body=self.raw_page[page], content_type="application/json")

        index = page - 1
        repos = self.pages[index] if index < len(self.pages) else []
        return web.json_response([repo_json(name) for name in repos])


@pytest_asyncio.fixture
async def gitea():
    fake = FakeGitea()
    app = web.Application()
    app.router.add_get("/api/v1/user", fake.user)
    app.router.add_get("/api/v1/user/repos", fake.user_repos)

    server = TestServer(app)
    await server.start_server()
    fake.host = f"http://{server.host}:{server.port}"
    yield fake
    await server.close()


def make_proc(returncode: int = 0, stderr: bytes = b"", hang: bool = False):
    proc = MagicMock()
    proc.returncode = returncode

    async def communicate():
        if hang:
            await asyncio.sleep(3600)
        return b"", stderr

    proc.communicate = communicate
    proc.kill = MagicMock()
    proc.wait = AsyncMock(return_value=-9)
    return proc


@pytest.fixture
def fake_git():
    """Patch the subprocess spawn used by `git clone`.

    Every call gets a process exiting 0, unless `side_effect` is replaced.
    """
    spawn = AsyncMock(side_effect=lambda *cmd, **kwargs: make_proc())
    with patch("gitea_mirror._mirror.clone.asyncio.create_subprocess_exec", spawn):
        yield spawn


def cloned_urls(spawn: AsyncMock) -> list[str]:
    """Clone URLs passed to every spawned `git clone`."""
    return [call.args[-2] for call in spawn.call_args_list]
