"""
Shared pytest fixtures for gitmirror tests.

:author: Christopher O'Brien <obriencj@preoccupied.net>
:license: GNU General Public License v3
:ai-assistant: Auto via Cursor
"""

import json
import subprocess
import tempfile
from typing import Dict, List, Optional, Set, Tuple

import httpx
import pytest

from preoccupied.gitmirror.config import GiteaConfig, GitHubConfig, GitLabConfig, RootConfig


GITEA_URL = 'http://gitea.example:3000'


class FakeForge:
    """
    In-memory Gitea, GitHub and GitLab behind an httpx.MockTransport.
    Repositories are tracked per provider as 'owner/name' strings.
    """

    HOSTS = {
        'gitea.example': 'gitea',
        'api.github.com': 'github',
        'gitlab.com': 'gitlab',
    }

    OWNERS = {
        'gitea': 'alice',
        'github': 'alice-gh',
        'gitlab': 'alice-gl',
    }

    def __init__(self):
        self.repos: Dict[str, Set[str]] = {'gitea': set(), 'github': set(), 'gitlab': set()}
        self.mirrors: Set[Tuple[str, str]] = set()
        self.requests: List[Tuple[str, str, str, Optional[dict]]] = []
        self.broken: Set[str] = set()
        self.offline = False


    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


    def created(self, provider: str) -> List[dict]:
        """
        Bodies of every creation POST sent to provider
        """

        return [
            body for (p, method, path, body) in self.requests
            if p == provider and method == 'POST' and not path.endswith('/push_mirrors')
        ]


    def mirror_posts(self) -> List[dict]:
        return [
            body for (p, method, path, body) in self.requests
            if method == 'POST' and path.endswith('/push_mirrors')
        ]


    def handler(self, request: httpx.Request) -> httpx.Response:
        if self.offline:
            raise httpx.ConnectError('connection refused', request=request)

        provider = self.HOSTS[request.url.host]
        path = request.url.path
        body = json.loads(request.content) if request.content else None
        self.requests.append((provider, request.method, path, body))

        prefix = {'gitea': '/api/v1', 'github': '', 'gitlab': '/api/v4'}[provider]
        path = path[len(prefix):]

        if request.method == 'GET':
            project = path.split('/', 2)[2]
            if project.split('/')[-1] in self.broken:
                return httpx.Response(500, text='internal error')
            if project in self.repos[provider]:
                return httpx.Response(200, json={'full_name': project})
            return httpx.Response(404, json={'message': 'Not Found'})

        if path.endswith('/push_mirrors'):
            project = path[len('/repos/'):-len('/push_mirrors')]
            if project not in self.repos[provider]:
                return httpx.Response(404, json={'message': 'Not Found'})
            key = (project, body['remote_address'])
            if key in self.mirrors:
                return httpx.Response(
                    400, json={'message': 'push mirror for this remote already exists'})
            self.mirrors.add(key)
            return httpx.Response(201, json=body)

        project = f'{self.OWNERS[provider]}/{body["name"]}'
        if project in self.repos[provider]:
            return httpx.Response(422, json={'message': 'name already exists'})
        self.repos[provider].add(project)
        return httpx.Response(201, json={'full_name': project})


class FakeGit:
    """
    Stand-in for the git runner, tracking remotes and which branches can
    be pushed.
    """

    def __init__(self, remotes=None, branch='main', pushable=('main',)):
        self.remotes: Dict[str, str] = dict(remotes or {})
        self.branch = branch
        self.pushable = set(pushable)
        self.upstream: Dict[str, str] = {}
        self.calls: List[Tuple[str, ...]] = []


    def pushes(self) -> List[Tuple[str, str]]:
        return [(c[3], c[4]) for c in self.calls if c[1] == 'push']


    async def __call__(self, *args: str, cwd: str = None) -> str:
        self.calls.append(args)
        cmd = args[1:]

        def fail(code=2, stderr='error'):
            raise subprocess.CalledProcessError(code, args, stderr=stderr)

        if cmd[:2] == ('remote', 'get-url'):
            if cmd[2] not in self.remotes:
                fail(stderr=f"error: No such remote '{cmd[2]}'")
            return self.remotes[cmd[2]]

        if cmd[:2] == ('remote', 'add'):
            if cmd[2] in self.remotes:
                fail(3, f'error: remote {cmd[2]} already exists.')
            self.remotes[cmd[2]] = cmd[3]

        elif cmd[:2] == ('remote', 'set-url'):
            if cmd[2] not in self.remotes:
                fail(stderr=f"error: No such remote '{cmd[2]}'")
            self.remotes[cmd[2]] = cmd[3]

        elif cmd[:2] == ('remote', 'remove'):
            if cmd[2] not in self.remotes:
                fail(stderr=f"error: No such remote: '{cmd[2]}'")
            del self.remotes[cmd[2]]

        elif cmd == ('branch', '--show-current'):
            return self.branch

        elif cmd[0] == 'push':
            remote, branch = cmd[2], cmd[3]
            if remote not in self.remotes or branch not in self.pushable:
                fail(1, f'error: src refspec {branch} does not match any')
            self.upstream[branch] = remote

        return ''


@pytest.fixture
def temp_dir():
    """
    Create a temporary directory for tests.
    """

    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def root_config():
    """
    A fully populated RootConfig for testing.
    """

    return RootConfig(
        gitea=GiteaConfig(url=GITEA_URL, username='alice', token='gitea-token'),
        github=GitHubConfig(username='alice-gh', token='gh-token'),
        gitlab=GitLabConfig(username='alice-gl', token='gl-token'),
    )


@pytest.fixture
def forge():
    return FakeForge()


@pytest.fixture
def fake_git():
    return FakeGit()


@pytest.fixture
def mock_env_vars(monkeypatch):
    """
    Clear and optionally set environment variables for testing.
    """

    env_vars_to_clear = [
        'GITMIRROR_CONFIG',
        'GITMIRROR_GITEA_URL',
        'GITMIRROR_GITEA_USERNAME',
        'GITMIRROR_GITEA_TOKEN',
        'GITMIRROR_GITEA_CREDENTIAL_MODE',
        'GITMIRROR_GITHUB_USERNAME',
        'GITMIRROR_GITHUB_TOKEN',
        'GITMIRROR_GITLAB_URL',
        'GITMIRROR_GITLAB_USERNAME',
        'GITMIRROR_GITLAB_TOKEN',
    ]

    for var in env_vars_to_clear:
        monkeypatch.delenv(var, raising=False)

    return monkeypatch


# The end.
