"""
General git utilities for the gitmirror application.

:author: Christopher O'Brien <obriencj@preoccupied.net>
:license: GNU General Public License v3
:ai-assistant: Auto via Cursor
"""

import asyncio
import logging
import re
import subprocess
from datetime import date
from pathlib import Path
from typing import Optional, Tuple
from urllib.parse import quote, urlsplit, urlunsplit

from .config import GiteaConfig


logger = logging.getLogger(__name__)


DEFAULT_BRANCH = 'main'

GITIGNORE = """\
# Common ignores
.DS_Store
*.log
node_modules/
__pycache__/
*.pyc
.env
"""

_USERINFO_SECRET = re.compile(r'(://[^:/@\s]+):[^@/\s]+@')


def redact(text: str) -> str:
    """
    Mask the password portion of any URL userinfo in text
    """

    return _USERINFO_SECRET.sub(r'\1:***@', text)


def _redact_args(args: Tuple[str, ...]) -> Tuple[str, ...]:
    return tuple(redact(a) for a in args)


async def run(*args: str, cwd: str = None) -> str:
    """
    Run a command to completion and return its stripped stdout. A
    non-zero exit raises CalledProcessError with credentials masked out
    of the recorded command line.
    """

    shown = _redact_args(args)
    logger.debug(f'Running {shown} in {cwd}')
    process = await asyncio.create_subprocess_exec(
        *args,
        cwd=cwd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE
    )
    stdout, stderr = await process.communicate()
    if process.returncode != 0:
        raise subprocess.CalledProcessError(
            process.returncode, shown,
            output=stdout, stderr=redact(stderr.decode(errors='replace')))

    return stdout.decode(errors='replace').strip()


def strip_userinfo(url: str) -> str:
    """
    Drop any user:password@ portion from a URL. URLs without a scheme,
    such as scp-style ``git@host:path``, are returned unchanged.
    """

    parts = urlsplit(url)
    if not parts.scheme or '@' not in parts.netloc:
        return url

    netloc = parts.netloc.rsplit('@', 1)[1]
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


def _repo_path(base: str, owner: str, name: str) -> str:
    return f'{base.rstrip("/")}/{owner}/{name}.git'


class CredentialInjector:
    """
    Produces the URL git uses to reach a repository on the primary host.
    Subclasses decide how, or whether, credentials travel with it.
    """

    def remote_url(self, base_url: str, owner: str, name: str) -> str:
        raise NotImplementedError()


class EmbeddedCredentials(CredentialInjector):
    """
    Basic-auth credentials embedded directly in the remote URL. These end
    up in the working copy's .git/config.
    """

    def __init__(self, username: str, token: str):
        self.username = username
        self._token = token


    def remote_url(self, base_url: str, owner: str, name: str) -> str:
        parts = urlsplit(base_url)
        userinfo = f'{quote(self.username, safe="")}:{quote(self._token, safe="")}'
        netloc = f'{userinfo}@{parts.netloc}'
        path = _repo_path(parts.path, owner, name)
        return urlunsplit((parts.scheme, netloc, path, '', ''))


class HelperCredentials(CredentialInjector):
    """
    Plain remote URL, leaving authentication to a configured git
    credential helper.
    """

    def remote_url(self, base_url: str, owner: str, name: str) -> str:
        return _repo_path(base_url, owner, name)


def credential_injector(gitea: GiteaConfig) -> CredentialInjector:
    if gitea.credential_mode == 'helper':
        return HelperCredentials()
    return EmbeddedCredentials(gitea.username, gitea.token)


def is_git_working_copy(path: str) -> bool:
    return (Path(path) / '.git').exists()


async def remote_get_url(repo_dir: str, remote: str) -> Optional[str]:
    """
    URL of the named remote, or None if there is no such remote.
    """

    try:
        return await run('git', 'remote', 'get-url', remote, cwd=repo_dir)
    except subprocess.CalledProcessError:
        return None


async def current_branch(repo_dir: str) -> str:
    """
    The checked out branch, or DEFAULT_BRANCH when HEAD is detached.
    """

    branch = await run('git', 'branch', '--show-current', cwd=repo_dir)
    return branch or DEFAULT_BRANCH


async def push_upstream(repo_dir: str, remote: str, branch: str) -> None:
    await run('git', 'push', '-u', remote, branch, cwd=repo_dir)


async def seed_repository(repo_dir: str, name: str, today: Optional[date] = None) -> None:
    """
    Initialise repo_dir as a new repository on branch main holding a
    README and a .gitignore in a single initial commit.
    """

    today = today or date.today()
    repo_path = Path(repo_dir)

    await run('git', 'init', '-b', DEFAULT_BRANCH, cwd=repo_dir)
    logger.info('  ✓ Git initialized')

    readme = f'# {name}\n\nRepository created on {today.isoformat()}\n'
    (repo_path / 'README.md').write_text(readme)
    logger.info('  ✓ README.md created')

    (repo_path / '.gitignore').write_text(GITIGNORE)
    logger.info('  ✓ .gitignore created')

    await run('git', 'add', '.', cwd=repo_dir)
    await run('git', 'commit', '-m', 'init', cwd=repo_dir)
    logger.info('  ✓ Initial commit created')


async def clone(git_url: str, dest: str, cwd: str = None) -> None:
    logger.info(f'  → Cloning {redact(git_url)} to {dest}')
    await run('git', 'clone', git_url, dest, cwd=cwd)


# The end.
