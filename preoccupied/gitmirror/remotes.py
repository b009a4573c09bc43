"""
Converges a local working copy's git remotes onto the primary host.

:author: Christopher O'Brien <obriencj@preoccupied.net>
:license: GNU General Public License v3
:ai-assistant: Auto via Cursor
"""

import logging
import subprocess
from enum import Enum
from typing import Optional, Sequence

from pydantic import BaseModel

from . import git
from .errors import PushFailed
from .git import CredentialInjector


logger = logging.getLogger(__name__)


ORIGIN = 'origin'

# branch names probed, in order, when pushing to the alternate remote
FALLBACK_BRANCHES = ('main', 'master')


class RemoteState(str, Enum):
    NO_ORIGIN = 'no-origin'
    ORIGIN_IS_PRIMARY = 'origin-is-primary'
    ORIGIN_IS_OTHER = 'origin-is-other'


class ReconcileOutcome(BaseModel):
    state: RemoteState
    remote: str
    branch: str


def classify_origin(origin_url: Optional[str], primary_url: str) -> RemoteState:
    """
    Decide which reconciliation path applies. An origin counts as the
    primary host when its URL, ignoring any embedded credentials,
    contains the primary host's base URL.
    """

    if origin_url is None:
        return RemoteState.NO_ORIGIN

    if primary_url in git.strip_userinfo(origin_url):
        return RemoteState.ORIGIN_IS_PRIMARY

    return RemoteState.ORIGIN_IS_OTHER


def _stderr(e: subprocess.CalledProcessError) -> str:
    err = e.stderr or ''
    if isinstance(err, bytes):
        err = err.decode(errors='replace')
    return err.strip()


class RemoteReconciler:
    """
    Points a working copy at owner/name on the primary host and pushes
    to it.
    """

    def __init__(
            self,
            primary_url: str,
            owner: str,
            credentials: CredentialInjector,
            alternate_remote: str = 'gitea'):

        self.primary_url = primary_url.rstrip('/')
        self.owner = owner
        self.credentials = credentials
        self.alternate_remote = alternate_remote


    async def reconcile(self, repo_dir: str, name: str) -> ReconcileOutcome:
        """
        Examine origin once and take the matching path. Raises PushFailed
        if the final push does not succeed; other git failures propagate
        as CalledProcessError.
        """

        remote_url = self.credentials.remote_url(self.primary_url, self.owner, name)
        origin_url = await git.remote_get_url(repo_dir, ORIGIN)
        state = classify_origin(origin_url, self.primary_url)

        if state is RemoteState.NO_ORIGIN:
            logger.info('  → Adding Gitea as origin remote...')
            await git.run('git', 'remote', 'add', ORIGIN, remote_url, cwd=repo_dir)
            logger.info('  ✓ Remote added')

        elif state is RemoteState.ORIGIN_IS_PRIMARY:
            logger.info('  → Updating origin URL...')
            await git.run('git', 'remote', 'set-url', ORIGIN, remote_url, cwd=repo_dir)
            logger.info('  ✓ Remote updated')

        else:
            logger.info(f'  ℹ Origin exists ({git.redact(origin_url)})')
            return await self._reconcile_alternate(repo_dir, remote_url)

        await self._drop_stale_alternate(repo_dir)

        branch = await git.current_branch(repo_dir)
        logger.info(f'  → Pushing to Gitea (branch: {branch})...')
        await self._push(repo_dir, ORIGIN, (branch,))
        logger.info('  ✓ Pushed to Gitea')

        return ReconcileOutcome(state=state, remote=ORIGIN, branch=branch)


    async def _drop_stale_alternate(self, repo_dir: str) -> None:
        """
        Once origin points at the primary host, an alternate remote left
        by an earlier run at the same host is removed so that only one
        remote targets it.
        """

        remote = self.alternate_remote
        url = await git.remote_get_url(repo_dir, remote)
        if url is None or classify_origin(url, self.primary_url) is not RemoteState.ORIGIN_IS_PRIMARY:
            return

        logger.info(f"  → Removing duplicate '{remote}' remote...")
        await git.run('git', 'remote', 'remove', remote, cwd=repo_dir)
        logger.info(f"  ✓ Remote '{remote}' removed")


    async def _reconcile_alternate(self, repo_dir: str, remote_url: str) -> ReconcileOutcome:
        remote = self.alternate_remote
        logger.info(f"  → Adding Gitea as '{remote}' remote...")

        try:
            await git.run('git', 'remote', 'remove', remote, cwd=repo_dir)
        except subprocess.CalledProcessError:
            logger.debug(f'No stale {remote!r} remote to remove')

        await git.run('git', 'remote', 'add', remote, remote_url, cwd=repo_dir)
        logger.info(f"  ✓ Remote '{remote}' added")

        logger.info('  → Pushing to Gitea...')
        branch = await self._push(repo_dir, remote, FALLBACK_BRANCHES)
        logger.info(f"  ✓ Pushed to Gitea (use 'git push {remote}' in the future)")

        return ReconcileOutcome(
            state=RemoteState.ORIGIN_IS_OTHER, remote=remote, branch=branch)


    async def _push(self, repo_dir: str, remote: str, branches: Sequence[str]) -> str:
        """
        Push each branch in turn until one succeeds, returning its name.
        """

        last_error = ''
        for branch in branches:
            try:
                await git.push_upstream(repo_dir, remote, branch)
            except subprocess.CalledProcessError as e:
                last_error = _stderr(e)
                logger.debug(f'Push of {branch!r} to {remote!r} failed: {last_error}')
                continue
            return branch

        raise PushFailed(remote, branches, last_error)


# The end.
