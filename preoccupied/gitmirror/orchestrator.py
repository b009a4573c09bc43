"""
Sequencing of provider, mirror and local git stages for the gitmirror
application.

Every stage is idempotent on its own: repositories are only created when
an existence check says they are missing, duplicate mirrors are accepted,
and remote reconciliation converges from whatever state it finds. Stages
are never rolled back, so re-running after a failure picks up where the
last run stopped.

:author: Christopher O'Brien <obriencj@preoccupied.net>
:license: GNU General Public License v3
:ai-assistant: Auto via Cursor
"""

import logging
import os
import subprocess
import tempfile
from contextlib import contextmanager
from typing import Iterable, Iterator

import httpx

from . import git
from .config import RootConfig
from .errors import GitMirrorError, NotAGitWorkingCopy, RepositoryNotFound, StageFailed
from .mirror import build_mirror_spec, primary_registrar
from .models import BatchResult, Platform, ProvisioningReport, ProvisioningRequest, Visibility
from .providers import ProviderGateway, platform_gateway, primary_gateway
from .remotes import RemoteReconciler


logger = logging.getLogger(__name__)


STAGE_SECONDARY = 'secondary'
STAGE_PRIMARY = 'primary'
STAGE_MIRROR = 'mirror'
STAGE_SEED = 'seed'
STAGE_REMOTE = 'remote'
STAGE_CLONE = 'clone'


@contextmanager
def stage(name: str, report: ProvisioningReport) -> Iterator[None]:
    """
    Run a block as the named stage. Failures are re-raised as
    StageFailed; success appends the stage to the report.
    """

    try:
        yield
    except StageFailed:
        raise
    except (GitMirrorError, subprocess.CalledProcessError, OSError) as e:
        raise StageFailed(name, e) from e

    report.stages.append(name)


async def ensure_repository(
        gateway: ProviderGateway,
        owner: str,
        name: str,
        request: ProvisioningRequest) -> bool:
    """
    Create owner/name on the gateway's provider unless it already
    exists. Returns True if it was created.
    """

    label = gateway.label
    logger.info(f'Checking {label}...')

    if await gateway.exists(owner, name):
        logger.info(f'  ✓ {label} repo already exists')
        return False

    logger.info(f'  → Creating {label} repo...')
    await gateway.create(name, request.visibility)
    logger.info(f'  ✓ {label} repo created')
    return True


class Orchestrator:
    """
    Runs provisioning for one repository at a time. The httpx client is
    owned by the caller and shared across every provider call.
    """

    def __init__(self, config: RootConfig, client: httpx.AsyncClient):
        self.config = config
        self.client = client


    def _check_preconditions(self, platform: Platform) -> None:
        self.config.require_primary()
        self.config.require_platform(platform)


    def _reconciler(self) -> RemoteReconciler:
        gitea = self.config.gitea
        return RemoteReconciler(
            primary_url=gitea.url,
            owner=gitea.username,
            credentials=git.credential_injector(gitea),
            alternate_remote=gitea.alternate_remote)


    async def _reconcile(self, repo_dir: str, name: str, report: ProvisioningReport) -> None:
        outcome = await self._reconciler().reconcile(repo_dir, name)
        report.remote = outcome.remote
        report.branch = outcome.branch


    async def _secondary_stage(self, request: ProvisioningRequest, report: ProvisioningReport) -> None:
        gateway = platform_gateway(self.config, request.platform, self.client)
        owner, _token = self.config.require_platform(request.platform)

        with stage(STAGE_SECONDARY, report):
            if await ensure_repository(gateway, owner, request.name, request):
                report.created.append(request.platform.value)


    async def _primary_stage(self, request: ProvisioningRequest, report: ProvisioningReport) -> None:
        gateway = primary_gateway(self.config, self.client)

        with stage(STAGE_PRIMARY, report):
            if await ensure_repository(gateway, self.config.gitea.username, request.name, request):
                report.created.append('gitea')


    async def _mirror_stage(self, request: ProvisioningRequest, report: ProvisioningReport) -> None:
        registrar = primary_registrar(self.config, self.client)
        spec = build_mirror_spec(self.config, request.platform, request.name)

        with stage(STAGE_MIRROR, report):
            logger.info(f'Setting up {request.platform.label} mirror...')
            await registrar.register_push_mirror(
                spec.source.owner, spec.source.name, spec)
            logger.info('  ✓ Mirror configured')


    async def _remote_stages(self, request: ProvisioningRequest, report: ProvisioningReport) -> None:
        """
        Secondary platform, then primary host, then the push mirror
        between them.
        """

        await self._secondary_stage(request, report)
        await self._primary_stage(request, report)
        await self._mirror_stage(request, report)


    async def add(self, request: ProvisioningRequest, path: str) -> ProvisioningReport:
        """
        Provision an existing local repository at path and point it at
        the primary host.
        """

        if not git.is_git_working_copy(path):
            raise NotAGitWorkingCopy(path)

        self._check_preconditions(request.platform)
        report = ProvisioningReport(request=request)

        await self._remote_stages(request, report)

        with stage(STAGE_REMOTE, report):
            logger.info('Configuring git remote...')
            await self._reconcile(path, request.name, report)

        return report


    async def create(self, request: ProvisioningRequest, workdir: str) -> ProvisioningReport:
        """
        Provision a brand new repository, give it an initial commit, and
        clone it into workdir.
        """

        self._check_preconditions(request.platform)
        report = ProvisioningReport(request=request)

        await self._remote_stages(request, report)

        with tempfile.TemporaryDirectory(prefix='gitmirror-') as tmpdir:
            with stage(STAGE_SEED, report):
                logger.info('Initializing repository...')
                await git.seed_repository(tmpdir, request.name)

            with stage(STAGE_REMOTE, report):
                await self._reconcile(tmpdir, request.name, report)

        gitea = self.config.gitea
        clone_url = git.credential_injector(gitea).remote_url(
            gitea.url, gitea.username, request.name)

        with stage(STAGE_CLONE, report):
            logger.info('Pulling repository to current directory...')
            await git.clone(clone_url, request.name, cwd=workdir)
            logger.info(f'  ✓ Repository cloned to {os.path.join(workdir, request.name)}')

        return report


    async def mirror(self, request: ProvisioningRequest) -> ProvisioningReport:
        """
        Add the push mirror to a repository that must already exist on
        the primary host.
        """

        self._check_preconditions(request.platform)
        report = ProvisioningReport(request=request)
        gateway = primary_gateway(self.config, self.client)
        owner = self.config.gitea.username

        with stage(STAGE_PRIMARY, report):
            logger.info('Checking Gitea repository...')
            if not await gateway.exists(owner, request.name):
                raise RepositoryNotFound(owner, request.name)
            logger.info('  ✓ Repository found')

        await self._mirror_stage(request, report)
        return report


    async def bulk(
            self,
            names: Iterable[str],
            visibility: Visibility = Visibility.PUBLIC,
            platform: Platform = Platform.GITHUB) -> BatchResult:
        """
        Back-fill the primary host and the push mirror for repositories
        that already live on the secondary platform. Every name shares
        the same visibility and platform. Each name is handled to
        completion before the next; a failure is recorded and the loop
        moves on.
        """

        self._check_preconditions(platform)
        names = list(names)
        result = BatchResult(total=len(names))

        logger.info(f'Processing {len(names)} repositories')

        for name in names:
            logger.info(f'Processing: {name}')
            named = ProvisioningRequest(name=name, visibility=visibility, platform=platform)
            report = ProvisioningReport(request=named)

            try:
                await self._primary_stage(named, report)
                await self._mirror_stage(named, report)
            except StageFailed as e:
                logger.error(f'  ✗ {name}: {e}')
                result.failures[name] = str(e)
                continue

            logger.info(f'  ✓ {name} complete!')
            result.completed += 1

        return result


# The end.
