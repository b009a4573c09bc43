"""
Push mirror registration on the primary host.

:author: Christopher O'Brien <obriencj@preoccupied.net>
:license: GNU General Public License v3
:ai-assistant: Auto via Cursor
"""

import logging

import httpx

from .config import RootConfig
from .errors import MirrorRegistrationFailed, TransportError
from .models import MirrorSpec, Platform, RepositoryIdentity


logger = logging.getLogger(__name__)


# Gitea has no idempotent upsert for push mirrors. A duplicate is
# reported as an error whose body contains this text, which we accept as
# success. If Gitea ever rewords the message this check stops matching.
ALREADY_EXISTS_MARKER = 'already exists'

SUCCESS_STATUSES = (200, 201)


class MirrorRegistrar:
    """
    Configures push mirrors through the Gitea API
    """

    def __init__(self, base_url: str, token: str, client: httpx.AsyncClient):
        self.api_base = base_url.rstrip('/') + '/api/v1'
        self.client = client
        self._token = token


    async def register_push_mirror(self, owner: str, name: str, spec: MirrorSpec) -> None:
        """
        Ask the primary host to push owner/name to the spec's destination
        on every commit and on the spec's interval. An existing identical
        mirror counts as success.
        """

        url = f'{self.api_base}/repos/{owner}/{name}/push_mirrors'
        headers = {
            'Authorization': f'token {self._token}',
            'Accept': 'application/json',
        }

        logger.debug(f'Gitea: POST {url} -> {spec.destination_url}')
        try:
            r = await self.client.post(url, headers=headers, json=spec.payload())
        except httpx.TransportError as e:
            raise TransportError(f'Gitea unreachable at {url}: {e}') from e

        if r.status_code in SUCCESS_STATUSES:
            return

        if ALREADY_EXISTS_MARKER in r.text:
            logger.debug(f'Push mirror {owner}/{name} -> {spec.destination_url} already exists')
            return

        raise MirrorRegistrationFailed(r.status_code, r.text)


def build_mirror_spec(config: RootConfig, platform: Platform, name: str) -> MirrorSpec:
    """
    MirrorSpec pushing the primary host's copy of name to the same name
    under the platform account. Raises PreconditionMissing if either side
    lacks credentials.
    """

    gitea = config.require_primary()
    username, token = config.require_platform(platform)

    return MirrorSpec(
        source=RepositoryIdentity(owner=gitea.username, name=name),
        destination_url=config.mirror_address(platform, name),
        destination_username=username,
        destination_secret=token)


def primary_registrar(config: RootConfig, client: httpx.AsyncClient) -> MirrorRegistrar:
    gitea = config.require_primary()
    return MirrorRegistrar(gitea.url, gitea.token, client)


# The end.
