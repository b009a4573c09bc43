"""
Repository existence and creation against git hosting providers.

Gitea, GitHub and GitLab differ only in endpoint layout, how the token
is presented, and how visibility and the no-auto-init flag are spelled
in the creation body. Those differences live in the PROFILES table, and
a single ProviderGateway class drives all three.

:author: Christopher O'Brien <obriencj@preoccupied.net>
:license: GNU General Public License v3
:ai-assistant: Auto via Cursor
"""

import logging
from typing import Any, Dict, Literal
from urllib.parse import quote

import httpx
from pydantic import BaseModel

from .config import RootConfig
from .errors import CreateFailed, TransportError, UnexpectedStatus
from .models import Platform, Visibility


logger = logging.getLogger(__name__)


class ProviderProfile(BaseModel):
    """
    Wire-level description of one hosting provider's repository API
    """

    label: str
    api_path: str
    repo_path: str
    create_path: str
    auth_header: str
    auth_prefix: str = ''
    visibility_style: Literal['private_flag', 'visibility']
    no_init_field: str
    quote_project: bool = False

    model_config = {'frozen': True}


    def repo_endpoint(self, api_base: str, owner: str, name: str) -> str:
        project = f'{owner}/{name}'
        if self.quote_project:
            project = quote(project, safe='')
        return api_base + self.repo_path.format(project=project)


    def create_payload(self, name: str, visibility: Visibility) -> Dict[str, Any]:
        body: Dict[str, Any] = {'name': name}
        if self.visibility_style == 'private_flag':
            body['private'] = visibility.private
        else:
            body['visibility'] = visibility.value
        body[self.no_init_field] = False
        return body


PROFILES: Dict[str, ProviderProfile] = {
    'gitea': ProviderProfile(
        label='Gitea',
        api_path='/api/v1',
        repo_path='/repos/{project}',
        create_path='/user/repos',
        auth_header='Authorization',
        auth_prefix='token ',
        visibility_style='private_flag',
        no_init_field='auto_init'),

    'github': ProviderProfile(
        label='GitHub',
        api_path='',
        repo_path='/repos/{project}',
        create_path='/user/repos',
        auth_header='Authorization',
        auth_prefix='token ',
        visibility_style='private_flag',
        no_init_field='auto_init'),

    'gitlab': ProviderProfile(
        label='GitLab',
        api_path='/api/v4',
        repo_path='/projects/{project}',
        create_path='/projects',
        auth_header='PRIVATE-TOKEN',
        visibility_style='visibility',
        no_init_field='initialize_with_readme',
        quote_project=True),
}


GITHUB_API_URL = 'https://api.github.com'


class ProviderGateway:
    """
    Exists/create operations for one provider account. The httpx client
    is owned by the caller and may be shared between gateways.
    """

    def __init__(
            self,
            profile: ProviderProfile,
            base_url: str,
            token: str,
            client: httpx.AsyncClient):

        self.profile = profile
        self.api_base = base_url.rstrip('/') + profile.api_path
        self.client = client
        self._token = token


    @property
    def label(self) -> str:
        return self.profile.label


    def _headers(self) -> Dict[str, str]:
        return {
            self.profile.auth_header: f'{self.profile.auth_prefix}{self._token}',
            'Accept': 'application/json',
        }


    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        logger.debug(f'{self.label}: {method} {url}')
        try:
            return await self.client.request(method, url, headers=self._headers(), **kwargs)
        except httpx.TransportError as e:
            raise TransportError(f'{self.label} unreachable at {url}: {e}') from e


    async def exists(self, owner: str, name: str) -> bool:
        """
        True if owner/name exists, False on 404. Any other status raises
        UnexpectedStatus.
        """

        url = self.profile.repo_endpoint(self.api_base, owner, name)
        r = await self._request('GET', url)

        if r.status_code == 404:
            return False
        if r.status_code == 200:
            return True

        raise UnexpectedStatus(r.status_code, r.text)


    async def create(self, name: str, visibility: Visibility) -> None:
        """
        Create a repository under the token's own account. Anything but
        201 Created raises CreateFailed.
        """

        url = self.api_base + self.profile.create_path
        body = self.profile.create_payload(name, visibility)
        r = await self._request('POST', url, json=body)

        if r.status_code != 201:
            raise CreateFailed(r.status_code, r.text)


def primary_gateway(config: RootConfig, client: httpx.AsyncClient) -> ProviderGateway:
    gitea = config.require_primary()
    return ProviderGateway(PROFILES['gitea'], gitea.url, gitea.token, client)


def platform_gateway(
        config: RootConfig,
        platform: Platform,
        client: httpx.AsyncClient) -> ProviderGateway:
    """
    Gateway for the selected secondary platform. Raises
    PreconditionMissing if that platform has no credentials.
    """

    _username, token = config.require_platform(platform)

    if platform is Platform.GITHUB:
        return ProviderGateway(PROFILES['github'], GITHUB_API_URL, token, client)
    else:
        return ProviderGateway(PROFILES['gitlab'], config.gitlab.base_url, token, client)


# The end.
