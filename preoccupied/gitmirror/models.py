"""
Value types shared across the gitmirror application.

:author: Christopher O'Brien <obriencj@preoccupied.net>
:license: GNU General Public License v3
:ai-assistant: Auto via Cursor
"""

from datetime import timedelta
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


DEFAULT_MIRROR_INTERVAL = timedelta(hours=8)


class Visibility(str, Enum):
    PUBLIC = 'public'
    PRIVATE = 'private'


    @classmethod
    def from_flag(cls, private: bool) -> 'Visibility':
        return cls.PRIVATE if private else cls.PUBLIC


    @property
    def private(self) -> bool:
        return self is Visibility.PRIVATE


class Platform(str, Enum):
    """
    Secondary platform receiving the push mirror
    """

    GITHUB = 'github'
    GITLAB = 'gitlab'


    @property
    def label(self) -> str:
        return 'GitHub' if self is Platform.GITHUB else 'GitLab'


class RepositoryIdentity(BaseModel):
    """
    A repository name under an owning account on a single provider
    """

    owner: str
    name: str

    model_config = {'frozen': True}


    def __str__(self) -> str:
        return f'{self.owner}/{self.name}'


class ProvisioningRequest(BaseModel):
    """
    Everything chosen once per run: which repository, with what
    visibility, mirrored to which platform.
    """

    name: str
    visibility: Visibility = Visibility.PUBLIC
    platform: Platform = Platform.GITHUB

    model_config = {'frozen': True}


class MirrorSpec(BaseModel):
    """
    Push mirror from a repository on the primary host to a destination
    URL. Commit-triggered sync and the periodic interval are always
    requested together.
    """

    source: RepositoryIdentity
    destination_url: str
    destination_username: str
    destination_secret: str = Field(repr=False)
    sync_on_commit: bool = True
    interval: timedelta = DEFAULT_MIRROR_INTERVAL

    model_config = {'frozen': True}


    def payload(self) -> Dict[str, object]:
        return {
            'remote_address': self.destination_url,
            'remote_username': self.destination_username,
            'remote_password': self.destination_secret,
            'sync_on_commit': self.sync_on_commit,
            'interval': format_interval(self.interval),
        }


def format_interval(interval: timedelta) -> str:
    """
    Render a timedelta as a Go duration string, eg. ``8h0m0s``, which is
    what Gitea parses mirror intervals with.
    """

    total = int(interval.total_seconds())
    if total < 0:
        raise ValueError(f'negative mirror interval: {interval}')

    hours, rem = divmod(total, 3600)
    minutes, seconds = divmod(rem, 60)
    return f'{hours}h{minutes}m{seconds}s'


class ProvisioningReport(BaseModel):
    """
    Outcome of a single-repository run: the stages that completed in
    order, the providers on which the repository was newly created, and
    the local remote and branch pushed to the primary host.
    """

    request: ProvisioningRequest
    stages: List[str] = Field(default_factory=list)
    created: List[str] = Field(default_factory=list)
    remote: Optional[str] = None
    branch: Optional[str] = None


class BatchResult(BaseModel):
    """
    Outcome of a bulk run
    """

    total: int = 0
    completed: int = 0
    failures: Dict[str, str] = Field(default_factory=dict)


    @property
    def ok(self) -> bool:
        return self.completed == self.total


# The end.
