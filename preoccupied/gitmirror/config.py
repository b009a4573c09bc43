"""
Configuration models and loading for the gitmirror application.

:author: Christopher O'Brien <obriencj@preoccupied.net>
:license: GNU General Public License v3
:ai-assistant: Auto via Cursor
"""

import logging
import os
from typing import Any, Dict, Literal, Optional, Tuple

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .errors import PreconditionMissing
from .models import Platform


logger = logging.getLogger(__name__)


CONFIG_ENV = 'GITMIRROR_CONFIG'
CONFIG_FILENAME = '.gitmirror.yaml'

GITHUB_URL = 'https://github.com'
GITLAB_URL = 'https://gitlab.com'


class GiteaConfig(BaseModel):
    """
    Primary host settings
    """

    url: Optional[str] = None
    username: Optional[str] = None
    token: Optional[str] = Field(default=None, repr=False)

    # how credentials reach git remotes: embedded in the URL, or left to
    # a git credential helper
    credential_mode: Literal['embedded', 'helper'] = 'embedded'

    # remote name used when origin already points somewhere else
    alternate_remote: str = 'gitea'

    @field_validator('url')
    @classmethod
    def strip_slash(cls, v: Optional[str]) -> Optional[str]:
        return v.rstrip('/') if v else v


    @field_validator('alternate_remote')
    @classmethod
    def check_alternate_remote(cls, v: str) -> str:
        # origin belongs to the user when it points elsewhere
        v = v.strip()
        if not v:
            raise ValueError('alternate_remote must not be empty')
        if v == 'origin':
            raise ValueError("alternate_remote must not be 'origin'")
        return v


    def repo_url(self, name: str) -> str:
        return f'{self.url}/{self.username}/{name}'


class GitHubConfig(BaseModel):
    username: Optional[str] = None
    token: Optional[str] = Field(default=None, repr=False)


    def repo_url(self, name: str) -> str:
        return f'{GITHUB_URL}/{self.username}/{name}'


class GitLabConfig(BaseModel):
    url: Optional[str] = None
    username: Optional[str] = None
    token: Optional[str] = Field(default=None, repr=False)

    @field_validator('url')
    @classmethod
    def strip_slash(cls, v: Optional[str]) -> Optional[str]:
        return v.rstrip('/') if v else v


    @property
    def base_url(self) -> str:
        return self.url or GITLAB_URL


    def repo_url(self, name: str) -> str:
        return f'{self.base_url}/{self.username}/{name}'


class RootConfig(BaseModel):
    """
    The full credential set. Read-only once loaded.
    """

    gitea: GiteaConfig = Field(default_factory=GiteaConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    gitlab: GitLabConfig = Field(default_factory=GitLabConfig)


    @model_validator(mode='before')
    def fill_empty_sections(cls, v: Any) -> Any:
        """
        A section header with nothing under it loads from YAML as None,
        treat it as an empty section.
        """

        if not isinstance(v, dict):
            return v

        fixed = dict(v)
        for section in ('gitea', 'github', 'gitlab'):
            if fixed.get(section) is None:
                fixed[section] = {}
        return fixed


    def require_primary(self) -> GiteaConfig:
        """
        Return the Gitea section, or raise PreconditionMissing if any of
        its url, username or token is unset.
        """

        g = self.gitea
        if not (g.url and g.username and g.token):
            raise PreconditionMissing(
                "Gitea credentials not configured. Run 'gitmirror init' to configure")
        return g


    def require_platform(self, platform: Platform) -> Tuple[str, str]:
        """
        Return the (username, token) pair for the selected secondary
        platform, or raise PreconditionMissing.
        """

        section = self.github if platform is Platform.GITHUB else self.gitlab
        if not (section.username and section.token):
            raise PreconditionMissing(
                f"{platform.label} credentials not configured."
                " Run 'gitmirror init' to configure")
        return section.username, section.token


    def mirror_address(self, platform: Platform, name: str) -> str:
        """
        The clone URL the primary host pushes to for this repository
        """

        if platform is Platform.GITHUB:
            return self.github.repo_url(name) + '.git'
        else:
            return self.gitlab.repo_url(name) + '.git'


def default_config_path() -> str:
    path = os.environ.get(CONFIG_ENV)
    if path:
        return path
    return os.path.join(os.path.expanduser('~'), CONFIG_FILENAME)


def _config_from_env() -> Dict[str, Dict[str, str]]:
    """
    Build a partial configuration dictionary from GITMIRROR_* environment
    variables. Only variables that are set appear in the result.
    """

    pairs = (
        ('GITMIRROR_GITEA_URL', 'gitea', 'url'),
        ('GITMIRROR_GITEA_USERNAME', 'gitea', 'username'),
        ('GITMIRROR_GITEA_TOKEN', 'gitea', 'token'),
        ('GITMIRROR_GITEA_CREDENTIAL_MODE', 'gitea', 'credential_mode'),
        ('GITMIRROR_GITHUB_USERNAME', 'github', 'username'),
        ('GITMIRROR_GITHUB_TOKEN', 'github', 'token'),
        ('GITMIRROR_GITLAB_URL', 'gitlab', 'url'),
        ('GITMIRROR_GITLAB_USERNAME', 'gitlab', 'username'),
        ('GITMIRROR_GITLAB_TOKEN', 'gitlab', 'token'))

    result: Dict[str, Dict[str, str]] = {}
    for env_var, section, config_key in pairs:
        value = os.environ.get(env_var)
        if value is not None:
            result.setdefault(section, {})[config_key] = value

    return result


def load_config(path: Optional[str] = None) -> RootConfig:
    """
    Load the configuration file, with any GITMIRROR_* environment
    variables layered over it. Raises PreconditionMissing if there is
    neither a file nor any environment configuration.
    """

    path = path or default_config_path()
    env_config = _config_from_env()

    if os.path.exists(path):
        try:
            with open(path, 'r') as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise PreconditionMissing(f'failed to parse config {path}: {e}') from e

        if not isinstance(config_data, dict):
            raise PreconditionMissing(
                f'invalid config {path}: expected a mapping of sections,'
                f' got {type(config_data).__name__}')

        for section, values in env_config.items():
            existing = config_data.get(section) or {}
            if not isinstance(existing, dict):
                raise PreconditionMissing(
                    f'invalid config {path}: section {section!r} must be a mapping')
            merged = dict(existing)
            merged.update(values)
            config_data[section] = merged

    elif env_config:
        config_data = env_config

    else:
        raise PreconditionMissing(
            f"config file not found at {path}. Run 'gitmirror init' to create it")

    try:
        config = RootConfig.model_validate(config_data)
    except ValidationError as e:
        raise PreconditionMissing(f'invalid config {path}: {e}') from e

    logger.debug(f'Loaded configuration from {path}')
    return config


def save_config(config: RootConfig, path: Optional[str] = None) -> str:
    """
    Write the configuration as YAML, readable only by the owner since it
    holds tokens. Returns the path written.
    """

    path = path or default_config_path()
    data = config.model_dump(mode='json', exclude_none=True)

    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, 'w') as f:
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)

    # O_CREAT does not change the mode of a file that already existed
    os.chmod(path, 0o600)

    logger.debug(f'Saved configuration to {path}')
    return path


# The end.
