"""
Provision repositories on Gitea and GitHub or GitLab, and keep Gitea
push-mirroring to them.

:author: Christopher O'Brien <obriencj@preoccupied.net>
:license: GNU General Public License v3
:ai-assistant: Auto via Cursor
"""

from preoccupied.gitmirror.config import RootConfig, load_config, save_config
from preoccupied.gitmirror.models import Platform, ProvisioningRequest, Visibility
from preoccupied.gitmirror.orchestrator import Orchestrator


__all__ = [
    'Orchestrator', 'Platform', 'ProvisioningRequest', 'RootConfig',
    'Visibility', 'load_config', 'save_config',
]


# The end.
