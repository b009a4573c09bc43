"""
Exception types raised by the gitmirror application.

:author: Christopher O'Brien <obriencj@preoccupied.net>
:license: GNU General Public License v3
:ai-assistant: Auto via Cursor
"""

from typing import Sequence


class GitMirrorError(Exception):
    """
    Base class for all gitmirror failures
    """


class TransportError(GitMirrorError):
    """
    A provider could not be reached at all (DNS, connect, timeout)
    """


class _StatusError(GitMirrorError):

    template = 'request failed (status {code}): {body}'

    def __init__(self, code: int, body: str):
        self.code = code
        self.body = body
        super().__init__(self.template.format(code=code, body=body))


class UnexpectedStatus(_StatusError):
    """
    A provider responded with a status outside of the expected set
    """

    template = 'unexpected status {code}: {body}'


class CreateFailed(_StatusError):
    """
    A repository creation request was not answered with 201 Created
    """

    template = 'failed to create repo (status {code}): {body}'


class MirrorRegistrationFailed(_StatusError):
    """
    The primary host refused to configure a push mirror
    """

    template = 'failed to add mirror (status {code}): {body}'


class PushFailed(GitMirrorError):
    """
    Every attempted branch push to a remote failed
    """

    def __init__(self, remote: str, branches: Sequence[str], stderr: str = ''):
        self.remote = remote
        self.branches = tuple(branches)
        self.stderr = stderr
        tried = ' and '.join(repr(b) for b in self.branches)
        msg = f'failed to push to {remote!r} (tried {tried})'
        if stderr:
            msg = f'{msg}: {stderr}'
        super().__init__(msg)


class PreconditionMissing(GitMirrorError):
    """
    Required configuration is absent for the selected operation
    """


class NotAGitWorkingCopy(GitMirrorError):
    """
    A local path has no .git metadata
    """

    def __init__(self, path: str):
        self.path = path
        super().__init__(f'not a git repository: {path}')


class RepositoryNotFound(GitMirrorError):
    """
    A repository expected on the primary host does not exist
    """

    def __init__(self, owner: str, name: str):
        self.owner = owner
        self.name = name
        super().__init__(f'repository {owner}/{name} does not exist on the primary host')


class StageFailed(GitMirrorError):
    """
    A single-repository run aborted in the named stage. The underlying
    exception is available as ``cause`` and as ``__cause__``.
    """

    def __init__(self, stage: str, cause: BaseException):
        self.stage = stage
        self.cause = cause
        super().__init__(f'{stage} stage failed: {cause}')


# The end.
