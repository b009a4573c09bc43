"""
Command line interface for the gitmirror application.

Usage:
    gitmirror init
    gitmirror create NAME [--private] [--github | --gitlab]
    gitmirror add [PATH] [--name NAME] [--private] [--github | --gitlab]
    gitmirror mirror NAME [--github | --gitlab]
    gitmirror bulk [--private] [--github | --gitlab] < names.txt

:author: Christopher O'Brien <obriencj@preoccupied.net>
:license: GNU General Public License v3
:ai-assistant: Auto via Cursor
"""

import asyncio
import logging
import os
from typing import Awaitable, Callable, List, Optional, TypeVar

import click
import httpx

from .config import GiteaConfig, GitHubConfig, GitLabConfig, RootConfig, load_config, save_config
from .errors import GitMirrorError
from .models import Platform, ProvisioningRequest, Visibility
from .orchestrator import Orchestrator


HTTP_TIMEOUT = 30.0

RULE = '=' * 48


T = TypeVar('T')


def platform_options(f):
    f = click.option('--gitlab', 'use_gitlab', is_flag=True,
                     help='Mirror to GitLab instead of GitHub')(f)
    f = click.option('--github', 'use_github', is_flag=True,
                     help='Mirror to GitHub (default)')(f)
    return f


def private_option(f):
    return click.option('-p', '--private', is_flag=True,
                        help='Make the repository private')(f)


def select_platform(use_github: bool, use_gitlab: bool) -> Platform:
    if use_github and use_gitlab:
        raise click.UsageError('cannot use both --gitlab and --github')
    return Platform.GITLAB if use_gitlab else Platform.GITHUB


def _load(ctx: click.Context) -> RootConfig:
    try:
        return load_config(ctx.obj.get('config_path'))
    except GitMirrorError as e:
        raise click.ClickException(str(e))


def _execute(config: RootConfig, action: Callable[[Orchestrator], Awaitable[T]]) -> T:
    """
    Run one orchestrator action on a fresh event loop with a shared
    httpx client, turning gitmirror failures into a non-zero exit.
    """

    async def go() -> T:
        async with httpx.AsyncClient(timeout=HTTP_TIMEOUT) as client:
            return await action(Orchestrator(config, client))

    try:
        return asyncio.run(go())
    except GitMirrorError as e:
        raise click.ClickException(str(e))


def _banner(*lines: str) -> None:
    click.echo(RULE)
    for line in lines:
        click.echo(line)
    click.echo(RULE)


def _repository_urls(config: RootConfig, platform: Platform, name: str) -> None:
    click.echo('\nRepository URLs:')
    click.echo(f'  Gitea:  {config.gitea.repo_url(name)}')
    if platform is Platform.GITHUB:
        click.echo(f'  GitHub: {config.github.repo_url(name)}')
    else:
        click.echo(f'  GitLab: {config.gitlab.repo_url(name)}')


@click.group()
@click.option('--config', 'config_path', type=click.Path(dir_okay=False), default=None,
              help='Configuration file (default: $GITMIRROR_CONFIG or ~/.gitmirror.yaml)')
@click.option('-v', '--verbose', is_flag=True, help='Show every git command and API call')
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str], verbose: bool) -> None:
    """
    Manage repositories across Gitea and GitHub or GitLab.

    Creates repositories on both platforms, sets up automatic push
    mirroring from Gitea, and bulk configures existing repositories.
    """

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(message)s')

    ctx.ensure_object(dict)
    ctx.obj['config_path'] = config_path


@cli.command()
@click.pass_context
def init(ctx: click.Context) -> None:
    """
    Initialize gitmirror configuration
    """

    _banner('gitmirror Configuration Setup')

    gitea = GiteaConfig(
        url=click.prompt('Gitea URL (e.g., http://pi-nas.local:3000)'),
        username=click.prompt('Gitea Username'),
        token=click.prompt('Gitea Token', hide_input=True))

    github = GitHubConfig(
        username=click.prompt('\nGitHub Username'),
        token=click.prompt('GitHub Token', hide_input=True))

    gitlab = GitLabConfig()
    gitlab_url = click.prompt(
        '\nGitLab URL (press Enter to skip, default: https://gitlab.com)',
        default='', show_default=False).strip()
    if gitlab_url:
        gitlab = GitLabConfig(
            url=gitlab_url,
            username=click.prompt('GitLab Username'),
            token=click.prompt('GitLab Token', hide_input=True))

    config = RootConfig(gitea=gitea, github=github, gitlab=gitlab)

    try:
        path = save_config(config, ctx.obj.get('config_path'))
    except OSError as e:
        raise click.ClickException(f'failed to save config: {e}')

    click.echo()
    _banner('✓ Configuration saved!', f'Config file: {path}')
    click.echo('\nYou can now use:')
    click.echo('  gitmirror create <repo-name>    # Create new repo')
    click.echo('  gitmirror mirror <repo-name>    # Add mirror to existing repo')
    click.echo('  gitmirror bulk                  # Bulk setup repos')


@cli.command()
@click.argument('name')
@private_option
@platform_options
@click.pass_context
def create(ctx: click.Context, name: str, private: bool,
           use_github: bool, use_gitlab: bool) -> None:
    """
    Create a new repository on Gitea with mirroring to GitHub or GitLab
    """

    platform = select_platform(use_github, use_gitlab)
    request = ProvisioningRequest(
        name=name, visibility=Visibility.from_flag(private), platform=platform)
    config = _load(ctx)

    _banner(f'Creating repository: {name}',
            f'Privacy setting: {request.visibility.value}',
            f'Mirror target: {platform.label}')

    _execute(config, lambda o: o.create(request, os.getcwd()))

    click.echo()
    _banner('✓ Repository fully initialized and ready!')
    _repository_urls(config, platform, name)
    click.echo(f'\nLocal directory: ./{name}')


@cli.command()
@click.argument('path', default='.', type=click.Path(file_okay=False))
@click.option('-n', '--name', 'repo_name', default=None,
              help='Custom repository name (defaults to directory name)')
@private_option
@platform_options
@click.pass_context
def add(ctx: click.Context, path: str, repo_name: Optional[str], private: bool,
        use_github: bool, use_gitlab: bool) -> None:
    """
    Add an existing local repository to Gitea with mirroring to GitHub
    or GitLab. PATH defaults to the current directory.
    """

    platform = select_platform(use_github, use_gitlab)
    abs_path = os.path.abspath(path)
    name = repo_name or os.path.basename(abs_path)
    request = ProvisioningRequest(
        name=name, visibility=Visibility.from_flag(private), platform=platform)
    config = _load(ctx)

    _banner(f'Adding repository: {name}',
            f'Path: {abs_path}',
            f'Privacy setting: {request.visibility.value}',
            f'Mirror target: {platform.label}')

    _execute(config, lambda o: o.add(request, abs_path))

    click.echo()
    _banner('✓ Repository successfully added!')
    _repository_urls(config, platform, name)
    click.echo(f'\nYour local repository is now mirroring to {platform.label} automatically.')


@cli.command()
@click.argument('name')
@platform_options
@click.pass_context
def mirror(ctx: click.Context, name: str, use_github: bool, use_gitlab: bool) -> None:
    """
    Add a push mirror to an existing Gitea repository
    """

    platform = select_platform(use_github, use_gitlab)
    request = ProvisioningRequest(name=name, platform=platform)
    config = _load(ctx)

    _banner(f'Setting up mirror for: {name}')

    _execute(config, lambda o: o.mirror(request))

    click.echo()
    _banner('✓ Mirror setup complete!')
    _repository_urls(config, platform, name)
    click.echo('\nThe repository will sync on every commit and every 8 hours.')


def read_names(stream) -> List[str]:
    """
    Repository names from a text stream, one per line, ignoring blank
    lines and surrounding whitespace.
    """

    return [line.strip() for line in stream if line.strip()]


@cli.command()
@private_option
@platform_options
@click.pass_context
def bulk(ctx: click.Context, private: bool, use_github: bool, use_gitlab: bool) -> None:
    """
    Bulk setup mirrors for repositories named on standard input, one per
    line, until end of input.
    """

    platform = select_platform(use_github, use_gitlab)
    config = _load(ctx)

    click.echo('Enter repository names (one per line, Ctrl+D when done):', err=True)
    names = read_names(click.get_text_stream('stdin'))
    if not names:
        raise click.UsageError('no repositories provided')

    visibility = Visibility.from_flag(private)
    result = _execute(config, lambda o: o.bulk(names, visibility, platform))

    click.echo()
    _banner(f'✓ Completed {result.completed}/{result.total} repositories')
    for name, error in result.failures.items():
        click.echo(f'  ✗ {name}: {error}')


# The end.
