# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
Quarto Extensions Updater CLI - Main entry point

Usage:
    qeu run      - Update extensions and open PRs (alias: r)
    qeu check    - List available updates, no GitHub writes (alias: c)
    qeu config   - Show the effective configuration
"""

import logging
from functools import wraps
from typing import Any, Callable, Dict, Optional

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from quarto_updater import __version__
from quarto_updater.automerge import get_update_type
from quarto_updater.config import AppConfig, build_config, validate_github_settings
from quarto_updater.constants import DEFAULT_LOG_LEVEL
from quarto_updater.errors import UpdaterError, format_error
from quarto_updater.registry import fetch_extensions_registry
from quarto_updater.updater import run_updater
from quarto_updater.updates import check_for_updates
from quarto_updater.utils.logging import setup_logging

console = Console()
logger = logging.getLogger(__name__)


class AliasGroup(click.Group):
    """Click Group that supports command aliases without duplicate help entries."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._aliases = {}  # alias -> canonical name

    def add_alias(self, name, alias):
        """Register an alias for an existing command."""
        self._aliases[alias] = name

    def get_command(self, ctx, cmd_name):
        canonical = self._aliases.get(cmd_name, cmd_name)
        return super().get_command(ctx, canonical)

    def format_commands(self, ctx, formatter):
        """Write the help text, appending aliases to command descriptions."""
        alias_map = {}
        for alias, canonical in self._aliases.items():
            alias_map.setdefault(canonical, []).append(alias)

        commands = []
        for subcommand in self.list_commands(ctx):
            cmd = self.commands.get(subcommand)
            if cmd is None or cmd.hidden:
                continue
            help_text = cmd.get_short_help_str(limit=150)
            aliases = alias_map.get(subcommand)
            if aliases:
                subcommand = f'{subcommand}, {", ".join(sorted(aliases))}'
            commands.append((subcommand, help_text))

        if commands:
            with formatter.section('Commands'):
                formatter.write_dl(commands)


def config_options(func: Callable) -> Callable:
    """Options shared by every command that builds an AppConfig."""
    options = [
        click.option('--config', 'config_path', type=click.Path(dir_okay=False), help='JSON config file'),
        click.option('--github-token', envvar='GITHUB_TOKEN', help='GitHub token [env: GITHUB_TOKEN]'),
        click.option('--repository', envvar='GITHUB_REPOSITORY', help='owner/repo [env: GITHUB_REPOSITORY]'),
        click.option(
            '--workspace-path',
            envvar='GITHUB_WORKSPACE',
            help='Repository checkout to scan (default: current directory)',
        ),
        click.option('--registry-url', help='Extensions registry JSON URL (https only)'),
        click.option('--scan-directories', help="Comma-separated directories holding _extensions (default: '.')"),
        click.option('--include-extensions', help='Comma-separated owner/name list to update exclusively'),
        click.option('--exclude-extensions', help='Comma-separated owner/name list to never update'),
        click.option('--update-strategy', help='all, minor or patch (default: all)'),
        click.option('--create-pr/--no-create-pr', default=None, help='Open PRs for updates (default: on)'),
        click.option('--base-branch', help='Branch PRs target (default: main)'),
        click.option('--branch-prefix', help='Prefix of update branches (default: chore/quarto-extensions)'),
        click.option('--pr-title-prefix', help='PR title prefix (default: chore(deps):)'),
        click.option('--commit-message-prefix', help='Commit message prefix (default: chore(deps):)'),
        click.option('--pr-labels', help='Comma-separated PR labels'),
        click.option('--auto-merge/--no-auto-merge', default=None, help='Enable auto-merge on qualifying PRs'),
        click.option('--auto-merge-strategy', help='all, minor or patch (default: patch)'),
        click.option('--auto-merge-method', help='merge, squash or rebase (default: squash)'),
        click.option('--group-updates/--no-group-updates', default=None, help='One PR for all updates'),
        click.option('--dry-run/--no-dry-run', default=None, help='Report updates without changing anything'),
        click.option('--create-issue/--no-create-issue', default=None, help='Open an issue with the dry-run summary'),
        click.option('--pr-reviewers', help='Comma-separated reviewer logins'),
        click.option('--pr-team-reviewers', help='Comma-separated team slugs'),
        click.option('--pr-assignees', help='Comma-separated assignee logins'),
        click.option('--log-level', default=DEFAULT_LOG_LEVEL, show_default=True, help='Logging level'),
        click.option('--log-file', type=click.Path(dir_okay=False), help='Also log to this file'),
    ]

    @wraps(func)
    def wrapper(*args, **kwargs):
        return func(*args, **kwargs)

    for option in reversed(options):
        wrapper = option(wrapper)
    return wrapper


def _load_config(options: Dict[str, Any], require_github: Optional[bool] = None) -> AppConfig:
    """Set up logging and build the config. ``require_github`` None means "needed unless dry run"."""
    setup_logging(options.pop('log_level'), options.pop('log_file'))
    config_path = options.pop('config_path')

    config = build_config(options, config_path, require_github=False)
    if require_github is None:
        require_github = not config.dry_run or config.create_issue
    if require_github:
        validate_github_settings(config)
    return config


def _fail(error: Exception) -> None:
    if isinstance(error, UpdaterError):
        logger.error(format_error(error))
        console.print(f'[red]Error: {error.message}[/red]')
    else:
        logger.exception('Unexpected error')
        console.print(f'[red]Error: {error}[/red]')
    raise SystemExit(1)


@click.group(cls=AliasGroup)
@click.version_option(version=__version__, prog_name='quarto-extensions-updater')
def cli():
    """Quarto Extensions Updater - keep vendored Quarto extensions up to date"""
    load_dotenv()


@cli.command('run')
@config_options
def run_command(**options):
    """Update extensions and open pull requests.

    \b
    Examples:
        qeu run --repository owner/repo --auto-merge
        qeu r --dry-run
    """
    try:
        config = _load_config(options)
        outcome = run_updater(config)
    except Exception as e:
        _fail(e)
        return

    console.print(
        f'\n[bold]Updates found:[/bold] {outcome.updates_found}  '
        f'[bold]applied:[/bold] {outcome.updates_applied}  '
        f'[bold]skipped:[/bold] {outcome.updates_skipped}'
    )
    first_pr = outcome.first_pr
    if first_pr is not None:
        console.print(f'[green]PR #{first_pr.number}:[/green] {first_pr.url}')


@cli.command('check')
@config_options
def check_command(**options):
    """List available updates without touching GitHub.

    \b
    Example:
        qeu check --update-strategy minor
    """
    try:
        config = _load_config(options, require_github=False)
        registry = fetch_extensions_registry(config.registry_url)
        updates = check_for_updates(config.workspace_path, registry, config.policy, config.scan_directories)
    except Exception as e:
        _fail(e)
        return

    if not updates:
        console.print('[green]All extensions are up to date.[/green]')
        return

    table = Table(show_header=True, header_style='bold magenta')
    table.add_column('Extension', style='cyan')
    table.add_column('Current')
    table.add_column('Latest', style='green')
    table.add_column('Type')
    table.add_column('Source', style='dim')

    for update in updates:
        update_type = get_update_type(update.current_version, update.latest_version)
        table.add_row(
            update.name_with_owner,
            update.current_version,
            update.latest_version,
            update_type.value,
            update.install_source,
        )

    console.print(table)
    console.print(f'\n[bold]{len(updates)}[/bold] update(s) available\n')


@cli.command('config')
@config_options
def config_command(**options):
    """Show the effective configuration (token masked)."""
    try:
        config = _load_config(options, require_github=False)
    except Exception as e:
        _fail(e)
        return

    console.print('\n[bold]Quarto Extensions Updater Configuration[/bold]\n')

    table = Table(show_header=True)
    table.add_column('Setting', style='cyan')
    table.add_column('Value', style='green')
    for setting, value in config.to_display_rows():
        table.add_row(setting, value)

    console.print(table)


cli.add_alias('run', 'r')
cli.add_alias('check', 'c')


def main():
    """Main entry point for the CLI"""
    cli()


if __name__ == '__main__':
    main()
