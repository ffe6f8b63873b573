# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
The update pipeline: registry → scan → resolve → PRs → auto-merge.
"""

import json
import logging

from quarto_updater.classes import RunOutcome
from quarto_updater.config import AppConfig
from quarto_updater.errors import GitHubAPIError
from quarto_updater.pr import log_update_summary
from quarto_updater.pr_processor import process_all_prs
from quarto_updater.registry import fetch_extensions_registry
from quarto_updater.summary import generate_completed_markdown, generate_dry_run_markdown
from quarto_updater.updates import check_for_updates
from quarto_updater.utils.actions import set_output, write_step_summary
from quarto_updater.utils.github_api_tools import create_issue, get_branch_sha
from quarto_updater.utils.logging import log_group
from quarto_updater.utils.utils import pluralize

logger = logging.getLogger(__name__)


def _open_dry_run_issue(config: AppConfig, update_count: int, markdown: str) -> None:
    title = f'Quarto extensions: {update_count} {pluralize(update_count, "update")} available (dry run)'
    try:
        issue = create_issue(config.repository, title, markdown, config.pr_labels, config.github_token)
        logger.info(f"📋 Created dry-run issue #{issue['number']}: {issue['url']}")
    except GitHubAPIError as e:
        logger.warning(f'Failed to create dry-run issue: {e}')


def run_updater(config: AppConfig) -> RunOutcome:
    """
    Run the updater once.

    Args:
        config (AppConfig): Validated configuration

    Returns:
        RunOutcome: Updates found, PRs created or reused, and skipped updates

    Raises:
        UpdaterError: on registry, Quarto or GitHub failures that abort the run
    """
    outcome = RunOutcome()

    logger.info('🚀 Starting Quarto Extensions Updater...')
    logger.info(f'Workspace path: {config.workspace_path}')
    if config.repository:
        logger.info(f'Repository: {config.repository}')
    logger.info(f'Base branch: {config.base_branch}')

    with log_group('📥 Fetching extensions registry'):
        registry = fetch_extensions_registry(config.registry_url)

    with log_group('🔍 Checking for updates'):
        outcome.updates = check_for_updates(
            config.workspace_path, registry, config.policy, config.scan_directories
        )

    if not outcome.updates:
        logger.info('✅ All extensions are up to date!')
        set_output('updates-available', 'false')
        set_output('update-count', '0')
        return outcome

    log_update_summary(outcome.updates)

    set_output('updates-available', 'true')
    set_output('update-count', str(outcome.updates_found))
    set_output(
        'updates',
        json.dumps(
            [
                {
                    'name': update.name_with_owner,
                    'currentVersion': update.current_version,
                    'latestVersion': update.latest_version,
                }
                for update in outcome.updates
            ]
        ),
    )

    if config.dry_run:
        logger.info('🔍 Dry-run mode: no changes will be made')
        markdown = generate_dry_run_markdown(
            outcome.updates, config.group_updates, config.policy, config.auto_merge
        )
        if config.create_issue:
            _open_dry_run_issue(config, outcome.updates_found, markdown)
        write_step_summary(markdown)
        return outcome

    if not config.create_pr:
        logger.info('ℹ️ PR creation disabled, exiting...')
        return outcome

    base_sha = get_branch_sha(config.repository, config.base_branch, config.github_token)

    outcome.prs = process_all_prs(
        config.repository,
        outcome.updates,
        config.group_updates,
        config.pr_processing_config(base_sha),
        config.github_token,
    )
    outcome.skipped_updates = [skipped for pr in outcome.prs for skipped in pr.skipped_updates]

    write_step_summary(
        generate_completed_markdown(
            outcome.updates,
            outcome.prs,
            config.group_updates,
            config.policy,
            config.auto_merge,
            outcome.skipped_updates,
        )
    )

    set_output('skipped-count', str(outcome.updates_skipped))

    first_pr = outcome.first_pr
    if first_pr is not None:
        set_output('pr-number', str(first_pr.number))
        set_output('pr-url', first_pr.url)
        created = len([pr for pr in outcome.prs if pr.created])
        logger.info(f'📊 Summary: Created/updated {created} {pluralize(created, "PR")}')

    if outcome.skipped_updates:
        logger.warning(
            f'⏭️ {outcome.updates_skipped} {pluralize(outcome.updates_skipped, "extension")} skipped'
        )

    logger.info('🎉 Successfully completed!')
    return outcome
