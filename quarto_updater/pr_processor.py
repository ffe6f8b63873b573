# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
Turns update groups into branches, commits and pull requests.

Groups are processed one at a time. An open PR on the group's branch whose
title matches the one we would write is reused untouched; otherwise the
updates are installed, committed through the Git data API and the PR is
created or refreshed.
"""

import logging
import os
from typing import List, Sequence, Tuple

from quarto_updater.automerge import handle_auto_merge
from quarto_updater.classes import ExtensionUpdate, PRProcessingConfig, PRResult
from quarto_updater.errors import GitOperationError
from quarto_updater.installer import apply_updates, create_branch_name, create_commit_message, validate_modified_files
from quarto_updater.pr import generate_pr_body, generate_pr_title
from quarto_updater.utils.github_api_tools import (
    check_existing_pr,
    create_commit,
    create_or_update_branch,
    create_or_update_pr,
)
from quarto_updater.utils.logging import log_group
from quarto_updater.utils.utils import pluralize

logger = logging.getLogger(__name__)


def _describe_group(update_group: Sequence[ExtensionUpdate]) -> str:
    if len(update_group) == 1:
        return update_group[0].name_with_owner
    return 'grouped updates'


def _repository_path(file_path: str, workspace_path: str) -> str:
    """Path of a workspace file relative to the repository root, with '/' separators."""
    absolute_file = os.path.abspath(file_path)
    absolute_workspace = os.path.abspath(workspace_path)
    if os.path.commonpath([absolute_file, absolute_workspace]) == absolute_workspace:
        file_path = os.path.relpath(absolute_file, absolute_workspace)
    return file_path.replace(os.sep, '/')


def _read_files(file_paths: Sequence[str], workspace_path: str) -> List[Tuple[str, bytes]]:
    files = []
    for file_path in file_paths:
        with open(file_path, 'rb') as f:
            files.append((_repository_path(file_path, workspace_path), f.read()))
    return files


def process_pr_for_update_group(
    repository: str,
    update_group: List[ExtensionUpdate],
    config: PRProcessingConfig,
    token: str,
) -> PRResult:
    """
    Create or refresh the PR for one update group.

    Args:
        repository (str): Repository in format 'owner/repo'
        update_group: Non-empty list of updates that share one PR
        config (PRProcessingConfig): Branch, commit, PR and auto-merge settings
        token (str): GitHub token

    Returns:
        PRResult: The PR, or ``number == 0`` when every update in the group was skipped

    Raises:
        GitHubAPIError: on any GitHub failure other than an existing branch
        GitOperationError: when Quarto is unavailable or a modified file vanished
    """
    extensions = [update.name_with_owner for update in update_group]
    branch_name = create_branch_name(update_group, config.branch_prefix)
    pr_title = generate_pr_title(update_group, config.pr_title_prefix)

    existing_pr = check_existing_pr(repository, branch_name, pr_title, token)
    if existing_pr is not None:
        if len(update_group) == 1:
            update = update_group[0]
            logger.info(
                f"ℹ️ PR #{existing_pr['number']} already exists for "
                f'{update.name_with_owner}@{update.latest_version}, skipping...'
            )
        else:
            logger.info(f"ℹ️ PR #{existing_pr['number']} already exists for grouped updates, skipping...")
        logger.info(f"   URL: {existing_pr['url']}")
        return PRResult(number=existing_pr['number'], url=existing_pr['url'], extensions=extensions)

    apply_result = apply_updates(update_group)
    modified_files = apply_result.modified_files
    skipped_updates = apply_result.skipped_updates

    if skipped_updates:
        logger.warning(
            f'Skipped {len(skipped_updates)} {pluralize(len(skipped_updates), "extension")} during update'
        )
        for skipped in skipped_updates:
            logger.warning(f'  - {skipped.update.name_with_owner}: {skipped.reason}')

    if not modified_files:
        logger.warning(
            f'No files modified for {_describe_group(update_group)}, all extensions may have been skipped'
        )
        return PRResult(number=0, url='', extensions=extensions, skipped_updates=skipped_updates)

    if not validate_modified_files(modified_files):
        raise GitOperationError(
            f'Failed to validate modified files for {_describe_group(update_group)}', 'validate modified files'
        )

    logger.info(f'Modified {len(modified_files)} file(s)')

    commit_message = create_commit_message(update_group, config.commit_message_prefix)
    logger.info(f'Branch: {branch_name}')
    logger.info(f"Commit message: {commit_message.splitlines()[0]}")

    create_or_update_branch(repository, branch_name, config.base_sha, token)

    files = _read_files(modified_files, config.workspace_path)
    commit_sha = create_commit(repository, branch_name, config.base_sha, commit_message, files, token)
    logger.info(f'✅ Created commit: {commit_sha}')

    pr_body = generate_pr_body(update_group, token, skipped_updates)

    try:
        pr = create_or_update_pr(
            repository,
            branch_name,
            config.base_branch,
            pr_title,
            pr_body,
            config.pr_labels,
            token,
            assignment=config.assignment,
        )
    except Exception as e:
        logger.error(f'Failed to create/update PR for {_describe_group(update_group)}: {e}')
        raise

    handle_auto_merge(repository, pr['number'], update_group, config.auto_merge, token)

    return PRResult(number=pr['number'], url=pr['url'], extensions=extensions, skipped_updates=skipped_updates)


def process_all_prs(
    repository: str,
    updates: List[ExtensionUpdate],
    group_updates: bool,
    config: PRProcessingConfig,
    token: str,
) -> List[PRResult]:
    """
    Process every update group in order.

    With ``group_updates`` all updates share one PR, otherwise each update
    gets its own. The first failing group aborts the remaining ones.
    """
    if not updates:
        return []

    update_groups = [updates] if group_updates else [[update] for update in updates]
    results = []

    for update_group in update_groups:
        if len(update_group) == 1:
            group_description = update_group[0].name_with_owner
        else:
            group_description = f'{len(update_group)} extensions'

        with log_group(f'📝 Processing {group_description}'):
            try:
                results.append(process_pr_for_update_group(repository, update_group, config, token))
            except Exception as e:
                logger.error(f'Failed to process {group_description}: {e}')
                raise

    return results
