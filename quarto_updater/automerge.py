# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
Auto-merge eligibility and enablement.

GitHub computes a PR's mergeable state asynchronously after it is created or
updated. Enabling auto-merge before that finishes fails with an "unstable"
or "clean status" error, so the mutation is sent after a short delay and
retried once when that specific error comes back.
"""

import logging
import time
from typing import List

from quarto_updater.classes import AutoMergeConfig, AutoMergeStrategy, ExtensionUpdate, MergeMethod, UpdateType
from quarto_updater.constants import (
    AUTO_MERGE_INITIAL_DELAY_SECONDS,
    AUTO_MERGE_PERMISSION_MARKER,
    AUTO_MERGE_REQUIRED_PERMISSION,
    AUTO_MERGE_RETRY_DELAY_SECONDS,
    AUTO_MERGE_TRANSIENT_MARKER,
)
from quarto_updater.utils.github_api_tools import (
    enable_pull_request_auto_merge,
    get_auto_merge_request,
    get_pull_request_node_id,
)
from quarto_updater.utils.versions import version_diff

logger = logging.getLogger(__name__)

_DIFF_TO_UPDATE_TYPE = {
    'major': UpdateType.MAJOR,
    'premajor': UpdateType.MAJOR,
    'minor': UpdateType.MINOR,
    'preminor': UpdateType.MINOR,
    'patch': UpdateType.PATCH,
    'prepatch': UpdateType.PATCH,
}


def get_update_type(current_version: str, latest_version: str) -> UpdateType:
    """Classify a bump. Invalid versions, equal versions and prerelease-only bumps are UNKNOWN."""
    return _DIFF_TO_UPDATE_TYPE.get(version_diff(current_version, latest_version), UpdateType.UNKNOWN)


def should_auto_merge(update: ExtensionUpdate, config: AutoMergeConfig) -> bool:
    if not config.enabled:
        return False

    update_type = get_update_type(update.current_version, update.latest_version)

    if config.strategy == AutoMergeStrategy.PATCH:
        return update_type == UpdateType.PATCH
    if config.strategy == AutoMergeStrategy.MINOR:
        return update_type in (UpdateType.PATCH, UpdateType.MINOR)
    return config.strategy == AutoMergeStrategy.ALL


def is_transient_merge_state_error(error: Exception) -> bool:
    """True when GitHub rejected auto-merge because mergeability is not computed yet."""
    return AUTO_MERGE_TRANSIENT_MARKER in str(error).lower()


def is_permission_error(error: Exception) -> bool:
    return AUTO_MERGE_PERMISSION_MARKER in str(error).lower()


def _warn_failure(pr_number: int, error: Exception, suffix: str = '') -> None:
    logger.warning(f'Failed to enable auto-merge for PR #{pr_number}{suffix}: {error}')

    if is_permission_error(error):
        logger.warning(
            'Auto-merge requires the workflow to have write permissions for pull-requests. '
            f"Please ensure your workflow has '{AUTO_MERGE_REQUIRED_PERMISSION}' permission."
        )


def enable_auto_merge(repository: str, pr_number: int, merge_method: MergeMethod, token: str) -> bool:
    """
    Enable auto-merge on a PR, retrying once on a transient mergeability error.

    Never raises; every failure is logged as a warning.

    Args:
        repository (str): Repository in format 'owner/repo'
        pr_number (int): Pull request number
        merge_method (MergeMethod): Merge method applied when checks pass
        token (str): GitHub token

    Returns:
        bool: True if auto-merge was enabled
    """
    logger.info(f'Enabling auto-merge for PR #{pr_number} with {merge_method.value} method')

    try:
        pull_request_id = get_pull_request_node_id(repository, pr_number, token)
    except Exception as e:
        _warn_failure(pr_number, e)
        return False

    time.sleep(AUTO_MERGE_INITIAL_DELAY_SECONDS)

    try:
        enable_pull_request_auto_merge(pull_request_id, merge_method.graphql_value, token)
        logger.info(f'Successfully enabled auto-merge for PR #{pr_number}')
        return True
    except Exception as e:
        if not is_transient_merge_state_error(e):
            _warn_failure(pr_number, e)
            return False
        logger.info(
            f'PR #{pr_number} mergeability is still being computed, '
            f'retrying in {AUTO_MERGE_RETRY_DELAY_SECONDS}s'
        )

    time.sleep(AUTO_MERGE_RETRY_DELAY_SECONDS)

    try:
        enable_pull_request_auto_merge(pull_request_id, merge_method.graphql_value, token)
        logger.info(f'Successfully enabled auto-merge for PR #{pr_number} on retry')
        return True
    except Exception as e:
        _warn_failure(pr_number, e, suffix=' after retry')
        logger.warning(
            'The pull request may not be mergeable yet. If the repository has required status checks, '
            'auto-merge can be enabled manually once they have been reported.'
        )
        return False


def is_auto_merge_enabled(repository: str, pr_number: int, token: str) -> bool:
    try:
        return get_auto_merge_request(repository, pr_number, token) is not None
    except Exception as e:
        logger.warning(f'Failed to check auto-merge status for PR #{pr_number}: {e}')
        return False


def handle_auto_merge(
    repository: str, pr_number: int, update_group: List[ExtensionUpdate], config: AutoMergeConfig, token: str
) -> None:
    """
    Enable auto-merge on a PR when its update group qualifies.

    A grouped PR qualifies only when every update in it does.
    """
    if not config.enabled:
        return

    if len(update_group) == 1:
        update = update_group[0]
        if not should_auto_merge(update, config):
            logger.info(f'ℹ️ Auto-merge not applicable for {update.name_with_owner} (strategy: {config.strategy.value})')
            return
    elif not all(should_auto_merge(update, config) for update in update_group):
        logger.info(
            'ℹ️ Auto-merge not applicable for grouped updates '
            f'(not all updates qualify for strategy: {config.strategy.value})'
        )
        return

    if is_auto_merge_enabled(repository, pr_number, token):
        logger.info(f'Auto-merge already enabled for PR #{pr_number}')
        return

    enable_auto_merge(repository, pr_number, config.merge_method, token)
