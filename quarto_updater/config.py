# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
Run configuration.

Values come from CLI options (which also read environment variables), then
an optional JSON config file, then the defaults in ``constants``. Everything
is validated before the run touches the repository.
"""

import json
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from quarto_updater.classes import (
    AutoMergeConfig,
    AutoMergeStrategy,
    ExtensionFilterConfig,
    MergeMethod,
    PRAssignmentConfig,
    PRProcessingConfig,
    UpdatePolicy,
    UpdateStrategy,
)
from quarto_updater.constants import (
    DEFAULT_AUTO_MERGE_STRATEGY,
    DEFAULT_BASE_BRANCH,
    DEFAULT_BRANCH_PREFIX,
    DEFAULT_COMMIT_MESSAGE_PREFIX,
    DEFAULT_MERGE_METHOD,
    DEFAULT_PR_LABELS,
    DEFAULT_PR_TITLE_PREFIX,
    DEFAULT_UPDATE_STRATEGY,
    HTTPS_PROTOCOL,
    INVALID_GIT_REF_CHARS,
    LABEL_SEPARATOR,
    REPOSITORY_PATTERN,
    VALID_AUTO_MERGE_STRATEGIES,
    VALID_MERGE_METHODS,
    VALID_UPDATE_STRATEGIES,
)
from quarto_updater.errors import ValidationError
from quarto_updater.utils.utils import mask_secret, parse_comma_separated_list

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppConfig:
    """Validated configuration for one run"""

    github_token: str
    repository: str
    workspace_path: str
    registry_url: Optional[str] = None
    create_pr: bool = True
    base_branch: str = DEFAULT_BASE_BRANCH
    branch_prefix: str = DEFAULT_BRANCH_PREFIX
    pr_title_prefix: str = DEFAULT_PR_TITLE_PREFIX
    commit_message_prefix: str = DEFAULT_COMMIT_MESSAGE_PREFIX
    pr_labels: List[str] = field(default_factory=lambda: list(DEFAULT_PR_LABELS))
    auto_merge: AutoMergeConfig = field(default_factory=AutoMergeConfig)
    filter_config: ExtensionFilterConfig = field(default_factory=ExtensionFilterConfig)
    group_updates: bool = False
    update_strategy: UpdateStrategy = UpdateStrategy.ALL
    scan_directories: List[str] = field(default_factory=lambda: ['.'])
    dry_run: bool = False
    create_issue: bool = False
    assignment: PRAssignmentConfig = field(default_factory=PRAssignmentConfig)

    @property
    def policy(self) -> UpdatePolicy:
        return UpdatePolicy(update_strategy=self.update_strategy, filter_config=self.filter_config)

    def pr_processing_config(self, base_sha: str) -> PRProcessingConfig:
        return PRProcessingConfig(
            workspace_path=self.workspace_path,
            base_branch=self.base_branch,
            base_sha=base_sha,
            branch_prefix=self.branch_prefix,
            pr_title_prefix=self.pr_title_prefix,
            commit_message_prefix=self.commit_message_prefix,
            pr_labels=list(self.pr_labels),
            auto_merge=self.auto_merge,
            assignment=self.assignment,
        )

    def to_display_rows(self) -> List[List[str]]:
        """(setting, value) rows for display. The token is masked."""
        auto_merge = (
            f'{self.auto_merge.strategy.value} updates, {self.auto_merge.merge_method.value} method'
            if self.auto_merge.enabled
            else 'disabled'
        )
        return [
            ['repository', self.repository or '-'],
            ['github token', mask_secret(self.github_token) if self.github_token else '-'],
            ['workspace path', self.workspace_path],
            ['registry url', self.registry_url or '(default)'],
            ['scan directories', ', '.join(self.scan_directories)],
            ['create pr', str(self.create_pr).lower()],
            ['base branch', self.base_branch],
            ['branch prefix', self.branch_prefix],
            ['pr title prefix', self.pr_title_prefix],
            ['commit message prefix', self.commit_message_prefix],
            ['pr labels', ', '.join(self.pr_labels) or '-'],
            ['auto-merge', auto_merge],
            ['include extensions', ', '.join(self.filter_config.include) or '(all)'],
            ['exclude extensions', ', '.join(self.filter_config.exclude) or '(none)'],
            ['group updates', str(self.group_updates).lower()],
            ['update strategy', self.update_strategy.value],
            ['dry run', str(self.dry_run).lower()],
            ['create issue', str(self.create_issue).lower()],
            ['reviewers', ', '.join(self.assignment.reviewers) or '-'],
            ['team reviewers', ', '.join(self.assignment.team_reviewers) or '-'],
            ['assignees', ', '.join(self.assignment.assignees) or '-'],
        ]


# =============================================================================
# Validation
# =============================================================================


def validate_merge_method(method: str) -> MergeMethod:
    if method not in VALID_MERGE_METHODS:
        raise ValidationError(
            f"Invalid merge method: '{method}'. Must be one of: {', '.join(VALID_MERGE_METHODS)}",
            'auto-merge-method',
            method,
        )
    return MergeMethod(method)


def validate_auto_merge_strategy(strategy: str) -> AutoMergeStrategy:
    if strategy not in VALID_AUTO_MERGE_STRATEGIES:
        raise ValidationError(
            f"Invalid auto-merge strategy: '{strategy}'. Must be one of: {', '.join(VALID_AUTO_MERGE_STRATEGIES)}",
            'auto-merge-strategy',
            strategy,
        )
    return AutoMergeStrategy(strategy)


def validate_update_strategy(strategy: str) -> UpdateStrategy:
    if strategy not in VALID_UPDATE_STRATEGIES:
        raise ValidationError(
            f"Invalid update strategy: '{strategy}'. Must be one of: {', '.join(VALID_UPDATE_STRATEGIES)}",
            'update-strategy',
            strategy,
        )
    return UpdateStrategy(strategy)


def validate_registry_url(registry_url: str) -> None:
    if not registry_url.startswith(HTTPS_PROTOCOL):
        raise ValidationError(f'Registry URL must use HTTPS: {registry_url}', 'registry-url', registry_url)

    if not urlparse(registry_url).netloc:
        raise ValidationError(f'Invalid registry URL format: {registry_url}', 'registry-url', registry_url)


def validate_branch_prefix(branch_prefix: str) -> None:
    if ' ' in branch_prefix:
        raise ValidationError(f'Branch prefix cannot contain spaces: {branch_prefix}', 'branch-prefix', branch_prefix)

    if '..' in branch_prefix:
        raise ValidationError(f"Branch prefix cannot contain '..': {branch_prefix}", 'branch-prefix', branch_prefix)

    if re.search(INVALID_GIT_REF_CHARS, branch_prefix):
        raise ValidationError(
            f'Branch prefix contains invalid characters: {branch_prefix}', 'branch-prefix', branch_prefix
        )


def validate_workspace_path(workspace_path: str) -> None:
    if not workspace_path or not workspace_path.strip():
        raise ValidationError('Workspace path cannot be empty', 'workspace-path', workspace_path)

    if not os.path.isdir(workspace_path):
        raise ValidationError(f'Workspace path does not exist: {workspace_path}', 'workspace-path', workspace_path)


def validate_repository(repository: str) -> None:
    if not re.match(REPOSITORY_PATTERN, repository or ''):
        raise ValidationError(
            f"Invalid repository: '{repository}'. Expected format 'owner/repo'", 'repository', repository
        )


def validate_github_settings(config: AppConfig) -> None:
    """Token and repository are needed by anything that talks to GitHub."""
    if not config.github_token:
        raise ValidationError('GitHub token is required (--github-token or GITHUB_TOKEN)', 'github-token', '')
    validate_repository(config.repository)


# =============================================================================
# Loading
# =============================================================================


def load_config_file(config_path: str) -> Dict[str, Any]:
    """
    Read a JSON config file.

    Keys may be written in kebab-case (``auto-merge-method``) or snake_case;
    they are returned in snake_case.
    """
    if not os.path.exists(config_path):
        raise ValidationError(f'Config file not found: {config_path}', 'config', config_path)

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            config_data = json.load(f)
    except (OSError, ValueError) as e:
        raise ValidationError(f'Failed to load config from {config_path}: {e}', 'config', config_path) from e

    if not isinstance(config_data, dict):
        raise ValidationError(f'Config file must contain a JSON object: {config_path}', 'config', config_path)

    logger.info(f'Loaded configuration from {config_path}')
    return {key.replace('-', '_'): value for key, value in config_data.items()}


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item).strip()]
    return parse_comma_separated_list(str(value))


def _as_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ('true', 'false'):
        return value.strip().lower() == 'true'
    raise ValidationError(f"Invalid boolean for {name}: '{value}'", name.replace('_', '-'), value)


def build_config(
    options: Dict[str, Any],
    config_path: Optional[str] = None,
    require_github: bool = True,
) -> AppConfig:
    """
    Merge option values over the config file and defaults, then validate.

    Args:
        options: snake_case option values; None and '' mean "not given"
        config_path (Optional[str]): Optional JSON config file
        require_github (bool): Whether a token and repository are mandatory

    Returns:
        AppConfig: The validated configuration

    Raises:
        ValidationError: for any missing or invalid value
    """
    values = load_config_file(config_path) if config_path else {}
    values.update({key: value for key, value in options.items() if value is not None and value != ''})

    def get(name: str, default: Any = None) -> Any:
        value = values.get(name)
        return default if value is None or value == '' else value

    workspace_path = get('workspace_path', os.getcwd())
    validate_workspace_path(workspace_path)

    registry_url = get('registry_url')
    if registry_url:
        validate_registry_url(registry_url)

    branch_prefix = get('branch_prefix', DEFAULT_BRANCH_PREFIX)
    validate_branch_prefix(branch_prefix)

    auto_merge = AutoMergeConfig(
        enabled=_as_bool(get('auto_merge', False), 'auto_merge'),
        strategy=validate_auto_merge_strategy(get('auto_merge_strategy', DEFAULT_AUTO_MERGE_STRATEGY)),
        merge_method=validate_merge_method(get('auto_merge_method', DEFAULT_MERGE_METHOD)),
    )

    config = AppConfig(
        github_token=get('github_token', ''),
        repository=get('repository', ''),
        workspace_path=workspace_path,
        registry_url=registry_url,
        create_pr=_as_bool(get('create_pr', True), 'create_pr'),
        base_branch=get('base_branch', DEFAULT_BASE_BRANCH),
        branch_prefix=branch_prefix,
        pr_title_prefix=get('pr_title_prefix', DEFAULT_PR_TITLE_PREFIX),
        commit_message_prefix=get('commit_message_prefix', DEFAULT_COMMIT_MESSAGE_PREFIX),
        pr_labels=_as_list(get('pr_labels', LABEL_SEPARATOR.join(DEFAULT_PR_LABELS))),
        auto_merge=auto_merge,
        filter_config=ExtensionFilterConfig(
            include=_as_list(get('include_extensions')),
            exclude=_as_list(get('exclude_extensions')),
        ),
        group_updates=_as_bool(get('group_updates', False), 'group_updates'),
        update_strategy=validate_update_strategy(get('update_strategy', DEFAULT_UPDATE_STRATEGY)),
        scan_directories=_as_list(get('scan_directories')) or ['.'],
        dry_run=_as_bool(get('dry_run', False), 'dry_run'),
        create_issue=_as_bool(get('create_issue', False), 'create_issue'),
        assignment=PRAssignmentConfig(
            reviewers=_as_list(get('pr_reviewers')),
            team_reviewers=_as_list(get('pr_team_reviewers')),
            assignees=_as_list(get('pr_assignees')),
        ),
    )

    if require_github:
        validate_github_settings(config)
    return config
