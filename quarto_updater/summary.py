# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
Markdown run summaries.

Rendered for the GitHub Actions job summary, and in dry-run mode also used
as the body of the tracking issue.
"""

from typing import Dict, List, NamedTuple, Optional, Sequence

from quarto_updater.automerge import should_auto_merge
from quarto_updater.classes import (
    AutoMergeConfig,
    ExtensionUpdate,
    PRResult,
    SkippedUpdate,
    UpdatePolicy,
    UpdateStrategy,
)
from quarto_updater.utils.utils import pluralize


class ConfigRow(NamedTuple):
    label: str
    value: str
    default: str
    is_non_default: bool


def get_config_rows(group_updates: bool, policy: UpdatePolicy, auto_merge: AutoMergeConfig) -> List[ConfigRow]:
    include = policy.filter_config.include
    exclude = policy.filter_config.exclude

    return [
        ConfigRow(
            'Mode',
            'Grouped updates (single PR)' if group_updates else 'Individual PRs (one per extension)',
            'Individual PRs',
            group_updates,
        ),
        ConfigRow(
            'Update Strategy',
            policy.update_strategy.value,
            UpdateStrategy.ALL.value,
            policy.update_strategy != UpdateStrategy.ALL,
        ),
        ConfigRow('Include Filter', ', '.join(include) if include else '*(all)*', '*(all)*', bool(include)),
        ConfigRow('Exclude Filter', ', '.join(exclude) if exclude else '*(none)*', '*(none)*', bool(exclude)),
        ConfigRow(
            'Auto-Merge',
            (
                f'Enabled ({auto_merge.strategy.value} updates, {auto_merge.merge_method.value} method)'
                if auto_merge.enabled
                else 'Disabled'
            ),
            'Disabled',
            auto_merge.enabled,
        ),
    ]


def _auto_merge_cell(update: ExtensionUpdate, auto_merge: AutoMergeConfig) -> str:
    return '✓ Yes' if should_auto_merge(update, auto_merge) else '✗ No'


def _table(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> str:
    lines = [
        '| ' + ' | '.join(headers) + ' |',
        '|' + '|'.join('-' * (len(header) + 2) for header in headers) + '|',
    ]
    lines.extend('| ' + ' | '.join(row) + ' |' for row in rows)
    return '\n'.join(lines) + '\n'


def generate_dry_run_markdown(
    updates: Sequence[ExtensionUpdate],
    group_updates: bool,
    policy: UpdatePolicy,
    auto_merge: AutoMergeConfig,
) -> str:
    """Preview of the PRs a real run would open."""
    count = len(updates)
    markdown = '## Dry-Run Summary\n\n'
    markdown += 'No PRs will be created. This is a preview of what would happen.\n\n'

    markdown += '### Configuration\n\n'
    markdown += 'Settings marked with ⚙️ are non-default values.\n\n'
    markdown += _table(
        ['Setting', 'Value', 'Default'],
        [
            [f"{'⚙️ ' if row.is_non_default else ''}{row.label}", row.value, row.default]
            for row in get_config_rows(group_updates, policy, auto_merge)
        ],
    )
    markdown += '\n'

    markdown += '### Planned Actions\n\n'
    if group_updates:
        markdown += f'Would create **1 PR** with {count} extension {pluralize(count, "update")}\n\n'
    else:
        markdown += f'Would create **{count} {pluralize(count, "PR")}** (one per extension)\n\n'

    markdown += '### Available Updates\n\n'
    markdown += _table(
        ['Extension', 'Current', 'Latest', 'Auto-Merge'],
        [
            [update.name_with_owner, update.current_version, update.latest_version, _auto_merge_cell(update, auto_merge)]
            for update in updates
        ],
    )
    markdown += '\n'

    markdown += '### Next Steps\n\n'
    markdown += 'To apply these updates, run again without dry-run mode.\n'
    return markdown


def _skipped_section(skipped_updates: Sequence[SkippedUpdate]) -> str:
    markdown = '### Skipped Extensions\n\n'
    markdown += 'The following extension(s) were skipped during this update:\n\n'
    markdown += _table(
        ['Extension', 'Current', 'Latest', 'Reason'],
        [
            [
                skipped.update.name_with_owner,
                skipped.update.current_version,
                skipped.update.latest_version,
                skipped.reason.replace('\n', ' ').replace('|', '\\|'),
            ]
            for skipped in skipped_updates
        ],
    )
    return markdown + '\n'


def generate_completed_markdown(
    updates: Sequence[ExtensionUpdate],
    prs: Sequence[PRResult],
    group_updates: bool,
    policy: UpdatePolicy,
    auto_merge: AutoMergeConfig,
    skipped_updates: Optional[Sequence[SkippedUpdate]] = None,
) -> str:
    """Summary of the PRs a run created or updated, one row per update."""
    created_prs = [pr for pr in prs if pr.created]

    markdown = '## Extension Updates Summary\n\n'
    markdown += f'Successfully created/updated {len(created_prs)} {pluralize(len(created_prs), "PR")}\n\n'

    markdown += '### Configuration\n\n'
    markdown += _table(
        ['Setting', 'Value'],
        [[row.label, row.value] for row in get_config_rows(group_updates, policy, auto_merge)],
    )
    markdown += '\n'

    update_to_pr: Dict[str, PRResult] = {}
    if group_updates and created_prs:
        for update in updates:
            update_to_pr[update.name_with_owner] = created_prs[0]
    else:
        for pr in created_prs:
            for extension in pr.extensions:
                update_to_pr[extension] = pr

    skipped_names = {skipped.update.name_with_owner for skipped in skipped_updates or []}

    rows = []
    for update in updates:
        pr = update_to_pr.get(update.name_with_owner)
        if update.name_with_owner in skipped_names or pr is None:
            pr_link = 'N/A'
        else:
            pr_link = f'<a href="{pr.url}">#{pr.number}</a>'
        rows.append(
            [
                update.name_with_owner,
                update.current_version,
                update.latest_version,
                pr_link,
                _auto_merge_cell(update, auto_merge),
            ]
        )

    markdown += '### Applied Updates\n\n'
    markdown += _table(['Extension', 'Current', 'Latest', 'Pull Request', 'Auto-Merge'], rows)
    markdown += '\n'

    if skipped_updates:
        markdown += _skipped_section(skipped_updates)

    return markdown
