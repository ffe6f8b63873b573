# The MIT License (MIT)
# Copyright © 2025 Entrius

"""PR title/body rendering and the run's update summary log."""

import logging
from typing import List, Optional, Sequence

from quarto_updater.classes import ExtensionUpdate, SkippedUpdate
from quarto_updater.constants import (
    DEFAULT_PR_TITLE_PREFIX,
    LOG_SEPARATOR_CHAR,
    LOG_SEPARATOR_LENGTH,
    PR_FOOTER_TEXT,
)
from quarto_updater.updates import group_updates_by_type
from quarto_updater.utils.github_api_tools import get_release_notes
from quarto_updater.utils.utils import pluralize

logger = logging.getLogger(__name__)

UPDATE_SECTIONS = [
    ('major', '## ⚠️ Major Updates'),
    ('minor', '## ✨ Minor Updates'),
    ('patch', '## 🐛 Patch Updates'),
]


def generate_pr_title(updates: Sequence[ExtensionUpdate], prefix: str = DEFAULT_PR_TITLE_PREFIX) -> str:
    """
    PR title for an update group.

    Grouped titles only carry the count, so they match across runs as long as
    the group size is unchanged.
    """
    if len(updates) == 1:
        update = updates[0]
        return f'{prefix} update {update.name_with_owner} extension to {update.latest_version}'

    return f'{prefix} update {len(updates)} Quarto {pluralize(len(updates), "extension")}'


def _format_update_list(updates: Sequence[ExtensionUpdate]) -> List[str]:
    return [
        f'- **[{update.name_with_owner}]({update.url})**: `{update.current_version}` → `{update.latest_version}`'
        for update in updates
    ]


def _fetch_release_notes(update: ExtensionUpdate, token: str) -> Optional[str]:
    if len(update.repository_name.split('/')) != 2:
        logger.warning(f'Invalid repository name format: {update.repository_name}')
        return None
    return get_release_notes(update.repository_name, update.latest_version, token)


def generate_pr_body(
    updates: Sequence[ExtensionUpdate],
    token: str,
    skipped_updates: Optional[Sequence[SkippedUpdate]] = None,
) -> str:
    """
    Dependabot-style PR body.

    Lists updates by magnitude, then the release notes of each new version in
    a collapsible block, then any extensions that were skipped.

    Args:
        updates: Updates in the PR
        token (str): GitHub token used to fetch release notes
        skipped_updates: Updates of the group that could not be applied

    Returns:
        str: Markdown body
    """
    sections = ['Updates the following Quarto extension(s):', '']

    grouped = group_updates_by_type(updates)
    for key, heading in UPDATE_SECTIONS:
        if grouped[key]:
            sections.extend([heading, ''])
            sections.extend(_format_update_list(grouped[key]))
            sections.append('')

    sections.extend(['---', ''])

    for update in updates:
        if len(updates) > 1:
            sections.extend([f'### {update.name_with_owner}', ''])
        else:
            sections.extend(['### Release Notes', ''])

        release_body = _fetch_release_notes(update, token)

        sections.extend(['<details>', f'<summary>Release {update.latest_version}</summary>', ''])
        if release_body:
            sections.append('\n'.join(f'> {line}' for line in release_body.split('\n')))
        else:
            sections.extend(['> No release notes available.', '>', f'> View release: {update.release_url}'])
        sections.extend(['', '</details>', ''])

        if update.description:
            sections.extend([f'**About**: {update.description}', ''])

        sections.extend([f'**Links**: [Repository]({update.url}) · [Release]({update.release_url})', ''])

    if skipped_updates:
        sections.extend(
            [
                '## ⏭️ Skipped Extensions',
                '',
                'The following extension(s) were skipped during this update:',
                '',
            ]
        )
        for skipped in skipped_updates:
            sections.append(
                f'- **{skipped.update.name_with_owner}** '
                f'(`{skipped.update.current_version}` → `{skipped.update.latest_version}`): {skipped.reason}'
            )
        sections.append('')

    sections.extend(['---', '', PR_FOOTER_TEXT])
    return '\n'.join(sections)


def log_update_summary(updates: Sequence[ExtensionUpdate]) -> None:
    """Log the updates by magnitude. Major updates are logged as warnings."""
    separator = LOG_SEPARATOR_CHAR * LOG_SEPARATOR_LENGTH
    logger.info('📦 Extension Updates Summary:')
    logger.info(separator)

    grouped = group_updates_by_type(updates)

    if grouped['major']:
        logger.warning(f"⚠️  Major updates ({len(grouped['major'])}):")
        for update in grouped['major']:
            logger.warning(f'   {update}')

    if grouped['minor']:
        logger.info(f"✨ Minor updates ({len(grouped['minor'])}):")
        for update in grouped['minor']:
            logger.info(f'   {update}')

    if grouped['patch']:
        logger.info(f"🐛 Patch updates ({len(grouped['patch'])}):")
        for update in grouped['patch']:
            logger.info(f'   {update}')

    logger.info(separator)
    logger.info(f'Total: {len(updates)} {pluralize(len(updates), "extension")} to update')
