# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
Update resolution.

Decides, for each installed extension, whether the registry has a newer
release and whether that release is in scope for the configured update
strategy and include/exclude filters.
"""

import logging
import re
from typing import Dict, List, Mapping, Optional, Sequence

from quarto_updater.automerge import get_update_type
from quarto_updater.classes import (
    ExtensionUpdate,
    InstalledExtension,
    RegistryEntry,
    UpdatePolicy,
    UpdateStrategy,
    UpdateType,
)
from quarto_updater.constants import GITHUB_HOST, NO_VERSION_SENTINEL
from quarto_updater.extensions import scan_installed_extensions
from quarto_updater.utils.versions import is_valid_semver, is_version_lower, normalise_version, version_diff

logger = logging.getLogger(__name__)

_STRATEGY_ALLOWED_DIFFS = {
    UpdateStrategy.MINOR: ('minor', 'preminor', 'patch', 'prepatch'),
    UpdateStrategy.PATCH: ('patch', 'prepatch'),
}


def should_apply_update(current_version: str, latest_version: str, strategy: UpdateStrategy) -> bool:
    """Check a bump against the update strategy. Invalid versions only pass under ``all``."""
    if strategy == UpdateStrategy.ALL:
        return True

    return version_diff(current_version, latest_version) in _STRATEGY_ALLOWED_DIFFS[strategy]


def find_registry_entry(
    registry: Mapping[str, RegistryEntry], name_with_owner: str, repository: Optional[str] = None
) -> Optional[RegistryEntry]:
    """Look an extension up by 'owner/name', then by the repository named in its manifest."""
    if name_with_owner in registry:
        return registry[name_with_owner]

    if repository:
        repo_name = re.sub(rf'^https?://{re.escape(GITHUB_HOST)}/', '', repository)
        if repo_name in registry:
            return registry[repo_name]

    return None


def resolve_updates(
    installed: Sequence[InstalledExtension],
    registry: Mapping[str, RegistryEntry],
    policy: UpdatePolicy,
) -> List[ExtensionUpdate]:
    """
    Compute the updates to apply, in the order extensions were installed/scanned.

    Args:
        installed: Installed extensions
        registry: Registry entries keyed by 'owner/name'
        policy (UpdatePolicy): Update strategy plus include/exclude filters

    Returns:
        List[ExtensionUpdate]: One entry per extension with an in-scope newer release.
            Versions are kept as written in the manifest and the registry.
    """
    include = policy.filter_config.include
    exclude = policy.filter_config.exclude
    updates = []

    for extension in installed:
        name_with_owner = extension.name_with_owner

        if not extension.source:
            logger.info(f'Skipping {name_with_owner}: no source field (cannot track updates)')
            continue

        if not extension.version or extension.version == NO_VERSION_SENTINEL:
            logger.info(f'Skipping {name_with_owner}: no version specified')
            continue

        if include and name_with_owner not in include:
            logger.info(f'Skipping {name_with_owner}: not in include list')
            continue

        if name_with_owner in exclude:
            logger.info(f'Skipping {name_with_owner}: in exclude list')
            continue

        entry = find_registry_entry(registry, name_with_owner, extension.repository)
        if entry is None:
            logger.info(f'Skipping {name_with_owner}: not found in registry')
            continue

        latest_version = entry.latest
        if not latest_version or latest_version == NO_VERSION_SENTINEL:
            logger.info(f'Skipping {name_with_owner}: no release version in registry')
            continue

        current_version = extension.version
        if not is_valid_semver(current_version) or not is_valid_semver(latest_version):
            logger.warning(
                f'Skipping {name_with_owner}: invalid version format '
                f'(current: {current_version}, latest: {latest_version})'
            )
            continue

        if not is_version_lower(current_version, latest_version):
            logger.info(f'{name_with_owner} is up to date ({current_version})')
            continue

        if not should_apply_update(current_version, latest_version, policy.update_strategy):
            diff = version_diff(current_version, latest_version)
            logger.info(
                f'Skipping {name_with_owner}: {diff} update ({current_version} → {latest_version}) '
                f'not allowed by update strategy ({policy.update_strategy.value})'
            )
            continue

        logger.info(f'Update available for {name_with_owner}: {current_version} → {latest_version}')
        updates.append(
            ExtensionUpdate(
                name=extension.name,
                owner=extension.owner,
                name_with_owner=name_with_owner,
                repository_name=entry.full_name,
                current_version=current_version,
                latest_version=latest_version,
                manifest_path=extension.manifest_path,
                url=entry.html_url,
                release_url=entry.latest_release_url,
                description=entry.description,
            )
        )

    return updates


def check_for_updates(
    workspace_path: str,
    registry: Mapping[str, RegistryEntry],
    policy: UpdatePolicy,
    scan_directories: Sequence[str] = ('.',),
) -> List[ExtensionUpdate]:
    """Scan the workspace for installed extensions and resolve their updates."""
    installed = scan_installed_extensions(workspace_path, list(scan_directories))
    logger.info(f'Checking {len(installed)} extensions for updates...')
    return resolve_updates(installed, registry, policy)


def group_updates_by_type(updates: Sequence[ExtensionUpdate]) -> Dict[str, List[ExtensionUpdate]]:
    """
    Bucket updates into 'major', 'minor' and 'patch'.

    Pairs that cannot be parsed are left out. A parseable pair with no
    major/minor/patch difference (a prerelease-only bump) counts as patch.
    """
    grouped = {'major': [], 'minor': [], 'patch': []}

    for update in updates:
        current = normalise_version(update.current_version)
        latest = normalise_version(update.latest_version)
        if not is_valid_semver(current) or not is_valid_semver(latest):
            continue

        update_type = get_update_type(current, latest)
        if update_type == UpdateType.MAJOR:
            grouped['major'].append(update)
        elif update_type == UpdateType.MINOR:
            grouped['minor'].append(update)
        else:
            grouped['patch'].append(update)

    return grouped
