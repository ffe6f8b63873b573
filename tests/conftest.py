# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
Shared fixtures for quarto_updater tests.
"""

from typing import Optional

import pytest

from quarto_updater.classes import (
    AutoMergeConfig,
    ExtensionUpdate,
    InstalledExtension,
    PRAssignmentConfig,
    PRProcessingConfig,
    RegistryEntry,
)


def build_update(
    name: str = 'ext',
    owner: str = 'owner',
    current_version: str = '1.0.0',
    latest_version: str = '1.0.1',
    manifest_path: Optional[str] = None,
    repository_name: Optional[str] = None,
) -> ExtensionUpdate:
    repository_name = repository_name or f'{owner}/quarto-{name}'
    return ExtensionUpdate(
        name=name,
        owner=owner,
        name_with_owner=f'{owner}/{name}',
        repository_name=repository_name,
        current_version=current_version,
        latest_version=latest_version,
        manifest_path=manifest_path or f'/workspace/_extensions/{owner}/{name}/_extension.yml',
        url=f'https://github.com/{repository_name}',
        release_url=f'https://github.com/{repository_name}/releases/tag/{latest_version}',
        description=f'Test extension {name}',
    )


def build_installed(
    name: str = 'ext',
    owner: str = 'owner',
    version: Optional[str] = '1.0.0',
    source: Optional[str] = None,
    repository: Optional[str] = None,
) -> InstalledExtension:
    if source is None:
        source = f'{owner}/quarto-{name}@v{version}'
    return InstalledExtension(
        owner=owner,
        name=name,
        manifest_path=f'/workspace/_extensions/{owner}/{name}/_extension.yml',
        version=version,
        source=source,
        repository=repository if repository is not None else (source.split('@')[0] if source else None),
    )


def build_entry(full_name: str, latest_version: Optional[str] = None, latest_tag: Optional[str] = None) -> RegistryEntry:
    return RegistryEntry(
        full_name=full_name,
        latest_version=latest_version,
        latest_tag=latest_tag,
        latest_release_url=f'https://github.com/{full_name}/releases/latest',
        description='An extension',
        html_url=f'https://github.com/{full_name}',
    )


@pytest.fixture
def make_update():
    """Factory for ExtensionUpdate objects."""
    return build_update


@pytest.fixture
def make_installed():
    """Factory for InstalledExtension objects."""
    return build_installed


@pytest.fixture
def make_entry():
    """Factory for RegistryEntry objects."""
    return build_entry


@pytest.fixture
def pr_config(tmp_path):
    """PR processing config rooted at a temporary workspace."""
    return PRProcessingConfig(
        workspace_path=str(tmp_path),
        base_branch='main',
        base_sha='base-sha',
        branch_prefix='chore/quarto-extensions',
        pr_title_prefix='chore(deps):',
        commit_message_prefix='chore(deps):',
        pr_labels=['dependencies', 'quarto-extensions'],
        auto_merge=AutoMergeConfig(),
        assignment=PRAssignmentConfig(),
    )
