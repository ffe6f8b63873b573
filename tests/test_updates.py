#!/usr/bin/env python3
# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
Unit tests for update resolution and classification.

Run with: python run_tests.py tests/test_updates.py
"""

import pytest

from quarto_updater.classes import ExtensionFilterConfig, UpdatePolicy, UpdateStrategy
from quarto_updater.updates import (
    check_for_updates,
    find_registry_entry,
    group_updates_by_type,
    resolve_updates,
    should_apply_update,
)


def _policy(strategy: UpdateStrategy = UpdateStrategy.ALL, include=None, exclude=None) -> UpdatePolicy:
    return UpdatePolicy(
        update_strategy=strategy,
        filter_config=ExtensionFilterConfig(include=include or [], exclude=exclude or []),
    )


# ============================================================================
# should_apply_update
# ============================================================================


class TestShouldApplyUpdate:
    """Strategy ceilings: patch ⊂ minor ⊂ all."""

    @pytest.mark.parametrize(
        'current,latest,expected',
        [
            ('1.0.0', '1.0.1', True),
            ('1.0.0', '1.1.0', False),
            ('1.0.0', '2.0.0', False),
            ('v1.0.0', 'v1.0.1', True),
            ('1.0.0', '1.0.1-beta.1', True),
        ],
    )
    def test_patch_strategy(self, current, latest, expected):
        assert should_apply_update(current, latest, UpdateStrategy.PATCH) is expected

    @pytest.mark.parametrize(
        'current,latest,expected',
        [
            ('1.0.0', '1.0.1', True),
            ('1.0.0', '1.1.0', True),
            ('1.0.0', '1.1.0-rc.1', True),
            ('1.0.0', '2.0.0', False),
            ('1.9.9', '2.0.0-alpha', False),
        ],
    )
    def test_minor_strategy(self, current, latest, expected):
        assert should_apply_update(current, latest, UpdateStrategy.MINOR) is expected

    def test_all_strategy_accepts_major(self):
        assert should_apply_update('1.0.0', '5.0.0', UpdateStrategy.ALL) is True

    def test_invalid_versions_rejected_by_restricted_strategies(self):
        assert should_apply_update('not-a-version', '1.0.1', UpdateStrategy.PATCH) is False
        assert should_apply_update('1.0.0', 'latest', UpdateStrategy.MINOR) is False


# ============================================================================
# find_registry_entry
# ============================================================================


class TestFindRegistryEntry:
    def test_exact_name_match(self, make_entry):
        entry = make_entry('owner/ext', latest_version='1.0.0')
        assert find_registry_entry({'owner/ext': entry}, 'owner/ext') is entry

    def test_fallback_to_repository_url(self, make_entry):
        entry = make_entry('owner/quarto-ext', latest_version='1.0.0')
        registry = {'owner/quarto-ext': entry}

        assert find_registry_entry(registry, 'owner/ext', 'https://github.com/owner/quarto-ext') is entry
        assert find_registry_entry(registry, 'owner/ext', 'http://github.com/owner/quarto-ext') is entry
        assert find_registry_entry(registry, 'owner/ext', 'owner/quarto-ext') is entry

    def test_no_match(self, make_entry):
        registry = {'other/ext': make_entry('other/ext', latest_version='1.0.0')}
        assert find_registry_entry(registry, 'owner/ext', 'owner/quarto-ext') is None


# ============================================================================
# resolve_updates
# ============================================================================


class TestResolveUpdates:
    """Test suite for the update resolver."""

    def test_patch_strategy_examples(self, make_installed, make_entry):
        """Patch strategy keeps 1.0.0 → 1.0.1 and drops 1.0.0 → 1.1.0."""
        installed = [make_installed(name='ext', version='1.0.0')]

        patch_registry = {'owner/ext': make_entry('owner/quarto-ext', latest_version='1.0.1')}
        minor_registry = {'owner/ext': make_entry('owner/quarto-ext', latest_version='1.1.0')}

        assert len(resolve_updates(installed, patch_registry, _policy(UpdateStrategy.PATCH))) == 1
        assert resolve_updates(installed, minor_registry, _policy(UpdateStrategy.PATCH)) == []

    def test_emits_update_with_registry_metadata(self, make_installed, make_entry):
        installed = [make_installed(name='ext', version='v1.0.0')]
        registry = {'owner/ext': make_entry('owner/quarto-ext', latest_version='1.2.0', latest_tag='v1.2.0')}

        updates = resolve_updates(installed, registry, _policy())

        assert len(updates) == 1
        update = updates[0]
        assert update.name_with_owner == 'owner/ext'
        assert update.repository_name == 'owner/quarto-ext'
        # raw strings are kept for display
        assert update.current_version == 'v1.0.0'
        assert update.latest_version == 'v1.2.0'
        assert update.install_source == 'owner/quarto-ext@v1.2.0'
        assert update.url == 'https://github.com/owner/quarto-ext'
        assert update.description == 'An extension'

    def test_latest_version_used_when_no_tag(self, make_installed, make_entry):
        installed = [make_installed(version='1.0.0')]
        registry = {'owner/ext': make_entry('owner/quarto-ext', latest_version='1.0.5')}

        assert resolve_updates(installed, registry, _policy())[0].latest_version == '1.0.5'

    def test_up_to_date_and_newer_installed_skipped(self, make_installed, make_entry):
        registry = {'owner/ext': make_entry('owner/quarto-ext', latest_version='1.0.0')}

        assert resolve_updates([make_installed(version='1.0.0')], registry, _policy()) == []
        assert resolve_updates([make_installed(version='2.0.0')], registry, _policy()) == []

    def test_missing_source_skipped(self, make_installed, make_entry):
        installed = [make_installed(source='')]
        registry = {'owner/ext': make_entry('owner/quarto-ext', latest_version='2.0.0')}

        assert resolve_updates(installed, registry, _policy()) == []

    @pytest.mark.parametrize('version', [None, '', 'none'])
    def test_missing_version_skipped(self, make_installed, make_entry, version):
        installed = [make_installed(version=version, source='owner/quarto-ext@main')]
        registry = {'owner/ext': make_entry('owner/quarto-ext', latest_version='2.0.0')}

        assert resolve_updates(installed, registry, _policy()) == []

    def test_registry_without_release_skipped(self, make_installed, make_entry):
        installed = [make_installed(version='1.0.0')]

        assert resolve_updates(installed, {'owner/ext': make_entry('owner/quarto-ext')}, _policy()) == []
        assert (
            resolve_updates(installed, {'owner/ext': make_entry('owner/quarto-ext', latest_version='none')}, _policy())
            == []
        )

    def test_not_in_registry_skipped(self, make_installed):
        assert resolve_updates([make_installed()], {}, _policy()) == []

    def test_invalid_version_skipped_with_warning(self, make_installed, make_entry, caplog):
        installed = [make_installed(version='1.0')]
        registry = {'owner/ext': make_entry('owner/quarto-ext', latest_version='1.1.0')}

        assert resolve_updates(installed, registry, _policy()) == []
        assert 'invalid version format' in caplog.text

    @pytest.mark.parametrize(
        'current,latest,expected_count',
        [
            ('1.0.0', '1.0.1+build.5', 1),
            ('2.0.0-1', '2.0.0', 1),
            ('1.1.0-dev.3', '1.1.0', 1),
            ('1.0.0', '1.0.1a1', 0),
        ],
    )
    def test_semver_rules_decide_validity(self, make_installed, make_entry, current, latest, expected_count):
        installed = [make_installed(version=current)]
        registry = {'owner/ext': make_entry('owner/quarto-ext', latest_version=latest)}

        assert len(resolve_updates(installed, registry, _policy())) == expected_count

    def test_include_filter(self, make_installed, make_entry):
        installed = [make_installed(name='a'), make_installed(name='b')]
        registry = {
            'owner/a': make_entry('owner/quarto-a', latest_version='1.0.1'),
            'owner/b': make_entry('owner/quarto-b', latest_version='1.0.1'),
        }

        updates = resolve_updates(installed, registry, _policy(include=['owner/b']))

        assert [u.name_with_owner for u in updates] == ['owner/b']

    def test_exclude_wins_over_include(self, make_installed, make_entry):
        installed = [make_installed(name='a')]
        registry = {'owner/a': make_entry('owner/quarto-a', latest_version='1.0.1')}

        policy = _policy(include=['owner/a'], exclude=['owner/a'])

        assert resolve_updates(installed, registry, policy) == []

    def test_preserves_scan_order(self, make_installed, make_entry):
        names = ['zeta', 'alpha', 'mid']
        installed = [make_installed(name=name) for name in names]
        registry = {f'owner/{name}': make_entry(f'owner/quarto-{name}', latest_version='1.0.1') for name in names}

        updates = resolve_updates(installed, registry, _policy())

        assert [u.name for u in updates] == names

    def test_every_update_is_strictly_newer(self, make_installed, make_entry):
        installed = [
            make_installed(name='a', version='1.0.0'),
            make_installed(name='b', version='2.0.0'),
            make_installed(name='c', version='1.0.0-rc.1'),
        ]
        registry = {
            'owner/a': make_entry('owner/quarto-a', latest_version='1.0.0'),
            'owner/b': make_entry('owner/quarto-b', latest_version='1.5.0'),
            'owner/c': make_entry('owner/quarto-c', latest_version='1.0.0'),
        }

        updates = resolve_updates(installed, registry, _policy())

        assert [u.name for u in updates] == ['c']


# ============================================================================
# check_for_updates
# ============================================================================


class TestCheckForUpdates:
    def _write_manifest(self, root, owner, name, content):
        directory = root / '_extensions' / owner / name
        directory.mkdir(parents=True)
        (directory / '_extension.yml').write_text(content)

    def test_scans_workspace(self, tmp_path, make_entry):
        self._write_manifest(tmp_path, 'owner', 'ext', 'title: Ext\nversion: 1.0.0\nsource: owner/quarto-ext@v1.0.0\n')
        registry = {'owner/ext': make_entry('owner/quarto-ext', latest_tag='v1.1.0')}

        updates = check_for_updates(str(tmp_path), registry, _policy())

        assert len(updates) == 1
        assert updates[0].latest_version == 'v1.1.0'

    def test_scan_directories_are_deduplicated(self, tmp_path, make_entry):
        self._write_manifest(tmp_path, 'owner', 'ext', 'version: 1.0.0\nsource: owner/quarto-ext@v1.0.0\n')
        self._write_manifest(tmp_path / 'slides', 'owner', 'other', 'version: 1.0.0\nsource: owner/quarto-other@v1.0.0\n')
        registry = {
            'owner/ext': make_entry('owner/quarto-ext', latest_version='1.0.1'),
            'owner/other': make_entry('owner/quarto-other', latest_version='1.0.1'),
        }

        updates = check_for_updates(str(tmp_path), registry, _policy(), scan_directories=['.', './', 'slides'])

        assert [u.name_with_owner for u in updates] == ['owner/ext', 'owner/other']


# ============================================================================
# group_updates_by_type
# ============================================================================


class TestGroupUpdatesByType:
    def test_partitions_by_magnitude(self, make_update):
        updates = [
            make_update(name='major', current_version='1.0.0', latest_version='2.0.0'),
            make_update(name='minor', current_version='1.0.0', latest_version='v1.1.0'),
            make_update(name='patch', current_version='v1.0.0', latest_version='1.0.1'),
            make_update(name='prepatch', current_version='1.0.0', latest_version='1.0.1-rc.1'),
        ]

        grouped = group_updates_by_type(updates)

        assert [u.name for u in grouped['major']] == ['major']
        assert [u.name for u in grouped['minor']] == ['minor']
        assert [u.name for u in grouped['patch']] == ['patch', 'prepatch']

    def test_unparseable_dropped_and_prerelease_folded_into_patch(self, make_update):
        updates = [
            make_update(name='bad', current_version='abc', latest_version='1.0.0'),
            make_update(name='pre', current_version='1.0.0-alpha.1', latest_version='1.0.0-alpha.2'),
        ]

        grouped = group_updates_by_type(updates)

        assert grouped['major'] == []
        assert grouped['minor'] == []
        assert [u.name for u in grouped['patch']] == ['pre']

    def test_bucket_sizes_sum_to_parseable_count(self, make_update):
        updates = [
            make_update(name=str(i), current_version='1.0.0', latest_version=latest)
            for i, latest in enumerate(['2.0.0', '1.1.0', '1.0.1', 'x', '3.0.0-beta'])
        ]

        grouped = group_updates_by_type(updates)

        assert sum(len(bucket) for bucket in grouped.values()) == 4
