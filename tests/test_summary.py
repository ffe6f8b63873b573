#!/usr/bin/env python3
# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
Unit tests for the markdown run summaries.
"""

import pytest

from quarto_updater.classes import (
    AutoMergeConfig,
    AutoMergeStrategy,
    ExtensionFilterConfig,
    PRResult,
    SkippedUpdate,
    UpdatePolicy,
    UpdateStrategy,
)
from quarto_updater.summary import generate_completed_markdown, generate_dry_run_markdown, get_config_rows


@pytest.fixture
def updates(make_update):
    return [
        make_update(name='a', current_version='1.0.0', latest_version='1.0.1'),
        make_update(name='b', current_version='1.0.0', latest_version='2.0.0'),
    ]


class TestConfigRows:
    def test_defaults_are_not_flagged(self):
        rows = get_config_rows(False, UpdatePolicy(), AutoMergeConfig())
        assert not any(row.is_non_default for row in rows)

    def test_non_default_values_are_flagged(self):
        policy = UpdatePolicy(
            update_strategy=UpdateStrategy.MINOR,
            filter_config=ExtensionFilterConfig(exclude=['owner/b']),
        )

        rows = {row.label: row for row in get_config_rows(True, policy, AutoMergeConfig(enabled=True))}

        assert rows['Mode'].is_non_default
        assert rows['Update Strategy'].value == 'minor'
        assert rows['Exclude Filter'].value == 'owner/b'
        assert not rows['Include Filter'].is_non_default
        assert rows['Auto-Merge'].value == 'Enabled (patch updates, squash method)'


class TestDryRunMarkdown:
    def test_individual_mode(self, updates):
        auto_merge = AutoMergeConfig(enabled=True, strategy=AutoMergeStrategy.PATCH)

        markdown = generate_dry_run_markdown(updates, False, UpdatePolicy(), auto_merge)

        assert markdown.startswith('## Dry-Run Summary')
        assert 'Would create **2 PRs** (one per extension)' in markdown
        assert '| owner/a | 1.0.0 | 1.0.1 | ✓ Yes |' in markdown
        assert '| owner/b | 1.0.0 | 2.0.0 | ✗ No |' in markdown
        assert '| ⚙️ Auto-Merge |' in markdown
        assert '### Next Steps' in markdown

    def test_grouped_mode(self, updates):
        markdown = generate_dry_run_markdown(updates, True, UpdatePolicy(), AutoMergeConfig())

        assert 'Would create **1 PR** with 2 extension updates' in markdown
        assert '| ⚙️ Mode | Grouped updates (single PR) |' in markdown


class TestCompletedMarkdown:
    """Test suite for generate_completed_markdown."""

    def test_individual_prs_linked(self, updates):
        prs = [
            PRResult(number=10, url='https://github.com/o/r/pull/10', extensions=['owner/a']),
            PRResult(number=11, url='https://github.com/o/r/pull/11', extensions=['owner/b']),
        ]

        markdown = generate_completed_markdown(updates, prs, False, UpdatePolicy(), AutoMergeConfig())

        assert 'Successfully created/updated 2 PRs' in markdown
        assert '<a href="https://github.com/o/r/pull/10">#10</a>' in markdown
        assert '<a href="https://github.com/o/r/pull/11">#11</a>' in markdown
        assert '### Skipped Extensions' not in markdown

    def test_skipped_and_sentinel_prs(self, updates):
        skipped = SkippedUpdate(update=updates[1], reason='requires Quarto >= 99.0.0 (installed: 1.5.57)')
        prs = [
            PRResult(number=10, url='https://github.com/o/r/pull/10', extensions=['owner/a']),
            PRResult(number=0, url='', extensions=['owner/b'], skipped_updates=[skipped]),
        ]

        markdown = generate_completed_markdown(updates, prs, False, UpdatePolicy(), AutoMergeConfig(), [skipped])

        assert 'Successfully created/updated 1 PR\n' in markdown
        assert '| owner/b | 1.0.0 | 2.0.0 | N/A | ✗ No |' in markdown
        assert '### Skipped Extensions' in markdown
        assert '| owner/b | 1.0.0 | 2.0.0 | requires Quarto >= 99.0.0 (installed: 1.5.57) |' in markdown

    def test_grouped_pr_links_every_update(self, updates):
        prs = [PRResult(number=7, url='u7', extensions=['owner/a', 'owner/b'])]

        markdown = generate_completed_markdown(updates, prs, True, UpdatePolicy(), AutoMergeConfig())

        assert markdown.count('<a href="u7">#7</a>') == 2

    def test_pipes_in_reasons_are_escaped(self, updates):
        skipped = SkippedUpdate(update=updates[0], reason='Failed to update: a | b\nmore')

        markdown = generate_completed_markdown(updates, [], False, UpdatePolicy(), AutoMergeConfig(), [skipped])

        assert 'Failed to update: a \\| b more' in markdown
