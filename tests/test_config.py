#!/usr/bin/env python3
# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
Unit tests for configuration loading and validation.
"""

import json

import pytest

from quarto_updater.classes import AutoMergeStrategy, MergeMethod, UpdateStrategy
from quarto_updater.config import (
    build_config,
    load_config_file,
    validate_branch_prefix,
    validate_github_settings,
    validate_merge_method,
    validate_registry_url,
    validate_repository,
    validate_update_strategy,
    validate_workspace_path,
)
from quarto_updater.errors import ValidationError


@pytest.fixture
def options(tmp_path):
    """Minimal valid option set."""
    return {'github_token': 'ghp_secret', 'repository': 'owner/repo', 'workspace_path': str(tmp_path)}


# ============================================================================
# Validators
# ============================================================================


class TestValidators:
    def test_enum_validators(self):
        assert validate_merge_method('rebase') == MergeMethod.REBASE
        assert validate_update_strategy('minor') == UpdateStrategy.MINOR

        with pytest.raises(ValidationError, match="Invalid merge method: 'fast-forward'") as exc_info:
            validate_merge_method('fast-forward')
        assert exc_info.value.field == 'auto-merge-method'

        with pytest.raises(ValidationError, match='Invalid update strategy'):
            validate_update_strategy('major')

    @pytest.mark.parametrize('url', ['http://example.com/registry.json', 'https://'])
    def test_invalid_registry_url(self, url):
        with pytest.raises(ValidationError):
            validate_registry_url(url)

    def test_valid_registry_url(self):
        validate_registry_url('https://example.com/registry.json')

    @pytest.mark.parametrize('prefix', ['has space', 'a..b', 'bad~ref', 'what?', 'x:y'])
    def test_invalid_branch_prefix(self, prefix):
        with pytest.raises(ValidationError):
            validate_branch_prefix(prefix)

    def test_valid_branch_prefix(self):
        validate_branch_prefix('chore/quarto-extensions')

    def test_workspace_path(self, tmp_path):
        validate_workspace_path(str(tmp_path))

        with pytest.raises(ValidationError, match='cannot be empty'):
            validate_workspace_path('  ')
        with pytest.raises(ValidationError, match='does not exist'):
            validate_workspace_path(str(tmp_path / 'missing'))

    @pytest.mark.parametrize('repository', ['', 'owner', 'owner/repo/extra', 'owner/ repo'])
    def test_invalid_repository(self, repository):
        with pytest.raises(ValidationError):
            validate_repository(repository)


# ============================================================================
# Config file
# ============================================================================


class TestLoadConfigFile:
    def test_kebab_case_keys_are_normalised(self, tmp_path):
        path = tmp_path / 'config.json'
        path.write_text(json.dumps({'auto-merge-method': 'rebase', 'group_updates': True}))

        assert load_config_file(str(path)) == {'auto_merge_method': 'rebase', 'group_updates': True}

    def test_missing_file(self, tmp_path):
        with pytest.raises(ValidationError, match='Config file not found'):
            load_config_file(str(tmp_path / 'missing.json'))

    def test_invalid_json(self, tmp_path):
        path = tmp_path / 'config.json'
        path.write_text('{not json')

        with pytest.raises(ValidationError, match='Failed to load config'):
            load_config_file(str(path))

    def test_non_object(self, tmp_path):
        path = tmp_path / 'config.json'
        path.write_text('[1, 2]')

        with pytest.raises(ValidationError, match='must contain a JSON object'):
            load_config_file(str(path))


# ============================================================================
# build_config
# ============================================================================


class TestBuildConfig:
    """Test suite for build_config."""

    def test_defaults(self, options):
        config = build_config(options)

        assert config.base_branch == 'main'
        assert config.branch_prefix == 'chore/quarto-extensions'
        assert config.pr_labels == ['dependencies', 'quarto-extensions']
        assert config.update_strategy == UpdateStrategy.ALL
        assert config.auto_merge.enabled is False
        assert config.auto_merge.strategy == AutoMergeStrategy.PATCH
        assert config.auto_merge.merge_method == MergeMethod.SQUASH
        assert config.scan_directories == ['.']
        assert config.create_pr is True
        assert config.dry_run is False

    def test_comma_separated_lists(self, options):
        options.update(
            {
                'pr_labels': 'deps, quarto ,',
                'include_extensions': 'a/b,c/d',
                'pr_team_reviewers': 'docs',
                'scan_directories': '., slides',
            }
        )

        config = build_config(options)

        assert config.pr_labels == ['deps', 'quarto']
        assert config.filter_config.include == ['a/b', 'c/d']
        assert config.assignment.team_reviewers == ['docs']
        assert config.scan_directories == ['.', 'slides']

    def test_options_override_config_file(self, options, tmp_path):
        path = tmp_path / 'config.json'
        path.write_text(
            json.dumps({'base-branch': 'develop', 'update-strategy': 'patch', 'pr-labels': ['a', 'b'], 'auto-merge': 'true'})
        )
        options['update_strategy'] = 'minor'

        config = build_config(options, config_path=str(path))

        assert config.base_branch == 'develop'
        assert config.update_strategy == UpdateStrategy.MINOR
        assert config.pr_labels == ['a', 'b']
        assert config.auto_merge.enabled is True

    def test_empty_options_do_not_override(self, options, tmp_path):
        path = tmp_path / 'config.json'
        path.write_text(json.dumps({'branch-prefix': 'deps', 'pr-labels': ['a'], 'update-strategy': 'patch'}))
        options.update({'branch_prefix': '', 'pr_labels': '', 'update_strategy': ''})

        config = build_config(options, config_path=str(path))

        assert config.branch_prefix == 'deps'
        assert config.pr_labels == ['a']
        assert config.update_strategy == UpdateStrategy.PATCH

    def test_invalid_boolean(self, options):
        options['group_updates'] = 'yes'

        with pytest.raises(ValidationError, match='Invalid boolean for group_updates'):
            build_config(options)

    def test_github_settings_required_by_default(self, tmp_path):
        with pytest.raises(ValidationError, match='GitHub token is required'):
            build_config({'workspace_path': str(tmp_path)})

    def test_github_settings_optional(self, tmp_path):
        config = build_config({'workspace_path': str(tmp_path)}, require_github=False)

        assert config.github_token == ''
        with pytest.raises(ValidationError, match='GitHub token is required'):
            validate_github_settings(config)

    def test_pr_processing_config(self, options):
        options['pr_assignees'] = 'alice'
        config = build_config(options)

        pr_config = config.pr_processing_config('sha')

        assert pr_config.base_sha == 'sha'
        assert pr_config.workspace_path == options['workspace_path']
        assert pr_config.assignment.assignees == ['alice']

    def test_display_rows_mask_token(self, options):
        rows = dict(build_config(options).to_display_rows())

        assert rows['repository'] == 'owner/repo'
        assert 'ghp_secret' not in rows['github token']
        assert rows['github token'].startswith('<masked:')
