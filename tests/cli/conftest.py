# The MIT License (MIT)
# Copyright © 2025 Entrius

"""Shared fixtures for CLI tests."""

from unittest.mock import patch

import pytest
from click.testing import CliRunner

# Environment variables the CLI options read; cleared so the host environment cannot leak in
CLI_ENV = {'GITHUB_TOKEN': None, 'GITHUB_REPOSITORY': None, 'GITHUB_WORKSPACE': None, 'GITHUB_OUTPUT': None}


@pytest.fixture
def cli_runner():
    return CliRunner(env=CLI_ENV)


@pytest.fixture(autouse=True)
def no_logging_setup():
    """setup_logging reconfigures the root logger; keep it away from the test session."""
    with patch('quarto_updater.cli.main.setup_logging') as mock_setup:
        yield mock_setup
