# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
Quarto Extensions Updater CLI

Provides the 'qeu' command-line interface.
"""

from quarto_updater.cli.main import cli, main

__all__ = ['cli', 'main']
