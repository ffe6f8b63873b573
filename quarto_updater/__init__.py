# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
Quarto Extensions Updater

Detects vendored Quarto extensions, checks them against the extensions
registry and opens pull requests that bring them up to date.
"""

__version__ = "1.4.0"
