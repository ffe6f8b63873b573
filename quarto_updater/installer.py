# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
Applies extension updates to the working tree with the Quarto CLI.

Each update is installed independently with ``quarto add``; an update that
fails to install, or whose new release needs a newer Quarto than the one on
PATH, is reported as skipped and its files are left out of the commit.
"""

import logging
import os
import re
import subprocess
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from quarto_updater.classes import ApplyResult, ExtensionUpdate, SkippedUpdate
from quarto_updater.constants import (
    DEFAULT_BRANCH_PREFIX,
    DEFAULT_COMMIT_MESSAGE_PREFIX,
    EXTENSIONS_DIR_NAME,
    QUARTO_BINARY,
)
from quarto_updater.errors import GitOperationError
from quarto_updater.extensions import read_extension_manifest, update_manifest_source
from quarto_updater.utils.utils import pluralize
from quarto_updater.utils.versions import satisfies_requirement

logger = logging.getLogger(__name__)

QUARTO_SETUP_HINT = (
    "Quarto CLI is not available. Please install Quarto before running the updater.\n"
    "In GitHub Actions, add this step first:\n"
    "  - name: Setup Quarto\n"
    "    uses: quarto-dev/quarto-actions/setup@v2"
)


def get_quarto_version() -> Optional[str]:
    """Return the output of ``quarto --version``, or None if Quarto cannot be run."""
    try:
        result = subprocess.run(
            [QUARTO_BINARY, '--version'],
            check=True,
            capture_output=True,
            text=True,
        )
    except (subprocess.CalledProcessError, OSError) as e:
        logger.error(f'Quarto CLI is not available: {e}')
        return None

    return result.stdout.strip()


def derive_quarto_add_cwd(manifest_path: str) -> str:
    """
    Directory ``quarto add`` must run in to reinstall the extension in place.

    That is the directory holding the ``_extensions`` folder. Paths with no
    such parent fall back to the current working directory.
    """
    matches = list(re.finditer(rf'[\\/]{EXTENSIONS_DIR_NAME}[\\/]', manifest_path))
    if not matches or matches[-1].start() == 0:
        return os.getcwd()
    return manifest_path[: matches[-1].start()]


def get_all_files_in_directory(directory: str) -> List[str]:
    """Recursively list every file below ``directory``, sorted."""
    if not os.path.isdir(directory):
        return []

    files = []
    for root, _, filenames in os.walk(directory):
        for filename in filenames:
            files.append(os.path.join(root, filename))
    return sorted(files)


def _failure_reason(error: Exception) -> str:
    stderr = (getattr(error, 'stderr', None) or '').strip()
    stdout = (getattr(error, 'stdout', None) or '').strip()
    return f'Failed to update: {stderr or stdout or str(error)}'


def apply_updates(updates: Sequence[ExtensionUpdate]) -> ApplyResult:
    """
    Install every update in a group.

    Args:
        updates: The update group

    Returns:
        ApplyResult: Files of successfully updated extensions plus the skipped updates

    Raises:
        GitOperationError: if the Quarto CLI cannot be run at all
    """
    quarto_version = get_quarto_version()
    if quarto_version is None:
        logger.error(QUARTO_SETUP_HINT)
        raise GitOperationError('Quarto CLI is not available', 'quarto --version')

    logger.info(f'Installed Quarto version: {quarto_version}')

    result = ApplyResult()

    for update in updates:
        source = update.install_source
        cwd = derive_quarto_add_cwd(update.manifest_path)
        logger.info(f'Running: quarto add {source} --no-prompt (in {cwd})')

        try:
            subprocess.run(
                [QUARTO_BINARY, 'add', source, '--no-prompt'],
                check=True,
                capture_output=True,
                text=True,
                cwd=cwd,
            )
        except (subprocess.CalledProcessError, OSError) as e:
            reason = _failure_reason(e)
            logger.warning(f'Failed to update {update.name_with_owner}: {reason}')
            result.skipped_updates.append(SkippedUpdate(update=update, reason=reason))
            continue

        logger.info(f'Successfully updated {update.name_with_owner} to {update.latest_version}')

        update_manifest_source(update.manifest_path, source)

        manifest = read_extension_manifest(update.manifest_path)
        if manifest is not None and manifest.quarto_required:
            if not satisfies_requirement(quarto_version, manifest.quarto_required):
                required = manifest.quarto_required.lstrip('>= ')
                reason = f'requires Quarto >= {required} (installed: {quarto_version})'
                logger.warning(f'Skipping {update.name_with_owner}: {reason}')
                result.skipped_updates.append(SkippedUpdate(update=update, reason=reason))
                continue

        extension_dir = os.path.dirname(update.manifest_path)
        extension_files = get_all_files_in_directory(extension_dir)
        result.modified_files.extend(extension_files)
        logger.info(f'Tracked {len(extension_files)} file(s) in {extension_dir}')

    return result


def create_branch_name(updates: Sequence[ExtensionUpdate], prefix: str = DEFAULT_BRANCH_PREFIX) -> str:
    """
    Branch name for an update group.

    Single updates embed owner, name and version; groups embed the UTC date so
    the name stays stable whatever the group contains.
    """
    prefix = prefix or DEFAULT_BRANCH_PREFIX

    if len(updates) == 1:
        update = updates[0]
        safe_name = update.name_with_owner.replace('/', '-')
        return f'{prefix}/update-{safe_name}-{update.latest_version}'

    timestamp = datetime.now(timezone.utc).strftime('%Y%m%d')
    return f'{prefix}/update-extensions-{timestamp}'


def create_commit_message(updates: Sequence[ExtensionUpdate], prefix: str = DEFAULT_COMMIT_MESSAGE_PREFIX) -> str:
    if len(updates) == 1:
        update = updates[0]
        return (
            f'{prefix} update {update.name_with_owner} extension to {update.latest_version}\n\n'
            f'Updates {update.name_with_owner} from {update.current_version} to {update.latest_version}.\n\n'
            f'Release notes: {update.release_url}'
        )

    title = f'{prefix} update {len(updates)} Quarto {pluralize(len(updates), "extension")}'
    body = '\n'.join(f'- {update}' for update in updates)
    return f'{title}\n\n{body}'


def validate_modified_files(file_paths: Sequence[str]) -> bool:
    """Check that every file about to be committed exists."""
    for file_path in file_paths:
        if not os.path.isfile(file_path):
            logger.error(f'Modified file not found: {file_path}')
            return False
    return True
