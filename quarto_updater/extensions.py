# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
Reading and scanning installed Quarto extensions.

Extensions live at ``_extensions/<owner>/<name>/_extension.yml`` (or
``.yaml``) below a project directory.
"""

import logging
import os
import re
from typing import List, Optional, Tuple

import yaml

from quarto_updater.classes import ExtensionManifest, InstalledExtension
from quarto_updater.constants import EXTENSIONS_DIR_NAME, QUARTO_MANIFEST_FILENAMES

logger = logging.getLogger(__name__)


def find_extension_manifests(workspace_path: str) -> List[str]:
    """
    Find the manifest of every extension under ``workspace_path/_extensions``.

    Args:
        workspace_path (str): Directory that holds the _extensions folder

    Returns:
        List[str]: Manifest paths, sorted by owner then extension name
    """
    extensions_dir = os.path.join(workspace_path, EXTENSIONS_DIR_NAME)

    if not os.path.isdir(extensions_dir):
        logger.info(f'No {EXTENSIONS_DIR_NAME} directory found in {workspace_path}')
        return []

    manifests = []
    try:
        for owner in sorted(os.listdir(extensions_dir)):
            owner_path = os.path.join(extensions_dir, owner)
            if not os.path.isdir(owner_path):
                continue

            for extension in sorted(os.listdir(owner_path)):
                extension_path = os.path.join(owner_path, extension)
                if not os.path.isdir(extension_path):
                    continue

                for filename in QUARTO_MANIFEST_FILENAMES:
                    manifest_path = os.path.join(extension_path, filename)
                    if os.path.isfile(manifest_path):
                        manifests.append(manifest_path)
                        break
    except OSError as e:
        logger.warning(f'Error scanning extensions directory {extensions_dir}: {e}')
        return []

    logger.info(f'Found {len(manifests)} extension manifests')
    return manifests


def _string_or_none(value) -> Optional[str]:
    return value if isinstance(value, str) else None


def read_extension_manifest(manifest_path: str) -> Optional[ExtensionManifest]:
    """
    Parse an extension manifest.

    Returns None (with a warning) when the file is missing or is not a YAML
    mapping. ``version`` and ``quarto-required`` are read as strings even when
    YAML would type them as numbers.
    """
    if not os.path.isfile(manifest_path):
        logger.warning(f'Manifest not found: {manifest_path}')
        return None

    try:
        with open(manifest_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f'Error reading manifest {manifest_path}: {e}')
        return None

    if not isinstance(data, dict):
        logger.warning(f'Manifest {manifest_path} is not a mapping')
        return None

    version = data.get('version')
    if isinstance(version, (int, float)) and not isinstance(version, bool):
        version = str(version)

    quarto_required = data.get('quarto-required')
    if isinstance(quarto_required, (int, float)) and not isinstance(quarto_required, bool):
        quarto_required = str(quarto_required)

    contributes = data.get('contributes')
    source = _string_or_none(data.get('source'))

    return ExtensionManifest(
        title=_string_or_none(data.get('title')),
        author=_string_or_none(data.get('author')),
        version=_string_or_none(version),
        contributes=', '.join(contributes.keys()) if isinstance(contributes, dict) else None,
        source=source,
        repository=re.sub(r'@.*$', '', source) if source else None,
        quarto_required=_string_or_none(quarto_required),
    )


def extract_extension_info(manifest_path: str) -> Optional[Tuple[str, str]]:
    """
    Get ``(owner, name)`` from a manifest path.

    Both '/' and '\\' are accepted as separators. Returns None when the path
    does not contain ``_extensions/<owner>/<name>/``.
    """
    parts = re.split(r'[\\/]', manifest_path)

    try:
        extensions_index = parts.index(EXTENSIONS_DIR_NAME)
    except ValueError:
        return None

    if extensions_index + 2 >= len(parts):
        return None

    return parts[extensions_index + 1], parts[extensions_index + 2]


def update_manifest_source(manifest_path: str, source: str) -> None:
    """
    Append ``source: <source>`` to a manifest that does not declare one.

    ``quarto add`` leaves the source out when installing from some
    references, and without it the extension cannot be tracked next run.
    """
    with open(manifest_path, 'r', encoding='utf-8') as f:
        content = f.read()

    if re.search(r'^source:', content, re.MULTILINE):
        logger.info(f'Source field already exists in {manifest_path}, skipping source update')
        return

    with open(manifest_path, 'w', encoding='utf-8') as f:
        f.write(f'{content.strip()}\nsource: {source}\n')
    logger.info(f'Added source field to {manifest_path}: {source}')


def scan_installed_extensions(workspace_path: str, scan_directories: List[str]) -> List[InstalledExtension]:
    """
    Collect installed extensions from every scan directory.

    Manifest paths found through more than one scan directory are only
    reported once, in first-seen order.
    """
    manifest_paths = []
    seen = set()
    for scan_directory in scan_directories:
        for manifest_path in find_extension_manifests(os.path.join(workspace_path, scan_directory)):
            key = os.path.normpath(manifest_path)
            if key in seen:
                continue
            seen.add(key)
            manifest_paths.append(manifest_path)

    installed = []
    for manifest_path in manifest_paths:
        manifest = read_extension_manifest(manifest_path)
        info = extract_extension_info(manifest_path)
        if manifest is None or info is None:
            continue

        owner, name = info
        installed.append(
            InstalledExtension(
                owner=owner,
                name=name,
                manifest_path=manifest_path,
                version=manifest.version,
                source=manifest.source,
                repository=manifest.repository,
            )
        )

    return installed
