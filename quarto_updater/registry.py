# The MIT License (MIT)
# Copyright © 2025 Entrius

import logging
from typing import Dict, Optional

import requests

from quarto_updater.classes import RegistryEntry
from quarto_updater.constants import (
    DEFAULT_FETCH_TIMEOUT_SECONDS,
    DEFAULT_REGISTRY_URL,
    HTTP_HEADER_ACCEPT_JSON,
    HTTP_USER_AGENT,
)
from quarto_updater.errors import RegistryError

logger = logging.getLogger(__name__)


def fetch_extensions_registry(registry_url: Optional[str] = None) -> Dict[str, RegistryEntry]:
    """
    Fetch the extensions registry.

    Args:
        registry_url (Optional[str]): Registry JSON URL, defaults to the public registry

    Returns:
        Dict[str, RegistryEntry]: Entries keyed by 'owner/name'

    Raises:
        RegistryError: on timeouts, connection failures, non-2xx responses and
            bodies that are not a JSON object
    """
    url = registry_url or DEFAULT_REGISTRY_URL
    logger.info(f'Fetching extensions registry from: {url}')

    try:
        response = requests.get(
            url,
            headers={'Accept': HTTP_HEADER_ACCEPT_JSON, 'User-Agent': HTTP_USER_AGENT},
            timeout=DEFAULT_FETCH_TIMEOUT_SECONDS,
        )
    except requests.exceptions.Timeout as e:
        error = RegistryError(f'Registry fetch timed out after {DEFAULT_FETCH_TIMEOUT_SECONDS} seconds', url)
        logger.error(error.message)
        raise error from e
    except requests.exceptions.RequestException as e:
        error = RegistryError(f'Unexpected error fetching registry: {e}', url)
        logger.error(error.message)
        raise error from e

    if not response.ok:
        error = RegistryError(
            f'Failed to fetch registry: {response.status_code} {response.reason}', url, response.status_code
        )
        logger.error(error.message)
        raise error

    try:
        data = response.json()
    except ValueError as e:
        error = RegistryError(f'Failed to parse registry JSON: {e}', url)
        logger.error(error.message)
        raise error from e

    if not isinstance(data, dict):
        error = RegistryError('Registry response is not a valid object', url)
        logger.error(error.message)
        raise error

    registry = {
        key: RegistryEntry.from_registry_json(key, value) for key, value in data.items() if isinstance(value, dict)
    }

    logger.info(f'Successfully fetched {len(registry)} extensions from registry')
    return registry
