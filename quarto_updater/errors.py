# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
Error types raised by the updater.

Configuration problems surface as ValidationError before anything is mutated.
RegistryError, GitOperationError and GitHubAPIError abort the run; the CLI
reports their message verbatim.
"""

import json
from typing import Any, Dict, Optional


class UpdaterError(Exception):
    """Base class for all quarto-extensions-updater errors."""

    def __init__(self, message: str, code: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.context = context or {}


class ValidationError(UpdaterError):
    """Raised when a configuration value is invalid."""

    def __init__(self, message: str, field: str, value: Any):
        super().__init__(message, 'VALIDATION_ERROR', {'field': field, 'value': value})
        self.field = field
        self.value = value


class RegistryError(UpdaterError):
    """Raised when the extensions registry cannot be fetched or parsed."""

    def __init__(self, message: str, url: str, status_code: Optional[int] = None):
        super().__init__(message, 'REGISTRY_ERROR', {'url': url, 'status_code': status_code})
        self.url = url
        self.status_code = status_code


class GitOperationError(UpdaterError):
    """Raised when a local operation on the working tree fails."""

    def __init__(self, message: str, operation: str, details: Optional[str] = None):
        super().__init__(message, 'GIT_OPERATION_ERROR', {'operation': operation, 'details': details})
        self.operation = operation
        self.details = details


class GitHubAPIError(UpdaterError):
    """Raised when a GitHub REST or GraphQL call fails."""

    def __init__(self, message: str, operation: str, status_code: Optional[int] = None):
        super().__init__(message, 'GITHUB_API_ERROR', {'operation': operation, 'status_code': status_code})
        self.operation = operation
        self.status_code = status_code


def format_error(error: BaseException) -> str:
    """Format an exception for logging."""
    if isinstance(error, UpdaterError):
        parts = [f'[{error.code}] {error.message}']
        context = {k: v for k, v in error.context.items() if v is not None}
        if context:
            parts.append(f'Context: {json.dumps(context, default=str)}')
        return ' - '.join(parts)

    return f'{type(error).__name__}: {error}'
