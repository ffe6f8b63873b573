#!/usr/bin/env python3
# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
Pytest configuration for utils tests.
"""

from unittest.mock import Mock

import pytest


def build_response(status_code=200, payload=None, headers=None, text=''):
    """Mock requests.Response with the attributes github_request reads."""
    response = Mock()
    response.status_code = status_code
    response.headers = headers or {}
    response.text = text
    response.content = b'' if payload is None else b'{}'
    if payload is None:
        response.json.side_effect = ValueError('No JSON object could be decoded')
    else:
        response.json.return_value = payload
    return response


@pytest.fixture
def make_response():
    """Factory for mocked GitHub responses."""
    return build_response
