"""
Shared fixtures for the Shopify client tests.
"""

from unittest.mock import patch

import pytest


@pytest.fixture
def no_sleep():
    """Patch out every sleep in the client; yields the mock."""
    with patch("shopify_client.client.time.sleep") as sleep:
        yield sleep
