"""
Named client registry.

Applications talking to several stores register one configuration per
name and resolve clients on demand. The registry is an ordinary object the
application owns and passes around; there is no process-wide instance.
"""

from __future__ import annotations
import logging
from typing import Any, Dict, List, Mapping, Optional, Union

import requests

from .client import ShopifyClient
from .config import ClientConfig
from .runtime.errors import ClientNotFoundError

logger = logging.getLogger(__name__)


class ClientRegistry:
    """
    Registry of client configurations by name.

    Configurations are validated when registered; clients are built on the
    first ``resolve`` and reused afterwards.

    Example:
        ```python
        registry = ClientRegistry()
        registry.register("eu", {"domain": "eu-store.myshopify.com", "access_token": "..."})
        registry.resolve("eu").get("shop")
        ```
    """

    def __init__(self, session: Optional[requests.Session] = None):
        """
        Initialize registry.

        Args:
            session: Optional requests.Session shared by every resolved client
        """
        self._session = session
        self._configs: Dict[str, ClientConfig] = {}
        self._clients: Dict[str, ShopifyClient] = {}

    def register(self, name: str, config: Union[ClientConfig, Mapping[str, Any]]) -> ClientConfig:
        """
        Register (or replace) the configuration stored under a name.

        Args:
            name: Client name
            config: ClientConfig or a mapping of public option names

        Returns:
            The validated configuration

        Raises:
            InvalidOptionError: Invalid options
            ApiVersionError: Invalid api_version
        """
        if not isinstance(config, ClientConfig):
            config = ClientConfig.from_options(config)
        replaced = self._clients.pop(name, None)
        if replaced is not None:
            replaced.close()
        self._configs[name] = config
        logger.debug(f"Registered Shopify client '{name}' for {config.permanent_domain}")
        return config

    def resolve(self, name: str) -> ShopifyClient:
        """
        Client registered under a name, built on first use.

        Raises:
            ClientNotFoundError: Nothing is registered under the name
        """
        if name not in self._configs:
            raise ClientNotFoundError(name)
        if name not in self._clients:
            self._clients[name] = ShopifyClient(self._configs[name], session=self._session)
            logger.info(f"Created Shopify client '{name}'")
        return self._clients[name]

    def config(self, name: str) -> ClientConfig:
        if name not in self._configs:
            raise ClientNotFoundError(name)
        return self._configs[name]

    def unregister(self, name: str) -> bool:
        """
        Remove a name and close its client.

        Returns:
            True if the name was registered
        """
        client = self._clients.pop(name, None)
        if client is not None:
            client.close()
        return self._configs.pop(name, None) is not None

    def names(self) -> List[str]:
        return list(self._configs)

    def close(self) -> None:
        """Close every client built so far."""
        for client in self._clients.values():
            client.close()
        self._clients.clear()

    def __contains__(self, name: object) -> bool:
        return name in self._configs

    def __len__(self) -> int:
        return len(self._configs)
