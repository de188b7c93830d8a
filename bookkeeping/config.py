"""Configuration lookup and the global default client."""

import os
import re
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from dotenv import dotenv_values, load_dotenv

from bookkeeping.client import BkpClient
from bookkeeping.context import ContextFactory
from bookkeeping.factory import create


URI_KEY = "o2.bkp.grpc-uri"
LEGACY_URI_KEY = "o2.bookkeeping.grpc-url"
TOKEN_KEY = "o2.bkp.token"

Source = Union[Mapping[str, Any], str, Path, None]

# Global default client
_default_client: Optional[BkpClient] = None


def env_name(key: str) -> str:
    """Environment variable name of a configuration key.

    o2.bkp.grpc-uri -> O2_BKP_GRPC_URI
    """
    return re.sub(r"[^0-9A-Za-z]", "_", key).upper()


def _lookup(values: Mapping[str, Any], key: str) -> Optional[Any]:
    if key in values:
        return values[key]
    if env_name(key) in values:
        return values[env_name(key)]

    # Nested mappings, e.g. {"o2": {"bkp": {"grpc-uri": ...}}}
    node: Any = values
    for part in key.split("."):
        if not isinstance(node, Mapping) or part not in node:
            return None
        node = node[part]
    return node


def resolve_setting(key: str, source: Source = None) -> Optional[str]:
    """Resolve a configuration value by key.

    Args:
        key: Dotted configuration key (e.g. 'o2.bkp.grpc-uri').
        source: Where to look:
            - a mapping: flat dotted key, environment-style key, or nested
            - a path: a dotenv file
            - None: the process environment (a .env file is loaded first)

    Returns:
        The value as a string, or None if the key is not set.
    """
    if source is None:
        load_dotenv()
        value = os.getenv(env_name(key))
    elif isinstance(source, (str, Path)):
        value = _lookup(dotenv_values(source), key)
    else:
        value = _lookup(source, key)

    if value is None or value == "":
        return None
    return str(value)


def from_config(
    source: Source = None,
    uri_key: str = URI_KEY,
    token_key: str = TOKEN_KEY,
    context_factory: Optional[ContextFactory] = None,
    timeout: Optional[float] = None,
) -> BkpClient:
    """Create a client from a configuration source.

    The URI is read from uri_key, falling back to the legacy
    'o2.bookkeeping.grpc-url' key. The token is only used when no
    context_factory is given.

    Raises:
        ValueError: If no URI is configured.
    """
    uri = resolve_setting(uri_key, source) or resolve_setting(LEGACY_URI_KEY, source)
    if uri is None:
        raise ValueError(f"Bookkeeping URI not configured (key '{uri_key}')")

    token = None if context_factory is not None else resolve_setting(token_key, source)
    return create(uri, token=token, context_factory=context_factory, timeout=timeout)


def configure(
    uri: Optional[str] = None,
    token: Optional[str] = None,
    context_factory: Optional[ContextFactory] = None,
    source: Source = None,
    timeout: Optional[float] = None,
) -> BkpClient:
    """Configure the global default client.

    Uses uri/token when a URI is given, the configuration source otherwise.
    A previously configured client is closed.

    Returns:
        The configured BkpClient instance.
    """
    global _default_client
    if uri is not None:
        client = create(uri, token=token, context_factory=context_factory, timeout=timeout)
    else:
        client = from_config(source, context_factory=context_factory, timeout=timeout)

    if _default_client is not None:
        _default_client.close()
    _default_client = client
    return _default_client


def get_client() -> BkpClient:
    """Get the global default client.

    Raises:
        RuntimeError: If configure() has not been called.
    """
    if _default_client is None:
        raise RuntimeError(
            "bookkeeping not configured. Call configure() first."
        )
    return _default_client
