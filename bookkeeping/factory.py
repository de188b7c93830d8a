"""Construction of bookkeeping clients from an endpoint URI."""

import logging
from typing import Optional
from urllib.parse import urlsplit

import grpc
import requests

from bookkeeping.backends.grpc import (
    GrpcCtpTriggerCountersService,
    GrpcDplProcessExecutionService,
    GrpcFlpService,
    GrpcLogService,
    GrpcQcFlagService,
    GrpcRunService,
)
from bookkeeping.backends.rest import (
    USER_AGENT,
    RestFlpService,
    RestLogService,
    RestRunService,
)
from bookkeeping.client import BkpClient
from bookkeeping.context import ContextFactory, token_context_factory


logger = logging.getLogger(__name__)

GRPC_SCHEMES = ("grpc", "grpcs")
REST_SCHEMES = ("http", "https")


def create(
    uri: str,
    token: Optional[str] = None,
    context_factory: Optional[ContextFactory] = None,
    timeout: Optional[float] = None,
) -> BkpClient:
    """Create a bookkeeping client.

    The URI selects the transport:
        - host:port or grpc://host:port: gRPC, plaintext
        - grpcs://host:port: gRPC over TLS
        - http(s)://host:port/api: REST

    Args:
        uri: Server endpoint.
        token: Optional bearer token sent with every call.
        context_factory: Callable producing the CallContext of each call,
            replacing the default token-based one.
        timeout: Per-call timeout in seconds for the default context factory.

    Returns:
        The aggregate client.

    Raises:
        ValueError: If the URI is invalid or both token and context_factory
            are given.
    """
    if token is not None and context_factory is not None:
        raise ValueError("Provide either token or context_factory, not both")
    if context_factory is None:
        context_factory = token_context_factory(token, timeout=timeout)

    if not uri:
        raise ValueError("Bookkeeping URI must not be empty")

    if "://" not in uri:
        return _create_grpc(uri, context_factory, secure=False)

    parts = urlsplit(uri)
    if parts.scheme in REST_SCHEMES:
        return _create_rest(uri, context_factory)
    if parts.scheme in GRPC_SCHEMES:
        if parts.path not in ("", "/") or parts.query or parts.fragment:
            raise ValueError(f"Bookkeeping gRPC URI must not have a path: {uri}")
        return _create_grpc(parts.netloc, context_factory, secure=parts.scheme == "grpcs")
    raise ValueError(f"Unsupported bookkeeping URI scheme: {parts.scheme}")


def _create_grpc(target: str, context_factory: ContextFactory, secure: bool) -> BkpClient:
    if not target or "/" in target:
        raise ValueError(f"Bookkeeping gRPC target must be host:port, got {target!r}")

    if secure:
        channel = grpc.secure_channel(target, grpc.ssl_channel_credentials())
    else:
        channel = grpc.insecure_channel(target)
    logger.info("Created gRPC bookkeeping client for %s (tls=%s)", target, secure)

    return BkpClient(
        transport="grpc",
        run=GrpcRunService(channel, context_factory),
        flp=GrpcFlpService(channel, context_factory),
        log=GrpcLogService(channel, context_factory),
        qc_flag=GrpcQcFlagService(channel, context_factory),
        dpl_process_execution=GrpcDplProcessExecutionService(channel, context_factory),
        ctp_trigger_counters=GrpcCtpTriggerCountersService(channel, context_factory),
        close=channel.close,
    )


def _create_rest(base_url: str, context_factory: ContextFactory) -> BkpClient:
    session = requests.Session()
    session.headers["User-Agent"] = USER_AGENT
    logger.info("Created REST bookkeeping client for %s", base_url)

    return BkpClient(
        transport="rest",
        run=RestRunService(session, base_url, context_factory),
        flp=RestFlpService(session, base_url, context_factory),
        log=RestLogService(session, base_url, context_factory),
        close=session.close,
    )
