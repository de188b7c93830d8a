"""Shared fixtures: a recording gRPC channel and a recording HTTP adapter."""

import json
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

import grpc
import pytest
import requests
from requests.adapters import BaseAdapter

from bookkeeping.context import token_context_factory


TOKEN = "secret-token"


class FakeRpcError(grpc.RpcError):
    """RpcError as raised by a unary call that ended with a non-OK status."""

    def __init__(self, code: grpc.StatusCode, details: str):
        super().__init__(details)
        self._code = code
        self._details = details

    def code(self) -> grpc.StatusCode:
        return self._code

    def details(self) -> str:
        return self._details


class RecordedCall(NamedTuple):
    path: str
    request: Any
    metadata: Tuple[Tuple[str, str], ...]
    timeout: Optional[float]


class RecordingChannel:
    """Stands in for grpc.Channel, recording every unary call.

    Requests and responses go through the stub serializers, as on the wire.
    """

    def __init__(self):
        self.calls: List[RecordedCall] = []
        self._responses: Dict[str, Any] = {}

    def respond(self, service: str, method: str, response: Any) -> None:
        """Set the response (a message or an exception) of a method."""
        self._responses[f"/o2.bookkeeping.{service}/{method}"] = response

    def unary_unary(self, path, request_serializer=None, response_deserializer=None, **kwargs):
        def call(request, metadata=None, timeout=None):
            request_serializer(request)
            self.calls.append(RecordedCall(path, request, tuple(metadata or ()), timeout))

            response = self._responses.get(path)
            if isinstance(response, Exception):
                raise response
            payload = response.SerializeToString() if response is not None else b""
            return response_deserializer(payload)

        return call

    def close(self) -> None:
        pass


class RecordingAdapter(BaseAdapter):
    """requests transport adapter recording requests and replaying responses."""

    def __init__(self):
        super().__init__()
        self.requests: List[requests.PreparedRequest] = []
        self._responses: List[Any] = []

    def queue(self, status: int = 200, body: Any = None) -> None:
        self._responses.append((status, body))

    def fail(self, error: Exception) -> None:
        self._responses.append(error)

    def send(self, request, **kwargs):
        self.requests.append(request)
        outcome = self._responses.pop(0) if self._responses else (200, None)
        if isinstance(outcome, Exception):
            raise outcome

        status, body = outcome
        response = requests.Response()
        response.status_code = status
        response.reason = "OK" if status < 400 else "Error"
        response.url = request.url
        response.request = request
        if isinstance(body, str):
            response._content = body.encode()
        else:
            response._content = json.dumps(body).encode() if body is not None else b""
            response.headers["Content-Type"] = "application/json"
        return response

    def close(self):
        pass


@pytest.fixture
def channel():
    """A recording stand-in for a gRPC channel."""
    return RecordingChannel()


@pytest.fixture
def adapter():
    """A recording HTTP adapter."""
    return RecordingAdapter()


@pytest.fixture
def session(adapter):
    """A requests session routed through the recording adapter."""
    http = requests.Session()
    http.mount("http://", adapter)
    return http


@pytest.fixture
def context_factory():
    """The default context factory with a test token."""
    return token_context_factory(TOKEN, timeout=5.0)
