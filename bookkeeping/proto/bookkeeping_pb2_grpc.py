"""gRPC client stubs and servicer bases for the bookkeeping services.

Provides, for each service declared in ``bookkeeping_pb2.SERVICES``:
  - <Service>Stub: client stub, one callable attribute per RPC method
  - <Service>Servicer: base class for a server implementation
  - add_<Service>Servicer_to_server: registration function
"""

import grpc

from bookkeeping.proto import bookkeeping_pb2


def _full_name(service: str) -> str:
    return f"o2.bookkeeping.{service}"


class _Stub:
    """Client stub binding every method of one service to a channel."""

    _service = ""

    def __init__(self, channel: grpc.Channel) -> None:
        """Initialize the stub with a gRPC channel.

        Args:
            channel: An open gRPC channel to the bookkeeping server.
        """
        for method, request, response in bookkeeping_pb2.SERVICES[self._service]:
            setattr(
                self,
                method,
                channel.unary_unary(
                    f"/{_full_name(self._service)}/{method}",
                    request_serializer=getattr(bookkeeping_pb2, request).SerializeToString,
                    response_deserializer=getattr(bookkeeping_pb2, response).FromString,
                ),
            )


class _Servicer:
    """Base class for a service implementation.

    Servers inherit this and override the methods of the service; the
    defaults answer UNIMPLEMENTED.
    """

    _service = ""

    def __getattr__(self, name):
        methods = {method for method, _, _ in bookkeeping_pb2.SERVICES.get(self._service, [])}
        if name not in methods:
            raise AttributeError(name)

        def unimplemented(request, context):
            context.set_code(grpc.StatusCode.UNIMPLEMENTED)
            context.set_details("Method not implemented!")
            raise NotImplementedError("Method not implemented!")

        return unimplemented


def _add_servicer_to_server(service: str, servicer: _Servicer, server: grpc.Server) -> None:
    rpc_method_handlers = {
        method: grpc.unary_unary_rpc_method_handler(
            getattr(servicer, method),
            request_deserializer=getattr(bookkeeping_pb2, request).FromString,
            response_serializer=getattr(bookkeeping_pb2, response).SerializeToString,
        )
        for method, request, response in bookkeeping_pb2.SERVICES[service]
    }
    generic_handler = grpc.method_handlers_generic_handler(
        _full_name(service), rpc_method_handlers
    )
    server.add_generic_rpc_handlers((generic_handler,))


class RunServiceStub(_Stub):
    _service = "RunService"


class RunServiceServicer(_Servicer):
    _service = "RunService"


def add_RunServiceServicer_to_server(servicer, server) -> None:
    _add_servicer_to_server("RunService", servicer, server)


class FlpServiceStub(_Stub):
    _service = "FlpService"


class FlpServiceServicer(_Servicer):
    _service = "FlpService"


def add_FlpServiceServicer_to_server(servicer, server) -> None:
    _add_servicer_to_server("FlpService", servicer, server)


class LogServiceStub(_Stub):
    _service = "LogService"


class LogServiceServicer(_Servicer):
    _service = "LogService"


def add_LogServiceServicer_to_server(servicer, server) -> None:
    _add_servicer_to_server("LogService", servicer, server)


class DplProcessExecutionServiceStub(_Stub):
    _service = "DplProcessExecutionService"


class DplProcessExecutionServiceServicer(_Servicer):
    _service = "DplProcessExecutionService"


def add_DplProcessExecutionServiceServicer_to_server(servicer, server) -> None:
    _add_servicer_to_server("DplProcessExecutionService", servicer, server)


class QcFlagServiceStub(_Stub):
    _service = "QcFlagService"


class QcFlagServiceServicer(_Servicer):
    _service = "QcFlagService"


def add_QcFlagServiceServicer_to_server(servicer, server) -> None:
    _add_servicer_to_server("QcFlagService", servicer, server)


class CtpTriggerCountersServiceStub(_Stub):
    _service = "CtpTriggerCountersService"


class CtpTriggerCountersServiceServicer(_Servicer):
    _service = "CtpTriggerCountersService"


def add_CtpTriggerCountersServiceServicer_to_server(servicer, server) -> None:
    _add_servicer_to_server("CtpTriggerCountersService", servicer, server)
