"""Aggregate client bundling the per-service clients."""

import logging
from typing import Any, Callable, Optional

from bookkeeping.backends import (
    CtpTriggerCountersService,
    DplProcessExecutionService,
    FlpService,
    LogService,
    QcFlagService,
    RunService,
)


logger = logging.getLogger(__name__)


class BkpClient:
    """Read-only bundle of bookkeeping service clients.

    Build it with bookkeeping.create() rather than directly. The client owns
    the transport (gRPC channel or HTTP session) shared by its services and
    releases it on close().
    """

    def __init__(
        self,
        transport: str,
        run: RunService,
        flp: FlpService,
        log: LogService,
        qc_flag: Optional[QcFlagService] = None,
        dpl_process_execution: Optional[DplProcessExecutionService] = None,
        ctp_trigger_counters: Optional[CtpTriggerCountersService] = None,
        close: Optional[Callable[[], Any]] = None,
    ):
        """Initialize the aggregate client.

        Args:
            transport: Transport name ("grpc" or "rest"), for messages.
            run, flp, log, qc_flag, dpl_process_execution, ctp_trigger_counters:
                Service clients. Services the transport does not expose are None.
            close: Callable releasing the shared transport.
        """
        self._transport = transport
        self._run = run
        self._flp = flp
        self._log = log
        self._qc_flag = qc_flag
        self._dpl_process_execution = dpl_process_execution
        self._ctp_trigger_counters = ctp_trigger_counters
        self._close = close

    @property
    def transport(self) -> str:
        """Get the transport name."""
        return self._transport

    @property
    def run(self) -> RunService:
        return self._run

    @property
    def flp(self) -> FlpService:
        return self._flp

    @property
    def log(self) -> LogService:
        return self._log

    @property
    def qc_flag(self) -> QcFlagService:
        return self._require(self._qc_flag, "qc_flag")

    @property
    def dpl_process_execution(self) -> DplProcessExecutionService:
        return self._require(self._dpl_process_execution, "dpl_process_execution")

    @property
    def ctp_trigger_counters(self) -> CtpTriggerCountersService:
        return self._require(self._ctp_trigger_counters, "ctp_trigger_counters")

    def _require(self, service: Optional[Any], name: str) -> Any:
        if service is None:
            raise NotImplementedError(
                f"The {name} service is not available over the {self._transport} transport"
            )
        return service

    def close(self) -> None:
        """Release the transport.

        Calls made through a closed gRPC client raise BookkeepingError.
        """
        if self._close is not None:
            logger.info("Closing %s bookkeeping client", self._transport)
            self._close()
            self._close = None

    def __enter__(self) -> "BkpClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
