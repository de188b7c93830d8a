"""bookkeeping - client bindings for the O2 Bookkeeping service.

Report run lifecycle events, FLP readout counters, logs, QC flags, DPL
process executions and CTP trigger counters to a Bookkeeping server over
gRPC or REST.

Example usage:

    import bookkeeping
    from bookkeeping import QcFlag, RunQuality, RunType

    # gRPC for host:port URIs, REST for http(s):// URIs
    with bookkeeping.create("localhost:4001", token="...") as client:
        client.run.start(9003, now, now, "cpp-api", RunType.TECHNICAL, 123, 200, 100)
        client.flp.add("flp-2", "localhost", run_number=9003)
        client.flp.update_readout_counters("flp-2", 9003, 123, 123408, 5834, 9192)
        client.run.end(9003, now, now, RunQuality.UNKNOWN)

        ids = client.qc_flag.create_for_data_pass(
            55, "skimming", "FT0",
            [QcFlag(flag_type_id=2, from_=1565280000000, to=1565287200000, origin="FT0/Check")],
        )

    # Or configure a global client from o2.bkp.grpc-uri / o2.bkp.token
    bookkeeping.configure(source={"o2.bkp.grpc-uri": "localhost:4001"})
    bookkeeping.get_client().log.create("hello", "title", [9003])
"""

import logging

from bookkeeping.client import BkpClient
from bookkeeping.config import configure, from_config, get_client, resolve_setting
from bookkeeping.context import CallContext, ContextFactory, token_context_factory
from bookkeeping.errors import BookkeepingError
from bookkeeping.factory import create
from bookkeeping.models import (
    DplProcessType,
    Flp,
    Log,
    LogOrigin,
    LogSubtype,
    QcFlag,
    Run,
    RunQuality,
    RunType,
    User,
)

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    # Construction
    "create",
    "from_config",
    "configure",
    "get_client",
    "resolve_setting",
    "BkpClient",
    # Call context
    "CallContext",
    "ContextFactory",
    "token_context_factory",
    # Errors
    "BookkeepingError",
    # Models
    "DplProcessType",
    "Flp",
    "Log",
    "LogOrigin",
    "LogSubtype",
    "QcFlag",
    "Run",
    "RunQuality",
    "RunType",
    "User",
]
