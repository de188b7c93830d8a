"""gRPC implementation of the bookkeeping services."""

import logging
from typing import Any, Dict, List, Optional, Sequence, Type, Union

import grpc

from bookkeeping.context import ContextFactory
from bookkeeping.errors import BookkeepingError
from bookkeeping.models import (
    DplProcessType,
    Flp,
    Log,
    QcFlag,
    Run,
    RunQuality,
    RunType,
)
from bookkeeping.proto import bookkeeping_pb2 as pb
from bookkeeping.proto import bookkeeping_pb2_grpc as pb_grpc
from bookkeeping.utils import Timestamp, from_milliseconds, to_milliseconds


logger = logging.getLogger(__name__)


RUN_TYPES: Dict[RunType, int] = {
    RunType.PHYSICS: pb.RUN_TYPE_PHYSICS,
    RunType.COSMICS: pb.RUN_TYPE_COSMICS,
    RunType.TECHNICAL: pb.RUN_TYPE_TECHNICAL,
}

RUN_QUALITIES: Dict[RunQuality, int] = {
    RunQuality.GOOD: pb.RUN_QUALITY_GOOD,
    RunQuality.BAD: pb.RUN_QUALITY_BAD,
    RunQuality.UNKNOWN: pb.RUN_QUALITY_UNKNOWN,
}

DPL_PROCESS_TYPES: Dict[DplProcessType, int] = {
    DplProcessType.QC_TASK: pb.DPL_PROCESS_TYPE_QC_TASK,
    DplProcessType.QC_CHECKER: pb.DPL_PROCESS_TYPE_QC_CHECKER,
    DplProcessType.QC_AGGREGATOR: pb.DPL_PROCESS_TYPE_QC_AGGREGATOR,
    DplProcessType.QC_POSTPROCESSING: pb.DPL_PROCESS_TYPE_QC_POSTPROCESSING,
    DplProcessType.DISPATCHER: pb.DPL_PROCESS_TYPE_DISPATCHER,
    DplProcessType.MERGER: pb.DPL_PROCESS_TYPE_MERGER,
}


def enum_to_proto(mapping: Dict[Any, int], value: Any) -> int:
    """Map a model enum (or its string value) to its wire value.

    Raises:
        ValueError: If the value is not a member of the enum.
    """
    enum_class = type(next(iter(mapping)))
    return mapping[enum_class(value)]


def enum_from_proto(mapping: Dict[Any, int], value: int) -> Optional[Any]:
    """Map a wire enum value back to the model enum. Unspecified gives None."""
    for member, wire_value in mapping.items():
        if wire_value == value:
            return member
    return None


def _optional(message: Any, field: str) -> Optional[Any]:
    return getattr(message, field) if message.HasField(field) else None


def _optional_time(message: Any, field: str):
    value = _optional(message, field)
    return from_milliseconds(value) if value is not None else None


def run_from_proto(message: Any) -> Run:
    """Convert a Run message to a Run record."""
    run_type = _optional(message, "runType")
    run_quality = _optional(message, "runQuality")
    return Run(
        run_number=message.runNumber,
        environment_id=_optional(message, "environmentId"),
        time_o2_start=_optional_time(message, "timeO2Start"),
        time_o2_end=_optional_time(message, "timeO2End"),
        time_trg_start=_optional_time(message, "timeTrgStart"),
        time_trg_end=_optional_time(message, "timeTrgEnd"),
        run_type=enum_from_proto(RUN_TYPES, run_type) if run_type is not None else None,
        run_quality=(
            enum_from_proto(RUN_QUALITIES, run_quality) if run_quality is not None else None
        ),
        n_detectors=_optional(message, "nDetectors"),
        n_flps=_optional(message, "nFlps"),
        n_epns=_optional(message, "nEpns"),
        n_subtimeframes=_optional(message, "nSubtimeframes"),
        bytes_read_out=_optional(message, "bytesReadOut"),
        raw_ctp_trigger_configuration=_optional(message, "rawCtpTriggerConfiguration"),
    )


def flp_from_proto(message: Any) -> Flp:
    """Convert an Flp message to an Flp record."""
    return Flp(
        id=message.id,
        name=message.name,
        hostname=message.hostname,
        run_number=_optional(message, "runNumber"),
        n_subtimeframes=_optional(message, "nSubtimeframes"),
        bytes_equipment_read_out=_optional(message, "bytesEquipmentReadOut"),
        bytes_recording_read_out=_optional(message, "bytesRecordingReadOut"),
        bytes_fair_mq_read_out=_optional(message, "bytesFairMQReadOut"),
    )


def log_from_proto(message: Any) -> Log:
    """Convert a Log message to a Log record."""
    return Log(
        id=message.id,
        title=message.title,
        text=message.text,
        run_numbers=list(message.runNumbers),
        parent_log_id=_optional(message, "parentLogId"),
        root_log_id=_optional(message, "rootLogId"),
        created_at=_optional_time(message, "createdAt"),
    )


class GrpcService:
    """Base of the gRPC service clients.

    Each client owns its stub over a channel shared with the other clients.
    """

    stub_class: Type[Any]

    def __init__(self, channel: grpc.Channel, context_factory: ContextFactory):
        """Initialize the service client.

        Args:
            channel: gRPC channel to the bookkeeping server.
            context_factory: Callable producing a fresh CallContext per call.
        """
        self._stub = self.stub_class(channel)
        self._context_factory = context_factory

    def _call(self, method: str, request: Any) -> Any:
        """Invoke a stub method, translating failures to BookkeepingError."""
        context = self._context_factory()
        service = self.stub_class.__name__[: -len("Stub")]
        logger.debug(
            "Calling %s/%s (request id %s)", service, method, context.get("x-request-id")
        )
        try:
            return getattr(self._stub, method)(
                request,
                metadata=context.metadata,
                timeout=context.timeout,
            )
        except grpc.RpcError as error:
            details = getattr(error, "details", None)
            message = details() if callable(details) else str(error)
            code = getattr(error, "code", None)
            logger.warning("%s/%s failed: %s", service, method, message)
            raise BookkeepingError(message, code=code() if callable(code) else None) from error
        except ValueError as error:
            # grpcio refuses calls on a closed channel with ValueError
            logger.warning("%s/%s failed: %s", service, method, error)
            raise BookkeepingError(str(error)) from error


class GrpcRunService(GrpcService):
    stub_class = pb_grpc.RunServiceStub

    def start(
        self,
        run_number: int,
        o2_start: Timestamp,
        trigger_start: Timestamp,
        activity_id: str,
        run_type: Union[RunType, str],
        n_detectors: int,
        n_flps: int,
        n_epns: int,
    ) -> Run:
        """Register a new run. Returns the created run."""
        request = pb.RunCreationRequest()
        request.runNumber = run_number
        request.timeO2Start = to_milliseconds(o2_start)
        request.timeTrgStart = to_milliseconds(trigger_start)
        request.environmentId = activity_id
        request.runType = enum_to_proto(RUN_TYPES, run_type)
        request.nDetectors = n_detectors
        request.nFlps = n_flps
        request.nEpns = n_epns
        return run_from_proto(self._call("Create", request))

    def end(
        self,
        run_number: int,
        o2_end: Timestamp,
        trigger_end: Timestamp,
        run_quality: Union[RunQuality, str],
    ) -> Run:
        """Set end times and quality of an existing run. Returns the updated run."""
        request = pb.RunUpdateRequest()
        request.runNumber = run_number
        request.runPatch.timeO2End = to_milliseconds(o2_end)
        request.runPatch.timeTrgEnd = to_milliseconds(trigger_end)
        request.runPatch.runQuality = enum_to_proto(RUN_QUALITIES, run_quality)
        return run_from_proto(self._call("Update", request))

    def set_raw_ctp_trigger_configuration(self, run_number: int, configuration: str) -> None:
        request = pb.RunUpdateRequest()
        request.runNumber = run_number
        request.runPatch.rawCtpTriggerConfiguration = configuration
        self._call("Update", request)

    def get(self, run_number: int) -> Run:
        return run_from_proto(self._call("Get", pb.RunFetchRequest(runNumber=run_number)))


class GrpcFlpService(GrpcService):
    stub_class = pb_grpc.FlpServiceStub

    def add(self, name: str, hostname: str, run_number: Optional[int] = None) -> Flp:
        request = pb.FlpCreationRequest()
        request.name = name
        request.hostname = hostname
        if run_number is not None:
            request.runNumber = run_number
        return flp_from_proto(self._call("Create", request))

    def update_readout_counters(
        self,
        name: str,
        run_number: int,
        n_subtimeframes: int,
        n_equipment_bytes: int,
        n_recording_bytes: int,
        n_fair_mq_bytes: int,
    ) -> None:
        request = pb.FlpUpdateRequest()
        request.flpName = name
        request.runNumber = run_number
        request.nSubtimeframes = n_subtimeframes
        request.nEquipmentBytes = n_equipment_bytes
        request.nRecordingBytes = n_recording_bytes
        request.nFairMQBytes = n_fair_mq_bytes
        self._call("UpdateCounters", request)


class GrpcLogService(GrpcService):
    stub_class = pb_grpc.LogServiceStub

    def create(
        self,
        text: str,
        title: str,
        run_numbers: Sequence[int] = (),
        parent_log_id: Optional[int] = -1,
    ) -> Log:
        request = pb.LogCreationRequest()
        request.title = title
        request.text = text
        request.runNumbers.extend(run_numbers or ())
        if parent_log_id is not None and parent_log_id != -1:
            request.parentLogId = parent_log_id
        return log_from_proto(self._call("Create", request))


def _mirror_flag(flag: QcFlag, grpc_flag: Any) -> None:
    """Copy a QcFlag record onto a QcFlag message, skipping unset fields."""
    grpc_flag.flagTypeId = flag.flag_type_id
    grpc_flag.origin = flag.origin
    # "from" is a Python keyword, hence setattr
    if flag.from_ is not None:
        setattr(grpc_flag, "from", flag.from_)
    if flag.to is not None:
        grpc_flag.to = flag.to
    if flag.comment is not None:
        grpc_flag.comment = flag.comment


class GrpcQcFlagService(GrpcService):
    stub_class = pb_grpc.QcFlagServiceStub

    def create_for_data_pass(
        self,
        run_number: int,
        pass_name: str,
        detector_name: str,
        flags: Sequence[QcFlag],
    ) -> List[int]:
        request = pb.DataPassQcFlagCreationRequest()
        request.runNumber = run_number
        request.passName = pass_name
        request.detectorName = detector_name
        return self._create("CreateForDataPass", request, flags)

    def create_for_simulation_pass(
        self,
        run_number: int,
        production_name: str,
        detector_name: str,
        flags: Sequence[QcFlag],
    ) -> List[int]:
        request = pb.SimulationPassQcFlagCreationRequest()
        request.runNumber = run_number
        request.productionName = production_name
        request.detectorName = detector_name
        return self._create("CreateForSimulationPass", request, flags)

    def create_synchronous(
        self,
        run_number: int,
        detector_name: str,
        flags: Sequence[QcFlag],
    ) -> List[int]:
        request = pb.SynchronousQcFlagCreationRequest()
        request.runNumber = run_number
        request.detectorName = detector_name
        return self._create("CreateSynchronous", request, flags)

    def _create(self, method: str, request: Any, flags: Sequence[QcFlag]) -> List[int]:
        for flag in flags:
            _mirror_flag(flag, request.flags.add())

        flag_ids = list(self._call(method, request).flagIds)
        if len(flag_ids) != len(flags):
            raise BookkeepingError(
                f"Expected {len(flags)} QC flag ids, server returned {len(flag_ids)}"
            )
        return flag_ids


class GrpcDplProcessExecutionService(GrpcService):
    stub_class = pb_grpc.DplProcessExecutionServiceStub

    def register_process_execution(
        self,
        run_number: int,
        process_type: Union[DplProcessType, str],
        hostname: str,
        process_name: str,
        args: Optional[str],
        detector_name: str,
    ) -> None:
        request = pb.DplProcessExecutionCreationRequest()
        request.runNumber = run_number
        request.type = enum_to_proto(DPL_PROCESS_TYPES, process_type)
        request.hostname = hostname
        request.processName = process_name
        if args is not None:
            request.args = args
        request.detectorName = detector_name
        self._call("Register", request)


class GrpcCtpTriggerCountersService(GrpcService):
    stub_class = pb_grpc.CtpTriggerCountersServiceStub

    def create_or_update_for_run(
        self,
        run_number: int,
        class_name: str,
        timestamp: Timestamp,
        lmb: int,
        lma: int,
        l0b: int,
        l0a: int,
        l1b: int,
        l1a: int,
    ) -> None:
        request = pb.CtpTriggerCounters()
        request.runNumber = run_number
        request.className = class_name
        request.timestamp = to_milliseconds(timestamp)
        request.lmb = lmb
        request.lma = lma
        request.l0b = l0b
        request.l0a = l0a
        request.l1b = l1b
        request.l1a = l1a
        self._call("CreateOrUpdateForRun", request)
