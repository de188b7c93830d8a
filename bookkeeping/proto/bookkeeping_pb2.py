"""Protobuf messages of the bookkeeping gRPC API.

The descriptor is built programmatically from a FileDescriptorProto rather
than from ``protoc`` output, which keeps the module independent of the
protobuf runtime version. Field names follow the server definitions
(camelCase), field numbers follow declaration order.
"""

from google.protobuf import descriptor_pb2 as _descriptor_pb2
from google.protobuf import descriptor_pool as _descriptor_pool
from google.protobuf import symbol_database as _symbol_database
from google.protobuf.internal import builder as _builder


_PACKAGE = "o2.bookkeeping"
_FDP = _descriptor_pb2.FieldDescriptorProto

_SCALARS = {
    "int32": _FDP.TYPE_INT32,
    "int64": _FDP.TYPE_INT64,
    "uint32": _FDP.TYPE_UINT32,
    "uint64": _FDP.TYPE_UINT64,
    "string": _FDP.TYPE_STRING,
}

# Value 0 is the proto3 default and means "not set".
_ENUMS = {
    "RunType": [
        "RUN_TYPE_UNSPECIFIED",
        "RUN_TYPE_PHYSICS",
        "RUN_TYPE_COSMICS",
        "RUN_TYPE_TECHNICAL",
    ],
    "RunQuality": [
        "RUN_QUALITY_UNSPECIFIED",
        "RUN_QUALITY_GOOD",
        "RUN_QUALITY_BAD",
        "RUN_QUALITY_UNKNOWN",
    ],
    "DplProcessType": [
        "DPL_PROCESS_TYPE_UNSPECIFIED",
        "DPL_PROCESS_TYPE_QC_TASK",
        "DPL_PROCESS_TYPE_QC_CHECKER",
        "DPL_PROCESS_TYPE_QC_AGGREGATOR",
        "DPL_PROCESS_TYPE_QC_POSTPROCESSING",
        "DPL_PROCESS_TYPE_DISPATCHER",
        "DPL_PROCESS_TYPE_MERGER",
    ],
}

# (field name, type, label) where label is None, "optional" or "repeated"
_MESSAGES = {
    "Empty": [],
    # Runs
    "Run": [
        ("runNumber", "int32", None),
        ("environmentId", "string", "optional"),
        ("timeO2Start", "int64", "optional"),
        ("timeO2End", "int64", "optional"),
        ("timeTrgStart", "int64", "optional"),
        ("timeTrgEnd", "int64", "optional"),
        ("runType", "RunType", "optional"),
        ("runQuality", "RunQuality", "optional"),
        ("nDetectors", "int32", "optional"),
        ("nFlps", "int32", "optional"),
        ("nEpns", "int32", "optional"),
        ("nSubtimeframes", "int64", "optional"),
        ("bytesReadOut", "int64", "optional"),
        ("rawCtpTriggerConfiguration", "string", "optional"),
    ],
    "RunFetchRequest": [
        ("runNumber", "int32", None),
    ],
    "RunCreationRequest": [
        ("runNumber", "int32", None),
        ("timeO2Start", "int64", None),
        ("timeTrgStart", "int64", None),
        ("environmentId", "string", None),
        ("runType", "RunType", None),
        ("nDetectors", "int32", None),
        ("nFlps", "int32", None),
        ("nEpns", "int32", None),
    ],
    "RunPatch": [
        ("timeO2End", "int64", "optional"),
        ("timeTrgEnd", "int64", "optional"),
        ("runQuality", "RunQuality", "optional"),
        ("rawCtpTriggerConfiguration", "string", "optional"),
    ],
    "RunUpdateRequest": [
        ("runNumber", "int32", None),
        ("runPatch", "RunPatch", None),
    ],
    # FLPs
    "Flp": [
        ("id", "int32", None),
        ("name", "string", None),
        ("hostname", "string", None),
        ("runNumber", "int32", "optional"),
        ("nSubtimeframes", "uint64", "optional"),
        ("bytesEquipmentReadOut", "uint64", "optional"),
        ("bytesRecordingReadOut", "uint64", "optional"),
        ("bytesFairMQReadOut", "uint64", "optional"),
    ],
    "FlpCreationRequest": [
        ("name", "string", None),
        ("hostname", "string", None),
        ("runNumber", "int32", "optional"),
    ],
    "FlpUpdateRequest": [
        ("flpName", "string", None),
        ("runNumber", "int32", None),
        ("nSubtimeframes", "uint64", None),
        ("nEquipmentBytes", "uint64", None),
        ("nRecordingBytes", "uint64", None),
        ("nFairMQBytes", "uint64", None),
    ],
    # Logs
    "Log": [
        ("id", "int32", None),
        ("title", "string", None),
        ("text", "string", None),
        ("runNumbers", "int32", "repeated"),
        ("parentLogId", "int32", "optional"),
        ("rootLogId", "int32", "optional"),
        ("createdAt", "int64", "optional"),
    ],
    "LogCreationRequest": [
        ("title", "string", None),
        ("text", "string", None),
        ("runNumbers", "int32", "repeated"),
        ("parentLogId", "int32", "optional"),
    ],
    # DPL process executions
    "DplProcessExecutionCreationRequest": [
        ("runNumber", "int32", None),
        ("detectorName", "string", None),
        ("processName", "string", None),
        ("type", "DplProcessType", None),
        ("hostname", "string", None),
        ("args", "string", "optional"),
    ],
    # QC flags
    "QcFlag": [
        ("flagTypeId", "uint32", None),
        ("from", "uint64", "optional"),
        ("to", "uint64", "optional"),
        ("origin", "string", None),
        ("comment", "string", "optional"),
    ],
    "DataPassQcFlagCreationRequest": [
        ("runNumber", "uint32", None),
        ("passName", "string", None),
        ("detectorName", "string", None),
        ("flags", "QcFlag", "repeated"),
    ],
    "SimulationPassQcFlagCreationRequest": [
        ("runNumber", "uint32", None),
        ("productionName", "string", None),
        ("detectorName", "string", None),
        ("flags", "QcFlag", "repeated"),
    ],
    "SynchronousQcFlagCreationRequest": [
        ("runNumber", "uint32", None),
        ("detectorName", "string", None),
        ("flags", "QcFlag", "repeated"),
    ],
    "QcFlagCreationResponse": [
        ("flagIds", "uint32", "repeated"),
    ],
    # CTP trigger counters
    "CtpTriggerCounters": [
        ("runNumber", "int32", None),
        ("className", "string", None),
        ("timestamp", "uint64", None),
        ("lmb", "uint64", None),
        ("lma", "uint64", None),
        ("l0b", "uint64", None),
        ("l0a", "uint64", None),
        ("l1b", "uint64", None),
        ("l1a", "uint64", None),
    ],
}

# service name -> [(method, request, response)]
SERVICES = {
    "RunService": [
        ("Get", "RunFetchRequest", "Run"),
        ("Create", "RunCreationRequest", "Run"),
        ("Update", "RunUpdateRequest", "Run"),
    ],
    "FlpService": [
        ("Create", "FlpCreationRequest", "Flp"),
        ("UpdateCounters", "FlpUpdateRequest", "Empty"),
    ],
    "LogService": [
        ("Create", "LogCreationRequest", "Log"),
    ],
    "DplProcessExecutionService": [
        ("Register", "DplProcessExecutionCreationRequest", "Empty"),
    ],
    "QcFlagService": [
        ("CreateForDataPass", "DataPassQcFlagCreationRequest", "QcFlagCreationResponse"),
        ("CreateForSimulationPass", "SimulationPassQcFlagCreationRequest", "QcFlagCreationResponse"),
        ("CreateSynchronous", "SynchronousQcFlagCreationRequest", "QcFlagCreationResponse"),
    ],
    "CtpTriggerCountersService": [
        ("CreateOrUpdateForRun", "CtpTriggerCounters", "Empty"),
    ],
}


def _qualified(name: str) -> str:
    return f".{_PACKAGE}.{name}"


def _add_field(message, number: int, name: str, type_name: str, label) -> None:
    field = message.field.add()
    field.name = name
    field.number = number
    if type_name in _SCALARS:
        field.type = _SCALARS[type_name]
    else:
        field.type = _FDP.TYPE_ENUM if type_name in _ENUMS else _FDP.TYPE_MESSAGE
        field.type_name = _qualified(type_name)

    field.label = _FDP.LABEL_REPEATED if label == "repeated" else _FDP.LABEL_OPTIONAL
    if label == "optional":
        # proto3 explicit presence is expressed through a synthetic oneof
        field.proto3_optional = True
        field.oneof_index = len(message.oneof_decl)
        message.oneof_decl.add().name = f"_{name}"


def _build_file_descriptor_proto() -> bytes:
    """Construct the serialized FileDescriptorProto at import time."""
    fdp = _descriptor_pb2.FileDescriptorProto()
    fdp.name = "o2/bookkeeping/bookkeeping.proto"
    fdp.package = _PACKAGE
    fdp.syntax = "proto3"

    for enum_name, values in _ENUMS.items():
        enum = fdp.enum_type.add()
        enum.name = enum_name
        for number, value_name in enumerate(values):
            value = enum.value.add()
            value.name = value_name
            value.number = number

    for message_name, fields in _MESSAGES.items():
        message = fdp.message_type.add()
        message.name = message_name
        for number, (name, type_name, label) in enumerate(fields, start=1):
            _add_field(message, number, name, type_name, label)

    for service_name, methods in SERVICES.items():
        service = fdp.service.add()
        service.name = service_name
        for method_name, request, response in methods:
            method = service.method.add()
            method.name = method_name
            method.input_type = _qualified(request)
            method.output_type = _qualified(response)

    return fdp.SerializeToString()


_sym_db = _symbol_database.Default()

DESCRIPTOR = _descriptor_pool.Default().AddSerializedFile(
    _build_file_descriptor_proto()
)

_globals = globals()
_builder.BuildMessageAndEnumDescriptors(DESCRIPTOR, _globals)
_builder.BuildTopDescriptorsAndMessages(DESCRIPTOR, __name__, _globals)

# Enums
RunType = _globals["RunType"]
RunQuality = _globals["RunQuality"]
DplProcessType = _globals["DplProcessType"]

# Messages
Empty = _globals["Empty"]
Run = _globals["Run"]
RunFetchRequest = _globals["RunFetchRequest"]
RunCreationRequest = _globals["RunCreationRequest"]
RunPatch = _globals["RunPatch"]
RunUpdateRequest = _globals["RunUpdateRequest"]
Flp = _globals["Flp"]
FlpCreationRequest = _globals["FlpCreationRequest"]
FlpUpdateRequest = _globals["FlpUpdateRequest"]
Log = _globals["Log"]
LogCreationRequest = _globals["LogCreationRequest"]
DplProcessExecutionCreationRequest = _globals["DplProcessExecutionCreationRequest"]
QcFlag = _globals["QcFlag"]
DataPassQcFlagCreationRequest = _globals["DataPassQcFlagCreationRequest"]
SimulationPassQcFlagCreationRequest = _globals["SimulationPassQcFlagCreationRequest"]
SynchronousQcFlagCreationRequest = _globals["SynchronousQcFlagCreationRequest"]
QcFlagCreationResponse = _globals["QcFlagCreationResponse"]
CtpTriggerCounters = _globals["CtpTriggerCounters"]
