"""Field mapping and failure propagation of the gRPC service clients."""

from datetime import datetime, timezone

import grpc
import pytest

from bookkeeping import BookkeepingError, DplProcessType, QcFlag, RunQuality, RunType
from bookkeeping.backends import (
    CtpTriggerCountersService,
    DplProcessExecutionService,
    FlpService,
    LogService,
    QcFlagService,
    RunService,
)
from bookkeeping.backends.grpc import (
    DPL_PROCESS_TYPES,
    RUN_QUALITIES,
    RUN_TYPES,
    GrpcCtpTriggerCountersService,
    GrpcDplProcessExecutionService,
    GrpcFlpService,
    GrpcLogService,
    GrpcQcFlagService,
    GrpcRunService,
    enum_from_proto,
    enum_to_proto,
)
from bookkeeping.proto import bookkeeping_pb2 as pb

from conftest import TOKEN, FakeRpcError


T0 = datetime(2019, 8, 8, 16, 0, tzinfo=timezone.utc)
T0_MS = 1565280000000


class TestEnums:
    """Mapping of model enums to wire values."""

    @pytest.mark.parametrize(
        "mapping, members",
        [(RUN_TYPES, RunType), (RUN_QUALITIES, RunQuality), (DPL_PROCESS_TYPES, DplProcessType)],
    )
    def test_every_member_round_trips(self, mapping, members):
        """Each logical value maps to a distinct wire value and back."""
        wire_values = set()
        for member in members:
            wire_value = enum_to_proto(mapping, member)
            assert wire_value != 0
            assert enum_from_proto(mapping, wire_value) is member
            wire_values.add(wire_value)
        assert len(wire_values) == len(members)

    def test_string_values_accepted(self):
        assert enum_to_proto(RUN_TYPES, "TECHNICAL") == pb.RUN_TYPE_TECHNICAL

    def test_unspecified_maps_to_none(self):
        assert enum_from_proto(RUN_TYPES, pb.RUN_TYPE_UNSPECIFIED) is None

    def test_invalid_value_fails_before_call(self, channel, context_factory):
        """An invalid enum is a local ValueError and nothing is sent."""
        runs = GrpcRunService(channel, context_factory)
        with pytest.raises(ValueError):
            runs.start(1, T0, T0, "env", "NOT-A-TYPE", 1, 1, 1)
        with pytest.raises(ValueError):
            runs.end(1, T0, T0, "SOMEWHAT-GOOD")
        assert channel.calls == []


class TestProtocols:
    def test_clients_satisfy_protocols(self, channel, context_factory):
        assert isinstance(GrpcRunService(channel, context_factory), RunService)
        assert isinstance(GrpcFlpService(channel, context_factory), FlpService)
        assert isinstance(GrpcLogService(channel, context_factory), LogService)
        assert isinstance(GrpcQcFlagService(channel, context_factory), QcFlagService)
        assert isinstance(
            GrpcDplProcessExecutionService(channel, context_factory),
            DplProcessExecutionService,
        )
        assert isinstance(
            GrpcCtpTriggerCountersService(channel, context_factory),
            CtpTriggerCountersService,
        )


class TestRunService:
    """Run lifecycle requests."""

    def test_start(self, channel, context_factory):
        channel.respond("RunService", "Create", pb.Run(runNumber=9003, runType=pb.RUN_TYPE_TECHNICAL))
        run = GrpcRunService(channel, context_factory).start(
            9003, T0, T0, "cpp-api", RunType.TECHNICAL, 123, 200, 100
        )

        call = channel.calls[0]
        assert call.path == "/o2.bookkeeping.RunService/Create"
        assert call.request.runNumber == 9003
        assert call.request.runType == pb.RUN_TYPE_TECHNICAL
        assert call.request.timeO2Start == T0_MS
        assert call.request.timeTrgStart == T0_MS
        assert call.request.environmentId == "cpp-api"
        assert (call.request.nDetectors, call.request.nFlps, call.request.nEpns) == (123, 200, 100)

        assert run.run_number == 9003
        assert run.run_type is RunType.TECHNICAL
        assert run.run_quality is None

    def test_end_only_carries_end_fields(self, channel, context_factory):
        """The end request patches end times and quality, nothing from the start."""
        runs = GrpcRunService(channel, context_factory)
        runs.start(9003, T0, T0, "cpp-api", RunType.TECHNICAL, 123, 200, 100)
        runs.end(9003, T0_MS + 1000, T0_MS + 2000, RunQuality.UNKNOWN)

        start, end = (call.request for call in channel.calls)
        assert start.DESCRIPTOR.name == "RunCreationRequest"
        assert end.DESCRIPTOR.name == "RunUpdateRequest"
        assert end.runNumber == 9003

        patch = end.runPatch
        assert patch.timeO2End == T0_MS + 1000
        assert patch.timeTrgEnd == T0_MS + 2000
        assert patch.runQuality == pb.RUN_QUALITY_UNKNOWN
        assert not patch.HasField("rawCtpTriggerConfiguration")
        assert {field.name for field, _ in end.ListFields()} == {"runNumber", "runPatch"}

    def test_set_raw_ctp_trigger_configuration(self, channel, context_factory):
        result = GrpcRunService(channel, context_factory).set_raw_ctp_trigger_configuration(
            1, "A\nnew raw\nCTP trigger configuration"
        )

        assert result is None
        patch = channel.calls[0].request.runPatch
        assert patch.rawCtpTriggerConfiguration == "A\nnew raw\nCTP trigger configuration"
        assert not patch.HasField("timeO2End")
        assert not patch.HasField("runQuality")

    def test_get_decodes_run(self, channel, context_factory):
        channel.respond(
            "RunService",
            "Get",
            pb.Run(
                runNumber=55,
                environmentId="env-1",
                timeO2Start=T0_MS,
                runQuality=pb.RUN_QUALITY_GOOD,
                nFlps=3,
            ),
        )
        run = GrpcRunService(channel, context_factory).get(55)

        assert channel.calls[0].request.runNumber == 55
        assert run.environment_id == "env-1"
        assert run.time_o2_start == T0
        assert run.time_o2_end is None
        assert run.run_quality is RunQuality.GOOD
        assert run.n_flps == 3
        assert run.n_epns is None


class TestFlpService:
    def test_add_without_run(self, channel, context_factory):
        channel.respond("FlpService", "Create", pb.Flp(id=1, name="flp-1", hostname="localhost"))
        flp = GrpcFlpService(channel, context_factory).add("flp-1", "localhost")

        request = channel.calls[0].request
        assert request.name == "flp-1"
        assert request.hostname == "localhost"
        assert not request.HasField("runNumber")
        assert flp.id == 1
        assert flp.run_number is None

    def test_add_with_run(self, channel, context_factory):
        GrpcFlpService(channel, context_factory).add("flp-2", "localhost", run_number=9003)
        assert channel.calls[0].request.runNumber == 9003

    def test_update_counters_overwrites(self, channel, context_factory):
        """Two updates send two independent absolute snapshots."""
        flps = GrpcFlpService(channel, context_factory)
        flps.update_readout_counters("flp-2", 9003, 123, 123408, 5834, 9192)
        flps.update_readout_counters("flp-2", 9003, 10, 20, 30, 40)

        first, second = (call.request for call in channel.calls)
        assert (first.nSubtimeframes, first.nEquipmentBytes) == (123, 123408)
        assert (first.nRecordingBytes, first.nFairMQBytes) == (5834, 9192)
        assert second.flpName == "flp-2"
        assert second.runNumber == 9003
        assert (second.nSubtimeframes, second.nEquipmentBytes) == (10, 20)
        assert (second.nRecordingBytes, second.nFairMQBytes) == (30, 40)

    def test_update_counters_accepts_full_uint64(self, channel, context_factory):
        maximum = 0xFFFFFFFFFFFFFFFF
        GrpcFlpService(channel, context_factory).update_readout_counters(
            "FLP-TPC-1", 1, maximum, maximum, maximum, maximum
        )
        assert channel.calls[0].request.nFairMQBytes == maximum


class TestLogService:
    def test_create_without_parent(self, channel, context_factory):
        """parent_log_id of -1 leaves the parent field unset."""
        channel.respond("LogService", "Create", pb.Log(id=7, title="title", text="hello", runNumbers=[9003]))
        log = GrpcLogService(channel, context_factory).create("hello", "title", [9003], -1)

        request = channel.calls[0].request
        assert request.text == "hello"
        assert request.title == "title"
        assert list(request.runNumbers) == [9003]
        assert not request.HasField("parentLogId")
        assert log.id == 7
        assert log.run_numbers == [9003]
        assert log.parent_log_id is None

    def test_create_reply(self, channel, context_factory):
        GrpcLogService(channel, context_factory).create("reply", "re: title", parent_log_id=7)

        request = channel.calls[0].request
        assert request.parentLogId == 7
        assert list(request.runNumbers) == []


class TestQcFlagService:
    """Batch creation of QC flags."""

    FLAGS = [
        QcFlag(flag_type_id=2, from_=1565280000000, to=1565287200000, origin="FT0/Check"),
        QcFlag(flag_type_id=11, origin="FT0/task", comment="no beam"),
        QcFlag(flag_type_id=5, origin="FT0/task"),
    ]

    def test_create_for_data_pass_returns_ids_in_order(self, channel, context_factory):
        channel.respond("QcFlagService", "CreateForDataPass", pb.QcFlagCreationResponse(flagIds=[31, 32, 33]))
        ids = GrpcQcFlagService(channel, context_factory).create_for_data_pass(
            55, "skimming", "FT0", self.FLAGS
        )

        assert ids == [31, 32, 33]
        request = channel.calls[0].request
        assert (request.runNumber, request.passName, request.detectorName) == (55, "skimming", "FT0")
        assert [flag.flagTypeId for flag in request.flags] == [2, 11, 5]

    def test_optional_flag_fields_omitted(self, channel, context_factory):
        channel.respond("QcFlagService", "CreateForDataPass", pb.QcFlagCreationResponse(flagIds=[1, 2, 3]))
        GrpcQcFlagService(channel, context_factory).create_for_data_pass(55, "skimming", "FT0", self.FLAGS)

        timed, commented, bare = channel.calls[0].request.flags
        assert getattr(timed, "from") == 1565280000000
        assert timed.to == 1565287200000
        assert timed.origin == "FT0/Check"
        assert not timed.HasField("comment")
        assert commented.comment == "no beam"
        assert not commented.HasField("from")
        assert not bare.HasField("to")

    def test_create_for_simulation_pass(self, channel, context_factory):
        channel.respond("QcFlagService", "CreateForSimulationPass", pb.QcFlagCreationResponse(flagIds=[4]))
        ids = GrpcQcFlagService(channel, context_factory).create_for_simulation_pass(
            56, "LHC23k6b", "FT0", self.FLAGS[:1]
        )

        assert ids == [4]
        request = channel.calls[0].request
        assert request.productionName == "LHC23k6b"
        assert request.runNumber == 56

    def test_create_synchronous(self, channel, context_factory):
        channel.respond("QcFlagService", "CreateSynchronous", pb.QcFlagCreationResponse(flagIds=[8, 9]))
        ids = GrpcQcFlagService(channel, context_factory).create_synchronous(56, "FT0", self.FLAGS[:2])

        assert ids == [8, 9]
        assert channel.calls[0].path == "/o2.bookkeeping.QcFlagService/CreateSynchronous"

    def test_id_count_mismatch_fails(self, channel, context_factory):
        channel.respond("QcFlagService", "CreateForDataPass", pb.QcFlagCreationResponse(flagIds=[1]))
        with pytest.raises(BookkeepingError):
            GrpcQcFlagService(channel, context_factory).create_for_data_pass(55, "skimming", "FT0", self.FLAGS)


class TestDplAndTriggerCounters:
    def test_register_process_execution(self, channel, context_factory):
        result = GrpcDplProcessExecutionService(channel, context_factory).register_process_execution(
            106, DplProcessType.QC_CHECKER, "SECOND-HOSTNAME", "PROCESS-NAME", "", "DEFAULT"
        )

        assert result is None
        request = channel.calls[0].request
        assert request.runNumber == 106
        assert request.type == pb.DPL_PROCESS_TYPE_QC_CHECKER
        assert request.hostname == "SECOND-HOSTNAME"
        assert request.processName == "PROCESS-NAME"
        assert request.HasField("args")
        assert request.detectorName == "DEFAULT"

    def test_register_without_args(self, channel, context_factory):
        GrpcDplProcessExecutionService(channel, context_factory).register_process_execution(
            106, "MERGER", "host", "merger", None, "TPC"
        )
        assert not channel.calls[0].request.HasField("args")

    def test_trigger_counters_upsert(self, channel, context_factory):
        counters = GrpcCtpTriggerCountersService(channel, context_factory)
        counters.create_or_update_for_run(108, "CLASS-NAME", 123, 1, 2, 3, 4, 5, 6)
        counters.create_or_update_for_run(108, "CLASS-NAME", 1234, 10, 20, 30, 40, 50, 60)

        first, second = (call.request for call in channel.calls)
        assert (first.runNumber, first.className, first.timestamp) == (108, "CLASS-NAME", 123)
        assert [first.lmb, first.lma, first.l0b, first.l0a, first.l1b, first.l1a] == [1, 2, 3, 4, 5, 6]
        assert second.timestamp == 1234
        assert [second.lmb, second.l1a] == [10, 60]


class TestCallContext:
    def test_metadata_and_timeout_passed(self, channel, context_factory):
        GrpcRunService(channel, context_factory).get(1)

        call = channel.calls[0]
        metadata = dict(call.metadata)
        assert metadata["authorization"] == f"Bearer {TOKEN}"
        assert len(metadata["x-request-id"]) == 26
        assert call.timeout == 5.0

    def test_fresh_context_per_call(self, channel, context_factory):
        runs = GrpcRunService(channel, context_factory)
        runs.get(1)
        runs.get(2)

        first, second = (dict(call.metadata)["x-request-id"] for call in channel.calls)
        assert first != second


class TestFailures:
    """Non-OK statuses become BookkeepingError with the transport message."""

    def test_message_is_transport_details(self, channel, context_factory):
        channel.respond(
            "RunService", "Create", FakeRpcError(grpc.StatusCode.ALREADY_EXISTS, "Run 9003 already exists")
        )
        with pytest.raises(BookkeepingError) as excinfo:
            GrpcRunService(channel, context_factory).start(9003, T0, T0, "env", RunType.PHYSICS, 1, 1, 1)

        assert str(excinfo.value) == "Run 9003 already exists"
        assert excinfo.value.code == grpc.StatusCode.ALREADY_EXISTS
        assert isinstance(excinfo.value, RuntimeError)
        assert isinstance(excinfo.value.__cause__, grpc.RpcError)

    def test_qc_flag_batch_fails_entirely(self, channel, context_factory):
        channel.respond(
            "QcFlagService", "CreateForDataPass", FakeRpcError(grpc.StatusCode.INVALID_ARGUMENT, "Flag type 99 unknown")
        )
        flags = [QcFlag(flag_type_id=99, origin="x")]
        with pytest.raises(BookkeepingError, match="Flag type 99 unknown"):
            GrpcQcFlagService(channel, context_factory).create_for_data_pass(1, "pass", "FT0", flags)
        assert flags == [QcFlag(flag_type_id=99, origin="x")]

    def test_fire_and_forget_still_reports_failure(self, channel, context_factory):
        channel.respond(
            "CtpTriggerCountersService",
            "CreateOrUpdateForRun",
            FakeRpcError(grpc.StatusCode.NOT_FOUND, "Run 108 not found"),
        )
        with pytest.raises(BookkeepingError, match="Run 108 not found"):
            GrpcCtpTriggerCountersService(channel, context_factory).create_or_update_for_run(
                108, "C", 1, 1, 1, 1, 1, 1, 1
            )
