"""Service protocols implemented by each bookkeeping transport."""

from typing import List, Optional, Protocol, Sequence, Union, runtime_checkable

from bookkeeping.models import (
    DplProcessType,
    Flp,
    Log,
    QcFlag,
    Run,
    RunQuality,
    RunType,
)
from bookkeeping.utils import Timestamp


@runtime_checkable
class RunService(Protocol):
    """Run lifecycle: start, end and patches of a data taking session."""

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
        ...

    def end(
        self,
        run_number: int,
        o2_end: Timestamp,
        trigger_end: Timestamp,
        run_quality: Union[RunQuality, str],
    ) -> Run:
        """Set end times and quality of an existing run. Returns the updated run."""
        ...

    def set_raw_ctp_trigger_configuration(
        self,
        run_number: int,
        configuration: str,
    ) -> None:
        """Attach or overwrite the raw CTP trigger configuration of a run."""
        ...

    def get(self, run_number: int) -> Run:
        """Fetch a run by run number."""
        ...


@runtime_checkable
class FlpService(Protocol):
    """FLP registration and readout counters."""

    def add(
        self,
        name: str,
        hostname: str,
        run_number: Optional[int] = None,
    ) -> Flp:
        """Register an FLP, optionally bound to a run. Returns the created FLP."""
        ...

    def update_readout_counters(
        self,
        name: str,
        run_number: int,
        n_subtimeframes: int,
        n_equipment_bytes: int,
        n_recording_bytes: int,
        n_fair_mq_bytes: int,
    ) -> None:
        """Overwrite the readout counters of an FLP in a run.

        Values are absolute snapshots, not deltas.
        """
        ...


@runtime_checkable
class LogService(Protocol):
    """Creation of log entries."""

    def create(
        self,
        text: str,
        title: str,
        run_numbers: Sequence[int] = (),
        parent_log_id: Optional[int] = -1,
    ) -> Log:
        """Create a log entry. A parent_log_id of -1 or None means no parent."""
        ...


@runtime_checkable
class QcFlagService(Protocol):
    """Batch creation of QC flags. Returns generated ids in request order."""

    def create_for_data_pass(
        self,
        run_number: int,
        pass_name: str,
        detector_name: str,
        flags: Sequence[QcFlag],
    ) -> List[int]:
        ...

    def create_for_simulation_pass(
        self,
        run_number: int,
        production_name: str,
        detector_name: str,
        flags: Sequence[QcFlag],
    ) -> List[int]:
        ...

    def create_synchronous(
        self,
        run_number: int,
        detector_name: str,
        flags: Sequence[QcFlag],
    ) -> List[int]:
        ...


@runtime_checkable
class DplProcessExecutionService(Protocol):
    """Registration of DPL process executions."""

    def register_process_execution(
        self,
        run_number: int,
        process_type: Union[DplProcessType, str],
        hostname: str,
        process_name: str,
        args: Optional[str],
        detector_name: str,
    ) -> None:
        """Register the execution of a DPL process."""
        ...


@runtime_checkable
class CtpTriggerCountersService(Protocol):
    """CTP trigger counters of a run, one set per trigger class."""

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
        """Create the counters of a trigger class in a run, or overwrite them."""
        ...
