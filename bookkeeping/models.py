"""Pydantic models for bookkeeping records."""

from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class RunType(str, Enum):
    """Type of a data taking session."""

    PHYSICS = "PHYSICS"
    COSMICS = "COSMICS"
    TECHNICAL = "TECHNICAL"


class RunQuality(str, Enum):
    """Overall quality of a run from the O2 point of view."""

    GOOD = "GOOD"
    BAD = "BAD"
    UNKNOWN = "UNKNOWN"


class DplProcessType(str, Enum):
    """Kind of DPL process whose execution is registered."""

    QC_TASK = "QC_TASK"
    QC_CHECKER = "QC_CHECKER"
    QC_AGGREGATOR = "QC_AGGREGATOR"
    QC_POSTPROCESSING = "QC_POSTPROCESSING"
    DISPATCHER = "DISPATCHER"
    MERGER = "MERGER"


class LogOrigin(str, Enum):
    """Whether a log was written by a person or a process."""

    HUMAN = "human"
    PROCESS = "process"


class LogSubtype(str, Enum):
    """Category of a log entry."""

    RUN = "run"
    SUBSYSTEM = "subsystem"
    ANNOUNCEMENT = "announcement"
    INTERVENTION = "intervention"
    COMMENT = "comment"


class _Record(BaseModel):
    """Base for records exchanged with the server (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Run(_Record):
    """A data taking session, identified by its run number."""

    run_number: int
    environment_id: Optional[str] = None

    # Timestamps
    time_o2_start: Optional[datetime] = None
    time_o2_end: Optional[datetime] = None
    time_trg_start: Optional[datetime] = None
    time_trg_end: Optional[datetime] = None

    run_type: Optional[RunType] = None
    run_quality: Optional[RunQuality] = None

    # Topology
    n_detectors: Optional[int] = None
    n_flps: Optional[int] = None
    n_epns: Optional[int] = None

    # Counters
    n_subtimeframes: Optional[int] = None
    bytes_read_out: Optional[int] = None

    raw_ctp_trigger_configuration: Optional[str] = None

    @field_validator("run_type", mode="before")
    @classmethod
    def _run_type_name(cls, value: Any) -> Any:
        # The REST API returns the run type as an entity: {"id": ..., "name": ...}
        if isinstance(value, dict):
            value = value.get("name")
        return value.upper() if isinstance(value, str) else value

    @field_validator("run_quality", mode="before")
    @classmethod
    def _run_quality_upper(cls, value: Any) -> Any:
        # Stored lowercase by the server
        return value.upper() if isinstance(value, str) else value


class Flp(_Record):
    """A First-Level Processor, optionally bound to a run."""

    id: Optional[int] = None
    name: str
    hostname: Optional[str] = None
    run_number: Optional[int] = None

    n_subtimeframes: Optional[int] = None
    bytes_equipment_read_out: Optional[int] = None
    bytes_recording_read_out: Optional[int] = None
    bytes_fair_mq_read_out: Optional[int] = Field(default=None, alias="bytesFairMQReadOut")


class User(_Record):
    """Author of a log entry."""

    id: int
    external_id: Optional[int] = None
    name: Optional[str] = None


class Log(_Record):
    """A log entry, possibly a reply to another log."""

    id: int
    title: str
    text: str
    origin: Optional[LogOrigin] = None
    subtype: Optional[LogSubtype] = None
    run_numbers: List[int] = Field(default_factory=list)
    parent_log_id: Optional[int] = None
    root_log_id: Optional[int] = None
    created_at: Optional[datetime] = None
    author: Optional[User] = None

    @model_validator(mode="before")
    @classmethod
    def _lift_runs(cls, data: Any) -> Any:
        # The REST API nests associated runs as [{"runNumber": ...}, ...]
        if isinstance(data, dict) and "runs" in data and "runNumbers" not in data:
            data = dict(data)
            data["runNumbers"] = [run["runNumber"] for run in data.pop("runs") or []]
        return data


class QcFlag(_Record):
    """A quality-control flag to be created over a time range of a run.

    ``from_`` and ``to`` are epoch milliseconds; when omitted the flag covers
    the run boundary on that side.
    """

    flag_type_id: int
    origin: str
    from_: Optional[int] = Field(default=None, alias="from")
    to: Optional[int] = None
    comment: Optional[str] = None

