"""
Unit Schema for the Relay
=========================

Data carried through the pipeline (Unit) and the throughput report
emitted every stats window (ThroughputReport).
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, computed_field


@dataclass(frozen=True)
class Unit:
    """
    One opaque payload travelling from the source to the bus.

    The payload is never inspected by the relay; ``nal_type`` is metadata
    filled in by the source when it knows it.

    Args:
        id: Sequence id assigned at enqueue time (monotonic per pipeline)
        payload: Immutable payload bytes
        nal_type: Optional H.264 NAL unit type
    """

    id: int
    payload: bytes = field(repr=False)
    nal_type: Optional[int] = None
    size: int = field(init=False)

    def __post_init__(self):
        if self.id < 0:
            raise ValueError(f"Unit id cannot be negative, got {self.id}")
        if not isinstance(self.payload, bytes):
            raise TypeError(
                f"Unit payload must be bytes, got {type(self.payload).__name__}"
            )
        # frozen dataclass: bypass __setattr__ for the derived field
        object.__setattr__(self, "size", len(self.payload))


class ThroughputReport(BaseModel):
    """Throughput over one stats window"""

    instance_id: Optional[str] = Field(default=None, description="Relay instance identifier")
    pid: int = Field(description="Process id of the relay")
    timestamp: datetime = Field(description="When the report was computed")
    elapsed_ms: int = Field(ge=0, description="Window duration in milliseconds")
    units: int = Field(ge=0, description="Units published in the window")
    bytes: int = Field(ge=0, description="Payload bytes published in the window")
    bps: float = Field(ge=0.0, description="Throughput in bits per second")

    @computed_field
    @property
    def elapsed_seconds(self) -> float:
        return self.elapsed_ms / 1000.0

    class Config:
        json_schema_extra = {
            "example": {
                "instance_id": "relay-1a2b3c4d",
                "pid": 4242,
                "timestamp": "2025-10-25T10:30:05.000Z",
                "elapsed_ms": 5001,
                "elapsed_seconds": 5.001,
                "units": 372,
                "bytes": 1250000,
                "bps": 1999600.08,
            }
        }
