"""Domain models shared by the content stream and its wiring."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict


@dataclass(frozen=True)
class ObjectRequest:
    bucket: str
    key: str

    def to_params(self) -> Dict[str, str]:
        return {"Bucket": self.bucket, "Key": self.key}


class StreamState(Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    FORWARDING = "forwarding"
    DONE = "done"
    FAILED = "failed"
    CLOSED = "closed"


@dataclass
class StreamResult:
    bucket: str
    objects_processed: int
    units_written: int
    bytes_written: int
