import time
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Dict, Optional


class RecordKind(str, Enum):
    BUNDLE = "bundle"
    MAPPING = "mapping"


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class BundleRecord:
    """
    A stored export. `fields` maps each field name to its encoded payload.
    `key` is assigned by the backend on insert.
    """

    KIND: ClassVar[RecordKind] = RecordKind.BUNDLE
    QUERYABLE: ClassVar[tuple] = ("uuid", "epoch_time")

    uuid: str
    fields: Dict[str, bytes] = field(default_factory=dict)
    epoch_time: int = field(default_factory=now_ms)
    key: Optional[int] = None


@dataclass
class MappingRecord:
    """Association of an externally issued gist id with an internal id."""

    KIND: ClassVar[RecordKind] = RecordKind.MAPPING
    QUERYABLE: ClassVar[tuple] = ("internal_id", "gist_id", "epoch_time")

    internal_id: str
    gist_id: str
    epoch_time: int = field(default_factory=now_ms)
    key: Optional[int] = None


RECORD_TYPES = {
    RecordKind.BUNDLE: BundleRecord,
    RecordKind.MAPPING: MappingRecord,
}


def check_attribute(kind: RecordKind, attribute: str) -> None:
    """Reject attributes that are not indexed for `kind`."""
    if attribute not in RECORD_TYPES[kind].QUERYABLE:
        raise ValueError(f"Cannot query {kind.value} records by {attribute!r}")
