import itertools
import logging
import threading
from typing import Any, Dict, Iterable, List, Optional

from .records import RecordKind, check_attribute
from .storage_api import StorageAPI

logger = logging.getLogger(__name__)


class MemoryStorage(StorageAPI):
    """
    In-process storage for tests and offline use.

    Records are grouped by their RecordKind tag and looked up by a linear
    scan on attribute equality. An RLock serializes access so the store
    can sit behind the threaded HTTP server.
    """

    def __init__(self):
        self._records: Dict[RecordKind, List[Any]] = {kind: [] for kind in RecordKind}
        self._keys = itertools.count(1)
        self._lock = threading.RLock()

    def query(self, kind: RecordKind, attribute: str, value: Any) -> List[Any]:
        check_attribute(kind, attribute)
        with self._lock:
            return [r for r in self._records[kind] if getattr(r, attribute) == value]

    def commit(
        self,
        inserts: Optional[Iterable[Any]] = None,
        deletes: Optional[Iterable[Any]] = None,
    ) -> None:
        with self._lock:
            for record in inserts or ():
                record.key = next(self._keys)
                self._records[record.KIND].append(record)

            for record in deletes or ():
                bucket = self._records[record.KIND]
                bucket[:] = [r for r in bucket if r.key != record.key]

    def count(self, kind: RecordKind) -> int:
        with self._lock:
            return len(self._records[kind])
