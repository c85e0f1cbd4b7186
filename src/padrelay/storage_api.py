from typing import Any, Iterable, List, Optional

from .records import RecordKind


class StorageAPI(object):
    """
    Contract for how the stores talk to persistence.
    Implementations can keep records in memory, SQLite, etc.,
    but must keep the same method names and parameters.

    query() returns every live record of `kind` whose `attribute` equals
    `value`. commit() applies inserts then deletes; inserted records get
    their `key` assigned, deletes are matched by `key`.
    Backend failures surface as StorageError.
    """

    def query(self, kind: RecordKind, attribute: str, value: Any) -> List[Any]:
        raise NotImplementedError()

    def commit(
        self,
        inserts: Optional[Iterable[Any]] = None,
        deletes: Optional[Iterable[Any]] = None,
    ) -> None:
        raise NotImplementedError()

    def close(self) -> None:
        pass
