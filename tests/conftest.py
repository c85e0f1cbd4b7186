import pytest

from padrelay.errors import StorageError
from padrelay.memory_storage import MemoryStorage


class FailingStorage(MemoryStorage):
    """MemoryStorage whose operations can be made to fail on demand."""

    def __init__(self):
        super().__init__()
        self.fail_query = False
        self.fail_insert = False
        self.fail_delete = False
        self.queries = []

    def query(self, kind, attribute, value):
        self.queries.append((kind, attribute, value))
        if self.fail_query:
            raise StorageError("backend unavailable")
        return super().query(kind, attribute, value)

    def commit(self, inserts=None, deletes=None):
        if inserts and self.fail_insert:
            raise StorageError("insert rejected")
        if deletes and self.fail_delete:
            raise StorageError("delete rejected")
        super().commit(inserts=inserts, deletes=deletes)


class ScriptedIds:
    """Candidate function handing out a fixed sequence of ids."""

    def __init__(self, *ids):
        self._ids = iter(ids)
        self.issued = []

    def __call__(self):
        candidate = next(self._ids)
        self.issued.append(candidate)
        return candidate


@pytest.fixture
def storage():
    return FailingStorage()

