import logging
from typing import Optional

from .errors import BadRequest, Conflict, NotFound, StorageError
from .identifiers import IdGenerator
from .records import MappingRecord, RecordKind
from .storage_api import StorageAPI

logger = logging.getLogger(__name__)


class MappingStore:
    """
    Gist id <-> internal id associations.

    Internal ids are checked for reuse by a query before each insert; there
    is no storage-level constraint, so two concurrent store() calls for the
    same internal id can both succeed.
    """

    def __init__(
        self,
        storage: StorageAPI,
        id_generator: Optional[IdGenerator] = None,
        log: Optional[logging.Logger] = None,
    ):
        self.storage = storage
        self.logger = log or logger
        self.id_generator = id_generator or IdGenerator(log=self.logger)

    def _lookup(self, internal_id: str):
        return self.storage.query(RecordKind.MAPPING, "internal_id", internal_id)

    def generate_unused_internal_id(self) -> str:
        return self.id_generator.generate_unused(
            lambda candidate: bool(self._lookup(candidate)), purpose="mapping id"
        )

    def store(self, gist_id: str, internal_id: str) -> str:
        """Record gist_id under internal_id and echo gist_id back."""
        if not gist_id or not internal_id:
            raise BadRequest("Missing parameter: 'gistId' and 'internalId' are required")

        if self._lookup(internal_id):
            self.logger.error("Collision with mapping of Id %s.", gist_id)
            raise Conflict("Mapping invalid.")

        entry = MappingRecord(internal_id=internal_id, gist_id=gist_id)
        try:
            self.storage.commit(inserts=[entry])
        except StorageError as e:
            self.logger.error(
                "Error while recording mapping with Id %s. Error %s", gist_id, e
            )
            raise

        self.logger.info("Mapping with ID %s stored.", gist_id)
        return gist_id

    def resolve(self, internal_id: Optional[str]) -> str:
        if not internal_id:
            raise BadRequest("Missing parameter: 'id'")

        result = self._lookup(internal_id)
        if not result:
            self.logger.warning("Missing mapping for Id %s.", internal_id)
            raise NotFound(f"Missing mapping for Id {internal_id}")

        self.logger.info("Mapping with ID %s retrieved.", internal_id)
        return result[0].gist_id
