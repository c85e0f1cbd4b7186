import hashlib
import logging
from typing import Dict, Mapping, Optional, Sequence

from . import codec
from .errors import NotFound, RelayError, StorageError
from .identifiers import IdGenerator
from .records import BundleRecord, RecordKind
from .storage_api import StorageAPI

logger = logging.getLogger(__name__)

DEFAULT_FIELDS = ("dart", "html", "css")
HASH_PREFIX = "blob  'n"


def compute_digest(field_names: Sequence[str], values: Mapping[str, str]) -> str:
    """
    SHA-1 fingerprint of a bundle's content: the prefix and every field
    value in `field_names` order, joined by single spaces.
    """
    text = " ".join([HASH_PREFIX] + [values[name] for name in field_names])
    return hashlib.sha1(text.encode("utf-8")).hexdigest()


class ExportStore:
    """
    Single-use storage of content bundles.

    export() persists a bundle under "<sha1>-<uuid>"; retrieve() hands the
    bundle back once and deletes it.
    """

    def __init__(
        self,
        storage: StorageAPI,
        id_generator: Optional[IdGenerator] = None,
        field_names: Sequence[str] = DEFAULT_FIELDS,
        log: Optional[logging.Logger] = None,
    ):
        self.storage = storage
        self.logger = log or logger
        self.id_generator = id_generator or IdGenerator(log=self.logger)
        self.field_names = tuple(field_names)

    def export(self, bundle: Mapping[str, Optional[str]]) -> str:
        """
        Store `bundle` and return its retrieval id. Any prior id in the
        input is ignored. The insert must succeed before the id is returned.
        """
        values = {name: bundle.get(name) or "" for name in self.field_names}
        digest = compute_digest(self.field_names, values)

        def is_used(candidate: str) -> bool:
            return bool(
                self.storage.query(RecordKind.BUNDLE, "uuid", f"{digest}-{candidate}")
            )

        suffix = self.id_generator.generate_unused(is_used, purpose="export id")
        record = BundleRecord(
            uuid=f"{digest}-{suffix}",
            fields={name: codec.encode(value) for name, value in values.items()},
        )

        try:
            self.storage.commit(inserts=[record])
        except StorageError as e:
            self.logger.error("Error while recording export %s: %s", record.uuid, e)
            raise

        self.logger.info("Recorded Export with ID %s", record.uuid)
        return record.uuid

    def retrieve(self, retrieval_id: str) -> Dict[str, str]:
        """
        Return the stored bundle (all fields plus "uuid") and delete it.
        A failed delete is logged; the content is still returned.
        """
        result = self.storage.query(RecordKind.BUNDLE, "uuid", retrieval_id)
        if not result:
            self.logger.warning("Export with UUID %s could not be found.", retrieval_id)
            raise NotFound("Nothing of correct uuid could be found.")

        record = result[0]
        bundle = {name: codec.decode(payload) for name, payload in record.fields.items()}
        for name in self.field_names:
            bundle.setdefault(name, "")
        bundle["uuid"] = record.uuid

        try:
            self.storage.commit(deletes=[record])
        except RelayError as e:
            self.logger.error("Error while deleting export %s: %s", record.uuid, e)
        else:
            self.logger.info("Deleted Export with ID %s", record.uuid)

        return bundle
