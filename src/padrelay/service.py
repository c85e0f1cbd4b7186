import time
import logging
import signal
import sys
from typing import Any, Dict, Optional

from .config import RelayConfig, load_config
from .errors import BadRequest
from .export_store import ExportStore
from .http_io import HttpIO
from .identifiers import IdGenerator
from .mapping_store import MappingStore
from .protocol import (
    make_pad_save_object,
    make_uuid_container,
    parse_gist_mapping,
    parse_pad_save_object,
    parse_uuid_container,
)
from .storage import create_storage
from .storage_api import StorageAPI

logger = logging.getLogger(__name__)


class RelayService:
    """
    Orchestrator: owns the storage backend, the export and mapping stores
    and the HTTP layer, and dispatches operations by name.

    The backend is chosen once at construction; nothing downstream knows
    which one is in use.
    """

    def __init__(
        self,
        config: RelayConfig,
        storage: Optional[StorageAPI] = None,
        log: Optional[logging.Logger] = None,
    ):
        self.config = config
        self.logger = log or logger
        self.running = False

        self.storage = storage if storage is not None else create_storage(config.storage)

        id_generator = IdGenerator(max_attempts=config.ids.max_attempts, log=self.logger)
        self.export_store = ExportStore(
            self.storage,
            id_generator=id_generator,
            field_names=config.export.fields,
            log=self.logger,
        )
        self.mapping_store = MappingStore(
            self.storage, id_generator=id_generator, log=self.logger
        )

        self.http_io = HttpIO(
            config.server.host, config.server.port, self.handle_request, log=self.logger
        )

        self._handlers = {
            "export": self.export,
            "pullExportData": self.pull_export_data,
            "getUnusedMappingId": self.get_unused_mapping_id,
            "storeGist": self.store_gist,
            "retrieveGist": self.retrieve_gist,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start serving HTTP requests."""
        try:
            self.http_io.start()
            self.running = True
            self.logger.info("Relay started on port %d", self.http_io.port)
        except Exception as e:
            self.logger.error("Failed to start relay: %s", e)
            self.stop()
            raise

    def stop(self) -> None:
        """Stop serving, close storage and flush the logger."""
        if self.running:
            self.logger.info("Stopping relay")
            self.running = False
            self.http_io.stop()

        if self.storage:
            self.storage.close()

        self.logger.info("Relay stopped")
        for handler in self.logger.handlers + logging.getLogger().handlers:
            handler.flush()

    def _signal_handler(self, signum, frame):
        """Handle shutdown signals."""
        self.logger.info("Received signal %s, shutting down...", signum)
        self.stop()
        sys.exit(0)

    def run_forever(self) -> None:
        """Block until interrupted."""
        try:
            signal.signal(signal.SIGTERM, self._signal_handler)
        except ValueError:
            self.logger.debug("Signal handlers not installed (non-main thread).")
        try:
            while self.running:
                time.sleep(1.0)
        except KeyboardInterrupt:
            self.logger.info("Received interrupt, shutting down...")
            self.stop()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def handle_request(self, operation: str, payload: Any) -> Dict[str, Any]:
        handler = self._handlers.get(operation)
        if handler is None:
            raise BadRequest(f"Unknown operation: {operation}")
        return handler(payload)

    def export(self, payload: Any) -> Dict[str, Any]:
        """Store a bundle to be retrieved once."""
        bundle = parse_pad_save_object(payload, self.config.export.fields)
        return make_uuid_container(self.export_store.export(bundle))

    def pull_export_data(self, payload: Any) -> Dict[str, Any]:
        """Retrieve (and consume) a stored bundle."""
        bundle = self.export_store.retrieve(parse_uuid_container(payload))
        uuid = bundle.pop("uuid")
        return make_pad_save_object(bundle, uuid=uuid)

    def get_unused_mapping_id(self, payload: Any = None) -> Dict[str, Any]:
        return make_uuid_container(self.mapping_store.generate_unused_internal_id())

    def store_gist(self, payload: Any) -> Dict[str, Any]:
        gist_id, internal_id = parse_gist_mapping(payload)
        return make_uuid_container(self.mapping_store.store(gist_id, internal_id))

    def retrieve_gist(self, payload: Any) -> Dict[str, Any]:
        internal_id = payload.get("id") if isinstance(payload, dict) else None
        return make_uuid_container(self.mapping_store.resolve(internal_id))


def create_service(
    port: Optional[int] = None,
    host: Optional[str] = None,
    config_path: Optional[str] = None,
    db_path: Optional[str] = None,
    backend: Optional[str] = None,
    config: Optional[RelayConfig] = None,
) -> RelayService:
    """Create and configure a relay instance. An already loaded config wins over config_path."""
    if config is None:
        config = load_config(config_path)

    if port is not None:
        config.server.port = port
    if host is not None:
        config.server.host = host
    if db_path is not None:
        config.storage.db_path = db_path
    if backend is not None:
        config.storage.backend = backend

    return RelayService(config)
