import os
import yaml
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 8080


@dataclass
class StorageConfig:
    backend: str = "sqlite"
    db_path: str = "padrelay.db"


@dataclass
class ExportConfig:
    # Order matters: it is the order fields are hashed in
    fields: List[str] = field(default_factory=lambda: ["dart", "html", "css"])


@dataclass
class IdConfig:
    max_attempts: int = 4


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: Optional[str] = None


@dataclass
class RelayConfig:
    server: ServerConfig
    storage: StorageConfig
    export: ExportConfig
    ids: IdConfig
    logging: LoggingConfig


def load_config(config_path: Optional[str] = None) -> RelayConfig:
    """Load configuration from file or use defaults."""
    config_data = {}
    if config_path and os.path.exists(config_path):
        with open(config_path, 'r') as f:
            config_data = yaml.safe_load(f) or {}

    return RelayConfig(
        server=ServerConfig(**config_data.get('server', {})),
        storage=StorageConfig(**config_data.get('storage', {})),
        export=ExportConfig(**config_data.get('export', {})),
        ids=IdConfig(**config_data.get('ids', {})),
        logging=LoggingConfig(**config_data.get('logging', {})),
    )
