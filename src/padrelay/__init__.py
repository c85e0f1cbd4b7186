"""
padrelay: single-use export relay and gist id mapping service

This package implements:
- Single-use storage of compressed content bundles ("exports")
- Gist id <-> internal id mappings with collision-checked id generation
- Interchangeable SQLite and in-memory storage backends
- A thin JSON-over-HTTP front end
"""

__version__ = "0.1.0"

from .config import RelayConfig, load_config
from .service import RelayService, create_service

__all__ = ['RelayService', 'create_service', 'RelayConfig', 'load_config']
