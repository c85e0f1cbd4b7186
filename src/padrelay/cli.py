#!/usr/bin/env python3

import argparse
import logging
import json
import sys
from typing import Optional

from .config import load_config
from .errors import RelayError
from .service import create_service


def setup_logging(debug: bool = False, level: str = "INFO", filename: Optional[str] = None) -> None:
    """Setup logging configuration."""
    logging.basicConfig(
        level=logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        filename=filename,
    )


def _service_from_args(args):
    config = load_config(args.config)
    setup_logging(args.debug, config.logging.level, config.logging.file)
    return create_service(
        port=getattr(args, "port", None),
        host=getattr(args, "host", None),
        config_path=args.config,
        db_path=args.db,
        backend="memory" if args.memory else None,
        config=config,
    )


# ---------------------------------------------------------------------------

def cmd_serve(args) -> int:
    """Handle serve command."""
    service = _service_from_args(args)
    service.start()

    print(f"Relay listening on {service.config.server.host}:{service.http_io.port}")
    print("Press Ctrl+C to stop")

    service.run_forever()
    return 0


def cmd_export(args) -> int:
    """Handle export command."""
    fields = []
    for item in args.field:
        name, sep, path = item.partition("=")
        if not sep:
            print(f"Error: Invalid field '{item}'. Use NAME=FILE")
            return 1
        fields.append((name, path))

    service = _service_from_args(args)
    try:
        payload = {}
        for name, path in fields:
            with open(path, "r", encoding="utf-8") as f:
                payload[name] = f.read()
        result = service.export(payload)
    finally:
        service.stop()
    print(result["uuid"])
    return 0


def cmd_pull(args) -> int:
    """Handle pull command."""
    service = _service_from_args(args)
    try:
        result = service.pull_export_data({"uuid": args.id})
    finally:
        service.stop()
    print(json.dumps(result, indent=2))
    return 0


def cmd_new_id(args) -> int:
    service = _service_from_args(args)
    try:
        result = service.get_unused_mapping_id()
    finally:
        service.stop()
    print(result["uuid"])
    return 0


def cmd_store_gist(args) -> int:
    service = _service_from_args(args)
    try:
        result = service.store_gist({"gistId": args.gist_id, "internalId": args.internal_id})
    finally:
        service.stop()
    print(result["uuid"])
    return 0


def cmd_get_gist(args) -> int:
    service = _service_from_args(args)
    try:
        result = service.retrieve_gist({"id": args.id})
    finally:
        service.stop()
    print(result["uuid"])
    return 0


COMMANDS = {
    "serve": cmd_serve,
    "export": cmd_export,
    "pull": cmd_pull,
    "new-id": cmd_new_id,
    "store-gist": cmd_store_gist,
    "get-gist": cmd_get_gist,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="padrelay: single-use export and gist id mapping relay",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start the relay
  padrelay --db /var/lib/padrelay.db serve --port 8080

  # Export a pad and pull it back (once)
  padrelay export --field dart=main.dart --field html=index.html
  padrelay pull <retrieval-id>

  # Map a gist id to a fresh internal id
  padrelay store-gist abc123 $(padrelay new-id)
""",
    )

    parser.add_argument("--config", type=str, help="Configuration file path")
    parser.add_argument("--db", type=str, help="SQLite database path")
    parser.add_argument(
        "--memory",
        action="store_true",
        help="Use in-memory storage (nothing persists past exit)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP relay")
    serve_parser.add_argument("--host", type=str, help="Interface to bind to")
    serve_parser.add_argument("--port", type=int, help="Port to bind to (default: 8080)")

    export_parser = subparsers.add_parser("export", help="Export a bundle")
    export_parser.add_argument(
        "--field",
        action="append",
        default=[],
        help="Bundle field as NAME=FILE (repeatable)",
    )

    pull_parser = subparsers.add_parser("pull", help="Retrieve and consume an export")
    pull_parser.add_argument("id", help="Retrieval id")

    subparsers.add_parser("new-id", help="Generate an unused internal id")

    store_parser = subparsers.add_parser("store-gist", help="Store a gist id mapping")
    store_parser.add_argument("gist_id")
    store_parser.add_argument("internal_id")

    get_parser = subparsers.add_parser("get-gist", help="Resolve an internal id")
    get_parser.add_argument("id")

    return parser


def main(argv=None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    command = COMMANDS.get(args.command)
    if command is None:
        parser.print_help()
        return 1

    try:
        return command(args)
    except RelayError as e:
        print(f"Error ({e.kind}): {e.message}")
        return 1
    except (OSError, ValueError) as e:
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
