"""
Request/response helpers for the relay operations.

These build and validate the plain dictionaries the HTTP layer
serializes to/from JSON.
"""

from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from .errors import BadRequest

# operation name -> HTTP method
OPERATIONS = {
    "export": "POST",
    "pullExportData": "POST",
    "getUnusedMappingId": "GET",
    "storeGist": "POST",
    "retrieveGist": "GET",
}


def _require_dict(msg: Any) -> Mapping[str, Any]:
    if not isinstance(msg, Mapping):
        raise BadRequest("Request body must be a JSON object")
    return msg


def _optional_str(msg: Mapping[str, Any], name: str) -> Optional[str]:
    value = msg.get(name)
    if value is not None and not isinstance(value, str):
        raise BadRequest(f"Parameter '{name}' must be a string")
    return value


def make_uuid_container(uuid: str) -> Dict[str, Any]:
    return {"uuid": str(uuid)}


def parse_uuid_container(msg: Any) -> str:
    uuid = _optional_str(_require_dict(msg), "uuid")
    if not uuid:
        raise BadRequest("Missing parameter: 'uuid'")
    return uuid


def make_pad_save_object(
    fields: Mapping[str, str], uuid: Optional[str] = None
) -> Dict[str, Any]:
    msg: Dict[str, Any] = dict(fields)
    msg["uuid"] = uuid
    return msg


def parse_pad_save_object(
    msg: Any, field_names: Sequence[str]
) -> Dict[str, Optional[str]]:
    """Pick the configured fields out of an export request; absent ones are None."""
    msg = _require_dict(msg)
    _optional_str(msg, "uuid")
    return {name: _optional_str(msg, name) for name in field_names}


def make_gist_mapping(gist_id: str, internal_id: str) -> Dict[str, Any]:
    return {"gistId": str(gist_id), "internalId": str(internal_id)}


def parse_gist_mapping(msg: Any) -> Tuple[Optional[str], Optional[str]]:
    msg = _require_dict(msg)
    return _optional_str(msg, "gistId"), _optional_str(msg, "internalId")
