import http.client
import json
import logging
import urllib.error
import urllib.request

import pytest

from padrelay.config import load_config
from padrelay.errors import BadRequest, Conflict, NotFound
from padrelay.identifiers import IdGenerator
from padrelay.memory_storage import MemoryStorage
from padrelay.records import MappingRecord
from padrelay.service import RelayService, create_service

from conftest import FailingStorage, ScriptedIds


def _memory_service(tmp_path):
    config = load_config(None)
    config.server.port = 0
    return RelayService(config, storage=MemoryStorage())


def test_export_scenario(tmp_path):
    service = _memory_service(tmp_path)

    exported = service.handle_request(
        "export", {"dart": "void main(){}", "html": "", "css": ""}
    )
    retrieval_id = exported["uuid"]

    pulled = service.handle_request("pullExportData", {"uuid": retrieval_id})
    assert pulled == {"dart": "void main(){}", "html": "", "css": "", "uuid": retrieval_id}

    with pytest.raises(NotFound):
        service.handle_request("pullExportData", {"uuid": retrieval_id})


def test_gist_scenarios(tmp_path):
    service = _memory_service(tmp_path)

    assert service.store_gist({"gistId": "abc123", "internalId": "xyz"}) == {"uuid": "abc123"}
    assert service.retrieve_gist({"id": "xyz"}) == {"uuid": "abc123"}
    with pytest.raises(Conflict):
        service.store_gist({"gistId": "other", "internalId": "xyz"})

    with pytest.raises(NotFound):
        service.retrieve_gist({"id": "nonexistent"})
    with pytest.raises(BadRequest):
        service.retrieve_gist({})
    with pytest.raises(BadRequest):
        service.retrieve_gist({"id": ""})


def test_unknown_operation_and_bad_payloads(tmp_path):
    service = _memory_service(tmp_path)

    with pytest.raises(BadRequest):
        service.handle_request("dropTables", {})
    with pytest.raises(BadRequest):
        service.handle_request("export", ["not", "a", "dict"])
    with pytest.raises(BadRequest):
        service.handle_request("export", {"dart": 42})
    with pytest.raises(BadRequest):
        service.handle_request("pullExportData", {})


def test_service_uses_sqlite_backend_from_config(tmp_path):
    service = create_service(port=0, db_path=str(tmp_path / "svc.db"))
    internal_id = service.get_unused_mapping_id()["uuid"]
    service.store_gist({"gistId": "g", "internalId": internal_id})
    service.stop()

    reopened = create_service(port=0, db_path=str(tmp_path / "svc.db"))
    assert reopened.retrieve_gist({"id": internal_id}) == {"uuid": "g"}
    reopened.stop()


def test_service_logs_through_injected_logger(tmp_path, caplog):
    log = logging.getLogger("padrelay.test.injected")
    config = load_config(None)
    service = RelayService(config, storage=MemoryStorage(), log=log)

    with caplog.at_level(logging.INFO, logger="padrelay.test.injected"):
        service.store_gist({"gistId": "g", "internalId": "i"})

    assert any(r.name == "padrelay.test.injected" and "stored" in r.getMessage()
               for r in caplog.records)


# ----------------------------------------------------------------------
# HTTP layer
# ----------------------------------------------------------------------


@pytest.fixture
def running_service(tmp_path):
    service = _memory_service(tmp_path)
    service.start()
    yield service
    service.stop()


def _call(service, method, path, body=None):
    url = f"http://127.0.0.1:{service.http_io.port}{path}"
    data = None if body is None else (body if isinstance(body, bytes) else json.dumps(body).encode())
    request = urllib.request.Request(url, data=data, method=method)
    request.add_header("Content-Type", "application/json")
    try:
        with urllib.request.urlopen(request, timeout=5) as response:
            return response.status, json.loads(response.read())
    except urllib.error.HTTPError as e:
        return e.code, json.loads(e.read())


def test_http_export_and_pull(running_service):
    status, body = _call(running_service, "POST", "/export", {"dart": "main(){}"})
    assert status == 200
    retrieval_id = body["uuid"]

    status, body = _call(running_service, "POST", "/pullExportData", {"uuid": retrieval_id})
    assert status == 200
    assert body["dart"] == "main(){}"
    assert body["html"] == ""

    status, body = _call(running_service, "POST", "/pullExportData", {"uuid": retrieval_id})
    assert status == 404
    assert body["error"] == "NotFound"


def test_http_gist_mapping_statuses(running_service):
    status, body = _call(running_service, "GET", "/getUnusedMappingId")
    assert status == 200
    internal_id = body["uuid"]

    status, body = _call(
        running_service, "POST", "/storeGist", {"gistId": "abc123", "internalId": internal_id}
    )
    assert (status, body) == (200, {"uuid": "abc123"})

    status, body = _call(running_service, "GET", f"/retrieveGist?id={internal_id}")
    assert (status, body) == (200, {"uuid": "abc123"})

    status, body = _call(
        running_service, "POST", "/storeGist", {"gistId": "other", "internalId": internal_id}
    )
    assert status == 409

    status, _ = _call(running_service, "GET", "/retrieveGist")
    assert status == 400

    status, _ = _call(running_service, "GET", "/retrieveGist?id=missing")
    assert status == 404


def test_http_malformed_requests(running_service):
    status, body = _call(running_service, "POST", "/export", b"{not json")
    assert status == 400

    status, _ = _call(running_service, "GET", "/export")
    assert status == 405

    status, _ = _call(running_service, "GET", "/nowhere")
    assert status == 404


def _failing_service():
    config = load_config(None)
    config.server.port = 0
    storage = FailingStorage()
    return RelayService(config, storage=storage), storage


def test_http_storage_error_is_503():
    service, storage = _failing_service()
    service.start()
    try:
        storage.fail_query = True
        status, body = _call(service, "GET", "/retrieveGist?id=x")
        assert status == 503
        assert body["error"] == "StorageError"

        status, body = _call(service, "POST", "/export", {"dart": "x"})
        assert status == 503
        assert body["error"] == "StorageError"
    finally:
        service.stop()


def test_http_exhausted_retries_is_500():
    service, storage = _failing_service()
    storage.commit(inserts=[MappingRecord(internal_id="u", gist_id="g")])
    service.mapping_store.id_generator = IdGenerator(
        candidate_func=ScriptedIds("u", "u", "u", "u")
    )
    service.start()
    try:
        status, body = _call(service, "GET", "/getUnusedMappingId")
        assert status == 500
        assert body["error"] == "ExhaustedRetries"
    finally:
        service.stop()


@pytest.mark.parametrize("length", ["abc", "-5"])
def test_http_bad_content_length_is_400(running_service, length):
    conn = http.client.HTTPConnection("127.0.0.1", running_service.http_io.port, timeout=5)
    try:
        conn.putrequest("POST", "/export")
        conn.putheader("Content-Length", length)
        conn.endheaders()
        response = conn.getresponse()
        assert response.status == 400
        assert json.loads(response.read())["error"] == "BadRequest"
    finally:
        conn.close()
