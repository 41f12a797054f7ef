"""Tests for the tool invocation client."""

import json
import threading

import pytest

from mcp_toolset.errors import CancelledError, ConfigError, FileAccessError, RemoteError, TransportError
from mcp_toolset.models import InvokeEndpoints, ToolDescriptor
from mcp_toolset.transport import API_KEY_HEADER

from conftest import API_KEY, envelope, make_tool

JSON_URL = "http://toolset.test/tools/echo/json"
FORM_URL = "http://toolset.test/tools/scan/form"


# ---------- JSON mode ----------

def test_round_trip_returns_envelope_data(stub, invoker):
    stub.add("POST", JSON_URL, body=envelope({"a": 1}))

    result = invoker.invoke(make_tool(), '{"a":1}')

    assert json.loads(result) == {"a": 1}


def test_json_request_shape(stub, invoker):
    stub.add("POST", JSON_URL, body=envelope({"ok": True}))

    invoker.invoke(make_tool(), '{"a": 1, "b": [true]}')

    request = stub.sent[0]
    assert request.method == "POST"
    assert request.body == b'{"a": 1, "b": [true]}'
    assert request.headers["Content-Type"] == "application/json"
    assert request.headers["Accept"] == "application/json"
    assert request.headers[API_KEY_HEADER] == API_KEY


def test_non_enveloped_body_passes_through(stub, invoker):
    stub.add("POST", JSON_URL, body="plain text")

    assert invoker.invoke(make_tool(), "{}") == b"plain text"


def test_object_without_success_flag_passes_through(stub, invoker):
    stub.add("POST", JSON_URL, body={"answer": 42})

    assert json.loads(invoker.invoke(make_tool(), "{}")) == {"answer": 42}


def test_success_without_data_returns_raw_body(stub, invoker):
    stub.add("POST", JSON_URL, body='{"isSuccess": true, "data": null}')

    assert invoker.invoke(make_tool(), "{}") == b'{"isSuccess": true, "data": null}'


def test_remote_failure(stub, invoker):
    stub.add("POST", JSON_URL, body={"isSuccess": False, "error": "bad input"})

    with pytest.raises(RemoteError, match="bad input"):
        invoker.invoke(make_tool(), "{}")


def test_remote_failure_without_message(stub, invoker):
    stub.add("POST", JSON_URL, body={"isSuccess": False})

    with pytest.raises(RemoteError, match="unknown error"):
        invoker.invoke(make_tool(), "{}")


def test_non_200_is_transport_error_even_with_success_envelope(stub, invoker):
    stub.add("POST", JSON_URL, status=500, body=envelope({"a": 1}))

    with pytest.raises(TransportError) as exc_info:
        invoker.invoke(make_tool(), "{}")
    assert exc_info.value.status == 500


def test_missing_endpoint_is_config_error(stub, invoker):
    tool = ToolDescriptor(name="lost", invoke_endpoints=InvokeEndpoints(json="", form="http://x/form"))

    with pytest.raises(ConfigError, match="lost"):
        invoker.invoke(tool, "{}")
    assert stub.sent == []


def test_cancelled_call_sends_nothing(stub, invoker):
    stub.add("POST", JSON_URL, body=envelope({"a": 1}))
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(CancelledError):
        invoker.invoke(make_tool(), "{}", cancel=cancel)
    assert stub.sent == []


def test_execute_reports_failure_in_result(stub, invoker):
    stub.add("POST", JSON_URL, body={"isSuccess": False, "error": "bad input"})

    result = invoker.execute(make_tool(), "{}")

    assert result.is_error
    assert "bad input" in result.error
    assert result.payload is None


def test_execute_success(stub, invoker):
    stub.add("POST", JSON_URL, body=envelope([1, 2, 3]))

    result = invoker.execute(make_tool(), "{}")

    assert not result.is_error
    assert json.loads(result.payload) == [1, 2, 3]


# ---------- multipart mode ----------

def test_multipart_with_one_file(stub, invoker, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "testfile.txt").write_bytes(b"hello upload\n")
    stub.add("POST", FORM_URL, body=envelope({"pages": 1}))
    arguments = json.dumps({"lang": "en", "_uploaded_file_paths": ["./testfile.txt"]})

    result = invoker.invoke(make_tool("scan", upload=True), arguments)

    assert json.loads(result) == {"pages": 1}
    request = stub.sent[0]
    assert request.headers["Content-Type"].startswith("multipart/form-data; boundary=")
    assert request.headers[API_KEY_HEADER] == API_KEY
    body = request.body
    assert body.count(b'name="json"') == 1
    assert arguments.encode("utf-8") in body
    assert body.count(b'name="file"') == 1
    assert b'filename="testfile.txt"' in body
    assert b"Content-Type: text/plain; charset=utf-8" in body
    assert b"hello upload\n" in body
    assert stub.streamed == [True]


def test_multipart_json_field_comes_first(stub, invoker, tmp_path):
    upload = tmp_path / "a.bin"
    upload.write_bytes(b"\x00\x01\x02\x03\x04\x05\x06\x07")
    stub.add("POST", FORM_URL, body=envelope({}))

    invoker.invoke(make_tool("scan", upload=True), json.dumps({"_uploaded_file_paths": [str(upload)]}))

    body = stub.sent[0].body
    assert body.index(b'name="json"') < body.index(b'name="file"')
    assert b"Content-Type: application/octet-stream" in body


def test_multipart_several_files(stub, invoker, tmp_path):
    paths = []
    for i in range(3):
        path = tmp_path / f"part{i}.txt"
        path.write_text(f"content {i}")
        paths.append(str(path))
    stub.add("POST", FORM_URL, body=envelope({}))

    invoker.invoke(make_tool("scan", upload=True), json.dumps({"_uploaded_file_paths": paths}))

    body = stub.sent[0].body
    assert body.count(b'name="file"') == 3
    for i in range(3):
        assert f'filename="part{i}.txt"'.encode() in body
        assert f"content {i}".encode() in body


def test_multipart_filename_is_backslash_escaped(stub, invoker, tmp_path):
    upload = tmp_path / 'we"ird\\name.txt'
    upload.write_text("odd name")
    stub.add("POST", FORM_URL, body=envelope({}))

    invoker.invoke(make_tool("scan", upload=True), json.dumps({"_uploaded_file_paths": [str(upload)]}))

    body = stub.sent[0].body
    assert b'filename="we\\"ird\\\\name.txt"' in body
    assert b"%22" not in body


def test_multipart_without_paths_has_only_json_field(stub, invoker):
    stub.add("POST", FORM_URL, body=envelope({}))

    invoker.invoke(make_tool("scan", upload=True), '{"_uploaded_file_paths": "not-a-list"}')

    body = stub.sent[0].body
    assert body.count(b'name="json"') == 1
    assert b'name="file"' not in body


def test_missing_upload_file_sends_nothing(stub, invoker, tmp_path):
    stub.add("POST", FORM_URL, body=envelope({}))
    present = tmp_path / "present.txt"
    present.write_text("here")
    missing = str(tmp_path / "missing.txt")

    with pytest.raises(FileAccessError) as exc_info:
        invoker.invoke(make_tool("scan", upload=True),
                       json.dumps({"_uploaded_file_paths": [str(present), missing]}))

    assert exc_info.value.path == missing
    assert stub.sent == []
