"""
Unit tests for the Google Drive client.

Tests GoogleDriveClient in isolation with an httpx.MockTransport standing
in for the Drive REST API.
"""

import base64
import json

import httpx
import pytest

from librenote.GDrive.auth import IdentityProvider
from librenote.GDrive.drive_client import DRIVE_BASE_URL, GoogleDriveClient, escape_query_value
from librenote.Sync.errors import DriveAPIError, NotAuthenticatedError, TransportError
from librenote.Sync.remote_store import FOLDER_MIME_TYPE


class StubIdentity(IdentityProvider):
    """Hands out token-1, then token-2 after a refresh."""

    def __init__(self, refresh_error=None):
        self.token = "token-1"
        self.refresh_calls = 0
        self.refresh_error = refresh_error

    async def authenticate(self):
        pass

    async def refresh_token(self):
        self.refresh_calls += 1
        if self.refresh_error is not None:
            raise self.refresh_error
        self.token = f"token-{self.refresh_calls + 1}"
        return self.token

    def is_authenticated(self):
        return True

    def logout(self):
        return True

    async def get_access_token(self):
        return self.token


def make_client(handler, identity=None):
    identity = identity or StubIdentity()
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=DRIVE_BASE_URL)
    return GoogleDriveClient(identity, http_client=http_client), identity


def files_response(*files, next_page_token=None):
    body = {"files": list(files)}
    if next_page_token:
        body["nextPageToken"] = next_page_token
    return httpx.Response(200, json=body)


class TestAuthRetry:

    @pytest.mark.asyncio
    async def test_401_refreshes_and_retries_once(self):
        seen = []

        def handler(request):
            seen.append(request.headers["Authorization"])
            if request.headers["Authorization"] == "Bearer token-1":
                return httpx.Response(401, json={"error": {"message": "Invalid Credentials"}})
            return files_response({"id": "f1", "name": "a.json", "mimeType": "application/json"})

        client, identity = make_client(handler)

        blobs = await client.list_blobs("folder")

        assert [b.name for b in blobs] == ["a.json"]
        assert seen == ["Bearer token-1", "Bearer token-2"]
        assert identity.refresh_calls == 1

    @pytest.mark.asyncio
    async def test_second_401_is_not_authenticated(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(401)

        client, identity = make_client(handler)

        with pytest.raises(NotAuthenticatedError):
            await client.list_blobs("folder")
        assert len(calls) == 2
        assert identity.refresh_calls == 1

    @pytest.mark.asyncio
    async def test_failed_refresh_propagates(self):
        client, _ = make_client(lambda request: httpx.Response(401),
                                StubIdentity(refresh_error=NotAuthenticatedError("no refresh token")))

        with pytest.raises(NotAuthenticatedError, match="no refresh token"):
            await client.delete_blob("b1")

    @pytest.mark.asyncio
    async def test_retry_resends_the_same_body(self):
        bodies = []

        def handler(request):
            bodies.append(request.content)
            if len(bodies) == 1:
                return httpx.Response(401)
            return httpx.Response(200, json={"id": "b1", "name": "a.json"})

        client, _ = make_client(handler)

        await client.put_blob("folder", "a.json", {"id": "a"})

        assert len(bodies) == 2
        assert bodies[0] == bodies[1]


class TestErrors:

    @pytest.mark.asyncio
    async def test_http_error_status_raises_drive_api_error(self):
        def handler(request):
            return httpx.Response(500, json={"error": {"message": "Backend Error"}})

        client, _ = make_client(handler)

        with pytest.raises(DriveAPIError) as exc_info:
            await client.get_blob("b1")
        assert exc_info.value.status_code == 500
        assert "Backend Error" in str(exc_info.value)
        assert isinstance(exc_info.value, TransportError)

    @pytest.mark.asyncio
    async def test_network_failure_raises_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client, _ = make_client(handler)

        with pytest.raises(TransportError):
            await client.find_or_create_folder("NoteFlow")

    @pytest.mark.asyncio
    async def test_timeout_raises_transport_error(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client, _ = make_client(handler)

        with pytest.raises(TransportError, match="timed out"):
            await client.list_blobs("folder")


class TestFolderAndBlobs:

    @pytest.mark.asyncio
    async def test_find_existing_folder(self):
        def handler(request):
            q = request.url.params["q"]
            assert q == f"name='NoteFlow' and mimeType='{FOLDER_MIME_TYPE}' and trashed=false"
            return files_response({"id": "first", "name": "NoteFlow"}, {"id": "second", "name": "NoteFlow"})

        client, _ = make_client(handler)

        assert await client.find_or_create_folder("NoteFlow") == "first"

    @pytest.mark.asyncio
    async def test_create_folder_when_missing(self):
        requests = []

        def handler(request):
            requests.append(request)
            if request.method == "GET":
                return files_response()
            return httpx.Response(200, json={"id": "new-folder"})

        client, _ = make_client(handler)

        assert await client.find_or_create_folder("NoteFlow") == "new-folder"
        assert json.loads(requests[1].content) == {"name": "NoteFlow", "mimeType": FOLDER_MIME_TYPE}

    @pytest.mark.asyncio
    async def test_list_blobs_follows_pagination(self):
        def handler(request):
            if request.url.params.get("pageToken") == "page2":
                return files_response({"id": "b2", "name": "b.json"})
            return files_response({"id": "b1", "name": "a.json"}, next_page_token="page2")

        client, _ = make_client(handler)

        assert [b.id for b in await client.list_blobs("folder")] == ["b1", "b2"]

    @pytest.mark.asyncio
    async def test_list_blobs_query_scopes_parent_and_mime_type(self):
        def handler(request):
            assert request.url.params["q"] == (
                "'folder' in parents and trashed=false and mimeType='application/json'"
            )
            assert request.url.params["fields"].startswith("nextPageToken,files(")
            return files_response()

        client, _ = make_client(handler)

        assert await client.list_blobs("folder") == []

    @pytest.mark.asyncio
    async def test_get_blob_parses_json_or_returns_bytes(self):
        def handler(request):
            assert request.url.params["alt"] == "media"
            if request.url.path.endswith("/json-blob"):
                return httpx.Response(200, json={"id": "a"})
            return httpx.Response(200, content=b"\x89PNG\r\n")

        client, _ = make_client(handler)

        assert await client.get_blob("json-blob") == {"id": "a"}
        assert await client.get_blob("png-blob") == b"\x89PNG\r\n"

    @pytest.mark.asyncio
    async def test_put_blob_sends_multipart_upload(self):
        captured = {}

        def handler(request):
            captured["request"] = request
            return httpx.Response(200, json={"id": "b1", "name": "a.json", "mimeType": "application/json"})

        client, _ = make_client(handler)

        blob = await client.put_blob("folder", "a.json", {"id": "a", "name": "Notes"})

        request = captured["request"]
        assert request.method == "POST"
        assert request.url.path == "/upload/drive/v3/files"
        assert request.url.params["uploadType"] == "multipart"
        assert request.headers["Content-Type"] == "multipart/related; boundary=----NoteFlowBoundary"
        body = request.content.decode("utf-8")
        assert '"parents": ["folder"]' in body
        assert '"name": "Notes"' in body
        assert blob.id == "b1"

    @pytest.mark.asyncio
    async def test_update_blob_patches_in_place(self):
        captured = {}

        def handler(request):
            captured["request"] = request
            return httpx.Response(200, json={"id": "b1", "name": "a.json"})

        client, _ = make_client(handler)

        await client.update_blob("b1", "a.json", {"id": "a"})

        assert captured["request"].method == "PATCH"
        assert captured["request"].url.path == "/upload/drive/v3/files/b1"

    @pytest.mark.asyncio
    async def test_delete_blob(self):
        captured = {}

        def handler(request):
            captured["request"] = request
            return httpx.Response(204)

        client, _ = make_client(handler)

        await client.delete_blob("b1")

        assert captured["request"].method == "DELETE"
        assert captured["request"].url.path == "/drive/v3/files/b1"


class TestAttachments:

    @pytest.mark.asyncio
    async def test_upload_file_base64_encodes_content(self, isolated_temp_dir):
        source = isolated_temp_dir / "report.pdf"
        source.write_bytes(b"%PDF-1.4 data")
        uploads = []

        def handler(request):
            if request.method == "GET":
                return files_response({"id": "folder", "name": "NoteFlow"})
            uploads.append(request)
            return httpx.Response(200, json={"id": "f9", "name": "report.pdf", "webViewLink": "https://drive/f9"})

        client, _ = make_client(handler)

        info = await client.upload_file(source)

        assert info["id"] == "f9"
        body = uploads[0].content
        assert b"Content-Type: application/pdf" in body
        assert b"Content-Transfer-Encoding: base64" in body
        assert base64.b64encode(b"%PDF-1.4 data") in body
        assert uploads[0].headers["Content-Type"] == "multipart/related; boundary=----NoteFlowUpload"

    @pytest.mark.asyncio
    async def test_download_file_writes_bytes(self, isolated_temp_dir):
        client, _ = make_client(lambda request: httpx.Response(200, content=b"binary\x00data"))
        dest = isolated_temp_dir / "out" / "file.bin"

        path = await client.download_file("f1", dest)

        assert path == dest
        assert dest.read_bytes() == b"binary\x00data"

    @pytest.mark.asyncio
    async def test_search_files_escapes_query(self):
        def handler(request):
            assert request.url.params["q"] == "name contains 'Bob\\'s notes' and trashed=false"
            assert request.url.params["pageSize"] == "5"
            return files_response({"id": "f1", "name": "Bob's notes.txt", "webViewLink": "https://drive/f1"})

        client, _ = make_client(handler)

        results = await client.search_files("Bob's notes", page_size=5)

        assert results[0].web_view_link == "https://drive/f1"

    @pytest.mark.asyncio
    async def test_get_file_url(self):
        client, _ = make_client(lambda request: httpx.Response(
            200, json={"id": "f1", "name": "a.pdf", "webContentLink": "https://drive/download/f1"}
        ))

        assert await client.get_file_url("f1") == {"url": "https://drive/download/f1", "name": "a.pdf"}


@pytest.mark.parametrize("value,expected", [
    ("plain", "plain"),
    ("it's", "it\\'s"),
    ("back\\slash", "back\\\\slash"),
])
def test_escape_query_value(value, expected):
    assert escape_query_value(value) == expected


@pytest.mark.asyncio
async def test_close_releases_http_client():
    client, _ = make_client(lambda request: files_response())

    async with client:
        await client.list_blobs("folder")

    assert client._client is None
