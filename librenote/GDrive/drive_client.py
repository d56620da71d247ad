# drive_client.py
# Description: Google Drive v3 client implementing the remote blob store
#
# All calls go through `_request`, which attaches the bearer token and, on a
# 401, refreshes the credential and retries the same request exactly once.
#
# Imports
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
#
# Third-Party Imports
import httpx
from loguru import logger
#
# Local Imports
from .auth import IdentityProvider
from .multipart import build_binary_multipart, build_json_multipart
from ..Sync.errors import DriveAPIError, LocalIOError, NotAuthenticatedError, TransportError
from ..Sync.remote_store import FOLDER_MIME_TYPE, JSON_MIME_TYPE, RemoteBlob, RemoteBlobStore
from ..Utils.atomic_file_ops import atomic_write_bytes
from ..Utils.mime_types import guess_mime_type
#
#######################################################################################################################
#
# Classes and Functions:

logger = logger.bind(module="drive_client")

DRIVE_BASE_URL = "https://www.googleapis.com"
FILES_PATH = "/drive/v3/files"
UPLOAD_PATH = "/upload/drive/v3/files"
BLOB_FIELDS = "id,name,mimeType,modifiedTime"
SEARCH_FIELDS = "id,name,mimeType,webViewLink,iconLink,modifiedTime"


def escape_query_value(value: str) -> str:
    """Escape a literal for use inside single quotes in a Drive `q` expression."""
    return value.replace('\\', '\\\\').replace("'", "\\'")


def _describe_error(response: httpx.Response) -> str:
    try:
        data = response.json()
        if isinstance(data, dict) and isinstance(data.get('error'), dict):
            return data['error'].get('message') or response.reason_phrase
    except ValueError:
        pass
    return (response.text or response.reason_phrase)[:200]


class GoogleDriveClient(RemoteBlobStore):
    """Folder and blob operations against the Drive REST API."""

    def __init__(self,
                 identity: IdentityProvider,
                 base_url: str = DRIVE_BASE_URL,
                 timeout: float = 30.0,
                 http_client: Optional[httpx.AsyncClient] = None):
        self.identity = identity
        self.base_url = base_url
        self.timeout = timeout
        self._client = http_client

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"User-Agent": "librenote-sync"},
                timeout=self.timeout,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "GoogleDriveClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    #
    # Transport
    #

    async def _send(self, method: str, path: str, token: str, headers: Dict[str, str], **kwargs) -> httpx.Response:
        request_headers = dict(headers)
        request_headers["Authorization"] = f"Bearer {token}"
        try:
            return await self.client.request(method, path, headers=request_headers, **kwargs)
        except httpx.TimeoutException as e:
            raise TransportError(f"Drive request timed out: {method} {path}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Drive request failed: {method} {path}: {e}") from e

    async def _request(self, method: str, path: str, headers: Optional[Dict[str, str]] = None,
                       **kwargs) -> httpx.Response:
        headers = headers or {}
        token = await self.identity.get_access_token()
        response = await self._send(method, path, token, headers, **kwargs)

        if response.status_code == 401:
            logger.info(f"Drive returned 401 for {method} {path}; refreshing token and retrying once")
            token = await self.identity.refresh_token()
            response = await self._send(method, path, token, headers, **kwargs)
            if response.status_code == 401:
                raise NotAuthenticatedError("Google Drive rejected the refreshed credential; sign in again")

        if response.status_code >= 400:
            raise DriveAPIError(
                f"Drive API error {response.status_code} for {method} {path}: {_describe_error(response)}",
                status_code=response.status_code,
            )
        return response

    async def _list_files(self, query: str, fields: str = "id,name",
                          page_size: Optional[int] = None, all_pages: bool = True) -> List[Dict[str, Any]]:
        files: List[Dict[str, Any]] = []
        params: Dict[str, Any] = {'q': query, 'fields': f"nextPageToken,files({fields})"}
        if page_size:
            params['pageSize'] = page_size

        while True:
            data = (await self._request("GET", FILES_PATH, params=params)).json()
            files.extend(data.get('files') or [])
            next_token = data.get('nextPageToken')
            if not all_pages or not next_token:
                return files
            params['pageToken'] = next_token

    #
    # Folder / blob operations
    #

    async def find_or_create_folder(self, name: str) -> str:
        query = f"name='{escape_query_value(name)}' and mimeType='{FOLDER_MIME_TYPE}' and trashed=false"
        folders = await self._list_files(query, all_pages=False)
        if folders:
            if len(folders) > 1:
                # Known ambiguity: several same-named folders exist; the first match is used.
                logger.warning(f"Found {len(folders)} folders named '{name}', using {folders[0]['id']}")
            return folders[0]['id']

        response = await self._request(
            "POST", FILES_PATH,
            params={'fields': 'id'},
            json={'name': name, 'mimeType': FOLDER_MIME_TYPE},
        )
        folder_id = response.json()['id']
        logger.info(f"Created Drive folder '{name}' ({folder_id})")
        return folder_id

    async def list_blobs(self, folder_id: str, mime_filter: Optional[str] = JSON_MIME_TYPE) -> List[RemoteBlob]:
        query = f"'{escape_query_value(folder_id)}' in parents and trashed=false"
        if mime_filter:
            query += f" and mimeType='{escape_query_value(mime_filter)}'"
        return [RemoteBlob.from_api(f) for f in await self._list_files(query, BLOB_FIELDS)]

    async def find_blob(self, folder_id: str, name: str) -> Optional[RemoteBlob]:
        query = (f"name='{escape_query_value(name)}' and '{escape_query_value(folder_id)}' in parents "
                 f"and trashed=false")
        files = await self._list_files(query, BLOB_FIELDS, all_pages=False)
        return RemoteBlob.from_api(files[0]) if files else None

    async def get_blob(self, blob_id: str) -> Union[Any, bytes]:
        response = await self._request("GET", f"{FILES_PATH}/{blob_id}", params={'alt': 'media'})
        try:
            return response.json()
        except ValueError:
            return response.content

    async def put_blob(self, folder_id: str, name: str, content: Any) -> RemoteBlob:
        body, content_type = build_json_multipart(
            {'name': name, 'parents': [folder_id], 'mimeType': JSON_MIME_TYPE}, content
        )
        response = await self._request(
            "POST", UPLOAD_PATH,
            params={'uploadType': 'multipart', 'fields': BLOB_FIELDS},
            headers={'Content-Type': content_type},
            content=body,
        )
        return RemoteBlob.from_api(response.json())

    async def update_blob(self, blob_id: str, name: str, content: Any) -> RemoteBlob:
        body, content_type = build_json_multipart({'name': name}, content)
        response = await self._request(
            "PATCH", f"{UPLOAD_PATH}/{blob_id}",
            params={'uploadType': 'multipart', 'fields': BLOB_FIELDS},
            headers={'Content-Type': content_type},
            content=body,
        )
        return RemoteBlob.from_api(response.json())

    async def delete_blob(self, blob_id: str) -> None:
        await self._request("DELETE", f"{FILES_PATH}/{blob_id}")

    #
    # Attachments and search
    #

    async def upload_file(self, file_path: Union[str, Path], file_name: Optional[str] = None,
                          folder_name: str = "NoteFlow") -> Dict[str, Any]:
        """Upload an arbitrary local file into the application folder."""
        file_path = Path(file_path)
        file_name = file_name or file_path.name
        try:
            data = file_path.read_bytes()
        except OSError as e:
            raise LocalIOError(f"Could not read {file_path}: {e}") from e

        mime_type = guess_mime_type(file_name)
        folder_id = await self.find_or_create_folder(folder_name)
        body, content_type = build_binary_multipart({'name': file_name, 'parents': [folder_id]}, data, mime_type)
        response = await self._request(
            "POST", UPLOAD_PATH,
            params={'uploadType': 'multipart', 'fields': 'id,name,webViewLink,webContentLink'},
            headers={'Content-Type': content_type},
            content=body,
        )
        logger.info(f"Uploaded {file_name} ({mime_type}, {len(data)} bytes)")
        return response.json()

    async def download_file(self, file_id: str, dest_path: Union[str, Path]) -> Path:
        """Download the raw content of a Drive file to `dest_path`."""
        response = await self._request("GET", f"{FILES_PATH}/{file_id}", params={'alt': 'media'})
        dest_path = Path(dest_path)
        try:
            atomic_write_bytes(dest_path, response.content)
        except OSError as e:
            raise LocalIOError(f"Could not write {dest_path}: {e}") from e
        return dest_path

    async def search_files(self, text: str, page_size: int = 20) -> List[RemoteBlob]:
        query = f"name contains '{escape_query_value(text)}' and trashed=false"
        files = await self._list_files(query, SEARCH_FIELDS, page_size=page_size, all_pages=False)
        return [RemoteBlob.from_api(f) for f in files]

    async def get_file_url(self, file_id: str) -> Dict[str, Optional[str]]:
        response = await self._request(
            "GET", f"{FILES_PATH}/{file_id}", params={'fields': 'id,name,webViewLink,webContentLink'}
        )
        data = response.json()
        return {'url': data.get('webViewLink') or data.get('webContentLink'), 'name': data.get('name')}

#
# End of drive_client.py
#######################################################################################################################
