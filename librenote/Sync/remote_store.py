# remote_store.py
# Description: Interface of the remote blob store the sync engine talks to
#
# Imports
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union
#
#######################################################################################################################
#
# Classes:

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
JSON_MIME_TYPE = "application/json"


@dataclass
class RemoteBlob:
    """A named object inside the remote application folder."""
    id: str
    name: str
    mime_type: Optional[str] = None
    web_view_link: Optional[str] = None
    icon_link: Optional[str] = None
    modified_time: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'RemoteBlob':
        return cls(
            id=data['id'],
            name=data.get('name', ''),
            mime_type=data.get('mimeType'),
            web_view_link=data.get('webViewLink'),
            icon_link=data.get('iconLink'),
            modified_time=data.get('modifiedTime'),
        )


class RemoteBlobStore(ABC):
    """
    Folder/blob operations over a remote file store.

    Implementations raise `NotAuthenticatedError` when no valid credential can
    be obtained and `TransportError` for every other remote failure.
    """

    @abstractmethod
    async def find_or_create_folder(self, name: str) -> str:
        """Return the id of the folder called `name`, creating it if absent. First match wins."""

    @abstractmethod
    async def list_blobs(self, folder_id: str, mime_filter: Optional[str] = JSON_MIME_TYPE) -> List[RemoteBlob]:
        """List the non-trashed blobs inside a folder, optionally restricted to one MIME type."""

    @abstractmethod
    async def find_blob(self, folder_id: str, name: str) -> Optional[RemoteBlob]:
        """Return the first blob called `name` inside the folder, or None."""

    @abstractmethod
    async def get_blob(self, blob_id: str) -> Union[Any, bytes]:
        """Fetch blob content: parsed JSON when it parses, raw bytes otherwise."""

    @abstractmethod
    async def put_blob(self, folder_id: str, name: str, content: Any) -> RemoteBlob:
        """Create a new JSON blob inside the folder."""

    @abstractmethod
    async def update_blob(self, blob_id: str, name: str, content: Any) -> RemoteBlob:
        """Overwrite an existing JSON blob in place."""

    @abstractmethod
    async def delete_blob(self, blob_id: str) -> None:
        """Delete a blob."""
