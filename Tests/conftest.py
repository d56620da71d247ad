"""
Root conftest.py for shared test fixtures and configuration.
This file provides common fixtures used across the test suite.
"""

import asyncio
import copy
import shutil
import sys
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

# Add project root to Python path for consistent imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from librenote import config
from librenote.Notes.models import Notebook, Page, Section
from librenote.Sync.remote_store import JSON_MIME_TYPE, RemoteBlob, RemoteBlobStore


# ========== Path and File System Fixtures ==========

@pytest.fixture
def isolated_temp_dir():
    """Create an isolated temporary directory that's always cleaned up."""
    temp_dir = tempfile.mkdtemp(prefix="librenote_test_")
    temp_path = Path(temp_dir)
    yield temp_path
    # Ensure cleanup even if test fails
    if temp_path.exists():
        shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def config_file(isolated_temp_dir, monkeypatch):
    """Point LIBRENOTE_CONFIG at a fresh file and reset the config cache around the test."""
    path = isolated_temp_dir / "config" / "config.toml"
    monkeypatch.setenv("LIBRENOTE_CONFIG", str(path))
    monkeypatch.setattr(config, "_CONFIG_CACHE", None)
    yield path
    config._CONFIG_CACHE = None


# ========== Notebook Fixtures ==========

def ts(day: int, hour: int = 0) -> datetime:
    return datetime(2024, 1, day, hour, tzinfo=timezone.utc)


@pytest.fixture
def make_notebook():
    """Factory for small notebooks with a fixed updated_at."""
    def _make(notebook_id: str, updated: datetime, name: Optional[str] = None,
              page_content: str = "<p>hello</p>") -> Notebook:
        page = Page(id=f"{notebook_id}-p1", title="Page", content=page_content,
                    created_at=ts(1), updated_at=updated)
        section = Section(id=f"{notebook_id}-s1", name="General", color="#7719AA", pages=[page])
        return Notebook(id=notebook_id, name=name or f"Notebook {notebook_id}",
                        created_at=ts(1), updated_at=updated, sections=[section])
    return _make


# ========== In-memory Remote Store ==========

class FakeRemoteStore(RemoteBlobStore):
    """
    In-memory stand-in for the Drive folder.

    `gate` (an asyncio.Event) holds every call until it is set, `fail_with`
    makes every call raise, and `calls` records the method names in order.
    """

    def __init__(self):
        self.folders: Dict[str, str] = {}
        self.blobs: Dict[str, Dict[str, Any]] = {}
        self.calls: List[str] = []
        self.gate: Optional[asyncio.Event] = None
        self.fail_with: Optional[BaseException] = None
        self._next_id = 0

    def _new_id(self, prefix: str) -> str:
        self._next_id += 1
        return f"{prefix}{self._next_id}"

    async def _enter(self, name: str) -> None:
        self.calls.append(name)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise self.fail_with

    def _blob(self, blob_id: str) -> RemoteBlob:
        entry = self.blobs[blob_id]
        return RemoteBlob(id=blob_id, name=entry['name'], mime_type=entry['mime_type'])

    def add_blob(self, folder_id: str, name: str, content: Any, mime_type: str = JSON_MIME_TYPE) -> str:
        blob_id = self._new_id("blob")
        self.blobs[blob_id] = {'name': name, 'parent': folder_id, 'mime_type': mime_type, 'content': content}
        return blob_id

    def names_in(self, folder_id: str) -> List[str]:
        return sorted(b['name'] for b in self.blobs.values() if b['parent'] == folder_id)

    def content_of(self, folder_id: str, name: str) -> Any:
        for entry in self.blobs.values():
            if entry['parent'] == folder_id and entry['name'] == name:
                return entry['content']
        raise KeyError(name)

    async def find_or_create_folder(self, name: str) -> str:
        await self._enter("find_or_create_folder")
        if name not in self.folders:
            self.folders[name] = self._new_id("folder")
        return self.folders[name]

    async def list_blobs(self, folder_id: str, mime_filter: Optional[str] = JSON_MIME_TYPE) -> List[RemoteBlob]:
        await self._enter("list_blobs")
        return [
            self._blob(blob_id) for blob_id, entry in self.blobs.items()
            if entry['parent'] == folder_id and (mime_filter is None or entry['mime_type'] == mime_filter)
        ]

    async def find_blob(self, folder_id: str, name: str) -> Optional[RemoteBlob]:
        await self._enter("find_blob")
        for blob_id, entry in self.blobs.items():
            if entry['parent'] == folder_id and entry['name'] == name:
                return self._blob(blob_id)
        return None

    async def get_blob(self, blob_id: str) -> Any:
        await self._enter("get_blob")
        return copy.deepcopy(self.blobs[blob_id]['content'])

    async def put_blob(self, folder_id: str, name: str, content: Any) -> RemoteBlob:
        await self._enter("put_blob")
        blob_id = self.add_blob(folder_id, name, copy.deepcopy(content))
        return self._blob(blob_id)

    async def update_blob(self, blob_id: str, name: str, content: Any) -> RemoteBlob:
        await self._enter("update_blob")
        self.blobs[blob_id]['name'] = name
        self.blobs[blob_id]['content'] = copy.deepcopy(content)
        return self._blob(blob_id)

    async def delete_blob(self, blob_id: str) -> None:
        await self._enter("delete_blob")
        del self.blobs[blob_id]


@pytest.fixture
def fake_remote():
    return FakeRemoteStore()
