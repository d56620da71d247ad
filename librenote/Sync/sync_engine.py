# sync_engine.py
# Description: Push/pull of notebooks between the local store and the remote application folder
#
# Imports
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Set, Tuple, Union
#
# Third-Party Imports
from loguru import logger
from pydantic import ValidationError
#
# Local Imports
from .errors import LocalIOError, MalformedRemoteDataError, NotAuthenticatedError, TransportError
from .merge import MergeResult, merge_remote_notebooks
from .remote_store import JSON_MIME_TYPE, RemoteBlobStore
from ..Notes.local_store import LocalNotebookStore
from ..Notes.models import Notebook, validate_notebook_id
from ..Utils.log_sanitizer import safe_error_message
#
########################################################################################################################
#
# Classes and Functions:

DEFAULT_FOLDER_NAME = "NoteFlow"


class SyncDirection(Enum):
    """Enumeration for sync directions."""
    PUSH = "push"
    PULL = "pull"


class SyncErrorKind(Enum):
    """Failure categories surfaced to callers."""
    NOT_AUTHENTICATED = "not_authenticated"
    TRANSPORT = "transport"
    LOCAL_IO = "local_io"
    IN_PROGRESS = "in_progress"
    UNKNOWN = "unknown"


@dataclass
class SyncResult:
    """Structured outcome of a sync operation. Public engine methods never raise."""
    success: bool
    direction: SyncDirection
    error: Optional[str] = None
    error_kind: Optional[SyncErrorKind] = None
    count: int = 0
    notebooks: List[Notebook] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)   # malformed remote blob names
    deleted: List[str] = field(default_factory=list)   # orphaned remote blob names removed by a push
    duration: float = 0.0

    @property
    def needs_reauthentication(self) -> bool:
        return self.error_kind == SyncErrorKind.NOT_AUTHENTICATED

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'success': self.success}
        if not self.success:
            data['error'] = self.error
            data['errorKind'] = self.error_kind.value if self.error_kind else None
        if self.direction == SyncDirection.PUSH:
            data['count'] = self.count
        else:
            data['notebooks'] = [nb.to_json_dict() for nb in self.notebooks]
        return data


@dataclass
class MergeSyncResult(SyncResult):
    """Result of a pull followed by the merge; `notebooks` holds the merged collection."""
    merge: Optional[MergeResult] = None


def blob_name_for(notebook_id: str) -> str:
    return f"{notebook_id}.json"


def parse_remote_notebook(content: Any, blob_name: Optional[str] = None) -> Notebook:
    """
    Validate a fetched payload as a notebook.

    Raises:
        MalformedRemoteDataError: when the payload is not an object with a
            non-empty `id`, does not validate as a notebook, or carries an
            id that cannot be stored as a local file name.
    """
    if not isinstance(content, dict) or not content.get('id'):
        raise MalformedRemoteDataError(f"Blob {blob_name} is not a notebook object", blob_name=blob_name)
    try:
        notebook = Notebook.from_json_dict(content)
    except ValidationError as e:
        raise MalformedRemoteDataError(
            f"Blob {blob_name} failed notebook validation ({e.error_count()} errors)", blob_name=blob_name
        ) from e
    try:
        validate_notebook_id(notebook.id)
    except ValueError as e:
        raise MalformedRemoteDataError(f"Blob {blob_name}: {e}", blob_name=blob_name) from e
    return notebook


def _as_notebook(item: Union[Notebook, Dict[str, Any]]) -> Notebook:
    if isinstance(item, Notebook):
        return item
    return Notebook.from_json_dict(item)


def classify_error(error: BaseException) -> SyncErrorKind:
    if isinstance(error, NotAuthenticatedError):
        return SyncErrorKind.NOT_AUTHENTICATED
    if isinstance(error, TransportError):
        return SyncErrorKind.TRANSPORT
    if isinstance(error, (LocalIOError, OSError)):
        return SyncErrorKind.LOCAL_IO
    return SyncErrorKind.UNKNOWN


class DriveSyncEngine:
    """
    Reconciles the local notebook collection with the remote application folder.

    Push is an unconditional full-document overwrite followed by removal of
    remote notebooks that no longer exist locally. Pull fetches every remote
    notebook; merging is timestamp based (see merge.py). There is no
    server-side locking and no rollback: a push that fails part way leaves
    the blobs it already wrote in place.

    At most one push and one pull run at a time. A second call in the same
    direction while one is outstanding fails immediately with `in_progress`.
    """

    def __init__(self, remote: RemoteBlobStore, folder_name: str = DEFAULT_FOLDER_NAME):
        self.remote = remote
        self.folder_name = folder_name
        self._in_flight: Set[SyncDirection] = set()

    def is_syncing(self, direction: Optional[SyncDirection] = None) -> bool:
        if direction is None:
            return bool(self._in_flight)
        return direction in self._in_flight

    async def _guarded(self, direction: SyncDirection, operation: Callable[[], Awaitable[SyncResult]],
                       result_cls=SyncResult) -> SyncResult:
        if direction in self._in_flight:
            logger.warning(f"Rejected {direction.value}: a {direction.value} is already in progress")
            return result_cls(
                success=False,
                direction=direction,
                error=f"A {direction.value} is already in progress",
                error_kind=SyncErrorKind.IN_PROGRESS,
            )

        # Set before the first await so a concurrent caller sees the flag.
        self._in_flight.add(direction)
        start_time = time.time()
        try:
            result = await operation()
        except Exception as e:
            kind = classify_error(e)
            message = safe_error_message(e)
            if kind == SyncErrorKind.UNKNOWN:
                logger.exception(f"Unexpected error during {direction.value}: {message}")
            else:
                logger.error(f"{direction.value.capitalize()} failed ({kind.value}): {message}")
            result = result_cls(success=False, direction=direction, error=message, error_kind=kind)
        finally:
            self._in_flight.discard(direction)

        result.duration = time.time() - start_time
        return result

    #
    # Push
    #

    async def push_all(self, notebooks: Iterable[Union[Notebook, Dict[str, Any]]]) -> SyncResult:
        """Upload every local notebook and delete remote notebooks that are not in `notebooks`."""
        async def operation() -> SyncResult:
            count, deleted = await self._push(notebooks)
            return SyncResult(success=True, direction=SyncDirection.PUSH, count=count, deleted=deleted)

        return await self._guarded(SyncDirection.PUSH, operation)

    async def _push(self, notebooks: Iterable[Union[Notebook, Dict[str, Any]]]) -> Tuple[int, List[str]]:
        local = [_as_notebook(nb) for nb in notebooks]
        folder_id = await self.remote.find_or_create_folder(self.folder_name)
        logger.info(f"Pushing {len(local)} notebooks to folder '{self.folder_name}' ({folder_id})")

        keep_names = set()
        for notebook in local:
            name = blob_name_for(notebook.id)
            keep_names.add(name)
            payload = notebook.to_json_dict()

            existing = await self.remote.find_blob(folder_id, name)
            if existing is not None:
                await self.remote.update_blob(existing.id, name, payload)
                logger.debug(f"Overwrote remote {name}")
            else:
                await self.remote.put_blob(folder_id, name, payload)
                logger.debug(f"Created remote {name}")

        deleted = []
        for blob in await self.remote.list_blobs(folder_id, JSON_MIME_TYPE):
            if blob.name not in keep_names:
                await self.remote.delete_blob(blob.id)
                deleted.append(blob.name)
                logger.info(f"Deleted orphaned remote notebook {blob.name}")

        logger.info(f"Push complete: {len(local)} written, {len(deleted)} orphans removed")
        return len(local), deleted

    async def delete_remote_notebook(self, notebook_id: str) -> SyncResult:
        """Propagate a local deletion: remove `<id>.json` from the remote folder if present."""
        async def operation() -> SyncResult:
            folder_id = await self.remote.find_or_create_folder(self.folder_name)
            name = blob_name_for(notebook_id)
            blob = await self.remote.find_blob(folder_id, name)
            deleted = []
            if blob is not None:
                await self.remote.delete_blob(blob.id)
                deleted.append(name)
                logger.info(f"Deleted remote notebook {name}")
            return SyncResult(success=True, direction=SyncDirection.PUSH, count=len(deleted), deleted=deleted)

        return await self._guarded(SyncDirection.PUSH, operation)

    #
    # Pull
    #

    async def pull_all(self) -> SyncResult:
        """Fetch every notebook in the remote folder. Malformed blobs are skipped, not fatal."""
        async def operation() -> SyncResult:
            notebooks, skipped = await self._pull()
            return SyncResult(
                success=True, direction=SyncDirection.PULL,
                count=len(notebooks), notebooks=notebooks, skipped=skipped,
            )

        return await self._guarded(SyncDirection.PULL, operation)

    async def _pull(self) -> Tuple[List[Notebook], List[str]]:
        folder_id = await self.remote.find_or_create_folder(self.folder_name)
        blobs = await self.remote.list_blobs(folder_id, JSON_MIME_TYPE)
        logger.info(f"Pulling {len(blobs)} blobs from folder '{self.folder_name}' ({folder_id})")

        notebooks: List[Notebook] = []
        skipped: List[str] = []
        for blob in blobs:
            content = await self.remote.get_blob(blob.id)
            try:
                notebooks.append(parse_remote_notebook(content, blob.name))
            except MalformedRemoteDataError as e:
                logger.warning(f"Skipping malformed remote data: {e}")
                skipped.append(blob.name)

        return notebooks, skipped

    async def pull_and_merge(self, local_notebooks: Iterable[Notebook],
                             local_store: LocalNotebookStore) -> MergeSyncResult:
        """
        Pull, merge against `local_notebooks`, and persist every adopted or
        replaced notebook to `local_store`. Local-only notebooks are untouched.
        """
        local = list(local_notebooks)

        async def operation() -> MergeSyncResult:
            remote, skipped = await self._pull()
            merge = merge_remote_notebooks(local, remote)
            for notebook in merge.changed:
                local_store.save(notebook)
            return MergeSyncResult(
                success=True, direction=SyncDirection.PULL,
                count=len(remote), notebooks=merge.notebooks, skipped=skipped, merge=merge,
            )

        return await self._guarded(SyncDirection.PULL, operation, result_cls=MergeSyncResult)

#
# End of sync_engine.py
########################################################################################################################
