# local_store.py
# Description: One pretty-printed JSON file per notebook in a local directory
#
# Imports
import json
from pathlib import Path
from typing import List, Optional, Union
#
# Third-Party Imports
from loguru import logger
from pydantic import ValidationError
#
# Local Imports
from .models import Notebook, validate_notebook_id
from ..Sync.errors import LocalIOError
from ..Utils.atomic_file_ops import atomic_write_json
#
#######################################################################################################################
#
# Classes:

logger = logger.bind(module="local_store")


class LocalNotebookStore:
    """
    CRUD over `<root>/<notebook id>.json`.

    The directory is created lazily on first access. There is no locking;
    callers must not write the same notebook concurrently.
    """

    def __init__(self, root_dir: Union[str, Path, None] = None):
        if root_dir is None:
            from ..config import get_notebooks_dir
            root_dir = get_notebooks_dir()
        self.root_dir = Path(root_dir).expanduser()

    def _ensure_dir(self) -> Path:
        try:
            self.root_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise LocalIOError(f"Could not create notebook directory {self.root_dir}: {e}") from e
        return self.root_dir

    def path_for(self, notebook_id: str) -> Path:
        return self.root_dir / f"{validate_notebook_id(notebook_id)}.json"

    def _read(self, file_path: Path) -> Optional[Notebook]:
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Skipping unreadable notebook file {file_path}: {e}")
            return None
        except OSError as e:
            raise LocalIOError(f"Could not read {file_path}: {e}") from e

        if not isinstance(data, dict):
            logger.warning(f"Skipping {file_path}: top-level JSON value is not an object")
            return None
        try:
            return Notebook.from_json_dict(data)
        except ValidationError as e:
            logger.warning(f"Skipping {file_path}: not a notebook ({e.error_count()} validation errors)")
            return None

    def list(self) -> List[Notebook]:
        """Parse every notebook file in the directory, in file-name order."""
        root = self._ensure_dir()
        notebooks = []
        try:
            files = sorted(p for p in root.glob('*.json') if p.is_file())
        except OSError as e:
            raise LocalIOError(f"Could not list {root}: {e}") from e

        for file_path in files:
            notebook = self._read(file_path)
            if notebook is not None:
                notebooks.append(notebook)
        logger.debug(f"Loaded {len(notebooks)} notebooks from {root}")
        return notebooks

    def get(self, notebook_id: str) -> Optional[Notebook]:
        file_path = self.path_for(notebook_id)
        if not file_path.exists():
            return None
        return self._read(file_path)

    def exists(self, notebook_id: str) -> bool:
        return self.path_for(notebook_id).exists()

    def save(self, notebook: Notebook) -> Path:
        """Write (or overwrite) the file named by the notebook's id."""
        self._ensure_dir()
        file_path = self.path_for(notebook.id)
        try:
            atomic_write_json(file_path, notebook.to_json_dict(), indent=2)
        except OSError as e:
            raise LocalIOError(f"Could not save notebook {notebook.id}: {e}") from e
        logger.debug(f"Saved notebook {notebook.id} to {file_path}")
        return file_path

    def delete(self, notebook_id: str) -> bool:
        """Remove the notebook file. Returns False when there was nothing to remove."""
        file_path = self.path_for(notebook_id)
        try:
            file_path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise LocalIOError(f"Could not delete notebook {notebook_id}: {e}") from e
        logger.info(f"Deleted local notebook {notebook_id}")
        return True

#
# End of local_store.py
#######################################################################################################################
