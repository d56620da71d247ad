# notebook_library.py
# Description: In-memory notebook collection with persistence and Drive sync hooks
#
# This is the layer the UI talks to. Every mutation advances the owning
# notebook's updated_at and saves it, which is what the sync merge relies on.
#
# Imports
from typing import List, Optional
#
# Third-Party Imports
from loguru import logger
#
# Local Imports
from .local_store import LocalNotebookStore
from .models import (
    Notebook, Page, Section, create_default_notebook, new_notebook, new_page, new_section, utc_now,
)
from ..Sync.sync_engine import DriveSyncEngine, MergeSyncResult, SyncResult
#
########################################################################################################################
#
# Classes:

class NotebookLibrary:
    """Owns the in-memory notebook collection."""

    def __init__(self, store: LocalNotebookStore, engine: Optional[DriveSyncEngine] = None):
        self.store = store
        self.engine = engine
        self.notebooks: List[Notebook] = []

    def load(self) -> List[Notebook]:
        """
        Load every notebook from the local store. On first run (empty store)
        a default notebook is created and saved.
        """
        notebooks = self.store.list()
        if not notebooks:
            default = create_default_notebook()
            self.store.save(default)
            notebooks = [default]
            logger.info(f"Created default notebook {default.id}")

        for notebook in notebooks:
            notebook.apply_default_section_colors()
        self.notebooks = notebooks
        return self.notebooks

    def get(self, notebook_id: str) -> Notebook:
        for notebook in self.notebooks:
            if notebook.id == notebook_id:
                return notebook
        raise KeyError(f"Notebook not found: {notebook_id}")

    def _section(self, notebook: Notebook, section_id: str) -> Section:
        section = notebook.find_section(section_id)
        if section is None:
            raise KeyError(f"Section {section_id} not found in notebook {notebook.id}")
        return section

    def _commit(self, notebook: Notebook, now=None) -> Notebook:
        notebook.touch(now)
        self.store.save(notebook)
        return notebook

    #
    # Notebooks
    #

    def add_notebook(self, name: str = "New notebook") -> Notebook:
        notebook = new_notebook(index=len(self.notebooks), name=name)
        self.notebooks.append(notebook)
        self.store.save(notebook)
        return notebook

    def rename_notebook(self, notebook_id: str, name: str) -> Notebook:
        notebook = self.get(notebook_id)
        notebook.name = name
        return self._commit(notebook)

    def set_notebook_color(self, notebook_id: str, color: str) -> Notebook:
        notebook = self.get(notebook_id)
        notebook.color = color
        return self._commit(notebook)

    def delete_notebook(self, notebook_id: str) -> bool:
        """Remove a notebook locally. The remote copy is left until the next push."""
        before = len(self.notebooks)
        self.notebooks = [nb for nb in self.notebooks if nb.id != notebook_id]
        removed_file = self.store.delete(notebook_id)
        return removed_file or len(self.notebooks) != before

    async def delete_notebook_everywhere(self, notebook_id: str) -> SyncResult:
        """Remove a notebook locally and delete its remote blob right away."""
        self.delete_notebook(notebook_id)
        return await self._require_engine().delete_remote_notebook(notebook_id)

    #
    # Sections
    #

    def add_section(self, notebook_id: str, name: str = "New section") -> Section:
        notebook = self.get(notebook_id)
        section = new_section(index=len(notebook.sections), name=name)
        notebook.sections.append(section)
        self._commit(notebook)
        return section

    def rename_section(self, notebook_id: str, section_id: str, name: str) -> Section:
        notebook = self.get(notebook_id)
        section = self._section(notebook, section_id)
        section.name = name
        self._commit(notebook)
        return section

    def delete_section(self, notebook_id: str, section_id: str) -> None:
        notebook = self.get(notebook_id)
        self._section(notebook, section_id)
        notebook.sections = [s for s in notebook.sections if s.id != section_id]
        self._commit(notebook)

    #
    # Pages
    #

    def add_page(self, notebook_id: str, section_id: str, title: str = "Untitled page") -> Page:
        notebook = self.get(notebook_id)
        section = self._section(notebook, section_id)
        now = utc_now()
        page = new_page(title=title, now=now)
        section.pages.append(page)
        self._commit(notebook, now)
        return page

    def update_page(self, notebook_id: str, page_id: str,
                    title: Optional[str] = None, content: Optional[str] = None) -> Page:
        notebook = self.get(notebook_id)
        found = notebook.find_page(page_id)
        if found is None:
            raise KeyError(f"Page {page_id} not found in notebook {notebook_id}")
        _, page = found
        if title is not None:
            page.title = title
        if content is not None:
            page.content = content
        now = utc_now()
        page.updated_at = now
        self._commit(notebook, now)
        return page

    def delete_page(self, notebook_id: str, page_id: str) -> None:
        notebook = self.get(notebook_id)
        found = notebook.find_page(page_id)
        if found is None:
            raise KeyError(f"Page {page_id} not found in notebook {notebook_id}")
        section, _ = found
        section.pages = [p for p in section.pages if p.id != page_id]
        self._commit(notebook)

    def move_page(self, notebook_id: str, page_id: str, target_section_id: str,
                  index: Optional[int] = None) -> Page:
        """Move a page to another section (or reorder it within one)."""
        notebook = self.get(notebook_id)
        found = notebook.find_page(page_id)
        if found is None:
            raise KeyError(f"Page {page_id} not found in notebook {notebook_id}")
        source, page = found
        target = self._section(notebook, target_section_id)

        source.pages = [p for p in source.pages if p.id != page_id]
        target_pages = list(target.pages)
        if index is None:
            target_pages.append(page)
        else:
            target_pages.insert(index, page)
        target.pages = target_pages
        self._commit(notebook)
        return page

    #
    # Sync
    #

    def _require_engine(self) -> DriveSyncEngine:
        if self.engine is None:
            raise RuntimeError("Google Drive sync is not configured")
        return self.engine

    async def sync_up(self) -> SyncResult:
        return await self._require_engine().push_all(self.notebooks)

    async def sync_down(self) -> MergeSyncResult:
        result = await self._require_engine().pull_and_merge(self.notebooks, self.store)
        if result.success:
            for notebook in result.notebooks:
                notebook.apply_default_section_colors()
            self.notebooks = result.notebooks
        return result

#
# End of notebook_library.py
########################################################################################################################
