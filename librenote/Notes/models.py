# models.py
# Description: Notebook -> Section -> Page data model
#
# The JSON shape matches what the desktop client writes: camelCase timestamp
# keys, ISO-8601 UTC strings with millisecond precision.
#
# Imports
import random
import re
import string
import time
from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Optional, Tuple
#
# Third-Party Imports
from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, Field, PlainSerializer
#
#######################################################################################################################
#
# Constants:

SECTION_COLORS = ['#7719AA', '#0078D4', '#038387', '#107C10', '#CA5010', '#D13438', '#E3008C', '#69797E']
NOTEBOOK_COLORS = ['#7719AA', '#D13438', '#107C10', '#0078D4', '#CA5010', '#038387']

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

WELCOME_PAGE_HTML = (
    '<h1>Welcome to LibreNote</h1>'
    '<p>Your space to capture ideas, organize your thoughts and create content.</p>'
    '<h2>Features</h2>'
    '<ul><li>Rich text editor with professional formatting</li>'
    '<li>Notebooks organized into sections and pages</li>'
    '<li>Google Drive synchronization</li></ul>'
    '<h2>Getting started</h2>'
    '<p>Create a new page or notebook from the side panel.</p>'
)

_BASE36 = string.digits + string.ascii_lowercase

#
#######################################################################################################################
#
# Timestamp handling:

def utc_now() -> datetime:
    # Millisecond precision, so a saved and reloaded timestamp compares equal.
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps are read as UTC so every comparison is between aware values.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Render a timestamp the way JavaScript's Date.toISOString() does."""
    return _as_utc(value).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def validate_notebook_id(notebook_id: str) -> str:
    """Reject ids that cannot name a `<id>.json` file inside one directory."""
    if not notebook_id or not isinstance(notebook_id, str):
        raise ValueError("Notebook id must be a non-empty string")
    if '/' in notebook_id or '\\' in notebook_id or notebook_id in ('.', '..') or '\x00' in notebook_id:
        raise ValueError(f"Notebook id cannot be used as a file name: {notebook_id!r}")
    return notebook_id


def _coerce_id(value: Any) -> Any:
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


Timestamp = Annotated[datetime, AfterValidator(_as_utc), PlainSerializer(format_timestamp, return_type=str)]
NoteId = Annotated[str, BeforeValidator(_coerce_id), Field(min_length=1)]

#
#######################################################################################################################
#
# Models:

class NoteModel(BaseModel):
    """Shared configuration: camelCase on the wire, unknown keys preserved."""
    model_config = ConfigDict(populate_by_name=True, extra="allow", validate_assignment=True)


class Page(NoteModel):
    id: NoteId
    title: str = "Untitled page"
    content: str = ""
    created_at: Timestamp = Field(default=EPOCH, alias="createdAt")
    updated_at: Timestamp = Field(default=EPOCH, alias="updatedAt")


class Section(NoteModel):
    id: NoteId
    name: str = "New section"
    color: Optional[str] = None
    pages: List[Page] = Field(default_factory=list)

    def find_page(self, page_id: str) -> Optional[Page]:
        return next((p for p in self.pages if p.id == page_id), None)


class Notebook(NoteModel):
    """
    Root aggregate. `updated_at` is the only signal the merge looks at, so
    every mutation beneath the notebook must go through `touch()`.
    """
    id: NoteId
    name: str = "Untitled notebook"
    color: str = NOTEBOOK_COLORS[0]
    created_at: Timestamp = Field(default=EPOCH, alias="createdAt")
    updated_at: Timestamp = Field(default=EPOCH, alias="updatedAt")
    sections: List[Section] = Field(default_factory=list)

    @classmethod
    def from_json_dict(cls, data: Dict[str, Any]) -> "Notebook":
        return cls.model_validate(data)

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")

    def touch(self, now: Optional[datetime] = None) -> datetime:
        self.updated_at = now or utc_now()
        return self.updated_at

    def find_section(self, section_id: str) -> Optional[Section]:
        return next((s for s in self.sections if s.id == section_id), None)

    def find_page(self, page_id: str) -> Optional[Tuple[Section, Page]]:
        for section in self.sections:
            page = section.find_page(page_id)
            if page is not None:
                return section, page
        return None

    def apply_default_section_colors(self) -> bool:
        """Give colourless sections a palette colour by position. Returns True if anything changed."""
        changed = False
        for index, section in enumerate(self.sections):
            if not section.color:
                section.color = SECTION_COLORS[index % len(SECTION_COLORS)]
                changed = True
        return changed

#
#######################################################################################################################
#
# Factories:

def generate_id() -> str:
    """Millisecond timestamp in base 36 followed by six random base-36 characters."""
    millis = int(time.time() * 1000)
    encoded = ""
    while millis:
        millis, rem = divmod(millis, 36)
        encoded = _BASE36[rem] + encoded
    suffix = "".join(random.choice(_BASE36) for _ in range(6))
    return (encoded or "0") + suffix


def new_page(title: str = "Untitled page", content: str = "", now: Optional[datetime] = None) -> Page:
    now = now or utc_now()
    return Page(id=generate_id(), title=title, content=content, created_at=now, updated_at=now)


def new_section(index: int = 0, name: str = "New section", now: Optional[datetime] = None) -> Section:
    return Section(
        id=generate_id(),
        name=name,
        color=SECTION_COLORS[index % len(SECTION_COLORS)],
        pages=[new_page(now=now)],
    )


def new_notebook(index: int = 0, name: str = "New notebook", now: Optional[datetime] = None) -> Notebook:
    now = now or utc_now()
    return Notebook(
        id=generate_id(),
        name=name,
        color=NOTEBOOK_COLORS[index % len(NOTEBOOK_COLORS)],
        created_at=now,
        updated_at=now,
        sections=[new_section(0, name="Section 1", now=now)],
    )


def create_default_notebook(now: Optional[datetime] = None) -> Notebook:
    """The notebook created on first run when the local store is empty."""
    now = now or utc_now()
    welcome = new_page(title="Welcome to LibreNote", content=WELCOME_PAGE_HTML, now=now)
    section = Section(id=generate_id(), name="General", color=SECTION_COLORS[0], pages=[welcome])
    return Notebook(
        id=generate_id(),
        name="My Notebook",
        color=NOTEBOOK_COLORS[0],
        created_at=now,
        updated_at=now,
        sections=[section],
    )


def text_preview(html: Optional[str], max_len: int = 60) -> str:
    """Plain-text preview of a page's HTML content."""
    if not html:
        return "Empty page"
    text = re.sub(r'\s+', ' ', re.sub(r'<[^>]+>', ' ', html)).strip()
    if not text:
        return "Empty page"
    return text[:max_len] + "..." if len(text) > max_len else text

#
# End of models.py
#######################################################################################################################
