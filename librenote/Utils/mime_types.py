# mime_types.py
# Description: MIME type lookup for files uploaded to Drive
#
# Imports
import mimetypes
from pathlib import Path
from typing import Union
#
#######################################################################################################################
#
# Functions:

DEFAULT_MIME_TYPE = "application/octet-stream"

# Office formats are not in every platform's mimetypes table.
_KNOWN_TYPES = {
    '.pdf': 'application/pdf',
    '.png': 'image/png',
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.gif': 'image/gif',
    '.webp': 'image/webp',
    '.doc': 'application/msword',
    '.docx': 'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
    '.xls': 'application/vnd.ms-excel',
    '.xlsx': 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
    '.ppt': 'application/vnd.ms-powerpoint',
    '.pptx': 'application/vnd.openxmlformats-officedocument.presentationml.presentation',
    '.txt': 'text/plain',
    '.csv': 'text/csv',
    '.zip': 'application/zip',
    '.json': 'application/json',
}


def guess_mime_type(file_name: Union[str, Path]) -> str:
    """Return the MIME type for a file name based on its extension."""
    ext = Path(file_name).suffix.lower()
    if ext in _KNOWN_TYPES:
        return _KNOWN_TYPES[ext]
    mime_type, _ = mimetypes.guess_type(str(file_name))
    return mime_type or DEFAULT_MIME_TYPE

#
# End of mime_types.py
#######################################################################################################################
