# errors.py
# Description: Exceptions raised by the storage, Drive and sync layers
#
# Imports
from typing import Optional
#
#######################################################################################################################
#
# Classes:

class LibreNoteError(Exception):
    """Base exception for LibreNote."""
    pass


class NotAuthenticatedError(LibreNoteError):
    """No usable credential: never signed in, or the refresh was rejected."""
    pass


class TransportError(LibreNoteError):
    """The remote endpoint could not be reached or answered with a non-auth error."""
    pass


class DriveAPIError(TransportError):
    """Drive answered with an HTTP error status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class MalformedRemoteDataError(LibreNoteError):
    """A remote blob is not a notebook. Handled per item, never fatal for a pull."""

    def __init__(self, message: str, blob_name: Optional[str] = None):
        super().__init__(message)
        self.blob_name = blob_name


class LocalIOError(LibreNoteError):
    """Reading or writing the local notebook directory failed."""
    pass
