# librenote/__init__.py
# Description: Notebook storage and Google Drive synchronization for LibreNote.
#
__version__ = "0.3.0"
