# cli.py
# Description: Command line entry point for LibreNote notebook sync
#
# Imports
import argparse
import asyncio
import os
import sys
from typing import List, Optional, Tuple
#
# Third-Party Imports
from loguru import logger
#
# Local Imports
from . import __version__
#
#######################################################################################################################
#
# Functions:

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="librenote",
        description="Sync LibreNote notebooks with Google Drive",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config",
        type=str,
        help="Path to an alternative config.toml"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Console log level (default: from config)"
    )

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("login", help="Sign in to Google Drive in the browser")
    sub.add_parser("logout", help="Forget the stored Google credentials")
    sub.add_parser("status", help="Show sign-in state and local notebook count")
    sub.add_parser("list", help="List local notebooks")
    sub.add_parser("push", help="Upload all local notebooks (remote copies are overwritten)")
    sub.add_parser("pull", help="Download remote notebooks and merge newer ones into the local store")

    upload = sub.add_parser("upload", help="Upload a file into the Drive application folder")
    upload.add_argument("path", help="Local file to upload")
    upload.add_argument("--name", help="File name to use on Drive")

    search = sub.add_parser("search", help="Search Drive files by name")
    search.add_argument("text", help="Text the file name must contain")
    search.add_argument("--limit", type=int, default=20, help="Maximum number of results")

    download = sub.add_parser("download", help="Download a Drive file by id")
    download.add_argument("file_id", help="Drive file id")
    download.add_argument("dest", help="Destination path")
    return parser


def build_services():
    """Wire the identity provider, Drive client, sync engine and notebook library from config."""
    from .config import get_cli_setting
    from .GDrive.auth import GoogleOAuthProvider
    from .GDrive.drive_client import GoogleDriveClient
    from .Notes.local_store import LocalNotebookStore
    from .Notes.notebook_library import NotebookLibrary
    from .Sync.sync_engine import DEFAULT_FOLDER_NAME, DriveSyncEngine

    identity = GoogleOAuthProvider.from_config()
    drive = GoogleDriveClient(identity, timeout=float(get_cli_setting("gdrive", "request_timeout", 30.0)))
    engine = DriveSyncEngine(drive, folder_name=get_cli_setting("gdrive", "folder_name", DEFAULT_FOLDER_NAME))
    library = NotebookLibrary(LocalNotebookStore(), engine)
    return identity, drive, library


def _report_sync(label: str, result) -> int:
    if result.success:
        print(f"{label} complete: {result.count} notebook(s) in {result.duration:.1f}s")
        if result.deleted:
            print(f"  removed from Drive: {', '.join(result.deleted)}")
        if result.skipped:
            print(f"  skipped malformed: {', '.join(result.skipped)}")
        return 0

    print(f"{label} failed: {result.error}", file=sys.stderr)
    if result.needs_reauthentication:
        print("Run `librenote login` to sign in again.", file=sys.stderr)
    return 1


async def _dispatch(args: argparse.Namespace, services: Tuple) -> int:
    identity, drive, library = services

    if args.command == "login":
        await identity.authenticate()
        print("Signed in to Google Drive.")
        return 0

    if args.command == "logout":
        identity.logout()
        print("Signed out.")
        return 0

    if args.command == "status":
        notebooks = library.store.list()
        state = "signed in" if identity.is_authenticated() else "not signed in"
        print(f"Google Drive: {state}")
        print(f"Notebooks: {len(notebooks)} in {library.store.root_dir}")
        return 0

    if args.command == "list":
        for notebook in library.load():
            pages = sum(len(section.pages) for section in notebook.sections)
            print(f"{notebook.id}  {notebook.name}  "
                  f"({len(notebook.sections)} sections, {pages} pages, updated {notebook.updated_at:%Y-%m-%d %H:%M})")
        return 0

    if args.command == "push":
        library.load()
        return _report_sync("Push", await library.sync_up())

    if args.command == "pull":
        library.load()
        result = await library.sync_down()
        if result.success and result.merge is not None:
            print(f"Merged: {len(result.merge.adopted)} new, {len(result.merge.replaced)} updated, "
                  f"{len(result.merge.kept)} kept local")
        return _report_sync("Pull", result)

    if args.command == "upload":
        info = await drive.upload_file(args.path, file_name=args.name, folder_name=library.engine.folder_name)
        print(f"Uploaded {info.get('name')} ({info.get('id')})")
        if info.get('webViewLink'):
            print(f"  {info['webViewLink']}")
        return 0

    if args.command == "search":
        for blob in await drive.search_files(args.text, page_size=args.limit):
            print(f"{blob.id}  {blob.name}  {blob.mime_type or ''}")
        return 0

    if args.command == "download":
        path = await drive.download_file(args.file_id, args.dest)
        print(f"Saved to {path}")
        return 0

    raise ValueError(f"Unknown command: {args.command}")


async def _run(args: argparse.Namespace) -> int:
    from .Sync.errors import LibreNoteError

    services = build_services()
    identity, drive, _ = services
    try:
        return await _dispatch(args, services)
    except LibreNoteError as e:
        logger.debug(f"{args.command} failed: {e!r}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        await drive.close()
        await identity.close()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.config:
        os.environ["LIBRENOTE_CONFIG"] = args.config

    from .config import load_cli_config_and_ensure_existence
    from .logging_config import configure_logging

    load_cli_config_and_ensure_existence(force_reload=True)
    configure_logging(level=args.log_level)

    try:
        return asyncio.run(_run(args))
    except KeyboardInterrupt:
        print("Interrupted.", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())

#
# End of cli.py
#######################################################################################################################
