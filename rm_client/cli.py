#!/usr/bin/env python3
"""
CLI entry point for the reMarkable Cloud client.

Usage:
    # Interactive setup (recommended)
    rm-client --setup

    # Convert one-time code to token (run once)
    rm-client --register <one-time-code>

    # List, upload, download and delete documents
    rm-client --list
    rm-client --upload paper.pdf --folder /Papers
    rm-client --download <document-id> -o paper.zip
    rm-client --delete <document-id>
"""

import argparse
import logging
import sys
import webbrowser
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as pkg_version
from pathlib import Path
from typing import Optional

from rm_client._style import box, dim, error, folder, header, step, success
from rm_client.errors import RemarkableError

REMARKABLE_CONNECT_URL = "https://my.remarkable.com/device/desktop/connect"

try:
    _VERSION = pkg_version("rm-client")
except PackageNotFoundError:
    _VERSION = "dev"

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s: %(message)s",
    )
    if not verbose:
        logging.getLogger("urllib3").setLevel(logging.WARNING)


def _print_token_instructions(token_file: Path) -> None:
    """Print where the token went and how to reuse it elsewhere."""
    print()
    lines = [
        f"Token saved to {token_file}",
        "",
        "To use it on another machine, copy the file or set:",
        "  export REMARKABLE_TOKEN='<contents of the file>'",
    ]
    print(box("Next steps", lines))


def _handle_setup(token_file: Optional[Path] = None) -> None:
    """Interactive setup: open browser, prompt for code, register, save token."""
    print(header(_VERSION))
    print()
    print(step(1, f"Opening {REMARKABLE_CONNECT_URL}..."))
    print("           If the browser doesn't open, visit the URL manually.")
    print()

    try:
        webbrowser.open(REMARKABLE_CONNECT_URL)
    except webbrowser.Error:
        logger.debug("Could not open a browser")

    try:
        code = input(step(2, "Enter the one-time code: ")).strip()
    except (EOFError, KeyboardInterrupt):
        print("\nSetup cancelled.")
        sys.exit(0)

    if not code:
        print("No code entered. Setup cancelled.", file=sys.stderr)
        sys.exit(1)

    from rm_client import api

    try:
        print()
        print("           Registering...")
        api.register_and_get_token(code, token_file)
        print(success("Successfully registered!"))
        _print_token_instructions(token_file or api.get_token_file())
    except RemarkableError as e:
        print(error(f"Registration failed: {e}"), file=sys.stderr)
        sys.exit(1)


def _handle_register(code: str, quiet: bool, token_file: Optional[Path]) -> None:
    from rm_client import api

    if quiet:
        print(api.register_and_get_token(code, token_file))
        return

    print(header(_VERSION))
    print()
    print("           Registering...")
    api.register_and_get_token(code, token_file)
    print(success("Successfully registered!"))
    _print_token_instructions(token_file or api.get_token_file())


def _handle_refresh(token_file: Optional[Path], discover: bool) -> None:
    from rm_client import api

    client = api.get_client(token_file=token_file, discover=discover)
    print(success("Token refreshed"))
    print(dim(f"  storage: {client.storage_url}"))


def _handle_list(token_file: Optional[Path], discover: bool, as_json: bool) -> None:
    from rm_client import api
    from rm_client.paths import TRASH_PREFIX, get_item_path, get_items_by_id
    from rm_client.responses import make_listing

    client = api.get_client(token_file=token_file, discover=discover)
    items = client.sync_root()
    items_by_id = get_items_by_id(items)
    rows = []
    for item in items:
        path = get_item_path(item, items_by_id)
        # Children of trashed folders resolve under /.trash too
        if not path.startswith(TRASH_PREFIX):
            rows.append((path, item))
    rows.sort(key=lambda row: row[0].lower())

    if as_json:
        payload = []
        for path, item in rows:
            entry = item.to_dict()
            entry["path"] = path
            payload.append(entry)
        print(make_listing(payload))
        return

    for path, item in rows:
        label = folder(path) if item.is_folder else path
        print(f"{item.id}  {label}")


def _handle_upload(
    file: str,
    name: Optional[str],
    folder_path: Optional[str],
    token_file: Optional[Path],
    discover: bool,
) -> None:
    from rm_client import api
    from rm_client.models import ROOT_ID
    from rm_client.paths import find_folder, find_similar_folders

    client = api.get_client(token_file=token_file, discover=discover)

    parent = ROOT_ID
    if folder_path and folder_path.strip("/"):
        collection = client.sync_root()
        parent = find_folder(folder_path, collection)
        if parent is None:
            similar = find_similar_folders(folder_path, collection)
            hint = f" Did you mean: {', '.join(similar)}?" if similar else ""
            raise RemarkableError(f"Folder not found: {folder_path}.{hint}")

    doc = client.upload_file(file, name=name, parent=parent)
    print(success(f"Uploaded {doc.name} ({doc.id})"))


def _handle_download(doc_id: str, output: Optional[str], token_file: Optional[Path], discover: bool) -> None:
    from rm_client import api

    client = api.get_client(token_file=token_file, discover=discover)
    data = client.download(doc_id)
    target = Path(output) if output else Path(f"{doc_id}.zip")
    target.write_bytes(data)
    print(success(f"Saved {len(data)} bytes to {target}"))


def _handle_delete(doc_id: str, token_file: Optional[Path], discover: bool) -> None:
    from rm_client import api

    client = api.get_client(token_file=token_file, discover=discover)
    client.delete(doc_id)
    print(success(f"Deleted {doc_id}"))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rm-client",
        description="reMarkable Cloud client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Interactive setup (recommended)
  rm-client --setup

  # Register and get token (run once)
  rm-client --register abcd1234

  # List everything in the cloud
  rm-client --list

  # Upload a PDF into a folder
  rm-client --upload paper.pdf --folder /Papers
""",
    )
    actions = parser.add_mutually_exclusive_group()
    actions.add_argument(
        "--setup",
        action="store_true",
        help="Interactive setup: open browser, enter code, save token",
    )
    actions.add_argument(
        "--register",
        metavar="CODE",
        help="Register with reMarkable using a one-time code and save the token",
    )
    actions.add_argument("--refresh", action="store_true", help="Refresh and save the user token")
    actions.add_argument("--list", action="store_true", help="List all documents and folders")
    actions.add_argument("--upload", metavar="FILE", help="Upload a PDF or EPUB")
    actions.add_argument("--download", metavar="ID", help="Download a document's zip package")
    actions.add_argument("--delete", metavar="ID", help="Delete a document or folder")

    parser.add_argument(
        "--quiet",
        action="store_true",
        help="With --register: output only the raw token JSON (for scripting)",
    )
    parser.add_argument("--json", action="store_true", help="With --list: output JSON")
    parser.add_argument("--name", help="With --upload: visible name (default: file name)")
    parser.add_argument("--folder", metavar="PATH", help="With --upload: destination folder path")
    parser.add_argument("-o", "--output", metavar="FILE", help="With --download: output file")
    parser.add_argument("--token-file", type=Path, help="Token file (default: cache directory)")
    parser.add_argument(
        "--discover",
        action="store_true",
        help="Look up the storage host instead of using the default",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {_VERSION}")
    return parser


def main(argv=None):
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    try:
        if args.setup:
            _handle_setup(args.token_file)
        elif args.register:
            _handle_register(args.register, args.quiet, args.token_file)
        elif args.refresh:
            _handle_refresh(args.token_file, args.discover)
        elif args.list:
            _handle_list(args.token_file, args.discover, args.json)
        elif args.upload:
            _handle_upload(args.upload, args.name, args.folder, args.token_file, args.discover)
        elif args.download:
            _handle_download(args.download, args.output, args.token_file, args.discover)
        elif args.delete:
            _handle_delete(args.delete, args.token_file, args.discover)
        else:
            parser.print_help()
    except (RemarkableError, OSError) as e:
        if args.json:
            from rm_client.responses import make_error

            print(make_error(type(e).__name__, str(e)), file=sys.stderr)
        else:
            print(error(str(e)), file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
