import argparse
import asyncio
import logging
import os
import sys

from tqdm import tqdm

from devtoolbox.client import (
    ImportFormatError,
    LocalSnippetCollection,
    LocalStorage,
    SnippetApiClient,
    SnippetClientError,
)
from devtoolbox.api import ApiSettings
from devtoolbox.api.server import build_kv_store
from devtoolbox.exception_handler import configure_logging
from devtoolbox.snippet import SNIPPET_TYPES, SnippetRepository


logger = logging.getLogger("devtoolbox")

DEFAULT_STORAGE = os.path.join("~", ".devtoolbox", "storage.json")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Manage DevToolbox snippets locally or against a snippet server"
    )
    parser.add_argument(
        "--storage",
        default=os.getenv("DEVTOOLBOX_STORAGE", DEFAULT_STORAGE),
        help=f"Local storage file (default: {DEFAULT_STORAGE})",
    )
    parser.add_argument(
        "--base-url",
        default=os.getenv("DEVTOOLBOX_API_URL", "http://127.0.0.1:8000"),
        help="Snippet server URL (default: http://127.0.0.1:8000)",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "WARNING"),
        help="Logging level (default: WARNING)",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    local = commands.add_parser("local", help="Device-only snippet collection")
    local_commands = local.add_subparsers(dest="local_command", required=True)

    local_list = local_commands.add_parser("list", help="List local snippets")
    local_list.add_argument("--search", default="", help="Case-insensitive text filter")
    local_list.add_argument("--type", default=None, choices=SNIPPET_TYPES, help="Only show snippets of this type")

    local_add = local_commands.add_parser("add", help="Save a snippet locally")
    local_add.add_argument("title")
    local_add.add_argument("content", help="Snippet content, or '-' to read stdin")
    local_add.add_argument("--type", default="custom", choices=SNIPPET_TYPES)

    local_delete = local_commands.add_parser("delete", help="Delete a local snippet")
    local_delete.add_argument("id", type=int)

    local_export = local_commands.add_parser("export", help="Export the collection as JSON")
    local_export.add_argument("--output", "-o", help="Output file (default: stdout)")

    local_import = local_commands.add_parser("import", help="Import a JSON export")
    local_import.add_argument("path")

    public = commands.add_parser("public", help="List recent public snippets")
    public.add_argument("--type", default=None, choices=SNIPPET_TYPES)
    public.add_argument("--limit", type=int, default=20)

    get = commands.add_parser("get", help="Fetch a public snippet by id")
    get.add_argument("id")

    commands.add_parser(
        "repair",
        help="Re-index snippet records missing from owner or public indexes (uses KV_BACKEND, REDIS_URL, KV_NAMESPACE)",
    )

    return parser


def _run_local(args: argparse.Namespace) -> int:
    collection = LocalSnippetCollection(LocalStorage(args.storage))

    if args.local_command == "list":
        needle = args.search.lower()
        for snippet in collection.all():
            if args.type and snippet.type != args.type:
                continue
            if needle and needle not in snippet.title.lower() and needle not in snippet.content.lower():
                continue
            tqdm.write(f"{snippet.id}  [{snippet.type}]  {snippet.title}")
        return 0

    if args.local_command == "add":
        content = sys.stdin.read() if args.content == "-" else args.content
        if not args.title.strip() or not content.strip():
            print("Error: title and content are required", file=sys.stderr)
            return 1
        snippet = collection.add(args.title, content, args.type)
        tqdm.write(f"✅ Saved locally as {snippet.id}")
        return 0

    if args.local_command == "delete":
        if not collection.delete(args.id):
            print(f"Error: no local snippet with id {args.id}", file=sys.stderr)
            return 1
        tqdm.write("✅ Snippet deleted")
        return 0

    if args.local_command == "export":
        document = collection.export_json()
        if args.output:
            with open(args.output, "w", encoding="utf-8") as file_handle:
                file_handle.write(document)
            tqdm.write(f"✅ Exported {len(collection)} snippets to: {args.output}")
        else:
            print(document)
        return 0

    if args.local_command == "import":
        try:
            with open(args.path, "r", encoding="utf-8") as file_handle:
                count = collection.import_json(file_handle.read())
        except FileNotFoundError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1
        except ImportFormatError as exc:
            print(f"Error: Failed to import snippets: {exc.message}", file=sys.stderr)
            return 1
        tqdm.write(f"✅ Imported {count} snippets")
        return 0

    return 1


def _run_remote(args: argparse.Namespace) -> int:
    client = SnippetApiClient(args.base_url)
    try:
        if args.command == "public":
            for item in client.get_public_snippets(type=args.type, limit=args.limit):
                tqdm.write(f"{item['id']}  [{item['type']}]  {item['title']}  ({item['createdAt']})")
            return 0

        snippet = client.get_snippet(args.id)
        tqdm.write(f"# {snippet['title']} [{snippet['type']}]")
        print(snippet["content"])
        return 0
    except SnippetClientError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1


def _run_repair(args: argparse.Namespace) -> int:
    kv = build_kv_store(ApiSettings.from_env())

    async def _repair() -> int:
        try:
            return await SnippetRepository(kv).repair_indexes()
        finally:
            await kv.close()

    repaired = asyncio.run(_repair())
    tqdm.write(f"✅ Restored {repaired} index entries")
    return 0


def main() -> None:
    parser = _build_parser()
    args = parser.parse_args()
    configure_logging(args.log_level)

    try:
        if args.command == "local":
            code = _run_local(args)
        elif args.command == "repair":
            code = _run_repair(args)
        else:
            code = _run_remote(args)
    except KeyboardInterrupt:
        print("\n⚠️ Interrupted", file=sys.stderr)
        sys.exit(1)
    except Exception:
        logger.exception("Fatal error")
        print("\n❌ Fatal error occurred. See log for details.", file=sys.stderr)
        sys.exit(1)

    sys.exit(code)


if __name__ == "__main__":
    main()
