"""Command-line access to notes stores.

``marginalia list`` prints the highlights recorded in a notes file;
``marginalia housekeep`` loads a source document with its notes, prunes
collapsed or orphaned entries and saves both.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table

from marginalia import __version__, _setup_logging
from marginalia.config import get_settings
from marginalia.document import Document
from marginalia.highlights.pens import PenRegistry
from marginalia.notes.store import NotesStore
from marginalia.sync.engine import SyncEngine

logger = logging.getLogger(__name__)

console = Console()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="marginalia",
        description="Inspect and tidy marginalia notes stores.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    list_parser = sub.add_parser("list", help="List highlights in a notes store")
    list_parser.add_argument("store", type=Path, help="Path to the notes file")
    list_parser.add_argument(
        "--source", help="Only list highlights for this source document"
    )

    hk_parser = sub.add_parser(
        "housekeep", help="Prune collapsed highlights of a source document"
    )
    hk_parser.add_argument("source", type=Path, help="Path to the source document")
    return parser


def _cmd_list(store_path: Path, source: str | None) -> int:
    if not store_path.exists():
        console.print(f"[red]No notes store at {store_path}[/]")
        return 1
    store = NotesStore.open(store_path)
    names = [source] if source else store.source_names()
    if not names:
        console.print("[yellow]No highlights recorded.[/]")
        return 0

    table = Table(title=str(store.path))
    table.add_column("Source")
    table.add_column("ID", style="cyan")
    table.add_column("Span", justify="right")
    table.add_column("Pen")
    table.add_column("Annotation")
    for name in names:
        for entry in store.get_all(name):
            table.add_row(
                name,
                entry.id,
                f"{entry.beg}-{entry.end}",
                entry.label or "default",
                entry.body_excerpt,
            )
    console.print(table)
    return 0


def _cmd_housekeep(source_path: Path) -> int:
    if not source_path.exists():
        console.print(f"[red]No such document: {source_path}[/]")
        return 1
    engine = SyncEngine(PenRegistry.with_defaults())
    document = Document.load(source_path)
    loaded = engine.load(document)
    store = engine.ensure_store(document)
    orphans = store.prune_orphans(
        document.canonical_name or "", {h.id for h in document.tracker}
    )
    pruned = document.tracker.housekeep(
        on_prune=lambda hid: store.remove(hid, source_name=document.canonical_name)
    )
    store.save()
    console.print(
        f"Loaded {loaded} highlight(s); pruned {pruned} collapsed, "
        f"{orphans} orphaned. Notes: {store.path}"
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    """Entry point for the ``marginalia`` command."""
    args = _build_parser().parse_args(argv if argv is not None else sys.argv[1:])
    _setup_logging(get_settings().app.log_dir)
    try:
        if args.command == "list":
            return _cmd_list(args.store, args.source)
        return _cmd_housekeep(args.source)
    except OSError as exc:
        logger.exception("marginalia %s failed", args.command)
        console.print(f"[red]{exc}[/]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
