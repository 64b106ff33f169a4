"""Command-line host for linemarks.

Indexes local files, prints the bookmark tree and manages the persisted
state file.

Usage:
    linemarks scan PATH...      Index files (directories are walked)
    linemarks show              Print the persisted bookmark tree
    linemarks refresh           Rescan every persisted document
    linemarks forget TARGET     Drop one document's bookmarks
    linemarks jump TARGET N     Print path:line:col of the Nth bookmark
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from rich.color import Color, ColorParseError
from rich.console import Console
from rich.markup import escape
from rich.tree import Tree

from linemarks import setup_logging
from linemarks.controller import BookmarkController
from linemarks.host.local import (
    LocalDocumentSource,
    LoggingNavigator,
    path_to_uri,
    uri_to_path,
)
from linemarks.tree import LocationNode

if TYPE_CHECKING:
    from collections.abc import Iterator

    from linemarks.catalog import PatternCatalog
    from linemarks.config import Settings
    from linemarks.tree import TreeModel

console = Console()

_FALLBACK_COLOUR = "yellow"


def _display_name(document_id: str) -> str:
    path = uri_to_path(document_id)
    return str(path) if path else document_id


def _colour(value: str | None, fallback: str) -> str:
    if value:
        try:
            Color.parse(value)
        except ColorParseError:
            return fallback
        return value
    return fallback


def _location_markup(node: LocationNode, catalog: PatternCatalog | None) -> str:
    style = catalog.style_for(node.category) if catalog is not None else None
    ruler = style.overview_ruler_color if style is not None else None
    marker = _colour(ruler, _FALLBACK_COLOUR)
    start = node.location.range.start
    label = escape(node.label)
    if style is not None and style.is_whole_line:
        background = _colour(style.background_color, "default")
        label = f"[on {background}]{label}[/]"
    return (
        f"[{marker}]●[/] [dim]{start.line + 1}:{start.character + 1}[/] {label}"
    )


def render_tree(
    model: TreeModel,
    catalog: PatternCatalog | None = None,
    title: str = "Bookmarks",
) -> Tree:
    """Render the bookmark hierarchy as a rich Tree.

    Markers take the ruler colour of each category's style in *catalog*;
    whole-line styles also shade the label with their background colour.
    """
    root = Tree(f"[bold]{escape(title)}[/]")
    for document in model.list_roots():
        name = escape(_display_name(document.document_id))
        branch = root.add(f"[bold cyan]{name}[/]")
        for node in model.list_children(document):
            if not isinstance(node, LocationNode):
                continue
            branch.add(_location_markup(node, catalog))
    return root


def _iter_files(paths: list[str]) -> Iterator[Path]:
    """Yield files from *paths*, walking directories and skipping dot-dirs."""
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            for child in sorted(path.rglob("*")):
                relative = child.relative_to(path)
                if child.is_file() and not any(
                    part.startswith(".") for part in relative.parts
                ):
                    yield child
        elif path.is_file():
            yield path
        else:
            console.print(f"[yellow]Skipping:[/] {escape(raw)} (not found)")


def _resolve_target(target: str) -> str:
    """Accept either a document URI or a filesystem path."""
    if "://" in target or target.startswith("untitled:"):
        return target
    return path_to_uri(target)


def _print_diagnostics(controller: BookmarkController) -> None:
    for document_id, errors in controller.diagnostics.items():
        for error in errors:
            console.print(
                f"[yellow]Warning:[/] {escape(_display_name(document_id))}: "
                f"{escape(str(error))}"
            )


async def _cmd_scan(controller: BookmarkController, paths: list[str]) -> int:
    source = LocalDocumentSource()
    scanned = 0
    for path in _iter_files(paths):
        try:
            document = await source.open(path_to_uri(path))
        except OSError as exc:
            console.print(f"[red]Error:[/] cannot read {escape(str(path))}: {exc}")
            continue
        if await controller.on_document_visible(document):
            scanned += 1
    _print_diagnostics(controller)
    console.print(render_tree(controller.tree, controller.catalog))
    console.print(
        f"[green]Scanned {scanned} file(s);[/] "
        f"{len(controller.store)} with bookmarks."
    )
    return 0


async def _cmd_show(controller: BookmarkController) -> int:
    if not controller.persistence.available:
        console.print("[yellow]No state file configured; nothing persisted.[/]")
    console.print(render_tree(controller.tree, controller.catalog))
    return 0


async def _cmd_refresh(controller: BookmarkController) -> int:
    rescanned = await controller.refresh()
    _print_diagnostics(controller)
    console.print(render_tree(controller.tree, controller.catalog))
    console.print(f"[green]Rescanned {rescanned} document(s).[/]")
    return 0


async def _cmd_forget(controller: BookmarkController, target: str) -> int:
    document_id = _resolve_target(target)
    if await controller.forget(document_id):
        console.print(f"[green]Forgot[/] {escape(_display_name(document_id))}")
        return 0
    console.print(f"[yellow]No bookmarks for[/] {escape(target)}")
    return 1


async def _cmd_jump(controller: BookmarkController, target: str, index: int) -> int:
    document_id = _resolve_target(target)
    model = controller.tree
    documents = [n for n in model.list_roots() if n.document_id == document_id]
    if not documents:
        console.print(f"[yellow]No bookmarks for[/] {escape(target)}")
        return 1
    children = model.list_children(documents[0])
    if not 1 <= index <= len(children):
        console.print(f"[red]Error:[/] index must be between 1 and {len(children)}")
        return 1
    node = children[index - 1]
    if not isinstance(node, LocationNode):
        console.print(f"[red]Error:[/] entry {index} is not a bookmark")
        return 1
    controller.jump_to(node)
    navigator = controller.navigator
    if isinstance(navigator, LoggingNavigator) and navigator.last_target:
        # Plain print: the target is meant to be consumed by other tools.
        print(navigator.last_target)
    return 0


def _build_parser() -> argparse.ArgumentParser:
    """Build argparse parser for linemarks subcommands."""
    parser = argparse.ArgumentParser(
        prog="linemarks",
        description="Pattern-driven inline bookmarks for text files.",
    )
    parser.add_argument(
        "--state-file",
        type=Path,
        help="State file to use instead of LINEMARKS_STORAGE__STATE_FILE",
    )
    parser.add_argument(
        "--no-state",
        action="store_true",
        help="Do not load or save persisted bookmarks",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    scan_p = sub.add_parser("scan", help="Index files and print their bookmarks")
    scan_p.add_argument("paths", nargs="+", help="Files or directories")

    sub.add_parser("show", help="Print the persisted bookmark tree")
    sub.add_parser("refresh", help="Rescan every persisted document")

    forget_p = sub.add_parser("forget", help="Drop one document's bookmarks")
    forget_p.add_argument("target", help="Document path or URI")

    jump_p = sub.add_parser("jump", help="Print the location of a bookmark")
    jump_p.add_argument("target", help="Document path or URI")
    jump_p.add_argument("index", type=int, help="1-based bookmark index")

    return parser


def _effective_settings(args: argparse.Namespace) -> Settings:
    from linemarks.config import get_settings

    settings = get_settings()
    if args.no_state:
        storage = settings.storage.model_copy(update={"state_file": None})
    elif args.state_file is not None:
        storage = settings.storage.model_copy(update={"state_file": args.state_file})
    else:
        return settings
    return settings.model_copy(update={"storage": storage})


async def run(args: argparse.Namespace, settings: Settings) -> int:
    """Execute one parsed command against a freshly activated controller."""
    controller = BookmarkController.from_settings(
        settings,
        document_source=LocalDocumentSource(),
        navigator=LoggingNavigator(),
    )
    await controller.activate()
    try:
        match args.command:
            case "scan":
                return await _cmd_scan(controller, args.paths)
            case "show":
                return await _cmd_show(controller)
            case "refresh":
                return await _cmd_refresh(controller)
            case "forget":
                return await _cmd_forget(controller, args.target)
            case "jump":
                return await _cmd_jump(controller, args.target, args.index)
        return 2
    finally:
        await controller.deactivate()


def main(argv: list[str] | None = None) -> None:
    """Entry point for the ``linemarks`` command."""
    parser = _build_parser()
    args = parser.parse_args(sys.argv[1:] if argv is None else argv)
    settings = _effective_settings(args)
    setup_logging(settings.app.log_dir, settings.app.log_level)
    sys.exit(asyncio.run(run(args, settings)))


if __name__ == "__main__":
    main()
