"""CLI commands for refreshing and inspecting the themes tree."""

import asyncio
import re

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text
from rich.tree import Tree as RichTree

from ..config import ThemesConfig
from ..service import create_tree_service
from ..storage.manager import TreeStorage
from ..tree.models import Tree, TreeNode, TreeNodeKind, TreeNodeLabel
from ..utils.log_setup import setup_logging
from .options import (
    CACHE_DIR_OPTION,
    DEPTH_OPTION,
    FORCE_OPTION,
    INCLUDE_CLOSED_OPTION,
    KIND_OPTION,
    LOG_FILE_OPTION,
    SAVE_OPTION,
    VERBOSE_OPTION,
)

console = Console()

HEX_COLOR_PATTERN = re.compile(r"^[0-9A-Fa-f]{6}$")

_KIND_NAMES = {
    "theme": TreeNodeKind.THEME,
    "epic": TreeNodeKind.EPIC,
    "user-story": TreeNodeKind.USER_STORY,
    "userstory": TreeNodeKind.USER_STORY,
    "user story": TreeNodeKind.USER_STORY,
    "issue": TreeNodeKind.ISSUE,
}


def parse_kinds(values: list[str] | None) -> set[TreeNodeKind] | None:
    """Parse ``--kind`` values; None means every kind."""
    if not values:
        return None

    kinds = set()
    for value in values:
        kind = _KIND_NAMES.get(value.strip().lower())
        if kind is None:
            raise typer.BadParameter(
                f"Unknown kind '{value}'. Use theme, epic, user-story or issue"
            )
        kinds.add(kind)
    return kinds


def _label_style(label: TreeNodeLabel) -> str:
    color = label.background_color.strip().lstrip("#")
    if not HEX_COLOR_PATTERN.match(color):
        return "reverse"
    return f"{label.foreground_color} on #{color}"


def _node_label(node: TreeNode) -> Text:
    text = Text()
    text.append(f"[{node.kind.display_name}] ", style="cyan")
    text.append(node.title, style="dim strike" if node.is_closed else "bold")
    text.append(f"  {node.detail_text}", style="dim")

    for label in node.labels:
        text.append(" ")
        text.append(f" {label.name} ", style=_label_style(label))

    if node.release_info is not None and node.release_info.release:
        text.append(f"  {node.release_info}", style="magenta")

    return text


def render_tree(
    tree: Tree,
    kinds: set[TreeNodeKind] | None = None,
    include_closed: bool = True,
    max_depth: int | None = None,
) -> RichTree:
    """Render a tree; filtered-out nodes are skipped but their children kept."""
    root = RichTree(f"[bold]Themes[/bold] ({len(tree)} nodes)")

    def visible(node: TreeNode) -> bool:
        return kinds is None or node.kind in kinds

    def add(parent: RichTree, nodes: list[TreeNode], depth: int) -> None:
        for node in nodes:
            # Closed nodes hide their whole subtree.
            if not include_closed and node.is_closed:
                continue
            if visible(node):
                if max_depth is not None and depth > max_depth:
                    continue
                branch = parent.add(_node_label(node))
                add(branch, node.children, depth + 1)
            else:
                add(parent, node.children, depth)

    add(root, tree.roots, 1)
    return root


def refresh(
    save: bool = SAVE_OPTION,
    force: bool = FORCE_OPTION,
    kind: list[str] | None = KIND_OPTION,
    depth: int | None = DEPTH_OPTION,
    verbose: bool = VERBOSE_OPTION,
    log_file: str | None = LOG_FILE_OPTION,
) -> None:
    """Load the tree from the configured sources and print it.

    Examples:
        themes-tree refresh
        themes-tree refresh --save --kind theme --kind epic
    """
    setup_logging(verbose=verbose, log_file=log_file)
    kinds = parse_kinds(kind)

    config = ThemesConfig()
    try:
        config.validate()
    except ValueError as e:
        console.print(f"❌ Configuration error: {e}")
        raise typer.Exit(1)

    service = create_tree_service(config)
    published = asyncio.run(service.invalidate(force=force))

    snapshot = service.snapshot
    if not published or snapshot is None:
        console.print("❌ Refresh did not publish a tree")
        raise typer.Exit(1)

    console.print(render_tree(snapshot.tree, kinds=kinds, max_depth=depth))

    duration = snapshot.load_duration.total_seconds() if snapshot.load_duration else 0
    console.print(
        f"✅ Loaded {len(snapshot.tree)} nodes in {duration:.1f}s "
        f"({', '.join(p.name for p in service.providers) or 'no sources'})"
    )

    if save and not service.development:
        path = TreeStorage(config.cache_dir).save_tree(snapshot.tree)
        console.print(f"💾 Saved tree to {path}")


def show(
    kind: list[str] | None = KIND_OPTION,
    include_closed: bool = INCLUDE_CLOSED_OPTION,
    depth: int | None = DEPTH_OPTION,
    cache_dir: str | None = CACHE_DIR_OPTION,
) -> None:
    """Print the cached tree snapshot."""
    kinds = parse_kinds(kind)
    storage = TreeStorage(cache_dir or ThemesConfig().cache_dir)

    tree = storage.load_tree()
    if tree is None:
        console.print(
            f"❌ No cached tree at {escape(str(storage.file_path))}. "
            "Run 'themes-tree refresh --save' first."
        )
        raise typer.Exit(1)

    console.print(
        render_tree(tree, kinds=kinds, include_closed=include_closed, max_depth=depth)
    )


def status(cache_dir: str | None = CACHE_DIR_OPTION) -> None:
    """Show cache status and statistics."""
    console.print("📊 Cache Status")

    storage = TreeStorage(cache_dir or ThemesConfig().cache_dir)
    stats = storage.get_storage_stats()

    stats_table = Table(title="Cache Statistics")
    stats_table.add_column("Metric", style="cyan")
    stats_table.add_column("Value", style="green")

    stats_table.add_row("Cached", "yes" if stats["exists"] else "no")
    stats_table.add_row("Nodes", str(stats["total_nodes"]))
    stats_table.add_row("Roots", str(stats["total_roots"]))
    stats_table.add_row("Saved At", str(stats["saved_timestamp"] or "-"))
    stats_table.add_row("Cache Size", f"{stats['total_size_mb']} MB")
    stats_table.add_row("Cache Path", stats["storage_path"])

    console.print(stats_table)
