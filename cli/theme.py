"""Unified Rich theme and reusable UI helper functions for the CLI."""

from typing import Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.theme import Theme
from rich.tree import Tree

from models.enums import RollStatus, TagCategory

TAGROLL_THEME = Theme({
    "app.title": "bold",
    "success": "green",
    "warning": "yellow",
    "error": "red",
    "info": "blue",
    "muted": "dim",
    "accent": "cyan",
    "stat.label": "dim",
    "stat.value": "bold",
    "roll.id": "blue",
    "character.name": "bold cyan",
    "tag.tag": "yellow",
    "tag.status": "green",
    "tag.weakness": "magenta",
    "tag.burned": "strike dim",
})

_STATUS_COLORS = {
    RollStatus.SUBMITTED: "yellow",
    RollStatus.CONFIRMED: "cyan",
    RollStatus.EXECUTED: "green",
}


def get_console() -> Console:
    """Return a Console instance with the tagroll theme applied."""
    return Console(theme=TAGROLL_THEME)


def app_header(title: str = "tagroll") -> Rule:
    """Return a Rule element for the application header banner."""
    return Rule(title=f"[bold]{title}[/]", style="dim")


def command_panel(title: str, fields: dict[str, str]) -> Panel:
    """Return a Panel displaying label/value pairs.

    Args:
        title: Panel title (e.g. "Roll #3").
        fields: Ordered dict of label -> value pairs.
    """
    lines = []
    for label, value in fields.items():
        lines.append(f"  [stat.label]{label}:[/] [stat.value]{value}[/]")
    body = "\n".join(lines)
    return Panel(body, title=f"[bold]{title}[/]", box=box.ROUNDED, border_style="dim", padding=(0, 2))


def success_panel(title: str, body: str) -> Panel:
    """Return a green-bordered Panel for success results."""
    return Panel(body, title=f"[success]{title}[/]", box=box.ROUNDED, border_style="green", padding=(0, 2))


def styled_tag(name: str, category: TagCategory = TagCategory.TAG, burned: bool = False) -> str:
    """Markup for one tag name, coloured by category."""
    style = "tag.burned" if burned else f"tag.{category.value}"
    suffix = " [muted](burned)[/]" if burned else ""
    return f"[{style}]{name}[/]{suffix}"


def status_markup(status: RollStatus) -> str:
    color = _STATUS_COLORS.get(status, "white")
    return f"[{color}]{status.value}[/]"


def character_tree(character) -> Tree:
    """Build a Rich Tree of a character sheet.

    Args:
        character: Character with themes, backpack, story tags, statuses
                   and an optional fellowship loaded.
    """
    tree = Tree(f"[character.name]{character.name}[/] [muted](ID: {character.id})[/]")
    for theme in character.themes:
        branch = tree.add(
            f"{styled_tag(theme.name, burned=theme.is_burned)} "
            f"[muted]improvements: {theme.improvements}[/]"
        )
        for tag in theme.tags:
            branch.add(styled_tag(tag.tag, burned=tag.is_burned))
        for weakness in theme.weaknesses:
            branch.add(styled_tag(weakness.tag, TagCategory.WEAKNESS))

    if character.backpack:
        branch = tree.add("[bold]Backpack[/]")
        for item in character.backpack:
            branch.add(styled_tag(item.item, burned=item.is_burned))
    if character.story_tags:
        branch = tree.add("[bold]Story tags[/]")
        for story_tag in character.story_tags:
            branch.add(styled_tag(story_tag.tag, burned=story_tag.is_burned))
    if character.statuses:
        branch = tree.add("[bold]Statuses[/]")
        for status in character.statuses:
            branch.add(styled_tag(status.display_name, TagCategory.STATUS))
    if character.fellowship:
        branch = tree.add(f"[bold]Fellowship:[/] {character.fellowship.name}")
        for tag in character.fellowship.tags:
            branch.add(styled_tag(tag.tag))
        for weakness in character.fellowship.weaknesses:
            branch.add(styled_tag(weakness.tag, TagCategory.WEAKNESS))
    return tree


def roll_table(rolls: list, title: str = "Rolls") -> Table:
    """Build a Rich Table summarising stored rolls."""
    table = Table(title=title, box=box.ROUNDED, border_style="dim", show_header=True, padding=(0, 1))
    table.add_column("ID", style="roll.id", justify="right")
    table.add_column("Scene")
    table.add_column("Creator", style="muted")
    table.add_column("Status")
    table.add_column("Help", justify="right")
    table.add_column("Hinder", justify="right")
    table.add_column("Description")

    for roll in rolls:
        desc = roll.description or ""
        if len(desc) > 40:
            desc = desc[:40] + "..."
        kind = " [accent](reaction)[/]" if roll.is_reaction else ""
        table.add_row(
            str(roll.id),
            roll.scene_id,
            roll.creator_id,
            status_markup(roll.status) + kind,
            str(len(roll.help_tags)),
            str(len(roll.hinder_tags)),
            desc,
        )
    return table


def tag_lines(refs, resolver, burned=(), owners: Optional[dict] = None) -> str:
    """Render selected references one per line, skipping ones that no longer exist."""
    owners = owners or {}
    lines = []
    for ref in sorted(refs, key=lambda r: r.key):
        resolved = resolver.try_resolve(ref)
        if resolved is None:
            lines.append(f"  [error]missing[/] [muted]{ref.key}[/]")
            continue
        line = f"  {styled_tag(resolved.display_name, resolved.category, ref in burned)}"
        if ref in owners:
            line += f" [muted](from character {owners[ref]})[/]"
        lines.append(line)
    return "\n".join(lines) if lines else "  [muted]none[/]"
