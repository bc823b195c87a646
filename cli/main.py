"""CLI entry point — operator tools for the tag roll engine.

Usage:
  tagroll init-db                 create or migrate the database
  tagroll characters              list character sheets
  tagroll rolls -s SCENE          list stored rolls
  tagroll burn KIND:ID ...        set persistent burn flags
  tagroll --help                  show all commands
"""

import logging
import sys
from pathlib import Path

import click
from rich.panel import Panel

from cli.theme import (
    get_console,
    app_header,
    command_panel,
    success_panel,
    character_tree,
    roll_table,
    status_markup,
    styled_tag,
    tag_lines,
)
from config.exceptions import TagNotFoundError, TagRollError
from config.logging_config import setup_logging
from config.settings import Settings
from engine.modifier import calculate_breakdown
from engine.persistence import RollRepository
from engine.resolver import TagResolver, categorize
from models.database import Database
from models.enums import RollStatus, SceneEntryType
from models.tags import TagReference
from tools.tag_text import format_modifier

console = get_console()


def _init_logging(verbose: bool):
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose else logging.INFO
    settings = Settings()
    setup_logging(level=level, log_dir=settings.log_dir, console_enabled=verbose)


def _open_repository(settings: Settings) -> tuple[Database, RollRepository]:
    db = Database(settings.sqlite_db_path)
    return db, RollRepository(db, TagResolver(db), settings.improvement_threshold)


def _parse_refs(keys: tuple[str, ...]) -> list[TagReference]:
    refs = []
    for key in keys:
        try:
            refs.append(TagReference.from_key(key))
        except ValueError:
            console.print(f"[error]Invalid tag key '{key}', expected KIND:ID[/]")
            sys.exit(1)
    return refs


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose):
    """tagroll — inspect character sheets and rolls, manage burn state.

    \b
    Tag keys have the form KIND:ID, for example:
      character_theme_tag:12
      character_backpack:3
    """
    _init_logging(verbose)


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

@cli.command(name="init-db")
def init_db():
    """Create the database schema (safe to run repeatedly)."""
    settings = Settings()
    Database(settings.sqlite_db_path)
    console.print(f"[success]Database ready at {settings.sqlite_db_path}[/]")


@cli.command()
@click.argument("target", type=click.Path(dir_okay=False, path_type=Path))
def backup(target):
    """Copy the database file to TARGET."""
    settings = Settings()
    db = Database(settings.sqlite_db_path)
    path = db.backup_database(target)
    console.print(f"[success]Backup written to {path}[/]")


# ---------------------------------------------------------------------------
# Characters and scenes
# ---------------------------------------------------------------------------

@cli.command()
@click.option("--owner", "-o", default=None, help="Only characters owned by this actor id")
def characters(owner):
    """List character sheets."""
    settings = Settings()
    db = Database(settings.sqlite_db_path)

    found = db.list_characters(owner)
    if not found:
        console.print("[warning]No characters found.[/]")
        return
    for character in found:
        active = " [success](active)[/]" if character.is_active else ""
        owner_text = character.owner_id or "unassigned"
        console.print(
            f"[roll.id]{character.id}[/] [character.name]{character.name}[/] "
            f"[muted]owner: {owner_text}[/]{active}"
        )


@cli.command(name="show-character")
@click.argument("character_id", type=int)
def show_character(character_id):
    """Show a character sheet with burn state and theme improvements."""
    settings = Settings()
    db = Database(settings.sqlite_db_path)

    character = db.get_character(character_id)
    if not character:
        console.print(f"[error]Character {character_id} not found[/]")
        sys.exit(1)

    console.print(app_header())
    console.print(character_tree(character))


@cli.command()
@click.argument("scene_id")
def scene(scene_id):
    """List the tags, statuses, limits and blocked entries of a scene."""
    settings = Settings()
    db = Database(settings.sqlite_db_path)

    entries = db.list_scene_entries(scene_id)
    if not entries:
        console.print(f"[warning]Scene {scene_id} has no entries.[/]")
        return
    for entry_type in SceneEntryType:
        names = [e.tag for e in entries if e.entry_type == entry_type]
        if names:
            rendered = ", ".join(styled_tag(n, categorize(n)) for n in names)
            console.print(f"[stat.label]{entry_type.value}:[/] {rendered}")


# ---------------------------------------------------------------------------
# Rolls
# ---------------------------------------------------------------------------

@cli.command()
@click.option("--scene", "-s", "scene_id", default=None, help="Only rolls in this scene")
@click.option(
    "--status", "status_name", default=None,
    type=click.Choice([s.value for s in (RollStatus.SUBMITTED, RollStatus.CONFIRMED, RollStatus.EXECUTED)]),
    help="Only rolls in this status",
)
def rolls(scene_id, status_name):
    """List stored rolls, newest first."""
    settings = Settings()
    _, repository = _open_repository(settings)

    status = RollStatus(status_name) if status_name else None
    found = repository.list_rolls(scene_id, status)
    if not found:
        console.print("[warning]No rolls found.[/]")
        return
    console.print(roll_table(found))


@cli.command(name="show-roll")
@click.argument("roll_id", type=int)
def show_roll(roll_id):
    """Show one roll with its tags and current modifier."""
    settings = Settings()
    _, repository = _open_repository(settings)

    try:
        roll = repository.get_roll(roll_id)
    except TagRollError as e:
        console.print(f"[error]{e}[/]")
        sys.exit(1)

    resolver = repository.resolver
    fields = {
        "Scene": roll.scene_id,
        "Creator": roll.creator_id,
        "Status": status_markup(roll.status),
        "Character": str(roll.acting_character_id or "-"),
    }
    if roll.is_reaction:
        fields["Reaction to"] = f"#{roll.reaction_to_roll_id}"
    if roll.confirmed_by:
        fields["Confirmed by"] = roll.confirmed_by
    if roll.might_modifier:
        fields["Might"] = format_modifier(roll.might_modifier)
    if roll.description:
        fields["Description"] = roll.description

    console.print(app_header())
    console.print(command_panel(f"Roll #{roll.id}", fields))
    console.print(Panel(
        tag_lines(roll.help_tags, resolver, roll.burned_tags, roll.help_source_owner),
        title="[success]Help[/]", border_style="green", padding=(0, 1),
    ))
    console.print(Panel(
        tag_lines(roll.hinder_tags, resolver, owners=roll.hinder_source_owner),
        title="[error]Hinder[/]", border_style="red", padding=(0, 1),
    ))

    try:
        breakdown = calculate_breakdown(roll.help_tags, roll.hinder_tags, roll.burned_tags, resolver)
    except TagNotFoundError as e:
        console.print(f"[warning]Modifier unavailable: {e}[/]")
        return
    console.print(
        f"[stat.label]Modifier:[/] [stat.value]{format_modifier(breakdown.total)}[/] "
        f"[muted](help {breakdown.help_modifier}, hinder {breakdown.hinder_modifier})[/]"
    )


@cli.command(name="prune-roll")
@click.argument("roll_id", type=int)
def prune_roll(roll_id):
    """Remove tags from a roll whose sheet entries no longer exist."""
    settings = Settings()
    _, repository = _open_repository(settings)

    try:
        removed = repository.delete_invalid_tags(roll_id)
    except TagRollError as e:
        console.print(f"[error]{e}[/]")
        sys.exit(1)
    console.print(f"[success]Removed {removed} stale tags from roll #{roll_id}[/]")


@cli.command(name="delete-roll")
@click.argument("roll_id", type=int)
@click.option("--force", "-f", is_flag=True, help="Skip confirmation")
def delete_roll(roll_id, force):
    """Delete a stored roll and its tags."""
    settings = Settings()
    _, repository = _open_repository(settings)

    if not force:
        confirmed = click.confirm(f"Delete roll #{roll_id}? This cannot be undone", default=False)
        if not confirmed:
            console.print("[warning]Cancelled[/]")
            return

    if not repository.delete_roll(roll_id):
        console.print(f"[error]Roll #{roll_id} not found[/]")
        sys.exit(1)
    console.print(f"[success]Roll #{roll_id} deleted[/]")


# ---------------------------------------------------------------------------
# Burn state and improvements
# ---------------------------------------------------------------------------

@cli.command()
@click.argument("keys", nargs=-1, required=True)
def burn(keys):
    """Mark sheet tags as burned (KIND:ID ...)."""
    settings = Settings()
    _, repository = _open_repository(settings)

    try:
        changed = repository.mark_burned(_parse_refs(keys))
    except TagRollError as e:
        console.print(f"[error]{e}[/]")
        sys.exit(1)
    console.print(f"[success]Burned {changed} tags[/]")


@cli.command()
@click.argument("keys", nargs=-1, required=True)
def refresh(keys):
    """Clear the burn flag on sheet tags (KIND:ID ...)."""
    settings = Settings()
    _, repository = _open_repository(settings)

    try:
        changed = repository.refresh(_parse_refs(keys))
    except TagRollError as e:
        console.print(f"[error]{e}[/]")
        sys.exit(1)
    console.print(f"[success]Refreshed {changed} tags[/]")


@cli.command()
def improvements():
    """List themes that have earned enough improvements to develop."""
    settings = Settings()
    db = Database(settings.sqlite_db_path)

    ready = db.list_themes_ready(settings.improvement_threshold)
    if not ready:
        console.print("[muted]No themes are ready to develop.[/]")
        return
    for theme in ready:
        console.print(
            f"[roll.id]{theme.id}[/] [bold]{theme.name}[/] "
            f"[muted](character {theme.character_id})[/] "
            f"[success]{theme.improvements} improvements[/]"
        )


@cli.command()
@click.argument("theme_id", type=int)
@click.option("--force", "-f", is_flag=True, help="Skip confirmation")
def develop(theme_id, force):
    """Reset a theme's improvement counter after it has been developed."""
    settings = Settings()
    db = Database(settings.sqlite_db_path)

    theme = db.get_theme(theme_id)
    if not theme:
        console.print(f"[error]Theme {theme_id} not found[/]")
        sys.exit(1)

    if not force:
        confirmed = click.confirm(
            f"Reset improvements of '{theme.name}' ({theme.improvements})?", default=False
        )
        if not confirmed:
            console.print("[warning]Cancelled[/]")
            return

    db.set_theme_improvements(theme_id, 0)
    console.print(success_panel("Theme developed", f"  {theme.name}: improvements reset to 0"))


def main():
    """Entry point."""
    cli()


if __name__ == "__main__":
    main()
