"""
CLI interface for media notes.

Usage:
    medianotes add "Breaking Bad" --kind tv_series
    medianotes child 1a2b3c4d "Pilot" --sort-key S01E01
    medianotes note 5e6f7a8b "Great pilot"
    medianotes insights
"""

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from .api import MediaNotes
from .attributes import MediaAttributeKey
from .config import ModelConfig, save_config
from .errors import MediaNotesError, NotFoundError
from .kinds import MediaKind
from .library import LibrarySortOrder, SearchScope
from .logging_config import configure_quiet_mode, enable_debug_mode, verbose_requested
from .types import MediaItem, Note, format_timestamp

# Set MEDIANOTES_VERBOSE=1 to enable debug mode via environment
if verbose_requested():
    enable_debug_mode()
else:
    configure_quiet_mode(quiet=True)


def _verbose_callback(value: bool):
    if value:
        enable_debug_mode()


# Global state for CLI options
_json_output = False
_store_override: Optional[Path] = None


def _json_callback(value: bool):
    global _json_output
    _json_output = value


def _get_json_output() -> bool:
    return _json_output


def _store_callback(value: Optional[Path]):
    global _store_override
    if value is not None:
        _store_override = value


def _get_store_override() -> Optional[Path]:
    return _store_override


app = typer.Typer(
    name="medianotes",
    help="Notes on the media you watch, read, and listen to.",
    no_args_is_help=True,
    rich_markup_mode=None,
)


@app.callback()
def main_callback(
    verbose: Annotated[bool, typer.Option(
        "--verbose", "-v",
        help="Enable debug-level logging to stderr",
        callback=_verbose_callback,
        is_eager=True,
    )] = False,
    output_json: Annotated[bool, typer.Option(
        "--json", "-j",
        help="Output as JSON",
        callback=_json_callback,
        is_eager=True,
    )] = False,
    store: Annotated[Optional[Path], typer.Option(
        "--store", "-s",
        envvar="MEDIANOTES_STORE_PATH",
        help="Path to the store directory (default: ~/.medianotes/)",
        callback=_store_callback,
        is_eager=True,
    )] = None,
):
    """Notes on the media you watch, read, and listen to."""


# -----------------------------------------------------------------------------
# Common Options
# -----------------------------------------------------------------------------

KindOption = Annotated[
    Optional[str],
    typer.Option(
        "--kind", "-k",
        help="Media kind (movie, tv_series, episode, book, chapter, album, track, live_event, performance, other)",
    )
]

AttrOption = Annotated[
    Optional[list[str]],
    typer.Option(
        "--attr", "-a",
        help="Attribute as key=value (e.g. common.releaseYear=2008); repeatable",
    )
]


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------

def _get_notes() -> MediaNotes:
    """Open the store, exiting cleanly if that fails."""
    import atexit

    try:
        mn = MediaNotes(_get_store_override())
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    atexit.register(mn.close)
    return mn


def _run(coro):
    """Run a coroutine; expected errors become a one-line message and exit 1."""
    try:
        return asyncio.run(coro)
    except (MediaNotesError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


def _parse_kind(value: Optional[str]) -> Optional[MediaKind]:
    if value is None:
        return None
    try:
        return MediaKind.parse(value)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--kind")


def _parse_attrs(attrs: Optional[list[str]]) -> dict[str, str]:
    """Parse key=value attribute list to dict."""
    if not attrs:
        return {}
    parsed = {}
    for attr in attrs:
        if "=" not in attr:
            raise typer.BadParameter(f"Expected key=value, got {attr!r}", param_hint="--attr")
        key, value = attr.split("=", 1)
        parsed[key.strip()] = value
    return parsed


def _short_id(entity) -> str:
    return str(entity.id)[:8]


def _item_dict(item: MediaItem, children: bool = False) -> dict:
    d = {
        "id": str(item.id),
        "title": item.title,
        "kind": item.kind.value,
        "subtitle": item.display_subtitle,
        "sort_key": item.sort_key,
        "parent_id": str(item.parent.id) if item.parent is not None else None,
        "created_at": format_timestamp(item.created_at),
        "updated_at": format_timestamp(item.updated_at),
        "note_count": item.note_count,
        "total_note_count": item.total_note_count,
        "attributes": {a.key: a.value for a in item.attributes},
    }
    if children:
        d["children"] = [_item_dict(c) for c in item.sorted_children]
        d["notes"] = [_note_dict(n) for n in item.all_notes]
    return d


def _note_dict(note: Note) -> dict:
    return {
        "id": str(note.id),
        "media_item_id": str(note.media_item.id) if note.media_item is not None else None,
        "text": note.text,
        "quote": note.quote,
        "created_at": format_timestamp(note.created_at),
        "edited_at": format_timestamp(note.edited_at) if note.edited_at else None,
    }


def _format_item_line(item: MediaItem) -> str:
    count = item.total_note_count
    noun = "note" if count == 1 else "notes"
    line = f"{_short_id(item)}  {item.kind.display_name:<11}  {item.full_path_title}"
    subtitle = item.display_subtitle
    if subtitle:
        line += f" ({subtitle})"
    return f"{line}  ({count} {noun})"


def _format_note_line(note: Note) -> str:
    where = note.media_item.full_path_title if note.media_item is not None else "?"
    edited = " (edited)" if note.was_edited else ""
    return f"{_short_id(note)}  {note.short_date():<12}  [{where}] {note.preview}{edited}"


def _echo_json(data) -> None:
    typer.echo(json.dumps(data, indent=2, ensure_ascii=False))


async def _resolve(mn: MediaNotes, ref: str) -> MediaItem | Note:
    """A media item or note by id or unique id prefix."""
    try:
        return await mn.get_media_item(ref)
    except NotFoundError:
        return await mn.get_note(ref)


# -----------------------------------------------------------------------------
# Commands
# -----------------------------------------------------------------------------

@app.command()
def kinds():
    """List media kinds and what they can contain."""
    rows = [
        {
            "kind": kind.value,
            "name": kind.display_name,
            "child_kind": kind.child_kind.value if kind.child_kind else None,
            "suggested_attributes": [str(k) for k in MediaAttributeKey.suggested_keys(kind)],
        }
        for kind in MediaKind
    ]
    if _get_json_output():
        _echo_json(rows)
        return
    for row in rows:
        contains = f"  contains {row['child_kind']}" if row["child_kind"] else ""
        typer.echo(f"{row['kind']:<12} {row['name']}{contains}")


@app.command()
def add(
    title: Annotated[str, typer.Argument(help="Title of the media")],
    kind: KindOption = None,
    subtitle: Annotated[Optional[str], typer.Option("--subtitle", help="Subtitle (director, author, artist, ...)")] = None,
    sort_key: Annotated[Optional[str], typer.Option("--sort-key", help="Ordering among siblings (e.g. S01E02)")] = None,
    parent: Annotated[Optional[str], typer.Option("--parent", "-p", help="ID of the parent item")] = None,
    attr: AttrOption = None,
):
    """
    Add a media item.

    \b
    Examples:
        medianotes add "Inception" --kind movie --attr common.releaseYear=2010
        medianotes add "Ozymandias" --kind episode --parent 1a2b3c4d --sort-key S05E14
    """
    mn = _get_notes()
    media_kind = _parse_kind(kind)
    attributes = _parse_attrs(attr)

    async def run():
        parent_item = await mn.get_media_item(parent) if parent else None
        resolved_kind = media_kind
        if resolved_kind is None:
            resolved_kind = parent_item.kind.child_kind if parent_item else MediaKind.OTHER
            if resolved_kind is None:
                resolved_kind = MediaKind.OTHER
        return await mn.create_media_item(
            title, resolved_kind,
            subtitle=subtitle, sort_key=sort_key,
            attributes=attributes, parent=parent_item,
        )

    item = _run(run())
    typer.echo(json.dumps(_item_dict(item)) if _get_json_output() else _format_item_line(item))


@app.command()
def child(
    parent: Annotated[str, typer.Argument(help="ID of the parent item")],
    title: Annotated[str, typer.Argument(help="Title of the new child")],
    sort_key: Annotated[Optional[str], typer.Option("--sort-key", help="Ordering among siblings")] = None,
):
    """Add a child (episode, chapter, track, performance) to an item."""
    mn = _get_notes()

    async def run():
        parent_item = await mn.get_media_item(parent)
        return await mn.add_child(parent_item, title, sort_key)

    item = _run(run())
    typer.echo(json.dumps(_item_dict(item)) if _get_json_output() else _format_item_line(item))


@app.command()
def note(
    media: Annotated[str, typer.Argument(help="ID of the media item")],
    text: Annotated[str, typer.Argument(help="Note text")],
    quote: Annotated[Optional[str], typer.Option("--quote", "-q", help="A quote to keep with the note")] = None,
):
    """Attach a note to a media item."""
    mn = _get_notes()

    async def run():
        item = await mn.get_media_item(media)
        return await mn.create_note(item, text, quote)

    created = _run(run())
    typer.echo(json.dumps(_note_dict(created)) if _get_json_output() else _format_note_line(created))


@app.command()
def edit(
    id: Annotated[str, typer.Argument(help="ID of a media item or note")],
    title: Annotated[Optional[str], typer.Option("--title", help="New title (media items)")] = None,
    text: Annotated[Optional[str], typer.Option("--text", help="New text (notes)")] = None,
    quote: Annotated[Optional[str], typer.Option("--quote", "-q", help="New quote (notes); empty to clear")] = None,
    attr: AttrOption = None,
):
    """
    Edit a media item's title/attributes, or a note's text/quote.

    An attribute with an empty value (key=) is removed.
    """
    mn = _get_notes()
    attributes = _parse_attrs(attr)

    async def run():
        target = await _resolve(mn, id)
        if isinstance(target, Note):
            new_text = text if text is not None else target.text
            new_quote = quote if quote is not None else target.quote
            return await mn.update_note(target, new_text, new_quote)
        if title is not None:
            await mn.update_title(target, title)
        if attributes:
            await mn.set_attributes(target, attributes)
        return target

    result = _run(run())
    if isinstance(result, Note):
        typer.echo(json.dumps(_note_dict(result)) if _get_json_output() else _format_note_line(result))
    else:
        typer.echo(json.dumps(_item_dict(result)) if _get_json_output() else _format_item_line(result))


@app.command("list")
def list_items(
    kind: KindOption = None,
    sort: Annotated[LibrarySortOrder, typer.Option("--sort", help="Sort order")] = LibrarySortOrder.RECENTLY_NOTED,
    show_all: Annotated[bool, typer.Option("--all", help="Include items without notes, and children")] = False,
):
    """List your library: top-level items that have notes."""
    mn = _get_notes()
    media_kind = _parse_kind(kind)

    async def run():
        if show_all:
            return await mn.picker(kind=media_kind)
        return await mn.library(media_kind, sort)

    items = _run(run())
    if _get_json_output():
        _echo_json([_item_dict(i) for i in items])
        return
    if not items:
        typer.echo("No media with notes yet. Add one with: medianotes add TITLE --kind KIND")
        return
    for item in items:
        typer.echo(_format_item_line(item))


@app.command()
def show(
    id: Annotated[str, typer.Argument(help="ID of a media item or note")],
    child: Annotated[Optional[str], typer.Option("--child", "-c", help="Only notes under this child (ID)")] = None,
):
    """
    Show a media item with its children and notes, or a single note.

    Notes include those on children (episodes, chapters, tracks); --child
    narrows them to one child's.
    """
    mn = _get_notes()
    target = _run(_resolve(mn, id))

    if isinstance(target, Note):
        if _get_json_output():
            _echo_json(_note_dict(target))
            return
        typer.echo(f"{target.formatted_date()}{'  (edited)' if target.was_edited else ''}")
        if target.media_item is not None:
            typer.echo(f"On: {target.media_item.full_path_title}")
        if target.quote:
            typer.echo(f"> {target.quote}")
        typer.echo(target.text)
        return

    notes_from = target
    if child is not None:
        selected = _run(mn.get_media_item(child))
        notes_from = next((n for n in target.walk() if n.id == selected.id and n is not target), None)
        if notes_from is None:
            typer.echo(f"Error: {selected.title!r} is not under {target.title!r}", err=True)
            raise typer.Exit(1)

    if _get_json_output():
        data = _item_dict(target, children=True)
        data["notes"] = [_note_dict(n) for n in notes_from.all_notes]
        _echo_json(data)
        return
    typer.echo(f"{target.full_path_title}  [{target.kind.display_name}]  {target.id}")
    if target.display_subtitle:
        typer.echo(target.display_subtitle)
    for attribute in target.attributes:
        typer.echo(f"  {attribute.display_name}: {attribute.value}")
    if target.children:
        typer.echo(f"\n{target.kind.child_kind.display_name + 's' if target.kind.child_kind else 'Children'}:")
        for c in target.sorted_children:
            typer.echo(f"  {_format_item_line(c)}")
    notes = notes_from.all_notes
    if notes_from is target:
        typer.echo(f"\nNotes ({len(target.notes)} here, {target.total_note_count} total):")
    else:
        typer.echo(f"\nNotes on {notes_from.full_path_title} ({len(notes)}):")
    for n in notes:
        typer.echo(f"  {_format_note_line(n)}")


@app.command()
def search(
    query: Annotated[str, typer.Argument(help="Text to find in titles and notes")],
    scope: Annotated[SearchScope, typer.Option("--scope", help="Which results to show")] = SearchScope.ALL,
):
    """Search media titles and note text (case-insensitive)."""
    mn = _get_notes()
    results = _run(mn.search(query))
    media = results.media_for(scope)
    notes = results.notes_for(scope)

    if _get_json_output():
        _echo_json({
            "searched": results.searched,
            "media": [_item_dict(i) for i in media],
            "notes": [_note_dict(n) for n in notes],
        })
        return
    if not results.searched:
        typer.echo("Enter a search term.", err=True)
        raise typer.Exit(1)
    if not media and not notes:
        typer.echo(f"No results for {query.strip()!r}")
        return
    if scope is not SearchScope.NOTES:
        typer.echo(f"Media ({len(media)}):")
        for i in media:
            typer.echo(f"  {_format_item_line(i)}")
    if scope is not SearchScope.MEDIA:
        typer.echo(f"Notes ({len(notes)}):")
        for n in notes:
            typer.echo(f"  {_format_note_line(n)}")


@app.command("del")
def del_cmd(
    id: Annotated[list[str], typer.Argument(help="ID(s) of media items or notes to delete")],
):
    """
    Delete media items (with their children and notes) or notes.

    \b
    Examples:
        medianotes del 1a2b3c4d
        medianotes del 1a2b3c4d 9f8e7d6c
    """
    mn = _get_notes()
    had_errors = False

    for one_id in id:
        async def run(ref=one_id):
            target = await _resolve(mn, ref)
            if isinstance(target, Note):
                await mn.delete_note(target)
            else:
                await mn.delete_media_item(target)
            return target

        try:
            target = asyncio.run(run())
        except MediaNotesError as e:
            typer.echo(f"Error: {e}", err=True)
            had_errors = True
            continue
        label = target.preview if isinstance(target, Note) else target.full_path_title
        typer.echo(f"Deleted {_short_id(target)}  {label}")

    if had_errors:
        raise typer.Exit(1)


@app.command()
def insights(
    id: Annotated[Optional[str], typer.Argument(help="ID of a media item (default: all notes)")] = None,
):
    """Ask the configured model for insights drawn only from your notes."""
    mn = _get_notes()

    async def run():
        item = await mn.get_media_item(id) if id else None
        orchestrator = mn.insights(item)
        await orchestrator.initialize()
        if orchestrator.is_model_available:
            await orchestrator.generate_insights()
        return orchestrator

    orchestrator = _run(run())
    if not orchestrator.is_model_available:
        typer.echo(f"{orchestrator.unavailability_reason}", err=True)
        if orchestrator.availability and orchestrator.availability.detail:
            typer.echo(orchestrator.availability.detail, err=True)
        raise typer.Exit(1)

    state = orchestrator.view_state
    if state.is_error:
        typer.echo(f"Error: {state.error_message}", err=True)
        raise typer.Exit(1)

    result = state.data
    if _get_json_output():
        _echo_json(result.model_dump())
        return
    typer.echo(orchestrator.navigation_title)
    typer.echo(f"\n{result.summary}")
    typer.echo(f"\nWhy: {result.rationale}")
    typer.echo(f"\nYou might enjoy: {result.recommendations}")


@app.command()
def config(
    model: Annotated[Optional[str], typer.Option("--model", "-m", help="Model runtime (anthropic, openai, ollama, none)")] = None,
    set_: Annotated[Optional[list[str]], typer.Option("--set", help="Runtime parameter as key=value (e.g. model=llama3.2)")] = None,
):
    """Show or change the store configuration."""
    mn = _get_notes()
    cfg = mn.config

    if model is not None or set_:
        from .providers.base import get_registry
        if model is not None:
            known = get_registry().list_runtimes()
            if model not in known:
                typer.echo(f"Error: unknown model runtime {model!r}. Available: {', '.join(known)}", err=True)
                raise typer.Exit(1)
            cfg.model = ModelConfig(model)
        for key, value in _parse_attrs(set_).items():
            cfg.model.params[key] = int(value) if value.isdigit() else value
        save_config(cfg)

    data = {
        "store": str(cfg.path),
        "config": str(cfg.config_path),
        "model": {"name": cfg.model.name, **cfg.model.params},
        "counts": mn.stats(),
    }
    if _get_json_output():
        _echo_json(data)
        return
    typer.echo(f"store: {data['store']}")
    typer.echo(f"config: {data['config']}")
    typer.echo(f"model: {cfg.model.name}")
    for key, value in cfg.model.params.items():
        typer.echo(f"  {key}: {value}")
    for table, count in data["counts"].items():
        typer.echo(f"{table}: {count}")


# -----------------------------------------------------------------------------

def main():
    try:
        app()
    except SystemExit:
        raise  # Let typer handle exit codes
    except KeyboardInterrupt:
        raise SystemExit(130)  # Standard exit code for Ctrl+C
    except Exception as e:
        # Log full traceback to file, show clean message to user
        from .errors import log_exception
        log_path = log_exception(e, context="medianotes CLI")
        typer.echo(f"Error: {e}", err=True)
        typer.echo(f"Details logged to {log_path}", err=True)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
