"""
Insight generation from the user's own notes.

The model gets exactly one capability, the notesDatabase tool, and must
answer with an Insights record (summary, rationale, recommendations). It
never sees any data the tool does not return.
"""

import logging
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import GenerationError
from .protocol import NoteRepositoryProtocol
from .providers.base import Availability, ModelRuntime, UnavailableReason, validate_reply
from .types import MediaItem, Note, format_timestamp

logger = logging.getLogger(__name__)


INSIGHTS_INSTRUCTIONS = """\
You are a helpful assistant that provides insights based on user notes for various media.

The user can ask either for overall insights based on all notes added, or specific insights for a single media item.

Always gather the notes with the notesDatabase tool before answering. Use only what the tool returns.

Provide the insights in second person, as if you were speaking to a person.

Include suggestions for similar content they might enjoy.

If you do not have enough notes, just say it. Never invent notes."""

GLOBAL_PROMPT = (
    "Gather all the notes using the notesDatabase tool and use them to generate insights"
)


def media_item_prompt(media_item: MediaItem) -> str:
    return (
        f"Gather the notes for media with item ID: {media_item.id} "
        "using the notesDatabase tool and use them to generate insights"
    )


# -----------------------------------------------------------------------------
# Schemas
# -----------------------------------------------------------------------------

class Insights(BaseModel):
    """Insights based on the notes the user added for various media."""

    summary: str = Field(
        description="A short summary describing the user's tastes, provided in second person."
    )
    rationale: str = Field(
        description="A breakdown of the elements that led to the provided insights, provided in second person."
    )
    recommendations: str = Field(
        description=(
            "Personalized recommendations for new media the user might enjoy, "
            "based on their notes and preferences, provided in second person."
        )
    )

    @classmethod
    def example(cls) -> "Insights":
        return cls(
            summary="You enjoy thought-provoking content that challenges your perspective.",
            rationale=(
                "Your notes reveal a pattern of engagement with media that explores complex "
                "themes and philosophical questions. You frequently highlight moments that "
                "make you think differently about familiar concepts."
            ),
            recommendations=(
                "Based on your preferences, you might enjoy 'Arrival', 'The Leftovers', or "
                "'Recursion' by Blake Crouch."
            ),
        )


class MediaItemData(BaseModel):
    """The media a note is for."""

    title: str = Field(description="The media title the note is for")
    kind: str = Field(description="The media kind the note is for")
    parents: list["MediaItemData"] = Field(
        default_factory=list,
        description="The parents of this media, nearest first. For example, the series of an episode",
    )


class NoteData(BaseModel):
    """A note added by the user, as returned to the model."""

    model_config = ConfigDict(populate_by_name=True)

    text: str = Field(description="The note text")
    created_at_iso8601: str = Field(
        alias="createdAtISO8601",
        description="The date the note was added, formatted as ISO8601 string",
    )
    quote: Optional[str] = Field(default=None, description="Optional quote from the note")
    media_item: MediaItemData = Field(
        alias="mediaItem", description="The media item the note is for"
    )


class NotesDatabaseArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    media_item_id: Optional[str] = Field(
        default=None,
        alias="mediaItemId",
        description="The ID of the media item to gather notes for. If not set, returns all notes.",
    )


def media_item_data(item: MediaItem) -> MediaItemData:
    return MediaItemData(
        title=item.title,
        kind=item.kind.display_name,
        parents=[
            MediaItemData(title=a.title, kind=a.kind.display_name)
            for a in item.ancestors
        ],
    )


def note_data(note: Note) -> Optional[NoteData]:
    """Tool record for a note; None for a note with no media item."""
    if note.media_item is None:
        return None
    return NoteData(
        text=note.text,
        created_at_iso8601=format_timestamp(note.created_at),
        quote=note.quote,
        media_item=media_item_data(note.media_item),
    )


# -----------------------------------------------------------------------------
# Tool
# -----------------------------------------------------------------------------

class NotesDatabaseTool:
    """
    Provides user notes to the model.

    With a mediaItemId, returns only notes whose media item id matches it
    exactly (canonical lowercase UUID text). An id that matches nothing
    yields an empty list, not an error.
    """

    name = "notesDatabase"
    description = (
        "Provides user notes for media items. "
        "Can return all notes or filter by a specific media item ID."
    )

    def __init__(self, note_repository: NoteRepositoryProtocol):
        self._note_repository = note_repository

    def arguments_schema(self) -> dict:
        return NotesDatabaseArgs.model_json_schema()

    async def call(self, arguments: dict) -> list[NoteData]:
        args = NotesDatabaseArgs.model_validate(arguments or {})
        return await self.fetch(args.media_item_id)

    async def fetch(self, media_item_id: Optional[str] = None) -> list[NoteData]:
        notes = await self._note_repository.fetch_all()
        if media_item_id is not None:
            notes = [
                n for n in notes
                if n.media_item is not None and str(n.media_item.id) == media_item_id
            ]
        records = [r for r in map(note_data, notes) if r is not None]
        logger.debug("notesDatabase(%s) -> %d notes", media_item_id, len(records))
        return records


# -----------------------------------------------------------------------------
# Provider
# -----------------------------------------------------------------------------

class InsightsProvider:
    """Generates Insights through a model runtime, global or scoped to one item."""

    def __init__(self, runtime: ModelRuntime, note_repository: NoteRepositoryProtocol):
        self._runtime = runtime
        self._note_repository = note_repository

    async def availability(self) -> Availability:
        """
        Ask the runtime. A runtime that fails to answer is reported as
        unavailable for an unspecified reason.
        """
        try:
            return await self._runtime.availability()
        except Exception as e:
            logger.warning("Availability check failed: %s", e)
            return Availability.unavailable(UnavailableReason.OTHER, str(e))

    async def generate_insights(self, media_item: Optional[MediaItem] = None) -> Insights:
        """
        Run one session and return the validated reply.

        Raises:
            GenerationError: Anything that goes wrong in the session
        """
        if media_item is None:
            prompt = GLOBAL_PROMPT
            logger.info("Generating insights for all notes")
        else:
            prompt = media_item_prompt(media_item)
            logger.info("Generating insights for %s", media_item.id)

        tools = [NotesDatabaseTool(self._note_repository)]
        try:
            result = await self._runtime.respond(INSIGHTS_INSTRUCTIONS, tools, prompt, Insights)
        except GenerationError:
            raise
        except ValidationError as e:
            raise GenerationError(f"Model reply does not match Insights: {e.error_count()} error(s)") from e
        except Exception as e:
            raise GenerationError(f"Insight generation failed: {e}") from e

        if not isinstance(result, Insights):
            result = validate_reply(Insights, result)
        return result
