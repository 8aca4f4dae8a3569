"""
Insight generation state machine.

Availability goes unknown (None) -> available | unavailable(reason), checked
at most once per orchestrator. Generation goes loading -> ready(insights) |
error(message) and may be re-run from any state; each run replaces the
previous result. While unavailable, generation is never attempted.
"""

import logging
from typing import Optional

from .insights import Insights, InsightsProvider
from .providers.base import Availability
from .types import MediaItem
from .viewstate import ViewState

logger = logging.getLogger(__name__)


class InsightsOrchestrator:
    """Drives insight generation for all notes, or for one media item."""

    def __init__(self, provider: InsightsProvider, media_item: Optional[MediaItem] = None):
        self._provider = provider
        self.media_item = media_item
        self.view_state: ViewState[Insights] = ViewState.empty()
        self.availability: Optional[Availability] = None
        self._availability_checked = False

    # -------------------------------------------------------------------------
    # Derived state
    # -------------------------------------------------------------------------

    @property
    def is_model_available(self) -> bool:
        return self.availability is not None and self.availability.is_available

    @property
    def unavailability_reason(self) -> Optional[str]:
        """User-facing reason insights cannot run; None if available or unknown."""
        if self.availability is None:
            return None
        return self.availability.message

    @property
    def navigation_title(self) -> str:
        if self.media_item is not None:
            return f"Insights for {self.media_item.title}"
        return "Insights"

    @property
    def empty_state_message(self) -> str:
        if self.media_item is not None:
            return (
                f"Analyze your notes for {self.media_item.title} "
                "to discover patterns and themes in your experience."
            )
        return "Analyze your notes to discover patterns and preferences in your media consumption."

    # -------------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------------

    async def initialize(self) -> None:
        """Check availability. No-op once checked or once generation has started."""
        if self._availability_checked or not self.view_state.is_empty:
            return
        self._availability_checked = True
        self.availability = await self._provider.availability()
        if not self.availability.is_available:
            logger.info("Insights unavailable: %s", self.availability.reason.value)

    async def generate_insights(self) -> None:
        """
        Generate and store the result in view_state.

        Runs initialize() first if availability is still unknown. When the
        model is unavailable, nothing is attempted and view_state is left as
        it was.
        """
        if self.availability is None:
            await self.initialize()
        if not self.is_model_available:
            logger.debug("Skipping generation: model unavailable")
            return

        self.view_state = ViewState.loading()
        try:
            insights = await self._provider.generate_insights(self.media_item)
        except Exception as e:
            logger.warning("Insight generation failed: %s", e)
            self.view_state = ViewState.error(str(e))
            return
        self.view_state = ViewState.ready(insights)
