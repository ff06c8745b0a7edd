########## Runtime ##########
# Per-session state and routing of host events to the backlinks maintainer.

from __future__ import annotations

from typing import Dict, List, Optional, Set, Union

from . import config
from .backlinks import JournalBacklinks, render_backlinks_html
from .runlog import log_run_event
from .types import (
    PRE_UPDATE_KINDS,
    RENDER_KINDS,
    BacklinkEntry,
    BacklinkSettings,
    DocumentKind,
    HostDocument,
    HostEvent,
    HostEventType,
    HostUser,
)
from .world import World

RenderResult = Union[str, Dict[str, str], None]


class StaUtilsSession:
    """State and handlers for one connected client."""

    def __init__(
        self,
        world: World,
        user: HostUser,
        settings: Optional[BacklinkSettings] = None,
        last_synced_version: int = 0,
    ) -> None:
        # 1 Hold host collaborators and settings explicitly.                  # steps
        self.world = world
        self.user = user
        self.settings = settings or BacklinkSettings()
        self.last_synced_version = last_synced_version
        self.backlinks = JournalBacklinks(world, self.settings)
        # 2 Guards documents whose update is still running.                   # steps
        self.in_progress: Set[str] = set()

    def dispatch(self, event: HostEvent) -> Union[RenderResult, List[str], int]:
        """Route a host event to its handler and return the handler's result."""

        if event.event_type == HostEventType.READY:
            return self.check_initial_sync()
        if event.event_type in PRE_UPDATE_KINDS:
            return self.handle_pre_update(event)
        if event.event_type in RENDER_KINDS:
            return self.handle_render(event)
        raise ValueError(f"unhandled host event {event.event_type!r}")

    def _active(self) -> bool:
        return self.settings.enabled

    def check_initial_sync(self) -> int:
        """Run a full sync once per SYNC_VERSION bump; returns documents synced."""

        log_run_event(
            f"check initial sync: last_synced={self.last_synced_version}, sync_version={config.SYNC_VERSION}",
            "session",
        )
        if not self._active() or not self.user.is_gm:
            return 0
        if self.last_synced_version >= config.SYNC_VERSION:
            log_run_event("already synced, skipping initial sync", "session")
            return 0
        synced = self.backlinks.sync()
        self.last_synced_version = config.SYNC_VERSION
        return synced

    def sync(self) -> int:
        """Manual rebuild, as offered by the settings menu button."""

        if not self.user.is_gm:
            log_run_event(f"user {self.user.user_id} is not a GM; sync refused", "session")
            return 0
        return self.backlinks.sync()

    def handle_pre_update(self, event: HostEvent) -> Optional[List[str]]:
        """Apply a pending document change to the backlink flags."""

        # 1 Only the GM writes flags, and only when the feature is on.        # steps
        if not self._active() or not self.user.is_gm:
            return None
        document = self.world.resolve(event.document_uuid or "")
        if document is None:
            log_run_event(f"pre-update for unknown document {event.document_uuid}", "session")
            return None
        if document.kind != PRE_UPDATE_KINDS[event.event_type]:
            log_run_event(f"{event.event_type.value} received for a {document.kind.value}; ignoring", "session")
            return None
        # 2 Skip re-entrant updates for the same document.                    # steps
        if document.uuid in self.in_progress:
            return None
        self.in_progress.add(document.uuid)
        try:
            return self.backlinks.on_pre_update(document, event.change)
        finally:
            self.in_progress.discard(document.uuid)

    def handle_render(self, event: HostEvent) -> RenderResult:
        """Build the backlinks HTML for a rendered sheet.

        Journal sheets return a page UUID -> HTML mapping; other sheets return
        one HTML fragment, or None when there is nothing to show.
        """

        if not self._active():
            return None
        document = self.world.resolve(event.document_uuid or "")
        if document is None:
            return None
        if document.kind != RENDER_KINDS[event.event_type]:
            log_run_event(f"{event.event_type.value} received for a {document.kind.value}; ignoring", "session")
            return None
        if document.kind == DocumentKind.JOURNAL_ENTRY:
            return self._render_journal(document, event.page_ids)
        container = None
        if document.kind == DocumentKind.JOURNAL_ENTRY_PAGE and document.parent_uuid:
            container = self.world.resolve(document.parent_uuid)
        entries = self.backlinks.entries_for(document, self.user, container)
        return self._render(entries)

    def _render_journal(self, journal: HostDocument, page_ids: List[str]) -> Dict[str, str]:
        rendered: Dict[str, str] = {}
        for page_uuid, entries in self.backlinks.journal_sheet_entries(journal, self.user, page_ids).items():
            html = self._render(entries)
            if html:
                rendered[page_uuid] = html
        return rendered

    def _render(self, entries: List[BacklinkEntry]) -> Optional[str]:
        if not entries:
            return None
        return render_backlinks_html(entries, self.settings.heading_tag)
