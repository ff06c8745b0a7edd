########## Session Runtime Tests ##########
# Event routing, GM gating, initial sync, re-entrancy, and sheet rendering.

from __future__ import annotations

import pytest
from pydantic import ValidationError

from stautils.core import config
from stautils.core.runtime import StaUtilsSession
from stautils.core.types import RENDER_KINDS, BacklinkSettings, HostEvent, HostEventType
from stautils.demo.stautils_demo import DEMO_GM, DEMO_PLAYER, build_demo_session, build_demo_world

EARTH = "JournalEntry.sector001.JournalEntryPage.earth"
UTOPIA = "JournalEntry.sector001.JournalEntryPage.utopia"
SYNC_CHANGE = {"flags": {config.FLAG_SCOPE: {config.SYNC_FLAG_MARKER: None}}}


def _page_change(content: str) -> HostEvent:
    return HostEvent(
        event_type=HostEventType.PRE_UPDATE_JOURNAL_PAGE,
        document_uuid=EARTH,
        change={"text": {"content": content}},
    )


def test_ready_runs_initial_sync_once() -> None:
    """The first ready event syncs; later ones see the stored version."""

    # 1 Fresh GM session on an unsynced world.                                # steps
    session = StaUtilsSession(build_demo_world(), DEMO_GM)
    assert session.dispatch(HostEvent(event_type=HostEventType.READY)) == 6
    assert session.last_synced_version == config.SYNC_VERSION
    # 2 Second ready is a no-op.                                              # steps
    assert session.dispatch(HostEvent(event_type=HostEventType.READY)) == 0


def test_players_never_sync() -> None:
    world = build_demo_world()
    session = StaUtilsSession(world, DEMO_PLAYER)
    assert session.check_initial_sync() == 0
    assert session.sync() == 0
    assert session.last_synced_version == 0
    assert all(not document.flags for document in world.documents.values())


def test_disabled_feature_does_nothing() -> None:
    session = StaUtilsSession(build_demo_world(), DEMO_GM, BacklinkSettings(enabled=False))
    assert session.check_initial_sync() == 0
    assert session.dispatch(_page_change("")) is None
    render = HostEvent(event_type=HostEventType.RENDER_ACTOR_SHEET, document_uuid="Actor.picard")
    assert session.dispatch(render) is None


def test_gm_pre_update_rewrites_links() -> None:
    session = build_demo_session()
    assert session.dispatch(_page_change("<p>Only @UUID[.utopia]{Utopia}</p>")) == [UTOPIA]
    picard = session.world.resolve("Actor.picard")
    assert EARTH not in (session.world.get_flag(picard, config.FLAG_REFERENCED_BY) or {}).get("JournalEntryPage", [])


def test_player_pre_update_is_ignored() -> None:
    session = build_demo_session(DEMO_PLAYER)
    assert session.dispatch(_page_change("")) is None
    earth = session.world.resolve(EARTH)
    assert session.world.get_flag(earth, config.FLAG_REFERENCES) == ["Actor.picard", UTOPIA]


def test_pre_update_kind_must_match_event() -> None:
    session = build_demo_session()
    event = HostEvent(event_type=HostEventType.PRE_UPDATE_ACTOR, document_uuid=EARTH, change={"system": {}})
    assert session.dispatch(event) is None


def test_unknown_document_is_ignored() -> None:
    session = build_demo_session()
    event = HostEvent(event_type=HostEventType.PRE_UPDATE_ITEM, document_uuid="Item.nope", change={"system": {}})
    assert session.dispatch(event) is None


def test_in_progress_guard_blocks_reentry() -> None:
    """An update already running for a document suppresses nested ones."""

    session = build_demo_session()
    session.in_progress.add(EARTH)
    assert session.dispatch(_page_change("")) is None
    session.in_progress.clear()
    assert session.dispatch(_page_change("")) == []
    assert session.in_progress == set()


def test_sync_marker_forces_rebuild_when_save_rebuild_is_off() -> None:
    session = build_demo_session()
    session.settings = BacklinkSettings(rebuild_on_save=False)
    session.backlinks.settings = session.settings
    # 1 Content edits are skipped.                                            # steps
    assert session.dispatch(_page_change("")) is None
    # 2 The resync marker still rebuilds from stored content.                 # steps
    event = HostEvent(event_type=HostEventType.PRE_UPDATE_JOURNAL_PAGE, document_uuid=EARTH, change=SYNC_CHANGE)
    assert session.dispatch(event) == ["Actor.picard", UTOPIA]


def test_render_actor_sheet() -> None:
    session = build_demo_session()
    html = session.dispatch(HostEvent(event_type=HostEventType.RENDER_ACTOR_SHEET, document_uuid="Actor.picard"))
    assert "<h2>Linked from</h2>" in html
    assert 'data-uuid="Actor.gowron"' in html
    assert f'data-uuid="{EARTH}"' in html


def test_render_respects_viewer_permission() -> None:
    session = build_demo_session(DEMO_PLAYER)
    html = session.dispatch(HostEvent(event_type=HostEventType.RENDER_ACTOR_SHEET, document_uuid="Actor.picard"))
    assert 'data-uuid="Actor.gowron"' not in html


def test_render_without_backlinks_returns_none() -> None:
    session = build_demo_session()
    event = HostEvent(event_type=HostEventType.RENDER_ROLL_TABLE_SHEET, document_uuid="RollTable.encounters")
    assert session.dispatch(event) is None


def test_render_journal_sheet_per_page() -> None:
    """Journal sheets return one block per page that has links."""

    session = build_demo_session()
    session.settings = BacklinkSettings(heading_tag="h4")
    event = HostEvent(
        event_type=HostEventType.RENDER_JOURNAL_SHEET,
        document_uuid="JournalEntry.sector001",
        page_ids=["utopia"],
    )
    rendered = session.dispatch(event)
    assert list(rendered) == [UTOPIA]
    assert rendered[UTOPIA].startswith('<div class="journal-backlinks"><h4>')
    assert 'data-uuid="RollTable.encounters"' in rendered[UTOPIA]


def test_events_require_a_document() -> None:
    with pytest.raises(ValidationError):
        HostEvent(event_type=HostEventType.RENDER_ITEM_SHEET)


def test_render_journal_page_sheet_merges_container() -> None:
    """A standalone page sheet shows its own sources plus the journal's."""

    # 1 Render the Earth page for a player.                                   # steps
    session = build_demo_session(DEMO_PLAYER)
    event = HostEvent(event_type=HostEventType.RENDER_JOURNAL_PAGE_SHEET, document_uuid=EARTH)
    html = session.dispatch(event)
    # 2 Page-level and journal-level sources both appear.                     # steps
    assert 'data-uuid="Actor.picard"' in html
    assert f'data-uuid="{UTOPIA}"' in html
    assert 'data-uuid="RollTable.encounters"' in html


def test_every_content_kind_has_a_render_event() -> None:
    session = build_demo_session()
    rendered_kinds = set(RENDER_KINDS.values())
    for document in session.world.content_documents():
        assert document.kind in rendered_kinds


def test_render_event_for_wrong_kind_is_ignored() -> None:
    session = build_demo_session()
    event = HostEvent(event_type=HostEventType.RENDER_ACTOR_SHEET, document_uuid=EARTH)
    assert session.dispatch(event) is None
