########## Reference Graph Tests ##########
# Graph construction from stored flags and consistency auditing.

from __future__ import annotations

from stautils.core import config
from stautils.core.backlinks import JournalBacklinks
from stautils.core.reference_graph import build_reference_graph, export_edges, referenced_by_mismatches
from stautils.demo.stautils_demo import build_demo_world

EARTH = "JournalEntry.sector001.JournalEntryPage.earth"
UTOPIA = "JournalEntry.sector001.JournalEntryPage.utopia"


def test_graph_mirrors_references() -> None:
    """Each resolvable reference becomes one edge tagged with the source kind."""

    # 1 Sync and build the graph.                                             # steps
    world = build_demo_world()
    JournalBacklinks(world).sync()
    graph = build_reference_graph(world)
    # 2 Content documents plus the referenced journal container.             # steps
    assert graph.number_of_nodes() == 7
    assert graph.number_of_edges() == 9
    assert graph.has_edge(EARTH, UTOPIA)
    assert graph.has_edge("RollTable.encounters", "JournalEntry.sector001")
    assert graph.edges["Actor.gowron", "Actor.picard"]["kind"] == "Actor"
    assert graph.nodes["JournalEntry.sector001"]["name"] == "Sector 001"


def test_synced_world_has_no_mismatches() -> None:
    world = build_demo_world()
    JournalBacklinks(world).sync()
    assert referenced_by_mismatches(world) == []


def test_unsynced_world_reports_missing_backlinks() -> None:
    world = build_demo_world()
    earth = world.resolve(EARTH)
    world.set_flag(earth, config.FLAG_REFERENCES, ["Actor.picard"])
    assert referenced_by_mismatches(world) == [(EARTH, "Actor.picard")]


def test_stale_backlink_is_reported() -> None:
    world = build_demo_world()
    JournalBacklinks(world).sync()
    phaser = world.resolve("Item.phaser")
    links = world.get_flag(phaser, config.FLAG_REFERENCED_BY)
    links["RollTable"] = ["RollTable.encounters"]
    world.set_flag(phaser, config.FLAG_REFERENCED_BY, links)
    assert referenced_by_mismatches(world) == [("RollTable.encounters", "Item.phaser")]


def test_deleted_documents_are_not_nodes() -> None:
    world = build_demo_world()
    world.remove("Item.phaser")
    JournalBacklinks(world).sync()
    graph = build_reference_graph(world)
    assert "Item.phaser" not in graph
    assert referenced_by_mismatches(world) == []


def test_export_edges() -> None:
    world = build_demo_world()
    JournalBacklinks(world).sync()
    exported = export_edges(build_reference_graph(world))
    assert exported["Actor.picard"] == [EARTH, "Item.phaser"]
    assert "Item.phaser" not in exported
