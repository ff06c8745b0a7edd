########## Demo Runner ##########
# Builds a small world from seeds, syncs backlinks, and prints sample calculations.

from __future__ import annotations

import json
from pathlib import Path
from typing import List, Optional

from ..core import config
from ..core.calculator import compute_stardate, compute_travel
from ..core.reference_graph import build_reference_graph, referenced_by_mismatches
from ..core.runtime import StaUtilsSession
from ..core.types import HostDocument, HostUser, StardateMode, WarpFormula
from ..core.world import SqliteWorld, World

SEED_DIR = Path(__file__).resolve().parent / "seeds"

DEMO_GM = HostUser(id="gm", name="Game Master", is_gm=True)
DEMO_PLAYER = HostUser(id="player", name="Ensign", is_gm=False)


def load_seed_documents(seed_name: str = config.DEMO_WORLD_SEED) -> List[HostDocument]:
    """Load host documents from a seed JSON file."""

    # 1 Parse the seed file and validate each document.                       # steps
    with (SEED_DIR / seed_name).open("r", encoding="utf-8") as handle:
        raw = json.load(handle)
    return [HostDocument(**entry) for entry in raw.get("documents", [])]


def build_demo_world(persist: bool = False, seed_name: str = config.DEMO_WORLD_SEED) -> World:
    """Create a world from seeds, optionally backed by sqlite."""

    # 1 Pick the storage flavour then register every seed document.           # steps
    world: World = SqliteWorld() if persist else World()
    for document in load_seed_documents(seed_name):
        world.add(document)
    return world


def build_demo_session(user: Optional[HostUser] = None, persist: bool = False) -> StaUtilsSession:
    """World plus a GM session that has already run its initial sync."""

    world = build_demo_world(persist=persist)
    StaUtilsSession(world, DEMO_GM).check_initial_sync()
    return StaUtilsSession(world, user or DEMO_GM, last_synced_version=config.SYNC_VERSION)


def main() -> None:
    """Entry point when running the demo script directly."""

    # 1 Sync the seed world and report what links where.                      # steps
    session = build_demo_session()
    graph = build_reference_graph(session.world)
    print(f"Synced {graph.number_of_nodes()} documents, {graph.number_of_edges()} links.")
    for document in session.world.content_documents():
        entries = session.backlinks.entries_for(document, DEMO_PLAYER)
        names = ", ".join(entry.display_name for entry in entries) or "-"
        print(f"  {document.name}: linked from {names}")
    print(f"Consistency issues: {len(referenced_by_mismatches(session.world))}")

    # 2 A few travel and stardate examples.                                   # steps
    for formula in (WarpFormula.TNG, WarpFormula.TOS):
        report = compute_travel(warp=6.0, distance=None, days=3.0, formula=formula)
        print(f"{formula.value.upper()} warp 6 for 3 days: {report.distance_display} ly")
    stardate = compute_stardate(StardateMode.TO_STARDATE, date_value="2364-03-15", time_value="09:30")
    print(f"2364-03-15 09:30 is stardate {stardate.stardate_display}")


if __name__ == "__main__":
    main()
