########## Reference Graph ##########
# Directed graph view over stored backlink flags for audits and the UI.

from __future__ import annotations

from typing import Dict, List, Tuple

import networkx as nx

from . import config
from .world import World


def build_reference_graph(world: World) -> nx.DiGraph:
    """Return source -> target edges from every document's references flag.

    Targets that no longer resolve are left out, so deleted documents never
    appear as nodes.
    """

    # 1 Add every content document as a node with kind and name.              # steps
    graph = nx.DiGraph()
    for document in world.content_documents():
        graph.add_node(document.uuid, kind=document.kind.value, name=document.name)
    # 2 Add an edge per resolvable outgoing reference.                        # steps
    for document in world.content_documents():
        for target_uuid in world.get_flag(document, config.FLAG_REFERENCES) or []:
            target = world.resolve(target_uuid)
            if target is None:
                continue
            if not graph.has_node(target_uuid):
                graph.add_node(target_uuid, kind=target.kind.value, name=target.name)
            graph.add_edge(document.uuid, target_uuid, kind=document.kind.value)
    return graph


def referenced_by_mismatches(world: World) -> List[Tuple[str, str]]:
    """List (source, target) pairs where referencedBy disagrees with references."""

    graph = build_reference_graph(world)
    mismatches: List[Tuple[str, str]] = []
    # 1 Every edge must be mirrored in the target's referencedBy bucket.      # steps
    for source_uuid, target_uuid, data in graph.edges(data=True):
        target = world.resolve(target_uuid)
        links = world.get_flag(target, config.FLAG_REFERENCED_BY) or {}
        if source_uuid not in links.get(data["kind"], []):
            mismatches.append((source_uuid, target_uuid))
    # 2 Every referencedBy entry must be backed by a live edge.                # steps
    for document in world.documents.values():
        links = world.get_flag(document, config.FLAG_REFERENCED_BY) or {}
        for uuids in links.values():
            for source_uuid in uuids:
                if not graph.has_edge(source_uuid, document.uuid):
                    mismatches.append((source_uuid, document.uuid))
    return mismatches


def export_edges(graph: nx.DiGraph) -> Dict[str, List[str]]:
    """Return a serializable view of the graph for UI work."""

    export: Dict[str, List[str]] = {}
    for source_uuid, target_uuid in graph.edges():
        export.setdefault(source_uuid, []).append(target_uuid)
    return export
