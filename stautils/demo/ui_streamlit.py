########## Streamlit UI ##########
# Warp and stardate calculators plus a backlink graph browser over the demo world.

from __future__ import annotations

import sys
from pathlib import Path
from typing import Dict, List, Optional

import networkx as nx
import pandas as pd
import plotly.graph_objects as go
import streamlit as st
from streamlit_plotly_events import plotly_events

########## Path Setup ##########
# Ensures project root is importable when streamlit runs standalone.

# 1 Resolve project root two levels up for package imports.                 # steps
root_path = Path(__file__).resolve().parents[2]
if str(root_path) not in sys.path:
    # 2 Insert the root ahead of site-packages when missing.                 # steps
    sys.path.insert(0, str(root_path))

from stautils.core import config
from stautils.core.calculator import (
    chat_card,
    compute_stardate,
    compute_travel,
    parse_number,
    render_stardate_html,
    render_travel_html,
)
from stautils.core.reference_graph import build_reference_graph, referenced_by_mismatches
from stautils.core.runtime import StaUtilsSession
from stautils.core.types import (
    HEADING_TAGS,
    RENDER_KINDS,
    BacklinkSettings,
    HostEvent,
    HostEventType,
    StardateMode,
    WarpFormula,
)
from stautils.demo.stautils_demo import DEMO_GM, DEMO_PLAYER, build_demo_session

KIND_COLORS = {
    "JournalEntry": "#6d597a",
    "JournalEntryPage": "#2a9d8f",
    "Actor": "#e76f51",
    "Item": "#e9c46a",
    "RollTable": "#264653",
}
RENDER_EVENTS = {kind.value: event for event, kind in RENDER_KINDS.items()}


def heading_tag_index(settings: BacklinkSettings) -> int:
    """Position of the active heading tag in the sidebar choices."""

    return HEADING_TAGS.index(settings.heading_tag)


def _init_session() -> None:
    """Ensure Streamlit session state carries the demo session and chat log."""

    # 1 Build a synced world once per browser session.                        # steps
    if "sta_session" not in st.session_state:
        st.session_state.sta_session = build_demo_session(DEMO_GM)
        st.session_state.chat_log = []
        st.session_state.selected_uuid = None


def _render_sidebar_controls() -> StaUtilsSession:
    """Viewer and backlink settings."""

    session: StaUtilsSession = st.session_state.sta_session
    st.sidebar.markdown("## Viewer")
    viewer = st.sidebar.radio("View as", ["GM", "Player"], horizontal=True)
    session.user = DEMO_GM if viewer == "GM" else DEMO_PLAYER
    st.sidebar.markdown("## Backlinks")
    settings = BacklinkSettings(
        enabled=True,
        rebuild_on_save=st.sidebar.checkbox("Rebuild on save", value=session.settings.rebuild_on_save),
        heading_tag=st.sidebar.selectbox(
            "Heading tag", HEADING_TAGS, index=heading_tag_index(session.settings)
        ),
        min_permission=st.sidebar.slider(
            "Minimum permission",
            config.OWNERSHIP_NONE,
            config.OWNERSHIP_OWNER,
            session.settings.min_permission,
        ),
        debug=st.sidebar.checkbox("Debug logging", value=session.settings.debug),
    )
    session.settings = settings
    session.backlinks.settings = settings
    if st.sidebar.button("Sync backlinks", disabled=not session.user.is_gm):
        count = session.sync()
        st.sidebar.success(f"Synced {count} documents.")
    return session


def _render_warp_tab() -> None:
    """Any two of warp, distance, and time give the third."""

    formula_label = st.radio("Formula", ["TNG", "TOS"], horizontal=True, key="warp-formula")
    formula = WarpFormula(formula_label.lower())
    col_warp, col_distance, col_time = st.columns(3)
    warp = parse_number(col_warp.text_input("Warp factor", key="warp-input"))
    distance = parse_number(col_distance.text_input("Distance (ly)", key="distance-input"))
    days = parse_number(col_time.text_input("Time (days)", key="time-input"))
    report = compute_travel(warp, distance, days, formula)
    results_html = render_travel_html(report)
    st.markdown(results_html, unsafe_allow_html=True)
    if st.button("Send to chat", disabled=not report.valid, key="warp-send"):
        st.session_state.chat_log.append(chat_card(config.WARP_CALCULATOR_TITLE, "fa-rocket", results_html))


def _render_stardate_tab() -> None:
    """Calendar date to stardate and back."""

    mode_label = st.radio("Mode", ["Calendar → Stardate", "Stardate → Calendar"], horizontal=True)
    if mode_label.startswith("Calendar"):
        col_date, col_time = st.columns(2)
        report = compute_stardate(
            StardateMode.TO_STARDATE,
            date_value=col_date.text_input("Date (yyyy-mm-dd)", key="stardate-date"),
            time_value=col_time.text_input("Time (hh:mm)", key="stardate-time"),
        )
    else:
        report = compute_stardate(
            StardateMode.TO_CALENDAR,
            stardate_value=st.text_input("Stardate", key="stardate-value"),
        )
    results_html = render_stardate_html(report)
    st.markdown(results_html, unsafe_allow_html=True)
    if st.button("Send to chat", disabled=not report.valid, key="stardate-send"):
        st.session_state.chat_log.append(chat_card(config.STARDATE_CALCULATOR_TITLE, "fa-calendar", results_html))


def _build_graph_figure(graph: nx.DiGraph) -> Optional[str]:
    """Plot the reference graph and return the clicked document UUID."""

    # 1 Lay out nodes deterministically.                                      # steps
    positions = nx.spring_layout(graph, seed=config.STREAMLIT_GRAPH_SEED)
    edge_x: List[Optional[float]] = []
    edge_y: List[Optional[float]] = []
    for source, target in graph.edges():
        edge_x.extend([positions[source][0], positions[target][0], None])
        edge_y.extend([positions[source][1], positions[target][1], None])
    edge_trace = go.Scatter(
        x=edge_x,
        y=edge_y,
        mode="lines",
        line=dict(width=1, color="#8d99ae"),
        hoverinfo="skip",
        showlegend=False,
    )
    # 2 One marker per document, colored by kind.                             # steps
    node_ids = list(graph.nodes())
    node_trace = go.Scatter(
        x=[positions[node][0] for node in node_ids],
        y=[positions[node][1] for node in node_ids],
        mode="markers+text",
        text=[graph.nodes[node].get("name", node) for node in node_ids],
        textposition="top center",
        customdata=node_ids,
        marker=dict(
            size=18,
            color=[KIND_COLORS.get(graph.nodes[node].get("kind", ""), "#cccccc") for node in node_ids],
            line=dict(color="#1f1f1f", width=1),
        ),
        hovertemplate="%{text}<extra></extra>",
        showlegend=False,
    )
    fig = go.Figure(data=[edge_trace, node_trace])
    fig.update_layout(
        height=450,
        margin=dict(l=10, r=10, t=10, b=10),
        xaxis=dict(showgrid=False, zeroline=False, visible=False),
        yaxis=dict(showgrid=False, zeroline=False, visible=False),
        clickmode="event+select",
    )
    selected_points = plotly_events(fig, click_event=True, hover_event=False, select_event=False, key="graph")
    for point in selected_points or []:
        # node_trace is the second trace (index 1)
        if point.get("curveNumber") != 1:
            continue
        index = point.get("pointIndex", point.get("pointNumber"))
        if index is not None and 0 <= index < len(node_ids):
            return node_ids[index]
    return None


def _render_reference_table(session: StaUtilsSession) -> None:
    rows: List[Dict[str, str]] = []
    for document in session.world.content_documents():
        references = session.world.get_flag(document, config.FLAG_REFERENCES) or []
        rows.append({"Document": document.name, "Kind": document.kind.value, "Links to": ", ".join(references)})
    st.dataframe(pd.DataFrame(rows), hide_index=True, use_container_width=True)


def _render_backlinks_tab(session: StaUtilsSession) -> None:
    """Graph on the left, the selected sheet's backlinks on the right."""

    graph = build_reference_graph(session.world)
    col_graph, col_detail = st.columns([3, 2])
    with col_graph:
        clicked = _build_graph_figure(graph)
        if clicked:
            st.session_state.selected_uuid = clicked
        issues = referenced_by_mismatches(session.world)
        st.caption(f"{graph.number_of_edges()} links, {len(issues)} consistency issues")
    with col_detail:
        selected = st.session_state.selected_uuid
        document = session.world.resolve(selected) if selected else None
        if document is None:
            st.write("Click a document to see what links to it.")
        else:
            st.markdown(f"### {document.name}")
            event = HostEvent(event_type=RENDER_EVENTS[document.kind.value], document_uuid=document.uuid)
            if event.event_type == HostEventType.RENDER_JOURNAL_SHEET:
                rendered = session.dispatch(event) or {}
                html = "".join(rendered.values()) if isinstance(rendered, dict) else ""
            else:
                html = session.dispatch(event)
            st.markdown(html or "No visible backlinks.", unsafe_allow_html=True)
    _render_reference_table(session)


def _render_chat_log() -> None:
    st.markdown("### Chat")
    if not st.session_state.chat_log:
        st.write("Nothing sent yet.")
        return
    for card in st.session_state.chat_log[-5:]:
        st.markdown(card, unsafe_allow_html=True)


def main() -> None:
    """Streamlit app entrypoint."""

    st.set_page_config(page_title="STA Utilities", layout="wide")
    _init_session()
    session = _render_sidebar_controls()
    tab_warp, tab_stardate, tab_links = st.tabs(["Warp", "Stardate", "Backlinks"])
    with tab_warp:
        _render_warp_tab()
    with tab_stardate:
        _render_stardate_tab()
    with tab_links:
        _render_backlinks_tab(session)
    _render_chat_log()


if __name__ == "__main__":
    main()
