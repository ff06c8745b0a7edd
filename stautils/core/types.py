########## Core Types ##########
# Pydantic models and enums that describe warp, stardate, and backlink data.

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from . import config

HEADING_TAGS: List[str] = ["h1", "h2", "h3", "h4", "h5", "h6"]


class WarpFormula(str, Enum):
    """Physical model used to turn a warp factor into a speed."""

    TNG = "tng"
    TOS = "tos"


class SolveMode(str, Enum):
    """Which travel value the calculator derived from the other two."""

    NONE = "none"
    DISTANCE = "distance"
    TIME = "time"
    WARP = "warp"
    VERIFY = "verify"


class StardateMode(str, Enum):
    """Direction of a stardate conversion."""

    TO_STARDATE = "to_stardate"
    TO_CALENDAR = "to_calendar"


class TravelReport(BaseModel):
    """Outcome of one warp calculator pass."""

    valid: bool
    formula: WarpFormula = WarpFormula.TNG
    solve_mode: SolveMode = SolveMode.NONE
    message: Optional[str] = None
    warp: Optional[float] = None
    distance: Optional[float] = None
    time: Optional[float] = None
    speed: Optional[float] = None
    ly_per_day: Optional[float] = None
    warp_display: str = ""
    distance_display: str = ""
    time_display: str = ""
    speed_display: str = ""
    ly_per_day_display: str = ""


class StardateReport(BaseModel):
    """Outcome of one stardate calculator pass."""

    valid: bool
    mode: StardateMode
    message: Optional[str] = None
    stardate: Optional[float] = None
    calendar_display: str = ""
    stardate_display: str = ""


class DocumentKind(str, Enum):
    """Host document types that take part in backlinks."""

    JOURNAL_ENTRY = "JournalEntry"
    JOURNAL_ENTRY_PAGE = "JournalEntryPage"
    ACTOR = "Actor"
    ITEM = "Item"
    ROLL_TABLE = "RollTable"


CONTENT_KINDS: List[DocumentKind] = [
    DocumentKind.JOURNAL_ENTRY_PAGE,
    DocumentKind.ACTOR,
    DocumentKind.ITEM,
    DocumentKind.ROLL_TABLE,
]

KIND_ICONS: Dict[DocumentKind, str] = {
    DocumentKind.JOURNAL_ENTRY_PAGE: "fa-file-lines",
    DocumentKind.ACTOR: "fa-user",
    DocumentKind.ITEM: "fa-suitcase",
    DocumentKind.ROLL_TABLE: "fa-th-list",
}


class HostUser(BaseModel):
    """The player or GM viewing a sheet."""

    user_id: str = Field(alias="id")
    name: str = ""
    is_gm: bool = False

    model_config = {"populate_by_name": True}


class HostDocument(BaseModel):
    """Stand-in for a host document: identity, rich content, and flags."""

    uuid: str
    name: str
    kind: DocumentKind
    flags: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    system: Dict[str, Any] = Field(default_factory=dict)
    text: Optional[str] = None
    description: Optional[str] = None
    results: List[str] = Field(default_factory=list)
    parent_uuid: Optional[str] = None
    pages: List[str] = Field(default_factory=list)
    ownership: Dict[str, int] = Field(default_factory=dict)

    @property
    def document_id(self) -> str:
        """Return the last UUID segment."""

        return self.uuid.split(".")[-1]

    def scoped_flags(self) -> Dict[str, Any]:
        """Return this module's flag namespace (empty when unset)."""

        return self.flags.get(config.FLAG_SCOPE, {})


class BacklinkEntry(BaseModel):
    """A single clickable "linked from" row."""

    kind: DocumentKind
    uuid: str
    display_name: str
    icon: str = ""


class BacklinkSettings(BaseModel):
    """World and client settings for the backlinks feature."""

    enabled: bool = config.BACKLINKS_ENABLED
    rebuild_on_save: bool = config.BACKLINKS_REBUILD_ON_SAVE
    heading_tag: str = config.BACKLINKS_HEADING_TAG
    min_permission: int = config.BACKLINKS_MIN_PERMISSION
    debug: bool = config.BACKLINKS_DEBUG

    @model_validator(mode="after")
    def _normalize(self) -> "BacklinkSettings":
        # 1 Fall back to the default heading when the tag is not h1..h6.      # steps
        tag = self.heading_tag.strip().lower()
        self.heading_tag = tag if tag in HEADING_TAGS else config.BACKLINKS_HEADING_TAG
        # 2 Clamp the permission level into the host ownership range.        # steps
        if self.min_permission < config.OWNERSHIP_NONE:
            self.min_permission = config.OWNERSHIP_NONE
        if self.min_permission > config.OWNERSHIP_OWNER:
            self.min_permission = config.OWNERSHIP_OWNER
        return self


class HostEventType(str, Enum):
    """Host lifecycle events the session knows how to route."""

    READY = "ready"
    PRE_UPDATE_JOURNAL_PAGE = "pre_update_journal_page"
    PRE_UPDATE_ACTOR = "pre_update_actor"
    PRE_UPDATE_ITEM = "pre_update_item"
    PRE_UPDATE_ROLL_TABLE = "pre_update_roll_table"
    RENDER_JOURNAL_SHEET = "render_journal_sheet"
    RENDER_JOURNAL_PAGE_SHEET = "render_journal_page_sheet"
    RENDER_ACTOR_SHEET = "render_actor_sheet"
    RENDER_ITEM_SHEET = "render_item_sheet"
    RENDER_ROLL_TABLE_SHEET = "render_roll_table_sheet"


PRE_UPDATE_KINDS: Dict[HostEventType, DocumentKind] = {
    HostEventType.PRE_UPDATE_JOURNAL_PAGE: DocumentKind.JOURNAL_ENTRY_PAGE,
    HostEventType.PRE_UPDATE_ACTOR: DocumentKind.ACTOR,
    HostEventType.PRE_UPDATE_ITEM: DocumentKind.ITEM,
    HostEventType.PRE_UPDATE_ROLL_TABLE: DocumentKind.ROLL_TABLE,
}

RENDER_KINDS: Dict[HostEventType, DocumentKind] = {
    HostEventType.RENDER_JOURNAL_SHEET: DocumentKind.JOURNAL_ENTRY,
    HostEventType.RENDER_JOURNAL_PAGE_SHEET: DocumentKind.JOURNAL_ENTRY_PAGE,
    HostEventType.RENDER_ACTOR_SHEET: DocumentKind.ACTOR,
    HostEventType.RENDER_ITEM_SHEET: DocumentKind.ITEM,
    HostEventType.RENDER_ROLL_TABLE_SHEET: DocumentKind.ROLL_TABLE,
}


class HostEvent(BaseModel):
    """Tagged event handed to the session by the host harness."""

    event_type: HostEventType
    document_uuid: Optional[str] = None
    change: Dict[str, Any] = Field(default_factory=dict)
    page_ids: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _require_document(self) -> "HostEvent":
        """Every event except ready targets a document."""

        if self.event_type != HostEventType.READY and not self.document_uuid:
            raise ValueError(f"{self.event_type.value} requires document_uuid")
        return self
