########## Journal Backlinks ##########
# Keeps "referenced by" flags in step with @Type[...] links in document content.

from __future__ import annotations

import copy
import re
from html import escape
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from . import config
from .runlog import log_run_event
from .types import (
    KIND_ICONS,
    BacklinkEntry,
    BacklinkSettings,
    DocumentKind,
    HostDocument,
    HostUser,
)
from .world import World

REFERENCE_RE = re.compile(r"@(\w+)\[([^\]]+)\]")
UUID_MARKER: str = "UUID"
UUID_LINK_PREFIX: str = "@UUID["

# Rich-text locations used by common game systems, checked before the deep scan.
CONTENT_PATHS: List[Tuple[str, ...]] = [
    ("details", "biography", "value"),
    ("details", "biography"),
    ("biography", "value"),
    ("biography",),
    ("description", "value"),
    ("description",),
    ("notes",),
    ("details", "notes"),
    ("details", "appearance"),
]

ROLL_TABLE_CHANGE_KEYS: Tuple[str, ...] = ("description", "results", "system")


########## Pure Helpers ##########


def extract_references(content: str) -> List[str]:
    """Return every link target in content, in order of appearance.

    `@UUID[...]` targets are already fully qualified; any other marker type is
    prefixed with its type name, so `@Actor[abc]` becomes `Actor.abc`.
    """

    references: List[str] = []
    for link_type, target in REFERENCE_RE.findall(content or ""):
        if link_type == UUID_MARKER:
            references.append(target)
        else:
            references.append(f"{link_type}.{target}")
    return references


def merge_referenced_by(*maps: Optional[Dict[str, List[str]]]) -> Dict[str, List[str]]:
    """Merge kind -> [uuid] maps, keeping first-seen order and dropping repeats."""

    merged: Dict[str, List[str]] = {}
    for links in maps:
        for kind, uuids in (links or {}).items():
            bucket = merged.setdefault(kind, [])
            for uuid in uuids:
                if uuid not in bucket:
                    bucket.append(uuid)
    return merged


def qualify_reference(reference: str, document: HostDocument, kind: DocumentKind) -> str:
    """Expand a relative '.id' reference against the owning document's UUID."""

    if not reference.startswith("."):
        return reference
    base = ".".join(document.uuid.split(".")[:2])
    return f"{base}.{kind.value}{reference}"


def has_sync_marker(change: Dict[str, Any]) -> bool:
    """True when the change carries the forced-resync flag deletion."""

    scoped = (change.get("flags") or {}).get(config.FLAG_SCOPE) or {}
    return config.SYNC_FLAG_MARKER in scoped and scoped[config.SYNC_FLAG_MARKER] is None


def _deep_merge(base: Dict[str, Any], patch: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def apply_change(document: HostDocument, change: Dict[str, Any]) -> HostDocument:
    """Return a copy of the document with a pending update applied."""

    # 1 Work on a copy; the host has not committed the change yet.            # steps
    pending = document.model_copy(deep=True)
    if isinstance(change.get("system"), dict):
        pending.system = _deep_merge(pending.system, change["system"])
    # 2 Page text arrives as {"content": ...}.                                # steps
    if "text" in change:
        text_change = change["text"]
        if isinstance(text_change, dict):
            pending.text = text_change.get("content") or ""
        else:
            pending.text = text_change or ""
    if "description" in change:
        pending.description = change["description"]
    if "results" in change:
        results: List[str] = []
        for result in change["results"] or []:
            if isinstance(result, dict):
                results.append(str(result.get("text") or ""))
            else:
                results.append(str(result))
        pending.results = results
    return pending


def _dig(data: Dict[str, Any], path: Sequence[str]) -> Any:
    current: Any = data
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def _collect_uuid_strings(value: Any, results: List[str], seen: Set[int]) -> None:
    """Walk nested dicts and lists for strings that contain an @UUID link."""

    if not isinstance(value, (dict, list)) or id(value) in seen:
        return
    seen.add(id(value))
    children = value.values() if isinstance(value, dict) else value
    for child in children:
        if isinstance(child, str):
            if UUID_LINK_PREFIX in child and child not in results:
                results.append(child)
        else:
            _collect_uuid_strings(child, results, seen)


def _unique(parts: Iterable[str]) -> List[str]:
    unique: List[str] = []
    for part in parts:
        if part not in unique:
            unique.append(part)
    return unique


def render_backlinks_html(
    entries: List[BacklinkEntry],
    heading_tag: str = config.BACKLINKS_HEADING_TAG,
    heading: str = config.BACKLINKS_HEADING_TEXT,
) -> str:
    """Build the 'Linked from' block appended to a sheet."""

    items: List[str] = []
    for entry in entries:
        items.append(
            "<li>"
            f'<a class="content-link" draggable="true" data-type="{escape(entry.kind.value)}" '
            f'data-uuid="{escape(entry.uuid)}" data-link="">'
            f'<i class="fas {escape(entry.icon)}"></i> {escape(entry.display_name)}'
            "</a></li>"
        )
    return (
        '<div class="journal-backlinks">'
        f"<{heading_tag}>{escape(heading)}</{heading_tag}>"
        f"<ul>{''.join(items)}</ul>"
        "</div>"
    )


########## Backlink Maintainer ##########


class JournalBacklinks:
    """Maintains references / referencedBy flags across a world."""

    def __init__(self, world: World, settings: Optional[BacklinkSettings] = None) -> None:
        self.world = world
        self.settings = settings or BacklinkSettings()

    ########## Diagnostics ##########

    def log(self, text: str) -> None:
        log_run_event(text, "journal-backlinks")

    def debug(self, text: str) -> None:
        if self.settings.debug:
            self.log(f"DEBUG | {text}")

    ########## Pre-update Handling ##########

    def on_pre_update(self, document: HostDocument, change: Dict[str, Any]) -> Optional[List[str]]:
        """React to a pending change; returns the new reference list when one was written."""

        kind = document.kind
        self.debug(f"pre-update {kind.value} {document.name}, change keys: {', '.join(change.keys())}")
        # 1 Decide whether the change touches content-bearing fields.         # steps
        if kind == DocumentKind.JOURNAL_ENTRY_PAGE:
            touched = "text" in change
        elif kind == DocumentKind.ROLL_TABLE:
            touched = any(key in change for key in ROLL_TABLE_CHANGE_KEYS)
        elif kind in (DocumentKind.ACTOR, DocumentKind.ITEM):
            touched = "system" in change
        else:
            return None
        # 2 Content changes respect rebuild_on_save; the sync marker forces.  # steps
        if touched:
            pending = apply_change(document, change)
            return self.update(document, kind, self.content_for(pending, kind), force=False)
        if has_sync_marker(change):
            return self.update(document, kind, self.content_for(document, kind), force=True)
        return None

    def update(
        self,
        document: HostDocument,
        kind: DocumentKind,
        content: str,
        force: bool = False,
    ) -> Optional[List[str]]:
        """Diff this document's outgoing links against the stored ones and patch both sides.

        New targets get this document's UUID appended to their referencedBy
        bucket for `kind`; targets that disappeared lose it, and a bucket that
        empties is deleted. Finally the document's own references flag is
        rewritten. Running the same update twice leaves the flags unchanged.
        Returns None when rebuild-on-save is off and the update is not forced.
        """

        if not force and not self.settings.rebuild_on_save:
            self.log(f"not updating {kind.value} {document.name} as rebuild_on_save is false")
            return None

        self.log(f"updating {kind.value} {document.name} ({document.uuid})")
        self.debug(f"content length: {len(content)}")
        references = extract_references(content)
        existing: List[str] = self.world.get_flag(document, config.FLAG_REFERENCES) or []
        self.debug(f"found {len(references)} references, {len(existing)} existing")
        updated: List[str] = []

        # 1 Register new targets.                                             # steps
        for raw_reference in references:
            reference = qualify_reference(raw_reference, document, kind)
            if reference in updated:
                continue
            updated.append(reference)
            if reference in existing:
                continue
            target = self.world.resolve(reference)
            if target is None:
                self.debug(f"no referenced entity {reference}; skipping")
                continue
            self._add_backlink(target, kind, document.uuid)

        # 2 Drop targets that are no longer linked.                            # steps
        for outdated in [value for value in existing if value not in updated]:
            target = self.world.resolve(outdated)
            if target is None:
                self.debug(f"outdated entity {outdated} does not exist")
                continue
            self._remove_backlink(target, kind, document.uuid)

        # 3 Persist the outgoing list last.                                   # steps
        self.world.set_flag(document, config.FLAG_REFERENCES, updated)
        return updated

    def _add_backlink(self, target: HostDocument, kind: DocumentKind, source_uuid: str) -> None:
        links: Dict[str, List[str]] = self.world.get_flag(target, config.FLAG_REFERENCED_BY) or {}
        bucket = links.get(kind.value, [])
        if source_uuid in bucket:
            self.debug(f"{kind.value} {source_uuid} already in {target.name}, skipping")
            return
        self.debug(f"adding to referencedBy in {target.name}")
        bucket.append(source_uuid)
        links[kind.value] = bucket
        self.world.set_flag(target, config.FLAG_REFERENCED_BY, links)

    def _remove_backlink(self, target: HostDocument, kind: DocumentKind, source_uuid: str) -> None:
        links: Optional[Dict[str, List[str]]] = self.world.get_flag(target, config.FLAG_REFERENCED_BY)
        if not links:
            return
        bucket = links.get(kind.value, [])
        if source_uuid not in bucket:
            return
        self.debug(f"removing outdated {kind.value} {source_uuid} from {target.name}")
        bucket.remove(source_uuid)
        if bucket:
            links[kind.value] = bucket
        else:
            links.pop(kind.value, None)
        if links:
            self.world.set_flag(target, config.FLAG_REFERENCED_BY, links)
        else:
            self.world.unset_flag(target, config.FLAG_REFERENCED_BY)

    ########## Content Extraction ##########

    def content_for(self, document: HostDocument, kind: Optional[DocumentKind] = None) -> str:
        """Gather the rich text that may hold links for this kind of document."""

        kind = kind or document.kind
        if kind == DocumentKind.JOURNAL_ENTRY_PAGE:
            return document.text or ""

        parts: List[str] = []
        if kind == DocumentKind.ROLL_TABLE:
            # 1 Description plus any result text carrying a link.             # steps
            if document.description:
                parts.append(document.description)
            for result in document.results:
                if result and UUID_LINK_PREFIX in result:
                    parts.append(result)
        else:
            # 1 Well-known system paths first.                                # steps
            for path in CONTENT_PATHS:
                candidate = _dig(document.system, path)
                if isinstance(candidate, str) and candidate:
                    parts.append(candidate)
        # 2 Deep scan system data for anything the paths missed.              # steps
        _collect_uuid_strings(document.system, parts, set())
        return "\n".join(_unique(parts))

    ########## Full Sync ##########

    def sync(self, documents: Optional[Iterable[HostDocument]] = None) -> int:
        """Wipe and rebuild every references / referencedBy flag; returns documents processed."""

        self.log("syncing links")
        targets = list(documents) if documents is not None else self.world.content_documents()
        counts: Dict[str, int] = {}
        for document in targets:
            counts[document.kind.value] = counts.get(document.kind.value, 0) + 1
        summary = ", ".join(f"{count} {kind}" for kind, count in counts.items())
        self.log(f"found {len(targets)} documents to sync ({summary})")

        # 1 Wipe incoming links everywhere, containers included.              # steps
        self.log("wiping referencedBy flags")
        wipe: Dict[str, HostDocument] = {document.uuid: document for document in self.world.documents.values()}
        for document in targets:
            wipe.setdefault(document.uuid, document)
        for document in wipe.values():
            if config.FLAG_REFERENCED_BY in document.scoped_flags():
                self.debug(f"wiping referencedBy for {document.name}")
                self.world.unset_flag(document, config.FLAG_REFERENCED_BY)

        # 2 Wipe outgoing links and rebuild from content.                     # steps
        self.log("rebuilding references")
        for document in targets:
            if config.FLAG_REFERENCES in document.scoped_flags():
                self.world.unset_flag(document, config.FLAG_REFERENCES)
            content = self.content_for(document, document.kind)
            if not content:
                self.debug(f"sync: {document.kind.value} {document.name} has no content, skipping")
                continue
            self.update(document, document.kind, content, force=True)

        self.log("links synced")
        return len(targets)

    ########## Rendering ##########

    def can_view(self, document: HostDocument, user: HostUser) -> bool:
        """Permission check that treats any predicate failure as a denial."""

        try:
            return bool(self.world.test_user_permission(document, user, self.settings.min_permission))
        except Exception as error:
            self.log(f"WARNING: permission check failed for {document.uuid}, hiding it: {error!r}")
            return False

    def entries_from_refs(self, links: Dict[str, List[str]], user: HostUser) -> List[BacklinkEntry]:
        """Turn a kind -> [uuid] map into visible, resolvable entries."""

        entries: List[BacklinkEntry] = []
        for kind_name, values in links.items():
            for value in values:
                if not value:
                    continue
                source = self.world.resolve(value)
                if source is None:
                    self.log(f"WARNING: unable to find entity (try the sync button?): {value}")
                    continue
                if not self.can_view(source, user):
                    continue
                try:
                    kind = DocumentKind(kind_name)
                except ValueError:
                    kind = source.kind
                display_name = source.name
                if kind == DocumentKind.JOURNAL_ENTRY_PAGE and source.parent_uuid:
                    parent = self.world.resolve(source.parent_uuid)
                    if parent is not None and parent.name:
                        display_name = f"{parent.name}: {source.name}"
                self.debug(f"adding link from {kind.value} {source.name}")
                entries.append(
                    BacklinkEntry(
                        kind=kind,
                        uuid=value,
                        display_name=display_name,
                        icon=KIND_ICONS.get(kind, ""),
                    )
                )
        return entries

    def entries_for(
        self,
        document: HostDocument,
        user: HostUser,
        container: Optional[HostDocument] = None,
    ) -> List[BacklinkEntry]:
        """Entries for one document, merged with its container's when given."""

        own = self.world.get_flag(document, config.FLAG_REFERENCED_BY) or {}
        outer = self.world.get_flag(container, config.FLAG_REFERENCED_BY) if container is not None else None
        return self.entries_from_refs(merge_referenced_by(own, outer), user)

    def journal_sheet_entries(
        self,
        journal: HostDocument,
        user: HostUser,
        page_ids: Optional[List[str]] = None,
    ) -> Dict[str, List[BacklinkEntry]]:
        """Per-page entries for a journal sheet, each merged with journal-level links."""

        # 1 Pick the rendered pages, or every page when none were named.      # steps
        if page_ids:
            pages: List[HostDocument] = []
            for page_id in page_ids:
                page = self.world.resolve(f"{journal.uuid}.{DocumentKind.JOURNAL_ENTRY_PAGE.value}.{page_id}")
                if page is None:
                    self.debug(f"page {page_id} not found in journal {journal.name}")
                    continue
                pages.append(page)
        else:
            pages = self.world.pages_of(journal)
        # 2 Merge journal-level links into each page's own.                    # steps
        journal_links = self.world.get_flag(journal, config.FLAG_REFERENCED_BY) or {}
        by_page: Dict[str, List[BacklinkEntry]] = {}
        for page in pages:
            page_links = self.world.get_flag(page, config.FLAG_REFERENCED_BY) or {}
            merged = merge_referenced_by(page_links, journal_links)
            if not merged:
                self.debug(f"no backlinks for page {page.name}")
                continue
            by_page[page.uuid] = self.entries_from_refs(merged, user)
        return by_page
