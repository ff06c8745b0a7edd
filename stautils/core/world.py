########## World ##########
# Host document double: resolves UUIDs, stores flags, answers permission checks.

from __future__ import annotations

import copy
import json
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Set

from . import config
from .db import delete_document, load_documents, log_event, upsert_document, write_flags
from .types import CONTENT_KINDS, DocumentKind, HostDocument, HostUser


class World:
    """In-memory document set keyed by UUID."""

    def __init__(self, documents: Iterable[HostDocument] = ()) -> None:
        # 1 Index documents by UUID, preserving insertion order.              # steps
        self.documents: Dict[str, HostDocument] = {}
        for document in documents:
            self.documents[document.uuid] = document

    def add(self, document: HostDocument) -> HostDocument:
        """Register or replace a document."""

        self.documents[document.uuid] = document
        return document

    def remove(self, uuid: str) -> Optional[HostDocument]:
        """Delete a document; flags pointing at it are left alone."""

        return self.documents.pop(uuid, None)

    def resolve(self, uuid: str) -> Optional[HostDocument]:
        """Look up a document by UUID, None when it does not exist."""

        return self.documents.get(uuid)

    def get_flag(self, document: HostDocument, key: str) -> Any:
        """Return a copy of a flag value so callers can mutate freely."""

        value = document.scoped_flags().get(key)
        return copy.deepcopy(value)

    def set_flag(self, document: HostDocument, key: str, value: Any) -> None:
        """Store a flag value under this module's scope."""

        scope = document.flags.setdefault(config.FLAG_SCOPE, {})
        scope[key] = copy.deepcopy(value)

    def unset_flag(self, document: HostDocument, key: str) -> None:
        """Remove a flag, dropping the scope when it becomes empty."""

        scope = document.flags.get(config.FLAG_SCOPE)
        if scope is None or key not in scope:
            return
        del scope[key]
        if not scope:
            del document.flags[config.FLAG_SCOPE]

    def pages_of(self, journal: HostDocument) -> List[HostDocument]:
        """Return the journal's pages in their declared order."""

        pages: List[HostDocument] = []
        for page_uuid in journal.pages:
            page = self.resolve(page_uuid)
            if page is not None:
                pages.append(page)
        return pages

    def of_kind(self, kind: DocumentKind) -> List[HostDocument]:
        return [document for document in self.documents.values() if document.kind == kind]

    def content_documents(self) -> List[HostDocument]:
        """All content-bearing documents: pages by journal, then actors, items, tables."""

        # 1 Pages follow their journal so rebuild order matches the sidebar.  # steps
        ordered: List[HostDocument] = []
        seen: Set[str] = set()
        for journal in self.of_kind(DocumentKind.JOURNAL_ENTRY):
            for page in self.pages_of(journal):
                ordered.append(page)
                seen.add(page.uuid)
        # 2 Orphan pages still get scanned.                                    # steps
        for page in self.of_kind(DocumentKind.JOURNAL_ENTRY_PAGE):
            if page.uuid not in seen:
                ordered.append(page)
        for kind in CONTENT_KINDS[1:]:
            ordered.extend(self.of_kind(kind))
        return ordered

    def test_user_permission(self, document: HostDocument, user: HostUser, level: int) -> bool:
        """True when the user holds at least `level` ownership of the document."""

        if user.is_gm:
            return True
        granted = document.ownership.get(user.user_id, document.ownership.get("default", config.OWNERSHIP_NONE))
        return int(granted) >= level


class SqliteWorld(World):
    """World whose documents and flag writes persist through sqlite."""

    def __init__(self, documents: Iterable[HostDocument] = ()) -> None:
        # 1 Every document handed in gets a row before any flag write.        # steps
        super().__init__()
        for document in documents:
            self.add(document)

    @classmethod
    def load(cls) -> "SqliteWorld":
        """Rebuild a world from the configured database without rewriting rows."""

        world = cls()
        for document in load_documents():
            World.add(world, document)
        return world

    def add(self, document: HostDocument) -> HostDocument:
        super().add(document)
        upsert_document(document)
        return document

    def remove(self, uuid: str) -> Optional[HostDocument]:
        removed = super().remove(uuid)
        if removed is not None:
            delete_document(uuid)
        return removed

    def set_flag(self, document: HostDocument, key: str, value: Any) -> None:
        super().set_flag(document, key, value)
        self._persist_flags(document, "set_flag", key, value)

    def unset_flag(self, document: HostDocument, key: str) -> None:
        super().unset_flag(document, key)
        self._persist_flags(document, "unset_flag", key, None)

    def _persist_flags(self, document: HostDocument, event_type: str, key: str, value: Any) -> None:
        """Write the flag column and an audit row."""

        timestamp = datetime.utcnow()
        write_flags(document.uuid, document.flags, timestamp)
        log_event(document.uuid, None, event_type, json.dumps({"key": key, "value": value}), timestamp)
