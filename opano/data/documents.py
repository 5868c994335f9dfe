"""
Opano — Document Library.

Categories holding uploaded files, in-app text documents and external links.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from typing import Iterable

from opano.data.models import (
    Clock,
    Document,
    DocumentCategory,
    DocumentKind,
    Outcome,
    StoreResult,
    utcnow,
)

logger = logging.getLogger(__name__)


class DocumentLibrary:
    """In-memory document categories, listed in creation order."""

    def __init__(self, categories: Iterable[DocumentCategory] = (), clock: Clock = utcnow) -> None:
        self._clock = clock
        self._categories: dict[str, DocumentCategory] = {c.id: c for c in categories}

    def list_categories(self) -> list[DocumentCategory]:
        return list(self._categories.values())

    def get_category(self, category_id: str) -> DocumentCategory | None:
        return self._categories.get(category_id)

    def add_category(
        self, name: str, description: str = "", icon_name: str = "FolderKanban",
    ) -> StoreResult:
        if not name.strip():
            return StoreResult(Outcome.INVALID, reason="Category name is required")
        category = DocumentCategory(
            id=f"cat-{uuid.uuid4().hex[:12]}",
            name=name.strip(),
            description=description,
            icon_name=icon_name,
        )
        self._categories[category.id] = category
        logger.info("Document category added: %s '%s'", category.id, category.name)
        return StoreResult(Outcome.APPLIED, category)

    def _add(self, category_id: str, document: Document) -> StoreResult:
        category = self._categories.get(category_id)
        if category is None:
            return StoreResult(Outcome.NOT_FOUND, reason="Unknown category")
        self._categories[category_id] = replace(
            category, documents=(*category.documents, document),
        )
        logger.info(
            "Document %s (%s) added to category %s",
            document.id, document.kind.value, category_id,
        )
        return StoreResult(Outcome.APPLIED, document)

    def _new_document(self, name: str, mime_type: str, kind: DocumentKind, **extra) -> Document:
        return Document(
            id=f"doc-{uuid.uuid4().hex[:12]}",
            name=name,
            mime_type=mime_type,
            kind=kind,
            last_modified=self._clock(),
            **extra,
        )

    def add_file(self, category_id: str, name: str, mime_type: str, file_url: str) -> StoreResult:
        doc = self._new_document(name, mime_type, DocumentKind.FILE, file_url=file_url)
        return self._add(category_id, doc)

    def create_text(self, category_id: str, name: str, content: str) -> StoreResult:
        if not name.strip():
            return StoreResult(Outcome.INVALID, reason="Document name is required")
        doc = self._new_document(name.strip(), "text/plain", DocumentKind.TEXT, text_content=content)
        return self._add(category_id, doc)

    def link_external(self, category_id: str, name: str, url: str) -> StoreResult:
        if not url.startswith(("http://", "https://")):
            return StoreResult(Outcome.INVALID, reason="A valid http(s) URL is required")
        doc = self._new_document(name.strip() or url, "external/link", DocumentKind.URL, file_url=url)
        return self._add(category_id, doc)

    def delete_document(self, category_id: str, document_id: str) -> bool:
        category = self._categories.get(category_id)
        if category is None:
            return False
        remaining = tuple(d for d in category.documents if d.id != document_id)
        if len(remaining) == len(category.documents):
            return False
        self._categories[category_id] = replace(category, documents=remaining)
        logger.info("Document %s deleted from category %s", document_id, category_id)
        return True
