"""Document store over SQLAlchemy.

Exposes the small surface the gallery jobs rely on: point reads and writes,
collection scans with a single ordering field and equality filters, atomic
increments and atomic batched writes bounded by ``max_batch_ops``.

Documents are plain dicts. Every document returned by the store carries its
identifier under ``"id"``.
"""
import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.core.errors import EngineError, NotFoundError, StoreUnavailableError, ValidationError
from src.database.models.document import StoredDocument

logger = logging.getLogger(__name__)

MAX_BATCH_OPS = 500

IMAGES = "images"
PROMPTS = "prompts"
TAGS = "tags"
CATEGORIES = "tagCategories"


@dataclass
class BatchOp:
    """A single pending write inside a batch."""

    kind: str  # "set" | "update" | "delete"
    collection: str
    doc_id: str
    data: Dict[str, Any] = field(default_factory=dict)


def _to_document(row: StoredDocument) -> Dict[str, Any]:
    doc = dict(row.data or {})
    doc["id"] = row.doc_id
    return doc


def _sort_key(value: Any):
    # None first, then numbers (numeric strings included), then everything else as text
    if value is None:
        return (0, 0.0, "")
    try:
        number = float(value)
    except (TypeError, ValueError):
        return (2, 0.0, str(value))
    if number != number:
        return (2, 0.0, str(value))
    return (1, number, "")


class DocumentStore:
    """Collection-oriented access to the ``documents`` table.

    Args:
        db: SQLAlchemy session the store reads and writes through
        max_batch_ops: Largest number of writes one batch may commit
    """

    def __init__(self, db: Session, max_batch_ops: int = MAX_BATCH_OPS):
        self.db = db
        self.max_batch_ops = max_batch_ops

    @contextmanager
    def _guard(self, action: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Document store failure during {action}: {e}", exc_info=True)
            raise StoreUnavailableError(f"Document store failure during {action}") from e

    def _row(self, collection: str, doc_id: str) -> Optional[StoredDocument]:
        return self.db.execute(
            select(StoredDocument).where(
                StoredDocument.collection == collection,
                StoredDocument.doc_id == doc_id,
            )
        ).scalar_one_or_none()

    # ----- reads -----

    def ping(self) -> None:
        """Round-trip to the backing database."""
        with self._guard("ping"):
            self.db.execute(text("SELECT 1"))

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Return the document or None when it does not exist."""
        with self._guard(f"get {collection}/{doc_id}"):
            row = self._row(collection, doc_id)
            return _to_document(row) if row else None

    def scan(
        self,
        collection: str,
        order_by: Optional[str] = None,
        descending: bool = False,
        where: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """Read a whole collection.

        Args:
            collection: Collection name
            order_by: Optional document field to order by
            descending: Reverse the ordering
            where: Equality filters, field -> required value

        Returns:
            List of documents, fully materialized
        """
        with self._guard(f"scan {collection}"):
            rows = self.db.execute(
                select(StoredDocument)
                .where(StoredDocument.collection == collection)
                .order_by(StoredDocument.id)
            ).scalars().all()
            docs = [_to_document(row) for row in rows]

        if where:
            docs = [
                doc for doc in docs
                if all(doc.get(key) == value for key, value in where.items())
            ]
        if order_by:
            docs.sort(key=lambda doc: _sort_key(doc.get(order_by)), reverse=descending)
        return docs

    # ----- point writes -----

    def add(self, collection: str, data: Dict[str, Any], now: datetime) -> str:
        """Insert a new document with a generated id and the given timestamp."""
        doc_id = uuid.uuid4().hex
        self.set(collection, doc_id, data, now)
        return doc_id

    def set(self, collection: str, doc_id: str, data: Dict[str, Any], now: datetime) -> None:
        """Create or replace a document."""
        with self._guard(f"set {collection}/{doc_id}"):
            self._apply(BatchOp("set", collection, doc_id, data), now)
            self.db.commit()

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any], now: datetime) -> None:
        """Merge fields into an existing document.

        Raises:
            NotFoundError: If the document does not exist
        """
        with self._guard(f"update {collection}/{doc_id}"):
            try:
                self._apply(BatchOp("update", collection, doc_id, fields), now)
            except NotFoundError:
                self.db.rollback()
                raise
            self.db.commit()

    def delete(self, collection: str, doc_id: str) -> None:
        """Delete a document; deleting a missing document is a no-op."""
        with self._guard(f"delete {collection}/{doc_id}"):
            self._apply(BatchOp("delete", collection, doc_id), None)
            self.db.commit()

    def increment(
        self,
        collection: str,
        doc_id: str,
        field_name: str,
        delta: int,
        now: datetime,
    ) -> int:
        """Add ``delta`` to a numeric field in one transaction.

        The stored value never drops below zero.

        Returns:
            The new value

        Raises:
            NotFoundError: If the document does not exist
        """
        with self._guard(f"increment {collection}/{doc_id}.{field_name}"):
            row = self.db.execute(
                select(StoredDocument)
                .where(
                    StoredDocument.collection == collection,
                    StoredDocument.doc_id == doc_id,
                )
                .with_for_update()
            ).scalar_one_or_none()
            if row is None:
                self.db.rollback()
                raise NotFoundError(f"{collection}/{doc_id} not found")

            data = dict(row.data or {})
            new_value = max(0, int(data.get(field_name) or 0) + delta)
            data[field_name] = new_value
            data["updatedAt"] = now.isoformat()
            row.data = data
            row.updated_at = now
            self.db.commit()
            return new_value

    # ----- batches -----

    def batch(self) -> "WriteBatch":
        """Start a new atomic write batch."""
        return WriteBatch(self)

    def _apply(self, op: BatchOp, now: Optional[datetime]) -> None:
        row = self._row(op.collection, op.doc_id)

        if op.kind == "delete":
            if row is not None:
                self.db.delete(row)
            return

        stamp = now.isoformat() if now else None
        if op.kind == "set":
            data = {k: v for k, v in op.data.items() if k != "id"}
            data.setdefault("createdAt", stamp)
            data.setdefault("updatedAt", stamp)
            if row is None:
                self.db.add(StoredDocument(
                    collection=op.collection,
                    doc_id=op.doc_id,
                    data=data,
                    created_at=now,
                    updated_at=now,
                ))
            else:
                row.data = data
                row.updated_at = now
            return

        if op.kind == "update":
            if row is None:
                raise NotFoundError(f"{op.collection}/{op.doc_id} not found")
            data = dict(row.data or {})
            data.update({k: v for k, v in op.data.items() if k != "id"})
            data["updatedAt"] = stamp
            # Assign a fresh dict so the JSON column is flagged dirty
            row.data = data
            row.updated_at = now
            return

        raise ValueError(f"Unknown batch operation: {op.kind}")


class WriteBatch:
    """Writes that commit together or not at all."""

    def __init__(self, store: DocumentStore):
        self.store = store
        self.ops: List[BatchOp] = []

    def __len__(self) -> int:
        return len(self.ops)

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> "WriteBatch":
        self.ops.append(BatchOp("set", collection, doc_id, dict(data)))
        return self

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> "WriteBatch":
        self.ops.append(BatchOp("update", collection, doc_id, dict(fields)))
        return self

    def delete(self, collection: str, doc_id: str) -> "WriteBatch":
        self.ops.append(BatchOp("delete", collection, doc_id))
        return self

    def commit(self, now: datetime) -> int:
        """Apply every pending write atomically.

        Returns:
            Number of writes committed

        Raises:
            ValidationError: If the batch exceeds the store's operation limit
            NotFoundError: If an update targets a missing document
            StoreUnavailableError: If the database rejects the transaction
        """
        if len(self.ops) > self.store.max_batch_ops:
            raise ValidationError(
                f"Batch has {len(self.ops)} operations (max {self.store.max_batch_ops})"
            )
        if not self.ops:
            return 0

        db = self.store.db
        with self.store._guard(f"batch commit ({len(self.ops)} ops)"):
            try:
                for op in self.ops:
                    self.store._apply(op, now)
            except NotFoundError:
                db.rollback()
                raise
            db.commit()

        committed = len(self.ops)
        self.ops = []
        return committed


def commit_in_chunks(store: DocumentStore, ops: List[BatchOp], now: datetime) -> Dict[str, int]:
    """Commit ``ops`` as sequential batches of at most ``store.max_batch_ops``.

    Each chunk is atomic on its own. A failed chunk is logged and counted;
    later chunks still run.

    Returns:
        Dictionary with ``batches``, ``committed`` and ``failed`` counts
    """
    size = store.max_batch_ops
    result = {"batches": 0, "committed": 0, "failed": 0}

    for start in range(0, len(ops), size):
        chunk = ops[start:start + size]
        batch = store.batch()
        batch.ops = list(chunk)
        result["batches"] += 1
        try:
            result["committed"] += batch.commit(now)
        except EngineError as e:
            result["failed"] += len(chunk)
            logger.warning(
                f"Batch {result['batches']} failed: {e.message}",
                extra={"ops": len(chunk)},
            )

    return result
