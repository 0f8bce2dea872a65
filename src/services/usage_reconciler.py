"""Recompute tag usage counts from image records and correct drift."""
import logging
from datetime import datetime
from typing import Dict, List

from src.core.document_store import TAGS, DocumentStore
from src.core.errors import EngineError
from src.domain.gallery import Snapshot
from src.services.snapshot_service import load_snapshot

logger = logging.getLogger(__name__)


def count_tag_usage(snapshot: Snapshot) -> Dict[str, int]:
    """
    Count, per tag identifier, the images that reference the tag.

    The map is seeded from the tag collection; references that do not
    resolve to a known tag are ignored rather than creating new entries.
    """
    counts = {tag.id: 0 for tag in snapshot.tags}
    for image in snapshot.images:
        for tag_id in image.tag_ids():
            if tag_id in counts:
                counts[tag_id] += 1
    return counts


def recalculate_usage(store: DocumentStore, now: datetime) -> List[Dict[str, object]]:
    """
    Correct every tag whose stored ``usageCount`` differs from the real count.

    Corrections are written as signed deltas (``actual - stored``) so they
    compose with increments made by concurrent edits between scan and write.
    A tag whose update fails is logged and left out of the result.

    Returns:
        List of ``{"tagId", "oldCount", "newCount"}`` for corrected tags only
    """
    snapshot = load_snapshot(store)
    actual_counts = count_tag_usage(snapshot)

    updated: List[Dict[str, object]] = []
    for tag in snapshot.tags:
        actual = actual_counts[tag.id]
        if tag.usage_count == actual:
            continue
        try:
            store.increment(TAGS, tag.id, "usageCount", actual - tag.usage_count, now)
        except EngineError as e:
            logger.warning(f"Updating usage count of tag {tag.id} failed: {e.message}")
            continue
        updated.append({"tagId": tag.id, "oldCount": tag.usage_count, "newCount": actual})

    logger.info(
        "Recalculated tag usage",
        extra={"tags": len(snapshot.tags), "corrected": len(updated)},
    )
    return updated
