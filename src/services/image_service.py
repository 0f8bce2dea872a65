"""Bulk image deletion with cascading prompt removal and usage bookkeeping."""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from src.core.document_store import IMAGES, PROMPTS, TAGS, BatchOp, DocumentStore
from src.core.errors import EngineError, ValidationError
from src.domain.gallery import ImageRecord
from src.services.snapshot_service import load_snapshot

logger = logging.getLogger(__name__)

# Object-storage collaborator: deletes the payload behind an external URL
PayloadDeleter = Callable[[str], None]


def _delete_ops(image: ImageRecord, prompt_ids: List[str]) -> List[BatchOp]:
    ops = [BatchOp("delete", IMAGES, image.id)]
    ops.extend(BatchOp("delete", PROMPTS, prompt_id) for prompt_id in prompt_ids)
    return ops


def delete_images(
    store: DocumentStore,
    image_ids: List[str],
    now: datetime,
    delete_payload: Optional[PayloadDeleter] = None,
) -> Dict[str, Any]:
    """
    Delete images together with their separately stored prompts.

    Images are grouped into atomic batches that respect the store's batch
    limit; one image's writes never straddle two batches. After a batch
    commits, usage counts of the tags those images referenced are decreased
    by signed delta and external payloads are handed to ``delete_payload``.
    A failed batch or payload deletion is counted and logged; the job
    carries on with the remaining images.

    Returns:
        Dictionary with ``deleted``, ``failed``, ``batches``,
        ``payloadFailures`` and ``errors``

    Raises:
        ValidationError: If ``image_ids`` is empty or not a list of strings
    """
    if not isinstance(image_ids, list) or not image_ids or not all(isinstance(i, str) for i in image_ids):
        raise ValidationError("imageIds must be a non-empty list of strings")

    snapshot = load_snapshot(store)
    images_by_id = {image.id: image for image in snapshot.images}
    prompt_ids_by_image: Dict[str, List[str]] = {}
    for prompt in store.scan(PROMPTS):
        if prompt.get("imageId"):
            prompt_ids_by_image.setdefault(prompt["imageId"], []).append(prompt["id"])

    result: Dict[str, Any] = {"deleted": 0, "failed": 0, "batches": 0, "payloadFailures": 0, "errors": []}

    groups: List[List[ImageRecord]] = []
    current: List[ImageRecord] = []
    current_ops = 0
    for image_id in dict.fromkeys(image_ids):
        image = images_by_id.get(image_id)
        if image is None:
            result["failed"] += 1
            result["errors"].append(f"Image {image_id} not found")
            continue
        op_count = 1 + len(prompt_ids_by_image.get(image_id, []))
        if current and current_ops + op_count > store.max_batch_ops:
            groups.append(current)
            current, current_ops = [], 0
        current.append(image)
        current_ops += op_count
    if current:
        groups.append(current)

    for group in groups:
        batch = store.batch()
        for image in group:
            batch.ops.extend(_delete_ops(image, prompt_ids_by_image.get(image.id, [])))
        result["batches"] += 1
        try:
            batch.commit(now)
        except EngineError as e:
            result["failed"] += len(group)
            result["errors"].append(f"Batch {result['batches']} failed: {e.message}")
            logger.warning(f"Delete batch {result['batches']} failed: {e.message}")
            continue

        result["deleted"] += len(group)
        _release_tags(store, group, now)
        if delete_payload:
            for image in group:
                if image.url and not image.is_inline:
                    try:
                        delete_payload(image.url)
                    except Exception as e:
                        result["payloadFailures"] += 1
                        logger.warning(f"Deleting payload of image {image.id} failed: {e}")

    logger.info(
        "Deleted images",
        extra={k: v for k, v in result.items() if k != "errors"},
    )
    return result


def _release_tags(store: DocumentStore, images: List[ImageRecord], now: datetime) -> None:
    deltas: Dict[str, int] = {}
    for image in images:
        for tag_id in image.tag_ids():
            deltas[tag_id] = deltas.get(tag_id, 0) - 1
    for tag_id, delta in deltas.items():
        try:
            store.increment(TAGS, tag_id, "usageCount", delta, now)
        except EngineError as e:
            # Drift here is corrected by the usage reconciler
            logger.warning(f"Decrementing usage of tag {tag_id} failed: {e.message}")
