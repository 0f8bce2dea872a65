"""Encoding migration of inline image payloads toward the canonical codec."""
import logging
from datetime import datetime
from typing import Any, Dict

from src.core.document_store import IMAGES, DocumentStore
from src.core.errors import EngineError
from src.services.snapshot_service import load_snapshot
from src.utils.image_utils import detect_image_format, estimate_image_size, transcode_data_uri

logger = logging.getLogger(__name__)

CANONICAL_CODEC = "webp"
DEFAULT_QUALITY = 80
DRY_RUN_RATIO = 0.7

STATUS_BUCKETS = ("webp", "jpeg", "png", "gif")


def compression_ratio(size_before: int, size_after: int) -> float:
    """Fraction of bytes saved; zero when there was nothing to compress."""
    if size_before <= 0:
        return 0.0
    return (size_before - size_after) / size_before


def migrate_images(
    store: DocumentStore,
    now: datetime,
    dry_run: bool = True,
    codec: str = CANONICAL_CODEC,
    quality: int = DEFAULT_QUALITY,
    dry_run_ratio: float = DRY_RUN_RATIO,
) -> Dict[str, Any]:
    """
    Rewrite inline image payloads into ``codec``.

    Only images whose payload is an embedded data-URI take part; images that
    reference an external URL carry no codec to migrate and are skipped.

    In dry-run mode nothing is written and each non-canonical payload is
    projected at ``dry_run_ratio`` of its current size. In live mode each
    payload is transcoded and written back; a failure on one image is counted
    and logged, its original size is carried forward, and the job continues.

    Returns:
        Migration report dictionary
    """
    snapshot = load_snapshot(store)
    stats: Dict[str, Any] = {
        "total": len(snapshot.images),
        "needsMigration": 0,
        "migrated": 0,
        "failed": 0,
        "sizeBefore": 0,
        "sizeAfter": 0,
        "errors": [],
    }

    logger.info(
        "Starting encoding migration",
        extra={"dry_run": dry_run, "codec": codec, "images": stats["total"]},
    )

    for image in snapshot.images:
        if not image.is_inline:
            continue

        source_codec = detect_image_format(image.url)
        original_size = estimate_image_size(image.url)
        stats["sizeBefore"] += original_size

        if source_codec == codec:
            stats["sizeAfter"] += original_size
            continue

        stats["needsMigration"] += 1

        if dry_run:
            stats["sizeAfter"] += round(original_size * dry_run_ratio)
            continue

        try:
            new_url, dimensions = transcode_data_uri(image.url, codec=codec, quality=quality)
        except ValueError as e:
            stats["failed"] += 1
            stats["sizeAfter"] += original_size
            stats["errors"].append(f"Image {image.id} conversion failed: {e}")
            logger.warning(f"Transcoding image {image.id} failed: {e}")
            continue

        new_size = estimate_image_size(new_url)
        fields: Dict[str, Any] = {"url": new_url, "size": new_size, "format": codec}
        if dimensions:
            fields["width"], fields["height"] = dimensions

        try:
            store.update(IMAGES, image.id, fields, now)
        except EngineError as e:
            stats["failed"] += 1
            stats["sizeAfter"] += original_size
            stats["errors"].append(f"Image {image.id} update failed: {e.message}")
            logger.warning(f"Persisting migrated image {image.id} failed: {e.message}")
            continue

        stats["migrated"] += 1
        stats["sizeAfter"] += new_size

    stats["compressionRatio"] = compression_ratio(stats["sizeBefore"], stats["sizeAfter"])
    stats["sizeSaved"] = stats["sizeBefore"] - stats["sizeAfter"]

    logger.info(
        "Encoding migration finished",
        extra={k: v for k, v in stats.items() if k != "errors"},
    )
    return stats


def migration_status(store: DocumentStore) -> Dict[str, int]:
    """
    Classify every image by the codec of its payload without changing anything.

    Images with no inline payload land in ``invalid``; codecs outside the
    known buckets land in ``other``.
    """
    snapshot = load_snapshot(store)
    stats = {"total": len(snapshot.images), **{bucket: 0 for bucket in STATUS_BUCKETS}, "other": 0, "invalid": 0}

    for image in snapshot.images:
        if not image.is_inline:
            stats["invalid"] += 1
            continue
        codec = detect_image_format(image.url)
        if codec in STATUS_BUCKETS:
            stats[codec] += 1
        else:
            stats["other"] += 1

    return stats
