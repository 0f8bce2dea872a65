"""Snapshot reader: loads the full working set into memory.

Every global job starts here. The reader normalizes schema drift at the
boundary so job logic only ever sees one shape:

- tag references on images are resolved to tag identifiers, whether the
  stored value was a bare identifier, a legacy bare name, or an embedded
  tag object
- prompts are merged from the image document and the prompts collection
  and ordered by ``order``
- timestamps are parsed into datetimes
"""
import logging
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional

from src.core.document_store import CATEGORIES, IMAGES, PROMPTS, TAGS, DocumentStore
from src.core.errors import StoreUnavailableError
from src.domain.gallery import (
    Category,
    ImageRecord,
    ImageTag,
    PromptBlock,
    Snapshot,
    Tag,
    coerce_int,
    parse_timestamp,
)
from src.utils.image_utils import detect_image_format

logger = logging.getLogger(__name__)


def normalize_tag_reference(
    raw: Any,
    tags_by_id: Dict[str, Tag],
    tags_by_name: Dict[str, Tag],
) -> Optional[ImageTag]:
    """Resolve one stored tag reference to the canonical ImageTag.

    A plain string is a reference: matched by identifier first, then by
    display name (older documents stored names). A dict carrying ``name`` or
    ``color`` is an embedded snapshot: matched by its ``id``, then its name.
    The tag collection is authoritative for name and color of resolved tags.
    Unmatched references are returned with ``resolved=False``.
    """
    if isinstance(raw, str):
        value = raw.strip()
        if not value:
            return None
        tag = tags_by_id.get(value) or tags_by_name.get(value)
        if tag:
            return ImageTag(id=tag.id, name=tag.name, color=tag.color)
        return ImageTag(id=value, name=value, resolved=False)

    if isinstance(raw, dict) and ("name" in raw or "color" in raw or "id" in raw):
        ref_id = raw.get("id")
        name = raw.get("name")
        tag = (tags_by_id.get(ref_id) if ref_id else None) or (tags_by_name.get(name) if name else None)
        if tag:
            return ImageTag(id=tag.id, name=tag.name, color=tag.color)
        fallback = ref_id or name
        if not fallback:
            return None
        return ImageTag(
            id=str(fallback),
            name=str(name or fallback),
            color=raw.get("color"),
            resolved=False,
        )

    return None


def normalize_tags(
    raw_tags: Iterable[Any],
    tags_by_id: Dict[str, Tag],
    tags_by_name: Dict[str, Tag],
) -> List[ImageTag]:
    """Normalize an image's tag list, keeping first occurrence of each tag."""
    result: List[ImageTag] = []
    seen = set()
    for raw in raw_tags or []:
        tag = normalize_tag_reference(raw, tags_by_id, tags_by_name)
        if tag is None or tag.id in seen:
            continue
        seen.add(tag.id)
        result.append(tag)
    return result


def _prompt_from_document(doc: Dict[str, Any], index: int) -> PromptBlock:
    order = doc.get("order")
    return PromptBlock(
        id=doc.get("id"),
        title=str(doc.get("title") or ""),
        content=str(doc.get("content") or doc.get("text") or ""),
        color=doc.get("color"),
        order=coerce_int(order, default=index),
    )


def normalize_prompts(doc: Dict[str, Any], separate: List[Dict[str, Any]]) -> List[PromptBlock]:
    """Merge embedded and separately stored prompts, ordered by ``order``."""
    prompts: List[PromptBlock] = []
    seen_ids = set()

    embedded = doc.get("prompts")
    if isinstance(embedded, list):
        for index, item in enumerate(embedded):
            if isinstance(item, dict):
                prompt = _prompt_from_document(item, index)
                prompts.append(prompt)
                if prompt.id:
                    seen_ids.add(prompt.id)
    elif isinstance(doc.get("prompt"), str) and doc["prompt"].strip():
        # Single-prompt legacy shape
        prompts.append(PromptBlock(title="", content=doc["prompt"], order=0))

    for index, item in enumerate(separate):
        if item.get("id") in seen_ids:
            continue
        prompts.append(_prompt_from_document(item, len(prompts) + index))

    # sorted() is stable, so equal orders keep storage order
    return sorted(prompts, key=lambda prompt: prompt.order)


def normalize_image(
    doc: Dict[str, Any],
    separate_prompts: List[Dict[str, Any]],
    tags_by_id: Dict[str, Tag],
    tags_by_name: Dict[str, Tag],
) -> ImageRecord:
    """Build the canonical ImageRecord for one image document."""
    url = doc.get("url") or ""
    codec = detect_image_format(url) if url.startswith("data:") else doc.get("format")
    raw_tags = doc.get("tags")
    if raw_tags is None:
        raw_tags = doc.get("tagIds") or []

    return ImageRecord(
        id=doc["id"],
        title=str(doc.get("title") or ""),
        url=url,
        width=doc.get("width"),
        height=doc.get("height"),
        size=coerce_int(doc.get("size")),
        codec=codec,
        usage_count=coerce_int(doc.get("usageCount")),
        prompts=normalize_prompts(doc, separate_prompts),
        tags=normalize_tags(raw_tags, tags_by_id, tags_by_name),
        created_at=parse_timestamp(doc.get("createdAt")),
        updated_at=parse_timestamp(doc.get("updatedAt")),
    )


def load_snapshot(store: DocumentStore) -> Snapshot:
    """
    Read images, prompts, tags and categories and normalize them.

    Images are ordered by creation time, newest first; images without a
    creation time come last.

    Raises:
        StoreUnavailableError: If any collection scan fails. Partial
            snapshots are never returned.
    """
    try:
        image_docs = store.scan(IMAGES)
        prompt_docs = store.scan(PROMPTS, order_by="order")
        tag_docs = store.scan(TAGS)
        category_docs = store.scan(CATEGORIES, order_by="order")
    except StoreUnavailableError:
        logger.error("Snapshot read failed")
        raise

    tags = [Tag.from_document(doc) for doc in tag_docs]
    tags_by_id = {tag.id: tag for tag in tags}
    tags_by_name: Dict[str, Tag] = {}
    for tag in tags:
        tags_by_name.setdefault(tag.name, tag)

    prompts_by_image: Dict[str, List[Dict[str, Any]]] = {}
    for doc in prompt_docs:
        image_id = doc.get("imageId")
        if image_id:
            prompts_by_image.setdefault(image_id, []).append(doc)

    images = [
        normalize_image(doc, prompts_by_image.get(doc["id"], []), tags_by_id, tags_by_name)
        for doc in image_docs
    ]
    images.sort(
        key=lambda image: (image.created_at is not None, image.created_at or 0),
        reverse=True,
    )

    name_counts: Counter = Counter()
    for image in images:
        for tag in image.tags:
            name_counts[tag.name] += 1

    categories = [Category.from_document(doc) for doc in category_docs]
    tag_counts = Counter(tag.category_id for tag in tags if tag.category_id)
    for category in categories:
        category.tag_count = tag_counts.get(category.id, 0)

    logger.info(
        "Loaded snapshot",
        extra={
            "images": len(images),
            "tags": len(tags),
            "categories": len(categories),
        },
    )
    return Snapshot(
        images=images,
        tags=tags,
        categories=categories,
        tag_name_counts=dict(name_counts),
    )
