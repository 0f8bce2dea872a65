"""In-memory search over a snapshot.

The store cannot combine free text, tag sets, date ranges and custom sorting
in one native query, so filtering runs over the loaded snapshot instead.
"""
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from src.core.errors import ValidationError
from src.domain.gallery import ImageRecord

SORT_FIELDS: Dict[str, Callable[[ImageRecord], Any]] = {
    "createdAt": lambda image: image.created_at,
    "updatedAt": lambda image: image.updated_at,
    "title": lambda image: (image.title.casefold(), image.title),
    "usageCount": lambda image: image.usage_count,
}
SORT_ALIASES = {"name": "title"}


def matches_query(image: ImageRecord, query: str) -> bool:
    """Case-insensitive substring match on title, prompt text or tag name."""
    needle = query.casefold()
    if needle in image.title.casefold():
        return True
    for prompt in image.prompts:
        if needle in prompt.title.casefold() or needle in prompt.content.casefold():
            return True
    return any(needle in tag.name.casefold() for tag in image.tags)


def matches_tags(image: ImageRecord, tag_ids: Iterable[str]) -> bool:
    """True when the image carries at least one of ``tag_ids``."""
    wanted = set(tag_ids)
    return any(tag.id in wanted for tag in image.tags)


def in_date_range(image: ImageRecord, start: Optional[datetime], end: Optional[datetime]) -> bool:
    if image.created_at is None:
        return False
    if start is not None and image.created_at < start:
        return False
    if end is not None and image.created_at > end:
        return False
    return True


def search_images(
    images: List[ImageRecord],
    query: Optional[str] = None,
    tag_ids: Optional[List[str]] = None,
    date_start: Optional[datetime] = None,
    date_end: Optional[datetime] = None,
    sort_by: Optional[str] = None,
    sort_order: str = "desc",
) -> Dict[str, Any]:
    """
    Filter and sort images.

    Every predicate that is given must hold; predicates left as None (or an
    empty query / tag list) are skipped. Without ``sort_by`` the input order
    is kept. Sorting is stable, so ties keep input order.

    Returns:
        Dictionary with the matching ``images`` and their ``total``

    Raises:
        ValidationError: If ``sort_by`` or ``sort_order`` is not recognized
    """
    results = list(images)

    if query and query.strip():
        needle = query.strip()
        results = [image for image in results if matches_query(image, needle)]

    if tag_ids:
        results = [image for image in results if matches_tags(image, tag_ids)]

    if date_start is not None or date_end is not None:
        results = [image for image in results if in_date_range(image, date_start, date_end)]

    if sort_by:
        field = SORT_ALIASES.get(sort_by, sort_by)
        if field not in SORT_FIELDS:
            raise ValidationError(
                f"Unknown sort field: {sort_by}",
                {"allowed": sorted(SORT_FIELDS)},
            )
        if sort_order not in ("asc", "desc"):
            raise ValidationError(f"Sort order must be 'asc' or 'desc', got {sort_order}")

        key = SORT_FIELDS[field]
        # Missing values sort before present ones in ascending order
        results.sort(
            key=lambda image: (key(image) is not None, key(image) if key(image) is not None else 0),
            reverse=sort_order == "desc",
        )

    return {"images": results, "total": len(results)}
