"""Tag categories: CRUD with explicit ordering, delete guard and orphan backfill."""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from src.core.document_store import CATEGORIES, TAGS, BatchOp, DocumentStore, commit_in_chunks
from src.core.errors import ConfigurationError, ConflictError, NotFoundError, ValidationError
from src.domain.gallery import Category, coerce_int

logger = logging.getLogger(__name__)

PRESET_THEMES = ["pink", "cyan", "yellow", "green", "purple", "blue"]
CATEGORY_NAME_MAX_LENGTH = 50
CATEGORY_DESCRIPTION_MAX_LENGTH = 200
DEFAULT_CATEGORY_NAME = "Uncategorized"


def _validate_name(name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Category name is required", {"field": "name"})
    name = name.strip()
    if len(name) > CATEGORY_NAME_MAX_LENGTH:
        raise ValidationError(
            f"Category name cannot exceed {CATEGORY_NAME_MAX_LENGTH} characters",
            {"field": "name"},
        )
    return name


def _validate_color(color: Any) -> str:
    if color not in PRESET_THEMES:
        raise ValidationError(
            f"Color must be one of: {', '.join(PRESET_THEMES)}",
            {"field": "color", "value": color},
        )
    return color


def _validate_description(description: Any) -> str:
    if description is None:
        return ""
    if not isinstance(description, str):
        raise ValidationError("Description must be a string", {"field": "description"})
    if len(description) > CATEGORY_DESCRIPTION_MAX_LENGTH:
        raise ValidationError(
            f"Description cannot exceed {CATEGORY_DESCRIPTION_MAX_LENGTH} characters",
            {"field": "description"},
        )
    return description


def _tag_counts(store: DocumentStore) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for tag in store.scan(TAGS):
        category_id = tag.get("categoryId")
        if category_id:
            counts[category_id] = counts.get(category_id, 0) + 1
    return counts


def list_categories(store: DocumentStore) -> List[Category]:
    """All categories ordered by ``order``, each with its live tag count."""
    counts = _tag_counts(store)
    categories = [Category.from_document(doc) for doc in store.scan(CATEGORIES, order_by="order")]
    for category in categories:
        category.tag_count = counts.get(category.id, 0)
    return categories


def get_category(store: DocumentStore, category_id: str) -> Category:
    """
    Raises:
        NotFoundError: If the category does not exist
    """
    doc = store.get(CATEGORIES, category_id)
    if doc is None:
        raise NotFoundError(f"Category {category_id} not found")
    category = Category.from_document(doc)
    category.tag_count = len(store.scan(TAGS, where={"categoryId": category_id}))
    return category


def create_category(
    store: DocumentStore,
    now: datetime,
    name: Any,
    color: Optional[str] = None,
    description: Optional[str] = None,
    is_default: bool = False,
) -> Category:
    """
    Create a category at the end of the ordering.

    ``order`` is one more than the current maximum (the first category gets
    1). When no color is given one is picked from the preset themes by order.

    Raises:
        ValidationError: If name, color or description are invalid
        ConflictError: If the name is taken, or a second default is requested
    """
    name = _validate_name(name)
    description = _validate_description(description)
    if color is not None:
        color = _validate_color(color)

    existing = store.scan(CATEGORIES)
    if any(doc.get("name") == name for doc in existing):
        raise ConflictError("Category name already exists", {"field": "name", "value": name})
    if is_default and any(doc.get("isDefault") for doc in existing):
        raise ConflictError("A default category already exists")

    order = max((coerce_int(doc.get("order")) for doc in existing), default=0) + 1
    if color is None:
        color = PRESET_THEMES[(order - 1) % len(PRESET_THEMES)]

    category_id = store.add(CATEGORIES, {
        "name": name,
        "color": color,
        "description": description,
        "order": order,
        "isDefault": bool(is_default),
        "tagCount": 0,
    }, now)

    logger.info("Created category", extra={"category_id": category_id, "order": order})
    return get_category(store, category_id)


def update_category(
    store: DocumentStore,
    category_id: str,
    now: datetime,
    name: Optional[str] = None,
    color: Optional[str] = None,
) -> Category:
    """
    Rename or recolor a category.

    Raises:
        NotFoundError: If the category does not exist
        ValidationError: If nothing to update, or a value is invalid
        ConflictError: If the new name belongs to another category
    """
    if store.get(CATEGORIES, category_id) is None:
        raise NotFoundError(f"Category {category_id} not found")
    if name is None and color is None:
        raise ValidationError("Nothing to update: provide name or color")

    fields: Dict[str, Any] = {}
    if name is not None:
        fields["name"] = _validate_name(name)
        clash = store.scan(CATEGORIES, where={"name": fields["name"]})
        if any(doc["id"] != category_id for doc in clash):
            raise ConflictError("Category name already exists", {"field": "name", "value": fields["name"]})
    if color is not None:
        fields["color"] = _validate_color(color)

    store.update(CATEGORIES, category_id, fields, now)
    logger.info("Updated category", extra={"category_id": category_id, "fields": sorted(fields)})
    return get_category(store, category_id)


def delete_category(store: DocumentStore, category_id: str) -> None:
    """
    Delete a category that no tag points at.

    Raises:
        NotFoundError: If the category does not exist
        ConflictError: If tags still reference it, or it is the default category
    """
    doc = store.get(CATEGORIES, category_id)
    if doc is None:
        raise NotFoundError(f"Category {category_id} not found")

    referencing = store.scan(TAGS, where={"categoryId": category_id})
    if referencing:
        raise ConflictError(
            "Category still has tags; remove or reassign them first",
            {"tagCount": len(referencing)},
        )
    if doc.get("isDefault"):
        raise ConflictError("The default category cannot be deleted")

    store.delete(CATEGORIES, category_id)
    logger.info("Deleted category", extra={"category_id": category_id})


def resolve_default_category(store: DocumentStore) -> Category:
    """
    Return the single category flagged ``isDefault``.

    Raises:
        ConfigurationError: If there is no default category, or more than one
    """
    defaults = store.scan(CATEGORIES, where={"isDefault": True})
    if not defaults:
        raise ConfigurationError("No default category is configured")
    if len(defaults) > 1:
        raise ConfigurationError(
            f"Expected exactly one default category, found {len(defaults)}",
            {"categoryIds": [doc["id"] for doc in defaults]},
        )
    return Category.from_document(defaults[0])


def ensure_default_category(store: DocumentStore, now: datetime) -> Category:
    """Create the default category when none exists; return the default."""
    try:
        return resolve_default_category(store)
    except ConfigurationError:
        if store.scan(CATEGORIES, where={"isDefault": True}):
            raise
    logger.info("Bootstrapping default category")
    return create_category(store, now, DEFAULT_CATEGORY_NAME, is_default=True)


def is_orphan(tag: Dict[str, Any]) -> bool:
    category_id = tag.get("categoryId")
    return category_id is None or category_id == ""


def migrate_uncategorized(store: DocumentStore, now: datetime) -> Dict[str, Any]:
    """
    Assign every tag without a category to the default category.

    All reassignments go out as one atomic batch, split into sequential
    batches only when they exceed the store's batch limit. Running again
    after a successful run finds nothing to do.

    Returns:
        Dictionary with ``migratedCount``, ``failed``, ``batches`` and
        ``targetCategory``

    Raises:
        ConfigurationError: If the default category is missing or ambiguous
    """
    default = resolve_default_category(store)
    target = {"id": default.id, "name": default.name}

    orphans = [tag for tag in store.scan(TAGS) if is_orphan(tag)]
    logger.info(f"Found {len(orphans)} uncategorized tags")

    if not orphans:
        return {"migratedCount": 0, "failed": 0, "batches": 0, "targetCategory": target}

    ops = [BatchOp("update", TAGS, tag["id"], {"categoryId": default.id}) for tag in orphans]
    result = commit_in_chunks(store, ops, now)

    logger.info(
        "Migrated uncategorized tags",
        extra={"target": default.id, **result},
    )
    return {
        "migratedCount": result["committed"],
        "failed": result["failed"],
        "batches": result["batches"],
        "targetCategory": target,
    }
