"""In-memory shapes of gallery records.

Documents in the store have drifted over time: tags on an image are sometimes
bare identifiers and sometimes embedded tag objects, timestamps come as ISO
strings or epoch numbers, prompts are embedded or stored separately. The
classes here are the single normalized shape every job works on.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

DATA_URI_PREFIX = "data:"


def _from_epoch_seconds(seconds: Any) -> Optional[datetime]:
    try:
        return datetime.fromtimestamp(float(seconds), tz=timezone.utc)
    except (OverflowError, OSError, TypeError, ValueError):
        return None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Best-effort conversion of a stored timestamp into a naive UTC datetime.

    Accepts datetimes, ISO-8601 strings (with or without ``Z``), epoch
    milliseconds, and ``{"seconds": ...}`` / ``{"_seconds": ...}`` objects.
    Returns None for anything unparseable, including out-of-range epochs.
    """
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        dt = _from_epoch_seconds(value / 1000.0)
    elif isinstance(value, dict):
        seconds = value.get("seconds", value.get("_seconds"))
        if seconds is None or isinstance(seconds, bool):
            return None
        dt = _from_epoch_seconds(seconds)
    elif isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None

    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def coerce_int(value: Any, default: Optional[int] = 0) -> Optional[int]:
    """Integer value of a stored number or numeric string; ``default`` otherwise."""
    if value is None or value == "" or isinstance(value, bool):
        return default
    try:
        return int(float(value))
    except (OverflowError, TypeError, ValueError):
        return default


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class PromptBlock:
    """One titled prompt attached to an image."""

    title: str
    content: str
    order: int = 0
    id: Optional[str] = None
    color: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "color": self.color,
            "order": self.order,
        }


@dataclass
class ImageTag:
    """A tag as referenced from an image, after normalization.

    ``resolved`` is False when the reference did not match any tag in the
    tag collection; such references are kept for display but never counted.
    """

    id: str
    name: str
    color: Optional[str] = None
    resolved: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "color": self.color}


@dataclass
class Tag:
    """A tag document from the tag collection."""

    id: str
    name: str
    color: Optional[str] = None
    order: Optional[int] = None
    category_id: Optional[str] = None
    usage_count: int = 0

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Tag":
        return cls(
            id=doc["id"],
            name=str(doc.get("name") or ""),
            color=doc.get("color"),
            order=coerce_int(doc.get("order"), default=None),
            category_id=doc.get("categoryId") or None,
            usage_count=coerce_int(doc.get("usageCount")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "order": self.order,
            "categoryId": self.category_id,
            "usageCount": self.usage_count,
        }


@dataclass
class Category:
    """A tag group with explicit ordering."""

    id: str
    name: str
    color: Optional[str] = None
    order: int = 0
    description: str = ""
    is_default: bool = False
    tag_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Category":
        return cls(
            id=doc["id"],
            name=str(doc.get("name") or ""),
            color=doc.get("color"),
            order=coerce_int(doc.get("order")),
            description=doc.get("description") or "",
            is_default=bool(doc.get("isDefault")),
            tag_count=coerce_int(doc.get("tagCount")),
            created_at=parse_timestamp(doc.get("createdAt")),
            updated_at=parse_timestamp(doc.get("updatedAt")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "order": self.order,
            "description": self.description,
            "isDefault": self.is_default,
            "tagCount": self.tag_count,
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at),
        }


@dataclass
class ImageRecord:
    """An image with its prompts resolved and its tags normalized."""

    id: str
    title: str
    url: str = ""
    width: Optional[int] = None
    height: Optional[int] = None
    size: int = 0
    codec: Optional[str] = None
    usage_count: int = 0
    prompts: List[PromptBlock] = field(default_factory=list)
    tags: List[ImageTag] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_inline(self) -> bool:
        """True when the payload is an embedded data-URI."""
        return bool(self.url) and self.url.startswith(DATA_URI_PREFIX)

    def tag_ids(self) -> List[str]:
        return [tag.id for tag in self.tags if tag.resolved]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "width": self.width,
            "height": self.height,
            "size": self.size,
            "format": self.codec,
            "usageCount": self.usage_count,
            "prompts": [prompt.to_dict() for prompt in self.prompts],
            "tags": [tag.to_dict() for tag in self.tags],
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at),
        }


@dataclass
class Snapshot:
    """Everything a global job needs, read at one point in time."""

    images: List[ImageRecord]
    tags: List[Tag]
    categories: List[Category]
    # Occurrences of each tag display name across all images
    tag_name_counts: Dict[str, int] = field(default_factory=dict)

