"""Helpers for seeding the document store in tests."""
import base64
from datetime import datetime
from typing import Any, Dict, List, Optional

from src.core.document_store import CATEGORIES, IMAGES, PROMPTS, TAGS, DocumentStore

DEFAULT_TIME = datetime(2024, 1, 1, 0, 0, 0)


def data_uri(content: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(content).decode('utf-8')}"


def create_tag(
    store: DocumentStore,
    name: str,
    category_id: Optional[str] = None,
    usage_count: int = 0,
    tag_id: Optional[str] = None,
    now: datetime = DEFAULT_TIME,
    **overrides: Any,
) -> str:
    data = {"name": name, "color": "pink", "categoryId": category_id, "usageCount": usage_count}
    data.update(overrides)
    if tag_id:
        store.set(TAGS, tag_id, data, now)
        return tag_id
    return store.add(TAGS, data, now)


def create_category(
    store: DocumentStore,
    name: str,
    order: int = 1,
    is_default: bool = False,
    category_id: Optional[str] = None,
    now: datetime = DEFAULT_TIME,
) -> str:
    data = {"name": name, "color": "blue", "order": order, "isDefault": is_default}
    if category_id:
        store.set(CATEGORIES, category_id, data, now)
        return category_id
    return store.add(CATEGORIES, data, now)


def create_image(
    store: DocumentStore,
    title: str = "Test image",
    url: str = "https://cdn.example.com/images/test.png",
    tags: Optional[List[Any]] = None,
    prompts: Optional[List[Dict[str, Any]]] = None,
    created_at: datetime = DEFAULT_TIME,
    image_id: Optional[str] = None,
    **overrides: Any,
) -> str:
    """Create an image document with sensible defaults."""
    data = {
        "title": title,
        "url": url,
        "size": 1234,
        "tags": tags or [],
        "prompts": prompts or [],
    }
    data.update(overrides)
    if image_id:
        store.set(IMAGES, image_id, data, created_at)
        return image_id
    return store.add(IMAGES, data, created_at)


def create_prompt(
    store: DocumentStore,
    image_id: str,
    content: str,
    order: int,
    title: str = "",
) -> str:
    return store.add(PROMPTS, {"imageId": image_id, "title": title, "content": content, "order": order}, DEFAULT_TIME)
