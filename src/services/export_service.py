"""Export bundles and export packages, and the matching import loader."""
import base64
import json
import logging
import zipfile
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from io import BytesIO
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import urlparse

import httpx

from src.core.document_store import IMAGES, DocumentStore
from src.core.errors import ValidationError
from src.domain.gallery import ImageRecord
from src.services.snapshot_service import load_snapshot
from src.utils.image_utils import decode_data_uri, detect_image_format, estimate_image_size

logger = logging.getLogger(__name__)

EXPORT_VERSION = "2.0"
DEFAULT_EXTENSION = "jpg"

# Resolves an external payload URL to raw bytes
Fetcher = Callable[[str], bytes]


def export_filename(now: datetime, extension: str = "json") -> str:
    return f"gallery-export-{now.strftime('%Y-%m-%d')}.{extension}"


def build_tag_catalogue(images: List[ImageRecord]) -> List[Dict[str, Any]]:
    """
    Count tag occurrences across ``images`` by display name.

    Two tags sharing a display name are merged into one entry. The catalogue
    is sorted by name so it is stable for identical inputs.
    """
    catalogue: Dict[str, Dict[str, Any]] = {}
    for image in images:
        for tag in image.tags:
            entry = catalogue.setdefault(tag.name, {"name": tag.name, "color": tag.color, "count": 0})
            entry["count"] += 1
    return [catalogue[name] for name in sorted(catalogue)]


def build_export_bundle(
    store: DocumentStore,
    now: datetime,
    image_ids: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """
    Build a versioned, self-contained bundle of images, prompts and tags.

    Args:
        store: Document store to snapshot
        now: Export timestamp written into the bundle
        image_ids: Optional allow-list; when given only these images are exported

    Returns:
        ExportBundle dictionary
    """
    snapshot = load_snapshot(store)
    images = snapshot.images
    if image_ids:
        allowed = set(image_ids)
        images = [image for image in images if image.id in allowed]

    tags = build_tag_catalogue(images)
    bundle = {
        "version": EXPORT_VERSION,
        "exportedAt": now.isoformat(),
        "images": [image.to_dict() for image in images],
        "tags": tags,
        "metadata": {
            "totalImages": len(images),
            "totalPrompts": sum(len(image.prompts) for image in images),
            "totalTags": len(tags),
        },
    }

    logger.info(
        "Built export bundle",
        extra={"images": len(images), "tags": len(tags)},
    )
    return bundle


def _extension_from_url(url: str) -> str:
    try:
        path = urlparse(url).path
    except ValueError:
        return DEFAULT_EXTENSION
    name = path.rsplit("/", 1)[-1]
    if "." not in name:
        return DEFAULT_EXTENSION
    return name.rsplit(".", 1)[-1].lower() or DEFAULT_EXTENSION


def http_fetcher(timeout: float = 30.0) -> Fetcher:
    """Fetcher that downloads external payloads with httpx."""

    def fetch(url: str) -> bytes:
        with httpx.Client(timeout=timeout, follow_redirects=True) as client:
            response = client.get(url)
            response.raise_for_status()
            return response.content

    return fetch


def resolve_payload(
    image: Dict[str, Any],
    cached: Optional[Dict[str, Any]],
    fetcher: Fetcher,
) -> Tuple[bytes, str]:
    """
    Produce the payload bytes and file extension for one exported image.

    Preference order: client-supplied cache entry, inline data-URI, download.

    Raises:
        ValueError: If the image has no payload
        httpx.HTTPError: If the download fails
    """
    url = image.get("url") or ""

    if cached and cached.get("data"):
        extension = cached.get("extension") or _extension_from_url(url)
        return base64.b64decode(cached["data"]), extension

    if url.startswith("data:"):
        content, _ = decode_data_uri(url)
        codec = detect_image_format(url)
        extension = "jpg" if codec in ("jpeg", "unknown") else codec
        return content, extension

    if not url:
        raise ValueError("Image has no payload URL")

    return fetcher(url), _extension_from_url(url)


def build_export_package(
    store: DocumentStore,
    now: datetime,
    image_ids: Optional[List[str]] = None,
    cached_images: Optional[List[Dict[str, Any]]] = None,
    fetcher: Optional[Fetcher] = None,
    max_workers: int = 8,
) -> Tuple[bytes, Dict[str, int]]:
    """
    Build a ZIP archive with ``data.json`` and an ``images/`` folder.

    ``data.json`` always holds the full bundle. ``image_ids`` restricts which
    payload files are written. Payloads are resolved concurrently; a payload
    that cannot be resolved is logged and left out of the archive.

    Returns:
        Tuple of (zip_bytes, {"total", "packaged", "failed"})
    """
    bundle = build_export_bundle(store, now)
    fetcher = fetcher or http_fetcher()

    images = bundle["images"]
    if image_ids:
        allowed = set(image_ids)
        images = [image for image in images if image["id"] in allowed]

    cache_by_id = {entry.get("id"): entry for entry in (cached_images or []) if isinstance(entry, dict)}

    def resolve(image: Dict[str, Any]):
        try:
            content, extension = resolve_payload(image, cache_by_id.get(image["id"]), fetcher)
            return image["id"], f"{image['id']}.{extension}", content
        except Exception as e:
            logger.warning(f"Skipping payload for image {image['id']}: {e}")
            return image["id"], None, None

    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
        results = list(executor.map(resolve, images))

    buffer = BytesIO()
    packaged = 0
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        archive.writestr("data.json", json.dumps(bundle, indent=2, ensure_ascii=False))
        for _, file_name, content in results:
            if file_name is None:
                continue
            archive.writestr(f"images/{file_name}", content)
            packaged += 1

    stats = {"total": len(images), "packaged": packaged, "failed": len(images) - packaged}
    logger.info("Built export package", extra=stats)
    return buffer.getvalue(), stats


def _image_document_from_bundle(image: Dict[str, Any]) -> Dict[str, Any]:
    """Map one bundle image onto a new image document.

    Raises:
        ValueError: If the entry is not a usable image record
    """
    if not isinstance(image, dict):
        raise ValueError("Image entry is not an object")
    url = image.get("url")
    if not isinstance(url, str) or not url:
        raise ValueError("Image entry has no url")

    prompts = []
    raw_prompts = image.get("prompts")
    if isinstance(raw_prompts, list):
        for index, prompt in enumerate(raw_prompts):
            if not isinstance(prompt, dict):
                raise ValueError("Prompt entry is not an object")
            prompts.append({
                "title": str(prompt.get("title") or ""),
                "content": str(prompt.get("content") or ""),
                "color": prompt.get("color"),
                "order": prompt.get("order", index),
            })
    elif isinstance(image.get("prompt"), str) and image["prompt"]:
        prompts.append({"title": "", "content": image["prompt"], "order": 0})

    tags = []
    for tag in image.get("tags") or []:
        if isinstance(tag, dict):
            tags.append({"id": tag.get("id"), "name": tag.get("name"), "color": tag.get("color")})
        elif isinstance(tag, str):
            tags.append(tag)

    size = image.get("size")
    return {
        "title": str(image.get("title") or ""),
        "url": url,
        "width": image.get("width"),
        "height": image.get("height"),
        "size": int(size) if size else estimate_image_size(url),
        "format": image.get("format") or (detect_image_format(url) if url.startswith("data:") else None),
        "prompts": prompts,
        "tags": tags,
    }


def import_bundle(store: DocumentStore, payload: Any, now: datetime) -> Dict[str, int]:
    """
    Replay a bundle into the store, one new image document per entry.

    Images are inserted sequentially. A failing entry is counted and the
    loop moves on; it never aborts the remaining entries.

    Args:
        store: Destination document store
        payload: ExportBundle-shaped dictionary
        now: Creation timestamp for every inserted record

    Returns:
        Dictionary with ``imported``, ``failed`` and ``total`` counts

    Raises:
        ValidationError: If ``version`` is missing or ``images`` is not a list
    """
    if not isinstance(payload, dict) or not payload.get("version"):
        raise ValidationError("Invalid import data: missing version")
    images = payload.get("images")
    if not isinstance(images, list):
        raise ValidationError("Invalid import data: images must be a list")

    imported = 0
    failed = 0
    for index, image in enumerate(images):
        try:
            document = _image_document_from_bundle(image)
            store.add(IMAGES, document, now)
            imported += 1
        except Exception as e:
            failed += 1
            logger.warning(f"Import of image #{index} failed: {e}")

    result = {"imported": imported, "failed": failed, "total": len(images)}
    logger.info("Import finished", extra=result)
    return result
