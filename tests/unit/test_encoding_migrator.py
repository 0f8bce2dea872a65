"""Unit tests for the encoding migration job."""
import pytest

from src.core.document_store import IMAGES
from src.services.encoding_migrator import compression_ratio, migrate_images, migration_status
from src.utils.image_utils import detect_image_format, estimate_image_size
from tests.helpers import create_image, data_uri


@pytest.fixture
def mixed_gallery(store, png_100x100, jpeg_100x100, webp_10x10):
    return {
        "png": create_image(store, title="png", url=data_uri(png_100x100, "image/png")),
        "jpeg": create_image(store, title="jpeg", url=data_uri(jpeg_100x100, "image/jpeg")),
        "webp": create_image(store, title="webp", url=data_uri(webp_10x10, "image/webp")),
        "external": create_image(store, title="external", url="https://cdn.example.com/x.png"),
    }


class TestDryRun:
    """Dry-run projects savings without writing anything."""

    def test_projects_seventy_percent(self, store, now, png_100x100):
        url = data_uri(png_100x100, "image/png")
        create_image(store, url=url)
        size = estimate_image_size(url)

        stats = migrate_images(store, now, dry_run=True)

        assert stats["needsMigration"] == 1
        assert stats["migrated"] == 0
        assert stats["sizeBefore"] == size
        assert stats["sizeAfter"] == round(size * 0.7)
        assert stats["sizeSaved"] == size - round(size * 0.7)
        assert stats["compressionRatio"] == pytest.approx((size - round(size * 0.7)) / size)

    def test_writes_nothing(self, store, now, mixed_gallery):
        before = {doc["id"]: doc for doc in store.scan(IMAGES)}

        migrate_images(store, now, dry_run=True)

        after = {doc["id"]: doc for doc in store.scan(IMAGES)}
        assert after == before

    def test_counts_only_inline_non_canonical_images(self, store, now, mixed_gallery):
        stats = migrate_images(store, now, dry_run=True)

        assert stats["total"] == 4
        assert stats["needsMigration"] == 2

    def test_empty_store(self, store, now):
        stats = migrate_images(store, now, dry_run=True)
        assert stats["total"] == 0
        assert stats["compressionRatio"] == 0.0
        assert stats["sizeSaved"] == 0


class TestLiveMigration:

    def test_rewrites_payloads_to_webp(self, store, now, mixed_gallery):
        stats = migrate_images(store, now, dry_run=False)

        assert stats["migrated"] == 2
        assert stats["failed"] == 0
        for key in ("png", "jpeg", "webp"):
            doc = store.get(IMAGES, mixed_gallery[key])
            assert detect_image_format(doc["url"]) == "webp"
        migrated = store.get(IMAGES, mixed_gallery["png"])
        assert migrated["format"] == "webp"
        assert migrated["size"] == estimate_image_size(migrated["url"])
        assert (migrated["width"], migrated["height"]) == (100, 100)
        assert migrated["updatedAt"] == now.isoformat()

    def test_external_images_untouched(self, store, now, mixed_gallery):
        migrate_images(store, now, dry_run=False)
        assert store.get(IMAGES, mixed_gallery["external"])["url"] == "https://cdn.example.com/x.png"

    def test_second_run_has_nothing_to_do(self, store, now, mixed_gallery):
        migrate_images(store, now, dry_run=False)
        stats = migrate_images(store, now, dry_run=False)
        assert stats["needsMigration"] == 0
        assert stats["migrated"] == 0

    def test_undecodable_payload_is_counted_and_skipped(self, store, now, png_100x100):
        broken_url = "data:image/png;base64,AAAA"
        broken = create_image(store, title="broken", url=broken_url)
        good = create_image(store, title="good", url=data_uri(png_100x100, "image/png"))

        stats = migrate_images(store, now, dry_run=False)

        assert stats["failed"] == 1
        assert stats["migrated"] == 1
        assert len(stats["errors"]) == 1
        assert broken in stats["errors"][0]
        assert store.get(IMAGES, broken)["url"] == broken_url
        assert detect_image_format(store.get(IMAGES, good)["url"]) == "webp"

    def test_failed_image_keeps_original_size_in_totals(self, store, now):
        broken_url = "data:image/png;base64,AAAA"
        create_image(store, url=broken_url)

        stats = migrate_images(store, now, dry_run=False)

        assert stats["sizeBefore"] == stats["sizeAfter"] == 3
        assert stats["compressionRatio"] == 0.0


class TestMigrationStatus:

    def test_buckets(self, store, mixed_gallery):
        create_image(store, url="data:image/gif;base64,R0lGODlh")
        create_image(store, url="data:image/bmp;base64,Qk0=")

        stats = migration_status(store)

        assert stats == {
            "total": 6,
            "webp": 1,
            "jpeg": 1,
            "png": 1,
            "gif": 1,
            "other": 1,
            "invalid": 1,
        }


class TestCompressionRatio:

    @pytest.mark.parametrize("before,after,expected", [
        (100, 70, 0.3),
        (100, 100, 0.0),
        (0, 0, 0.0),
    ])
    def test_ratio(self, before, after, expected):
        assert compression_ratio(before, after) == pytest.approx(expected)
