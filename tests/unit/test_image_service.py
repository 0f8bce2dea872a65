"""Unit tests for bulk image deletion."""
import pytest

from src.core.document_store import IMAGES, PROMPTS, TAGS, DocumentStore
from src.core.errors import ValidationError
from src.services.image_service import delete_images
from tests.helpers import create_image, create_prompt, create_tag


class TestDeleteImages:

    def test_deletes_images_and_their_prompts(self, store, now):
        doomed = create_image(store, title="doomed")
        kept = create_image(store, title="kept")
        create_prompt(store, doomed, "gone", order=0)
        kept_prompt = create_prompt(store, kept, "stays", order=0)

        result = delete_images(store, [doomed], now)

        assert result["deleted"] == 1
        assert result["failed"] == 0
        assert store.get(IMAGES, doomed) is None
        assert store.get(IMAGES, kept) is not None
        assert [doc["id"] for doc in store.scan(PROMPTS)] == [kept_prompt]

    def test_releases_tag_usage(self, store, now):
        shared = create_tag(store, "shared", usage_count=3)
        solo = create_tag(store, "solo", usage_count=1)
        first = create_image(store, tags=[shared, solo])
        second = create_image(store, tags=[shared])
        create_image(store, tags=[shared])

        delete_images(store, [first, second], now)

        assert store.get(TAGS, shared)["usageCount"] == 1
        assert store.get(TAGS, solo)["usageCount"] == 0

    def test_unknown_ids_are_reported(self, store, now):
        image_id = create_image(store)

        result = delete_images(store, [image_id, "missing"], now)

        assert result["deleted"] == 1
        assert result["failed"] == 1
        assert result["errors"] == ["Image missing not found"]

    def test_duplicate_ids_deleted_once(self, store, now):
        image_id = create_image(store)
        assert delete_images(store, [image_id, image_id], now)["deleted"] == 1

    def test_groups_respect_batch_limit(self, db_session, now):
        store = DocumentStore(db_session, max_batch_ops=4)
        ids = []
        for i in range(3):
            image_id = create_image(store, title=str(i))
            create_prompt(store, image_id, "p", order=0)
            ids.append(image_id)

        result = delete_images(store, ids, now)

        assert result["deleted"] == 3
        assert result["batches"] == 2
        assert store.scan(IMAGES) == []
        assert store.scan(PROMPTS) == []

    def test_external_payloads_are_deleted(self, store, now):
        external = create_image(store, url="https://cdn.example.com/a.png")
        inline = create_image(store, url="data:image/png;base64,AAAA")
        deleted_urls = []

        delete_images(store, [external, inline], now, delete_payload=deleted_urls.append)

        assert deleted_urls == ["https://cdn.example.com/a.png"]

    def test_payload_failure_does_not_undo_delete(self, store, now):
        image_id = create_image(store, url="https://cdn.example.com/a.png")

        def broken(url):
            raise IOError("storage down")

        result = delete_images(store, [image_id], now, delete_payload=broken)

        assert result["deleted"] == 1
        assert result["payloadFailures"] == 1
        assert store.get(IMAGES, image_id) is None

    @pytest.mark.parametrize("image_ids", [[], None, "abc", [1, 2]])
    def test_invalid_input(self, store, now, image_ids):
        with pytest.raises(ValidationError):
            delete_images(store, image_ids, now)
