"""Unit tests for tag usage reconciliation."""
from src.core.document_store import TAGS
from src.services.snapshot_service import load_snapshot
from src.services.usage_reconciler import count_tag_usage, recalculate_usage
from tests.helpers import create_image, create_tag


class TestCountTagUsage:

    def test_counts_images_per_tag(self, store):
        a = create_tag(store, "a")
        b = create_tag(store, "b")
        unused = create_tag(store, "unused")
        create_image(store, tags=[a, b])
        create_image(store, tags=[a])

        counts = count_tag_usage(load_snapshot(store))

        assert counts == {a: 2, b: 1, unused: 0}

    def test_unknown_references_are_ignored(self, store):
        a = create_tag(store, "a")
        create_image(store, tags=[a, "deleted-tag", {"name": "ghost"}])

        counts = count_tag_usage(load_snapshot(store))

        assert counts == {a: 1}

    def test_one_image_counts_once_per_tag(self, store):
        a = create_tag(store, "a")
        create_image(store, tags=[a, "a", {"id": a, "name": "a"}])

        assert count_tag_usage(load_snapshot(store)) == {a: 1}


class TestRecalculateUsage:

    def test_corrects_drifted_counts(self, store, now):
        drifted_high = create_tag(store, "high", usage_count=9)
        drifted_low = create_tag(store, "low", usage_count=0)
        correct = create_tag(store, "ok", usage_count=1)
        create_image(store, tags=[drifted_high, drifted_low, correct])

        updated = recalculate_usage(store, now)

        assert sorted(updated, key=lambda u: u["tagId"]) == sorted([
            {"tagId": drifted_high, "oldCount": 9, "newCount": 1},
            {"tagId": drifted_low, "oldCount": 0, "newCount": 1},
        ], key=lambda u: u["tagId"])
        for tag_id in (drifted_high, drifted_low, correct):
            assert store.get(TAGS, tag_id)["usageCount"] == 1

    def test_stored_counts_match_references_afterwards(self, store, now):
        tags = [create_tag(store, name, usage_count=5) for name in ("a", "b", "c")]
        create_image(store, tags=[tags[0], "b"])
        create_image(store, tags=[{"name": "a"}])

        recalculate_usage(store, now)

        snapshot = load_snapshot(store)
        actual = count_tag_usage(snapshot)
        assert {tag.id: tag.usage_count for tag in snapshot.tags} == actual

    def test_second_run_reports_nothing(self, store, now):
        a = create_tag(store, "a", usage_count=3)
        create_image(store, tags=[a])

        recalculate_usage(store, now)

        assert recalculate_usage(store, now) == []

    def test_missing_usage_field_treated_as_zero(self, store, now):
        a = create_tag(store, "a", usageCount=None)
        create_image(store, tags=[a])

        assert recalculate_usage(store, now) == [{"tagId": a, "oldCount": 0, "newCount": 1}]
