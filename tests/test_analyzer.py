# ==============================================
# Tests for Analysis Module
# ==============================================
#
# ChangePlanner partitioning and the RunStatistics
# bookkeeping threaded through a run.
# ==============================================

from docrepair.analysis.change_planner import ChangePlanner, plan
from docrepair.analysis.records import RawDocument, RunStatistics
from docrepair.normalization.canonical import CanonicalTimestamp
from docrepair.normalization.field_normalizer import FieldNormalizer
from docrepair.normalization.timestamps import LEGACY_THRESHOLDS
from docrepair.storage.committer import CommitReport

INSTANT = CanonicalTimestamp.from_seconds(1_700_000_000)


# ==============================================
# ChangePlanner Tests
# ==============================================

class TestChangePlanner:

    def test_partition_counts(self, populated_store):
        records, stats = plan(populated_store.scan_collection("predictions"), "prediction")

        assert stats.scanned == 3
        assert stats.updated == 1
        assert stats.unchanged == 1
        assert stats.failed == 1
        assert stats.scanned == stats.updated + stats.unchanged + stats.failed
        assert [record.document_id for record in records] == ["p1"]

    def test_failure_does_not_stop_scan(self, populated_store):
        records, stats = plan(populated_store.scan_collection("predictions"), "prediction")
        assert stats.errors[0][0] == "p3"
        assert "ratio" in stats.errors[0][1]

    def test_change_record_contents(self, populated_store):
        records, _ = plan(populated_store.scan_collection("captures"), "capture")
        by_id = {record.document_id: record for record in records}

        assert set(by_id) == {"c1", "c3"}
        c3 = by_id["c3"]
        assert c3.updates == {"timestamp": INSTANT}
        assert c3.original == {"timestamp": "1700000000000", "image_path": "a.jpg"}
        assert c3.normalized == {"timestamp": INSTANT, "image_path": "a.jpg"}
        assert c3.changed is True

    def test_records_keep_snapshot_order(self):
        snapshot = [
            RawDocument(id=f"d{i}", fields={"created_at": 1_700_000_000 + i})
            for i in range(5)
        ]
        records, _ = plan(snapshot, "generic")
        assert [record.document_id for record in records] == ["d0", "d1", "d2", "d3", "d4"]

    def test_empty_snapshot(self):
        records, stats = plan([], "capture")
        assert records == []
        assert stats.to_dict()["scanned"] == 0

    def test_non_mapping_document_fails_alone(self):
        snapshot = [
            RawDocument(id="bad", fields=None),
            RawDocument(id="good", fields={"timestamp": 1_700_000_000}),
        ]
        records, stats = plan(snapshot, "capture")
        assert stats.failed == 1
        assert stats.updated == 1
        assert records[0].document_id == "good"

    def test_snapshot_not_mutated(self, populated_store):
        snapshot = populated_store.scan_collection("captures")
        before = [dict(document.fields) for document in snapshot]
        plan(snapshot, "capture")
        assert [document.fields for document in snapshot] == before

    def test_custom_normalizer(self):
        planner = ChangePlanner(FieldNormalizer(LEGACY_THRESHOLDS))
        records, _ = planner.plan([RawDocument(id=1, fields={"timestamp": 5e9})], "capture")
        assert records[0].updates == {"timestamp": CanonicalTimestamp.from_seconds(5e9)}

    def test_planning_twice_is_stable(self, populated_store):
        snapshot = populated_store.scan_collection("captures")
        first, _ = plan(snapshot, "capture")
        normalized = [RawDocument(id=r.document_id, fields=r.normalized) for r in first]
        second, stats = plan(normalized, "capture")
        assert second == []
        assert stats.unchanged == len(first)


# ==============================================
# RunStatistics Tests
# ==============================================

class TestRunStatistics:

    def test_record_failure(self):
        stats = RunStatistics()
        stats.record_failure("x", "boom")
        assert stats.failed == 1
        assert stats.errors == [("x", "boom")]

    def test_apply_commit_moves_failed_documents(self):
        stats = RunStatistics(scanned=4, updated=3, unchanged=1)
        report = CommitReport(committed=["a"], failed=[("b", "chunk 2/2 failed"), ("c", "chunk 2/2 failed")])

        stats.apply_commit(report)

        assert stats.updated == 1
        assert stats.failed == 2
        assert stats.scanned == stats.updated + stats.unchanged + stats.failed

    def test_merge_returns_new_totals(self):
        a = RunStatistics(scanned=2, updated=1, unchanged=1)
        b = RunStatistics(scanned=3, failed=1, unchanged=2, errors=[("z", "bad")])

        total = a.merge(b)

        assert (total.scanned, total.updated, total.unchanged, total.failed) == (5, 1, 3, 1)
        assert total.errors == [("z", "bad")]
        assert a.scanned == 2

    def test_to_dict_stringifies_ids(self):
        stats = RunStatistics()
        stats.record_failure(7, "bad")
        assert stats.to_dict()["errors"] == [{"document_id": "7", "error": "bad"}]
