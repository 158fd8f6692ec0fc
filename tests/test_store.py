"""Tests for the in-memory and SQLite stores (uniqueness and compare-and-swap)."""

import pytest

from mentortrust.models import DocumentResult, VerificationRecord, VerificationStatus
from mentortrust.store import InMemoryStore, SQLiteStore


@pytest.fixture(params=["memory", "sqlite"])
def backend(request, tmp_path):
    if request.param == "memory":
        yield InMemoryStore()
    else:
        s = SQLiteStore(tmp_path / "mentortrust.db")
        yield s
        s.close()


def _record(user_id="mentor-1", **kwargs):
    return VerificationRecord(
        user_id=user_id,
        source_handle="octocat",
        source_verified=True,
        source_evidence={"score": 80, "metrics": {"repositories": 4}},
        document_results=[DocumentResult(id="doc-1", passed=True, metadata={"issue_date": "2019"})],
        documents_verified=True,
        identity_methods={"email": {"verified": True, "detail": {}}},
        identity_verified=True,
        status=VerificationStatus.IN_REVIEW,
        **kwargs,
    )


class TestRecordStore:
    def test_get_missing(self, backend):
        assert backend.get("nobody") is None

    def test_create_sets_version_one(self, backend):
        stored = backend.create(_record())
        assert stored.version == 1
        assert backend.get("mentor-1").version == 1

    def test_round_trip_preserves_fields(self, backend):
        original = _record()
        backend.create(original)
        loaded = backend.get("mentor-1")
        expected = original.to_dict()
        expected["version"] = 1
        assert loaded.to_dict() == expected

    def test_unknown_source_state_survives(self, backend):
        backend.create(VerificationRecord(user_id="mentor-2"))
        assert backend.get("mentor-2").source_verified is None

    def test_one_record_per_user(self, backend):
        assert backend.create(_record()) is not None
        assert backend.create(_record()) is None

    def test_update_with_expected_version(self, backend):
        backend.create(_record())
        current = backend.get("mentor-1")
        current.status = VerificationStatus.VERIFIED
        stored = backend.update(current, expected_version=1)
        assert stored.version == 2
        assert backend.get("mentor-1").status is VerificationStatus.VERIFIED

    def test_stale_update_rejected(self, backend):
        backend.create(_record())
        first = backend.get("mentor-1")
        second = backend.get("mentor-1")

        first.source_handle = "winner"
        assert backend.update(first, expected_version=1) is not None

        second.source_handle = "loser"
        assert backend.update(second, expected_version=1) is None
        assert backend.get("mentor-1").source_handle == "winner"

    def test_update_missing_record(self, backend):
        assert backend.update(_record(), expected_version=0) is None

    def test_returned_copies_are_isolated(self, backend):
        backend.create(_record())
        loaded = backend.get("mentor-1")
        loaded.source_evidence["score"] = 0
        assert backend.get("mentor-1").source_evidence["score"] == 80

    def test_ping(self, backend):
        assert backend.ping() is True


class TestProfileStore:
    def test_put_and_get(self, backend):
        backend.put_profile("mentor-1", "mentor")
        profile = backend.get_profile("mentor-1")
        assert profile.is_mentor is True
        assert profile.has_verification_record is False

    def test_put_overwrites_type(self, backend):
        backend.put_profile("user-1", "student")
        backend.put_profile("user-1", "mentor")
        assert backend.get_profile("user-1").type == "mentor"

    def test_missing_profile(self, backend):
        assert backend.get_profile("nobody") is None

    def test_back_reference(self, backend):
        backend.put_profile("mentor-1", "mentor")
        backend.create(_record())
        assert backend.get_profile("mentor-1").has_verification_record is True


class TestSQLitePersistence:
    def test_records_survive_reopen(self, tmp_path):
        path = tmp_path / "persist.db"
        first = SQLiteStore(path)
        first.put_profile("mentor-1", "mentor")
        first.create(_record())
        first.close()

        second = SQLiteStore(path)
        try:
            assert second.get("mentor-1").source_evidence["metrics"] == {"repositories": 4}
            assert second.get_profile("mentor-1").has_verification_record is True
        finally:
            second.close()
