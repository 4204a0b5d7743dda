"""Repository administrative operations and seed data."""

import pytest

from clinic_backend import services
from clinic_backend.errors import PersistenceError
from clinic_backend.repository import Repository
from clinic_backend.seed import seed_base


def test_seed_is_idempotent(repo):
    first = seed_base(repo)
    second = seed_base(repo)

    assert first == {"users": 4, "therapists": 3, "patients": 2}
    assert second == {"users": 0, "therapists": 0, "patients": 0}
    assert repo.counts()["therapists"] == 3


def test_counts_and_clear(repo):
    seed_base(repo)
    services.create_booking(repo, name="Aisha", phone="0501234567", service="General", date="2026-11-02")
    services.create_missing_notifications(repo)

    counts = repo.counts()
    assert counts["bookings"] == 1
    assert counts["notifications"] == 1
    assert counts["users"] == 4

    deleted = repo.clear()

    assert deleted["notifications"] == 1
    assert deleted["bookings"] == 1
    assert deleted["patients"] == 2
    assert set(repo.counts().values()) == {0}


def test_list_bookings_newest_first(repo):
    first = services.create_booking(repo, name="A", phone="1", service="General", date="2026-11-02").booking_id
    second = services.create_booking(repo, name="B", phone="2", service="General", date="2026-11-01").booking_id

    assert [b.id for b in repo.list_bookings()] == [second, first]


def test_storage_failure_becomes_persistence_error(tmp_path):
    broken = Repository.from_url(f"sqlite:///{tmp_path}/missing/dir/clinic.sqlite")

    with pytest.raises(PersistenceError) as excinfo:
        broken.create_all()

    assert excinfo.value.status_code == 500


@pytest.mark.parametrize("value, expected", [(1, True), (2**63 - 1, True), (0, False), (-1, False), (2**63, False)])
def test_storable_id(value, expected):
    from clinic_backend.repository import storable_id

    assert storable_id(value) is expected
