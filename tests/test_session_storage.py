import json

import pytest

from powerlens.clients import BackendClient
from powerlens.errors import InvalidInputError
from powerlens.schemas import Feedback
from powerlens.session import Role, SessionStore, can_access, landing_section
from powerlens.storage import QUEUED_MESSAGE, SENT_MESSAGE, FeedbackQueue, submit_feedback, sync_pending

from conftest import FakeHTTP, FakeResponse


def _feedback(**overrides):
    data = {"name": "Aline", "location": "Kigali", "message": "Great insights", "rating": 5,
            "createdAt": "2024-06-01T00:00:00+00:00", "householdId": "hh-1"}
    data.update(overrides)
    return Feedback(**data)


def test_landing_sections_by_role():
    assert landing_section(Role.ADMIN) == "admin"
    assert landing_section(Role.HOUSEHOLD_USER) == "prediction"


@pytest.mark.parametrize(
    "role, section, allowed",
    [
        (Role.ADMIN, "admin", True),
        (Role.ADMIN, "prediction", False),
        (Role.HOUSEHOLD_USER, "admin", False),
        (Role.HOUSEHOLD_USER, "prediction", True),
        (Role.ADMIN, "analysis", True),
        (Role.HOUSEHOLD_USER, "settings", True),
        (Role.HOUSEHOLD_USER, "payments", False),
    ],
)
def test_section_access(role, section, allowed):
    assert can_access(role, section) is allowed


def test_role_parsing():
    assert Role.parse("admin") is Role.ADMIN
    assert Role.parse(" Household User ") is Role.HOUSEHOLD_USER
    with pytest.raises(InvalidInputError):
        Role.parse("guest")


def test_household_id_is_created_once_and_reused(tmp_path):
    path = tmp_path / "session.json"

    first = SessionStore(str(path))
    second = SessionStore(str(path))

    assert first.current.household_id.startswith("hh-")
    assert second.current.household_id == first.current.household_id
    assert json.loads(path.read_text())["household_id"] == first.current.household_id


def test_corrupt_session_file_gets_a_fresh_id(tmp_path):
    path = tmp_path / "session.json"
    path.write_text("not json")

    store = SessionStore(str(path), default_role="Admin")

    assert store.current.household_id.startswith("hh-")
    assert store.current.is_admin


def test_switch_role_keeps_household(tmp_path):
    store = SessionStore(str(tmp_path / "session.json"))
    household_id = store.current.household_id

    session = store.switch_role(Role.ADMIN)

    assert session.role is Role.ADMIN
    assert session.household_id == household_id


def test_feedback_validation():
    with pytest.raises(ValueError):
        _feedback(name="   ")
    with pytest.raises(ValueError):
        _feedback(rating=0)


def test_feedback_posted_to_backend(tmp_path):
    http = FakeHTTP({("POST", "/feedback"): FakeResponse(201, {"message": "Thanks!"})})
    queue = FeedbackQueue(str(tmp_path / "queue.json"))

    posted, message = submit_feedback(_feedback(), BackendClient("http://backend.test/api", session=http), queue)

    assert posted is True
    assert message == "Thanks!"
    assert http.calls[0]["json"]["householdId"] == "hh-1"
    assert len(queue) == 0


def test_feedback_default_success_message(tmp_path):
    http = FakeHTTP({("POST", "/feedback"): FakeResponse(200, {})})
    queue = FeedbackQueue(str(tmp_path / "queue.json"))

    assert submit_feedback(_feedback(), BackendClient("http://b.test", session=http), queue) == (True, SENT_MESSAGE)


def test_feedback_queued_when_backend_down_and_synced_later(tmp_path):
    path = tmp_path / "queue.json"
    down = FakeHTTP({("POST", "/feedback"): FakeResponse(500, {"detail": "db down"})})
    queue = FeedbackQueue(str(path))

    posted, message = submit_feedback(_feedback(), BackendClient("http://b.test", session=down), queue)

    assert (posted, message) == (False, QUEUED_MESSAGE)
    reloaded = FeedbackQueue(str(path))
    assert [f.name for f in reloaded.list_pending()] == ["Aline"]

    up = FakeHTTP({("POST", "/feedback"): FakeResponse(200, {})})
    assert sync_pending(BackendClient("http://b.test", session=up), reloaded) == 1
    assert len(reloaded) == 0
    assert FeedbackQueue(str(path)).list_pending() == []


def test_sync_keeps_undelivered_items(tmp_path):
    queue = FeedbackQueue(str(tmp_path / "queue.json"))
    queue.enqueue(_feedback())
    down = FakeHTTP({("POST", "/feedback"): FakeResponse(503, text="unavailable")})

    assert sync_pending(BackendClient("http://b.test", session=down), queue) == 0
    assert len(queue) == 1


def test_feedback_accepted_with_empty_body_is_not_queued(tmp_path):
    http = FakeHTTP({("POST", "/feedback"): FakeResponse(201, text="")})
    queue = FeedbackQueue(str(tmp_path / "queue.json"))

    posted, message = submit_feedback(_feedback(), BackendClient("http://b.test", session=http), queue)

    assert (posted, message) == (True, SENT_MESSAGE)
    assert len(queue) == 0
    assert len(http.calls) == 1


def test_sync_failure_midway_leaves_undelivered_items_on_disk(tmp_path):
    path = tmp_path / "queue.json"
    queue = FeedbackQueue(str(path))
    for name in ("Aline", "Jean", "Marie"):
        queue.enqueue(_feedback(name=name))
    http = FakeHTTP({("POST", "/feedback"): [
        FakeResponse(200, {}),
        RuntimeError("worker killed"),
    ]})

    with pytest.raises(RuntimeError):
        sync_pending(BackendClient("http://b.test", session=http), queue)

    on_disk = json.loads(path.read_text(encoding="utf-8"))
    assert [item["name"] for item in on_disk] == ["Jean", "Marie"]
    assert [f.name for f in FeedbackQueue(str(path)).list_pending()] == ["Jean", "Marie"]


def test_sync_removes_only_delivered_items(tmp_path):
    queue = FeedbackQueue(str(tmp_path / "queue.json"))
    for name in ("Aline", "Jean"):
        queue.enqueue(_feedback(name=name))
    http = FakeHTTP({("POST", "/feedback"): [
        FakeResponse(503, text="unavailable"),
        FakeResponse(201, text=""),
    ]})

    assert sync_pending(BackendClient("http://b.test", session=http), queue) == 1
    assert [f.name for f in queue.list_pending()] == ["Aline"]
