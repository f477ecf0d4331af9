import uuid

import pytest
from fastapi.testclient import TestClient

from vocabdrill.errors import StoreUnavailableError
from vocabdrill.main import app


NOT_AN_OPTION = "definitely not an option"


@pytest.fixture()
def client(monkeypatch, tmp_path):
    monkeypatch.setenv("VOCABDRILL_DB_PATH", str(tmp_path / "vocabdrill.sqlite3"))
    monkeypatch.setenv("VOCABDRILL_PREFETCH", "false")
    for name in ("VOCABDRILL_SEED_PATH", "VOCABDRILL_DAILY_GOAL", "VOCABDRILL_OPTION_COUNT"):
        monkeypatch.delenv(name, raising=False)
    with TestClient(app) as test_client:
        yield test_client
    app.state.store.close()


def _start(client, mode="normal"):
    return client.post("/v1/sessions", json={"mode": mode})


def _wrong_choice(question):
    session = app.state.quiz_service.get(uuid.UUID(question["session_id"]))
    correct = session.current_question.correct_text
    return next(option for option in question["options"] if option != correct)


def test_three_wrong_answers_finish_the_quiz(client):
    response = _start(client)
    assert response.status_code == 200
    question = response.json()
    session_id = question["session_id"]
    assert question["lives"] == 3
    assert len(question["options"]) == 4

    for expected_lives in (2, 1, 0):
        answer = {"choice": _wrong_choice(question), "latency_ms": 1200}
        feedback = client.post(f"/v1/sessions/{session_id}/answer", json=answer)
        assert feedback.status_code == 200
        body = feedback.json()
        assert body["is_correct"] is False
        assert body["lives_remaining"] == expected_lives
        assert body["correct_text"] in question["options"]

        if expected_lives:
            assert client.get(f"/v1/sessions/{session_id}/lives").json() == {"lives": expected_lives}
        advanced = client.post(f"/v1/sessions/{session_id}/advance").json()
        assert advanced["game_over"] is (expected_lives == 0)
        if advanced["question"]:
            question = advanced["question"]

    results = advanced["results"]
    assert len(results) == 3
    assert all(result["user_choice"] != result["correct_choice"] and not result["is_correct"] for result in results)
    assert client.get(f"/v1/sessions/{session_id}/lives").status_code == 404


def test_correct_answer_is_reflected_in_stats(client):
    question = _start(client).json()
    session_id = question["session_id"]
    options = question["options"]

    feedback = client.post(f"/v1/sessions/{session_id}/answer", json={"choice": options[0], "latency_ms": 800}).json()
    stats = client.get("/v1/stats").json()
    assert stats["total"] == 10
    assert stats["reviewed"] == 1
    assert stats["total_answers"] == 1
    assert stats["total_correct"] == int(feedback["is_correct"])
    assert stats["daily_goal"] == 20
    assert [item["id"] for item in stats["recently_reviewed"]] == [question["item_id"]]


def test_answering_twice_conflicts(client):
    question = _start(client).json()
    session_id = question["session_id"]
    choice = {"choice": _wrong_choice(question)}
    assert client.post(f"/v1/sessions/{session_id}/answer", json=choice).status_code == 200
    assert client.post(f"/v1/sessions/{session_id}/answer", json=choice).status_code == 409


def test_advance_before_answer_conflicts(client):
    session_id = _start(client).json()["session_id"]
    assert client.post(f"/v1/sessions/{session_id}/advance").status_code == 409


def test_unknown_session_is_not_found(client):
    missing = uuid.uuid4()
    assert client.post(f"/v1/sessions/{missing}/answer", json={"choice": NOT_AN_OPTION}).status_code == 404
    assert client.post(f"/v1/sessions/{missing}/advance").status_code == 404
    assert client.get(f"/v1/sessions/{missing}/lives").status_code == 404


def test_negative_latency_is_unprocessable(client):
    session_id = _start(client).json()["session_id"]
    response = client.post(f"/v1/sessions/{session_id}/answer", json={"choice": NOT_AN_OPTION, "latency_ms": -5})
    assert response.status_code == 422


def test_bookmark_mode_requires_bookmarks(client):
    response = _start(client, mode="bookmark_only")
    assert response.status_code == 409
    assert response.json()["code"] == "empty_pool"


def test_single_bookmark_drives_bookmark_mode(client):
    item_id = _start(client).json()["item_id"]
    marked = client.put(f"/v1/items/{item_id}/bookmark", json={"is_bookmarked": True})
    assert marked.status_code == 200
    assert marked.json()["is_bookmarked"] is True

    question = _start(client, mode="bookmark_only").json()
    assert question["item_id"] == item_id
    assert len(question["options"]) == 1
    assert client.get("/v1/stats").json()["bookmarked"] == 1


def test_bookmarking_unknown_item_is_not_found(client):
    assert client.put("/v1/items/999999/bookmark", json={"is_bookmarked": True}).status_code == 404


def test_reset_clears_progress_but_keeps_bookmarks(client):
    question = _start(client).json()
    client.post(f"/v1/sessions/{question['session_id']}/answer", json={"choice": _wrong_choice(question)})
    client.put(f"/v1/items/{question['item_id']}/bookmark", json={"is_bookmarked": True})

    assert client.post("/v1/items/reset").status_code == 204
    stats = client.get("/v1/stats").json()
    assert stats["reviewed"] == 0
    assert stats["total_answers"] == 0
    assert stats["unseen"] == stats["total"] == 10
    assert stats["bookmarked"] == 1
    assert stats["recently_reviewed"] == []


def test_ending_a_session_forgets_it(client):
    session_id = _start(client).json()["session_id"]
    assert client.delete(f"/v1/sessions/{session_id}").status_code == 204
    assert client.get(f"/v1/sessions/{session_id}/lives").status_code == 404


def test_choice_outside_the_options_conflicts_without_costing_a_life(client):
    session_id = _start(client).json()["session_id"]
    response = client.post(f"/v1/sessions/{session_id}/answer", json={"choice": NOT_AN_OPTION})
    assert response.status_code == 409
    assert client.get(f"/v1/sessions/{session_id}/lives").json() == {"lives": 3}


def test_feedback_survives_a_failing_store(client, monkeypatch):
    store = app.state.store
    real_update = store.update_item
    disk = {"down": True}

    async def flaky_update(item_id, transform):
        if disk["down"]:
            raise StoreUnavailableError("disk down")
        return await real_update(item_id, transform)

    monkeypatch.setattr(store, "update_item", flaky_update)
    question = _start(client).json()
    session_id = question["session_id"]

    feedback = client.post(f"/v1/sessions/{session_id}/answer", json={"choice": _wrong_choice(question)})
    assert feedback.status_code == 200
    body = feedback.json()
    assert body["is_correct"] is False
    assert body["lives_remaining"] == 2
    assert body["write_pending"] is True
    assert body["correct_text"] in question["options"]

    blocked = client.post(f"/v1/sessions/{session_id}/advance")
    assert blocked.status_code == 503
    assert blocked.json()["code"] == "store_unavailable"
    assert client.get("/v1/stats").json()["reviewed"] == 0

    disk["down"] = False
    advanced = client.post(f"/v1/sessions/{session_id}/advance").json()
    assert advanced["game_over"] is False
    assert advanced["question"]["item_id"] != question["item_id"]
    assert client.get("/v1/stats").json()["reviewed"] == 1
