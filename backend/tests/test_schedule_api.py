import pytest
from fastapi.testclient import TestClient


@pytest.fixture
def setup(client: TestClient):
    """Tournament with one single-group category: Ann and Ben."""
    tournament = client.post(
        "/api/tournaments",
        json={"name": "Grid Open", "venue_name": "City Courts", "tournament_dates": "2024-06-01,2024-06-02"},
    ).json()
    category = client.post(
        f"/api/tournaments/{tournament['id']}/categories", json={"division": "Singles", "bracket_mode": 1}
    ).json()
    for name in ("Ann", "Ben"):
        client.post(
            f"/api/tournaments/{tournament['id']}/registrations",
            json={"category_id": category["id"], "status": "approved", "payload": {"playerName": name}},
        )
    tid = tournament["id"]
    cid = category["id"]
    return {
        "tid": tid,
        "cid": cid,
        "base": f"/api/tournaments/{tid}/schedule/2024-06-01",
        "rr_id": f"rr-{cid}-group-a-0-0",
        "final_id": f"elimgen-{cid}-final",
    }


def _grid(client: TestClient, setup: dict, slots: int = 2, courts: int = 2) -> dict:
    client.post(f"{setup['base']}/slots", json={"start_time": "09:00", "duration": 30, "count": slots})
    response = client.put(f"{setup['base']}/courts", json={"court_count": courts})
    assert response.status_code == 200
    return response.json()


def test_match_pool_and_filters(client: TestClient, setup: dict):
    url = f"/api/tournaments/{setup['tid']}/matches"
    data = client.get(url).json()
    assert [m["id"] for m in data["matches"]] == [setup["rr_id"], setup["final_id"], f"elimgen-{setup['cid']}-bronze"]
    assert data["categories"] == ["All", "Singles"]

    assert [m["id"] for m in client.get(url, params={"stage": "Round robin"}).json()["matches"]] == [setup["rr_id"]]
    assert len(client.get(url, params={"q": "ANN", "category": "All"}).json()["matches"]) == 2
    assert client.get(url, params={"category": "Doubles"}).json()["matches"] == []


def test_empty_schedule_defaults(client: TestClient, setup: dict):
    response = client.get(f"/api/tournaments/{setup['tid']}/schedule")
    assert response.status_code == 200
    data = response.json()
    assert data["schedule_date"] == "2024-06-01"
    assert data["dates"] == ["2024-06-01", "2024-06-02"]
    assert [v["name"] for v in data["document"]["venues"]] == ["City Courts"]
    assert len(data["available"]) == 3
    assert data["conflicts"] == []


def test_add_slots_and_courts(client: TestClient, setup: dict):
    data = _grid(client, setup, slots=3, courts=2)
    slots = data["document"]["timeSlots"]
    assert [(s["startTime"], s["endTime"]) for s in slots] == [("09:00", "09:30"), ("09:30", "10:00"), ("10:00", "10:30")]
    assert data["document"]["courtCount"] == 2
    assert all(len(row) == 2 for row in data["document"]["assignments"])
    assert data["next_series"] == {"start_time": "10:30", "duration": "30"}


def test_replace_last_series(client: TestClient, setup: dict):
    _grid(client, setup, slots=1, courts=1)
    client.post(f"{setup['base']}/slots", json={"start_time": "10:00", "duration": 15, "count": 2})
    data = client.post(
        f"{setup['base']}/slots", json={"start_time": "10:00", "duration": 15, "count": 3, "replace_last": 2}
    ).json()
    assert [s["startTime"] for s in data["document"]["timeSlots"]] == ["09:00", "10:00", "10:15", "10:30"]


def test_invalid_slot_input(client: TestClient, setup: dict):
    assert client.post(f"{setup['base']}/slots", json={"start_time": "9am", "duration": 30}).status_code == 422
    assert client.post(f"{setup['base']}/slots", json={"start_time": "09:00", "duration": 0}).status_code == 400


def test_remove_slot(client: TestClient, setup: dict):
    _grid(client, setup, slots=2)
    data = client.delete(f"{setup['base']}/slots/0").json()
    assert [s["startTime"] for s in data["document"]["timeSlots"]] == ["09:30"]
    assert client.delete(f"{setup['base']}/slots/7").status_code == 400


def test_place_match_writes_overlay(client: TestClient, setup: dict):
    _grid(client, setup)
    response = client.put(f"{setup['base']}/cells", json={"row": 0, "col": 1, "match_id": setup["rr_id"]})
    assert response.status_code == 200
    data = response.json()
    assert data["document"]["assignments"][0][1]["id"] == setup["rr_id"]
    assert setup["rr_id"] not in [m["id"] for m in data["available"]]

    groups = client.get(f"/api/categories/{setup['cid']}/groups").json()["groups"]
    assert groups[0]["matches"]["0-0"] == {
        "date": "2024-06-01",
        "time": "09:00",
        "court": "2",
        "venue": "City Courts",
    }


def test_conflict_and_clear(client: TestClient, setup: dict):
    _grid(client, setup)
    client.put(f"{setup['base']}/cells", json={"row": 0, "col": 1, "match_id": setup["rr_id"]})
    data = client.put(f"{setup['base']}/cells", json={"row": 0, "col": 0, "match_id": setup["final_id"]}).json()
    assert data["conflicts"] == [[0, 0], [0, 1]]

    data = client.delete(f"{setup['base']}/cells", params={"row": 0, "col": 1}).json()
    assert data["conflicts"] == []
    assert setup["rr_id"] in [m["id"] for m in data["available"]]

    groups = client.get(f"/api/categories/{setup['cid']}/groups").json()["groups"]
    assert groups[0]["matches"]["0-0"] == {"date": "", "time": "", "court": "", "venue": ""}


def test_move_match(client: TestClient, setup: dict):
    _grid(client, setup)
    client.put(f"{setup['base']}/cells", json={"row": 0, "col": 0, "match_id": setup["rr_id"]})
    data = client.put(f"{setup['base']}/cells", json={"row": 1, "col": 1, "match_id": setup["rr_id"]}).json()
    assignments = data["document"]["assignments"]
    assert assignments[0][0] is None
    assert assignments[1][1]["id"] == setup["rr_id"]


def test_place_errors(client: TestClient, setup: dict):
    _grid(client, setup)
    assert client.put(f"{setup['base']}/cells", json={"row": 0, "col": 0, "match_id": "nope"}).status_code == 404
    assert (
        client.put(f"{setup['base']}/cells", json={"row": 5, "col": 0, "match_id": setup["rr_id"]}).status_code
        == 400
    )
    data = client.get(f"/api/tournaments/{setup['tid']}/schedule").json()
    assert all(cell is None for row in data["document"]["assignments"] for cell in row)


def test_notes(client: TestClient, setup: dict):
    _grid(client, setup)
    data = client.put(f"{setup['base']}/notes", json={"row": 1, "col": 0, "text": "Lunch"}).json()
    cell = data["document"]["assignments"][1][0]
    assert (cell["type"], cell["text"]) == ("note", "Lunch")

    data = client.put(f"{setup['base']}/notes", json={"row": 1, "col": 0, "text": "  "}).json()
    assert data["document"]["assignments"][1][0] is None


def test_venues(client: TestClient, setup: dict):
    _grid(client, setup)
    data = client.post(f"{setup['base']}/venues").json()
    assert data["venue_index"] == 1
    assert [v["name"] for v in data["document"]["venues"]] == ["City Courts", "Venue 2"]

    data = client.put(f"{setup['base']}/venues/1", json={"name": "Annex"}).json()
    assert data["document"]["venues"][1]["name"] == "Annex"

    assert client.get(f"/api/tournaments/{setup['tid']}/schedule", params={"venue": 5}).status_code == 404

    data = client.delete(f"{setup['base']}/venues/1").json()
    assert [v["name"] for v in data["document"]["venues"]] == ["City Courts"]
    assert client.delete(f"{setup['base']}/venues/0").status_code == 400


def test_dates_are_independent(client: TestClient, setup: dict):
    _grid(client, setup)
    other = client.get(f"/api/tournaments/{setup['tid']}/schedule", params={"date": "2024-06-02"}).json()
    assert other["document"]["timeSlots"] == []

    # last saved date becomes the default
    assert client.get(f"/api/tournaments/{setup['tid']}/schedule").json()["schedule_date"] == "2024-06-01"


def test_invalid_date(client: TestClient, setup: dict):
    response = client.get(f"/api/tournaments/{setup['tid']}/schedule", params={"date": "not-a-date"})
    assert response.status_code == 400


def test_save_full_document(client: TestClient, setup: dict):
    document = {
        "scheduleDate": "2024-06-02",
        "venues": [
            {
                "name": "Hall",
                "courtCount": 1,
                "timeSlots": [{"id": "s1", "startTime": "08:00", "duration": "20", "endTime": "08:20"}],
                "assignments": [[{"id": setup["rr_id"], "label": "Ann vs Ben", "category": "Singles"}]],
            }
        ],
    }
    response = client.put(f"/api/tournaments/{setup['tid']}/schedule", json={"document": document})
    assert response.status_code == 200
    data = response.json()
    assert data["ok"] is True
    assert data["message"] == "Saved"
    assert data["bracket_updates"] == {
        str(setup["cid"]): {"group-a": {"0-0": {"date": "2024-06-02", "time": "08:00", "court": "1", "venue": "Hall"}}}
    }

    tournament = client.get(f"/api/tournaments/{setup['tid']}").json()
    assert tournament["court_assignments"]["scheduleDate"] == "2024-06-02"
    assert set(tournament["court_assignments_by_date"]) == {"2024-06-02"}


def test_save_document_with_repeated_match(client: TestClient, setup: dict):
    placement = {"id": setup["rr_id"], "label": "Ann vs Ben", "category": "Singles"}
    document = {
        "scheduleDate": "2024-06-01",
        "venues": [
            {
                "name": "Hall",
                "courtCount": 2,
                "timeSlots": ["09:00", "09:30"],
                "assignments": [[placement, None], [None, dict(placement)]],
            }
        ],
    }
    response = client.put(f"/api/tournaments/{setup['tid']}/schedule", json={"document": document})
    assert response.status_code == 200
    data = response.json()
    assignments = data["document"]["venues"][0]["assignments"]
    assert assignments[0][0]["id"] == setup["rr_id"]
    assert assignments[1] == [None, None]
    assert data["bracket_updates"][str(setup["cid"])]["group-a"]["0-0"]["time"] == "09:00"


def test_slot_preview(client: TestClient):
    response = client.get("/api/schedule/slot-preview", params={"start_time": "09:00", "duration": 30, "count": 3})
    assert response.status_code == 200
    assert response.json() == {"end_time": "10:30"}
