"""End-to-end tests through the Flask test client."""

import json

import pytest

from santaswap import create_app
from santaswap.storage import Collection


def _token(url):
    return url.rsplit("/", 1)[-1]


class TestCreateParty:
    def test_office_party_links(self, client, make_party):
        data = make_party(name="Office", guests=["Al", "Bo", "Cy"])

        assert set(data["guestUrls"]) == {"Al", "Bo", "Cy"}
        tokens = {guest: _token(url) for guest, url in data["guestUrls"].items()}
        assert len(set(tokens.values())) == 3
        assert all(url.startswith("http://santa.test/guest/") for url in data["guestUrls"].values())

        recipients = {}
        for guest, token in tokens.items():
            resp = client.get(f"/api/guest/{token}/assignment")
            assert resp.status_code == 200
            body = resp.get_json()
            assert body["guestName"] == guest
            assert body["assignment"] in {"Al", "Bo", "Cy"} - {guest}
            recipients[guest] = body["assignment"]
        assert len(set(recipients.values())) == 3

    def test_party_record(self, client, make_party):
        data = make_party(name="Office", budget="$20", criteria="Something red")
        party = data["party"]
        assert party["id"] == data["partyId"]
        assert party["guests"] == ["Al", "Bo", "Cy"]
        assert party["budget"] == "$20"
        assert party["criteria"] == "Something red"
        assert party["createdAt"]

        resp = client.get(f"/api/parties/{data['partyId']}")
        assert resp.status_code == 200
        assert resp.get_json() == party

    def test_creation_is_persisted(self, app_store, make_party):
        data = make_party()
        on_disk = json.loads(app_store.path_for(Collection.PARTIES).read_text())
        assert data["partyId"] in on_disk
        links = json.loads(app_store.path_for(Collection.GUEST_LINKS).read_text())
        assert len(links) == 3

    def test_sanitizes_input(self, make_party):
        data = make_party(name="  <b>Office</b> ", guests=["Al&", " Bo "])
        assert data["party"]["name"] == "bOffice/b"
        assert data["party"]["guests"] == ["Al", "Bo"]

    def test_too_few_guests(self, client):
        resp = client.post("/api/parties", json={"name": "Solo", "guests": ["Al"]})
        assert resp.status_code == 400
        assert "at least 2" in resp.get_json()["error"]

    def test_too_many_guests(self, client):
        guests = [f"g{i}" for i in range(51)]
        resp = client.post("/api/parties", json={"name": "Big", "guests": guests})
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Maximum 50 guests allowed"

    def test_duplicate_guests(self, client):
        resp = client.post("/api/parties", json={"name": "Dup", "guests": ["Al", "Al "]})
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Guest names must be unique"

    def test_empty_guest_name(self, client):
        resp = client.post("/api/parties", json={"name": "X", "guests": ["Al", "<>"]})
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Invalid guest name: <>"

    def test_non_json_body(self, client):
        resp = client.post("/api/parties", data="nope", content_type="text/plain")
        assert resp.status_code == 400


class TestAssign:
    def test_two_guests_swap(self, client, make_party):
        party_id = make_party(name="Pair", guests=["A", "B"])["partyId"]
        a = client.post(f"/api/parties/{party_id}/assign", json={"guestName": "A"})
        b = client.post(f"/api/parties/{party_id}/assign", json={"guestName": "B"})
        assert a.get_json() == {"assignment": "B"}
        assert b.get_json() == {"assignment": "A"}

    def test_repeat_requests_match(self, client, make_party):
        party_id = make_party(guests=["Al", "Bo", "Cy", "Di", "Ed"])["partyId"]
        first = client.post(f"/api/parties/{party_id}/assign", json={"guestName": "Cy"}).get_json()
        again = client.post(f"/api/parties/{party_id}/assign", json={"guestName": "Cy"}).get_json()
        assert first == again

    def test_assign_and_guest_link_agree(self, client, make_party):
        data = make_party()
        party_id = data["partyId"]
        for guest, url in data["guestUrls"].items():
            via_name = client.post(f"/api/parties/{party_id}/assign", json={"guestName": guest})
            via_link = client.get(f"/api/guest/{_token(url)}/assignment")
            assert via_name.get_json()["assignment"] == via_link.get_json()["assignment"]

    def test_unknown_party(self, client):
        resp = client.post("/api/parties/missing/assign", json={"guestName": "A"})
        assert resp.status_code == 404

    def test_guest_not_in_party(self, client, make_party):
        party_id = make_party()["partyId"]
        resp = client.post(f"/api/parties/{party_id}/assign", json={"guestName": "Zed"})
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Guest not found in party"

    def test_missing_guest_name(self, client, make_party):
        party_id = make_party()["partyId"]
        resp = client.post(f"/api/parties/{party_id}/assign", json={})
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Guest name is required"

    @pytest.mark.parametrize("body", [["Al"], "Al", 42])
    def test_non_object_body(self, client, make_party, body):
        party_id = make_party()["partyId"]
        resp = client.post(f"/api/parties/{party_id}/assign", json=body)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Guest name is required"


class TestGuestView:
    def test_restricted_view(self, client, make_party):
        data = make_party(name="Office", budget="$20", criteria="Books")
        token = _token(data["guestUrls"]["Bo"])
        body = client.get(f"/api/guest/{token}/assignment").get_json()
        assert set(body) == {"party", "guestName", "assignment"}
        assert body["party"] == {"name": "Office", "budget": "$20", "criteria": "Books"}

    def test_bad_token_length(self, client):
        assert client.get("/api/guest/short/assignment").status_code == 400

    def test_unknown_token(self, client):
        resp = client.get(f"/api/guest/{'0' * 36}/assignment")
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "Guest link not found"

    def test_survives_restart(self, tmp_path, client, make_party):
        data = make_party()
        token = _token(data["guestUrls"]["Al"])
        before = client.get(f"/api/guest/{token}/assignment").get_json()

        restarted = create_app({
            "TESTING": True,
            "DATA_DIR": str(tmp_path / "data"),
            "TIMEZONE": "UTC",
            "SECRET_KEY": None,
        })
        after = restarted.test_client().get(f"/api/guest/{token}/assignment").get_json()
        assert after == before


class TestAppShell:
    def test_health(self, client, make_party):
        make_party()
        assert client.get("/").get_json() == {"status": "ok", "parties": 1}

    def test_security_headers(self, client):
        resp = client.get("/")
        assert resp.headers["X-Frame-Options"] == "DENY"
        assert resp.headers["X-Content-Type-Options"] == "nosniff"
        assert "frame-ancestors 'none'" in resp.headers["Content-Security-Policy"]

    def test_unknown_route(self, client):
        resp = client.get("/nowhere")
        assert resp.status_code == 404
        assert resp.get_json() == {"error": "Not found"}

    def test_rate_limited(self, tmp_path):
        app = create_app({
            "TESTING": True,
            "DATA_DIR": str(tmp_path / "data"),
            "TIMEZONE": "UTC",
            "SECRET_KEY": None,
            "RATE_LIMIT_MAX_REQUESTS": 2,
        })
        client = app.test_client()
        codes = [
            client.get(f"/api/guest/{'0' * 36}/assignment").status_code
            for _ in range(3)
        ]
        assert codes == [404, 404, 429]
