from datetime import date

import pytest

import quran_api

SABAQ = {
    "chapter_number": 2,
    "chapter_name": "Al-Baqarah",
    "page": 3,
    "section": 2,
    "verse": "6 - 9",
    "number_of_readings": 5,
    "complete_memorization": False,
    "murajaah_20_times": 0,
}


def _ayahs(surah, verses, letters=10):
    return [{"surah": surah, "verse": v, "text": "", "letters": letters} for v in verses]


def test_add_then_update_same_day(client):
    resp = client.post("/murajaah/sabaqtracker/add", json=SABAQ)
    assert resp.status_code == 201

    resp = client.post("/murajaah/sabaqtracker/add",
                       json={**SABAQ, "number_of_readings": 20, "complete_memorization": True})
    assert resp.status_code == 200
    assert resp.get_json()["message"] == "Updated Successfully"

    latest = client.get("/murajaah/sabaqtracker/latest").get_json()
    assert latest["number_of_readings"] == 20
    assert latest["complete_memorization"] is True
    assert latest["date"] == "2024-05-15"
    assert latest["verse"] == "6 - 9"


def test_different_range_or_day_inserts(client, clock):
    client.post("/murajaah/sabaqtracker/add", json=SABAQ)
    resp = client.post("/murajaah/sabaqtracker/add", json={**SABAQ, "section": 3, "verse": "10 - 13"})
    assert resp.status_code == 201

    clock.set(date(2024, 5, 16))
    resp = client.post("/murajaah/sabaqtracker/add", json={**SABAQ, "section": 3, "verse": "10 - 13"})
    assert resp.status_code == 201
    assert client.get("/murajaah/sabaqtracker/latest").get_json()["date"] == "2024-05-16"


def test_add_validation(client):
    assert client.post("/murajaah/sabaqtracker/add", json={**SABAQ, "chapter_number": None}).status_code == 400
    assert client.post("/murajaah/sabaqtracker/add", json={**SABAQ, "page": 700}).status_code == 400
    assert client.post("/murajaah/sabaqtracker/add", json={**SABAQ, "number_of_readings": "lots"}).status_code == 400
    assert client.post("/murajaah/sabaqtracker/add", json={**SABAQ, "complete_memorization": "maybe"}).status_code == 400


@pytest.mark.parametrize("value,expected", [
    ("false", False),
    ("False", False),
    ("0", False),
    (0, False),
    ("true", True),
    (1, True),
    (True, True),
])
def test_complete_memorization_flag_parsing(client, value, expected):
    resp = client.post("/murajaah/sabaqtracker/add", json={**SABAQ, "complete_memorization": value})
    assert resp.status_code == 201
    assert client.get("/murajaah/sabaqtracker/latest").get_json()["complete_memorization"] is expected


def test_latest_without_records(client):
    assert client.get("/murajaah/sabaqtracker/latest").status_code == 404


def test_sections_resolve_verse_range(client, monkeypatch):
    monkeypatch.setattr(quran_api, "fetch_page_ayahs", lambda page, **kw: _ayahs(2, range(1, 11)))
    monkeypatch.setattr(quran_api, "fetch_surah_name", lambda chapter, **kw: "Al-Baqarah")

    resp = client.get("/murajaah/sabaqtracker/sections?chapter=2&page=3&section=3")
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["section"] == 3
    assert body["verse"] == "5 - 6"
    assert body["chapter_name"] == "Al-Baqarah"
    assert body["total_letters"] == 100
    assert len(body["sections"]) == 5
    assert set(body) == {"section", "begin", "end", "verse", "total_letters", "sections",
                         "chapter_number", "chapter_name", "page"}

    body = client.get("/murajaah/sabaqtracker/sections",
                      query_string={"chapter": 2, "page": 3, "verse": "7 - 8"}).get_json()
    assert body["section"] == 4


def test_sections_validation(client):
    assert client.get("/murajaah/sabaqtracker/sections?chapter=2").status_code == 400
    assert client.get("/murajaah/sabaqtracker/sections?chapter=2&page=605").status_code == 400


def test_sections_upstream_failure(client, monkeypatch):
    def boom(page, **kw):
        raise quran_api.QuranApiError("Failed to fetch mushaf page 3")
    monkeypatch.setattr(quran_api, "fetch_page_ayahs", boom)

    resp = client.get("/murajaah/sabaqtracker/sections?chapter=2&page=3")
    assert resp.status_code == 502


class _FakeResponse:
    def __init__(self, status_code, payload):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        return self._payload


def test_sections_invalid_page_answer_is_bad_gateway(client, monkeypatch):
    monkeypatch.setattr(quran_api.requests, "get",
                        lambda url, params=None, timeout=None: _FakeResponse(400, {"code": 400, "data": "Invalid page"}))
    resp = client.get("/murajaah/sabaqtracker/sections?chapter=2&page=3")
    assert resp.status_code == 502
    assert resp.get_json()["message"] == "Failed to fetch mushaf page 3"


def test_surah_proxy_passes_ayah_window(client, monkeypatch):
    calls = []

    def fake_get(url, params=None, timeout=None):
        calls.append((url, params))
        return _FakeResponse(200, {"code": 200, "data": {"ayahs": []}})

    monkeypatch.setattr(quran_api.requests, "get", fake_get)
    resp = client.get("/murajaah/surah/2?beginning=6&ending=9")
    assert resp.status_code == 200
    assert calls == [("https://api.alquran.cloud/v1/surah/2/quran-uthmani", {"offset": 5, "limit": 4})]


def test_surah_proxy_forwards_upstream_code(client, monkeypatch):
    monkeypatch.setattr(quran_api.requests, "get",
                        lambda url, params=None, timeout=None: _FakeResponse(404, {"code": 404, "data": "Not found"}))
    assert client.get("/murajaah/surah/999").status_code == 404


@pytest.mark.parametrize("query", ["beginning=9&ending=6"])
def test_surah_proxy_rejects_reversed_window(client, query):
    assert client.get(f"/murajaah/surah/2?{query}").status_code == 400
