import pytest
import requests

import quran_api


def _ayahs(pairs, letters=10):
    return [{"surah": s, "verse": v, "text": "", "letters": letters} for s, v in pairs]


def test_count_arabic_letters_ignores_marks():
    # bismi with kasra and sukun
    assert quran_api.count_arabic_letters("بِسْمِ") == 3
    # tatweel is not a letter
    assert quran_api.count_arabic_letters("بـس") == 2
    assert quran_api.count_arabic_letters("abc 123") == 0
    assert quran_api.count_arabic_letters(None) == 0


def test_even_page_splits_into_five_pairs():
    ayahs = _ayahs((1, v) for v in range(1, 11))
    sections = quran_api.divide_into_sections(ayahs)
    assert [len(s["ayahs"]) for s in sections] == [2, 2, 2, 2, 2]
    assert all(s["letters"] == 20 for s in sections)


def test_uneven_page_keeps_every_section_non_empty():
    ayahs = [{"surah": 1, "verse": i + 1, "text": "", "letters": n}
             for i, n in enumerate([50, 10, 10, 10, 10, 10])]
    sections = quran_api.divide_into_sections(ayahs)
    assert [len(s["ayahs"]) for s in sections] == [1, 2, 1, 1, 1]
    flattened = [a for s in sections for a in s["ayahs"]]
    assert flattened == ayahs


def test_short_page_is_one_section():
    ayahs = _ayahs([(1, 1), (1, 2), (1, 3)])
    sections = quran_api.divide_into_sections(ayahs)
    assert len(sections) == 1
    assert sections[0]["letters"] == 30


def test_empty_page():
    assert quran_api.divide_into_sections([]) == []


def test_resolve_section_by_number_and_clamped():
    ayahs = _ayahs((2, v) for v in range(1, 11))
    assert quran_api.resolve_section(ayahs, 2, 3)["verse"] == "5 - 6"
    result = quran_api.resolve_section(ayahs, 2, 9)
    assert result["section"] == 5
    assert result["verse"] == "9 - 10"


def test_resolve_section_by_existing_range():
    ayahs = _ayahs((2, v) for v in range(1, 11))
    result = quran_api.resolve_section(ayahs, 2, 1, "7 - 8")
    assert result["section"] == 4
    assert (result["begin"], result["end"]) == (7, 8)


def test_resolve_section_moves_to_chapter():
    ayahs = _ayahs([(1, 1), (1, 2), (1, 3), (1, 4), (2, 1), (2, 2), (2, 3), (2, 4), (2, 5), (2, 6)])
    result = quran_api.resolve_section(ayahs, 2, 1)
    assert result["section"] == 3
    assert result["verse"] == "1 - 2"
    assert result["sections"][0] == {"section": 1, "first": "1:1", "last": "1:2", "letters": 20}


def test_resolve_section_chapter_not_on_page():
    ayahs = _ayahs((2, v) for v in range(1, 11))
    result = quran_api.resolve_section(ayahs, 3, 1)
    assert result["on_page"] is False
    assert result["verse"] == "1 - 1"


@pytest.mark.parametrize("value,expected", [
    ("3 - 7", (3, 7)),
    ("5", (5, 5)),
    ("x - 2", None),
    (None, None),
])
def test_parse_verse_range(value, expected):
    assert quran_api.parse_verse_range(value) == expected


class _FakeResponse:
    def __init__(self, status_code, payload):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


def test_fetch_page_ayahs_counts_letters(monkeypatch):
    payload = {"code": 200, "data": {"ayahs": [
        {"surah": {"number": 1}, "numberInSurah": 1, "text": "بِسْمِ"},
    ]}}
    monkeypatch.setattr(quran_api.requests, "get", lambda url, params=None, timeout=None: _FakeResponse(200, payload))
    assert quran_api.fetch_page_ayahs(1) == [
        {"surah": 1, "verse": 1, "text": "بِسْمِ", "letters": 3}
    ]


def test_fetch_page_ayahs_raises_on_bad_page(monkeypatch):
    monkeypatch.setattr(quran_api.requests, "get",
                        lambda url, params=None, timeout=None: _FakeResponse(400, {"code": 400, "data": "bad"}))
    with pytest.raises(quran_api.QuranApiError):
        quran_api.fetch_page_ayahs(999)


def test_transport_errors_become_api_errors(monkeypatch):
    def fail(url, params=None, timeout=None):
        raise requests.ConnectionError("down")
    monkeypatch.setattr(quran_api.requests, "get", fail)
    with pytest.raises(quran_api.QuranApiError):
        quran_api.fetch_surah(1)


def test_non_json_response(monkeypatch):
    monkeypatch.setattr(quran_api.requests, "get",
                        lambda url, params=None, timeout=None: _FakeResponse(502, ValueError("no json")))
    with pytest.raises(quran_api.QuranApiError):
        quran_api.fetch_surah_name(1)


def test_surah_name_tolerates_error_messages(monkeypatch):
    monkeypatch.setattr(quran_api.requests, "get",
                        lambda url, params=None, timeout=None: _FakeResponse(200, {"code": 200, "data": "Invalid surah"}))
    assert quran_api.fetch_surah_name(115) == ""


def test_fetch_page_ayahs_error_message_payload(monkeypatch):
    monkeypatch.setattr(quran_api.requests, "get",
                        lambda url, params=None, timeout=None: _FakeResponse(200, {"code": 200, "data": "Invalid page"}))
    with pytest.raises(quran_api.QuranApiError):
        quran_api.fetch_page_ayahs(605)
