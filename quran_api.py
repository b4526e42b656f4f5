import re
import logging
import requests

logger = logging.getLogger(__name__)

# ----------------------------
# CONFIG
# ----------------------------
DEFAULT_API_URL = "https://api.alquran.cloud/v1"
DEFAULT_EDITION = "quran-uthmani"
DEFAULT_TIMEOUT = 10
SECTIONS_PER_PAGE = 5


class QuranApiError(Exception):
    """Raised when the Quran text API cannot be reached or answers garbage."""

    def __init__(self, message, status_code=502):
        super().__init__(message)
        self.status_code = status_code


# ----------------------------
# Letter counting
# ----------------------------
_DIACRITICS = re.compile(r'[\u0610-\u061A\u064B-\u065F\u0670\u06D6-\u06ED]')
_TATWEEL = re.compile(r'\u0640')
_NON_ARABIC = re.compile(r'[^\u0600-\u06FF]')


def count_arabic_letters(text):
    # Harakat and Quranic annotation marks are not letters
    if not text:
        return 0
    s = _DIACRITICS.sub('', text)
    s = _TATWEEL.sub('', s)
    s = _NON_ARABIC.sub('', s)
    return len(s)


# ----------------------------
# Fetching
# ----------------------------
def _get(url, params=None, base_url=DEFAULT_API_URL, timeout=DEFAULT_TIMEOUT):
    full_url = f"{base_url.rstrip('/')}/{url.lstrip('/')}"
    try:
        response = requests.get(full_url, params=params, timeout=timeout)
    except requests.RequestException as exc:
        logger.warning("Quran API unreachable: %s (%s)", full_url, exc)
        raise QuranApiError(f"Quran API unreachable: {exc}") from exc
    try:
        data = response.json()
    except ValueError as exc:
        logger.warning("Quran API sent non-JSON for %s (HTTP %s)", full_url, response.status_code)
        raise QuranApiError("Quran API returned an invalid response") from exc
    return response.status_code, data


def _payload(data):
    # Error answers carry a message string under "data" instead of an object
    inner = data.get("data") if isinstance(data, dict) else None
    return inner if isinstance(inner, dict) else {}


def fetch_page_ayahs(page, **kwargs):
    """Return the ayahs of one Mushaf page as dicts with surah, verse, text and letters."""
    status, data = _get(f"page/{page}/{DEFAULT_EDITION}", **kwargs)
    ayahs = _payload(data).get("ayahs")
    if status != 200 or not ayahs:
        raise QuranApiError(f"Failed to fetch mushaf page {page}", status_code=502)
    return [
        {
            "surah": a["surah"]["number"],
            "verse": a["numberInSurah"],
            "text": a["text"],
            "letters": count_arabic_letters(a["text"]),
        }
        for a in ayahs
    ]


def fetch_surah_name(chapter, **kwargs):
    """English name of a chapter, or '' when the API has none."""
    status, data = _get(f"surah/{chapter}", **kwargs)
    if status != 200:
        return ""
    return _payload(data).get("englishName", "") or ""


def fetch_surah(surah, edition=DEFAULT_EDITION, beginning=None, ending=None, **kwargs):
    """Fetch a surah text, optionally only ayahs beginning..ending (1-based, inclusive).

    Returns (status_code, payload) so callers can forward upstream errors.
    """
    params = None
    if beginning and ending:
        params = {"offset": int(beginning) - 1, "limit": int(ending) - int(beginning) + 1}
    status, data = _get(f"surah/{surah}/{edition}", params=params, **kwargs)
    if isinstance(data, dict) and data.get("code"):
        status = data["code"]
    return status, data


# ----------------------------
# Page sections
# ----------------------------
def divide_into_sections(ayahs, count=SECTIONS_PER_PAGE):
    """Split a page into up to `count` non-empty sections balanced by letter count.

    Every section ends on a verse and each cut leaves at least one ayah for
    every section still to come, so short pages get fewer sections, never
    empty ones.
    """
    n = len(ayahs or [])
    if n == 0:
        return []

    total_letters = sum(a["letters"] for a in ayahs)
    sections = []
    start = 0
    used_letters = 0

    for s in range(1, count):
        if start >= n:
            break
        remaining_sections = count - s
        if n - start <= remaining_sections:
            break

        target = (total_letters - used_letters) / (remaining_sections + 1)
        end = start
        letters = ayahs[end]["letters"]
        while end + 1 < n and letters < target and n - (end + 1) > remaining_sections:
            end += 1
            letters += ayahs[end]["letters"]

        sections.append({"ayahs": ayahs[start:end + 1], "letters": letters})
        used_letters += letters
        start = end + 1

    if start < n:
        tail = ayahs[start:]
        sections.append({"ayahs": tail, "letters": sum(a["letters"] for a in tail)})

    return sections[:count]


def find_section_by_range(sections, surah, begin, end):
    """0-based index of the section holding surah:begin-end, 0 if none does."""
    for i, section in enumerate(sections or []):
        ayahs = section["ayahs"]
        if not ayahs:
            continue
        first, last = ayahs[0], ayahs[-1]
        if first["surah"] == surah and first["verse"] <= begin and last["verse"] >= end:
            return i
    return 0


def parse_verse_range(value):
    """'3 - 7' -> (3, 7); '5' -> (5, 5); None for anything else."""
    if value is None:
        return None
    parts = [p.strip() for p in str(value).split("-")]
    try:
        begin = int(parts[0])
        end = int(parts[1]) if len(parts) > 1 and parts[1] else begin
    except ValueError:
        return None
    return begin, end


def resolve_section(ayahs, chapter, section=1, verse_range=None):
    """Pick a page section for `chapter` and the verse span it covers.

    Returns a dict with the chosen 1-based section, begin/end verses, the
    page's total letters and a summary of every section.
    """
    sections = divide_into_sections(ayahs)
    in_chapter = [a for a in ayahs if a["surah"] == chapter]

    try:
        number = int(section or 1)
    except (TypeError, ValueError):
        number = 1
    parsed = parse_verse_range(verse_range)
    if parsed:
        number = find_section_by_range(sections, chapter, parsed[0], parsed[1]) + 1
    number = min(max(1, number), max(1, len(sections)))

    chosen = sections[number - 1] if sections else None
    if chosen and not any(a["surah"] == chapter for a in chosen["ayahs"]):
        for i, sec in enumerate(sections):
            if any(a["surah"] == chapter for a in sec["ayahs"]):
                chosen, number = sec, i + 1
                break

    begin = end = 1
    chosen_in_chapter = [a for a in chosen["ayahs"] if a["surah"] == chapter] if chosen else []
    if chosen_in_chapter:
        begin, end = chosen_in_chapter[0]["verse"], chosen_in_chapter[-1]["verse"]
    elif in_chapter:
        # Chapter is on the page but not in any section we could pick
        begin, end = in_chapter[0]["verse"], in_chapter[-1]["verse"]

    return {
        "section": number,
        "begin": begin,
        "end": end,
        "verse": f"{begin} - {end}",
        "on_page": bool(in_chapter),
        "total_letters": sum(a["letters"] for a in ayahs),
        "sections": [
            {
                "section": i + 1,
                "first": f"{sec['ayahs'][0]['surah']}:{sec['ayahs'][0]['verse']}",
                "last": f"{sec['ayahs'][-1]['surah']}:{sec['ayahs'][-1]['verse']}",
                "letters": sec["letters"],
            }
            for i, sec in enumerate(sections)
        ],
    }
