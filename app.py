import os
import re
import math
import logging
from functools import wraps
from datetime import date, timedelta, datetime, timezone

import click
from flask import Flask, request, jsonify, session
from flask_cors import CORS
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

import quran_api
from models import (db, as_number, User, MemorizedSurah, MurajaahLog, SabaqTracker,
                    TahajjudTracker, TilawahTracker, TilawahUpdateLog, KhatamGoal)

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ── Timezone offset ───────────────────────────────────────────────────────────
# Server runs UTC; app records dates in Kuala Lumpur time (UTC+8, no DST).
TZ_OFFSET_HOURS = float(os.environ.get("TZ_OFFSET_HOURS", 8))


def today_local() -> date:
    """Return the current date in the configured local timezone."""
    return (datetime.now(timezone.utc) + timedelta(hours=TZ_OFFSET_HOURS)).date()


def now_local() -> datetime:
    """Naive local wall-clock time, as stored in the DateTime columns."""
    return (datetime.now(timezone.utc) + timedelta(hours=TZ_OFFSET_HOURS)).replace(tzinfo=None)

basedir = os.path.abspath(os.path.dirname(__file__))

app = Flask(__name__)
app.config["SECRET_KEY"] = os.environ.get("SECRET_KEY", "dev-secret-key-change-in-production")
app.config["SQLALCHEMY_DATABASE_URI"] = os.environ.get(
    "DATABASE_URL",
    "sqlite:///" + os.path.join(basedir, "murajaah_tracker.db"),
)
app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
app.config["QURAN_API_URL"] = os.environ.get("QURAN_API_URL", quran_api.DEFAULT_API_URL)
app.config["QURAN_API_TIMEOUT"] = float(os.environ.get("QURAN_API_TIMEOUT", quran_api.DEFAULT_TIMEOUT))
app.config["CORS_ORIGINS"] = [
    o.strip() for o in os.environ.get("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()
]
# Weekly progress is keyed Sunday..Saturday; keep that order in responses
app.json.sort_keys = False

db.init_app(app)
CORS(app, origins=app.config["CORS_ORIGINS"], supports_credentials=True)


# ── Domain constants ──────────────────────────────────────────────────────────

TOTAL_PAGES_IN_QURAN = 604  # Standard Madinah Mushaf

GOAL_DAYS = {
    "once_month":      30,
    "once_two_months": 60,
    "free":            0,
}
DEFAULT_DAILY_PAGES = 20

WEEKDAYS = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

# Two rak'ahs of each fard prayer get a surah assigned
PRAYER_SLOTS = [
    ("Fajr", 1), ("Fajr", 2),
    ("Dhuhr", 1), ("Dhuhr", 2),
    ("Asr", 1), ("Asr", 2),
    ("Maghrib", 1), ("Maghrib", 2),
    ("Isha", 1), ("Isha", 2),
]

_PIN_RE = re.compile(r"[0-9]{4}")


# ── Helpers ───────────────────────────────────────────────────────────────────


def current_user():
    """Return the logged-in User, from the session or the X-User-Id header, or None."""
    uid = session.get("user_id")
    if uid is None:
        uid = request.headers.get("X-User-Id", type=int)
    if uid is None:
        return None
    return db.session.get(User, uid)


def login_required(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        if current_user() is None:
            return jsonify({"message": "Login required."}), 401
        return f(*args, **kwargs)
    return decorated


def _json_body():
    return request.get_json(force=True, silent=True) or {}


def _number(value, cast=int, default=None):
    """Cast a JSON/form value; blank means `default`. Raises ValueError/TypeError."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    if isinstance(value, bool):
        raise TypeError("boolean is not a number")
    number = cast(value)
    if isinstance(number, float) and not math.isfinite(number):
        raise ValueError("number must be finite")
    return number


def _flag(value, default=False):
    """JSON boolean, or the strings/0-1 integers form posts send. Raises ValueError."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str) and value.strip().lower() in ("true", "false", "1", "0", ""):
        return value.strip().lower() in ("true", "1")
    raise ValueError("not a boolean")


def _parse_date(value):
    """Accept 'YYYY-MM-DD' or a full ISO timestamp; raises ValueError."""
    if not value or not isinstance(value, str):
        raise ValueError("date required")
    return date.fromisoformat(value[:10])


def _quran_kwargs():
    return {"base_url": app.config["QURAN_API_URL"], "timeout": app.config["QURAN_API_TIMEOUT"]}


def _find_surah(user, surah_id):
    return MemorizedSurah.query.filter_by(user_id=user.id, id=round(surah_id, 2)).first()


def completion_rate(reviewed_ids, total_memorized):
    """Percentage of memorized surahs reviewed, counting each id once."""
    if not total_memorized:
        return 0.0
    return min(100.0, len(set(reviewed_ids)) / total_memorized * 100)


def week_bounds(day):
    """(Sunday, Saturday) of the week containing `day`."""
    start = day - timedelta(days=(day.weekday() + 1) % 7)
    return start, start + timedelta(days=6)


def weekly_progress(day, daily_rates):
    """Label a Sunday-started week; `daily_rates` maps date -> average completion rate."""
    start, _ = week_bounds(day)
    week = {}
    for i, name in enumerate(WEEKDAYS):
        d = start + timedelta(days=i)
        rate = daily_rates.get(d)
        week[name] = {"day": d.isoformat(), "rate": f"{rate or 0:.2f}"}
    return week


def least_reviewed(surahs):
    """Recitable surahs, least reviewed first, ties broken by surah order."""
    recitable = [s for s in surahs if s.recitable_verses > 0]
    return sorted(recitable, key=lambda s: (s.murajaah_counter, float(s.id)))


def salah_plan(ordered_surahs, offset=0, reviewed_ids=()):
    """Assign surahs to the prayer slots, rotating through `ordered_surahs` from `offset`."""
    if not ordered_surahs:
        return []
    reviewed = {float(s) for s in reviewed_ids}
    start = offset % len(ordered_surahs)
    plan = []
    for idx, (prayer, rakaat) in enumerate(PRAYER_SLOTS):
        surah = ordered_surahs[(start + idx) % len(ordered_surahs)]
        plan.append({
            "prayer": prayer,
            "rakaat": rakaat,
            "surah": surah.to_dict(),
            "reviewed_today": float(surah.id) in reviewed,
        })
    return plan


def tahajjud_stats(records, today):
    """Streak summary over a user's records (oldest first)."""
    highest = max((r.streak_count for r in records), default=0)
    current = 0
    if records:
        latest = records[-1]
        # A streak is still alive if last night or tonight was recorded
        if latest.last_date and (today - latest.last_date).days <= 1:
            current = latest.streak_count
    nights = [date.fromisoformat(d) for r in records for d in r.dates]
    return {
        "highestStreak": highest,
        "currentStreak": current,
        "totalInCurrentMonth": sum(1 for d in nights if (d.year, d.month) == (today.year, today.month)),
        "totalInCurrentYear": sum(1 for d in nights if d.year == today.year),
    }


def tilawah_projection(last_page, goal_type, today, target_date=None, recent_pages=()):
    """Daily page target and estimated khatam date.

    Fixed goals spread the whole Mushaf over 30 or 60 days. The free goal
    projects the pace of the last week of updates forward, falling back to
    DEFAULT_DAILY_PAGES when there is no pace to speak of.
    """
    remaining = max(0, TOTAL_PAGES_IN_QURAN - last_page)
    if goal_type == "free":
        daily_target = DEFAULT_DAILY_PAGES
        if recent_pages:
            pace = max(0, max(recent_pages) - min(recent_pages)) / 7
            daily_target = math.ceil(pace) or DEFAULT_DAILY_PAGES
        estimated = today
        if remaining > 0:
            estimated = today + timedelta(days=math.ceil(remaining / daily_target))
    else:
        goal_days = GOAL_DAYS.get(goal_type) or 30
        daily_target = math.ceil(TOTAL_PAGES_IN_QURAN / goal_days)
        estimated = target_date or today + timedelta(days=goal_days)
    return {
        "last_page_recited": last_page,
        "remaining_pages": remaining,
        "daily_target": daily_target,
        "pages_to_complete_today": min(daily_target, remaining) if remaining > 0 else 0,
        "estimated_completion_date": estimated.isoformat(),
        "estimated_completion_day": estimated.strftime("%A"),
        "goal_type": goal_type,
        "current_date": today.isoformat(),
    }


def get_or_create_tilawah(user):
    """Tracker and khatam goal for `user`, created on first use (page 1, monthly goal)."""
    tracker = TilawahTracker.query.filter_by(user_id=user.id).first()
    goal = KhatamGoal.query.filter_by(user_id=user.id).first()
    if tracker and goal:
        return tracker, goal
    now = now_local()
    if not tracker:
        tracker = TilawahTracker(user_id=user.id, last_page_recited=1,
                                 last_update_date=now.date(), last_update_time=now)
        db.session.add(tracker)
    if not goal:
        goal = KhatamGoal(user_id=user.id, goal_type="once_month",
                          target_completion_date=now.date() + timedelta(days=GOAL_DAYS["once_month"]),
                          created_at=now, updated_at=now)
        db.session.add(goal)
    db.session.commit()
    logger.info("Initialised tilawah tracking for %s", user.user)
    return tracker, goal


# ── Auth routes ───────────────────────────────────────────────────────────────


@app.route("/login", methods=["POST"])
def login():
    data = _json_body()
    name = data.get("user")
    pin = data.get("pin")
    if not name or not isinstance(name, str):
        return jsonify({"ok": False, "message": "User is required."}), 400
    if not isinstance(pin, str) or not _PIN_RE.fullmatch(pin):
        return jsonify({"ok": False, "message": "PIN must be exactly 4 digits."}), 400
    user = User.query.filter_by(user=name.strip()).first()
    if not user or not user.check_pin(pin):
        logger.info("Failed login for %r", name)
        return jsonify({"ok": False, "message": "Invalid user or PIN."}), 401
    session["user_id"] = user.id
    return jsonify({"ok": True, "id": user.id, "user": user.user})


@app.route("/logout", methods=["POST"])
def logout():
    session.pop("user_id", None)
    return jsonify({"ok": True})


@app.route("/users")
def list_users():
    return jsonify([u.user for u in User.query.order_by(User.id).all()])


# ── Surah registry ────────────────────────────────────────────────────────────


@app.route("/murajaah/addsurah", methods=["POST"])
@login_required
def add_surah():
    user = current_user()
    data = _json_body()
    try:
        surah_id = _number(data.get("id"), float)
        parent_id = _number(data.get("parent_id"), float)
        total_verse = _number(data.get("total_verse"), int, 0)
        verse_memorized = _number(data.get("verse_memorized"), int, 0)
        juz = _number(data.get("juz"), int)
    except (TypeError, ValueError):
        return jsonify({"message": "Invalid numeric value."}), 400
    chapter_name = str(data.get("chapter_name") or "").strip()

    if surah_id is None or surah_id <= 0 or not chapter_name:
        return jsonify({"message": "Chapter number and name are required."}), 400
    if total_verse < 0 or verse_memorized < 0:
        return jsonify({"message": "Verse counts cannot be negative."}), 400
    if _find_surah(user, surah_id):
        return jsonify({"message": f"Surah {as_number(surah_id)} already exists."}), 409
    if parent_id is not None:
        if round(parent_id, 2) == round(surah_id, 2) or not _find_surah(user, parent_id):
            return jsonify({"message": "Parent surah not found."}), 400
        parent_id = round(parent_id, 2)

    surah = MemorizedSurah(
        user_id=user.id,
        id=round(surah_id, 2),
        parent_id=parent_id,
        chapter_name=chapter_name,
        total_verse=total_verse,
        verse_memorized=verse_memorized,
        juz=juz,
        note=data.get("note") or None,
        murajaah_counter=0,
    )
    db.session.add(surah)
    db.session.commit()
    logger.info("%s added surah %s (%s)", user.user, as_number(surah.id), chapter_name)
    return jsonify({"message": "Inserted Successfully"}), 201


@app.route("/murajaah/getmemorizedsurah")
@login_required
def get_memorized_surah():
    user = current_user()
    surahs = (MemorizedSurah.query
              .filter_by(user_id=user.id)
              .order_by(MemorizedSurah.juz.asc(), MemorizedSurah.id.asc())
              .all())
    return jsonify([s.to_dict() for s in surahs])


@app.route("/murajaah/updatesurah/<surah_id>", methods=["PUT"])
@login_required
def update_surah(surah_id):
    user = current_user()
    try:
        surah = _find_surah(user, float(surah_id))
    except ValueError:
        surah = None
    if not surah:
        return jsonify({"message": "Surah Not Found"}), 404

    data = _json_body()
    try:
        if "chapter_name" in data:
            name = str(data["chapter_name"] or "").strip()
            if not name:
                return jsonify({"message": "Chapter name cannot be empty."}), 400
            surah.chapter_name = name
        if "total_verse" in data:
            surah.total_verse = _number(data["total_verse"], int, 0)
        if "verse_memorized" in data:
            surah.verse_memorized = _number(data["verse_memorized"], int, 0)
        if "juz" in data:
            surah.juz = _number(data["juz"], int)
        if "note" in data:
            surah.note = data["note"] or None
    except (TypeError, ValueError):
        db.session.rollback()
        return jsonify({"message": "Invalid numeric value."}), 400
    if surah.total_verse < 0 or surah.verse_memorized < 0:
        db.session.rollback()
        return jsonify({"message": "Verse counts cannot be negative."}), 400
    db.session.commit()
    return jsonify({"message": "Surah Updated Successfully"})


@app.route("/murajaah/deletesurah/<surah_id>", methods=["DELETE"])
@login_required
def delete_surah(surah_id):
    user = current_user()
    try:
        surah = _find_surah(user, float(surah_id))
    except ValueError:
        surah = None
    if not surah:
        return jsonify({"message": "Surah Not Found"}), 404
    # Sub-sections can nest, so walk down until a level has no children
    descendants = []
    level = [surah.id]
    while level:
        level_rows = (MemorizedSurah.query
                      .filter(MemorizedSurah.user_id == user.id, MemorizedSurah.parent_id.in_(level))
                      .all())
        descendants.extend(level_rows)
        level = [row.id for row in level_rows]
    for child in descendants:
        db.session.delete(child)
    db.session.delete(surah)
    db.session.commit()
    logger.info("%s deleted surah %s and %d sub-section(s)", user.user, as_number(surah.id), len(descendants))
    return jsonify({"message": "Surah Deleted Successfully"})


# ── Murajaah log ──────────────────────────────────────────────────────────────


@app.route("/murajaah/addmurajaah", methods=["POST"])
@login_required
def add_murajaah():
    user = current_user()
    data = _json_body()
    try:
        surah_id = _number(data.get("surah_id"), float)
    except (TypeError, ValueError):
        surah_id = None
    if surah_id is None:
        return jsonify({"message": "surah_id is required."}), 400
    surah = _find_surah(user, surah_id)
    if not surah:
        return jsonify({"message": "Surah Not Found"}), 404

    today = today_local()
    log = MurajaahLog.query.filter_by(user_id=user.id, log_date=today).first()
    reviewed = list(log.surah_id) if log else []
    if float(surah.id) in {float(s) for s in reviewed}:
        return jsonify({
            "message": "Already marked",
            "already_marked": True,
            "completion_rate": round(log.completion_rate, 2),
            "surah_id": reviewed,
        })

    surah.murajaah_counter += 1
    total = MemorizedSurah.query.filter_by(user_id=user.id).count()
    # Reassign rather than append so the JSON column is flagged dirty
    reviewed = reviewed + [as_number(surah.id)]
    rate = completion_rate(reviewed, total)

    created = log is None
    if created:
        log = MurajaahLog(user_id=user.id, log_date=today)
        db.session.add(log)
    log.surah_id = reviewed
    log.date_time = now_local()
    log.completion_rate = rate
    db.session.commit()

    return jsonify({
        "message": "Inserted Successfully" if created else "Updated Successfully",
        "already_marked": False,
        "completion_rate": round(rate, 2),
        "surah_id": reviewed,
    }), 201 if created else 200


@app.route("/murajaah/getmurajaahprogress")
@login_required
def get_murajaah_progress():
    user = current_user()
    raw = request.args.get("date")
    try:
        day = _parse_date(raw) if raw else today_local()
    except ValueError:
        return jsonify({"message": "Invalid date."}), 400
    logs = MurajaahLog.query.filter_by(user_id=user.id, log_date=day).all()
    return jsonify([log.to_dict() for log in logs])


@app.route("/murajaah/getweeklymurajaahprogress")
@login_required
def get_weekly_murajaah_progress():
    user = current_user()
    raw = request.args.get("date")
    if not raw:
        return jsonify({"message": "Please provide a date to determine the week."}), 400
    try:
        day = _parse_date(raw)
    except ValueError:
        return jsonify({"message": "Invalid date."}), 400

    start, end = week_bounds(day)
    rows = (db.session.query(MurajaahLog.log_date, func.avg(MurajaahLog.completion_rate))
            .filter(MurajaahLog.user_id == user.id, MurajaahLog.log_date.between(start, end))
            .group_by(MurajaahLog.log_date)
            .order_by(MurajaahLog.log_date.asc())
            .all())
    return jsonify(weekly_progress(day, {d: float(avg) for d, avg in rows}))


@app.route("/murajaah/highlightedsurahs")
@login_required
def highlighted_surahs():
    user = current_user()
    surahs = MemorizedSurah.query.filter_by(user_id=user.id).all()
    return jsonify([s.to_dict() for s in least_reviewed(surahs)])


@app.route("/murajaah/salahplan")
@login_required
def get_salah_plan():
    user = current_user()
    offset = request.args.get("offset", 0, type=int)
    surahs = least_reviewed(MemorizedSurah.query.filter_by(user_id=user.id).all())
    log = MurajaahLog.query.filter_by(user_id=user.id, log_date=today_local()).first()
    return jsonify(salah_plan(surahs, offset, log.surah_id if log else ()))


# ── Sabaq tracker ─────────────────────────────────────────────────────────────


@app.route("/murajaah/sabaqtracker/add", methods=["POST"])
@login_required
def add_sabaq():
    user = current_user()
    data = _json_body()
    try:
        chapter_number = _number(data.get("chapter_number"), int)
        page = _number(data.get("page"), int)
        section = _number(data.get("section"), int)
        number_of_readings = _number(data.get("number_of_readings"), int, 0)
        murajaah_20_times = _number(data.get("murajaah_20_times"), int, 0)
    except (TypeError, ValueError):
        return jsonify({"message": "Invalid numeric value."}), 400
    try:
        complete = _flag(data.get("complete_memorization"))
    except ValueError:
        return jsonify({"message": "complete_memorization must be true or false."}), 400
    if chapter_number is None:
        return jsonify({"message": "chapter_number is required."}), 400
    if page is not None and not 1 <= page <= TOTAL_PAGES_IN_QURAN:
        return jsonify({"message": f"Page must be between 1 and {TOTAL_PAGES_IN_QURAN}"}), 400
    chapter_name = str(data.get("chapter_name") or "").strip() or None
    verse = str(data.get("verse") or "").strip() or None

    today = today_local()
    existing = SabaqTracker.query.filter_by(
        user_id=user.id, date=today, chapter_number=chapter_number,
        chapter_name=chapter_name, page=page, section=section, verse=verse,
    ).first()
    if existing:
        existing.number_of_readings = number_of_readings
        existing.complete_memorization = complete
        existing.murajaah_20_times = murajaah_20_times
        db.session.commit()
        return jsonify({"message": "Updated Successfully"})

    db.session.add(SabaqTracker(
        user_id=user.id, date=today, chapter_number=chapter_number,
        chapter_name=chapter_name, page=page, section=section, verse=verse,
        number_of_readings=number_of_readings, complete_memorization=complete,
        murajaah_20_times=murajaah_20_times,
    ))
    db.session.commit()
    logger.info("%s started sabaq %s:%s", user.user, chapter_number, verse)
    return jsonify({"message": "Inserted Successfully"}), 201


@app.route("/murajaah/sabaqtracker/latest")
@login_required
def latest_sabaq():
    user = current_user()
    row = SabaqTracker.query.filter_by(user_id=user.id).order_by(SabaqTracker.id.desc()).first()
    if not row:
        return jsonify({"message": "No sabaq recorded yet."}), 404
    return jsonify(row.to_dict())


@app.route("/murajaah/sabaqtracker/sections")
@login_required
def sabaq_sections():
    chapter = request.args.get("chapter", type=int)
    page = request.args.get("page", type=int)
    if not chapter or not page or not 1 <= page <= TOTAL_PAGES_IN_QURAN:
        return jsonify({"message": "chapter and a page between 1 and 604 are required."}), 400
    section = request.args.get("section", 1, type=int)
    verse = request.args.get("verse")

    try:
        ayahs = quran_api.fetch_page_ayahs(page, **_quran_kwargs())
        result = quran_api.resolve_section(ayahs, chapter, section, verse)
        on_page = result.pop("on_page")
        chapter_name = quran_api.fetch_surah_name(chapter, **_quran_kwargs()) if on_page else ""
    except quran_api.QuranApiError as exc:
        return jsonify({"message": str(exc)}), exc.status_code

    result.update(chapter_number=chapter, chapter_name=chapter_name, page=page)
    return jsonify(result)


@app.route("/murajaah/surah/<int:surah>")
def surah_text(surah):
    edition = request.args.get("edition", quran_api.DEFAULT_EDITION)
    beginning = request.args.get("beginning", type=int)
    ending = request.args.get("ending", type=int)
    if beginning and ending and ending < beginning:
        return jsonify({"message": "ending must not be before beginning."}), 400
    try:
        status, payload = quran_api.fetch_surah(surah, edition, beginning, ending, **_quran_kwargs())
    except quran_api.QuranApiError as exc:
        return jsonify({"message": str(exc)}), exc.status_code
    return jsonify(payload), status


# ── Tahajjud tracker ──────────────────────────────────────────────────────────


@app.route("/murajaah/tahajjud/record", methods=["POST"])
@login_required
def record_tahajjud():
    user = current_user()
    data = _json_body()
    raw = data.get("currentDate")
    if not raw:
        return jsonify({"message": "No current date provided."}), 400
    try:
        night = _parse_date(raw)
    except ValueError:
        return jsonify({"message": "Invalid date."}), 400

    latest = (TahajjudTracker.query
              .filter_by(user_id=user.id)
              .order_by(TahajjudTracker.id.desc())
              .first())
    last = latest.last_date if latest else None

    if last == night:
        return jsonify({"message": "Tahajjud already recorded", "streak_count": latest.streak_count})
    if last and night < last:
        return jsonify({"message": "Date is before the latest recorded night."}), 409

    if last and last == night - timedelta(days=1):
        latest.dates = latest.dates + [night.isoformat()]
        latest.streak_count += 1
        streak = latest.streak_count
    else:
        db.session.add(TahajjudTracker(user_id=user.id, dates=[night.isoformat()], streak_count=1))
        streak = 1
    db.session.commit()
    logger.info("%s recorded tahajjud on %s (streak %d)", user.user, night, streak)
    return jsonify({"message": "Tahajjud recorded successfully", "streak_count": streak})


@app.route("/murajaah/view_tahajjud_records")
@login_required
def view_tahajjud_records():
    user = current_user()
    records = TahajjudTracker.query.filter_by(user_id=user.id).order_by(TahajjudTracker.id.asc()).all()
    return jsonify(tahajjud_stats(records, today_local()))


@app.route("/murajaah/tahajjud/history/<week_offset>")
@login_required
def tahajjud_history(week_offset):
    user = current_user()
    try:
        offset = int(week_offset)
    except ValueError:
        offset = 0
    today = today_local()
    try:
        start = today - timedelta(days=today.weekday()) - timedelta(weeks=offset)
        end = start + timedelta(days=6)
    except OverflowError:
        return jsonify({"message": "Week offset out of range."}), 400

    records = TahajjudTracker.query.filter_by(user_id=user.id).order_by(TahajjudTracker.id.asc()).all()
    in_week = [
        r.to_dict() for r in records
        if any(start <= date.fromisoformat(d) <= end for d in r.dates)
    ]
    return jsonify({
        "message": "Tahajjud history retrieved successfully",
        "historyRecords": in_week,
        "week": {"start": start.isoformat(), "end": end.isoformat()},
    })


@app.route("/murajaah/tahajjud/check_today_completion")
@login_required
def check_today_tahajjud():
    user = current_user()
    today = today_local().isoformat()
    records = TahajjudTracker.query.filter_by(user_id=user.id).all()
    return jsonify({"isCompleted": any(today in r.dates for r in records)})


# ── Tilawah tracker ───────────────────────────────────────────────────────────


@app.route("/tilawah/status")
@login_required
def tilawah_status():
    tracker, goal = get_or_create_tilawah(current_user())
    return jsonify({
        "last_page_recited": tracker.last_page_recited,
        "last_update_date": tracker.last_update_date.isoformat(),
        "last_update_time": tracker.last_update_time.isoformat(),
        "goal_type": goal.goal_type,
        "target_completion_date": (goal.target_completion_date.isoformat()
                                   if goal.target_completion_date else None),
    })


@app.route("/tilawah/update", methods=["POST"])
@login_required
def tilawah_update():
    user = current_user()
    data = _json_body()
    try:
        page = _number(data.get("page_number"), int)
    except (TypeError, ValueError):
        page = None
    if page is None or not 1 <= page <= TOTAL_PAGES_IN_QURAN:
        return jsonify({"error": f"Page must be between 1 and {TOTAL_PAGES_IN_QURAN}"}), 400

    tracker, _ = get_or_create_tilawah(user)
    now = now_local()
    tracker.last_page_recited = page
    tracker.last_update_date = now.date()
    tracker.last_update_time = now
    db.session.add(TilawahUpdateLog(user_id=user.id, page_number=page, update_date=now.date(),
                                    update_time=now, notes=data.get("notes") or None))
    db.session.commit()
    logger.info("%s recited up to page %d", user.user, page)
    return jsonify({
        "success": True,
        "page_number": page,
        "update_date": now.date().isoformat(),
        "update_time": now.isoformat(),
        "message": "Page updated successfully",
    })


@app.route("/tilawah/logs")
@login_required
def tilawah_logs():
    user = current_user()
    limit = min(max(1, request.args.get("limit", 30, type=int)), 500)
    logs = (TilawahUpdateLog.query
            .filter_by(user_id=user.id)
            .order_by(TilawahUpdateLog.update_time.desc(), TilawahUpdateLog.id.desc())
            .limit(limit)
            .all())
    return jsonify([log.to_dict() for log in logs])


@app.route("/tilawah/progress")
@login_required
def tilawah_progress():
    user = current_user()
    tracker = TilawahTracker.query.filter_by(user_id=user.id).first()
    if not tracker:
        return jsonify({"error": "Tilawah data not found"}), 404
    goal = KhatamGoal.query.filter_by(user_id=user.id).first()
    today = today_local()

    recent_pages = [
        row.page_number for row in
        TilawahUpdateLog.query.filter(TilawahUpdateLog.user_id == user.id,
                                      TilawahUpdateLog.update_date >= today - timedelta(days=7)).all()
    ]
    return jsonify(tilawah_projection(
        tracker.last_page_recited,
        goal.goal_type if goal else "once_month",
        today,
        target_date=goal.target_completion_date if goal else None,
        recent_pages=recent_pages,
    ))


@app.route("/tilawah/set-khatam-goal", methods=["POST"])
@login_required
def set_khatam_goal():
    user = current_user()
    goal_type = _json_body().get("goal_type")
    if goal_type not in GOAL_DAYS:
        return jsonify({"error": "Invalid goal type"}), 400

    now = now_local()
    target = now.date() + timedelta(days=GOAL_DAYS[goal_type]) if goal_type != "free" else None
    goal = KhatamGoal.query.filter_by(user_id=user.id).first()
    if not goal:
        goal = KhatamGoal(user_id=user.id, created_at=now)
        db.session.add(goal)
    goal.goal_type = goal_type
    goal.target_completion_date = target
    goal.updated_at = now
    db.session.commit()
    logger.info("%s set khatam goal %s", user.user, goal_type)
    return jsonify({"success": True, "goal": goal.to_dict()})


@app.route("/tilawah/khatam-info")
@login_required
def khatam_info():
    user = current_user()
    goal = KhatamGoal.query.filter_by(user_id=user.id).first()
    if not goal:
        return jsonify({"error": "Khatam goal not found"}), 404
    tracker = TilawahTracker.query.filter_by(user_id=user.id).first()
    last_page = tracker.last_page_recited if tracker else 1
    return jsonify({
        "goal_type": goal.goal_type,
        "target_completion_date": (goal.target_completion_date.isoformat()
                                   if goal.target_completion_date else None),
        "pages_completed": last_page,
        "pages_remaining": TOTAL_PAGES_IN_QURAN - last_page,
        "completion_percentage": round(last_page / TOTAL_PAGES_IN_QURAN * 100),
        "total_pages": TOTAL_PAGES_IN_QURAN,
    })


# ── Errors ────────────────────────────────────────────────────────────────────


@app.errorhandler(404)
def not_found(_err):
    return jsonify({"message": "Not Found"}), 404


@app.errorhandler(405)
def method_not_allowed(_err):
    return jsonify({"message": "Method Not Allowed"}), 405


@app.errorhandler(SQLAlchemyError)
def database_error(err):
    db.session.rollback()
    logger.exception("Database error on %s %s", request.method, request.path, exc_info=err)
    return jsonify({"message": "Server Error"}), 500


# ── CLI ───────────────────────────────────────────────────────────────────────


@app.cli.command("create-user")
@click.argument("name")
@click.argument("pin")
def create_user_command(name, pin):
    """Create a user that logs in with NAME and a 4-digit PIN."""
    if not _PIN_RE.fullmatch(pin):
        raise click.BadParameter("PIN must be exactly 4 digits.", param_hint="PIN")
    if User.query.filter_by(user=name).first():
        raise click.ClickException(f"User {name} already exists.")
    u = User(user=name)
    u.set_pin(pin)
    db.session.add(u)
    db.session.commit()
    click.echo(f"Created user {name} (id {u.id}).")


with app.app_context():
    db.create_all()


if __name__ == "__main__":
    app.run(debug=True)
