import base64
from datetime import date
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def as_number(value):
    """Surah ids are numeric with optional sub-section decimals; keep 2 as 2, 2.1 as 2.1."""
    if value is None:
        return None
    value = float(value)
    return int(value) if value.is_integer() else value


class User(db.Model):
    __tablename__ = "user"

    id = db.Column(db.Integer, primary_key=True)
    user = db.Column(db.String(80), unique=True, nullable=False)
    # PIN kept base64-encoded; obfuscation only, not hashing
    pin_b64 = db.Column(db.String(64), nullable=False)

    surahs = db.relationship("MemorizedSurah", backref="owner", lazy=True, cascade="all, delete-orphan")

    def set_pin(self, plaintext: str):
        self.pin_b64 = base64.b64encode(plaintext.encode()).decode()

    def check_pin(self, plaintext: str) -> bool:
        return self.pin_b64 == base64.b64encode(plaintext.encode()).decode()

    def __repr__(self):
        return f"<User {self.user}>"


class MemorizedSurah(db.Model):
    __tablename__ = "memorized_surah"

    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), primary_key=True)
    id = db.Column(db.Numeric(8, 2, asdecimal=False), primary_key=True, autoincrement=False)
    parent_id = db.Column(db.Numeric(8, 2, asdecimal=False), nullable=True)
    chapter_name = db.Column(db.String(120), nullable=False)
    total_verse = db.Column(db.Integer, nullable=False, default=0)
    verse_memorized = db.Column(db.Integer, nullable=False, default=0)
    juz = db.Column(db.Integer, nullable=True)
    note = db.Column(db.Text, nullable=True)
    murajaah_counter = db.Column(db.Integer, nullable=False, default=0)

    @property
    def recitable_verses(self):
        """Verses memorized so far, or the whole chapter when nothing is recorded."""
        return self.verse_memorized or self.total_verse or 0

    def to_dict(self):
        return {
            "id": as_number(self.id),
            "parent_id": as_number(self.parent_id),
            "chapter_name": self.chapter_name,
            "total_verse": self.total_verse,
            "verse_memorized": self.verse_memorized,
            "juz": self.juz,
            "note": self.note,
            "murajaah_counter": self.murajaah_counter,
            "user_id": self.user_id,
        }

    def __repr__(self):
        return f"<MemorizedSurah {as_number(self.id)} {self.chapter_name}>"


class MurajaahLog(db.Model):
    __tablename__ = "murajaah_log"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    log_date = db.Column(db.Date, nullable=False, index=True)
    date_time = db.Column(db.DateTime, nullable=False)
    surah_id = db.Column(db.JSON, nullable=False, default=list)
    completion_rate = db.Column(db.Float, nullable=False, default=0.0)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "date_time": self.date_time.isoformat(),
            "surah_id": [as_number(s) for s in self.surah_id or []],
            "completion_rate": round(self.completion_rate, 2),
        }

    def __repr__(self):
        return f"<MurajaahLog {self.log_date} {self.completion_rate:.2f}%>"


class SabaqTracker(db.Model):
    __tablename__ = "sabaq_tracker"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False)
    chapter_number = db.Column(db.Integer, nullable=False)
    chapter_name = db.Column(db.String(120), nullable=True)
    page = db.Column(db.Integer, nullable=True)
    section = db.Column(db.Integer, nullable=True)
    verse = db.Column(db.String(20), nullable=True)
    number_of_readings = db.Column(db.Integer, nullable=False, default=0)
    complete_memorization = db.Column(db.Boolean, nullable=False, default=False)
    murajaah_20_times = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "date": self.date.isoformat(),
            "chapter_number": self.chapter_number,
            "chapter_name": self.chapter_name,
            "page": self.page,
            "section": self.section,
            "verse": self.verse,
            "number_of_readings": self.number_of_readings,
            "complete_memorization": self.complete_memorization,
            "murajaah_20_times": self.murajaah_20_times,
        }

    def __repr__(self):
        return f"<SabaqTracker {self.date} {self.chapter_number}:{self.verse}>"


class TahajjudTracker(db.Model):
    __tablename__ = "tahajjud_tracker"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    # ISO date strings, ascending and consecutive
    dates = db.Column(db.JSON, nullable=False, default=list)
    streak_count = db.Column(db.Integer, nullable=False, default=1)

    @property
    def last_date(self):
        return date.fromisoformat(self.dates[-1]) if self.dates else None

    def to_dict(self):
        return {"id": self.id, "dates": list(self.dates or []), "streak_count": self.streak_count}

    def __repr__(self):
        return f"<TahajjudTracker streak={self.streak_count}>"


class TilawahTracker(db.Model):
    __tablename__ = "tilawah_tracker"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), unique=True, nullable=False)
    last_page_recited = db.Column(db.Integer, nullable=False, default=1)
    last_update_date = db.Column(db.Date, nullable=False)
    last_update_time = db.Column(db.DateTime, nullable=False)

    def __repr__(self):
        return f"<TilawahTracker page={self.last_page_recited}>"


class TilawahUpdateLog(db.Model):
    __tablename__ = "tilawah_update_log"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    page_number = db.Column(db.Integer, nullable=False)
    update_date = db.Column(db.Date, nullable=False)
    update_time = db.Column(db.DateTime, nullable=False)
    notes = db.Column(db.Text, nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "page_number": self.page_number,
            "update_date": self.update_date.isoformat(),
            "update_time": self.update_time.isoformat(),
            "notes": self.notes,
        }

    def __repr__(self):
        return f"<TilawahUpdateLog {self.update_date} p{self.page_number}>"


class KhatamGoal(db.Model):
    __tablename__ = "khatam_goal"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), unique=True, nullable=False)
    goal_type = db.Column(db.String(20), nullable=False, default="once_month")
    target_completion_date = db.Column(db.Date, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False)
    updated_at = db.Column(db.DateTime, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "goal_type": self.goal_type,
            "target_completion_date": (self.target_completion_date.isoformat()
                                       if self.target_completion_date else None),
        }

    def __repr__(self):
        return f"<KhatamGoal {self.goal_type} by {self.target_completion_date}>"
