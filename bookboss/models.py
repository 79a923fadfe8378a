import sqlite3
from datetime import UTC, date, datetime

import bcrypt
from flask_login import UserMixin
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.engine import Engine

db = SQLAlchemy()

BCRYPT_ROUNDS = 12

BOOK_STATUSES = ("Not Started", "In Progress", "Completed")
READING_STATUSES = ("plan_to_read", "reading", "read", "dropped")
PHOTO_TYPES = ("cover", "spine", "edges", "special")


def _utcnow():
    return datetime.now(UTC)


def _today():
    return datetime.now(UTC).date()


def _iso(value):
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores ON DELETE CASCADE unless enforcement is switched on per connection.
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# ── User ────────────────────────────────────────────────────────────


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column("password", db.String(255), nullable=False)
    is_admin = db.Column(db.Boolean, nullable=False, default=False)
    privacy_settings = db.Column(db.JSON, nullable=True)  # {share_shelves, share_progress}
    created_at = db.Column(db.DateTime, nullable=False, default=_utcnow)

    shelves = db.relationship("Shelf", backref="owner", cascade="all, delete-orphan", passive_deletes=True)
    loans = db.relationship("Loan", backref="owner", cascade="all, delete-orphan", passive_deletes=True)
    reading_lists = db.relationship(
        "ReadingList", backref="owner", cascade="all, delete-orphan", passive_deletes=True
    )
    reading_sessions = db.relationship(
        "ReadingSession", backref="reader", cascade="all, delete-orphan", passive_deletes=True
    )

    def set_password(self, password):
        self.password_hash = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode(
            "utf-8"
        )

    def check_password(self, password):
        return bcrypt.checkpw(password.encode("utf-8"), self.password_hash.encode("utf-8"))

    def to_dict(self, include_privacy=False):
        data = {"id": self.id, "username": self.username, "is_admin": self.is_admin}
        if include_privacy:
            data["privacy_settings"] = self.privacy_settings or {"share_shelves": False, "share_progress": False}
        return data

    def __repr__(self):
        return f"<User {self.username}{' (admin)' if self.is_admin else ''}>"


# ── Book ────────────────────────────────────────────────────────────


class Book(db.Model):
    __tablename__ = "books"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(500), nullable=False, index=True)
    author = db.Column(db.String(500), nullable=False, index=True)
    isbn = db.Column(db.String(20), nullable=True, index=True)
    library = db.Column(db.String(255), nullable=False, default="Main Library")

    # Format and physical attributes
    format = db.Column(db.String(50), nullable=False, default="Physical")  # Physical, Ebook, Audiobook
    binding_type = db.Column(db.String(50), nullable=True)
    physical_format = db.Column(db.String(50), nullable=True)  # Hardback, Paperback, Mass Market, ...
    book_condition = db.Column(db.String(20), nullable=True)  # Excellent, Good, Fair, Poor
    is_signed = db.Column(db.Boolean, nullable=False, default=False)
    edition_type = db.Column(db.String(50), nullable=True)
    edge_type = db.Column(db.String(50), nullable=True)
    binding_details = db.Column(db.Text, nullable=True)
    has_bonus_chapters = db.Column(db.Boolean, nullable=False, default=False)

    series = db.Column(db.String(255), nullable=True)
    series_order = db.Column(db.Integer, nullable=True)

    # Descriptive metadata
    publisher = db.Column(db.String(255), nullable=True)
    language = db.Column(db.String(20), nullable=True, default="en")
    description = db.Column(db.Text, nullable=True)
    categories = db.Column(db.JSON, nullable=False, default=list)
    descriptors = db.Column(db.JSON, nullable=False, default=list)
    page_count = db.Column(db.Integer, nullable=False, default=0)
    publication_date = db.Column(db.String(20), nullable=True)

    # Cover: remote URL and local blob path; the local path wins when both are set
    cover_url = db.Column(db.String(1000), nullable=True)
    cover_image_path = db.Column(db.String(500), nullable=True)

    status = db.Column(db.String(20), nullable=False, default="Not Started")
    rating = db.Column(db.Float, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)

    # Legacy projection of the active Loan
    is_loaned = db.Column(db.Boolean, nullable=False, default=False)
    borrower_name = db.Column(db.String(255), nullable=True)
    loan_date = db.Column(db.Date, nullable=True)
    due_date = db.Column(db.Date, nullable=True)

    # Legacy reading progress, progress_percentage is always derived
    current_page = db.Column(db.Integer, nullable=False, default=0)
    progress_percentage = db.Column(db.Float, nullable=False, default=0)
    last_read_at = db.Column(db.DateTime, nullable=True)

    added_at = db.Column(db.DateTime, nullable=False, default=_utcnow, index=True)

    __table_args__ = (db.CheckConstraint("rating >= 0 AND rating <= 5", name="ck_books_rating_range"),)

    photos = db.relationship(
        "BookPhoto",
        backref="book",
        lazy="select",
        order_by="BookPhoto.uploaded_at.desc()",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    shelf_entries = db.relationship("ShelfBook", backref="book", cascade="all, delete-orphan", passive_deletes=True)
    reading_progress = db.relationship(
        "ReadingProgress", backref="book", cascade="all, delete-orphan", passive_deletes=True
    )
    loans = db.relationship("Loan", backref="book", cascade="all, delete-orphan", passive_deletes=True)
    reading_list_entries = db.relationship(
        "ReadingListBook", backref="book", cascade="all, delete-orphan", passive_deletes=True
    )
    reading_sessions = db.relationship(
        "ReadingSession", backref="book", cascade="all, delete-orphan", passive_deletes=True
    )

    @property
    def cover(self):
        return self.cover_image_path or self.cover_url

    def recompute_progress(self):
        """Derive progress_percentage from current_page / page_count."""
        if self.page_count and self.page_count > 0:
            self.progress_percentage = round(100 * (self.current_page or 0) / self.page_count)
        else:
            self.progress_percentage = 0

    def to_dict(self, shelf_ids=None, progress=None):
        data = {column.name: _iso(getattr(self, column.key)) for column in self.__table__.columns}
        data["categories"] = list(self.categories or [])
        data["descriptors"] = list(self.descriptors or [])
        data["cover"] = self.cover
        data["shelf_ids"] = list(shelf_ids or [])
        data["user_status"] = progress.status if progress else None
        data["user_progress"] = progress.progress if progress else None
        data["user_rating"] = progress.rating if progress else None
        return data

    def __repr__(self):
        return f"<Book {self.title[:40]}>"


# ── Shelf ───────────────────────────────────────────────────────────


class Shelf(db.Model):
    __tablename__ = "shelves"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=_utcnow)

    __table_args__ = (db.UniqueConstraint("user_id", "name", name="uq_shelf_user_name"),)

    entries = db.relationship("ShelfBook", backref="shelf", cascade="all, delete-orphan", passive_deletes=True)

    def to_dict(self, book_count=None):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "created_at": _iso(self.created_at),
            "book_count": len(self.entries) if book_count is None else book_count,
        }


class ShelfBook(db.Model):
    __tablename__ = "shelf_books"

    shelf_id = db.Column(db.Integer, db.ForeignKey("shelves.id", ondelete="CASCADE"), primary_key=True)
    book_id = db.Column(db.Integer, db.ForeignKey("books.id", ondelete="CASCADE"), primary_key=True, index=True)
    added_at = db.Column(db.DateTime, nullable=False, default=_utcnow)


# ── Loan ────────────────────────────────────────────────────────────


class Loan(db.Model):
    __tablename__ = "loans"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    book_id = db.Column(db.Integer, db.ForeignKey("books.id", ondelete="CASCADE"), nullable=False, index=True)
    borrower_name = db.Column(db.String(255), nullable=False)
    loan_date = db.Column(db.Date, nullable=False, default=_today)
    due_date = db.Column(db.Date, nullable=True)
    return_date = db.Column(db.Date, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    @property
    def is_active(self):
        return self.return_date is None

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "book_id": self.book_id,
            "book_title": self.book.title if self.book else None,
            "borrower_name": self.borrower_name,
            "loan_date": _iso(self.loan_date),
            "due_date": _iso(self.due_date),
            "return_date": _iso(self.return_date),
            "notes": self.notes,
        }

    def __repr__(self):
        return f"<Loan {self.id} book={self.book_id} borrower={self.borrower_name}>"


# ── Reading Progress ────────────────────────────────────────────────


class ReadingProgress(db.Model):
    __tablename__ = "user_books"

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    book_id = db.Column(db.Integer, db.ForeignKey("books.id", ondelete="CASCADE"), primary_key=True)
    status = db.Column(db.String(20), nullable=False, default="plan_to_read")
    progress = db.Column(db.Integer, nullable=False, default=0)  # pages or percent, caller-defined
    rating = db.Column(db.Float, nullable=False, default=0)
    updated_at = db.Column(db.DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        db.CheckConstraint(
            "status IN ('plan_to_read', 'reading', 'read', 'dropped')",
            name="ck_user_books_status",
        ),
    )

    def to_dict(self):
        return {
            "user_id": self.user_id,
            "book_id": self.book_id,
            "status": self.status,
            "progress": self.progress,
            "rating": self.rating,
            "updated_at": _iso(self.updated_at),
        }


# ── Reading Lists ───────────────────────────────────────────────────


class ReadingList(db.Model):
    __tablename__ = "reading_lists"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    is_public = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    entries = db.relationship(
        "ReadingListBook", backref="reading_list", cascade="all, delete-orphan", passive_deletes=True
    )

    def to_dict(self, book_count=None):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "description": self.description,
            "is_public": self.is_public,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "book_count": len(self.entries) if book_count is None else book_count,
        }


class ReadingListBook(db.Model):
    __tablename__ = "reading_list_books"

    list_id = db.Column(db.Integer, db.ForeignKey("reading_lists.id", ondelete="CASCADE"), primary_key=True)
    book_id = db.Column(db.Integer, db.ForeignKey("books.id", ondelete="CASCADE"), primary_key=True, index=True)
    added_at = db.Column(db.DateTime, nullable=False, default=_utcnow)
    notes = db.Column(db.Text, nullable=True)


# ── Reading Sessions ────────────────────────────────────────────────


class ReadingSession(db.Model):
    __tablename__ = "reading_sessions"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    book_id = db.Column(db.Integer, db.ForeignKey("books.id", ondelete="CASCADE"), nullable=False)
    started_at = db.Column(db.DateTime, nullable=False, default=_utcnow, index=True)
    ended_at = db.Column(db.DateTime, nullable=True)
    duration_minutes = db.Column(db.Integer, nullable=False, default=0)
    pages_read = db.Column(db.Integer, nullable=False, default=0)

    __table_args__ = (
        db.Index("ix_reading_sessions_user_book", "user_id", "book_id"),
        db.CheckConstraint("pages_read >= 0", name="ck_reading_sessions_pages_read"),
    )

    @property
    def is_open(self):
        return self.ended_at is None

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "book_id": self.book_id,
            "started_at": _iso(self.started_at),
            "ended_at": _iso(self.ended_at),
            "duration_minutes": self.duration_minutes,
            "pages_read": self.pages_read,
        }

    def __repr__(self):
        return f"<ReadingSession {self.id} book={self.book_id}>"


# ── Book Photo ──────────────────────────────────────────────────────


class BookPhoto(db.Model):
    __tablename__ = "book_photos"

    id = db.Column(db.Integer, primary_key=True)
    book_id = db.Column(db.Integer, db.ForeignKey("books.id", ondelete="CASCADE"), nullable=False, index=True)
    photo_path = db.Column(db.String(500), nullable=False)
    photo_type = db.Column(db.String(20), nullable=True)  # cover, spine, edges, special
    description = db.Column(db.Text, nullable=True)
    tags = db.Column(db.JSON, nullable=True)
    uploaded_at = db.Column(db.DateTime, nullable=False, default=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "book_id": self.book_id,
            "photo_path": self.photo_path,
            "photo_type": self.photo_type,
            "description": self.description,
            "tags": list(self.tags or []),
            "uploaded_at": _iso(self.uploaded_at),
        }


# ── Audit Log ───────────────────────────────────────────────────────


class AuditLog(db.Model):
    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)
    timestamp = db.Column(db.DateTime, nullable=False, default=_utcnow, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    action = db.Column(db.String(100), nullable=False, index=True)
    target_type = db.Column(db.String(50), nullable=True)  # book, loan, shelf, user, setting
    target_id = db.Column(db.Integer, nullable=True)
    detail = db.Column(db.Text, nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)

    def __repr__(self):
        return f"<AuditLog {self.action} at {self.timestamp}>"


# ── Settings ────────────────────────────────────────────────────────


class Setting(db.Model):
    __tablename__ = "settings"

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(100), unique=True, nullable=False)
    value = db.Column(db.Text, nullable=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    @staticmethod
    def get(key, default=None):
        entry = Setting.query.filter_by(key=key).first()
        return entry.value if entry else default

    @staticmethod
    def set(key, value, commit=True):
        entry = Setting.query.filter_by(key=key).first()
        if entry:
            entry.value = None if value is None else str(value)
        else:
            entry = Setting(key=key, value=None if value is None else str(value))
            db.session.add(entry)
        if commit:
            db.session.commit()
        return entry
