"""Persistent storage of posts, drafts, attachments and settings."""

from __future__ import annotations

import abc
import json
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from planckblog.database import SQLite
from planckblog.post import Markup, Post
from planckblog.utils import parse_json, seconds_to_time, time_to_seconds

ReferralCounts = Dict[str, int]

SCHEMA_VERSION = 1

_POST_COLUMNS = (
    "id, markup, title, abstract, content, publish_time, update_time, "
    "language, author"
)


class DataError(RuntimeError):
    """Raised when stored data is missing, inconsistent or invalid."""


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _epoch() -> datetime:
    return seconds_to_time(0)


@dataclass
class Attachment:
    """An uploaded file, identified by the hash of its content."""

    original_name: str = ""
    hash: str = ""
    upload_time: datetime = field(default_factory=_epoch)
    content_type: str = ""


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _int(value: Any) -> int:
    return 0 if value is None else int(value)


def _post_from_row(row: Tuple[Any, ...]) -> Post:
    (post_id, markup, title, abstract, content,
     publish_time, update_time, language, author) = row
    markup = _int(markup)
    if not Markup.is_valid(markup):
        raise DataError(f"Invalid markup: {markup}")
    publish_seconds = _int(publish_time)
    update_seconds = _int(update_time)
    return Post(
        id=_int(post_id),
        markup=Markup(markup),
        title=_text(title),
        abstract=_text(abstract),
        raw_content=_text(content),
        publish_time=seconds_to_time(publish_seconds) if publish_seconds else None,
        update_time=seconds_to_time(update_seconds) if update_seconds else None,
        language=_text(language),
        author=_text(author),
    )


class DataSource(abc.ABC):
    """Storage for everything the blog keeps between runs."""

    @abc.abstractmethod
    def get_schema_version(self) -> int:
        """The schema version of the store, starting from 1."""

    @abc.abstractmethod
    def get_posts(self, start: int = 0, count: Optional[int] = None) -> List[Post]:
        """Published posts, newest first, optionally a window of them."""

    @abc.abstractmethod
    def get_post(self, post_id: int) -> Optional[Post]:
        """One published post by ID, or None."""

    @abc.abstractmethod
    def get_post_excerpts(self) -> List[Post]:
        """ID, title, abstract and language of published posts, newest first."""

    @abc.abstractmethod
    def update_post(self, post: Post) -> None:
        """Update an existing post and stamp it with a new update time."""

    @abc.abstractmethod
    def update_post_no_update_time(self, post: Post) -> None:
        """Update an existing post, leaving its update time alone."""

    @abc.abstractmethod
    def save_draft(self, draft: Post) -> int:
        """Store a new draft and return its ID."""

    @abc.abstractmethod
    def get_drafts(self) -> List[Post]:
        """All drafts, in no particular order."""

    @abc.abstractmethod
    def get_draft(self, draft_id: int) -> Optional[Post]:
        """One draft by ID, or None."""

    @abc.abstractmethod
    def edit_draft(self, draft: Post) -> None:
        """Update an existing draft."""

    @abc.abstractmethod
    def publish_post(self, post_id: int) -> None:
        """Turn a draft into a post published now."""

    @abc.abstractmethod
    def delete_post(self, post_id: int) -> None:
        """Delete a post or draft by ID."""

    @abc.abstractmethod
    def add_attachment(self, attachment: Attachment) -> None:
        """Add an attachment; do nothing if its hash is already known."""

    @abc.abstractmethod
    def get_attachment(self, hash_: str) -> Optional[Attachment]:
        """One attachment by hash, or None."""

    @abc.abstractmethod
    def get_attachments(self) -> List[Attachment]:
        """All attachments, in no particular order."""

    @abc.abstractmethod
    def delete_attachment(self, hash_: str) -> None:
        """Delete an attachment by hash."""

    @abc.abstractmethod
    def get_referrals_of_attachment(self, hash_: str) -> ReferralCounts:
        """Request counts of an attachment keyed by referring URL."""

    @abc.abstractmethod
    def add_attachment_referral(self, attachment_hash: str, url: str) -> None:
        """Count one more request of an attachment from a URL."""

    @abc.abstractmethod
    def get_value(self, key: str) -> Optional[Any]:
        """A JSON value from the key-value store, or None if absent."""

    def get_value_with_default(self, key: str, default: Any) -> Any:
        """A JSON value from the key-value store, or the default if absent."""
        value = self.get_value(key)
        return default if value is None else value

    @abc.abstractmethod
    def set_value(self, key: str, value: Any) -> None:
        """Store a JSON value under a key."""

    @abc.abstractmethod
    def get_latest_update_time(self) -> datetime:
        """The latest publish or update time of any post."""


class DataSourceSqlite(DataSource):
    """A data source kept in an SQLite database."""

    def __init__(self, db: SQLite) -> None:
        self._db = db

    @classmethod
    def from_file(cls, db_file: Union[str, "os.PathLike[str]"]) -> "DataSourceSqlite":
        """Open or create the database file and make sure the tables exist."""
        db = SQLite.connect_file(db_file)
        source = cls(db)
        try:
            source._set_schema_version(SCHEMA_VERSION)
            db.execute(
                "CREATE TABLE IF NOT EXISTS Posts "
                "(id INTEGER PRIMARY KEY AUTOINCREMENT, markup INTEGER, title TEXT,"
                " abstract TEXT, content TEXT, publish_time INTEGER DEFAULT 0,"
                " update_time INTEGER DEFAULT 0, language TEXT, author TEXT);"
            )
            db.execute(
                "CREATE TABLE IF NOT EXISTS Attachments "
                "(hash TEXT NOT NULL, original_name TEXT, upload_time INTEGER,"
                " content_type TEXT NOT NULL, PRIMARY KEY (hash));"
            )
            db.execute(
                "CREATE TABLE IF NOT EXISTS AttachmentReferrals "
                "(hash TEXT, origin TEXT, request_count INTEGER,"
                " FOREIGN KEY (hash) REFERENCES Attachments(hash) ON DELETE CASCADE"
                " ON UPDATE CASCADE);"
            )
            db.execute(
                "CREATE TABLE IF NOT EXISTS KeyValues "
                "(key TEXT PRIMARY KEY, value TEXT);"
            )
        except Exception:
            db.close()
            raise
        return source

    @classmethod
    def new_from_memory(cls) -> "DataSourceSqlite":
        """A fresh data source held in memory."""
        return cls.from_file(":memory:")

    def close(self) -> None:
        """Close the underlying database."""
        self._db.close()

    def __enter__(self) -> "DataSourceSqlite":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def get_schema_version(self) -> int:
        return int(self._db.query_value("PRAGMA user_version;"))

    def _set_schema_version(self, version: int) -> None:
        self._db.execute(f"PRAGMA user_version = {int(version)};")

    def _filter_posts(self, sql_suffix: str, params: Sequence[Any] = ()) -> List[Post]:
        rows = self._db.query(
            f"SELECT {_POST_COLUMNS} FROM Posts {sql_suffix};", params
        )
        return [_post_from_row(row) for row in rows]

    def _expect_one_change(self, not_found: str, weird: str) -> None:
        count = self._db.changed_rows_count()
        if count == 0:
            raise DataError(not_found)
        if count != 1:
            raise DataError(weird)

    def get_posts(self, start: int = 0, count: Optional[int] = None) -> List[Post]:
        suffix = "WHERE publish_time != 0 ORDER BY publish_time DESC"
        if start == 0 and count is None:
            return self._filter_posts(suffix)
        limit = -1 if count is None else int(count)
        return self._filter_posts(suffix + " LIMIT ? OFFSET ?", (limit, int(start)))

    def get_post(self, post_id: int) -> Optional[Post]:
        posts = self._filter_posts("WHERE publish_time != 0 AND id = ?", (post_id,))
        if not posts:
            return None
        if len(posts) > 1:
            raise DataError("Something weird happened; duplicated post ID???")
        return posts[0]

    def get_post_excerpts(self) -> List[Post]:
        rows = self._db.query(
            "SELECT id, title, abstract, language FROM Posts WHERE "
            "publish_time != 0 ORDER BY publish_time DESC;"
        )
        return [
            Post(id=_int(post_id), title=_text(title), abstract=_text(abstract),
                 language=_text(language))
            for post_id, title, abstract, language in rows
        ]

    def update_post(self, post: Post) -> None:
        if post.id is None:
            raise DataError("Trying to update a post without ID")
        self._db.execute(
            "UPDATE Posts SET markup = ?, title = ?, abstract = ?, content = ?, "
            "update_time = ?, language = ? WHERE id = ?;",
            (int(post.markup), post.title, post.abstract, post.raw_content,
             time_to_seconds(_now()), post.language, post.id),
        )
        self._expect_one_change(
            "Post not found",
            "Something weird happened when updating the post. Behavior is "
            "undefined",
        )

    def update_post_no_update_time(self, post: Post) -> None:
        if post.id is None:
            raise DataError("Trying to update a post without ID")
        self._db.execute(
            "UPDATE Posts SET markup = ?, title = ?, abstract = ?, content = ?, "
            "language = ? WHERE id = ?;",
            (int(post.markup), post.title, post.abstract, post.raw_content,
             post.language, post.id),
        )
        self._expect_one_change(
            "Post not found",
            "Something weird happened when updating the post. Behavior is "
            "undefined",
        )

    def save_draft(self, draft: Post) -> int:
        if draft.id is not None:
            raise DataError("New draft should not have ID")
        self._db.execute(
            "INSERT INTO Posts (markup, title, abstract, content, language, author)"
            " VALUES (?, ?, ?, ?, ?, ?)",
            (int(draft.markup), draft.title, draft.abstract, draft.raw_content,
             draft.language, draft.author),
        )
        return self._db.last_insert_row_id()

    def get_drafts(self) -> List[Post]:
        return self._filter_posts("WHERE publish_time = 0")

    def get_draft(self, draft_id: int) -> Optional[Post]:
        drafts = self._filter_posts("WHERE publish_time = 0 AND id = ?", (draft_id,))
        if not drafts:
            return None
        if len(drafts) > 1:
            raise DataError("Something weird happened; duplicated draft ID???")
        return drafts[0]

    def edit_draft(self, draft: Post) -> None:
        if draft.id is None:
            raise DataError("Trying to edit a draft without ID")
        self._db.execute(
            "UPDATE Posts SET markup = ?, title = ?, abstract = ?, content = ?, "
            "language = ? WHERE id = ? AND publish_time = 0;",
            (int(draft.markup), draft.title, draft.abstract, draft.raw_content,
             draft.language, draft.id),
        )
        self._expect_one_change(
            "Draft not found",
            "Something weird happened when editing the draft. Behavior is "
            "undefined",
        )

    def publish_post(self, post_id: int) -> None:
        self._db.execute(
            "UPDATE Posts SET publish_time = ? WHERE id = ? AND publish_time = 0;",
            (time_to_seconds(_now()), post_id),
        )
        self._expect_one_change(
            "Draft not found",
            "Something weird happened when publishing. Behavior is undefined",
        )

    def delete_post(self, post_id: int) -> None:
        self._db.execute("DELETE FROM Posts WHERE id = ?;", (post_id,))
        if self._db.changed_rows_count() != 1:
            raise DataError("Failed to delete post.")

    def add_attachment(self, attachment: Attachment) -> None:
        self._db.execute(
            "INSERT OR IGNORE INTO Attachments (original_name, hash, upload_time,"
            " content_type) VALUES (?, ?, ?, ?);",
            (attachment.original_name, attachment.hash,
             time_to_seconds(_now()), attachment.content_type),
        )

    def get_attachment(self, hash_: str) -> Optional[Attachment]:
        rows = self._db.query(
            "SELECT original_name, upload_time, content_type FROM Attachments "
            "WHERE hash = ?;",
            (hash_,),
        )
        if not rows:
            return None
        original_name, upload_time, content_type = rows[0]
        return Attachment(
            original_name=_text(original_name),
            hash=hash_,
            upload_time=seconds_to_time(_int(upload_time)),
            content_type=_text(content_type),
        )

    def get_attachments(self) -> List[Attachment]:
        rows = self._db.query(
            "SELECT original_name, hash, upload_time, content_type FROM "
            "Attachments;"
        )
        return [
            Attachment(
                original_name=_text(original_name),
                hash=_text(hash_),
                upload_time=seconds_to_time(_int(upload_time)),
                content_type=_text(content_type),
            )
            for original_name, hash_, upload_time, content_type in rows
        ]

    def delete_attachment(self, hash_: str) -> None:
        self._db.execute("DELETE FROM Attachments WHERE hash = ?;", (hash_,))
        if self._db.changed_rows_count() != 1:
            raise DataError("Failed to delete attachment.")

    def get_referrals_of_attachment(self, hash_: str) -> ReferralCounts:
        rows = self._db.query(
            "SELECT origin, request_count FROM AttachmentReferrals "
            "WHERE hash = ?;",
            (hash_,),
        )
        return {_text(origin): _int(count) for origin, count in rows}

    def add_attachment_referral(self, attachment_hash: str, url: str) -> None:
        rows = self._db.query(
            "SELECT request_count FROM AttachmentReferrals "
            "WHERE hash = ? AND origin = ?;",
            (attachment_hash, url),
        )
        if rows:
            self._db.execute(
                "UPDATE AttachmentReferrals SET request_count = request_count + 1 "
                "WHERE hash = ? AND origin = ?;",
                (attachment_hash, url),
            )
        else:
            self._db.execute(
                "INSERT INTO AttachmentReferrals (hash, origin, request_count) "
                "VALUES (?, ?, 1);",
                (attachment_hash, url),
            )

    def get_value(self, key: str) -> Optional[Any]:
        rows = self._db.query("SELECT value FROM KeyValues WHERE key = ?;", (key,))
        if not rows:
            return None
        try:
            return parse_json(_text(rows[0][0]))
        except ValueError as e:
            raise DataError("Invalid JSON value") from e

    def set_value(self, key: str, value: Any) -> None:
        text = json.dumps(value, separators=(",", ":"), ensure_ascii=False)
        self._db.execute(
            "INSERT INTO KeyValues (key, value) VALUES (?, ?) ON CONFLICT DO "
            "UPDATE SET value = ?;",
            (key, text, text),
        )
        if self._db.changed_rows_count() != 1:
            raise DataError("Failed to set value.")

    def get_latest_update_time(self) -> datetime:
        rows = self._db.query("SELECT publish_time, update_time FROM Posts;")
        latest = max(
            (max(_int(p), _int(u)) for p, u in rows), default=0
        )
        return seconds_to_time(max(latest, 0))

    def force_set_post_times(
        self, post_id: int, publish: datetime, update: Optional[datetime] = None
    ) -> None:
        """Overwrite the publish time, and the update time if given, of a post."""
        self._db.execute(
            "UPDATE Posts SET publish_time = ? WHERE id = ?;",
            (time_to_seconds(publish), post_id),
        )
        if update is not None:
            self._db.execute(
                "UPDATE Posts SET update_time = ? WHERE id = ?;",
                (time_to_seconds(update), post_id),
            )