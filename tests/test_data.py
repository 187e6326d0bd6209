import sqlite3
from datetime import datetime, timezone

import pytest

from planckblog.data import Attachment, DataError, DataSourceSqlite
from planckblog.database import DatabaseError
from planckblog.post import Markup, Post
from planckblog.utils import time_to_seconds


@pytest.fixture
def data():
    source = DataSourceSqlite.new_from_memory()
    yield source
    source.close()


def _draft(**kwargs):
    fields = dict(markup=Markup.COMMONMARK, language="en-US",
                  raw_content="aaa", abstract="bbb")
    fields.update(kwargs)
    return Post(**fields)


def _attachment():
    return Attachment(content_type="aaa", hash="bbb", original_name="ccc")


def test_can_publish_draft_and_delete(data):
    assert data.get_posts() == []
    draft_id = data.save_draft(_draft())
    assert data.get_posts() == []
    assert len(data.get_drafts()) == 1
    assert data.get_draft(draft_id) is not None

    data.publish_post(draft_id)
    assert data.get_draft(draft_id) is None
    assert data.get_drafts() == []

    posts = data.get_posts()
    assert len(posts) == 1
    assert posts[0].language == "en-US"
    assert posts[0].raw_content == "aaa"
    assert posts[0].abstract == "bbb"
    assert posts[0].id is not None
    post_id = posts[0].id
    assert data.get_post(post_id) == posts[0]

    excerpts = data.get_post_excerpts()
    assert len(excerpts) == 1
    assert excerpts[0].language == "en-US"
    assert excerpts[0].abstract == "bbb"

    data.delete_post(post_id)
    assert data.get_posts() == []


def test_can_add_and_delete_attachments(data):
    assert data.get_attachments() == []
    data.add_attachment(_attachment())

    atts = data.get_attachments()
    assert len(atts) == 1
    assert atts[0].content_type == "aaa"
    assert atts[0].hash == "bbb"
    assert atts[0].original_name == "ccc"
    assert time_to_seconds(atts[0].upload_time) > 0

    att = data.get_attachment("bbb")
    assert att is not None
    assert att.content_type == "aaa"
    assert att.hash == "bbb"
    assert att.original_name == "ccc"
    assert time_to_seconds(att.upload_time) > 0

    data.delete_attachment("bbb")
    assert data.get_attachments() == []


def test_can_get_schema_version(data):
    assert data.get_schema_version() > 0


def test_can_add_attachment_referral(data):
    data.add_attachment(_attachment())
    assert data.get_referrals_of_attachment("bbb") == {}
    data.add_attachment_referral("bbb", "zzz")
    data.add_attachment_referral("bbb", "yyy")
    data.add_attachment_referral("bbb", "zzz")
    assert data.get_referrals_of_attachment("bbb") == {"zzz": 2, "yyy": 1}


def test_deleting_attachment_removes_referrals(data):
    data.add_attachment(_attachment())
    data.add_attachment_referral("bbb", "zzz")
    data.delete_attachment("bbb")
    assert data.get_referrals_of_attachment("bbb") == {}


def test_referral_needs_existing_attachment(data):
    with pytest.raises(DatabaseError):
        data.add_attachment_referral("missing", "zzz")


def test_adding_attachment_twice_is_ignored(data):
    data.add_attachment(_attachment())
    data.add_attachment(Attachment(content_type="x", hash="bbb", original_name="y"))
    atts = data.get_attachments()
    assert len(atts) == 1
    assert atts[0].original_name == "ccc"


def test_missing_attachment(data):
    assert data.get_attachment("nope") is None
    with pytest.raises(DataError, match="Failed to delete attachment"):
        data.delete_attachment("nope")


def test_save_draft_with_id_fails(data):
    with pytest.raises(DataError, match="should not have ID"):
        data.save_draft(_draft(id=3))


def test_update_without_id_fails(data):
    with pytest.raises(DataError, match="without ID"):
        data.update_post(_draft())
    with pytest.raises(DataError, match="without ID"):
        data.update_post_no_update_time(_draft())
    with pytest.raises(DataError, match="without ID"):
        data.edit_draft(_draft())


def test_update_missing_post_fails(data):
    with pytest.raises(DataError, match="Post not found"):
        data.update_post(_draft(id=42))
    with pytest.raises(DataError, match="Post not found"):
        data.update_post_no_update_time(_draft(id=42))


def test_edit_draft(data):
    draft_id = data.save_draft(_draft())
    data.edit_draft(_draft(id=draft_id, title="new", markup=Markup.ASCIIDOC))
    draft = data.get_draft(draft_id)
    assert draft.title == "new"
    assert draft.markup is Markup.ASCIIDOC
    assert draft.publish_time is None


def test_edit_published_post_as_draft_fails(data):
    post_id = data.save_draft(_draft())
    data.publish_post(post_id)
    with pytest.raises(DataError, match="Draft not found"):
        data.edit_draft(_draft(id=post_id))


def test_publish_missing_or_published_fails(data):
    with pytest.raises(DataError, match="Draft not found"):
        data.publish_post(99)
    post_id = data.save_draft(_draft())
    data.publish_post(post_id)
    with pytest.raises(DataError, match="Draft not found"):
        data.publish_post(post_id)


def test_delete_missing_post_fails(data):
    with pytest.raises(DataError, match="Failed to delete post"):
        data.delete_post(7)


def test_update_post_sets_update_time(data):
    post_id = data.save_draft(_draft())
    data.publish_post(post_id)
    assert data.get_post(post_id).update_time is None
    data.update_post(_draft(id=post_id, title="changed"))
    post = data.get_post(post_id)
    assert post.title == "changed"
    assert post.update_time is not None
    assert post.publish_time is not None


def test_update_post_no_update_time_keeps_time(data):
    post_id = data.save_draft(_draft())
    data.publish_post(post_id)
    data.update_post_no_update_time(_draft(id=post_id, title="changed"))
    post = data.get_post(post_id)
    assert post.title == "changed"
    assert post.update_time is None


def test_posts_ordering_and_window(data):
    times = [
        datetime(2020, 1, 1, tzinfo=timezone.utc),
        datetime(2021, 1, 1, tzinfo=timezone.utc),
        datetime(2022, 1, 1, tzinfo=timezone.utc),
    ]
    ids = []
    for i, t in enumerate(times):
        post_id = data.save_draft(_draft(title=f"p{i}"))
        data.force_set_post_times(post_id, t)
        ids.append(post_id)

    assert [p.id for p in data.get_posts()] == list(reversed(ids))
    assert [p.id for p in data.get_posts(1, 1)] == [ids[1]]
    assert [p.id for p in data.get_posts(0, 2)] == [ids[2], ids[1]]
    assert [p.id for p in data.get_post_excerpts()] == list(reversed(ids))
    assert data.get_post(ids[0]).publish_time == times[0]


def test_latest_update_time(data):
    assert time_to_seconds(data.get_latest_update_time()) == 0
    post_id = data.save_draft(_draft())
    publish = datetime(2020, 5, 1, tzinfo=timezone.utc)
    update = datetime(2023, 2, 3, 4, 5, 6, tzinfo=timezone.utc)
    data.force_set_post_times(post_id, publish, update)
    assert data.get_latest_update_time() == update
    post = data.get_post(post_id)
    assert post.update_time == update


def test_key_values(data):
    assert data.get_value("pause-update-time") is None
    assert data.get_value_with_default("pause-update-time", False) is False
    data.set_value("pause-update-time", True)
    assert data.get_value("pause-update-time") is True
    data.set_value("pause-update-time", {"a": [1, 2]})
    assert data.get_value_with_default("pause-update-time", False) == {"a": [1, 2]}


def test_invalid_stored_values(tmp_path):
    db_file = tmp_path / "data.db"
    source = DataSourceSqlite.from_file(db_file)
    try:
        conn = sqlite3.connect(db_file, isolation_level=None)
        try:
            conn.execute("INSERT INTO KeyValues (key, value) VALUES ('k', '{oops');")
            conn.execute(
                "INSERT INTO Posts (markup, title, abstract, content, language, "
                "author) VALUES (5, 't', 'a', 'c', 'en', 'me');"
            )
        finally:
            conn.close()
        with pytest.raises(DataError, match="Invalid JSON value"):
            source.get_value("k")
        with pytest.raises(DataError, match="Invalid markup: 5"):
            source.get_drafts()
    finally:
        source.close()


def test_file_data_persists(tmp_path):
    db_file = tmp_path / "data.db"
    with DataSourceSqlite.from_file(db_file) as source:
        draft_id = source.save_draft(_draft(title="kept"))
    with DataSourceSqlite.from_file(db_file) as source:
        assert source.get_draft(draft_id).title == "kept"
        assert source.get_schema_version() == 1