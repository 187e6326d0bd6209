"""Rendering posts to bare HTML, with a cache for published posts."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict

from markdown_it import MarkdownIt

from planckblog.post import Markup, Post
from planckblog.process import CAPTURE, ExecError, Process

_ASCIIDOCTOR_ARGS = ["asciidoctor", "-a", "stylesheet!", "-s", "-o", "-", "-"]
_RAW_HTML_OMITTED = "<!-- raw HTML omitted -->"


class RenderError(RuntimeError):
    """Raised when a post cannot be rendered."""


def _omit_raw_html(self, tokens, idx, options, env) -> str:
    """Replace raw HTML with a marker; block HTML keeps its line break."""
    if tokens[idx].type == "html_block":
        return _RAW_HTML_OMITTED + "\n"
    return _RAW_HTML_OMITTED


def _make_markdown() -> MarkdownIt:
    md = MarkdownIt("commonmark")
    md.add_render_rule("html_block", _omit_raw_html)
    md.add_render_rule("html_inline", _omit_raw_html)
    return md


_MARKDOWN = _make_markdown()


def _render_markdown(src: str) -> str:
    try:
        return _MARKDOWN.render(src)
    except Exception as e:
        raise RenderError("Failed to render Markdown.") from e


def _render_asciidoc(src: str) -> str:
    try:
        proc = Process.start(_ASCIIDOCTOR_ARGS, src, CAPTURE)
        status = proc.wait()
    except ExecError as e:
        raise RenderError(str(e)) from e
    if status != 0:
        raise RenderError(f"AsciiDoctor failed with code {status}")
    return proc.output or ""


def render_post(post: Post) -> str:
    """Render the content of a post to HTML holding only the post itself."""
    if post.markup == Markup.ASCIIDOC:
        return _render_asciidoc(post.raw_content)
    if post.markup == Markup.COMMONMARK:
        return _render_markdown(post.raw_content)
    raise RenderError(f"Unknown markup: {post.markup!r}")


def _as_utc(t: datetime) -> datetime:
    if t.tzinfo is None:
        return t.replace(tzinfo=timezone.utc)
    return t


@dataclass
class _TimedRender:
    html: str
    render_time: datetime


class PostCache:
    """Renders posts, reusing a render until the post changes."""

    def __init__(self) -> None:
        self._cache: Dict[int, _TimedRender] = {}
        self._lock = threading.Lock()

    def _render_and_store(self, post_id: int, post: Post) -> str:
        html = render_post(post)
        with self._lock:
            self._cache[post_id] = _TimedRender(html, datetime.now(timezone.utc))
        return html

    def render_post(self, post: Post) -> str:
        """Render a post; drafts and posts without ID are never cached."""
        if post.id is None or post.publish_time is None:
            return render_post(post)

        with self._lock:
            cached = self._cache.get(post.id)
        if cached is None:
            return self._render_and_store(post.id, post)

        post_time = post.update_time if post.update_time is not None else post.publish_time
        if cached.render_time > _as_utc(post_time):
            return cached.html
        return self._render_and_store(post.id, post)