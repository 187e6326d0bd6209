# planckblog

The building blocks of a deliberately simple blog server. It stores posts,
drafts, attachments and settings in SQLite, renders posts to HTML, resolves
theme stylesheets, and handles URLs and plain HTTP requests.

## Installation

```
pip install planckblog
```

To render AsciiDoc posts, `asciidoctor` must be on your `PATH`. CommonMark
posts are rendered in-process with markdown-it-py. Raw HTML in CommonMark is
replaced by `<!-- raw HTML omitted -->`.

## Modules

- `planckblog.post`: `Post`, a dataclass, and the `Markup` enum
  (`COMMONMARK` or `ASCIIDOC`) with `is_valid()`, `to_str()` and
  `from_str()`. A post without a publish time is a draft.
- `planckblog.data`: `DataSourceSqlite`, built with `from_file()` or
  `new_from_memory()`. It stores posts, drafts, attachments (`Attachment`),
  attachment referral counts and a JSON key-value store (`get_value()`,
  `get_value_with_default()`, `set_value()`). It can be used as a context
  manager.
- `planckblog.database`: `SQLite`, a thin connection wrapper that several
  threads may share. It turns on WAL and foreign keys and offers `execute()`,
  `query()` and `query_value()`.
- `planckblog.rendering`: `render_post()` and `PostCache`. The cache keeps
  rendered HTML of published posts until the post's update (or publish) time
  is later than the render. Drafts and posts without an ID are not cached.
- `planckblog.theme`: `ThemeManager` loads every subdirectory of a themes
  directory that holds an `info.yaml` file (with optional `name` and `parent`
  keys). `stylesheets()` returns the `.css` files of a theme and its
  ancestors, root theme first, as paths relative to the themes directory.
- `planckblog.url`: `URL`, which parses an absolute URL with `from_str()`,
  exposes its parts as attributes and offers `append_path()`.
- `planckblog.hashing`: `Sha256HalfHasher`, whose `hash_to_hex_str()` returns
  the first half of a lowercase SHA-256 hex digest.
- `planckblog.process`: `Pipe` and `Process`, a small helper for starting
  child programs. Pass `CAPTURE` as `stdout` to collect the output in
  `Process.output` after `wait()`.
- `planckblog.http_client`: `HTTPSession`, `HTTPRequest` and `HTTPResponse`.
  HTTP error statuses come back as responses, and redirects are not followed.
- `planckblog.utils`: string, time, JSON and number helpers such as
  `strip()`, `escape_html()`, `time_to_seconds()` and `str_to_number()`.

## Example

```python
from planckblog.data import DataSourceSqlite
from planckblog.post import Markup, Post
from planckblog.rendering import render_post
from planckblog.url import URL

with DataSourceSqlite.new_from_memory() as data:
    draft_id = data.save_draft(
        Post(markup=Markup.COMMONMARK, title="Hello", raw_content="# Hi",
             language="en-US", author="Someone")
    )
    data.publish_post(draft_id)

    post = data.get_post(draft_id)
    print(render_post(post))

print(URL.from_str("https://blog.example.com/").append_path("posts"))
# https://blog.example.com/posts
```

Operations that fail raise exceptions (`DataError`, `DatabaseError`,
`RenderError`, `ThemeError`, `ExecError`, `HTTPClientError`). They do not
return status codes.

## What this package does not do

It is a library only. It has no command-line program, no web server, no page
templates, no configuration file loading and no login or authentication. A
blog application has to supply those itself on top of these modules.

## Running the tests

```
pip install -e ".[test]"
pytest
```