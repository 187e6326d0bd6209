"""Blog posts and their markup languages."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

_MARKUP_NAMES = {0: "CommonMark", 1: "AsciiDoc"}


class Markup(enum.IntEnum):
    """The markup language a post is written in."""

    COMMONMARK = 0
    ASCIIDOC = 1

    @classmethod
    def is_valid(cls, value: int) -> bool:
        """Whether an integer is the value of some markup."""
        return value in cls._value2member_map_

    def to_str(self) -> str:
        """The display name of the markup."""
        return _MARKUP_NAMES[self.value]

    @classmethod
    def from_str(cls, text: str) -> Optional["Markup"]:
        """The markup with the given display name, or None."""
        for markup in cls:
            if markup.to_str() == text:
                return markup
        return None


@dataclass
class Post:
    """A post, or a draft when it has no publish time."""

    id: Optional[int] = None
    markup: Markup = Markup.COMMONMARK
    title: str = ""
    abstract: str = ""
    raw_content: str = ""
    publish_time: Optional[datetime] = None
    update_time: Optional[datetime] = None
    # IETF BCP 47 language tag.
    language: str = ""
    author: str = ""

    def __str__(self) -> str:
        return (
            f"Title: {self.title}\n"
            f"Abstract: {self.abstract}\n"
            f"Markup: {self.markup.to_str()}\n"
            f"Language: {self.language}\n"
            f"Author: {self.author}"
        )