"""Loading themes from a directory and resolving their stylesheets."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Union

import yaml

from planckblog.utils import to_lower

THEME_INFO_FILE_NAME = "info.yaml"


class ThemeError(RuntimeError):
    """Raised when themes cannot be loaded."""


@dataclass
class Theme:
    """One theme directory and the stylesheets it holds."""

    name: str = ""
    parent_name: str = ""
    # Full path of the theme directory.
    dir: Path = field(default_factory=Path)
    # Paths relative to the themes directory, sorted.
    stylesheets: List[Path] = field(default_factory=list)
    parent: Optional["Theme"] = field(default=None, repr=False, compare=False)


def _read_theme_dir(directory: Path) -> Theme:
    try:
        text = (directory / THEME_INFO_FILE_NAME).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ThemeError("Failed to read theme info") from e
    try:
        info = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ThemeError(f"Invalid theme info in {directory}: {e}") from e
    if info is None:
        info = {}
    if not isinstance(info, dict):
        raise ThemeError(f"Invalid theme info in {directory}")

    theme = Theme(dir=directory)
    if "parent" in info:
        theme.parent_name = "" if info["parent"] is None else str(info["parent"])
    if "name" in info:
        theme.name = "" if info["name"] is None else str(info["name"])
    else:
        theme.name = directory.name

    themes_dir = directory.parent
    theme.stylesheets = sorted(
        Path(os.path.relpath(entry, themes_dir))
        for entry in directory.iterdir()
        if to_lower(entry.suffix) == ".css"
    )
    return theme


class ThemeManager:
    """All themes found in a themes directory, keyed by name."""

    def __init__(self) -> None:
        self._themes: Dict[str, Theme] = {}

    def load_dir(self, directory: Union[str, "os.PathLike[str]"]) -> None:
        """Load every subdirectory holding a theme info file, then link parents."""
        root = Path(directory)
        try:
            entries = sorted(root.iterdir())
        except OSError as e:
            raise ThemeError(f"Failed to read themes directory {root}: {e}") from e
        for entry in entries:
            if not entry.is_dir():
                continue
            if not (entry / THEME_INFO_FILE_NAME).exists():
                continue
            theme = _read_theme_dir(entry)
            self._themes[theme.name] = theme

        for theme in self._themes.values():
            if not theme.parent_name:
                continue
            parent = self._themes.get(theme.parent_name)
            if parent is None:
                raise ThemeError(
                    f"Couldn’t find theme {theme.name}’s parent, {theme.parent_name}"
                )
            theme.parent = parent

    def stylesheets(self, theme_name: str) -> List[Path]:
        """Stylesheets of a theme and its ancestors, root first; empty if unknown."""
        result: List[Path] = []
        theme = self._themes.get(theme_name)
        seen = set()
        while theme is not None and id(theme) not in seen:
            seen.add(id(theme))
            result.extend(reversed(theme.stylesheets))
            theme = theme.parent
        result.reverse()
        return result

    def theme_names(self) -> List[str]:
        """Names of all loaded themes."""
        return list(self._themes)