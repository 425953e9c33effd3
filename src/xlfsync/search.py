"""Locating units that still need work, by scanning file text.

These helpers work on the raw text of the files (not the parsed model)
so that a found position is a character offset in the file.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from xlfsync.config import Settings
from xlfsync.models import ACTION_NEEDED_STATES, TranslationMode, TranslationToken
from xlfsync.sync import remove_custom_notes_from_file

log = logging.getLogger(__name__)

_MULTIPLE_TARGETS = re.compile(r"^\s*<target\b[^>]*>.*\r*\n*(\s*<target\b[^>]*>.*)+", re.MULTILINE)
_EMPTY_TARGETS = ["></target>", "<target/>"]


@dataclass
class SearchResult:
    found: bool = False
    word: str = ""
    position: int = 0


@dataclass
class Match:
    path: Path
    line_no: int
    line: str


def action_needed_keywords() -> list[str]:
    return [f'state="{state.value}"' for state in ACTION_NEEDED_STATES]


def untranslated_keywords() -> list[str]:
    """Everything that marks a target as unfinished, in any mode."""
    return [t.value for t in TranslationToken] + action_needed_keywords() + _EMPTY_TARGETS


def find_nearest_word_match(contents: str, start_offset: int, search_for: list[str]) -> SearchResult:
    """The earliest occurrence at or after *start_offset* of any word."""
    best = SearchResult()
    for word in search_for:
        pos = contents.find(word, start_offset)
        if pos >= 0 and (not best.found or pos < best.position):
            best = SearchResult(True, word, pos)
    return best


def find_nearest_multiple_targets(contents: str, start_offset: int) -> SearchResult:
    """The next run of two or more consecutive ``<target>`` lines."""
    m = _MULTIPLE_TARGETS.search(contents, start_offset)
    if m is None:
        return SearchResult()
    return SearchResult(True, m.group(0), m.start())


def find_next_untranslated(
    files: list[Path],
    start_offset: int = 0,
    *,
    replace_self_closing: bool = True,
    remove_notes_when_done: bool = True,
) -> tuple[Path, SearchResult] | None:
    """Search *files* in order for the next unfinished target.

    *start_offset* applies to the first file only.  A file without
    anything left to do gets its refresh hints removed when
    *remove_notes_when_done* is set.
    """
    keywords = untranslated_keywords()
    for i, path in enumerate(files):
        contents = path.read_text(encoding="utf-8-sig")
        offset = start_offset if i == 0 else 0
        candidates = [
            r for r in (
                find_nearest_word_match(contents, offset, keywords),
                find_nearest_multiple_targets(contents, offset),
            )
            if r.found
        ]
        if candidates:
            return path, min(candidates, key=lambda r: r.position)
        if remove_notes_when_done:
            remove_custom_notes_from_file(path, replace_self_closing)
    return None


def _search_files(folder: Path, settings: Settings) -> list[Path]:
    pattern = "*.xlf" if settings.search_only_xlf_files else "*"
    return sorted(p for p in folder.rglob(pattern) if p.is_file())


def _grep(files: list[Path], pattern: re.Pattern[str]) -> list[Match]:
    matches: list[Match] = []
    for path in files:
        try:
            text = path.read_text(encoding="utf-8-sig")
        except UnicodeDecodeError:
            log.debug("Skipping binary file %s", path)
            continue
        for line_no, line in enumerate(text.splitlines()):
            if pattern.search(line):
                matches.append(Match(path, line_no, line.strip()))
    return matches


def find_all_untranslated(folder: str | Path, settings: Settings) -> list[Match]:
    """Every line below *folder* that marks a target as unfinished."""
    if settings.translation_mode() is TranslationMode.INLINE:
        words = [t.value for t in TranslationToken]
    else:
        words = action_needed_keywords()
    pattern = re.compile("|".join(re.escape(w) for w in words))
    return _grep(_search_files(Path(folder), settings), pattern)


def find_multiple_targets(folder: str | Path, settings: Settings) -> list[tuple[Path, SearchResult]]:
    """Every unit below *folder* that carries more than one target."""
    found: list[tuple[Path, SearchResult]] = []
    for path in _search_files(Path(folder), settings):
        if path.suffix.lower() != ".xlf":
            continue
        contents = path.read_text(encoding="utf-8-sig")
        for m in _MULTIPLE_TARGETS.finditer(contents):
            found.append((path, SearchResult(True, m.group(0), m.start())))
    return found
