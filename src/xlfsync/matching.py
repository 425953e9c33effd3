"""Translation suggestions from earlier or peer translations.

A *match map* maps a source string to the target strings seen for it.
Maps are kept per target language in a :class:`SuggestionMaps` object,
lowest priority first; matching probes them from the back.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from xlfsync.config import Settings
from xlfsync.errors import InvalidXliffError
from xlfsync.models import (
    CustomNoteType,
    RefreshXlfHint,
    StateQualifier,
    Target,
    TargetState,
    TranslationMode,
    TranslationToken,
    TransUnit,
    XliffDocument,
)
from xlfsync.xlf_io import parse_xlf

log = logging.getLogger(__name__)

MatchMap = dict[str, list[str]]


def get_xlf_match_map(doc: XliffDocument) -> MatchMap:
    """Collect source -> [targets] from the finished targets of *doc*.

    Targets carrying a translation token are not finished and are left out.
    """
    match_map: MatchMap = {}
    for unit in doc.trans_units:
        if not unit.source:
            continue
        for target in unit.targets:
            if not target.has_content() or target.translation_token is not None:
                continue
            candidates = match_map.setdefault(unit.source, [])
            if target.text not in candidates:
                candidates.append(target.text)
    return match_map


def load_corpus_map(folder: str | Path, language: str) -> MatchMap | None:
    """Load ``<folder>/<language>.json`` (source -> target or [targets]).

    Returns None when the file does not exist.
    """
    path = Path(folder) / f"{language.lower()}.json"
    if not path.is_file():
        log.debug("No reference corpus at %s", path)
        return None
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    match_map: MatchMap = {}
    for source, targets in data.items():
        if isinstance(targets, str):
            targets = [targets]
        match_map[source] = [t for t in targets if t]
    return match_map


class SuggestionMaps:
    """Match maps per target language, in increasing priority.

    Built once per synchronization run and only read afterwards.
    """

    def __init__(self) -> None:
        self._maps: dict[str, list[MatchMap]] = {}

    def add(self, language: str, match_map: MatchMap) -> None:
        self._maps.setdefault(language.lower(), []).append(match_map)

    def add_xliff(self, doc: XliffDocument, language_codes: list[str] | None = None) -> bool:
        """Add the finished translations of *doc* if its language is wanted."""
        language = doc.target_language.lower()
        if language_codes is not None and language not in language_codes:
            return False
        self.add(language, get_xlf_match_map(doc))
        return True

    def maps_for(self, language: str) -> list[MatchMap]:
        return list(self._maps.get(language.lower(), []))

    def languages(self) -> list[str]:
        return list(self._maps)

    def __len__(self) -> int:
        return sum(len(maps) for maps in self._maps.values())


def _add_xliff_file(suggestion_maps: SuggestionMaps, path: Path, codes: list[str]) -> None:
    try:
        doc = parse_xlf(path)
    except InvalidXliffError as exc:
        log.warning("No suggestions taken from %s: %s", path.name, exc)
        return
    suggestion_maps.add_xliff(doc, codes)


def create_suggestion_maps(
    language_codes: list[str],
    settings: Settings,
    workspace_folder: str | Path = ".",
    match_xlf_path: str | Path | None = None,
    match_base_app_translation: bool | None = None,
) -> SuggestionMaps:
    """Build the suggestion maps for one run.

    Added lowest priority first:
      1. Reference corpus (``settings.base_app_translation_folder``).
      2. ``settings.translation_suggestion_paths``, in configured order.
      3. The manually selected *match_xlf_path*.
    """
    codes = [c.lower() for c in language_codes]
    suggestion_maps = SuggestionMaps()
    workspace_folder = Path(workspace_folder)

    if match_base_app_translation is None:
        match_base_app_translation = settings.match_base_app_translation
    if match_base_app_translation and settings.base_app_translation_folder:
        corpus_folder = workspace_folder / settings.base_app_translation_folder
        for code in codes:
            corpus = load_corpus_map(corpus_folder, code)
            if corpus:
                suggestion_maps.add(code, corpus)

    for rel_folder in settings.translation_suggestion_paths:
        folder = workspace_folder / rel_folder
        if not folder.is_dir():
            log.warning("Translation suggestion folder %s does not exist", folder)
            continue
        for path in sorted(folder.glob("*.xlf")):
            if path.name.endswith(".g.xlf"):
                continue
            _add_xliff_file(suggestion_maps, path, codes)

    if match_xlf_path is not None:
        _add_xliff_file(suggestion_maps, Path(match_xlf_path), codes)

    log.debug("Built %d suggestion maps for %s", len(suggestion_maps), ", ".join(codes) or "no languages")
    return suggestion_maps


# ── Applying suggestions ────────────────────────────────────────


def _needs_suggestion(unit: TransUnit) -> bool:
    return unit.source != "" and not unit.has_usable_target()


def _drop_unusable_targets(unit: TransUnit) -> None:
    unit.targets = [
        t for t in unit.targets
        if t.has_content() and t.translation_token is not TranslationToken.NOT_TRANSLATED
    ]


def match_translations_from_map(doc: XliffDocument, match_map: MatchMap, mode: TranslationMode) -> int:
    """Apply one match map to the units of *doc* that lack a translation.

    Inline-token mode appends every candidate as a ``[NAB: SUGGESTION]``
    target.  The state modes add the first candidate as a target in state
    needs-review-translation with an exact-match qualifier.  Returns the
    number of targets added.
    """
    matched = 0
    for unit in doc.trans_units:
        if not _needs_suggestion(unit):
            continue
        candidates = match_map.get(unit.source)
        if not candidates:
            continue
        _drop_unusable_targets(unit)
        if mode is TranslationMode.INLINE:
            for text in candidates:
                unit.add_target(Target(text, translation_token=TranslationToken.SUGGESTION))
                matched += 1
            unit.insert_custom_note(CustomNoteType.REFRESH_XLF_HINT, RefreshXlfHint.SUGGESTION.value)
        else:
            unit.add_target(Target(
                candidates[0],
                state=TargetState.NEEDS_REVIEW_TRANSLATION,
                state_qualifier=StateQualifier.EXACT_MATCH,
            ))
            unit.remove_custom_note(CustomNoteType.REFRESH_XLF_HINT)
            matched += 1
    return matched


def match_translations_from_maps(doc: XliffDocument, maps: list[MatchMap], mode: TranslationMode) -> int:
    """Apply *maps* (lowest priority first) starting from the last one."""
    matched = 0
    for match_map in reversed(maps):
        matched += match_translations_from_map(doc, match_map, mode)
    return matched


def match_translations(doc: XliffDocument, mode: TranslationMode) -> int:
    """Fill untranslated units from the document's own translations."""
    return match_translations_from_map(doc, get_xlf_match_map(doc), mode)
