"""Synchronization of language files with the generated master file.

The master (``<app>.g.xlf``) is regenerated from the AL sources by
:func:`update_g_xlf_from_al_files`.  Every language file is then brought
in line with it by :func:`refresh_selected_xlf_file_from_g_xlf`: units
are added, removed and re-flagged, translator work is kept, and
suggestions are applied.  The master is only read during a refresh.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from xlfsync.al_object import ALObject
from xlfsync.al_parser import parse_object
from xlfsync.config import Settings
from xlfsync.errors import InvalidXliffError, MissingFileError, ObjectParseError
from xlfsync.matching import MatchMap, SuggestionMaps, get_xlf_match_map, match_translations_from_maps
from xlfsync.models import (
    CustomNoteType,
    RefreshXlfHint,
    StateQualifier,
    Target,
    TargetState,
    TranslationMode,
    TranslationToken,
    TRANSLATED_STATES,
    TransUnit,
    XliffDocument,
)
from xlfsync.validation import detect_invalid_values
from xlfsync.xlf_io import parse_xlf, write_xlf

log = logging.getLogger(__name__)


@dataclass
class RefreshResult:
    added: int = 0
    updated_notes: int = 0
    updated_maxwidths: int = 0
    updated_sources: int = 0
    removed_trans_units: int = 0
    removed_notes: int = 0
    checked_files: int = 0
    suggestions_added: int = 0
    file_name: str | None = None
    failed_objects: list[str] = field(default_factory=list)
    invalid_files: list[InvalidXliffError] = field(default_factory=list)

    def merge(self, other: RefreshResult) -> None:
        self.added += other.added
        self.updated_notes += other.updated_notes
        self.updated_maxwidths += other.updated_maxwidths
        self.updated_sources += other.updated_sources
        self.removed_trans_units += other.removed_trans_units
        self.removed_notes += other.removed_notes
        self.checked_files += other.checked_files
        self.suggestions_added += other.suggestions_added
        self.failed_objects.extend(other.failed_objects)
        self.invalid_files.extend(other.invalid_files)

    def changes(self) -> int:
        """Total number of changes made to units (files checked excluded)."""
        return (
            self.added + self.updated_notes + self.updated_maxwidths + self.updated_sources
            + self.removed_trans_units + self.removed_notes + self.suggestions_added
        )


# ── Master file ─────────────────────────────────────────────────


def update_g_xlf(g_xlf: XliffDocument, trans_units: list[TransUnit]) -> RefreshResult:
    """Merge freshly generated *trans_units* of one object into the master.

    New translatable units are appended, units that became locked are
    removed, and source, maxwidth, notes and flags are updated in place.
    """
    result = RefreshResult()
    for unit in trans_units:
        g_unit = g_xlf.get_trans_unit_by_id(unit.id)
        if g_unit is None:
            if unit.translate:
                g_xlf.trans_units.append(unit)
                result.added += 1
            continue
        if not unit.translate:
            g_xlf.trans_units = [u for u in g_xlf.trans_units if u.id != unit.id]
            result.removed_trans_units += 1
            continue
        if g_unit.source != unit.source:
            g_unit.source = unit.source
            result.updated_sources += 1
        if g_unit.maxwidth != unit.maxwidth:
            g_unit.maxwidth = unit.maxwidth
            result.updated_maxwidths += 1
        if unit.notes:
            if not g_unit.notes or g_unit.developer_note_content() != unit.developer_note_content():
                result.updated_notes += 1
            g_unit.notes = unit.notes
        g_unit.size_unit = unit.size_unit
        g_unit.translate = unit.translate
    return result


def sort_al_objects(objects: list[ALObject]) -> list[ALObject]:
    """Order objects by type, then by name."""
    return sorted(objects, key=lambda o: (o.object_type.value, o.name))


def update_g_xlf_from_al_files(
    g_xlf_path: str | Path,
    al_files: list[Path],
    *,
    replace_self_closing: bool = True,
) -> RefreshResult:
    """Regenerate the master file from AL source files and write it back.

    An object that cannot be parsed is logged and skipped; the others are
    still processed.

    Raises:
        MissingFileError: If the master file does not exist.
    """
    g_xlf_path = Path(g_xlf_path)
    if not g_xlf_path.is_file():
        raise MissingFileError(f"No g.xlf file was found at {g_xlf_path}", str(g_xlf_path))
    g_xlf = parse_xlf(g_xlf_path)

    totals = RefreshResult(file_name=g_xlf_path.name)
    objects: list[ALObject] = []
    for path in al_files:
        try:
            obj = parse_object(path.read_text(encoding="utf-8-sig"), str(path))
        except ObjectParseError as exc:
            log.error("%s cannot be parsed: %s", path.name, exc)
            totals.failed_objects.append(str(path))
            continue
        if obj is not None:
            objects.append(obj)

    for obj in sort_al_objects(objects):
        totals.merge(update_g_xlf(g_xlf, obj.get_trans_units()))

    write_xlf(g_xlf, g_xlf_path, replace_self_closing=replace_self_closing, bom=True)
    log.info(
        "Updated %s: %d added, %d removed, %d sources changed",
        g_xlf_path.name, totals.added, totals.removed_trans_units, totals.updated_sources,
    )
    return totals


# ── Translation-mode formatting ─────────────────────────────────


def get_new_target(mode: TranslationMode, lang_is_same_as_g_xlf: bool, g_unit: TransUnit) -> Target:
    """Seed target for a unit that has none yet."""
    if g_unit.source == "":
        return Target("")
    text = g_unit.source if lang_is_same_as_g_xlf else ""
    if mode is TranslationMode.EXTERNAL:
        state = TargetState.NEEDS_ADAPTATION if lang_is_same_as_g_xlf else TargetState.NEEDS_TRANSLATION
        return Target(text, state=state)
    if mode is TranslationMode.DTS:
        if lang_is_same_as_g_xlf:
            return Target(text, TargetState.NEEDS_REVIEW_TRANSLATION, StateQualifier.EXACT_MATCH)
        return Target(text, TargetState.NEEDS_TRANSLATION)
    token = TranslationToken.REVIEW if lang_is_same_as_g_xlf else TranslationToken.NOT_TRANSLATED
    return Target(text, translation_token=token)


def set_target_state_from_token(unit: TransUnit) -> None:
    """Turn an inline token into a target state (state modes)."""
    target = unit.target
    if target is None or target.state is not None:
        return
    token = target.translation_token
    if token is TranslationToken.NOT_TRANSLATED:
        target.state, target.state_qualifier = TargetState.NEEDS_TRANSLATION, None
    elif token is TranslationToken.REVIEW:
        target.state, target.state_qualifier = TargetState.NEEDS_REVIEW_TRANSLATION, None
    elif token is TranslationToken.SUGGESTION:
        target.state, target.state_qualifier = TargetState.TRANSLATED, StateQualifier.EXACT_MATCH
    else:
        target.state, target.state_qualifier = TargetState.TRANSLATED, None
    target.translation_token = None


_STATE_TO_TOKEN = {
    TargetState.NEW: TranslationToken.NOT_TRANSLATED,
    TargetState.NEEDS_TRANSLATION: TranslationToken.NOT_TRANSLATED,
    TargetState.NEEDS_ADAPTATION: TranslationToken.REVIEW,
    TargetState.NEEDS_L10N: TranslationToken.REVIEW,
    TargetState.NEEDS_REVIEW_ADAPTATION: TranslationToken.REVIEW,
    TargetState.NEEDS_REVIEW_L10N: TranslationToken.REVIEW,
    TargetState.NEEDS_REVIEW_TRANSLATION: TranslationToken.REVIEW,
}


def format_trans_unit_for_translation_mode(mode: TranslationMode, unit: TransUnit) -> None:
    """Express the unit's workflow status the way *mode* stores it."""
    if mode is TranslationMode.EXTERNAL:
        set_target_state_from_token(unit)
        return
    if mode is TranslationMode.DTS:
        set_target_state_from_token(unit)
        unit.remove_developer_note_if_empty()
        unit.size_unit = None
        unit.maxwidth = None
        unit.al_object_target = None
        return
    target = unit.target
    if target is None:
        return
    if target.translation_token is None:
        target.translation_token = _STATE_TO_TOKEN.get(target.state) if target.state is not None else None
    target.state = None
    target.state_qualifier = None


def format_for_dts(doc: XliffDocument, g_xlf_name: str) -> XliffDocument:
    """Reformat a whole language document for the managed service."""
    doc.original = g_xlf_name
    for unit in doc.trans_units:
        format_trans_unit_for_translation_mode(TranslationMode.DTS, unit)
    return doc


# ── Language files ──────────────────────────────────────────────


def _flag_source_change(unit: TransUnit, mode: TranslationMode) -> None:
    target = unit.target
    if target is None:
        return
    if mode is TranslationMode.EXTERNAL:
        target.state = TargetState.NEEDS_ADAPTATION
    elif mode is TranslationMode.DTS:
        target.state = TargetState.NEEDS_REVIEW_TRANSLATION
    else:
        target.state = None
        target.translation_token = TranslationToken.REVIEW
    target.state_qualifier = None
    unit.insert_custom_note(CustomNoteType.REFRESH_XLF_HINT, RefreshXlfHint.MODIFIED_SOURCE.value)


def _new_target_hint(lang_is_same_as_g_xlf: bool) -> str:
    return (RefreshXlfHint.NEW_COPIED_SOURCE if lang_is_same_as_g_xlf else RefreshXlfHint.NEW).value


def _refresh_existing_unit(
    unit: TransUnit,
    g_unit: TransUnit,
    settings: Settings,
    lang_is_same_as_g_xlf: bool,
    result: RefreshResult,
) -> None:
    mode = settings.translation_mode()
    if not unit.has_targets():
        unit.add_target(get_new_target(mode, lang_is_same_as_g_xlf, g_unit))
        unit.insert_custom_note(CustomNoteType.REFRESH_XLF_HINT, _new_target_hint(lang_is_same_as_g_xlf))
        result.added += 1

    if unit.source != g_unit.source:
        target = unit.target
        unedited_copy = (
            unit.source != "" and len(unit.targets) == 1 and target is not None and target.text == unit.source
        )
        if unedited_copy:
            # untouched copy of the old source follows the new source
            target.text = g_unit.source
        elif g_unit.source != "":
            _flag_source_change(unit, mode)
        log.debug("Source changed for %s", unit.id)
        unit.source = g_unit.source
        result.updated_sources += 1

    if settings.limits_enabled() and unit.maxwidth != g_unit.maxwidth:
        unit.maxwidth = g_unit.maxwidth
        result.updated_maxwidths += 1

    g_note = g_unit.developer_note()
    note_missing = unit.developer_note() is None and g_note is not None and mode is not TranslationMode.DTS
    if note_missing or unit.developer_note_content() != g_unit.developer_note_content():
        unit.set_developer_note(g_unit.developer_note_content())
        result.updated_notes += 1


def _new_unit(g_unit: TransUnit, settings: Settings, lang_is_same_as_g_xlf: bool) -> TransUnit:
    unit = g_unit.clone()
    unit.targets = [get_new_target(settings.translation_mode(), lang_is_same_as_g_xlf, g_unit)]
    if not settings.limits_enabled():
        unit.maxwidth = None
    unit.insert_custom_note(CustomNoteType.REFRESH_XLF_HINT, _new_target_hint(lang_is_same_as_g_xlf))
    return unit


def _clear_finished_hints(doc: XliffDocument, mode: TranslationMode) -> int:
    cleared = 0
    for unit in doc.trans_units:
        target = unit.target
        if target is None or not unit.has_custom_note(CustomNoteType.REFRESH_XLF_HINT):
            continue
        untouched = target.translation_token is None and target.state is None
        if untouched or target.state in TRANSLATED_STATES:
            unit.remove_custom_note(CustomNoteType.REFRESH_XLF_HINT)
            if mode is TranslationMode.DTS:
                target.state = TargetState.TRANSLATED
                target.state_qualifier = None
            cleared += 1
    return cleared


def refresh_selected_xlf_file_from_g_xlf(
    lang_xlf: XliffDocument,
    g_xlf: XliffDocument,
    settings: Settings,
    suggestion_maps: SuggestionMaps | None = None,
    result: RefreshResult | None = None,
    *,
    sort_only: bool = False,
    use_matching: bool | None = None,
) -> XliffDocument:
    """Build the refreshed version of *lang_xlf* against the master.

    Units of *lang_xlf* are moved into the returned document in master
    order; whatever is left in *lang_xlf* afterwards was removed.  With
    *sort_only* the units are only reordered.
    """
    if result is None:
        result = RefreshResult()
    if use_matching is None:
        use_matching = settings.match_translation
    mode = settings.translation_mode()

    lang_match_map: MatchMap = get_xlf_match_map(lang_xlf)
    lang_is_same_as_g_xlf = lang_xlf.target_language.lower() == g_xlf.target_language.lower()
    new_doc = lang_xlf.clone_without_trans_units()
    if g_xlf.file_path:
        new_doc.original = Path(g_xlf.file_path).name
    remaining = lang_xlf.index_by_id()

    for g_unit in g_xlf.trans_units:
        if not g_unit.translate:
            continue
        unit = remaining.pop(g_unit.id, None)
        if unit is not None:
            if not sort_only:
                _refresh_existing_unit(unit, g_unit, settings, lang_is_same_as_g_xlf, result)
                format_trans_unit_for_translation_mode(mode, unit)
                detect_invalid_values(unit, mode, settings.detect_invalid_targets)
            new_doc.trans_units.append(unit)
        elif not sort_only:
            unit = _new_unit(g_unit, settings, lang_is_same_as_g_xlf)
            format_trans_unit_for_translation_mode(mode, unit)
            detect_invalid_values(unit, mode, settings.detect_invalid_targets)
            new_doc.trans_units.append(unit)
            log.debug("Added %s", unit.id)
            result.added += 1

    for unit_id in remaining:
        log.debug("Removed %s", unit_id)
    result.removed_trans_units += len(remaining)
    lang_xlf.trans_units = list(remaining.values())
    if sort_only:
        return new_doc

    maps = suggestion_maps.maps_for(lang_xlf.target_language) if suggestion_maps is not None else []
    if use_matching:
        maps.append(lang_match_map)
    result.suggestions_added += match_translations_from_maps(new_doc, maps, mode)
    result.removed_notes += _clear_finished_hints(new_doc, mode)
    return new_doc


def refresh_xlf_files_from_g_xlf(
    g_xlf_path: str | Path,
    lang_files: list[Path],
    settings: Settings,
    suggestion_maps: SuggestionMaps | None = None,
    *,
    sort_only: bool = False,
    use_matching: bool | None = None,
) -> RefreshResult:
    """Refresh every language file against the master and write it back.

    A language file with malformed markup is skipped and reported in
    ``RefreshResult.invalid_files``; files already written stay written.

    Raises:
        MissingFileError: If the master or any language file is missing.
            Nothing is written in that case.
    """
    g_xlf_path = Path(g_xlf_path)
    for path in [g_xlf_path, *lang_files]:
        if not Path(path).is_file():
            raise MissingFileError(f"The file {path} does not exist", str(path))

    result = RefreshResult(file_name=g_xlf_path.name, checked_files=len(lang_files))
    log.info("Translate file path: %s", g_xlf_path)
    g_xlf = parse_xlf(g_xlf_path)

    for lang_path in lang_files:
        log.info("Language file: %s", lang_path)
        try:
            lang_xlf = parse_xlf(lang_path)
        except InvalidXliffError as exc:
            log.error("%s (byte offset %d)", exc, exc.offset)
            result.invalid_files.append(exc)
            continue
        new_doc = refresh_selected_xlf_file_from_g_xlf(
            lang_xlf, g_xlf, settings, suggestion_maps, result,
            sort_only=sort_only, use_matching=use_matching,
        )
        write_xlf(new_doc, lang_path, replace_self_closing=settings.replace_self_closing_xlf_tags)
    return result


# ── Single-unit and document helpers ────────────────────────────


def set_translated(
    unit: TransUnit,
    mode: TranslationMode,
    new_state: TargetState = TargetState.TRANSLATED,
) -> None:
    """Mark *unit* as done and drop its refresh hint."""
    target = unit.target
    if target is None:
        return
    if mode is not TranslationMode.INLINE:
        target.state = new_state
        target.state_qualifier = None
    target.translation_token = None
    unit.remove_custom_note(CustomNoteType.REFRESH_XLF_HINT)


def remove_all_custom_notes(doc: XliffDocument) -> bool:
    if not doc.custom_notes_of_type_exist(CustomNoteType.REFRESH_XLF_HINT):
        return False
    doc.remove_all_custom_notes_of_type(CustomNoteType.REFRESH_XLF_HINT)
    return True


def remove_custom_notes_from_file(path: str | Path, replace_self_closing: bool = True) -> bool:
    """Drop all refresh hints from a file that has no open tokens left."""
    doc = parse_xlf(path)
    if doc.translation_tokens_exist():
        log.info("%s still has translation tokens, notes kept", Path(path).name)
        return False
    if not remove_all_custom_notes(doc):
        return False
    write_xlf(doc, path, replace_self_closing=replace_self_closing)
    log.info("Removed custom notes from %s", Path(path).name)
    return True


def _is_exact_match(qualifier: StateQualifier | str | None) -> bool:
    return qualifier in (StateQualifier.EXACT_MATCH, StateQualifier.MS_EXACT_MATCH)


def import_translated_file_into_target(
    source: XliffDocument,
    target: XliffDocument,
    mode: TranslationMode,
    exact_match_state: TargetState | None = None,
    detect_invalid: bool = True,
) -> None:
    """Merge a document returned by the managed service into *target*.

    Raises:
        ValueError: When *mode* is not the managed-service mode.
    """
    if mode is not TranslationMode.DTS:
        raise ValueError("Importing translated files requires the DTS translation mode")
    for source_unit in source.trans_units:
        target_unit = target.get_trans_unit_by_id(source_unit.id)
        if target_unit is None:
            target_unit = source_unit
            target.trans_units.append(target_unit)
        else:
            current = target_unit.target
            if current is None:
                if source_unit.target is not None:
                    target_unit.add_target(source_unit.target)
            elif current.state not in TRANSLATED_STATES and source_unit.target is not None:
                if source_unit.target.state_qualifier is StateQualifier.ID_MATCH:
                    current.state_qualifier = None
                else:
                    current.state = source_unit.target.state
                    current.state_qualifier = source_unit.target.state_qualifier
                    current.text = source_unit.target.text
        current = target_unit.target
        if exact_match_state is not None and current is not None and _is_exact_match(current.state_qualifier):
            current.state = exact_match_state
            current.state_qualifier = None
        detect_invalid_values(target_unit, mode, detect_invalid)
