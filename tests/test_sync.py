"""Tests for synchronizing language files with the master file."""

from __future__ import annotations

import shutil
from pathlib import Path

import pytest

from xlfsync.config import Settings
from xlfsync.errors import MissingFileError
from xlfsync.matching import SuggestionMaps
from xlfsync.models import (
    CustomNoteType,
    Note,
    NoteFrom,
    RefreshXlfHint,
    StateQualifier,
    Target,
    TargetState,
    TranslationMode,
    TranslationToken,
    TransUnit,
    XliffDocument,
)
from xlfsync.sync import (
    RefreshResult,
    format_for_dts,
    format_trans_unit_for_translation_mode,
    get_new_target,
    import_translated_file_into_target,
    refresh_selected_xlf_file_from_g_xlf,
    refresh_xlf_files_from_g_xlf,
    remove_all_custom_notes,
    remove_custom_notes_from_file,
    set_translated,
    update_g_xlf,
    update_g_xlf_from_al_files,
)
from xlfsync.workspace import get_al_files
from xlfsync.xlf_io import parse_xlf, write_xlf

FIXTURES_DIR = Path(__file__).parent / "fixtures"
HINT = CustomNoteType.REFRESH_XLF_HINT


def _unit(unit_id: str, source: str, *targets: Target, dev_note: str = "") -> TransUnit:
    return TransUnit(
        id=unit_id,
        source=source,
        targets=list(targets),
        notes=[Note(NoteFrom.DEVELOPER, dev_note, priority=2), Note(NoteFrom.GENERATOR, unit_id, priority=3)],
    )


def _refresh(lang: XliffDocument, master: XliffDocument, settings: Settings, maps=None):
    result = RefreshResult()
    new_doc = refresh_selected_xlf_file_from_g_xlf(lang, master, settings, maps, result)
    return new_doc, result


@pytest.fixture
def empty_lang() -> XliffDocument:
    return parse_xlf(FIXTURES_DIR / "empty.sv-SE.xlf")


class TestNewUnits:
    def test_all_units_added(self, master_doc, empty_lang, settings):
        new_doc, result = _refresh(empty_lang, master_doc, settings)
        assert result.added == 3
        assert [u.id for u in new_doc.trans_units] == [u.id for u in master_doc.trans_units if u.translate]
        for unit in new_doc.trans_units:
            assert unit.custom_note_content(HINT) == RefreshXlfHint.NEW.value
            assert unit.target.translation_token is TranslationToken.NOT_TRANSLATED
            assert unit.target.text == ""

    def test_original_points_at_master(self, master_doc, empty_lang, settings):
        new_doc, _ = _refresh(empty_lang, master_doc, settings)
        assert new_doc.original == "master.g.xlf"
        assert new_doc.target_language == "sv-SE"

    def test_master_not_mutated(self, master_doc, empty_lang, settings):
        before = [u.clone() for u in master_doc.trans_units]
        _refresh(empty_lang, master_doc, settings)
        assert master_doc.trans_units == before

    def test_same_language_copies_source(self, master_doc, settings):
        lang = master_doc.clone_without_trans_units()
        new_doc, _ = _refresh(lang, master_doc, settings)
        unit = new_doc.trans_units[1]
        assert unit.target.text == "Client"
        assert unit.target.translation_token is TranslationToken.REVIEW
        assert unit.custom_note_content(HINT) == RefreshXlfHint.NEW_COPIED_SOURCE.value

    def test_dts_new_units(self, master_doc, empty_lang):
        new_doc, _ = _refresh(empty_lang, master_doc, Settings(use_dts=True))
        unit = new_doc.trans_units[1]
        assert unit.target.state is TargetState.NEEDS_TRANSLATION
        assert unit.target.translation_token is None
        assert unit.maxwidth is None
        assert unit.size_unit is None
        assert new_doc.trans_units[0].developer_note() is None

    def test_external_new_units(self, master_doc, empty_lang):
        new_doc, _ = _refresh(empty_lang, master_doc, Settings(use_external_translation_tool=True))
        unit = new_doc.trans_units[1]
        assert unit.target.state is TargetState.NEEDS_TRANSLATION
        assert unit.maxwidth == 30


class TestExistingUnits:
    def test_counts(self, master_doc, lang_doc, settings):
        new_doc, result = _refresh(lang_doc, master_doc, settings)
        assert result.added == 1
        assert result.updated_sources == 1
        assert result.updated_maxwidths == 1
        assert result.updated_notes == 1
        assert result.removed_trans_units == 2
        assert result.removed_notes == 1
        assert result.suggestions_added == 0
        assert [u.id for u in new_doc.trans_units] == [u.id for u in master_doc.trans_units if u.translate]

    def test_removed_units_left_behind(self, master_doc, lang_doc, settings):
        _refresh(lang_doc, master_doc, settings)
        assert {u.source for u in lang_doc.trans_units} == {"It's a description", "Old Field"}

    def test_changed_translation_flagged_for_review(self, master_doc, lang_doc, settings):
        new_doc, _ = _refresh(lang_doc, master_doc, settings)
        unit = new_doc.get_trans_unit_by_id(master_doc.trans_units[1].id)
        assert unit.source == "Client"
        assert unit.target.text == "Kunde"
        assert unit.target.translation_token is TranslationToken.REVIEW
        assert unit.custom_note_content(HINT) == RefreshXlfHint.MODIFIED_SOURCE.value
        assert unit.developer_note_content() == "A comment"
        assert unit.maxwidth == 30

    def test_unedited_copy_follows_source(self, settings):
        master = XliffDocument(trans_units=[_unit("Table 1 - Property 2", "Client")])
        lang = XliffDocument(target_language="de-DE", trans_units=[
            _unit("Table 1 - Property 2", "Customer", Target("Customer")),
        ])
        new_doc, result = _refresh(lang, master, settings)
        unit = new_doc.trans_units[0]
        assert unit.target.text == "Client"
        assert unit.target.translation_token is None
        assert not unit.has_custom_note(HINT)
        assert result.updated_sources == 1

    def test_source_filled_in_later_is_flagged(self, settings):
        lang = XliffDocument(target_language="de-DE")
        master = XliffDocument(trans_units=[_unit("Table 1 - Property 2", "")])
        lang, _ = _refresh(lang, master, settings)
        assert lang.trans_units[0].target == Target("")

        master.trans_units[0].source = "Client"
        new_doc, result = _refresh(lang, master, settings)
        unit = new_doc.trans_units[0]
        assert unit.source == "Client"
        assert unit.target.text == ""
        assert unit.target.translation_token is TranslationToken.REVIEW
        assert unit.custom_note_content(HINT) == RefreshXlfHint.MODIFIED_SOURCE.value
        assert result.updated_sources == 1

    def test_source_filled_in_later_dts(self):
        lang = XliffDocument(target_language="de-DE", trans_units=[
            _unit("Table 1 - Property 2", "", Target("")),
        ])
        master = XliffDocument(trans_units=[_unit("Table 1 - Property 2", "Client")])
        new_doc, _ = _refresh(lang, master, Settings(use_dts=True))
        assert new_doc.trans_units[0].target.state is TargetState.NEEDS_REVIEW_TRANSLATION

    def test_source_emptied_keeps_translation(self, settings):
        master = XliffDocument(trans_units=[_unit("Table 1 - Property 2", "")])
        lang = XliffDocument(target_language="de-DE", trans_units=[
            _unit("Table 1 - Property 2", "Customer", Target("Kunde")),
        ])
        new_doc, result = _refresh(lang, master, settings)
        unit = new_doc.trans_units[0]
        assert unit.source == ""
        assert unit.target.text == "Kunde"
        assert unit.target.translation_token is None
        assert result.updated_sources == 1

    def test_finished_hint_cleared(self, master_doc, lang_doc, settings):
        new_doc, _ = _refresh(lang_doc, master_doc, settings)
        assert not new_doc.trans_units[0].has_custom_note(HINT)

    def test_external_source_change(self, master_doc, lang_doc):
        new_doc, _ = _refresh(lang_doc, master_doc, Settings(use_external_translation_tool=True))
        unit = new_doc.trans_units[1]
        assert unit.target.state is TargetState.NEEDS_ADAPTATION
        assert unit.target.state_qualifier is None

    def test_dts_source_change_and_finished_units(self, master_doc, lang_doc):
        new_doc, _ = _refresh(lang_doc, master_doc, Settings(use_dts=True))
        assert new_doc.trans_units[1].target.state is TargetState.NEEDS_REVIEW_TRANSLATION
        first = new_doc.trans_units[0]
        assert first.target.state is TargetState.TRANSLATED
        assert not first.has_custom_note(HINT)

    def test_maxwidth_kept_when_limits_disabled(self, master_doc, lang_doc):
        new_doc, result = _refresh(lang_doc, master_doc, Settings(enforce_max_width=False))
        assert result.updated_maxwidths == 0
        assert new_doc.trans_units[1].maxwidth is None

    def test_sort_only(self, master_doc, lang_doc, settings):
        result = RefreshResult()
        new_doc = refresh_selected_xlf_file_from_g_xlf(lang_doc, master_doc, settings, None, result, sort_only=True)
        assert [u.source for u in new_doc.trans_units] == ["Test Table", "Customer"]
        assert result.added == 0
        assert result.updated_sources == 0


class TestSuggestionsDuringRefresh:
    def test_suggestion_map_fills_new_unit(self, master_doc, empty_lang, settings):
        maps = SuggestionMaps()
        maps.add("sv-SE", {",Yes,No": [",Ja,Nej"]})
        new_doc, result = _refresh(empty_lang, master_doc, settings, maps)
        unit = new_doc.trans_units[2]
        assert [t.raw_text() for t in unit.targets] == ["[NAB: SUGGESTION],Ja,Nej"]
        assert unit.custom_note_content(HINT) == RefreshXlfHint.SUGGESTION.value
        assert result.suggestions_added == 1

    def test_shared_maps_not_mutated(self, master_doc, lang_doc, settings):
        maps = SuggestionMaps()
        _refresh(lang_doc, master_doc, settings, maps)
        assert len(maps) == 0


class TestRefreshFiles:
    @pytest.fixture
    def files(self, tmp_path: Path, master_path: Path, lang_path: Path) -> tuple[Path, Path]:
        master = tmp_path / "Test App.g.xlf"
        lang = tmp_path / "Test App.sv-SE.xlf"
        shutil.copy(master_path, master)
        shutil.copy(lang_path, lang)
        return master, lang

    def test_idempotent(self, files, settings):
        master, lang = files
        first = refresh_xlf_files_from_g_xlf(master, [lang], settings)
        assert first.changes() > 0
        first_bytes = lang.read_bytes()
        second = refresh_xlf_files_from_g_xlf(master, [lang], settings)
        assert second.changes() == 0
        assert second.checked_files == 1
        assert lang.read_bytes() == first_bytes

    def test_missing_file_aborts_before_writing(self, files, settings, tmp_path: Path):
        master, lang = files
        before = lang.read_bytes()
        with pytest.raises(MissingFileError) as excinfo:
            refresh_xlf_files_from_g_xlf(master, [lang, tmp_path / "Test App.da-DK.xlf"], settings)
        assert excinfo.value.path.endswith("Test App.da-DK.xlf")
        assert lang.read_bytes() == before

    def test_invalid_file_skipped(self, files, settings, tmp_path: Path, malformed_xlf_path: Path):
        master, lang = files
        broken = tmp_path / "Test App.fi-FI.xlf"
        shutil.copy(malformed_xlf_path, broken)
        result = refresh_xlf_files_from_g_xlf(master, [broken, lang], settings)
        assert len(result.invalid_files) == 1
        assert result.invalid_files[0].offset > 0
        assert broken.read_bytes() == malformed_xlf_path.read_bytes()
        assert parse_xlf(lang).trans_units[0].source == "Test Table"
        assert parse_xlf(lang).original == "Test App.g.xlf"


class TestMasterUpdate:
    def test_update_from_al_files(self, workspace: Path):
        g_xlf = workspace / "Translations" / "Test App.g.xlf"
        result = update_g_xlf_from_al_files(g_xlf, get_al_files(workspace))
        assert result.added == 15
        assert result.failed_objects == []
        doc = parse_xlf(g_xlf)
        assert doc.bom
        assert doc.unit_count() == 15
        assert doc.trans_units[0].generator_note().text == "Codeunit Test Codeunit - NamedType GlobalLbl"
        assert doc.trans_units[-1].generator_note().text == "Table Test Table - Field Status - Property OptionCaption"

    def test_second_update_changes_nothing(self, workspace: Path):
        g_xlf = workspace / "Translations" / "Test App.g.xlf"
        update_g_xlf_from_al_files(g_xlf, get_al_files(workspace))
        first = g_xlf.read_bytes()
        result = update_g_xlf_from_al_files(g_xlf, get_al_files(workspace))
        assert result.changes() == 0
        assert g_xlf.read_bytes() == first

    def test_unparsable_object_skipped(self, workspace: Path):
        shutil.copy(FIXTURES_DIR / "Broken.Codeunit.al", workspace / "src" / "Broken.Codeunit.al")
        g_xlf = workspace / "Translations" / "Test App.g.xlf"
        result = update_g_xlf_from_al_files(g_xlf, get_al_files(workspace))
        assert len(result.failed_objects) == 1
        assert result.failed_objects[0].endswith("Broken.Codeunit.al")
        assert result.added == 15

    def test_missing_master(self, tmp_path: Path):
        with pytest.raises(MissingFileError):
            update_g_xlf_from_al_files(tmp_path / "None.g.xlf", [])

    def test_locked_unit_removed(self):
        doc = XliffDocument(trans_units=[_unit("Table 1 - Property 2", "Old")])
        unit = _unit("Table 1 - Property 2", "Old")
        unit.translate = False
        result = update_g_xlf(doc, [unit])
        assert result.removed_trans_units == 1
        assert doc.unit_count() == 0

    def test_source_and_note_updated(self):
        doc = XliffDocument(trans_units=[_unit("Table 1 - Property 2", "Old", dev_note="a")])
        result = update_g_xlf(doc, [_unit("Table 1 - Property 2", "New", dev_note="b")])
        assert result.updated_sources == 1
        assert result.updated_notes == 1
        assert doc.trans_units[0].developer_note_content() == "b"

    def test_full_refresh_after_update(self, workspace: Path, settings):
        translations = workspace / "Translations"
        update_g_xlf_from_al_files(translations / "Test App.g.xlf", get_al_files(workspace))
        result = refresh_xlf_files_from_g_xlf(
            translations / "Test App.g.xlf", [translations / "Test App.sv-SE.xlf"], settings,
        )
        assert result.added == 15
        assert parse_xlf(translations / "Test App.sv-SE.xlf").unit_count() == 15


class TestModeFormatting:
    def test_new_target_per_mode(self):
        g_unit = _unit("x", "Name")
        assert get_new_target(TranslationMode.INLINE, True, g_unit).raw_text() == "[NAB: REVIEW]Name"
        assert get_new_target(TranslationMode.INLINE, False, g_unit).raw_text() == "[NAB: NOT TRANSLATED]"
        dts = get_new_target(TranslationMode.DTS, True, g_unit)
        assert (dts.text, dts.state, dts.state_qualifier) == ("Name", TargetState.NEEDS_REVIEW_TRANSLATION, StateQualifier.EXACT_MATCH)
        assert get_new_target(TranslationMode.EXTERNAL, True, g_unit).state is TargetState.NEEDS_ADAPTATION
        assert get_new_target(TranslationMode.DTS, False, _unit("y", "")) == Target("")

    @pytest.mark.parametrize(
        ("state", "token"),
        [
            (TargetState.NEEDS_TRANSLATION, TranslationToken.NOT_TRANSLATED),
            (TargetState.NEW, TranslationToken.NOT_TRANSLATED),
            (TargetState.NEEDS_REVIEW_L10N, TranslationToken.REVIEW),
            (TargetState.TRANSLATED, None),
        ],
    )
    def test_state_to_token(self, state, token):
        unit = _unit("x", "A", Target("B", state=state, state_qualifier=StateQualifier.EXACT_MATCH))
        format_trans_unit_for_translation_mode(TranslationMode.INLINE, unit)
        assert unit.target.translation_token is token
        assert unit.target.state is None
        assert unit.target.state_qualifier is None

    @pytest.mark.parametrize(
        ("token", "state", "qualifier"),
        [
            (TranslationToken.NOT_TRANSLATED, TargetState.NEEDS_TRANSLATION, None),
            (TranslationToken.REVIEW, TargetState.NEEDS_REVIEW_TRANSLATION, None),
            (TranslationToken.SUGGESTION, TargetState.TRANSLATED, StateQualifier.EXACT_MATCH),
            (None, TargetState.TRANSLATED, None),
        ],
    )
    def test_token_to_state(self, token, state, qualifier):
        unit = _unit("x", "A", Target("B", translation_token=token))
        format_trans_unit_for_translation_mode(TranslationMode.EXTERNAL, unit)
        assert unit.target.state is state
        assert unit.target.state_qualifier is qualifier
        assert unit.target.translation_token is None

    def test_format_for_dts(self, lang_doc):
        format_for_dts(lang_doc, "Test App.g.xlf")
        assert lang_doc.original == "Test App.g.xlf"
        unit = lang_doc.trans_units[0]
        assert unit.developer_note() is None
        assert unit.target.state is TargetState.TRANSLATED


class TestHelpers:
    def test_set_translated_inline(self):
        unit = _unit("x", "A", Target("B", translation_token=TranslationToken.REVIEW))
        unit.insert_custom_note(HINT, RefreshXlfHint.MODIFIED_SOURCE.value)
        set_translated(unit, TranslationMode.INLINE)
        assert unit.target.translation_token is None
        assert not unit.has_custom_note(HINT)

    def test_set_translated_dts(self):
        unit = _unit("x", "A", Target("B", TargetState.NEEDS_REVIEW_L10N, StateQualifier.REJECTED_INACCURATE))
        set_translated(unit, TranslationMode.DTS, TargetState.SIGNED_OFF)
        assert unit.target.state is TargetState.SIGNED_OFF
        assert unit.target.state_qualifier is None

    def test_remove_all_custom_notes(self, lang_doc):
        assert remove_all_custom_notes(lang_doc)
        assert not remove_all_custom_notes(lang_doc)

    def test_remove_custom_notes_from_file(self, tmp_path: Path, lang_path: Path):
        path = tmp_path / "lang.xlf"
        shutil.copy(lang_path, path)
        assert remove_custom_notes_from_file(path)
        assert not parse_xlf(path).custom_notes_of_type_exist(HINT)

    def test_notes_kept_while_tokens_remain(self, tmp_path: Path, lang_doc):
        lang_doc.trans_units[0].target.translation_token = TranslationToken.REVIEW
        path = tmp_path / "lang.xlf"
        write_xlf(lang_doc, path)
        assert not remove_custom_notes_from_file(path)
        assert parse_xlf(path).custom_notes_of_type_exist(HINT)


class TestImportTranslated:
    @pytest.fixture
    def target_doc(self) -> XliffDocument:
        return XliffDocument(target_language="sv-SE", trans_units=[
            _unit("a", "One", Target("", TargetState.NEEDS_TRANSLATION)),
            _unit("b", "Two", Target("Två", TargetState.TRANSLATED)),
            _unit("c", "Three", Target("Tre?", TargetState.NEEDS_REVIEW_TRANSLATION)),
        ])

    @pytest.fixture
    def source_doc(self) -> XliffDocument:
        return XliffDocument(target_language="sv-SE", trans_units=[
            _unit("a", "One", Target("Ett", TargetState.TRANSLATED, StateQualifier.EXACT_MATCH)),
            _unit("b", "Two", Target("Tvåa", TargetState.NEEDS_REVIEW_TRANSLATION)),
            _unit("c", "Three", Target("Tre", TargetState.NEEDS_REVIEW_TRANSLATION, StateQualifier.ID_MATCH)),
            _unit("d", "Four", Target("Fyra", TargetState.TRANSLATED)),
        ])

    def test_requires_dts(self, source_doc, target_doc):
        with pytest.raises(ValueError):
            import_translated_file_into_target(source_doc, target_doc, TranslationMode.INLINE)

    def test_import(self, source_doc, target_doc):
        import_translated_file_into_target(source_doc, target_doc, TranslationMode.DTS)
        a, b, c, d = target_doc.trans_units
        assert (a.target.text, a.target.state) == ("Ett", TargetState.TRANSLATED)
        assert b.target.text == "Två"
        assert (c.target.text, c.target.state_qualifier) == ("Tre?", None)
        assert d.target.text == "Fyra"

    def test_exact_match_state_override(self, source_doc, target_doc):
        import_translated_file_into_target(source_doc, target_doc, TranslationMode.DTS, TargetState.SIGNED_OFF)
        a = target_doc.trans_units[0]
        assert a.target.state is TargetState.SIGNED_OFF
        assert a.target.state_qualifier is None
