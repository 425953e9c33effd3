"""Data models for XLIFF 1.2 translation documents."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum


class TargetState(str, Enum):
    FINAL = "final"
    NEEDS_ADAPTATION = "needs-adaptation"
    NEEDS_L10N = "needs-l10n"
    NEEDS_REVIEW_ADAPTATION = "needs-review-adaptation"
    NEEDS_REVIEW_L10N = "needs-review-l10n"
    NEEDS_REVIEW_TRANSLATION = "needs-review-translation"
    NEEDS_TRANSLATION = "needs-translation"
    NEW = "new"
    SIGNED_OFF = "signed-off"
    TRANSLATED = "translated"


class StateQualifier(str, Enum):
    EXACT_MATCH = "exact-match"
    FUZZY_MATCH = "fuzzy-match"
    ID_MATCH = "id-match"
    LEVERAGED_TM = "leveraged-tm"
    MT_SUGGESTION = "mt-suggestion"
    REJECTED_INACCURATE = "rejected-inaccurate"
    REJECTED_LENGTH = "rejected-length"
    TM_SUGGESTION = "tm-suggestion"
    MS_EXACT_MATCH = "x-microsoft-exact-match"


class TranslationToken(str, Enum):
    """Inline workflow markers written in front of the target text."""

    NOT_TRANSLATED = "[NAB: NOT TRANSLATED]"
    REVIEW = "[NAB: REVIEW]"
    SUGGESTION = "[NAB: SUGGESTION]"


class TranslationMode(Enum):
    INLINE = "inline"  # [NAB: ...] tokens in the target text
    DTS = "dts"  # managed translation service, state + qualifier
    EXTERNAL = "external"  # external tool, state only


class NoteFrom:
    DEVELOPER = "Developer"
    GENERATOR = "Xliff Generator"


class CustomNoteType:
    REFRESH_XLF_HINT = "xlfsync Refresh Xlf"


class RefreshXlfHint(str, Enum):
    NEW_COPIED_SOURCE = "New translation. Target copied from source."
    MODIFIED_SOURCE = "Source has been modified."
    NEW = "New translation."
    SUGGESTION = "Suggested translation inserted."


# States that still need somebody to look at the target.
ACTION_NEEDED_STATES = (
    TargetState.NEEDS_ADAPTATION,
    TargetState.NEEDS_L10N,
    TargetState.NEEDS_REVIEW_ADAPTATION,
    TargetState.NEEDS_REVIEW_L10N,
    TargetState.NEEDS_REVIEW_TRANSLATION,
    TargetState.NEEDS_TRANSLATION,
    TargetState.NEW,
)

TRANSLATED_STATES = (
    TargetState.TRANSLATED,
    TargetState.SIGNED_OFF,
    TargetState.FINAL,
)


def split_translation_token(text: str) -> tuple[TranslationToken | None, str]:
    """Split a leading ``[NAB: ...]`` token off *text*."""
    for token in TranslationToken:
        if text.startswith(token.value):
            return token, text[len(token.value):]
    return None, text


@dataclass
class Target:
    """One ``<target>`` candidate of a trans-unit."""

    text: str = ""
    state: TargetState | None = None
    state_qualifier: StateQualifier | str | None = None
    translation_token: TranslationToken | None = None

    @classmethod
    def from_raw(
        cls,
        raw_text: str,
        state: TargetState | None = None,
        state_qualifier: StateQualifier | str | None = None,
    ) -> Target:
        token, text = split_translation_token(raw_text)
        return cls(text=text, state=state, state_qualifier=state_qualifier, translation_token=token)

    def has_content(self) -> bool:
        return self.text != ""

    def raw_text(self) -> str:
        """Text as stored in the file, token prefix included."""
        if self.translation_token is None:
            return self.text
        return self.translation_token.value + self.text


@dataclass
class Note:
    from_: str
    text: str = ""
    annotates: str = "general"
    priority: int = 3


@dataclass
class TransUnit:
    """One ``<trans-unit>`` row of a translation document.

    Attributes the model does not interpret are kept in ``extra_attribs``
    so they survive a read/write cycle.
    """

    id: str
    source: str = ""
    targets: list[Target] = field(default_factory=list)
    notes: list[Note] = field(default_factory=list)
    translate: bool = True
    size_unit: str | None = "char"
    maxwidth: int | None = None
    xml_space: str | None = "preserve"
    al_object_target: str | None = None
    extra_attribs: dict[str, str] = field(default_factory=dict, repr=False)

    # ── Targets ─────────────────────────────────────────────────

    @property
    def target(self) -> Target | None:
        """The first target, or None when the unit has none."""
        return self.targets[0] if self.targets else None

    def has_targets(self) -> bool:
        return len(self.targets) > 0

    def has_usable_target(self) -> bool:
        """True when some target carries text that is not a placeholder."""
        return any(
            t.has_content() and t.translation_token is not TranslationToken.NOT_TRANSLATED
            for t in self.targets
        )

    def add_target(self, target: Target) -> None:
        self.targets.append(target)

    # ── Notes ───────────────────────────────────────────────────

    def _note(self, from_: str) -> Note | None:
        for note in self.notes:
            if note.from_ == from_:
                return note
        return None

    def developer_note(self) -> Note | None:
        return self._note(NoteFrom.DEVELOPER)

    def generator_note(self) -> Note | None:
        return self._note(NoteFrom.GENERATOR)

    def developer_note_content(self) -> str:
        note = self.developer_note()
        return note.text if note is not None else ""

    def set_developer_note(self, text: str) -> None:
        note = self.developer_note()
        if note is not None:
            note.text = text
            return
        new_note = Note(NoteFrom.DEVELOPER, text, priority=2)
        generator = self.generator_note()
        if generator is None:
            self.notes.append(new_note)
        else:
            self.notes.insert(self.notes.index(generator), new_note)

    def remove_developer_note_if_empty(self) -> None:
        note = self.developer_note()
        if note is not None and note.text == "":
            self.notes.remove(note)

    def has_custom_note(self, note_type: str) -> bool:
        return self._note(note_type) is not None

    def custom_note_content(self, note_type: str) -> str:
        note = self._note(note_type)
        return note.text if note is not None else ""

    def insert_custom_note(self, note_type: str, text: str) -> None:
        """Replace any note of *note_type* with one holding *text*."""
        self.remove_custom_note(note_type)
        self.notes.insert(0, Note(note_type, text, priority=3))

    def remove_custom_note(self, note_type: str) -> bool:
        before = len(self.notes)
        self.notes = [n for n in self.notes if n.from_ != note_type]
        return len(self.notes) != before

    def clone(self) -> TransUnit:
        return copy.deepcopy(self)


@dataclass
class XliffDocument:
    """In-memory representation of one ``.xlf`` file."""

    trans_units: list[TransUnit] = field(default_factory=list)
    source_language: str = "en-US"
    target_language: str = "en-US"
    original: str = ""
    datatype: str = "xml"
    # <file> attributes that are not modelled above
    file_attribs: dict[str, str] = field(default_factory=dict)
    line_ending: str = "\r\n"
    bom: bool = False
    file_path: str | None = None

    # ── Unit access helpers ─────────────────────────────────────

    def unit_count(self) -> int:
        return len(self.trans_units)

    def get_trans_unit_by_id(self, unit_id: str) -> TransUnit | None:
        for unit in self.trans_units:
            if unit.id == unit_id:
                return unit
        return None

    def index_by_id(self) -> dict[str, TransUnit]:
        return {unit.id: unit for unit in self.trans_units}

    def clone_without_trans_units(self) -> XliffDocument:
        return XliffDocument(
            source_language=self.source_language,
            target_language=self.target_language,
            original=self.original,
            datatype=self.datatype,
            file_attribs=dict(self.file_attribs),
            line_ending=self.line_ending,
            bom=self.bom,
            file_path=self.file_path,
        )

    # ── Document-wide queries ───────────────────────────────────

    def translation_tokens_exist(self) -> bool:
        return any(
            t.translation_token is not None
            for unit in self.trans_units
            for t in unit.targets
        )

    def custom_notes_of_type_exist(self, note_type: str) -> bool:
        return any(unit.has_custom_note(note_type) for unit in self.trans_units)

    def remove_all_custom_notes_of_type(self, note_type: str) -> int:
        return sum(1 for unit in self.trans_units if unit.remove_custom_note(note_type))
