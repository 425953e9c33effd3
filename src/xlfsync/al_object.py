"""Object tree produced by the parser, and its flattening to trans-units.

Controls live in an arena (``ALObject.controls``) and refer to each
other by index.  Index 0 is the object itself.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from xlfsync.al_lines import CodeLine
from xlfsync.models import Note, NoteFrom, TransUnit
from xlfsync.xliff_id import XliffIdToken, get_xliff_id, get_xliff_id_with_names


class ObjectType(str, Enum):
    TABLE = "Table"
    TABLE_EXTENSION = "TableExtension"
    PAGE = "Page"
    PAGE_EXTENSION = "PageExtension"
    PAGE_CUSTOMIZATION = "PageCustomization"
    REPORT = "Report"
    REPORT_EXTENSION = "ReportExtension"
    QUERY = "Query"
    XMLPORT = "XmlPort"
    CODEUNIT = "Codeunit"
    ENUM = "Enum"
    ENUM_EXTENSION = "EnumExtension"
    INTERFACE = "Interface"
    CONTROL_ADDIN = "ControlAddIn"
    PROFILE = "Profile"


OBJECT_KEYWORDS: dict[str, ObjectType] = {t.value.lower(): t for t in ObjectType}


class ControlType(Enum):
    OBJECT = "Object"
    ACTION = "Action"
    ACTIONS = "Actions"
    AREA = "Area"
    COLUMN = "Column"
    CUE_GROUP = "CueGroup"
    DATA_ITEM = "DataItem"
    FIELD_ATTRIBUTE = "FieldAttribute"
    GROUP = "Group"
    LAYOUT = "Layout"
    MODIFY = "Modify"
    PAGE_FIELD = "PageField"
    PART = "Part"
    PROCEDURE = "Procedure"
    REPEATER = "Repeater"
    REQUEST_PAGE = "RequestPage"
    SEPARATOR = "Separator"
    TABLE_FIELD = "TableField"
    TEXT_ATTRIBUTE = "TextAttribute"
    TRIGGER = "Trigger"
    VALUE = "Value"


class XliffTokenType(str, Enum):
    """Token type written into identifiers.  SKIP controls add no token."""

    ACTION = "Action"
    CONTROL = "Control"
    ENUM_VALUE = "EnumValue"
    FIELD = "Field"
    METHOD = "Method"
    NAMED_TYPE = "NamedType"
    PROPERTY = "Property"
    QUERY_COLUMN = "QueryColumn"
    QUERY_DATA_ITEM = "QueryDataItem"
    REPORT_COLUMN = "Column"
    REPORT_DATA_ITEM = "ReportDataItem"
    REQUEST_PAGE = "RequestPage"
    XML_PORT_NODE = "XmlPortNode"
    SKIP = "Skip"


class MultiLanguageType(Enum):
    OPTION_CAPTION = "OptionCaption"
    CAPTION = "Caption"
    TOOL_TIP = "ToolTip"
    INSTRUCTIONAL_TEXT = "InstructionalText"
    PROMOTED_ACTION_CATEGORIES = "PromotedActionCategories"
    REQUEST_FILTER_HEADING = "RequestFilterHeading"
    ABOUT_TITLE = "AboutTitle"
    ABOUT_TEXT = "AboutText"
    ENTITY_CAPTION = "EntityCaption"
    ENTITY_SET_CAPTION = "EntitySetCaption"
    ADDITIONAL_SEARCH_TERMS = "AdditionalSearchTerms"
    LABEL = "Label"


ML_PROPERTY_TYPES: dict[str, MultiLanguageType] = {
    t.value.lower(): t for t in MultiLanguageType if t is not MultiLanguageType.LABEL
}


def strip_name(name: str) -> str:
    """Trim whitespace and surrounding double quotes of an identifier."""
    name = name.strip()
    if len(name) >= 2 and name.startswith('"') and name.endswith('"'):
        name = name[1:-1]
    return name


@dataclass
class ALProperty:
    name: str
    value: str
    line_index: int
    control: int


@dataclass
class MultiLanguageEntry:
    """One translatable string occurrence in the source."""

    control: int
    type: MultiLanguageType
    name: str
    text: str = ""
    line_index: int = 0
    max_length: int | None = None
    locked: bool = False
    comment: str = ""

    def id_token(self) -> XliffIdToken:
        if self.type is MultiLanguageType.LABEL:
            return XliffIdToken(XliffTokenType.NAMED_TYPE.value, self.name)
        return XliffIdToken(XliffTokenType.PROPERTY.value, self.type.value)


@dataclass
class Control:
    kind: ControlType
    name: str = ""
    value: str = ""
    token_type: str = XliffTokenType.SKIP.value
    index: int = 0
    parent: int | None = None
    start_line: int = 0
    end_line: int = 0
    is_code: bool = False
    children: list[int] = field(default_factory=list)
    properties: list[ALProperty] = field(default_factory=list)
    entries: list[MultiLanguageEntry] = field(default_factory=list)

    def property_value(self, name: str) -> str | None:
        for prop in self.properties:
            if prop.name.lower() == name.lower():
                return prop.value
        return None


@dataclass
class ALObject:
    object_type: ObjectType
    name: str
    object_id: int | None = None
    extends: str = ""
    lines: list[CodeLine] = field(default_factory=list, repr=False)
    controls: list[Control] = field(default_factory=list, repr=False)
    file_path: str | None = None

    # ── Arena helpers ───────────────────────────────────────────

    @property
    def root(self) -> Control:
        return self.controls[0]

    def add_control(self, control: Control, parent: int) -> Control:
        control.index = len(self.controls)
        control.parent = parent
        self.controls.append(control)
        self.controls[parent].children.append(control.index)
        return control

    def ancestors(self, index: int) -> list[Control]:
        """The control at *index* and its ancestors, object first."""
        chain: list[Control] = []
        current: int | None = index
        while current is not None:
            control = self.controls[current]
            chain.append(control)
            current = control.parent
        chain.reverse()
        return chain

    def inside(self, index: int, kind: ControlType) -> bool:
        return any(c.kind is kind for c in self.ancestors(index))

    def is_obsolete_removed(self, index: int) -> bool:
        return any(
            (c.property_value("ObsoleteState") or "").lower() == "removed"
            for c in self.ancestors(index)
        )

    # ── Translatable entries ────────────────────────────────────

    def multi_language_entries(self) -> list[MultiLanguageEntry]:
        """All entries in source line order."""
        entries = [e for c in self.controls for e in c.entries]
        return sorted(entries, key=lambda e: e.line_index)

    def xliff_id_tokens(self, entry: MultiLanguageEntry) -> list[XliffIdToken]:
        tokens = [
            XliffIdToken(c.token_type, c.name)
            for c in self.ancestors(entry.control)
            if c.token_type != XliffTokenType.SKIP.value
        ]
        tokens.append(entry.id_token())
        return tokens

    def get_trans_units(self) -> list[TransUnit]:
        units: list[TransUnit] = []
        for entry in self.multi_language_entries():
            tokens = self.xliff_id_tokens(entry)
            units.append(TransUnit(
                id=get_xliff_id(tokens),
                source=entry.text,
                translate=not entry.locked and not self.is_obsolete_removed(entry.control),
                maxwidth=entry.max_length,
                notes=[
                    Note(NoteFrom.DEVELOPER, entry.comment, priority=2),
                    Note(NoteFrom.GENERATOR, get_xliff_id_with_names(tokens), priority=3),
                ],
            ))
        return units
