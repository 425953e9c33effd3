"""Parser for AL object source text.

Walks the lines of one object depth-first, tracking block nesting with
the classifier in :mod:`xlfsync.al_lines`, and builds the control tree
with its properties and translatable entries.

Usage::

    obj = parse_object(Path("MyTable.Table.al").read_text("utf-8"))
    units = obj.get_trans_units()
"""

from __future__ import annotations

import logging
import re

from xlfsync.al_lines import is_indentation_decrease, is_indentation_increase, split_lines
from xlfsync.al_object import (
    ML_PROPERTY_TYPES,
    OBJECT_KEYWORDS,
    ALObject,
    ALProperty,
    Control,
    ControlType,
    MultiLanguageEntry,
    MultiLanguageType,
    ObjectType,
    XliffTokenType,
    strip_name,
)
from xlfsync.errors import ObjectParseError

log = logging.getLogger(__name__)

_OBJECT_HEADER = re.compile(
    r"^\s*(?P<type>codeunit|pagecustomization|pageextension|page|profile|query|"
    r"reportextension|report|tableextension|table|xmlport|enumextension|enum|"
    r"interface|controladdin)\s+(?:(?P<id>\d+)\s+)?(?P<name>\"[^\"]*\"|[\w]+)"
    r"(?:\s+extends\s+(?P<extends>\"[^\"]*\"|[\w]+))?",
    re.IGNORECASE,
)

# (keyword, pattern) in match priority order.  ``name`` and ``value``
# groups feed Control.name / Control.value.
_CONTROL_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    (kw, re.compile(p, re.IGNORECASE)) for kw, p in [
        ("dataitem", r"^\s*dataitem\s*\((?P<name>[^;]*);(?P<value>[^)]*)\)"),
        ("column", r"^\s*column\s*\((?P<name>[^;]*);(?P<value>.*)\)"),
        ("value", r"^\s*value\s*\(\s*\d*\s*;(?P<name>[^)]*)\)"),
        ("group", r"^\s*group\s*\((?P<name>[^)]*)\)"),
        ("field", r"^\s*field\s*\(\s*\d+\s*;(?P<name>[^;]*);(?P<value>.*)\)"),
        ("field", r"^\s*field\s*\((?P<name>[^;]*);(?P<value>.*)\)"),
        ("part", r"^\s*part\s*\((?P<name>[^;]*);(?P<value>[^)]*)\)"),
        ("action", r"^\s*action\s*\((?P<name>[^)]*)\)"),
        ("area", r"^\s*area\s*\((?P<name>[^)]*)\)"),
        ("trigger", r"^\s*trigger\s+(?P<name>[^(\s]*)\s*\(.*\)"),
        ("procedure", r"^\s*(?:local\s+|internal\s+)?procedure\s+(?P<name>[^()]*)\("),
        ("layout", r"^\s*layout\s*(?://.*)?$"),
        ("requestpage", r"^\s*requestpage\s*(?://.*)?$"),
        ("actions", r"^\s*actions\s*(?://.*)?$"),
        ("cuegroup", r"^\s*cuegroup\s*\((?P<name>[^)]*)\)"),
        ("repeater", r"^\s*repeater\s*\((?P<name>[^)]*)\)"),
        ("separator", r"^\s*separator\s*\((?P<name>[^)]*)\)"),
        ("textattribute", r"^\s*textattribute\s*\((?P<name>[^)]*)\)"),
        ("fieldattribute", r"^\s*fieldattribute\s*\((?P<name>[^;)]*);"),
        ("modify", r"^\s*modify\s*\((?P<name>[^)]*)\)"),
    ]
]

_PAGE_LIKE = (
    ObjectType.PAGE,
    ObjectType.PAGE_EXTENSION,
    ObjectType.PAGE_CUSTOMIZATION,
    ObjectType.REPORT,
    ObjectType.REPORT_EXTENSION,
)
_TABLE_LIKE = (ObjectType.TABLE, ObjectType.TABLE_EXTENSION)
_REPORT_LIKE = (ObjectType.REPORT, ObjectType.REPORT_EXTENSION)

_C = XliffTokenType

# (keyword, object type) -> (control type, token type).  ``None`` as
# object type means "any object".  A keyword that only has object-specific
# rows is unsupported for every other object type.
CONTROL_TABLE: dict[tuple[str, ObjectType | None], tuple[ControlType, XliffTokenType]] = {
    ("textattribute", None): (ControlType.TEXT_ATTRIBUTE, _C.XML_PORT_NODE),
    ("fieldattribute", None): (ControlType.FIELD_ATTRIBUTE, _C.XML_PORT_NODE),
    ("cuegroup", None): (ControlType.CUE_GROUP, _C.CONTROL),
    ("repeater", None): (ControlType.REPEATER, _C.CONTROL),
    ("requestpage", None): (ControlType.REQUEST_PAGE, _C.REQUEST_PAGE),
    ("area", None): (ControlType.AREA, _C.SKIP),
    ("group", None): (ControlType.GROUP, _C.CONTROL),
    ("modify", None): (ControlType.MODIFY, _C.CONTROL),
    ("part", None): (ControlType.PART, _C.CONTROL),
    ("separator", None): (ControlType.SEPARATOR, _C.ACTION),
    ("action", None): (ControlType.ACTION, _C.ACTION),
    ("value", None): (ControlType.VALUE, _C.ENUM_VALUE),
    ("trigger", None): (ControlType.TRIGGER, _C.METHOD),
    ("procedure", None): (ControlType.PROCEDURE, _C.METHOD),
    ("layout", None): (ControlType.LAYOUT, _C.SKIP),
    ("actions", None): (ControlType.ACTIONS, _C.SKIP),
    ("dataitem", ObjectType.QUERY): (ControlType.DATA_ITEM, _C.QUERY_DATA_ITEM),
    ("column", ObjectType.QUERY): (ControlType.COLUMN, _C.QUERY_COLUMN),
}
for _t in _PAGE_LIKE:
    CONTROL_TABLE[("field", _t)] = (ControlType.PAGE_FIELD, _C.CONTROL)
for _t in _TABLE_LIKE:
    CONTROL_TABLE[("field", _t)] = (ControlType.TABLE_FIELD, _C.FIELD)
for _t in _REPORT_LIKE:
    CONTROL_TABLE[("dataitem", _t)] = (ControlType.DATA_ITEM, _C.REPORT_DATA_ITEM)
    CONTROL_TABLE[("column", _t)] = (ControlType.COLUMN, _C.REPORT_COLUMN)

# Inside an ``actions`` section these become actions.
_ACTION_CONTEXT = {"area", "group", "modify", "separator"}

_CODE_CONTROLS = (ControlType.TRIGGER, ControlType.PROCEDURE)

_PROPERTY = re.compile(
    r"^\s*(?P<name>ObsoleteState|SourceTable|PageType)\s*=\s*(?P<value>\"[^\"]*\"|\w*)\s*;",
    re.IGNORECASE,
)
_ML_PROPERTY = re.compile(
    r"^\s*(?P<name>" + "|".join(t.value for t in ML_PROPERTY_TYPES.values()) + r")\s*=\s*(?=')",
    re.IGNORECASE,
)
_LABEL = re.compile(r"^\s*(?P<name>\"[^\"]*\"|\w+)\s*:\s*Label\s+(?=')", re.IGNORECASE)
_ATTRIBUTE_KEY = re.compile(r"\s*,\s*(?P<key>\w+)\s*=\s*")
_MAX_LENGTH_VALUE = re.compile(r"\d+")
_LOCKED_VALUE = re.compile(r"(true|false)\b", re.IGNORECASE)


# ── Control lookup ──────────────────────────────────────────────


def resolve_control_type(
    keyword: str, object_type: ObjectType
) -> tuple[ControlType, XliffTokenType] | None:
    """Look up the control kind for *keyword* inside *object_type*.

    Returns None when the combination is not supported.
    """
    keyword = keyword.lower()
    return CONTROL_TABLE.get((keyword, object_type)) or CONTROL_TABLE.get((keyword, None))


def match_control(obj: ALObject, parent: int, line_index: int, code: str) -> Control | None:
    """Recognize a structural control opener on *code*.

    Raises:
        ObjectParseError: If the keyword is not valid for the object type.
    """
    for keyword, pattern in _CONTROL_PATTERNS:
        m = pattern.match(code)
        if m is not None:
            break
    else:
        return None

    resolved = resolve_control_type(keyword, obj.object_type)
    if resolved is None:
        raise ObjectParseError(keyword, obj.object_type.value, line_index)
    kind, token_type = resolved

    groups = m.groupdict()
    name = strip_name(groups.get("name") or "")
    if kind is ControlType.REQUEST_PAGE:
        name = "RequestOptionsPage"

    if keyword in _ACTION_CONTEXT:
        if obj.inside(parent, ControlType.ACTIONS):
            token_type = _C.ACTION
        elif keyword == "separator":
            token_type = _C.CONTROL

    return Control(
        kind=kind,
        name=name,
        value=(groups.get("value") or "").strip(),
        token_type=token_type.value,
        start_line=line_index,
        end_line=line_index,
        is_code=kind in _CODE_CONTROLS,
    )


# ── Properties and translatable text ────────────────────────────


def read_quoted(text: str, pos: int) -> tuple[str, int] | None:
    """Read a single-quoted literal starting at *pos*.

    Doubled quotes inside the literal stand for one quote.  Returns the
    unescaped text and the index just after the closing quote.
    """
    if pos >= len(text) or text[pos] != "'":
        return None
    chunks: list[str] = []
    i = pos + 1
    while True:
        end = text.find("'", i)
        if end < 0:
            return None
        chunks.append(text[i:end])
        if text.startswith("''", end):
            chunks.append("'")
            i = end + 2
            continue
        return "".join(chunks), end + 1


def parse_text_attributes(text: str, pos: int) -> tuple[str, dict[str, object]] | None:
    """Parse ``'text', Comment = '...', Locked = true, MaxLength = 30``.

    The attributes may come in any order.  For each attribute the first
    occurrence wins.  Scanning stops at the first thing that is not a
    known attribute.
    """
    quoted = read_quoted(text, pos)
    if quoted is None:
        return None
    value, pos = quoted
    attributes: dict[str, object] = {}
    while True:
        m = _ATTRIBUTE_KEY.match(text, pos)
        if m is None:
            break
        key = m.group("key").lower()
        pos = m.end()
        if key == "maxlength":
            vm = _MAX_LENGTH_VALUE.match(text, pos)
            if vm is None:
                break
            attributes.setdefault(key, int(vm.group()))
            pos = vm.end()
        elif key == "locked":
            vm = _LOCKED_VALUE.match(text, pos)
            if vm is None:
                break
            attributes.setdefault(key, vm.group(1).lower() == "true")
            pos = vm.end()
        elif key == "comment":
            comment = read_quoted(text, pos)
            if comment is None:
                break
            attributes.setdefault(key, comment[0])
            pos = comment[1]
        else:
            break
    return value, attributes


def _entry_from_match(
    parent: int, line_index: int, ml_type: MultiLanguageType, name: str, code: str, pos: int
) -> MultiLanguageEntry | None:
    parsed = parse_text_attributes(code, pos)
    if parsed is None:
        return None
    text, attributes = parsed
    return MultiLanguageEntry(
        control=parent,
        type=ml_type,
        name=name,
        text=text,
        line_index=line_index,
        max_length=attributes.get("maxlength"),
        locked=bool(attributes.get("locked", False)),
        comment=str(attributes.get("comment", "")),
    )


def get_property(parent: int, line_index: int, code: str) -> ALProperty | None:
    m = _PROPERTY.match(code)
    if m is None:
        return None
    return ALProperty(m.group("name"), strip_name(m.group("value")), line_index, parent)


def get_ml_property(parent: int, line_index: int, code: str) -> MultiLanguageEntry | None:
    m = _ML_PROPERTY.match(code)
    if m is None:
        return None
    ml_type = ML_PROPERTY_TYPES[m.group("name").lower()]
    return _entry_from_match(parent, line_index, ml_type, ml_type.value, code, m.end())


def get_label(parent: int, line_index: int, code: str) -> MultiLanguageEntry | None:
    m = _LABEL.match(code)
    if m is None:
        return None
    name = strip_name(m.group("name"))
    return _entry_from_match(parent, line_index, MultiLanguageType.LABEL, name, code, m.end())


# ── Tree walk ───────────────────────────────────────────────────


def parse_code(obj: ALObject, parent: int, start_index: int, start_level: int) -> int:
    """Parse lines from *start_index* into the control at *parent*.

    Returns the index of the line that closes *parent*, or the number of
    lines when the text ends first.
    """
    lines = obj.lines
    level = start_level
    line_no = start_index
    while line_no < len(lines):
        code_line = lines[line_no]
        code = code_line.code
        matched = False

        if is_indentation_decrease(code):
            level -= 1
            matched = True
            if level <= start_level:
                code_line.indentation = level
                return line_no
        if is_indentation_increase(code):
            level += 1
            matched = True
        code_line.indentation = level

        control = obj.controls[parent]
        if not matched and not control.is_code:
            prop = get_property(parent, line_no, code)
            if prop is not None:
                control.properties.append(prop)
                matched = True
            if not matched:
                entry = get_ml_property(parent, line_no, code)
                if entry is not None:
                    control.entries.append(entry)
                    matched = True
            if not matched:
                child = match_control(obj, parent, line_no, code)
                if child is not None:
                    obj.add_control(child, parent)
                    line_no = parse_code(obj, child.index, line_no + 1, level)
                    child.end_line = min(line_no, len(lines) - 1)
                    matched = True
        if not matched:
            label = get_label(parent, line_no, code)
            if label is not None:
                control.entries.append(label)
        line_no += 1
    return len(lines)


def parse_object(text: str, file_path: str | None = None) -> ALObject | None:
    """Parse the first object declared in *text*.

    Returns None when no object header is found.

    Raises:
        ObjectParseError: On a control keyword the object type cannot hold.
    """
    lines = split_lines(text)
    for header_index, line in enumerate(lines):
        m = _OBJECT_HEADER.match(line.code)
        if m is not None:
            break
    else:
        log.debug("No object header found in %s", file_path or "<string>")
        return None

    object_type = OBJECT_KEYWORDS[m.group("type").lower()]
    name = strip_name(m.group("name"))
    obj = ALObject(
        object_type=object_type,
        name=name,
        object_id=int(m.group("id")) if m.group("id") else None,
        extends=strip_name(m.group("extends") or ""),
        lines=lines,
        file_path=file_path,
    )
    obj.controls.append(Control(
        kind=ControlType.OBJECT,
        name=name,
        token_type=object_type.value,
        start_line=header_index,
    ))
    end = parse_code(obj, 0, header_index, 0)
    obj.root.end_line = min(end, len(lines) - 1)
    return obj
