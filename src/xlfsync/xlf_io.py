"""XLIFF 1.2 file parser and writer.

Uses lxml for XML handling.  Output is deterministic so an unchanged
document serializes to identical bytes: two-space indentation, the
original line-ending style, an optional UTF-8 byte-order mark, and
(optionally) self-closing tags expanded to open/close pairs.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import tempfile
from pathlib import Path

from lxml import etree

from xlfsync.errors import InvalidXliffError
from xlfsync.models import Note, StateQualifier, Target, TargetState, TransUnit, XliffDocument

log = logging.getLogger(__name__)

XLIFF_NS = "urn:oasis:names:tc:xliff:document:1.2"
XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"
XML_NS = "http://www.w3.org/XML/1998/namespace"
_SCHEMA_LOCATION = f"{XLIFF_NS} xliff-core-1.2-transitional.xsd"
_XML_DECLARATION = '<?xml version="1.0" encoding="utf-8"?>'
_BOM = "\ufeff"

_KNOWN_UNIT_ATTRIBS = {"id", "size-unit", "translate", "maxwidth", "al-object-target", f"{{{XML_NS}}}space"}
_KNOWN_FILE_ATTRIBS = {"datatype", "source-language", "target-language", "original"}

_SELF_CLOSING = re.compile(r"<([\w:.-]+)((?:\s+[^<>]*?)?)\s*/>")


def _q(tag: str) -> str:
    return f"{{{XLIFF_NS}}}{tag}"


def _local(tag: str) -> str:
    return etree.QName(tag).localname if "}" in tag else tag


# ── Text helpers ────────────────────────────────────────────────


def detect_line_ending(text: str) -> str:
    """Return the line ending of the first line break ("\\r\\n" by default)."""
    pos = text.find("\n")
    if pos < 0:
        return "\r\n"
    if pos > 0 and text[pos - 1] == "\r":
        return "\r\n"
    return "\n"


def replace_self_closing_tags(xml: str) -> str:
    """``<note a="1"/>`` -> ``<note a="1"></note>``."""
    return _SELF_CLOSING.sub(lambda m: f"<{m.group(1)}{m.group(2).rstrip()}></{m.group(1)}>", xml)


def validate_xml(text: str, path: str | None = None) -> None:
    """Check *text* for well-formedness before it is parsed.

    Raises:
        InvalidXliffError: With the byte offset of the first error.
    """
    data = text.encode("utf-8")
    try:
        etree.fromstring(data)
    except etree.XMLSyntaxError as exc:
        line, column = exc.position
        lines = data.split(b"\n")
        line_start = sum(len(chunk) + 1 for chunk in lines[: max(line - 1, 0)])
        offset = min(line_start + max(column - 1, 0), len(data))
        raise InvalidXliffError(path, offset, line, column, exc.msg) from exc


# ── Parsing ─────────────────────────────────────────────────────


def _text(elem: etree._Element | None) -> str:
    if elem is None:
        return ""
    return "".join(elem.itertext())


def _parse_state(value: str | None) -> TargetState | None:
    if value is None:
        return None
    try:
        return TargetState(value)
    except ValueError:
        log.warning("Unknown target state %r", value)
        return None


def _parse_qualifier(value: str | None) -> StateQualifier | str | None:
    if value is None:
        return None
    try:
        return StateQualifier(value)
    except ValueError:
        return value


def _parse_trans_unit(tu: etree._Element) -> TransUnit:
    maxwidth = tu.get("maxwidth")
    unit = TransUnit(
        id=tu.get("id", ""),
        translate=tu.get("translate", "yes").lower() != "no",
        size_unit=tu.get("size-unit"),
        maxwidth=int(maxwidth) if maxwidth else None,
        xml_space=tu.get(f"{{{XML_NS}}}space"),
        al_object_target=tu.get("al-object-target"),
        extra_attribs={k: v for k, v in tu.attrib.items() if k not in _KNOWN_UNIT_ATTRIBS},
    )
    for child in tu:
        if not isinstance(child.tag, str):
            continue  # comments
        tag = _local(child.tag)
        if tag == "source":
            unit.source = _text(child)
        elif tag == "target":
            unit.targets.append(Target.from_raw(
                _text(child),
                state=_parse_state(child.get("state")),
                state_qualifier=_parse_qualifier(child.get("state-qualifier")),
            ))
        elif tag == "note":
            priority = child.get("priority")
            unit.notes.append(Note(
                from_=child.get("from", ""),
                text=_text(child),
                annotates=child.get("annotates", "general"),
                priority=int(priority) if priority else 3,
            ))
    return unit


def parse_xlf_string(text: str, path: str | None = None) -> XliffDocument:
    """Parse XLIFF text into an XliffDocument.

    Raises:
        InvalidXliffError: On malformed XML.
        ValueError: On structural problems.
    """
    bom = text.startswith(_BOM)
    if bom:
        text = text[1:]
    validate_xml(text, path)

    parser = etree.XMLParser(remove_blank_text=True)
    root = etree.fromstring(text.encode("utf-8"), parser)  # noqa: S320 - trusted local file
    if _local(root.tag) != "xliff":
        raise ValueError(f"Root element is <{root.tag}>, expected <xliff>")
    file_elem = root.find(_q("file"))
    if file_elem is None:
        file_elem = root.find("file")
    if file_elem is None:
        raise ValueError("XLIFF file has no <file> element")

    units = [
        _parse_trans_unit(tu)
        for tu in file_elem.iter(_q("trans-unit"), "trans-unit")
    ]

    return XliffDocument(
        trans_units=units,
        source_language=file_elem.get("source-language", ""),
        target_language=file_elem.get("target-language", ""),
        original=file_elem.get("original", ""),
        datatype=file_elem.get("datatype", "xml"),
        file_attribs={k: v for k, v in file_elem.attrib.items() if k not in _KNOWN_FILE_ATTRIBS},
        line_ending=detect_line_ending(text),
        bom=bom,
        file_path=path,
    )


def parse_xlf(path: str | Path) -> XliffDocument:
    """Read and parse an ``.xlf`` file (UTF-8, with or without BOM)."""
    path = Path(path)
    text = path.read_bytes().decode("utf-8")
    return parse_xlf_string(text, str(path))


# ── Writing ─────────────────────────────────────────────────────


def _build_trans_unit(unit: TransUnit) -> etree._Element:
    tu = etree.Element(_q("trans-unit"))
    tu.set("id", unit.id)
    if unit.size_unit is not None:
        tu.set("size-unit", unit.size_unit)
    if unit.maxwidth is not None:
        tu.set("maxwidth", str(unit.maxwidth))
    tu.set("translate", "yes" if unit.translate else "no")
    if unit.xml_space is not None:
        tu.set(f"{{{XML_NS}}}space", unit.xml_space)
    if unit.al_object_target is not None:
        tu.set("al-object-target", unit.al_object_target)
    for key, value in unit.extra_attribs.items():
        tu.set(key, value)

    source = etree.SubElement(tu, _q("source"))
    source.text = unit.source or None
    for target in unit.targets:
        elem = etree.SubElement(tu, _q("target"))
        if target.state is not None:
            elem.set("state", TargetState(target.state).value)
        if target.state_qualifier is not None:
            qualifier = target.state_qualifier
            elem.set("state-qualifier", qualifier.value if isinstance(qualifier, StateQualifier) else qualifier)
        elem.text = target.raw_text() or None
    for note in unit.notes:
        elem = etree.SubElement(tu, _q("note"))
        elem.set("from", note.from_)
        elem.set("annotates", note.annotates)
        elem.set("priority", str(note.priority))
        elem.text = note.text or None
    return tu


def to_string(doc: XliffDocument, replace_self_closing: bool = False) -> str:
    """Serialize *doc* (without BOM) using its line-ending style."""
    root = etree.Element(_q("xliff"), nsmap={None: XLIFF_NS, "xsi": XSI_NS})
    root.set("version", "1.2")
    root.set(f"{{{XSI_NS}}}schemaLocation", _SCHEMA_LOCATION)

    file_elem = etree.SubElement(root, _q("file"))
    file_elem.set("datatype", doc.datatype)
    file_elem.set("source-language", doc.source_language)
    file_elem.set("target-language", doc.target_language)
    file_elem.set("original", doc.original)
    for key, value in doc.file_attribs.items():
        file_elem.set(key, value)

    body = etree.SubElement(file_elem, _q("body"))
    group = etree.SubElement(body, _q("group"), id="body")
    for unit in doc.trans_units:
        group.append(_build_trans_unit(unit))

    xml = etree.tostring(root, encoding="unicode", pretty_print=True)
    if replace_self_closing:
        xml = replace_self_closing_tags(xml)
    xml = f"{_XML_DECLARATION}\n{xml}"
    return xml.replace("\n", doc.line_ending) if doc.line_ending != "\n" else xml


def to_bytes(doc: XliffDocument, replace_self_closing: bool = False, bom: bool | None = None) -> bytes:
    text = to_string(doc, replace_self_closing)
    if doc.bom if bom is None else bom:
        text = _BOM + text
    return text.encode("utf-8")


def write_xlf(
    doc: XliffDocument,
    path: str | Path | None = None,
    *,
    replace_self_closing: bool = False,
    bom: bool | None = None,
    backup: bool = False,
) -> None:
    """Write an XliffDocument to disk atomically.

    Atomic write:
      1. Writes to a temporary file in the same directory.
      2. Uses os.replace() to atomically swap into place.
      3. If *backup* is True and the target file exists, creates a
         .bak copy before overwriting.
    """
    if path is None:
        if doc.file_path is None:
            raise ValueError("No path given and the document has no file_path")
        path = doc.file_path
    path = Path(path)
    target_dir = path.parent
    target_dir.mkdir(parents=True, exist_ok=True)

    xml_bytes = to_bytes(doc, replace_self_closing, bom)

    fd, tmp_path = tempfile.mkstemp(dir=str(target_dir), suffix=".xlf.tmp")
    try:
        os.write(fd, xml_bytes)
        os.close(fd)
        fd = -1  # mark as closed

        if backup and path.exists():
            bak_path = path.with_suffix(path.suffix + ".bak")
            shutil.copy2(str(path), str(bak_path))

        os.replace(tmp_path, str(path))
    except BaseException:
        if fd >= 0:
            os.close(fd)
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise
    log.debug("Wrote %s (%d units)", path, doc.unit_count())
