"""Stable trans-unit identifiers.

An identifier is the chain of ``<Type> <hash>`` tokens from the object
down to the translatable entry, joined with `` - ``::

    Table 1798064241 - Field 266367750 - Property 532412421

The generator note carries the same chain with readable names::

    Table Test Table - Field Name - Property Caption

The hash is FNV-1a (32 bit) over the UTF-16 code units of the name.  It
is not the hash the AL compiler uses, so these identifiers do not match
the ones in a compiler-generated ``.g.xlf``.  Keep a translation folder
on one generator; mixing files from both makes every unit look new.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_SEPARATOR = " - "
_ID_TOKEN_RE = re.compile(r"^(?P<type>\w+) (?P<number>\d+)$")

_FNV_OFFSET = 0x811C9DC5
_FNV_PRIME = 0x01000193


def name_hash(name: str) -> int:
    """32-bit FNV-1a over the UTF-16 code units of *name*."""
    h = _FNV_OFFSET
    data = name.encode("utf-16-le")
    for i in range(0, len(data), 2):
        h ^= data[i] | (data[i + 1] << 8)
        h = (h * _FNV_PRIME) & 0xFFFFFFFF
    return h


@dataclass
class XliffIdToken:
    type: str
    name: str = ""
    number: int | None = None

    def __post_init__(self) -> None:
        if self.number is None:
            self.number = name_hash(self.name)

    def id_part(self) -> str:
        return f"{self.type} {self.number}"

    def name_part(self) -> str:
        return f"{self.type} {self.name}"

    def matches(self, type_: str, name: str) -> bool:
        """Compare by name when known, else by hash."""
        if self.type.lower() != type_.lower():
            return False
        if self.name:
            return self.name.lower() == name.lower()
        return self.number == name_hash(name)


def get_xliff_id(tokens: list[XliffIdToken]) -> str:
    return _SEPARATOR.join(t.id_part() for t in tokens)


def get_xliff_id_with_names(tokens: list[XliffIdToken]) -> str:
    return _SEPARATOR.join(t.name_part() for t in tokens)


def parse_xliff_id(xliff_id: str, generator_note: str = "") -> list[XliffIdToken]:
    """Split an identifier back into tokens.

    Names are taken from *generator_note* when it has the same number of
    parts as the identifier; otherwise tokens carry only the hash.

    Raises:
        ValueError: If a part is not of the form ``<Type> <number>``.
    """
    parts = xliff_id.split(_SEPARATOR)
    names: list[str] = []
    if generator_note:
        note_parts = generator_note.split(_SEPARATOR)
        if len(note_parts) == len(parts):
            names = note_parts

    tokens: list[XliffIdToken] = []
    for i, part in enumerate(parts):
        m = _ID_TOKEN_RE.match(part.strip())
        if m is None:
            raise ValueError(f"'{part}' is not a valid identifier part of '{xliff_id}'")
        name = ""
        if names:
            type_, _, name = names[i].partition(" ")
            if type_ != m.group("type"):
                name = ""
        tokens.append(XliffIdToken(m.group("type"), name, int(m.group("number"))))
    return tokens
