"""Exceptions raised while parsing objects and reading translation files."""

from __future__ import annotations


class ObjectParseError(ValueError):
    """A structural keyword is not valid for the object being parsed."""

    def __init__(self, keyword: str, object_type: str, line_no: int | None = None) -> None:
        self.keyword = keyword
        self.object_type = object_type
        self.line_no = line_no
        msg = f"'{keyword}' not supported for object type {object_type}"
        if line_no is not None:
            msg += f" (line {line_no + 1})"
        super().__init__(msg)


class MissingFileError(FileNotFoundError):
    """An expected master, language or settings file does not exist."""

    def __init__(self, message: str, path: str) -> None:
        super().__init__(message)
        self.path = path


class InvalidXliffError(ValueError):
    """Malformed markup in a translation file.

    ``offset`` is the byte offset of the problem in the file so the
    caller can show the exact spot before giving up on the file.
    """

    def __init__(self, path: str | None, offset: int, line: int, column: int, reason: str) -> None:
        self.path = path
        self.offset = offset
        self.line = line
        self.column = column
        self.reason = reason
        name = path or "<string>"
        super().__init__(f"The xml in {name} is invalid at line {line}, column {column}: {reason}")
