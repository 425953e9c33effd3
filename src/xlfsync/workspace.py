"""File discovery in an AL project folder.

The master file lives in the translation folder and is named after the
``name`` in ``app.json``; every other ``.xlf`` file in that folder is a
language file.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from xlfsync.al_object import ALObject
from xlfsync.al_parser import parse_object
from xlfsync.config import Settings
from xlfsync.errors import InvalidXliffError, MissingFileError, ObjectParseError
from xlfsync.xlf_io import parse_xlf

log = logging.getLogger(__name__)

APP_JSON = "app.json"
_INVALID_FILENAME_CHARS = set('<>:"/\\|?*')


def _is_valid_filesystem_char(char: str) -> bool:
    if char <= "\u001f" or "\u0080" <= char <= "\u009f":
        return False
    return char not in _INVALID_FILENAME_CHARS


def read_app_json(workspace_folder: str | Path) -> dict:
    path = Path(workspace_folder) / APP_JSON
    if not path.is_file():
        raise MissingFileError(f"No {APP_JSON} found in {workspace_folder}", str(path))
    with open(path, encoding="utf-8-sig") as f:
        return json.load(f)


def g_xlf_file_name(app_name: str) -> str:
    """``<app name without invalid path characters>.g.xlf``"""
    name = "".join(c for c in app_name if _is_valid_filesystem_char(c)).strip()
    return f"{name}.g.xlf"


def get_translation_folder(workspace_folder: str | Path, settings: Settings) -> Path:
    return Path(workspace_folder) / settings.translation_folder


def get_g_xlf_file(workspace_folder: str | Path, settings: Settings) -> Path:
    """Path of the master file.

    Raises:
        MissingFileError: If ``app.json`` or the master file is missing.
    """
    name = g_xlf_file_name(read_app_json(workspace_folder).get("name", ""))
    folder = get_translation_folder(workspace_folder, settings)
    path = folder / name
    if not path.is_file():
        raise MissingFileError(f'The file {name} was not found in the translation folder "{folder}"', str(path))
    return path


def get_lang_xlf_files(workspace_folder: str | Path, settings: Settings) -> list[Path]:
    """All ``.xlf`` files of the translation folder except the master.

    Raises:
        MissingFileError: If there are none.
    """
    g_xlf_name = g_xlf_file_name(read_app_json(workspace_folder).get("name", ""))
    folder = get_translation_folder(workspace_folder, settings)
    files = sorted(p for p in folder.glob("*.xlf") if p.name != g_xlf_name) if folder.is_dir() else []
    if not files:
        raise MissingFileError(
            f'No language files found in the translation folder "{folder}". '
            f"To get started: copy the file {g_xlf_name} to a new file and change target-language",
            str(folder),
        )
    return files


def get_al_files(workspace_folder: str | Path) -> list[Path]:
    """All ``*.al`` files below the workspace, sorted by path."""
    files = sorted(Path(workspace_folder).rglob("*.al"))
    if not files:
        raise MissingFileError(f"No AL files found in {workspace_folder}", str(workspace_folder))
    return files


def get_al_objects(workspace_folder: str | Path) -> list[ALObject]:
    """Parse every AL file of the workspace; unparsable objects are skipped."""
    objects: list[ALObject] = []
    for path in get_al_files(workspace_folder):
        try:
            obj = parse_object(path.read_text(encoding="utf-8-sig"), str(path))
        except ObjectParseError as exc:
            log.error("%s cannot be parsed: %s", path.name, exc)
            continue
        if obj is not None:
            objects.append(obj)
    return objects


def existing_target_language_codes(workspace_folder: str | Path, settings: Settings) -> list[str]:
    """Target languages of the language files; malformed files are skipped."""
    codes: list[str] = []
    for path in get_lang_xlf_files(workspace_folder, settings):
        try:
            codes.append(parse_xlf(path).target_language.lower())
        except InvalidXliffError as exc:
            log.warning("Skipping %s: %s", path.name, exc)
    return codes
