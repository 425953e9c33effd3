"""Settings management.

Settings come from the bundled ``default_settings.json``, overlaid by
``~/.xlfsync/settings.json`` and then by ``<workspace>/xlfsync.json``.
The result is a :class:`Settings` value that callers pass explicitly to
every entry point.
"""

from __future__ import annotations

import dataclasses
import importlib.resources
import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from xlfsync.models import TranslationMode

log = logging.getLogger(__name__)

_USER_CONFIG_DIR = Path.home() / ".xlfsync"
_USER_SETTINGS_PATH = _USER_CONFIG_DIR / "settings.json"
WORKSPACE_SETTINGS_NAME = "xlfsync.json"


@dataclass
class Settings:
    use_external_translation_tool: bool = False
    use_dts: bool = False
    search_only_xlf_files: bool = True
    replace_self_closing_xlf_tags: bool = True
    match_translation: bool = True
    match_base_app_translation: bool = False
    base_app_translation_folder: str = ""
    translation_suggestion_paths: list[str] = field(default_factory=list)
    detect_invalid_targets: bool = True
    enforce_max_width: bool = True
    console_log_output: bool = False
    translation_folder: str = "Translations"

    def translation_mode(self) -> TranslationMode:
        if self.use_dts:
            return TranslationMode.DTS
        if self.use_external_translation_tool:
            return TranslationMode.EXTERNAL
        return TranslationMode.INLINE

    def limits_enabled(self) -> bool:
        """Whether maxwidth values are carried into language files."""
        return self.enforce_max_width and self.translation_mode() is not TranslationMode.DTS


_FIELD_NAMES = {f.name for f in dataclasses.fields(Settings)}
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def _normalize_key(key: str) -> str:
    """``UseDTS`` / ``useDts`` / ``use_dts`` -> ``use_dts``."""
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def _load_defaults() -> dict:
    """Load the bundled default settings using importlib.resources.

    Works whether the package is run from source or installed as a wheel.
    """
    try:
        ref = importlib.resources.files("xlfsync").joinpath("default_settings.json")
        with importlib.resources.as_file(ref) as p:
            with open(p, encoding="utf-8") as f:
                return json.load(f)
    except (FileNotFoundError, TypeError):
        return {}


def _load_file(path: Path) -> dict:
    if path.exists():
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    return {}


def settings_from_dict(*layers: dict) -> Settings:
    """Merge *layers* (later wins) into a Settings value.

    Unknown keys are ignored.
    """
    values: dict[str, object] = {}
    for layer in layers:
        for key, value in layer.items():
            name = _normalize_key(key)
            if name in _FIELD_NAMES:
                values[name] = value
            else:
                log.debug("Ignoring unknown setting %r", key)
    if "translation_suggestion_paths" in values:
        values["translation_suggestion_paths"] = list(values["translation_suggestion_paths"] or [])
    return Settings(**values)


def load_settings(workspace_folder: str | Path | None = None, user_settings_path: Path | None = None) -> Settings:
    """Load and merge default, user and workspace settings."""
    layers = [_load_defaults(), _load_file(user_settings_path or _USER_SETTINGS_PATH)]
    if workspace_folder is not None:
        layers.append(_load_file(Path(workspace_folder) / WORKSPACE_SETTINGS_NAME))
    return settings_from_dict(*layers)


def save_settings(settings: Settings, path: Path | None = None) -> None:
    """Persist *settings* as JSON (user settings file by default)."""
    path = path or _USER_SETTINGS_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(dataclasses.asdict(settings), f, indent=2, ensure_ascii=False)
