"""Post-synchronization checks of a single trans-unit.

A failed check is not an error: the unit is downgraded to a review state
for the active translation mode and a hint note explains why.
"""

from __future__ import annotations

import logging
import re

from xlfsync.al_object import MultiLanguageType, XliffTokenType
from xlfsync.models import (
    CustomNoteType,
    StateQualifier,
    TargetState,
    TranslationMode,
    TranslationToken,
    TransUnit,
)
from xlfsync.xliff_id import parse_xliff_id

log = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"(@\d+@[@]+|#\d+#[#]+)")


def is_option_caption(unit: TransUnit) -> bool:
    """True when the unit's identifier ends in ``Property OptionCaption``."""
    generator = unit.generator_note()
    try:
        tokens = parse_xliff_id(unit.id, generator.text if generator is not None else "")
    except ValueError:
        return False
    return bool(tokens) and tokens[-1].matches(
        XliffTokenType.PROPERTY.value, MultiLanguageType.OPTION_CAPTION.value
    )


def find_placeholders(text: str) -> list[str]:
    return _PLACEHOLDER.findall(text)


def check_option_caption(source: str, target: str) -> str | None:
    """Return a message when the option lists do not line up."""
    source_options = source.split(",")
    target_options = target.split(",")
    if len(source_options) != len(target_options):
        return "source and target has different number of option captions."
    for i, (s, t) in enumerate(zip(source_options, target_options)):
        if (s == "") != (t == ""):
            return f'Option no. {i} of source is "{s}", but the same option in target is "{t}".'
    return None


def check_placeholders(source: str, target: str) -> str | None:
    """Name every placeholder of *source* that *target* lacks."""
    missing: list[str] = []
    for placeholder in find_placeholders(source):
        if placeholder not in target and placeholder not in missing:
            missing.append(placeholder)
    if not missing:
        return None
    if len(missing) == 1:
        return f'The placeholder "{missing[0]}" was found in source, but not in target.'
    names = ", ".join(f'"{p}"' for p in missing)
    return f"The placeholders {names} were found in source, but not in target."


def downgrade(unit: TransUnit, mode: TranslationMode, message: str) -> None:
    """Flag the unit's target for review and attach *message* as hint."""
    target = unit.target
    if target is None:
        return
    if mode is TranslationMode.EXTERNAL:
        target.state = TargetState.NEEDS_REVIEW_TRANSLATION
    elif mode is TranslationMode.DTS:
        target.state = TargetState.NEEDS_REVIEW_L10N
        target.state_qualifier = StateQualifier.REJECTED_INACCURATE
    else:
        target.translation_token = TranslationToken.REVIEW
    unit.insert_custom_note(CustomNoteType.REFRESH_XLF_HINT, message)


def detect_invalid_values(unit: TransUnit, mode: TranslationMode, enabled: bool = True) -> bool:
    """Run all checks on *unit*; return True when it was downgraded.

    Units without target text are not checked.
    """
    if not enabled:
        return False
    target = unit.target
    if target is None or not target.has_content():
        return False

    message = None
    if is_option_caption(unit):
        message = check_option_caption(unit.source, target.text)
    if message is None:
        message = check_placeholders(unit.source, target.text)
    if message is None:
        return False
    log.debug("Invalid target in %s: %s", unit.id, message)
    downgrade(unit, mode, message)
    return True
