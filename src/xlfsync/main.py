"""Command line entry point for xlfsync."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from xlfsync.config import Settings, load_settings
from xlfsync.errors import InvalidXliffError, MissingFileError
from xlfsync.matching import create_suggestion_maps
from xlfsync.models import TargetState
from xlfsync.search import find_all_untranslated, find_multiple_targets, find_next_untranslated
from xlfsync.sync import (
    RefreshResult,
    format_for_dts,
    import_translated_file_into_target,
    refresh_xlf_files_from_g_xlf,
    remove_custom_notes_from_file,
    update_g_xlf_from_al_files,
)
from xlfsync.workspace import (
    existing_target_language_codes,
    get_al_files,
    get_g_xlf_file,
    get_lang_xlf_files,
    get_translation_folder,
)
from xlfsync.xlf_io import parse_xlf, write_xlf

log = logging.getLogger("xlfsync")


def _print_result(result: RefreshResult) -> None:
    lines = [
        f"{result.added} inserted translations",
        f"{result.removed_trans_units} removed translations",
        f"{result.updated_sources} changed sources",
        f"{result.updated_maxwidths} changed maxwidths",
        f"{result.updated_notes} changed notes",
        f"{result.removed_notes} cleared hints",
        f"{result.suggestions_added} suggestions",
    ]
    if result.checked_files:
        lines.append(f"{result.checked_files} checked files")
    print(f"{result.file_name or 'xlf'}: " + ", ".join(lines))
    for path in result.failed_objects:
        print(f"  could not parse {path}", file=sys.stderr)
    for exc in result.invalid_files:
        print(f"  {exc} (byte offset {exc.offset})", file=sys.stderr)


# ── Commands ────────────────────────────────────────────────────


def cmd_update_g_xlf(args: argparse.Namespace, settings: Settings) -> int:
    result = update_g_xlf_from_al_files(
        get_g_xlf_file(args.workspace, settings),
        get_al_files(args.workspace),
        replace_self_closing=settings.replace_self_closing_xlf_tags,
    )
    _print_result(result)
    return 1 if result.failed_objects else 0


def cmd_refresh(args: argparse.Namespace, settings: Settings) -> int:
    g_xlf_path = get_g_xlf_file(args.workspace, settings)
    lang_files = get_lang_xlf_files(args.workspace, settings)
    suggestion_maps = None
    if not args.sort_only:
        suggestion_maps = create_suggestion_maps(
            existing_target_language_codes(args.workspace, settings),
            settings,
            args.workspace,
            match_xlf_path=args.match,
            match_base_app_translation=args.base_app or None,
        )
    result = refresh_xlf_files_from_g_xlf(
        g_xlf_path, lang_files, settings, suggestion_maps,
        sort_only=args.sort_only,
        use_matching=False if args.no_matching else None,
    )
    _print_result(result)
    return 1 if result.invalid_files else 0


def cmd_find_untranslated(args: argparse.Namespace, settings: Settings) -> int:
    folder = get_translation_folder(args.workspace, settings)
    if args.multiple_targets:
        found = find_multiple_targets(folder, settings)
        for path, hit in found:
            print(f"{path}:{hit.position}: multiple targets")
        return 0 if not found else 2
    if args.all:
        matches = find_all_untranslated(folder, settings)
        for m in matches:
            print(f"{m.path}:{m.line_no + 1}: {m.line}")
        return 0 if not matches else 2
    hit = find_next_untranslated(
        get_lang_xlf_files(args.workspace, settings),
        replace_self_closing=settings.replace_self_closing_xlf_tags,
    )
    if hit is None:
        print("No more untranslated texts")
        return 0
    path, result = hit
    print(f"{path}:{result.position}: {result.word.strip()}")
    return 2


def cmd_remove_notes(args: argparse.Namespace, settings: Settings) -> int:
    for path in get_lang_xlf_files(args.workspace, settings):
        if remove_custom_notes_from_file(path, settings.replace_self_closing_xlf_tags):
            print(f"Removed notes from {path.name}")
    return 0


def cmd_format_dts(args: argparse.Namespace, settings: Settings) -> int:
    g_xlf_name = get_g_xlf_file(args.workspace, settings).name
    for path in args.files or get_lang_xlf_files(args.workspace, settings):
        write_xlf(format_for_dts(parse_xlf(path), g_xlf_name), path)
        print(f"Formatted {Path(path).name}")
    return 0


def cmd_import_dts(args: argparse.Namespace, settings: Settings) -> int:
    source = parse_xlf(args.file)
    for path in get_lang_xlf_files(args.workspace, settings):
        target = parse_xlf(path)
        if target.target_language.lower() != source.target_language.lower():
            continue
        exact_match_state = TargetState(args.exact_match_state) if args.exact_match_state else None
        import_translated_file_into_target(
            source, target, settings.translation_mode(), exact_match_state, settings.detect_invalid_targets,
        )
        write_xlf(target, path)
        print(f"Imported {Path(args.file).name} into {path.name}")
        return 0
    print(f'There is no xlf file with target-language "{source.target_language}"', file=sys.stderr)
    return 1


_COMMANDS = {
    "update-g-xlf": cmd_update_g_xlf,
    "refresh": cmd_refresh,
    "find-untranslated": cmd_find_untranslated,
    "remove-notes": cmd_remove_notes,
    "format-dts": cmd_format_dts,
    "import-dts": cmd_import_dts,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="xlfsync",
        description="Keep AL translation files in sync with the generated g.xlf file",
    )
    parser.add_argument("--workspace", "-w", type=Path, default=Path("."), help="AL project folder (default: .)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log every change")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("update-g-xlf", help="Update the g.xlf file from the AL source files")

    refresh_parser = subparsers.add_parser("refresh", help="Synchronize the language files with the g.xlf file")
    refresh_parser.add_argument("--sort-only", action="store_true", help="Only reorder units as in g.xlf")
    refresh_parser.add_argument("--match", type=Path, help="Extra xlf file to take suggestions from")
    refresh_parser.add_argument("--base-app", action="store_true", help="Use the reference corpus for suggestions")
    refresh_parser.add_argument("--no-matching", action="store_true", help="Do not match a file's own translations")

    find_parser = subparsers.add_parser("find-untranslated", help="Find targets that still need work")
    find_parser.add_argument("--all", action="store_true", help="List every unfinished target")
    find_parser.add_argument("--multiple-targets", action="store_true", help="List units with several targets")

    subparsers.add_parser("remove-notes", help="Remove refresh hints from finished language files")

    dts_parser = subparsers.add_parser("format-dts", help="Reformat language files for DTS")
    dts_parser.add_argument("files", nargs="*", type=Path, help="Files to format (default: all language files)")

    import_parser = subparsers.add_parser("import-dts", help="Import a translated file returned by DTS")
    import_parser.add_argument("file", type=Path, help="Translated xlf file")
    import_parser.add_argument(
        "--exact-match-state",
        choices=[s.value for s in TargetState],
        help="State to give exact-match targets",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 1

    settings = load_settings(args.workspace)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose or settings.console_log_output else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return _COMMANDS[args.command](args, settings)
    except (MissingFileError, InvalidXliffError, ValueError) as exc:
        log.error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
