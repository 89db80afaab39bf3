"""Application entry point — wires services and runs the command line front end."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from loguru import logger
from PySide6.QtCore import QCoreApplication

from honorsave.config import Config, get_config
from honorsave.context import AppContext
from honorsave.core.backup import BackupService, FlagIssue
from honorsave.core.errors import ErrorKind, OperationResult
from honorsave.core.hotkeys import HotkeyBridge
from honorsave.core.ledger import SnapshotStore
from honorsave.core.matcher import MatchEngine
from honorsave.core.name_extractor import DivineNameExtractor
from honorsave.core.scanner import ProfileScanner
from honorsave.core.tracker import RestorationTracker
from honorsave.core.watcher import SaveWatcher
from honorsave.logger import hotkey_logger, setup_logger
from honorsave.models.profile import Profile
from honorsave.utils import directory_size, format_datetime, format_size

_APP_DIR = Path(__file__).resolve().parent


def create_context(config: Config | None = None) -> AppContext:
    """Wire all services and return an AppContext."""
    config = config or get_config()

    # Paths handed over by the installer
    config.import_initial_config(_APP_DIR / "initial_config.txt")

    # Character names come from divine when it is installed
    divine = config.divine_path or _APP_DIR / "tools" / "divine.exe"
    extractor = DivineNameExtractor(divine)

    store = SnapshotStore(config.backup_root, config.mode_suffix)
    scanner = ProfileScanner(
        config.save_root,
        mode_suffix=config.mode_suffix,
        extension=config.save_extension,
        name_extractor=extractor if extractor.available else None,
    )
    matcher = MatchEngine(config.backup_root, config.mode_suffix, config.save_extension)
    tracker = RestorationTracker(config.backup_root, matcher)
    service = BackupService(store, scanner, tracker, config.flag_file)
    service.initialize()

    return AppContext(
        config=config,
        store=store,
        scanner=scanner,
        matcher=matcher,
        tracker=tracker,
        backup_service=service,
    )


def _resolve_profile(ctx: AppContext, profile_id: str) -> Profile:
    for profile in ctx.backup_service.refresh_profiles():
        if profile.id == profile_id or profile.character_name.casefold() == profile_id.casefold():
            return profile
    raise SystemExit(f"Profile not found: {profile_id}")


def _ask(question: str) -> bool:
    answer = input(f"{question} [y/N] ").strip().lower()
    return answer in ("y", "yes")


# ── Commands ──


def cmd_list(ctx: AppContext, args: argparse.Namespace) -> int:
    use_24h = ctx.config.use_24_hour_time
    profiles = ctx.backup_service.refresh_profiles()
    if not profiles:
        print("No Honor Mode playthroughs found.")
        return 0
    for profile in profiles:
        state = ctx.backup_service.describe_state(profile)
        when = format_datetime(state.timestamp, use_24h) if state.timestamp else "-"
        print(f"{profile.display_name}  [{profile.id}]  {state.label} - {when}")
        for snapshot in ctx.backup_service.snapshots_for(profile.character_name, include_quicksaves=True):
            created = format_datetime(snapshot.created_at, use_24h)
            size = format_size(directory_size(ctx.store.folder_path(snapshot)))
            print(f"    {snapshot.id}  {snapshot.display_label} - {created} ({size})")
    return 0


def cmd_backup(ctx: AppContext, args: argparse.Namespace) -> int:
    profile = _resolve_profile(ctx, args.profile)
    result = ctx.backup_service.create_backup(profile, args.label, overwrite=args.overwrite)
    if not result.success and result.error_kind == ErrorKind.DUPLICATE and not args.overwrite:
        if _ask(f"{result.error}. Overwrite it?"):
            result = ctx.backup_service.create_backup(profile, args.label, overwrite=True)
    return _report(result, "Backup created")


def cmd_restore(ctx: AppContext, args: argparse.Namespace) -> int:
    profile = _resolve_profile(ctx, args.profile)
    confirmed = args.yes or _ask(f"This will DELETE and replace {profile.display_name}. Continue?")

    def proceed(issue: FlagIssue, detail: str) -> bool:
        if args.without_flag:
            return True
        if issue == FlagIssue.MISSING:
            return _ask("This backup does not contain the Honor Mode flag. Continue anyway?")
        return _ask(f"CRITICAL: the Honor Mode flag could not be restored ({detail}). Continue anyway?")

    result = ctx.backup_service.restore(profile, args.snapshot, confirmed, proceed)
    return _report(result, "Restore completed")


def cmd_delete(ctx: AppContext, args: argparse.Namespace) -> int:
    if not args.yes and not _ask("Delete this backup? This cannot be undone."):
        return 1
    return _report(ctx.backup_service.delete_snapshot(args.snapshot), "Backup deleted")


def cmd_rename(ctx: AppContext, args: argparse.Namespace) -> int:
    profile = _resolve_profile(ctx, args.profile)
    return _report(ctx.backup_service.rename_character(profile, args.name), "Character renamed")


def cmd_quicksave(ctx: AppContext, args: argparse.Namespace) -> int:
    profile = _resolve_profile(ctx, args.profile)
    return _report(ctx.backup_service.quick_save(profile), "Quicksave written")


def cmd_quickrestore(ctx: AppContext, args: argparse.Namespace) -> int:
    profile = _resolve_profile(ctx, args.profile)
    return _report(ctx.backup_service.quick_restore(profile), "Quicksave restored")


def cmd_watch(ctx: AppContext, args: argparse.Namespace) -> int:
    """Run hotkeys and the save watcher until interrupted."""
    app = QCoreApplication.instance() or QCoreApplication(sys.argv)
    service = ctx.backup_service
    profile_id = _resolve_profile(ctx, args.profile).id

    def on_hotkey(action: str) -> None:
        profile = service.find_profile(profile_id)
        if profile is None:
            return
        result = service.quick_save(profile) if action == "save" else service.quick_restore(profile)
        # Hotkeys run during gameplay: report through the log only
        if result.success:
            hotkey_logger.info(f"Quick{action} done for {profile.display_name}")

    def on_refresh() -> None:
        profile = service.find_profile(profile_id)
        if profile is not None:
            state = service.describe_state(profile)
            logger.info(f"{profile.display_name}: {state.label}")

    hotkeys = HotkeyBridge(
        {
            ctx.config.quick_save_key: lambda: on_hotkey("save"),
            ctx.config.quick_restore_key: lambda: on_hotkey("restore"),
        }
    )
    watcher = SaveWatcher(ctx.config.save_root, ctx.config.watcher_debounce_ms)
    watcher.refresh_requested.connect(on_refresh)
    watcher.start()
    hotkeys.start()
    try:
        return app.exec()
    finally:
        hotkeys.stop()
        watcher.stop()


def _report(result: OperationResult, success_message: str) -> int:
    for warning in result.warnings:
        print(f"Warning: {warning}")
    if result.success:
        print(success_message)
        return 0
    print(f"Error: {result.error}", file=sys.stderr)
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="honor-save-manager", description="Honor Mode save backups")
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="Show profiles, their save state and backups").set_defaults(func=cmd_list)

    p = sub.add_parser("backup", help="Create a named backup")
    p.add_argument("profile")
    p.add_argument("label")
    p.add_argument("--overwrite", action="store_true")
    p.set_defaults(func=cmd_backup)

    p = sub.add_parser("restore", help="Restore a backup into its profile")
    p.add_argument("profile")
    p.add_argument("snapshot")
    p.add_argument("-y", "--yes", action="store_true")
    p.add_argument("--without-flag", action="store_true", help="Continue if the flag file cannot be restored")
    p.set_defaults(func=cmd_restore)

    p = sub.add_parser("delete", help="Delete a backup")
    p.add_argument("snapshot")
    p.add_argument("-y", "--yes", action="store_true")
    p.set_defaults(func=cmd_delete)

    p = sub.add_parser("rename", help="Name a profile's character")
    p.add_argument("profile")
    p.add_argument("name")
    p.set_defaults(func=cmd_rename)

    for name, func in (("quicksave", cmd_quicksave), ("quickrestore", cmd_quickrestore), ("watch", cmd_watch)):
        p = sub.add_parser(name)
        p.add_argument("profile")
        p.set_defaults(func=func)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Application entry point."""
    args = build_parser().parse_args(argv)
    config = get_config()
    setup_logger(config.data_dir / "logs", verbose=args.verbose)
    ctx = create_context(config)
    return args.func(ctx, args)


if __name__ == "__main__":
    sys.exit(main())
