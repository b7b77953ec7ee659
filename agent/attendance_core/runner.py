"""
Command-line entry point and auto-restart wrapper.

    followme-agent run                 background service (auto-restarts on crash)
    followme-agent add NAME            queue a manual entry
    followme-agent list                show the queue
    followme-agent submit              flush the queue now
    followme-agent test                authenticate with the stored settings
    followme-agent delete 0 2 | --all  delete entries by list index
    followme-agent logout
    followme-agent settings show|set FIELD VALUE
    followme-agent category add|edit|delete ...
    followme-agent header set|delete ...
"""

import argparse
import sys
import time

from .app import AttendanceApp
from .config import BASE_DIR, load_config, log, safe_print, setup_logging
from .constants import AGENT_VERSION, DEFAULT_CATEGORY

_SETTING_FIELDS = {
    "api": "api_base_url",
    "key": "api_key",
    "username": "username",
    "password": "password",
    "authRoute": "auth_route",
    "validateRoute": "validate_route",
    "mainRoute": "main_route",
}


# ─── Commands ────────────────────────────────────────────────────

def cmd_run(app, args):
    run_with_auto_restart(args.base_dir)
    return 0


def cmd_add(app, args):
    entry = app.coordinator.add_manual_entry(args.name, args.category)
    safe_print(f"Queued {entry.name} [{entry.category}] at {entry.timestamp}")
    return 0


def cmd_list(app, args):
    # Indexes are positions in the full list, as used by `delete`
    rows = [(i, e) for i, e in enumerate(app.coordinator.entries)
            if not args.category or e.category == args.category]
    if not rows:
        safe_print("No entries.")
        return 0
    for index, entry in rows:
        label = entry.name or entry.data.get("url", "-")
        safe_print(f"{index:>3}  {entry.status.value:<10} {entry.timestamp}  {entry.category:<12} {label}")
    return 0


def cmd_submit(app, args):
    result = app.coordinator.submit_pending()
    if result.ok:
        safe_print(f"Submitted {result.value} entries.")
        return 0
    safe_print(f"Submission failed: {result}")
    return 1


def cmd_test(app, args):
    settings = app.settings_store.load()
    if not settings.api_base_url:
        safe_print("Please set the API base URL first.")
        return 1
    if not (settings.api_key and settings.username and settings.password):
        safe_print("Please set API key, username and password first.")
        return 1
    result = app.coordinator.authenticate(settings)
    if result.ok:
        token = result.value
        safe_print(f"Authentication successful (user={token.user_id or '-'}, "
                   f"admin={token.is_admin()}, canEditTags={token.effective_can_edit_tags()})")
        return 0
    safe_print(f"Authentication failed: {result}")
    return 1


def cmd_delete(app, args):
    coordinator = app.coordinator
    coordinator.select_all(bool(args.all))
    if not args.all:
        for index in set(args.indexes):
            coordinator.set_selection(index, True)
    removed = coordinator.delete_selected()
    safe_print(f"Deleted {removed} entries.")
    return 0


def cmd_logout(app, args):
    app.coordinator.logout()
    safe_print("Logged out.")
    return 0


def cmd_settings(app, args):
    store = app.settings_store
    if args.action == "set":
        store.update(**{_SETTING_FIELDS[args.field]: args.value})
        safe_print(f"{args.field} updated.")
        return 0
    settings = store.load()
    for wire, attr in _SETTING_FIELDS.items():
        value = getattr(settings, attr)
        if attr == "password" and value:
            value = "********"
        safe_print(f"{wire:<14} {value}")
    safe_print("extensions     " + ", ".join(f"{k}={v}" for k, v in settings.extensions.items()))
    safe_print("categories     " + ", ".join(f"{k}={v}" for k, v in settings.categories.items()))
    return 0


def cmd_category(app, args):
    store = app.settings_store
    if args.action == "add":
        store.add_category(args.key, args.label)
    elif args.action == "edit":
        store.edit_category(args.key, args.new_key, args.label)
    else:
        store.delete_category(args.key)
    app.coordinator.reload()
    safe_print(f"Category {args.action} done.")
    return 0


def cmd_header(app, args):
    store = app.settings_store
    if args.action == "set":
        store.set_extension(args.name, args.value)
    else:
        store.delete_extension(args.name)
    safe_print(f"Header {args.action} done.")
    return 0


# ─── Parser ──────────────────────────────────────────────────────

def build_parser():
    parser = argparse.ArgumentParser(prog="followme-agent", description="Offline-first attendance agent")
    parser.add_argument("--base-dir", default=None, help=f"data directory (default: {BASE_DIR})")
    parser.add_argument("--version", action="version", version=AGENT_VERSION)
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("run", help="run the background submission service").set_defaults(func=cmd_run)

    p = sub.add_parser("add", help="queue a manual entry")
    p.add_argument("name")
    p.add_argument("--category", default=DEFAULT_CATEGORY)
    p.set_defaults(func=cmd_add)

    p = sub.add_parser("list", help="show queued entries")
    p.add_argument("--category", default=None)
    p.set_defaults(func=cmd_list)

    sub.add_parser("submit", help="submit pending and failed entries now").set_defaults(func=cmd_submit)
    sub.add_parser("test", help="test the connection (authenticate)").set_defaults(func=cmd_test)
    sub.add_parser("logout", help="forget the cached token").set_defaults(func=cmd_logout)

    p = sub.add_parser("delete", help="delete entries by list index")
    p.add_argument("indexes", nargs="*", type=int)
    p.add_argument("--all", action="store_true")
    p.set_defaults(func=cmd_delete)

    p = sub.add_parser("settings", help="show or change connection settings")
    settings_sub = p.add_subparsers(dest="action", required=True)
    settings_sub.add_parser("show")
    s = settings_sub.add_parser("set")
    s.add_argument("field", choices=sorted(_SETTING_FIELDS))
    s.add_argument("value")
    p.set_defaults(func=cmd_settings)

    p = sub.add_parser("category", help="manage categories")
    cat_sub = p.add_subparsers(dest="action", required=True)
    c = cat_sub.add_parser("add")
    c.add_argument("key")
    c.add_argument("label")
    c = cat_sub.add_parser("edit")
    c.add_argument("key")
    c.add_argument("new_key")
    c.add_argument("label")
    c = cat_sub.add_parser("delete")
    c.add_argument("key")
    p.set_defaults(func=cmd_category)

    p = sub.add_parser("header", help="manage extra request headers")
    header_sub = p.add_subparsers(dest="action", required=True)
    h = header_sub.add_parser("set")
    h.add_argument("name")
    h.add_argument("value")
    h = header_sub.add_parser("delete")
    h.add_argument("name")
    p.set_defaults(func=cmd_header)

    return parser


def main(argv=None):
    """CLI entry point. Returns a process exit code."""
    args = build_parser().parse_args(argv)
    config = load_config(args.base_dir)
    setup_logging(args.base_dir, config.get("logLevel", "INFO"), console=args.command == "run")

    if args.command == "run":
        return args.func(None, args)

    app = AttendanceApp(config, base_dir=args.base_dir)
    try:
        return args.func(app, args)
    except ValueError as e:
        safe_print(f"Error: {e}")
        return 2
    finally:
        app.gateway.session.close()


def run_with_auto_restart(base_dir=None):
    """
    Run the service and restart it on crash. Never gives up.
    Crash counter resets if the service ran for 2+ minutes (not a boot-loop).
    """
    crash_count = 0
    crash_window = 120
    max_rapid_crashes = 10

    safe_print("FollowMe attendance agent v" + AGENT_VERSION)
    while True:
        start_time = time.time()
        try:
            AttendanceApp(load_config(base_dir), base_dir=base_dir).run()
            break
        except KeyboardInterrupt:
            safe_print("\nAgent stopped by user.")
            break
        except Exception as e:
            elapsed = time.time() - start_time
            log.error("Agent crashed after %.0fs: %s", elapsed, e, exc_info=True)

            if elapsed > crash_window:
                crash_count = 0
            crash_count += 1

            if crash_count >= max_rapid_crashes:
                wait = 120
                log.warning("Many rapid crashes (%d). Waiting %ds...", crash_count, wait)
            else:
                wait = min(10 * crash_count, 60)

            log.info("Restarting in %ds (crash %d)...", wait, crash_count)
            time.sleep(wait)


if __name__ == "__main__":
    sys.exit(main())
