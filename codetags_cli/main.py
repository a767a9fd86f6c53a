"""CLI entry point: argparse dispatcher for all subcommands."""
from __future__ import annotations

import argparse
import json
import sys
import traceback


# ---------------------------------------------------------------------------
# Command registry: command name → (module_path, function_name)
# Lazy-imported at dispatch time to keep startup fast.
# ---------------------------------------------------------------------------
COMMANDS = {
    "init":   ("codetags_cli.commands.init",   "cmd_init"),
    "remove": ("codetags_cli.commands.remove", "cmd_remove"),
    "scan":   ("codetags_cli.commands.scan",   "cmd_scan"),
    "list":   ("codetags_cli.commands.scan",   "cmd_list"),
    "daemon": ("codetags_cli.commands.daemon", "cmd_daemon"),
}


# ---------------------------------------------------------------------------
# Parser builder
# ---------------------------------------------------------------------------
def build_parser() -> argparse.ArgumentParser:
    from codetags_cli._version import __version__

    parser = argparse.ArgumentParser(
        prog="codetags",
        description="Keep TODO/FIXME/BUG codetags stamped, indexed and summarized",
    )
    parser.add_argument("--debug", action="store_true", help="Show stack traces on error")
    parser.add_argument("-v", "--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    # init
    p = sub.add_parser("init", help="Register the current directory and (re)start the daemon")
    p.add_argument("--no-daemon", action="store_true", help="Register only; do not start the daemon")

    # remove
    sub.add_parser("remove", help="Remove the current directory from monitoring")

    # scan
    sub.add_parser("scan", help="Scan the current directory once and write the summary")

    # list
    p = sub.add_parser("list", help="Scan the current directory once and print its tags as JSON")
    p.add_argument("--type", dest="tag_type", help="Only show tags of this type (e.g. TODO)")

    # daemon
    sub.add_parser("daemon", help="Run the background daemon in the foreground")

    return parser


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------
def main(argv=None) -> None:
    parser = build_parser()
    args = parser.parse_args(sys.argv[1:] if argv is None else argv)

    entry = COMMANDS.get(args.command)
    if not entry:
        parser.print_help()
        sys.exit(1)

    mod_path, fn_name = entry
    try:
        import importlib
        mod = importlib.import_module(mod_path)
        fn = getattr(mod, fn_name)
        fn(args)
    except KeyboardInterrupt:
        sys.exit(130)
    except Exception as exc:
        json.dump({"ok": False, "error": str(exc)}, sys.stdout, default=str)
        sys.stdout.write("\n")
        if args.debug:
            traceback.print_exc(file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
