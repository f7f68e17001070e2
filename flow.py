#!/usr/bin/env python
import sys
import json
import argparse
from pathlib import Path

from flowtree import Engine, EngineSettings, FlowTreeError, dump, parse
from flowtree.graph import TaskGraph
from flowtree.log import configure_logging
from flowtree.persistence import ResumeStore


def _parse_env(pairs):
    env = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep:
            raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got '{pair}'")
        env[key] = value
    return env


def _read_source(target: str) -> str:
    if target == "-" or (not target and not sys.stdin.isatty()):
        return sys.stdin.read()
    return Path(target or "tasks.flow").read_text(encoding="utf-8")


def cmd_run(args) -> int:
    overrides = {}
    if args.pool_size is not None:
        overrides["pool_size"] = args.pool_size
    if args.allow_eval:
        overrides["allow_eval"] = True
    settings = EngineSettings.model_validate({**EngineSettings.from_env().model_dump(), **overrides})
    configure_logging(args.log_level or settings.log_level)

    document = parse(_read_source(args.file))
    engine = Engine.from_settings(settings, system_output=sys.stdout, command_output=sys.stdout)
    result = engine.perform(document, initial_env=_parse_env(args.env), rerun=args.rerun)

    print(json.dumps([result.has_error(), result.error_detail]), file=sys.stderr)
    markup = dump(document)
    if args.write and args.file not in (None, "-"):
        Path(args.file).write_text(markup, encoding="utf-8")
    else:
        sys.stdout.write(markup)
    return 1 if result.has_error() else 0


def cmd_status(args) -> int:
    document = parse(_read_source(args.file))
    store = ResumeStore.load(document)
    graph = TaskGraph.from_document(document)
    progress = graph.progress(store)
    print(f"completed {progress['completed']}/{progress['total']}"
          f"{' (complete)' if document.complete else ''}")
    for path in graph.pending(store):
        print(f"  pending {path}")
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(description="flowtree - resumable task tree runner")
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Run a task file")
    run_parser.add_argument("file", nargs="?", default=None, help="Task file, or '-' for stdin (default: tasks.flow)")
    run_parser.add_argument("--rerun", action="store_true", help="Ignore recorded progress and start fresh")
    run_parser.add_argument("--allow-eval", action="store_true", help="Enable the eval tag")
    run_parser.add_argument("--pool-size", type=int, default=None, help="Fork branches running at once")
    run_parser.add_argument("--env", action="append", metavar="KEY=VALUE", help="Initial environment entry")
    run_parser.add_argument("--write", action="store_true", help="Write the updated tree back to the file")
    run_parser.add_argument("--log-level", default=None)

    status_parser = subparsers.add_parser("status", help="Show recorded progress of a task file")
    status_parser.add_argument("file", help="Task file, or '-' for stdin")

    args = parser.parse_args(argv)

    try:
        if args.command == "run":
            return cmd_run(args)
        if args.command == "status":
            return cmd_status(args)
    except (FlowTreeError, OSError, ValueError, argparse.ArgumentTypeError) as e:
        print(f"[Error] {e}", file=sys.stderr)
        return 1
    parser.print_help()
    return 2


if __name__ == "__main__":
    sys.exit(main())
