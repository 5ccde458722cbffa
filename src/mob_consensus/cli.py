#!/usr/bin/env python3
"""mob-consensus CLI - argument parsing and exit codes over the engine."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Fail fast on unsupported interpreter version
if sys.version_info < (3, 10):
    print(f"mob-consensus requires Python 3.10+; found {sys.version.split()[0]}", file=sys.stderr)
    sys.exit(1)

COMMANDS = ("status", "merge", "branch", "init", "start", "join")

EPILOG = """\
With no command, show the status of branches related to the current one.
A lone BRANCH argument is shorthand for `merge BRANCH`.

examples:
  mob-consensus init --twig feature-x
  mob-consensus
  mob-consensus merge bob/feature-x
  mob-consensus -b feature-x
"""


def _add_global_flags(parser: argparse.ArgumentParser, *, nested: bool = False) -> None:
    # Subcommand copies must not reset values given before the subcommand
    default = argparse.SUPPRESS if nested else False
    parser.add_argument("-F", "--force", action="store_true", default=default,
                        help="Run even when not on a <user>/<twig> branch")
    parser.add_argument("-c", "--commit-dirty", action="store_true", default=default,
                        help="Commit uncommitted changes (interactively) before continuing")
    parser.add_argument("-n", "--no-push", action="store_true", default=default,
                        help="Do not push automatically after committing")


def _add_onboarding_flags(parser: argparse.ArgumentParser, *, with_base: bool = True) -> None:
    parser.add_argument("--twig", help="Shared twig name (default: inferred, or prompted)")
    if with_base:
        parser.add_argument("--base", help="Base ref for a new twig (default: current branch)")
    parser.add_argument("--remote", help="Remote to fetch/push (default: inferred, or prompted)")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--plan", action="store_true", help="Print the steps with explanations; change nothing")
    mode.add_argument("--dry-run", action="store_true", help="Print the git commands only; change nothing")
    parser.add_argument("-y", "--yes", action="store_true", help="Run every step without asking")


def build_parser() -> argparse.ArgumentParser:
    from . import __version__

    ap = argparse.ArgumentParser(
        prog="mob-consensus",
        description="Git-native collaboration: personal branches, shared twigs, co-authored merges",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    ap.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    _add_global_flags(ap)
    ap.add_argument("-b", "--base-branch", metavar="BASE",
                    help="Create (or switch to) <user>/<twig> from BASE; same as `branch BASE`")

    sub = ap.add_subparsers(dest="cmd", metavar="COMMAND")

    p_status = sub.add_parser("status", help="Fetch, then show related branches and how they differ")
    _add_global_flags(p_status, nested=True)

    p_merge = sub.add_parser("merge", help="Merge a related branch with co-author trailers, then push")
    p_merge.add_argument("target", metavar="BRANCH", help="Branch to merge (e.g. bob/feature-x)")
    _add_global_flags(p_merge, nested=True)

    p_branch = sub.add_parser("branch", help="Create (or switch to) your personal branch for BASE")
    p_branch.add_argument("base", metavar="BASE", help="Base branch; its last path segment is the twig")
    _add_global_flags(p_branch, nested=True)

    p_init = sub.add_parser("init", help="Fetch, then start or join a twig as appropriate")
    _add_onboarding_flags(p_init)
    _add_global_flags(p_init, nested=True)

    p_start = sub.add_parser("start", help="Create and publish a new twig, then your personal branch")
    _add_onboarding_flags(p_start)
    _add_global_flags(p_start, nested=True)

    p_join = sub.add_parser("join", help="Track an existing twig, then create your personal branch")
    _add_onboarding_flags(p_join, with_base=False)
    _add_global_flags(p_join, nested=True)

    return ap


def normalize_argv(argv: list[str]) -> list[str]:
    """Rewrite the short form ``mob-consensus [flags] BRANCH`` to ``merge BRANCH``."""
    takes_value = {"-b", "--base-branch"}
    i = 0
    while i < len(argv):
        arg = argv[i]
        if arg == "--":
            return argv[:i] + ["merge"] + argv[i + 1:]
        if arg in takes_value:
            i += 2
            continue
        if arg.startswith("-"):
            i += 1
            continue
        if arg in COMMANDS:
            return argv
        return argv[:i] + ["merge"] + argv[i:]
    return argv


def options_from_args(args: argparse.Namespace):
    from .context import Command, ExecutionMode, Options

    cmd = args.cmd
    base = getattr(args, "base", None)
    if cmd is None:
        if args.base_branch:
            cmd, base = "branch", args.base_branch
        else:
            cmd = "status"
    elif args.base_branch:
        raise ValueError("-b/--base-branch cannot be combined with a command")

    if getattr(args, "plan", False):
        mode = ExecutionMode.PLAN
    elif getattr(args, "dry_run", False):
        mode = ExecutionMode.DRY_RUN
    else:
        mode = ExecutionMode.EXECUTE

    return Options(
        command=Command(cmd),
        twig=getattr(args, "twig", None),
        base=base,
        remote=getattr(args, "remote", None),
        target=getattr(args, "target", None),
        force=args.force,
        no_push=args.no_push,
        commit_dirty=args.commit_dirty,
        mode=mode,
        yes=getattr(args, "yes", False),
    )


def main(argv: list[str] | None = None) -> None:
    ap = build_parser()
    args = ap.parse_args(normalize_argv(list(sys.argv[1:] if argv is None else argv)))

    try:
        options = options_from_args(args)
    except ValueError as exc:
        ap.error(str(exc))

    from .commands import run
    from .config_loader import ConfigError, load_config
    from .context import Streams
    from .errors import MobConsensusError, UsageError
    from .observability import configure_logging, log_action

    try:
        config = load_config(Path.cwd())
    except ConfigError as exc:
        print(f"mob-consensus: {exc}", file=sys.stderr)
        sys.exit(1)
    configure_logging(config.logging, stream=sys.stderr)

    try:
        run(options, Streams(sys.stdout, sys.stderr, sys.stdin), config=config)
    except UsageError as exc:
        log_action("cli", outcome="usage_error", command=options.command.value, error=exc.message)
        ap.print_usage(sys.stderr)
        print(exc.friendly, file=sys.stderr)
        sys.exit(2)
    except MobConsensusError as exc:
        log_action("cli", outcome="error", command=options.command.value, error=exc.message, kind=type(exc).__name__)
        print(exc.friendly, file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nmob-consensus: interrupted", file=sys.stderr)
        sys.exit(130)
    sys.exit(0)


if __name__ == "__main__":
    main()
