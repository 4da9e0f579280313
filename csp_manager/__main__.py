"""
CSP Manager CLI
"""
import argparse
import sys

from csp_manager.config.defaults import DEFAULT_OPTIONS
from csp_manager.config.loader import CSPSettings
from csp_manager.logging_config import setup_logging
from csp_manager.policy.dispatcher import resolve
from csp_manager.policy.model import PolicyContext
from csp_manager.policy.validator import validate
from csp_manager.store.options import OptionsStore, OptionsStoreError

CONTEXTS = [ctx.value for ctx in PolicyContext]


def build_parser():
    parser = argparse.ArgumentParser(
        prog="csp_manager",
        description="CSP Manager - per-context Content-Security-Policy headers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Seed the default policies into the options file
  python -m csp_manager init

  # Print the headers sent to anonymous visitors
  python -m csp_manager render frontend

  # Check every stored policy for syntax problems
  python -m csp_manager validate
        """
    )
    parser.add_argument('--options-file', help='YAML options file (default: CSP_OPTIONS_FILE)')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    subparsers.add_parser('init', help='Store default policies for contexts that have none')

    render_parser = subparsers.add_parser('render', help='Print the headers for a context')
    render_parser.add_argument('context', choices=CONTEXTS, help='Request context')

    validate_parser = subparsers.add_parser('validate', help='Report policy problems')
    validate_parser.add_argument('context', nargs='?', choices=CONTEXTS,
                                 help='Only validate this context')

    return parser


def main(argv=None):
    """Main CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    # Built directly: load_settings() would log before logging is configured.
    settings = CSPSettings()
    setup_logging(log_level=settings.log_level, json_format=settings.log_json)
    store = OptionsStore(args.options_file or settings.options_file)

    try:
        if args.command == 'init':
            return cmd_init(store)
        elif args.command == 'render':
            return cmd_render(store, args.context)
        elif args.command == 'validate':
            return cmd_validate(store, args.context)
    except OptionsStoreError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


def cmd_init(store):
    """Execute init command"""
    added = store.ensure_defaults(DEFAULT_OPTIONS)
    if added:
        print(f"Seeded: {', '.join(added)}")
    else:
        print("All contexts already configured")
    return 0


def cmd_render(store, context):
    """Execute render command"""
    problems = []
    headers = resolve(context, store.load_snapshot(), sink=problems.append)
    for name, value in headers:
        print(f"{name}: {value}")
    for problem in problems:
        print(f"# {problem.severity.value}: {problem.message}", file=sys.stderr)
    return 0


def cmd_validate(store, context=None):
    """Execute validate command"""
    snapshot = store.load_snapshot()
    contexts = [PolicyContext.parse(context)] if context else list(PolicyContext)

    errors = 0
    for ctx in contexts:
        model = snapshot.get(ctx)
        if model is None:
            print(f"[{ctx.value}] no stored policy")
            continue
        results = validate(model)
        if not results:
            print(f"[{ctx.value}] ok ({model.mode.value})")
        for result in results:
            where = f" {result.directive}" if result.directive else ""
            print(f"[{ctx.value}]{where} {result.severity.value}: {result.message}")
            if result.is_error:
                errors += 1

    return 1 if errors else 0


if __name__ == '__main__':
    sys.exit(main())
