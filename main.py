#!/usr/bin/env python3
"""
Masks Manager - Main Entry Point

Loads a forms library and prints the masks tree as the panel would show
it, optionally with the preview of a selection and the usage of a form.

Usage:
    python main.py forms.json
    python main.py forms.json --select 0.0 0.1   # Preview of two rows
    python main.py forms.json --usage 3          # Who uses form 3
    python main.py forms.json --debug            # Enable debug logging
"""

import sys
import logging
import argparse
from typing import List, Optional, Tuple

from models import DisplayNode, MaskForm, OperatorKind
from services import MaskManager, SettingsManager, get_settings


OPERATOR_BADGES = {
    None: " ",
    OperatorKind.UNION: "+",
    OperatorKind.INTERSECTION: "&",
    OperatorKind.DIFFERENCE: "-",
    OperatorKind.EXCLUSION: "^",
}


def setup_logging(debug: bool = False):
    """Configure logging for the application."""
    level = logging.DEBUG if debug else logging.INFO

    # Create formatter
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.addHandler(console_handler)

    logger = logging.getLogger(__name__)
    logger.debug(f"Logging initialized at {'DEBUG' if debug else 'INFO'} level")


def parse_path(text: str) -> Tuple[int, ...]:
    """Parse a dot-separated tree path such as "0.1"."""
    try:
        return tuple(int(part) for part in text.split("."))
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid tree path: {text!r}")


def format_node(node: DisplayNode) -> str:
    """One line of the printed tree."""
    indent = "  " * (node.depth - 1)
    badge = OPERATOR_BADGES[node.operator]
    inverse = "!" if node.inverse else " "
    used = " *" if node.used else ""
    owner = f"  [{node.owning_module.name}]" if node.owning_module and node.is_top_level else ""
    return f"{'.'.join(str(i) for i in node.path):<8} {badge}{inverse} {indent}{node.label}{used}{owner}"


def print_tree(nodes: List[DisplayNode]):
    for node in nodes:
        print(format_node(node))


def print_preview(manager: MaskManager, preview: Optional[MaskForm]):
    print("\nPreview:")
    if preview is None:
        print("  (nothing selected)")
        return
    for member in preview.members:
        form = manager.registry.get(member.form_id)
        name = form.name if form is not None else str(member.form_id)
        op = member.operator.value if member.operator else "seed"
        inverse = " inverse" if member.inverse else ""
        print(f"  {name}: {op}{inverse} opacity={member.opacity:.2f}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    # Parse command line arguments
    parser = argparse.ArgumentParser(description='Masks manager')
    parser.add_argument('forms', help='Forms library (JSON)')
    parser.add_argument('--select', nargs='+', type=parse_path, default=[],
                        metavar='PATH', help='Tree paths to select, e.g. 0.1')
    parser.add_argument('--usage', type=int, metavar='ID',
                        help='Print the groups using a form')
    parser.add_argument('--config', help='Settings file to use instead of the default')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')
    args = parser.parse_args(argv)

    # Setup logging
    setup_logging(debug=args.debug)

    settings = SettingsManager(args.config) if args.config else get_settings()
    manager = MaskManager(settings=settings)
    if not manager.open_session(args.forms):
        print(f"Could not load forms from {args.forms}", file=sys.stderr)
        return 1

    print_tree(manager.nodes)

    if args.select:
        selected = manager.select(args.select)
        print(f"\nSelected: {', '.join(n.label for n in selected)}")
        print_preview(manager, manager.preview_form)

    if args.usage is not None:
        report = manager.find_users(args.usage)
        print(f"\nForm {args.usage} used by {report.count} group(s)")
        if report.text:
            print(report.text)

    return 0


if __name__ == "__main__":
    sys.exit(main())
