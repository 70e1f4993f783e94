"""
Command-line driver for the Allocation Ledger.

Reads one command per line from a script file or stdin and runs it
against a single ledger:

    alloc SIZE [root]       allocate, prints the new id
    ref ID [TARGET ...]     replace ID's references
    root ID true|false      set or clear ID's root flag
    stats                   {"allocated", "live", "classCounts"}
    gc                      {"objectsFreed", "bytesFreed"}

Blank lines and anything after '#' are ignored. The first failing command
stops the run with exit status 1.
"""

import argparse
import json
import logging
import shlex
import sys
from typing import Callable, Dict, List, Optional, TextIO

from .errors import ConfigurationError, LedgerError
from .ledger_core import Ledger, LedgerConfiguration


class CommandError(Exception):
    """Malformed command line in a script"""


_TRUE_WORDS = {'true', 'yes', 'on', '1'}
_FALSE_WORDS = {'false', 'no', 'off', '0'}


def _parse_int(text: str, what: str) -> int:
    try:
        return int(text)
    except ValueError:
        raise CommandError(f"{what} must be an integer, got {text!r}") from None


def _parse_bool(text: str) -> bool:
    lowered = text.lower()
    if lowered in _TRUE_WORDS:
        return True
    if lowered in _FALSE_WORDS:
        return False
    raise CommandError(f"expected true or false, got {text!r}")


class CommandRunner:
    """Executes script commands against one Ledger"""

    def __init__(self, ledger: Ledger, out: Optional[TextIO] = None):
        self.ledger = ledger
        self.out = out if out is not None else sys.stdout
        self._commands: Dict[str, Callable[[List[str]], None]] = {
            'alloc': self._alloc,
            'ref': self._ref,
            'root': self._root,
            'stats': self._stats,
            'gc': self._gc,
        }

    def run_line(self, line: str):
        try:
            words = shlex.split(line, comments=True)
        except ValueError as e:
            raise CommandError(str(e)) from None
        if not words:
            return

        name, args = words[0].lower(), words[1:]
        handler = self._commands.get(name)
        if handler is None:
            raise CommandError(f"unknown command {name!r}")
        handler(args)

    def run(self, lines) -> int:
        for line_number, line in enumerate(lines, 1):
            try:
                self.run_line(line)
            except (LedgerError, CommandError) as e:
                print(f"error: line {line_number}: {e}", file=sys.stderr)
                return 1
        return 0

    def _alloc(self, args: List[str]):
        if len(args) not in (1, 2):
            raise CommandError("usage: alloc SIZE [root]")
        size = _parse_int(args[0], "size")
        rooted = False
        if len(args) == 2:
            if args[1].lower() != 'root':
                raise CommandError(f"expected 'root', got {args[1]!r}")
            rooted = True
        print(self.ledger.alloc(size, rooted), file=self.out)

    def _ref(self, args: List[str]):
        if not args:
            raise CommandError("usage: ref ID [TARGET ...]")
        object_id = _parse_int(args[0], "id")
        targets = [_parse_int(arg, "target id") for arg in args[1:]]
        self.ledger.ref(object_id, targets)

    def _root(self, args: List[str]):
        if len(args) != 2:
            raise CommandError("usage: root ID true|false")
        self.ledger.root(_parse_int(args[0], "id"), _parse_bool(args[1]))

    def _stats(self, args: List[str]):
        if args:
            raise CommandError("usage: stats")
        print(json.dumps(self.ledger.stats().to_dict()), file=self.out)

    def _gc(self, args: List[str]):
        if args:
            raise CommandError("usage: gc")
        print(json.dumps(self.ledger.gc().to_dict()), file=self.out)


def build_configuration(args: argparse.Namespace) -> LedgerConfiguration:
    values = {}
    if args.config:
        with open(args.config, encoding='utf-8') as f:
            values.update(json.load(f))

    if args.size_classes:
        try:
            values['size_classes'] = [int(part) for part in args.size_classes.split(',')]
        except ValueError:
            raise ConfigurationError(f"bad size class list: {args.size_classes!r}") from None
    if args.header is not None:
        values['header_overhead'] = args.header
    if args.alignment is not None:
        values['alignment'] = args.alignment
    if args.pool_size is not None:
        values['pool_size'] = args.pool_size

    return LedgerConfiguration.from_dict(values)


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='ledger',
        description="Simulate size-classed allocation and mark-and-sweep collection",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    ledger session.txt                       # Run a command script
    echo "alloc 10 root" | ledger            # Read commands from stdin
    ledger --size-classes 16,32,64 s.txt     # Custom size-class table
        """
    )
    parser.add_argument('script', nargs='?',
                        help='command script (default: stdin)')
    parser.add_argument('--config',
                        help='JSON file with configuration values')
    parser.add_argument('--size-classes',
                        help='comma-separated ascending size classes in bytes')
    parser.add_argument('--header', type=int,
                        help='per-object header overhead in bytes')
    parser.add_argument('--alignment', type=int,
                        help='large-object alignment in bytes')
    parser.add_argument('--pool-size', type=int,
                        help='bytes added to a size class when it grows')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='log allocator and collector activity')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
    )

    try:
        ledger = Ledger(build_configuration(args))
    except (LedgerError, OSError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    runner = CommandRunner(ledger)
    if args.script:
        try:
            with open(args.script, encoding='utf-8') as f:
                return runner.run(f)
        except OSError as e:
            print(f"error: {e}", file=sys.stderr)
            return 1
    return runner.run(sys.stdin)


if __name__ == "__main__":
    sys.exit(main())
