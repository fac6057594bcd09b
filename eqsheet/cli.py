#!/usr/bin/env python3
"""
EQSHEET Command-Line Interface

Provides an interactive worksheet REPL, script execution and the rule
catalog listing.

Usage:
    eqsheet                         # Start REPL with the algebra rules
    eqsheet session.eqs             # Run a worksheet script
    eqsheet --list                  # Print the rule catalog
    eqsheet -r my_rules.json        # Use another rule set

Script Format (.eqs files):
    # Solve 2x - 1 = 3
    :params x
    introduce 2 * x - 1 = 3
    actions . 0.1
    do 0 . 0.1
    label Eq.1
    show

Addresses are written "0.1" for a path, "0.1:2" for the pair starting at
child 2 of a train, and "." for the root.

Commands:
    :help              Show help
    :params NAMES...   Declare parameters (constants) for parsing
    :load FILE         Load a rule set (.json)
    :rules             List loaded rules
    :quit              Exit
    introduce EXPR     Start a new sequence (infix)
    from LABEL         Start a new sequence from a labelled line
    actions ADDR...    List the possible actions for a selection
    do N ADDR...       Apply action N for a selection
    apply RULE ADDR    Apply a rule at an address
    label NAME [LINE]  Label a line (default: the last one)
    reset LINE         Drop the lines after LINE
    show               Print the current sequence
    switch N           Make sequence N current
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .algebra import AlgebraActions, AlgebraNormalizer
from .errors import ParseError, RuleSetError
from .expression import Address
from .parser import parse_infix
from .rule import RuleSet, load_builtin_ruleset, load_ruleset_from_file
from .worksheet import Worksheet, WorkableExpressionSequence, WorksheetContext

# Try to import readline for better REPL experience
try:
    import readline
    HAS_READLINE = True
except ImportError:
    HAS_READLINE = False

DEFAULT_RULESET = "algebra"

# Normalizers a rule set may request through its "normalization" key
NORMALIZERS = {
    "algebra": AlgebraNormalizer,
}

COMMANDS = [
    ":help", ":quit", ":exit", ":q", ":params", ":load", ":rules",
    "introduce", "from", "actions", "do", "apply", "label", "reset", "show", "switch",
]


def make_worksheet(ruleset: RuleSet, parameters: List[str] = ()) -> Worksheet:
    """A worksheet using ``ruleset`` with the algebra action suggestions."""
    normalizer = NORMALIZERS.get(ruleset.normalization)
    wctx = WorksheetContext.from_ruleset(
        ruleset,
        normalizer() if normalizer else None,
        AlgebraActions(),
        parameters,
    )
    return Worksheet(wctx)


def parse_selection(args: List[str]) -> List[Address]:
    if not args:
        raise ValueError("expected at least one address")
    return [Address.parse(arg) for arg in args]


class CommandError(Exception):
    """A command could not be carried out."""


class WorksheetREPL:
    """Interactive worksheet session."""

    def __init__(self, ruleset: Optional[RuleSet] = None):
        self.ruleset = ruleset or load_builtin_ruleset(DEFAULT_RULESET)
        self.parameters: List[str] = []
        self.worksheet = make_worksheet(self.ruleset)
        self.current: Optional[int] = None
        self.sequence: Optional[WorkableExpressionSequence] = None
        self.running = True

        # Set up readline history and completion
        if HAS_READLINE:
            self.history_file = Path.home() / ".eqsheet_history"
            try:
                readline.read_history_file(self.history_file)
            except FileNotFoundError:
                pass
            readline.set_history_length(1000)
            readline.set_completer(self.complete)
            readline.parse_and_bind("tab: complete")
            readline.set_completer_delims(" \t\n")

    def complete(self, text: str, state: int) -> Optional[str]:
        """Complete command names, then rule ids after ``apply``."""
        line = readline.get_line_buffer().lstrip() if HAS_READLINE else ""
        if line.startswith("apply "):
            candidates = [r for r in self.ruleset.rule_ids if r.startswith(text)]
        else:
            candidates = [c for c in COMMANDS if c.startswith(text)]
        try:
            return candidates[state]
        except IndexError:
            return None

    def save_history(self):
        """Save readline history."""
        if HAS_READLINE:
            try:
                readline.write_history_file(self.history_file)
            except OSError:
                pass

    # ---- session state ---------------------------------------------

    def _require_sequence(self) -> WorkableExpressionSequence:
        if self.sequence is None:
            raise CommandError("No current sequence. Use 'introduce' first.")
        return self.sequence

    def _commit(self) -> None:
        if self.sequence is not None:
            self.worksheet.store(self.current, self.sequence)

    def _open(self, index: int) -> str:
        self._commit()
        self.current = index
        self.sequence = self.worksheet.get_workable_expression_sequence(index)
        return f"[{index}] {self.sequence.last_expression}"

    def _last_line(self) -> str:
        seq = self._require_sequence()
        line = seq[-1]
        return f"{len(seq) - 1}. {line.action}: {line.expr}"

    # ---- commands --------------------------------------------------

    def handle_command(self, line: str) -> Optional[str]:
        """
        Handle a REPL command (starts with :).

        Returns a message to print, or None.
        """
        parts = line[1:].split(None, 1)
        if not parts:
            return "Unknown command. Type :help for help."

        cmd = parts[0].lower()
        arg = parts[1] if len(parts) > 1 else ""

        if cmd == "help":
            return self.help_text()

        elif cmd == "quit" or cmd == "exit" or cmd == "q":
            self.running = False
            return None

        elif cmd == "params":
            if not arg:
                return "Parameters: " + (", ".join(self.parameters) or "(none)")
            for name in arg.replace(",", " ").split():
                if name not in self.parameters:
                    self.parameters.append(name)
            self.worksheet.context.context.add_params(self.parameters)
            return "Parameters: " + ", ".join(self.parameters)

        elif cmd == "load":
            if not arg:
                return "Usage: :load FILENAME"
            try:
                ruleset = load_ruleset_from_file(arg)
            except (OSError, RuleSetError) as e:
                return f"Error loading {arg}: {e}"
            self.use_ruleset(ruleset)
            return f"Loaded {len(ruleset)} rules from {arg}"

        elif cmd == "rules":
            rules = self.ruleset.list_rules()
            if not rules:
                return "No rules loaded"
            return "\n".join(rules)

        else:
            return f"Unknown command: {cmd}. Type :help for help."

    def use_ruleset(self, ruleset: RuleSet) -> None:
        """
        Switch rule sets.

        The worksheet context is rebuilt from the rule set's Context plus
        the declared parameters. Sequences and labels are kept.
        """
        self.ruleset = ruleset
        wctx = make_worksheet(ruleset, self.parameters).context
        for label, expr in self.worksheet.context.labels:
            wctx.register_label(label, expr)
        self.worksheet.context = wctx
        if self.sequence is not None:
            self.sequence.ctx = wctx

    def run_worksheet_command(self, line: str) -> Optional[str]:
        """
        Run a worksheet command.

        Raises:
            CommandError: on unusable arguments or a step that cannot apply
        """
        cmd, _, rest = line.partition(" ")
        rest = rest.strip()
        args = rest.split()

        try:
            if cmd == "introduce":
                if not rest:
                    raise CommandError("Usage: introduce EXPR")
                expr = parse_infix(rest, self.worksheet.context.context)
                return self._open(self.worksheet.introduce_expression(expr))

            if cmd == "from":
                if not rest:
                    raise CommandError("Usage: from LABEL")
                try:
                    index = self.worksheet.introduce_from_label(rest)
                except KeyError:
                    raise CommandError(f"Unknown label: {rest}") from None
                return self._open(index)

            if cmd == "switch":
                index = int(rest)
                if not 0 <= index < len(self.worksheet):
                    raise CommandError(f"No sequence {index}")
                return self._open(index)

            if cmd == "show":
                return self._require_sequence().format()

            if cmd == "actions":
                seq = self._require_sequence()
                actions = seq.get_possible_actions(parse_selection(args))
                if not actions:
                    return "No actions"
                return "\n".join(f"{i}: {action} -> {expr}"
                                 for i, (action, expr) in enumerate(actions))

            if cmd == "do":
                if len(args) < 2:
                    raise CommandError("Usage: do N ADDR...")
                seq = self._require_sequence()
                if not seq.try_apply_action_by_index(parse_selection(args[1:]), int(args[0])):
                    raise CommandError(f"No action {args[0]} for that selection")
                self._commit()
                return self._last_line()

            if cmd == "apply":
                if len(args) != 2:
                    raise CommandError("Usage: apply RULE_ID ADDR")
                seq = self._require_sequence()
                if not seq.apply_rule_at(args[0], Address.parse(args[1])):
                    raise CommandError(f"Rule {args[0]} does not apply at {args[1]}")
                self._commit()
                return self._last_line()

            if cmd == "label":
                if not args:
                    raise CommandError("Usage: label NAME [LINE]")
                seq = self._require_sequence()
                if len(args) > 1 and args[-1].isdigit():
                    name, index = " ".join(args[:-1]), int(args[-1])
                else:
                    name, index = rest, len(seq) - 1
                if not 0 <= index < len(seq):
                    raise CommandError(f"No line {index}")
                seq.label_expression(name, index)
                self._commit()
                return f"Labelled line {index} as {name}"

            if cmd == "reset":
                seq = self._require_sequence()
                try:
                    seq.reset_to(int(rest))
                except IndexError as e:
                    raise CommandError(str(e)) from None
                self._commit()
                return self._last_line()

        except ParseError as e:
            raise CommandError(f"Parse error: {e}") from None
        except ValueError as e:
            raise CommandError(f"Invalid argument: {e}") from None

        raise CommandError(f"Unknown command: {cmd}. Type :help for help.")

    def help_text(self) -> str:
        """Return help text."""
        return """EQSHEET Commands:
  :help              Show this help
  :params NAMES...   Declare parameters (constants) for parsing
  :load FILE         Load a rule set (.json)
  :rules             List all loaded rules
  :quit              Exit

  introduce EXPR     Start a new sequence, e.g. introduce 2 * x - 1 = 3
  from LABEL         Start a new sequence from a labelled line
  actions ADDR...    List possible actions for a selection
  do N ADDR...       Apply action N for a selection
  apply RULE ADDR    Apply a rule at an address
  label NAME [LINE]  Label a line (default: the last one)
  reset LINE         Drop every line after LINE
  show               Print the current sequence
  switch N           Make sequence N current

Addresses:
  .                  the root
  0.1                second child of the first child
  0:1                pair (1, 2) of the train at child 0
"""

    def process_line(self, line: str) -> Optional[str]:
        """
        Process a single line of input.

        Returns the result to print, or None.
        """
        line = line.strip()

        # Empty line or comment
        if not line or line.startswith("#"):
            return None

        if line.startswith(":"):
            return self.handle_command(line)

        try:
            return self.run_worksheet_command(line)
        except CommandError as e:
            return f"Error: {e}"

    def run(self):
        """Run the REPL loop."""
        print("EQSHEET - step-by-step equation worksheets")
        print("Type :help for help, :quit to exit")
        print()

        while self.running:
            try:
                line = input("eqsheet> ")
                result = self.process_line(line)
                if result:
                    print(result)
            except EOFError:
                print()
                break
            except KeyboardInterrupt:
                print()
                continue

        self.save_history()


class ScriptRunner:
    """Runs eqsheet scripts."""

    def __init__(self, ruleset: Optional[RuleSet] = None):
        self.repl = WorksheetREPL(ruleset)

    def run_script(self, path: Path, quiet: bool = False) -> int:
        """
        Run a script file.

        Args:
            path: Path to the script
            quiet: If True, only print the output of ``show``

        Returns:
            Exit code (0 for success)
        """
        try:
            lines = path.read_text().splitlines()
        except OSError as e:
            print(f"Error reading {path}: {e}", file=sys.stderr)
            return 1

        for lineno, line in enumerate(lines, 1):
            line = line.strip()

            # Skip empty lines, comments, and shebang
            if not line or line.startswith("#"):
                continue

            if line.startswith(":"):
                result = self.repl.handle_command(line)
                if result and ("Error" in result or "Unknown" in result):
                    print(f"{path}:{lineno}: {result}", file=sys.stderr)
                    return 1
                continue

            try:
                result = self.repl.run_worksheet_command(line)
            except CommandError as e:
                print(f"{path}:{lineno}: Error: {e}", file=sys.stderr)
                return 1
            if result and (not quiet or line == "show"):
                print(result)

        return 0


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="eqsheet",
        description="EQSHEET - step-by-step equation worksheets",
        epilog="Examples:\n"
               "  eqsheet                        Start REPL\n"
               "  eqsheet session.eqs            Run a worksheet script\n"
               "  eqsheet --list                 Print the rule catalog\n"
               "  eqsheet -r rules.json --list   Catalog of another rule set\n",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        "script",
        nargs="?",
        help="Script file to run (.eqs)"
    )

    parser.add_argument(
        "-r", "--rules",
        help="Rule set file (.json); defaults to the built-in algebra rules"
    )

    parser.add_argument(
        "--list",
        action="store_true",
        help="Print the rule catalog and exit"
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Quiet mode (only print 'show' output in scripts)"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log rule loading and automatic rewrites"
    )

    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s 0.1.0"
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.rules:
            ruleset = load_ruleset_from_file(args.rules)
        else:
            ruleset = load_builtin_ruleset(DEFAULT_RULESET)
    except (OSError, RuleSetError) as e:
        print(f"Error loading {args.rules or DEFAULT_RULESET}: {e}", file=sys.stderr)
        sys.exit(1)

    if args.list:
        for line in ruleset.list_rules():
            print(line)
        sys.exit(0)

    if args.script:
        runner = ScriptRunner(ruleset)
        sys.exit(runner.run_script(Path(args.script), quiet=args.quiet))

    WorksheetREPL(ruleset).run()


if __name__ == "__main__":
    main()
