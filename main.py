"""
Albus Programming Language - Main Entry Point
Runs a source file through the lexer, parser and evaluator
"""

import sys
import argparse
from pathlib import Path
from typing import List, Optional
import os

# Readline support for history in interactive mode
try:
  import readline
  READLINE_AVAILABLE = True
except ImportError:
  READLINE_AVAILABLE = False

from error_handling import AlbusError, DiagnosticReporter, ErrorKind, get_source_line
from interpreter import Evaluator, create_debug_interpreter, create_interpreter
from lexing import Lexer, dump_tokens
from parsing import Parser, create_debug_parser, create_parser, pretty_print_ast


VERSION = "Albus v0.1.0"


def create_arg_parser() -> argparse.ArgumentParser:
  """Create command line argument parser"""
  parser = argparse.ArgumentParser(
      prog='albus',
      description='Albus Programming Language - lexer, parser and tree-walking evaluator',
      formatter_class=argparse.RawDescriptionHelpFormatter,
      epilog="""
Examples:
  %(prog)s script.alb             # Run an Albus script
  %(prog)s script.alb -d          # Run with token dump and stage traces
  %(prog)s --tokens script.alb    # Tokenize and show the token stream
  %(prog)s --parse script.alb     # Parse and show the AST
  %(prog)s -i                     # Interactive mode
        """
  )

  parser.add_argument(
      'script',
      nargs='?',
      help='Albus source file to execute'
  )

  parser.add_argument(
      '-d', '--debug',
      action='store_true',
      help='Dump tokens and trace every stage'
  )

  parser.add_argument(
      '--tokens',
      action='store_true',
      help='Tokenize file and show tokens (for debugging)'
  )

  parser.add_argument(
      '--parse',
      action='store_true',
      help='Parse file and show AST (for debugging)'
  )

  parser.add_argument(
      '-i', '--interactive',
      action='store_true',
      help='Start interactive mode'
  )

  parser.add_argument(
      '--version',
      action='version',
      version=VERSION
  )

  return parser


def read_source(script_path: str) -> str:
  """Read a source file as UTF-8 text"""
  try:
    with open(script_path, 'r', encoding='utf-8') as f:
      return f.read()
  except FileNotFoundError:
    raise AlbusError("source file path does not exist", script_path)
  except PermissionError:
    raise AlbusError("permission denied reading source file", script_path)
  except UnicodeDecodeError as e:
    raise AlbusError(f"cannot decode source file as UTF-8 ({e.reason})", script_path)


def show_parse_context(source: str, reporter: DiagnosticReporter) -> None:
  """Echo the offending source line of the first parse error"""
  errors = reporter.of_kind(ErrorKind.PARSE)
  if not errors:
    return
  line = get_source_line(source, errors[0].line)
  if line.strip():
    reporter.output(f"  {errors[0].line:4d}: {line}")


def run_source(source: str, debug: bool = False,
               reporter: Optional[DiagnosticReporter] = None) -> bool:
  """Run source text through every stage; returns False on a lex or parse error"""
  reporter = reporter or DiagnosticReporter()

  lexer = Lexer(source, debug=debug, reporter=reporter)
  tokens = lexer.tokenize()
  if lexer.has_error:
    return False

  parser = create_debug_parser(tokens, reporter) if debug else create_parser(tokens, reporter=reporter)
  program, has_error = parser.parse_ast()
  if has_error:
    if debug:
      show_parse_context(source, reporter)
    return False

  for stmt in program:
    reporter.output(f"Expr: {stmt}")

  evaluator = create_debug_interpreter(reporter) if debug else create_interpreter(reporter=reporter)
  evaluator.analyze(program)

  reporter.output("execution finished.")
  return True


def tokenize_file(script_path: str) -> int:
  """Tokenize a script file and show the token stream"""
  reporter = DiagnosticReporter()
  lexer = Lexer(read_source(script_path), reporter=reporter)
  tokens = lexer.tokenize()

  print(f"{len(tokens)} tokens:")
  print(dump_tokens(tokens))
  return 1 if lexer.has_error else 0


def parse_file(script_path: str, debug: bool = False) -> int:
  """Parse a script file and show the AST"""
  source = read_source(script_path)
  reporter = DiagnosticReporter()

  lexer = Lexer(source, debug=debug, reporter=reporter)
  tokens = lexer.tokenize()
  if lexer.has_error:
    return 1

  program, has_error = Parser(tokens, debug=debug, reporter=reporter).parse_ast()

  print(f"Parsed {len(program)} top-level statements:")
  print("=" * 50)
  for i, stmt in enumerate(program, 1):
    print(f"\nStatement {i}:")
    print(pretty_print_ast(stmt), end='')

  if has_error:
    show_parse_context(source, reporter)
    return 1
  return 0


def run_script_file(script_path: str, debug: bool = False) -> int:
  """Run an Albus script file"""
  source = read_source(script_path)
  return 0 if run_source(source, debug=debug) else 1


def setup_readline() -> None:
  """Setup readline history for the interactive prompt"""
  if not READLINE_AVAILABLE:
    return

  import atexit

  history_file = os.path.expanduser("~/.albus_history")
  try:
    readline.read_history_file(history_file)
  except OSError:
    pass  # First run, no history yet

  readline.set_history_length(1000)
  atexit.register(readline.write_history_file, history_file)


def format_bindings(evaluator: Evaluator) -> List[str]:
  bindings = evaluator.global_bindings()
  if not bindings:
    return ["  (no bindings)"]
  return [f"  {name}: {value.type_name} = {value}" for name, value in bindings.items()]


def evaluate_line(code: str, evaluator: Evaluator, reporter: DiagnosticReporter) -> None:
  """Lex, parse and evaluate one line of interactive input"""
  lexer = Lexer(code, debug=evaluator.debug, reporter=reporter)
  tokens = lexer.tokenize()
  if lexer.has_error:
    return

  program, has_error = Parser(tokens, debug=evaluator.debug, reporter=reporter).parse_ast()
  if has_error:
    return

  for stmt in program:
    value = evaluator.evaluate_statement(stmt)
    print(f"=> {value} : {value.type_name}")


def run_interactive_mode(debug: bool = False) -> None:
  """Run Albus in interactive mode with one evaluator for the whole session"""
  print(f"{VERSION} - Interactive Mode")
  print("Type 'exit' to quit, ':help' for commands")
  if debug:
    print("Debug mode enabled")
  print()

  setup_readline()

  reporter = DiagnosticReporter()
  evaluator = create_debug_interpreter(reporter) if debug else create_interpreter(reporter=reporter)

  while True:
    try:
      code = input("albus> ")
    except (KeyboardInterrupt, EOFError):
      print("\nGoodbye!")
      break

    command = code.strip()
    if not command:
      continue

    if command == "exit":
      break

    if command == ":help":
      print("REPL Commands:")
      print("  :tokens <code>    - Show the token stream")
      print("  :parse <code>     - Show the parsed AST")
      print("  :env              - Show global bindings")
      print("  :help             - Show this help")
      print("  exit              - Exit REPL")
      continue

    if command == ":env":
      print("Global bindings:")
      for line in format_bindings(evaluator):
        print(line)
      continue

    if command.startswith(":tokens "):
      lexer = Lexer(command[len(":tokens "):], reporter=reporter)
      print(dump_tokens(lexer.tokenize()))
      continue

    if command.startswith(":parse "):
      lexer = Lexer(command[len(":parse "):], reporter=reporter)
      tokens = lexer.tokenize()
      if not lexer.has_error:
        program, _ = Parser(tokens, reporter=reporter).parse_ast()
        for stmt in program:
          print(pretty_print_ast(stmt), end='')
      continue

    evaluate_line(code, evaluator, reporter)
    reporter.clear()


def main(argv: Optional[List[str]] = None) -> int:
  """Main entry point for Albus"""
  arg_parser = create_arg_parser()
  args = arg_parser.parse_args(argv)

  if args.interactive:
    run_interactive_mode(debug=args.debug)
    return 0

  if not args.script:
    print("expected source file path")
    arg_parser.print_usage()
    return 1

  if not Path(args.script).is_file():
    print("source file path does not exist")
    return 1

  try:
    if args.tokens:
      return tokenize_file(args.script)
    if args.parse:
      return parse_file(args.script, debug=args.debug)
    return run_script_file(args.script, debug=args.debug)
  except AlbusError as e:
    print(f"Error: {e}")
    return 1


if __name__ == "__main__":
  sys.exit(main())
