"""
Albus Interpreter
Tree-walking evaluator and name resolver over a stack of lexical scopes
Failures are reported as diagnostics and evaluate to a false sentinel
"""

from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterator, List, Optional, Set
import operator

from error_handling import (
  DiagnosticReporter,
  ErrorKind,
  make_runtime_error,
  type_mismatch_message,
)
from syntax_tree import (
  Assignment, Bad, Binary, Break, Eof, Expression, FunctionDeclaration,
  Identifier, If, Literal, Next, Parameter, Program, Return, Ternary,
  Unary, VariableDeclaration, While,
)
from values import (
  FALSE_SENTINEL,
  VOID,
  Value,
  ValueKind,
  kind_for_type_name,
  make_boolean,
  make_integer,
  make_text,
)


# ============================================================================
# SCOPES
# ============================================================================

class ScopeStack:
  """Arena of scope frames addressed by index; frame 0 is the global scope"""

  def __init__(self):
    self.frames: List[Dict[str, Value]] = [{}]

  @property
  def innermost(self) -> int:
    return len(self.frames) - 1

  @property
  def depth(self) -> int:
    return len(self.frames)

  def push(self) -> int:
    self.frames.append({})
    return self.innermost

  def pop(self) -> Dict[str, Value]:
    if len(self.frames) == 1:
      raise RuntimeError("cannot pop the global scope")
    return self.frames.pop()

  @contextmanager
  def scope(self) -> Iterator[int]:
    """Push a frame for the duration of a block, popping it on every exit path"""
    index = self.push()
    try:
      yield index
    finally:
      self.pop()

  def resolve(self, name: str) -> Optional[int]:
    """Index of the innermost frame binding the name"""
    for index in range(self.innermost, -1, -1):
      if name in self.frames[index]:
        return index
    return None

  def lookup(self, name: str) -> Optional[Value]:
    index = self.resolve(name)
    if index is None:
      return None
    return self.frames[index][name]

  def is_declared_locally(self, name: str) -> bool:
    return name in self.frames[self.innermost]

  def declare(self, name: str, value: Value) -> None:
    self.frames[self.innermost][name] = value

  def assign(self, index: int, name: str, value: Value) -> None:
    self.frames[index][name] = value

  def global_bindings(self) -> Dict[str, Value]:
    return dict(self.frames[0])


# ============================================================================
# EXECUTION CONTEXT
# ============================================================================

class LoopSignal(Enum):
  NONE = "none"
  BREAK = "break"
  NEXT = "next"


@dataclass
class ExecutionContext:
  """State threaded through the evaluation of one top-level statement"""
  scopes: ScopeStack
  loop_depth: int = 0
  signal: LoopSignal = LoopSignal.NONE


def make_execution_context(scopes: ScopeStack) -> ExecutionContext:
  return ExecutionContext(scopes=scopes)


# ============================================================================
# OPERATORS
# ============================================================================

def truncating_divide(left: int, right: int) -> int:
  """Integer division rounding toward zero"""
  quotient = abs(left) // abs(right)
  return quotient if (left >= 0) == (right >= 0) else -quotient


def truncating_modulo(left: int, right: int) -> int:
  """Remainder with the sign of the dividend"""
  return left - right * truncating_divide(left, right)


ARITHMETIC_OPERATORS: Dict[str, Callable[[int, int], int]] = {
  '+': operator.add,
  '-': operator.sub,
  '*': operator.mul,
  '/': truncating_divide,
  '%': truncating_modulo,
}

COMPARISON_OPERATORS: Dict[str, Callable[[int, int], bool]] = {
  '>': operator.gt,
  '<': operator.lt,
  '>=': operator.ge,
  '<=': operator.le,
}

EQUALITY_OPERATORS: Dict[str, Callable[[object, object], bool]] = {
  '==': operator.eq,
  '!=': operator.ne,
}

LOGICAL_OPERATORS: Dict[str, Callable[[bool, bool], bool]] = {
  'and': lambda a, b: a and b,
  'or': lambda a, b: a or b,
}


def operands_compatible(left: Value, right: Value, op: str) -> bool:
  """Type-compatibility precondition for every binary operator"""
  if left.is_a(ValueKind.INTEGER) and right.is_a(ValueKind.INTEGER):
    return op not in LOGICAL_OPERATORS
  if left.is_a(ValueKind.TEXT) and right.is_a(ValueKind.TEXT):
    return op == '+'
  if left.is_a(ValueKind.BOOLEAN) and right.is_a(ValueKind.BOOLEAN):
    return op in LOGICAL_OPERATORS
  return False


def apply_binary(left: Value, right: Value, op: str) -> Value:
  """Apply an operator to operands that passed operands_compatible"""
  if op in LOGICAL_OPERATORS:
    return make_boolean(LOGICAL_OPERATORS[op](left.data, right.data))
  if op in EQUALITY_OPERATORS:
    return make_boolean(EQUALITY_OPERATORS[op](left.data, right.data))
  if op in COMPARISON_OPERATORS:
    return make_boolean(COMPARISON_OPERATORS[op](left.data, right.data))
  if left.is_a(ValueKind.TEXT):
    return make_text(left.data + right.data)
  return make_integer(ARITHMETIC_OPERATORS[op](left.data, right.data))


# ============================================================================
# EVALUATOR
# ============================================================================

class Evaluator:
  """Evaluates top-level statements one at a time against one global scope"""

  def __init__(self, debug: bool = False, reporter: Optional[DiagnosticReporter] = None):
    self.debug = debug
    self.reporter = reporter or DiagnosticReporter()
    self.scopes = ScopeStack()
    self.functions: Dict[str, FunctionDeclaration] = {}

    self._evaluators: Dict[type, Callable[[Expression, ExecutionContext], Value]] = {
      Literal: self._eval_literal,
      Identifier: self._eval_identifier,
      VariableDeclaration: self._eval_variable_declaration,
      Assignment: self._eval_assignment,
      Binary: self._eval_binary,
      Unary: self._eval_unary,
      Ternary: self._eval_ternary,
      If: self._eval_if,
      While: self._eval_while,
      Break: self._eval_break,
      Next: self._eval_next,
      FunctionDeclaration: self._eval_function_declaration,
      Parameter: self._eval_nothing,
      Return: self._eval_return,
      Bad: self._eval_nothing,
      Eof: self._eval_nothing,
    }

  def analyze(self, program: Program) -> List[Value]:
    """Evaluate every statement in order, printing one result line each"""
    results = []
    for stmt in program:
      value = self.evaluate_statement(stmt)
      self.reporter.output(str(value))
      results.append(value)
    return results

  def evaluate_statement(self, stmt: Expression) -> Value:
    """Evaluate one top-level statement in a fresh execution context"""
    if self.debug:
      self.reporter.output(f"evaluating {stmt.node_type} on line {stmt.line}")
    return self.evaluate(stmt, make_execution_context(self.scopes))

  def evaluate(self, node: Expression, context: ExecutionContext) -> Value:
    evaluator = self._evaluators.get(type(node))
    if evaluator is None:
      raise TypeError(f"cannot evaluate node of type {node.node_type}")
    return evaluator(node, context)

  def _fail(self, kind: ErrorKind, message: str, node: Expression) -> Value:
    self.reporter.report(make_runtime_error(kind, message, node.line))
    return FALSE_SENTINEL

  # --------------------------------------------------------------------------
  # Leaves and bindings
  # --------------------------------------------------------------------------

  def _eval_nothing(self, node: Expression, context: ExecutionContext) -> Value:
    return VOID

  def _eval_literal(self, node: Literal, context: ExecutionContext) -> Value:
    return node.value

  def _eval_identifier(self, node: Identifier, context: ExecutionContext) -> Value:
    value = context.scopes.lookup(node.name)
    if value is None:
      return self._fail(ErrorKind.UNDEFINED_VARIABLE, f"variable '{node.name}' is not defined", node)
    return value

  def _eval_variable_declaration(self, node: VariableDeclaration, context: ExecutionContext) -> Value:
    if context.scopes.is_declared_locally(node.name):
      return self._fail(
        ErrorKind.REDECLARATION, f"variable '{node.name}' already defined in this scope", node
      )

    value = self.evaluate(node.initializer, context)

    if node.type_annotation is not None:
      expected = kind_for_type_name(node.type_annotation)
      if expected is None:
        return self._fail(ErrorKind.TYPE_MISMATCH, f"unknown type '{node.type_annotation}'", node)
      if not value.is_a(expected):
        return self._fail(
          ErrorKind.TYPE_MISMATCH,
          f"cannot assign value of type '{value.type_name}' to variable '{node.name}' "
          f"of type '{node.type_annotation}'",
          node,
        )

    context.scopes.declare(node.name, value)
    return value

  def _eval_assignment(self, node: Assignment, context: ExecutionContext) -> Value:
    index = context.scopes.resolve(node.name)
    if index is None:
      return self._fail(ErrorKind.UNDEFINED_VARIABLE, f"variable '{node.name}' is not defined", node)

    value = self.evaluate(node.value, context)
    context.scopes.assign(index, node.name, value)
    return value

  # --------------------------------------------------------------------------
  # Operators
  # --------------------------------------------------------------------------

  def _eval_binary(self, node: Binary, context: ExecutionContext) -> Value:
    # fold the left spine iteratively
    chain = []
    while isinstance(node, Binary):
      chain.append(node)
      node = node.left

    result = self.evaluate(node, context)
    for link in reversed(chain):
      right = self.evaluate(link.right, context)
      result = self._combine(link, result, right)
    return result

  def _combine(self, node: Binary, left: Value, right: Value) -> Value:
    if not operands_compatible(left, right, node.operator):
      return self._fail(
        ErrorKind.TYPE_MISMATCH,
        type_mismatch_message(node.operator, left.type_name, right.type_name),
        node,
      )

    if node.operator in ('/', '%') and right.data == 0:
      return self._fail(ErrorKind.DIVISION_BY_ZERO, "division by zero", node)

    return apply_binary(left, right, node.operator)

  def _eval_unary(self, node: Unary, context: ExecutionContext) -> Value:
    prefixes = []
    while isinstance(node, Unary):
      prefixes.append(node)
      node = node.operand

    operand = self.evaluate(node, context)
    for prefix in reversed(prefixes):
      operand = self._negate(prefix, operand)
    return operand

  def _negate(self, node: Unary, operand: Value) -> Value:
    if node.operator == 'not' and operand.is_a(ValueKind.BOOLEAN):
      return make_boolean(not operand.data)
    if node.operator == '-' and operand.is_a(ValueKind.INTEGER):
      return make_integer(-operand.data)

    return self._fail(
      ErrorKind.TYPE_MISMATCH,
      f"cannot apply operator '{node.operator}' to value of type '{operand.type_name}'",
      node,
    )

  def _eval_ternary(self, node: Ternary, context: ExecutionContext) -> Value:
    condition = self.evaluate(node.condition, context)
    if not condition.is_a(ValueKind.BOOLEAN):
      return self._fail(
        ErrorKind.TYPE_MISMATCH,
        f"expected boolean condition in conditional expression, got '{condition.type_name}'",
        node,
      )

    branch = node.true_branch if condition.data else node.false_branch
    return self.evaluate(branch, context)

  # --------------------------------------------------------------------------
  # Blocks and control flow
  # --------------------------------------------------------------------------

  def _eval_block(self, body, context: ExecutionContext) -> Value:
    """Run statements in a new scope; the last result is the block result"""
    result = VOID
    with context.scopes.scope():
      for stmt in body:
        result = self.evaluate(stmt, context)
        if context.signal is not LoopSignal.NONE:
          break
    return result

  def _eval_if(self, node: If, context: ExecutionContext) -> Value:
    for branch in node.branches():
      if branch.condition is not None:
        condition = self.evaluate(branch.condition, context)
        if not condition.is_a(ValueKind.BOOLEAN):
          self._fail(
            ErrorKind.TYPE_MISMATCH,
            f"expected boolean expression in if statement, got '{condition.type_name}'",
            branch,
          )
          continue
        if not condition.data:
          continue
      return self._eval_block(branch.body, context)

    return VOID

  def _eval_while(self, node: While, context: ExecutionContext) -> Value:
    context.loop_depth += 1
    try:
      while True:
        condition = self.evaluate(node.condition, context)
        if not condition.is_a(ValueKind.BOOLEAN):
          self._fail(
            ErrorKind.TYPE_MISMATCH,
            f"expected boolean expression in while loop, got '{condition.type_name}'",
            node,
          )
          break
        if not condition.data:
          break

        self._eval_block(node.body, context)

        signal = context.signal
        context.signal = LoopSignal.NONE
        if signal is LoopSignal.BREAK:
          break
    finally:
      context.loop_depth -= 1

    return VOID

  def _eval_break(self, node: Break, context: ExecutionContext) -> Value:
    if context.loop_depth == 0:
      return self._fail(ErrorKind.CONTROL_FLOW, "'break' outside of loop", node)
    context.signal = LoopSignal.BREAK
    return VOID

  def _eval_next(self, node: Next, context: ExecutionContext) -> Value:
    if context.loop_depth == 0:
      return self._fail(ErrorKind.CONTROL_FLOW, "'next' outside of loop", node)
    context.signal = LoopSignal.NEXT
    return VOID

  def _eval_return(self, node: Return, context: ExecutionContext) -> Value:
    return self._fail(ErrorKind.CONTROL_FLOW, "'return' outside of function", node)

  def _eval_function_declaration(self, node: FunctionDeclaration, context: ExecutionContext) -> Value:
    if node.name in self.functions:
      return self._fail(ErrorKind.REDECLARATION, f"function '{node.name}' already defined", node)

    seen: Set[str] = set()
    for parameter in node.parameters:
      if parameter.name in seen:
        return self._fail(
          ErrorKind.REDECLARATION,
          f"parameter '{parameter.name}' already defined in function '{node.name}'",
          parameter,
        )
      seen.add(parameter.name)

      if kind_for_type_name(parameter.type_name) is None:
        return self._fail(ErrorKind.TYPE_MISMATCH, f"unknown type '{parameter.type_name}'", parameter)

    if kind_for_type_name(node.return_type) is None:
      return self._fail(ErrorKind.TYPE_MISMATCH, f"unknown type '{node.return_type}'", node)

    self.functions[node.name] = node
    return VOID

  def global_bindings(self) -> Dict[str, Value]:
    return self.scopes.global_bindings()


# Factory functions for creating interpreters
def create_interpreter(debug: bool = False, reporter: Optional[DiagnosticReporter] = None) -> Evaluator:
  """Create an Albus evaluator"""
  return Evaluator(debug=debug, reporter=reporter)


def create_debug_interpreter(reporter: Optional[DiagnosticReporter] = None) -> Evaluator:
  """Create an Albus evaluator with debug enabled"""
  return Evaluator(debug=True, reporter=reporter)
