"""
Evaluator tests for Albus
Scoping, type compatibility, control flow and per-statement error isolation
"""

import pytest
from error_handling import ErrorKind
from interpreter import (
  Evaluator, ScopeStack, truncating_divide, truncating_modulo,
)
from parsing import parse_string
from values import FALSE, TRUE, VOID, ValueKind, make_integer, make_text, make_character


@pytest.fixture
def evaluator(reporter):
  """Provide a fresh evaluator for each test"""
  return Evaluator(reporter=reporter)


def run(evaluator, code):
  program, has_error = parse_string(code, reporter=evaluator.reporter)
  assert not has_error
  return evaluator.analyze(program)


def last(evaluator, code):
  return run(evaluator, code)[-1]


class TestArithmetic:

  def test_left_associative_subtraction(self, evaluator):
    assert last(evaluator, "2 - 3 - 4;") == make_integer(-5)

  def test_precedence(self, evaluator):
    assert last(evaluator, "2 + 4 - 4 * 32 + 1 * 2;") == make_integer(-120)

  @pytest.mark.parametrize("code, expected", [
    ("7 / 2;", 3),
    ("-7 / 2;", -3),
    ("7 / -2;", -3),
    ("7 % 3;", 1),
    ("-7 % 3;", -1),
    ("7 % -3;", 1),
  ])
  def test_division_truncates(self, evaluator, code, expected):
    assert last(evaluator, code) == make_integer(expected)

  def test_truncating_helpers(self):
    assert truncating_divide(-9, 4) == -2
    assert truncating_modulo(-9, 4) == -1

  def test_division_by_zero(self, evaluator, reporter):
    assert last(evaluator, "1 / 0;") == FALSE
    assert last(evaluator, "1 % 0;") == FALSE
    assert len(reporter.of_kind(ErrorKind.DIVISION_BY_ZERO)) == 2

  def test_unary(self, evaluator):
    assert last(evaluator, "- - 5;") == make_integer(5)
    assert last(evaluator, "not true;") == FALSE

  def test_string_concatenation(self, evaluator):
    assert last(evaluator, 'let s = "ab" + "cd";') == make_text("abcd")

  def test_comparison_and_logic(self, evaluator):
    assert last(evaluator, "let x = 2 > 4 + 1 or 2 == 4 and 2 != 2;") == FALSE
    assert last(evaluator, "3 >= 3 and 2 < 3;") == TRUE

  def test_text_and_chars_reject_equality(self, evaluator, reporter, collector):
    results = run(evaluator, "\"a\" == \"a\"; 'c' != 'd';")
    assert results == [FALSE, FALSE]
    assert len(reporter.of_kind(ErrorKind.TYPE_MISMATCH)) == 2
    assert "error: cannot apply operator '!=' to values of type 'char' and 'char'" in collector.lines

  def test_long_operator_chain(self, evaluator, reporter):
    code = "let x = " + " + ".join(["1"] * 3000) + ";"
    assert last(evaluator, code) == make_integer(3000)
    assert not reporter.has_errors

  def test_deeply_nested_unary(self, evaluator):
    assert last(evaluator, "not " * 3001 + "true;") == FALSE
    assert last(evaluator, "- " * 3000 + "7;") == make_integer(7)


class TestTypeMismatch:
  """A failed compatibility check reports once and yields false"""

  def test_boolean_operand(self, evaluator, reporter, collector):
    assert last(evaluator, "true + 1;") == FALSE
    assert collector.lines[0] == "error: cannot apply operator '+' to boolean values"
    assert reporter.diagnostics[0].kind is ErrorKind.TYPE_MISMATCH

  def test_mixed_types_named(self, evaluator, collector):
    assert last(evaluator, '"a" + 1;') == FALSE
    assert collector.lines[0] == "error: cannot apply operator '+' to values of type 'string' and 'int'"

  def test_string_subtraction(self, evaluator, reporter):
    assert last(evaluator, '"a" - "b";') == FALSE
    assert len(reporter.of_kind(ErrorKind.TYPE_MISMATCH)) == 1

  def test_boolean_equality_rejected(self, evaluator, reporter):
    assert last(evaluator, "true == true;") == FALSE
    assert reporter.has_errors

  def test_logic_on_integers_rejected(self, evaluator, reporter):
    assert last(evaluator, "1 and 2;") == FALSE
    assert reporter.has_errors

  def test_unary_mismatch(self, evaluator, reporter):
    assert last(evaluator, "not 1;") == FALSE
    assert last(evaluator, '- "a";') == FALSE
    assert len(reporter.of_kind(ErrorKind.TYPE_MISMATCH)) == 2

  def test_sentinel_is_bound(self, evaluator):
    run(evaluator, "let x = true + 1;")
    assert evaluator.global_bindings()["x"] == FALSE

  def test_type_annotation(self, evaluator, reporter):
    assert last(evaluator, "let x: int = 5;") == make_integer(5)
    assert last(evaluator, 'let y: int = "five";') == FALSE
    assert last(evaluator, "let z: number = 5;") == FALSE
    assert "y" not in evaluator.global_bindings()
    assert len(reporter.of_kind(ErrorKind.TYPE_MISMATCH)) == 2

  def test_char_annotation(self, evaluator):
    assert last(evaluator, "let c: char = 'q';") == make_character('q')


class TestScoping:

  def test_shadowing_in_block(self, evaluator):
    run(evaluator, "let x = 1; if true then let x = 2; endif")
    assert evaluator.global_bindings()["x"] == make_integer(1)
    assert evaluator.scopes.depth == 1

  def test_block_result_is_last_statement(self, evaluator):
    assert last(evaluator, "if true then let a = 1; let b = a + 1; endif") == make_integer(2)

  def test_redeclaration_in_same_scope(self, evaluator, reporter, collector):
    results = run(evaluator, "let x = 1; let x = 2;")
    assert results[1] == FALSE
    assert evaluator.global_bindings()["x"] == make_integer(1)
    assert reporter.diagnostics[0].kind is ErrorKind.REDECLARATION
    assert "error: variable 'x' already defined in this scope" in collector.lines

  def test_undefined_variable(self, evaluator, reporter):
    assert last(evaluator, "y + 1;") == FALSE
    assert reporter.diagnostics[0].kind is ErrorKind.UNDEFINED_VARIABLE

  def test_assignment_to_undefined(self, evaluator, reporter):
    assert last(evaluator, "y = 1;") == FALSE
    assert reporter.diagnostics[0].kind is ErrorKind.UNDEFINED_VARIABLE
    assert "y" not in evaluator.global_bindings()

  def test_assignment_rebinds_defining_scope(self, evaluator):
    run(evaluator, "let x = 1; if true then x = 5; endif")
    assert evaluator.global_bindings()["x"] == make_integer(5)

  def test_assignment_hits_innermost_shadow(self, evaluator):
    run(evaluator, "let x = 1; if true then let x = 2; x = 3; endif")
    assert evaluator.global_bindings()["x"] == make_integer(1)

  def test_block_locals_do_not_leak(self, evaluator, reporter):
    run(evaluator, "if true then let inner = 1; endif inner;")
    assert reporter.diagnostics[0].kind is ErrorKind.UNDEFINED_VARIABLE

  def test_scope_popped_after_error_in_block(self, evaluator):
    run(evaluator, "if true then let a = 1; let a = 2; missing; endif")
    assert evaluator.scopes.depth == 1


class TestConditionals:

  def test_if_chain_picks_first_true_branch(self, evaluator):
    code = """
    let x = 0;
    let r = 0;
    if x > 0 then r = 1;
    elseif x == 0 then r = 2;
    else then r = 3;
    endif
    """
    run(evaluator, code)
    assert evaluator.global_bindings()["r"] == make_integer(2)

  def test_else_branch(self, evaluator):
    assert last(evaluator, "if false then 1; else then 2; endif") == make_integer(2)

  def test_no_branch_taken_is_void(self, evaluator):
    assert last(evaluator, "if false then 1; endif") == VOID

  def test_non_boolean_condition_treated_as_false(self, evaluator, reporter):
    assert last(evaluator, "if 1 then 10; else then 20; endif") == make_integer(20)
    assert reporter.diagnostics[0].kind is ErrorKind.TYPE_MISMATCH

  def test_ternary_evaluates_one_branch(self, evaluator, reporter):
    assert last(evaluator, "true then 1 else missing;") == make_integer(1)
    assert not reporter.has_errors

  def test_ternary_requires_boolean(self, evaluator, reporter):
    assert last(evaluator, "1 then 2 else 3;") == FALSE
    assert reporter.has_errors


class TestLoops:

  def test_while_counts(self, evaluator):
    run(evaluator, "let i = 0; let total = 0; while i < 5 i = i + 1; total = total + i; end")
    bindings = evaluator.global_bindings()
    assert bindings["i"] == make_integer(5)
    assert bindings["total"] == make_integer(15)

  def test_while_result_is_void(self, evaluator):
    assert last(evaluator, "while false end") == VOID

  def test_break_stops_loop(self, evaluator):
    code = "let i = 0; while true i = i + 1; if i == 3 then break; endif end"
    run(evaluator, code)
    assert evaluator.global_bindings()["i"] == make_integer(3)
    assert evaluator.scopes.depth == 1

  def test_next_skips_rest_of_body(self, evaluator):
    code = """
    let i = 0;
    let odd = 0;
    while i < 6
      i = i + 1;
      if i % 2 == 0 then next; endif
      odd = odd + 1;
    end
    """
    run(evaluator, code)
    assert evaluator.global_bindings()["odd"] == make_integer(3)

  def test_fresh_scope_each_iteration(self, evaluator, reporter):
    run(evaluator, "let i = 0; while i < 3 let tmp = i; i = i + 1; end")
    assert not reporter.has_errors

  def test_non_boolean_loop_condition(self, evaluator, reporter):
    assert last(evaluator, "while 1 end") == VOID
    assert reporter.diagnostics[0].kind is ErrorKind.TYPE_MISMATCH

  def test_break_outside_loop(self, evaluator, reporter):
    assert last(evaluator, "break;") == FALSE
    assert last(evaluator, "if true then next; endif") == FALSE
    assert len(reporter.of_kind(ErrorKind.CONTROL_FLOW)) == 2


class TestFunctions:

  def test_declaration_is_recorded(self, evaluator, reporter):
    assert last(evaluator, "def add(a: int, b: int): int return a + b; end") == VOID
    assert "add" in evaluator.functions
    assert not reporter.has_errors

  def test_function_redeclaration(self, evaluator, reporter):
    run(evaluator, "def f(): int end def f(): int end")
    assert reporter.diagnostics[0].kind is ErrorKind.REDECLARATION

  def test_duplicate_parameter(self, evaluator, reporter):
    assert last(evaluator, "def f(a: int, a: int): int end") == FALSE
    assert reporter.diagnostics[0].kind is ErrorKind.REDECLARATION

  def test_unknown_types(self, evaluator, reporter):
    run(evaluator, "def f(a: number): int end def g(): thing end")
    assert len(reporter.of_kind(ErrorKind.TYPE_MISMATCH)) == 2
    assert evaluator.functions == {}

  def test_return_outside_function(self, evaluator, reporter):
    assert last(evaluator, "return 1;") == FALSE
    assert reporter.diagnostics[0].kind is ErrorKind.CONTROL_FLOW


class TestAnalyze:
  """Errors stay local to their statement"""

  def test_error_does_not_stop_batch(self, evaluator, collector):
    results = run(evaluator, "let a = 1; let b = a + true; let c = a + 2;")
    assert results == [make_integer(1), FALSE, make_integer(3)]
    assert collector.lines[-1] == "3"

  def test_one_result_line_per_statement(self, evaluator, collector):
    run(evaluator, 'let a = 1; let s = "hi"; a > 0;')
    assert collector.lines == ["1", "hi", "true"]

  def test_debug_trace(self, reporter, collector):
    evaluator = Evaluator(debug=True, reporter=reporter)
    run(evaluator, "let a = 1;")
    assert collector.lines == ["evaluating VariableDeclaration on line 1", "1"]


class TestScopeStack:

  def test_resolve_innermost_first(self):
    scopes = ScopeStack()
    scopes.declare("x", make_integer(1))
    with scopes.scope() as index:
      scopes.declare("x", make_integer(2))
      assert index == 1
      assert scopes.resolve("x") == 1
      assert scopes.lookup("x") == make_integer(2)
    assert scopes.lookup("x") == make_integer(1)

  def test_scope_popped_on_exception(self):
    scopes = ScopeStack()
    with pytest.raises(ValueError):
      with scopes.scope():
        raise ValueError("boom")
    assert scopes.depth == 1

  def test_global_scope_cannot_be_popped(self):
    with pytest.raises(RuntimeError):
      ScopeStack().pop()

  def test_value_kinds(self):
    assert make_integer(3).kind is ValueKind.INTEGER
    assert str(TRUE) == "true"
    assert str(VOID) == "void"
