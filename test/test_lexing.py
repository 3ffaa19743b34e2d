"""
Lexer tests for Albus
Token classification, line tracking and fail-fast errors
"""

import pytest
from lexing import Lexer, Token, TokenKind, describe_bad_lexeme, tokenize


def kinds(tokens):
  return [t.kind for t in tokens]


class TestTokenClassification:
  """Keywords, literals, identifiers and operators"""

  def test_keywords_before_identifiers(self):
    tokens = tokenize("let if elseif else endif while end break next def return then")
    assert kinds(tokens) == [
      TokenKind.LET, TokenKind.IF, TokenKind.ELSEIF, TokenKind.ELSE, TokenKind.ENDIF,
      TokenKind.WHILE, TokenKind.END, TokenKind.BREAK, TokenKind.NEXT, TokenKind.DEF,
      TokenKind.RETURN, TokenKind.THEN, TokenKind.EOF,
    ]

  def test_keyword_prefix_is_identifier(self):
    tokens = tokenize("letter endless iffy")
    assert kinds(tokens) == [TokenKind.IDENTIFIER] * 3 + [TokenKind.EOF]
    assert [t.lexeme for t in tokens[:3]] == ["letter", "endless", "iffy"]

  def test_identifiers_allow_underscores(self):
    tokens = tokenize("my_value _hidden")
    assert kinds(tokens) == [TokenKind.IDENTIFIER, TokenKind.IDENTIFIER, TokenKind.EOF]
    assert tokens[0].lexeme == "my_value"

  def test_digits_end_an_identifier(self):
    tokens = tokenize("x1")
    assert kinds(tokens) == [TokenKind.IDENTIFIER, TokenKind.INTEGER, TokenKind.EOF]

  def test_literals(self):
    tokens = tokenize('42 "hello world" \'c\' true false')
    assert kinds(tokens) == [
      TokenKind.INTEGER, TokenKind.STRING, TokenKind.CHAR,
      TokenKind.BOOLEAN, TokenKind.BOOLEAN, TokenKind.EOF,
    ]
    assert tokens[0].lexeme == "42"
    assert tokens[1].lexeme == '"hello world"'
    assert tokens[2].lexeme == "'c'"

  def test_integers_have_no_decimal_point(self):
    tokens = tokenize("3.5")
    assert tokens[0].kind is TokenKind.INTEGER
    assert tokens[0].lexeme == "3"
    assert tokens[1].kind is TokenKind.BAD

  def test_word_operators(self):
    tokens = tokenize("a and b or not c")
    assert kinds(tokens)[1] is TokenKind.AND
    assert kinds(tokens)[3] is TokenKind.OR
    assert kinds(tokens)[4] is TokenKind.NOT

  def test_longest_operator_match_first(self):
    tokens = tokenize(">= > <= < == = !=")
    assert kinds(tokens) == [
      TokenKind.GREATER_EQUAL, TokenKind.GREATER, TokenKind.LESS_EQUAL, TokenKind.LESS,
      TokenKind.EQUAL_EQUAL, TokenKind.EQUAL, TokenKind.BANG_EQUAL, TokenKind.EOF,
    ]

  def test_operators_without_spaces(self):
    tokens = tokenize("x>=10;")
    assert [t.lexeme for t in tokens] == ["x", ">=", "10", ";", ""]

  def test_punctuation(self):
    tokens = tokenize("def f(a: int, b: int): int")
    assert TokenKind.LEFT_PAREN in kinds(tokens)
    assert TokenKind.COMMA in kinds(tokens)
    assert kinds(tokens).count(TokenKind.COLON) == 3

  def test_token_dump_format(self):
    assert str(Token("let", TokenKind.LET, 1)) == "Let: let"
    assert str(Token("x", TokenKind.IDENTIFIER, 1)) == "Identifier: x"


class TestLineTracking:
  """Line numbers follow newlines in the source"""

  def test_lines_counted(self):
    tokens = tokenize("let x = 1;\n\nlet y = 2;")
    assert tokens[0].line == 1
    assert tokens[5].line == 3

  def test_string_reported_on_opening_line(self):
    tokens = tokenize('"first\nsecond" x')
    assert tokens[0].line == 1
    assert tokens[1].line == 2

  def test_eof_line_ignores_trailing_whitespace(self):
    tokens = tokenize("let\n\n\n")
    assert tokens[-1].kind is TokenKind.EOF
    assert tokens[-1].line == 1

  def test_empty_source(self):
    tokens = tokenize("")
    assert tokens == [Token("", TokenKind.EOF, 1)]

  def test_tabs_are_whitespace(self):
    tokens = tokenize("let\tx\t=\t1;")
    assert kinds(tokens)[:2] == [TokenKind.LET, TokenKind.IDENTIFIER]


class TestLexErrors:
  """Malformed input stops tokenizing at the bad token"""

  def test_unterminated_string(self, reporter, collector):
    lexer = Lexer('"abc', reporter=reporter)
    tokens = lexer.tokenize()

    assert lexer.has_error
    assert kinds(tokens) == [TokenKind.BAD]
    assert collector.lines == ["unterminated string literal on line 1"]

  def test_error_stops_tokenizing(self, reporter):
    lexer = Lexer('let x = 1;\nlet s = "oops;\nlet y = 2;', reporter=reporter)
    tokens = lexer.tokenize()

    assert tokens[-1].kind is TokenKind.BAD
    assert TokenKind.EOF not in kinds(tokens)
    assert len(reporter.diagnostics) == 1
    assert reporter.diagnostics[0].line == 2

  def test_empty_char(self, reporter, collector):
    lexer = Lexer("let c = '';", reporter=reporter)
    lexer.tokenize()
    assert collector.lines == ["empty char literal on line 1"]

  def test_char_with_two_characters(self, reporter, collector):
    lexer = Lexer("let c = 'ab';", reporter=reporter)
    lexer.tokenize()
    assert collector.lines == ["unterminated char literal on line 1"]

  def test_unrecognized_character(self, reporter, collector):
    lexer = Lexer("let x = 1;\nx = x @ 2;", reporter=reporter)
    tokens = lexer.tokenize()
    assert tokens[-1].lexeme == "@"
    assert collector.lines == ["unrecognized character '@' on line 2"]

  @pytest.mark.parametrize("lexeme, message", [
    ('"abc', "unterminated string literal"),
    ("''", "empty char literal"),
    ("'", "unterminated char literal"),
    ("$", "unrecognized character '$'"),
  ])
  def test_describe_bad_lexeme(self, lexeme, message):
    assert describe_bad_lexeme(lexeme) == message


class TestDebugDump:

  def test_debug_prints_every_token(self, reporter, collector):
    Lexer("let x = 5;", debug=True, reporter=reporter).tokenize()
    assert collector.lines == [
      "Let: let", "Identifier: x", "SingleEquals: =", "Integer: 5", "SemiColon: ;", "Eof: ",
    ]
