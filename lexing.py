"""
Albus Lexer
Turns source text into an ordered token stream using pyparsing token elements
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

from pyparsing import MatchFirst, ParserElement, Regex, Literal, lineno, one_of

from error_handling import DiagnosticReporter, make_lex_error


# ============================================================================
# TOKEN MODEL
# ============================================================================

class TokenKind(Enum):
    """Category of a lexeme; the value is the name shown in token dumps"""
    # Keywords
    LET = "Let"
    IF = "If"
    ELSEIF = "ElseIf"
    ELSE = "Else"
    ENDIF = "EndIf"
    WHILE = "While"
    END = "End"
    BREAK = "Break"
    NEXT = "Next"
    DEF = "Def"
    RETURN = "Return"
    THEN = "Then"

    # Word operators
    AND = "And"
    OR = "Or"
    NOT = "Not"

    # Literals
    INTEGER = "Integer"
    STRING = "String"
    CHAR = "Char"
    BOOLEAN = "Boolean"

    IDENTIFIER = "Identifier"

    # Operators and punctuation
    PLUS = "Plus"
    MINUS = "Minus"
    STAR = "Star"
    SLASH = "Slash"
    PERCENT = "Modulo"
    EQUAL = "SingleEquals"
    EQUAL_EQUAL = "DoubleEquals"
    BANG_EQUAL = "NotEquals"
    GREATER = "Greater"
    GREATER_EQUAL = "GreaterEquals"
    LESS = "Less"
    LESS_EQUAL = "LessEquals"
    SEMICOLON = "SemiColon"
    COLON = "Colon"
    COMMA = "Comma"
    LEFT_PAREN = "LeftParen"
    RIGHT_PAREN = "RightParen"

    EOF = "Eof"
    BAD = "Bad"


@dataclass(frozen=True)
class Token:
    """A classified lexeme and the line it starts on"""
    lexeme: str
    kind: TokenKind
    line: int

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.lexeme}"


KEYWORDS: Dict[str, TokenKind] = {
    'let': TokenKind.LET,
    'if': TokenKind.IF,
    'elseif': TokenKind.ELSEIF,
    'else': TokenKind.ELSE,
    'endif': TokenKind.ENDIF,
    'while': TokenKind.WHILE,
    'end': TokenKind.END,
    'break': TokenKind.BREAK,
    'next': TokenKind.NEXT,
    'def': TokenKind.DEF,
    'return': TokenKind.RETURN,
    'then': TokenKind.THEN,
    'and': TokenKind.AND,
    'or': TokenKind.OR,
    'not': TokenKind.NOT,
    'true': TokenKind.BOOLEAN,
    'false': TokenKind.BOOLEAN,
}

OPERATORS: Dict[str, TokenKind] = {
    '+': TokenKind.PLUS,
    '-': TokenKind.MINUS,
    '*': TokenKind.STAR,
    '/': TokenKind.SLASH,
    '%': TokenKind.PERCENT,
    '=': TokenKind.EQUAL,
    '==': TokenKind.EQUAL_EQUAL,
    '!=': TokenKind.BANG_EQUAL,
    '>': TokenKind.GREATER,
    '>=': TokenKind.GREATER_EQUAL,
    '<': TokenKind.LESS,
    '<=': TokenKind.LESS_EQUAL,
    ';': TokenKind.SEMICOLON,
    ':': TokenKind.COLON,
    ',': TokenKind.COMMA,
    '(': TokenKind.LEFT_PAREN,
    ')': TokenKind.RIGHT_PAREN,
}

WHITESPACE = " \t\r\n\f\v"


# ============================================================================
# TOKEN GRAMMAR
# ============================================================================

def _emit(kind: TokenKind):
    """Parse action producing a token of a fixed kind"""
    def action(source, loc, toks):
        return Token(toks[0], kind, lineno(loc, source))
    return action


def _emit_word(source, loc, toks):
    word = toks[0]
    return Token(word, KEYWORDS.get(word, TokenKind.IDENTIFIER), lineno(loc, source))


def _emit_operator(source, loc, toks):
    return Token(toks[0], OPERATORS[toks[0]], lineno(loc, source))


def build_token_scanner() -> ParserElement:
    """Build the element matching exactly one token at the current position

    Alternatives are tried in order, so every well-formed literal comes before
    the malformed variant that catches its failure, and the catch-all for an
    unrecognized character comes last.
    """
    string_literal = Regex(r'"[^"]*"').set_parse_action(_emit(TokenKind.STRING))
    unterminated_string = Regex(r'"[^"]*').set_parse_action(_emit(TokenKind.BAD))

    char_literal = Regex(r"'[^']'").set_parse_action(_emit(TokenKind.CHAR))
    empty_char = Literal("''").set_parse_action(_emit(TokenKind.BAD))
    unterminated_char = Literal("'").set_parse_action(_emit(TokenKind.BAD))

    integer = Regex(r'\d+').set_parse_action(_emit(TokenKind.INTEGER))

    # Letters and underscores only; digits start a new integer token
    word = Regex(r'[^\W\d]+').set_parse_action(_emit_word)

    # one_of reorders the alternatives so '>=' wins over '>'
    operator = one_of(list(OPERATORS)).set_parse_action(_emit_operator)

    unrecognized = Regex(r'\S').set_parse_action(_emit(TokenKind.BAD))

    scanner = MatchFirst([
        string_literal, unterminated_string,
        char_literal, empty_char, unterminated_char,
        integer,
        word,
        operator,
        unrecognized,
    ])
    scanner.set_whitespace_chars(WHITESPACE)
    scanner.parse_with_tabs()
    return scanner.set_name("token")


TOKEN_SCANNER = build_token_scanner()


# ============================================================================
# PURE FUNCTIONS
# ============================================================================

def describe_bad_lexeme(lexeme: str) -> str:
    """Explain why a lexeme could not be turned into a token"""
    if lexeme.startswith('"'):
        return "unterminated string literal"
    if lexeme == "''":
        return "empty char literal"
    if lexeme.startswith("'"):
        return "unterminated char literal"
    return f"unrecognized character '{lexeme}'"


def eof_line(source: str) -> int:
    """Line of the last non-whitespace character (1 for empty input)"""
    return lineno(len(source.rstrip(WHITESPACE)), source)


def dump_tokens(tokens: List[Token]) -> str:
    return '\n'.join(str(token) for token in tokens)


# ============================================================================
# LEXER
# ============================================================================

class Lexer:
    """Fail-fast tokenizer: stops at the first malformed lexeme"""

    def __init__(self, source: str, debug: bool = False,
                 reporter: Optional[DiagnosticReporter] = None):
        self.source = source
        self.debug = debug
        self.reporter = reporter or DiagnosticReporter()
        self.has_error = False

    @property
    def output(self) -> Callable[[str], None]:
        return self.reporter.output

    def tokenize(self) -> List[Token]:
        """Tokenize the whole source, ending in Eof or in the Bad token"""
        tokens: List[Token] = []

        for matched, _start, _end in TOKEN_SCANNER.scan_string(self.source):
            token = matched[0]
            tokens.append(token)

            if token.kind is TokenKind.BAD:
                self.has_error = True
                self.reporter.report(make_lex_error(describe_bad_lexeme(token.lexeme), token.line))
                break
        else:
            tokens.append(Token("", TokenKind.EOF, eof_line(self.source)))

        if self.debug:
            self.output(dump_tokens(tokens))

        return tokens


def tokenize(source: str, debug: bool = False,
             reporter: Optional[DiagnosticReporter] = None) -> List[Token]:
    """Convenience wrapper returning only the token list"""
    return Lexer(source, debug, reporter).tokenize()
