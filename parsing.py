"""
Albus Parser
Recursive-descent statement parser with precedence climbing for expressions
"""

from typing import Callable, Dict, List, Optional, Sequence, Tuple

from error_handling import DiagnosticReporter, make_parse_error
from lexing import Lexer, Token, TokenKind
from syntax_tree import (
    Assignment, Bad, Binary, Break, Eof, Expression, FunctionDeclaration,
    Identifier, If, Literal, Next, Parameter, Program, Return, Ternary,
    Unary, VariableDeclaration, While, walk,
)
from values import make_boolean, make_character, make_integer, make_text


# Binary precedence levels, lowest first. Each level folds left over the next.
OR_OPERATORS = (TokenKind.OR,)
AND_OPERATORS = (TokenKind.AND,)
EQUALITY_OPERATORS = (TokenKind.EQUAL_EQUAL, TokenKind.BANG_EQUAL)
COMPARISON_OPERATORS = (
    TokenKind.GREATER, TokenKind.LESS, TokenKind.GREATER_EQUAL, TokenKind.LESS_EQUAL,
)
TERM_OPERATORS = (TokenKind.PLUS, TokenKind.MINUS)
FACTOR_OPERATORS = (TokenKind.STAR, TokenKind.SLASH, TokenKind.PERCENT)
UNARY_OPERATORS = (TokenKind.MINUS, TokenKind.NOT)


class Parser:
    """Builds a Program from a token list, stopping at the first bad statement

    The parser never raises on malformed input. The first unmet expectation is
    reported once and sets ``has_error``; every production then unwinds to a
    Bad node.
    """

    def __init__(self, tokens: Sequence[Token], debug: bool = False,
                 reporter: Optional[DiagnosticReporter] = None):
        self.tokens = list(tokens)
        self.debug = debug
        self.reporter = reporter or DiagnosticReporter()
        self.has_error = False
        self._current = 0

        self._statement_parsers: Dict[TokenKind, Callable[[], Expression]] = {
            TokenKind.LET: self._parse_variable_declaration,
            TokenKind.IF: self._parse_if,
            TokenKind.WHILE: self._parse_while,
            TokenKind.BREAK: self._parse_break,
            TokenKind.NEXT: self._parse_next,
            TokenKind.DEF: self._parse_function_declaration,
            TokenKind.RETURN: self._parse_return,
        }

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def parse_ast(self) -> Tuple[Program, bool]:
        """Parse every top-level statement; returns the program and the error flag"""
        program = Program()

        while not self._at_end():
            stmt = self.parse_statement()
            program.body.append(stmt)

            if self.debug:
                self.reporter.output(f"parsed {stmt.node_type} on line {stmt.line}")

            if self.has_error or isinstance(stmt, Bad):
                break

        return program, self.has_error

    def parse_statement(self) -> Expression:
        """Parse one statement, dispatching on its leading token"""
        token = self._peek()

        if token.kind is TokenKind.EOF:
            return Eof(line=token.line)

        statement_parser = self._statement_parsers.get(token.kind)
        if statement_parser is not None:
            return statement_parser()

        if token.kind is TokenKind.IDENTIFIER and self._peek(1).kind is TokenKind.EQUAL:
            return self._parse_assignment()

        return self._parse_expression_statement()

    def parse_expression(self) -> Expression:
        return self._parse_ternary()

    # ------------------------------------------------------------------
    # Cursor
    # ------------------------------------------------------------------

    def _peek(self, offset: int = 0) -> Token:
        index = self._current + offset
        if index < len(self.tokens):
            return self.tokens[index]
        last_line = self.tokens[-1].line if self.tokens else 1
        return Token("", TokenKind.EOF, last_line)

    def _at_end(self) -> bool:
        return self._peek().kind is TokenKind.EOF

    def _advance(self) -> Token:
        token = self._peek()
        if token.kind is not TokenKind.EOF:
            self._current += 1
        return token

    def _check(self, *kinds: TokenKind) -> bool:
        return self._peek().kind in kinds

    def _match(self, *kinds: TokenKind) -> Optional[Token]:
        if self._check(*kinds):
            return self._advance()
        return None

    def _expect(self, kind: TokenKind, description: str) -> Optional[Token]:
        """Consume a token of the given kind or report what was expected"""
        if self._check(kind):
            return self._advance()
        self._error(description)
        return None

    # ------------------------------------------------------------------
    # Errors
    # ------------------------------------------------------------------

    def _error(self, description: str) -> Bad:
        if not self.has_error:
            self.has_error = True
            self.reporter.report(make_parse_error(description, self._peek().line))
        return self._bad()

    def _bad(self) -> Bad:
        return Bad(line=self._peek().line)

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def _parse_variable_declaration(self) -> Expression:
        let_token = self._advance()

        name = self._expect(TokenKind.IDENTIFIER, "identifier after 'let'")
        if name is None:
            return self._bad()

        type_annotation = None
        if self._match(TokenKind.COLON):
            type_token = self._expect(TokenKind.IDENTIFIER, "type after ':'")
            if type_token is None:
                return self._bad()
            type_annotation = type_token.lexeme

        if self._expect(TokenKind.EQUAL, "'=' after identifier") is None:
            return self._bad()

        value = self.parse_expression()
        if self.has_error:
            return self._bad()

        if self._expect(TokenKind.SEMICOLON, "';' after expression") is None:
            return self._bad()

        return VariableDeclaration(name.lexeme, value, type_annotation, line=let_token.line)

    def _parse_assignment(self) -> Expression:
        name = self._advance()
        self._advance()  # '='

        value = self.parse_expression()
        if self.has_error:
            return self._bad()

        if self._expect(TokenKind.SEMICOLON, "';' after expression") is None:
            return self._bad()

        return Assignment(name.lexeme, value, line=name.line)

    def _parse_expression_statement(self) -> Expression:
        expr = self.parse_expression()
        if self.has_error:
            return self._bad()

        if self._expect(TokenKind.SEMICOLON, "';' after expression") is None:
            return self._bad()

        return expr

    def _parse_block(self, terminators: Tuple[TokenKind, ...], closing: str) -> Optional[Tuple[Expression, ...]]:
        """Parse statements up to (not including) one of the terminators"""
        statements: List[Expression] = []

        while not self._check(*terminators):
            if self._at_end():
                self._error(closing)
                return None

            stmt = self.parse_statement()
            if self.has_error:
                return None
            statements.append(stmt)

        return tuple(statements)

    def _parse_if(self) -> Expression:
        return self._parse_if_branch(self._advance())

    def _parse_if_branch(self, keyword: Token) -> Expression:
        """Parse from after 'if'/'elseif' through the shared closing 'endif'"""
        # Parsed below the ternary level so that 'then' belongs to the if
        condition = self._parse_or()
        if self.has_error:
            return self._bad()

        if self._expect(TokenKind.THEN, "'then' after condition") is None:
            return self._bad()

        closing = "'endif' to close 'if'"
        body = self._parse_block((TokenKind.ELSEIF, TokenKind.ELSE, TokenKind.ENDIF), closing)
        if body is None:
            return self._bad()

        elseif_token = self._match(TokenKind.ELSEIF)
        if elseif_token is not None:
            alternate = self._parse_if_branch(elseif_token)
            if self.has_error:
                return self._bad()
            return If(condition, body, alternate, line=keyword.line)

        alternate = None
        else_token = self._match(TokenKind.ELSE)
        if else_token is not None:
            if self._expect(TokenKind.THEN, "'then' after 'else'") is None:
                return self._bad()

            else_body = self._parse_block((TokenKind.ENDIF,), closing)
            if else_body is None:
                return self._bad()
            alternate = If(None, else_body, None, line=else_token.line)

        if self._expect(TokenKind.ENDIF, closing) is None:
            return self._bad()

        return If(condition, body, alternate, line=keyword.line)

    def _parse_while(self) -> Expression:
        while_token = self._advance()

        condition = self.parse_expression()
        if self.has_error:
            return self._bad()

        closing = "'end' to close 'while'"
        body = self._parse_block((TokenKind.END,), closing)
        if body is None or self._expect(TokenKind.END, closing) is None:
            return self._bad()

        return While(condition, body, line=while_token.line)

    def _parse_break(self) -> Expression:
        token = self._advance()
        if self._expect(TokenKind.SEMICOLON, "';' after 'break'") is None:
            return self._bad()
        return Break(line=token.line)

    def _parse_next(self) -> Expression:
        token = self._advance()
        if self._expect(TokenKind.SEMICOLON, "';' after 'next'") is None:
            return self._bad()
        return Next(line=token.line)

    def _parse_parameter(self) -> Optional[Parameter]:
        name = self._expect(TokenKind.IDENTIFIER, "parameter name")
        if name is None:
            return None
        if self._expect(TokenKind.COLON, "':' after parameter name") is None:
            return None
        type_token = self._expect(TokenKind.IDENTIFIER, "type after ':'")
        if type_token is None:
            return None
        return Parameter(name.lexeme, type_token.lexeme, line=name.line)

    def _parse_function_declaration(self) -> Expression:
        def_token = self._advance()

        name = self._expect(TokenKind.IDENTIFIER, "function name after 'def'")
        if name is None:
            return self._bad()

        if self._expect(TokenKind.LEFT_PAREN, "'(' after function name") is None:
            return self._bad()

        parameters: List[Parameter] = []
        if not self._check(TokenKind.RIGHT_PAREN):
            while True:
                parameter = self._parse_parameter()
                if parameter is None:
                    return self._bad()
                parameters.append(parameter)
                if self._match(TokenKind.COMMA) is None:
                    break

        if self._expect(TokenKind.RIGHT_PAREN, "')' after parameters") is None:
            return self._bad()
        if self._expect(TokenKind.COLON, "':' after ')'") is None:
            return self._bad()

        return_type = self._expect(TokenKind.IDENTIFIER, "return type")
        if return_type is None:
            return self._bad()

        closing = "'end' to close function"
        body = self._parse_block((TokenKind.END,), closing)
        if body is None or self._expect(TokenKind.END, closing) is None:
            return self._bad()

        return FunctionDeclaration(
            name.lexeme, tuple(parameters), return_type.lexeme, body, line=def_token.line
        )

    def _parse_return(self) -> Expression:
        return_token = self._advance()

        value = self.parse_expression()
        if self.has_error:
            return self._bad()

        if self._expect(TokenKind.SEMICOLON, "';' after return value") is None:
            return self._bad()

        return Return(value, line=return_token.line)

    # ------------------------------------------------------------------
    # Expressions, lowest precedence first
    # ------------------------------------------------------------------

    def _parse_ternary(self) -> Expression:
        condition = self._parse_or()
        if self.has_error:
            return self._bad()

        if self._match(TokenKind.THEN) is None:
            return condition

        true_branch = self._parse_ternary()
        if self.has_error:
            return self._bad()

        if self._expect(TokenKind.ELSE, "'else' in conditional expression") is None:
            return self._bad()

        false_branch = self._parse_ternary()
        if self.has_error:
            return self._bad()

        return Ternary(condition, true_branch, false_branch, line=condition.line)

    def _fold_left(self, operand: Callable[[], Expression], operators: Tuple[TokenKind, ...]) -> Expression:
        """Parse `operand (op operand)*` into a left-associative Binary chain"""
        left = operand()

        while not self.has_error and self._check(*operators):
            op = self._advance()
            right = operand()
            if self.has_error:
                break
            left = Binary(left, op.lexeme, right, line=op.line)

        if self.has_error:
            return self._bad()
        return left

    def _parse_or(self) -> Expression:
        return self._fold_left(self._parse_and, OR_OPERATORS)

    def _parse_and(self) -> Expression:
        return self._fold_left(self._parse_equality, AND_OPERATORS)

    def _parse_equality(self) -> Expression:
        return self._fold_left(self._parse_comparison, EQUALITY_OPERATORS)

    def _parse_comparison(self) -> Expression:
        return self._fold_left(self._parse_term, COMPARISON_OPERATORS)

    def _parse_term(self) -> Expression:
        return self._fold_left(self._parse_factor, TERM_OPERATORS)

    def _parse_factor(self) -> Expression:
        return self._fold_left(self._parse_unary, FACTOR_OPERATORS)

    def _parse_unary(self) -> Expression:
        prefixes = []
        op = self._match(*UNARY_OPERATORS)
        while op is not None:
            prefixes.append(op)
            op = self._match(*UNARY_OPERATORS)

        operand = self._parse_primary()
        if not prefixes:
            return operand
        if self.has_error:
            return self._bad()

        # innermost prefix binds first
        for op in reversed(prefixes):
            operand = Unary(op.lexeme, operand, line=op.line)
        return operand

    def _parse_primary(self) -> Expression:
        token = self._peek()
        kind = token.kind

        if kind is TokenKind.INTEGER:
            value = make_integer(int(token.lexeme))
        elif kind is TokenKind.STRING:
            value = make_text(token.lexeme[1:-1])
        elif kind is TokenKind.CHAR:
            value = make_character(token.lexeme[1:-1])
        elif kind is TokenKind.BOOLEAN:
            value = make_boolean(token.lexeme == "true")
        elif kind is TokenKind.IDENTIFIER:
            self._advance()
            return Identifier(token.lexeme, line=token.line)
        else:
            return self._error("expression")

        self._advance()
        return Literal(value, line=token.line)


# ============================================================================
# FACTORIES AND HELPERS
# ============================================================================

def create_parser(tokens: Sequence[Token], debug: bool = False,
                  reporter: Optional[DiagnosticReporter] = None) -> Parser:
    """Create an Albus parser"""
    return Parser(tokens, debug=debug, reporter=reporter)


def create_debug_parser(tokens: Sequence[Token],
                        reporter: Optional[DiagnosticReporter] = None) -> Parser:
    """Create an Albus parser with debug enabled"""
    return Parser(tokens, debug=True, reporter=reporter)


def parse_string(text: str, debug: bool = False,
                 reporter: Optional[DiagnosticReporter] = None) -> Tuple[Program, bool]:
    """Lex and parse source text; a lex error yields an empty program and the error flag"""
    reporter = reporter or DiagnosticReporter()

    lexer = Lexer(text, debug=debug, reporter=reporter)
    tokens = lexer.tokenize()
    if lexer.has_error:
        return Program(), True

    return Parser(tokens, debug=debug, reporter=reporter).parse_ast()


def find_nodes_by_type(node: Expression, node_type: str) -> List[Expression]:
    """Find all nodes of a specific type below (and including) a node"""
    return [n for n in walk(node) if n.node_type == node_type]


def pretty_print_ast(node: Expression, indent: int = 0) -> str:
    """Pretty print an AST node for debugging"""
    lines = []
    pending = [(node, indent)]
    while pending:
        current, depth = pending.pop()
        line = "  " * depth + current.node_type
        details = _node_details(current)
        if details:
            line += f"({details})"
        lines.append(line + "\n")
        pending.extend((child, depth + 1) for child in reversed(list(current.children())))

    return "".join(lines)


def _node_details(node: Expression) -> str:
    if isinstance(node, (Literal, Identifier)):
        return str(node)
    if isinstance(node, (Binary, Unary)):
        return repr(node.operator)
    if isinstance(node, VariableDeclaration):
        if node.type_annotation:
            return f"{node.name}: {node.type_annotation}"
        return node.name
    if isinstance(node, Assignment):
        return node.name
    if isinstance(node, Parameter):
        return str(node)
    if isinstance(node, FunctionDeclaration):
        return f"{node.name} -> {node.return_type}"
    if isinstance(node, If) and node.is_else:
        return "else"
    return ""
