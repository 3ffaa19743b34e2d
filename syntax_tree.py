"""
Albus Abstract Syntax Tree
A closed set of immutable statement/expression nodes plus the program body
"""

from dataclasses import dataclass, field, fields
from typing import Iterator, List, Optional, Tuple

from values import Value, literal_form


def _indent(body: Tuple['Expression', ...]) -> List[str]:
    lines = []
    for stmt in body:
        lines.extend("  " + line for line in str(stmt).split('\n'))
    return lines


@dataclass(frozen=True)
class Expression:
    """Base of every AST node"""

    @property
    def node_type(self) -> str:
        return type(self).__name__

    def children(self) -> Iterator['Expression']:
        """Direct child nodes in source order"""
        for f in fields(self):
            item = getattr(self, f.name)
            if isinstance(item, Expression):
                yield item
            elif isinstance(item, tuple):
                yield from (child for child in item if isinstance(child, Expression))


@dataclass(frozen=True)
class Bad(Expression):
    """Marks the statement where parsing failed"""
    line: int = field(default=0, compare=False)

    def __str__(self) -> str:
        return "<bad>"


@dataclass(frozen=True)
class Eof(Expression):
    line: int = field(default=0, compare=False)

    def __str__(self) -> str:
        return "<eof>"


@dataclass(frozen=True)
class Literal(Expression):
    value: Value
    line: int = field(default=0, compare=False)

    def __str__(self) -> str:
        return literal_form(self.value)


@dataclass(frozen=True)
class Identifier(Expression):
    name: str
    line: int = field(default=0, compare=False)

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class VariableDeclaration(Expression):
    name: str
    initializer: Expression
    type_annotation: Optional[str] = None
    line: int = field(default=0, compare=False)

    def __str__(self) -> str:
        if self.type_annotation:
            return f"{self.name}: {self.type_annotation} = {self.initializer}"
        return f"{self.name} = {self.initializer}"


@dataclass(frozen=True)
class Assignment(Expression):
    name: str
    value: Expression
    line: int = field(default=0, compare=False)

    def __str__(self) -> str:
        return f"{self.name} = {self.value}"


@dataclass(frozen=True)
class Binary(Expression):
    left: Expression
    operator: str
    right: Expression
    line: int = field(default=0, compare=False)

    def __str__(self) -> str:
        return render_operators(self)


@dataclass(frozen=True)
class Unary(Expression):
    operator: str
    operand: Expression
    line: int = field(default=0, compare=False)

    def __str__(self) -> str:
        return render_operators(self)


@dataclass(frozen=True)
class Ternary(Expression):
    condition: Expression
    true_branch: Expression
    false_branch: Expression
    line: int = field(default=0, compare=False)

    def __str__(self) -> str:
        return f"{self.condition} then {self.true_branch} else {self.false_branch}"


@dataclass(frozen=True)
class If(Expression):
    """One link of an if/elseif/else chain; no condition means 'else'"""
    condition: Optional[Expression]
    body: Tuple[Expression, ...]
    alternate: Optional['If'] = None
    line: int = field(default=0, compare=False)

    @property
    def is_else(self) -> bool:
        return self.condition is None

    def branches(self) -> Iterator['If']:
        """Walk the alternate chain starting with this node"""
        node: Optional[If] = self
        while node is not None:
            yield node
            node = node.alternate

    def _render(self, keyword: str) -> str:
        header = "else then" if self.is_else else f"{keyword} {self.condition} then"
        parts = [header] + _indent(self.body)
        if self.alternate is not None:
            parts.append(self.alternate._render("elseif"))
        return '\n'.join(parts)

    def __str__(self) -> str:
        return self._render("if") + "\nendif"


@dataclass(frozen=True)
class While(Expression):
    condition: Expression
    body: Tuple[Expression, ...]
    line: int = field(default=0, compare=False)

    def __str__(self) -> str:
        return '\n'.join([f"while {self.condition}"] + _indent(self.body) + ["end"])


@dataclass(frozen=True)
class Break(Expression):
    line: int = field(default=0, compare=False)

    def __str__(self) -> str:
        return "break"


@dataclass(frozen=True)
class Next(Expression):
    line: int = field(default=0, compare=False)

    def __str__(self) -> str:
        return "next"


@dataclass(frozen=True)
class Parameter(Expression):
    name: str
    type_name: str
    line: int = field(default=0, compare=False)

    def __str__(self) -> str:
        return f"{self.name}: {self.type_name}"


@dataclass(frozen=True)
class FunctionDeclaration(Expression):
    name: str
    parameters: Tuple[Parameter, ...]
    return_type: str
    body: Tuple[Expression, ...]
    line: int = field(default=0, compare=False)

    def __str__(self) -> str:
        params = ", ".join(str(p) for p in self.parameters)
        header = f"def {self.name}({params}): {self.return_type}"
        return '\n'.join([header] + _indent(self.body) + ["end"])


@dataclass(frozen=True)
class Return(Expression):
    value: Expression
    line: int = field(default=0, compare=False)

    def __str__(self) -> str:
        return f"return {self.value}"


@dataclass
class Program:
    """Ordered top-level statements; order is execution order"""
    body: List[Expression] = field(default_factory=list)

    def __iter__(self) -> Iterator[Expression]:
        return iter(self.body)

    def __len__(self) -> int:
        return len(self.body)

    def __str__(self) -> str:
        return '\n'.join(str(stmt) for stmt in self.body)


def walk(node: Expression) -> Iterator[Expression]:
    """Depth-first pre-order traversal"""
    pending = [node]
    while pending:
        current = pending.pop()
        yield current
        pending.extend(reversed(list(current.children())))


def render_operators(node: Expression) -> str:
    """Render nested Binary and Unary nodes without recursing on their depth"""
    parts = []
    pending: List[object] = [node]
    while pending:
        item = pending.pop()
        if isinstance(item, str):
            parts.append(item)
        elif isinstance(item, Binary):
            pending.extend([")", item.right, f" {item.operator} ", item.left, "("])
        elif isinstance(item, Unary):
            pending.extend([")", item.operand, f"({item.operator} "])
        else:
            parts.append(str(item))
    return "".join(parts)
