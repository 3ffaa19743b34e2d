"""
Albus runtime values
A closed tagged union: Integer, Text, Character, Boolean, Void
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class ValueKind(Enum):
  """Runtime type; the value is the type name used in annotations and errors"""
  INTEGER = "int"
  TEXT = "string"
  CHARACTER = "char"
  BOOLEAN = "bool"
  VOID = "void"


@dataclass(frozen=True)
class Value:
  """An immutable runtime value"""
  kind: ValueKind
  data: Any = None

  @property
  def type_name(self) -> str:
    return self.kind.value

  def is_a(self, kind: ValueKind) -> bool:
    return self.kind is kind

  def __str__(self) -> str:
    if self.kind is ValueKind.BOOLEAN:
      return "true" if self.data else "false"
    if self.kind is ValueKind.VOID:
      return "void"
    return str(self.data)


# ============================================================================
# CONSTRUCTORS
# ============================================================================

def make_integer(value: int) -> Value:
  return Value(ValueKind.INTEGER, int(value))


def make_text(value: str) -> Value:
  return Value(ValueKind.TEXT, value)


def make_character(value: str) -> Value:
  if len(value) != 1:
    raise ValueError(f"character value must hold exactly one character, got {value!r}")
  return Value(ValueKind.CHARACTER, value)


def make_boolean(value: bool) -> Value:
  return TRUE if value else FALSE


TRUE = Value(ValueKind.BOOLEAN, True)
FALSE = Value(ValueKind.BOOLEAN, False)
VOID = Value(ValueKind.VOID)

# Returned wherever evaluation fails
FALSE_SENTINEL = FALSE


TYPE_NAMES: Dict[str, ValueKind] = {kind.value: kind for kind in ValueKind}


def kind_for_type_name(name: str) -> Optional[ValueKind]:
  """Resolve a type annotation such as 'int' to a value kind"""
  return TYPE_NAMES.get(name)


def literal_form(value: Value) -> str:
  """Render a value the way it is written in source"""
  if value.kind is ValueKind.TEXT:
    return f'"{value.data}"'
  if value.kind is ValueKind.CHARACTER:
    return f"'{value.data}'"
  return str(value)
