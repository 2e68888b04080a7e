"""Type metadata for Alan values, variables, and subroutines.

Forfeited into the public domain with NO WARRANTY. Read LICENSE for details.

Alan's type system is tiny: two integer types (`int`, a signed 16-bit number,
and `byte`, an unsigned 8-bit number), one-dimensional arrays of either, and
the "no value" type `proc` used as the return type of procedures. Booleans
exist only inside conditions and never as storable values, so they have no
type here.

By the time a tree reaches the code generator, semantic analysis has already
attached one of these types to every variable, parameter, function and
expression. This module says nothing about how types are represented on a
target; see `llvm_types` for that.
"""

from typing import Optional


class Type:
  """Base class for Alan types."""
  def __str__(self):
    return self.__class__.__name__.lower()


class Scalar(Type):
  """Base class for types whose values fit in a register."""


class Int(Scalar):
  """A signed integer."""


class Byte(Scalar):
  """An unsigned byte. Character literals have this type."""


class Proc(Type):
  """The "no value" type; only ever used as a return type."""


class Array(Type):
  """A one-dimensional array of scalars.

  Attributes:
    element_typeinfo: Type of the array's elements.
    size: Number of elements, or None for array parameters declared without
        a size (e.g. `reference s : byte []`). Unsized arrays can only be
        passed around by reference; they never occupy storage of their own.
  """
  element_typeinfo: Scalar
  size: Optional[int]

  def __init__(self, element_typeinfo: Scalar, size: Optional[int] = None):
    super().__init__()
    self.element_typeinfo = element_typeinfo
    self.size = size

  def __str__(self):
    size = '' if self.size is None else str(self.size)
    return f'{self.element_typeinfo}[{size}]'


class Parameter:
  """Container for subroutine parameters."""
  name: str
  typeinfo: Type
  reference: bool  # corresponds to the `reference` parameter qualifier.

  def __init__(self, name: str, typeinfo: Type, reference: bool = False):
    self.name = name
    self.typeinfo = typeinfo
    self.reference = reference

  def __str__(self):
    prefix = 'reference ' if self.reference else ''
    return f'{prefix}{self.name} : {self.typeinfo}'


def same_scalar(left: Type, right: Type) -> Optional[type[Scalar]]:
  """Return Int or Byte if both types are that scalar type, else None."""
  for kind in (Int, Byte):
    if isinstance(left, kind) and isinstance(right, kind): return kind
  return None
