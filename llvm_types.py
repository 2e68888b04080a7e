"""LLVM representations of Alan types.

Forfeited into the public domain with NO WARRANTY. Read LICENSE for details.

Alan `int` is a 16-bit integer and `byte` an 8-bit one; LLVM integers carry
no signedness, so the choice between signed and unsigned operations is made
by the code generator from the Alan types of the operands. Conditions are
1-bit integers. Arrays stored in frames are LLVM arrays, but arrays passed as
parameters are always pointers to their first element, as are by-reference
scalars.
"""

import alan_errors
import alan_types

from llvmlite import ir

from typing import Optional, Sequence


INT = ir.IntType(16)
BYTE = ir.IntType(8)
BOOL = ir.IntType(1)
VOID = ir.VoidType()

# Struct field and aggregate indices in GEP instructions.
INDEX = ir.IntType(32)


def value_type(typeinfo: alan_types.Type) -> ir.Type:
  """LLVM type for storing a value of an Alan type in a frame."""
  match typeinfo:
    case alan_types.Int():
      return INT
    case alan_types.Byte():
      return BYTE
    case alan_types.Array(size=None):
      raise alan_errors.TypeMappingError(
          f'Unsized array type {typeinfo} cannot be stored')
    case alan_types.Array():
      return ir.ArrayType(value_type(typeinfo.element_typeinfo), typeinfo.size)
    case _:
      raise alan_errors.TypeMappingError(
          f'Type {typeinfo} has no storable LLVM representation')


def return_type(typeinfo: alan_types.Type) -> ir.Type:
  """LLVM type for the return value of a function with an Alan return type."""
  match typeinfo:
    case alan_types.Int() | alan_types.Byte():
      return value_type(typeinfo)
    case alan_types.Proc():
      return VOID
    case _:
      raise alan_errors.TypeMappingError(
          f'Type {typeinfo} cannot be returned from a function')


def parameter_type(parameter: alan_types.Parameter) -> ir.Type:
  """LLVM type for passing a parameter (and for its frame slot)."""
  match parameter.typeinfo:
    case alan_types.Array():
      return value_type(parameter.typeinfo.element_typeinfo).as_pointer()
    case alan_types.Int() | alan_types.Byte() if parameter.reference:
      return value_type(parameter.typeinfo).as_pointer()
    case alan_types.Int() | alan_types.Byte():
      return value_type(parameter.typeinfo)
    case _:
      raise alan_errors.TypeMappingError(
          f'Parameter {parameter.name} has type {parameter.typeinfo}, which '
          'cannot be passed')


def function_type(
    parameters: Sequence[alan_types.Parameter],
    return_typeinfo: alan_types.Type,
    access_link: Optional[ir.Type] = None,
) -> ir.FunctionType:
  """LLVM type for a callable.

  Args:
    parameters: Declared parameters.
    return_typeinfo: Declared return type.
    access_link: If not None, the type of an extra leading parameter that
        carries the caller-supplied access link.

  Returns:
    The function type described.
  """
  arg_types = [parameter_type(p) for p in parameters]
  if access_link is not None: arg_types.insert(0, access_link)
  return ir.FunctionType(return_type(return_typeinfo), arg_types)


def index(number: int) -> ir.Constant:
  """An i32 constant for use as a GEP index."""
  return ir.Constant(INDEX, number)
