"""Frames (activation records) for compiled Alan functions.

Forfeited into the public domain with NO WARRANTY. Read LICENSE for details.

Every invocation of a compiled Alan function allocates one frame on the stack
and copies its incoming arguments into it. The frame is an LLVM struct laid
out like this:

     [ Access link: pointer to the enclosing function's frame ]   slot 0
     [ Parameter 1 (a pointer if by reference or an array)    ]   slot 1
     [ Parameter 2                                            ]
     [ ...                                                    ]
     [ Local variable 1 (arrays stored inline)                ]   slot 1 + k
     [ Local variable 2                                       ]
     [ ...                                                    ]

Nested functions take no slots: each has a frame of its own, whose access
link points at a frame of this layout. That's why a function's frame type must
be built before the frame types of the functions nested inside it.

The outermost function is its own parent and has no enclosing frame; its
access link slot points at a placeholder type and is never stored to.
"""

import dataclasses

import alan_ast
import alan_errors
import alan_types
import llvm_types

from llvmlite import ir

from typing import Sequence, Union


ACCESS_LINK_SLOT = 0

# Stands in for the frame type of the outermost function's (nonexistent)
# enclosing function.
PLACEHOLDER_FRAME_TYPE = llvm_types.BOOL.as_pointer()


@dataclasses.dataclass
class FrameSlot:
  """Describes one slot in a frame, for listings and checks.

  Attributes:
    name: Name of the parameter or variable in the slot; for slot 0,
        '<access link>'.
    kind: One of 'access link', 'parameter', or 'local'.
    llvm_type: LLVM type of the slot.
  """
  name: str
  kind: str
  llvm_type: ir.Type

  def __str__(self) -> str:
    return f'{self.kind:12} {self.name:16} {self.llvm_type}'


def build_frame(
    parameters: Sequence[alan_types.Parameter],
    local_declarations: Sequence[
        Union[alan_ast.LocalVariable, alan_ast.FunctionDefinition]],
    parent_frame_type: ir.Type,
) -> ir.LiteralStructType:
  """Construct a function's frame type.

  Args:
    parameters: The function's declared parameters.
    local_declarations: The function's local declarations; nested function
        declarations are skipped.
    parent_frame_type: Frame type of the enclosing function.

  Returns:
    The frame type, laid out as described in the module docstring.

  Raises:
    alan_errors.TypeMappingError: a parameter or variable has a type with no
        LLVM representation.
  """
  elements = [parent_frame_type.as_pointer()]
  elements.extend(llvm_types.parameter_type(p) for p in parameters)
  elements.extend(llvm_types.value_type(d.typeinfo) for d in local_declarations
                  if isinstance(d, alan_ast.LocalVariable))
  return ir.LiteralStructType(elements)


def frame_slots(ast: alan_ast.FunctionDefinition) -> list[FrameSlot]:
  """List the slots of a function's (already built) frame."""
  elements = get_frame_type(ast).elements
  names = ([('<access link>', 'access link')] +
           [(p.name, 'parameter') for p in ast.parameters] +
           [(v.name, 'local') for v in ast.local_variables])
  return [FrameSlot(name=name, kind=kind, llvm_type=llvm_type)
          for (name, kind), llvm_type in zip(names, elements)]


### Single-assignment frame type bookkeeping ###


def set_frame_type(
    ast: alan_ast.FunctionDefinition,
    frame_type: ir.LiteralStructType,
):
  """Record a function's frame type. Each function gets exactly one."""
  if ast.frame_type is not None: raise alan_errors.MissingContextError(
      f'Function {ast.name} already has a frame type')
  ast.frame_type = frame_type


def get_frame_type(ast: alan_ast.FunctionDefinition) -> ir.LiteralStructType:
  """Retrieve a function's frame type, which must already be recorded."""
  if ast.frame_type is None: raise alan_errors.MissingContextError(
      f'Function {ast.name} has no frame type yet')
  return ast.frame_type


def parent_frame_type(ast: alan_ast.FunctionDefinition) -> ir.Type:
  """Retrieve the frame type that a function's access link points to."""
  if ast.parent is None: raise alan_errors.MissingContextError(
      f'Function {ast.name} does not have a parent')
  if ast.is_outermost: return PLACEHOLDER_FRAME_TYPE
  if ast.parent.frame_type is None: raise alan_errors.MissingContextError(
      f'Parent {ast.parent.name} of function {ast.name} does not have a '
      'frame type')
  return ast.parent.frame_type
