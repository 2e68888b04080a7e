"""The global namespace of callables in a compiled Alan module.

Forfeited into the public domain with NO WARRANTY. Read LICENSE for details.

Alan functions have qualified names that are unique across the whole program,
so every callable in the module (compiled source functions and runtime-support
primitives alike) lives in a single flat namespace. Entries are written once,
while functions are declared, and only read afterwards, when call sites are
lowered. A lookup miss therefore always means something has gone wrong
upstream; it is never a "not defined yet" situation.

Each entry records whether callers must pass an access link. That decision is
made once, when the callable is declared, and consulted at every call site.
"""

import dataclasses
import math

import alan_ast
import alan_errors
import alan_types
import llvm_frames

from llvmlite import ir

from typing import Iterator, Optional, Sequence


@dataclasses.dataclass
class CallableSymbol:
  """Bookkeeping for one callable.

  Attributes:
    function: The LLVM function.
    parameters: Declared (source-level) parameters, not counting any access
        link.
    return_typeinfo: Declared return type.
    needs_access_link: If True, callers pass a pointer to the callee's
        enclosing frame as an extra leading argument.
    definition: The function's definition, or None for runtime primitives.
  """
  function: ir.Function
  parameters: tuple[alan_types.Parameter, ...]
  return_typeinfo: alan_types.Type
  needs_access_link: bool = False
  definition: Optional[alan_ast.FunctionDefinition] = None

  @property
  def name(self) -> str:
    return self.function.name

  def __str__(self) -> str:
    parameters = '; '.join(str(p) for p in self.parameters)
    link = ' +link' if self.needs_access_link else ''
    return f'({parameters}) : {self.return_typeinfo}{link}'


class CallableNamespace:
  """A write-once mapping from qualified names to CallableSymbols."""
  bindings: dict[str, CallableSymbol]

  def __init__(self):
    self.bindings = {}

  def __setitem__(self, name: str, symbol: CallableSymbol):
    if name in self.bindings: raise alan_errors.AnnotationError(
        f'Callable {name} is already declared')
    self.bindings[name] = symbol

  def __getitem__(self, name: str) -> CallableSymbol:
    try:
      return self.bindings[name]
    except KeyError:
      raise alan_errors.UnresolvedCalleeError(
          f'Callable {name} is not declared') from None

  def __contains__(self, name: str) -> bool:
    return name in self.bindings

  def __iter__(self) -> Iterator[str]:
    return iter(self.bindings)

  def __len__(self) -> int:
    return len(self.bindings)


### Utilities ###


def namespace_text(namespace: CallableNamespace) -> Sequence[str]:
  """Produce a printable representation of a callable namespace.

  Runtime primitives are listed first, then compiled functions along with the
  layouts of their frames. The format is intended for humans to read.

  Args:
    namespace: A callable namespace.

  Returns:
    A sequence of strings (without newlines) that together represent the
    contents of the namespace.
  """
  if namespace.bindings:
    max_name_len = max(len(k) for k in namespace.bindings)
  else:
    max_name_len = 0
  name_width = max(12, 4 * math.ceil((max_name_len + 2) / 4))

  text = ['Runtime:']
  text.extend(f'  {k.ljust(name_width)}{v}'
              for k, v in namespace.bindings.items() if v.definition is None)
  text.append('Functions:')
  for k, v in namespace.bindings.items():
    if v.definition is None: continue
    text.append(f'  {k.ljust(name_width)}{v}')
    if v.definition.frame_type is not None:
      text.extend(f'    {slot}'
                  for slot in llvm_frames.frame_slots(v.definition))
  return text
