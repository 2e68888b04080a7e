"""Runtime-support primitives for compiled Alan programs.

Forfeited into the public domain with NO WARRANTY. Read LICENSE for details.

Alan programs do their I/O and string handling through a small library of
primitives. Most are only declared here and are linked in from the runtime
library later. A few are pure glue that this module defines in terms of the
others:

   extend(b : byte) : int      zero-extends a byte to an int,
   shrink(i : int) : byte      truncates an int to a byte,
   writeByte(b : byte) : proc  writes a byte as a number, and
   readByte() : byte           reads a number into a byte.

None of the primitives takes an access link.
"""

import alan_types
import llvm_symbols
import llvm_types

from llvmlite import ir

from typing import Sequence


_INT = alan_types.Int()
_BYTE = alan_types.Byte()
_PROC = alan_types.Proc()


def _string(name: str) -> alan_types.Parameter:
  """A `reference <name> : byte []` parameter."""
  return alan_types.Parameter(
      name, alan_types.Array(alan_types.Byte()), reference=True)


# Primitives supplied by the runtime library: (name, return type, parameters).
_DECLARED = (
    ('writeInteger', _PROC, [alan_types.Parameter('n', _INT)]),
    ('writeChar', _PROC, [alan_types.Parameter('c', _BYTE)]),
    ('writeString', _PROC, [_string('s')]),
    ('readInteger', _INT, []),
    ('readChar', _BYTE, []),
    ('readString', _PROC, [alan_types.Parameter('n', _INT), _string('s')]),
    ('strlen', _INT, [_string('s')]),
    ('strcmp', _INT, [_string('s1'), _string('s2')]),
    ('strcpy', _PROC, [_string('trg'), _string('src')]),
    ('strcat', _PROC, [_string('trg'), _string('src')]),
)


def declare_runtime(
    module: ir.Module,
    namespace: llvm_symbols.CallableNamespace,
):
  """Add all runtime primitives to a module and to its callable namespace."""
  for name, return_typeinfo, parameters in _DECLARED:
    _declare(module, namespace, name, return_typeinfo, parameters)

  # extend (b : byte) : int
  extend = _declare(module, namespace, 'extend', _INT,
                    [alan_types.Parameter('b', _BYTE)])
  builder = _define(extend)
  builder.ret(builder.zext(extend.args[0], llvm_types.INT, name='extend'))

  # shrink (i : int) : byte
  shrink = _declare(module, namespace, 'shrink', _BYTE,
                    [alan_types.Parameter('i', _INT)])
  builder = _define(shrink)
  builder.ret(builder.trunc(shrink.args[0], llvm_types.BYTE, name='shrink'))

  # writeByte (b : byte) : proc
  write_byte = _declare(module, namespace, 'writeByte', _PROC,
                        [alan_types.Parameter('b', _BYTE)])
  builder = _define(write_byte)
  extended = builder.call(extend, [write_byte.args[0]], name='extended')
  builder.call(namespace['writeInteger'].function, [extended])
  builder.ret_void()

  # readByte () : byte
  read_byte = _declare(module, namespace, 'readByte', _BYTE, [])
  builder = _define(read_byte)
  number = builder.call(namespace['readInteger'].function, [], name='number')
  builder.ret(builder.call(shrink, [number], name='shrunk'))


def _declare(
    module: ir.Module,
    namespace: llvm_symbols.CallableNamespace,
    name: str,
    return_typeinfo: alan_types.Type,
    parameters: Sequence[alan_types.Parameter],
) -> ir.Function:
  """declare_runtime helper: declare one primitive and record its symbol."""
  function = ir.Function(
      module, llvm_types.function_type(parameters, return_typeinfo), name=name)
  for arg, parameter in zip(function.args, parameters):
    arg.name = parameter.name
  namespace[name] = llvm_symbols.CallableSymbol(
      function=function, parameters=tuple(parameters),
      return_typeinfo=return_typeinfo, needs_access_link=False)
  return function


def _define(function: ir.Function) -> ir.IRBuilder:
  """declare_runtime helper: start the body of a glue primitive."""
  return ir.IRBuilder(function.append_basic_block('entry'))
