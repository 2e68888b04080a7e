"""The Alan compiler's LLVM back end.

Forfeited into the public domain with NO WARRANTY. Read LICENSE for details.

Alan is a small Pascal-like teaching language with nested functions, `int`
and `byte` scalars, arrays, and by-reference parameters. This module is the
last stage of an Alan compiler: it accepts a program that earlier stages have
already parsed and checked, in the form of an annotated tree (see `alan_ast`),
and turns it into LLVM IR. From there, LLVM does the rest: this module can
also hand the IR to LLVM's own back end for a native object file or assembly
listing.

Parsing and semantic analysis live elsewhere, so there is no command line
here; a front end uses the `Compiler` class as a library:

   compiler = alan_compiler.Compiler()
   ir_text = compiler.compile(ast)
   object_code = compiler.assemble(ir_text)

The resulting object code still needs linking against the Alan runtime
library, which supplies primitives like `writeInteger` (see `llvm_runtime`).
"""

import dataclasses

import alan_ast
import alan_errors
import llvm_generator
import llvm_symbols

from llvmlite import binding

from typing import Optional, Sequence


__version__ = 'Alan LLVM back end 0.1 circa October 2026'


@dataclasses.dataclass
class Compiler:
  """Alan to LLVM

  Attributes:
    module_name: Name of the LLVM module to generate.
    triple: Target triple for the module and for native code generation, or
        None for the host's.
    implicit_return: Whether procedures that can finish without a return
        statement get an implicit one; if not, they're an error.
    validate: Whether to run LLVM's verifier over each generated module.
  """
  module_name: str = 'alan'
  triple: Optional[str] = None
  implicit_return: bool = True
  validate: bool = True

  def compile(self, ast: alan_ast.FunctionDefinition) -> str:
    """Compile an annotated Alan program into textual LLVM IR.

    Args:
      ast: The program's outermost function.

    Returns:
      LLVM IR for the program.
    """
    return str(llvm_generator.program(ast, self._options()))

  def listing(self, ast: alan_ast.FunctionDefinition) -> Sequence[str]:
    """Compile an annotated Alan program and list its callables and frames.

    Returns:
      Lines of text (without newlines) describing every callable in the
      compiled module and the frame layout of every compiled function.
    """
    namespace = llvm_symbols.CallableNamespace()
    llvm_generator.program(ast, self._options(), namespace)
    return llvm_symbols.namespace_text(namespace)

  def assemble(self, ir_text: str) -> bytes:
    """Translate LLVM IR from `compile` into a native object file."""
    machine = self._target_machine()
    return machine.emit_object(self._parse(ir_text, machine))

  def assembly(self, ir_text: str) -> str:
    """Translate LLVM IR from `compile` into native assembly code."""
    machine = self._target_machine()
    return machine.emit_assembly(self._parse(ir_text, machine))

  def _options(self) -> llvm_generator.GeneratorOptions:
    return llvm_generator.GeneratorOptions(
        module_name=self.module_name, validate=self.validate,
        implicit_return=self.implicit_return, triple=self.triple)

  def _parse(
      self,
      ir_text: str,
      machine: binding.TargetMachine,
  ) -> binding.ModuleRef:
    try:
      llvm_module = binding.parse_assembly(ir_text)
      llvm_module.verify()
    except RuntimeError as e:
      raise alan_errors.InvalidModuleError(
          f'LLVM rejected module {self.module_name}: {e}') from e
    llvm_module.triple = machine.triple
    llvm_module.data_layout = str(machine.target_data)
    return llvm_module

  def _target_machine(self) -> binding.TargetMachine:
    binding.initialize_native_target()
    binding.initialize_native_asmprinter()
    target = (binding.Target.from_default_triple() if self.triple is None else
              binding.Target.from_triple(self.triple))
    return target.create_target_machine()
