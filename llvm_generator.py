"""LLVM code generation for Alan programs.

Forfeited into the public domain with NO WARRANTY. Read LICENSE for details.

The code generator turns an annotated Alan tree (see `alan_ast`) into an LLVM
module: one LLVM function per Alan function, plus the runtime-support
primitives from `llvm_runtime`. It descends the tree recursively, emitting
instructions through an `ir.IRBuilder` as it goes.

LLVM has no notion of nested scopes, so nested scoping is implemented with
access links. Each invocation copies its arguments into a frame (see
`llvm_frames`) whose slot 0 points at the frame of the statically enclosing
function's invocation. A variable declared N scopes out is reached by
following N access links. A call to a nested function passes the callee's
enclosing frame as a hidden first argument, found by following
`caller depth - callee depth + 1` access links from the caller's frame.

Functions are compiled in three steps: declare (signature and frame type),
compile nested functions, then emit the body. A function's nested functions
are all declared before any of them is compiled, so every function in scope
at a call site has already been declared by the time the call is lowered.

This module is organised into five sections: (1) functions that generate code
for program structure, (2) calls, (3) statements, (4) expressions and
lvalues, and (5) conditions.
"""

import dataclasses
import warnings

import alan_analyses
import alan_ast
import alan_errors
import alan_types
import llvm_frames
import llvm_runtime
import llvm_symbols
import llvm_types

from llvmlite import binding
from llvmlite import ir

from typing import Optional, Sequence


#########################
### PROGRAM STRUCTURE ###
#########################


@dataclasses.dataclass
class GeneratorOptions:
  """Special options for program generation.

  Attributes:
    module_name: Name of the generated LLVM module.
    validate: Whether to run LLVM's verifier over the finished module.
    implicit_return: If True, a procedure whose body can fall off its end
        gets an implicit `ret void`. If False, that's an error.
    triple: Target triple to record in the module, or None to leave the
        module's default in place.
  """
  module_name: str = 'alan'
  validate: bool = True
  implicit_return: bool = True
  triple: Optional[str] = None


@dataclasses.dataclass
class Context:
  """Bookkeeping for the function whose body is being generated.

  Attributes:
    function: Definition of the function.
    symbol: The function's entry in the callable namespace.
    namespace: The callable namespace for the whole module.
    builder: Builder positioned where the next instruction belongs.
    frame: Pointer to the frame of the current invocation.
    targets: Blocks that some branch jumps to. A block that isn't the entry
        block and isn't in here can never execute.
  """
  function: alan_ast.FunctionDefinition
  symbol: llvm_symbols.CallableSymbol
  namespace: llvm_symbols.CallableNamespace
  builder: ir.IRBuilder
  frame: ir.Value
  targets: set[ir.Block] = dataclasses.field(default_factory=set)

  @property
  def module(self) -> ir.Module:
    return self.symbol.function.module


def program(
    ast: alan_ast.FunctionDefinition,
    options: Optional[GeneratorOptions] = None,
    namespace: Optional[llvm_symbols.CallableNamespace] = None,
) -> ir.Module:
  """Generate: for the outermost FunctionDefinition of a program.

  Ordinarily the tree-node-to-code functions in this module aren't
  extensively commented, but as this is the one most likely to be invoked by
  a caller external to this module, we'll make an exception.

  Args:
    ast: The program's outermost function. It will be made its own parent.
        Code generation records frame types in the tree, so a tree can only
        be compiled once.
    options: Special options for program generation.
    namespace: An empty callable namespace to fill in, for callers that want
        to inspect it afterwards; if None, a private one is used.

  Returns:
    The LLVM module for the program, verified unless `options` says not to.

  Raises:
    alan_errors.Error: in any situation where generation fails. There's no
        partial result: the module under construction is abandoned.
  """
  if options is None: options = GeneratorOptions()
  if namespace is None: namespace = llvm_symbols.CallableNamespace()

  module = ir.Module(name=options.module_name)
  if options.triple is not None: module.triple = options.triple
  llvm_runtime.declare_runtime(module, namespace)

  # The outermost function has no enclosing function, so it stands in as its
  # own parent. llvm_frames supplies a placeholder frame type for its access
  # link, which nothing ever stores to or loads from.
  ast.parent = ast
  alan_analyses.check_function_tree(ast)

  declare_function(ast, module, namespace)
  function_definition(ast, namespace, options)

  if options.validate: validate(module)
  return module


def validate(module: ir.Module):
  """Have LLVM parse and verify a module.

  Raises:
    alan_errors.InvalidModuleError: LLVM rejects the module.
  """
  try:
    llvm_module = binding.parse_assembly(str(module))
    llvm_module.verify()
  except RuntimeError as e:
    raise alan_errors.InvalidModuleError(
        f'Module {module.name} failed verification: {e}') from e


def declare_function(
    ast: alan_ast.FunctionDefinition,
    module: ir.Module,
    namespace: llvm_symbols.CallableNamespace,
):
  """Declare a function: its signature, its frame type, and its symbol.

  The frame type of the function's parent must already be recorded (for the
  outermost function, there is nothing to record). Afterwards, calls to the
  function can be lowered, and functions nested in it can be declared.
  """
  if ast.name in namespace: raise alan_errors.AnnotationError(
      f'Function {ast.name} is declared more than once')

  parent_frame_type = llvm_frames.parent_frame_type(ast)
  needs_access_link = not ast.is_outermost
  function_type = llvm_types.function_type(
      ast.parameters, ast.return_typeinfo,
      parent_frame_type.as_pointer() if needs_access_link else None)
  llvm_frames.set_frame_type(ast, llvm_frames.build_frame(
      ast.parameters, ast.local_declarations, parent_frame_type))

  function = ir.Function(module, function_type, name=ast.name)
  args = list(function.args)
  if needs_access_link: args.pop(0).name = 'access_link'
  for arg, parameter in zip(args, ast.parameters):
    arg.name = parameter.name

  namespace[ast.name] = llvm_symbols.CallableSymbol(
      function=function, parameters=tuple(ast.parameters),
      return_typeinfo=ast.return_typeinfo,
      needs_access_link=needs_access_link, definition=ast)


def function_definition(
    ast: alan_ast.FunctionDefinition,
    namespace: llvm_symbols.CallableNamespace,
    options: GeneratorOptions,
):
  """Generate: for FunctionDefinition nodes, nested functions first."""
  symbol = namespace[ast.name]
  nested_functions = ast.nested_functions
  for nested in nested_functions:
    declare_function(nested, symbol.function.module, namespace)
  for nested in nested_functions:
    function_definition(nested, namespace, options)

  # Allocate the frame and copy the incoming arguments into it, access link
  # first (if there is one).
  entry = symbol.function.append_basic_block('entry')
  builder = ir.IRBuilder(entry)
  frame = builder.alloca(llvm_frames.get_frame_type(ast), name='frame')
  first_slot = llvm_frames.ACCESS_LINK_SLOT + (
      0 if symbol.needs_access_link else 1)
  for slot, arg in enumerate(symbol.function.args, start=first_slot):
    builder.store(arg, slot_address(builder, frame, slot, arg.name))

  context = Context(function=ast, symbol=symbol, namespace=namespace,
                    builder=builder, frame=frame)
  sta_sequence(ast.body, context)

  # Terminate the final block if the body didn't.
  if builder.block.is_terminated: return
  if builder.block is not entry and builder.block not in context.targets:
    builder.unreachable()  # Nothing jumps here.
  elif isinstance(ast.return_typeinfo, alan_types.Proc):
    if not options.implicit_return: raise alan_errors.MissingReturnError(
        f'Procedure {ast.name} can finish without a return statement')
    builder.ret_void()
  else:
    # Semantic analysis makes sure functions return values on every path.
    builder.unreachable()


def slot_address(
    builder: ir.IRBuilder,
    frame: ir.Value,
    slot: int,
    name: str,
) -> ir.Value:
  """Compute the address of a slot in a frame."""
  return builder.gep(frame, [llvm_types.index(0), llvm_types.index(slot)],
                     inbounds=True, name=f'{name}.addr')


def access_link_walk(context: Context, hops: int) -> ir.Value:
  """Follow `hops` access links out of the current frame.

  Args:
    context: Bookkeeping for the function being generated.
    hops: How many access links to follow; 0 means the current frame.

  Returns:
    A pointer to the frame of the invocation of the function `hops` scopes
    out from the current function.
  """
  alan_analyses.enclosing_function(context.function, hops)  # Checks hops.
  frame = context.frame
  for _ in range(hops):
    frame = context.builder.load(
        slot_address(context.builder, frame, llvm_frames.ACCESS_LINK_SLOT,
                     'access_link'),
        name='access_link')
  return frame


#############
### CALLS ###
#############


def call_subroutine(ast: alan_ast.Call, context: Context) -> ir.Value:
  """Generate: for Call nodes, in statement or expression contexts.

  Args:
    ast: The call.
    context: Bookkeeping for the function being generated.

  Returns:
    The call instruction, whose value is the callee's return value (if any).
  """
  symbol = context.namespace[ast.callee]
  if len(ast.arguments) != len(symbol.parameters):
    raise alan_errors.AnnotationError(
        f'{ast.callee} takes {len(symbol.parameters)} arguments, not the '
        f'{len(ast.arguments)} supplied in {context.function.name}')

  arguments = [exp_argument(parameter, argument, context)
               for parameter, argument in zip(symbol.parameters, ast.arguments)]

  if symbol.needs_access_link:
    hops = ast.caller_depth - ast.callee_depth + 1
    if hops < 0: raise alan_errors.AnnotationError(
        f'{context.function.name} cannot see {ast.callee}, which is nested '
        'too deeply for it to call')
    assert symbol.definition is not None  # Only runtime calls lack these.
    target = alan_analyses.enclosing_function(context.function, hops)
    if target is not symbol.definition.parent:
      raise alan_errors.AnnotationError(
          f'Call to {ast.callee} in {context.function.name} would pass a '
          f'frame of {target.name} as the access link')
    arguments.insert(0, access_link_walk(context, hops))

  # LLVM forbids naming the results of void calls.
  name = '' if isinstance(symbol.return_typeinfo, alan_types.Proc) else 'call'
  return context.builder.call(symbol.function, arguments, name=name)


def exp_argument(
    parameter: alan_types.Parameter,
    ast: alan_ast.Expression,
    context: Context,
) -> ir.Value:
  """Generate: an argument expression bound to a parameter."""
  # By-reference scalars are passed as addresses. Arrays are always addresses
  # already, no matter how they are passed.
  if parameter.reference and not isinstance(
      parameter.typeinfo, alan_types.Array):
    if not isinstance(ast, alan_ast.ExpressionValue):
      raise alan_errors.AnnotationError(
          f'Argument for reference parameter {parameter.name} in '
          f'{context.function.name} is not an lvalue')
    argument = exp_lvalue(ast.lvalue, context)
  else:
    argument = exp_expression(ast, context)
  _check_assignable(parameter.typeinfo, ast.typeinfo,
                    f'Argument for {parameter.name}', context)
  return argument


##################
### STATEMENTS ###
##################


def sta_sequence(
    statements: Sequence[alan_ast.Statement],
    context: Context,
) -> bool:
  """Generate: for a sequence of statements.

  Statements after a terminal statement are still generated, into a block of
  their own that nothing jumps to.

  Args:
    statements: Statements to generate, in order.
    context: Bookkeeping for the function being generated.

  Returns:
    Whether any statement in the sequence is terminal. If so, the builder is
    left at the end of a terminated block.
  """
  terminal = False
  warned = False
  for statement in statements:
    if context.builder.block.is_terminated:
      if not warned: warnings.warn(
          f'Unreachable statements after return in {context.function.name}')
      warned = True
      context.builder.position_at_end(
          context.builder.function.append_basic_block('unreachable'))
    terminal = sta_statement(statement, context) or terminal

  if terminal and not context.builder.block.is_terminated:
    context.builder.unreachable()
  return terminal


def sta_statement(ast: alan_ast.Statement, context: Context) -> bool:
  """Generate: for Statement nodes.

  Ordinarily the tree-node-to-code functions in this module aren't
  extensively commented, but as this one has a signature and a return value
  that's shared by all of the code generating functions for statements, it
  seems useful to document them here.

  Args:
    ast: A statement.
    context: Bookkeeping for the function being generated.

  Returns:
    True if the statement is terminal: control can't fall through it to
    whatever follows. A non-terminal statement leaves the builder at the end
    of an unterminated block.
  """
  match ast:
    case alan_ast.StatementEmpty():
      return False
    case alan_ast.StatementAssignment():
      return sta_assignment(ast, context)
    case alan_ast.StatementCall():
      call_subroutine(ast.call, context)
      return False
    case alan_ast.StatementCompound():
      return sta_sequence(ast.statements, context)
    case alan_ast.StatementIf():
      return sta_if(ast, context)
    case alan_ast.StatementWhile():
      return sta_while(ast, context)
    case alan_ast.StatementReturn():
      return sta_return(ast, context)
    case _:
      raise _UnexpectedTreeNode(f'{ast} in {context.function.name}')


def sta_assignment(
    ast: alan_ast.StatementAssignment,
    context: Context,
) -> bool:
  """Generate: for StatementAssignment nodes."""
  if isinstance(ast.destination.typeinfo, alan_types.Array):
    raise alan_errors.AnnotationError(
        f'Assignment to a whole array in {context.function.name}')
  value = exp_expression(ast.value, context)
  _check_assignable(ast.destination.typeinfo, ast.value.typeinfo,
                    'Assignment', context)
  address = exp_lvalue(ast.destination, context)
  context.builder.store(value, address)
  return False


def sta_if(ast: alan_ast.StatementIf, context: Context) -> bool:
  """Generate: for StatementIf nodes."""
  builder = context.builder
  condition = cnd_condition(ast.condition, context)
  start_block = builder.block  # Conditions can change the current block.

  then_block = builder.function.append_basic_block('then')
  else_block = (None if ast.alternative is None else
                builder.function.append_basic_block('else'))
  merge_block = builder.function.append_basic_block('endif')

  builder.position_at_end(then_block)
  if not sta_statement(ast.consequent, context):
    _branch(context, merge_block)

  if ast.alternative is not None:
    assert else_block is not None
    builder.position_at_end(else_block)
    if not sta_statement(ast.alternative, context):
      _branch(context, merge_block)

  builder.position_at_end(start_block)
  _cbranch(context, condition, then_block,
           merge_block if else_block is None else else_block)

  # Even if both branches return, the if statement isn't terminal. The merge
  # block is still there; it's just that nothing jumps to it.
  builder.position_at_end(merge_block)
  return False


def sta_while(ast: alan_ast.StatementWhile, context: Context) -> bool:
  """Generate: for StatementWhile nodes."""
  builder = context.builder
  condition_block = builder.function.append_basic_block('while')
  body_block = builder.function.append_basic_block('do')
  merge_block = builder.function.append_basic_block('endwhile')

  _branch(context, condition_block)
  builder.position_at_end(condition_block)
  condition = cnd_condition(ast.condition, context)
  _cbranch(context, condition, body_block, merge_block)

  builder.position_at_end(body_block)
  if not sta_statement(ast.body, context):
    _branch(context, condition_block)

  builder.position_at_end(merge_block)
  return False


def sta_return(ast: alan_ast.StatementReturn, context: Context) -> bool:
  """Generate: for StatementReturn nodes."""
  returns_value = not isinstance(
      context.function.return_typeinfo, alan_types.Proc)
  if returns_value != (ast.value is not None):
    raise alan_errors.AnnotationError(
        f'Return statement in {context.function.name} does not match its '
        f'return type {context.function.return_typeinfo}')
  if ast.value is None:
    context.builder.ret_void()
  else:
    value = exp_expression(ast.value, context)
    _check_assignable(context.function.return_typeinfo, ast.value.typeinfo,
                      'Return statement', context)
    context.builder.ret(value)
  return True


def _branch(context: Context, target: ir.Block):
  """Emit an unconditional branch, noting the target."""
  context.targets.add(target)
  context.builder.branch(target)


def _cbranch(
    context: Context,
    condition: ir.Value,
    if_true: ir.Block,
    if_false: ir.Block,
):
  """Emit a conditional branch, noting the targets."""
  context.targets.update((if_true, if_false))
  context.builder.cbranch(condition, if_true, if_false)


###################
### EXPRESSIONS ###
###################


def exp_expression(ast: alan_ast.Expression, context: Context) -> ir.Value:
  """Generate: for Expression nodes."""
  builder = context.builder
  match ast:
    case alan_ast.ExpressionInteger(number=number):
      return ir.Constant(llvm_types.INT, number)
    case alan_ast.ExpressionCharacter(character=character):
      return ir.Constant(llvm_types.BYTE, ord(character))
    case alan_ast.ExpressionValue(lvalue=lvalue):
      # Arrays are represented by the address of their first element, so
      # there's nothing to load.
      address = exp_lvalue(lvalue, context)
      if isinstance(lvalue.typeinfo, alan_types.Array): return address
      return builder.load(address, name=_value_name(lvalue))
    case alan_ast.ExpressionCall(call=call):
      if isinstance(call.return_typeinfo, alan_types.Proc):
        raise alan_errors.AnnotationError(
            f'Procedure {call.callee} used as a value in '
            f'{context.function.name}')
      return call_subroutine(call, context)
    case alan_ast.ExpressionUnary(op=alan_ast.UnaryOp.PLUS):
      return exp_expression(ast.expression, context)
    case alan_ast.ExpressionUnary(op=alan_ast.UnaryOp.MINUS):
      return builder.neg(exp_expression(ast.expression, context), name='neg')
    case alan_ast.ExpressionBinary():
      return exp_expression_binary(ast, context)
    case _:
      raise _UnexpectedTreeNode(f'{ast} in {context.function.name}')


def exp_expression_binary(
    ast: alan_ast.ExpressionBinary,
    context: Context,
) -> ir.Value:
  """Generate: for ExpressionBinary nodes."""
  builder = context.builder
  # Only division and remainder care about signedness.
  signed = _is_signed(ast.expression_left, ast.expression_right,
                      ast.op.name.lower(), context)

  left = exp_expression(ast.expression_left, context)
  right = exp_expression(ast.expression_right, context)
  match ast.op:
    case alan_ast.BinaryOp.ADD:
      return builder.add(left, right, name='add')
    case alan_ast.BinaryOp.SUBTRACT:
      return builder.sub(left, right, name='sub')
    case alan_ast.BinaryOp.MULTIPLY:
      return builder.mul(left, right, name='mul')
    case alan_ast.BinaryOp.DIVIDE if signed:
      return builder.sdiv(left, right, name='sdiv')
    case alan_ast.BinaryOp.DIVIDE:
      return builder.udiv(left, right, name='udiv')
    case alan_ast.BinaryOp.MODULO if signed:
      return builder.srem(left, right, name='srem')
    case alan_ast.BinaryOp.MODULO:
      return builder.urem(left, right, name='urem')
    case _:
      raise _UnexpectedTreeNode(f'{ast.op} in {context.function.name}')


def exp_lvalue(ast: alan_ast.LValue, context: Context) -> ir.Value:
  """Generate: the address denoted by an LValue node.

  For arrays, the address is that of the first element (or, if there's a
  subscript, of the selected element).
  """
  match ast:
    case alan_ast.LValueString():
      return exp_string(ast, context)
    case alan_ast.LValueIdentifier():
      pass
    case _:
      raise _UnexpectedTreeNode(f'{ast} in {context.function.name}')

  builder = context.builder
  frame = access_link_walk(context, ast.nesting_distance)
  slot = slot_address(builder, frame, ast.offset, ast.name)
  is_array = isinstance(ast.declared_typeinfo, alan_types.Array)

  if ast.is_parameter and (is_array or ast.is_reference):
    # The slot holds a pointer to the caller's storage.
    address = builder.load(slot, name=f'{ast.name}.ptr')
  elif is_array:
    # The slot holds the array itself.
    address = builder.gep(slot, [llvm_types.index(0), llvm_types.index(0)],
                          inbounds=True, name=f'{ast.name}.ptr')
  else:
    address = slot

  if ast.index is None: return address
  if not is_array: raise alan_errors.AnnotationError(
      f'Scalar {ast.name} is subscripted in {context.function.name}')
  subscript = exp_expression(ast.index, context)
  if isinstance(ast.index.typeinfo, alan_types.Byte):
    # GEP indices are signed, but bytes are not.
    subscript = builder.zext(subscript, llvm_types.INT,
                             name=f'{ast.name}.index')
  return builder.gep(address, [subscript], name=f'{ast.name}.elem')


def exp_string(ast: alan_ast.LValueString, context: Context) -> ir.Value:
  """Generate: for LValueString nodes; a NUL-terminated global constant."""
  data = bytearray(ast.text.encode('latin-1')) + b'\0'
  array_type = ir.ArrayType(llvm_types.BYTE, len(data))
  string = ir.GlobalVariable(context.module, array_type,
                             name=context.module.get_unique_name('str'))
  string.linkage = 'private'
  string.global_constant = True
  string.unnamed_addr = True
  string.initializer = ir.Constant(array_type, data)
  return context.builder.gep(
      string, [llvm_types.index(0), llvm_types.index(0)],
      inbounds=True, name='str')


def _value_name(ast: alan_ast.LValue) -> str:
  """A name for a value loaded from an lvalue."""
  return ast.name if isinstance(ast, alan_ast.LValueIdentifier) else 'value'


def _is_signed(
    left: alan_ast.Expression,
    right: alan_ast.Expression,
    what: str,
    context: Context,
) -> bool:
  """True for two int operands, False for two byte operands; else an error."""
  kind = alan_types.same_scalar(left.typeinfo, right.typeinfo)
  if kind is None: raise alan_errors.OperandTypeError(
      f'Operands of {what} in {context.function.name} have types '
      f'{left.typeinfo} and {right.typeinfo}')
  return kind is alan_types.Int


def _check_assignable(
    target: alan_types.Type,
    source: alan_types.Type,
    what: str,
    context: Context,
):
  """Raise OperandTypeError unless a `source` value can go in a `target`."""
  if (isinstance(target, alan_types.Array) and
      isinstance(source, alan_types.Array)):
    target, source = target.element_typeinfo, source.element_typeinfo
  if alan_types.same_scalar(target, source) is None:
    raise alan_errors.OperandTypeError(
        f'{what} in {context.function.name} needs {target}, not {source}')


##################
### CONDITIONS ###
##################


def cnd_condition(ast: alan_ast.Condition, context: Context) -> ir.Value:
  """Generate: for Condition nodes; the result is an i1 value."""
  builder = context.builder
  match ast:
    case alan_ast.ConditionConstant(value=value):
      return ir.Constant(llvm_types.BOOL, int(value))
    case alan_ast.ConditionNot(condition=condition):
      return builder.not_(cnd_condition(condition, context), name='not')
    case alan_ast.ConditionCompare():
      signed = _is_signed(ast.expression_left, ast.expression_right,
                          f'comparison {ast.op.value}', context)
      left = exp_expression(ast.expression_left, context)
      right = exp_expression(ast.expression_right, context)
      compare = builder.icmp_signed if signed else builder.icmp_unsigned
      return compare(ast.op.value, left, right, name='cmp')
    case alan_ast.ConditionLogic():
      return cnd_logic(ast, context)
    case _:
      raise _UnexpectedTreeNode(f'{ast} in {context.function.name}')


def cnd_logic(ast: alan_ast.ConditionLogic, context: Context) -> ir.Value:
  """Generate: for ConditionLogic nodes, with short-circuit evaluation.

  The left condition is evaluated where we are. If it settles the answer
  (false for `&`, true for `|`), control goes straight to a merge block;
  otherwise a middle block evaluates the right condition and combines it
  with the left. A phi in the merge block picks whichever value arrived.
  """
  builder = context.builder
  is_and = ast.op is alan_ast.LogicOp.AND
  left = cnd_condition(ast.condition_left, context)
  left_block = builder.block

  middle_block = builder.function.append_basic_block('middle')
  merge_block = builder.function.append_basic_block('merge')
  if is_and:
    _cbranch(context, left, middle_block, merge_block)
  else:
    _cbranch(context, left, merge_block, middle_block)

  builder.position_at_end(middle_block)
  right = cnd_condition(ast.condition_right, context)
  combined = (builder.and_(left, right, name='and') if is_and else
              builder.or_(left, right, name='or'))
  _branch(context, merge_block)
  middle_block = builder.block  # The right condition may have moved us.

  builder.position_at_end(merge_block)
  phi = builder.phi(llvm_types.BOOL, name='and' if is_and else 'or')
  phi.add_incoming(left, left_block)
  phi.add_incoming(combined, middle_block)
  return phi


class _UnexpectedTreeNode(alan_errors.AnnotationError):
  """Found a tree node we don't know how to handle."""
