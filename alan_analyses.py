"""Analyses and consistency checks of annotated Alan trees.

Forfeited into the public domain with NO WARRANTY. Read LICENSE for details.

Semantic analysis hands the code generator a tree annotated with everything
that static scoping needs (see the `alan_ast` docstring). The functions here
answer structural questions about that tree:

   link_parents

fills in `parent` references for nested functions (semantic analysis may use
it, and tests certainly do);

   nesting_depth, enclosing_function

measure and walk the function-nesting tree; and

   check_function_tree

verifies the annotations before code generation starts, so that a broken
contract is reported against the offending construct rather than surfacing
later as a malformed module.
"""

import alan_ast
import alan_descent
import alan_errors
import alan_types


def link_parents(ast: alan_ast.FunctionDefinition):
  """Make every function nested in `ast` point at its enclosing function.

  The `parent` of `ast` itself is left alone; the code generator seeds the
  outermost function as its own parent.
  """
  for function in alan_descent.functions(ast):
    for nested in function.nested_functions:
      nested.parent = function


def nesting_depth(ast: alan_ast.FunctionDefinition) -> int:
  """Number of parent hops from `ast` to the outermost function."""
  depth = 0
  while not ast.is_outermost:
    if ast.parent is None: raise alan_errors.MissingContextError(
        f'Function {ast.name} has no parent')
    ast = ast.parent
    depth += 1
  return depth


def enclosing_function(
    ast: alan_ast.FunctionDefinition,
    hops: int,
) -> alan_ast.FunctionDefinition:
  """Walk `hops` parent references outward from `ast`.

  Args:
    ast: Function to start from.
    hops: 0 for `ast` itself, 1 for its parent, and so on.

  Returns:
    The enclosing function `hops` lexical levels out.

  Raises:
    alan_errors.MissingContextError: the walk would pass the outermost
        function, or encountered a function without a parent.
  """
  start = ast
  for _ in range(hops):
    if ast.parent is None: raise alan_errors.MissingContextError(
        f'Function {ast.name} has no parent')
    if ast.is_outermost: raise alan_errors.MissingContextError(
        f'Walking {hops} scopes out of {start.name} passes the outermost '
        f'function {ast.name}')
    ast = ast.parent
  return ast


def check_function_tree(ast: alan_ast.FunctionDefinition):
  """Checks whether an annotated tree honours the code generator's contract.

  Current assumptions checked are:
    - `ast` is the outermost function (its own parent), and every nested
      function's parent is the function that declares it.
    - Qualified function names are unique.
    - Array parameters are passed by reference.
    - Variable references do not reach past the outermost function, refer to
      slots that exist in the declaring function's frame, and are only
      subscripted when they refer to arrays.
    - Call sites carry the nesting depths of their caller and (for calls to
      functions in the tree) their callee.
  Types are checked later, by the type mapping in `llvm_types`.

  Args:
    ast: The outermost function of the program.

  Raises:
    alan_errors.MissingContextError: a parent reference is wrong or missing.
    alan_errors.AnnotationError: any other assumption has been violated.
  """
  if not ast.is_outermost: raise alan_errors.MissingContextError(
      f'Outermost function {ast.name} must be its own parent')

  # Parent references and unique names.
  depths: dict[str, int] = {}
  for function in alan_descent.functions(ast):
    if function.name in depths: raise alan_errors.AnnotationError(
        f'Function name {function.name} is defined more than once')
    depths[function.name] = nesting_depth(function)
    for nested in function.nested_functions:
      if nested.parent is not function: raise alan_errors.MissingContextError(
          f'Function {nested.name} does not have {function.name} as its '
          'parent')

  for function in alan_descent.functions(ast):
    for parameter in function.parameters:
      if (isinstance(parameter.typeinfo, alan_types.Array) and
          not parameter.reference): raise alan_errors.AnnotationError(
          f'Array parameter {parameter.name} of {function.name} must be '
          'passed by reference')

    for node in alan_descent.body_nodes(function):
      match node:
        case alan_ast.LValueIdentifier():
          _check_lvalue(node, function)
        case alan_ast.Call():
          _check_call(node, function, depths)


def _check_lvalue(
    ast: alan_ast.LValueIdentifier,
    function: alan_ast.FunctionDefinition,
):
  """check_function_tree helper: check one variable reference."""
  declaring = enclosing_function(function, ast.nesting_distance)
  num_parameters = len(declaring.parameters)
  num_slots = 1 + num_parameters + len(declaring.local_variables)
  if not 0 < ast.offset < num_slots: raise alan_errors.AnnotationError(
      f'{ast.name} in {function.name} refers to slot {ast.offset} of '
      f'{declaring.name}, whose frame has {num_slots} slots')
  if ast.is_parameter != (ast.offset <= num_parameters):
    kind = 'parameter' if ast.is_parameter else 'local variable'
    raise alan_errors.AnnotationError(
        f'{ast.name} in {function.name} is marked as a {kind} but slot '
        f'{ast.offset} of {declaring.name} is not one')
  if ast.is_reference and not ast.is_parameter:
    raise alan_errors.AnnotationError(
        f'Local variable {ast.name} in {function.name} is marked as a '
        'reference')
  if (ast.index is not None and
      not isinstance(ast.declared_typeinfo, alan_types.Array)):
    raise alan_errors.AnnotationError(
        f'Scalar {ast.name} in {function.name} is subscripted')


def _check_call(
    ast: alan_ast.Call,
    function: alan_ast.FunctionDefinition,
    depths: dict[str, int],
):
  """check_function_tree helper: check one call site's depth annotations."""
  if ast.caller_depth != depths[function.name]:
    raise alan_errors.AnnotationError(
        f'Call to {ast.callee} in {function.name} says the caller is at '
        f'depth {ast.caller_depth}, not {depths[function.name]}')
  # Calls to runtime primitives have no depth of their own to check.
  if ast.callee in depths and ast.callee_depth != depths[ast.callee]:
    raise alan_errors.AnnotationError(
        f'Call to {ast.callee} in {function.name} says the callee is at '
        f'depth {ast.callee_depth}, not {depths[ast.callee]}')
