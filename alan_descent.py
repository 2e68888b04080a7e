"""Utilities for descending into annotated Alan trees.

Forfeited into the public domain with NO WARRANTY. Read LICENSE for details.

`depth_first` visits every node beneath (and including) a starting node;
`functions` visits only the function-nesting tree. Neither follows a
function's `parent` back-reference or its `frame_type`, since those are not
children. Code in `alan_analyses` uses these helpers; code generation descends
into trees by hand.
"""

import dataclasses

import alan_ast

from typing import Iterator


def depth_first(ast: alan_ast.AstNode) -> Iterator[alan_ast.AstNode]:
  """Yield `ast` and all of its descendants, parents before children.

  Children are yielded in the order in which they appear in their parent's
  fields, so statements in a sequence come out in source order.

  Args:
    ast: Root of the tree to traverse.

  Yields:
    Tree nodes in pre-order.
  """
  todos: list[alan_ast.AstNode] = [ast]
  while todos:
    node = todos.pop()
    yield node
    todos.extend(reversed(children(node)))


def functions(
    ast: alan_ast.FunctionDefinition,
) -> Iterator[alan_ast.FunctionDefinition]:
  """Yield `ast` and every function nested within it, in pre-order."""
  yield ast
  for nested in ast.nested_functions:
    yield from functions(nested)


def body_nodes(ast: alan_ast.FunctionDefinition) -> Iterator[alan_ast.AstNode]:
  """Yield every node in a function's own body (not in nested functions)."""
  for statement in ast.body:
    yield from depth_first(statement)


### Utilities ###


def children(ast: alan_ast.AstNode) -> list[alan_ast.AstNode]:
  """Retrieve all tree node children of this tree node."""
  kids: list[alan_ast.AstNode] = []
  for field in dataclasses.fields(ast):
    if not field.compare: continue  # Back-references and caches.
    sub_ast = getattr(ast, field.name)
    if isinstance(sub_ast, (tuple, list)):
      kids.extend(n for n in sub_ast if isinstance(n, alan_ast.AstNode))
    elif isinstance(sub_ast, alan_ast.AstNode):
      kids.append(sub_ast)
  return kids
