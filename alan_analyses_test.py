"""Tests for the alan_analyses module.

Forfeited into the public domain with NO WARRANTY. Read LICENSE for details.
"""

import unittest

import alan_analyses
import alan_ast
import alan_errors
import alan_types


def _tree() -> tuple[alan_ast.FunctionDefinition, ...]:
  """Build main > outer > inner, each with one int local, parents linked."""
  inner = alan_ast.FunctionDefinition(
      name='main.outer.inner',
      local_declarations=(alan_ast.LocalVariable('c', alan_types.Int()),))
  outer = alan_ast.FunctionDefinition(
      name='main.outer',
      parameters=(alan_types.Parameter('n', alan_types.Int()),),
      local_declarations=(alan_ast.LocalVariable('b', alan_types.Int()),
                          inner))
  main = alan_ast.FunctionDefinition(
      name='main',
      local_declarations=(alan_ast.LocalVariable('a', alan_types.Int()),
                          outer))
  main.parent = main
  alan_analyses.link_parents(main)
  return main, outer, inner


def _assign(lvalue: alan_ast.LValue) -> alan_ast.StatementAssignment:
  return alan_ast.StatementAssignment(
      destination=lvalue, value=alan_ast.ExpressionInteger(0))


class AlanAnalysesTest(unittest.TestCase):
  """Test harness for testing the alan_analyses module."""

  def test_link_parents(self):
    """Nested functions point at the functions that declare them."""
    main, outer, inner = _tree()
    self.assertIs(main.parent, main)
    self.assertIs(outer.parent, main)
    self.assertIs(inner.parent, outer)

  def test_nesting_depth(self):
    main, outer, inner = _tree()
    self.assertEqual(alan_analyses.nesting_depth(main), 0)
    self.assertEqual(alan_analyses.nesting_depth(outer), 1)
    self.assertEqual(alan_analyses.nesting_depth(inner), 2)

    orphan = alan_ast.FunctionDefinition(name='orphan')
    with self.assertRaisesRegex(alan_errors.MissingContextError,
                                'orphan has no parent'):
      alan_analyses.nesting_depth(orphan)

  def test_enclosing_function(self):
    """Walking outward stops at the outermost function, not beyond."""
    main, outer, inner = _tree()
    self.assertIs(alan_analyses.enclosing_function(inner, 0), inner)
    self.assertIs(alan_analyses.enclosing_function(inner, 1), outer)
    self.assertIs(alan_analyses.enclosing_function(inner, 2), main)
    with self.assertRaisesRegex(alan_errors.MissingContextError,
                                'passes the outermost function main'):
      alan_analyses.enclosing_function(inner, 3)

  def test_check_function_tree_accepts_good_tree(self):
    main, outer, inner = _tree()
    inner.body = (
        _assign(alan_ast.LValueIdentifier('c', alan_types.Int(), 0, 1)),
        _assign(alan_ast.LValueIdentifier('b', alan_types.Int(), 1, 2)),
        _assign(alan_ast.LValueIdentifier('n', alan_types.Int(), 1, 1,
                                          is_parameter=True)),
        _assign(alan_ast.LValueIdentifier('a', alan_types.Int(), 2, 1)),
        alan_ast.StatementCall(alan_ast.Call(
            callee='main.outer', caller_depth=2, callee_depth=1)),
        alan_ast.StatementCall(alan_ast.Call(
            callee='writeInteger', caller_depth=2,
            arguments=(alan_ast.ExpressionInteger(1),))))
    alan_analyses.check_function_tree(main)  # Raises nothing.

  def test_check_function_tree_outermost(self):
    main, outer, _ = _tree()
    with self.assertRaisesRegex(alan_errors.MissingContextError,
                                'must be its own parent'):
      alan_analyses.check_function_tree(outer)
    main.parent = None
    with self.assertRaises(alan_errors.MissingContextError):
      alan_analyses.check_function_tree(main)

  def test_check_function_tree_parent_links(self):
    main, outer, inner = _tree()
    inner.parent = main
    with self.assertRaisesRegex(alan_errors.MissingContextError,
                                'main.outer.inner does not have main.outer'):
      alan_analyses.check_function_tree(main)

  def test_check_function_tree_duplicate_names(self):
    main, outer, inner = _tree()
    inner.name = 'main.outer'
    with self.assertRaisesRegex(alan_errors.AnnotationError,
                                'main.outer is defined more than once'):
      alan_analyses.check_function_tree(main)

  def test_check_function_tree_array_by_value(self):
    main, outer, _ = _tree()
    outer.parameters = (
        alan_types.Parameter('v', alan_types.Array(alan_types.Int())),)
    with self.assertRaisesRegex(alan_errors.AnnotationError,
                                'must be passed by reference'):
      alan_analyses.check_function_tree(main)

  def test_check_function_tree_bad_lvalues(self):
    """Slot, parameter, reference, and subscript annotations are checked."""
    bad_lvalues = [
        # Slot 0 is the access link.
        (alan_ast.LValueIdentifier('x', alan_types.Int(), 0, 0),
         'refers to slot 0'),
        # inner's frame has only the access link and c.
        (alan_ast.LValueIdentifier('x', alan_types.Int(), 0, 2),
         'refers to slot 2'),
        # Slot 1 of outer is the parameter n.
        (alan_ast.LValueIdentifier('n', alan_types.Int(), 1, 1),
         'marked as a local variable'),
        (alan_ast.LValueIdentifier('b', alan_types.Int(), 1, 2,
                                   is_parameter=True),
         'marked as a parameter'),
        (alan_ast.LValueIdentifier('c', alan_types.Int(), 0, 1,
                                   is_reference=True),
         'marked as a reference'),
        (alan_ast.LValueIdentifier('c', alan_types.Int(), 0, 1,
                                   index=alan_ast.ExpressionInteger(0)),
         'is subscripted'),
    ]
    for lvalue, message in bad_lvalues:
      main, _, inner = _tree()
      inner.body = (_assign(lvalue),)
      with self.assertRaisesRegex(alan_errors.AnnotationError, message):
        alan_analyses.check_function_tree(main)

    main, _, inner = _tree()
    inner.body = (_assign(alan_ast.LValueIdentifier(
        'x', alan_types.Int(), 3, 1)),)
    with self.assertRaises(alan_errors.MissingContextError):
      alan_analyses.check_function_tree(main)

  def test_check_function_tree_bad_calls(self):
    main, outer, _ = _tree()
    outer.body = (alan_ast.StatementCall(alan_ast.Call(
        callee='main.outer.inner', caller_depth=0, callee_depth=2)),)
    with self.assertRaisesRegex(alan_errors.AnnotationError,
                                'caller is at depth 0, not 1'):
      alan_analyses.check_function_tree(main)

    outer.body = (alan_ast.StatementCall(alan_ast.Call(
        callee='main.outer.inner', caller_depth=1, callee_depth=1)),)
    with self.assertRaisesRegex(alan_errors.AnnotationError,
                                'callee is at depth 1, not 2'):
      alan_analyses.check_function_tree(main)
