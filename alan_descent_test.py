"""Tests for the alan_descent module.

Forfeited into the public domain with NO WARRANTY. Read LICENSE for details.
"""

import unittest

import alan_ast
import alan_descent
import alan_types


def _variable(name: str, offset: int) -> alan_ast.LValueIdentifier:
  return alan_ast.LValueIdentifier(
      name=name, declared_typeinfo=alan_types.Int(), nesting_distance=0,
      offset=offset)


class AlanDescentTest(unittest.TestCase):
  """Test harness for testing the alan_descent module."""

  def setUp(self):
    # main
    #   x : int
    #   inner () : proc
    #     deepest () : proc
    #   body: x <- 1 + x; inner()
    self.deepest = alan_ast.FunctionDefinition(name='main.inner.deepest')
    self.inner = alan_ast.FunctionDefinition(
        name='main.inner', local_declarations=(self.deepest,),
        body=(alan_ast.StatementReturn(),))
    self.assignment = alan_ast.StatementAssignment(
        destination=_variable('x', 1),
        value=alan_ast.ExpressionBinary(
            op=alan_ast.BinaryOp.ADD,
            expression_left=alan_ast.ExpressionInteger(1),
            expression_right=alan_ast.ExpressionValue(_variable('x', 1))))
    self.call = alan_ast.StatementCall(alan_ast.Call(callee='main.inner'))
    self.main = alan_ast.FunctionDefinition(
        name='main',
        local_declarations=(
            alan_ast.LocalVariable('x', alan_types.Int()), self.inner),
        body=(self.assignment, self.call))
    self.main.parent = self.main
    self.inner.parent = self.main
    self.deepest.parent = self.inner

  def test_functions(self):
    """Functions come out in pre-order and only once each."""
    self.assertEqual([f.name for f in alan_descent.functions(self.main)],
                     ['main', 'main.inner', 'main.inner.deepest'])

  def test_depth_first_order(self):
    """Parents precede children, and siblings stay in source order."""
    nodes = list(alan_descent.depth_first(self.assignment))
    self.assertIs(nodes[0], self.assignment)
    self.assertIs(nodes[1], self.assignment.destination)
    self.assertIsInstance(nodes[2], alan_ast.ExpressionBinary)
    self.assertIsInstance(nodes[3], alan_ast.ExpressionInteger)
    self.assertIsInstance(nodes[4], alan_ast.ExpressionValue)
    self.assertIsInstance(nodes[5], alan_ast.LValueIdentifier)
    self.assertEqual(len(nodes), 6)

  def test_depth_first_ignores_parent(self):
    """Back-references to parents don't make the traversal loop forever."""
    nodes = list(alan_descent.depth_first(self.main))
    self.assertEqual(sum(1 for n in nodes if n is self.main), 1)
    self.assertIn(self.deepest, nodes)

  def test_body_nodes(self):
    """Body traversal stays out of nested functions."""
    nodes = list(alan_descent.body_nodes(self.main))
    self.assertIn(self.call.call, nodes)
    self.assertNotIn(self.inner, nodes)
    self.assertFalse(
        any(isinstance(n, alan_ast.StatementReturn) for n in nodes))

  def test_children(self):
    """Non-node fields like parameters and names aren't children."""
    function = alan_ast.FunctionDefinition(
        name='f', parameters=(alan_types.Parameter('n', alan_types.Int()),),
        body=(alan_ast.StatementEmpty(),))
    function.parent = function
    self.assertEqual(alan_descent.children(function),
                     [alan_ast.StatementEmpty()])
