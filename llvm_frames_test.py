"""Tests for the llvm_frames module.

Forfeited into the public domain with NO WARRANTY. Read LICENSE for details.
"""

import unittest

import alan_ast
import alan_errors
import alan_types
import llvm_frames

from llvmlite import ir


class LlvmFramesTest(unittest.TestCase):
  """Test harness for testing the llvm_frames module."""

  def setUp(self):
    self.inner = alan_ast.FunctionDefinition(name='main.inner')
    self.main = alan_ast.FunctionDefinition(
        name='main',
        parameters=(
            alan_types.Parameter('n', alan_types.Int()),
            alan_types.Parameter('r', alan_types.Byte(), reference=True),
            alan_types.Parameter(
                's', alan_types.Array(alan_types.Byte()), reference=True)),
        local_declarations=(
            alan_ast.LocalVariable('i', alan_types.Int()),
            self.inner,
            alan_ast.LocalVariable('v', alan_types.Array(alan_types.Int(), 4))))
    self.main.parent = self.main
    self.inner.parent = self.main

  def test_build_frame(self):
    """Access link, then parameters, then locals; nested functions skipped."""
    frame = llvm_frames.build_frame(
        self.main.parameters, self.main.local_declarations,
        llvm_frames.PLACEHOLDER_FRAME_TYPE)
    self.assertEqual(len(frame.elements), 1 + 3 + 2)

    link = frame.elements[llvm_frames.ACCESS_LINK_SLOT]
    self.assertIsInstance(link, ir.PointerType)
    self.assertEqual(link.pointee.pointee, ir.IntType(1))  # i1**

    self.assertEqual(frame.elements[1], ir.IntType(16))
    self.assertIsInstance(frame.elements[2], ir.PointerType)
    self.assertEqual(frame.elements[2].pointee, ir.IntType(8))
    self.assertIsInstance(frame.elements[3], ir.PointerType)
    self.assertEqual(frame.elements[3].pointee, ir.IntType(8))
    self.assertEqual(frame.elements[4], ir.IntType(16))
    self.assertEqual(frame.elements[5], ir.ArrayType(ir.IntType(16), 4))

  def test_build_frame_unsized_local(self):
    with self.assertRaises(alan_errors.TypeMappingError):
      llvm_frames.build_frame(
          (), (alan_ast.LocalVariable('v', alan_types.Array(alan_types.Int())),),
          llvm_frames.PLACEHOLDER_FRAME_TYPE)

  def test_frame_slots(self):
    llvm_frames.set_frame_type(self.main, llvm_frames.build_frame(
        self.main.parameters, self.main.local_declarations,
        llvm_frames.PLACEHOLDER_FRAME_TYPE))
    slots = llvm_frames.frame_slots(self.main)
    self.assertEqual([(s.name, s.kind) for s in slots],
                     [('<access link>', 'access link'),
                      ('n', 'parameter'), ('r', 'parameter'),
                      ('s', 'parameter'), ('i', 'local'), ('v', 'local')])
    self.assertIn('parameter', str(slots[1]))

  def test_frame_type_written_once(self):
    """Frame types are set exactly once and can't be read before that."""
    with self.assertRaisesRegex(alan_errors.MissingContextError,
                                'main has no frame type yet'):
      llvm_frames.get_frame_type(self.main)

    frame = llvm_frames.build_frame((), (), llvm_frames.PLACEHOLDER_FRAME_TYPE)
    llvm_frames.set_frame_type(self.main, frame)
    self.assertIs(llvm_frames.get_frame_type(self.main), frame)
    with self.assertRaisesRegex(alan_errors.MissingContextError,
                                'main already has a frame type'):
      llvm_frames.set_frame_type(self.main, frame)

  def test_parent_frame_type(self):
    """The outermost function gets the placeholder; others need a parent."""
    self.assertIs(llvm_frames.parent_frame_type(self.main),
                  llvm_frames.PLACEHOLDER_FRAME_TYPE)
    self.assertIsNone(self.main.frame_type)  # The placeholder isn't recorded.

    with self.assertRaisesRegex(alan_errors.MissingContextError,
                                'Parent main of function main.inner'):
      llvm_frames.parent_frame_type(self.inner)

    frame = llvm_frames.build_frame((), (), llvm_frames.PLACEHOLDER_FRAME_TYPE)
    llvm_frames.set_frame_type(self.main, frame)
    self.assertIs(llvm_frames.parent_frame_type(self.inner), frame)

    self.inner.parent = None
    with self.assertRaisesRegex(alan_errors.MissingContextError,
                                'does not have a parent'):
      llvm_frames.parent_frame_type(self.inner)
