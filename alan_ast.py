"""Annotated abstract syntax tree for Alan programs.

Forfeited into the public domain with NO WARRANTY. Read LICENSE for details.

Abstract syntax tree nodes are instances of the Python dataclasses defined in
this module. The code generator does not build these trees itself: parsing
and semantic analysis do, and by the time a tree is handed over they have
resolved everything the code generator needs to know about names. In
particular:

   - Every function has a globally unique (qualified) name and a `parent`
     reference to its statically enclosing function.
   - Every variable occurrence (`LValueIdentifier`) knows how many lexical
     function boundaries separate it from its declaration, which slot it
     occupies in the declaring function's frame, whether it is a parameter,
     whether it was passed by reference, and its declared type.
   - Every call site (`Call`) knows the callee's qualified name, the nesting
     depths of the caller and callee, and the callee's return type.

Static types of expressions are derived from these annotations by the
`typeinfo` properties below.
"""

import dataclasses
import enum

import alan_types

from typing import Any, Optional, Union


### Generic AST node, for type checking.

@dataclasses.dataclass
class AstNode:
  """Base class for all tree nodes."""


### Variable references

@dataclasses.dataclass
class LValue(AstNode):
  """Base class for things that denote storage."""

  @property
  def typeinfo(self) -> alan_types.Type:
    raise NotImplementedError


@dataclasses.dataclass
class LValueIdentifier(LValue):
  """A (possibly subscripted) reference to a variable or parameter.

  Attributes:
    name: Source name of the variable; only used to name IR values.
    declared_typeinfo: The variable's declared type.
    nesting_distance: 0 if declared in the function where it is used, 1 if
        declared in the enclosing function, and so on.
    offset: Slot index of the variable in the declaring function's frame.
        Slot 0 is the access link, so parameters start at slot 1 and locals
        follow the parameters.
    is_parameter: True for parameters, False for local variables.
    is_reference: True for parameters passed by reference.
    index: Subscript expression, legal only for array variables.
  """
  name: str
  declared_typeinfo: alan_types.Type
  nesting_distance: int
  offset: int
  is_parameter: bool = False
  is_reference: bool = False
  index: Optional['Expression'] = None

  @property
  def typeinfo(self) -> alan_types.Type:
    if (self.index is not None and
        isinstance(self.declared_typeinfo, alan_types.Array)):
      return self.declared_typeinfo.element_typeinfo
    return self.declared_typeinfo


@dataclasses.dataclass
class LValueString(LValue):
  """A string literal, which denotes a read-only array of bytes."""
  text: str

  @property
  def typeinfo(self) -> alan_types.Type:
    return alan_types.Array(alan_types.Byte(), len(self.text) + 1)


### Calls

@dataclasses.dataclass
class Call(AstNode):
  """A call to a function or procedure.

  Attributes:
    callee: Qualified name of the callee.
    arguments: Argument expressions, in source order.
    caller_depth: Nesting depth of the function containing this call
        (0 for the outermost function).
    callee_depth: Nesting depth of the callee.
    return_typeinfo: The callee's return type.
  """
  callee: str
  arguments: tuple['Expression', ...] = ()
  caller_depth: int = 0
  callee_depth: int = 0
  return_typeinfo: alan_types.Type = dataclasses.field(
      default_factory=alan_types.Proc)


### Expressions

class BinaryOp(enum.Enum):
  """Binary operations for ExpressionBinary."""
  ADD = 1
  SUBTRACT = 2
  MULTIPLY = 3
  DIVIDE = 4
  MODULO = 5


class UnaryOp(enum.Enum):
  """Unary operations for ExpressionUnary."""
  PLUS = 1
  MINUS = 2


@dataclasses.dataclass
class Expression(AstNode):
  """Base class for expressions."""

  @property
  def typeinfo(self) -> alan_types.Type:
    raise NotImplementedError


@dataclasses.dataclass
class ExpressionInteger(Expression):
  """Leaf node for integer literals."""
  number: int

  @property
  def typeinfo(self) -> alan_types.Type:
    return alan_types.Int()


@dataclasses.dataclass
class ExpressionCharacter(Expression):
  """Leaf node for character literals."""
  character: str

  @property
  def typeinfo(self) -> alan_types.Type:
    return alan_types.Byte()


@dataclasses.dataclass
class ExpressionValue(Expression):
  """The value stored in (or, for arrays, the address of) an lvalue."""
  lvalue: LValue

  @property
  def typeinfo(self) -> alan_types.Type:
    return self.lvalue.typeinfo


@dataclasses.dataclass
class ExpressionCall(Expression):
  """A function call used for its value."""
  call: Call

  @property
  def typeinfo(self) -> alan_types.Type:
    return self.call.return_typeinfo


@dataclasses.dataclass
class ExpressionUnary(Expression):
  """Node for a unary operation."""
  op: UnaryOp
  expression: Expression

  @property
  def typeinfo(self) -> alan_types.Type:
    return self.expression.typeinfo


@dataclasses.dataclass
class ExpressionBinary(Expression):
  """Node for a binary operation."""
  op: BinaryOp
  expression_left: Expression
  expression_right: Expression

  @property
  def typeinfo(self) -> alan_types.Type:
    return self.expression_left.typeinfo


### Conditions

class CompareOp(enum.Enum):
  """Relational operations for ConditionCompare."""
  EQ = '=='
  NE = '!='
  LT = '<'
  GT = '>'
  LE = '<='
  GE = '>='


class LogicOp(enum.Enum):
  """Short-circuiting operations for ConditionLogic."""
  AND = 1
  OR = 2


@dataclasses.dataclass
class Condition(AstNode):
  """Base class for conditions."""


@dataclasses.dataclass
class ConditionConstant(Condition):
  """Leaf node for `true` and `false`."""
  value: bool


@dataclasses.dataclass
class ConditionNot(Condition):
  """Node for `!`."""
  condition: Condition


@dataclasses.dataclass
class ConditionCompare(Condition):
  """Node for relational comparisons."""
  op: CompareOp
  expression_left: Expression
  expression_right: Expression


@dataclasses.dataclass
class ConditionLogic(Condition):
  """Node for `&` and `|`."""
  op: LogicOp
  condition_left: Condition
  condition_right: Condition


### Statements

@dataclasses.dataclass
class Statement(AstNode):
  """Base class for statements."""


@dataclasses.dataclass
class StatementEmpty(Statement):
  """Node for the empty statement `;`."""


@dataclasses.dataclass
class StatementAssignment(Statement):
  """Node for assignment statements."""
  destination: LValue
  value: Expression


@dataclasses.dataclass
class StatementCall(Statement):
  """Node for calls whose results (if any) are discarded."""
  call: Call


@dataclasses.dataclass
class StatementCompound(Statement):
  """Node for compound statements (statement sequences)."""
  statements: tuple[Statement, ...]


@dataclasses.dataclass
class StatementIf(Statement):
  """Node for if statements."""
  condition: Condition
  consequent: Statement
  alternative: Optional[Statement] = None


@dataclasses.dataclass
class StatementWhile(Statement):
  """Node for while statements."""
  condition: Condition
  body: Statement


@dataclasses.dataclass
class StatementReturn(Statement):
  """Node for return statements, with or without a value."""
  value: Optional[Expression] = None


### Declarations

@dataclasses.dataclass
class LocalVariable(AstNode):
  """A local variable declaration; occupies one frame slot."""
  name: str
  typeinfo: alan_types.Type


@dataclasses.dataclass
class FunctionDefinition(AstNode):
  """A function or procedure, possibly containing nested ones.

  Attributes:
    name: Qualified, globally unique name.
    parameters: Declared parameters, in order.
    local_declarations: Local variables and nested functions, in order.
    body: The statements making up the function's body.
    return_typeinfo: Declared return type; `Proc` for procedures.
    parent: Statically enclosing function. The outermost function is its own
        parent. Not owned: excluded from comparison and traversal.
    frame_type: The function's frame type, filled in exactly once during
        code generation (see `llvm_frames`). Also excluded from comparison
        and traversal.
  """
  name: str
  parameters: tuple[alan_types.Parameter, ...] = ()
  local_declarations: tuple[
      Union[LocalVariable, 'FunctionDefinition'], ...] = ()
  body: tuple[Statement, ...] = ()
  return_typeinfo: alan_types.Type = dataclasses.field(
      default_factory=alan_types.Proc)
  parent: Optional['FunctionDefinition'] = dataclasses.field(
      default=None, repr=False, compare=False)
  frame_type: Optional[Any] = dataclasses.field(
      default=None, repr=False, compare=False)

  @property
  def is_outermost(self) -> bool:
    return self.parent is self

  @property
  def local_variables(self) -> tuple[LocalVariable, ...]:
    return tuple(d for d in self.local_declarations
                 if isinstance(d, LocalVariable))

  @property
  def nested_functions(self) -> tuple['FunctionDefinition', ...]:
    return tuple(d for d in self.local_declarations
                 if isinstance(d, FunctionDefinition))
