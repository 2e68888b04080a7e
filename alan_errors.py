"""Fatal errors raised while generating code for Alan programs.

Forfeited into the public domain with NO WARRANTY. Read LICENSE for details.

Semantic analysis rejects every ill-formed user program before the code
generator ever sees it, so nothing raised here is a user-facing diagnostic:
each of these exceptions means an internal-consistency violation, and each
aborts compilation of the whole program. Messages name the offending
construct and the (qualified) function in which it was found.
"""


class Error(RuntimeError):
  """Base class for all code generation failures."""


class TypeMappingError(Error):
  """A type has no representation in the target IR."""


class MissingContextError(Error):
  """A function's parent or frame type is absent when it is needed."""


class UnresolvedCalleeError(Error):
  """A call names a callable that was never declared."""


class OperandTypeError(Error):
  """Division, remainder, or comparison operands are not both int or byte."""


class InvalidModuleError(Error):
  """The finished module failed structural verification."""


class AnnotationError(Error):
  """The annotated tree does not honour the semantic analysis contract."""


class MissingReturnError(Error):
  """A procedure can fall off its end and implicit returns are disabled."""
