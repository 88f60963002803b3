"""
_errors.py
==========
Exception hierarchy for coalscope.

Every exception raised deliberately by the package derives from
``CoalscopeError`` and also from the closest built-in category, so callers
may catch either ``coalscope.MalformedInputError`` or plain ``ValueError``.
"""


class CoalscopeError(Exception):
    """Base class for all coalscope errors."""


class MalformedInputError(CoalscopeError, ValueError):
    """
    Raised when an annotated NEWICK string cannot be parsed.

    Construction fails fast; no partial tree is ever returned.
    """


class UndefinedStatisticError(CoalscopeError, ArithmeticError):
    """
    Raised when a statistic is not defined for the current tree state.

    Typical causes are an empty set of leaf pairs, a single-leaf tree, or a
    zero opportunity for coalescence (division by zero).
    """


class ConfigurationError(CoalscopeError, ValueError):
    """
    Raised eagerly for invalid configuration: a missing or wrong random
    source, a non-positive step size, or an unknown option string.
    """
