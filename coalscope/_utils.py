"""
_utils.py
=========
General-purpose helper functions for coalscope.

These are standalone functions that don't depend on the main classes
and are shared by the parser, the tree algebra and the statistics engine.
"""

import numpy as np

from coalscope._errors import ConfigurationError
from coalscope._node import UNSET_LABEL


def initial_digits(name: str) -> str:
    """
    Derive a seed label from the leading digits of a tip name.

    Tip names produced by structured-coalescent samplers often start with the
    zero-based deme index (``"2_A/HK/1/68"``).  The leading digit run is
    parsed, incremented by one, and returned as a label string so that
    ``"0"`` keeps meaning "unset".

    Parameters
    ----------
    name : str
        Tip name.

    Returns
    -------
    str
        ``str(int(leading_digits) + 1)`` if *name* contains a letter (an
        empty digit run counts as 0); ``"0"`` otherwise.

    Examples
    --------
    >>> initial_digits('34ATZ')
    '35'

    >>> initial_digits('ATZ')
    '1'

    >>> initial_digits('3454')
    '0'
    """
    if not any(c.isascii() and c.isalpha() for c in name):
        return UNSET_LABEL
    k = 0
    while k < len(name) and "0" <= name[k] <= "9":
        k += 1
    leading = int(name[:k]) if k > 0 else 0
    return str(leading + 1)


def validate_rng(rng) -> np.random.Generator:
    """
    Check that *rng* is an explicit, seedable numpy random generator.

    Randomised tree operations never fall back to global random state, so
    callers must pass ``numpy.random.default_rng(seed)`` (or any other
    ``numpy.random.Generator``).

    Raises
    ------
    ConfigurationError
        If *rng* is None or not a ``numpy.random.Generator``.
    """
    if rng is None:
        raise ConfigurationError(
            "A random generator is required; pass numpy.random.default_rng(seed)."
        )
    if not isinstance(rng, np.random.Generator):
        raise ConfigurationError(
            f"Expected numpy.random.Generator, got {type(rng).__name__}."
        )
    return rng


def validate_positive(value: float, what: str) -> float:
    """Return *value* as float, raising ConfigurationError unless it is > 0."""
    value = float(value)
    if not value > 0.0:
        raise ConfigurationError(f"{what} must be positive; got {value}.")
    return value
