"""
coalscope
=========

Annotated-NEWICK coalescent genealogies: parsing, tree algebra, summary
statistics and skylines for sampled pathogen phylogenies.

Main Classes
------------
CoalescentTree : Time-scaled labelled genealogy with in-place transforms
Node : Per-vertex record (times, labels, locations, flags)
Skyline : Statistic sampled along the time axis

Exceptions
----------
CoalscopeError : Base class
MalformedInputError : Unparseable tree string
UndefinedStatisticError : Statistic not defined for the current tree
ConfigurationError : Invalid option or missing random generator

Context Managers
----------------
quiet : Suppress logging during operations
suppress_logger : Suppress specific logger
suppress_warnings : Suppress specific warnings
use_backend : Force the lineage-count backend

Backend Information
-------------------
get_available_backends : Query available computational backends
get_backend_info : Get backend status
check_numba_available : Check if numba is available

Examples
--------
Basic usage:

>>> from coalscope import CoalescentTree
>>> tree = CoalescentTree('((A:1,B:1):1,C:2);')
>>> tree.leaf_count(), tree.tmrca(), tree.coal_count()
(3, 2.0, 2)

Annotated trees and transforms:

>>> tree = CoalescentTree('((1_A:1[&states="1"],2_B:1[&states="2"]):1,1_C:2);')
>>> tree.mig_count()
1
>>> tree.trim_ends(-1.5, -0.5)

Reproducible stochastic transforms:

>>> import numpy as np
>>> tree.reduce_tips(0.5, np.random.default_rng(1))

With context managers:

>>> from coalscope import quiet, use_backend
>>> with quiet():
...     trees = [CoalescentTree(nwk) for nwk in newicks]
>>> with use_backend('python'):
...     weight = tree.coal_weight()
"""

import logging

__version__ = "0.1.0"
__license__ = "MIT"

# Main classes
from ._tree import CoalescentTree
from ._node import Node, UNSET_LABEL
from ._skyline import Skyline
from ._parser import parse_annotated_newick

# Exceptions
from ._errors import (
    CoalscopeError,
    MalformedInputError,
    UndefinedStatisticError,
    ConfigurationError,
)

# Context managers (user-facing utilities)
from ._context import (
    suppress_logger,
    quiet,
    suppress_warnings,
    use_backend,
)

# Utilities
from ._utils import (
    initial_digits,
)

# Backend information (useful for checking capabilities)
from ._backend import (
    get_available_backends,
    get_backend_info,
    check_numba_available,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

# Public API
__all__ = [
    # Main classes
    "CoalescentTree",
    "Node",
    "UNSET_LABEL",
    "Skyline",
    "parse_annotated_newick",
    # Exceptions
    "CoalscopeError",
    "MalformedInputError",
    "UndefinedStatisticError",
    "ConfigurationError",
    # Context managers
    "suppress_logger",
    "quiet",
    "suppress_warnings",
    "use_backend",
    # Utilities
    "initial_digits",
    # Backend information
    "get_available_backends",
    "get_backend_info",
    "check_numba_available",
    # Version info
    "__version__",
]
