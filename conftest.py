"""
conftest.py
===========
Session-level pytest configuration for the test suite.

Warning filters
---------------
NumbaPerformanceWarning messages are filtered out during tests.  The
lineage-count kernel runs on very small grids in the unit tests, where
numba's parallel-overhead warnings are expected and not informative for
correctness testing.
"""

import warnings


def pytest_configure(config):
    """
    Configure pytest before test collection begins.

    This runs before any test modules are imported, which matters for
    catching warnings raised while numba compiles the kernels.
    """
    from numba.core.errors import NumbaPerformanceWarning

    warnings.filterwarnings("ignore", category=NumbaPerformanceWarning)


def pytest_unconfigure(config):
    """Restore default warning behavior."""
    warnings.resetwarnings()
