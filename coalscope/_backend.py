"""
_backend.py
===========
Backend detection and selection for concurrent-lineage counting.

Two execution backends are available:

  'python'        numpy broadcasting over a (grid x edges) boolean matrix
  'cpu-parallel'  numba-compiled parallel loop (see _cpu_kernels.py)

Functions in this module have NO side effects - they only query system state.
Logging is done by the calling code, not here.
"""

from typing import List

import numpy as np


# ============================================================================ #
# Backend Detection (No Side Effects)
# ============================================================================ #


def check_numba_available() -> bool:
    """
    Check if numba can be imported for CPU parallelization.

    Returns
    -------
    bool
        True if numba can be imported, False otherwise.
    """
    try:
        import numba  # noqa: F401

        return True
    except ImportError:
        return False


def get_available_backends() -> List[str]:
    """
    Get list of available execution backends.

    Returns
    -------
    list[str]
        Available backends in preference order, least optimised first.
        Always includes 'python'; includes 'cpu-parallel' when numba imports.

    Examples
    --------
    >>> get_available_backends()
    ['python', 'cpu-parallel']
    """
    backends = ["python"]
    if check_numba_available():
        backends.append("cpu-parallel")
    return backends


def get_best_backend() -> str:
    """
    Get the most optimized available backend.

    Returns
    -------
    str
        'cpu-parallel' when numba is importable, otherwise 'python'.
    """
    return get_available_backends()[-1]


def resolve_backend(backend: str) -> str:
    """
    Resolve a backend specification to an actual backend.

    Parameters
    ----------
    backend : str
        'best', 'python' or 'cpu-parallel'.

    Returns
    -------
    str
        Resolved backend name.

    Raises
    ------
    ValueError
        If requested backend is not available.
    """
    if backend == "best":
        return get_best_backend()

    available = get_available_backends()
    if backend not in available:
        raise ValueError(
            f"Backend '{backend}' not available. "
            f"Available backends: {', '.join(available)}"
        )
    return backend


# ============================================================================ #
# Lineage counting dispatch
# ============================================================================ #


def lineage_counts_python(times, parent_times, mask, grid) -> np.ndarray:
    """
    Reference implementation of the concurrent-lineage count.

    Returns an int64 array with, for each ``grid[i]``, the number of masked
    branches satisfying ``parent_times < grid[i] <= times``.
    """
    t = np.asarray(grid, dtype=np.float64)[:, None]
    alive = (
        (np.asarray(times)[None, :] >= t)
        & (np.asarray(parent_times)[None, :] < t)
        & np.asarray(mask, dtype=bool)[None, :]
    )
    return alive.sum(axis=1).astype(np.int64)


def count_lineages(times, parent_times, mask, grid, backend: str) -> np.ndarray:
    """Run the lineage-count kernel on the resolved *backend*."""
    backend = resolve_backend(backend)
    if backend == "cpu-parallel":
        from coalscope._cpu_kernels import lineage_counts_cpu

        return lineage_counts_cpu(times, parent_times, mask, grid)
    return lineage_counts_python(times, parent_times, mask, grid)


def get_backend_info() -> dict:
    """
    Get comprehensive backend information.

    Returns
    -------
    dict
        Keys: 'numba_available', 'backends', 'best_backend'.
    """
    return {
        "numba_available": check_numba_available(),
        "backends": get_available_backends(),
        "best_backend": get_best_backend(),
    }
