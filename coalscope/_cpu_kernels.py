"""
_cpu_kernels.py
===============
CPU-accelerated concurrent-lineage kernels using Numba.

This module contains ONLY numba-accelerated code and does not import other
project modules, to avoid import-time complications.

Exported Functions
------------------
_lineage_counts_njit : njit function
    Parallel count of lineages alive at each point of a time grid.

Notes
-----
- A lineage (the branch above node j) is alive at time t when
  ``parent_times[j] < t <= times[j]`` and ``mask[j]`` is set.
- prange parallelises over grid points; each point is independent.
- cache=True persists the compiled binary to disk for faster subsequent runs.
"""

import numpy as np
from numba import njit, prange


@njit(cache=True, parallel=True)
def _lineage_counts_njit(times, parent_times, mask, grid, out):
    """
    Fill *out[i]* with the number of live lineages at ``grid[i]``.

    Parameters
    ----------
    times        : float64[n_edges]  Time of the child end of each branch.
    parent_times : float64[n_edges]  Time of the parent end of each branch.
    mask         : bool[n_edges]     Branches eligible for counting.
    grid         : float64[n_points] Time points.
    out          : int64[n_points]   Output buffer (overwritten).
    """
    n_edges = times.shape[0]
    for i in prange(grid.shape[0]):
        t = grid[i]
        c = 0
        for j in range(n_edges):
            if mask[j] and times[j] >= t and parent_times[j] < t:
                c += 1
        out[i] = c


def lineage_counts_cpu(times, parent_times, mask, grid) -> np.ndarray:
    """Allocate the output buffer and run :func:`_lineage_counts_njit`."""
    out = np.zeros(grid.shape[0], dtype=np.int64)
    _lineage_counts_njit(
        np.ascontiguousarray(times, dtype=np.float64),
        np.ascontiguousarray(parent_times, dtype=np.float64),
        np.ascontiguousarray(mask, dtype=np.bool_),
        np.ascontiguousarray(grid, dtype=np.float64),
        out,
    )
    return out
