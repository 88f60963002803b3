"""
tests/test_kernels.py
=====================
Agreement tests for the concurrent-lineage backends.

  python        numpy broadcasting (_backend.lineage_counts_python)
  cpu-parallel  numba njit + prange (_cpu_kernels.lineage_counts_cpu)

Both must return identical integer counts for the same arrays, and the tree
statistics that depend on them must not change with the backend.
"""

import os
import sys

import numpy as np
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from coalscope import CoalescentTree, use_backend
from coalscope._backend import (
    count_lineages,
    get_available_backends,
    get_best_backend,
    lineage_counts_python,
    resolve_backend,
)
from coalscope._cpu_kernels import _lineage_counts_njit, lineage_counts_cpu


@pytest.fixture(scope="module")
def random_edges():
    rng = np.random.default_rng(20240611)
    n = 400
    parent_times = rng.uniform(0.0, 10.0, n)
    times = parent_times + rng.exponential(1.5, n)
    mask = rng.uniform(size=n) < 0.8
    grid = np.linspace(0.0, 14.0, 301)
    return times, parent_times, mask, grid


class TestKernelModule:
    def test_kernel_callable(self):
        assert callable(_lineage_counts_njit)

    def test_cpu_backend_available(self):
        assert get_available_backends() == ["python", "cpu-parallel"]
        assert get_best_backend() == "cpu-parallel"
        assert resolve_backend("best") == "cpu-parallel"

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="not available"):
            resolve_backend("cuda")


class TestHandExample:
    # branch (parent -> child): (0 -> 2), (0 -> 1), (1 -> 3) masked out
    times = np.array([2.0, 1.0, 3.0])
    parent_times = np.array([0.0, 0.0, 1.0])
    mask = np.array([True, True, False])
    grid = np.array([0.0, 0.5, 1.0, 1.5, 2.5])
    expected = [0, 2, 2, 1, 0]

    def test_python(self):
        out = lineage_counts_python(self.times, self.parent_times, self.mask, self.grid)
        assert out.tolist() == self.expected

    def test_cpu(self):
        out = lineage_counts_cpu(self.times, self.parent_times, self.mask, self.grid)
        assert out.dtype == np.int64
        assert out.tolist() == self.expected

    def test_empty_edges(self):
        empty = np.empty(0)
        for backend in ("python", "cpu-parallel"):
            out = count_lineages(empty, empty, np.empty(0, dtype=bool), self.grid, backend)
            assert out.tolist() == [0] * 5


class TestBackendAgreement:
    def test_random_arrays(self, random_edges):
        times, parent_times, mask, grid = random_edges
        py = count_lineages(times, parent_times, mask, grid, "python")
        cpu = count_lineages(times, parent_times, mask, grid, "cpu-parallel")
        np.testing.assert_array_equal(py, cpu)

    def test_tree_statistics(self):
        newick = "(((A:1,B:2):0.5,(C:0.25,D:1.5):1):1,(E:3,F:0.5):0.75);"
        by_backend = {}
        for backend in ("python", "cpu-parallel"):
            tree = CoalescentTree(newick, backend=backend)
            by_backend[backend] = (tree.coal_weight(), tree.coal_weight_trunk())
        assert by_backend["python"] == pytest.approx(by_backend["cpu-parallel"])

    def test_use_backend_override(self):
        tree = CoalescentTree("((A:1,B:1):1,C:2);", backend="python", n_steps=4)
        with use_backend("cpu-parallel"):
            assert tree._active_backend() == "cpu-parallel"
            weight = tree.coal_weight()
        assert tree._active_backend() == "python"
        assert weight == pytest.approx(4.0)
