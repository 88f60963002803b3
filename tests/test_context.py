"""
tests/test_context.py
=====================
Tests for the context managers in _context.py and the package logging
conventions (NullHandler, module loggers under 'coalscope').
"""

import logging
import os
import sys
import warnings

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from coalscope import (
    CoalescentTree,
    get_backend_info,
    quiet,
    suppress_logger,
    suppress_warnings,
    use_backend,
)
from coalscope._context import get_backend_override

NEWICK = "((A:1,B:1):1,C:2);"


class TestLogging:
    def test_null_handler_installed(self):
        handlers = logging.getLogger("coalscope").handlers
        assert any(isinstance(h, logging.NullHandler) for h in handlers)

    def test_quiet_silences_construction(self, caplog):
        with caplog.at_level(logging.INFO):
            with quiet():
                CoalescentTree(NEWICK)
        assert "Tree built" not in caplog.text

    def test_quiet_restores_level(self):
        logger = logging.getLogger("coalscope")
        original = logger.level
        with quiet(logging.WARNING):
            assert logger.level == logging.WARNING
        assert logger.level == original

    def test_quiet_restores_on_exception(self):
        logger = logging.getLogger("coalscope")
        original = logger.level
        with pytest.raises(RuntimeError):
            with quiet():
                raise RuntimeError("boom")
        assert logger.level == original

    def test_suppress_single_logger(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="coalscope"):
            with suppress_logger("coalscope._parser"):
                CoalescentTree("(A:1[&posterior=1],B:1);")
        assert "Ignored annotation keys" not in caplog.text
        assert "Tree built" in caplog.text

    def test_transforms_logged_at_debug(self, caplog):
        tree = CoalescentTree(NEWICK)
        with caplog.at_level(logging.DEBUG, logger="coalscope"):
            tree.prune_to_tips(["A", "B"])
        assert "prune_to_tips: nodes 5 -> " in caplog.text
        assert "leaves 3 -> 2" in caplog.text


class TestWarnings:
    def test_suppress_all(self):
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            with suppress_warnings():
                warnings.warn("hidden", UserWarning)
        assert caught == []

    def test_suppress_category(self):
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            with suppress_warnings(DeprecationWarning):
                warnings.warn("hidden", DeprecationWarning)
                warnings.warn("shown", UserWarning)
        assert [str(w.message) for w in caught] == ["shown"]


class TestBackendContext:
    def test_override_set_and_restored(self):
        assert get_backend_override() is None
        with use_backend("python"):
            assert get_backend_override() == "python"
            with use_backend("cpu-parallel"):
                assert get_backend_override() == "cpu-parallel"
            assert get_backend_override() == "python"
        assert get_backend_override() is None

    def test_invalid_backend(self):
        with pytest.raises(ValueError, match="not available"):
            with use_backend("gpu"):
                pass
        assert get_backend_override() is None

    def test_backend_info(self):
        info = get_backend_info()
        assert info["numba_available"] is True
        assert info["best_backend"] == "cpu-parallel"


class TestPublicApi:
    def test_all_names_resolve(self):
        import coalscope

        for name in coalscope.__all__:
            assert hasattr(coalscope, name), name

    def test_newick_normalisation_lives_in_the_tree(self):
        import coalscope

        assert "format_newick" not in coalscope.__all__
        tree = CoalescentTree("  ((A:1,B:1):1,C:2)  ")
        assert tree.to_newick(annotate=False) == "((A:1.0,B:1.0):1.0,C:2.0);"
