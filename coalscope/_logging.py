"""
_logging.py
===========
Logging functions for coalscope.

All functions in this module have NO side effects except logging. They take
computed data as parameters and format/emit log messages.

This separation ensures:
- Logging can be easily disabled/mocked in tests
- Computation is separate from presentation
"""

import logging
from typing import List


logger = logging.getLogger(__name__)


# ============================================================================ #
# System and Backend Logging (called at module import time)
# ============================================================================ #


def log_optimization_status(numba_available: bool) -> None:
    """
    Log system capabilities and numba availability at INFO level.

    Called once at package import time.

    Parameters
    ----------
    numba_available : bool
        Whether numba was successfully imported.
    """
    import os
    import platform

    cpu_count = os.cpu_count() or 1
    logger.info(
        f"System: {platform.machine()} ({platform.system()}), "
        f"{cpu_count} CPU cores, Python {platform.python_version()}"
    )

    if numba_available:
        import numba

        logger.info(f"Numba {numba.__version__} loaded successfully")
        try:
            import llvmlite

            logger.info(f"LLVM backend: llvmlite {llvmlite.__version__}")
        except (ImportError, AttributeError):
            pass  # LLVM version unavailable
    else:
        logger.info("Numba not importable; lineage counts will use numpy only")


def install_numba_warning_filter(numba_available: bool) -> None:
    """
    Route NumbaPerformanceWarning through this module's logger.

    The lineage kernel is small, and numba may warn about parallel overhead on
    tiny grids.  Those warnings are re-emitted at WARNING level in the same
    stream as the rest of the package diagnostics; other warnings keep their
    default display.

    Parameters
    ----------
    numba_available : bool
        Whether numba was successfully imported.
    """
    import warnings

    if not numba_available:
        return

    try:
        from numba.core.errors import NumbaPerformanceWarning
    except ImportError:
        return

    original_showwarning = warnings.showwarning

    def showwarning(message, category, filename, lineno, file=None, line=None):
        if issubclass(category, NumbaPerformanceWarning):
            logger.warning(f"Numba performance issue: {message} ({filename}:{lineno})")
            return
        original_showwarning(message, category, filename, lineno, file, line)

    warnings.showwarning = showwarning


def log_backend_availability(backends_available: List[str]) -> None:
    """
    Log which execution backends are available for lineage counting.

    Parameters
    ----------
    backends_available : List[str]
        Available backends, least optimised first.
    """
    logger.info(f"Available backends: {', '.join(backends_available)}")

    if "cpu-parallel" in backends_available:
        logger.info("  cpu-parallel: LLVM-compiled parallel code (numba.njit + prange)")
    if "python" in backends_available:
        logger.info("  python: numpy broadcasting reference implementation")

    best = backends_available[-1]
    logger.info(f"Default backend='best' will use: {best}")


# ============================================================================ #
# Tree Logging
# ============================================================================ #


def log_tree_summary(
    n_nodes: int,
    n_leaves: int,
    n_labels: int,
    n_migrations: int,
    root_time: float,
    present_time: float,
) -> None:
    """
    Log a one-line summary after a tree has been parsed and normalised.

    Parameters
    ----------
    n_nodes, n_leaves : int
        Node and leaf counts.
    n_labels : int
        Number of distinct discrete-state labels registered.
    n_migrations : int
        Number of ``M`` migration annotations expanded into nodes.
    root_time, present_time : float
        Time span of the tree after normalisation.
    """
    logger.info(
        "Tree built: %d nodes, %d leaves, %d labels, span %.6g to %.6g",
        n_nodes,
        n_leaves,
        n_labels,
        root_time,
        present_time,
    )
    if n_migrations:
        logger.info("  %d migration annotations expanded", n_migrations)


def log_tree_dump(text: str) -> None:
    """Emit the indented node listing produced by ``format_tree`` at DEBUG."""
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("Tree structure:\n%s", text)


def log_transform(
    name: str,
    nodes_before: int,
    nodes_after: int,
    leaves_before: int,
    leaves_after: int,
) -> None:
    """
    Log the effect of a structural transform on node and leaf counts.

    Parameters
    ----------
    name : str
        Transform name, e.g. ``'trim_ends(0.5, 1.5)'``.
    nodes_before, nodes_after : int
        Node counts around the transform.
    leaves_before, leaves_after : int
        Leaf counts around the transform.
    """
    logger.debug(
        "%s: nodes %d -> %d, leaves %d -> %d",
        name,
        nodes_before,
        nodes_after,
        leaves_before,
        leaves_after,
    )


def log_degenerate_tree(name: str) -> None:
    """Warn that a transform left only the root."""
    logger.warning(
        "%s removed every branch; the tree now consists of the root only.", name
    )


def log_backend_choice(backend: str, n_points: int, n_edges: int) -> None:
    """Log the backend used for one lineage-count evaluation."""
    logger.debug(
        "Lineage counts on backend '%s': %d grid points x %d branches",
        backend,
        n_points,
        n_edges,
    )


def log_skyline_summary(name: str, n_points: int, n_undefined: int) -> None:
    """
    Log how many skyline grid points produced a value.

    Parameters
    ----------
    name : str
        Skyline name, e.g. ``'ne_skyline'``.
    n_points : int
        Number of defined points returned.
    n_undefined : int
        Grid points dropped because the statistic is undefined there.
    """
    logger.debug("%s: %d points (%d undefined omitted)", name, n_points, n_undefined)
