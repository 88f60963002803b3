"""
_node.py
========
The per-vertex record stored in a coalescent tree.
"""

from dataclasses import dataclass, replace

# Label carried by nodes whose state has not been assigned.
UNSET_LABEL = "0"


@dataclass
class Node:
    """
    One vertex of a time-scaled tree.

    Attributes
    ----------
    number   : int    Unique non-negative identity within a tree.
    name     : str    Tip identifier; '' for internal and synthetic nodes.
    label    : str    Deme/state identifier; ``UNSET_LABEL`` when unknown.
    time     : float  Absolute age, non-decreasing from root to tips.
    length   : float  Branch length from the parent (0 for the root).
    leaf     : bool   Tip flag.  Forced True when slicing truncates a subtree.
    trunk    : bool   Ancestral to the present-day sample window.
    include  : bool   Branch contributes to lengths and statistics.
    x, y     : float  Continuous trait coordinates.
    x_coord, y_coord : float  Layout coordinates, never read by statistics.
    rate     : float  Per-branch substitution rate.
    """

    number: int
    name: str = ""
    label: str = UNSET_LABEL
    time: float = 0.0
    length: float = 0.0
    leaf: bool = False
    trunk: bool = False
    include: bool = True
    x: float = 0.0
    y: float = 0.0
    x_coord: float = 0.0
    y_coord: float = 0.0
    rate: float = 0.0

    def copy(self) -> "Node":
        return replace(self)
