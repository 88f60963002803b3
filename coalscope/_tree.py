"""
_tree.py
========
A time-scaled, labelled genealogy parsed from annotated NEWICK, together with
the in-place tree algebra used to reshape it before analysis.

Public API
----------
  CoalescentTree(newick_string, *, trunk_fraction=0.01, n_steps=1000,
                 step_size=0.1, backend='best')
      Constructor.  Parses the string, derives node times from branch lengths,
      marks the trunk and shifts time so that the most recent tip is at 0.

  Queries
      .root  .nodes()  .leaves()  .find_node(key)  .parent_of(node)
      .children_of(node)  .depth_of(node)  .copy()  .to_newick()  .format_tree()

  Tree algebra (in place)
      .prune_to_label  .prune_to_tips  .remove_tips  .prune_to_name
      .prune_to_time  .reduce_tips  .prune_to_trunk  .trim_ends  .time_slice
      .trunk_slice  .leaf_slice  .pad_migration_events  .pad_tree  .reduce
      .peel_back  .section_tree  .extract_subtree  .renew_trunk
      .renew_trunk_random  .push_times_back  .collapse_labels  .rotate_loc
      .accumulate_loc  .add_tail  .renumber  .adjust_coords  .set_coords

Statistics and skylines are inherited from StatisticsMixin (_stats.py) and
SkylineMixin (_skyline.py).

Structure notes
---------------
Nodes live in a :class:`NodeArena` (``self._arena``); the mixins and the
algebra address them by integer slot.  Every transform that removes nodes
follows the same pattern: collect a keep-set, close it under ancestors, then
sweep away every topmost node outside it.  Times are authoritative; lengths
are rederived from times wherever a transform moves a node in time.
"""

import bisect
import logging
import math
from typing import Iterable, List, Optional, Set, Union

from coalscope._arena import NodeArena
from coalscope._backend import (
    check_numba_available,
    get_available_backends,
    resolve_backend,
)
from coalscope._context import get_backend_override
from coalscope._errors import ConfigurationError
from coalscope._logging import (
    install_numba_warning_filter,
    log_backend_availability,
    log_degenerate_tree,
    log_optimization_status,
    log_transform,
    log_tree_dump,
    log_tree_summary,
)
from coalscope._node import Node, UNSET_LABEL
from coalscope._parser import parse_annotated_newick
from coalscope._skyline import SkylineMixin
from coalscope._stats import StatisticsMixin
from coalscope._utils import validate_positive, validate_rng

logger = logging.getLogger(__name__)


# ── System and backend info, logged once on import ───────────────────────────
_NUMBA_AVAILABLE = check_numba_available()
log_optimization_status(_NUMBA_AVAILABLE)
log_backend_availability(get_available_backends())
install_numba_warning_filter(_NUMBA_AVAILABLE)


def _interpolate(parent: Node, node: Node, t: float, attr: str) -> float:
    """Linear interpolation of *attr* along the branch parent -> node at time *t*."""
    span = node.time - parent.time
    if span <= 0.0:
        return getattr(node, attr)
    frac = (t - parent.time) / span
    lo = getattr(parent, attr)
    return lo + frac * (getattr(node, attr) - lo)


class CoalescentTree(StatisticsMixin, SkylineMixin):
    """
    A rooted, ordered, multiway genealogy with times, labels and locations.

    Attributes
    ----------
    n_steps   : int    Grid resolution of the discretised coalescent statistics.
    step_size : float  Skyline grid spacing.
    backend   : str    Resolved lineage-count backend ('python' or 'cpu-parallel').
    """

    # ================================================================== #
    # Construction                                                         #
    # ================================================================== #

    def __init__(
        self,
        newick_string: str,
        *,
        trunk_fraction: float = 0.01,
        n_steps: int = 1000,
        step_size: float = 0.1,
        backend: str = "best",
    ) -> None:
        """
        Parse *newick_string* and normalise the resulting genealogy.

        Parameters
        ----------
        newick_string : str
            Annotated NEWICK (trailing ';' optional).
        trunk_fraction : float, default 0.01
            Trunk window as a fraction of the tree's time span.  Nodes within
            this window of the present, and all their ancestors, form the trunk.
        n_steps : int, default 1000
            Number of grid intervals for coal_weight and its relatives.
        step_size : float, default 0.1
            Skyline grid spacing.
        backend : str, default 'best'
            Lineage-count backend: 'best', 'python' or 'cpu-parallel'.

        Raises
        ------
        MalformedInputError
            If the string cannot be parsed.
        ConfigurationError
            If a numeric option is out of range.
        ValueError
            If the requested backend is not available.
        """
        if not 0.0 <= trunk_fraction <= 1.0:
            raise ConfigurationError(
                f"trunk_fraction must lie in [0, 1]; got {trunk_fraction}."
            )
        self.set_n_steps(n_steps)
        self.set_step_size(step_size)
        self.backend: str = resolve_backend(backend)
        self._skyline = None

        parsed = parse_annotated_newick(newick_string)
        self._arena: NodeArena = parsed.arena
        self._labels: Set[str] = set(parsed.labels)

        self._arena[self._arena.root].length = 0.0
        self._update_times()
        span = self.present_time() - self.root_time()
        self.renew_trunk(span * trunk_fraction)
        self.push_times_back(0.0)

        log_tree_summary(
            len(self._arena),
            self.leaf_count(),
            len(self._labels),
            parsed.n_migrations,
            self.root_time(),
            self.present_time(),
        )
        log_tree_dump(self.format_tree())

    def set_n_steps(self, n_steps: int) -> None:
        """Set the grid resolution of the discretised statistics (must be >= 1)."""
        if int(n_steps) != n_steps or n_steps < 1:
            raise ConfigurationError(f"n_steps must be a positive integer; got {n_steps}.")
        self.n_steps = int(n_steps)

    def set_step_size(self, step_size: float) -> None:
        """Set the skyline grid spacing (must be positive)."""
        self.step_size = validate_positive(step_size, "step_size")

    def copy(self) -> "CoalescentTree":
        """Independent deep copy sharing no node records with this tree."""
        other = object.__new__(type(self))
        other.__dict__.update(self.__dict__)
        other._arena = self._arena.copy()
        other._labels = set(self._labels)
        other._skyline = None
        return other

    def __repr__(self) -> str:
        return (
            f"CoalescentTree(nodes={len(self._arena)}, leaves={self.leaf_count()}, "
            f"labels={len(self._labels)})"
        )

    # ================================================================== #
    # Read-only queries                                                    #
    # ================================================================== #

    @property
    def root(self) -> Node:
        return self._arena[self._arena.root]

    def nodes(self) -> List[Node]:
        """All nodes in pre-order."""
        return [self._arena[s] for s in self._arena.preorder()]

    def leaves(self) -> List[Node]:
        """Structurally childless nodes in pre-order."""
        return [self._arena[s] for s in self._arena.leaves()]

    def find_node(self, key: Union[int, str]) -> Optional[Node]:
        """
        Locate a node by number (int) or name (str).

        Returns
        -------
        Node or None
            The first match in pre-order, or None when nothing matches.
        """
        slot = self._find_slot(key)
        return None if slot is None else self._arena[slot]

    def parent_of(self, node: Node) -> Optional[Node]:
        p = self._arena.parent(self._slot_of(node))
        return None if p == -1 else self._arena[p]

    def children_of(self, node: Node) -> List[Node]:
        return [self._arena[c] for c in self._arena.children(self._slot_of(node))]

    def depth_of(self, node: Node) -> int:
        return self._arena.depth(self._slot_of(node))

    def to_newick(self, annotate: bool = True) -> str:
        """
        Serialise to parenthetical NEWICK.

        Parameters
        ----------
        annotate : bool, default True
            Append ``[&states="label"]`` to every node with a label other
            than ``"0"``.

        Returns
        -------
        str
            NEWICK string terminated by ';'.  Reparsing it reproduces the
            topology, branch lengths and labels.
        """
        arena = self._arena
        parts = {}
        for s in arena.postorder():
            node = arena[s]
            kids = arena.children(s)
            text = "(" + ",".join(parts.pop(k) for k in kids) + ")" if kids else ""
            text += node.name
            if annotate and node.label != UNSET_LABEL:
                text += f'[&states="{node.label}"]'
            if s != arena.root:
                text += f":{node.length!r}"
            parts[s] = text
        return parts[arena.root] + ";"

    def format_tree(self) -> str:
        """
        Indented one-node-per-line dump for debugging.

        Each line shows ``number name (time) [label] {length} <x,y> |rate|``,
        indented by depth; excluded nodes are marked with ``*``.
        """
        arena = self._arena
        depths = {arena.root: 0}
        lines = []
        for s in arena.preorder():
            p = arena.parent(s)
            if p != -1:
                depths[s] = depths[p] + 1
            n = arena[s]
            flag = "" if n.include else " *"
            lines.append(
                f"{'  ' * depths[s]}{n.number} {n.name} ({n.time:.6g}) [{n.label}] "
                f"{{{n.length:.6g}}} <{n.x:.6g},{n.y:.6g}> |{n.rate:.6g}|{flag}"
            )
        return "\n".join(lines)

    # ------------------------------------------------------------------ #
    # Private helpers                                                     #
    # ------------------------------------------------------------------ #

    def _find_slot(self, key) -> Optional[int]:
        for s in self._arena.preorder():
            node = self._arena[s]
            if isinstance(key, str):
                if node.name == key:
                    return s
            elif node.number == key:
                return s
        return None

    def _slot_by_name(self, name: str) -> int:
        slot = self._find_slot(str(name))
        if slot is None:
            raise KeyError(name)
        return slot

    def _slot_of(self, node: Node) -> int:
        for s in self._arena.preorder():
            if self._arena[s] is node:
                return s
        raise KeyError(f"Node {node.number} is not part of this tree.")

    def _active_backend(self) -> str:
        override = get_backend_override()
        return resolve_backend(override) if override is not None else self.backend

    def _update_times(self) -> None:
        """time = parent.time + length, top-down; the root keeps its time."""
        arena = self._arena
        for s in arena.preorder():
            p = arena.parent(s)
            if p != -1:
                arena[s].time = arena[p].time + arena[s].length

    def _update_lengths(self) -> None:
        """length = time - parent.time; the root's length is 0."""
        arena = self._arena
        for s in arena.preorder():
            p = arena.parent(s)
            arena[s].length = 0.0 if p == -1 else arena[s].time - arena[p].time

    def _closure(self, slots: Iterable[int]) -> Set[int]:
        keep = {self._arena.root}
        for s in slots:
            for a in self._arena.ancestors(s):
                if a in keep:
                    break
                keep.add(a)
        return keep

    def _sweep(self, keep: Set[int]) -> None:
        """Erase every topmost node outside *keep*."""
        arena = self._arena
        for s in arena.preorder():
            if arena.is_valid(s) and s != arena.root and s not in keep:
                arena.erase(s)

    def _max_number(self) -> int:
        return max(self._arena[s].number for s in self._arena.preorder())

    def _counts(self):
        return len(self._arena), len(self._arena.leaves())

    def _finish(self, name: str, before) -> None:
        """Log a transform and flag root-only degeneration."""
        arena = self._arena
        if arena.number_of_children(arena.root) == 0:
            arena[arena.root].leaf = True
            if before[0] > 1:
                log_degenerate_tree(name)
        after = self._counts()
        log_transform(name, before[0], after[0], before[1], after[1])

    # ================================================================== #
    # Trunk                                                                #
    # ================================================================== #

    def renew_trunk(self, window: float) -> None:
        """
        Re-mark the trunk: the root plus every node with
        ``time > present - window`` and all of its ancestors.
        """
        arena = self._arena
        for s in arena.preorder():
            arena[s].trunk = False
        arena[arena.root].trunk = True
        cutoff = self.present_time() - window
        for s in arena.preorder():
            if arena[s].time > cutoff and not arena[s].trunk:
                for a in arena.ancestors(s):
                    if arena[a].trunk:
                        break
                    arena[a].trunk = True

    def renew_trunk_random(self, window: float, rng) -> None:
        """
        Re-mark the trunk as the path from one tip, drawn uniformly with *rng*
        among tips with ``time > present - window``, up to the root.

        Raises
        ------
        ConfigurationError
            If *rng* is not a ``numpy.random.Generator``.
        """
        rng = validate_rng(rng)
        arena = self._arena
        cutoff = self.present_time() - window
        candidates = [s for s in arena.preorder() if arena[s].leaf and arena[s].time > cutoff]

        for s in arena.preorder():
            arena[s].trunk = False
        arena[arena.root].trunk = True
        if not candidates:
            return
        chosen = candidates[int(rng.integers(len(candidates)))]
        for a in arena.ancestors(chosen):
            arena[a].trunk = True

    # ================================================================== #
    # Pruning                                                              #
    # ================================================================== #

    def _prune_to(self, name: str, slots: List[int], reduce: bool = True) -> None:
        before = self._counts()
        self._sweep(self._closure(slots))
        if reduce:
            self._reduce()
        self._finish(name, before)

    def prune_to_label(self, label: str) -> None:
        """Keep only the tips carrying *label* (and their ancestors), then reduce."""
        arena = self._arena
        matches = [s for s in arena.preorder() if arena[s].leaf and arena[s].label == label]
        self._prune_to(f"prune_to_label({label!r})", matches)

    def prune_to_tips(self, names: Iterable[str]) -> None:
        """
        Keep only the named tips (and their ancestors), then reduce.

        Raises
        ------
        KeyError
            If a name does not occur in the tree.
        """
        slots = [self._slot_by_name(n) for n in names]
        self._prune_to("prune_to_tips", slots)

    def remove_tips(self, names: Iterable[str]) -> None:
        """
        Erase the named tips, then reduce.  Ancestors left without children
        are erased too.  Unknown names raise KeyError.
        """
        arena = self._arena
        slots = [self._slot_by_name(n) for n in names]
        before = self._counts()
        for s in slots:
            if not arena.is_valid(s) or s == arena.root:
                continue
            p = arena.parent(s)
            arena.erase(s)
            while p != arena.root and arena.number_of_children(p) == 0:
                up = arena.parent(p)
                arena.erase(p)
                p = up
        self._reduce()
        self._finish("remove_tips", before)

    def prune_to_name(self, name: str) -> None:
        """Keep the node(s) named *name* and their ancestors, without reducing."""
        arena = self._arena
        matches = [s for s in arena.preorder() if arena[s].name == name]
        self._prune_to(f"prune_to_name({name!r})", matches, reduce=False)

    def prune_to_time(self, start: float, stop: float) -> None:
        """Keep tips sampled strictly between *start* and *stop*, then reduce."""
        arena = self._arena
        matches = [
            s for s in arena.preorder()
            if arena[s].leaf and start < arena[s].time < stop
        ]
        self._prune_to(f"prune_to_time({start}, {stop})", matches)

    def reduce_tips(self, p: float, rng) -> None:
        """
        Keep each tip independently with probability *p*, then peel back and
        reduce.

        Raises
        ------
        ConfigurationError
            If *p* lies outside [0, 1] or *rng* is not a numpy Generator.
        """
        rng = validate_rng(rng)
        if not 0.0 <= p <= 1.0:
            raise ConfigurationError(f"Keep probability must lie in [0, 1]; got {p}.")
        arena = self._arena
        before = self._counts()
        kept = [s for s in arena.preorder() if arena[s].leaf and rng.uniform() < p]
        if not kept:
            logger.warning("reduce_tips(%g) kept no tips.", p)
        self._sweep(self._closure(kept))
        self._peel_back()
        self._reduce()
        self._finish(f"reduce_tips({p})", before)

    def prune_to_trunk(self) -> None:
        """Erase every non-trunk node, then reduce."""
        arena = self._arena
        trunk = [s for s in arena.preorder() if arena[s].trunk]
        self._prune_to("prune_to_trunk", trunk)

    # ================================================================== #
    # Time windows                                                         #
    # ================================================================== #

    def trim_ends(self, start: float, stop: float) -> None:
        """
        Restrict the tree to the time window [start, stop].

        Branches crossing *stop* are cut there and become tips.  Branches
        crossing *start* pull their parent forward to *start*; that parent is
        excluded from the statistics and re-attached directly beneath the
        root.  Everything older than *start* is then removed, lengths are
        recomputed from times, and the tree is reduced.
        """
        arena = self._arena
        before = self._counts()

        changed = True
        while changed:
            changed = False
            for s in arena.preorder():
                if not arena.is_valid(s):
                    continue
                p = arena.parent(s)
                if p == -1:
                    continue
                node, par = arena[s], arena[p]
                if node.time > stop and par.time <= stop:
                    node.time = stop
                    node.leaf = True
                    arena.erase_children(s)
                    changed = True
                elif node.time > start and par.time < start:
                    par.time = start
                    par.include = False
                    if p != arena.root and arena.parent(p) != arena.root:
                        arena.move_under(p, arena.root)
                    changed = True

        for s in arena.preorder():
            if arena.is_valid(s) and s != arena.root and arena[s].time < start:
                arena.erase(s)
        root = arena[arena.root]
        if root.time < start:
            root.time = start
            root.include = False

        self._update_lengths()
        self._reduce()
        self._finish(f"trim_ends({start}, {stop})", before)

    def _truncate(self, s: int, instant: float) -> None:
        """Cut the branch above *s* at *instant*; *s* becomes a childless tip."""
        arena = self._arena
        node, par = arena[s], arena[arena.parent(s)]
        for attr in ("x", "y", "x_coord", "y_coord"):
            setattr(node, attr, _interpolate(par, node, instant, attr))
        node.time = instant
        node.length = instant - par.time
        node.leaf = True
        arena.erase_children(s)

    def time_slice(self, instant: float) -> None:
        """
        Keep only the lineages alive at *instant*, cut at *instant*.

        Every branch with ``parent.time <= instant < node.time`` is truncated
        to *instant* (locations interpolated along the branch); everything
        else that is not an ancestor of such a cut tip is removed.  The result
        is peeled back to the MRCA of the cut tips and reduced.
        """
        arena = self._arena
        before = self._counts()
        cut = []
        for s in arena.preorder():
            if not arena.is_valid(s):
                continue
            p = arena.parent(s)
            if p != -1 and arena[s].time > instant >= arena[p].time:
                self._truncate(s, instant)
                cut.append(s)
        self._sweep(self._closure(cut))
        self._peel_back()
        self._reduce()
        self._finish(f"time_slice({instant})", before)

    def trunk_slice(self, instant: float) -> None:
        """Truncate trunk branches crossing *instant*; they become tips."""
        arena = self._arena
        before = self._counts()
        for s in arena.preorder():
            if not arena.is_valid(s):
                continue
            p = arena.parent(s)
            if (
                p != -1
                and arena[s].trunk
                and arena[p].trunk
                and arena[s].time > instant >= arena[p].time
            ):
                self._truncate(s, instant)
        self._finish(f"trunk_slice({instant})", before)

    def leaf_slice(self, start: float, stop: float) -> None:
        """Keep the tips with ``start < time <= stop`` and their ancestors."""
        arena = self._arena
        before = self._counts()
        kept = [
            s for s in arena.preorder()
            if arena[s].leaf and start < arena[s].time <= stop
        ]
        self._sweep(self._closure(kept))
        self._peel_back()
        self._reduce()
        self._finish(f"leaf_slice({start}, {stop})", before)

    def section_tree(self, start: float, window: float, step: float) -> None:
        """
        Replace the tree by a comb of time windows.

        For ``t = start + k*step`` (k = 0, 1, ...) below the present and after
        the root, a copy of the current tree is trimmed to ``[t, t + window]``
        and hung beneath a new excluded root at time *start*.  Window roots are
        excluded from the statistics; their branch spans ``t_root - start``.
        The composite tree is renumbered from 0.
        """
        window = validate_positive(window, "window")
        step = validate_positive(step, "step")
        before = self._counts()
        present = self.present_time()
        root_time = self.root_time()

        old_root = self.root
        composite = NodeArena()
        croot = composite.set_root(
            Node(0, label=old_root.label, time=start, include=False, trunk=True)
        )

        k = 0
        t = start
        while t < present:
            if t > root_time:
                piece = self.copy()
                piece.trim_ends(t, t + window)
                top = composite.graft(croot, piece._arena, piece._arena.root)
                composite[top].include = False
                composite[top].length = composite[top].time - start
            k += 1
            t = start + k * step

        self._arena = composite
        self.renumber(0)
        self._finish(f"section_tree({start}, {window}, {step})", before)

    # ================================================================== #
    # Padding                                                              #
    # ================================================================== #

    def pad_migration_events(self, rng) -> None:
        """
        Make every label change a single-child node.

        For each original branch whose label differs from its parent's (and
        whose parent is bifurcating) a node carrying the parent's label is
        inserted at a uniformly drawn point along the branch.

        Raises
        ------
        ConfigurationError
            If *rng* is not a ``numpy.random.Generator``.
        """
        rng = validate_rng(rng)
        arena = self._arena
        before = self._counts()
        next_number = self._max_number() + 1
        for s in arena.preorder():
            p = arena.parent(s)
            if p == -1:
                continue
            node, par = arena[s], arena[p]
            if node.label == par.label or arena.number_of_children(p) != 2:
                continue
            first = float(rng.uniform(0.0, node.length)) if node.length > 0 else 0.0
            second = node.length - first
            mig = Node(
                next_number,
                label=par.label,
                time=node.time - second,
                length=first,
                trunk=node.trunk,
                include=node.include,
            )
            for attr in ("x", "y", "x_coord", "y_coord"):
                setattr(mig, attr, _interpolate(par, node, mig.time, attr))
            node.length = second
            arena.wrap(s, mig)
            next_number += 1
        self._finish("pad_migration_events", before)

    def pad_tree(self) -> None:
        """
        Insert a node at every distinct tree time crossed by a branch.

        Afterwards the depth of every node equals the rank of its time among
        the distinct node times, so all lineages step through time together.
        """
        arena = self._arena
        before = self._counts()
        times = sorted({arena[s].time for s in arena.preorder()})
        next_number = self._max_number() + 1
        for s in arena.preorder():
            p = arena.parent(s)
            if p == -1:
                continue
            node, par = arena[s], arena[p]
            lo = bisect.bisect_right(times, par.time)
            hi = bisect.bisect_left(times, node.time)
            cur = s
            for t in reversed(times[lo:hi]):
                pad = Node(
                    next_number,
                    label=node.label,
                    time=t,
                    trunk=node.trunk,
                    include=node.include,
                )
                for attr in ("x", "y", "x_coord", "y_coord"):
                    setattr(pad, attr, _interpolate(par, node, t, attr))
                arena[cur].length = arena[cur].time - t
                cur = arena.wrap(cur, pad)
                next_number += 1
            arena[cur].length = arena[cur].time - par.time
        self._finish("pad_tree", before)

    # ================================================================== #
    # Simplification                                                       #
    # ================================================================== #

    def _reduce(self) -> None:
        arena = self._arena
        changed = True
        while changed:
            changed = False
            for s in arena.preorder():
                if not arena.is_valid(s) or arena.parent(s) == -1:
                    continue
                kids = arena.children(s)
                if len(kids) == 1 and arena[kids[0]].label == arena[s].label:
                    arena[kids[0]].length += arena[s].length
                    arena.reparent_up(s)
                    changed = True

    def reduce(self) -> None:
        """
        Merge every non-root single-child node into its child when both carry
        the same label, repeating until nothing changes.
        """
        before = self._counts()
        self._reduce()
        self._finish("reduce", before)

    def _peel_back(self) -> None:
        arena = self._arena
        s = arena.root
        while arena.number_of_children(s) == 1:
            child = arena.children(s)[0]
            if s != arena.root:
                arena[child].length += arena[s].length
                arena.reparent_up(s)
            s = child
        if arena.number_of_children(arena.root) == 1:
            arena.promote_only_child()
            arena[arena.root].length = 0.0

    def peel_back(self) -> None:
        """
        Strip the single-child chain above the first bifurcation, so that the
        root becomes the MRCA of the remaining tips.
        """
        before = self._counts()
        self._peel_back()
        self._finish("peel_back", before)

    # ================================================================== #
    # Extraction                                                           #
    # ================================================================== #

    def extract_subtree(self, numbers: Iterable[int]) -> "CoalescentTree":
        """
        Return a new tree holding the given nodes and their ancestors.

        The given nodes become tips of the new tree (their descendants are
        dropped, including any other requested node nested below them).  This
        tree is left unchanged.

        Raises
        ------
        KeyError
            If a number does not occur in the tree.
        """
        other = self.copy()
        slots = []
        for n in numbers:
            slot = other._find_slot(int(n))
            if slot is None:
                raise KeyError(n)
            slots.append(slot)
        before = other._counts()
        # a node nested under another requested node is dropped with it
        requested = set(slots)
        tops = [s for s in slots if not requested.intersection(other._arena.ancestors(s)[1:])]
        for s in tops:
            other._arena.erase_children(s)
            other._arena[s].leaf = True
        other._sweep(other._closure(tops))
        other._finish("extract_subtree", before)
        return other

    # ================================================================== #
    # Time, labels and coordinates                                         #
    # ================================================================== #

    def push_times_back(self, end: float, start: Optional[float] = None) -> None:
        """
        Shift node times so that the most recent tip sits at *end*.

        When *start* is given and ``start < end``, branch lengths are first
        rescaled so that the oldest tip sits at *start*.

        Raises
        ------
        ConfigurationError
            If rescaling is requested but every tip has the same time.
        """
        arena = self._arena
        if start is not None and start < end:
            present = self.present_time()
            oldest = min(arena[s].time for s in arena.leaves())
            if present == oldest:
                raise ConfigurationError(
                    "Cannot stretch a tree whose tips all share one sampling time."
                )
            factor = (end - start) / (present - oldest)
            for s in arena.preorder():
                arena[s].length *= factor
            arena[arena.root].length = 0.0
            self._update_times()
        shift = end - self.present_time()
        for s in arena.preorder():
            arena[s].time += shift

    def collapse_labels(self) -> None:
        """Give every node the label ``'1'``."""
        for s in self._arena.preorder():
            self._arena[s].label = "1"
        self._labels = {"1"}

    def rotate_loc(self, radians: float) -> None:
        """Rotate every (x, y) location by *radians* about the origin."""
        c, s_ = math.cos(radians), math.sin(radians)
        for s in self._arena.preorder():
            node = self._arena[s]
            node.x, node.y = c * node.x - s_ * node.y, s_ * node.x + c * node.y

    def accumulate_loc(self) -> None:
        """Turn per-branch displacements into absolute locations (cumulative sums)."""
        arena = self._arena
        for s in arena.preorder():
            p = arena.parent(s)
            if p != -1:
                arena[s].x += arena[p].x
                arena[s].y += arena[p].y

    def add_tail(self, setback: float) -> None:
        """Place a new root *setback* time units above the current root."""
        arena = self._arena
        old = arena[arena.root]
        tail = Node(
            self._max_number() + 1,
            label=old.label,
            time=old.time - setback,
            trunk=True,
            include=old.include,
            x=old.x,
            y=old.y,
            x_coord=old.x_coord,
            y_coord=old.y_coord,
        )
        old.length = setback
        arena.wrap(arena.root, tail)

    def renumber(self, start: int = 0) -> int:
        """Renumber nodes in pre-order from *start*; returns the next free number."""
        n = start
        for s in self._arena.preorder():
            self._arena[s].number = n
            n += 1
        return n

    def adjust_coords(self) -> None:
        """
        Lay the tree out for drawing.

        Children are ordered by ascending subtree size, tips get consecutive
        y positions in pre-order, internal nodes sit at the mean y of their
        children, and x_coord is the node time.
        """
        arena = self._arena
        sizes = {}
        for s in arena.postorder():
            sizes[s] = 1 + sum(sizes[c] for c in arena.children(s))
        for s in arena.preorder():
            arena.sort_children(s, key=sizes.__getitem__)

        y = 0
        for s in arena.preorder():
            node = arena[s]
            node.x_coord = node.time
            if node.leaf:
                node.y_coord = float(y)
                y += 1
        self._average_y_coords()

    def set_coords(self, tip_order: List[str]) -> None:
        """
        Set tip y positions from an explicit ordering of tip names.

        Tips not in *tip_order* keep their current y_coord.  Internal nodes
        take the mean y_coord of their children.
        """
        arena = self._arena
        rank = {name: i for i, name in enumerate(tip_order)}
        for s in arena.preorder():
            node = arena[s]
            node.x_coord = node.time
            if node.leaf and node.name in rank:
                node.y_coord = float(rank[node.name])
        self._average_y_coords()

    def _average_y_coords(self) -> None:
        arena = self._arena
        for s in arena.postorder():
            kids = arena.children(s)
            if kids:
                arena[s].y_coord = sum(arena[c].y_coord for c in kids) / len(kids)
