"""
_stats.py
=========
Read-only summary statistics over a :class:`CoalescentTree`.

StatisticsMixin is mixed into CoalescentTree and only reads ``self._arena``
and ``self._labels``.  It never mutates the tree; statistics that need a
modified tree (the diversity skylines) work on a ``copy()``.

Statistic families
------------------
  basic        present_time, root_time, tmrca, leaf_count, node_count,
               length, label_pro, label_pro_of, root_label_pro, trunk_pro,
               label_set
  diversity    diversity, diversity_within, diversity_between,
               pairwise_diversity, tajima_d, fst
  coalescent   coal_count, coal_count_trunk, coal_weight, coal_weight_trunk,
               coal_rate, coal_rate_trunk, coal_counts, coal_weights, coal_rates
  migration    mig_count, mig_rate, mig_rates
  diffusion    diffusion_coefficient, drift_rate
  persistence  persistence, persistence_quantile
  tip-based    label_pro_from_tips, rate_1d_from_tips, rate_2d_from_tips,
               mean_x, mean_y, mean_rate, tips_x, tips_y, tip_names,
               time_of, label_of, time_to_trunk

Degenerate inputs
-----------------
A zero denominator, an empty pair set or a negative variance term raises
:class:`UndefinedStatisticError`.  No method returns NaN or infinity.

Lineage counting
----------------
``coal_weight`` and its relatives sample the number of concurrent lineages
on ``n_steps + 1`` evenly spaced grid points.  A lineage (the branch above
an included, non-root node) is alive at ``t`` when
``parent.time < t <= node.time``.  The count runs on the backend selected at
construction (or overridden by ``use_backend``): numpy broadcasting or the
numba kernel in ``_cpu_kernels``.
"""

import math
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np

from coalscope._backend import count_lineages
from coalscope._errors import ConfigurationError, UndefinedStatisticError
from coalscope._logging import log_backend_choice

_BRANCH_SETS = ("all", "trunk", "side", "internal")
_NORMALIZATIONS = ("to", "from", "total")


def _ratio(num: float, den: float, what: str) -> float:
    if den == 0.0:
        raise UndefinedStatisticError(f"{what} is undefined: zero denominator.")
    return num / den


class StatisticsMixin:
    """Statistics over the genealogy; see the module docstring for the list."""

    # ================================================================== #
    # Basic                                                                #
    # ================================================================== #

    def present_time(self) -> float:
        """Latest of the root time and all tip times."""
        arena = self._arena
        return max([arena[arena.root].time] + [arena[s].time for s in arena.leaves()])

    def root_time(self) -> float:
        """Earliest of the root time and all tip times."""
        arena = self._arena
        return min([arena[arena.root].time] + [arena[s].time for s in arena.leaves()])

    def tmrca(self) -> float:
        """
        Time from the root to the present.

        Raises
        ------
        UndefinedStatisticError
            If the tree has fewer than two tips.
        """
        if len(self._arena.leaves()) < 2:
            raise UndefinedStatisticError("TMRCA needs at least two tips.")
        return self.present_time() - self.root_time()

    def leaf_count(self) -> int:
        """Number of nodes flagged as tips."""
        arena = self._arena
        return sum(1 for s in arena.preorder() if arena[s].leaf)

    def node_count(self) -> int:
        return len(self._arena)

    def length(self, label: Optional[str] = None) -> float:
        """Total branch length over included nodes, optionally of one label."""
        arena = self._arena
        total = 0.0
        for s in arena.preorder():
            node = arena[s]
            if node.include and (label is None or node.label == label):
                total += node.length
        return total

    def label_set(self) -> List[str]:
        """Sorted union of registered labels and labels present on nodes."""
        arena = self._arena
        observed = {arena[s].label for s in arena.preorder()}
        return sorted(set(self._labels) | observed)

    def label_pro(self) -> Dict[str, float]:
        """
        Share of the total included length carried by each label.

        Returns
        -------
        dict[str, float]
            One entry per label in :meth:`label_set`; the values sum to 1.
        """
        total = self.length()
        if total == 0.0:
            raise UndefinedStatisticError("Label proportions need a positive tree length.")
        return {label: self.length(label) / total for label in self.label_set()}

    def label_pro_of(self, label: str) -> float:
        return _ratio(self.length(label), self.length(), "label_pro_of")

    def root_label_pro(self, label: str) -> float:
        """1.0 if the root carries *label*, else 0.0."""
        return 1.0 if self._arena[self._arena.root].label == label else 0.0

    def trunk_pro(self) -> float:
        """Share of the included length that lies on the trunk."""
        arena = self._arena
        trunk = sum(
            arena[s].length for s in arena.preorder()
            if arena[s].include and arena[s].trunk
        )
        return _ratio(trunk, self.length(), "trunk_pro")

    # ================================================================== #
    # Diversity                                                            #
    # ================================================================== #

    def _tips(self, label: Optional[str] = None) -> List[int]:
        arena = self._arena
        return [
            s for s in arena.leaves()
            if arena[s].include and (label is None or arena[s].label == label)
        ]

    def _mean_pair_diversity(
        self,
        tips: List[int],
        accept: Optional[Callable[[int, int], bool]] = None,
        what: str = "diversity",
    ) -> float:
        arena = self._arena
        total = 0.0
        n_pairs = 0
        for i, a in enumerate(tips):
            # first walk: every ancestor of a
            seen = set(arena.ancestors(a))
            ta = arena[a].time
            for b in tips[i + 1:]:
                if accept is not None and not accept(a, b):
                    continue
                # second walk: climb from b until the paths meet
                m = b
                while m not in seen:
                    m = arena.parent(m)
                total += ta + arena[b].time - 2.0 * arena[m].time
                n_pairs += 1
        if n_pairs == 0:
            raise UndefinedStatisticError(f"{what} needs at least one pair of tips.")
        return total / n_pairs

    def diversity(self, label: Optional[str] = None) -> float:
        """
        Mean pairwise tip distance through the MRCA.

        Parameters
        ----------
        label : str, optional
            Restrict to pairs of tips carrying this label.

        Raises
        ------
        UndefinedStatisticError
            If there are fewer than two qualifying tips.
        """
        return self._mean_pair_diversity(self._tips(label))

    def diversity_within(self) -> float:
        """Mean pairwise distance over tip pairs sharing a label."""
        arena = self._arena
        return self._mean_pair_diversity(
            self._tips(),
            lambda a, b: arena[a].label == arena[b].label,
            "diversity_within",
        )

    def diversity_between(self) -> float:
        """Mean pairwise distance over tip pairs with different labels."""
        arena = self._arena
        return self._mean_pair_diversity(
            self._tips(),
            lambda a, b: arena[a].label != arena[b].label,
            "diversity_between",
        )

    def pairwise_diversity(self, tip_a: str, tip_b: str) -> float:
        """Distance between two named tips through their MRCA."""
        a = self._slot_by_name(tip_a)
        b = self._slot_by_name(tip_b)
        return self._mean_pair_diversity([a, b], what="pairwise_diversity")

    def tajima_d(self) -> float:
        """
        Tajima's D with tree length standing in for segregating sites.

        Returns
        -------
        float
            ``(pi - S/a1) / sqrt(e1*S + e2*S*(S-1))`` with pi the mean pairwise
            diversity and S the included tree length.

        Raises
        ------
        UndefinedStatisticError
            If there are fewer than two tips or the variance term is not
            positive.
        """
        n = len(self._tips())
        if n <= 1:
            raise UndefinedStatisticError("Tajima's D needs at least two tips.")
        pi = self.diversity()
        s = self.length()

        a1 = sum(1.0 / i for i in range(1, n))
        a2 = sum(1.0 / (i * i) for i in range(1, n))
        b1 = (n + 1) / (3.0 * (n - 1))
        b2 = 2.0 * (n * n + n + 3) / (9.0 * n * (n - 1))
        c1 = b1 - 1.0 / a1
        c2 = b2 - (n + 2) / (a1 * n) + a2 / (a1 * a1)
        e1 = c1 / a1
        e2 = c2 / (a1 * a1 + a2)

        variance = e1 * s + e2 * s * (s - 1.0)
        if variance <= 0.0:
            raise UndefinedStatisticError("Tajima's D variance term is not positive.")
        return (pi - s / a1) / math.sqrt(variance)

    def fst(self) -> float:
        """``(between - within) / between`` over tip-pair diversities."""
        between = self.diversity_between()
        within = self.diversity_within()
        return _ratio(between - within, between, "Fst")

    # ================================================================== #
    # Coalescent                                                           #
    # ================================================================== #

    def _grid(self) -> Tuple[np.ndarray, float]:
        start = self.root_time()
        step = (self.present_time() - start) / self.n_steps
        return start + step * np.arange(self.n_steps + 1, dtype=np.float64), step

    def _lineages(
        self, grid: np.ndarray, predicate: Optional[Callable[[int], bool]] = None
    ) -> np.ndarray:
        """Concurrent included lineages (optionally filtered) at each grid point."""
        arena = self._arena
        times, parent_times, mask = [], [], []
        for s in arena.preorder():
            p = arena.parent(s)
            if p == -1:
                continue
            node = arena[s]
            times.append(node.time)
            parent_times.append(arena[p].time)
            mask.append(node.include and (predicate is None or predicate(s)))

        backend = self._active_backend()
        log_backend_choice(backend, len(grid), len(times))
        return count_lineages(
            np.asarray(times, dtype=np.float64),
            np.asarray(parent_times, dtype=np.float64),
            np.asarray(mask, dtype=bool),
            grid,
            backend,
        )

    def _label_filter(self, label: Optional[str]):
        if label is None:
            return None
        arena = self._arena
        return lambda s: arena[s].label == label

    def coal_count(self, label: Optional[str] = None) -> int:
        """Number of included bifurcations, optionally of one label."""
        arena = self._arena
        return sum(
            1 for s in arena.preorder()
            if arena[s].include
            and arena.number_of_children(s) == 2
            and (label is None or arena[s].label == label)
        )

    def coal_count_trunk(self) -> int:
        """Bifurcations joining exactly one trunk and one side-branch child."""
        arena = self._arena
        count = 0
        for s in arena.preorder():
            kids = arena.children(s)
            if arena[s].include and len(kids) == 2:
                if arena[kids[0]].trunk != arena[kids[1]].trunk:
                    count += 1
        return count

    def coal_weight(self, label: Optional[str] = None) -> float:
        """
        Opportunity for coalescence: the integral of C(k, 2) over time, where
        k is the number of concurrent lineages (of *label*, when given).
        """
        grid, step = self._grid()
        if step == 0.0:
            return 0.0
        k = self._lineages(grid, self._label_filter(label)).astype(np.float64)
        return float(np.sum(k * (k - 1.0) / 2.0) * step)

    def coal_weight_trunk(self) -> float:
        """Opportunity for side branches to coalesce with the trunk."""
        grid, step = self._grid()
        if step == 0.0:
            return 0.0
        k = self._lineages(grid).astype(np.float64)
        return float(np.sum(k) * step)

    def coal_rate(self, label: Optional[str] = None) -> float:
        """``coal_count / coal_weight`` (for *label*, when given)."""
        return _ratio(self.coal_count(label), self.coal_weight(label), "coal_rate")

    def coal_rate_trunk(self) -> float:
        return _ratio(self.coal_count_trunk(), self.coal_weight_trunk(), "coal_rate_trunk")

    def coal_counts(self) -> Dict[str, int]:
        return {label: self.coal_count(label) for label in self.label_set()}

    def coal_weights(self) -> Dict[str, float]:
        return {label: self.coal_weight(label) for label in self.label_set()}

    def coal_rates(self) -> Dict[str, float]:
        """Per-label coalescent rates; labels with zero weight are left out."""
        rates = {}
        for label in self.label_set():
            weight = self.coal_weight(label)
            if weight > 0.0:
                rates[label] = self.coal_count(label) / weight
        return rates

    # ================================================================== #
    # Migration                                                            #
    # ================================================================== #

    def mig_count(
        self, from_label: Optional[str] = None, to_label: Optional[str] = None
    ) -> int:
        """
        Number of label changes along included branches.

        A change counts when both ends of the branch are included and the
        child's label differs from the parent's.  With *from_label* and/or
        *to_label* only changes with that parent / child label are counted.
        """
        arena = self._arena
        count = 0
        for s in arena.preorder():
            p = arena.parent(s)
            if p == -1:
                continue
            node, par = arena[s], arena[p]
            if not (node.include and par.include) or node.label == par.label:
                continue
            if from_label is not None and par.label != from_label:
                continue
            if to_label is not None and node.label != to_label:
                continue
            count += 1
        return count

    def mig_rate(
        self,
        from_label: Optional[str] = None,
        to_label: Optional[str] = None,
        normalize: str = "to",
    ) -> float:
        """
        Migration events per unit of branch length.

        Parameters
        ----------
        from_label, to_label : str, optional
            Directional rate, counted backwards in time (parent label
            *from_label*, child label *to_label*).  Give both or neither.
        normalize : {'to', 'from', 'total'}, default 'to'
            Denominator for a directional rate: the length carrying
            *to_label*, the length carrying *from_label*, or the whole tree.

        Raises
        ------
        ConfigurationError
            If only one label is given or *normalize* is unknown.
        UndefinedStatisticError
            If the chosen denominator is zero.
        """
        if normalize not in _NORMALIZATIONS:
            raise ConfigurationError(
                f"normalize must be one of {', '.join(_NORMALIZATIONS)}; got {normalize!r}."
            )
        if from_label is None and to_label is None:
            return _ratio(self.mig_count(), self.length(), "mig_rate")
        if from_label is None or to_label is None:
            raise ConfigurationError("mig_rate needs both from_label and to_label.")

        if normalize == "to":
            denominator = self.length(to_label)
        elif normalize == "from":
            denominator = self.length(from_label)
        else:
            denominator = self.length()
        return _ratio(self.mig_count(from_label, to_label), denominator, "mig_rate")

    def mig_rates(self, normalize: str = "to") -> Dict[Tuple[str, str], float]:
        """Directional rates for every ordered label pair with a defined rate."""
        rates = {}
        for a in self.label_set():
            for b in self.label_set():
                if a == b:
                    continue
                try:
                    rates[(a, b)] = self.mig_rate(a, b, normalize)
                except UndefinedStatisticError:
                    continue
        return rates

    # ================================================================== #
    # Diffusion                                                            #
    # ================================================================== #

    def _branch_displacements(self, branches: str) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        if branches not in _BRANCH_SETS:
            raise ConfigurationError(
                f"branches must be one of {', '.join(_BRANCH_SETS)}; got {branches!r}."
            )
        arena = self._arena
        dx, dy, dt = [], [], []
        for s in arena.preorder():
            p = arena.parent(s)
            if p == -1:
                continue
            node, par = arena[s], arena[p]
            if branches == "trunk" and not (node.trunk and par.trunk):
                continue
            if branches == "side" and (node.trunk or par.trunk):
                continue
            if branches == "internal" and (node.leaf or node.trunk or par.trunk):
                continue
            dx.append(node.x - par.x)
            dy.append(node.y - par.y)
            dt.append(node.time - par.time)
        return np.asarray(dx), np.asarray(dy), np.asarray(dt)

    def diffusion_coefficient(self, branches: str = "all") -> float:
        """
        Pooled 2-D diffusion coefficient ``sum(d^2) / (4 * sum(t))``.

        Parameters
        ----------
        branches : {'all', 'trunk', 'side', 'internal'}
            'trunk' uses branches with both ends on the trunk, 'side' those
            with neither end on the trunk, and 'internal' the side branches
            that do not end in a tip.
        """
        dx, dy, dt = self._branch_displacements(branches)
        sq = float(np.sum(dx * dx + dy * dy))
        return _ratio(sq, 4.0 * float(np.sum(dt)), "diffusion_coefficient")

    def drift_rate(self, branches: str = "all") -> float:
        """Pooled drift of x per unit time ``sum(dx) / sum(t)``."""
        dx, _, dt = self._branch_displacements(branches)
        return _ratio(float(np.sum(dx)), float(np.sum(dt)), "drift_rate")

    # ================================================================== #
    # Persistence                                                          #
    # ================================================================== #

    def _persistence_times(self, label: Optional[str]) -> np.ndarray:
        arena = self._arena
        out = []
        for s in arena.leaves():
            tip = arena[s]
            if label is not None and tip.label != label:
                continue
            a = arena.parent(s)
            while a != -1:
                if arena[a].label != tip.label:
                    out.append(tip.time - arena[a].time)
                    break
                a = arena.parent(a)
        if not out:
            raise UndefinedStatisticError("No tip has an ancestor with a different label.")
        return np.asarray(out)

    def persistence(self, label: Optional[str] = None) -> float:
        """
        Mean time from a tip back to its first ancestor with another label.

        Tips whose whole ancestry shares their label do not contribute.
        """
        return float(np.mean(self._persistence_times(label)))

    def persistence_quantile(self, q: float, label: Optional[str] = None) -> float:
        """The *q*-quantile of the same per-tip times as :meth:`persistence`."""
        if not 0.0 <= q <= 1.0:
            raise ConfigurationError(f"Quantile must lie in [0, 1]; got {q}.")
        return float(np.quantile(self._persistence_times(label), q))

    # ================================================================== #
    # Tip-based                                                            #
    # ================================================================== #

    def _node_back_from_tip(self, s: int, window: float) -> int:
        """Oldest ancestor-or-self of *s* still younger than ``tip.time - window``."""
        arena = self._arena
        final = arena[s].time - window
        p = arena.parent(s)
        while p != -1 and arena[p].time > final:
            s = p
            p = arena.parent(s)
        return s

    def _trait_back_from_tip(self, s: int, window: float, attr: str) -> Optional[float]:
        """
        Value of *attr* interpolated on the lineage of tip *s* at
        ``tip.time - window``; None when the lineage does not reach back that far.
        """
        arena = self._arena
        below = self._node_back_from_tip(s, window)
        above = arena.parent(below)
        if above == -1:
            return None
        final = arena[s].time - window
        lo, hi = arena[above], arena[below]
        span = hi.time - lo.time
        if span <= 0.0:
            return getattr(hi, attr)
        frac = (final - lo.time) / span
        return getattr(lo, attr) + frac * (getattr(hi, attr) - getattr(lo, attr))

    def label_pro_from_tips(
        self, label: str, window: float, starting_label: Optional[str] = None
    ) -> float:
        """
        Fraction of tips whose lineage carries *label* *window* time units back.

        Parameters
        ----------
        label : str
            Label to look for.
        window : float
            How far back from each tip to look.
        starting_label : str, optional
            Only consider tips carrying this label.
        """
        arena = self._arena
        hits = 0
        count = 0
        for s in arena.preorder():
            tip = arena[s]
            if not tip.leaf or (starting_label is not None and tip.label != starting_label):
                continue
            if arena[self._node_back_from_tip(s, window)].label == label:
                hits += 1
            count += 1
        return _ratio(hits, count, "label_pro_from_tips")

    def _rates_from_tips(self, offset: float, window: float, two_d: bool) -> float:
        if window <= 0.0:
            raise ConfigurationError(f"window must be positive; got {window}.")
        arena = self._arena
        rates = []
        for s in arena.preorder():
            if not arena[s].leaf:
                continue
            x0 = self._trait_back_from_tip(s, offset, "x")
            x1 = self._trait_back_from_tip(s, offset + window, "x")
            if x0 is None or x1 is None:
                continue
            if two_d:
                y0 = self._trait_back_from_tip(s, offset, "y")
                y1 = self._trait_back_from_tip(s, offset + window, "y")
                rates.append(math.hypot(x0 - x1, y0 - y1) / window)
            else:
                rates.append((x0 - x1) / window)
        if not rates:
            raise UndefinedStatisticError("No tip lineage spans the requested window.")
        return float(np.mean(rates))

    def rate_1d_from_tips(self, offset: float, window: float) -> float:
        """
        Mean rate of change in x over ``[tip - offset - window, tip - offset]``
        across tips whose lineage reaches that far back.
        """
        return self._rates_from_tips(offset, window, two_d=False)

    def rate_2d_from_tips(self, offset: float, window: float) -> float:
        """As :meth:`rate_1d_from_tips` but with Euclidean distance in (x, y)."""
        return self._rates_from_tips(offset, window, two_d=True)

    def _tip_values(self, attr: str) -> np.ndarray:
        arena = self._arena
        return np.asarray([getattr(arena[s], attr) for s in arena.leaves()], dtype=np.float64)

    def _tip_mean(self, attr: str) -> float:
        values = self._tip_values(attr)
        if values.size == 0:
            raise UndefinedStatisticError("The tree has no tips.")
        return float(values.mean())

    def mean_x(self) -> float:
        return self._tip_mean("x")

    def mean_y(self) -> float:
        return self._tip_mean("y")

    def mean_rate(self) -> float:
        return self._tip_mean("rate")

    def tips_x(self) -> np.ndarray:
        return self._tip_values("x")

    def tips_y(self) -> np.ndarray:
        return self._tip_values("y")

    def tip_names(self) -> List[str]:
        arena = self._arena
        return [arena[s].name for s in arena.leaves()]

    def time_of(self, name: str) -> float:
        return self._arena[self._slot_by_name(name)].time

    def label_of(self, name: str) -> str:
        return self._arena[self._slot_by_name(name)].label

    def time_to_trunk(self, name: str) -> float:
        """
        Time from the named node back to its nearest trunk ancestor-or-self.

        Raises
        ------
        KeyError
            If no node has this name.
        UndefinedStatisticError
            If no ancestor is on the trunk.
        """
        return self._time_to_trunk(self._slot_by_name(name))

    def _time_to_trunk(self, s: int) -> float:
        arena = self._arena
        t = arena[s].time
        for a in arena.ancestors(s):
            if arena[a].trunk:
                return t - arena[a].time
        raise UndefinedStatisticError("No ancestor lies on the trunk.")
