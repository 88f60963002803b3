"""
_skyline.py
===========
Skyline sampling: statistics evaluated along the time axis of a tree.

Public API
----------
  Skyline(index, value)
      Result container; two aligned float64 arrays.

  SkylineMixin (mixed into CoalescentTree)
      .ne_skyline()  .sub_rate_skyline()  .div_skyline()  .tmrca_skyline()
      .tajima_skyline()  .label_skyline(label)  .tc_skyline()
      .skyline_index()  .skyline_value()

Sampling scheme
---------------
Grid points are ``root_time + i * step_size`` strictly before the present.
The distinct node times cut the time axis into bands ``[a, b)``; within a
band the set of live lineages is constant, so each band statistic is
evaluated once at the band midpoint and reported at every grid point that
falls in the band.  A band holding no grid point is reported once, at its
start time.  Bands whose statistic is undefined are left out of the result.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Tuple

import numpy as np

from coalscope._context import suppress_logger
from coalscope._errors import UndefinedStatisticError
from coalscope._logging import log_skyline_summary


@dataclass(frozen=True)
class Skyline:
    """
    Sampled statistic along the time axis.

    Attributes
    ----------
    index : float64[n]  Grid times at which the statistic is defined.
    value : float64[n]  Statistic value at each grid time.
    """

    index: np.ndarray
    value: np.ndarray

    def __len__(self) -> int:
        return int(self.index.shape[0])

    def __iter__(self) -> Iterator[Tuple[float, float]]:
        return iter(zip(self.index.tolist(), self.value.tolist()))

    def as_dict(self) -> Dict[float, float]:
        return dict(zip(self.index.tolist(), self.value.tolist()))


class SkylineMixin:
    """Skyline samplers; requires StatisticsMixin on the same class."""

    # ================================================================== #
    # Grid and bands                                                       #
    # ================================================================== #

    def _skyline_grid(self) -> np.ndarray:
        start = self.root_time()
        present = self.present_time()
        n = int(np.ceil((present - start) / self.step_size)) + 1
        grid = start + self.step_size * np.arange(n, dtype=np.float64)
        return grid[grid < present]

    def _band_edges(self) -> np.ndarray:
        arena = self._arena
        return np.unique(np.asarray([arena[s].time for s in arena.preorder()], dtype=np.float64))

    def _alive_at(self, t: float) -> List[int]:
        """Included non-root nodes whose branch spans *t*."""
        arena = self._arena
        alive = []
        for s in arena.preorder():
            p = arena.parent(s)
            if p != -1 and arena[s].include and arena[p].time < t <= arena[s].time:
                alive.append(s)
        return alive

    def _run_skyline(
        self, name: str, band_stat: Callable[[int, np.ndarray], float]
    ) -> Skyline:
        edges = self._band_edges()
        grid = self._skyline_grid()
        owner = np.searchsorted(edges, grid, side="right") - 1
        index, value = [], []
        n_undefined = 0
        for b in range(edges.shape[0] - 1):
            points = grid[owner == b].tolist()
            if not points:
                # band narrower than step_size: report it at its start
                points = [float(edges[b])]
            try:
                v = float(band_stat(b, edges))
            except UndefinedStatisticError:
                n_undefined += len(points)
                continue
            index.extend(points)
            value.extend([v] * len(points))

        result = Skyline(np.asarray(index, dtype=np.float64), np.asarray(value, dtype=np.float64))
        self._skyline = result
        log_skyline_summary(name, len(result), n_undefined)
        return result

    @staticmethod
    def _midpoint(b: int, edges: np.ndarray) -> float:
        return 0.5 * (edges[b] + edges[b + 1])

    def _sliced_at(self, t: float):
        """Copy of the tree cut at *t*; slice-level log output is muted."""
        sliced = self.copy()
        with suppress_logger("coalscope._logging", logging.ERROR):
            sliced.time_slice(t)
        return sliced

    # ================================================================== #
    # Skylines                                                             #
    # ================================================================== #

    def ne_skyline(self) -> Skyline:
        """
        Effective population size through time.

        For each band whose older edge is a coalescence (it holds more
        lineages than the band before it), reports ``k(k-1)/2 * (b - a)``
        with k the lineage count in the band.
        """

        def stat(b, edges):
            k = len(self._alive_at(self._midpoint(b, edges)))
            before = len(self._alive_at(self._midpoint(b - 1, edges))) if b > 0 else 0
            if k <= before:
                raise UndefinedStatisticError("Band does not start with a coalescence.")
            return k * (k - 1) / 2.0 * (edges[b + 1] - edges[b])

        return self._run_skyline("ne_skyline", stat)

    def sub_rate_skyline(self) -> Skyline:
        """Mean ``rate`` over the lineages alive in each band."""

        def stat(b, edges):
            alive = self._alive_at(self._midpoint(b, edges))
            if not alive:
                raise UndefinedStatisticError("No lineage alive.")
            return float(np.mean([self._arena[s].rate for s in alive]))

        return self._run_skyline("sub_rate_skyline", stat)

    def label_skyline(self, label: str) -> Skyline:
        """Fraction of alive lineages carrying *label*."""

        def stat(b, edges):
            alive = self._alive_at(self._midpoint(b, edges))
            if not alive:
                raise UndefinedStatisticError("No lineage alive.")
            return sum(1 for s in alive if self._arena[s].label == label) / len(alive)

        return self._run_skyline(f"label_skyline({label!r})", stat)

    def div_skyline(self) -> Skyline:
        """Diversity of the tree sliced at each band midpoint."""
        return self._run_skyline(
            "div_skyline", lambda b, edges: self._sliced_at(self._midpoint(b, edges)).diversity()
        )

    def tmrca_skyline(self) -> Skyline:
        """TMRCA of the lineages alive at each band midpoint."""
        return self._run_skyline(
            "tmrca_skyline", lambda b, edges: self._sliced_at(self._midpoint(b, edges)).tmrca()
        )

    def tajima_skyline(self) -> Skyline:
        """Tajima's D of the tree sliced at each band midpoint."""
        return self._run_skyline(
            "tajima_skyline", lambda b, edges: self._sliced_at(self._midpoint(b, edges)).tajima_d()
        )

    def tc_skyline(self) -> Skyline:
        """
        Mean time back to the trunk for tips sampled in ``[t, t + step_size)``.

        Unlike the band-based skylines this one bins tips by sampling time;
        empty bins are left out.
        """
        arena = self._arena
        tips = [s for s in arena.preorder() if arena[s].leaf]
        index, value = [], []
        n_undefined = 0
        for t in self._skyline_grid():
            window = [s for s in tips if t <= arena[s].time < t + self.step_size]
            times = []
            for s in window:
                try:
                    times.append(self._time_to_trunk(s))
                except UndefinedStatisticError:
                    continue
            if not times:
                n_undefined += 1
                continue
            index.append(t)
            value.append(float(np.mean(times)))

        result = Skyline(np.asarray(index, dtype=np.float64), np.asarray(value, dtype=np.float64))
        self._skyline = result
        log_skyline_summary("tc_skyline", len(result), n_undefined)
        return result

    # ================================================================== #
    # Last result                                                          #
    # ================================================================== #

    def skyline_index(self) -> np.ndarray:
        """Grid times of the most recent skyline (empty before any run)."""
        return np.empty(0) if self._skyline is None else self._skyline.index

    def skyline_value(self) -> np.ndarray:
        """Values of the most recent skyline (empty before any run)."""
        return np.empty(0) if self._skyline is None else self._skyline.value
