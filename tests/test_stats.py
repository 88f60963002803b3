"""
tests/test_stats.py
===================
Pytest test suite for the statistics engine (StatisticsMixin).

Tree fixtures
-------------
  three_taxon.tree      ((A:1,B:1):1,C:2);
      time: root=-2  AB=-1  A=B=C=0; every node labelled "1" and on the trunk.
      Built with n_steps=4 so the coalescent grid is -2, -1.5, -1, -0.5, 0
      and the discretised weights are exact:
        lineages  0 2 2 3 3   ->  coal_weight = (0+1+1+3+3) * 0.5 = 4.0
                                  coal_weight_trunk = (0+2+2+3+3) * 0.5 = 5.0

  labelled_4taxon.tree  (see test_tree.py for the full layout)
      time:  root=-2.5  AB=-1.5  A=-0.5  B=0  CD=-2.0  C=-1.5  D=0
      lengths: AB 1.0, A 1.0, B 1.5, CD 0.5, C 0.5, D 2.0  (total 6.5)
      B is the only node labelled "2"; trunk = root, AB, B, CD, D.

      pair distances through the MRCA:
        A-B 2.5  A-C 3.0  A-D 4.5  B-C 3.5  B-D 5.0  C-D 2.5

  migration.tree        (0_A:1[&M 1 0:0.4],0_B:1);
      root(-1, "1") -> mig(-0.4, "2") -> A(0, "1");  root -> B(0, "1")
      Two label changes; length("1") = 1.4, length("2") = 0.6.
"""

import math
import os
import sys

import numpy as np
import pytest

_TREES_DIR = os.path.join(os.path.dirname(__file__), "trees")

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from coalscope import CoalescentTree, ConfigurationError, UndefinedStatisticError


def load_tree(filename: str, **kwargs) -> CoalescentTree:
    with open(os.path.join(_TREES_DIR, filename)) as fh:
        return CoalescentTree(fh.read().strip(), **kwargs)


@pytest.fixture(scope="module")
def three():
    return load_tree("three_taxon.tree", n_steps=4)


@pytest.fixture(scope="module")
def labelled():
    return load_tree("labelled_4taxon.tree")


@pytest.fixture(scope="module")
def migration():
    return load_tree("migration.tree")


@pytest.fixture(scope="module")
def single():
    return CoalescentTree("(A:1);")


# ======================================================================== #
# 1. Basic                                                                  #
# ======================================================================== #


class TestBasic:
    def test_three_taxon_summary(self, three):
        assert three.leaf_count() == 3
        assert three.tmrca() == pytest.approx(2.0)
        assert three.coal_count() == 2
        assert three.length() == pytest.approx(5.0)

    def test_times(self, labelled):
        assert labelled.present_time() == pytest.approx(0.0)
        assert labelled.root_time() == pytest.approx(-2.5)
        assert labelled.tmrca() == pytest.approx(2.5)

    def test_length_by_label(self, labelled):
        assert labelled.length() == pytest.approx(6.5)
        assert labelled.length("2") == pytest.approx(1.5)
        assert labelled.length("9") == 0.0

    def test_label_set(self, labelled):
        assert labelled.label_set() == ["1", "2"]

    def test_label_pro_sums_to_one(self, labelled):
        pro = labelled.label_pro()
        assert set(pro) == {"1", "2"}
        assert sum(pro.values()) == pytest.approx(1.0)
        assert pro["2"] == pytest.approx(1.5 / 6.5)

    def test_label_pro_of(self, labelled):
        assert labelled.label_pro_of("1") == pytest.approx(5.0 / 6.5)

    def test_root_label_pro(self, labelled):
        assert labelled.root_label_pro("1") == 1.0
        assert labelled.root_label_pro("2") == 0.0

    def test_trunk_pro(self, labelled, three):
        assert labelled.trunk_pro() == pytest.approx(5.0 / 6.5)
        assert three.trunk_pro() == pytest.approx(1.0)
        assert 0.0 <= labelled.trunk_pro() <= 1.0

    def test_excluded_nodes_do_not_count(self, three):
        tree = three.copy()
        tree.find_node("C").include = False
        assert tree.length() == pytest.approx(3.0)


# ======================================================================== #
# 2. Diversity                                                              #
# ======================================================================== #


class TestDiversity:
    def test_diversity(self, labelled, three):
        assert labelled.diversity() == pytest.approx(21.0 / 6.0)
        assert three.diversity() == pytest.approx(10.0 / 3.0)

    def test_diversity_by_label(self, labelled):
        assert labelled.diversity("1") == pytest.approx(10.0 / 3.0)

    def test_within_and_between(self, labelled):
        assert labelled.diversity_within() == pytest.approx(10.0 / 3.0)
        assert labelled.diversity_between() == pytest.approx(11.0 / 3.0)

    def test_fst(self, labelled):
        assert labelled.fst() == pytest.approx(1.0 / 11.0)

    def test_pairwise(self, labelled):
        assert labelled.pairwise_diversity("0_A", "1_B") == pytest.approx(2.5)
        assert labelled.pairwise_diversity("0_C", "0_D") == pytest.approx(2.5)
        assert labelled.pairwise_diversity("0_A", "0_A") == 0.0

    def test_pairwise_unknown(self, labelled):
        with pytest.raises(KeyError):
            labelled.pairwise_diversity("0_A", "nope")

    def test_tajima_d(self, labelled):
        n, pi, s = 4, 3.5, 6.5
        a1 = sum(1.0 / i for i in range(1, n))
        a2 = sum(1.0 / i ** 2 for i in range(1, n))
        e1 = ((n + 1) / (3.0 * (n - 1)) - 1.0 / a1) / a1
        e2 = (
            2.0 * (n ** 2 + n + 3) / (9.0 * n * (n - 1))
            - (n + 2) / (n * a1)
            + a2 / a1 ** 2
        ) / (a1 ** 2 + a2)
        expected = (pi - s / a1) / math.sqrt(e1 * s + e2 * s * (s - 1))
        assert labelled.tajima_d() == pytest.approx(expected)

    def test_undefined(self, single, three):
        with pytest.raises(UndefinedStatisticError):
            single.diversity()
        with pytest.raises(UndefinedStatisticError):
            single.tmrca()
        with pytest.raises(UndefinedStatisticError):
            single.tajima_d()
        with pytest.raises(UndefinedStatisticError):
            three.fst()
        with pytest.raises(UndefinedStatisticError):
            three.diversity("2")

    def test_undefined_is_arithmetic_error(self, single):
        with pytest.raises(ArithmeticError):
            single.diversity()


# ======================================================================== #
# 3. Coalescent                                                             #
# ======================================================================== #


class TestCoalescent:
    def test_weight(self, three):
        assert three.coal_weight() == pytest.approx(4.0)

    def test_rate(self, three):
        assert three.coal_rate() == pytest.approx(0.5)

    def test_trunk(self, three):
        assert three.coal_count_trunk() == 0
        assert three.coal_weight_trunk() == pytest.approx(5.0)
        assert three.coal_rate_trunk() == 0.0

    def test_trunk_side_coalescences(self, labelled):
        assert labelled.coal_count_trunk() == 2

    def test_default_grid_close_to_exact(self):
        tree = load_tree("three_taxon.tree")
        assert tree.coal_weight() == pytest.approx(4.0, abs=0.01)

    def test_set_n_steps(self, three):
        tree = three.copy()
        tree.set_n_steps(1000)
        assert tree.coal_weight() == pytest.approx(4.0, abs=0.01)
        assert three.n_steps == 4

    def test_by_label(self, labelled):
        assert labelled.coal_count("1") == 3
        assert labelled.coal_count("2") == 0
        assert labelled.coal_counts() == {"1": 3, "2": 0}
        assert labelled.coal_weight("2") == 0.0

    def test_rates_skip_zero_weight(self, labelled):
        rates = labelled.coal_rates()
        assert list(rates) == ["1"]
        assert set(labelled.coal_weights()) == {"1", "2"}

    def test_zero_weight_is_undefined(self, single):
        with pytest.raises(UndefinedStatisticError):
            single.coal_rate()


# ======================================================================== #
# 4. Migration                                                              #
# ======================================================================== #


class TestMigration:
    def test_no_migration(self, three):
        assert three.mig_count() == 0
        assert three.mig_rate() == 0.0

    def test_counts(self, migration, labelled):
        assert migration.mig_count() == 2
        assert migration.mig_count("2", "1") == 1
        assert migration.mig_count("1", "2") == 1
        assert labelled.mig_count("1", "2") == 1
        assert labelled.mig_count("2", "1") == 0

    def test_overall_rate(self, migration):
        assert migration.mig_rate() == pytest.approx(1.0)

    @pytest.mark.parametrize(
        "normalize, expected",
        [("to", 1.0 / 1.4), ("from", 1.0 / 0.6), ("total", 0.5)],
    )
    def test_directional_rate(self, migration, normalize, expected):
        assert migration.mig_rate("2", "1", normalize=normalize) == pytest.approx(expected)

    def test_rates_table(self, migration):
        rates = migration.mig_rates()
        assert set(rates) == {("1", "2"), ("2", "1")}
        assert rates[("1", "2")] == pytest.approx(1.0 / 0.6)

    def test_bad_arguments(self, migration):
        with pytest.raises(ConfigurationError):
            migration.mig_rate("1", None)
        with pytest.raises(ConfigurationError):
            migration.mig_rate("1", "2", normalize="both")

    def test_excluded_parent_hides_event(self, migration):
        tree = migration.copy()
        tree.find_node(2).include = False
        assert tree.mig_count() == 0


# ======================================================================== #
# 5. Diffusion and persistence                                              #
# ======================================================================== #


class TestDiffusion:
    def test_all_branches(self, labelled):
        assert labelled.diffusion_coefficient() == pytest.approx(7.5 / 26.0)
        assert labelled.drift_rate() == pytest.approx(3.5 / 6.5)

    def test_trunk_branches(self, labelled):
        assert labelled.diffusion_coefficient("trunk") == pytest.approx(0.2)
        assert labelled.drift_rate("trunk") == pytest.approx(3.0 / 5.0)

    def test_empty_branch_sets(self, labelled):
        with pytest.raises(UndefinedStatisticError):
            labelled.diffusion_coefficient("side")
        with pytest.raises(UndefinedStatisticError):
            labelled.drift_rate("internal")

    def test_unknown_branch_set(self, labelled):
        with pytest.raises(ConfigurationError):
            labelled.diffusion_coefficient("leaves")


class TestPersistence:
    def test_mean(self, labelled):
        assert labelled.persistence() == pytest.approx(1.5)
        assert labelled.persistence("2") == pytest.approx(1.5)

    def test_quantile(self, labelled):
        assert labelled.persistence_quantile(0.5) == pytest.approx(1.5)

    def test_no_label_change(self, labelled, three):
        with pytest.raises(UndefinedStatisticError):
            labelled.persistence("1")
        with pytest.raises(UndefinedStatisticError):
            three.persistence()

    def test_bad_quantile(self, labelled):
        with pytest.raises(ConfigurationError):
            labelled.persistence_quantile(1.5)


# ======================================================================== #
# 6. Tip-based                                                              #
# ======================================================================== #


class TestTipBased:
    def test_label_pro_from_tips(self, labelled):
        assert labelled.label_pro_from_tips("1", 0.25) == pytest.approx(0.75)
        assert labelled.label_pro_from_tips("1", 0.25, starting_label="2") == 0.0

    def test_label_pro_from_tips_no_tips(self, labelled):
        with pytest.raises(UndefinedStatisticError):
            labelled.label_pro_from_tips("1", 0.25, starting_label="9")

    def test_rate_1d(self, labelled):
        assert labelled.rate_1d_from_tips(0.0, 0.5) == pytest.approx(0.5)

    def test_rate_2d(self, labelled):
        # A: (1,2) vs (0.75,1.25); B: (2,1) vs (1.5,0.8333); C: (0,1) vs (0,0)
        # D: (1,0) vs (0.75,0)
        expected = np.mean(
            [
                math.hypot(0.25, 0.75) / 0.5,
                math.hypot(0.5, 1.0 / 6.0) / 0.5,
                1.0 / 0.5,
                0.25 / 0.5,
            ]
        )
        assert labelled.rate_2d_from_tips(0.0, 0.5) == pytest.approx(expected)

    def test_rate_window_beyond_root(self, labelled):
        with pytest.raises(UndefinedStatisticError):
            labelled.rate_1d_from_tips(10.0, 1.0)

    def test_means(self, labelled):
        assert labelled.mean_x() == pytest.approx(1.0)
        assert labelled.mean_y() == pytest.approx(1.0)
        assert labelled.mean_rate() == 0.0

    def test_tip_arrays(self, labelled):
        np.testing.assert_allclose(labelled.tips_x(), [1.0, 2.0, 0.0, 1.0])
        np.testing.assert_allclose(labelled.tips_y(), [2.0, 1.0, 1.0, 0.0])
        assert labelled.tip_names() == ["0_A", "1_B", "0_C", "0_D"]

    def test_lookups(self, labelled):
        assert labelled.time_of("0_C") == pytest.approx(-1.5)
        assert labelled.label_of("1_B") == "2"
        assert labelled.time_to_trunk("0_A") == pytest.approx(1.0)
        assert labelled.time_to_trunk("1_B") == 0.0
        with pytest.raises(KeyError):
            labelled.time_of("missing")
