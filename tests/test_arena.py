"""
tests/test_arena.py
===================
Pytest test suite for NodeArena, the slot-addressed ordered tree.

Every test builds a small arena by hand:

      root
     /    \\
    a      b
          / \\
         c   d
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from coalscope._arena import NodeArena
from coalscope._node import Node


def build():
    arena = NodeArena()
    root = arena.set_root(Node(0))
    a = arena.append_child(root, Node(1, name="a"))
    b = arena.append_child(root, Node(2))
    c = arena.append_child(b, Node(3, name="c"))
    d = arena.insert_after(c, Node(4, name="d"))
    return arena, root, a, b, c, d


def numbers(arena, slots):
    return [arena[s].number for s in slots]


class TestTraversal:
    def test_preorder(self):
        arena, *_ = build()
        assert numbers(arena, arena.preorder()) == [0, 1, 2, 3, 4]

    def test_postorder(self):
        arena, *_ = build()
        assert numbers(arena, arena.postorder()) == [1, 3, 4, 2, 0]

    def test_leaves(self):
        arena, *_ = build()
        assert numbers(arena, arena.leaves()) == [1, 3, 4]

    def test_depth_and_ancestors(self):
        arena, root, a, b, c, d = build()
        assert arena.depth(d) == 2
        assert arena.ancestors(d) == [d, b, root]

    def test_subtree_size(self):
        arena, root, a, b, c, d = build()
        assert arena.subtree_size(b) == 3
        assert arena.subtree_size(root) == 5


class TestMutation:
    def test_insert_after_keeps_order(self):
        arena, root, a, b, c, d = build()
        e = arena.insert_after(a, Node(5))
        assert arena.children(root) == [a, e, b]

    def test_insert_after_root_raises(self):
        arena, root, *_ = build()
        with pytest.raises(ValueError):
            arena.insert_after(root, Node(9))

    def test_wrap_inner(self):
        arena, root, a, b, c, d = build()
        w = arena.wrap(b, Node(5))
        assert arena.children(root) == [a, w]
        assert arena.children(w) == [b]
        assert arena.parent(b) == w

    def test_wrap_root_makes_new_root(self):
        arena, root, *_ = build()
        w = arena.wrap(root, Node(5))
        assert arena.root == w
        assert arena.parent(root) == w
        assert arena.parent(w) == -1

    def test_erase_subtree(self):
        arena, root, a, b, c, d = build()
        arena.erase(b)
        assert len(arena) == 2
        assert not arena.is_valid(c)
        with pytest.raises(KeyError):
            arena[d]

    def test_erase_root_raises(self):
        arena, root, *_ = build()
        with pytest.raises(ValueError):
            arena.erase(root)

    def test_erase_children(self):
        arena, root, a, b, c, d = build()
        arena.erase_children(b)
        assert arena.number_of_children(b) == 0
        assert len(arena) == 3

    def test_reparent_up_splices_in_place(self):
        arena, root, a, b, c, d = build()
        arena.reparent_up(b)
        assert arena.children(root) == [a, c, d]
        assert arena.parent(c) == root
        assert not arena.is_valid(b)

    def test_move_under(self):
        arena, root, a, b, c, d = build()
        arena.move_under(c, a)
        assert arena.children(a) == [c]
        assert arena.children(b) == [d]

    def test_move_under_descendant_raises(self):
        arena, root, a, b, c, d = build()
        with pytest.raises(ValueError):
            arena.move_under(b, c)

    def test_promote_only_child(self):
        arena, root, a, b, c, d = build()
        arena.erase(a)
        new_root = arena.promote_only_child()
        assert new_root == b
        assert arena.root == b
        assert arena.parent(b) == -1

    def test_promote_requires_single_child(self):
        arena, *_ = build()
        with pytest.raises(ValueError):
            arena.promote_only_child()

    def test_swap_and_sort(self):
        arena, root, a, b, c, d = build()
        arena.swap_siblings(c, d)
        assert arena.children(b) == [d, c]
        arena.sort_children(b, key=lambda s: arena[s].number)
        assert arena.children(b) == [c, d]


class TestCopyAndGraft:
    def test_copy_is_independent(self):
        arena, root, a, b, c, d = build()
        other = arena.copy()
        other[c].name = "changed"
        other.erase(a)
        assert arena[c].name == "c"
        assert len(arena) == 5
        assert len(other) == 4

    def test_graft_copies_subtree(self):
        arena, root, a, b, c, d = build()
        target = NodeArena()
        troot = target.set_root(Node(10))
        top = target.graft(troot, arena, b)
        assert numbers(target, target.preorder()) == [10, 2, 3, 4]
        assert target.parent(top) == troot
        target[top].number = 99
        assert arena[b].number == 2
