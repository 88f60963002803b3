"""
_arena.py
=========
A rooted, ordered, multiway tree stored as an arena of integer slots.

Every node occupies one slot for its whole lifetime.  Structure is held in two
parallel lists indexed by slot:

  _parent   : list[int]        Parent slot; -1 for the root and erased slots.
  _children : list[list[int]]  Ordered child slots.

Erased slots hold ``None`` in ``_nodes`` and are never reused, so a slot that
was valid once can always be checked with ``is_valid``.  Traversals return
lists (snapshots) rather than live iterators; a caller may erase, wrap or
reparent nodes while walking a snapshot and simply skip slots that have become
invalid.

Public API
----------
  set_root(node)                  -> slot
  append_child(parent, node)      -> slot
  insert_after(sibling, node)     -> slot
  wrap(slot, node)                -> slot of the new node
  erase(slot) / erase_children(slot)
  reparent_up(slot)               replace a node by its children in place
  move_under(slot, new_parent)    detach a subtree and append it elsewhere
  promote_only_child()            single child of the root becomes the root
  swap_siblings(a, b) / sort_children(slot, key)
  graft(parent, source, source_slot)   copy a subtree from another arena
  preorder(start) / postorder(start) / leaves()
  parent(slot) / children(slot) / number_of_children(slot)
  depth(slot) / subtree_size(slot) / is_valid(slot) / copy()
"""

from typing import List, Optional

from coalscope._node import Node


class NodeArena:
    """
    Ordered tree of :class:`Node` records addressed by stable integer slots.
    """

    def __init__(self) -> None:
        self._nodes: List[Optional[Node]] = []
        self._parent: List[int] = []
        self._children: List[List[int]] = []
        self.root: int = -1

    # ================================================================== #
    # Construction                                                         #
    # ================================================================== #

    def _new_slot(self, node: Node, parent: int) -> int:
        slot = len(self._nodes)
        self._nodes.append(node)
        self._parent.append(parent)
        self._children.append([])
        return slot

    def set_root(self, node: Node) -> int:
        """Create the root slot.  Only valid on an empty arena."""
        if self.root != -1:
            raise ValueError("Arena already has a root.")
        self.root = self._new_slot(node, -1)
        return self.root

    def append_child(self, parent: int, node: Node) -> int:
        """Add *node* as the last child of *parent*."""
        self._check(parent)
        slot = self._new_slot(node, parent)
        self._children[parent].append(slot)
        return slot

    def insert_after(self, sibling: int, node: Node) -> int:
        """Add *node* immediately after *sibling* under the same parent."""
        self._check(sibling)
        parent = self._parent[sibling]
        if parent == -1:
            raise ValueError("Cannot insert a sibling next to the root.")
        slot = self._new_slot(node, parent)
        siblings = self._children[parent]
        siblings.insert(siblings.index(sibling) + 1, slot)
        return slot

    def wrap(self, slot: int, node: Node) -> int:
        """
        Insert *node* on the edge above *slot*.

        The new node takes *slot*'s position among its siblings and *slot*
        becomes its only child.  Wrapping the root makes *node* the new root.
        """
        self._check(slot)
        parent = self._parent[slot]
        new = self._new_slot(node, parent)
        if parent == -1:
            self.root = new
        else:
            siblings = self._children[parent]
            siblings[siblings.index(slot)] = new
        self._children[new].append(slot)
        self._parent[slot] = new
        return new

    # ================================================================== #
    # Removal and re-attachment                                            #
    # ================================================================== #

    def erase(self, slot: int) -> None:
        """Remove *slot* and its whole subtree."""
        self._check(slot)
        if slot == self.root:
            raise ValueError("Cannot erase the root; prune its children instead.")
        parent = self._parent[slot]
        self._children[parent].remove(slot)
        self._release(slot)

    def erase_children(self, slot: int) -> None:
        """Remove every descendant of *slot*, leaving *slot* childless."""
        self._check(slot)
        for child in self._children[slot]:
            self._release(child)
        self._children[slot] = []

    def _release(self, slot: int) -> None:
        stack = [slot]
        while stack:
            s = stack.pop()
            stack.extend(self._children[s])
            self._nodes[s] = None
            self._parent[s] = -1
            self._children[s] = []

    def reparent_up(self, slot: int) -> None:
        """
        Splice *slot* out of the tree: its children take its place (in order)
        in the parent's child list and *slot* is erased.
        """
        self._check(slot)
        parent = self._parent[slot]
        if parent == -1:
            raise ValueError("Cannot splice out the root; use promote_only_child.")
        kids = self._children[slot]
        siblings = self._children[parent]
        pos = siblings.index(slot)
        siblings[pos:pos + 1] = kids
        for k in kids:
            self._parent[k] = parent
        self._children[slot] = []
        self._nodes[slot] = None
        self._parent[slot] = -1

    def move_under(self, slot: int, new_parent: int) -> None:
        """Detach the subtree at *slot* and append it as the last child of *new_parent*."""
        self._check(slot)
        self._check(new_parent)
        if slot == self.root:
            raise ValueError("Cannot move the root.")
        probe = new_parent
        while probe != -1:
            if probe == slot:
                raise ValueError("Cannot move a subtree beneath itself.")
            probe = self._parent[probe]
        self._children[self._parent[slot]].remove(slot)
        self._parent[slot] = new_parent
        self._children[new_parent].append(slot)

    def promote_only_child(self) -> int:
        """Replace a single-child root by that child.  Returns the new root."""
        kids = self._children[self.root]
        if len(kids) != 1:
            raise ValueError("Root must have exactly one child to be promoted.")
        old = self.root
        self.root = kids[0]
        self._parent[self.root] = -1
        self._children[old] = []
        self._nodes[old] = None
        return self.root

    def swap_siblings(self, a: int, b: int) -> None:
        """Exchange the positions of two siblings."""
        parent = self._parent[a]
        if parent == -1 or parent != self._parent[b]:
            raise ValueError("Only siblings can be swapped.")
        siblings = self._children[parent]
        ia, ib = siblings.index(a), siblings.index(b)
        siblings[ia], siblings[ib] = b, a

    def sort_children(self, slot: int, key) -> None:
        """Stable-sort the children of *slot* by ``key(child_slot)``."""
        self._children[slot].sort(key=key)

    def graft(self, parent: int, source: "NodeArena", source_slot: int) -> int:
        """
        Copy the subtree at *source_slot* of another arena under *parent*.

        Returns the slot of the copied subtree root in this arena.
        """
        self._check(parent)
        mapping = {}
        for s in source.preorder(source_slot):
            dest_parent = parent if s == source_slot else mapping[source.parent(s)]
            mapping[s] = self.append_child(dest_parent, source[s].copy())
        return mapping[source_slot]

    # ================================================================== #
    # Navigation                                                           #
    # ================================================================== #

    def __getitem__(self, slot: int) -> Node:
        node = self._nodes[slot]
        if node is None:
            raise KeyError(f"Slot {slot} has been erased.")
        return node

    def __len__(self) -> int:
        return sum(1 for n in self._nodes if n is not None)

    def is_valid(self, slot: int) -> bool:
        return 0 <= slot < len(self._nodes) and self._nodes[slot] is not None

    def _check(self, slot: int) -> None:
        if not self.is_valid(slot):
            raise KeyError(f"Slot {slot} is not part of the tree.")

    def parent(self, slot: int) -> int:
        """Parent slot, or -1 for the root."""
        return self._parent[slot]

    def children(self, slot: int) -> List[int]:
        return list(self._children[slot])

    def number_of_children(self, slot: int) -> int:
        return len(self._children[slot])

    def depth(self, slot: int) -> int:
        d = 0
        p = self._parent[slot]
        while p != -1:
            d += 1
            p = self._parent[p]
        return d

    def ancestors(self, slot: int) -> List[int]:
        """*slot* followed by every ancestor up to and including the root."""
        path = []
        while slot != -1:
            path.append(slot)
            slot = self._parent[slot]
        return path

    def preorder(self, start: Optional[int] = None) -> List[int]:
        """Pre-order slot list of the subtree at *start* (default: root)."""
        start = self.root if start is None else start
        if not self.is_valid(start):
            return []
        order = []
        stack = [start]
        while stack:
            s = stack.pop()
            order.append(s)
            stack.extend(reversed(self._children[s]))
        return order

    def postorder(self, start: Optional[int] = None) -> List[int]:
        """Post-order slot list of the subtree at *start* (default: root)."""
        start = self.root if start is None else start
        if not self.is_valid(start):
            return []
        order = []
        stack = [(start, False)]
        while stack:
            s, expanded = stack.pop()
            if expanded:
                order.append(s)
            else:
                stack.append((s, True))
                for c in reversed(self._children[s]):
                    stack.append((c, False))
        return order

    def leaves(self) -> List[int]:
        """Structurally childless slots, in pre-order."""
        return [s for s in self.preorder() if not self._children[s]]

    def subtree_size(self, slot: int) -> int:
        return len(self.preorder(slot))

    def copy(self) -> "NodeArena":
        """Deep copy; slot numbering is preserved."""
        other = NodeArena()
        other._nodes = [None if n is None else n.copy() for n in self._nodes]
        other._parent = list(self._parent)
        other._children = [list(c) for c in self._children]
        other.root = self.root
        return other
