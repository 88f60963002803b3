"""
_parser.py
==========
Annotated-NEWICK parser.

Consumes a parenthesised tree string in which any node may be followed by one
or more ``[&key value, key value, ...]`` annotation blocks (BEAST / Migrate
output) and produces a populated :class:`NodeArena` plus the set of discrete
state labels encountered.

Public API
----------
  parse_annotated_newick(text) -> ParseResult

Scanner
-------
A single left-to-right pass over the characters, driven by an explicit
finite-state machine:

  OUTSIDE     names, branch lengths and tree structure ``( , )``
  IN_BRACKET  inside ``[...]``; ``,`` ends one key/value annotation
  IN_BRACE    inside ``{...}`` within a bracket; ``,`` is part of the value

The cursor starts at the root (node 0).  ``(`` descends into a new child,
``,`` moves to a new sibling and ``)`` climbs back to the parent, which takes
over the label of the child just closed (last child wins until an explicit
annotation overrides it).

Annotation keys
---------------
  M                                     migration event; wraps a new node
  states, location, cluster, Compartment  label
  antigenic, AHT                        x, y
  N, layout, iSNV, latitude,
  diffusion, diffTrait                  x
  S, AC14_R                             y
  AHTL                                  x, y and label 'north' / 'south'
  rate                                  rate

Unknown keys are ignored; schemas vary by upstream tool.
"""

import enum
import logging
import re
from typing import List, NamedTuple, Set

from coalscope._arena import NodeArena
from coalscope._errors import MalformedInputError
from coalscope._node import Node, UNSET_LABEL
from coalscope._utils import initial_digits

logger = logging.getLogger(__name__)

_NAME_CHARS = frozenset(
    "0123456789"
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    "abcdefghijklmnopqrstuvwxyz"
    "._-/|"
)
_FIELD_SPLIT = re.compile(r"[ =:,]+")
_DROPPED = str.maketrans("", "", '&{}"')

_LABEL_KEYS = frozenset({"states", "location", "cluster", "Compartment"})
_X_KEYS = frozenset({"N", "layout", "iSNV", "latitude", "diffusion", "diffTrait"})
_XY_KEYS = frozenset({"antigenic", "AHT"})
_Y_KEYS = frozenset({"S", "AC14_R"})


class ScanState(enum.Enum):
    OUTSIDE = "outside"
    IN_BRACKET = "in_bracket"
    IN_BRACE = "in_brace"


class ParseResult(NamedTuple):
    """Output of :func:`parse_annotated_newick`."""

    arena: NodeArena
    labels: Set[str]
    n_migrations: int
    ignored_keys: Set[str]


class _Scanner:
    """
    **Private.**  Mutable state of one parsing pass.

    Kept as a small class so that every transition is a named method rather
    than a block inside one long loop.
    """

    def __init__(self, text: str) -> None:
        self.text = text
        self.arena = NodeArena()
        self.cursor = self.arena.set_root(Node(0))
        self.next_number = 1
        self.state = ScanState.OUTSIDE
        self.buffer: List[str] = []
        self.annotation: List[str] = []
        self.expect_length = False
        self.labels: Set[str] = set()
        self.n_migrations = 0
        self.ignored_keys: Set[str] = set()
        self.pos = 0

    # ------------------------------------------------------------------ #
    # Driver                                                              #
    # ------------------------------------------------------------------ #

    def run(self) -> ParseResult:
        for pos, c in enumerate(self.text):
            self.pos = pos
            if self.state is ScanState.OUTSIDE:
                self._outside(c)
            elif self.state is ScanState.IN_BRACKET:
                self._in_bracket(c)
            else:
                self._in_brace(c)

        if self.state is not ScanState.OUTSIDE:
            raise MalformedInputError("Unterminated '[' annotation block.")
        if self.buffer:
            # Trailing root length / name with no closing delimiter.
            self._flush()

        return ParseResult(self.arena, self.labels, self.n_migrations, self.ignored_keys)

    # ------------------------------------------------------------------ #
    # States                                                              #
    # ------------------------------------------------------------------ #

    def _outside(self, c: str) -> None:
        if c in _NAME_CHARS:
            self.buffer.append(c)
            return

        if c == ":":
            if self.buffer:
                self._commit_name("".join(self.buffer))
                self.buffer = []
            self.expect_length = True
            return

        if c in "[(),":
            if self.buffer:
                self._flush()

            if c == "(":
                self.cursor = self.arena.append_child(self.cursor, self._new_node())
            elif c == ",":
                if self.cursor == self.arena.root:
                    raise MalformedInputError(
                        f"Unexpected ',' at top level (offset {self.pos})."
                    )
                self.cursor = self.arena.insert_after(self.cursor, self._new_node())
            elif c == ")":
                parent = self.arena.parent(self.cursor)
                if parent == -1:
                    raise MalformedInputError(
                        f"Unexpected ')' above the root (offset {self.pos})."
                    )
                child_label = self.arena[self.cursor].label
                self.cursor = parent
                self.arena[parent].label = child_label
            else:
                self.state = ScanState.IN_BRACKET
                self.annotation = []
        # whitespace, ';' and anything else outside brackets are skipped

    def _in_bracket(self, c: str) -> None:
        if c == "]":
            self._dispatch()
            self.state = ScanState.OUTSIDE
        elif c == ",":
            self._dispatch()
        elif c == "{":
            self.state = ScanState.IN_BRACE
        else:
            self.annotation.append(c)

    def _in_brace(self, c: str) -> None:
        if c == "}":
            self.state = ScanState.IN_BRACKET
        elif c == "]":
            raise MalformedInputError(
                f"Unterminated '{{' inside annotation (offset {self.pos})."
            )
        else:
            # commas inside braces separate vector components, not annotations
            self.annotation.append(c)

    # ------------------------------------------------------------------ #
    # Actions                                                             #
    # ------------------------------------------------------------------ #

    def _new_node(self) -> Node:
        node = Node(self.next_number)
        self.next_number += 1
        return node

    def _flush(self) -> None:
        token = "".join(self.buffer)
        self.buffer = []
        if self.expect_length:
            self.arena[self.cursor].length = self._to_float(token, "branch length")
            self.expect_length = False
        else:
            self._commit_name(token)

    def _commit_name(self, name: str) -> None:
        node = self.arena[self.cursor]
        node.name = name
        if self.arena.number_of_children(self.cursor) == 0:
            node.leaf = True
            node.label = initial_digits(name)
            if node.label != UNSET_LABEL:
                self.labels.add(node.label)

    def _to_float(self, token: str, what: str) -> float:
        try:
            return float(token)
        except ValueError:
            raise MalformedInputError(
                f"Cannot parse {what} {token!r} (offset {self.pos})."
            ) from None

    def _dispatch(self) -> None:
        """Interpret one buffered ``key value ...`` annotation."""
        text = "".join(self.annotation).translate(_DROPPED)
        self.annotation = []
        fields = [f for f in _FIELD_SPLIT.split(text) if f]
        if not fields:
            return
        fields += [""] * (4 - len(fields))
        key, f2, f3, f4 = fields[:4]
        node = self.arena[self.cursor]

        if key == "M":
            self._migration(f2, f3, f4)
        elif key in _LABEL_KEYS:
            node.label = f2
            self.labels.add(f2)
        elif key in _XY_KEYS:
            node.x = self._to_float(f2, key)
            node.y = self._to_float(f3, key)
        elif key in _X_KEYS:
            node.x = self._to_float(f2, key)
        elif key in _Y_KEYS:
            node.y = self._to_float(f2, key)
        elif key == "AHTL":
            node.x = self._to_float(f2, key)
            node.y = self._to_float(f3, key)
            node.label = "south" if self._to_float(f4, key) < 0 else "north"
        elif key == "rate":
            node.rate = self._to_float(f2, key)
        else:
            self.ignored_keys.add(key)

    def _migration(self, f_from: str, f_to: str, f_len: str) -> None:
        """
        ``M from to:length``: the cursor's lineage was in deme *from* until
        *length* before the cursor node.  Shorten the cursor's branch to
        *length* and wrap a new node carrying *from* above it.
        """
        try:
            from_label = str(int(f_from) + 1)
            int(f_to)
        except ValueError:
            raise MalformedInputError(
                f"Migration annotation needs integer demes, got {f_from!r} {f_to!r} "
                f"(offset {self.pos})."
            ) from None
        mig_length = self._to_float(f_len, "migration length")

        node = self.arena[self.cursor]
        remainder = node.length - mig_length
        node.length = mig_length

        mig_node = self._new_node()
        mig_node.label = from_label
        mig_node.length = remainder
        self.labels.add(from_label)
        self.cursor = self.arena.wrap(self.cursor, mig_node)
        self.n_migrations += 1


def parse_annotated_newick(text: str) -> ParseResult:
    """
    Parse an annotated NEWICK string into a node arena.

    Parameters
    ----------
    text : str
        NEWICK string, optionally with ``[&...]`` annotation blocks.  The
        trailing ';' is optional.

    Returns
    -------
    ParseResult
        ``(arena, labels, n_migrations, ignored_keys)``.  Node times are not
        yet set; :class:`CoalescentTree` derives them from the lengths.

    Raises
    ------
    MalformedInputError
        If the parenthesis counts differ, a bracket or brace is left open,
        or a branch length / numeric annotation cannot be parsed.
    """
    if not text or not text.strip().rstrip(";"):
        raise MalformedInputError("Empty tree string.")

    n_open = text.count("(")
    n_close = text.count(")")
    if n_open != n_close:
        raise MalformedInputError(
            f"Unmatched parentheses: {n_open} '(' versus {n_close} ')'."
        )

    result = _Scanner(text).run()
    if result.ignored_keys:
        logger.debug("Ignored annotation keys: %s", ", ".join(sorted(result.ignored_keys)))
    return result
