# -*- coding: utf-8 -*-
"""
treegrow.tree
=============

The mutable regression tree that the grower refines one leaf at a time.

Nodes come in a fixed set of variants:

- ``EmptyNode``: the sentinel standing for a tree with zero nodes.
- ``UnstructuredNode``: a leaf holding a prediction and an error.  An error of
  ``+inf`` means the leaf has never been evaluated.
- ``OrderedNode``: a decision node routing on ``value <= threshold``.
- ``CategoricalNode``: a decision node routing on membership in a category set.

The ``Tree`` stores its nodes in an arena addressed by integer slots.  Every
node records its own slot and its parent's slot, and decision nodes record the
slots of their two children.  Replacing a leaf puts the new node into the
leaf's slot, so slots are never vacated and parent links stay valid.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, FrozenSet, Iterator, List, Optional, Sequence
import numpy as np


def _feature_name(fn, j: int) -> str:
    return fn[j] if (fn is not None and 0 <= j < len(fn)) else f"X[{j}]"


# -----------------------------------------------------------------------------
# Split rules
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class OrderedSplit:
    """Send a point left when its feature value is ``<= threshold``."""
    threshold: float

    def goes_left(self, value: Any) -> bool:
        return float(value) <= self.threshold

    def describe(self, name: str, left: bool) -> str:
        op = "<=" if left else ">"
        return f"{name} {op} {self.threshold:.6g}"


@dataclass(frozen=True)
class CategoricalSplit:
    """Send a point left when its feature value is one of ``left_categories``.

    Categories never seen during training route right.
    """
    left_categories: FrozenSet[Any]

    def goes_left(self, value: Any) -> bool:
        return value in self.left_categories

    def describe(self, name: str, left: bool) -> str:
        S = "{" + ", ".join(map(str, sorted(self.left_categories, key=str))) + "}"
        return f"{name} {'IN' if left else 'NOT IN'} {S}"


# -----------------------------------------------------------------------------
# Nodes
# -----------------------------------------------------------------------------
class Node:
    """Base of the node variants.  Identity (not value) equality is used, so
    nodes can key dictionaries while their statistics change."""

    is_empty_node = False
    is_leaf = False

    def __init__(self, prediction: float, error: float, n_samples: float = 0.0):
        self.prediction = float(prediction)
        self.error = float(error)
        self.n_samples = float(n_samples)
        # arena bookkeeping, -1 when detached
        self.slot: int = -1
        self.parent: int = -1


class EmptyNode(Node):
    """Stand-in for "the tree has no nodes".  Use :meth:`get`."""

    is_empty_node = True
    _instance: Optional["EmptyNode"] = None

    def __init__(self):
        super().__init__(0.0, float("inf"))

    @classmethod
    def get(cls) -> "EmptyNode":
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def __repr__(self) -> str:
        return "EmptyNode()"


class UnstructuredNode(Node):
    """A leaf: no split rule yet, just a prediction and its error."""

    is_leaf = True

    def __repr__(self) -> str:
        return (f"UnstructuredNode(prediction={self.prediction:.6g}, "
                f"error={self.error:.6g}, n_samples={self.n_samples:g})")


class DecisionNode(Node):
    split_type: str = ""
    rule_type: type = object

    def __init__(self, node_id: int, feature_index: int, prediction: float,
                 error: float = float("nan"), n_samples: float = 0.0):
        super().__init__(prediction, error, n_samples)
        self.node_id = int(node_id)
        self.feature_index = int(feature_index)
        self.split_rule = None
        self.left: int = -1
        self.right: int = -1

    @property
    def has_children(self) -> bool:
        return self.left >= 0

    def child_slot(self, features: Sequence[Any]) -> int:
        if self.split_rule.goes_left(features[self.feature_index]):
            return self.left
        return self.right

    def __repr__(self) -> str:
        return (f"{type(self).__name__}(node_id={self.node_id}, "
                f"feature_index={self.feature_index}, split_rule={self.split_rule!r})")


class OrderedNode(DecisionNode):
    split_type = "ordered"
    rule_type = OrderedSplit


class CategoricalNode(DecisionNode):
    split_type = "categorical"
    rule_type = CategoricalSplit


# -----------------------------------------------------------------------------
# Tree
# -----------------------------------------------------------------------------
class Tree:
    """
    Arena-backed binary regression tree with a node capacity.

    Parameters
    ----------
    max_nodes : int
        Capacity.  :meth:`is_full` holds once ``size >= max_nodes``.

    Notes
    -----
    Structural misuse (touching a node that is not part of this tree,
    attaching children to a leaf, or a split rule that does not fit the
    decision node variant) raises ``ValueError`` straight away.
    """

    def __init__(self, max_nodes: int):
        self.max_nodes = int(max_nodes)
        if self.max_nodes < 1:
            raise ValueError("max_nodes must be >= 1")
        self._nodes: List[Node] = []
        self._root: int = -1
        self._size: int = 0

    # ----------------------------- Queries -----------------------------

    @property
    def size(self) -> int:
        return self._size

    def __len__(self) -> int:
        return self._size

    def is_full(self) -> bool:
        return self._size >= self.max_nodes

    @property
    def root(self) -> Node:
        if self._root < 0:
            return EmptyNode.get()
        return self._nodes[self._root]

    def node_at(self, slot: int) -> Node:
        node = self._nodes[slot] if 0 <= slot < len(self._nodes) else None
        if node is None:
            raise ValueError(f"no node at slot {slot}")
        return node

    def contains(self, node: Node) -> bool:
        return 0 <= node.slot < len(self._nodes) and self._nodes[node.slot] is node

    def iter_nodes(self) -> Iterator[Node]:
        """Pre-order walk, left subtree before right."""
        if self._root < 0:
            return
        stack = [self._root]
        while stack:
            node = self._nodes[stack.pop()]
            yield node
            if not node.is_leaf and node.has_children:
                stack.append(node.right)
                stack.append(node.left)

    def get_leaves(self) -> List[Node]:
        return [n for n in self.iter_nodes() if n.is_leaf]

    def decision_nodes(self) -> List[DecisionNode]:
        return [n for n in self.iter_nodes() if not n.is_leaf]

    def get_leaf(self, features: Sequence[Any]) -> Node:
        """Route a feature vector to its current leaf (``EmptyNode`` if the tree is empty)."""
        if self._root < 0:
            return EmptyNode.get()
        node = self._nodes[self._root]
        while not node.is_leaf:
            if not node.has_children:
                raise ValueError(f"decision node {node.node_id} has no children to route to")
            node = self._nodes[node.child_slot(features)]
        return node

    @property
    def depth(self) -> int:
        if self._root < 0:
            return 0
        best = 0
        stack = [(self._root, 0)]
        while stack:
            slot, d = stack.pop()
            node = self._nodes[slot]
            best = max(best, d)
            if not node.is_leaf and node.has_children:
                stack.append((node.left, d + 1))
                stack.append((node.right, d + 1))
        return best

    # ----------------------------- Mutation -----------------------------

    def _check_member(self, node: Node) -> None:
        if not self.contains(node):
            raise ValueError(f"{node!r} is not part of this tree")

    def _add(self, node: Node, parent: int) -> int:
        if node.is_empty_node:
            raise ValueError("EmptyNode cannot be stored in a tree")
        if node.slot >= 0:
            raise ValueError(f"{node!r} already belongs to a tree")
        node.slot = len(self._nodes)
        node.parent = parent
        self._nodes.append(node)
        self._size += 1
        return node.slot

    def set_root_node(self, node: Node) -> None:
        """Install the first node of an empty tree."""
        if self._size != 0:
            raise ValueError("set_root_node requires an empty tree")
        self._root = self._add(node, -1)

    def replace_root_node(self, node: Node) -> None:
        """Swap the single root leaf of a one-node tree for ``node``."""
        if self._size != 1:
            raise ValueError("replace_root_node requires a tree with exactly one node")
        self._swap(self._nodes[self._root], node)

    def replace_node(self, old: Node, new: Node) -> None:
        """Put ``new`` into the slot of leaf ``old``; ``old`` is detached."""
        self._check_member(old)
        if not old.is_leaf:
            raise ValueError(f"only leaves can be replaced, got {old!r}")
        if old.parent < 0:
            raise ValueError("use replace_root_node to replace the root")
        self._swap(old, new)

    def _swap(self, old: Node, new: Node) -> None:
        if new.is_empty_node or new.slot >= 0:
            raise ValueError(f"{new!r} cannot replace a node")
        # new takes over old's slot, so the parent's child index stays valid
        new.slot, new.parent = old.slot, old.parent
        self._nodes[old.slot] = new
        old.slot = -1
        old.parent = -1

    def insert_children(self, parent: Node, left: Node, right: Node, split_rule) -> None:
        """Attach two leaves under decision node ``parent`` with the rule that routes between them."""
        self._check_member(parent)
        if parent.is_leaf:
            raise ValueError("children can only be inserted under a decision node")
        if parent.has_children:
            raise ValueError(f"decision node {parent.node_id} already has children")
        if not isinstance(split_rule, parent.rule_type):
            raise ValueError(f"{type(parent).__name__} needs a {parent.rule_type.__name__}, "
                             f"got {type(split_rule).__name__}")
        if not (left.is_leaf and right.is_leaf):
            raise ValueError("inserted children must be leaves")
        parent.split_rule = split_rule
        parent.left = self._add(left, parent.slot)
        parent.right = self._add(right, parent.slot)

    # ----------------------------- Prediction -----------------------------

    def predict_one(self, x: Sequence[Any]) -> float:
        return self.get_leaf(x).prediction

    def predict(self, X) -> np.ndarray:
        X = np.asarray(X, dtype=object)
        out = np.empty(X.shape[0], dtype=float)
        for i, x in enumerate(X):
            out[i] = self.predict_one(x)
        return out

    # ----------------------------- Pretty / Rules / Graphviz -----------------------------

    def print_tree(self, feature_names: Optional[List[str]] = None) -> None:
        """Pretty-print the tree to ``stdout``."""
        self._print_node(self.root, "", feature_names)

    def _print_node(self, node: Node, indent="", fn=None):
        if node.is_empty_node:
            print(f"{indent}<empty>")
            return
        if node.is_leaf:
            print(f"{indent}Predict {node.prediction:.4f} (N={node.n_samples:g}, error={node.error:.4g})")
            return
        name = _feature_name(fn, node.feature_index)
        print(f"{indent}if {node.split_rule.describe(name, True)}:")
        self._print_node(self._nodes[node.left], indent + "  ", fn)
        print(f"{indent}else:")
        self._print_node(self._nodes[node.right], indent + "  ", fn)

    def export_rules(self, feature_names: Optional[List[str]] = None) -> List[str]:
        """
        Export one rule per leaf.

        Returns
        -------
        list[str]
            Strings of the form ``"<antecedent> => value=<prediction> (N=<count>)"``.
        """
        rules: List[str] = []
        if self._root >= 0:
            self._collect_rules(self.root, [], rules, feature_names)
        return rules

    def _collect_rules(self, node: Node, parts: List[str], rules: List[str], fn=None):
        if node.is_leaf:
            antecedent = " AND ".join(parts) if parts else "<root>"
            rules.append(f"{antecedent} => value={node.prediction:.6g} (N={node.n_samples:g})")
            return
        name = _feature_name(fn, node.feature_index)
        self._collect_rules(self._nodes[node.left], parts + [node.split_rule.describe(name, True)], rules, fn)
        self._collect_rules(self._nodes[node.right], parts + [node.split_rule.describe(name, False)], rules, fn)

    def trace_rule(self, x: Sequence[Any], feature_names: Optional[List[str]] = None) -> str:
        """Antecedent of the rule that ``x`` falls under."""
        if self._root < 0:
            return "<empty>"
        parts = []
        node = self.root
        while not node.is_leaf:
            name = _feature_name(feature_names, node.feature_index)
            left = node.split_rule.goes_left(x[node.feature_index])
            parts.append(node.split_rule.describe(name, left))
            node = self._nodes[node.left if left else node.right]
        return " AND ".join(parts) if parts else "<root>"

    def export_graphviz(self, filename: str = "treegrow_tree", feature_names: Optional[List[str]] = None,
                        format: str = "png") -> str:
        """
        Export the tree with Graphviz.

        ``format='dot'`` writes the DOT source without calling the external
        ``dot`` binary.  For other formats rendering is attempted and a
        ``.dot`` file is written if it fails.

        Returns
        -------
        str
            Path of the written file.

        Raises
        ------
        RuntimeError
            If the ``graphviz`` Python package is not installed.
        """
        try:
            from graphviz import Digraph
        except ImportError as e:
            raise RuntimeError("Please install the 'graphviz' Python package.") from e
        dot = Digraph(comment="treegrow", format=format)
        self._add_graph_nodes(dot, self.root, "root", feature_names)
        if format.lower() == "dot":
            path = f"{filename}.dot"
            dot.save(path)
            return path
        try:
            dot.render(filename, cleanup=True)
            return f"{filename}.{format}"
        except Exception:
            fallback_path = f"{filename}.dot"
            dot.save(fallback_path)
            return fallback_path

    def _add_graph_nodes(self, dot, node: Node, node_id: str, fn=None):
        if node.is_empty_node:
            dot.node(node_id, "<empty>")
            return
        if node.is_leaf:
            dot.node(node_id, f"Leaf\nvalue={node.prediction:.6g}\nN={node.n_samples:g}",
                     shape="box", style="filled", color="lightgrey")
            return
        name = _feature_name(fn, node.feature_index)
        dot.node(node_id, f"#{node.node_id}: {node.split_rule.describe(name, True)}",
                 shape="ellipse", style="filled", color="lightblue")
        left_id, right_id = node_id + "L", node_id + "R"
        dot.edge(node_id, left_id, label="True")
        dot.edge(node_id, right_id, label="False")
        self._add_graph_nodes(dot, self._nodes[node.left], left_id, fn)
        self._add_graph_nodes(dot, self._nodes[node.right], right_id, fn)
