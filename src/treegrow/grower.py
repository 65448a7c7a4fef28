# -*- coding: utf-8 -*-
"""
treegrow.grower
===============

Greedy, error-minimizing growth of a single regression tree.

Each growth round the grower finds the leaves that have not been scored yet,
replays every training point past them to fill one ``NodeSplit`` per leaf,
then applies the single best split over the whole frontier.  Leaf membership
is re-derived from the live tree on every pass instead of keeping per-node
point lists, so each round costs one full scan of the training data.
"""

from __future__ import annotations
import itertools
import logging
from typing import Callable, Dict, Optional, Tuple

from .features import FeatureTypes
from .points import PointIterator
from .split import BestSplit, NodeSplit
from .tree import CategoricalNode, Node, OrderedNode, Tree, UnstructuredNode, EmptyNode

logger = logging.getLogger(__name__)


class TreeGrower:
    """
    Grow ``tree`` until it is full or no leaf admits an error-reducing split.

    Parameters
    ----------
    tree : Tree
        Tree to grow; may be empty or partially grown.
    feature_types : FeatureTypes
        Ordered/categorical type of each feature, in feature-vector order.
    point_iterator : PointIterator
        Training data.  It is reset and replayed once per growth round.
    split_factory : callable, optional
        Zero-argument callable returning a fresh split accumulator.  Defaults
        to ``NodeSplit(feature_types)``.

    Attributes
    ----------
    next_id : int
        Id given to the next decision node.  Ids start at 1, or after the
        largest id already in ``tree``.
    rounds : int
        Number of splits applied by the last call to :meth:`grow`.
    """

    def __init__(self, tree: Tree, feature_types: FeatureTypes, point_iterator: PointIterator,
                 split_factory: Optional[Callable[[], NodeSplit]] = None):
        self.tree = tree
        self.feature_types = feature_types
        self.point_iterator = point_iterator
        self.split_factory = split_factory or (lambda: NodeSplit(feature_types))
        # continue numbering when handed a partially grown tree
        self.next_id = 1 + max((n.node_id for n in tree.decision_nodes()), default=0)
        self.rounds = 0
        # leaf -> (insertion sequence, best split); lives for one grow() call
        self._best_split_for_node: Dict[Node, Tuple[int, BestSplit]] = {}
        self._seq = itertools.count()

    def grow(self) -> Tree:
        self._set_root_node_if_necessary()
        self._best_split_for_node = {}
        self._seq = itertools.count()
        self.rounds = 0
        while not self.tree.is_full():
            nodes_to_investigate = self._find_nodes_to_investigate()
            if nodes_to_investigate:
                self._scan_points(nodes_to_investigate)
            if not self._best_split_for_node:
                logger.info("No leaf left to investigate; stopping at %d nodes", self.tree.size)
                break
            node, best_split = self._pick_best()
            if best_split.is_not_a_solution:
                logger.info("Best candidate split is not a solution; stopping at %d nodes", self.tree.size)
                break
            self._grow_tree_at_node(node, best_split)
            del self._best_split_for_node[node]
            self.rounds += 1
        else:
            logger.info("Tree is full at %d nodes", self.tree.size)
        return self.tree

    # ----------------------------- Private -----------------------------

    def _set_root_node_if_necessary(self) -> None:
        if self.tree.size != 0:
            return
        total = 0.0
        n = 0
        for point in self.point_iterator:
            total += point.y_value
            n += 1
        average = total / n if n > 0 else 0.0
        logger.debug("Root prediction %.6g from %d points", average, n)
        self.tree.set_root_node(UnstructuredNode(average, float("inf"), n))

    @staticmethod
    def _should_ignore_node(node: Node) -> bool:
        return node.error == 0.0

    def _find_nodes_to_investigate(self) -> Dict[Node, NodeSplit]:
        """Fresh accumulators for leaves with no memoized split and nonzero error.

        An empty tree is investigated through the ``EmptyNode`` sentinel."""
        leaves = self.tree.get_leaves()
        if not leaves:
            leaves = [EmptyNode.get()]
        nodes_to_investigate = {}
        for node in leaves:
            if self._should_ignore_node(node):
                self._best_split_for_node.pop(node, None)
                continue
            if node not in self._best_split_for_node:
                nodes_to_investigate[node] = self.split_factory()
        return nodes_to_investigate

    def _scan_points(self, nodes_to_investigate: Dict[Node, NodeSplit]) -> None:
        for point in self.point_iterator:
            node_split = nodes_to_investigate.get(self.tree.get_leaf(point.features))
            if node_split is not None:
                node_split.process(point)
        while nodes_to_investigate:
            node = next(iter(nodes_to_investigate))
            node_split = nodes_to_investigate.pop(node)
            self._best_split_for_node[node] = (next(self._seq), node_split.find_best_split())

    @staticmethod
    def _ranking_key(entry) -> Tuple[float, int]:
        # lower error wins, then the leaf that entered the memo first
        _, (seq, best_split) = entry
        return best_split.error, seq

    def _pick_best(self) -> Tuple[Node, BestSplit]:
        node, (_, best_split) = min(self._best_split_for_node.items(), key=self._ranking_key)
        return node, best_split

    def _replace_node(self, node: Node, best_split: BestSplit) -> Node:
        """Swap leaf ``node`` for the decision node that ``best_split`` calls for.

        For the ``EmptyNode`` sentinel a root leaf is installed instead."""
        if node.is_empty_node:
            new_node = UnstructuredNode(best_split.left_prediction, best_split.left_error,
                                        best_split.left_count)
            self.tree.set_root_node(new_node)
            return new_node
        if not node.is_leaf or not self.tree.contains(node):
            raise ValueError(f"cannot split {node!r}: not a current leaf of the tree")
        node_type = OrderedNode if self.feature_types.is_ordered(best_split.feature_index) else CategoricalNode
        new_node = node_type(self.next_id, best_split.feature_index, node.prediction,
                             error=node.error, n_samples=node.n_samples)
        self.next_id += 1
        if self.tree.size == 1:
            self.tree.replace_root_node(new_node)
        else:
            self.tree.replace_node(node, new_node)
        return new_node

    def _grow_tree_at_node(self, node: Node, best_split: BestSplit) -> None:
        parent = self._replace_node(node, best_split)
        # the empty-tree bootstrap has no children to insert
        if node.is_empty_node:
            return
        left = UnstructuredNode(best_split.left_prediction, best_split.left_error, best_split.left_count)
        right = UnstructuredNode(best_split.right_prediction, best_split.right_error, best_split.right_count)
        self.tree.insert_children(parent, left, right, best_split.split_rule)
        logger.debug("Split node %d on feature %d (%r), error change %.6g, tree size %d",
                     parent.node_id, best_split.feature_index, best_split.split_rule,
                     best_split.error, self.tree.size)
