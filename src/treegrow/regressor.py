"""Greedy best-first regression tree with a scikit-learn style API.
This module wires the point source, feature types, tree and grower together.
"""
from __future__ import annotations
from typing import Any, Iterable, List, Optional
import logging
import numpy as np
from sklearn.base import BaseEstimator, RegressorMixin

from .features import FeatureTypes, infer_feature_types
from .grower import TreeGrower
from .points import ArrayPointIterator
from .split import NodeSplit
from .tree import Tree

logger = logging.getLogger(__name__)


class GreedyTreeRegressor(RegressorMixin, BaseEstimator):
    r"""
    GreedyTreeRegressor(max_nodes=31, min_samples_split=2, min_samples_leaf=1,
                        min_sse_gain=0.0, categorical_features=None,
                        infer_categorical=True, feature_names=None, verbose=0)

    A regression tree grown best-first: every round the leaf whose best split
    removes the most squared error is split, until the tree holds
    ``max_nodes`` nodes or no leaf can be improved.  This is the tree
    induction step used inside gradient-boosted-tree training.

    **Core behavior**

    - **Split criterion**: reduction of the summed squared error.  Numeric
      thresholds are evaluated at midpoints between distinct sorted values.
      Categorical features use subset splits found by scanning categories
      ordered by their mean target.
    - **Growth order**: global best-first over all leaves, not depth-first.
      Leaves whose error is exactly zero are never split.
    - **Missing values** are not supported and raise ``ValueError``.

    Parameters
    ----------
    max_nodes : int, default=31
        Node capacity of the tree (leaves plus decision nodes).
    min_samples_split : int, default=2
        Minimum number of points in a leaf to consider splitting it.
    min_samples_leaf : int, default=1
        Minimum number of points in each child after a split.
    min_sse_gain : float, default=0.0
        Minimal squared-error improvement required to accept a split.
    categorical_features : sequence of int or str, optional
        Indices or names of categorical columns; names require ``feature_names``.
    infer_categorical : bool, default=True
        Automatically mark object columns holding strings or bools as categorical.
    feature_names : sequence of str, optional
        Column names used with ``categorical_features`` and in textual exports.
    verbose : int, default=0
        When positive, growth progress is logged at INFO level.

    Attributes
    ----------
    tree_ : Tree
        The grown tree.
    feature_types_ : FeatureTypes
        Ordered/categorical type of each column.
    n_features_in_ : int
    """

    def __init__(self,
                 max_nodes: int = 31,
                 min_samples_split: int = 2,
                 min_samples_leaf: int = 1,
                 min_sse_gain: float = 0.0,
                 categorical_features: Optional[Iterable[int | str]] = None,
                 infer_categorical: bool = True,
                 feature_names: Optional[List[str]] = None,
                 verbose: int = 0):
        self.max_nodes = int(max_nodes)
        self.min_samples_split = int(min_samples_split)
        self.min_samples_leaf = int(min_samples_leaf)
        self.min_sse_gain = float(min_sse_gain)
        self.categorical_features = categorical_features
        self.infer_categorical = bool(infer_categorical)
        self.feature_names = feature_names
        self.verbose = int(verbose)

        self.tree_: Optional[Tree] = None
        self.feature_types_: Optional[FeatureTypes] = None

    # ----------------------------- Public API -----------------------------

    def fit(self, X, y):
        if self.verbose:
            logging.basicConfig(level=logging.INFO)
        X = np.asarray(X, dtype=object)
        y = np.asarray(y, dtype=float)
        if X.ndim != 2:
            raise ValueError("X must be a 2-D array")
        n, m = X.shape
        if y.shape[0] != n:
            raise ValueError("X and y must have the same number of rows")

        self.feature_types_ = infer_feature_types(X, self.categorical_features, self.feature_names,
                                                  self.infer_categorical)
        self.n_features_in_ = m
        points = ArrayPointIterator(X, y)
        feature_types = self.feature_types_
        grower = TreeGrower(
            Tree(self.max_nodes), feature_types, points,
            split_factory=lambda: NodeSplit(feature_types,
                                            min_samples_split=self.min_samples_split,
                                            min_samples_leaf=self.min_samples_leaf,
                                            min_sse_gain=self.min_sse_gain),
        )
        self.tree_ = grower.grow()
        logger.info("Grew tree with %d nodes (%d splits, depth %d) on %d points",
                    self.tree_.size, grower.rounds, self.tree_.depth, n)
        return self

    def predict(self, X):
        self._check_fitted()
        X = np.asarray(X, dtype=object)
        if X.ndim != 2 or X.shape[1] != self.n_features_in_:
            raise ValueError(f"X must have shape (n_samples, {self.n_features_in_})")
        return self.tree_.predict(X)

    # ----------------------------- Pretty / Rules / Graphviz -----------------------------

    def _check_fitted(self):
        if getattr(self, 'tree_', None) is None:
            raise ValueError("Estimator not fitted. Call fit(...) first.")

    def _maybe_feature_names(self, feature_names):
        return feature_names if feature_names is not None else self.feature_names

    def print_tree(self, feature_names: Optional[List[str]] = None) -> None:
        """Pretty-print the fitted tree to ``stdout``."""
        self._check_fitted()
        self.tree_.print_tree(self._maybe_feature_names(feature_names))

    def export_rules(self, feature_names: Optional[List[str]] = None) -> List[str]:
        """
        Export all decision rules in the fitted tree, one per leaf.

        Returns
        -------
        list[str]
            Each string has the form ``"<antecedent> => value=<prediction> (N=<count>)"``.

        Raises
        ------
        ValueError
            If the model has not been fitted.
        """
        self._check_fitted()
        return self.tree_.export_rules(self._maybe_feature_names(feature_names))

    def predict_rule(self, X: Iterable[Any], feature_names: Optional[List[str]] = None) -> List[str]:
        """Return the rule antecedent reached by each input sample."""
        self._check_fitted()
        fn = self._maybe_feature_names(feature_names)
        return [self.tree_.trace_rule(x, fn) for x in np.asarray(X, dtype=object)]

    def export_graphviz(self, filename: str = "treegrow_tree", feature_names: Optional[List[str]] = None,
                        format: str = "png") -> str:
        """Export the fitted tree with Graphviz; see :meth:`Tree.export_graphviz`."""
        self._check_fitted()
        return self.tree_.export_graphviz(filename, self._maybe_feature_names(feature_names), format)
