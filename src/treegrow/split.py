# -*- coding: utf-8 -*-
"""
treegrow.split
==============

Split search for a single leaf.

A ``NodeSplit`` is fed the training points that currently land in one leaf,
one at a time, and then reports the split that most reduces the summed
squared error of the leaf as a ``BestSplit``.  Ordered features are split at
midpoints between consecutive distinct values; categorical features are
split into a prefix of categories sorted by mean target, which is optimal for
squared error.  When nothing helps, the ``BestSplit.not_a_solution()``
sentinel is returned instead of raising.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union
import numpy as np

from .features import FeatureTypes, _isnan_scalar
from .points import Point
from .tree import CategoricalSplit, OrderedSplit


def _sse(n: float, s: float, s2: float, lo: float, hi: float) -> float:
    # s and s2 are sums of shifted targets; a constant side is exactly zero
    if lo == hi:
        return 0.0
    return max(s2 - (s * s) / n, 0.0)


@dataclass(frozen=True)
class BestSplit:
    """
    Best way found to turn one leaf into a decision node with two leaves.

    Attributes
    ----------
    feature_index : int
        Feature to split on, ``-1`` for the "not a solution" sentinel.
    split_rule : OrderedSplit or CategoricalSplit or None
    left_prediction, right_prediction : float
        Mean target of each child.
    left_error, right_error : float
        Mean squared error of each child.
    left_count, right_count : float
        Number of points in each child.
    error : float
        Ranking key across leaves: the change in summed squared error the
        split produces.  Negative values are improvements; lower wins.
    """
    feature_index: int
    split_rule: Optional[Union[OrderedSplit, CategoricalSplit]]
    left_prediction: float
    left_error: float
    left_count: float
    right_prediction: float
    right_error: float
    right_count: float
    error: float

    @classmethod
    def not_a_solution(cls) -> "BestSplit":
        inf = float("inf")
        return cls(-1, None, 0.0, inf, 0.0, 0.0, inf, 0.0, inf)

    @property
    def is_not_a_solution(self) -> bool:
        return self.feature_index < 0


class NodeSplit:
    """
    Accumulates split statistics for the points of one leaf.

    Parameters
    ----------
    feature_types : FeatureTypes
        Ordered/categorical classification of each feature.
    min_samples_split : int, default=2
        Fewer points than this and the leaf is not split.
    min_samples_leaf : int, default=1
        Minimum number of points in each child.
    min_sse_gain : float, default=0.0
        A split must reduce the summed squared error by more than this.

    Notes
    -----
    ``find_best_split`` finalizes the accumulator and may be called exactly
    once; further calls to it or to ``process`` raise ``RuntimeError``.
    """

    def __init__(self, feature_types: FeatureTypes, min_samples_split: int = 2,
                 min_samples_leaf: int = 1, min_sse_gain: float = 0.0):
        self.feature_types = feature_types
        self.min_samples_split = int(min_samples_split)
        self.min_samples_leaf = int(min_samples_leaf)
        self.min_sse_gain = float(min_sse_gain)
        if self.min_samples_leaf < 1:
            raise ValueError("min_samples_leaf must be >= 1")
        # per feature: value -> [count, sum d, sum d^2, min y, max y], d = y - shift
        self._groups: List[Dict[Any, List[float]]] = [{} for _ in range(len(feature_types))]
        self._n = 0
        self._shift: Optional[float] = None
        self._sd = 0.0
        self._sd2 = 0.0
        self._lo = float("inf")
        self._hi = float("-inf")
        self._finished = False

    @property
    def n_points(self) -> int:
        return self._n

    def process(self, point: Point) -> None:
        if self._finished:
            raise RuntimeError("NodeSplit already finalized by find_best_split()")
        x = point.features
        if len(x) != len(self._groups):
            raise ValueError(f"expected {len(self._groups)} features, got {len(x)}")
        for j, v in enumerate(x):
            if _isnan_scalar(v):
                raise ValueError(f"missing value for feature {j}; missing values are not supported")
        y = float(point.y_value)
        if self._shift is None:
            self._shift = y
        d = y - self._shift
        for j, v in enumerate(x):
            key = float(v) if self.feature_types.is_ordered(j) else v
            agg = self._groups[j].get(key)
            if agg is None:
                self._groups[j][key] = [1.0, d, d * d, y, y]
            else:
                agg[0] += 1.0
                agg[1] += d
                agg[2] += d * d
                if y < agg[3]:
                    agg[3] = y
                if y > agg[4]:
                    agg[4] = y
        self._n += 1
        self._sd += d
        self._sd2 += d * d
        self._lo = min(self._lo, y)
        self._hi = max(self._hi, y)

    def find_best_split(self) -> BestSplit:
        if self._finished:
            raise RuntimeError("find_best_split() may only be called once")
        self._finished = True

        n = self._n
        if n < max(self.min_samples_split, 2 * self.min_samples_leaf, 2):
            return BestSplit.not_a_solution()
        sse_parent = _sse(n, self._sd, self._sd2, self._lo, self._hi)

        best = None
        best_err = float("inf")
        for j, groups in enumerate(self._groups):
            k = len(groups)
            if k <= 1:
                continue
            if self.feature_types.is_ordered(j):
                keys = sorted(groups)
            else:
                keys = sorted(groups, key=lambda c: (groups[c][1] / groups[c][0], str(c)))
            stats = np.array([groups[c] for c in keys], dtype=float)

            # prefix sums over groups; right side is total minus prefix
            cnt = np.cumsum(stats[:, 0])
            sd = np.cumsum(stats[:, 1])
            sd2 = np.cumsum(stats[:, 2])
            lo_l = np.minimum.accumulate(stats[:, 3])
            hi_l = np.maximum.accumulate(stats[:, 4])
            lo_r = np.minimum.accumulate(stats[::-1, 3])[::-1]
            hi_r = np.maximum.accumulate(stats[::-1, 4])[::-1]
            N, SD, SD2 = float(cnt[-1]), float(sd[-1]), float(sd2[-1])

            for i in range(k - 1):
                nL = float(cnt[i])
                nR = N - nL
                if nL < self.min_samples_leaf or nR < self.min_samples_leaf:
                    continue
                sdL, sdR = float(sd[i]), SD - float(sd[i])
                sseL = _sse(nL, sdL, float(sd2[i]), lo_l[i], hi_l[i])
                sseR = _sse(nR, sdR, SD2 - float(sd2[i]), lo_r[i + 1], hi_r[i + 1])
                gain = sse_parent - (sseL + sseR)
                if gain <= 0.0 or gain <= self.min_sse_gain:
                    continue
                err = -gain
                if err < best_err:
                    best_err = err
                    best = (j, keys, i, nL, sdL, sseL, (lo_l[i], hi_l[i]),
                            nR, sdR, sseR, (lo_r[i + 1], hi_r[i + 1]))

        if best is None:
            return BestSplit.not_a_solution()
        j, keys, i, nL, sdL, sseL, rng_l, nR, sdR, sseR, rng_r = best
        if self.feature_types.is_ordered(j):
            thr = 0.5 * (keys[i] + keys[i + 1])
            if thr >= keys[i + 1]:
                thr = keys[i]
            rule = OrderedSplit(float(thr))
        else:
            rule = CategoricalSplit(frozenset(keys[:i + 1]))
        return BestSplit(
            feature_index=j,
            split_rule=rule,
            left_prediction=self._mean(nL, sdL, rng_l),
            left_error=sseL / nL,
            left_count=nL,
            right_prediction=self._mean(nR, sdR, rng_r),
            right_error=sseR / nR,
            right_count=nR,
            error=best_err,
        )

    def _mean(self, n: float, s: float, rng) -> float:
        lo, hi = rng
        if lo == hi:
            return float(lo)
        return float(self._shift + s / n)
