# -*- coding: utf-8 -*-
"""
treegrow.points
===============

Training points and restartable iterators over them.  Tree growth replays the
whole training set once per growth round, so every point source must support
a cheap, idempotent ``reset``.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, NamedTuple, Sequence
import numpy as np


class Point(NamedTuple):
    features: Sequence[Any]
    y_value: float


class PointIterator(ABC):
    """Restartable source of :class:`Point` records."""

    @abstractmethod
    def reset(self) -> None:
        """Rewind to the first point.  Safe to call any number of times."""

    @abstractmethod
    def has_next(self) -> bool:
        ...

    @abstractmethod
    def next(self) -> Point:
        ...

    def __iter__(self):
        self.reset()
        while self.has_next():
            yield self.next()


class ArrayPointIterator(PointIterator):
    """
    In-memory point source over a feature matrix and a target vector.

    Parameters
    ----------
    X : array-like of shape (n_samples, n_features)
        Feature matrix.  Object arrays are kept as-is so categorical values
        such as strings survive.
    y : array-like of shape (n_samples,)
        Regression targets.
    """

    def __init__(self, X, y):
        X = np.asarray(X)
        y = np.asarray(y, dtype=float)
        if X.ndim != 2:
            raise ValueError("X must be a 2-D array")
        if y.ndim != 1:
            raise ValueError("y must be a 1-D array")
        if X.shape[0] != y.shape[0]:
            raise ValueError("X and y must have the same number of rows")
        self.X = X
        self.y = y
        self._pos = 0

    @property
    def n_points(self) -> int:
        return self.y.shape[0]

    @property
    def n_features(self) -> int:
        return self.X.shape[1]

    def reset(self) -> None:
        self._pos = 0

    def has_next(self) -> bool:
        return self._pos < self.y.shape[0]

    def next(self) -> Point:
        if self._pos >= self.y.shape[0]:
            raise StopIteration
        i = self._pos
        self._pos += 1
        return Point(self.X[i], float(self.y[i]))

    def __len__(self) -> int:
        return self.n_points
