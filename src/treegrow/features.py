# -*- coding: utf-8 -*-
"""
treegrow.features
=================

Per-feature classification as ordered (numeric threshold splits) or
categorical (subset splits).  The grower consults this registry when it turns
a leaf into a decision node, and the split accumulator consults it to decide
how candidate splits are enumerated for each feature.
"""

from __future__ import annotations
from enum import Enum
from typing import Iterable, List, Optional, Sequence
import numpy as np


def _isnan_scalar(v) -> bool:
    return (v is None) or (isinstance(v, (float, np.floating)) and np.isnan(v))


class FeatureType(Enum):
    ORDERED = "ordered"
    CATEGORICAL = "categorical"

    @property
    def is_ordered(self) -> bool:
        return self is FeatureType.ORDERED


class FeatureTypes:
    """Registry of feature types, in the same order as a feature vector.

    Parameters
    ----------
    types : iterable of FeatureType
        One entry per feature.
    """

    def __init__(self, types: Iterable[FeatureType]):
        self._types: List[FeatureType] = list(types)
        for t in self._types:
            if not isinstance(t, FeatureType):
                raise ValueError(f"expected a FeatureType, got {t!r}")

    @classmethod
    def from_categorical(cls, n_features: int,
                         categorical: Optional[Sequence[int | str]] = None,
                         feature_names: Optional[Sequence[str]] = None) -> "FeatureTypes":
        """Build a registry where ``categorical`` (indices or names) are categorical."""
        n_features = int(n_features)
        cats = set()
        if categorical is not None:
            seq = list(categorical)
            if len(seq) and isinstance(seq[0], str):
                if feature_names is None:
                    raise ValueError("feature_names must be provided when categorical features are given by name.")
                name_to_idx = {n: i for i, n in enumerate(feature_names)}
                for name in seq:
                    if name not in name_to_idx:
                        raise ValueError(f"unknown feature name {name!r}")
                    cats.add(name_to_idx[name])
            else:
                for j in seq:
                    j = int(j)
                    if not 0 <= j < n_features:
                        raise ValueError(f"categorical feature index {j} out of range for {n_features} features")
                    cats.add(j)
        return cls(FeatureType.CATEGORICAL if j in cats else FeatureType.ORDERED
                   for j in range(n_features))

    def is_ordered(self, feature_index: int) -> bool:
        return self._types[feature_index].is_ordered

    def __getitem__(self, feature_index: int) -> FeatureType:
        return self._types[feature_index]

    def __len__(self) -> int:
        return len(self._types)

    def __iter__(self):
        return iter(self._types)

    def __repr__(self) -> str:
        return "FeatureTypes([" + ", ".join(t.value for t in self._types) + "])"


def infer_feature_types(X, categorical_features: Optional[Sequence[int | str]] = None,
                        feature_names: Optional[Sequence[str]] = None,
                        infer_categorical: bool = True) -> FeatureTypes:
    """
    Classify the columns of ``X``.

    Columns listed in ``categorical_features`` are categorical.  When
    ``infer_categorical`` is set, object columns that hold strings or booleans
    are categorical as well.  Everything else is ordered.

    Parameters
    ----------
    X : array-like of shape (n_samples, n_features)
    categorical_features : sequence of int or str, optional
        Indices or names of categorical columns; names require ``feature_names``.
    feature_names : sequence of str, optional
    infer_categorical : bool, default=True

    Returns
    -------
    FeatureTypes
    """
    X = np.asarray(X)
    if X.ndim != 2:
        raise ValueError("X must be a 2-D array")
    m = X.shape[1]
    if feature_names is not None and len(feature_names) != m:
        raise ValueError("feature_names length must match X.shape[1]")
    explicit = FeatureTypes.from_categorical(m, categorical_features, feature_names)
    types = list(explicit)
    if infer_categorical and X.dtype == object:
        for j in range(m):
            if not types[j].is_ordered:
                continue
            known = [v for v in X[:, j] if not _isnan_scalar(v)]
            if any(isinstance(v, (str, bool, np.bool_)) for v in known):
                types[j] = FeatureType.CATEGORICAL
    return FeatureTypes(types)
