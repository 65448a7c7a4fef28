# treegrow/__init__.py
"""
treegrow: greedy best-first regression tree induction for gradient boosting.

Exports:
    - TreeGrower
    - GreedyTreeRegressor
    - Tree and its node variants
    - NodeSplit, BestSplit
    - FeatureType, FeatureTypes
    - Point, PointIterator, ArrayPointIterator
"""
from .features import FeatureType, FeatureTypes, infer_feature_types
from .points import Point, PointIterator, ArrayPointIterator
from .tree import (
    Tree, Node, EmptyNode, UnstructuredNode, OrderedNode, CategoricalNode,
    OrderedSplit, CategoricalSplit,
)
from .split import BestSplit, NodeSplit
from .grower import TreeGrower
from .regressor import GreedyTreeRegressor

__all__ = [
    "FeatureType", "FeatureTypes", "infer_feature_types",
    "Point", "PointIterator", "ArrayPointIterator",
    "Tree", "Node", "EmptyNode", "UnstructuredNode", "OrderedNode", "CategoricalNode",
    "OrderedSplit", "CategoricalSplit",
    "BestSplit", "NodeSplit",
    "TreeGrower",
    "GreedyTreeRegressor",
]
__version__ = "0.1.0"
