import math
import numpy as np
import pytest
from treegrow import (
    ArrayPointIterator, BestSplit, CategoricalNode, EmptyNode, FeatureTypes, NodeSplit,
    OrderedNode, OrderedSplit, Tree, TreeGrower, UnstructuredNode,
)


def _grow(X, y, max_nodes, categorical=None, split_factory=None):
    X = np.asarray(X)
    ft = FeatureTypes.from_categorical(X.shape[1], categorical)
    tree = Tree(max_nodes)
    grower = TreeGrower(tree, ft, ArrayPointIterator(X, y), split_factory)
    grower.grow()
    return tree, grower


def _random_dataset(n=80, seed=7):
    """Two numeric features and one integer-coded categorical feature."""
    rng = np.random.default_rng(seed)
    X = np.column_stack([rng.normal(size=n), rng.uniform(size=n), rng.integers(0, 4, size=n)])
    y = 3.0 * (X[:, 0] > 0) + X[:, 1] + np.where(X[:, 2] == 2, 2.0, 0.0) + rng.normal(scale=0.1, size=n)
    return X, y


def _signature(tree):
    out = []
    for node in tree.iter_nodes():
        if node.is_leaf:
            out.append(("leaf", node.prediction, node.error, node.n_samples))
        else:
            out.append((type(node).__name__, node.node_id, node.feature_index, node.split_rule))
    return out


def _route(tree, x):
    node = tree.root
    while not node.is_leaf:
        goes_left = node.split_rule.goes_left(x[node.feature_index])
        node = tree.node_at(node.left if goes_left else node.right)
    return node


def _leaf_sse_total(tree):
    return sum(leaf.error * leaf.n_samples for leaf in tree.get_leaves())


def test_root_bootstrap_when_no_split_fits():
    tree, grower = _grow([[0.0], [1.0], [2.0]], [2.0, 4.0, 6.0], max_nodes=1)
    assert tree.size == 1
    root = tree.root
    assert root.is_leaf
    assert root.prediction == pytest.approx(4.0)
    # never evaluated
    assert math.isinf(root.error)
    assert root.n_samples == 3
    assert grower.rounds == 0


def test_single_informative_split():
    tree, grower = _grow([[0.0], [1.0]], [0.0, 10.0], max_nodes=3)
    root = tree.root
    assert isinstance(root, OrderedNode)
    assert root.node_id == 1
    assert root.feature_index == 0
    assert root.split_rule == OrderedSplit(0.5)
    left, right = tree.get_leaves()
    assert (left.prediction, right.prediction) == (0.0, 10.0)
    assert (left.error, right.error) == (0.0, 0.0)
    assert tree.size == 3
    assert grower.rounds == 1


def test_single_informative_split_stops_with_room_to_spare():
    tree, grower = _grow([[0.0], [1.0]], [0.0, 10.0], max_nodes=15)
    assert tree.size == 3
    assert grower.rounds == 1
    assert not tree.is_full()


def test_empty_training_data():
    tree, grower = _grow(np.empty((0, 2)), [], max_nodes=7)
    assert tree.size == 1
    assert tree.root.prediction == 0.0
    assert grower.rounds == 0


def test_growth_is_deterministic():
    X, y = _random_dataset()
    t1, _ = _grow(X, y, max_nodes=21, categorical=[2])
    t2, _ = _grow(X, y, max_nodes=21, categorical=[2])
    assert _signature(t1) == _signature(t2)


def test_leaf_error_never_increases():
    X, y = _random_dataset()
    # growth is deterministic, so each smaller capacity is a prefix of the larger run
    totals = [_leaf_sse_total(_grow(X, y, max_nodes=k, categorical=[2])[0]) for k in range(3, 32, 2)]
    for before, after in zip(totals, totals[1:]):
        assert after <= before + 1e-9


def test_terminates_within_capacity():
    X, y = _random_dataset()
    for cap in (1, 2, 3, 8, 31):
        tree, grower = _grow(X, y, max_nodes=cap, categorical=[2])
        assert grower.rounds <= cap
        assert tree.size <= cap + 1


def test_node_ids_strictly_increasing_without_reuse():
    X, y = _random_dataset()
    tree, grower = _grow(X, y, max_nodes=31, categorical=[2])
    ids = sorted(n.node_id for n in tree.decision_nodes())
    assert ids == list(range(1, grower.rounds + 1))
    assert grower.next_id == grower.rounds + 1
    assert any(isinstance(n, CategoricalNode) for n in tree.decision_nodes())


def test_zero_error_leaf_is_never_investigated(monkeypatch):
    X = np.array([[0.0], [1.0], [2.0], [3.0]])
    y = [0.0, 0.0, 5.0, 9.0]
    ft = FeatureTypes.from_categorical(1)
    tree = Tree(15)
    grower = TreeGrower(tree, ft, ArrayPointIterator(X, y))
    investigated = []
    original = grower._find_nodes_to_investigate

    def spy():
        nodes = original()
        investigated.append(list(nodes))
        return nodes

    monkeypatch.setattr(grower, "_find_nodes_to_investigate", spy)
    grower.grow()

    # first split isolates the two zeros
    assert tree.root.split_rule == OrderedSplit(1.5)
    zero_leaf = tree.node_at(tree.root.left)
    assert zero_leaf.error == 0.0
    assert [len(nodes) for nodes in investigated] == [1, 1, 0]
    for nodes in investigated:
        assert zero_leaf not in nodes
        assert all(node.error != 0.0 for node in nodes)
    assert tree.size == 5


def test_each_accumulator_sees_exactly_the_points_of_its_leaf(monkeypatch):
    X, y = _random_dataset()
    ft = FeatureTypes.from_categorical(3, [2])
    tree = Tree(15)
    grower = TreeGrower(tree, ft, ArrayPointIterator(X, y))
    checks = []
    original = grower._find_nodes_to_investigate

    def spy():
        nodes = original()
        expected = {}
        for x in X:
            leaf = _route(tree, x)
            expected[leaf] = expected.get(leaf, 0) + 1
        for leaf, node_split in nodes.items():
            checks.append((node_split, expected.get(leaf, 0)))
        return nodes

    monkeypatch.setattr(grower, "_find_nodes_to_investigate", spy)
    grower.grow()
    assert len(checks) > 1
    for node_split, n in checks:
        assert node_split.n_points == n


def test_ties_go_to_the_leaf_scored_first():
    # two halves with identical internal structure give equal best errors
    X = [[0.0], [1.0], [2.0], [3.0], [10.0], [11.0], [12.0], [13.0]]
    y = [0.0, 0.0, 1.0, 1.0, 100.0, 100.0, 101.0, 101.0]
    tree, grower = _grow(X, y, max_nodes=5)
    root = tree.root
    assert root.split_rule == OrderedSplit(6.5)
    left, right = tree.node_at(root.left), tree.node_at(root.right)
    assert isinstance(left, OrderedNode) and left.node_id == 2
    assert right.is_leaf
    assert grower.rounds == 2


def test_only_the_best_ranked_split_gates_termination():
    tree = Tree(15)
    tree.set_root_node(UnstructuredNode(5.0, 25.0, 4))
    root = OrderedNode(1, 0, 5.0)
    tree.replace_root_node(root)
    tree.insert_children(root, UnstructuredNode(0.0, 1.0, 2), UnstructuredNode(10.0, 1.0, 2), OrderedSplit(0.5))

    class _ScriptedSplit:
        def __init__(self):
            self.xs = []

        def process(self, point):
            self.xs.append(point.features[0])

        def find_best_split(self):
            if all(x <= 0.5 for x in self.xs):
                # a sentinel that outranks the viable split of the other leaf
                return BestSplit(-1, None, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, -100.0)
            return BestSplit(0, OrderedSplit(0.75), 10.0, 0.0, 1, 10.0, 0.0, 1, -1.0)

    X = np.array([[0.0], [0.0], [1.0], [1.0]])
    grower = TreeGrower(tree, FeatureTypes.from_categorical(1), ArrayPointIterator(X, [0, 0, 10, 10]),
                        split_factory=_ScriptedSplit)
    assert grower.next_id == 2
    grower.grow()
    assert tree.size == 3
    assert grower.rounds == 0


def test_continues_growing_a_partial_tree():
    X, y = _random_dataset()
    ft = FeatureTypes.from_categorical(3, [2])
    tree = Tree(5)
    TreeGrower(tree, ft, ArrayPointIterator(X, y)).grow()
    assert tree.size == 5
    tree.max_nodes = 11
    grower = TreeGrower(tree, ft, ArrayPointIterator(X, y))
    assert grower.next_id == 3
    grower.grow()
    assert tree.size == 11
    ids = sorted(n.node_id for n in tree.decision_nodes())
    assert ids == [1, 2, 3, 4, 5]


def test_empty_tree_bootstrap_installs_root_leaf():
    tree = Tree(7)
    grower = TreeGrower(tree, FeatureTypes.from_categorical(1), ArrayPointIterator(np.empty((0, 1)), []))
    nodes = grower._find_nodes_to_investigate()
    assert list(nodes) == [EmptyNode.get()]
    split = BestSplit(0, OrderedSplit(0.5), 3.0, 0.5, 2, 7.0, 0.25, 2, -4.0)
    grower._grow_tree_at_node(EmptyNode.get(), split)
    assert tree.size == 1
    root = tree.root
    assert root.is_leaf
    assert (root.prediction, root.error) == (3.0, 0.5)
    assert grower.next_id == 1


def test_splitting_a_detached_leaf_fails_fast():
    tree, grower = _grow([[0.0], [1.0]], [0.0, 10.0], max_nodes=3)
    stray = UnstructuredNode(1.0, 1.0, 1)
    split = BestSplit(0, OrderedSplit(0.5), 0.0, 0.0, 1, 1.0, 0.0, 1, -1.0)
    with pytest.raises(ValueError):
        grower._grow_tree_at_node(stray, split)


def test_categorical_feature_materializes_categorical_node():
    X = np.array([['a'], ['b'], ['a'], ['c']], dtype=object)
    y = [1.0, 5.0, 1.0, 5.0]
    tree, _ = _grow(X, y, max_nodes=3, categorical=[0])
    root = tree.root
    assert isinstance(root, CategoricalNode)
    assert root.split_rule.left_categories == frozenset({'a'})
    assert tree.get_leaf(['a']).prediction == 1.0
    assert tree.get_leaf(['c']).prediction == 5.0


@pytest.mark.parametrize("dtype", [np.float16, np.float32, np.float64])
def test_nan_in_numpy_float_features_is_rejected(dtype):
    X = np.array([[0.0], [np.nan], [1.0], [2.0]], dtype=dtype)
    with pytest.raises(ValueError):
        _grow(X, [0.0, 1.0, 2.0, 3.0], max_nodes=7)
