import numpy as np
from time import perf_counter
from sklearn.datasets import load_diabetes
from treegrow import GreedyTreeRegressor

data = load_diabetes()
X, y = data.data, data.target
feats = list(data.feature_names)

reg = GreedyTreeRegressor(
    max_nodes=15, min_samples_split=30, min_samples_leaf=10,
    feature_names=feats, verbose=1,
)

t0 = perf_counter(); reg.fit(X, y); print(f"fit: {perf_counter()-t0:.3f} s")
print(f"R^2 on training data: {reg.score(X, y):.3f}")
try:
    reg.export_graphviz("diabetes_tree", format="dot")
except RuntimeError as e:
    print(f"Skipping Graphviz export: {e}")
reg.print_tree()
for rule in reg.export_rules():
    print(rule)
