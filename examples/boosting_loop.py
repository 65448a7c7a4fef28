"""A bare gradient boosting loop on top of TreeGrower: each round fits one tree to the residuals."""
import numpy as np
from treegrow import ArrayPointIterator, FeatureTypes, Tree, TreeGrower

rng = np.random.default_rng(42)
n_samples = 500
X = rng.uniform(-3, 3, size=(n_samples, 2))
y = np.sin(X[:, 0]) + 0.5 * X[:, 1] + rng.normal(scale=0.1, size=n_samples)

feature_types = FeatureTypes.from_categorical(X.shape[1])
learning_rate = 0.3
pred = np.full(n_samples, y.mean())
trees = []
for m in range(30):
    residuals = y - pred
    tree = TreeGrower(Tree(max_nodes=15), feature_types, ArrayPointIterator(X, residuals)).grow()
    trees.append(tree)
    pred += learning_rate * tree.predict(X)
    if (m + 1) % 10 == 0:
        print(f"Iteration {m+1}: train_mse={np.mean((y - pred) ** 2):.4f}")
