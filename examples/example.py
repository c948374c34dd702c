import numpy as np

from hierarchical_clustering_ml.agglomerative_clustering import agglomerative, linkage
from hierarchical_clustering_ml.config import configure_logging
from hierarchical_clustering_ml.cutting import cut_by_height, cut_to_k
from hierarchical_clustering_ml.distances import compute_pairwise_distances

if __name__ == "__main__":
    configure_logging("INFO")

    # Example dataset
    X = [
        [1.0, 0.0],
        [9.0, 1.0],
        [1.0, 1.0],
        [6.0, 2.0],
        [5.0, 6.0],
    ]

    # Perform agglomerative clustering
    clusters, _ = agglomerative(X, n_clusters=3, linkage="average")

    for data, cluster in zip(X, clusters):
        print(f"Data point: {data}, Cluster: {cluster}")

    # Build once, cut many times
    tree = linkage(compute_pairwise_distances(np.asarray(X)), method="ward")
    for merge in tree:
        print(f"merge {merge.left:>2} + {merge.right:>2}  height={merge.height:.3f}  size={merge.size}")
    print("k=2:", cut_to_k(tree, 2))
    print("height<=4:", cut_by_height(tree, 4.0))
