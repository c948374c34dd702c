from typing import Optional

import matplotlib.pyplot as plt
from matplotlib.axes import Axes
import numpy as np
from scipy.cluster.hierarchy import dendrogram as scipy_dendrogram

from hierarchical_clustering_ml.dendrogram import Dendrogram


def plot_clusters(axis: Axes, X: np.ndarray, labels: np.ndarray, show: bool = True) -> Axes:
    """
    Plots the clustered data points in 2D.

    Args:
        axis (Axes): Axes to draw on.
        X (np.ndarray): Data points of shape (n_samples, 2).
        labels (np.ndarray): Cluster labels of shape (n_samples,).
        show (bool): Call plt.show() when done.
    """
    X = np.asarray(X)
    labels = np.asarray(labels)
    for label in np.unique(labels):
        cluster_points = X[labels == label]
        axis.scatter(cluster_points[:, 0], cluster_points[:, 1], label=f'Cluster {label}')

    axis.set_title('Agglomerative Clustering Results')
    axis.set_xlabel('Feature 1')
    axis.set_ylabel('Feature 2')
    axis.legend()
    axis.grid(True)
    if show:
        plt.show()
    return axis


def plot_dendrogram(dendrogram: Dendrogram,
                    axis: Optional[Axes] = None,
                    threshold: Optional[float] = None,
                    show: bool = True) -> Axes:
    """
    Plots the dendrogram for the hierarchical clustering.

    Args:
        dendrogram (Dendrogram): Merge history to draw.
        axis (Axes): Axes to draw on; a new figure is created when omitted.
        threshold (float): Optional cut height, drawn as a dashed line and used
            to colour the clusters below it.
        show (bool): Call plt.show() when done.
    """
    if axis is None:
        _, axis = plt.subplots(figsize=(10, 7))

    scipy_dendrogram(dendrogram.to_linkage_matrix(), ax=axis, color_threshold=threshold)
    if threshold is not None:
        axis.axhline(threshold, linestyle='--', color='grey')

    axis.set_title('Dendrogram for Agglomerative Clustering')
    axis.set_xlabel('Sample Index')
    axis.set_ylabel('Distance')
    if show:
        plt.show()
    return axis
