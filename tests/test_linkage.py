import numpy as np
import pytest
from scipy.cluster.hierarchy import linkage as scipy_linkage
from scipy.spatial.distance import pdist

from hierarchical_clustering_ml.dendrogram import Merge
from hierarchical_clustering_ml.distances import compute_pairwise_distances
from hierarchical_clustering_ml.errors import EmptyInput, InvalidMatrix
from hierarchical_clustering_ml.linkage import (
    LinkageMethod,
    build,
    extract_min_pair,
    init_clusters,
    lance_williams_update,
    merge_clusters,
    working_matrix,
)

ALL_METHODS = [m.value for m in LinkageMethod]
MONOTONIC_METHODS = ["single", "complete", "average", "weighted", "ward"]


def line_distances(positions):
    x = np.asarray(positions, dtype=float)[:, None]
    return np.abs(x - x.T)


def random_distances(seed, n=15):
    rng = np.random.default_rng(seed)
    return compute_pairwise_distances(rng.uniform(size=(n, 2)))


def test_linkage_method_parse():
    assert LinkageMethod.parse("Ward") is LinkageMethod.WARD
    assert LinkageMethod.parse(LinkageMethod.SINGLE) is LinkageMethod.SINGLE
    with pytest.raises(ValueError):
        LinkageMethod.parse("weird")


def test_linkage_method_properties():
    assert not LinkageMethod.CENTROID.is_monotonic
    assert not LinkageMethod.MEDIAN.is_reducible
    assert LinkageMethod.WEIGHTED.is_reducible
    assert LinkageMethod.WARD.uses_squared_distances
    assert not LinkageMethod.AVERAGE.uses_squared_distances


@pytest.mark.parametrize(
    "linkage, expected",
    [
        ("single", 2.0),
        ("complete", 5.0),
        ("average", (1 * 2.0 + 3 * 5.0) / (1 + 3)),
        ("weighted", 3.5),
        ("ward", ((1 + 2) * 2.0 + (3 + 2) * 5.0 - 2 * 4.0) / (1 + 3 + 2)),
        ("centroid", (1 * 2.0 + 3 * 5.0) / 4 - 1 * 3 * 4.0 / 16),
        ("median", 2.0 / 2 + 5.0 / 2 - 4.0 / 4),
    ],
)
def test_lance_williams_update_scalar(linkage, expected):
    """
    Test Lance-Williams distance update formula for every linkage type.
    """
    out = lance_williams_update(linkage, 2.0, 5.0, 1, 3, d_ij=4.0, size_k=2)
    assert pytest.approx(out, abs=1e-12) == expected


def test_lance_williams_update_vectorized():
    d_ik = np.array([1.0, 4.0])
    d_jk = np.array([3.0, 2.0])
    out = lance_williams_update("single", d_ik, d_jk, 1, 1)
    assert np.array_equal(out, [1.0, 2.0])


def test_lance_williams_update_invalid_linkage():
    with pytest.raises(ValueError):
        lance_williams_update("weird", 1.0, 2.0, 1, 1)


def test_init_clusters():
    """
    Test correct initialization of clusters.

    Verifies:
    - all clusters start active
    - each cluster has size 1
    - each slot initially holds the observation with the same index
    """
    active, sizes, node_ids = init_clusters(4)
    assert active.dtype == bool
    assert active.shape == (4,)
    assert np.all(active)

    assert sizes.shape == (4,)
    assert np.all(sizes == 1)

    assert np.array_equal(node_ids, [0, 1, 2, 3])


def test_working_matrix_squares_for_ward_and_ignores_lower_triangle():
    D = np.array([[0.0, 2.0],
                  [2.5, 0.0]])
    W = working_matrix(D, LinkageMethod.WARD)
    assert W[0, 1] == W[1, 0] == 4.0
    assert np.isinf(W[0, 0])


def test_extract_min_pair_breaks_ties_by_cluster_id():
    """
    Two pairs share the minimal distance 1; the one with the smaller ids wins,
    regardless of slot positions.
    """
    W = working_matrix(line_distances([0, 1, 5, 6]), LinkageMethod.SINGLE)
    active, _, node_ids = init_clusters(4)

    assert extract_min_pair(W, active, node_ids) == (0, 1, 1.0)

    node_ids = np.array([7, 6, 1, 0])
    assert extract_min_pair(W, active, node_ids) == (2, 3, 1.0)


def test_extract_min_pair_skips_inactive_slots():
    W = working_matrix(line_distances([0, 1, 5, 6]), LinkageMethod.SINGLE)
    active, _, node_ids = init_clusters(4)
    active[0] = False
    assert extract_min_pair(W, active, node_ids) == (2, 3, 1.0)


def test_merge_clusters_updates_state_average_linkage():
    """
    Test correct state updates after merging clusters using average linkage.
    """
    X = np.array([[0.0, 0.0],
                  [1.0, 0.0],
                  [10.0, 0.0]])
    D = compute_pairwise_distances(X)
    W = working_matrix(D, LinkageMethod.AVERAGE)
    active, sizes, node_ids = init_clusters(3)

    i, j, dist = extract_min_pair(W, active, node_ids)
    assert (i, j) == (0, 1)

    merge_clusters(i, j, active, sizes, W, LinkageMethod.AVERAGE)

    assert active[i]
    assert not active[j]
    assert sizes[i] == 2
    assert sizes[j] == 0
    assert np.all(np.isinf(W[j]))

    expected = (D[0, 2] + D[1, 2]) / 2.0
    assert pytest.approx(W[i, 2], rel=1e-10, abs=1e-10) == expected
    assert W[2, i] == W[i, 2]


def test_merge_clusters_rejects_invalid():
    W = working_matrix(line_distances([0, 1]), LinkageMethod.AVERAGE)
    active, sizes, _ = init_clusters(2)

    with pytest.raises(ValueError):
        merge_clusters(0, 0, active, sizes, W, LinkageMethod.AVERAGE)

    with pytest.raises(ValueError):
        merge_clusters(0, 1, np.array([True, False]), sizes, W, LinkageMethod.AVERAGE)

    with pytest.raises(ValueError):
        merge_clusters(0, 1, active, sizes, W, "unknown")


def test_build_single_linkage_scenario():
    """Points at 0, 1, 5, 6: the tie at height 1 goes to the lower id pair."""
    dendrogram = build(line_distances([0, 1, 5, 6]), "single")

    assert list(dendrogram) == [
        Merge(0, 1, 1.0, 2),
        Merge(2, 3, 1.0, 2),
        Merge(4, 5, 4.0, 4),
    ]


def test_build_complete_and_average_heights():
    D = line_distances([0, 1, 5, 6])
    assert build(D, "complete")[-1].height == 6.0
    assert build(D, "average")[-1].height == 5.0


def test_build_ward_first_merge_is_plain_distance():
    dendrogram = build(line_distances([0.0, 0.3, 4.0]), "ward")
    assert dendrogram[0][:2] == (0, 1)
    assert pytest.approx(dendrogram[0].height) == 0.3
    # sqrt((2 * 4.0**2 + 2 * 3.7**2 - 0.3**2) / 3)
    assert pytest.approx(dendrogram[1].height) == np.sqrt((2 * 16.0 + 2 * 13.69 - 0.09) / 3)


@pytest.mark.parametrize("method", ALL_METHODS)
def test_build_identical_points_all_zero_heights(method):
    dendrogram = build(np.zeros((5, 5)), method)
    assert len(dendrogram) == 4
    assert np.all(dendrogram.heights == 0.0)
    assert dendrogram[-1].size == 5


@pytest.mark.parametrize("method", ALL_METHODS)
@pytest.mark.parametrize("seed", [0, 1])
def test_build_structure(method, seed):
    """n - 1 merges, every merge larger than both parts, the last one covers all."""
    n = 15
    dendrogram = build(random_distances(seed, n), method)

    assert len(dendrogram) == n - 1
    sizes = np.concatenate([np.ones(n, dtype=int), dendrogram.sizes])
    for merge in dendrogram:
        assert merge.size > sizes[merge.left]
        assert merge.size > sizes[merge.right]
        assert merge.left < merge.right
    assert dendrogram[-1].size == n


@pytest.mark.parametrize("method", MONOTONIC_METHODS)
def test_build_heights_non_decreasing(method):
    dendrogram = build(random_distances(3, 25), method)
    assert dendrogram.is_monotonic()
    assert np.all(np.diff(dendrogram.heights) >= 0)


@pytest.mark.parametrize("method", ["centroid", "median"])
def test_build_inversion(method):
    """
    Centroid of (0, 0) and (1, 0) is closer to (0.5, 0.9) than the two were to
    each other, so the second merge is lower than the first.
    """
    X = np.array([[0.0, 0.0], [1.0, 0.0], [0.5, 0.9]])
    dendrogram = build(compute_pairwise_distances(X), method)

    assert dendrogram[0][:2] == (0, 1)
    assert dendrogram[1][:2] == (2, 3)
    assert pytest.approx(dendrogram[0].height) == 1.0
    assert pytest.approx(dendrogram[1].height) == 0.9
    assert not dendrogram.is_monotonic()


@pytest.mark.parametrize("method", MONOTONIC_METHODS)
def test_build_matches_scipy(method):
    rng = np.random.default_rng(4)
    X = rng.normal(size=(20, 3))
    expected = scipy_linkage(pdist(X), method=method)
    Z = build(compute_pairwise_distances(X), method).to_linkage_matrix()

    np.testing.assert_array_equal(Z[:, [0, 1, 3]], expected[:, [0, 1, 3]])
    np.testing.assert_allclose(Z[:, 2], expected[:, 2], rtol=1e-9)


@pytest.mark.parametrize("method", ["centroid", "median"])
def test_build_matches_scipy_heights_non_monotonic(method):
    rng = np.random.default_rng(5)
    X = rng.normal(size=(20, 3))
    expected = scipy_linkage(pdist(X), method=method)
    heights = build(compute_pairwise_distances(X), method).heights

    np.testing.assert_allclose(np.sort(heights), np.sort(expected[:, 2]), rtol=1e-9)


def test_build_accepts_condensed_input():
    D = line_distances([0, 1, 5, 6])
    assert build(pdist(np.array([[0], [1], [5], [6]])), "single") == build(D, "single")


def test_build_leaves_input_untouched():
    D = random_distances(6, 8)
    before = D.copy()
    build(D, "ward")
    assert np.array_equal(D, before)


def test_build_is_deterministic():
    D = random_distances(7, 12)
    assert build(D, "average") == build(D, "average")


def test_build_rejects_invalid_input():
    with pytest.raises(InvalidMatrix):
        build([[0.0, -1.0], [-1.0, 0.0]], "single")
    with pytest.raises(InvalidMatrix):
        build(np.zeros((3, 2)), "single")
    with pytest.raises(EmptyInput):
        build(np.zeros((1, 1)), "single")
    with pytest.raises(ValueError):
        build(np.zeros((3, 3)), "nonsense")
