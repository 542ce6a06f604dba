from __future__ import annotations

import itertools
import math
import random
import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from gridscout.clustering import Point, cluster_points, median_centroid


def test_greedy_clusters_nearby_points_with_running_mean() -> None:
    points = [Point(0, 0), Point(10, 0), Point(1000, 1000)]
    clusters = cluster_points(points, 50)

    assert len(clusters) == 2
    assert (clusters[0].centroid_x, clusters[0].centroid_y) == (5.0, 0.0)
    assert clusters[0].count == 2
    assert clusters[1].positions() == [{"x": 1000, "y": 1000}]


def test_greedy_respects_keys() -> None:
    points = [Point(0, 0, key="a"), Point(5, 0, key="b"), Point(8, 0, key="a")]
    clusters = cluster_points(points, 50, use_key=True)

    assert [(cluster.key, cluster.count) for cluster in clusters] == [("a", 2), ("b", 1)]


def test_greedy_depends_on_input_order() -> None:
    # The running centroid drifts toward the second point, so the third joins.
    points = [Point(0, 0), Point(40, 0), Point(65, 0)]
    assert len(cluster_points(points, 50)) == 1
    assert len(cluster_points(list(reversed(points)), 50)) == 2


def test_components_chain_points_and_use_median() -> None:
    points = [Point(0, 0), Point(200, 0), Point(400, 0), Point(5000, 5000)]
    clusters = cluster_points(points, 250, method="components", centroid="median")

    assert sorted(cluster.count for cluster in clusters) == [1, 3]
    chain = next(cluster for cluster in clusters if cluster.count == 3)
    assert (chain.centroid_x, chain.centroid_y) == (200.0, 0.0)


def test_median_centroid_takes_upper_middle() -> None:
    assert median_centroid([Point(0, 0), Point(10, 4)]) == (10.0, 4.0)


def test_unknown_method_raises() -> None:
    with pytest.raises(ValueError):
        cluster_points([Point(0, 0)], 10, method="kmeans")


def _linked_within(members, radius: float) -> bool:
    reached = {0}
    frontier = [0]
    while frontier:
        current = members[frontier.pop()]
        for index, other in enumerate(members):
            if index not in reached and math.hypot(current.x - other.x, current.y - other.y) <= radius:
                reached.add(index)
                frontier.append(index)
    return len(reached) == len(members)


def test_components_link_every_member_through_short_steps() -> None:
    rng = random.Random(7)
    points = [Point(rng.uniform(0, 3000), rng.uniform(0, 3000)) for _ in range(80)]
    radius = 250
    clusters = cluster_points(points, radius, method="components")

    assert sum(cluster.count for cluster in clusters) == len(points)
    for cluster in clusters:
        assert _linked_within(cluster.members, radius)
    # Separate components never hold two points within reach of each other.
    for first, second in itertools.combinations(clusters, 2):
        for a in first.members:
            for b in second.members:
                assert math.hypot(a.x - b.x, a.y - b.y) > radius
