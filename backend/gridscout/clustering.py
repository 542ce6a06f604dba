"""Proximity clustering of 2D samples.

Two variants sit behind ``cluster_points``:

* ``greedy``: online single pass. A point joins the first cluster whose key
  matches and whose current centroid is within ``radius``; the centroid is
  the running mean. Results depend on input order and that is relied upon by
  the positional analyzers, so it must stay exactly like this.
* ``components``: order-independent breadth-first grouping. Two points share
  a cluster when a chain of points links them with steps of at most
  ``radius``. The centroid is computed once, as the mean or the median.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import numpy as np


@dataclass(frozen=True)
class Point:
    x: float
    y: float
    key: Optional[str] = None
    payload: Any = None


@dataclass
class Cluster:
    centroid_x: float
    centroid_y: float
    key: Optional[str] = None
    members: List[Point] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.members)

    def positions(self) -> List[Dict[str, float]]:
        return [{"x": point.x, "y": point.y} for point in self.members]


def _distance(ax: float, ay: float, bx: float, by: float) -> float:
    return float(np.hypot(ax - bx, ay - by))


def mean_centroid(points: Sequence[Point]) -> tuple[float, float]:
    coords = np.array([[point.x, point.y] for point in points], dtype=float)
    centre = coords.mean(axis=0)
    return float(centre[0]), float(centre[1])


def median_centroid(points: Sequence[Point]) -> tuple[float, float]:
    """Upper median per axis: index ``n // 2`` of each sorted coordinate."""
    xs = np.sort(np.array([point.x for point in points], dtype=float))
    ys = np.sort(np.array([point.y for point in points], dtype=float))
    middle = len(points) // 2
    return float(xs[middle]), float(ys[middle])


def greedy_cluster(
    points: Sequence[Point], radius: float, use_key: bool = False
) -> List[Cluster]:
    clusters: List[Cluster] = []
    for point in points:
        target: Optional[Cluster] = None
        for cluster in clusters:
            if use_key and cluster.key != point.key:
                continue
            if _distance(point.x, point.y, cluster.centroid_x, cluster.centroid_y) <= radius:
                target = cluster
                break
        if target is None:
            clusters.append(
                Cluster(
                    centroid_x=point.x,
                    centroid_y=point.y,
                    key=point.key if use_key else None,
                    members=[point],
                )
            )
            continue
        target.members.append(point)
        target.centroid_x, target.centroid_y = mean_centroid(target.members)
    return clusters


def connected_clusters(
    points: Sequence[Point], radius: float, centroid: str = "mean"
) -> List[Cluster]:
    if not points:
        return []
    coords = np.array([[point.x, point.y] for point in points], dtype=float)
    deltas = coords[:, None, :] - coords[None, :, :]
    adjacent = np.hypot(deltas[..., 0], deltas[..., 1]) <= radius

    visited = np.zeros(len(points), dtype=bool)
    clusters: List[Cluster] = []
    for start in range(len(points)):
        if visited[start]:
            continue
        visited[start] = True
        queue = deque([start])
        members: List[int] = []
        while queue:
            current = queue.popleft()
            members.append(current)
            for neighbour in np.flatnonzero(adjacent[current] & ~visited):
                visited[neighbour] = True
                queue.append(int(neighbour))
        member_points = [points[index] for index in members]
        if centroid == "median":
            cx, cy = median_centroid(member_points)
        else:
            cx, cy = mean_centroid(member_points)
        clusters.append(Cluster(centroid_x=cx, centroid_y=cy, members=member_points))
    return clusters


def cluster_points(
    points: Sequence[Point],
    radius: float,
    method: str = "greedy",
    centroid: str = "mean",
    use_key: bool = False,
) -> List[Cluster]:
    if method == "greedy":
        return greedy_cluster(points, radius, use_key=use_key)
    if method == "components":
        return connected_clusters(points, radius, centroid=centroid)
    raise ValueError(f"Unknown clustering method: {method}")
