"""Duplicate resolution.

Tracks whose fingerprints are within the similarity threshold are joined by an
edge; the connected components of that graph are the duplicate clusters. The
graph lives in an arena of list indices and is reduced with a disjoint set, so
records never point at each other directly.
"""

import logging
from typing import Iterable, Sequence

import numpy as np

from curator.models.duplicate_cluster import DuplicateCluster
from curator.models.track import TrackRecord
from curator.services.fingerprint import DEFAULT_SIMILARITY_THRESHOLD

logger = logging.getLogger(__name__)


class DisjointSet:
    def __init__(self, size: int):
        self.parent = list(range(size))
        self.rank = [0] * size

    def find(self, item: int) -> int:
        root = item
        while self.parent[root] != root:
            root = self.parent[root]
        # path compression
        while self.parent[item] != root:
            self.parent[item], item = root, self.parent[item]
        return root

    def union(self, a: int, b: int) -> None:
        root_a = self.find(a)
        root_b = self.find(b)
        if root_a == root_b:
            return
        if self.rank[root_a] < self.rank[root_b]:
            root_a, root_b = root_b, root_a
        self.parent[root_b] = root_a
        if self.rank[root_a] == self.rank[root_b]:
            self.rank[root_a] += 1

    def groups(self) -> list[list[int]]:
        by_root: dict[int, list[int]] = {}
        for item in range(len(self.parent)):
            by_root.setdefault(self.find(item), []).append(item)
        return list(by_root.values())


def canonical_sort_key(record: TrackRecord) -> tuple:
    """
    Total order used to elect canonical members and to rank cluster members.

    Highest known audio quality first (bitrate, then sample rate), then the
    earliest indexed record, then the lexicographically smallest path. Paths are
    unique in the index, which makes the order total.
    """
    bitrate, sample_rate = record.metadata.quality()
    return (
        -bitrate,
        -sample_rate,
        record.indexed_generation,
        str(record.file_path),
    )


def order_members(records: Iterable[TrackRecord]) -> list[TrackRecord]:
    return sorted(records, key=canonical_sort_key)


def similar_pairs(records: Sequence[TrackRecord], threshold: int) -> list[tuple[int, int]]:
    """Index pairs (i, j), i < j, whose fingerprint Hamming distance is <= threshold."""
    if len(records) < 2:
        return []

    matrix = np.array([record.fingerprint for record in records], dtype=np.uint32)
    pairs: list[tuple[int, int]] = []
    for i in range(len(records) - 1):
        xor = np.bitwise_xor(matrix[i + 1:], matrix[i])
        distances = np.unpackbits(xor.view(np.uint8), axis=1).sum(axis=1)
        for offset in np.flatnonzero(distances <= threshold):
            pairs.append((i, i + 1 + int(offset)))
    return pairs


def find_clusters(
    records: Sequence[TrackRecord],
    threshold: int = DEFAULT_SIMILARITY_THRESHOLD,
) -> list[DuplicateCluster]:
    """
    Group records into disjoint duplicate clusters.

    Every record ends up in exactly one cluster; a record without duplicates is
    a singleton cluster and its own canonical member. Clusters are returned in
    order of their canonical record's path.
    """
    disjoint_set = DisjointSet(len(records))
    pairs = similar_pairs(records, threshold)
    for i, j in pairs:
        disjoint_set.union(i, j)

    clusters = []
    for group in disjoint_set.groups():
        members = order_members(records[i] for i in group)
        clusters.append(DuplicateCluster(member_ids=tuple(member.id for member in members)))

    by_id = {record.id: record for record in records}
    clusters.sort(key=lambda cluster: str(by_id[cluster.canonical_id].file_path))

    logger.debug(
        f"Resolved {len(records)} records into {len(clusters)} clusters from {len(pairs)} similar pairs"
    )
    return clusters


def mark_duplicates(
    clusters: Iterable[DuplicateCluster],
    records: dict[int, TrackRecord],
) -> dict[int, TrackRecord]:
    """Return copies of the records with canonical_id pointing at each cluster's canonical member."""
    marked: dict[int, TrackRecord] = {}
    for cluster in clusters:
        for member_id in cluster.member_ids:
            canonical_id = None if member_id == cluster.canonical_id else cluster.canonical_id
            record = records[member_id]
            update = {"canonical_id": canonical_id}
            if canonical_id is not None:
                update["merged_metadata"] = None
            marked[member_id] = record.model_copy(update=update)
    return marked
