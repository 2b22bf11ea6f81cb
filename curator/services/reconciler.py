import logging
from typing import Iterable

from curator.core.errors import ReconciliationConflict
from curator.models.duplicate_cluster import DuplicateCluster
from curator.models.track import TrackRecord
from curator.models.track_meta_data import TAG_FIELDS, TrackMetaData
from curator.services.resolver import order_members

logger = logging.getLogger(__name__)


def merge_metadata(canonical: TrackRecord, members: Iterable[TrackRecord]) -> TrackMetaData:
    """
    Merge tag fields for a cluster.

    Each tag comes from the canonical record when it has one, otherwise from the
    first member reporting it in canonical order. Audio properties (codec,
    bitrate, ...) describe the canonical file and are never borrowed.
    """
    ordered = [canonical] + [member for member in order_members(members) if member.id != canonical.id]

    merged = canonical.metadata.model_copy()
    for field in TAG_FIELDS:
        for member in ordered:
            value = getattr(member.metadata, field)
            if value is not None:
                setattr(merged, field, value)
                break
    return merged


def reconcile_cluster(
    cluster: DuplicateCluster,
    records: dict[int, TrackRecord],
) -> dict[int, TrackRecord]:
    """
    Produce the reconciled records of one cluster.

    Members no longer present in ``records`` (removed files) are dropped first.
    If the recorded canonical member is gone, the best remaining member is
    elected instead. Non-canonical members point at the canonical id.
    """
    members = [records[member_id] for member_id in cluster.member_ids if member_id in records]
    if not members:
        raise ReconciliationConflict(cluster.canonical_id)

    ordered = order_members(members)
    canonical = ordered[0]
    if canonical.id != cluster.canonical_id:
        logger.info(f"Canonical {cluster.canonical_id} is gone, electing {canonical.id}")

    reconciled = {
        canonical.id: canonical.model_copy(
            update={"canonical_id": None, "merged_metadata": merge_metadata(canonical, ordered)}
        )
    }
    for member in ordered[1:]:
        reconciled[member.id] = member.model_copy(
            update={"canonical_id": canonical.id, "merged_metadata": None}
        )
    return reconciled
