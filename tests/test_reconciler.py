from __future__ import annotations

import pytest

import curator.services.reconciler as reconciler
from curator.core.errors import ReconciliationConflict
from curator.models.duplicate_cluster import DuplicateCluster
from curator.models.track_meta_data import TAG_FIELDS, TrackMetaData

from conftest import make_record


class TestMergeMetadata:
    def test_merge_metadata__canonical_value_present__kept(self):
        canonical = make_record(1, "a.flac", metadata=TrackMetaData(title="Canonical", bitrate_kbps=900.0))
        other = make_record(2, "b.mp3", metadata=TrackMetaData(title="Other"))

        merged = reconciler.merge_metadata(canonical, [canonical, other])

        assert merged.title == "Canonical"

    def test_merge_metadata__canonical_value_absent__first_member_in_order_fills(self):
        canonical = make_record(1, "a.flac", metadata=TrackMetaData(bitrate_kbps=900.0), indexed_generation=1)
        newer = make_record(3, "c.mp3", metadata=TrackMetaData(album="Newer"), indexed_generation=3)
        older = make_record(2, "b.mp3", metadata=TrackMetaData(album="Older"), indexed_generation=2)

        merged = reconciler.merge_metadata(canonical, [newer, canonical, older])

        assert merged.album == "Older"

    def test_merge_metadata__empty_string__counts_as_present(self):
        canonical = make_record(1, "a.flac", metadata=TrackMetaData(genre="", bitrate_kbps=900.0))
        other = make_record(2, "b.mp3", metadata=TrackMetaData(genre="Jazz"))

        merged = reconciler.merge_metadata(canonical, [canonical, other])

        assert merged.genre == ""

    def test_merge_metadata__audio_properties__never_borrowed(self):
        canonical = make_record(1, "a.flac", metadata=TrackMetaData(codec="flac"))
        other = make_record(2, "b.mp3", metadata=TrackMetaData(codec="mp3", sample_rate_hz=44100, channels=2))

        merged = reconciler.merge_metadata(canonical, [canonical, other])

        assert merged.codec == "flac"
        assert merged.sample_rate_hz is None
        assert merged.channels is None

    def test_merge_metadata__any_member_has_field__merged_has_field(self):
        values = {
            "title": "T",
            "artist": "A",
            "album": "Al",
            "album_artist": "AA",
            "year": 1999,
            "date": "1999-01-01",
            "genre": "G",
            "track_number": 4,
            "disc_number": 1,
            "duration": 201.5,
        }
        canonical = make_record(1, "a.flac", metadata=TrackMetaData(bitrate_kbps=900.0))
        members = [canonical]
        for offset, (field, value) in enumerate(values.items(), start=2):
            members.append(make_record(offset, f"m{offset}.mp3", metadata=TrackMetaData(**{field: value})))

        merged = reconciler.merge_metadata(canonical, members)

        for field in TAG_FIELDS:
            assert getattr(merged, field) == values[field]


class TestReconcileCluster:
    def test_reconcile_cluster__canonical_gets_merged_view_and_duplicates_point_at_it(self):
        a = make_record(1, "a.mp3", metadata=TrackMetaData(title="A"), indexed_generation=1)
        b = make_record(2, "b.mp3", metadata=TrackMetaData(artist="B"), indexed_generation=2)
        records = {1: a, 2: b}

        reconciled = reconciler.reconcile_cluster(DuplicateCluster(member_ids=(1, 2)), records)

        assert reconciled[1].is_canonical
        assert reconciled[1].merged_metadata.title == "A"
        assert reconciled[1].merged_metadata.artist == "B"
        assert reconciled[1].metadata.artist is None
        assert reconciled[2].canonical_id == 1
        assert reconciled[2].merged_metadata is None

    def test_reconcile_cluster__canonical_removed__new_canonical_elected(self):
        b = make_record(2, "b.mp3", indexed_generation=2)
        c = make_record(3, "c.mp3", indexed_generation=3, canonical_id=1)

        reconciled = reconciler.reconcile_cluster(DuplicateCluster(member_ids=(1, 2, 3)), {2: b, 3: c})

        assert set(reconciled) == {2, 3}
        assert reconciled[2].is_canonical
        assert reconciled[3].canonical_id == 2

    def test_reconcile_cluster__singleton__own_canonical(self):
        a = make_record(1, "a.mp3", metadata=TrackMetaData(title="Solo"))

        reconciled = reconciler.reconcile_cluster(DuplicateCluster(member_ids=(1,)), {1: a})

        assert reconciled[1].is_canonical
        assert reconciled[1].merged_metadata == a.metadata

    def test_reconcile_cluster__all_members_removed__raises_reconciliation_conflict(self):
        with pytest.raises(ReconciliationConflict) as exc_info:
            reconciler.reconcile_cluster(DuplicateCluster(member_ids=(7, 8)), {})

        assert exc_info.value.canonical_id == 7
