from .api_return_models import GetTracksResponse, LibraryResponse
from .client_track import ClientTrack
from .duplicate_cluster import DuplicateCluster
from .scan_event import ScanEvent, ScanEventKind
from .scan_summary import ScanState, ScanSummary
from .track import Fingerprint, TrackRecord
from .track_meta_data import TAG_FIELDS, TrackMetaData

__all__ = [
    "ClientTrack",
    "DuplicateCluster",
    "Fingerprint",
    "GetTracksResponse",
    "LibraryResponse",
    "ScanEvent",
    "ScanEventKind",
    "ScanState",
    "ScanSummary",
    "TAG_FIELDS",
    "TrackMetaData",
    "TrackRecord",
]
