from pydantic import BaseModel
from typing import List, Optional
from .client_track import ClientTrack


class GetTracksResponse(BaseModel):
    data: List[ClientTrack]
    nextOffset: Optional[int] = None


class LibraryResponse(BaseModel):
    generation: int
    track_count: int
    canonical_count: int
