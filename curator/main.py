import logging
from functools import partial

from fastapi import FastAPI, HTTPException, Query, Request

from curator.config import settings
from curator.core.errors import (
    CuratorError,
    ReconciliationConflict,
    ScanCancelled,
    ScanFailed,
    ScanInProgress,
)
from curator.core.logging import configure_logging
from curator.database.database import Database, DatabaseContext
from curator.models import ClientTrack, GetTracksResponse, LibraryResponse, ScanSummary
from curator.services.decoder import decode_audio
from curator.services.file_watcher import FileWatcher
from curator.services.library_index import LibraryIndex
from curator.services.metadata import read_track_metadata
from curator.services.orchestrator import OrchestratorContext, ScanOrchestrator

logger = logging.getLogger(__name__)

app = FastAPI()


def build_orchestrator(database: Database | None) -> ScanOrchestrator:
    ctx = OrchestratorContext(
        read_metadata=read_track_metadata,
        decode=partial(
            decode_audio,
            sample_rate=settings.fingerprint_sample_rate,
            max_seconds=settings.max_fingerprint_seconds,
        ),
        database=database,
        similarity_threshold=settings.similarity_threshold,
        min_fingerprint_seconds=settings.min_fingerprint_seconds,
        max_workers=settings.scan_workers,
    )
    index = database.load_index() if database is not None else None
    return ScanOrchestrator(ctx, index=index or LibraryIndex())


@app.on_event("startup")
def startup_event():
    configure_logging(settings.log_level)

    database = Database(DatabaseContext(database_path=settings.database_path))
    if not database.initialize():
        raise RuntimeError(f"Unable to initialize library database at {settings.database_path}")
    app.state.database = database

    orchestrator = build_orchestrator(database)
    app.state.orchestrator = orchestrator
    logger.info(
        f"Loaded library index generation {orchestrator.index.generation} "
        f"with {len(orchestrator.index)} tracks"
    )

    if settings.enable_file_watcher:
        settings.music_library_dir.mkdir(parents=True, exist_ok=True)
        watcher = FileWatcher(
            settings.music_library_dir,
            lambda events: app.state.orchestrator.run_scan(events),
            debounce_delay=settings.watcher_debounce_seconds,
        )
        watcher.start_file_watcher()
        app.state.file_watcher = watcher


@app.on_event("shutdown")
def shutdown_event():
    watcher = getattr(app.state, "file_watcher", None)
    if watcher:
        watcher.stop_file_watcher()


@app.get("/library", response_model=LibraryResponse)
def get_library(request: Request):
    index = request.app.state.orchestrator.index
    return LibraryResponse(
        generation=index.generation,
        track_count=len(index),
        canonical_count=len(index.canonical_records()),
    )


@app.get("/tracks", response_model=GetTracksResponse)
def get_tracks(
    request: Request,
    limit: int = Query(100, gt=0, le=1000),
    offset: int = Query(0, ge=0),
):
    index = request.app.state.orchestrator.index
    canonical = index.canonical_records()
    page = canonical[offset:offset + limit]
    data = [
        ClientTrack.from_record(record, [duplicate.id for duplicate in index.duplicates_of(record.id)])
        for record in page
    ]
    next_offset = offset + limit if offset + limit < len(canonical) else None
    return GetTracksResponse(data=data, nextOffset=next_offset)


@app.get("/tracks/{track_id}", response_model=ClientTrack)
def get_track(request: Request, track_id: int):
    index = request.app.state.orchestrator.index
    record = index.get(track_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Track {track_id} not found")
    duplicate_ids = [duplicate.id for duplicate in index.duplicates_of(track_id)]
    return ClientTrack.from_record(record, duplicate_ids)


@app.post("/scan", response_model=ScanSummary)
def post_scan(request: Request):
    orchestrator = request.app.state.orchestrator
    try:
        return orchestrator.scan_directory(settings.music_library_dir)
    except ScanInProgress as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ScanFailed as e:
        raise HTTPException(
            status_code=422,
            detail={"reason": e.reason, "summary": e.summary.model_dump(mode="json")},
        )
    except ScanCancelled as e:
        raise HTTPException(
            status_code=409,
            detail={"reason": str(e), "summary": e.summary.model_dump(mode="json")},
        )
    except ReconciliationConflict as e:
        raise HTTPException(
            status_code=422,
            detail={"reason": str(e), "canonical_id": e.canonical_id},
        )


@app.delete("/library", response_model=LibraryResponse)
def delete_library(request: Request):
    orchestrator = request.app.state.orchestrator
    try:
        orchestrator.reset()
    except ScanInProgress as e:
        raise HTTPException(status_code=409, detail=str(e))
    except CuratorError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return LibraryResponse(generation=0, track_count=0, canonical_count=0)
