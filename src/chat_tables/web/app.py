"""FastAPI debug server for the table detection engine.

Holds page sessions in memory: each session is a parsed document with its own
registry, detector and rescan scheduler.  Hosts (or tests) push mutations to a
session and read back the registry, exactly as a live page would.  Stateless
routes run one-off passes, mode comparisons and highlighting.

Usage:
    python -m chat_tables.web.app
    # => Uvicorn running on http://localhost:8000
"""

import logging
import os
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import NamedTuple

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse

from chat_tables.config import DetectionConfig, RepairOptions
from chat_tables.detection import DetectionMode, TableDetector
from chat_tables.diagnostics import compare_modes, explain, highlight
from chat_tables.dom import Document, MutationRecord
from chat_tables.platforms import observation_roots, resolve_platform
from chat_tables.registry import BatchRegistry
from chat_tables.scheduler import RescanScheduler
from chat_tables.schema import ScanOutcome, TableDetectionResult

ROOT = Path(__file__).parent.parent.parent.parent.resolve()
load_dotenv(ROOT / ".env")

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

HOST = os.getenv("CHAT_TABLES_HOST", "127.0.0.1")
PORT = int(os.getenv("CHAT_TABLES_PORT", "8000"))

# ---------------------------------------------------------------------------
# In-memory state (ephemeral, lost on server restart)
# ---------------------------------------------------------------------------


class PageSession(NamedTuple):
    document: Document
    registry: BatchRegistry
    detector: TableDetector
    scheduler: RescanScheduler


_sessions: dict[str, PageSession] = {}


def _new_detector() -> TableDetector:
    config = DetectionConfig.from_env()
    return TableDetector(registry=BatchRegistry(config), config=config, repair_options=RepairOptions.from_env())


def _get_session(session_id: str) -> PageSession:
    session = _sessions.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Unknown session {session_id}")
    return session


def _parse_mode(value: str | None) -> DetectionMode:
    try:
        return DetectionMode(value or DetectionMode.AUTO.value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Unknown mode {value!r}") from e


async def _page_from_body(request: Request) -> tuple[Document, dict]:
    body = await request.json()
    html = body.get("html")
    if not html:
        raise HTTPException(status_code=400, detail="html is required")
    return Document(html, url=body.get("url", "")), body


def _serialize_table(table: TableDetectionResult) -> dict:
    return {
        **table.data.model_dump(mode="json"),
        "path": table.element.path(),
        "position": table.position.model_dump(),
    }


def _serialize_outcome(outcome: ScanOutcome | None) -> dict | None:
    return outcome.model_dump(mode="json") if outcome is not None else None


# ---------------------------------------------------------------------------
# FastAPI application
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Drop all page sessions on shutdown."""
    logger.info("Table detection server ready")
    yield
    logger.info("Shutting down, discarding %d session(s)", len(_sessions))
    _sessions.clear()


app = FastAPI(title="Chat Table Extractor", lifespan=lifespan)


# ---------------------------------------------------------------------------
# Page sessions
# ---------------------------------------------------------------------------


@app.post("/api/sessions")
async def create_session(request: Request):
    """Load a page, run the boot scan, and return the session id with its tables."""
    document, _ = await _page_from_body(request)
    detector = _new_detector()
    scheduler = RescanScheduler(detector, document)
    outcome = await scheduler.boot()

    session_id = str(uuid.uuid4())
    _sessions[session_id] = PageSession(document, detector.registry, detector, scheduler)
    profile = resolve_platform(document.url)
    logger.info("New session %s (%s): %d table(s)", session_id, profile.source.value, outcome.found)
    return JSONResponse(
        {
            "session_id": session_id,
            "source": profile.source.value,
            "observe": [node.path() for node in observation_roots(document, profile)],
            "scan": _serialize_outcome(outcome),
            "tables": [_serialize_table(table) for table in detector.registry.get_all()],
        }
    )


@app.post("/api/sessions/{session_id}/mutations")
async def apply_mutation(session_id: str, request: Request):
    """Apply an insert or remove to the session's page and feed it to the scheduler.

    Body: ``{"action": "insert", "parent": <path>, "html": ...}`` or
    ``{"action": "remove", "path": <path>}``; an optional ``now`` drives the
    scheduler clock so a due scan can run within the same request.
    """
    session = _get_session(session_id)
    body = await request.json()
    action = body.get("action")

    record: MutationRecord
    if action == "insert":
        parent = session.document.find_by_path(body.get("parent", "")) if body.get("parent") else session.document.root
        if parent is None:
            raise HTTPException(status_code=404, detail="Parent node not found")
        record = session.document.insert_html(parent, body.get("html", ""))
    elif action == "remove":
        node = session.document.find_by_path(body.get("path", ""))
        if node is None:
            raise HTTPException(status_code=404, detail="Node not found")
        record = session.document.remove(node)
    else:
        raise HTTPException(status_code=400, detail="action must be 'insert' or 'remove'")

    relevant = session.scheduler.notify([record], now=body.get("now"))
    outcome = await session.scheduler.run_due(now=body.get("now"))
    return JSONResponse(
        {
            "relevant": relevant,
            "state": session.scheduler.state.value,
            "scan": _serialize_outcome(outcome),
            "added": [node.path() for node in record.added],
        }
    )


@app.post("/api/sessions/{session_id}/tick")
async def tick(session_id: str, request: Request):
    """Run the session's pending scan if it is due at ``now`` (defaults to the server clock)."""
    session = _get_session(session_id)
    body = await request.json()
    outcome = await session.scheduler.run_due(now=body.get("now"))
    return JSONResponse({"state": session.scheduler.state.value, "scan": _serialize_outcome(outcome)})


@app.get("/api/sessions/{session_id}/tables")
async def session_tables(session_id: str):
    """Registry snapshot for the session."""
    session = _get_session(session_id)
    tables = session.registry.get_all()
    return JSONResponse({"count": len(tables), "tables": [_serialize_table(table) for table in tables]})


@app.get("/api/sessions/{session_id}/debug")
async def session_debug(session_id: str):
    session = _get_session(session_id)
    return JSONResponse({"scheduler": repr(session.scheduler), "registry": session.registry.debug_info()})


@app.delete("/api/sessions/{session_id}")
async def reset_session(session_id: str):
    """Navigation reset: clear the registry and drop any pending rescan."""
    session = _get_session(session_id)
    session.scheduler.cancel()
    session.registry.clear()
    logger.info("Session %s reset", session_id)
    return JSONResponse({"ok": True})


# ---------------------------------------------------------------------------
# Stateless diagnostics
# ---------------------------------------------------------------------------


@app.post("/api/detect")
async def detect(request: Request):
    """Run one detection pass (optionally with a per-candidate report)."""
    document, body = await _page_from_body(request)
    mode = _parse_mode(body.get("mode"))
    detector = _new_detector()
    result = await detector.detect_all(document, mode)
    payload = {
        "source": result.source.value,
        "chat_title": result.chat_title,
        "count": result.count,
        "tables": [_serialize_table(table) for table in result.tables],
    }
    if body.get("explain"):
        payload["candidates"] = await explain(document, detector, mode)
    return JSONResponse(payload)


@app.post("/api/compare")
async def compare(request: Request):
    """Compare the batch and wrapper-aware searches on a page."""
    document, _ = await _page_from_body(request)
    return JSONResponse(await compare_modes(document, DetectionConfig.from_env()))


@app.post("/api/highlight", response_class=HTMLResponse)
async def highlight_page(request: Request):
    """Return the page with every candidate outlined by status."""
    document, body = await _page_from_body(request)
    report = await explain(document, _new_detector(), _parse_mode(body.get("mode")))
    return HTMLResponse(highlight(document, report))


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def main():
    """Start the web server via uvicorn."""
    import uvicorn  # pylint: disable=import-outside-toplevel

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(app, host=HOST, port=PORT)


if __name__ == "__main__":
    main()
