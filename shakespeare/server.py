"""
Shakespeare Server: HTTP Interface for the Toolchain
====================================================
FastAPI application exposing the lexer, parser, verifier and simulator.

Launch:
    python -m shakespeare.server           # Direct
    shakespeare serve --port 8000          # Via CLI

Endpoints:
    GET  /api/health                → Service status and lexicon size
    POST /api/tokenize              → Token transcript
    POST /api/parse                 → Node transcript
    POST /api/verify                → Static-analysis violations
    POST /api/run                   → Program output and final store
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from . import __version__
from .config import Settings
from .errors import ShakespeareError
from .lexer import Lexer
from .lexicon import WordCategory
from .parser import Parser
from .simulator import ScriptedIO, Simulator
from .verifier import ProgramVerifier, ViolationLevel

logger = logging.getLogger(__name__)

DEFAULT_MAX_STEPS = 1_000_000


# ─────────────────────────────────────────────────────────────
#  App Setup
# ─────────────────────────────────────────────────────────────

app = FastAPI(title="Shakespeare", version=__version__)

_state = {
    "settings": None,
}


def get_settings() -> Settings:
    if _state["settings"] is None:
        configure(Settings.from_env())
    return _state["settings"]


def configure(settings: Settings):
    """Install ``settings`` for subsequent requests."""
    if settings.max_steps is None:
        settings.max_steps = DEFAULT_MAX_STEPS
    _state["settings"] = settings


# ─────────────────────────────────────────────────────────────
#  Request / Response Models
# ─────────────────────────────────────────────────────────────

class SourceRequest(BaseModel):
    source: str


class RunRequest(BaseModel):
    source: str
    numbers: list[int] = []
    characters: str = ""
    max_steps: Optional[int] = None


def _unprocessable(error: ShakespeareError) -> HTTPException:
    logger.info("Rejected request: %s", error)
    return HTTPException(status_code=422, detail=error.to_dict())


# ─────────────────────────────────────────────────────────────
#  API Routes
# ─────────────────────────────────────────────────────────────

@app.get("/api/health")
def health():
    lexicon = get_settings().lexicon()
    words = sum(len(lexicon.words_for(c)) for c in WordCategory)
    return {"status": "ok", "version": __version__, "words": words}


@app.post("/api/tokenize")
def tokenize(req: SourceRequest):
    try:
        tokens = Lexer(req.source, get_settings().lexicon()).tokenize()
    except ShakespeareError as e:
        raise _unprocessable(e)
    return {
        "count": len(tokens),
        "tokens": [{"text": str(t), "line": t.line} for t in tokens],
    }


@app.post("/api/parse")
def parse(req: SourceRequest):
    try:
        nodes = Parser.from_source(req.source, get_settings().lexicon()).parse()
    except ShakespeareError as e:
        raise _unprocessable(e)
    return {
        "count": len(nodes),
        "nodes": [{"text": str(n), "type": n.node_type, "line": n.line} for n in nodes],
    }


@app.post("/api/verify")
def verify(req: SourceRequest):
    try:
        nodes = Parser.from_source(req.source, get_settings().lexicon()).parse()
    except ShakespeareError as e:
        raise _unprocessable(e)
    violations = ProgramVerifier().verify(nodes)
    return {
        "passed": not any(v.level == ViolationLevel.ERROR for v in violations),
        "violations": [v.to_dict() for v in violations],
    }


@app.post("/api/run")
def run(req: RunRequest):
    settings = get_settings()
    max_steps = req.max_steps if req.max_steps is not None else settings.max_steps
    if settings.max_steps is not None:
        max_steps = min(max_steps, settings.max_steps)
    io = ScriptedIO(req.numbers, req.characters)
    sim = Simulator(io.next_number, io.next_character, io.write, max_steps=max_steps)
    try:
        nodes = Parser.from_source(req.source, settings.lexicon()).parse()
        store = sim.run(nodes)
    except ShakespeareError as e:
        raise _unprocessable(e)
    return {"output": io.output, "store": store, "steps": sim.steps}


def run_server(settings: Optional[Settings] = None):
    """Launch the Shakespeare HTTP service."""
    import uvicorn

    settings = settings or Settings.from_env()
    configure(settings)

    print(f"\n◬ ─── Shakespeare ───")
    print(f"  http://{settings.host}:{settings.port}")
    print(f"  Press Ctrl+C to stop\n")

    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run_server()
