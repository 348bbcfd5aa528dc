from __future__ import annotations

import asyncio
from functools import lru_cache
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Query
from pydantic import BaseModel, Field

from axis_kernel.actions.capabilities import vital_stats
from axis_kernel.errors import AxisError

from .orchestrator import Orchestrator

app = FastAPI(title="Axis Kernel API")


class AskIn(BaseModel):
    text: str = Field(..., min_length=1)
    session_id: str = "default"


@lru_cache(maxsize=1)
def get_orchestrator() -> Orchestrator:
    return Orchestrator.from_settings()


@app.post("/ask")
async def ask(body: AskIn, orchestrator: Orchestrator = Depends(get_orchestrator)) -> dict[str, Any]:
    try:
        result = await orchestrator.ask(body.text, body.session_id)
    except AxisError as exc:  # pragma: no cover - pass through
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return result.to_dict()


@app.get("/history")
async def history(
    session_id: str | None = None, orchestrator: Orchestrator = Depends(get_orchestrator)
) -> list[dict[str, Any]]:
    log = orchestrator.assembler.history
    turns = await asyncio.to_thread(log.for_session, session_id) if session_id else await asyncio.to_thread(log.all)
    return [t.model_dump() for t in turns]


@app.delete("/history/{session_id}")
async def delete_history(session_id: str, orchestrator: Orchestrator = Depends(get_orchestrator)) -> dict[str, Any]:
    removed = await orchestrator.forget(session_id)
    return {"session_id": session_id, "deleted": removed}


@app.get("/memory/search")
async def memory_search(
    q: str,
    k: int = Query(5, ge=1, le=50),
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> list[dict[str, Any]]:
    hits = await asyncio.to_thread(orchestrator.assembler.index.retrieve_top_k, q, k)
    return [
        {
            "id": h.id,
            "score": round(h.score, 4),
            "kind": h.meta.kind.value,
            "input": h.entry.input.text,
            "output": h.entry.output.text,
        }
        for h in hits
    ]


@app.get("/vitals")
async def vitals() -> dict[str, Any]:
    stats = await asyncio.to_thread(vital_stats)
    return stats.to_dict()


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
