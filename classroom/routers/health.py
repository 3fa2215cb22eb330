from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(prefix="", tags=["health"])


@router.get("/health")
async def health(request: Request):
    state = request.app.state
    return {
        "status": "ok",
        "classes": len(state.registry),
        "connections": len(state.hub.connections),
    }
