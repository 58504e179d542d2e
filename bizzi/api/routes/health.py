"""Liveness probe."""

from __future__ import annotations

from fastapi import APIRouter, Request

from bizzi import __version__

router = APIRouter()


@router.get("/health")
async def health(request: Request) -> dict:
    pipeline = getattr(request.app.state, "pipeline", None)
    return {
        "status": "ok",
        "version": __version__,
        "pipeline": pipeline is not None,
    }
