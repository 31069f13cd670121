from __future__ import annotations

from fastapi import APIRouter

from api.routes import solver


api_router = APIRouter()
api_router.include_router(solver.router, prefix="/solver", tags=["solver"])
