from fastapi import APIRouter

from rat_proxy.api.routes import fsa, health, search, workflow

api_router = APIRouter()
api_router.include_router(health.router)

# Paths under /api match what the RAT frontend calls
api_v1 = APIRouter(prefix="/api")
api_v1.include_router(search.router)
api_v1.include_router(fsa.router)
api_v1.include_router(workflow.router)
api_router.include_router(api_v1)
