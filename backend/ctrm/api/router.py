from fastapi import APIRouter

from ctrm.api.routes import demurrage, exposure, health

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(exposure.router)
api_router.include_router(demurrage.router)
