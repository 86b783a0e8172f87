from fastapi import APIRouter
from .routes_auth import router as auth_router
from .routes_moodle import router as moodle_router
from .routes_system import router as system_router

api_router = APIRouter()
api_router.include_router(auth_router, tags=["auth"])
api_router.include_router(moodle_router, prefix="/moodle", tags=["moodle"])
api_router.include_router(system_router, prefix="/system", tags=["system"])
