from fastapi import APIRouter

from oauth_portal.api.routes import auth, session, system

api_router = APIRouter()
api_router.include_router(system.router, tags=["system"])
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(session.router, prefix="/api", tags=["session"])
