"""
Master API router: aggregates all sub-routers.
"""
from fastapi import APIRouter

from api.documents import router as documents_router
from api.folders import router as folders_router
from api.redactions import router as redactions_router
from api.productions import router as productions_router

api_router = APIRouter()

api_router.include_router(documents_router)
api_router.include_router(folders_router)
api_router.include_router(redactions_router)
api_router.include_router(productions_router)
