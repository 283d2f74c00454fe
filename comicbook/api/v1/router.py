from fastapi import APIRouter

from comicbook.api.v1 import exports, panels, stories


api_router = APIRouter(prefix="/v1")

api_router.include_router(stories.router)
api_router.include_router(panels.router)
api_router.include_router(exports.router)
