from fastapi import APIRouter

from app.api.v1.routes import auth, playlists, tracks

router = APIRouter()
router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(playlists.router, prefix="/playlists", tags=["playlists"])
router.include_router(tracks.router, prefix="/tracks", tags=["tracks"])
