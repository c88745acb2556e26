from fastapi import APIRouter
from app.api.public import gems, gem_images

router = APIRouter()
router.include_router(gem_images.router, prefix="/gems", tags=["GemImages"])
router.include_router(gems.router, prefix="/gems", tags=["Gems"])
