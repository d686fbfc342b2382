from fastapi import APIRouter

from predictleague.api import admin, auth, catalog, chat, matches, predictions, private_leagues, ranking

router = APIRouter()
router.include_router(auth.router)
router.include_router(catalog.router)
router.include_router(matches.router)
router.include_router(predictions.router)
router.include_router(ranking.router)
router.include_router(private_leagues.router)
router.include_router(admin.router)
router.include_router(chat.router)
