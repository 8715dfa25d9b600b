# studybot/handlers/user/router.py
from aiogram import Router

from studybot.handlers.user.study_session import router as study_session_router
from studybot.handlers.user.stats import router as stats_router
from studybot.handlers.user.leaderboard import router as leaderboard_router
from studybot.handlers.user.trophy import router as trophy_router
from studybot.handlers.user.zones import router as zones_router

router = Router(name="user")

router.include_router(study_session_router)
router.include_router(stats_router)
router.include_router(leaderboard_router)
router.include_router(trophy_router)
router.include_router(zones_router)
