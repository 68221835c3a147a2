# backend/skill_challenges/api/routes/__init__.py
# Les routes métier (challenges, auth) appartiennent à la couche HTTP externe ;
# elles consomment `app.state.challenge_service`.

from .health import router as health_router

routers = [
    health_router,
]
