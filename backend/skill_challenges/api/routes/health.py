from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from skill_challenges.core.health_checks import check_mongodb, check_redis
from skill_challenges.core.utils import utcnow
from skill_challenges.models.base.health import HealthCheck

router = APIRouter(tags=["Health"])


@router.get(
    "/health",
    response_model=HealthCheck,
    summary="Health check de l'API",
    description="Retourne le statut de l'API et de ses dépendances (MongoDB, Redis)",
)
async def health(request: Request) -> JSONResponse:
    """
    Health check endpoint standard

    Vérifie :
    - MongoDB
    - Redis (cache des listings ; "disabled" n'est pas une erreur)

    Returns:
        200 si tout OK, 503 si un service est down
    """
    state = request.app.state
    checks = {
        "database": await check_mongodb(state.db),
        "redis": await check_redis(state.redis),
    }

    has_errors = any(check.startswith("error") for check in checks.values())
    overall_status = "degraded" if has_errors else "ok"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE if has_errors else status.HTTP_200_OK

    response = HealthCheck(
        status=overall_status,
        timestamp=utcnow(),
        version=state.settings.api_version,
        checks=checks,
    )

    return JSONResponse(status_code=status_code, content=response.model_dump(mode="json"))
