"""Health check endpoint."""

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request):
    """Liveness probe; reports which integrations are configured."""
    return {
        "status": "ok",
        "service": "activation-mailer",
        "integrations": getattr(request.app.state, "integration_status", {}),
    }
