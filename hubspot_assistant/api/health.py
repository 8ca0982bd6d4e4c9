"""Health check endpoints for Kubernetes probes."""

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Health check endpoint for Kubernetes liveness probe.
    Returns 200 OK if the service is running.
    """
    return {"status": "healthy", "service": "hubspot-assistant"}


@router.get("/ready")
async def readiness_check(request: Request):
    """
    Readiness check endpoint for Kubernetes readiness probe.

    The service answers in prose even without the MCP server, so it is
    always ready; ``mcp_connected`` reports the executor state.
    """
    executor = request.app.state.pipeline.executor
    return {
        "status": "ready",
        "service": "hubspot-assistant",
        "mcp_connected": executor.connected,
    }
