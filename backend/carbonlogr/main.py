"""CarbonLogr Server - Entry point.

Serves the JSON API and the MCP server over HTTP for Cloud Run deployment.
Uses Starlette with the MCP HTTP app mounted at root.
"""

import logging

import uvicorn
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route, Mount

from .shell.clients import current_user_id, get_auth_client, get_config
from .shell.mcp_server import mcp
from .shell.routes import api_routes


config = get_config()

logging.basicConfig(
    level=config.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

AUTHENTICATED_PREFIXES = ("/api", "/mcp")


# ==================== Route Handlers ====================


async def health_check(request: Request) -> JSONResponse:
    """Health check endpoint for Cloud Run."""
    return JSONResponse({"status": "healthy", "service": "carbonlogr"})


async def register_user(request: Request) -> JSONResponse:
    """Register a new user and return their API key."""
    try:
        body = await request.json()
    except ValueError:
        return JSONResponse({"error": "Request body must be valid JSON"}, status_code=400)

    email = body.get("email") if isinstance(body, dict) else None
    if not email or "@" not in email:
        return JSONResponse({"error": "Valid email is required"}, status_code=400)

    try:
        api_key, _ = get_auth_client().register_user(email, name=body.get("name"))
    except Exception as e:
        logger.error("Registration failed: %s", str(e))
        return JSONResponse({"error": "Registration failed."}, status_code=500)

    base_url = get_config().base_url
    return JSONResponse({
        "api_key": api_key,
        "message": "Registration successful! Save your API key - it won't be shown again.",
        "mcp_command": f'claude mcp add --transport http carbonlogr {base_url}/mcp --header "Authorization: Bearer {api_key}"',
    })


async def validate_key(request: Request) -> JSONResponse:
    """Validate an API key."""
    try:
        body = await request.json()
        api_key = body.get("api_key")

        if not api_key:
            return JSONResponse({"valid": False, "error": "API key required"})

        user_id = get_auth_client().validate_api_key(api_key)
        return JSONResponse({"valid": user_id is not None})

    except Exception as e:
        logger.error("Validation failed: %s", str(e))
        return JSONResponse({"valid": False, "error": "Validation failed"})


# ==================== Auth Middleware ====================


class AuthMiddleware(BaseHTTPMiddleware):
    """Resolve the API key in the Authorization header to a user.

    Applies to /api and /mcp routes. Routes decide what to do when no
    user is set.
    """

    async def dispatch(self, request: Request, call_next):
        if not request.url.path.startswith(AUTHENTICATED_PREFIXES):
            return await call_next(request)

        user_id = get_auth_client().authenticate(request.headers.get("Authorization"))
        token = current_user_id.set(user_id)
        try:
            if user_id is not None:
                logger.debug("Authenticated user: %s", user_id[:8])
            return await call_next(request)
        finally:
            current_user_id.reset(token)


# ==================== Create ASGI App ====================


def create_app() -> Starlette:
    """Create the Starlette application.

    API routes come first; the MCP streamable_http_app() is mounted at root
    and handles /mcp/ internally. Its lifespan context ensures proper
    initialization.
    """
    mcp_app = mcp.streamable_http_app()

    routes = [
        Route("/health", health_check, methods=["GET"]),
        Route("/auth/register", register_user, methods=["POST"]),
        Route("/auth/validate", validate_key, methods=["POST"]),
        *api_routes(),
        Mount("/", app=mcp_app),
    ]

    app = Starlette(
        routes=routes,
        middleware=[
            Middleware(
                CORSMiddleware,
                allow_origins=get_config().cors_origins,
                allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
                allow_headers=["*"],
            ),
            Middleware(AuthMiddleware),
        ],
        lifespan=mcp_app.router.lifespan_context,
    )

    return app


# Create app at module level for Cloud Run
app = create_app()


def main() -> None:
    """Run the server."""
    logger.info("Starting CarbonLogr server on %s:%d", config.host, config.port)

    uvicorn.run(app, host=config.host, port=config.port)


if __name__ == "__main__":
    main()
