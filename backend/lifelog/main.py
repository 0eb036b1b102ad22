"""LifeLog Server - Entry point.

Runs the JSON API and the MCP server with HTTP transport for Cloud Run.
Uses Starlette with the MCP HTTP app mounted at root.
"""

import logging
import os

import uvicorn
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Mount

from .shell.auth import AuthClient, current_user_id
from .shell.config import AppConfig
from .shell.mcp_server import mcp
from .shell.routes import PUBLIC_PATHS, routes
from .shell.tracker import Tracker, configure, get_auth_client


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ==================== Auth Middleware ====================


class AuthMiddleware(BaseHTTPMiddleware):
    """Authenticate requests using the API key in the Authorization header.

    API routes without a valid key get 401. MCP requests pass through and the
    tools themselves refuse to run without an authenticated user.
    """

    async def dispatch(self, request: Request, call_next):
        if request.url.path in PUBLIC_PATHS or request.method == "OPTIONS":
            return await call_next(request)

        user_id = None
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            user_id = await get_auth_client().validate_api_key(auth_header.removeprefix("Bearer ").strip())

        if user_id is not None:
            # Set user context for this request
            request.state.user_id = user_id
            current_user_id.set(user_id)
            logger.debug("Authenticated user: %s", user_id[:8])
        elif not request.url.path.startswith("/mcp"):
            return JSONResponse({"error": "Invalid or missing API key"}, status_code=401)

        return await call_next(request)


# ==================== Create ASGI App ====================


def create_app(
    tracker: Tracker | None = None,
    auth_client: AuthClient | None = None,
    config: AppConfig | None = None,
) -> Starlette:
    """Create the Starlette application with the MCP app at root.

    Args:
        tracker: Tracker to serve (built from the environment when omitted)
        auth_client: Auth client to validate keys with
        config: Settings for CORS (read from the environment when omitted)
    """
    config = config or AppConfig.from_env()
    if tracker is not None or auth_client is not None:
        configure(tracker, auth_client)

    # Get the MCP ASGI app; it handles /mcp/ internally when mounted at root
    mcp_app = mcp.streamable_http_app()

    app = Starlette(
        routes=[*routes, Mount("/", app=mcp_app)],
        middleware=[
            Middleware(
                CORSMiddleware,
                allow_origins=config.allowed_origins,
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
    port = int(os.environ.get("PORT", 8080))
    host = os.environ.get("HOST", "0.0.0.0")

    logger.info("Starting LifeLog server on %s:%d", host, port)

    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
