"""FastAPI application factory."""

import html
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, HTTPException, Request, WebSocket
from fastapi.responses import HTMLResponse, Response

from stylewatch.config.models import BuildState, CompileResult, ServerConfig
from stylewatch.server.websocket import ConnectionManager, websocket_endpoint
from stylewatch.session import Session, start_session

logger = logging.getLogger(__name__)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}

# Reconnecting client; swaps stylesheet links in place after each compile
LIVERELOAD_JS = """\
(function () {
  function refresh() {
    document.querySelectorAll('link[rel="stylesheet"]').forEach(function (link) {
      var url = new URL(link.href);
      url.searchParams.set("v", Date.now());
      link.href = url.toString();
    });
  }
  function connect() {
    var scheme = location.protocol === "https:" ? "wss://" : "ws://";
    var ws = new WebSocket(scheme + location.host + "/ws");
    ws.onmessage = function (msg) {
      var data = JSON.parse(msg.data);
      if (data.type === "compile") { refresh(); }
      if (data.type === "error") { console.error("[stylewatch] " + data.message); }
    };
    ws.onclose = function () { setTimeout(connect, 1000); };
  }
  connect();
})();
"""


def _attach_session(app: FastAPI, session: Session) -> None:
    """Record session outcomes on app state and push them to clients.

    Args:
        app: FastAPI application instance
        session: Running watch session
    """
    build: BuildState = app.state.build
    manager: ConnectionManager = app.state.ws_manager

    async def on_compile(result: CompileResult) -> None:
        build.record_compile(result)
        logger.info(f"Compiled {session.entry_path.name} ({len(result.css)} bytes)")
        await manager.send_compile([str(path) for path in result.imports])

    async def on_error(error: Exception) -> None:
        build.record_error(error)
        logger.error(f"Build failed: {error}")
        await manager.send_error(str(error))

    session.on("compile", on_compile)
    session.on("error", on_error)


def create_app(config: ServerConfig) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        config: Server configuration

    Returns:
        Configured FastAPI app
    """
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Handle application lifespan events."""
        # Startup: the session needs the server's running loop
        session = start_session(config.entry_path, {"output_style": config.output_style})
        app.state.session = session
        _attach_session(app, session)

        yield

        # Shutdown: stop watching and let any in-flight compile finish
        session.close()
        await session.wait_idle()
        app.state.session = None

    app = FastAPI(
        title="stylewatch",
        description="Sass compilation server with live reload",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Store config on app state
    app.state.config = config
    app.state.build = BuildState()
    app.state.ws_manager = ConnectionManager()
    app.state.session = None

    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):  # type: ignore
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; connect-src 'self' ws: wss:; style-src 'self' 'unsafe-inline'"
        )
        return response

    # WebSocket endpoint for live reload
    @app.websocket("/ws")
    async def websocket_route(websocket: WebSocket) -> None:
        """WebSocket endpoint for live reload notifications."""
        await websocket_endpoint(websocket, app.state.ws_manager)

    @app.get("/", response_class=HTMLResponse)
    async def root() -> HTMLResponse:
        """Serve a preview page that links the compiled stylesheet."""
        build: BuildState = app.state.build
        name = html.escape(config.entry_path.name)
        if build.error:
            status = f'<pre class="stylewatch-error">{html.escape(build.error)}</pre>'
        elif build.css is None:
            status = "<p>Compiling&hellip;</p>"
        else:
            status = f"<p>Compiled {build.compile_count} time(s).</p>"
        page = (
            "<!doctype html><html><head>"
            f"<title>{name} - stylewatch</title>"
            '<link rel="stylesheet" href="/style.css">'
            '<script src="/livereload.js"></script>'
            f"</head><body><h1>{name}</h1>{status}</body></html>"
        )
        return HTMLResponse(page, headers=NO_CACHE_HEADERS)

    @app.get("/style.css")
    async def stylesheet() -> Response:
        """Serve the most recent successful compile."""
        build: BuildState = app.state.build
        if build.css is None:
            detail = build.error or "Stylesheet has not been compiled yet"
            raise HTTPException(status_code=503, detail=detail)
        return Response(
            content=build.css,
            media_type="text/css; charset=utf-8",
            headers=NO_CACHE_HEADERS,
        )

    @app.get("/livereload.js")
    async def livereload_script() -> Response:
        return Response(content=LIVERELOAD_JS, media_type="application/javascript")

    @app.get("/api/status")
    async def api_status() -> dict:
        """Get the build state and the files being watched."""
        session: Session | None = app.state.session
        status = app.state.build.to_dict()
        status["entry"] = str(config.entry_path.resolve())
        status["watched"] = sorted(str(p) for p in session.watched) if session else []
        status["stage"] = session.stage.value if session else None
        status["clients"] = app.state.ws_manager.get_connection_count()
        return status

    return app
