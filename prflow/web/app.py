"""FastAPI application exposing the PR workflow."""

import logging
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from prflow import __version__
from prflow.config import Config, load_config
from prflow.errors import GitProviderError, ProviderErrorKind
from prflow.pr_actions import PrOrchestrator
from prflow.store import WorkspaceDirectory, YamlPrStore
from prflow.web.models import ApiResponse
from prflow.web.routes import prs

logger = logging.getLogger(__name__)

_PROVIDER_ERROR_STATUS = {
    ProviderErrorKind.INVALID_URL: status.HTTP_400_BAD_REQUEST,
    ProviderErrorKind.UNSUPPORTED_PROVIDER: status.HTTP_400_BAD_REQUEST,
    ProviderErrorKind.OPERATION_NOT_SUPPORTED: status.HTTP_400_BAD_REQUEST,
    ProviderErrorKind.AUTH_FAILED: status.HTTP_401_UNAUTHORIZED,
    ProviderErrorKind.INSUFFICIENT_PERMISSIONS: status.HTTP_403_FORBIDDEN,
    ProviderErrorKind.REPO_NOT_FOUND_OR_NO_ACCESS: status.HTTP_404_NOT_FOUND,
    ProviderErrorKind.CLI_NOT_INSTALLED: status.HTTP_503_SERVICE_UNAVAILABLE,
}


async def _provider_error_handler(request: Request, exc: GitProviderError) -> JSONResponse:
    logger.error(f"{request.method} {request.url.path} failed: {exc}")
    error_data = {"type": exc.kind.value}
    if exc.remediation:
        error_data["remediation"] = exc.remediation
    if exc.manual_url:
        error_data["manual_url"] = exc.manual_url
    body = ApiResponse.error_with_data(error_data, message=str(exc))
    return JSONResponse(
        status_code=_PROVIDER_ERROR_STATUS.get(exc.kind, status.HTTP_502_BAD_GATEWAY),
        content=jsonable_encoder(body),
    )


async def _http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
    body = ApiResponse(success=False, message=str(exc.detail))
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(body), headers=exc.headers)


def create_app(
    orchestrator: Optional[PrOrchestrator] = None,
    directory: Optional[WorkspaceDirectory] = None,
    config: Optional[Config] = None,
) -> FastAPI:
    """Build the API app.

    Without arguments, a YAML store in the configured state directory backs
    both the orchestrator and the workspace lookups.
    """
    if orchestrator is None or directory is None:
        config = config or load_config()
        store = YamlPrStore(config.get_state_dir())
        orchestrator = orchestrator or PrOrchestrator(store, config=config)
        directory = directory or store

    app = FastAPI(title="prflow", version=__version__)
    app.state.orchestrator = orchestrator
    app.state.directory = directory

    app.add_exception_handler(GitProviderError, _provider_error_handler)
    app.add_exception_handler(HTTPException, _http_error_handler)
    app.include_router(prs.router)

    @app.get("/api/health")
    async def health() -> dict:
        return {"status": "ok", "version": __version__}

    return app


def run_server(host: str = "127.0.0.1", port: int = 8080, config: Optional[Config] = None) -> None:
    """Run the API with uvicorn.

    Single worker: the YAML store is guarded by a file lock, but one process
    keeps PR creation ordering predictable.
    """
    import uvicorn

    uvicorn.run(create_app(config=config), host=host, port=port, workers=1, loop="asyncio")
