"""HTTP front for the scanner: scan a URL, expose the LLM credential, fetch remediations."""
import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from core.audience import get_classifier
from core.browser import get_browser_pool
from core.config import Settings, load_settings
from core.engine import Aggregator
from core.errors import InvalidInput, ScanTotalFailure
from models.report import report_to_dict
from remediation.cache import ERROR, ReportRemediations
from remediation.client import RemediationClient

logger = logging.getLogger(__name__)


class ScanRequest(BaseModel):
    url: Any = None


class RemediationRequest(BaseModel):
    scanId: Optional[str] = None
    ruleId: str
    description: str = ""
    html: str = ""
    nodeIndex: int = 0


def create_app(
    settings: Optional[Settings] = None,
    aggregator: Optional[Aggregator] = None,
    remediation_client: Optional[RemediationClient] = None,
) -> FastAPI:
    settings = settings or load_settings()
    aggregator = aggregator or Aggregator(settings=settings)
    remediation_client = remediation_client or RemediationClient.from_settings(settings)
    remediations = ReportRemediations()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await get_browser_pool().close()

    app = FastAPI(title="Accessibility Scanner", version="1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.settings = settings
    app.state.remediations = remediations

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        if request.url.path == "/test":
            return JSONResponse(status_code=400, content={"error": "Request body must be JSON with a url field"})
        return await request_validation_exception_handler(request, exc)

    @app.post("/test")
    async def run_test(request: ScanRequest):
        if not request.url:
            return JSONResponse(status_code=400, content={"error": "URL is required"})
        try:
            report = await aggregator.aggregate(request.url)
        except InvalidInput as e:
            return JSONResponse(status_code=400, content={"error": str(e)})
        except ScanTotalFailure as e:
            logger.error(f"Error running accessibility test: {e}")
            return JSONResponse(
                status_code=500,
                content={"error": "Failed to run accessibility test", "details": str(e), "reasons": e.reasons},
            )
        except Exception as e:
            logger.error(f"Error running accessibility test: {e}", exc_info=True)
            return JSONResponse(
                status_code=500,
                content={"error": "Failed to run accessibility test", "details": str(e)},
            )
        data = report_to_dict(report, classifier=get_classifier())
        data["scanId"] = remediations.open()
        return data

    @app.get("/credential")
    async def get_credential():
        if not settings.groq_api_key:
            return JSONResponse(status_code=500, content={"error": "Groq API key not configured on server"})
        return {"apiKey": settings.groq_api_key}

    @app.post("/remediation")
    async def remediate(request: RemediationRequest):
        cache = remediations.get(request.scanId)
        if cache is None:
            return JSONResponse(status_code=404, content={"error": "Unknown or expired scanId, run the scan again"})
        entry = await cache.get_or_request(
            request.ruleId, request.description, request.nodeIndex, request.html, remediation_client
        )
        return {"solution": entry.text, "error": entry.status == ERROR}

    return app

