import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .db import init_db
from .errors import AdapterTransportError, ConfigurationError, PerceptionEmpty, PerceptionFailure, PerceptionInputError
from .orchestrator import AIOrchestrator
from .settings import settings
from .routers import auth, evaluate, practice

logging.basicConfig(
	level=getattr(logging, settings.log_level.upper(), logging.INFO),
	format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
# httpx logs full request URLs at INFO, and AI Studio keys travel in the query string
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)

app = FastAPI(title="Eduvane Learning Intelligence API")
app.include_router(auth.router)
app.include_router(evaluate.router)
app.include_router(practice.router)
app.state.orchestrator = None


@app.exception_handler(ConfigurationError)
async def _configuration_error(request: Request, exc: ConfigurationError):
	return JSONResponse(status_code=503, content={"detail": {"state": "configuration_error", "message": str(exc)}})


@app.exception_handler(PerceptionInputError)
async def _perception_input_error(request: Request, exc: PerceptionInputError):
	return JSONResponse(status_code=415, content={"detail": {"error": "UNSUPPORTED_MEDIA", "message": str(exc)}})


@app.exception_handler(PerceptionEmpty)
async def _perception_empty(request: Request, exc: PerceptionEmpty):
	return JSONResponse(status_code=422, content={"detail": {"error": exc.code, "message": str(exc)}})


@app.exception_handler(AdapterTransportError)
async def _adapter_transport_error(request: Request, exc: AdapterTransportError):
	# Transient from the user's point of view: offer a retry of the whole action
	code = "PERCEPTION_FAILED" if isinstance(exc, PerceptionFailure) else "AI_UNAVAILABLE"
	logger.warning("adapter failure on %s: %s", request.url.path, exc)
	return JSONResponse(
		status_code=502,
		content={"detail": {"error": code, "message": "The AI service could not complete the request.", "retryable": True}},
	)


@app.get("/info")
def info(request: Request):
	orchestrator = request.app.state.orchestrator
	detail = None
	configured = False
	if orchestrator is None:
		detail = "AI orchestrator unavailable"
	else:
		try:
			orchestrator.check_configuration()
			configured = True
		except ConfigurationError as exc:
			detail = str(exc)
	return {
		"status": "ok" if configured else "configuration_error",
		"ai_configured": configured,
		"provider": settings.llm_provider,
		"detail": detail,
	}


@app.on_event("startup")
async def startup_event():
	init_db()
	app.state.orchestrator = AIOrchestrator.from_settings(settings)
	# Interactive routes stay gated until the pre-flight check passes
	if not app.state.orchestrator.validate_configuration():
		logger.error("AI configuration invalid; pipeline routes will answer 503 until it is fixed")


@app.on_event("shutdown")
async def shutdown_event():
	if app.state.orchestrator is not None:
		await app.state.orchestrator.aclose()
