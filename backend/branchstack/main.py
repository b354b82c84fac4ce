from contextlib import asynccontextmanager
import logging
import os
import time

from fastapi import FastAPI, Request, Response
from fastapi.concurrency import run_in_threadpool
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration

from .database import SessionLocal
from .errors import install_exception_handlers
from .routes import branches, resources
from .services.lifecycle import LifecycleController
from .strategies import StrategyRegistry
from .tasks import TaskOrchestrator

logger = logging.getLogger(__name__)

dsn = os.getenv("SENTRY_DSN")
if dsn:
    sentry_sdk.init(dsn=dsn, integrations=[FastApiIntegration()])

REQUEST_COUNT = Counter("request_count", "Total requests", ["method", "endpoint"])
REQUEST_LATENCY = Histogram(
    "request_latency_seconds", "Request latency", ["endpoint"]
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    orchestrator = TaskOrchestrator()
    app.state.controller = LifecycleController(
        registry=StrategyRegistry.from_env(),
        orchestrator=orchestrator,
        session_factory=SessionLocal,
    )
    logger.info("Accepting lifecycle requests with %d task workers", orchestrator.max_workers)
    try:
        yield
    finally:
        # the server has stopped taking requests; let provisioning finish
        await run_in_threadpool(orchestrator.shutdown)


app = FastAPI(title="BranchStack API", lifespan=lifespan)
install_exception_handlers(app)


@app.middleware("http")
async def record_metrics(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    route = request.scope.get("route")
    endpoint = getattr(route, "path", request.url.path)
    REQUEST_COUNT.labels(request.method, endpoint).inc()
    REQUEST_LATENCY.labels(endpoint).observe(time.time() - start)
    return response

@app.get("/metrics")
def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

app.include_router(resources.router)
app.include_router(branches.router)
