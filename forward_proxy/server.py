import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Sequence

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SpanExporter,
    SpanExportResult,
)
from prometheus_client import Info
from prometheus_fastapi_instrumentator import Instrumentator

from forward_proxy.proxy.transport import TransportConfig, create_client
from forward_proxy.routes import router
from forward_proxy.utils import client_ip
from forward_proxy.utils.exception_logging import log_exception_with_details
from forward_proxy.utils.logging_config import (
    configure_logging,
    install_exception_hooks,
)
from forward_proxy.vars import (
    CORS_ALLOW_HEADERS,
    CORS_ALLOW_METHODS,
    CORS_EXPOSE_HEADERS,
    CORS_MAX_AGE,
    HOST,
    OTLP_ENDPOINT,
    OTLP_HEADERS,
    PORT,
    SERVICE_NAME,
)

logger = logging.getLogger("forward_proxy")


@asynccontextmanager
async def lifespan(app: FastAPI):
    install_exception_hooks(asyncio.get_running_loop())
    app.state.transport_config = TransportConfig()
    app.state.http_client = create_client(app.state.transport_config)
    logger.info("Server started", extra={"port": PORT})
    try:
        yield
    finally:
        await app.state.http_client.aclose()
        logger.info("Server stopped")


app = FastAPI(lifespan=lifespan)
instrumentator = Instrumentator()

instrumentator.instrument(app).expose(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=CORS_ALLOW_METHODS,
    allow_headers=CORS_ALLOW_HEADERS,
    expose_headers=CORS_EXPOSE_HEADERS,
    allow_credentials=True,
    max_age=CORS_MAX_AGE,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info(
        "Received request",
        extra={
            "method": request.method,
            "url": str(request.url),
            "ip": client_ip(request),
            "user_agent": request.headers.get("user-agent"),
        },
    )
    return await call_next(request)


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception):
    log_exception_with_details(
        logger,
        "[Server] Unhandled error",
        exc,
        context={"path": request.url.path, "method": request.method},
    )
    return JSONResponse(
        status_code=500,
        content={"error": "server error", "message": str(exc)},
    )


class FilteringSpanExporter(SpanExporter):
    """
    Wrapper exporter that filters out the ASGI body-send spans emitted for
    every relayed response body.
    """

    def __init__(self, exporter: SpanExporter):
        self.exporter = exporter

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        filtered_spans = [
            span
            for span in spans
            if not (
                span.attributes
                and span.attributes.get("asgi.event.type") == "http.response.body"
            )
        ]
        if filtered_spans:
            return self.exporter.export(filtered_spans)
        return SpanExportResult.SUCCESS

    def shutdown(self):
        return self.exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000):
        return self.exporter.force_flush(timeout_millis)


trace.set_tracer_provider(
    TracerProvider(resource=Resource.create({"service.name": SERVICE_NAME}))
)
tracer_provider = trace.get_tracer_provider()
if OTLP_ENDPOINT:
    otlp_exporter = OTLPSpanExporter(
        endpoint=OTLP_ENDPOINT,
        headers=OTLP_HEADERS or None,
    )
    tracer_provider.add_span_processor(
        BatchSpanProcessor(FilteringSpanExporter(otlp_exporter))
    )

FastAPIInstrumentor.instrument_app(app, excluded_urls="/health,/metrics")

# Add app_name to the metrics
app_info = Info("fastapi_app_info", "Application Info")
app_info.info({"app_name": SERVICE_NAME})

app.include_router(router)


def main():
    configure_logging()
    install_exception_hooks()
    uvicorn.run(app, host=HOST, port=PORT)
