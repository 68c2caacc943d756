"""Status surface: health, last outcome and Prometheus metrics.

The app lifespan owns the registration worker thread: it starts with the
server and is stopped (between cycles) on shutdown.
"""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse, Response

from .controller.service import RegistrationService
from .obs.prom import PrometheusStatusSink
from .utils.logging import get_logger

log = get_logger()


def create_app(sink: PrometheusStatusSink, service: Optional[RegistrationService] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if service is not None:
            service.start()
            log.info("Registration service started interval_sec=%s", service.interval_sec)
        try:
            yield
        finally:
            if service is not None:
                await asyncio.to_thread(service.stop)

    app = FastAPI(title="SGX Platform Registration Service", lifespan=lifespan)

    @app.get("/__health")
    async def health():
        return {"status": "ok"}

    @app.get("/status")
    async def status():
        return JSONResponse(sink.snapshot())

    @app.get("/metrics")
    def prometheus_metrics():
        body, content_type = sink.latest()
        return Response(body, media_type=content_type)

    return app
