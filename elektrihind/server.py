from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Response
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from . import canon, transform
from .config import read_defaults
from .exceptions import UpstreamUnavailable
from .ingest import EleringClient, PriceCache
from .types import PricesPayload

logger = logging.getLogger(__name__)


def _iso(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def create_app(
    cache: Optional[PriceCache] = None,
    defaults_path: str | Path | None = None,
    static_dir: str | Path | None = None,
) -> FastAPI:
    app = FastAPI(title="Elektrihind API")
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    price_cache = cache or PriceCache(EleringClient())
    app.state.price_cache = price_cache

    @app.get("/api/prices")
    def get_prices(response: Response):
        try:
            snapshot = price_cache.get()
        except UpstreamUnavailable as e:
            logger.error("Error fetching prices: %s", e)
            return JSONResponse(
                status_code=500,
                content={
                    "error": "Failed to fetch electricity prices",
                    "message": str(e),
                },
            )
        response.headers["Cache-Control"] = (
            f"public, max-age={canon.PRICE_CACHE_TTL_SECONDS}"
        )
        payload: PricesPayload = {
            "prices": transform.to_records(snapshot.prices),
            "updated": _iso(snapshot.updated),
        }
        return payload

    @app.get("/api/health")
    def health():
        return {"status": "ok", "timestamp": _iso(datetime.now(timezone.utc))}

    @app.get("/defaults.json")
    def defaults():
        return read_defaults(defaults_path).model_dump(by_alias=True, mode="json")

    if static_dir is not None:
        # mounted last so the API routes win
        app.mount("/", StaticFiles(directory=str(static_dir), html=True), name="static")

    return app


def main() -> None:
    import uvicorn

    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    port = int(os.getenv("PORT", "3000"))
    app = create_app(
        defaults_path=os.getenv("ELEKTRIHIND_DEFAULTS"),
        static_dir=os.getenv("ELEKTRIHIND_STATIC"),
    )
    logger.info("Electricity price calculator running on http://localhost:%d", port)
    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=port)


if __name__ == "__main__":
    main()
