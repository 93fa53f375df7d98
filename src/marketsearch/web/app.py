"""FastAPI application exposing dataset search and writes."""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List

from elasticsearch import ApiError, NotFoundError, TransportError
from fastapi import Body, Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from marketsearch import __version__
from marketsearch.config import AppConfig
from marketsearch.models import SearchRequest
from marketsearch.service import DatasetService

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="Marketsearch", version=__version__)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


class BulkPayload(BaseModel):
    datasets: List[Dict[str, Any]]


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    return AppConfig.from_env()


@lru_cache(maxsize=1)
def get_service() -> DatasetService:
    return DatasetService.from_config(get_config(), base_dir=Path.cwd())


def _query_params(request: Request) -> Dict[str, Any]:
    """Flatten query parameters; repeated keys become lists."""
    params: Dict[str, Any] = {}
    for key, value in request.query_params.multi_items():
        if key in params:
            existing = params[key]
            params[key] = (existing if isinstance(existing, list) else [existing]) + [value]
        else:
            params[key] = value
    return params


@app.on_event("startup")
async def startup_event() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": f"Not found: {request.url.path}"})


@app.exception_handler(ApiError)
@app.exception_handler(TransportError)
async def store_error_handler(request: Request, exc: Exception) -> JSONResponse:
    LOGGER.error("Search backend error on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": str(exc)})


@app.get("/health", tags=["ops"])
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/users/{user_id}/datasets")
def user_datasets(user_id: str, service: DatasetService = Depends(get_service)) -> dict[str, Any]:
    return service.subscribed_datasets(user_id).to_dict()


@app.get("/{index}/datasets")
def search_datasets(
    index: str,
    request: Request,
    service: DatasetService = Depends(get_service),
) -> dict[str, Any]:
    try:
        search_request = SearchRequest.from_params(_query_params(request), page_size=get_config().page_size)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid pagination: {exc}") from exc
    return service.search_datasets(index, search_request).to_dict()


@app.get("/{index}/datasets/{dataset_id}")
def get_dataset(
    index: str,
    dataset_id: str,
    user_id: str | None = None,
    service: DatasetService = Depends(get_service),
) -> dict[str, Any]:
    return service.get_dataset(index, dataset_id, user_id=user_id)


@app.post("/{index}/datasets/bulk")
def create_datasets_bulk(
    index: str,
    payload: BulkPayload,
    service: DatasetService = Depends(get_service),
) -> dict[str, Any]:
    if not payload.datasets:
        raise HTTPException(status_code=400, detail="No datasets provided")
    indexed = service.create_datasets_bulk(index, {"datasets": payload.datasets})
    return {"status": "ok" if indexed else "pending", "indexed": indexed}


@app.post("/{index}/datasets", status_code=201)
def create_dataset(
    index: str,
    document: Dict[str, Any] = Body(...),
    service: DatasetService = Depends(get_service),
) -> dict[str, Any]:
    return {"id": service.create_dataset(index, document)}


@app.put("/{index}/datasets/{dataset_id}")
def update_dataset(
    index: str,
    dataset_id: str,
    document: Dict[str, Any] = Body(...),
    service: DatasetService = Depends(get_service),
) -> dict[str, Any]:
    service.update_dataset(index, dataset_id, document)
    return {"status": "ok", "id": dataset_id}


@app.delete("/{index}/datasets/{dataset_id}")
def delete_dataset(
    index: str,
    dataset_id: str,
    service: DatasetService = Depends(get_service),
) -> dict[str, Any]:
    service.delete_dataset(index, dataset_id)
    return {"status": "ok", "deleted_id": dataset_id}
