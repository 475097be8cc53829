"""
Router factory exposing a ``CrudService`` over HTTP.

Bodies are taken as plain JSON objects and validated by the service, so
field errors come back in the same ``{"detail", "errors"}`` shape for every
resource.
"""

from collections.abc import Iterable
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Request, Response
from pydantic import BaseModel
from sqlmodel import Session

from lexdesk.api.deps import get_current_user
from lexdesk.core.config import Settings, get_settings
from lexdesk.core.errors import NotFoundError
from lexdesk.db.session import get_session
from lexdesk.models.base import Entity
from lexdesk.services.crud import CrudService, FilterSpec


def build_crud_router(
    prefix: str,
    model: type[Entity],
    create_schema: type[BaseModel],
    update_schema: Optional[type[BaseModel]] = None,
    filter_fields: Optional[Iterable[str]] = None,
) -> APIRouter:
    entity_name = model.__name__
    router = APIRouter(prefix=prefix, tags=[prefix.strip("/")], dependencies=[Depends(get_current_user)])

    def get_service(session: Session = Depends(get_session)) -> CrudService:
        return CrudService(model, session, create_schema, update_schema)

    @router.get("")
    def list_items(
        request: Request,
        service: CrudService = Depends(get_service),
        settings: Settings = Depends(get_settings),
    ):
        allowed = list(filter_fields) if filter_fields is not None else service.filterable_fields
        spec = FilterSpec.from_query(
            request.query_params,
            allowed,
            default_limit=settings.default_list_limit,
            max_limit=settings.max_list_limit,
        )
        items, total = service.find_and_count(spec)
        return {"items": [i.model_dump() for i in items], "total": total}

    @router.get("/{item_id}")
    def get_item(item_id: str, service: CrudService = Depends(get_service)):
        item = service.find_by_id(item_id)
        if item is None:
            raise NotFoundError(entity_name, item_id)
        return item.model_dump()

    @router.post("", status_code=201)
    def create_item(payload: Any = Body(...), service: CrudService = Depends(get_service)):
        return service.create(payload).model_dump()

    @router.put("/{item_id}")
    def update_item(item_id: str, payload: Any = Body(...), service: CrudService = Depends(get_service)):
        item = service.update(item_id, payload)
        if item is None:
            raise NotFoundError(entity_name, item_id)
        return item.model_dump()

    @router.delete("/{item_id}", status_code=204)
    def delete_item(item_id: str, service: CrudService = Depends(get_service)):
        if not service.delete(item_id):
            raise NotFoundError(entity_name, item_id)
        return Response(status_code=204)

    return router
