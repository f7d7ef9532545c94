"""
Presentation adapters.

Handlers build one canonical pydantic model; the mount point decides
whether that model goes out in legacy snake_case or v1
camelCase.
"""
from enum import Enum
from typing import Annotated

from fastapi import Depends, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette import status


class ResponseStyle(str, Enum):
    LEGACY = "legacy"
    V1 = "v1"


def serialize(model: BaseModel, style: ResponseStyle) -> dict:
    return jsonable_encoder(model.model_dump(mode="json", by_alias=style is ResponseStyle.V1))


def render(model: BaseModel, style: ResponseStyle, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=serialize(model, style))


def use_response_style(style: ResponseStyle):
    """
    Router-level dependency binding a presentation style. Mounted through
    include_router(..., dependencies=[...]) so it runs before the endpoint.
    """
    def bind_style(request: Request) -> ResponseStyle:
        request.state.response_style = style
        return style

    return bind_style


def get_response_style(request: Request) -> ResponseStyle:
    return getattr(request.state, "response_style", ResponseStyle.LEGACY)


style_dependency = Annotated[ResponseStyle, Depends(get_response_style)]
