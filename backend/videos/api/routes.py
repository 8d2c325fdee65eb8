from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import RedirectResponse
from structlog.contextvars import bind_contextvars, reset_contextvars

from backend.videos.dependencies import get_video_service
from backend.videos.errors import (
    ApiClientCreateError,
    GatewayMethodNotFoundError,
    GatewayNotFoundError,
    OauthAccessTokenNotFoundError,
    OauthAccountNotFoundError,
    OauthLoginError,
    VideoIdExtractError,
    VideoNotFoundError,
    VideosError,
)
from backend.videos.models.api_contracts import (
    AccountResponse,
    ExplorerResponse,
    GatewaySummary,
    OauthStatusResponse,
    VideoListingResponse,
    VideoResponse,
    listing_response,
)
from backend.videos.models.video import Video
from backend.videos.services.gateway_registry import GatewayFilter
from backend.videos.services.video_service import VideoService

router = APIRouter()

_NOT_FOUND_ERRORS = (GatewayNotFoundError, VideoNotFoundError, OauthAccountNotFoundError)
_BAD_REQUEST_ERRORS = (GatewayMethodNotFoundError, VideoIdExtractError)
_UNAUTHORIZED_ERRORS = (ApiClientCreateError, OauthAccessTokenNotFoundError, OauthLoginError)


def _http_error(exc: VideosError) -> HTTPException:
    if isinstance(exc, _NOT_FOUND_ERRORS):
        status_code = 404
    elif isinstance(exc, _BAD_REQUEST_ERRORS):
        status_code = 400
    elif isinstance(exc, _UNAUTHORIZED_ERRORS):
        status_code = 401
    else:
        status_code = 502
    return HTTPException(status_code=status_code, detail=str(exc))


def _video_response(service: VideoService, video: Video) -> VideoResponse:
    gateway = service.get_gateway_by_handle(video.gateway_handle)
    return VideoResponse.from_video(
        video,
        embed_url=gateway.embed_url(video.id),
        thumbnail_url=service.thumbnail_url(video),
    )


@router.get(
    "/gateways",
    response_model=list[GatewaySummary],
    tags=["gateways"],
    operation_id="list_gateways",
)
def list_gateways(
    service: Annotated[VideoService, Depends(get_video_service)],
    gateway_filter: Annotated[GatewayFilter, Query(alias="filter")] = "all",
) -> list[GatewaySummary]:
    return [
        GatewaySummary(
            handle=gateway.handle,
            name=gateway.name,
            logged_in=gateway.is_logged_in(),
            supports_search=gateway.supports_search(),
            listing_methods=sorted(gateway.listing_methods()),
        )
        for gateway in service.list_gateways(gateway_filter)
    ]


@router.get(
    "/gateways/{handle}/oauth/authorize",
    tags=["oauth"],
    operation_id="oauth_authorize",
)
def oauth_authorize(
    handle: str,
    service: Annotated[VideoService, Depends(get_video_service)],
) -> RedirectResponse:
    try:
        url = service.get_authorization_url(handle)
    except VideosError as exc:
        raise _http_error(exc) from exc
    return RedirectResponse(url, status_code=307)


@router.get(
    "/oauth/callback",
    response_model=OauthStatusResponse,
    tags=["oauth"],
    operation_id="oauth_callback",
)
def oauth_callback(
    code: str,
    state: str,
    service: Annotated[VideoService, Depends(get_video_service)],
) -> OauthStatusResponse:
    context_tokens = bind_contextvars(gateway_handle=state)
    try:
        service.login(state, code)
    except VideosError as exc:
        raise _http_error(exc) from exc
    finally:
        reset_contextvars(**context_tokens)
    return OauthStatusResponse(gateway_handle=state.strip().lower(), logged_in=True)


@router.post(
    "/gateways/{handle}/oauth/logout",
    response_model=OauthStatusResponse,
    tags=["oauth"],
    operation_id="oauth_logout",
)
def oauth_logout(
    handle: str,
    service: Annotated[VideoService, Depends(get_video_service)],
) -> OauthStatusResponse:
    try:
        service.logout(handle)
    except VideosError as exc:
        raise _http_error(exc) from exc
    return OauthStatusResponse(gateway_handle=handle.strip().lower(), logged_in=False)


@router.get(
    "/gateways/{handle}/explorer",
    response_model=ExplorerResponse,
    tags=["gateways"],
    operation_id="gateway_explorer",
)
def gateway_explorer(
    handle: str,
    service: Annotated[VideoService, Depends(get_video_service)],
) -> ExplorerResponse:
    try:
        explorer = service.get_explorer(handle)
    except VideosError as exc:
        raise _http_error(exc) from exc
    return ExplorerResponse.from_explorer(handle.strip().lower(), explorer)


@router.get(
    "/gateways/{handle}/videos",
    response_model=VideoListingResponse,
    tags=["videos"],
    operation_id="list_videos",
)
def list_videos(
    handle: str,
    method: str,
    service: Annotated[VideoService, Depends(get_video_service)],
    more_token: Annotated[str | None, Query(alias="moreToken")] = None,
    q: str | None = None,
    collection_id: Annotated[str | None, Query(alias="id")] = None,
    per_page: Annotated[int | None, Query(alias="perPage", ge=1, le=100)] = None,
) -> VideoListingResponse:
    options: dict[str, Any] = {}
    if more_token is not None:
        options["moreToken"] = more_token
    if q is not None:
        options["q"] = q
    if collection_id is not None:
        options["id"] = collection_id
    if per_page is not None:
        options["perPage"] = per_page

    context_tokens = bind_contextvars(gateway_handle=handle, listing_method=method)
    try:
        listing = service.list_videos(handle, method, options)
        return listing_response(
            listing,
            [_video_response(service, video) for video in listing.videos],
        )
    except VideosError as exc:
        raise _http_error(exc) from exc
    finally:
        reset_contextvars(**context_tokens)


@router.get(
    "/gateways/{handle}/videos/{video_id}",
    response_model=VideoResponse,
    tags=["videos"],
    operation_id="get_video",
)
def get_video(
    handle: str,
    video_id: str,
    service: Annotated[VideoService, Depends(get_video_service)],
) -> VideoResponse:
    try:
        return _video_response(service, service.fetch_by_id(handle, video_id))
    except VideosError as exc:
        raise _http_error(exc) from exc


@router.get(
    "/videos/by-url",
    response_model=VideoResponse,
    tags=["videos"],
    operation_id="get_video_by_url",
)
def get_video_by_url(
    url: str,
    service: Annotated[VideoService, Depends(get_video_service)],
) -> VideoResponse:
    try:
        return _video_response(service, service.get_video_by_url(url))
    except VideosError as exc:
        raise _http_error(exc) from exc


@router.get(
    "/gateways/{handle}/account",
    response_model=AccountResponse,
    tags=["oauth"],
    operation_id="gateway_account",
)
def gateway_account(
    handle: str,
    service: Annotated[VideoService, Depends(get_video_service)],
) -> AccountResponse:
    try:
        account = service.get_account(handle)
    except VideosError as exc:
        raise _http_error(exc) from exc
    return AccountResponse.from_account(handle.strip().lower(), account)
