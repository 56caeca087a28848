"""
Account-linking endpoints called by the voice-assistant platform.

``/authorize`` serves the consent page where a user types their link code and
``/token`` implements the authorization-code and refresh-token grants.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from pathlib import Path
from typing import Annotated, Any, Mapping, Optional, Tuple

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates

from listlink.core.errors import ErrorCode, ServiceError
from listlink.dependencies import get_authorization_service, get_token_service
from listlink.schemas import OAuthErrorResponse, TokenRequest
from listlink.services import AuthorizationService, TokenService
from listlink.services.authorization import MESSAGE_INTERNAL_ERROR

router = APIRouter()
logger = logging.getLogger(__name__)

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))

_OAUTH_ERROR_BY_CODE = {
    ErrorCode.PERMISSION_DENIED: (HTTPStatus.UNAUTHORIZED, "invalid_client"),
    ErrorCode.UNAUTHENTICATED: (HTTPStatus.UNAUTHORIZED, "invalid_client"),
    ErrorCode.INVALID_ARGUMENT: (HTTPStatus.BAD_REQUEST, "invalid_request"),
    ErrorCode.NOT_FOUND: (HTTPStatus.BAD_REQUEST, "invalid_grant"),
    ErrorCode.DEADLINE_EXCEEDED: (HTTPStatus.BAD_REQUEST, "invalid_grant"),
    ErrorCode.RESOURCE_EXHAUSTED: (HTTPStatus.TOO_MANY_REQUESTS, "temporarily_unavailable"),
}


def oauth_error_for(code: Optional[ErrorCode]) -> Tuple[HTTPStatus, str]:
    """Map an internal error kind to the OAuth status and ``error`` value."""
    return _OAUTH_ERROR_BY_CODE.get(code, (HTTPStatus.INTERNAL_SERVER_ERROR, "server_error"))


def _no_store(response: Response) -> Response:
    response.headers["Cache-Control"] = "no-store"
    response.headers["Pragma"] = "no-cache"
    return response


def _oauth_error(status: HTTPStatus, error: str, description: Optional[str] = None) -> Response:
    body = OAuthErrorResponse(error=error, error_description=description)
    return _no_store(
        JSONResponse(status_code=status, content=body.model_dump(exclude_none=True))
    )


def _consent_page(
    request: Request,
    source: Mapping[str, Any],
    *,
    error_message: Optional[str] = None,
    status_code: int = HTTPStatus.OK,
) -> Response:
    context = {
        "client_id": source.get("client_id"),
        "redirect_uri": source.get("redirect_uri"),
        "state": source.get("state"),
        "error_message": error_message,
    }
    return _no_store(
        templates.TemplateResponse(request, "authorize.html", context, status_code=status_code)
    )


@router.get("/", response_class=PlainTextResponse)
async def root_healthcheck() -> Response:
    return _no_store(PlainTextResponse("ok"))


@router.get("/authorize")
async def show_consent_page(
    request: Request,
    service: Annotated[AuthorizationService, Depends(get_authorization_service)],
) -> Response:
    """Validate the OAuth parameters and render the link-code form."""
    params = request.query_params
    try:
        service.validate_params(params)
    except ServiceError as exc:
        logger.info("Rejected authorize request", extra={"reason": exc.message})
        return _no_store(PlainTextResponse(exc.message, status_code=HTTPStatus.BAD_REQUEST))
    return _consent_page(request, params)


@router.post("/authorize")
async def submit_link_code(
    request: Request,
    service: Annotated[AuthorizationService, Depends(get_authorization_service)],
) -> Response:
    """Redeem the submitted link code and redirect back with an authorization code."""
    form = await request.form()
    try:
        params = service.validate_params(form)
    except ServiceError as exc:
        return _consent_page(
            request, form, error_message=exc.message, status_code=HTTPStatus.BAD_REQUEST
        )

    try:
        redirect_url = service.redeem_link_code(params, form.get("link_code"))
    except ServiceError as exc:
        if exc.code is ErrorCode.INTERNAL or exc.code is ErrorCode.RESOURCE_EXHAUSTED:
            logger.error("Authorize endpoint failure", extra={"error": exc.message})
            return _consent_page(
                request,
                form,
                error_message=MESSAGE_INTERNAL_ERROR,
                status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            )
        return _consent_page(
            request, form, error_message=exc.message, status_code=HTTPStatus.BAD_REQUEST
        )
    except Exception:
        logger.exception("Authorize endpoint failure")
        return _consent_page(
            request,
            form,
            error_message=MESSAGE_INTERNAL_ERROR,
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
        )

    return _no_store(RedirectResponse(url=redirect_url, status_code=HTTPStatus.FOUND))


@router.post("/token")
async def issue_token(
    request: Request,
    service: Annotated[TokenService, Depends(get_token_service)],
) -> Response:
    """Token endpoint; every outcome is an OAuth JSON body."""
    try:
        form = await request.form()
        payload = TokenRequest.model_validate(
            {key: value for key, value in form.items() if isinstance(value, str)}
        )
        if not payload.grant_type:
            return _oauth_error(HTTPStatus.BAD_REQUEST, "invalid_request", "grant_type is required")
        if not payload.client_id:
            return _oauth_error(HTTPStatus.BAD_REQUEST, "invalid_request", "client_id is required")

        if payload.grant_type == "authorization_code":
            result = service.exchange_authorization_code(
                payload.code, payload.client_id, payload.client_secret
            )
        elif payload.grant_type == "refresh_token":
            result = service.refresh(
                payload.refresh_token, payload.client_id, payload.client_secret
            )
        else:
            return _oauth_error(HTTPStatus.BAD_REQUEST, "unsupported_grant_type")
    except ServiceError as exc:
        status, error = oauth_error_for(exc.code)
        logger.warning(
            "Token endpoint rejected request",
            extra={"error_code": exc.code.value, "error": exc.message},
        )
        return _oauth_error(status, error, exc.message)
    except Exception:
        logger.exception("Token endpoint failure")
        status, error = oauth_error_for(None)
        return _oauth_error(status, error, "Unexpected error")

    return _no_store(JSONResponse(status_code=HTTPStatus.OK, content=result.model_dump()))


__all__ = ["oauth_error_for", "router"]
