# Student Centered Open Online Learning (SCOOL) LTI Integration
# Copyright (c) 2021-2024  Fresno State University, SCOOL Project Team
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""
LTI Platform routes

``/launch/{resource_link_id}`` starts a launch by sending the user to the
tool's login initiation url. The tool answers by sending the user to
``/auth`` which posts the ``id_token`` to the tool. LTI 1.1 and LTI 2.0
tools are sent the signed launch directly.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse

from .. import schemas, security, services, templates
from ..errors import AuthenticationError

logger = logging.getLogger(__name__)

router = APIRouter()

PlatformDep = Annotated[services.Platform, Depends(services.platform)]


@router.api_route("/auth", methods=["GET", "POST"], include_in_schema=False)
async def auth(
    request: Request,
    platform: PlatformDep,
    user: security.SessionUser,
) -> Response:
    """OIDC authentication endpoint.

    Tools send the request as either a GET or a form POST.
    """
    if request.method == "POST":
        form = await request.form()
        params = {k: v for k, v in form.items() if isinstance(v, str)}
    else:
        params = dict(request.query_params)
    auth_request = schemas.AuthenticationRequest.model_validate(params)

    try:
        message = platform.authenticator(user).authenticate(auth_request)
    except AuthenticationError as exc:
        logger.warning("auth request rejected: %r", exc)
        content = {
            "error": "invalid_request",
            "error_description": exc.message,
            "reason": str(exc.kind),
        }
        return JSONResponse(content=content, status_code=status.HTTP_400_BAD_REQUEST)

    return templates.redirect_lti_message(message)


@router.get("/launch/{resource_link_id}", include_in_schema=False)
async def launch(
    resource_link_id: str,
    platform: PlatformDep,
    user: security.SessionUser,
) -> Response:
    """Starts an LTI 1.3 resource link launch for the logged-in user."""
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    try:
        message = platform.login_initiation(resource_link_id, user)
    except LookupError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Resource link {resource_link_id} not found",
        ) from None
    except ValueError as exc:
        logger.error("resource link %s cannot be launched: %r", resource_link_id, exc)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Resource link {resource_link_id} cannot be launched",
        ) from None
    return templates.redirect_lti_message(message)
