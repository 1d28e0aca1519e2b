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
FastAPI Middleware
"""

import logging
import time

import shortuuid
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from . import settings

logger = logging.getLogger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tags every log line of a request with its request id."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if not (request_id := request.headers.get("x-request-id")):
            request_id = shortuuid.uuid()
        settings.CTX_REQUEST.set(
            settings.RequestContext(
                request_id=request_id,
                client_ip=request.client.host if request.client else None,
            )
        )
        response = await call_next(request)
        response.headers["x-request-id"] = request_id
        return response


class AccessLogMiddleware(BaseHTTPMiddleware):
    async def access_log(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path.endswith("/lb-status"):
            return await call_next(request)
        ctx = settings.CTX_REQUEST.get()
        logger.info(
            'start: %s - %s %s - "%s"',
            ctx.client_ip,
            request.method,
            request.url.path,
            request.headers.get("user-agent"),
        )
        tick_start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:
            elapsed = round(time.perf_counter() - tick_start, 6)
            logger.info("end: %s [%r] - %s", 500, exc, elapsed)
            raise
        elapsed = round(time.perf_counter() - tick_start, 6)
        logger.info("end: %s - %s", response.status_code, elapsed)
        return response

    # descriptive function name in log output
    dispatch = access_log


# outermost first, so the request id is set before the access log runs
handlers = [
    Middleware(RequestContextMiddleware),  # ty: ignore[invalid-argument-type]
    Middleware(AccessLogMiddleware),  # ty: ignore[invalid-argument-type]
]
