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
FastAPI main entry point

This modules configures our FastAPI application.
"""

import asyncio
import contextlib
import logging
from typing import Any

import fastapi

from . import __version__, middleware, routes, services, settings

logger = logging.getLogger(__name__)

logger.info(
    "Environment [%s], Is Production: %s", settings.ENV, settings.is_production()
)


@contextlib.asynccontextmanager
async def lifespan(_: fastapi.FastAPI) -> Any:
    logger.info("Running in loop [%r]", asyncio.get_running_loop())
    platform = services.platform()
    logger.info(
        "Platform [%s] ready with keys %s",
        platform.issuer,
        [k.kid for k in platform.platform_keys.private_keys()],
    )
    yield
    logger.info("shutting down")


app = fastapi.FastAPI(
    title="LTIX Platform",
    version=__version__,
    lifespan=lifespan,
    docs_url=f"{settings.PATH_PREFIX}/docs",
    redoc_url=None,
    openapi_url=f"{settings.PATH_PREFIX}/openapi.json",
    debug=settings.DEBUG,
    middleware=middleware.handlers,
)

app.include_router(routes.router, prefix=settings.PATH_PREFIX)
