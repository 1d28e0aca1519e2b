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
ASGI Server entrypoint

Local runs are served over TLS with a throwaway certificate because tools
only accept launches from an https platform.
"""

import logging
import os

import trustme
import uvicorn

from . import settings

logger = logging.getLogger(__name__)


def start() -> None:
    logger.info("Starting server in [%s] mode", "dev" if settings.DEVMODE else "prod")

    options = {
        "app": f"{__package__}.app:app",
        "host": "0.0.0.0",  # noqa:S104
        "port": settings.PORT,
        "reload": settings.DEVMODE,
        "workers": 1 if settings.DEVMODE else calculate_workers(),
        "log_level": settings.LOG_LEVEL_UVICORN.lower(),
        "access_log": False,
        "proxy_headers": True,
        "forwarded_allow_ips": settings.FORWARDED_ALLOW_CIDRS,
        "server_header": False,
    }
    logger.info(options)

    ssl_ca = trustme.CA()
    ssl_cert = ssl_ca.issue_cert("localhost", "127.0.0.1")

    with (
        ssl_cert.cert_chain_pems[0].tempfile() as ssl_certfile,
        ssl_cert.private_key_pem.tempfile() as ssl_keyfile,
    ):
        uvicorn.run(**options, ssl_keyfile=ssl_keyfile, ssl_certfile=ssl_certfile)


def calculate_workers() -> int:
    if settings.uses_generated_keys():
        logger.warning(
            "Signing keys are generated per process, starting a single worker. "
            "Set LTIX_PRIVATE_KEY_FILE and LTIX_SECRET_KEY to run more."
        )
        return 1
    if not (cpu_count := os.cpu_count()):
        cpu_count = 1
    return max(2, min(cpu_count, 4))
