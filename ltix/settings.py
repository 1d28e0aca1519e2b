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
Application Settings and Configuration

Application-wide configuration settings that are read in from the Environment.
"""

import contextvars
import dataclasses
import logging
import secrets
from pathlib import Path
from typing import Any

import shortuuid
from starlette.config import Config

BASE_PATH = Path(__file__).parent.parent

VALID_ENVIRONMENTS = ("local", "sandbox", "dev", "prod")

_cfg = Config(env_file=BASE_PATH / ".env")


@dataclasses.dataclass(frozen=True)
class RequestContext:
    """Context information to pass from routes to other services."""

    request_id: str
    client_ip: str | None


CTX_REQUEST: contextvars.ContextVar[RequestContext] = contextvars.ContextVar(
    "RequestContext",
    default=RequestContext(  # noqa: B039
        request_id=shortuuid.uuid(),
        client_ip=None,
    ),
)

DEBUG = _cfg("LTIX_DEBUG", cast=bool, default=False)
DEVMODE = _cfg("LTIX_DEVMODE", cast=bool, default=False)
ENV = _cfg("LTIX_ENV", default="local")
_GENERATED_SECRET_KEY = secrets.token_urlsafe(32)
SECRET_KEY = _cfg("LTIX_SECRET_KEY", default=_GENERATED_SECRET_KEY)
PORT = _cfg("LTIX_PORT", cast=int, default=8443)
PATH_PREFIX = _cfg("LTIX_PATH_PREFIX", default="/api")
FORWARDED_ALLOW_CIDRS = _cfg(
    "LTIX_FORWARDED_ALLOW_CIDRS", default="172.16.0.0/12,10.0.0.0/8"
)

PLATFORM_ISSUER = _cfg("LTIX_PLATFORM_ISSUER", default="https://platform.example.com")

SESSION_TOKEN_ALGORITHM = _cfg("LTIX_SESSION_TOKEN_ALGORITHM", default="HS256")
SESSION_TOKEN_EXPIRY = _cfg("LTIX_SESSION_TOKEN_EXPIRY", cast=int, default=43200)
SESSION_COOKIE_NAME = _cfg("LTIX_SESSION_COOKIE_NAME", default="ltix_session")

# lifetime in seconds of the lti_message_hint and the id_token
HINT_TOKEN_EXPIRY = _cfg("LTIX_HINT_TOKEN_EXPIRY", cast=int, default=600)
ID_TOKEN_EXPIRY = _cfg("LTIX_ID_TOKEN_EXPIRY", cast=int, default=3600)

PRIVATE_KEY_FILE = _cfg("LTIX_PRIVATE_KEY_FILE", default="")
PRIVATE_KEY_ID = _cfg("LTIX_PRIVATE_KEY_ID", default="")

SEED_FILE = _cfg("LTIX_SEED_FILE", default="")

LOG_LEVEL_ROOT = _cfg("LOG_LEVEL_ROOT", default="INFO" if DEBUG else "WARNING")
LOG_LEVEL_UVICORN = _cfg("LOG_LEVEL_UVICORN", default="DEBUG" if DEBUG else "INFO")
LOG_LEVEL_APP = _cfg("LOG_LEVEL_APP", default="DEBUG" if DEBUG else "INFO")

_old_log_factory = logging.getLogRecordFactory()


def _new_log_factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
    record = _old_log_factory(*args, **kwargs)
    record.request_id = CTX_REQUEST.get().request_id
    return record


logging.setLogRecordFactory(_new_log_factory)
logging.basicConfig(
    format="%(asctime)s[%(levelname)s][%(request_id)s]%(name)s: %(message)s",
    level=LOG_LEVEL_ROOT,
)
logging.getLogger("uvicorn").setLevel(LOG_LEVEL_UVICORN)
logging.getLogger(__package__).setLevel(LOG_LEVEL_APP)


def verify_environment(value: str) -> None:
    """Raises a ``ValueError`` if the provided environment is not valid."""
    if value not in VALID_ENVIRONMENTS:
        msg = f"Invalid env [{value}], must be one of: {' '.join(VALID_ENVIRONMENTS)}"
        raise ValueError(msg)

    if not PRIVATE_KEY_FILE and value != "local":
        msg = "LTIX_PRIVATE_KEY_FILE must be set outside of local environments"
        raise ValueError(msg)


def is_production() -> bool:
    """Returns True if the environment is set to Production mode."""
    return ENV == "prod"


def is_local() -> bool:
    """Returns True if the environment is set to Local model."""
    return ENV == "local"


def uses_generated_keys() -> bool:
    """Returns True if a signing key is generated when the process starts.

    Generated keys are not shared between processes, so tokens signed by
    one worker cannot be verified by another.
    """
    return not PRIVATE_KEY_FILE or SECRET_KEY == _GENERATED_SECRET_KEY


verify_environment(ENV)
