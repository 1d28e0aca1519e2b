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
Platform Sessions

The logged-in platform user is carried in a cookie holding a JWT signed
with the application secret key. Only this application reads the token so
a symmetric key is used rather than the platform's RSA key.
"""

import logging
import time
from typing import Annotated, Any

import joserfc.errors
import joserfc.jwk
import joserfc.jwt
from fastapi import Depends, Request

from . import schemas, settings

logger = logging.getLogger(__name__)

SESSION_KEY = joserfc.jwk.OctKey.import_key(settings.SECRET_KEY)
SESSION_ALGORITHM = settings.SESSION_TOKEN_ALGORITHM
SESSION_ISSUER = settings.PLATFORM_ISSUER
SESSION_TOKEN_OPTS: dict[str, joserfc.jwt.ClaimsOption] = {
    "iss": {"essential": True, "value": SESSION_ISSUER},
    "aud": {"essential": True, "value": SESSION_ISSUER},
    "sub": {"essential": True},
}


class AuthorizeError(Exception):
    pass


def create_session_token(user: schemas.PlatformUser, expires_in: int = -1) -> str:
    """Returns a session token (JWT) for a ``PlatformUser``."""
    if expires_in == -1:
        expires_in = settings.SESSION_TOKEN_EXPIRY
    now = int(time.time())
    payload: dict[str, Any] = {
        "sub": user.id,
        "username": user.username,
        "given_name": user.first_name,
        "family_name": user.last_name,
        "email": user.email,
        "idnumber": user.idnumber,
        "zoneinfo": user.timezone,
        "roles": list(user.roles),
        "iat": now - 5,
        "exp": now + expires_in,
        "iss": SESSION_ISSUER,
        "aud": SESSION_ISSUER,
    }
    return joserfc.jwt.encode(
        header={"alg": SESSION_ALGORITHM},
        claims=payload,
        key=SESSION_KEY,
        algorithms=[SESSION_ALGORITHM],
    )


def platform_user_from_token(token: str) -> schemas.PlatformUser:
    """Returns the ``PlatformUser`` stored in a session token."""
    if not token:
        raise AuthorizeError("TOKEN_REQUIRED")

    try:
        jwt_token = joserfc.jwt.decode(
            value=token, key=SESSION_KEY, algorithms=[SESSION_ALGORITHM]
        )
    except (joserfc.errors.JoseError, ValueError):
        logger.exception("session token decode failed")
        raise AuthorizeError("TOKEN_FORMAT") from None
    else:
        claims = jwt_token.claims

    try:
        joserfc.jwt.JWTClaimsRegistry(now=None, leeway=30, **SESSION_TOKEN_OPTS).validate(
            claims
        )
    except joserfc.errors.JoseError:
        logger.exception("session token claim validation failed: %s", claims)
        raise AuthorizeError("TOKEN_CLAIMS") from None

    return schemas.PlatformUser(
        id=claims["sub"],
        username=claims.get("username", ""),
        first_name=claims.get("given_name", ""),
        last_name=claims.get("family_name", ""),
        email=claims.get("email", ""),
        idnumber=claims.get("idnumber", ""),
        timezone=claims.get("zoneinfo", ""),
        roles=tuple(claims.get("roles", ())),
    )


async def session_user(request: Request) -> schemas.PlatformUser | None:
    """Dependency that provides the logged-in user, if any."""
    if not (token := request.cookies.get(settings.SESSION_COOKIE_NAME)):
        return None
    try:
        return platform_user_from_token(token)
    except AuthorizeError as exc:
        logger.warning("ignoring session cookie: %r", exc)
        return None


SessionUser = Annotated[schemas.PlatformUser | None, Depends(session_user)]
