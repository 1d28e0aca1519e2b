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
Signed Tokens

Signs and verifies the JSON Web Tokens exchanged with tools. Only the
signature is checked here, what the claims mean is up to the caller.
"""

import logging
from collections.abc import Mapping
from typing import Any

import joserfc.errors
import joserfc.jwk
import joserfc.jwt

from .errors import SignatureError

logger = logging.getLogger(__name__)

ALGORITHM = "RS256"


def issue(
    claims: Mapping[str, Any],
    private_key: joserfc.jwk.RSAKey,
    key_id: str,
) -> str:
    """Returns a compact JWT of ``claims`` signed with ``private_key``."""
    return joserfc.jwt.encode(
        header={"typ": "JWT", "alg": ALGORITHM, "kid": key_id},
        claims=dict(claims),
        key=private_key,
        algorithms=[ALGORITHM],
    )


def verify(token: str, key_set: joserfc.jwk.KeySet) -> dict[str, Any]:
    """Returns the claims of ``token`` if it was signed by a key in ``key_set``.

    The key is picked using the ``kid`` in the token header. A
    ``SignatureError`` is raised if the token is malformed, names an unknown
    key, or the signature does not match.
    """
    if not token:
        raise SignatureError("Token is empty")

    try:
        jwt_token = joserfc.jwt.decode(value=token, key=key_set, algorithms=[ALGORITHM])
    except (joserfc.errors.JoseError, ValueError) as exc:
        logger.warning("token decode failed: %r", exc)
        raise SignatureError(f"Token verification failed: {exc}") from exc

    return jwt_token.claims
