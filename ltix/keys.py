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
JSON Web Keys

The platform signs every ``lti_message_hint`` and ``id_token`` with its own
private key and publishes the matching public keys as a JSON Web Key Set.
"""

import datetime
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import joserfc.jwk
import shortuuid

from . import schemas, settings

logger = logging.getLogger(__name__)


class PlatformKeys:
    """The platform's signing keys.

    Keys are read-only once loaded. Rotating keys means loading a new
    ``PlatformKeys`` that includes both the old and the new key.
    """

    def __init__(self, web_keys: Iterable[schemas.AuthJsonWebKey]) -> None:
        self.web_keys = list(web_keys)

    def private_keys(self) -> list[schemas.AuthJsonWebKey]:
        """Returns the list of currently valid ``AuthJsonWebKeys``."""
        return [k for k in self.web_keys if k.is_valid]

    def json_web_private_keys(self) -> list[joserfc.jwk.RSAKey]:
        return [_import_key(k) for k in self.private_keys()]

    def private_key(self) -> joserfc.jwk.RSAKey:
        """Returns the signing key.

        If more than one key is valid then the key that has the greater
        ``valid_to`` date is provided.
        """
        if not (web_keys := self.private_keys()):
            raise RuntimeError("JWKS_NOT_FOUND")

        main_key = web_keys[0]
        # Given more than one key, return the key that is valid furthest
        # in the future. No valid_to implies no end date. If both keys being
        # compared have no valid_to, then we select the newest key based on
        # valid_from.
        for key in web_keys[1:]:
            if key.valid_to is not None and main_key.valid_to is not None:
                if key.valid_to > main_key.valid_to:
                    main_key = key
            elif key.valid_to is None and main_key.valid_to is None:
                if key.valid_from > main_key.valid_from:
                    main_key = key
            elif key.valid_to is None:
                main_key = key

        return _import_key(main_key)

    def public_keys(self) -> list[joserfc.jwk.RSAKey]:
        """Returns a list of public JSON Web Keys."""
        return [
            joserfc.jwk.RSAKey.import_key(
                pk.as_pem(private=False), parameters={"kid": pk.kid}
            )
            for pk in self.json_web_private_keys()
        ]

    def public_key_set(self) -> joserfc.jwk.KeySet:
        """Returns a public JSON Web Key Set."""
        return joserfc.jwk.KeySet(self.public_keys())  # type: ignore[arg-type]

    def jwks(self) -> dict[str, Any]:
        """Returns the public key set as a JWKS document."""
        ks_dict = self.public_key_set().as_dict()
        for entry in ks_dict["keys"]:
            if "use" not in entry:
                entry["use"] = "sig"
            if "alg" not in entry:
                entry["alg"] = "RS256"
        return ks_dict  # type: ignore[return-value]


def _import_key(web_key: schemas.AuthJsonWebKey) -> joserfc.jwk.RSAKey:
    return joserfc.jwk.RSAKey.import_key(
        web_key.data.get_secret_value(), parameters={"kid": web_key.kid}
    )


def generate_private_key(kid: str | None = None) -> schemas.AuthJsonWebKey:
    """Returns a newly generated private JSON Web Key"""
    if kid is None:
        kid = shortuuid.uuid()
    pkey = joserfc.jwk.RSAKey.generate_key(
        key_size=2048, parameters={"kid": kid}, private=True
    )
    data = pkey.as_pem(private=True)
    return schemas.AuthJsonWebKey(
        kid=kid,
        data=schemas.make_secret(data.decode("ascii")),
        valid_to=None,
        valid_from=datetime.datetime.now(tz=datetime.UTC),
    )


def load_private_key(path: str | Path, kid: str) -> schemas.AuthJsonWebKey:
    """Returns the PEM encoded private key stored at ``path``."""
    pem = Path(path).read_text(encoding="ascii")
    if not kid:
        kid = joserfc.jwk.RSAKey.import_key(pem).thumbprint()
    return schemas.AuthJsonWebKey(
        kid=kid,
        data=schemas.make_secret(pem),
        valid_from=datetime.datetime(2000, 1, 1, tzinfo=datetime.UTC),
    )


def load_platform_keys() -> PlatformKeys:
    """Returns the platform keys configured for this environment.

    Local environments without a configured key get a newly generated key
    that only lives as long as the process.
    """
    if settings.PRIVATE_KEY_FILE:
        logger.info("Loading platform key from %s", settings.PRIVATE_KEY_FILE)
        web_key = load_private_key(settings.PRIVATE_KEY_FILE, settings.PRIVATE_KEY_ID)
    elif settings.is_local():
        web_key = generate_private_key()
        logger.error("Generated temporary platform key: %s", web_key.kid)
    else:
        raise RuntimeError("LTIX_PRIVATE_KEY_FILE must be set")  # noqa: TRY003
    return PlatformKeys([web_key])
