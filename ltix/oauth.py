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
OAuth 1.0a Message Signing

LTI 1.1 and LTI 2.0 launches are form posts signed with HMAC-SHA1 using the
tool's consumer key and shared secret. The signature travels with the
launch parameters as ``oauth_signature``.

https://www.imsglobal.org/specs/ltiv1p1/implementation-guide#toc-4
"""

import logging
import time
import urllib.parse
from collections.abc import Mapping
from typing import Any

from authlib.common.security import generate_token
from authlib.oauth1.rfc5849 import signature

logger = logging.getLogger(__name__)

SIGNATURE_METHOD = "HMAC-SHA1"
OAUTH_VERSION = "1.0"


def sign_parameters(
    params: Mapping[str, Any],
    url: str,
    consumer_key: str,
    secret: str,
    method: str = "POST",
) -> dict[str, str]:
    """Returns ``params`` with the OAuth parameters and signature added.

    Any query parameters in ``url`` are part of the signed base string but
    are not copied into the returned parameters.
    """
    signed = {k: str(v) for k, v in params.items()}
    signed |= {
        "oauth_version": OAUTH_VERSION,
        "oauth_nonce": generate_token(32),
        "oauth_timestamp": str(int(time.time())),
        "oauth_consumer_key": consumer_key,
        "oauth_signature_method": SIGNATURE_METHOD,
    }
    query = urllib.parse.parse_qsl(urllib.parse.urlsplit(url).query)
    base_string = signature.construct_base_string(
        method, url, [*query, *signed.items()]
    )
    signed["oauth_signature"] = signature.hmac_sha1_signature(base_string, secret, None)
    logger.debug("signed %d launch params for %s", len(signed), url)
    return signed
