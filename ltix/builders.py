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
LTI Launch Request Builders

An LTI 1.3 launch starts with a third party login initiation request that
the platform sends to the tool. The launch data collected so far travels
with that request as the signed ``lti_message_hint`` and comes back to the
platform in the OIDC authentication request. See ``ltix.oidc``.

LTI 1.1 and LTI 2.0 launches are a single OAuth signed form post of flat
launch parameters to the tool.

https://www.imsglobal.org/spec/security/v1p0/#step-1-third-party-initiated-login
"""

import logging
import re
import secrets
import time
from collections.abc import Iterable, Mapping
from typing import Any

from . import keys, messages, schemas, settings, tokens
from .claims import CUSTOM_PREFIX, ClaimMappingConverter
from .oauth import sign_parameters
from .substitution import CAPABILITIES, ResolveContext, VariableSubstitutor
from .vocab import LisVocabConverter

logger = logging.getLogger(__name__)


def normalize_custom_key(key: str) -> str:
    """Returns ``key`` in lower case with all non alpha-numerics as ``_``."""
    return re.sub(r"[^a-z0-9]", "_", key.strip().lower())


def parse_custom_parameters(value: str) -> dict[str, str]:
    """Returns the ``name=value`` lines in ``value`` as launch parameters.

    Names are prefixed with ``custom_`` and normalized. If normalizing
    changes a name then the parameter is included under both names.
    """
    params = {}
    for line in value.replace("\r\n", "\n").replace("\r", "\n").split("\n"):
        name, sep, param_value = line.partition("=")
        if not sep or not (name := name.strip()):
            continue
        param_value = param_value.strip()
        normalized = normalize_custom_key(name)
        params[f"{CUSTOM_PREFIX}{normalized}"] = param_value
        if normalized != name:
            params[f"{CUSTOM_PREFIX}{name}"] = param_value
    return params


class ResourceLinkPayloadBuilder:
    """Collects the claims of a resource link launch.

    For LTI 1.3 custom parameters are substituted here, before the user
    authenticates, so variables that refer to the user are left for the
    second pass. Legacy launches know the ``user`` up front and resolve
    everything at once. The user's attributes only resolve variables here,
    they are not added to the claims.
    """

    def __init__(
        self,
        registration: schemas.ToolRegistration,
        resource_link: schemas.ResourceLink,
        substitutor: VariableSubstitutor,
        converter: ClaimMappingConverter | None = None,
        params: Mapping[str, Any] | None = None,
        user: schemas.LtiUser | None = None,
    ) -> None:
        self.registration = registration
        self.resource_link = resource_link
        self.substitutor = substitutor
        self.converter = converter if converter is not None else ClaimMappingConverter()
        self.params = dict(params) if params else {}
        self.user = user

    def get_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {
            "resource_link_id": self.resource_link.id,
            "resource_link_title": self.resource_link.title,
        }
        if self.resource_link.text is not None:
            params["resource_link_description"] = self.resource_link.text
        # link level custom parameters override the tool level ones
        params |= {
            **parse_custom_parameters(self.registration.custom_parameters),
            **parse_custom_parameters(self.resource_link.custom_parameters),
            **self.params,
        }
        source_data = dict(params)
        if self.user is not None:
            source_data |= self.user.source_data()
        custom_names = [
            k for k, v in params.items()
            if k.startswith(CUSTOM_PREFIX) and isinstance(v, str)
        ]
        substituted = self.substitutor.substitute(
            [params[k] for k in custom_names],
            ResolveContext(source_data=source_data, user=self.user),
        )
        params.update(zip(custom_names, substituted, strict=True))
        return params

    def get_claims(self) -> dict[str, Any]:
        return self.converter.params_to_claims(self.get_params())


def modern_roles(roles: Iterable[str], vocab: LisVocabConverter) -> list[str]:
    """Returns ``roles`` as LIS v2 URIs, leaving out unknown roles.

    Roles may be given as LIS v1 URNs, LIS v2 URIs or simple handles such
    as ``Instructor``.
    """
    roles = list(roles)
    converted = []
    for role, modern in zip(roles, vocab.to_modern_roles(roles), strict=True):
        if modern is None:
            logger.warning("dropping unknown role: %s", role)
        else:
            converted.append(modern)
    return converted


class ResourceLinkLaunchRequestBuilder:
    """Builds the login initiation message for a resource link launch."""

    message_type = messages.MESSAGE_TYPE_RESOURCE_LINK

    def __init__(
        self,
        registration: schemas.ToolRegistration,
        resource_link: schemas.ResourceLink,
        issuer: str,
        user_id: str | int,
        platform_keys: keys.PlatformKeys,
        roles: Iterable[str] = (),
        extra_claims: Mapping[str, Any] | None = None,
        hint_expiry: int = settings.HINT_TOKEN_EXPIRY,
        vocab: LisVocabConverter | None = None,
    ) -> None:
        self.registration = registration
        self.resource_link = resource_link
        self.issuer = issuer
        self.login_hint = str(user_id)
        self.platform_keys = platform_keys
        vocab = vocab if vocab is not None else LisVocabConverter()
        self.roles = modern_roles(list(roles), vocab)
        self.extra_claims = dict(extra_claims) if extra_claims else {}
        self.hint_expiry = hint_expiry

    @property
    def target_link_uri(self) -> str:
        return self.resource_link.url or self.registration.tool_url

    def standard_claims(self) -> dict[str, Any]:
        resource_link = {
            "id": self.resource_link.id,
            "title": self.resource_link.title,
        }
        if self.resource_link.text is not None:
            resource_link["description"] = self.resource_link.text
        now = int(time.time())
        return {
            messages.TOOL_REGISTRATION_ID_KEY: self.registration.id,
            "iss": self.issuer,
            "aud": self.registration.client_id,
            "iat": now,
            "exp": now + self.hint_expiry,
            "nonce": secrets.token_hex(10),
            messages.MESSAGE_TYPE_KEY: self.message_type,
            messages.DEPLOYMENT_ID_KEY: self.registration.deployment_id,
            messages.VERSION_KEY: messages.LTI_VERSION_1P3,
            messages.RESOURCE_LINK_KEY: resource_link,
            messages.TARGET_LINK_URI_KEY: self.target_link_uri,
            messages.ROLES_KEY: self.roles,
        }

    def build_message(self) -> messages.LtiMessage:
        # standard claims take precedence over the extra claims
        claims = {**self.extra_claims, **self.standard_claims()}
        private_key = self.platform_keys.private_key()
        hint = tokens.issue(claims, private_key, private_key.kid)
        logger.info(
            "login initiation for registration %s, resource link %s, user %s",
            self.registration.id,
            self.resource_link.id,
            self.login_hint,
        )
        return messages.LtiMessage(
            url=self.registration.initiate_login_url,
            parameters={
                "iss": self.issuer,
                "target_link_uri": self.target_link_uri,
                "login_hint": self.login_hint,
                "lti_message_hint": hint,
                "client_id": self.registration.client_id,
                "lti_deployment_id": self.registration.deployment_id,
            },
        )


class V1p1ResourceLinkLaunchRequestBuilder:
    """Builds a signed LTI 1.1 resource link launch.

    Legacy launches are posted straight to the tool's launch url as flat
    parameters signed with OAuth 1.0a. There is no login initiation and no
    OIDC round trip, so the launch claims already hold the user.
    """

    lti_version = messages.LTI_VERSION_1P0
    message_type = "basic-lti-launch-request"

    def __init__(
        self,
        registration: schemas.ToolRegistration,
        resource_link: schemas.ResourceLink,
        roles: Iterable[str] = (),
        extra_claims: Mapping[str, Any] | None = None,
        converter: ClaimMappingConverter | None = None,
    ) -> None:
        self.registration = registration
        self.resource_link = resource_link
        self.converter = converter if converter is not None else ClaimMappingConverter()
        self.roles = modern_roles(list(roles), self.converter.vocab)
        self.extra_claims = dict(extra_claims) if extra_claims else {}

    @property
    def launch_url(self) -> str:
        return self.resource_link.url or self.registration.tool_url

    def required_params(self) -> dict[str, str]:
        params = {
            "lti_version": self.lti_version,
            "lti_message_type": self.message_type,
            "resource_link_id": self.resource_link.id,
            "resource_link_title": self.resource_link.title,
        }
        if self.resource_link.text is not None:
            params["resource_link_description"] = self.resource_link.text
        return params

    def signing_keys(self) -> tuple[str, str]:
        """Returns the ``(consumer key, secret)`` that signs the launch."""
        return (
            self.registration.resource_key,
            self.registration.password.get_secret_value(),
        )

    def filter_params(self, params: dict[str, Any]) -> dict[str, Any]:
        return params

    def build_message(self) -> messages.LtiMessage:
        claims = {**self.extra_claims, messages.ROLES_KEY: self.roles}
        params = self.converter.claims_to_params(claims)
        # required params take precedence over the extra claims
        params |= self.required_params()
        params = self.filter_params(params)

        consumer_key, secret = self.signing_keys()
        logger.info(
            "%s launch for registration %s, resource link %s",
            self.lti_version,
            self.registration.id,
            self.resource_link.id,
        )
        return messages.LtiMessage(
            url=self.launch_url,
            parameters=sign_parameters(params, self.launch_url, consumer_key, secret),
        )


class V2p0ResourceLinkLaunchRequestBuilder(V1p1ResourceLinkLaunchRequestBuilder):
    """Builds a signed LTI 2.0 resource link launch.

    Parameters governed by a capability the tool has not enabled are left
    out of the launch. The launch is signed with the tool proxy credentials.
    """

    lti_version = messages.LTI_VERSION_2P0

    def __init__(
        self,
        registration: schemas.ToolRegistration,
        resource_link: schemas.ResourceLink,
        roles: Iterable[str] = (),
        extra_claims: Mapping[str, Any] | None = None,
        converter: ClaimMappingConverter | None = None,
        capabilities: Mapping[str, str] = CAPABILITIES,
    ) -> None:
        if registration.tool_proxy is None:
            raise ValueError("TOOL_PROXY_REQUIRED", registration.id)
        super().__init__(registration, resource_link, roles, extra_claims, converter)
        self.tool_proxy = registration.tool_proxy
        # param name => first capability that governs it
        self.param_capabilities: dict[str, str] = {}
        for capability, name in capabilities.items():
            self.param_capabilities.setdefault(name, capability)

    def required_params(self) -> dict[str, str]:
        return super().required_params() | {"oauth_callback": "about:blank"}

    def signing_keys(self) -> tuple[str, str]:
        return self.tool_proxy.guid, self.tool_proxy.secret.get_secret_value()

    def filter_params(self, params: dict[str, Any]) -> dict[str, Any]:
        enabled = set(self.registration.enabled_capabilities)
        filtered = {}
        for name, value in params.items():
            capability = self.param_capabilities.get(name)
            if capability is None or capability in enabled:
                filtered[name] = value
            else:
                logger.debug("capability %s not enabled, dropping %s", capability, name)
        return filtered
