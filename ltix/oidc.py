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
OIDC Launch Authentication

After the tool receives the login initiation request it redirects the
user's browser back to the platform with an OIDC authentication request.
The platform checks the request against the ``lti_message_hint`` it signed
earlier, authenticates the user, and answers with a signed ``id_token``
that the browser posts to the tool's ``redirect_uri``.

https://www.imsglobal.org/spec/security/v1p0/#step-3-authentication-response
"""

import logging
import time
from collections.abc import Mapping
from typing import Any, Protocol

import joserfc.errors
import joserfc.jwt

from . import keys, messages, schemas, settings, tokens
from .claims import ClaimMappingConverter
from .errors import AuthenticationFailure, SignatureError, ValidationError
from .substitution import ResolveContext, VariableSubstitutor

logger = logging.getLogger(__name__)

NAME_CLAIMS = ("name", "given_name", "family_name")
EMAIL_CLAIMS = ("email",)
USERNAME_EXT = "user_username"

# (field, required value) checked in order before anything else
STATIC_CHECKS = (
    ("scope", "openid"),
    ("response_type", "id_token"),
    ("response_mode", "form_post"),
    ("prompt", "none"),
)


class UserAuthenticator(Protocol):
    def authenticate(
        self, registration: schemas.ToolRegistration, login_hint: str
    ) -> schemas.AuthResult: ...


class RegistrationRepository(Protocol):
    def get_by_id(self, registration_id: str) -> schemas.ToolRegistration: ...


class SubstitutorFactory(Protocol):
    def get_for_tool(
        self, registration: schemas.ToolRegistration
    ) -> VariableSubstitutor: ...


class LaunchAuthenticator:
    """Answers OIDC authentication requests with a signed ``id_token``.

    Checks stop at the first failure, which is raised as one of the
    ``ltix.errors.AuthenticationError`` types.
    """

    def __init__(
        self,
        user_authenticator: UserAuthenticator,
        registrations: RegistrationRepository,
        substitutor_factory: SubstitutorFactory,
        platform_keys: keys.PlatformKeys,
        converter: ClaimMappingConverter | None = None,
        id_token_expiry: int = settings.ID_TOKEN_EXPIRY,
    ) -> None:
        self.user_authenticator = user_authenticator
        self.registrations = registrations
        self.substitutor_factory = substitutor_factory
        self.platform_keys = platform_keys
        self.converter = converter if converter is not None else ClaimMappingConverter()
        self.id_token_expiry = id_token_expiry

    def authenticate(self, request: schemas.AuthenticationRequest) -> messages.LtiMessage:
        logger.info(
            "auth request: client_id=%s, redirect_uri=%s, login_hint=%s",
            request.client_id,
            request.redirect_uri,
            request.login_hint,
        )
        validate_request(request)
        logger.info("auth request statically validated")

        claims = self.decode_message_hint(request.lti_message_hint)
        logger.info("lti_message_hint decoded")

        registration = self.load_registration(claims)
        self.validate_registration(request, registration)
        logger.info("registration loaded: %s", registration.id)

        user = self.authenticate_user(registration, request.login_hint)
        logger.info("user authenticated: %s", user.id)

        claims = self.substitute_custom_claims(claims, registration, user)
        claims = self.merge_user_claims(claims, registration, user)
        logger.info("claims assembled: %s", sorted(claims))

        id_token = self.issue_id_token(claims, request)
        logger.info("id_token issued for %s", request.redirect_uri)

        parameters = {}
        if request.state is not None:
            parameters["state"] = request.state
        parameters["id_token"] = id_token
        return messages.LtiMessage(url=request.redirect_uri, parameters=parameters)

    def decode_message_hint(self, message_hint: str) -> dict[str, Any]:
        if not message_hint:
            raise ValidationError("Invalid lti_message_hint", "lti_message_hint")
        try:
            claims = tokens.verify(message_hint, self.platform_keys.public_key_set())
        except SignatureError as exc:
            raise SignatureError(
                f"Invalid lti_message_hint. {exc.message}", "lti_message_hint"
            ) from exc

        try:
            joserfc.jwt.JWTClaimsRegistry(leeway=30).validate(claims)
        except joserfc.errors.JoseError as exc:
            logger.warning("lti_message_hint claims rejected: %r", exc)
            raise SignatureError(
                f"Invalid lti_message_hint. {exc}", "lti_message_hint"
            ) from exc
        return claims

    def load_registration(self, claims: Mapping[str, Any]) -> schemas.ToolRegistration:
        if not (registration_id := claims.get(messages.TOOL_REGISTRATION_ID_KEY)):
            raise ValidationError(
                "Invalid lti_message_hint. Missing tool registration id.",
                "lti_message_hint",
            )
        try:
            return self.registrations.get_by_id(str(registration_id))
        except LookupError:
            logger.warning("registration not found: %s", registration_id)
            raise AuthenticationFailure(
                f"Cannot find registration id: {registration_id}"
            ) from None

    @staticmethod
    def validate_registration(
        request: schemas.AuthenticationRequest,
        registration: schemas.ToolRegistration,
    ) -> None:
        if request.client_id != registration.client_id:
            raise ValidationError(
                f"Invalid client_id. client_id: {request.client_id}. "
                "Must match the tool registration.",
                "client_id",
            )
        if request.redirect_uri not in registration.redirect_uri_list:
            raise ValidationError(
                f"Invalid redirect_uri. redirect_uri: {request.redirect_uri}. "
                "Must match a redirect URI on the tool registration.",
                "redirect_uri",
            )

    def authenticate_user(
        self, registration: schemas.ToolRegistration, login_hint: str
    ) -> schemas.LtiUser:
        try:
            result = self.user_authenticator.authenticate(registration, login_hint)
        except LookupError:
            result = schemas.AuthResult(successful=False)
        if not result.successful or result.user is None:
            raise AuthenticationFailure(
                f"Error authenticating user: {login_hint}", "login_hint"
            )
        return result.user

    def substitute_custom_claims(
        self,
        claims: dict[str, Any],
        registration: schemas.ToolRegistration,
        user: schemas.LtiUser,
    ) -> dict[str, Any]:
        custom = claims.get(messages.CUSTOM_KEY)
        if not isinstance(custom, Mapping) or not custom:
            return claims
        names = [k for k, v in custom.items() if isinstance(v, str)]
        try:
            substitutor = self.substitutor_factory.get_for_tool(registration)
        except ValueError as exc:
            logger.warning("no substitutor for registration %s: %r", registration.id, exc)
            raise AuthenticationFailure(
                f"Unsupported LTI version: {registration.lti_version}"
            ) from exc
        substituted = substitutor.substitute(
            [custom[k] for k in names],
            ResolveContext(source_data=user.source_data(), user=user),
        )
        return {
            **claims,
            messages.CUSTOM_KEY: {**custom, **dict(zip(names, substituted, strict=True))},
        }

    def merge_user_claims(
        self,
        claims: dict[str, Any],
        registration: schemas.ToolRegistration,
        user: schemas.LtiUser,
    ) -> dict[str, Any]:
        user_claims = self.converter.params_to_claims(user.source_data())
        if registration.send_name != schemas.PrivacySetting.ALWAYS:
            for name in NAME_CLAIMS:
                user_claims.pop(name, None)
            if (ext := user_claims.get(messages.EXT_KEY)) is not None:
                ext.pop(USERNAME_EXT, None)
                if not ext:
                    del user_claims[messages.EXT_KEY]
        if registration.send_email != schemas.PrivacySetting.ALWAYS:
            for name in EMAIL_CLAIMS:
                user_claims.pop(name, None)

        merged = dict(claims)
        for name, value in user_claims.items():
            if value is None:
                continue
            if isinstance(value, Mapping) and isinstance(merged.get(name), Mapping):
                merged[name] = {**merged[name], **value}
            else:
                merged[name] = value
        return merged

    def issue_id_token(
        self, claims: Mapping[str, Any], request: schemas.AuthenticationRequest
    ) -> str:
        now = int(time.time())
        id_token_claims = {
            k: v for k, v in claims.items() if k != messages.TOOL_REGISTRATION_ID_KEY
        }
        id_token_claims |= {
            "nonce": request.nonce,
            "aud": request.client_id,
            "iat": now,
            "exp": now + self.id_token_expiry,
        }
        private_key = self.platform_keys.private_key()
        return tokens.issue(id_token_claims, private_key, private_key.kid)


def validate_request(request: schemas.AuthenticationRequest) -> None:
    """Checks the fields of an auth request that need no other data."""
    for field, required in STATIC_CHECKS:
        if (value := getattr(request, field)) != required:
            raise ValidationError(
                f"Invalid {field}. {field}: {value}. Must be '{required}'.", field
            )
    if not request.nonce:
        raise ValidationError("Invalid nonce. nonce is required.", "nonce")
