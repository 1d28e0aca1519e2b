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
Platform Services

Wires the launch components together. Routes depend on ``platform()`` so
tests can swap in their own ``Platform`` with ``app.dependency_overrides``.
"""

import dataclasses
import functools
import logging

from . import keys, messages, schemas, settings
from .builders import (
    ResourceLinkLaunchRequestBuilder,
    ResourceLinkPayloadBuilder,
    V1p1ResourceLinkLaunchRequestBuilder,
    V2p0ResourceLinkLaunchRequestBuilder,
)
from .claims import ClaimMappingConverter
from .messages import LtiMessage
from .oidc import LaunchAuthenticator
from .registrations import InMemoryRegistrationRepository
from .substitution import VariableSubstitutorFactory
from .users import SessionUserAuthenticator, to_lti_user

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class Platform:
    issuer: str
    platform_keys: keys.PlatformKeys
    registrations: InMemoryRegistrationRepository
    converter: ClaimMappingConverter = dataclasses.field(
        default_factory=ClaimMappingConverter
    )
    substitutor_factory: VariableSubstitutorFactory = dataclasses.field(
        default_factory=VariableSubstitutorFactory
    )

    def authenticator(
        self, platform_user: schemas.PlatformUser | None
    ) -> LaunchAuthenticator:
        """Returns a ``LaunchAuthenticator`` for the logged-in user."""
        return LaunchAuthenticator(
            user_authenticator=SessionUserAuthenticator(platform_user),
            registrations=self.registrations,
            substitutor_factory=self.substitutor_factory,
            platform_keys=self.platform_keys,
            converter=self.converter,
        )

    def login_initiation(
        self, resource_link_id: str, platform_user: schemas.PlatformUser
    ) -> LtiMessage:
        """Returns the message that starts a resource link launch.

        LTI 1.3 tools get a login initiation request. LTI 1.1 and LTI 2.0
        tools get the signed launch itself.

        Raises ``LookupError`` if the resource link or its registration is
        not found.
        """
        resource_link = self.registrations.resource_link_by_id(resource_link_id)
        registration = self.registrations.get_by_id(resource_link.registration_id)
        substitutor = self.substitutor_factory.get_for_tool(registration)

        if registration.lti_version == messages.LTI_VERSION_1P3:
            payload = ResourceLinkPayloadBuilder(
                registration, resource_link, substitutor, converter=self.converter
            )
            return ResourceLinkLaunchRequestBuilder(
                registration,
                resource_link,
                issuer=self.issuer,
                user_id=platform_user.id,
                platform_keys=self.platform_keys,
                roles=platform_user.roles,
                extra_claims=payload.get_claims(),
                vocab=self.converter.vocab,
            ).build_message()

        lti_user = to_lti_user(platform_user, registration)
        payload = ResourceLinkPayloadBuilder(
            registration,
            resource_link,
            substitutor,
            converter=self.converter,
            user=lti_user,
        )
        claims = self.authenticator(platform_user).merge_user_claims(
            payload.get_claims(), registration, lti_user
        )
        if registration.lti_version == messages.LTI_VERSION_2P0:
            builder_class = V2p0ResourceLinkLaunchRequestBuilder
        else:
            builder_class = V1p1ResourceLinkLaunchRequestBuilder
        return builder_class(
            registration,
            resource_link,
            roles=platform_user.roles,
            extra_claims=claims,
            converter=self.converter,
        ).build_message()


@functools.cache
def platform() -> Platform:
    """Returns the platform configured for this environment."""
    if settings.SEED_FILE:
        registrations = InMemoryRegistrationRepository.from_seed_file(
            settings.SEED_FILE
        )
    else:
        logger.warning("LTIX_SEED_FILE is not set, no tools are registered")
        registrations = InMemoryRegistrationRepository()
    return Platform(
        issuer=settings.PLATFORM_ISSUER,
        platform_keys=keys.load_platform_keys(),
        registrations=registrations,
    )
