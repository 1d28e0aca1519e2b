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
Variable Substitution

Tools may configure custom parameters whose values are substitution
variables, for example ``subContainingPII=$Person.name.full``. Before a
launch is sent the variables are replaced with the matching value from the
launch data. Variables that can not be resolved are sent unchanged.

LTI 1.3 launches resolve variables twice. The first pass happens when the
``lti_message_hint`` is built and the user is not yet known, the second
happens once the user has authenticated. See ``ltix.oidc``.

https://www.imsglobal.org/spec/lti/v1p3/#customproperty
"""

import dataclasses
import logging
from collections.abc import Iterable, Mapping, Sequence
from types import MappingProxyType
from typing import Any, Protocol

from . import messages, schemas

logger = logging.getLogger(__name__)

#: Substitution variable => launch parameter name, or ``$OBJECT->property``
CAPABILITIES: Mapping[str, str] = MappingProxyType(
    {
        "Context.id": "context_id",
        "Context.type": "context_type",
        "Context.title": "context_title",
        "Context.label": "context_label",
        "Context.sourcedId": "lis_course_section_sourcedid",
        "CourseOffering.sourcedId": "lis_course_offering_sourcedid",
        "CourseSection.title": "context_title",
        "CourseSection.label": "context_label",
        "CourseSection.sourcedId": "lis_course_section_sourcedid",
        "CourseSection.longDescription": "$COURSE->summary",
        "CourseSection.timeFrame.begin": "$COURSE->startdate",
        "CourseSection.timeFrame.end": "$COURSE->enddate",
        "ResourceLink.id": "resource_link_id",
        "ResourceLink.title": "resource_link_title",
        "ResourceLink.description": "resource_link_description",
        "User.id": "user_id",
        "User.username": "$USER->username",
        "User.image": "user_image",
        "Person.name.full": "lis_person_name_full",
        "Person.name.given": "lis_person_name_given",
        "Person.name.family": "lis_person_name_family",
        "Person.email.primary": "lis_person_contact_email_primary",
        "Person.sourcedId": "lis_person_sourcedid",
        "Person.address.timezone": "$USER->timezone",
        "Person.webaddress": "$USER->url",
        "Membership.role": "roles",
        "Result.sourcedId": "lis_result_sourcedid",
        "BasicOutcome.sourcedId": "lis_result_sourcedid",
        "BasicOutcome.url": "lis_outcome_service_url",
        "ToolConsumerInstance.guid": "tool_consumer_instance_guid",
        "ToolConsumerInstance.name": "tool_consumer_instance_name",
        "Message.documentTarget": "launch_presentation_document_target",
        "Message.locale": "launch_presentation_locale",
        "Message.returnUrl": "launch_presentation_return_url",
    }
)


@dataclasses.dataclass(frozen=True)
class ResolveContext:
    """Data available to resolve substitution variables.

    ``source_data`` holds LTI 1.1 style launch parameters. ``objects`` holds
    platform records, such as ``USER`` or ``COURSE``, for variables that are
    read from an attribute of a record.
    """

    source_data: Mapping[str, Any] = dataclasses.field(default_factory=dict)
    user: schemas.LtiUser | None = None
    objects: Mapping[str, Any] = dataclasses.field(default_factory=dict)


class SubstitutionPolicy(Protocol):
    def should_substitute(self, value: str) -> bool: ...


class VariableResolver(Protocol):
    def resolve(self, value: str, context: ResolveContext) -> str | None: ...


class SubstituteAllPolicy:
    def should_substitute(self, value: str) -> bool:
        return True


class EnabledCapabilitiesPolicy:
    """Only substitutes the variables a tool has been granted (LTI 2.0)."""

    def __init__(self, capabilities: Iterable[str]) -> None:
        self.capabilities = frozenset(c.strip() for c in capabilities)

    def should_substitute(self, value: str) -> bool:
        return value.startswith("$") and value[1:] in self.capabilities


class MapVariableResolver:
    """Resolves variables that name a launch parameter."""

    def __init__(self, capabilities: Mapping[str, str] = CAPABILITIES) -> None:
        self.capabilities = {
            k: v for k, v in capabilities.items() if not v.startswith("$")
        }

    def resolve(self, value: str, context: ResolveContext) -> str | None:
        if not value.startswith("$"):
            return None
        if (name := self.capabilities.get(value[1:])) is None:
            return None
        if (resolved := context.source_data.get(name)) is None:
            return None
        if isinstance(resolved, list | tuple):
            return ",".join(str(v) for v in resolved)
        return str(resolved)


class ObjectPropertyResolver:
    """Resolves variables that name an attribute of a platform record.

    ``USER`` falls back to the context ``user`` when no other ``USER`` record
    was supplied.
    """

    def __init__(self, capabilities: Mapping[str, str] = CAPABILITIES) -> None:
        self.capabilities: dict[str, tuple[str, str]] = {}
        for k, v in capabilities.items():
            if v.startswith("$") and "->" in v:
                obj_name, prop = v[1:].split("->", 1)
                self.capabilities[k] = (obj_name, prop)

    def resolve(self, value: str, context: ResolveContext) -> str | None:
        if not value.startswith("$"):
            return None
        if (target := self.capabilities.get(value[1:])) is None:
            return None
        obj_name, prop = target
        obj = context.objects.get(obj_name)
        if obj is None and obj_name == "USER":
            obj = context.user
        if obj is None:
            return None
        resolved = getattr(obj, prop, None)
        if resolved is None or resolved == "":
            return None
        return str(resolved)


class ChainResolver:
    """Returns the first value resolved by its list of resolvers."""

    def __init__(self, resolvers: Sequence[VariableResolver]) -> None:
        self.resolvers = tuple(resolvers)

    def resolve(self, value: str, context: ResolveContext) -> str | None:
        for resolver in self.resolvers:
            if (resolved := resolver.resolve(value, context)) is not None:
                return resolved
        return None


class VariableSubstitutor:
    def __init__(self, policy: SubstitutionPolicy, resolver: VariableResolver) -> None:
        self.policy = policy
        self.resolver = resolver

    def substitute(self, values: Sequence[str], context: ResolveContext) -> list[str]:
        """Returns ``values`` with every resolvable variable replaced."""
        substituted = []
        for value in values:
            if self.policy.should_substitute(value):
                resolved = self.resolver.resolve(value, context)
                substituted.append(value if resolved is None else resolved)
            else:
                substituted.append(value)
        return substituted


class VariableSubstitutorFactory:
    """Provides the ``VariableSubstitutor`` suited to a tool registration."""

    def __init__(self, capabilities: Mapping[str, str] = CAPABILITIES) -> None:
        self.resolver = ChainResolver(
            [
                MapVariableResolver(capabilities),
                ObjectPropertyResolver(capabilities),
            ]
        )

    def get_for_tool(
        self, registration: schemas.ToolRegistration
    ) -> VariableSubstitutor:
        match registration.lti_version:
            case messages.LTI_VERSION_1P0 | messages.LTI_VERSION_1P3:
                return VariableSubstitutor(SubstituteAllPolicy(), self.resolver)
            case messages.LTI_VERSION_2P0:
                return VariableSubstitutor(
                    EnabledCapabilitiesPolicy(registration.enabled_capabilities),
                    self.resolver,
                )
        raise ValueError("UNSUPPORTED_LTI_VERSION", registration.lti_version)
