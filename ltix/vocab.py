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
LIS Vocabulary

Converts roles and context types between the LIS v1 URN vocabulary used
by LTI 1.1/2.0 launches and the LIS v2 URI vocabulary used by LTI 1.3.

Context (membership) roles and context types may also be given as simple
handles, such as ``Instructor``, ``Learner/GuestLearner`` or
``CourseSection``.
"""

import logging
from collections.abc import Iterable, Mapping
from types import MappingProxyType

logger = logging.getLogger(__name__)

V1_SYSTEM_ROLE_PREFIX = "urn:lti:sysrole:ims/lis/"
V1_INSTITUTION_ROLE_PREFIX = "urn:lti:instrole:ims/lis/"
V1_CONTEXT_ROLE_PREFIX = "urn:lti:role:ims/lis/"
V1_CONTEXT_TYPE_PREFIX = "urn:lti:context-type:ims/lis/"

V2_SYSTEM_ROLE_PREFIX = "http://purl.imsglobal.org/vocab/lis/v2/system/person#"
V2_INSTITUTION_ROLE_PREFIX = (
    "http://purl.imsglobal.org/vocab/lis/v2/institution/person#"
)
V2_DEPRECATED_PERSON_PREFIX = "http://purl.imsglobal.org/vocab/lis/v2/person#"
V2_MEMBERSHIP_PREFIX = "http://purl.imsglobal.org/vocab/lis/v2/membership"
V2_CONTEXT_TYPE_PREFIX = "http://purl.imsglobal.org/vocab/lis/v2/course#"

_SYSTEM_ROLES = (
    "SysAdmin",
    "SysSupport",
    "Creator",
    "AccountAdmin",
    "User",
    "Administrator",
    "None",
)

_INSTITUTION_ROLES = (
    "Student",
    "Faculty",
    "Member",
    "Learner",
    "Instructor",
    "Mentor",
    "Staff",
    "Alumni",
    "ProspectiveStudent",
    "Guest",
    "Other",
    "Administrator",
    "Observer",
    "None",
)

# principal context role => sub-roles
_CONTEXT_ROLES: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        "Learner": (
            "Learner",
            "NonCreditLearner",
            "GuestLearner",
            "ExternalLearner",
            "Instructor",
        ),
        "Instructor": (
            "PrimaryInstructor",
            "Lecturer",
            "GuestInstructor",
            "ExternalInstructor",
        ),
        "ContentDeveloper": (
            "ContentDeveloper",
            "Librarian",
            "ContentExpert",
            "ExternalContentExpert",
        ),
        "Member": ("Member",),
        "Manager": (
            "AreaManager",
            "CourseCoordinator",
            "Observer",
            "ExternalObserver",
        ),
        "Mentor": (
            "Mentor",
            "Reviewer",
            "Advisor",
            "Auditor",
            "Tutor",
            "LearningFacilitator",
            "ExternalMentor",
            "ExternalReviewer",
            "ExternalAdvisor",
            "ExternalAuditor",
            "ExternalTutor",
            "ExternalLearningFacilitator",
        ),
        "Administrator": (
            "Administrator",
            "Support",
            "Developer",
            "SystemAdministrator",
            "ExternalSystemAdministrator",
            "ExternalDeveloper",
            "ExternalSupport",
        ),
    }
)

# LIS v1 lists TeachingAssistant as a principal role, LIS v2 files the same
# roles under Instructor.
_TEACHING_ASSISTANT_ROLES = (
    "TeachingAssistant",
    "TeachingAssistantSection",
    "TeachingAssistantSectionAssociation",
    "TeachingAssistantOffering",
    "TeachingAssistantTemplate",
    "TeachingAssistantGroup",
    "Grader",
)

_CONTEXT_TYPES = ("CourseTemplate", "CourseOffering", "CourseSection", "Group")


def _build_roles_map() -> dict[str, str]:
    roles = {}
    for name in _SYSTEM_ROLES:
        roles[V1_SYSTEM_ROLE_PREFIX + name] = V2_SYSTEM_ROLE_PREFIX + name
    for name in _INSTITUTION_ROLES:
        roles[V1_INSTITUTION_ROLE_PREFIX + name] = V2_INSTITUTION_ROLE_PREFIX + name
    for principal in _CONTEXT_ROLES:
        roles[V1_CONTEXT_ROLE_PREFIX + principal] = (
            f"{V2_MEMBERSHIP_PREFIX}#{principal}"
        )
    for principal, sub_roles in _CONTEXT_ROLES.items():
        for sub_role in sub_roles:
            roles[f"{V1_CONTEXT_ROLE_PREFIX}{principal}/{sub_role}"] = (
                f"{V2_MEMBERSHIP_PREFIX}/{principal}#{sub_role}"
            )
    roles[V1_CONTEXT_ROLE_PREFIX + "TeachingAssistant"] = (
        f"{V2_MEMBERSHIP_PREFIX}/Instructor#SecondaryInstructor"
    )
    for sub_role in _TEACHING_ASSISTANT_ROLES:
        roles[f"{V1_CONTEXT_ROLE_PREFIX}TeachingAssistant/{sub_role}"] = (
            f"{V2_MEMBERSHIP_PREFIX}/Instructor#{sub_role}"
        )
    return roles


#: LIS v1 role URN => LIS v2 role URI
V1_TO_V2_ROLES: Mapping[str, str] = MappingProxyType(_build_roles_map())

#: LIS v2 roles that have no LIS v1 equivalent
V2_ONLY_ROLES: tuple[str, ...] = (
    f"{V2_MEMBERSHIP_PREFIX}/Manager#Manager",
    f"{V2_MEMBERSHIP_PREFIX}#Officer",
    f"{V2_MEMBERSHIP_PREFIX}/Officer#Chair",
    f"{V2_MEMBERSHIP_PREFIX}/Officer#Communications",
    f"{V2_MEMBERSHIP_PREFIX}/Officer#Secretary",
    f"{V2_MEMBERSHIP_PREFIX}/Officer#Treasurer",
    f"{V2_MEMBERSHIP_PREFIX}/Officer#Vice-Chair",
)

#: LIS v1 context type URN => LIS v2 context type URI
V1_TO_V2_CONTEXT_TYPES: Mapping[str, str] = MappingProxyType(
    {V1_CONTEXT_TYPE_PREFIX + t: V2_CONTEXT_TYPE_PREFIX + t for t in _CONTEXT_TYPES}
)


class LisVocabConverter:
    """Converts roles and context types between LIS vocabularies.

    The lookup tables are built once when the converter is created and are
    never modified afterward, so a single instance can be shared freely.
    Every method returns a new list of the same length as its input, with
    ``None`` in place of any value that could not be converted.
    """

    def __init__(
        self,
        roles_map: Mapping[str, str] = V1_TO_V2_ROLES,
        v2_only_roles: Iterable[str] = V2_ONLY_ROLES,
        context_types_map: Mapping[str, str] = V1_TO_V2_CONTEXT_TYPES,
    ) -> None:
        v2_to_v1 = {v2: v1 for v1, v2 in roles_map.items()}
        context_handles = {
            v1.removeprefix(V1_CONTEXT_ROLE_PREFIX): v1
            for v1 in roles_map
            if v1.startswith(V1_CONTEXT_ROLE_PREFIX)
        }

        self._to_v1_roles: Mapping[str, str] = MappingProxyType(
            {
                **v2_to_v1,
                **context_handles,
                **{v1: v1 for v1 in roles_map},
            }
        )
        self._to_v2_roles: Mapping[str, str] = MappingProxyType(
            {
                **roles_map,
                **{h: roles_map[v1] for h, v1 in context_handles.items()},
                **{v2: v2 for v2 in roles_map.values()},
                **{v2: v2 for v2 in v2_only_roles},
            }
        )

        ct_handles = {
            v1.removeprefix(V1_CONTEXT_TYPE_PREFIX): v1 for v1 in context_types_map
        }
        self._to_v1_context_types: Mapping[str, str] = MappingProxyType(
            {
                **{v2: v1 for v1, v2 in context_types_map.items()},
                **ct_handles,
                **{v1: v1 for v1 in context_types_map},
            }
        )
        self._to_v2_context_types: Mapping[str, str] = MappingProxyType(
            {
                **context_types_map,
                **{h: context_types_map[v1] for h, v1 in ct_handles.items()},
                **{v2: v2 for v2 in context_types_map.values()},
            }
        )

    def to_legacy_roles(self, roles: Iterable[str | None]) -> list[str | None]:
        """Converts roles to their LIS v1 URN form."""
        return [_lookup(self._to_v1_roles, r) for r in roles]

    def to_modern_roles(
        self,
        roles: Iterable[str | None],
        use_deprecated_prefixes: bool = False,
    ) -> list[str | None]:
        """Converts roles to their LIS v2 URI form.

        Some tools only understand the ``.../lis/v2/person#`` prefix that
        earlier drafts used for system and institution roles. Setting
        ``use_deprecated_prefixes`` rewrites those roles to that form.
        """
        converted = [_lookup(self._to_v2_roles, r) for r in roles]
        if use_deprecated_prefixes:
            converted = [_deprecated_prefix(r) for r in converted]
        return converted

    def to_legacy_context_types(
        self, context_types: Iterable[str | None]
    ) -> list[str | None]:
        return [_lookup(self._to_v1_context_types, c) for c in context_types]

    def to_modern_context_types(
        self, context_types: Iterable[str | None]
    ) -> list[str | None]:
        return [_lookup(self._to_v2_context_types, c) for c in context_types]


def _lookup(table: Mapping[str, str], value: str | None) -> str | None:
    if not value:
        return None
    return table.get(value)


def _deprecated_prefix(role: str | None) -> str | None:
    if role is None:
        return None
    for prefix in (V2_SYSTEM_ROLE_PREFIX, V2_INSTITUTION_ROLE_PREFIX):
        if role.startswith(prefix):
            return V2_DEPRECATED_PERSON_PREFIX + role.removeprefix(prefix)
    return role
