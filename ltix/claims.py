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
LTI Claim Mapping

Converts launch data between the flat parameters of LTI 1.1/2.0 and the
claims of LTI 1.3.

The mapping is declared once in ``JWT_CLAIM_MAPPING``: each legacy
parameter name maps to a ``ClaimMapping`` describing where the value lives
in an LTI 1.3 message. For example, ``context_title`` lives under the
``title`` key of the ``https://purl.imsglobal.org/spec/lti/claim/context``
claim while ``user_id`` is the top level ``sub`` claim.
"""

import json
import logging
from collections.abc import Callable, Mapping
from types import MappingProxyType
from typing import Any, NamedTuple

from . import messages
from .content_items import convert_content_items_to_legacy
from .vocab import LisVocabConverter

logger = logging.getLogger(__name__)

CUSTOM_PREFIX = "custom_"
EXT_PREFIX = "ext_"


class ClaimMapping(NamedTuple):
    """Location and type of a legacy parameter in an LTI 1.3 message.

    ``group`` decides the shape of the claim:

        None    -> the claim is the bare ``claim`` name (``sub``)
        ""      -> the claim is ``<prefix>/claim/<claim>``
        "<g>"   -> the claim is ``<prefix>/claim/<g>`` and ``claim`` is a
                   key inside of it

    ``suffix`` selects the namespace of an LTI Advantage service, so a
    ``suffix`` of ``ags`` gives ``https://purl.imsglobal.org/spec/lti-ags``.
    """

    claim: str
    group: str | None
    suffix: str = ""
    is_array: bool = False
    value_type: str = "string"

    @property
    def claim_path(self) -> str:
        if self.group is None:
            return self.claim
        prefix = messages.CLAIM_PREFIX
        if self.suffix:
            prefix += f"-{self.suffix}"
        return f"{prefix}/claim/{self.group or self.claim}"

    def coerce(self, value: Any) -> Any:
        """Returns ``value`` converted from its flat parameter form."""
        if self.is_array:
            return sorted(str(value).split(","))
        if self.value_type == "boolean":
            return value == "true"
        return value


def _dl(
    claim: str, *, is_array: bool = False, value_type: str = "string"
) -> ClaimMapping:
    return ClaimMapping(claim, "deep_linking_settings", "dl", is_array, value_type)


JWT_CLAIM_MAPPING: Mapping[str, ClaimMapping] = MappingProxyType(
    {
        "accept_copy_advice": _dl("accept_copy_advice", value_type="boolean"),
        "accept_media_types": _dl("accept_media_types", is_array=True),
        "accept_multiple": _dl("accept_multiple", value_type="boolean"),
        "accept_presentation_document_targets": _dl(
            "accept_presentation_document_targets", is_array=True
        ),
        "accept_types": _dl("accept_types", is_array=True),
        "accept_unsigned": _dl("accept_unsigned", value_type="boolean"),
        "auto_create": _dl("auto_create", value_type="boolean"),
        "can_confirm": _dl("can_confirm", value_type="boolean"),
        "content_item_return_url": _dl("deep_link_return_url"),
        "content_items": ClaimMapping("content_items", "", "dl", is_array=True),
        "data": _dl("data"),
        "text": _dl("text"),
        "title": _dl("title"),
        "lti_msg": ClaimMapping("msg", "", "dl"),
        "lti_log": ClaimMapping("log", "", "dl"),
        "lti_errormsg": ClaimMapping("errormsg", "", "dl"),
        "lti_errorlog": ClaimMapping("errorlog", "", "dl"),
        "context_id": ClaimMapping("id", "context"),
        "context_label": ClaimMapping("label", "context"),
        "context_title": ClaimMapping("title", "context"),
        "context_type": ClaimMapping("type", "context", is_array=True),
        "launch_presentation_css_url": ClaimMapping("css_url", "launch_presentation"),
        "launch_presentation_document_target": ClaimMapping(
            "document_target", "launch_presentation"
        ),
        "launch_presentation_height": ClaimMapping("height", "launch_presentation"),
        "launch_presentation_locale": ClaimMapping("locale", "launch_presentation"),
        "launch_presentation_return_url": ClaimMapping(
            "return_url", "launch_presentation"
        ),
        "launch_presentation_width": ClaimMapping("width", "launch_presentation"),
        "lis_course_offering_sourcedid": ClaimMapping(
            "course_offering_sourcedid", "lis"
        ),
        "lis_course_section_sourcedid": ClaimMapping(
            "course_section_sourcedid", "lis"
        ),
        "lis_person_contact_email_primary": ClaimMapping("email", None),
        "lis_person_name_family": ClaimMapping("family_name", None),
        "lis_person_name_full": ClaimMapping("name", None),
        "lis_person_name_given": ClaimMapping("given_name", None),
        "lis_person_sourcedid": ClaimMapping("person_sourcedid", "lis"),
        "user_id": ClaimMapping("sub", None),
        "user_image": ClaimMapping("picture", None),
        "roles": ClaimMapping("roles", "", is_array=True),
        "role_scope_mentor": ClaimMapping("role_scope_mentor", "", is_array=True),
        "deployment_id": ClaimMapping("deployment_id", ""),
        "lti_message_type": ClaimMapping("message_type", ""),
        "lti_version": ClaimMapping("version", ""),
        "resource_link_description": ClaimMapping("description", "resource_link"),
        "resource_link_id": ClaimMapping("id", "resource_link"),
        "resource_link_title": ClaimMapping("title", "resource_link"),
        "tool_consumer_info_product_family_code": ClaimMapping(
            "product_family_code", "tool_platform"
        ),
        "tool_consumer_info_version": ClaimMapping("version", "tool_platform"),
        "tool_consumer_instance_contact_email": ClaimMapping(
            "contact_email", "tool_platform"
        ),
        "tool_consumer_instance_description": ClaimMapping(
            "description", "tool_platform"
        ),
        "tool_consumer_instance_guid": ClaimMapping("guid", "tool_platform"),
        "tool_consumer_instance_name": ClaimMapping("name", "tool_platform"),
        "tool_consumer_instance_url": ClaimMapping("url", "tool_platform"),
        "for_user_id": ClaimMapping("user_id", "for_user"),
        "lis_result_sourcedid": ClaimMapping(
            "lis_result_sourcedid", "basicoutcome", "bo"
        ),
        "lis_outcome_service_url": ClaimMapping(
            "lis_outcome_service_url", "basicoutcome", "bo"
        ),
        "custom_gradebookservices_scope": ClaimMapping(
            "scope", "endpoint", "ags", is_array=True
        ),
        "custom_lineitems_url": ClaimMapping("lineitems", "endpoint", "ags"),
        "custom_lineitem_url": ClaimMapping("lineitem", "endpoint", "ags"),
        "custom_context_memberships_v2_url": ClaimMapping(
            "context_memberships_url", "namesroleservice", "nrps"
        ),
        "custom_context_memberships_versions": ClaimMapping(
            "service_versions", "namesroleservice", "nrps", is_array=True
        ),
    }
)

#: LTI 1.1/2.0 ``lti_message_type`` => LTI 1.3 message type
MESSAGE_TYPE_MAPPING: Mapping[str, str] = MappingProxyType(
    {
        "basic-lti-launch-request": "LtiResourceLinkRequest",
        "ContentItemSelectionRequest": "LtiDeepLinkingRequest",
        "ContentItemSelection": "LtiDeepLinkingResponse",
        "LtiSubmissionReviewRequest": "LtiSubmissionReviewRequest",
    }
)


class ClaimMappingConverter:
    """Converts between LTI 1.1/2.0 parameters and LTI 1.3 claims.

    Neither direction raises for parameters or claims it does not know
    about, they are left out of the result instead. Both directions return
    new mappings and leave their input untouched.
    """

    def __init__(
        self,
        claim_mapping: Mapping[str, ClaimMapping] = JWT_CLAIM_MAPPING,
        message_types: Mapping[str, str] = MESSAGE_TYPE_MAPPING,
        vocab: LisVocabConverter | None = None,
    ) -> None:
        self.claim_mapping = claim_mapping
        self.message_types = message_types
        self.legacy_message_types = {v: k for k, v in message_types.items()}
        self.vocab = vocab if vocab is not None else LisVocabConverter()
        self._reverse_mapping = self._build_reverse_mapping(claim_mapping)

    @staticmethod
    def _build_reverse_mapping(
        claim_mapping: Mapping[str, ClaimMapping],
    ) -> Mapping[str, str | Mapping[str, str]]:
        """Returns a claim path => legacy name index.

        Grouped claims map to a nested ``leaf => legacy name`` index. If two
        legacy names share the same location the later one wins.
        """
        reverse: dict[str, Any] = {}
        for legacy_name, mapping in claim_mapping.items():
            if mapping.group:
                reverse.setdefault(mapping.claim_path, {})[mapping.claim] = legacy_name
            else:
                reverse[mapping.claim_path] = legacy_name
        return MappingProxyType(
            {
                k: MappingProxyType(v) if isinstance(v, dict) else v
                for k, v in reverse.items()
            }
        )

    def params_to_claims(self, params: Mapping[str, Any]) -> dict[str, Any]:
        """Returns the LTI 1.3 claims for a set of LTI 1.1/2.0 parameters."""
        claims: dict[str, Any] = {}
        for name, value in params.items():
            if (mapping := self.claim_mapping.get(name)) is not None:
                value = mapping.coerce(value)
                if mapping.group:
                    claims.setdefault(mapping.claim_path, {})[mapping.claim] = value
                else:
                    claims[mapping.claim_path] = value
            elif name.startswith(CUSTOM_PREFIX):
                claim = claims.setdefault(messages.CUSTOM_KEY, {})
                claim[name.removeprefix(CUSTOM_PREFIX)] = value
            elif name.startswith(EXT_PREFIX):
                claim = claims.setdefault(messages.EXT_KEY, {})
                claim[name.removeprefix(EXT_PREFIX)] = value
            else:
                logger.debug("params_to_claims: dropping unmapped param %s", name)

        claims = self._vocab_to_modern(claims)
        return self._message_type_to_modern(claims)

    def claims_to_params(self, claims: Mapping[str, Any]) -> dict[str, Any]:
        """Returns the LTI 1.1/2.0 parameters for a set of LTI 1.3 claims."""
        claims = self._vocab_to_legacy(claims)
        claims = self._message_type_to_legacy(claims)

        params: dict[str, Any] = {}
        for claim, value in claims.items():
            target = self._reverse_mapping.get(claim)
            if isinstance(target, str):
                params[target] = _flatten(value)
            elif target is not None:
                if not isinstance(value, Mapping):
                    logger.debug("claims_to_params: %s is not an object", claim)
                    continue
                for leaf, leaf_value in value.items():
                    if (name := target.get(leaf)) is not None:
                        params[name] = _flatten(leaf_value)
            elif claim == messages.CUSTOM_KEY and isinstance(value, Mapping):
                params.update({f"{CUSTOM_PREFIX}{k}": v for k, v in value.items()})
            elif claim == messages.EXT_KEY and isinstance(value, Mapping):
                params.update({f"{EXT_PREFIX}{k}": v for k, v in value.items()})
            else:
                logger.debug("claims_to_params: dropping unmapped claim %s", claim)

        if "content_items" in params:
            params["content_items"] = convert_content_items_to_legacy(
                json.dumps(params["content_items"])
            )
        return params

    def _vocab_to_modern(self, claims: dict[str, Any]) -> dict[str, Any]:
        return self._convert_vocab(
            claims,
            self.vocab.to_modern_roles,
            self.vocab.to_modern_context_types,
        )

    def _vocab_to_legacy(self, claims: Mapping[str, Any]) -> dict[str, Any]:
        return self._convert_vocab(
            claims,
            self.vocab.to_legacy_roles,
            self.vocab.to_legacy_context_types,
        )

    @staticmethod
    def _convert_vocab(
        claims: Mapping[str, Any],
        convert_roles: Callable[[list[Any]], list[str | None]],
        convert_context_types: Callable[[list[Any]], list[str | None]],
    ) -> dict[str, Any]:
        claims = dict(claims)
        context = claims.get(messages.CONTEXT_KEY)
        if isinstance(context, Mapping) and context.get("type") is not None:
            context_types = _as_list(context["type"])
            claims[messages.CONTEXT_KEY] = {
                **context,
                "type": convert_context_types(context_types),
            }
        if claims.get(messages.ROLES_KEY) is not None:
            claims[messages.ROLES_KEY] = convert_roles(
                _as_list(claims[messages.ROLES_KEY])
            )
        return claims

    def _message_type_to_modern(self, claims: dict[str, Any]) -> dict[str, Any]:
        message_type = claims.get(messages.MESSAGE_TYPE_KEY)
        if message_type in self.message_types:
            claims[messages.MESSAGE_TYPE_KEY] = self.message_types[message_type]
        return claims

    def _message_type_to_legacy(self, claims: dict[str, Any]) -> dict[str, Any]:
        message_type = claims.get(messages.MESSAGE_TYPE_KEY)
        if message_type in self.legacy_message_types:
            claims[messages.MESSAGE_TYPE_KEY] = self.legacy_message_types[message_type]
        return claims


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, list | tuple):
        return list(value)
    return [value]


def _flatten(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, list | tuple):
        if value and all(isinstance(v, Mapping) for v in value):
            # content items stay structured until they are JSON encoded
            return list(value)
        return ",".join(str(_flatten(v)) for v in value if v is not None)
    return value
