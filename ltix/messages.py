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
LTI Messages

Claim names used in LTI 1.3 messages and the ``LtiMessage`` that is sent
from the platform to a tool by way of the user's browser.
"""

from typing import Any

from pydantic import BaseModel

from . import templates

LTI_VERSION_1P0 = "LTI-1p0"
LTI_VERSION_2P0 = "LTI-2p0"
LTI_VERSION_1P3 = "1.3.0"

CLAIM_PREFIX = "https://purl.imsglobal.org/spec/lti"

MESSAGE_TYPE_KEY = f"{CLAIM_PREFIX}/claim/message_type"
VERSION_KEY = f"{CLAIM_PREFIX}/claim/version"
DEPLOYMENT_ID_KEY = f"{CLAIM_PREFIX}/claim/deployment_id"
TARGET_LINK_URI_KEY = f"{CLAIM_PREFIX}/claim/target_link_uri"
RESOURCE_LINK_KEY = f"{CLAIM_PREFIX}/claim/resource_link"
ROLES_KEY = f"{CLAIM_PREFIX}/claim/roles"
CONTEXT_KEY = f"{CLAIM_PREFIX}/claim/context"
CUSTOM_KEY = f"{CLAIM_PREFIX}/claim/custom"
EXT_KEY = f"{CLAIM_PREFIX}/claim/ext"
LIS_KEY = f"{CLAIM_PREFIX}/claim/lis"

# Platform specific claim that ties a message hint to a tool registration
TOOL_REGISTRATION_ID_KEY = "tool_registration_id"

MESSAGE_TYPE_RESOURCE_LINK = "LtiResourceLinkRequest"


class LtiMessage(BaseModel):
    """A message sent to a tool as an auto-submitting HTML form."""

    url: str
    parameters: dict[str, Any]

    def to_html_form(self) -> str:
        return templates.form_post_html(self.url, self.parameters)
