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
Application Schemas

Pydantic models for tool registrations, users, keys and the inbound OIDC
authentication request.
"""

import datetime
import enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, SecretStr, field_validator

from . import messages


def make_secret(val: str) -> SecretStr:
    return SecretStr(val)


class PrivacySetting(enum.IntEnum):
    """Tool setting that controls whether a user attribute is shared."""

    NEVER = 0
    ALWAYS = 1
    DELEGATE = 2


LtiVersion = Literal["LTI-1p0", "LTI-2p0", "1.3.0"]


class ToolProxy(BaseModel):
    """Credentials an LTI 2.0 tool registered through its tool proxy."""

    model_config = ConfigDict(frozen=True)

    guid: str
    secret: SecretStr


class ToolRegistration(BaseModel):
    """An LTI tool registered with this platform.

    ``redirect_uris`` holds one URI per line, as entered when the tool was
    registered. This platform uses a single deployment per registration so
    the registration ``id`` doubles as the ``deployment_id``.

    LTI 1.1 launches are signed with ``resource_key`` and ``password`` while
    LTI 2.0 launches use the ``tool_proxy`` credentials.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    client_id: str
    redirect_uris: str = ""
    lti_version: LtiVersion = messages.LTI_VERSION_1P3
    resource_key: str = ""
    password: SecretStr = SecretStr("")
    tool_proxy: ToolProxy | None = None
    send_name: PrivacySetting = PrivacySetting.NEVER
    send_email: PrivacySetting = PrivacySetting.NEVER
    initiate_login_url: str = ""
    tool_url: str = ""
    custom_parameters: str = ""
    enabled_capabilities: tuple[str, ...] = ()

    @field_validator("id", mode="before")
    def str_id(cls, v: str | int) -> str:
        return str(v)

    @property
    def deployment_id(self) -> str:
        return self.id

    @property
    def redirect_uri_list(self) -> list[str]:
        return [u.strip() for u in self.redirect_uris.split("\n") if u.strip()]


class ResourceLink(BaseModel):
    """A placement of a tool in a course."""

    model_config = ConfigDict(frozen=True)

    id: str
    registration_id: str
    title: str
    url: str = ""
    text: str | None = None
    custom_parameters: str = ""

    @field_validator("id", "registration_id", mode="before")
    def str_ids(cls, v: str | int) -> str:
        return str(v)


class LtiUser(BaseModel):
    """The launching user as shared with a tool."""

    id: str
    name: str = ""
    given_name: str = ""
    family_name: str = ""
    email: str = ""
    idnumber: str = ""
    username: str = ""

    @field_validator("id", mode="before")
    def str_id(cls, v: str | int) -> str:
        return str(v)

    def source_data(self) -> dict[str, str]:
        """Returns the user's LTI 1.1 launch parameters.

        Empty attributes are left out so they are never sent to a tool
        and are never used to resolve a substitution variable.
        """
        data = {
            "user_id": self.id,
            "lis_person_name_full": self.name,
            "lis_person_name_given": self.given_name,
            "lis_person_name_family": self.family_name,
            "lis_person_contact_email_primary": self.email,
            "lis_person_sourcedid": self.idnumber,
            "ext_user_username": self.username,
        }
        return {k: v for k, v in data.items() if v}


class PlatformUser(BaseModel):
    """A user logged in to this platform."""

    id: str
    username: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    idnumber: str = ""
    timezone: str = ""
    roles: tuple[str, ...] = ()

    @field_validator("id", mode="before")
    def str_id(cls, v: str | int) -> str:
        return str(v)

    @property
    def full_name(self) -> str:
        return " ".join(n for n in (self.first_name, self.last_name) if n)


class AuthResult(BaseModel):
    successful: bool
    user: LtiUser | None = None


class AuthenticationRequest(BaseModel):
    """OIDC authentication request sent by a tool during a launch.

    https://www.imsglobal.org/spec/security/v1p0/#step-2-authentication-request
    """

    model_config = ConfigDict(extra="ignore")

    scope: str = ""
    response_type: str = ""
    response_mode: str = ""
    client_id: str = ""
    redirect_uri: str = ""
    login_hint: str = ""
    nonce: str | None = None
    state: str | None = None
    prompt: str = ""
    lti_message_hint: str = ""
    lti_deployment_id: str | None = None


class AuthJsonWebKey(BaseModel):
    """JSON Web Key used to sign messages from this platform."""

    kid: str
    data: SecretStr
    valid_from: datetime.datetime
    valid_to: datetime.datetime | None = None

    @field_validator("valid_from", "valid_to", mode="before")
    def tz_aware_dates(cls, v: datetime.datetime | None) -> datetime.datetime | None:
        if v is None:
            return None
        if isinstance(v, str):
            v = datetime.datetime.fromisoformat(v)
        if v.tzinfo is not None and v.tzinfo.utcoffset(None) is not None:
            return v
        return v.replace(tzinfo=datetime.UTC)

    @property
    def is_valid(self) -> bool:
        now = datetime.datetime.now(tz=datetime.UTC)
        if self.valid_from > now:
            return False
        return self.valid_to is None or self.valid_to > now
