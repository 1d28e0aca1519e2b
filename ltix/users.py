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
Launch user authentication
"""

import logging

from . import schemas

logger = logging.getLogger(__name__)


class SessionUserAuthenticator:
    """Authenticates the ``login_hint`` against the logged-in platform user."""

    def __init__(self, platform_user: schemas.PlatformUser | None) -> None:
        self.platform_user = platform_user

    def authenticate(
        self, registration: schemas.ToolRegistration, login_hint: str
    ) -> schemas.AuthResult:
        if (user := self.platform_user) is None:
            logger.warning("no session user for login_hint %s", login_hint)
            return schemas.AuthResult(successful=False)
        if login_hint != user.id:
            logger.warning(
                "login_hint %s does not match session user %s", login_hint, user.id
            )
            return schemas.AuthResult(successful=False)
        return schemas.AuthResult(
            successful=True, user=to_lti_user(user, registration)
        )


def to_lti_user(
    user: schemas.PlatformUser, registration: schemas.ToolRegistration
) -> schemas.LtiUser:
    """Returns the ``LtiUser`` that ``registration`` is allowed to see."""
    lti_user = schemas.LtiUser(
        id=user.id,
        name=user.full_name,
        given_name=user.first_name,
        family_name=user.last_name,
        email=user.email,
        idnumber=user.idnumber,
        username=user.username,
    )
    anonymize = {}
    if registration.send_name == schemas.PrivacySetting.NEVER:
        anonymize |= {"name": "", "given_name": "", "family_name": "", "username": ""}
    if registration.send_email == schemas.PrivacySetting.NEVER:
        anonymize["email"] = ""
    return lti_user.model_copy(update=anonymize)
