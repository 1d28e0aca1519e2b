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

import unittest

from ltix import schemas
from ltix.users import SessionUserAuthenticator

ALWAYS = schemas.PrivacySetting.ALWAYS
NEVER = schemas.PrivacySetting.NEVER
DELEGATE = schemas.PrivacySetting.DELEGATE


class SessionUserAuthenticatorTestCase(unittest.TestCase):
    def setUp(self):
        self.user = schemas.PlatformUser(
            id=340,
            username="kermit",
            first_name="Kermit",
            last_name="DaFrog",
            email="kermit@example.com",
            idnumber="KDF-340",
        )

    def registration(self, send_name, send_email):
        return schemas.ToolRegistration(
            id=1, client_id="123456-abcd", send_name=send_name, send_email=send_email
        )

    def test_authenticate(self):
        result = SessionUserAuthenticator(self.user).authenticate(
            self.registration(ALWAYS, ALWAYS), "340"
        )
        self.assertTrue(result.successful)
        self.assertEqual(
            result.user,
            schemas.LtiUser(
                id="340",
                name="Kermit DaFrog",
                given_name="Kermit",
                family_name="DaFrog",
                email="kermit@example.com",
                idnumber="KDF-340",
                username="kermit",
            ),
        )

    def test_no_session_user(self):
        result = SessionUserAuthenticator(None).authenticate(
            self.registration(ALWAYS, ALWAYS), "340"
        )
        self.assertFalse(result.successful)
        self.assertIsNone(result.user)

    def test_login_hint_must_match(self):
        with self.assertLogs("ltix.users", level="WARNING"):
            result = SessionUserAuthenticator(self.user).authenticate(
                self.registration(ALWAYS, ALWAYS), "34"
            )
        self.assertFalse(result.successful)

    def test_never_send_name(self):
        result = SessionUserAuthenticator(self.user).authenticate(
            self.registration(NEVER, ALWAYS), "340"
        )
        user = result.user
        self.assertEqual((user.name, user.given_name, user.family_name), ("", "", ""))
        self.assertEqual(user.username, "")
        self.assertEqual(user.email, "kermit@example.com")
        self.assertEqual(user.idnumber, "KDF-340")
        self.assertNotIn("lis_person_name_full", user.source_data())

    def test_never_send_email(self):
        user = (
            SessionUserAuthenticator(self.user)
            .authenticate(self.registration(ALWAYS, NEVER), "340")
            .user
        )
        self.assertEqual(user.email, "")
        self.assertEqual(user.name, "Kermit DaFrog")

    def test_delegate_keeps_attributes(self):
        user = (
            SessionUserAuthenticator(self.user)
            .authenticate(self.registration(DELEGATE, DELEGATE), "340")
            .user
        )
        self.assertEqual(user.name, "Kermit DaFrog")
        self.assertEqual(user.email, "kermit@example.com")

    def test_source_data(self):
        user = schemas.LtiUser(id=340, name="Kermit DaFrog", username="kermit")
        self.assertDictEqual(
            user.source_data(),
            {
                "user_id": "340",
                "lis_person_name_full": "Kermit DaFrog",
                "ext_user_username": "kermit",
            },
        )


if __name__ == "__main__":
    unittest.main()
