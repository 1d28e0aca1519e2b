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

import html
import re
import unittest

from fastapi import status
from fastapi.testclient import TestClient

from ltix import keys, schemas, security, services, settings, tokens
from ltix.app import app
from ltix.registrations import InMemoryRegistrationRepository
from tests import TEST_DATA_DIR

REDIRECT_URI = "https://tool.example.com/lti/redirecturi"
PREFIX = settings.PATH_PREFIX


def form_inputs(page: str) -> dict[str, str]:
    return {
        html.unescape(name): html.unescape(value)
        for name, value in re.findall(r'name="([^"]+)" value="([^"]*)"', page)
    }


class RoutesTestCase(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls.platform = services.Platform(
            issuer="https://platform.example.com",
            platform_keys=keys.PlatformKeys([keys.generate_private_key("platform")]),
            registrations=InMemoryRegistrationRepository.from_seed_file(
                TEST_DATA_DIR / "seed.json"
            ),
        )

    def setUp(self) -> None:
        app.dependency_overrides[services.platform] = lambda: self.platform
        self.client = TestClient(app)
        self.user = schemas.PlatformUser(
            id=340, username="kermit", first_name="Kermit", last_name="DaFrog"
        )

    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    def login(self):
        self.client.cookies.set(
            settings.SESSION_COOKIE_NAME, security.create_session_token(self.user)
        )


class HealthCheckTestCase(RoutesTestCase):
    def test_health_check(self):
        response = self.client.get(f"{PREFIX}/lb-status")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn("app_version", response.json())

    def test_request_id_header(self):
        response = self.client.get(
            f"{PREFIX}/lb-status", headers={"x-request-id": "req-1"}
        )
        self.assertEqual(response.headers["x-request-id"], "req-1")


class WellKnownTestCase(RoutesTestCase):
    def test_jwks(self):
        response = self.client.get(f"{PREFIX}/.well-known/jwks.json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        entry = response.json()["keys"][0]
        self.assertEqual(entry["kid"], "platform")
        self.assertEqual(entry["use"], "sig")
        self.assertEqual(entry["alg"], "RS256")


class LaunchTestCase(RoutesTestCase):
    def test_launch_requires_session(self):
        response = self.client.get(f"{PREFIX}/lti/launch/10")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_launch_unknown_link(self):
        self.login()
        response = self.client.get(f"{PREFIX}/lti/launch/99")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_launch(self):
        self.login()
        response = self.client.get(f"{PREFIX}/lti/launch/10")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.headers["content-type"].startswith("text/html"))
        self.assertIn('action="https://tool.example.com/lti/login"', response.text)

        inputs = form_inputs(response.text)
        self.assertEqual(inputs["login_hint"], "340")
        self.assertEqual(inputs["client_id"], "123456-abcd")
        self.assertEqual(inputs["target_link_uri"], "https://tool.example.com/lti/quiz/1")
        claims = tokens.verify(
            inputs["lti_message_hint"],
            self.platform.platform_keys.public_key_set(),
        )
        self.assertEqual(claims["tool_registration_id"], "1")

    def test_legacy_launch(self):
        self.login()
        response = self.client.get(f"{PREFIX}/lti/launch/30")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('action="https://legacy.example.com/launch"', response.text)
        inputs = form_inputs(response.text)
        self.assertEqual(inputs["lti_message_type"], "basic-lti-launch-request")
        self.assertEqual(inputs["user_id"], "340")
        self.assertIn("oauth_signature", inputs)

    def test_launch_without_tool_proxy(self):
        registrations = InMemoryRegistrationRepository()
        registrations.add(
            schemas.ToolRegistration(id=4, client_id="lti2", lti_version="LTI-2p0"),
            schemas.ResourceLink(id=40, registration_id=4, title="No Proxy"),
        )
        platform = services.Platform(
            issuer=self.platform.issuer,
            platform_keys=self.platform.platform_keys,
            registrations=registrations,
        )
        app.dependency_overrides[services.platform] = lambda: platform
        self.login()
        response = self.client.get(f"{PREFIX}/lti/launch/40")
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)


class AuthTestCase(RoutesTestCase):
    def auth_params(self, **kwargs):
        message = self.platform.login_initiation("10", self.user)
        params = {
            "scope": "openid",
            "response_type": "id_token",
            "response_mode": "form_post",
            "prompt": "none",
            "client_id": "123456-abcd",
            "redirect_uri": REDIRECT_URI,
            "login_hint": "340",
            "nonce": "TOOL-NONCE-abc-123",
            "state": "TOOL-STATE-1234",
            "lti_message_hint": message.parameters["lti_message_hint"],
        }
        params.update(kwargs)
        return params

    def test_auth_form_post(self):
        self.login()
        response = self.client.post(f"{PREFIX}/lti/auth", data=self.auth_params())
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn(f'action="{REDIRECT_URI}"', response.text)

        inputs = form_inputs(response.text)
        self.assertEqual(inputs["state"], "TOOL-STATE-1234")
        claims = tokens.verify(
            inputs["id_token"], self.platform.platform_keys.public_key_set()
        )
        self.assertEqual(claims["nonce"], "TOOL-NONCE-abc-123")
        self.assertEqual(claims["name"], "Kermit DaFrog")
        custom = claims["https://purl.imsglobal.org/spec/lti/claim/custom"]
        self.assertEqual(custom["subContainingPII"], "Kermit DaFrog")
        self.assertEqual(custom["linkTitle"], "Week 1 Quiz")
        self.assertEqual(custom["quiz_id"], "1")

    def test_auth_query(self):
        self.login()
        response = self.client.get(f"{PREFIX}/lti/auth", params=self.auth_params())
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn("id_token", form_inputs(response.text))

    def test_auth_invalid_redirect_uri(self):
        self.login()
        response = self.client.post(
            f"{PREFIX}/lti/auth",
            data=self.auth_params(redirect_uri="https://evil.example.com"),
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        body = response.json()
        self.assertEqual(body["error"], "invalid_request")
        self.assertEqual(body["reason"], "validation")
        self.assertIn("Invalid redirect_uri", body["error_description"])

    def test_auth_without_session(self):
        response = self.client.post(f"{PREFIX}/lti/auth", data=self.auth_params())
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json()["reason"], "authentication")

    def test_auth_bad_hint(self):
        self.login()
        response = self.client.post(
            f"{PREFIX}/lti/auth", data=self.auth_params(lti_message_hint="a.b.c")
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json()["reason"], "signature")


if __name__ == "__main__":
    unittest.main()
