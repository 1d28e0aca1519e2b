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

import time
import unittest
from unittest.mock import Mock

from ltix import keys, messages, schemas, tokens
from ltix.builders import ResourceLinkLaunchRequestBuilder, ResourceLinkPayloadBuilder
from ltix.errors import (
    AuthenticationFailure,
    ErrorKind,
    SignatureError,
    ValidationError,
)
from ltix.oidc import LaunchAuthenticator, validate_request
from ltix.registrations import InMemoryRegistrationRepository
from ltix.substitution import VariableSubstitutorFactory
from ltix.users import SessionUserAuthenticator

ISSUER = "https://platform.example.com"
CLIENT_ID = "123456-abcd"
REDIRECT_URI = "https://tool.example.com/lti/redirecturi"
NONCE = "TOOL-NONCE-abc-123"
STATE = "TOOL-STATE-1234"


class LaunchAuthenticatorTestCase(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls.platform_keys = keys.PlatformKeys([keys.generate_private_key("platform")])
        cls.other_keys = keys.PlatformKeys([keys.generate_private_key("unknown")])

    def setUp(self) -> None:
        self.registration = schemas.ToolRegistration(
            id=1,
            client_id=CLIENT_ID,
            redirect_uris=f"{REDIRECT_URI}\nhttps://tool.example.com/lti/redirecturi2",
            send_name=schemas.PrivacySetting.ALWAYS,
            send_email=schemas.PrivacySetting.ALWAYS,
            initiate_login_url="https://tool.example.com/lti/login",
            tool_url="https://tool.example.com/lti/launch",
            custom_parameters="subContainingPII=$Person.name.full",
        )
        self.resource_link = schemas.ResourceLink(
            id=10, registration_id=1, title="Week 1 Quiz"
        )
        self.registrations = InMemoryRegistrationRepository()
        self.registrations.add(self.registration, self.resource_link)
        self.user = schemas.PlatformUser(
            id=340,
            username="kermit",
            first_name="Kermit",
            last_name="DaFrog",
            email="kermit@example.com",
            idnumber="KDF-340",
        )
        self.factory = VariableSubstitutorFactory()

    def message_hint(self, registration=None, platform_keys=None):
        registration = registration or self.registration
        payload = ResourceLinkPayloadBuilder(
            registration, self.resource_link, self.factory.get_for_tool(registration)
        )
        message = ResourceLinkLaunchRequestBuilder(
            registration,
            self.resource_link,
            issuer=ISSUER,
            user_id=self.user.id,
            platform_keys=platform_keys or self.platform_keys,
            roles=["http://purl.imsglobal.org/vocab/lis/v2/membership#Instructor"],
            extra_claims=payload.get_claims(),
        ).build_message()
        return message.parameters["lti_message_hint"]

    def auth_request(self, **kwargs):
        params = {
            "scope": "openid",
            "response_type": "id_token",
            "response_mode": "form_post",
            "prompt": "none",
            "client_id": CLIENT_ID,
            "redirect_uri": REDIRECT_URI,
            "login_hint": "340",
            "nonce": NONCE,
            "state": STATE,
            "lti_message_hint": self.message_hint(),
        }
        params.update(kwargs)
        return schemas.AuthenticationRequest(**params)

    def authenticator(self, user_authenticator=None, registrations=None):
        return LaunchAuthenticator(
            user_authenticator=user_authenticator or SessionUserAuthenticator(self.user),
            registrations=registrations or self.registrations,
            substitutor_factory=self.factory,
            platform_keys=self.platform_keys,
        )

    def id_token_claims(self, message):
        return tokens.verify(
            message.parameters["id_token"], self.platform_keys.public_key_set()
        )

    def test_launch(self):
        message = self.authenticator().authenticate(self.auth_request())

        self.assertEqual(message.url, REDIRECT_URI)
        self.assertListEqual(list(message.parameters), ["state", "id_token"])
        self.assertEqual(message.parameters["state"], STATE)

        claims = self.id_token_claims(message)
        self.assertEqual(claims["nonce"], NONCE)
        self.assertEqual(claims["aud"], CLIENT_ID)
        self.assertEqual(claims["iss"], ISSUER)
        self.assertEqual(claims["sub"], "340")
        self.assertEqual(claims["name"], "Kermit DaFrog")
        self.assertEqual(claims["given_name"], "Kermit")
        self.assertEqual(claims["family_name"], "DaFrog")
        self.assertEqual(claims["email"], "kermit@example.com")
        self.assertEqual(claims[messages.LIS_KEY]["person_sourcedid"], "KDF-340")
        self.assertEqual(claims[messages.EXT_KEY]["user_username"], "kermit")
        self.assertEqual(claims[messages.MESSAGE_TYPE_KEY], "LtiResourceLinkRequest")
        self.assertEqual(claims[messages.DEPLOYMENT_ID_KEY], "1")
        self.assertEqual(claims[messages.RESOURCE_LINK_KEY]["id"], "10")
        self.assertListEqual(
            claims[messages.ROLES_KEY],
            ["http://purl.imsglobal.org/vocab/lis/v2/membership#Instructor"],
        )
        self.assertEqual(
            claims[messages.CUSTOM_KEY]["subContainingPII"], "Kermit DaFrog"
        )
        self.assertEqual(
            claims[messages.CUSTOM_KEY]["subcontainingpii"], "Kermit DaFrog"
        )
        self.assertNotIn(messages.TOOL_REGISTRATION_ID_KEY, claims)
        self.assertGreater(claims["exp"], claims["iat"])

    def test_launch_without_name(self):
        registration = self.registration.model_copy(
            update={
                "send_name": schemas.PrivacySetting.NEVER,
                "send_email": schemas.PrivacySetting.NEVER,
            }
        )
        registrations = InMemoryRegistrationRepository()
        registrations.add(registration)
        request = self.auth_request(lti_message_hint=self.message_hint(registration))

        message = self.authenticator(registrations=registrations).authenticate(request)

        claims = self.id_token_claims(message)
        self.assertEqual(claims["sub"], "340")
        self.assertEqual(claims[messages.LIS_KEY]["person_sourcedid"], "KDF-340")
        for name in ("name", "given_name", "family_name", "email"):
            self.assertNotIn(name, claims)
        self.assertNotIn(messages.EXT_KEY, claims)
        self.assertEqual(
            claims[messages.CUSTOM_KEY]["subContainingPII"], "$Person.name.full"
        )

    def test_delegated_name_is_not_sent(self):
        registration = self.registration.model_copy(
            update={"send_name": schemas.PrivacySetting.DELEGATE}
        )
        registrations = InMemoryRegistrationRepository()
        registrations.add(registration)
        request = self.auth_request(lti_message_hint=self.message_hint(registration))

        claims = self.id_token_claims(
            self.authenticator(registrations=registrations).authenticate(request)
        )
        self.assertNotIn("name", claims)
        self.assertEqual(claims["email"], "kermit@example.com")

    def test_state_is_optional(self):
        message = self.authenticator().authenticate(self.auth_request(state=None))
        self.assertListEqual(list(message.parameters), ["id_token"])

    def test_invalid_redirect_uri(self):
        request = self.auth_request(redirect_uri="https://tool.example.com/evil")
        with self.assertRaises(ValidationError) as exc:
            self.authenticator().authenticate(request)
        self.assertIn("Invalid redirect_uri", str(exc.exception))
        self.assertEqual(exc.exception.field, "redirect_uri")

    def test_unknown_kid(self):
        request = self.auth_request(
            lti_message_hint=self.message_hint(platform_keys=self.other_keys)
        )
        with self.assertRaises(SignatureError) as exc:
            self.authenticator().authenticate(request)
        self.assertIn("Invalid lti_message_hint", str(exc.exception))
        self.assertEqual(exc.exception.kind, ErrorKind.SIGNATURE)

    def test_expired_hint(self):
        private_key = self.platform_keys.private_key()
        now = int(time.time())
        hint = tokens.issue(
            {
                messages.TOOL_REGISTRATION_ID_KEY: "1",
                "iat": now - 7200,
                "exp": now - 3600,
            },
            private_key,
            private_key.kid,
        )
        with self.assertRaises(SignatureError) as exc:
            self.authenticator().authenticate(self.auth_request(lti_message_hint=hint))
        self.assertIn("Invalid lti_message_hint", str(exc.exception))

    def test_missing_hint(self):
        with self.assertRaises(ValidationError) as exc:
            self.authenticator().authenticate(self.auth_request(lti_message_hint=""))
        self.assertIn("Invalid lti_message_hint", str(exc.exception))

    def test_hint_without_registration(self):
        private_key = self.platform_keys.private_key()
        hint = tokens.issue({"sub": "340"}, private_key, private_key.kid)
        with self.assertRaises(ValidationError) as exc:
            self.authenticator().authenticate(self.auth_request(lti_message_hint=hint))
        self.assertIn("Invalid lti_message_hint", str(exc.exception))

    def test_unknown_registration(self):
        with self.assertRaises(AuthenticationFailure) as exc:
            self.authenticator(
                registrations=InMemoryRegistrationRepository()
            ).authenticate(self.auth_request())
        self.assertEqual(str(exc.exception), "Cannot find registration id: 1")

    def test_unsupported_lti_version(self):
        request = self.auth_request()
        registrations = Mock()
        registrations.get_by_id.return_value = self.registration.model_copy(
            update={"lti_version": "LTI-1p3"}
        )
        with self.assertRaises(AuthenticationFailure) as exc:
            self.authenticator(registrations=registrations).authenticate(request)
        self.assertEqual(str(exc.exception), "Unsupported LTI version: LTI-1p3")
        self.assertIsInstance(exc.exception.__cause__, ValueError)

    def test_invalid_client_id(self):
        with self.assertRaises(ValidationError) as exc:
            self.authenticator().authenticate(self.auth_request(client_id="other"))
        self.assertIn("Invalid client_id", str(exc.exception))

    def test_login_hint_mismatch(self):
        with self.assertRaises(AuthenticationFailure) as exc:
            self.authenticator().authenticate(self.auth_request(login_hint="341"))
        self.assertEqual(str(exc.exception), "Error authenticating user: 341")

    def test_no_session_user(self):
        with self.assertRaises(AuthenticationFailure):
            self.authenticator(SessionUserAuthenticator(None)).authenticate(
                self.auth_request()
            )

    def test_user_lookup_error(self):
        user_authenticator = Mock()
        user_authenticator.authenticate.side_effect = LookupError("340")
        with self.assertRaises(AuthenticationFailure) as exc:
            self.authenticator(user_authenticator).authenticate(self.auth_request())
        self.assertEqual(exc.exception.kind, ErrorKind.AUTHENTICATION)

    def test_static_checks_run_first(self):
        registrations = Mock()
        user_authenticator = Mock()
        request = self.auth_request(
            scope="profile", response_type="code", lti_message_hint="garbage"
        )
        with self.assertRaises(ValidationError) as exc:
            self.authenticator(user_authenticator, registrations).authenticate(request)
        self.assertEqual(exc.exception.field, "scope")
        self.assertEqual(
            str(exc.exception), "Invalid scope. scope: profile. Must be 'openid'."
        )
        registrations.get_by_id.assert_not_called()
        user_authenticator.authenticate.assert_not_called()


class ValidateRequestTestCase(unittest.TestCase):
    def setUp(self):
        self.valid = {
            "scope": "openid",
            "response_type": "id_token",
            "response_mode": "form_post",
            "prompt": "none",
            "nonce": NONCE,
        }

    def test_valid(self):
        validate_request(schemas.AuthenticationRequest(**self.valid))

    def test_first_violation_wins(self):
        cases = [
            ({"response_type": "code", "prompt": "login"}, "response_type"),
            ({"response_mode": "query", "prompt": "login"}, "response_mode"),
            ({"prompt": "login", "nonce": ""}, "prompt"),
            ({"nonce": ""}, "nonce"),
            ({"nonce": None}, "nonce"),
        ]
        for changes, field in cases:
            with self.subTest(field=field, changes=changes):
                request = schemas.AuthenticationRequest(**(self.valid | changes))
                with self.assertRaises(ValidationError) as exc:
                    validate_request(request)
                self.assertEqual(exc.exception.field, field)
                self.assertEqual(exc.exception.kind, ErrorKind.VALIDATION)


if __name__ == "__main__":
    unittest.main()
