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

import joserfc.jws

from ltix import keys, tokens
from ltix.errors import ErrorKind, SignatureError


class TokensTestCase(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls.platform_keys = keys.PlatformKeys([keys.generate_private_key("kid-1")])
        cls.other_keys = keys.PlatformKeys([keys.generate_private_key("kid-2")])

    def issue(self, claims, platform_keys=None, key_id=None):
        private_key = (platform_keys or self.platform_keys).private_key()
        return tokens.issue(claims, private_key, key_id or private_key.kid)

    def test_issue_header(self):
        token = self.issue({"sub": "340"})
        header = joserfc.jws.extract_compact(token.encode()).protected
        self.assertDictEqual(header, {"typ": "JWT", "alg": "RS256", "kid": "kid-1"})

    def test_verify(self):
        claims = {"sub": "340", "nested": {"a": [1, 2]}}
        token = self.issue(claims)
        self.assertDictEqual(
            tokens.verify(token, self.platform_keys.public_key_set()), claims
        )

    def test_verify_does_not_check_claims(self):
        token = self.issue({"sub": "340", "exp": 1})
        self.assertEqual(
            tokens.verify(token, self.platform_keys.public_key_set())["exp"], 1
        )

    def test_verify_unknown_kid(self):
        token = self.issue({"sub": "340"}, self.other_keys)
        with self.assertRaises(SignatureError) as exc:
            tokens.verify(token, self.platform_keys.public_key_set())
        self.assertEqual(exc.exception.kind, ErrorKind.SIGNATURE)

    def test_verify_wrong_signature(self):
        # signed by another key but claiming a known kid
        token = self.issue({"sub": "340"}, self.other_keys, key_id="kid-1")
        with self.assertRaises(SignatureError):
            tokens.verify(token, self.platform_keys.public_key_set())

    def test_verify_tampered(self):
        header, payload, signature = self.issue({"sub": "340"}).split(".")
        tampered = self.issue({"sub": "1"}).split(".")[1]
        with self.assertRaises(SignatureError):
            tokens.verify(
                f"{header}.{tampered}.{signature}",
                self.platform_keys.public_key_set(),
            )
        self.assertNotEqual(payload, tampered)

    def test_verify_malformed(self):
        for token in ("", "not-a-jwt", "a.b.c"):
            with self.subTest(token=token), self.assertRaises(SignatureError):
                tokens.verify(token, self.platform_keys.public_key_set())


if __name__ == "__main__":
    unittest.main()
