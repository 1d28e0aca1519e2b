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
Launch errors

Every failure surfaced by the launch core is an ``AuthenticationError``.
The ``kind`` attribute tells callers which step rejected the launch.
"""

import enum


class ErrorKind(enum.StrEnum):
    VALIDATION = "validation"
    SIGNATURE = "signature"
    AUTHENTICATION = "authentication"
    PARSE = "parse"


class AuthenticationError(Exception):
    kind: ErrorKind = ErrorKind.AUTHENTICATION

    def __init__(self, message: str, field: str | None = None) -> None:
        self.message = message
        self.field = field
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind!s}, message={self.message!r})"


class ValidationError(AuthenticationError):
    """A request field is missing, malformed, or not allowed."""

    kind = ErrorKind.VALIDATION


class SignatureError(AuthenticationError):
    """A signed token could not be verified."""

    kind = ErrorKind.SIGNATURE


class AuthenticationFailure(AuthenticationError):
    kind = ErrorKind.AUTHENTICATION


class ParseError(AuthenticationError):
    kind = ErrorKind.PARSE
