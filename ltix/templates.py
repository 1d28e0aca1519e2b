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
Templating library for HTML Responses
"""

import html
from collections.abc import Mapping
from typing import Any

from fastapi import Response


def form_post_html(target_url: str, params: Mapping[str, Any]) -> str:
    inputs = "\n".join(
        f'            <input type="hidden" name="{html.escape(str(name))}"'
        f' value="{html.escape(str(value))}">'
        for name, value in params.items()
    )
    return f"""\
    <!doctype html>
    <html lang="en">
    <head><title>LTI Launch</title></head>
    <body onload="document.ltiLaunch.submit()">
        <form style="display: none;" name="ltiLaunch" method="post"
              action="{html.escape(target_url)}">
{inputs}
        </form>
        <p>Please wait while we transfer you to the page you requested.</p>
        <p>
        Click <a href="#" onclick="document.ltiLaunch.submit()">here</a> to
        transfer now.
        </p>
    </body>
    </html>
    """


def redirect_lti_message(message: Any) -> Response:
    """Returns a response that posts an ``LtiMessage`` to its target."""
    return Response(content=message.to_html_form(), media_type="text/html")
