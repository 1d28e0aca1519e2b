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
Content Items

Converts LTI 1.3 Deep Linking content items to the LTI 1.1 Content Item
Message (JSON-LD) format.

Only this direction is supported. Deep linking responses from LTI 1.1
tools arrive in the JSON-LD format and are handled by their own parser.
"""

import json
import logging
from typing import Any

from .errors import ParseError

logger = logging.getLogger(__name__)

CONTENT_ITEM_CONTEXT = "http://purl.imsglobal.org/ctx/lti/v1/ContentItem"
TOTAL_SCORE_REPORTING_METHOD = (
    "http://purl.imsglobal.org/ctx/lis/v2p1/Result#totalScore"
)
LTI_LINK_MEDIA_TYPE = "application/vnd.ims.lti.v1.ltilink"

# Deep Linking item type => (JSON-LD @type, mediaType)
_ITEM_TYPES: dict[str, tuple[str, str | None]] = {
    "ltiResourceLink": ("LtiLinkItem", LTI_LINK_MEDIA_TYPE),
    "link": ("ContentItem", "text/html"),
    "rich": ("ContentItem", "text/html"),
    "file": ("FileItem", None),
}


def convert_content_items_to_legacy(content_items: str) -> str:
    """Returns the JSON-LD graph for a JSON array of content items.

    Items without a ``type`` are left out of the graph and fields that
    have no LTI 1.1 counterpart are copied over unchanged. A ``ParseError``
    is raised if ``content_items`` is not valid JSON.
    """
    try:
        items = json.loads(content_items)
    except (TypeError, json.JSONDecodeError) as exc:
        logger.warning("content items are not valid JSON: %r", exc)
        raise ParseError(f"Invalid content items JSON: {exc}") from exc

    graph = []
    if isinstance(items, list):
        graph = [
            _to_legacy_item(item)
            for item in items
            if isinstance(item, dict) and "type" in item
        ]

    return json.dumps({"@context": CONTENT_ITEM_CONTEXT, "@graph": graph})


def _to_legacy_item(item: dict[str, Any]) -> dict[str, Any]:
    item = dict(item)
    item_type = item.pop("type")
    if item_type in _ITEM_TYPES:
        ld_type, media_type = _ITEM_TYPES[item_type]
        item["@type"] = ld_type
        if media_type is not None:
            item["mediaType"] = media_type

    if "html" in item:
        item["text"] = item.pop("html")

    if (advice := _placement_advice(item)) is not None:
        item["placementAdvice"] = advice

    for image in ("icon", "thumbnail"):
        if isinstance(item.get(image), dict) and "url" in item[image]:
            item[image] = dict(item[image])
            item[image]["@id"] = item[image].pop("url")

    if isinstance(item.get("lineItem"), dict):
        item["lineItem"] = _line_item(item["lineItem"])

    return item


def _placement_advice(item: dict[str, Any]) -> dict[str, Any] | None:
    # iframe wins over window even when it carries no dimensions
    if item.get("iframe") is not None:
        iframe = item.pop("iframe")
        item.pop("window", None)
        item.pop("presentation", None)
        advice = {"presentationDocumentTarget": "iframe"}
        _copy(iframe, "width", advice, "displayWidth")
        _copy(iframe, "height", advice, "displayHeight")
        return advice

    if item.get("window") is not None:
        window = item.pop("window")
        item.pop("presentation", None)
        advice = {"presentationDocumentTarget": "window"}
        _copy(window, "targetName", advice, "windowTarget")
        _copy(window, "width", advice, "displayWidth")
        _copy(window, "height", advice, "displayHeight")
        return advice

    if item.get("presentation") is not None:
        presentation = item.pop("presentation")
        advice = {}
        _copy(presentation, "documentTarget", advice, "presentationDocumentTarget")
        _copy(presentation, "windowTarget", advice, "windowTarget")
        _copy(presentation, "width", advice, "displayWidth")
        _copy(presentation, "height", advice, "displayHeight")
        return advice

    return None


def _line_item(line_item: dict[str, Any]) -> dict[str, Any]:
    converted: dict[str, Any] = {
        "@type": "LineItem",
        "reportingMethod": TOTAL_SCORE_REPORTING_METHOD,
    }
    _copy(line_item, "label", converted, "label")
    if line_item.get("resourceId") is not None:
        converted["assignedActivity"] = {"activityId": line_item["resourceId"]}
    _copy(line_item, "tag", converted, "tag")
    if line_item.get("scoreMaximum") is not None:
        converted["scoreConstraints"] = {
            "@type": "NumericLimits",
            "totalMaximum": line_item["scoreMaximum"],
        }
    _copy(line_item, "submissionReview", converted, "submissionReview")
    return converted


def _copy(source: Any, key: str, target: dict[str, Any], target_key: str) -> None:
    if isinstance(source, dict) and source.get(key) is not None:
        target[target_key] = source[key]
