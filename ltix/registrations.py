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
Tool Registrations

Registrations and resource links are held in memory. They can be seeded
from a JSON file with the layout:

    {
        "registrations": [{"id": "1", "client_id": "...", ...}],
        "resource_links": [{"id": "10", "registration_id": "1", ...}]
    }
"""

import json
import logging
from pathlib import Path
from typing import Self

from . import schemas

logger = logging.getLogger(__name__)


class InMemoryRegistrationRepository:
    def __init__(self) -> None:
        self.registrations: dict[str, schemas.ToolRegistration] = {}
        self.resource_links: dict[str, schemas.ResourceLink] = {}

    def add(self, *items: schemas.ToolRegistration | schemas.ResourceLink) -> None:
        for item in items:
            if isinstance(item, schemas.ResourceLink):
                self.resource_links[item.id] = item
            else:
                self.registrations[item.id] = item

    def get_by_id(self, registration_id: str) -> schemas.ToolRegistration:
        try:
            return self.registrations[str(registration_id)]
        except KeyError:
            raise LookupError("REGISTRATION_NOT_FOUND", registration_id) from None

    def resource_link_by_id(self, resource_link_id: str) -> schemas.ResourceLink:
        try:
            return self.resource_links[str(resource_link_id)]
        except KeyError:
            raise LookupError("RESOURCE_LINK_NOT_FOUND", resource_link_id) from None

    @classmethod
    def from_seed_file(cls, path: str | Path) -> Self:
        """Returns a repository loaded with the contents of a JSON file."""
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        repo = cls()
        repo.add(
            *(schemas.ToolRegistration.model_validate(r) for r in data.get("registrations", [])),
            *(schemas.ResourceLink.model_validate(r) for r in data.get("resource_links", [])),
        )
        logger.info(
            "Loaded %s registrations and %s resource links from %s",
            len(repo.registrations),
            len(repo.resource_links),
            path,
        )
        return repo
