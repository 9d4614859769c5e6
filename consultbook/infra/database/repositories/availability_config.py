"""AvailabilityConfig repository: read and upsert one row per resource."""
from __future__ import annotations

from typing import Any, Dict, Optional

from sqlalchemy import func
from sqlalchemy.dialects.postgresql import insert as pg_insert

from consultbook.infra.database.models.availability_config import AvailabilityConfigModel
from consultbook.infra.database.repositories.base import BaseRepository


class AvailabilityConfigRepository(BaseRepository[AvailabilityConfigModel]):
    model = AvailabilityConfigModel

    async def get_for_resource(self, resource_id: str) -> Optional[AvailabilityConfigModel]:
        return await self.get_by_id(resource_id)

    async def upsert(self, resource_id: str, data: Dict[str, Any]) -> AvailabilityConfigModel:
        """Insert or replace the resource's row in one statement.

        Concurrent saves resolve to last-writer-wins on the whole row, so a
        reader never sees fields from two different saves.
        """
        stmt = pg_insert(AvailabilityConfigModel).values(resource_id=resource_id, **data)
        stmt = stmt.on_conflict_do_update(
            index_elements=[AvailabilityConfigModel.resource_id],
            set_={**data, "updated_at": func.now()},
        )
        await self.session.execute(stmt)
        row = await self.session.get(
            AvailabilityConfigModel, resource_id, populate_existing=True
        )
        return row  # type: ignore[return-value]
