"""Repository registry: idempotent upsert of repository identities."""

from __future__ import annotations

import dataclasses as dc
import typing as typ

from sqlalchemy import String, cast, update

from crossbow.common.time import utcnow
from crossbow.common.upsert import conflict_insert
from crossbow.silver.storage import Repository

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from crossbow.silver.payloads import GithubRepositoryPayload


@dc.dataclass(frozen=True, slots=True)
class RepositoryAttributes:
    """Mutable descriptive fields of a repository."""

    name: str
    full_name: str
    owner: str
    url: str
    description: str | None = None
    is_private: bool = False

    @classmethod
    def from_payload(cls, payload: GithubRepositoryPayload) -> RepositoryAttributes:
        """Build attributes from a webhook ``repository`` object."""
        return cls(
            name=payload.name,
            full_name=payload.full_name,
            owner=payload.owner.login,
            url=payload.html_url,
            description=payload.description,
            is_private=payload.private,
        )


class RepositoryRegistry:
    """Insert-or-update repositories keyed on their GitHub id."""

    async def _release_full_name(
        self, session: AsyncSession, external_id: int, full_name: str
    ) -> None:
        """Rename any other repository still holding ``full_name``.

        GitHub reuses names after a repository is deleted or renamed. The
        stale row keeps its history under ``<full_name>#<github_id>`` until a
        delivery for it refreshes the name.
        """
        await session.execute(
            update(Repository)
            .where(
                Repository.full_name == full_name,
                Repository.github_id != external_id,
            )
            .values(
                full_name=Repository.full_name
                + "#"
                + cast(Repository.github_id, String)
            )
            .execution_options(synchronize_session=False)
        )

    async def upsert(
        self, session: AsyncSession, external_id: int, attrs: RepositoryAttributes
    ) -> int:
        """Create or refresh the repository row and return its id.

        Runs as one ``INSERT ... ON CONFLICT (github_id) DO UPDATE`` so
        concurrent deliveries for the same repository converge on one row.
        """
        await self._release_full_name(session, external_id, attrs.full_name)
        now = utcnow()
        values = {
            "name": attrs.name,
            "full_name": attrs.full_name,
            "owner": attrs.owner,
            "description": attrs.description,
            "url": attrs.url,
            "is_private": attrs.is_private,
            "updated_at": now,
        }
        stmt = (
            conflict_insert(session, Repository)
            .values(github_id=external_id, created_at=now, **values)
            .on_conflict_do_update(index_elements=[Repository.github_id], set_=values)
            .returning(Repository.id)
        )
        repository_id = await session.scalar(stmt)
        if repository_id is None:  # pragma: no cover - DO UPDATE always returns
            msg = f"repository upsert for github id {external_id} returned no row"
            raise RuntimeError(msg)
        return repository_id
