"""Unit tests for read-only entity listing."""

from __future__ import annotations

import datetime as dt
import typing as typ

import pytest
import pytest_asyncio

from crossbow.bronze import RawEvent
from crossbow.query import (
    CommitInfo,
    EntityKind,
    InvalidFilterValueError,
    InvalidPageError,
    IssueInfo,
    ListFilters,
    PageRequest,
    PullRequestInfo,
    RawEventInfo,
    RepositoryInfo,
    UnsupportedFilterError,
    count_entities,
    get_entity,
    list_entities,
    supported_filters,
)
from crossbow.silver import Commit, Issue, PullRequest, Repository

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

BASE_TIME = dt.datetime(2024, 7, 1, 12, 0, tzinfo=dt.UTC)


def _at(hours: int) -> dt.datetime:
    return BASE_TIME + dt.timedelta(hours=hours)


def _repository(github_id: int, full_name: str) -> Repository:
    owner, name = full_name.split("/")
    return Repository(
        github_id=github_id,
        name=name,
        full_name=full_name,
        owner=owner,
        url=f"https://github.com/{full_name}",
    )


def _pull_request(repo: Repository, number: int, state: str) -> PullRequest:
    return PullRequest(
        repository=repo,
        github_id=1000 + number,
        number=number,
        title=f"PR {number}",
        state=state,
        author="marina" if number % 2 else "octocat",
        base_branch="main",
        head_branch=f"feature/{number}",
        url=f"{repo.url}/pull/{number}",
        opened_at=_at(number),
    )


def _issue(repo: Repository, number: int, labels: list[str]) -> Issue:
    return Issue(
        repository=repo,
        github_id=2000 + number,
        number=number,
        title=f"Issue {number}",
        state="open",
        author="octocat",
        labels=labels,
        url=f"{repo.url}/issues/{number}",
        opened_at=_at(number),
    )


def _commit(repo: Repository, sha: str, hours: int, email: str) -> Commit:
    return Commit(
        repository=repo,
        sha=sha,
        message=f"commit {sha}",
        author_name="Author",
        author_email=email,
        committer_name="GitHub",
        committer_email="noreply@github.com",
        committed_at=_at(hours),
        url=f"{repo.url}/commit/{sha}",
    )


@pytest_asyncio.fixture
async def seeded(
    session_factory: async_sessionmaker[AsyncSession],
) -> async_sessionmaker[AsyncSession]:
    """Populate two repositories with entities and raw events."""
    async with session_factory() as session, session.begin():
        alpha = _repository(1, "acme/alpha")
        beta = _repository(2, "octo/beta")
        session.add_all([alpha, beta])
        session.add_all(
            [
                _pull_request(alpha, 1, "open"),
                _pull_request(alpha, 2, "merged"),
                _pull_request(alpha, 3, "open"),
                _pull_request(beta, 4, "closed"),
            ]
        )
        session.add_all(
            [
                _issue(alpha, 1, ["bug", "p1"]),
                _issue(alpha, 2, ["bugfix"]),
                _issue(alpha, 3, []),
                _issue(beta, 4, ["100%_done"]),
            ]
        )
        session.add_all(
            [
                _commit(alpha, "aaa", 1, "marina@example.com"),
                _commit(alpha, "bbb", 2, "octocat@example.com"),
                _commit(beta, "ccc", 3, "marina@example.com"),
            ]
        )
        await session.flush()
        session.add_all(
            [
                RawEvent(
                    repository_id=alpha.id,
                    event_type="push",
                    delivery_id="d-1",
                    payload={"ref": "refs/heads/main", "pusher": {"name": "marina"}},
                    signature="sha256=" + "0" * 64,
                    received_at=_at(1),
                    processed=True,
                ),
                RawEvent(
                    repository_id=None,
                    event_type="ping",
                    delivery_id="d-2",
                    payload={"zen": "Keep it logically awesome."},
                    signature="sha256=" + "0" * 64,
                    received_at=_at(2),
                    processed=False,
                ),
                RawEvent(
                    repository_id=beta.id,
                    event_type="issues",
                    event_action="labeled",
                    delivery_id="d-3",
                    payload={"action": "labeled", "label": {"name": "50%_off"}},
                    signature="sha256=" + "0" * 64,
                    received_at=_at(3),
                    processed=True,
                ),
            ]
        )
    return session_factory


async def _list(
    factory: async_sessionmaker[AsyncSession],
    kind: EntityKind,
    filters: ListFilters | None = None,
    page: PageRequest | None = None,
    **kwargs: typ.Any,  # noqa: ANN401
) -> typ.Any:  # noqa: ANN401
    async with factory() as session:
        return await list_entities(session, kind, filters, page, **kwargs)


class TestListingOrderAndPagination:
    """Tests for ordering and page boundaries."""

    @pytest.mark.asyncio
    async def test_pull_requests_are_newest_first(
        self, seeded: async_sessionmaker[AsyncSession]
    ) -> None:
        """Rows are ordered by their timeline column, descending."""
        page = await _list(seeded, EntityKind.PULL_REQUESTS)

        assert [item.number for item in page.items] == [4, 3, 2, 1]
        assert all(isinstance(item, PullRequestInfo) for item in page.items)
        assert page.has_next is False

    @pytest.mark.asyncio
    async def test_has_next_reports_remaining_rows(
        self, seeded: async_sessionmaker[AsyncSession]
    ) -> None:
        """Paging two at a time walks all four pull requests."""
        first = await _list(
            seeded, EntityKind.PULL_REQUESTS, page=PageRequest(page=1, per_page=2)
        )
        second = await _list(
            seeded, EntityKind.PULL_REQUESTS, page=PageRequest(page=2, per_page=2)
        )
        third = await _list(
            seeded, EntityKind.PULL_REQUESTS, page=PageRequest(page=3, per_page=2)
        )

        assert [item.number for item in first.items] == [4, 3]
        assert first.has_next is True
        assert [item.number for item in second.items] == [2, 1]
        assert second.has_next is False
        assert third.items == ()

    @pytest.mark.asyncio
    async def test_per_page_is_clamped(
        self, seeded: async_sessionmaker[AsyncSession]
    ) -> None:
        """Oversized and non-positive page sizes are clamped."""
        large = await _list(
            seeded,
            EntityKind.ISSUES,
            page=PageRequest(per_page=1000),
            max_page_size=3,
        )
        small = await _list(seeded, EntityKind.ISSUES, page=PageRequest(per_page=0))

        assert large.per_page == 3
        assert len(large.items) == 3
        assert large.has_next is True
        assert small.per_page == 1

    @pytest.mark.asyncio
    async def test_invalid_page_is_rejected(
        self, seeded: async_sessionmaker[AsyncSession]
    ) -> None:
        """Page numbers start at one."""
        with pytest.raises(InvalidPageError):
            await _list(seeded, EntityKind.COMMITS, page=PageRequest(page=0))


class TestListingFilters:
    """Tests for per-kind filters."""

    @pytest.mark.asyncio
    async def test_state_and_repository_filters_combine(
        self, seeded: async_sessionmaker[AsyncSession]
    ) -> None:
        """Filters are conjunctive."""
        async with seeded() as session:
            repo_id = (
                await list_entities(
                    session, EntityKind.REPOSITORIES, ListFilters(owner="acme")
                )
            ).items[0].id

        page = await _list(
            seeded,
            EntityKind.PULL_REQUESTS,
            ListFilters(repository_id=repo_id, state="open"),
        )

        assert [item.number for item in page.items] == [3, 1]

    @pytest.mark.asyncio
    async def test_label_filter_matches_whole_labels(
        self, seeded: async_sessionmaker[AsyncSession]
    ) -> None:
        """``bug`` matches the label ``bug`` but not ``bugfix``."""
        page = await _list(seeded, EntityKind.ISSUES, ListFilters(label="bug"))

        assert [item.number for item in page.items] == [1]
        assert isinstance(page.items[0], IssueInfo)
        assert page.items[0].labels == ("bug", "p1")

    @pytest.mark.asyncio
    async def test_label_filter_escapes_wildcards(
        self, seeded: async_sessionmaker[AsyncSession]
    ) -> None:
        """LIKE wildcards in labels are matched literally."""
        literal = await _list(seeded, EntityKind.ISSUES, ListFilters(label="100%_done"))
        wildcard = await _list(seeded, EntityKind.ISSUES, ListFilters(label="%"))

        assert [item.number for item in literal.items] == [4]
        assert wildcard.items == ()

    @pytest.mark.asyncio
    async def test_commit_author_and_time_window(
        self, seeded: async_sessionmaker[AsyncSession]
    ) -> None:
        """Commit author filters by email; since is inclusive, until exclusive."""
        by_author = await _list(
            seeded, EntityKind.COMMITS, ListFilters(author="marina@example.com")
        )
        windowed = await _list(
            seeded, EntityKind.COMMITS, ListFilters(since=_at(2), until=_at(3))
        )

        assert [item.sha for item in by_author.items] == ["ccc", "aaa"]
        assert all(isinstance(item, CommitInfo) for item in by_author.items)
        assert [item.sha for item in windowed.items] == ["bbb"]

    @pytest.mark.asyncio
    async def test_events_listing_hides_payload(
        self, seeded: async_sessionmaker[AsyncSession]
    ) -> None:
        """Raw event listings expose audit fields only."""
        page = await _list(seeded, EntityKind.EVENTS, ListFilters(processed=False))

        assert len(page.items) == 1
        item = page.items[0]
        assert isinstance(item, RawEventInfo)
        assert item.delivery_id == "d-2"
        assert not hasattr(item, "payload")
        assert not hasattr(item, "signature")

    @pytest.mark.asyncio
    async def test_repositories_filter_by_owner(
        self, seeded: async_sessionmaker[AsyncSession]
    ) -> None:
        """Repositories are filtered by owner login."""
        page = await _list(seeded, EntityKind.REPOSITORIES, ListFilters(owner="octo"))

        assert [item.full_name for item in page.items] == ["octo/beta"]
        assert isinstance(page.items[0], RepositoryInfo)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("kind", "filters", "name"),
        [
            (EntityKind.REPOSITORIES, ListFilters(state="open"), "state"),
            (EntityKind.COMMITS, ListFilters(label="bug"), "label"),
            (EntityKind.PULL_REQUESTS, ListFilters(processed=True), "processed"),
            (EntityKind.EVENTS, ListFilters(author="marina"), "author"),
            (EntityKind.ISSUES, ListFilters(search="bug"), "search"),
        ],
    )
    async def test_unsupported_filter_is_rejected(
        self,
        seeded: async_sessionmaker[AsyncSession],
        kind: EntityKind,
        filters: ListFilters,
        name: str,
    ) -> None:
        """Filters that do not apply to a kind raise UnsupportedFilterError."""
        with pytest.raises(UnsupportedFilterError) as excinfo:
            await _list(seeded, kind, filters)

        assert excinfo.value.name == name

    @pytest.mark.asyncio
    async def test_events_filter_by_action(
        self, seeded: async_sessionmaker[AsyncSession]
    ) -> None:
        """Events are filtered by the payload action recorded at ingestion."""
        page = await _list(
            seeded, EntityKind.EVENTS, ListFilters(event_action="labeled")
        )

        assert [item.delivery_id for item in page.items] == ["d-3"]
        assert page.items[0].event_action == "labeled"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("needle", "expected"),
        [
            ("refs/heads", ["d-1"]),
            ("awesome", ["d-2"]),
            ("_", ["d-3"]),
            ("%_off", ["d-3"]),
            ("absent", []),
        ],
    )
    async def test_events_search_payload_text(
        self,
        seeded: async_sessionmaker[AsyncSession],
        needle: str,
        expected: list[str],
    ) -> None:
        """Search matches payload text literally, wildcards included."""
        page = await _list(seeded, EntityKind.EVENTS, ListFilters(search=needle))

        assert [item.delivery_id for item in page.items] == expected

    @pytest.mark.asyncio
    async def test_unknown_state_is_rejected(
        self, seeded: async_sessionmaker[AsyncSession]
    ) -> None:
        """Issues cannot be filtered by the pull-request-only merged state."""
        with pytest.raises(InvalidFilterValueError, match="merged"):
            await _list(seeded, EntityKind.ISSUES, ListFilters(state="merged"))


def test_supported_filters_per_kind() -> None:
    """Each kind advertises its filter set."""
    assert supported_filters(EntityKind.ISSUES) >= {"label", "state"}
    assert "label" not in supported_filters(EntityKind.PULL_REQUESTS)
    assert supported_filters(EntityKind.EVENTS) >= {
        "event_type",
        "event_action",
        "processed",
        "search",
    }


class TestGetEntity:
    """Tests for single-row reads."""

    @pytest.mark.asyncio
    async def test_returns_dto_for_existing_row(
        self, seeded: async_sessionmaker[AsyncSession]
    ) -> None:
        """A known id yields the same DTO the listing would."""
        listed = await _list(seeded, EntityKind.REPOSITORIES, ListFilters(owner="octo"))
        repo_id = listed.items[0].id

        async with seeded() as session:
            info = await get_entity(session, EntityKind.REPOSITORIES, repo_id)

        assert info == listed.items[0]

    @pytest.mark.asyncio
    async def test_missing_row_is_none(
        self, seeded: async_sessionmaker[AsyncSession]
    ) -> None:
        """Unknown ids return None rather than raising."""
        async with seeded() as session:
            assert await get_entity(session, EntityKind.ISSUES, 9999) is None


class TestCountEntities:
    """Tests for filtered row totals."""

    @pytest.mark.asyncio
    async def test_pull_requests_are_counted_per_state(
        self, seeded: async_sessionmaker[AsyncSession]
    ) -> None:
        """Every lifecycle state is reported, and the total is their sum."""
        async with seeded() as session:
            counts = await count_entities(session, EntityKind.PULL_REQUESTS)

        assert counts.total == 4
        assert counts.by_state == {"closed": 1, "merged": 1, "open": 2}

    @pytest.mark.asyncio
    async def test_counts_honour_filters(
        self, seeded: async_sessionmaker[AsyncSession]
    ) -> None:
        """Filters narrow the counts and empty states report zero."""
        alpha = await _list(seeded, EntityKind.REPOSITORIES, ListFilters(owner="acme"))
        filters = ListFilters(repository_id=alpha.items[0].id)

        async with seeded() as session:
            pulls = await count_entities(session, EntityKind.PULL_REQUESTS, filters)
            issues = await count_entities(session, EntityKind.ISSUES, filters)

        assert pulls.by_state == {"closed": 0, "merged": 1, "open": 2}
        assert issues.total == 3
        assert issues.by_state == {"closed": 0, "open": 3}

    @pytest.mark.asyncio
    async def test_stateless_kinds_report_total_only(
        self, seeded: async_sessionmaker[AsyncSession]
    ) -> None:
        """Commits and events have no state breakdown."""
        async with seeded() as session:
            commits = await count_entities(session, EntityKind.COMMITS)
            pending = await count_entities(
                session, EntityKind.EVENTS, ListFilters(processed=False)
            )

        assert commits.total == 3
        assert commits.by_state == {}
        assert pending.total == 1

    @pytest.mark.asyncio
    async def test_unsupported_filter_is_rejected(
        self, seeded: async_sessionmaker[AsyncSession]
    ) -> None:
        """Counts validate filters like listings do."""
        async with seeded() as session:
            with pytest.raises(UnsupportedFilterError):
                await count_entities(
                    session, EntityKind.COMMITS, ListFilters(label="bug")
                )
