"""
Tests for external seat id resolution and show provisioning.
"""

import pytest
from sqlalchemy import func, select

from boxoffice.core.exceptions import ConflictError, NotFoundError
from boxoffice.models.show import Show
from boxoffice.schemas.show import ShowCreate
from boxoffice.services.seat_identity import (
    SeatIdentityResolver, format_external_id, parse_external_id,
)
from boxoffice.services.show_service import ShowService

from conftest import layout


def test_format_and_parse_external_id():
    assert format_external_id("premium", 3, 7) == "premium-3-7"
    parsed = parse_external_id("premium-3-7")
    assert parsed.section == "premium"
    assert parsed.row == 3
    assert parsed.seat == 7


@pytest.mark.parametrize("value", ["premium", "premium-0-1", "premium-3", "-3-7", "premium-a-7"])
def test_parse_rejects_malformed_ids(value):
    with pytest.raises(ValueError):
        parse_external_id(value)


@pytest.mark.asyncio
async def test_provisioning_derives_external_ids(db_session, show):
    """Row positions are 1-based per section."""
    resolver = SeatIdentityResolver(db_session)
    stalls_b4 = await resolver.resolve(show.id, "stalls-2-4")
    premium_a2 = await resolver.resolve(show.id, "premium-1-2")
    assert stalls_b4 != premium_a2

    with pytest.raises(NotFoundError):
        await resolver.resolve(show.id, "premium-2-1")


@pytest.mark.asyncio
async def test_resolve_is_scoped_to_show(db_session, show, small_show):
    resolver = SeatIdentityResolver(db_session)
    await resolver.resolve(small_show.id, "A1")
    with pytest.raises(NotFoundError):
        await resolver.resolve(show.id, "A1")


@pytest.mark.asyncio
async def test_resolve_many_reports_every_unknown_id(db_session, show):
    resolver = SeatIdentityResolver(db_session)
    with pytest.raises(NotFoundError) as exc_info:
        await resolver.resolve_many(show.id, ["stalls-1-1", "nope-1-1", "stalls-9-9"])
    assert "nope-1-1" in exc_info.value.message
    assert "stalls-9-9" in exc_info.value.message


@pytest.mark.asyncio
async def test_resolve_many_collapses_duplicates(db_session, show):
    resolver = SeatIdentityResolver(db_session)
    resolved = await resolver.resolve_many(show.id, ["stalls-1-2", "stalls-1-1", "stalls-1-2"])
    assert list(resolved) == ["stalls-1-2", "stalls-1-1"]


@pytest.mark.asyncio
async def test_external_ids_for_is_the_reverse_mapping(db_session, show):
    resolver = SeatIdentityResolver(db_session)
    resolved = await resolver.resolve_many(show.id, ["stalls-1-1", "premium-1-1"])
    reverse = await resolver.external_ids_for(show.id, resolved.values())
    assert reverse == {seat_id: external_id for external_id, seat_id in resolved.items()}


@pytest.mark.asyncio
async def test_register_same_pair_twice_is_a_noop(db_session, show, seat_id):
    resolver = SeatIdentityResolver(db_session)
    internal = await seat_id(show, "stalls-1-1")
    mapping = await resolver.register(show.id, "stalls-1-1", internal)
    assert mapping.seat_id == internal


@pytest.mark.asyncio
async def test_register_rejects_remapping_external_id(db_session, show, seat_id):
    """An external id can never be pointed at a different seat."""
    resolver = SeatIdentityResolver(db_session)
    other_seat = await seat_id(show, "stalls-1-2")
    with pytest.raises(ConflictError):
        await resolver.register(show.id, "stalls-1-1", other_seat)
    assert await resolver.resolve(show.id, "stalls-1-1") != other_seat


@pytest.mark.asyncio
async def test_register_rejects_second_id_for_seat(db_session, show, seat_id):
    resolver = SeatIdentityResolver(db_session)
    internal = await seat_id(show, "stalls-1-1")
    with pytest.raises(ConflictError):
        await resolver.register(show.id, "front-row-1", internal)


@pytest.mark.asyncio
async def test_register_rejects_seat_from_another_show(db_session, show, small_show, seat_id):
    resolver = SeatIdentityResolver(db_session)
    foreign_seat = await seat_id(small_show, "A1")
    with pytest.raises(NotFoundError):
        await resolver.register(show.id, "guest-1-1", foreign_seat)


@pytest.mark.asyncio
async def test_conflicting_layout_provisions_nothing(db_session):
    """Two seats claiming the same external id abort the whole show."""
    data = layout()
    data["sections"][0]["rows"][0]["seats"][0]["external_id"] = "stalls-1-2"

    with pytest.raises(ConflictError):
        await ShowService(db_session).provision_show(ShowCreate(**data))

    shows = await db_session.execute(select(func.count()).select_from(Show))
    assert shows.scalar() == 0
