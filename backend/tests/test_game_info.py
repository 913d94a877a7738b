"""Tests for the public facade: sessions, selection, background refresh."""
import asyncio

import pytest

from creator_stats.schemas import Totals
from tests.conftest import game_row


def seed_user(upstream, user_id, ids, visits_each=0, playing_each=0):
    upstream.user_games[user_id] = [[game_row(uid) for uid in ids]]
    for uid in ids:
        upstream.icons[uid] = f"https://img.test/{uid}"
        upstream.counters[uid] = {"playing": playing_each, "visits": visits_each}


@pytest.mark.asyncio
async def test_session_start_awards_welcome_and_queues_refresh(service, upstream, rewards, profiles):
    seed_user(upstream, 1, [10, 11], visits_each=6_000, playing_each=4)

    others = await service.on_session_start(1)
    await service.queue.wait_idle()

    assert others == []
    assert service.sessions.is_loaded(1)
    assert service._sleep.calls == [2.0]
    assert rewards.names_for(1) == ["Welcome", "OneThousandVisits", "TenThousandVisits"]
    assert profiles.mirrored == [(1, 12_000, 8)]
    assert service.get_info(1)["user_id"] == 1


@pytest.mark.asyncio
async def test_milestones_are_independent_and_repeat_safe(service, upstream, rewards):
    seed_user(upstream, 1, [10], visits_each=2_500_000)
    service.begin_session(1)

    service.request_refresh(1)
    service.request_refresh(1)
    await service.queue.wait_idle()

    assert rewards.names_for(1) == [
        "OneThousandVisits", "TenThousandVisits", "OneHundredThousandVisits", "OneMillionVisits",
    ]


@pytest.mark.asyncio
async def test_worker_processes_users_in_request_order(service, upstream, profiles):
    for user_id, base in ((1, 10), (2, 20), (3, 30)):
        seed_user(upstream, user_id, [base, base + 1], visits_each=user_id)
        service.begin_session(user_id)

    # B is already cached so its job finishes without any fetch
    await service.get_totals(2)
    service.request_refresh(1)
    service.request_refresh(2)
    service.request_refresh(3)
    await service.queue.wait_idle()

    assert [user_id for user_id, _, _ in profiles.mirrored] == [1, 2, 3]


@pytest.mark.asyncio
async def test_session_end_purges_caches_and_pending_jobs(service, upstream, store, profiles):
    seed_user(upstream, 1, [10])
    service.begin_session(1)
    service.get_info(1)
    await service.get_owned_payload(1)
    await service.get_totals(1)

    assert service.request_refresh(1) is True
    service.on_session_end(1)
    await service.queue.wait_idle()

    assert not store.has_entries(1)
    assert service.queue.pending == ()
    assert profiles.mirrored == []
    assert service.request_refresh(1) is False


@pytest.mark.asyncio
async def test_job_for_ended_session_is_skipped(service, upstream, profiles):
    seed_user(upstream, 1, [10])
    service.begin_session(1)

    service.request_refresh(1)
    service.sessions.end(1)
    await service.queue.wait_idle()

    assert profiles.mirrored == []


@pytest.mark.asyncio
async def test_session_end_during_refresh_leaves_no_cache_entries(service, upstream, store, monkeypatch):
    seed_user(upstream, 7, [70], visits_each=5)
    service.begin_session(7)

    started = asyncio.Event()
    release = asyncio.Event()
    fetch_owned_content = service.owned_content.fetcher.fetch_owned_content

    async def held_fetch(user_id):
        started.set()
        await release.wait()
        return await fetch_owned_content(user_id)

    monkeypatch.setattr(service.owned_content.fetcher, "fetch_owned_content", held_fetch)

    assert service.request_refresh(7) is True
    await started.wait()
    service.on_session_end(7)
    release.set()
    await service.queue.wait_idle()

    assert not store.has_entries(7)
    assert store.cached_users() == []
    assert service.owned_content._refresh_locks == {}


@pytest.mark.asyncio
async def test_late_info_write_is_dropped_when_session_ends_during_start(service, upstream, store):
    seed_user(upstream, 3, [30])

    async def award_then_leave(user_id, reward_name):
        service.on_session_end(user_id)
        return True

    service.rewards.award = award_then_leave
    await service.on_session_start(3)
    await service.queue.wait_idle()

    assert store.cached_users() == []


@pytest.mark.asyncio
async def test_session_start_reports_other_users_selections(service, upstream, profiles):
    seed_user(upstream, 1, [10])
    seed_user(upstream, 2, [20])
    profiles.profiles.add(1)
    profiles.selected[1] = 10
    service.begin_session(1)

    others = await service.on_session_start(2)
    await service.queue.wait_idle()

    assert [(user_id, entry.universe_id) for user_id, entry in others] == [(1, 10)]


@pytest.mark.asyncio
async def test_try_select_owned_content(service, upstream, profiles):
    seed_user(upstream, 1, [10, 11])
    service.begin_session(1)
    profiles.profiles.add(1)
    seen = []
    service.add_selection_listener(lambda user_id, entry: seen.append((user_id, entry.universe_id)))

    result = await service.try_select(1, 11)

    assert result.success is True
    assert result.entry.universe_id == 11
    assert result.entry.image_url == "https://img.test/11"
    assert profiles.selected[1] == 11
    assert seen == [(1, 11)]

    again = await service.try_select(1, 11)
    assert (again.success, again.reason) == (False, "already_selected")


@pytest.mark.asyncio
@pytest.mark.parametrize("universe_id", [0, -3, "abc", None])
async def test_try_select_rejects_invalid_ids(service, profiles, universe_id):
    profiles.profiles.add(1)

    result = await service.try_select(1, universe_id)

    assert (result.success, result.reason) == (False, "invalid_id")


@pytest.mark.asyncio
async def test_try_select_requires_profile(service, upstream):
    seed_user(upstream, 1, [10])

    result = await service.try_select(1, 10)

    assert (result.success, result.reason) == (False, "no_profile")


@pytest.mark.asyncio
async def test_try_select_rejects_content_not_owned(service, upstream, profiles):
    seed_user(upstream, 1, [10])
    profiles.profiles.add(1)

    result = await service.try_select(1, 99)

    assert (result.success, result.reason) == (False, "not_owned")
    assert 1 not in profiles.selected


@pytest.mark.asyncio
async def test_try_select_refreshes_stale_cache_once(service, upstream, profiles, clock):
    seed_user(upstream, 1, [10])
    service.begin_session(1)
    profiles.profiles.add(1)
    await service.get_owned_payload(1)

    seed_user(upstream, 1, [10, 12])

    # Inside the TTL the refresh is a cache hit, so new content is not visible yet
    assert (await service.try_select(1, 12)).reason == "not_owned"

    clock.advance(61)
    result = await service.try_select(1, 12)

    assert result.success is True
    assert result.entry.universe_id == 12


@pytest.mark.asyncio
async def test_current_selection_builds_cache_when_missing(service, upstream, profiles):
    seed_user(upstream, 1, [10, 11])
    service.begin_session(1)
    profiles.selected[1] = 11

    entry = await service.get_current_selection(1)

    assert entry.universe_id == 11
    assert service.owned_content.cached_payload(1) is not None
    assert upstream.count("games.test", "/v2/users/1") == 1


@pytest.mark.asyncio
async def test_current_selection_uses_stale_cache_without_refetch(service, upstream, profiles, clock):
    seed_user(upstream, 1, [10])
    service.begin_session(1)
    profiles.selected[1] = 10
    await service.get_owned_payload(1)
    clock.advance(600)

    assert (await service.get_current_selection(1)).universe_id == 10
    assert upstream.count("games.test", "/v2/users/1") == 1


@pytest.mark.asyncio
async def test_current_selection_none_without_selection(service, upstream):
    assert await service.get_current_selection(1) is None
    assert upstream.requests == []


@pytest.mark.asyncio
async def test_refresh_all_expires_totals_for_active_users(service, upstream, store, profiles):
    seed_user(upstream, 1, [10], visits_each=5)
    seed_user(upstream, 2, [20], visits_each=7)
    service.begin_session(1)
    service.begin_session(2)
    await service.get_totals(1)

    upstream.counters[10] = {"playing": 0, "visits": 50}
    queued = service.refresh_all()
    await service.queue.wait_idle()

    assert queued == 2
    assert profiles.mirrored == [(1, 50, 0), (2, 7, 0)]


@pytest.mark.asyncio
async def test_periodic_refresh_ticks_until_cancelled(service):
    service.begin_session(1)
    ticks = []
    sleeps = []

    async def sleep(seconds):
        sleeps.append(seconds)
        ticks.append(seconds)
        if len(sleeps) == 3:
            raise asyncio.CancelledError()

    service._sleep = sleep
    service.refresh_all = lambda: ticks.append("tick") or 1

    with pytest.raises(asyncio.CancelledError):
        await service.run_periodic_refresh(30)

    assert sleeps == [30, 30, 30]
    assert ticks == [30, "tick", 30, "tick", 30]


@pytest.mark.asyncio
async def test_public_operations_never_raise(service, monkeypatch):
    async def explode(*args, **kwargs):
        raise RuntimeError("upstream exploded")

    monkeypatch.setattr(service.owned_content, "get_owned_payload", explode)
    monkeypatch.setattr(service.totals, "get_totals", explode)
    service.profiles.selected[1] = 10

    assert await service.get_owned_payload(1) == ()
    assert await service.get_totals(1) == Totals()
    assert await service.get_current_selection(1) is None


@pytest.mark.asyncio
async def test_listener_failure_is_swallowed(service, upstream, profiles):
    seed_user(upstream, 1, [10])
    profiles.profiles.add(1)

    def broken(user_id, entry):
        raise ValueError("listener bug")

    service.add_selection_listener(broken)

    assert (await service.try_select(1, 10)).success is True
