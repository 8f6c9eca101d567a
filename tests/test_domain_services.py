"""Unit tests for the post, media, search and identity services."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, Mock

import pytest

from socialhub.adapters.events.base import POST_CREATED, POST_DELETED, DomainEvent
from socialhub.adapters.events.in_memory import InMemoryEventBroker
from socialhub.adapters.storage.in_memory import InMemoryCollection
from socialhub.core.errors import NotFoundAppError, PermissionAppError, ValidationAppError
from socialhub.services.event_relay import EventRelay
from socialhub.services.identity_service import IdentityAdminService
from socialhub.services.media_service import MediaService
from socialhub.services.post_service import PostService
from socialhub.services.search_service import SearchService
from socialhub.utils.simple_cache import SimpleTTLCache


def _post_service(relay=None) -> PostService:
    if relay is None:
        relay = Mock()
        relay.publish = AsyncMock(return_value=None)
    return PostService(InMemoryCollection("posts"), relay, SimpleTTLCache(ttl_seconds=60), max_page_size=5)


class TestPostService:
    def test_create_publishes_post_created(self):
        service = _post_service()

        post = asyncio.run(service.create_post("alice", "  hi there ", ["m1"]))

        assert post["content"] == "hi there"
        event_type, payload = service.relay.publish.await_args.args
        assert event_type == POST_CREATED
        assert payload["postId"] == post["_id"]
        assert payload["userId"] == "alice"

    def test_create_succeeds_when_publish_is_skipped(self):
        service = _post_service()
        service.relay.publish = AsyncMock(return_value=None)

        post = asyncio.run(service.create_post("alice", "hello"))

        assert asyncio.run(service.get_post(post["_id"]))["content"] == "hello"

    def test_delete_publishes_media_ids(self):
        service = _post_service()

        async def _run():
            post = await service.create_post("alice", "with media", ["m1", "m2"])
            await service.delete_post(post["_id"], "alice")
            return post

        post = asyncio.run(_run())

        event_type, payload = service.relay.publish.await_args.args
        assert event_type == POST_DELETED
        assert payload == {"postId": post["_id"], "userId": "alice", "mediaIds": ["m1", "m2"]}

    def test_delete_by_other_user_is_forbidden(self):
        service = _post_service()

        async def _run():
            post = await service.create_post("alice", "mine")
            await service.delete_post(post["_id"], "mallory")

        with pytest.raises(PermissionAppError):
            asyncio.run(_run())

    def test_delete_missing_post_raises_not_found(self):
        with pytest.raises(NotFoundAppError):
            asyncio.run(_post_service().delete_post("nope", "alice"))

    @pytest.mark.parametrize("page, limit", [(0, 1), (1, 0), (1, 6)])
    def test_list_rejects_out_of_range_paging(self, page, limit):
        with pytest.raises(ValidationAppError):
            asyncio.run(_post_service().list_posts(page, limit))

    def test_deleted_post_is_not_served_from_cache(self):
        service = _post_service()

        async def _run():
            post = await service.create_post("alice", "cached")
            await service.get_post(post["_id"])
            await service.delete_post(post["_id"], "alice")
            await service.get_post(post["_id"])

        with pytest.raises(NotFoundAppError):
            asyncio.run(_run())


class TestMediaService:
    def test_post_deleted_handler_is_idempotent(self):
        service = MediaService(InMemoryCollection("media"))
        event = DomainEvent.create(POST_DELETED, {"postId": "p1", "mediaIds": ["m1", "m2"]})

        async def _run():
            await service.register_media("alice", original_name="a.png", mime_type="image/png", url="u", public_id="m1")
            await service.register_media("alice", original_name="b.png", mime_type="image/png", url="u", public_id="m2")
            await service.register_media("alice", original_name="c.png", mime_type="image/png", url="u", public_id="m3")
            await service.handle_post_deleted(event)
            await service.handle_post_deleted(event)
            return await service.list_media("alice")

        remaining = asyncio.run(_run())
        assert [m["_id"] for m in remaining] == ["m3"]

    def test_post_deleted_without_media_is_a_no_op(self):
        service = MediaService(InMemoryCollection("media"))

        asyncio.run(service.handle_post_deleted(DomainEvent.create(POST_DELETED, {"postId": "p1"})))


class TestSearchService:
    def test_search_is_case_insensitive_and_newest_first(self):
        service = SearchService(InMemoryCollection("search_posts"), results_limit=10)

        async def _run():
            await service.handle_post_created(
                DomainEvent.create(POST_CREATED, {"postId": "old", "userId": "a", "content": "Python tips", "createdAt": "2026-01-01T00:00:00+00:00"})
            )
            await service.handle_post_created(
                DomainEvent.create(POST_CREATED, {"postId": "new", "userId": "b", "content": "more PYTHON", "createdAt": "2026-02-01T00:00:00+00:00"})
            )
            return await service.search("python")

        assert [h["post_id"] for h in asyncio.run(_run())] == ["new", "old"]

    def test_mixed_naive_and_aware_timestamps_sort_together(self):
        service = SearchService(InMemoryCollection("search_posts"))

        async def _run():
            await service.handle_post_created(
                DomainEvent.create(POST_CREATED, {"postId": "a", "userId": "u", "content": "hello", "createdAt": "2024-01-01T00:00:00Z"})
            )
            await service.handle_post_created(
                DomainEvent.create(POST_CREATED, {"postId": "b", "userId": "u", "content": "hello", "createdAt": "2024-01-02T00:00:00"})
            )
            return await service.search("hello")

        hits = asyncio.run(_run())
        assert [h["post_id"] for h in hits] == ["b", "a"]
        assert hits[0]["created_at"] == datetime(2024, 1, 2, tzinfo=timezone.utc)

    def test_unparseable_created_at_falls_back_to_now(self):
        service = SearchService(InMemoryCollection("search_posts"))
        before = datetime.now(timezone.utc)

        async def _run():
            await service.handle_post_created(
                DomainEvent.create(POST_CREATED, {"postId": "p1", "userId": "u", "content": "hello", "createdAt": "yesterday"})
            )
            return await service.search("hello")

        (hit,) = asyncio.run(_run())
        assert hit["created_at"] >= before

    def test_query_is_matched_literally(self):
        service = SearchService(InMemoryCollection("search_posts"))

        async def _run():
            await service.handle_post_created(DomainEvent.create(POST_CREATED, {"postId": "p1", "userId": "u", "content": "costs $5 (approx)"}))
            await service.handle_post_created(DomainEvent.create(POST_CREATED, {"postId": "p2", "userId": "u", "content": "costs 5 approx"}))
            return await service.search("$5 (")

        assert [h["post_id"] for h in asyncio.run(_run())] == ["p1"]

    def test_duplicate_post_created_indexes_once(self):
        service = SearchService(InMemoryCollection("search_posts"))
        event = DomainEvent.create(POST_CREATED, {"postId": "p1", "userId": "a", "content": "hello"})

        async def _run():
            await service.handle_post_created(event)
            await service.handle_post_created(event)
            return await service.search_posts.count()

        assert asyncio.run(_run()) == 1

    def test_event_without_post_id_is_ignored(self):
        service = SearchService(InMemoryCollection("search_posts"))

        asyncio.run(service.handle_post_created(DomainEvent.create(POST_CREATED, {"content": "orphan"})))

        assert asyncio.run(service.search_posts.count()) == 0

    def test_blank_query_is_rejected(self):
        with pytest.raises(ValidationAppError):
            asyncio.run(SearchService(InMemoryCollection("s")).search("   "))


class TestIdentityAdminService:
    def test_stats_counts_last_24_hours(self):
        service = IdentityAdminService(InMemoryCollection("users"), InMemoryCollection("refresh_tokens"))
        now = datetime(2026, 3, 1, tzinfo=timezone.utc)

        async def _run():
            await service.add_user("a", "a@x.io", created_at=now - timedelta(hours=1))
            await service.add_user("b", "b@x.io", created_at=now - timedelta(hours=30))
            await service.refresh_tokens.insert_one({"user_id": "a"})
            return await service.stats(now=now)

        stats = asyncio.run(_run())
        assert stats["total_users"] == 2
        assert stats["new_users_today"] == 1
        assert stats["total_active_tokens"] == 1

    def test_list_users_reports_latest_registration(self):
        service = IdentityAdminService(InMemoryCollection("users"), InMemoryCollection("refresh_tokens"))
        first = datetime(2026, 1, 1, tzinfo=timezone.utc)
        second = datetime(2026, 1, 2, tzinfo=timezone.utc)

        async def _run():
            await service.add_user("a", "a@x.io", created_at=first)
            await service.add_user("b", "b@x.io", created_at=second)
            return await service.list_users()

        result = asyncio.run(_run())
        assert [u["username"] for u in result["users"]] == ["b", "a"]
        assert result["stats"]["latest_registration"] == second

    def test_clear_all_refused_in_production(self):
        service = IdentityAdminService(
            InMemoryCollection("users"), InMemoryCollection("refresh_tokens"), environment="production"
        )

        with pytest.raises(PermissionAppError) as exc_info:
            asyncio.run(service.clear_all())
        assert exc_info.value.code == "forbidden_in_production"


def test_post_lifecycle_propagates_to_search_and_media():
    """Posts created and deleted flow through one relay to both consumers."""
    async def _run():
        relay = EventRelay(InMemoryEventBroker(), service_name="test", sleep=AsyncMock())
        posts = _post_service(relay)
        media = MediaService(InMemoryCollection("media"))
        search = SearchService(InMemoryCollection("search_posts"))
        relay.subscribe(POST_DELETED, media.handle_post_deleted, name="media.handle_post_deleted")
        relay.subscribe(POST_CREATED, search.handle_post_created, name="search.handle_post_created")
        relay.subscribe(POST_DELETED, search.handle_post_deleted, name="search.handle_post_deleted")
        relay.start()
        await relay.wait_until_connected(1.0)

        await media.register_media("alice", original_name="a.png", mime_type="image/png", url="u", public_id="m1")
        post = await posts.create_post("alice", "event driven", ["m1"])
        await relay.broker.drain()
        indexed = await search.search("event")

        await posts.delete_post(post["_id"], "alice")
        await relay.broker.drain()
        after = (await search.search("event"), await media.list_media("alice"))
        await relay.stop()
        return indexed, after

    indexed, (hits_after, media_after) = asyncio.run(_run())
    assert len(indexed) == 1
    assert hits_after == []
    assert media_after == []


def test_collection_returns_copies():
    collection = InMemoryCollection("c")

    async def _run():
        doc = await collection.insert_one({"tags": ["a"]})
        doc["tags"].append("b")
        return await collection.find_one(doc["_id"])

    assert asyncio.run(_run())["tags"] == ["a"]
