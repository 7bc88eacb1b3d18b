import asyncio
import datetime

import pytest

from devtoolbox.exception_handler import ForbiddenError, NotFoundError, ValidationError
from devtoolbox.kv import MemoryKVStore
from devtoolbox.snippet import SnippetRepository


class _Clock:
    """Deterministic clock advancing one second per call."""

    def __init__(self):
        self.current = datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc)

    def __call__(self):
        self.current += datetime.timedelta(seconds=1)
        return self.current


def _make_repo(kv=None):
    return SnippetRepository(kv if kv is not None else MemoryKVStore(), clock=_Clock())


@pytest.mark.asyncio
async def test_create_then_get_returns_matching_snippet():
    repo = _make_repo()

    created = await repo.create("Email regex", "^[a-z]+@", "regex", is_public=True, owner_id="alice")
    other = await repo.create("Email regex", "^[a-z]+@", "regex", is_public=True, owner_id="alice")
    fetched = await repo.get_by_id(created.id)

    assert fetched == created
    assert fetched.title == "Email regex"
    assert fetched.content == "^[a-z]+@"
    assert fetched.type == "regex"
    assert fetched.is_public is True
    assert fetched.owner_id == "alice"
    assert fetched.created_at == fetched.updated_at
    assert created.id != other.id


@pytest.mark.asyncio
async def test_create_persists_record_and_owner_index():
    kv = MemoryKVStore()
    repo = _make_repo(kv)

    snippet = await repo.create("Payload", '{"a": 1}', "json", owner_id="alice")

    record = await kv.get(f"snippet:{snippet.id}")
    assert record["ownerId"] == "alice"
    assert record["isPublic"] is False
    assert await kv.get("user_snippets:alice") == [snippet.id]
    assert await kv.get("public_snippets") is None


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["title", "content", "type"])
async def test_create_requires_non_empty_fields(field):
    kv = MemoryKVStore()
    repo = _make_repo(kv)
    values = {"title": "t", "content": "c", "type": "custom"}
    values[field] = "   "

    with pytest.raises(ValidationError) as excinfo:
        await repo.create(**values)

    assert field in excinfo.value.message
    assert len(kv) == 0


@pytest.mark.asyncio
async def test_get_by_id_missing_raises_not_found():
    repo = _make_repo()

    with pytest.raises(NotFoundError):
        await repo.get_by_id("does-not-exist")


@pytest.mark.asyncio
async def test_legacy_user_id_field_is_read_as_owner():
    kv = MemoryKVStore()
    await kv.set(
        "snippet:legacy",
        {
            "id": "legacy",
            "title": "Old",
            "content": "x",
            "type": "custom",
            "isPublic": False,
            "userId": "alice",
            "createdAt": "2023-05-01T00:00:00+00:00",
            "updatedAt": "2023-05-01T00:00:00+00:00",
        },
    )
    repo = _make_repo(kv)

    snippet = await repo.get_by_id("legacy")

    assert snippet.owner_id == "alice"


@pytest.mark.asyncio
async def test_list_by_owner_is_newest_first_and_owner_scoped():
    repo = _make_repo()
    first = await repo.create("first", "1", "custom", owner_id="alice")
    await repo.create("bob's", "2", "custom", owner_id="bob")
    second = await repo.create("second", "3", "custom", owner_id="alice")

    snippets = await repo.list_by_owner("alice")

    assert [s.id for s in snippets] == [second.id, first.id]
    assert all(s.owner_id == "alice" for s in snippets)


@pytest.mark.asyncio
async def test_list_by_owner_drops_and_prunes_missing_records():
    kv = MemoryKVStore()
    repo = _make_repo(kv)
    kept = await repo.create("kept", "1", "custom", owner_id="alice")
    ghost = await repo.create("ghost", "2", "custom", owner_id="alice")
    await kv.delete(f"snippet:{ghost.id}")

    snippets = await repo.list_by_owner("alice")

    assert [s.id for s in snippets] == [kept.id]
    assert await kv.get("user_snippets:alice") == [kept.id]


@pytest.mark.asyncio
async def test_list_by_owner_ignores_foreign_ids_in_index():
    kv = MemoryKVStore()
    repo = _make_repo(kv)
    mine = await repo.create("mine", "1", "custom", owner_id="alice")
    theirs = await repo.create("theirs", "2", "custom", owner_id="bob")
    await kv.set("user_snippets:alice", [mine.id, theirs.id])

    snippets = await repo.list_by_owner("alice")

    assert [s.id for s in snippets] == [mine.id]


@pytest.mark.asyncio
async def test_concurrent_creates_by_same_owner_keep_every_index_entry():
    kv = MemoryKVStore()
    repo = _make_repo(kv)

    created = await asyncio.gather(
        *(repo.create(f"snippet {i}", "body", "custom", owner_id="alice") for i in range(20))
    )

    index = await kv.get("user_snippets:alice")
    assert sorted(index) == sorted(s.id for s in created)
    assert len(await repo.list_by_owner("alice")) == 20


@pytest.mark.asyncio
async def test_list_public_returns_metadata_only():
    repo = _make_repo()
    await repo.create("Public", "secret content", "json", is_public=True, owner_id="alice")
    await repo.create("Private", "hidden", "json", is_public=False, owner_id="alice")

    listing = await repo.list_public()

    assert [item.title for item in listing] == ["Public"]
    record = listing[0].to_record()
    assert set(record) == {"id", "title", "type", "createdAt"}
    assert "content" not in record


@pytest.mark.asyncio
async def test_list_public_filters_by_type_and_limits_to_newest():
    repo = _make_repo()
    await repo.create("json 1", "{}", "json", is_public=True, owner_id="alice")
    await repo.create("json 2", "{}", "json", is_public=True, owner_id="bob")
    await repo.create("regex", ".*", "regex", is_public=True, owner_id="alice")
    newest = await repo.create("json 3", "{}", "json", is_public=True, owner_id="alice")

    listing = await repo.list_public(type_filter="json", limit=1)

    assert [item.id for item in listing] == [newest.id]
    assert [item.title for item in await repo.list_public(type_filter="json")] == [
        "json 3",
        "json 2",
        "json 1",
    ]


@pytest.mark.asyncio
async def test_list_public_with_non_positive_limit_is_empty():
    repo = _make_repo()
    await repo.create("json", "{}", "json", is_public=True, owner_id="alice")

    assert await repo.list_public(limit=0) == []


@pytest.mark.asyncio
async def test_rebuild_public_index_recovers_orphaned_records():
    kv = MemoryKVStore()
    repo = _make_repo(kv)
    indexed = await repo.create("indexed", "1", "custom", is_public=True, owner_id="alice")
    orphan = await repo.create("orphan", "2", "custom", is_public=True, owner_id="alice")
    await kv.set("public_snippets", [indexed.id])

    assert [item.id for item in await repo.list_public()] == [indexed.id]

    count = await repo.rebuild_public_index()

    assert count == 2
    assert [item.id for item in await repo.list_public()] == [orphan.id, indexed.id]


@pytest.mark.asyncio
async def test_rebuild_owner_index_recovers_orphaned_records():
    kv = MemoryKVStore()
    repo = _make_repo(kv)
    first = await repo.create("first", "1", "custom", owner_id="alice")
    second = await repo.create("second", "2", "custom", owner_id="alice")
    await kv.delete("user_snippets:alice")

    assert await repo.list_by_owner("alice") == []
    assert await repo.rebuild_owner_index("alice") == 2
    assert [s.id for s in await repo.list_by_owner("alice")] == [second.id, first.id]


@pytest.mark.asyncio
async def test_repair_indexes_restores_orphans_and_logs_them(caplog):
    kv = MemoryKVStore()
    repo = _make_repo(kv)
    indexed = await repo.create("indexed", "1", "json", is_public=True, owner_id="alice")
    orphan = await repo.create("orphan", "2", "json", is_public=True, owner_id="alice")
    bob_private = await repo.create("bob", "3", "custom", owner_id="bob")
    await repo.create("anonymous", "4", "custom")
    await kv.set("user_snippets:alice", [indexed.id])
    await kv.set("public_snippets", [indexed.id])
    await kv.delete("user_snippets:bob")

    with caplog.at_level("WARNING", logger="devtoolbox"):
        repaired = await repo.repair_indexes()

    assert repaired == 3
    assert orphan.id in caplog.text
    assert bob_private.id in caplog.text
    assert [s.id for s in await repo.list_by_owner("alice")] == [orphan.id, indexed.id]
    assert [s.id for s in await repo.list_by_owner("bob")] == [bob_private.id]
    assert [item.id for item in await repo.list_public()] == [orphan.id, indexed.id]


@pytest.mark.asyncio
async def test_repair_indexes_leaves_consistent_indexes_alone():
    kv = MemoryKVStore()
    repo = _make_repo(kv)
    await repo.create("first", "1", "custom", is_public=True, owner_id="alice")
    await repo.create("second", "2", "custom", owner_id="alice")
    before = (await kv.get("user_snippets:alice"), await kv.get("public_snippets"))

    assert await repo.repair_indexes() == 0
    assert (await kv.get("user_snippets:alice"), await kv.get("public_snippets")) == before


@pytest.mark.asyncio
async def test_delete_by_owner_removes_record_and_indexes():
    kv = MemoryKVStore()
    repo = _make_repo(kv)
    snippet = await repo.create("shared", "1", "custom", is_public=True, owner_id="alice")
    other = await repo.create("other", "2", "custom", owner_id="alice")

    await repo.delete(snippet.id, "alice")

    assert await repo.find(snippet.id) is None
    assert await kv.get("user_snippets:alice") == [other.id]
    assert await kv.get("public_snippets") == []


@pytest.mark.asyncio
async def test_delete_by_non_owner_is_forbidden_and_leaves_snippet():
    repo = _make_repo()
    snippet = await repo.create("shared", "1", "custom", is_public=True, owner_id="alice")

    with pytest.raises(ForbiddenError):
        await repo.delete(snippet.id, "bob")

    assert await repo.get_by_id(snippet.id) == snippet
    assert [s.id for s in await repo.list_by_owner("alice")] == [snippet.id]


@pytest.mark.asyncio
async def test_delete_missing_is_not_found():
    repo = _make_repo()

    with pytest.raises(NotFoundError):
        await repo.delete("missing", "alice")


@pytest.mark.asyncio
async def test_anonymous_snippets_cannot_be_deleted_through_owner_path():
    repo = _make_repo()
    snippet = await repo.create("anon", "1", "custom")

    with pytest.raises(ForbiddenError):
        await repo.delete(snippet.id, None)

    assert await repo.find(snippet.id) is not None
