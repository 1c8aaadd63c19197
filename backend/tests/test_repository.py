"""Tests for the entity repository: access checks, lifecycle and defaults."""

import pytest

from matte.auth.types import ANONYMOUS, CallerIdentity
from matte.errors import (
    AccessDenied,
    LifecycleConflict,
    RecordNotFound,
    RecordValidationError,
)
from matte.persistence.sqlite import SQLiteAdapter
from matte.records.repository import SINGLETON_ID, EntityRepository
from matte.schema import (
    boolean,
    entity,
    enum,
    number,
    owned_entity,
    private_entity,
    shared_entity,
    singleton_entity,
    string,
)

ALICE = CallerIdentity.user("alice")
BOB = CallerIdentity.user("bob")


@pytest.fixture
def adapter():
    adapter = SQLiteAdapter(":memory:")
    adapter.connect()
    yield adapter
    adapter.close()


@pytest.fixture
def make_repo(adapter):
    def factory(builder):
        definition = builder.build()
        adapter.initialize_entity(definition)
        return EntityRepository(definition, adapter)

    return factory


class TestRecords:
    def test_create_returns_record_keys(self, make_repo):
        repo = make_repo(entity("Product", [string("productName"), number("unitPrice")]))
        record = repo.create({"productName": "Lamp", "unitPrice": 20})

        assert list(record) == [
            "id", "productName", "unitPrice", "ownerId", "createdAt", "updatedAt",
        ]
        assert record["productName"] == "Lamp"
        assert record["unitPrice"] == 20

    def test_defaults_fill_omitted_fields(self, make_repo):
        repo = make_repo(entity("Task", [
            string("title"),
            enum("status", ["todo", "done"]).default("todo"),
            boolean("flagged").default(False),
        ]))
        record = repo.create({"title": "Write tests"})

        assert record["status"] == "todo"
        assert record["flagged"] is False

    def test_given_values_beat_defaults(self, make_repo):
        repo = make_repo(entity("Task", [enum("status", ["todo", "done"]).default("todo")]))
        assert repo.create({"status": "done"})["status"] == "done"

    def test_missing_required_field(self, make_repo):
        repo = make_repo(entity("Task", [string("title").required()]))
        with pytest.raises(RecordValidationError) as exc_info:
            repo.create({})
        assert [i.code for i in exc_info.value.issues] == ["REQUIRED"]

    def test_default_satisfies_required(self, make_repo):
        repo = make_repo(entity("Task", [string("title").required().default("Untitled")]))
        assert repo.create({})["title"] == "Untitled"

    def test_system_and_unknown_keys_are_ignored_on_create(self, make_repo):
        repo = make_repo(entity("Task", [string("title")]))
        record = repo.create({"title": "a", "id": "forged", "ownerId": "mallory", "bogus": 1})

        assert record["id"] != "forged"
        assert record["ownerId"] is None
        assert "bogus" not in record

    def test_find_by_id(self, make_repo):
        repo = make_repo(entity("Task", [string("title")]))
        created = repo.create({"title": "a"})
        assert repo.find_by_id(created["id"]) == created

    def test_find_by_id_missing(self, make_repo):
        repo = make_repo(entity("Task", [string("title")]))
        with pytest.raises(RecordNotFound):
            repo.find_by_id("missing")

    def test_find_all_filters_by_field_name(self, make_repo):
        repo = make_repo(entity("Task", [string("title"), boolean("isDone")]))
        repo.create({"title": "a", "isDone": True})
        repo.create({"title": "b", "isDone": False})

        assert [r["title"] for r in repo.find_all(filters={"isDone": True})] == ["a"]

    def test_find_all_unknown_filter(self, make_repo):
        repo = make_repo(entity("Task", [string("title")]))
        with pytest.raises(RecordValidationError) as exc_info:
            repo.find_all(filters={"bogus": 1})
        assert exc_info.value.issues[0].code == "UNKNOWN_FIELD"

    def test_update(self, make_repo):
        repo = make_repo(entity("Task", [string("title"), number("score")]))
        created = repo.create({"title": "a", "score": 1})
        updated = repo.update(created["id"], {"score": 2, "createdAt": "forged"})

        assert updated["title"] == "a"
        assert updated["score"] == 2
        assert updated["createdAt"] == created["createdAt"]

    def test_update_validates_changes(self, make_repo):
        repo = make_repo(entity("Task", [string("title").required(), number("score").max(5)]))
        created = repo.create({"title": "a"})
        with pytest.raises(RecordValidationError):
            repo.update(created["id"], {"score": 6})
        with pytest.raises(RecordValidationError):
            repo.update(created["id"], {"title": None})

    def test_update_without_changes_returns_record(self, make_repo):
        repo = make_repo(entity("Task", [string("title")]))
        created = repo.create({"title": "a"})
        assert repo.update(created["id"], {"unknown": 1}) == created

    def test_update_missing(self, make_repo):
        repo = make_repo(entity("Task", [string("title")]))
        with pytest.raises(RecordNotFound):
            repo.update("missing", {"title": "b"})

    def test_delete(self, make_repo):
        repo = make_repo(entity("Task", [string("title")]))
        created = repo.create({"title": "a"})
        repo.delete(created["id"])

        with pytest.raises(RecordNotFound):
            repo.find_by_id(created["id"])
        with pytest.raises(RecordNotFound):
            repo.delete(created["id"])


class TestOwnership:
    def test_creator_becomes_owner(self, make_repo):
        repo = make_repo(owned_entity("Post", [string("title")]))
        assert repo.create({"title": "a"}, ALICE)["ownerId"] == "alice"

    def test_owned_entity_needs_identity(self, make_repo):
        repo = make_repo(owned_entity("Post", [string("title")]))
        with pytest.raises(AccessDenied) as exc_info:
            repo.create({"title": "a"}, ANONYMOUS)
        assert exc_info.value.authenticated is False

    def test_owned_entity_is_public_to_read(self, make_repo):
        repo = make_repo(owned_entity("Post", [string("title")]))
        created = repo.create({"title": "a"}, ALICE)
        assert repo.find_by_id(created["id"], ANONYMOUS)["title"] == "a"


class TestPrivateEntity:
    @pytest.fixture
    def notes(self, make_repo):
        return make_repo(private_entity("Note", [string("body")]))

    def test_anonymous_is_refused_before_lookup(self, notes):
        with pytest.raises(AccessDenied):
            notes.find_by_id("missing", ANONYMOUS)
        with pytest.raises(AccessDenied):
            notes.find_all(ANONYMOUS)

    def test_list_is_narrowed_to_owner(self, notes):
        notes.create({"body": "alice 1"}, ALICE)
        notes.create({"body": "bob 1"}, BOB)
        notes.create({"body": "alice 2"}, ALICE)

        assert [r["body"] for r in notes.find_all(ALICE)] == ["alice 2", "alice 1"]
        assert [r["body"] for r in notes.find_all(BOB)] == ["bob 1"]

    def test_owner_filter_cannot_be_overridden(self, notes):
        notes.create({"body": "alice 1"}, ALICE)
        assert notes.find_all(BOB, {"ownerId": "alice"}) == []

    def test_other_users_record_looks_missing(self, notes):
        created = notes.create({"body": "secret"}, ALICE)

        with pytest.raises(RecordNotFound):
            notes.find_by_id(created["id"], BOB)
        with pytest.raises(RecordNotFound):
            notes.update(created["id"], {"body": "mine now"}, BOB)
        with pytest.raises(RecordNotFound):
            notes.delete(created["id"], BOB)

        assert notes.find_by_id(created["id"], ALICE)["body"] == "secret"

    def test_owner_can_update_and_delete(self, notes):
        created = notes.create({"body": "draft"}, ALICE)
        assert notes.update(created["id"], {"body": "final"}, ALICE)["body"] == "final"
        notes.delete(created["id"], ALICE)
        assert notes.find_all(ALICE) == []


class TestReadableButOwnerWritable:
    @pytest.fixture
    def posts(self, make_repo):
        return make_repo(
            owned_entity("Post", [string("title")])
            .read_level("authenticated")
            .write_level("owner")
        )

    def test_everyone_signed_in_can_read(self, posts):
        created = posts.create({"title": "hello"}, ALICE)
        assert posts.find_by_id(created["id"], BOB)["title"] == "hello"
        assert len(posts.find_all(BOB)) == 1

    def test_non_owner_write_is_forbidden(self, posts):
        created = posts.create({"title": "hello"}, ALICE)
        with pytest.raises(AccessDenied) as exc_info:
            posts.update(created["id"], {"title": "hijacked"}, BOB)
        assert exc_info.value.authenticated is True
        with pytest.raises(AccessDenied):
            posts.delete(created["id"], BOB)


class TestSharedEntity:
    def test_anonymous_reads_but_cannot_write(self, make_repo):
        wiki = make_repo(shared_entity("Wiki", [string("body")]))
        created = wiki.create({"body": "a"}, ALICE)

        assert wiki.find_by_id(created["id"], ANONYMOUS)["body"] == "a"
        with pytest.raises(AccessDenied):
            wiki.create({"body": "b"}, ANONYMOUS)
        with pytest.raises(AccessDenied):
            wiki.update(created["id"], {"body": "c"}, ANONYMOUS)

    def test_any_signed_in_user_can_edit(self, make_repo):
        wiki = make_repo(shared_entity("Wiki", [string("body")]))
        created = wiki.create({"body": "a"}, ALICE)
        assert wiki.update(created["id"], {"body": "b"}, BOB)["body"] == "b"


class TestLifecycle:
    def test_instance_per_user(self, make_repo):
        profiles = make_repo(
            private_entity("Profile", [string("bio")]).lifecycle("instancePerUser")
        )
        profiles.create({"bio": "alice"}, ALICE)
        profiles.create({"bio": "bob"}, BOB)

        with pytest.raises(LifecycleConflict):
            profiles.create({"bio": "alice again"}, ALICE)

    def test_instance_per_user_allows_recreate_after_delete(self, make_repo):
        profiles = make_repo(
            private_entity("Profile", [string("bio")]).lifecycle("instancePerUser")
        )
        first = profiles.create({"bio": "v1"}, ALICE)
        profiles.delete(first["id"], ALICE)
        assert profiles.create({"bio": "v2"}, ALICE)["bio"] == "v2"

    def test_instance_per_user_find_one(self, make_repo):
        profiles = make_repo(
            owned_entity("Profile", [string("bio")])
            .read_level("authenticated")
            .write_level("owner")
            .lifecycle("instancePerUser")
        )
        assert profiles.find_one(ALICE) is None
        profiles.create({"bio": "bob"}, BOB)
        profiles.create({"bio": "alice"}, ALICE)
        assert profiles.find_one(ALICE)["bio"] == "alice"

    def test_singleton(self, make_repo):
        settings = make_repo(singleton_entity("Settings", [string("siteName")]))
        created = settings.create({"siteName": "Matte"}, ALICE)

        assert created["id"] == SINGLETON_ID
        with pytest.raises(LifecycleConflict):
            settings.create({"siteName": "Other"}, BOB)
        assert settings.find_one(BOB)["siteName"] == "Matte"

    def test_singleton_can_be_recreated_after_delete(self, make_repo):
        settings = make_repo(singleton_entity("Settings", [string("siteName")]))
        settings.create({"siteName": "v1"}, ALICE)
        settings.delete(SINGLETON_ID, BOB)

        assert settings.find_one(ALICE) is None
        assert settings.create({"siteName": "v2"}, BOB)["siteName"] == "v2"

    def test_storage_rejects_race_past_the_count_check(self, make_repo, adapter):
        settings = make_repo(singleton_entity("Settings", [string("siteName")]))
        # Row written behind the repository's back, as a concurrent request would
        adapter.insert(settings.entity, {"id": SINGLETON_ID, "site_name": "raced"})
        settings._check_cardinality = lambda caller: None

        with pytest.raises(LifecycleConflict):
            settings.create({"siteName": "late"}, ALICE)

    def test_default_lifecycle_is_unbounded(self, make_repo):
        repo = make_repo(private_entity("Note", [string("body")]))
        for i in range(3):
            repo.create({"body": str(i)}, ALICE)
        assert len(repo.find_all(ALICE)) == 3
