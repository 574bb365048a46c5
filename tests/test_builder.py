"""Tests for the graph builder through the Server facade."""

import pytest

from backdrop.config import MAX_DEPTH_CEILING
from backdrop.errors import (
    NotFoundError,
    RecursionLimitError,
    UndeclaredAttributeError,
    UnknownTraitError,
    UnresolvedDependencyError,
    UnsupportedAssociationError,
    ValidationError,
)
from backdrop.factories.definition import association, factory, sequence, trait
from backdrop.factories.fakes import fake
from backdrop.server import Server

from conftest import blog_models


def add_comments(post, server):
    server.create_list("comment", 2, commentable=post)


def blog_factories() -> dict:
    return {
        "user": factory(
            name=lambda i, r: f"User {i}",
            email=lambda i, r: f"user{i}@example.com",
            admin=trait(role="admin"),
        ),
        "post": factory(
            title=lambda i, r: f"Post {i}",
            slug=lambda i, r: r["title"].lower().replace(" ", "-"),
            user=association(),
            published=trait(published=True),
            with_comments=trait(after_create=add_comments),
            by_admin=trait(user=association("admin")),
        ),
        "comment": factory(body=sequence("Comment {}")),
        "tag": factory(name=sequence("tag-{}")),
    }


@pytest.fixture
def server() -> Server:
    return Server(blog_models(), blog_factories())


class TestCreate:
    """Tests for single record creation."""

    def test_create_uses_factory(self, server):
        post = server.create("post")
        assert post["title"] == "Post 0"
        assert post["slug"] == "post-0"
        assert post.id == "1"

    def test_create_without_factory(self, server):
        video = server.create("video", title="Clip")
        assert video["title"] == "Clip"

    def test_override_wins(self, server):
        post = server.create("post", title="X")
        assert post["title"] == "X"
        assert post["slug"] == "x"

    def test_traits_and_override_dicts(self, server):
        post = server.create("post", "published", {"title": "Dict"})
        assert post["published"] is True
        assert post["title"] == "Dict"

    def test_invalid_argument_type(self, server):
        with pytest.raises(TypeError):
            server.create("post", 42)

    def test_unknown_model(self, server):
        with pytest.raises(NotFoundError):
            server.create("planet")

    def test_unknown_trait_creates_nothing(self, server):
        with pytest.raises(UnknownTraitError):
            server.create("post", "archived")
        assert server.dump()["post"] == []
        assert server.dump()["user"] == []
        assert server.create("post")["title"] == "Post 0"

    def test_factory_for_unknown_model_rejected(self):
        with pytest.raises(NotFoundError):
            Server(blog_models(), {"planet": factory(name="Mars")})


class TestCreateList:
    """Tests for create_list."""

    def test_indexes_count_up(self, server):
        items = server.create_list("tag", 5)
        assert [t["name"] for t in items] == [f"tag-{i}" for i in range(5)]

    def test_each_record_runs_full_pipeline(self, server):
        posts = server.create_list("post", 3)
        user_ids = {p["user_id"] for p in posts}
        assert len(user_ids) == 3
        assert len(server.schema.users) == 3

    def test_override_values_are_not_shared(self, server):
        labels = ["a"]
        posts = server.create_list("post", 3, labels=labels)
        labels.append("late")
        assert [p["labels"] for p in server.schema.posts.all()] == [["a"]] * 3

        rows = [server.db._rows("post")[p.id] for p in posts]
        assert rows[0]["labels"] is not rows[1]["labels"]
        assert rows[1]["labels"] is not rows[2]["labels"]

    def test_zero_count(self, server):
        assert server.create_list("post", 0) == []

    def test_negative_count(self, server):
        with pytest.raises(ValidationError):
            server.create_list("post", -1)

    def test_indexes_continue_across_calls(self, server):
        server.create_list("tag", 2)
        assert server.create("tag")["name"] == "tag-2"

    def test_indexes_survive_reset(self, server):
        server.create_list("tag", 2)
        server.reset()
        tag = server.create("tag")
        assert tag["name"] == "tag-2"
        assert tag.id == "3"


class TestAssociationHelpers:
    """association() attributes create related records unless supplied."""

    def test_helper_creates_related_record(self, server):
        post = server.create("post")
        user = post.user
        assert user is not None
        assert user["name"] == "User 0"
        assert user["post_ids"] == [post.id]

    def test_supplied_record_is_not_overwritten(self, server):
        user = server.create("user", name="Ada")
        post = server.create("post", user=user)
        assert post["user_id"] == user.id
        assert post.user == user
        assert post.user.same_values(user.reload())
        assert len(server.schema.users) == 1

    def test_supplied_foreign_key_is_not_overwritten(self, server):
        user = server.create("user")
        post = server.create("post", user_id=user.id)
        assert post["user_id"] == user.id
        assert len(server.schema.users) == 1

    def test_supplied_none_skips_creation(self, server):
        post = server.create("post", user=None)
        assert post["user_id"] is None
        assert len(server.schema.users) == 0

    def test_helper_traits(self, server):
        post = server.create("post", "by_admin")
        assert post.user["role"] == "admin"

    def test_dependents_can_read_related_record(self):
        server = Server(
            blog_models(),
            {
                "user": factory(name="Ada"),
                "post": factory(
                    user=association(),
                    byline=lambda i, r: f"by {r['user']['name']}",
                ),
            },
        )
        assert server.create("post")["byline"] == "by Ada"

    def test_plural_helper_rejected(self):
        server = Server(blog_models(), {"post": factory(comments=association())})
        with pytest.raises(UnsupportedAssociationError):
            server.create("post")

    def test_polymorphic_helper_rejected(self):
        server = Server(blog_models(), {"comment": factory(commentable=association())})
        with pytest.raises(UnsupportedAssociationError):
            server.create("comment")

    def test_undeclared_helper_rejected(self):
        server = Server(blog_models(), {"tag": factory(owner=association())})
        with pytest.raises(UnsupportedAssociationError):
            server.create("tag")


class TestHooks:
    """Post-creation hooks."""

    def test_hook_creates_related_records(self, server):
        post = server.create("post", "with_comments")
        assert len(post["comment_ids"]) == 2
        assert [c["body"] for c in post.comments] == ["Comment 0", "Comment 1"]

    def test_hook_order_is_base_then_named_traits(self):
        calls = []
        server = Server(
            blog_models(),
            {
                "tag": factory(
                    after_create=lambda r, s: calls.append("base"),
                    a=trait(after_create=lambda r, s: calls.append("a")),
                    b=trait(after_create=lambda r, s: calls.append("b")),
                )
            },
        )
        server.create("tag", "b", "a")
        assert calls == ["base", "b", "a"]

    def test_hook_sees_persisted_record(self):
        seen = []
        server = Server(
            blog_models(),
            {"tag": factory(name="x", after_create=lambda r, s: seen.append(r))},
        )
        tag = server.create("tag")
        assert seen[0].id == tag.id
        assert server.schema.tags.find(seen[0].id) == seen[0]

    def test_hook_receives_server_handle(self):
        handles = []
        server = Server(
            blog_models(), {"tag": factory(after_create=lambda r, s: handles.append(s))}
        )
        server.create("tag")
        assert handles == [server]

    def test_later_hook_sees_earlier_hook_changes(self):
        def first(record, server):
            record.update(step=1)

        seen = []
        server = Server(
            blog_models(),
            {
                "tag": factory(
                    after_create=first,
                    check=trait(after_create=lambda r, s: seen.append(r["step"])),
                )
            },
        )
        tag = server.create("tag", "check")
        assert seen == [1]
        assert tag["step"] == 1

    def test_returned_record_reflects_hooks(self, server):
        post = server.create("post", "with_comments")
        assert post.same_values(server.schema.posts.find(post.id))

    def test_self_recreating_hook_hits_depth_limit(self):
        server = Server(
            blog_models(),
            {"tag": factory(after_create=lambda r, s: s.create("tag"))},
            max_depth=5,
        )
        with pytest.raises(RecursionLimitError) as exc_info:
            server.create("tag")
        assert exc_info.value.limit == 5
        assert len(exc_info.value.chain) == 6
        assert exc_info.value.chain[0].startswith("tag#0")

    def test_deepest_allowed_limit_still_raises_depth_error(self):
        server = Server(
            blog_models(),
            {"tag": factory(after_create=lambda r, s: s.create("tag"))},
            max_depth=MAX_DEPTH_CEILING,
        )
        with pytest.raises(RecursionLimitError) as exc_info:
            server.create("tag")
        assert exc_info.value.limit == MAX_DEPTH_CEILING
        assert len(exc_info.value.chain) == MAX_DEPTH_CEILING + 1

    @pytest.mark.parametrize("depth", [0, MAX_DEPTH_CEILING + 1, 1000])
    def test_limit_outside_range_rejected(self, depth):
        with pytest.raises(ValidationError):
            Server(blog_models(), max_depth=depth)

    def test_interpreter_overflow_reported_as_depth_error(self):
        def overflow(record, server):
            raise RecursionError("maximum recursion depth exceeded")

        server = Server(blog_models(), {"tag": factory(after_create=overflow)})
        with pytest.raises(RecursionLimitError) as exc_info:
            server.create("tag")
        assert exc_info.value.chain == ["tag#0"]
        assert isinstance(exc_info.value.__cause__, RecursionError)

        # the builder is usable again afterwards
        assert server.builder.depth == 0

    def test_failure_leaves_earlier_records(self):
        def explode(record, server):
            raise RuntimeError("boom")

        server = Server(blog_models(), {"tag": factory(after_create=explode)})
        with pytest.raises(RuntimeError):
            server.create("tag")
        assert len(server.schema.tags) == 1


class TestResolutionErrors:
    """Errors raised while resolving attributes surface unchanged."""

    def test_unresolved_dependency(self):
        server = Server(
            blog_models(),
            {"tag": factory(slug=lambda i, r: r["name"].lower(), name="X")},
        )
        with pytest.raises(UnresolvedDependencyError):
            server.create("tag")
        assert len(server.schema.tags) == 0

    def test_undeclared_attribute(self):
        server = Server(blog_models(), {"tag": factory(slug=lambda i, r: r["name"])})
        with pytest.raises(UndeclaredAttributeError):
            server.create("tag")
        assert server.create("tag", name="given")["slug"] == "given"


class TestDeterminism:
    """Same seed, same data."""

    @staticmethod
    def build(seed):
        server = Server(
            blog_models(),
            {"user": factory(name=fake("name"), token=fake("uuid4"))},
            seed=seed,
        )
        server.create_list("user", 3)
        return server.dump()["user"]

    def test_same_seed_same_values(self):
        assert self.build(7) == self.build(7)

    def test_different_seed_different_values(self):
        first = self.build(7)
        second = self.build(8)
        assert [u["token"] for u in first] != [u["token"] for u in second]

    def test_values_differ_per_index(self):
        tokens = [u["token"] for u in self.build(7)]
        assert len(set(tokens)) == 3
