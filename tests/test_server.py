"""Tests for the Server facade, the schema facade and declarative server files."""

import textwrap

import pytest

from backdrop.config import MAX_DEPTH_CEILING
from backdrop.core.models.server import FactorySpec, ServerSpec
from backdrop.errors import (
    FormulaError,
    NotFoundError,
    RecursionLimitError,
    SpecError,
    ValidationError,
)
from backdrop.factories.spec import compile_attribute, compile_factories
from backdrop.server import Server

from conftest import blog_models


BLOG_YAML = textwrap.dedent(
    """\
    meta:
      name: blog
      seed: 42
    models:
      user:
        associations:
          posts: {kind: has_many}
      post:
        associations:
          user: {kind: belongs_to}
          comments: {kind: has_many, inverse: commentable}
      comment:
        associations:
          commentable: {kind: belongs_to, polymorphic: true, inverse: comments}
    factories:
      user:
        attributes:
          name: {fake: name}
          email: {sequence: "user{}@example.com"}
        traits:
          admin:
            attributes:
              role: admin
      post:
        attributes:
          title: {formula: "f'Post {i}'"}
          slug: {formula: "title.lower().replace(' ', '-')"}
          user: {association: {}}
          meta: {value: {views: 0}}
        traits:
          with_comments:
            after_create:
              - {model: comment, count: 2, link: commentable}
      comment:
        attributes:
          body: Nice post
    seeds:
      - {model: post, count: 3, traits: [with_comments]}
    """
)


@pytest.fixture
def blog_file(tmp_path):
    path = tmp_path / "blog.yaml"
    path.write_text(BLOG_YAML)
    return path


class TestSchemaFacade:
    """Tests for schema.<plural> collections."""

    @pytest.fixture
    def server(self):
        return Server(blog_models())

    def test_collections_by_plural(self, server):
        server.schema.users.create(name="Ada")
        assert [u["name"] for u in server.schema.users.all()] == ["Ada"]
        assert server.schema["users"].first()["name"] == "Ada"

    def test_find_single_and_many(self, server):
        a = server.schema.tags.create({"name": "a"})
        b = server.schema.tags.create({"name": "b"})
        assert server.schema.tags.find(a.id) == a
        assert server.schema.tags.find([b.id, a.id, "99"]) == [b, a]
        assert server.schema.tags.find("99") is None

    def test_find_or_fail(self, server):
        with pytest.raises(NotFoundError):
            server.schema.tags.find_or_fail("99")

    def test_where_and_find_by(self, server):
        server.schema.posts.create(title="A", published=True)
        server.schema.posts.create(title="B", published=False)
        assert len(server.schema.posts.where({"published": True})) == 1
        assert server.schema.posts.find_by(title="B")["published"] is False
        assert server.schema.posts.find_by(title="C") is None

    def test_create_bypasses_factories(self):
        from backdrop.factories.definition import factory

        server = Server(blog_models(), {"tag": factory(name="from factory")})
        assert "name" not in server.schema.tags.create()
        assert server.create("tag")["name"] == "from factory"

    def test_collection_by_model_name(self, server):
        assert server.schema.collection("tag").model == "tag"

    def test_unknown_collection(self, server):
        with pytest.raises(AttributeError):
            server.schema.planets
        with pytest.raises(NotFoundError):
            server.schema["planets"]

    def test_first_on_empty(self, server):
        assert server.schema.videos.first() is None


class TestFixtures:
    """Tests for load_fixtures."""

    def test_rows_may_reference_later_rows(self):
        server = Server(blog_models())
        loaded = server.load_fixtures(
            {
                "post": [{"id": "1", "title": "A", "user_id": "1"}],
                "user": [{"id": "1", "name": "Ada"}],
            }
        )
        assert loaded["post"][0]["user_id"] == "1"
        assert server.schema.users.find("1")["post_ids"] == ["1"]
        assert server.check_integrity() == []

    def test_ids_continue_after_fixtures(self):
        server = Server(blog_models())
        server.load_fixtures({"tag": [{"id": "5", "name": "x"}]})
        assert server.schema.tags.create().id == "6"

    def test_unknown_model(self):
        server = Server(blog_models())
        with pytest.raises(NotFoundError):
            server.load_fixtures({"planet": [{"name": "Mars"}]})


class TestServerSpec:
    """Tests for declarative server files."""

    def test_from_yaml(self, blog_file):
        spec = ServerSpec.from_yaml(blog_file)
        assert spec.meta.name == "blog"
        assert spec.models["post"].associations["user"].kind == "belongs_to"
        assert spec.seeds[0].traits == ["with_comments"]
        assert "Seeds:" in spec.summary()

    def test_empty_model_body(self, tmp_path):
        path = tmp_path / "tiny.yaml"
        path.write_text("models:\n  tag:\n")
        spec = ServerSpec.from_yaml(path)
        assert "tag" in spec.models

    def test_to_yaml_reloads(self, blog_file, tmp_path):
        spec = ServerSpec.from_yaml(blog_file)
        out = tmp_path / "out" / "copy.yaml"
        spec.to_yaml(out)
        assert ServerSpec.from_yaml(out) == spec


class TestFromSpec:
    """Tests for Server.from_spec."""

    def test_seeds_run(self, blog_file):
        server = Server.from_spec(blog_file)
        assert len(server.schema.posts) == 3
        assert len(server.schema.users) == 3
        assert len(server.schema.comments) == 6
        assert server.check_integrity() == []

    def test_formulas_and_values(self, blog_file):
        server = Server.from_spec(blog_file)
        titles = [p["title"] for p in server.schema.posts.all()]
        assert titles == ["Post 0", "Post 1", "Post 2"]
        first = server.schema.posts.first()
        assert first["slug"] == "post-0"
        assert first["meta"] == {"views": 0}

    def test_declarative_hook_links_parent(self, blog_file):
        server = Server.from_spec(blog_file)
        post = server.schema.posts.first()
        assert len(post["comment_ids"]) == 2
        for comment in post.comments:
            assert comment["commentable_id"] == {"type": "post", "id": post.id}

    def test_reproducible_with_file_seed(self, blog_file):
        first = Server.from_spec(blog_file).dump()
        second = Server.from_spec(blog_file).dump()
        assert first == second

    def test_explicit_seed_overrides_file(self, blog_file):
        default = Server.from_spec(blog_file).dump()["user"]
        other = Server.from_spec(blog_file, seed=7).dump()["user"]
        assert [u["name"] for u in default] != [u["name"] for u in other]

    def test_run_seeds_false(self, blog_file):
        server = Server.from_spec(blog_file, run_seeds=False)
        assert len(server.schema.posts) == 0

    def test_fixtures_then_seeds(self):
        spec = ServerSpec.model_validate(
            {
                "models": {"tag": {}},
                "factories": {"tag": {"attributes": {"name": {"sequence": "tag-{}"}}}},
                "fixtures": {"tag": [{"id": "1", "name": "fixed"}]},
                "seeds": [{"model": "tag", "count": 2}],
            }
        )
        server = Server.from_spec(spec)
        assert [t["name"] for t in server.schema.tags.all()] == ["fixed", "tag-0", "tag-1"]
        assert [t.id for t in server.schema.tags.all()] == ["1", "2", "3"]

    def test_declarative_self_recreating_hook_hits_depth_limit(self):
        spec = ServerSpec.model_validate(
            {
                "models": {"tag": {}},
                "factories": {"tag": {"after_create": [{"model": "tag"}]}},
                "seeds": [{"model": "tag"}],
            }
        )
        with pytest.raises(RecursionLimitError) as exc_info:
            Server.from_spec(spec, max_depth=MAX_DEPTH_CEILING)
        assert exc_info.value.limit == MAX_DEPTH_CEILING

    def test_unknown_factory_model(self):
        spec = ServerSpec.model_validate(
            {"models": {"tag": {}}, "factories": {"planet": {}}}
        )
        with pytest.raises(SpecError):
            Server.from_spec(spec)

    def test_unknown_seed_model(self):
        spec = ServerSpec.model_validate(
            {"models": {"tag": {}}, "seeds": [{"model": "planet"}]}
        )
        with pytest.raises(SpecError):
            Server.from_spec(spec)


class TestCompileFactories:
    """Tests for compiling declarative factory specs."""

    def test_extends(self):
        factories = compile_factories(
            {
                "post": FactorySpec(attributes={"title": "T", "featured": False}),
                "article": FactorySpec(extends="post", attributes={"featured": True}),
            }
        )
        assert factories["article"].attributes == {"title": "T", "featured": True}

    def test_extends_cycle(self):
        with pytest.raises(SpecError, match="cycle"):
            compile_factories(
                {
                    "a": FactorySpec(extends="b"),
                    "b": FactorySpec(extends="a"),
                }
            )

    def test_extends_unknown(self):
        with pytest.raises(SpecError):
            compile_factories({"a": FactorySpec(extends="missing")})

    def test_plain_mappings_are_constants(self):
        assert compile_attribute("post", "meta", {"views": 0}) == {"views": 0}

    def test_conflicting_directives(self):
        with pytest.raises(SpecError):
            compile_attribute("post", "x", {"formula": "1", "fake": "name"})

    def test_unexpected_directive_keys(self):
        with pytest.raises(SpecError):
            compile_attribute("post", "x", {"formula": "1", "args": []})

    def test_bad_formula_fails_at_load(self):
        with pytest.raises(FormulaError):
            compile_attribute("post", "x", {"formula": "1 +"})

    def test_bad_fake_provider_fails_at_load(self):
        with pytest.raises(ValidationError):
            compile_attribute("user", "name", {"fake": "not_a_provider"})
