"""Shared fixtures: a small blog schema and isolated configuration."""

import pytest

from backdrop import config as config_module
from backdrop.config import reset_config
from backdrop.core.models.schema import SchemaRegistry, belongs_to, has_many
from backdrop.store.db import RecordStore


def blog_models() -> dict:
    """user 1-n post, user 1-1 profile, post n-n tag, polymorphic comments."""
    return {
        "user": {
            "posts": has_many(),
            "profile": belongs_to(),
        },
        "profile": {
            "user": belongs_to(),
        },
        "post": {
            "user": belongs_to(),
            "comments": has_many(inverse="commentable"),
            "tags": has_many(),
        },
        "tag": {
            "posts": has_many(),
        },
        "video": {
            "comments": has_many(inverse="commentable"),
        },
        "comment": {
            "commentable": belongs_to(polymorphic=True, inverse="comments"),
        },
    }


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep tests away from ~/.config/backdrop and BACKDROP_* env vars."""
    config_dir = tmp_path / "config"
    monkeypatch.setattr(config_module, "CONFIG_DIR", config_dir)
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_dir / "config.json")
    for name in (
        "BACKDROP_STRICT_SCHEMA",
        "BACKDROP_MAX_DEPTH",
        "BACKDROP_SEED",
        "BACKDROP_LOCALE",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield config_dir
    reset_config()


@pytest.fixture
def registry() -> SchemaRegistry:
    return SchemaRegistry(blog_models())


@pytest.fixture
def store(registry) -> RecordStore:
    return RecordStore(registry)
