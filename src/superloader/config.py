"""
Immutable loader configuration.
"""

import typing as t
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from superloader.cache import CacheStore, InMemoryCacheStore, default_key_fn

FetchFn = t.Callable[[list[t.Any]], t.Sequence[t.Any] | t.Awaitable[t.Sequence[t.Any]]]
KeyFn = t.Callable[[t.Any], t.Hashable]


class ChunkPolicy(StrEnum):
    concurrent = "concurrent"
    sequential = "sequential"


class LoaderConfig(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    fetch_fn: FetchFn = Field(
        description="batch fetch function: receives a list of keys, returns one result per key, in order",
    )
    key_fn: KeyFn = Field(
        default=default_key_fn,
        description="derives the normalized cache and dedup key from a loader key",
    )
    chunk_size: int | None = Field(
        default=None,
        description="optional, maximum number of keys per fetch call. None dispatches each window as one chunk",
    )
    cache: bool = Field(default=True, description="whether loaded values are cached")
    cache_store: t.Any = Field(
        default_factory=InMemoryCacheStore,
        description="store holding cached values, scoped to one loader",
        repr=False,
    )
    chunk_policy: ChunkPolicy = Field(
        default=ChunkPolicy.concurrent,
        description="run the chunks of one window concurrently or one after another",
    )
    name: str = Field(default="loader", description="loader name, bound to log events")

    @field_validator("key_fn", "cache_store", mode="before")
    @classmethod
    def fill_defaults(cls, value: t.Any, info: ValidationInfo) -> t.Any:
        """Treat an explicit ``None`` as the default."""
        if value is not None:
            return value
        if info.field_name == "key_fn":
            return default_key_fn
        return InMemoryCacheStore()

    @field_validator("chunk_size", mode="after")
    @classmethod
    def check_chunk_size(cls, value: int | None) -> int | None:
        if value is not None and value < 1:
            raise ValueError("chunk_size must be a positive integer or None")
        return value

    @field_validator("cache_store", mode="after")
    @classmethod
    def check_cache_store(cls, value: t.Any) -> CacheStore:
        if not isinstance(value, CacheStore):
            raise ValueError(
                "cache_store must implement get, set, delete, clear and __len__"
            )
        return value

    @field_validator("name", mode="after")
    @classmethod
    def check_name(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("name must not be empty")
        return value
