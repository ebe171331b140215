from dataclasses import dataclass, fields
from typing import Any, Dict
import re

from ..exceptions import ConfigError

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# camelCase option names accepted by from_mapping()
_OPTION_ALIASES = {
    "tableName": "table",
    "primaryKey": "primary_key",
    "softDelete": "soft_delete",
    "timestamps": "timestamps",
    "cacheEnabled": "cache_enabled",
    "cacheTTL": "cache_ttl",
    "validation": "validation",
    "maxBulkInsert": "max_bulk_insert",
}


@dataclass(frozen=True)
class EntityDescriptor:
    """
    Static description of one entity (table) and how the engine treats it

    cache_ttl and cache_sweep_interval are in seconds.
    """
    table: str
    primary_key: str = "id"
    soft_delete: bool = True
    timestamps: bool = True
    cache_enabled: bool = False
    cache_ttl: float = 300.0
    cache_sweep_interval: float = 60.0
    validation: bool = True
    max_bulk_insert: int = 1000
    generate_ids: bool = True
    retry_attempts: int = 0
    retry_delay: float = 1.0
    default_page_size: int = 20

    def __post_init__(self):
        for name in (self.table, self.primary_key):
            if not isinstance(name, str) or not _IDENTIFIER.match(name):
                raise ConfigError(f"Invalid identifier: {name!r}")
        if self.max_bulk_insert < 1:
            raise ConfigError("max_bulk_insert must be at least 1")
        if self.retry_attempts < 0:
            raise ConfigError("retry_attempts cannot be negative")
        if self.cache_ttl <= 0 or self.cache_sweep_interval <= 0:
            raise ConfigError("cache_ttl and cache_sweep_interval must be positive")

    @classmethod
    def from_mapping(cls, options: Dict[str, Any]) -> "EntityDescriptor":
        """
        Build a descriptor from a plain options mapping

        Accepts both field names and the camelCase option names
        (tableName, softDelete, cacheTTL, ...). cacheTTL is given in
        milliseconds and converted to seconds.
        """
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in options.items():
            if key == "cacheTTL":
                kwargs["cache_ttl"] = value / 1000.0
                continue
            name = _OPTION_ALIASES.get(key, key)
            if name not in known:
                raise ConfigError(f"Unknown entity option: {key}")
            kwargs[name] = value
        if "table" not in kwargs:
            raise ConfigError("Entity options must name a table")
        return cls(**kwargs)
