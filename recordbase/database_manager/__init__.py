"""
RECORDBASE DATABASE MANAGER
===========================

SQLAlchemy-backed executor for the record engine, plus its configuration
helpers.

USAGE EXAMPLE:
=============
```python
from recordbase.database_manager import get_sqlite_config, create_database_engine
from recordbase.model_base import EntityDescriptor, RecordEngine

db = create_database_engine(get_sqlite_config("family"))
donations = RecordEngine(db, EntityDescriptor(table="donations"))
```
"""

# =============================================================================
# CONFIGURATION COMPONENTS
# =============================================================================
from .config import DatabaseType
from .config import EngineConfig
from .config import DatabaseConfig
from .config import (
                    get_database_config,
                    get_sqlite_config,
                    get_postgresql_config,
                    get_mysql_config
                    )

# =============================================================================
# DATABASE ENGINE COMPONENTS
# =============================================================================
from .engine import DatabaseEngine
from .engine import EngineConnection
from .engine import create_database_engine
from .engine import to_named_params

__all__ = [
    "DatabaseType",
    "EngineConfig",
    "DatabaseConfig",
    "get_database_config",
    "get_sqlite_config",
    "get_postgresql_config",
    "get_mysql_config",

    "DatabaseEngine",
    "EngineConnection",
    "create_database_engine",
    "to_named_params",
]
