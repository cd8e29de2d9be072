from .entity_store import EntityStore
from .models import Category, CategoryColor, KeyedRecord, Priority, Task, normalize_task
from .schema import SCHEMA_VERSION, SchemaManager, StoreHandle

__all__ = [
    "SCHEMA_VERSION",
    "Category",
    "CategoryColor",
    "EntityStore",
    "KeyedRecord",
    "Priority",
    "SchemaManager",
    "StoreHandle",
    "Task",
    "normalize_task",
]
