"""memindex database layer."""

from memindex.db.connection import Database
from memindex.db.migrations import MIGRATIONS, ensure_column, run_migrations
from memindex.db.repository import Repository
from memindex.db.schema import initialize, load_index_meta, save_index_meta
from memindex.db.vectors import (
    VEC_TABLE,
    drop_vec_table,
    ensure_vec_table,
    vec_available,
    vec_table_dims,
)

__all__ = [
    "Database",
    "Repository",
    "initialize",
    "run_migrations",
    "ensure_column",
    "MIGRATIONS",
    "load_index_meta",
    "save_index_meta",
    "VEC_TABLE",
    "drop_vec_table",
    "ensure_vec_table",
    "vec_available",
    "vec_table_dims",
]
