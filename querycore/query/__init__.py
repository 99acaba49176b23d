"""Query state, compilation, execution and result shaping."""

from querycore.query.builder import QueryBuilder
from querycore.query.compiler import CompiledQuery, QueryCompiler
from querycore.query.executor import QueryExecutor
from querycore.query.results import FetchMode, Record
from querycore.query.state import QueryState

__all__ = [
    "QueryBuilder",
    "QueryCompiler",
    "CompiledQuery",
    "QueryExecutor",
    "QueryState",
    "FetchMode",
    "Record",
]
