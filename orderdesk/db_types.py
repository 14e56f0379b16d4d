"""Database-agnostic type and function definitions for SQLAlchemy models.

Everything here works with both SQLite and PostgreSQL.
"""
from sqlalchemy import JSON, Integer
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql.functions import FunctionElement

# Use JSON instead of JSONB for cross-database compatibility
JSONType = JSON


class strpos(FunctionElement):
    """
    1-based position of a substring, 0 when absent. Case-sensitive.

    Usage:
        strpos(Order.fulfillment_type, ExclusionPattern.pattern) > 0
    """
    type = Integer()
    name = "strpos"
    inherit_cache = True


@compiles(strpos)
def _compile_strpos(element, compiler, **kw):
    # PostgreSQL: strpos(haystack, needle)
    return "strpos(%s)" % compiler.process(element.clauses, **kw)


@compiles(strpos, "sqlite")
def _compile_strpos_sqlite(element, compiler, **kw):
    # SQLite: instr(haystack, needle), same argument order
    return "instr(%s)" % compiler.process(element.clauses, **kw)
