"""Database Tracing — one span per SQL statement, hooked into SQLAlchemy engine events.

Invariants:
    - Spans are children of whatever span is current (normally the request span)
    - Each statement span ends exactly once: on after_cursor_execute or on handle_error
    - Statement text is tagged; bound parameters never are

Design Decisions:
    - Engine-level cursor events over ORM session events: also covers raw text() queries
    - Span stored on the ExecutionContext, which lives exactly as long as the statement
"""

import logging

from sqlalchemy import event
from sqlalchemy.engine import Engine
from opentelemetry.trace import Tracer

from webtemplate.infrastructure.tracing import finish_span, start_span

logger = logging.getLogger(__name__)

_SPAN_ATTR = "_webtemplate_span"


def operation_of(statement: str) -> str:
    words = statement.strip().split(None, 1)
    return words[0].lower() if words else "unknown"


def table_of(context) -> str | None:
    """First table touched by a compiled ORM/Core statement, if known."""
    compiled = getattr(context, "compiled", None)
    stmt = getattr(compiled, "statement", None)
    table = getattr(stmt, "table", None)
    if table is not None and getattr(table, "name", None):
        return table.name
    froms = getattr(stmt, "get_final_froms", None)
    if froms is not None:
        for item in froms():
            name = getattr(item, "name", None)
            if name:
                return name
    return None


def instrument_engine(engine: Engine, tracer: Tracer | None) -> bool:
    """Register span hooks on *engine* (the sync engine behind an AsyncEngine)."""
    if tracer is None:
        return False

    system = engine.dialect.name

    @event.listens_for(engine, "before_cursor_execute")
    def _before(conn, cursor, statement, parameters, context, executemany):
        if context is None:
            return
        operation = operation_of(statement)
        table = table_of(context)
        name = f"db:{operation}" + (f":{table}" if table else "")
        span = start_span(tracer, name)
        span.set_attribute("db.system", system)
        span.set_attribute("db.operation", operation)
        if table:
            span.set_attribute("db.table", table)
        span.set_attribute("db.statement", statement)
        setattr(context, _SPAN_ATTR, span)

    @event.listens_for(engine, "after_cursor_execute")
    def _after(conn, cursor, statement, parameters, context, executemany):
        span = getattr(context, _SPAN_ATTR, None)
        if span is None:
            return
        setattr(context, _SPAN_ATTR, None)
        rowcount = getattr(cursor, "rowcount", -1)
        if rowcount is not None and rowcount >= 0:
            span.set_attribute("db.rows_affected", str(rowcount))
        finish_span(span)

    @event.listens_for(engine, "handle_error")
    def _on_error(exception_context):
        context = exception_context.execution_context
        span = getattr(context, _SPAN_ATTR, None) if context is not None else None
        if span is None:
            return
        setattr(context, _SPAN_ATTR, None)
        finish_span(span, exception_context.original_exception)

    logger.info(f"Database tracing hooks installed ({system})")
    return True
