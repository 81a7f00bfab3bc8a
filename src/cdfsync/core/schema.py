"""
Table registry and DDL for the state cdf-sync owns.

The tracking tables and the work queue are the only shared mutable state
of the syndication core. Every mutation against them is a single-row
upsert/update scoped by UUID (or by queue item id), so workers acting on
different UUIDs never contend.

Architecture:
    ::

        cdf_publisher_tracking    one row per exported UUID
                                  (queued → exported → confirmed)
        cdf_subscriber_tracking   one row per imported UUID
                                  (queued → imported | auto_update_disabled)
        cdf_queue                 work items; expire = 0 means unclaimed,
                                  otherwise the lease deadline (unix time)

Guardrails:
    ❌ DON'T: Track the same UUID twice (UNIQUE entity_uuid)
    ✅ DO: Treat absence of a row as "never tracked"

Tags:
    schema, ddl, tracking, queue, cdf-sync

Doc-Types:
    - Schema Documentation
"""

TABLES = {
    "publisher_tracking": "cdf_publisher_tracking",
    "subscriber_tracking": "cdf_subscriber_tracking",
    "queue": "cdf_queue",
}


def _tracking_ddl(table: str) -> str:
    return f"""
        CREATE TABLE IF NOT EXISTS {table} (
            entity_type TEXT,               -- NULL until the local entity exists
            entity_id TEXT,
            entity_uuid TEXT NOT NULL UNIQUE,
            status TEXT NOT NULL,
            hash TEXT,                      -- NULL means "needs re-export/import"
            queue_id TEXT,                  -- correlates to an outstanding cdf_queue item
            created TEXT NOT NULL,
            modified TEXT NOT NULL
        )
    """


DDL = {
    "publisher_tracking": _tracking_ddl(TABLES["publisher_tracking"]),
    "publisher_tracking_idx_status": """
        CREATE INDEX IF NOT EXISTS idx_cdf_publisher_tracking_status
        ON cdf_publisher_tracking(status, entity_type)
    """,
    "subscriber_tracking": _tracking_ddl(TABLES["subscriber_tracking"]),
    "subscriber_tracking_idx_status": """
        CREATE INDEX IF NOT EXISTS idx_cdf_subscriber_tracking_status
        ON cdf_subscriber_tracking(status, entity_type)
    """,
    "queue": """
        CREATE TABLE IF NOT EXISTS cdf_queue (
            item_id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            data TEXT NOT NULL,             -- JSON work item
            expire REAL NOT NULL DEFAULT 0,
            created REAL NOT NULL
        )
    """,
    "queue_idx_name": """
        CREATE INDEX IF NOT EXISTS idx_cdf_queue_name_expire
        ON cdf_queue(name, expire, item_id)
    """,
}


def create_tables(conn) -> None:
    """
    Create all cdf-sync tables.

    Safe to call multiple times (CREATE IF NOT EXISTS).
    """
    for _name, ddl in DDL.items():
        conn.execute(ddl)
    conn.commit()
