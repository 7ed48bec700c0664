# energy_engine/current_state.py
"""
Current-state store: one row per device holding the newest reading by event time.

The write is a single conditional upsert executed by the database:

    INSERT INTO <class>_current (...) VALUES (...)
    ON CONFLICT (<device id>) DO UPDATE SET ...
    WHERE <class>_current.ts < EXCLUDED.ts

so two writers racing on the same device can never leave the older value
behind. Equal timestamps keep whatever is already stored.
"""
from sqlalchemy import select

from .db import upsert_insert
from .readings import TABLES, DeviceClass, Reading, reading_from_row


def conditional_upsert(dialect_name: str, reading: Reading):
    insert = upsert_insert(dialect_name)
    tables = TABLES[reading.device_class]
    table = tables.current.__table__
    values = reading.as_row()
    stmt = insert(table).values(**values)
    return stmt.on_conflict_do_update(
        index_elements=[table.c[tables.id_column]],
        set_={name: stmt.excluded[name] for name in values if name != tables.id_column},
        where=table.c.ts < stmt.excluded.ts,
    )


def apply_if_newer(session, reading: Reading) -> bool:
    """Run the conditional upsert in the caller's transaction.

    Returns True when the stored row was inserted or replaced, False when the
    reading was stale or tied with the stored timestamp.
    """
    stmt = conditional_upsert(session.get_bind().dialect.name, reading)
    result = session.execute(stmt)
    return result.rowcount == 1


def get_current(session, device_class: DeviceClass, device_id: str):
    tables = TABLES[device_class]
    row = session.execute(
        select(tables.current).where(getattr(tables.current, tables.id_column) == device_id)
    ).scalar_one_or_none()
    if row is None:
        return None
    return reading_from_row(device_class, row)
