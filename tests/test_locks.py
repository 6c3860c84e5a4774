"""Product row locks: the PostgreSQL statement and lock timeout, plus the SQLite path."""

from sqlalchemy.dialects import postgresql

from config.database import SessionLocal
from modules.catalog import locks
from tests.conftest import create_user, create_product


class _RecordingSession:
    """Stands in for a Session bound to a PostgreSQL engine."""

    class _Bind:
        class dialect:
            name = "postgresql"

    def __init__(self):
        self.statements = []

    def get_bind(self):
        return self._Bind()

    def execute(self, statement):
        self.statements.append(str(statement))


def test_lock_statement_on_postgresql_is_ordered_for_update():
    stmt = locks.product_lock_statement([3, 7])

    sql = str(stmt.compile(dialect=postgresql.dialect()))

    assert sql.rstrip().endswith("FOR UPDATE")
    assert "ORDER BY products.id" in sql
    assert stmt.get_execution_options()["populate_existing"] is True


def test_postgresql_session_gets_local_lock_timeout():
    db = _RecordingSession()

    locks._apply_lock_timeout(db)

    assert db.statements == ["SET LOCAL lock_timeout = '30000ms'"]


def test_sqlite_session_skips_lock_timeout_statement():
    with SessionLocal() as db:
        assert db.get_bind().dialect.name == "sqlite"
        locks._apply_lock_timeout(db)
        assert not db.in_transaction()


def test_lock_products_returns_existing_rows_by_id():
    seller = create_user("seller")
    a = create_product(seller, title="Anvil")
    b = create_product(seller, title="Bellows")

    with SessionLocal() as db:
        locked = locks.lock_products(db, [b, a, b, 424242])
        titles = {pid: p.title for pid, p in locked.items()}

    assert titles == {a: "Anvil", b: "Bellows"}
    assert locks.lock_products(None, []) == {}
