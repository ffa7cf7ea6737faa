"""Tests for PostgresClient - pooled connections and transactions."""

import psycopg2
import pytest

from clients.postgres_client import PostgresClient


@pytest.fixture
def scratch(db):
    """PostgresClient with an empty scratch table."""
    db.execute("CREATE TABLE IF NOT EXISTS client_scratch (id INTEGER PRIMARY KEY, label TEXT)")
    db.execute("TRUNCATE client_scratch")
    yield db
    db.execute("DROP TABLE IF EXISTS client_scratch")


class TestExecute:

    def test_returns_row_dicts(self, scratch):
        scratch.execute("INSERT INTO client_scratch VALUES (1, 'a'), (2, 'b')")

        rows = scratch.execute("SELECT id, label FROM client_scratch ORDER BY id")

        assert rows == [{"id": 1, "label": "a"}, {"id": 2, "label": "b"}]

    def test_no_result_set_returns_empty_list(self, scratch):
        assert scratch.execute("INSERT INTO client_scratch VALUES (1, 'a')") == []

    def test_execute_single(self, scratch):
        scratch.execute("INSERT INTO client_scratch VALUES (1, 'a')")

        assert scratch.execute_single("SELECT label FROM client_scratch WHERE id = %s", (1,)) == {"label": "a"}
        assert scratch.execute_single("SELECT label FROM client_scratch WHERE id = %s", (9,)) is None

    def test_execute_scalar(self, scratch):
        scratch.execute("INSERT INTO client_scratch VALUES (1, 'a'), (2, 'b')")

        assert scratch.execute_scalar("SELECT count(*) FROM client_scratch") == 2

    def test_execute_rowcount(self, scratch):
        scratch.execute("INSERT INTO client_scratch VALUES (1, 'a'), (2, 'b')")

        assert scratch.execute_rowcount("UPDATE client_scratch SET label = 'z'") == 2
        assert scratch.execute_rowcount("DELETE FROM client_scratch WHERE id = 9") == 0


class TestTransaction:

    def test_commits_on_success(self, scratch):
        with scratch.transaction() as cur:
            cur.execute("INSERT INTO client_scratch VALUES (1, 'a')")
            cur.execute("UPDATE client_scratch SET label = 'b' WHERE id = 1")

        assert scratch.execute_scalar("SELECT label FROM client_scratch WHERE id = 1") == "b"

    def test_rolls_back_on_error(self, scratch):
        with pytest.raises(RuntimeError):
            with scratch.transaction() as cur:
                cur.execute("INSERT INTO client_scratch VALUES (1, 'a')")
                raise RuntimeError("abort")

        assert scratch.execute_scalar("SELECT count(*) FROM client_scratch") == 0

    def test_connection_usable_after_failed_statement(self, scratch):
        with pytest.raises(psycopg2.errors.UniqueViolation):
            with scratch.transaction() as cur:
                cur.execute("INSERT INTO client_scratch VALUES (1, 'a')")
                cur.execute("INSERT INTO client_scratch VALUES (1, 'a')")

        assert scratch.execute_scalar("SELECT count(*) FROM client_scratch") == 0


class TestStatementTimeout:

    def test_slow_statement_cancelled(self, database_url):
        # Pools are keyed by URL; a distinct URL gets its own short-timeout pool
        separator = "&" if "?" in database_url else "?"
        client = PostgresClient(f"{database_url}{separator}application_name=timeout_test", statement_timeout_ms=100)
        try:
            with pytest.raises(psycopg2.errors.QueryCanceled):
                client.execute("SELECT pg_sleep(2)")
        finally:
            client.close()


class TestClose:

    def test_close_drops_only_own_pool(self, db, database_url):
        separator = "&" if "?" in database_url else "?"
        other = PostgresClient(f"{database_url}{separator}application_name=close_test")

        other.close()

        assert other._database_url not in PostgresClient._connection_pools
        assert db.execute_scalar("SELECT 1") == 1
