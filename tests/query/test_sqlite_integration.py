"""End-to-end tests against SQLite in memory."""

import json

import pytest

from querycore.exceptions import ExecutionError


@pytest.fixture
def seeded(sqlite_db):
    sqlite_db.insert_multi('users', [
        {'name': 'Ann', 'age': 31, 'active': True},
        {'name': 'Bo', 'age': 17, 'active': False},
        {'name': 'Cy', 'age': 45, 'active': True},
    ])
    return sqlite_db


class TestSQLiteIntegration:
    """Run builder calls through SQLAlchemy's pysqlite dialect."""

    def test_insert_returns_id(self, sqlite_db):
        assert sqlite_db.insert('users', {'name': 'Ann', 'age': 31}) == 1
        assert sqlite_db.insert('users', {'name': 'Bo', 'age': 17}) == 2

    def test_insert_multi_count(self, sqlite_db):
        rows = [{'name': f'user{n}', 'age': n} for n in range(4)]
        assert sqlite_db.insert_multi('users', rows) == 4

    def test_select_filters(self, seeded):
        rows = seeded.where('active', True).order_by('age', 'DESC').get('users', columns=['name'])
        assert rows == [{'name': 'Cy'}, {'name': 'Ann'}]

    def test_in_and_empty_in(self, seeded):
        assert len(seeded.where('name', ['Ann', 'Bo'], 'IN').get('users')) == 2
        assert seeded.where('name', [], 'IN').get('users') == []
        assert len(seeded.where('name', [], 'NOT IN').get('users')) == 3

    def test_is_null(self, seeded):
        seeded.insert('users', {'name': 'Dee'})
        assert seeded.where('age', None, 'IS').get_value('users', 'name') == 'Dee'

    def test_like_and_or(self, seeded):
        names = seeded.where('name', 'A%', 'LIKE').or_where('age', 40, '>').order_by('id').get('users', columns='name')
        assert [row['name'] for row in names] == ['Ann', 'Cy']

    def test_group_by_having(self, seeded):
        rows = seeded.group_by('active').having('active', 1).get('users', columns=['active'])
        assert rows == [{'active': 1}]

    def test_update_and_delete(self, seeded):
        assert seeded.where('age', 18, '<').update('users', {'active': True}) == 1
        assert len(seeded.where('active', True).get('users')) == 3
        assert seeded.where('name', 'Bo').delete('users') == 1
        assert seeded.raw_query_value('SELECT COUNT(*) FROM users') == 2

    def test_paginate(self, seeded):
        page = seeded.where('active', True).order_by('id').paginate('users', page=2, per_page=1)

        assert [row['name'] for row in page['data']] == ['Cy']
        assert page['pagination']['total'] == 2
        assert page['pagination']['has_prev'] is True
        assert page['pagination']['has_next'] is False

    def test_fetch_modes(self, seeded):
        assert seeded.as_object().where('name', 'Bo').get_one('users').age == 17
        document = seeded.as_json().order_by('id').get('users', columns=['name'])
        assert json.loads(document) == [{'name': 'Ann'}, {'name': 'Bo'}, {'name': 'Cy'}]

    def test_repeated_statement_uses_cache(self, seeded):
        seeded.where('id', 1).get('users')
        seeded.where('id', 2).get('users')
        cache = seeded.connections.statement_cache('default')
        assert 'SELECT * FROM "users" WHERE "id" = ?' in cache
        assert cache.stats.hits >= 1

    def test_driver_error(self, seeded):
        with pytest.raises(ExecutionError) as exc_info:
            seeded.get('missing_table')
        assert 'missing_table' in exc_info.value.details['error']

    def test_raw_query_parameter_mismatch(self, seeded):
        with pytest.raises(ExecutionError) as exc_info:
            seeded.raw_query('SELECT * FROM users WHERE id = ? AND age > ?', [1])
        assert exc_info.value.details['exception'] == 'ArgumentError'

    def test_safe_mode(self, seeded):
        seeded.error_mode('safe')
        assert seeded.get('missing_table') == []
        assert seeded.last_error()['exception'] == 'OperationalError'
        assert len(seeded.get('users')) == 3
        assert seeded.last_error() is None


class TestSQLiteTransactions:
    """Test nested transactions with real savepoints."""

    def count(self, db):
        return db.raw_query_value('SELECT COUNT(*) FROM users')

    def test_rollback(self, sqlite_db):
        sqlite_db.start_transaction()
        sqlite_db.insert('users', {'name': 'Ann'})
        sqlite_db.rollback()
        assert self.count(sqlite_db) == 0

    def test_inner_rollback_keeps_outer_work(self, sqlite_db):
        with sqlite_db.transaction():
            sqlite_db.insert('users', {'name': 'outer'})
            with pytest.raises(RuntimeError):
                with sqlite_db.transaction():
                    sqlite_db.insert('users', {'name': 'inner'})
                    raise RuntimeError('abort inner')
            assert sqlite_db.transaction_depth() == 1

        assert sqlite_db.get('users', columns='name') == [{'name': 'outer'}]
        assert sqlite_db.transaction_depth() == 0

    def test_nested_commit(self, sqlite_db):
        sqlite_db.start_transaction()
        sqlite_db.start_transaction()
        sqlite_db.insert('users', {'name': 'inner'})
        sqlite_db.commit()
        sqlite_db.commit()
        assert self.count(sqlite_db) == 1

    def test_outer_rollback_discards_released_savepoint(self, sqlite_db):
        with pytest.raises(RuntimeError):
            with sqlite_db.transaction():
                with sqlite_db.transaction():
                    sqlite_db.insert('users', {'name': 'inner'})
                raise RuntimeError('abort outer')
        assert self.count(sqlite_db) == 0
