"""Unit tests for auth/store.py -- TokenStore persistence and redeem logic.

Covers:
- replace() keeps at most one record per resource
- redeem() outcomes: missing, expired (deleted), mismatch (kept), redeemed (deleted)
- purge_expired() removes only records at or past their expiration
- expiration round-trips as a timezone-aware UTC datetime
- table creation is idempotent across stores on the same database
- SQLAlchemy failures surface as TokenStoreError
"""

import warnings
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError, SADeprecationWarning
from sqlalchemy.pool import SingletonThreadPool

from auth.errors import TokenStoreError
from auth.models import RedeemStatus, TokenRecord
from auth.store import TokenStore

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def _record(resource_id: str, value: str = "v" * 64, offset_seconds: int = 3600) -> TokenRecord:
    return TokenRecord(resource_id=resource_id, value=value, expiration=NOW + timedelta(seconds=offset_seconds))


# ---------------------------------------------------------------------------
# replace / get
# ---------------------------------------------------------------------------


class TestReplace:
    def test_get_returns_stored_record(self, store: TokenStore) -> None:
        store.replace(_record("42", value="a" * 64))
        rec = store.get("42")
        assert rec is not None
        assert rec.resource_id == "42"
        assert rec.value == "a" * 64
        assert rec.id is not None

    def test_expiration_round_trips_as_aware_utc(self, store: TokenStore) -> None:
        store.replace(_record("42", offset_seconds=90))
        rec = store.get("42")
        assert rec.expiration == NOW + timedelta(seconds=90)
        assert rec.expiration.tzinfo is not None

    def test_replace_supersedes_previous_record(self, store: TokenStore) -> None:
        store.replace(_record("42", value="a" * 64))
        store.replace(_record("42", value="b" * 64))
        assert store.count() == 1
        assert store.get("42").value == "b" * 64

    def test_records_for_different_resources_coexist(self, store: TokenStore) -> None:
        store.replace(_record("1"))
        store.replace(_record("2"))
        assert store.count() == 2

    def test_get_unknown_resource_returns_none(self, store: TokenStore) -> None:
        assert store.get("nobody") is None


# ---------------------------------------------------------------------------
# redeem
# ---------------------------------------------------------------------------


class TestRedeem:
    def test_missing(self, store: TokenStore) -> None:
        assert store.redeem("42", "x", NOW) is RedeemStatus.MISSING

    def test_match_deletes_record(self, store: TokenStore) -> None:
        store.replace(_record("42", value="a" * 64))
        assert store.redeem("42", "a" * 64, NOW) is RedeemStatus.REDEEMED
        assert store.get("42") is None

    def test_second_redeem_is_missing(self, store: TokenStore) -> None:
        store.replace(_record("42", value="a" * 64))
        store.redeem("42", "a" * 64, NOW)
        assert store.redeem("42", "a" * 64, NOW) is RedeemStatus.MISSING

    def test_mismatch_keeps_record(self, store: TokenStore) -> None:
        store.replace(_record("42", value="a" * 64))
        assert store.redeem("42", "b" * 64, NOW) is RedeemStatus.MISMATCH
        assert store.get("42") is not None

    def test_non_ascii_value_is_a_mismatch(self, store: TokenStore) -> None:
        store.replace(_record("42", value="a" * 64))
        assert store.redeem("42", "é" * 64, NOW) is RedeemStatus.MISMATCH

    def test_expired_deletes_record(self, store: TokenStore) -> None:
        store.replace(_record("42", value="a" * 64, offset_seconds=-1))
        assert store.redeem("42", "a" * 64, NOW) is RedeemStatus.EXPIRED
        assert store.get("42") is None

    def test_expiration_equal_to_now_is_expired(self, store: TokenStore) -> None:
        store.replace(_record("42", value="a" * 64, offset_seconds=0))
        assert store.redeem("42", "a" * 64, NOW) is RedeemStatus.EXPIRED

    def test_expired_wins_over_mismatch(self, store: TokenStore) -> None:
        store.replace(_record("42", value="a" * 64, offset_seconds=-10))
        assert store.redeem("42", "wrong", NOW) is RedeemStatus.EXPIRED
        assert store.get("42") is None


# ---------------------------------------------------------------------------
# delete / purge
# ---------------------------------------------------------------------------


class TestCleanup:
    def test_delete_existing(self, store: TokenStore) -> None:
        store.replace(_record("42"))
        assert store.delete("42") is True
        assert store.get("42") is None

    def test_delete_unknown(self, store: TokenStore) -> None:
        assert store.delete("42") is False

    def test_purge_expired_removes_only_expired(self, store: TokenStore) -> None:
        store.replace(_record("old", offset_seconds=-60))
        store.replace(_record("edge", offset_seconds=0))
        store.replace(_record("fresh", offset_seconds=60))
        assert store.purge_expired(NOW) == 2
        assert store.get("fresh") is not None
        assert store.count() == 1

    def test_purge_on_empty_store(self, store: TokenStore) -> None:
        assert store.purge_expired(NOW) == 0


# ---------------------------------------------------------------------------
# Bootstrap and failures
# ---------------------------------------------------------------------------


class TestBootstrap:
    def test_create_table_is_idempotent(self, tmp_path) -> None:
        url = f"sqlite:///{tmp_path / 'tokens.db'}"
        first = TokenStore(url)
        first.replace(_record("42"))
        second = TokenStore(url)
        assert second.get("42") is not None
        first.close()
        second.close()

    def test_sqlite_journal_mode_is_memory(self, tmp_path) -> None:
        s = TokenStore(f"sqlite:///{tmp_path / 'tokens.db'}")
        with s.engine.connect() as conn:
            mode = conn.exec_driver_sql("PRAGMA journal_mode").scalar()
        s.close()
        assert mode.lower() == "memory"

    def test_database_failure_raises_token_store_error(self, store: TokenStore) -> None:
        with store.engine.begin() as conn:
            conn.exec_driver_sql("DROP TABLE token")
        with pytest.raises(TokenStoreError) as excinfo:
            store.get("42")
        assert isinstance(excinfo.value.__cause__, OperationalError)

    def test_shared_memory_url_selects_thread_pool_explicitly(self) -> None:
        with warnings.catch_warnings():
            warnings.simplefilter("error", SADeprecationWarning)
            s = TokenStore("sqlite:///file:test_tokens_pool?mode=memory&cache=shared&uri=true")
        assert isinstance(s.engine.pool, SingletonThreadPool)
        s.replace(_record("42"))
        assert s.get("42") is not None
        s.close()

    def test_file_url_keeps_default_pool(self, tmp_path) -> None:
        s = TokenStore(f"sqlite:///{tmp_path / 'tokens.db'}")
        assert not isinstance(s.engine.pool, SingletonThreadPool)
        s.close()
