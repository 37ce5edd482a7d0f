"""Tests for services/usage.py and the quota-checked chat turn."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from conftest import make_user
from database import Base
from models.chat_model import ChatModel
from models.usage import UsageRecord
from models.user import User
from services.chat import add_message, get_conversation_messages, run_chat_turn
from services.dispatcher import DispatchResult
from services.usage import UsageAccountant, is_stale, start_of_day


class FakeClock:
    def __init__(self, now: datetime):
        self.current = now

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs):
        self.current += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 14, 10, 30))


@pytest.fixture
def accountant(clock):
    return UsageAccountant(10, clock=clock)


def _record_count(db, user_id, model_id, day):
    record = (
        db.query(UsageRecord)
        .filter_by(user_id=user_id, model_id=model_id, day=day)
        .first()
    )
    return record.request_count if record else None


def _fresh(db, user_id):
    db.expire_all()
    return db.get(User, user_id)


class TestDayHelpers:
    def test_start_of_day(self):
        assert start_of_day(datetime(2026, 3, 14, 23, 59, 1)) == datetime(2026, 3, 14)

    def test_is_stale(self):
        now = datetime(2026, 3, 14, 0, 5)
        assert is_stale(None, now)
        assert is_stale(datetime(2026, 3, 13, 23, 59), now)
        assert not is_stale(datetime(2026, 3, 14, 0, 0), now)


class TestCheckAndConsume:
    def test_first_call_of_the_day_resets_and_counts(self, db, user, chat_model, accountant, clock):
        assert accountant.check_and_consume(db, user.id, chat_model.id) is True

        fresh = _fresh(db, user.id)
        assert fresh.daily_usage == 1
        assert fresh.last_usage_reset == clock.current

    def test_eleventh_call_is_rejected(self, db, user, chat_model, accountant):
        results = [accountant.check_and_consume(db, user.id, chat_model.id) for _ in range(11)]

        assert results == [True] * 10 + [False]
        assert _fresh(db, user.id).daily_usage == 10
        assert _record_count(db, user.id, chat_model.id, datetime(2026, 3, 14).date()) == 10

    def test_stale_counter_reads_as_zero(self, db, chat_model, accountant, clock):
        yesterday = clock.current - timedelta(days=1)
        user = make_user(db, "tired", daily_usage=10, last_usage_reset=yesterday)

        assert accountant.current_daily_usage(db, user.id) == 0
        assert accountant.check_and_consume(db, user.id, chat_model.id) is True
        assert _fresh(db, user.id).daily_usage == 1

    def test_rollover_at_midnight(self, db, user, chat_model, accountant, clock):
        for _ in range(10):
            accountant.check_and_consume(db, user.id, chat_model.id)
        assert accountant.check_and_consume(db, user.id, chat_model.id) is False

        clock.current = datetime(2026, 3, 15, 0, 0, 1)
        assert accountant.current_daily_usage(db, user.id) == 0
        assert accountant.check_and_consume(db, user.id, chat_model.id) is True

        fresh = _fresh(db, user.id)
        assert fresh.daily_usage == 1
        assert fresh.last_usage_reset == clock.current
        assert _record_count(db, user.id, chat_model.id, clock.current.date()) == 1
        assert _record_count(db, user.id, chat_model.id, datetime(2026, 3, 14).date()) == 10

    def test_unknown_user_is_rejected(self, db, chat_model, accountant):
        assert accountant.check_and_consume(db, 9999, chat_model.id) is False

    def test_limit_is_configurable(self, db, user, chat_model, clock):
        accountant = UsageAccountant(2, clock=clock)
        assert accountant.check_and_consume(db, user.id, chat_model.id)
        assert accountant.check_and_consume(db, user.id, chat_model.id)
        assert not accountant.check_and_consume(db, user.id, chat_model.id)

    def test_counts_are_split_per_model(self, db, user, chat_model, vip_model, accountant):
        accountant.check_and_consume(db, user.id, chat_model.id)
        accountant.check_and_consume(db, user.id, chat_model.id)
        accountant.check_and_consume(db, user.id, vip_model.id)

        day = datetime(2026, 3, 14).date()
        assert _record_count(db, user.id, chat_model.id, day) == 2
        assert _record_count(db, user.id, vip_model.id, day) == 1
        assert _fresh(db, user.id).daily_usage == 3


class TestPrivilegedUsers:
    def test_admin_is_unlimited_without_counters(self, db, admin_user, chat_model, accountant):
        for _ in range(15):
            assert accountant.check_and_consume(db, admin_user.id, chat_model.id)

        fresh = _fresh(db, admin_user.id)
        assert fresh.daily_usage == 0
        assert fresh.last_usage_reset is None
        assert db.query(UsageRecord).count() == 0

    def test_active_vip_is_unlimited(self, db, chat_model, accountant, clock):
        vip = make_user(db, "vip", role="vip", vip_expires_at=clock.current + timedelta(days=3))
        for _ in range(12):
            assert accountant.check_and_consume(db, vip.id, chat_model.id)
        assert _fresh(db, vip.id).daily_usage == 0

    def test_open_ended_vip_is_unlimited(self, db, chat_model, accountant):
        vip = make_user(db, "forever", role="vip", vip_expires_at=None)
        assert accountant.is_unlimited(vip)

    def test_expired_vip_counts_as_plain_user(self, db, chat_model, accountant, clock):
        lapsed = make_user(db, "lapsed", role="vip", vip_expires_at=clock.current - timedelta(minutes=1))

        assert not accountant.is_unlimited(lapsed)
        results = [accountant.check_and_consume(db, lapsed.id, chat_model.id) for _ in range(11)]
        assert results[-1] is False
        assert _fresh(db, lapsed.id).daily_usage == 10


class TestRelease:
    def test_release_returns_the_slot(self, db, user, chat_model, accountant):
        accountant.check_and_consume(db, user.id, chat_model.id)
        accountant.release(db, user.id, chat_model.id)

        assert _fresh(db, user.id).daily_usage == 0
        assert _record_count(db, user.id, chat_model.id, datetime(2026, 3, 14).date()) == 0

    def test_release_never_goes_negative(self, db, user, chat_model, accountant):
        accountant.release(db, user.id, chat_model.id)
        assert _fresh(db, user.id).daily_usage == 0

    def test_release_ignores_yesterdays_slot(self, db, user, chat_model, accountant, clock):
        accountant.check_and_consume(db, user.id, chat_model.id)
        clock.advance(days=1)
        accountant.release(db, user.id, chat_model.id)

        assert _fresh(db, user.id).daily_usage == 1
        assert accountant.current_daily_usage(db, user.id) == 0

    def test_k_successes_out_of_n_attempts(self, db, user, chat_model, accountant):
        outcomes = [True, False, True, True, False, False, True]
        for succeeded in outcomes:
            assert accountant.check_and_consume(db, user.id, chat_model.id)
            if not succeeded:
                accountant.release(db, user.id, chat_model.id)

        assert _fresh(db, user.id).daily_usage == outcomes.count(True)

    def test_late_failure_does_not_refund_the_next_day(self, db, user, chat_model, accountant, clock):
        clock.current = datetime(2026, 3, 14, 23, 59, 50)
        consumed_at = accountant.now()
        assert accountant.check_and_consume(db, user.id, chat_model.id, now=consumed_at)

        # another request after midnight rolls the counter over
        clock.current = datetime(2026, 3, 15, 0, 0, 5)
        assert accountant.check_and_consume(db, user.id, chat_model.id)

        accountant.release(db, user.id, chat_model.id, consumed_at=consumed_at)

        assert _fresh(db, user.id).daily_usage == 1
        assert _record_count(db, user.id, chat_model.id, datetime(2026, 3, 15).date()) == 1

    def test_release_refunds_the_consumption_day(self, db, user, chat_model, accountant, clock):
        clock.current = datetime(2026, 3, 14, 23, 59, 50)
        consumed_at = accountant.now()
        accountant.check_and_consume(db, user.id, chat_model.id, now=consumed_at)

        clock.current = datetime(2026, 3, 15, 0, 0, 5)
        accountant.release(db, user.id, chat_model.id, consumed_at=consumed_at)

        assert _fresh(db, user.id).daily_usage == 0
        assert _record_count(db, user.id, chat_model.id, datetime(2026, 3, 14).date()) == 0


class TestConcurrentConsumption:
    """Races need real connections, so these tests use a file-backed database."""

    @pytest.fixture
    def file_sessions(self, tmp_path):
        engine = create_engine(
            f"sqlite:///{tmp_path / 'quota.sqlite3'}",
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        Base.metadata.create_all(bind=engine)
        yield sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
        engine.dispose()

    def test_last_slot_goes_to_exactly_one_request(self, file_sessions, clock):
        with file_sessions() as setup:
            model = ChatModel(name="gpt-4o-mini", display_name="Dragon GPT-4o Mini", provider="OpenAI")
            user = User(username="racer", daily_usage=9, last_usage_reset=clock.current - timedelta(hours=1))
            setup.add_all([model, user])
            setup.commit()
            user_id, model_id = user.id, model.id

        accountant = UsageAccountant(10, clock=clock)
        workers = 8
        barrier = threading.Barrier(workers)
        results = []
        errors = []

        def attempt():
            with file_sessions() as session:
                try:
                    barrier.wait()
                    results.append(accountant.check_and_consume(session, user_id, model_id))
                except Exception as exc:
                    errors.append(exc)

        threads = [threading.Thread(target=attempt) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert results.count(True) == 1
        assert results.count(False) == workers - 1
        with file_sessions() as check:
            assert check.get(User, user_id).daily_usage == 10


class TestSummary:
    def test_plain_user(self, db, user, chat_model, accountant):
        accountant.check_and_consume(db, user.id, chat_model.id)
        assert accountant.summary(db, user) == {
            "daily_usage": 1,
            "daily_limit": 10,
            "unlimited": False,
            "remaining": 9,
        }

    def test_admin(self, db, admin_user, accountant):
        summary = accountant.summary(db, admin_user)
        assert summary["unlimited"] is True
        assert summary["daily_limit"] is None
        assert summary["remaining"] is None


class TestRunChatTurn:
    def _dispatcher(self, result):
        dispatcher = MagicMock()
        dispatcher.dispatch.return_value = result
        return dispatcher

    def test_success_persists_both_messages_and_charges(self, db, user, conversation, accountant):
        dispatcher = self._dispatcher(DispatchResult(content="Hello!", provider_model_id="gpt-4o-mini"))

        turn = run_chat_turn(db, user, conversation, "Hi", dispatcher=dispatcher, accountant=accountant)

        assert turn.user_message.role == "user"
        assert turn.user_message.content == "Hi"
        assert turn.assistant_message.role == "assistant"
        assert turn.assistant_message.content == "Hello!"
        assert _fresh(db, user.id).daily_usage == 1

        model_arg, history = dispatcher.dispatch.call_args[0]
        assert model_arg.name == "gpt-4o-mini"
        assert history == [{"role": "user", "content": "Hi"}]

    def test_history_includes_earlier_turns(self, db, user, conversation, accountant):
        dispatcher = self._dispatcher(DispatchResult(content="A1", provider_model_id="gpt-4o-mini"))
        run_chat_turn(db, user, conversation, "Q1", dispatcher=dispatcher, accountant=accountant)
        dispatcher.dispatch.return_value = DispatchResult(content="A2", provider_model_id="gpt-4o-mini")
        run_chat_turn(db, user, conversation, "Q2", dispatcher=dispatcher, accountant=accountant)

        _, history = dispatcher.dispatch.call_args[0]
        assert history == [
            {"role": "user", "content": "Q1"},
            {"role": "assistant", "content": "A1"},
            {"role": "user", "content": "Q2"},
        ]

    def test_failed_dispatch_is_not_charged(self, db, user, conversation, accountant):
        dispatcher = self._dispatcher(
            DispatchResult(content="demo", provider_model_id="gpt-4o-mini", fallback=True, failed=True)
        )

        turn = run_chat_turn(db, user, conversation, "Hi", dispatcher=dispatcher, accountant=accountant)

        assert turn.assistant_message.content == "demo"
        assert _fresh(db, user.id).daily_usage == 0

    def test_demo_fallback_is_charged(self, db, user, conversation, accountant):
        dispatcher = self._dispatcher(
            DispatchResult(content="demo", provider_model_id="gpt-4o-mini", fallback=True)
        )
        run_chat_turn(db, user, conversation, "Hi", dispatcher=dispatcher, accountant=accountant)
        assert _fresh(db, user.id).daily_usage == 1

    def test_exhausted_quota_persists_nothing(self, db, conversation, accountant, clock):
        user = db.get(User, conversation.user_id)
        user.daily_usage = 10
        user.last_usage_reset = clock.current - timedelta(hours=1)
        db.commit()
        dispatcher = self._dispatcher(DispatchResult(content="x", provider_model_id="gpt-4o-mini"))

        turn = run_chat_turn(db, user, conversation, "Hi", dispatcher=dispatcher, accountant=accountant)

        assert turn is None
        dispatcher.dispatch.assert_not_called()
        assert get_conversation_messages(db, conversation.id) == []

    def test_persistence_error_releases_the_slot(self, db, user, conversation, accountant):
        dispatcher = self._dispatcher(DispatchResult(content="x", provider_model_id="gpt-4o-mini"))

        with patch("services.chat.add_message", side_effect=RuntimeError("db down")):
            with pytest.raises(RuntimeError, match="db down"):
                run_chat_turn(db, user, conversation, "Hi", dispatcher=dispatcher, accountant=accountant)

        dispatcher.dispatch.assert_not_called()
        assert _fresh(db, user.id).daily_usage == 0
        assert _record_count(db, user.id, conversation.model_id, datetime(2026, 3, 14).date()) == 0

    def test_dispatcher_crash_releases_the_slot(self, db, user, conversation, accountant):
        dispatcher = MagicMock()
        dispatcher.dispatch.side_effect = KeyError("role")

        with pytest.raises(KeyError):
            run_chat_turn(db, user, conversation, "Hi", dispatcher=dispatcher, accountant=accountant)

        assert _fresh(db, user.id).daily_usage == 0

    def test_failed_dispatch_then_save_error_refunds_once(self, db, user, conversation, accountant):
        accountant.check_and_consume(db, user.id, conversation.model_id)
        dispatcher = self._dispatcher(
            DispatchResult(content="demo", provider_model_id="gpt-4o-mini", fallback=True, failed=True)
        )
        real_add_message = add_message

        def add_user_message_only(db_, conv, role, content):
            if role == "assistant":
                raise RuntimeError("disk full")
            return real_add_message(db_, conv, role, content)

        with patch("services.chat.add_message", side_effect=add_user_message_only):
            with pytest.raises(RuntimeError):
                run_chat_turn(db, user, conversation, "Hi", dispatcher=dispatcher, accountant=accountant)

        # the earlier successful turn stays charged
        assert _fresh(db, user.id).daily_usage == 1
