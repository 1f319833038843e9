"""
Unit tests for the execution context.
"""

from keyrunner.orchestration.context import ExecutionContext


class TestVerdict:
    """Tests for pass/fail state."""

    def test_starts_passed(self):
        context = ExecutionContext("TC001", "Login")

        assert context.passed is True
        assert context.failure_reason is None
        assert context.failure_history == []

    def test_first_reason_wins(self):
        context = ExecutionContext("TC001", "Login")

        context.set_failed("Login failed")
        context.set_failed("Mandatory keyword failed: LOGIN")

        assert context.passed is False
        assert context.failure_reason == "Login failed"
        assert context.failure_history == ["Login failed", "Mandatory keyword failed: LOGIN"]

    def test_history_is_a_copy(self):
        context = ExecutionContext("TC001", "Login")
        context.set_failed("boom")

        context.failure_history.append("tampered")

        assert context.failure_history == ["boom"]

    def test_identity_is_read_only(self):
        context = ExecutionContext("TC001", "Login", unit_id=5)

        assert context.test_id == "TC001"
        assert context.test_name == "Login"
        assert context.unit_id == 5


class TestInputData:
    """Tests for input data access."""

    def test_set_and_get(self):
        context = ExecutionContext("TC001", "Login")
        context.set_input_data({"Username": "jdoe", "Retries": 3})
        context.add_input("Password", "secret")

        assert context.get_input("Username") == "jdoe"
        assert context.get_input_as_string("Retries") == "3"
        assert context.get_input_as_string("Missing") is None
        assert context.all_input_data() == {"Username": "jdoe", "Retries": 3, "Password": "secret"}

    def test_all_input_data_is_a_copy(self):
        context = ExecutionContext("TC001", "Login")
        context.add_input("Username", "jdoe")

        context.all_input_data()["Username"] = "other"

        assert context.get_input("Username") == "jdoe"


class TestScratchSpace:
    """Tests for values handed between keywords."""

    def test_put_get(self):
        context = ExecutionContext("TC001", "Login")
        context.put("TECS_ID", 12345)

        assert context.has("TECS_ID")
        assert context.get("TECS_ID") == 12345
        assert context.get_as_string("TECS_ID") == "12345"
        assert context.get("MISSING", "fallback") == "fallback"
        assert context.get_as_string("MISSING") is None


class TestCleanup:
    """Tests for cleanup()."""

    def test_closes_live_session(self, sessions):
        context = ExecutionContext("TC001", "Login", sessions, unit_id=1)
        session = sessions.open(unit_id=1)
        context.attach_session(session)
        context.put("TECS_ID", "1")

        context.cleanup()

        assert session.quit_calls == 1
        assert context.session is None
        assert context.has("TECS_ID") is False
        assert sessions.is_active(1) is False

    def test_is_idempotent(self, sessions):
        context = ExecutionContext("TC001", "Login", sessions, unit_id=1)
        session = sessions.open(unit_id=1)
        context.attach_session(session)

        context.cleanup()
        context.cleanup()

        assert session.quit_calls == 1

    def test_repeat_cleanup_clears_scratch(self):
        context = ExecutionContext("TC001", "Login")
        context.put("a", 1)
        context.cleanup()
        context.put("b", 2)

        context.cleanup()

        assert context.has("a") is False
        assert context.get("b") is None

    def test_skips_session_closed_by_keyword(self, sessions):
        context = ExecutionContext("TC001", "Login", sessions, unit_id=1)
        session = sessions.open(unit_id=1)
        context.attach_session(session)
        sessions.close(1)

        context.cleanup()

        assert session.quit_calls == 1

    def test_does_not_close_replaced_session(self, sessions):
        context = ExecutionContext("TC001", "Login", sessions, unit_id=1)
        stale = sessions.open(unit_id=1)
        context.attach_session(stale)
        sessions.reset(1)
        fresh = sessions.open(unit_id=1)

        context.cleanup()

        assert fresh.quit_calls == 0
        assert sessions.is_active(1)

    def test_never_raises(self, session_factory, sessions):
        session_factory.fail_on_quit = True
        context = ExecutionContext("TC001", "Login", sessions, unit_id=1)
        context.attach_session(sessions.open(unit_id=1))

        context.cleanup()

        assert sessions.is_active(1) is False

    def test_without_session(self):
        context = ExecutionContext("TC001", "Login")
        context.cleanup()
        assert context.session is None
