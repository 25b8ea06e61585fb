import pytest

from app.models.cancellation import ACTIVE_STATUSES, CancellationStatus, can_transition, is_terminal


class TestTransitions:
    @pytest.mark.parametrize("target", ["approved", "rejected"])
    def test_pending_can_be_decided(self, target):
        assert can_transition("pending", target) is True

    @pytest.mark.parametrize("current", ["approved", "rejected", "cancelled"])
    @pytest.mark.parametrize("target", ["pending", "approved", "rejected", "cancelled"])
    def test_decided_requests_are_final(self, current, target):
        assert can_transition(current, target) is False

    def test_pending_cannot_skip_to_cancelled(self):
        assert can_transition("pending", "cancelled") is False

    def test_unknown_status(self):
        assert can_transition("archived", "approved") is False


class TestTerminal:
    def test_only_pending_is_open(self):
        assert [s.value for s in CancellationStatus if not is_terminal(s.value)] == ["pending"]

    def test_active_statuses_block_new_requests(self):
        assert set(ACTIVE_STATUSES) == {"pending", "approved"}
