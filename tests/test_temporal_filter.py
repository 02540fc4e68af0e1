"""Tests for the temporal filter."""

from datetime import timedelta

from neo_permissions.domain.entities.delegation import Delegation
from neo_permissions.domain.entities.grant import user_grant
from neo_permissions.application.services.temporal_filter import (
    delegation_active,
    filter_active,
    partition_active,
)


def _grant(grant_id, **kwargs):
    return user_grant(grant_id, "u1", "report.export", **kwargs)


class TestTemporalFilter:
    """Window boundaries: inclusive start, exclusive end."""

    def test_upper_bound_is_exclusive(self, t0):
        grant = _grant("g1", valid_until=t0)
        assert filter_active([grant], t0) == []

    def test_lower_bound_is_inclusive(self, t0):
        grant = _grant("g1", valid_from=t0)
        assert filter_active([grant], t0) == [grant]

    def test_open_ended_windows_kept(self, t0):
        grant = _grant("g1")
        assert filter_active([grant], t0) == [grant]

    def test_not_yet_valid_dropped(self, t0):
        grant = _grant("g1", valid_from=t0 + timedelta(seconds=1))
        assert filter_active([grant], t0) == []

    def test_expired_temporary_grant_dropped_silently(self, t0):
        expired = _grant("g1", valid_until=t0 - timedelta(minutes=5), is_temporary=True)
        kept = _grant("g2", valid_until=t0 + timedelta(minutes=5), is_temporary=True)

        active, inactive = partition_active([expired, kept], t0)

        assert active == [kept]
        assert inactive == [expired]

    def test_naive_datetimes_treated_as_utc(self, t0):
        naive_end = (t0 + timedelta(hours=1)).replace(tzinfo=None)
        grant = _grant("g1", valid_until=naive_end)

        assert filter_active([grant], t0) == [grant]
        assert filter_active([grant], naive_end) == []

    def test_order_preserved(self, t0):
        grants = [_grant(f"g{i}") for i in range(5)]
        assert filter_active(grants, t0) == grants


class TestDelegationWindow:
    """Delegations use the same window plus revocation."""

    def test_active_delegation(self, t0):
        delegation = Delegation(
            id="d1", delegator_id="a", delegatee_id="b",
            valid_from=t0, valid_until=t0 + timedelta(hours=1)
        )
        assert delegation_active(delegation, t0)
        assert not delegation_active(delegation, t0 + timedelta(hours=1))

    def test_revoked_delegation(self, t0):
        delegation = Delegation(id="d1", delegator_id="a", delegatee_id="b").revoke(at=t0)
        assert not delegation_active(delegation, t0)
