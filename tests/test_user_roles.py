"""
Tests for per-series user roles and the moderator check.
"""
import pytest
from sqlalchemy.orm import Session

from minutesflow.core.exceptions import NotAuthenticatedError, NotAuthorizedError
from minutesflow.models.meeting_series import MeetingSeriesModel
from minutesflow.models.series_role import SeriesRole
from minutesflow.models.user import User
from minutesflow.services.user_roles import (
    UserRoles,
    authorize,
    remove_roles_for_series,
    set_role,
)

from conftest import TestingSessionLocal


class TestUserRoles:
    """Tests for role lookups."""

    def test_moderator(self, moderator_user: User, series: MeetingSeriesModel):
        """Test that the moderator is moderator and invited."""
        roles = UserRoles(TestingSessionLocal, moderator_user.id)
        assert roles.is_moderator_of(series.id) is True
        assert roles.is_invited_to(series.id) is True

    def test_invited(self, other_user: User, series: MeetingSeriesModel):
        """Test that an invited user is not a moderator."""
        roles = UserRoles(TestingSessionLocal, other_user.id)
        assert roles.is_moderator_of(series.id) is False
        assert roles.is_invited_to(series.id) is True

    def test_outsider(self, outsider_user: User, series: MeetingSeriesModel):
        """Test that a user without a role has no access."""
        roles = UserRoles(TestingSessionLocal, outsider_user.id)
        assert roles.is_moderator_of(series.id) is False
        assert roles.is_invited_to(series.id) is False

    def test_malformed_series_id(self, moderator_user: User):
        """Test that a malformed series id never matches."""
        assert UserRoles(TestingSessionLocal, moderator_user.id).is_moderator_of("nope") is False

    def test_set_role_promotes(self, db: Session, other_user: User, series: MeetingSeriesModel):
        """Test that setting a role replaces the existing one."""
        set_role(db, other_user.id, series.id, SeriesRole.MODERATOR)
        assert UserRoles(TestingSessionLocal, other_user.id).is_moderator_of(series.id) is True
        assert db.query(SeriesRole).filter(SeriesRole.user_id == other_user.id).count() == 1

    def test_remove_roles_for_series(self, db: Session, series: MeetingSeriesModel):
        """Test removing every role of a series."""
        assert remove_roles_for_series(TestingSessionLocal, series.id) == 2
        assert db.query(SeriesRole).count() == 0


class TestAuthorize:
    """Tests for the authorization gate."""

    def test_anonymous(self, series: MeetingSeriesModel):
        """Test that a missing caller is not authenticated."""
        with pytest.raises(NotAuthenticatedError):
            authorize(TestingSessionLocal, None, series.id)

    def test_not_moderator(self, other_user: User, series: MeetingSeriesModel):
        """Test that an invited user is not authorized."""
        with pytest.raises(NotAuthorizedError):
            authorize(TestingSessionLocal, other_user, series.id)

    def test_moderator(self, moderator_user: User, series: MeetingSeriesModel):
        """Test that the moderator passes."""
        authorize(TestingSessionLocal, moderator_user, series.id)
