# 계정 도메인 유닛 테스트 (DB 의존성 없음)
from datetime import date, datetime, timedelta, timezone

import pytest

from hijab_api.core.exceptions import ConflictError, NotFoundError, ValidationError
from hijab_api.domain import account as domain
from hijab_api.domain.enums import ProfileVisibility

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_account(**changes):
    account = domain.new_account("Amina", "  Amina@Example.com ", "hashed", NOW)
    return account.model_copy(update={"id": "u1", **changes})


def test_new_account_normalizes_email_and_starts_streak():
    account = make_account()
    assert account.email == "amina@example.com"
    assert account.achievements.streak.days == 1
    assert account.achievements.level == 1
    assert account.account_status.is_verified is False


@pytest.mark.parametrize("password", ["short1A", "alllowercase1", "ALLUPPERCASE1", "NoDigitsHere", "Aa1" + "x" * 70])
def test_validate_password_rejects_weak_passwords(password):
    with pytest.raises(ValidationError):
        domain.validate_password(password)


def test_validate_password_accepts_policy_compliant_password():
    domain.validate_password("Sup3rSecret")


def test_five_failed_logins_lock_the_account():
    account = make_account()
    for _ in range(4):
        account = domain.record_failed_login(account, NOW)
    assert not domain.is_locked(account, NOW)

    account = domain.record_failed_login(account, NOW)
    assert account.security.login_attempts.count == 5
    assert domain.is_locked(account, NOW)
    assert domain.is_locked(account, NOW + timedelta(hours=1, minutes=59))
    assert not domain.is_locked(account, NOW + timedelta(hours=2, seconds=1))


def test_failure_after_lock_expiry_restarts_count():
    account = make_account()
    for _ in range(5):
        account = domain.record_failed_login(account, NOW)
    later = NOW + timedelta(hours=3)
    account = domain.record_failed_login(account, later)
    assert account.security.login_attempts.count == 1
    assert not domain.is_locked(account, later)


def test_successful_login_resets_attempts_and_counts_login():
    account = domain.record_failed_login(make_account(), NOW)
    account = domain.record_successful_login(account, NOW)
    assert account.security.login_attempts.count == 0
    assert account.activity.login_count == 1


def test_streak_grows_within_a_day_and_resets_after_gap():
    account = make_account()
    next_day = NOW + timedelta(hours=20)
    account = domain.touch_activity(account, next_day)
    assert account.achievements.streak.days == 2

    same_day = next_day + timedelta(minutes=30)
    assert domain.touch_activity(account, same_day).achievements.streak.days == 2

    much_later = next_day + timedelta(days=3)
    assert domain.touch_activity(account, much_later).achievements.streak.days == 1


def test_sessions_are_capped_and_closable():
    account = make_account()
    for i in range(4):
        account = domain.open_session(account, f"s{i}", NOW, max_sessions=3)
    assert [s.session_id for s in account.security.sessions] == ["s1", "s2", "s3"]

    account = domain.close_session(account, "s2")
    assert not domain.has_session(account, "s2")
    assert domain.has_session(account, "s3")


def test_prune_sessions_drops_idle_ones():
    account = domain.open_session(make_account(), "old", NOW - timedelta(days=40), max_sessions=5)
    account = domain.open_session(account, "fresh", NOW, max_sessions=5)
    pruned = domain.prune_sessions(account, NOW - timedelta(days=30))
    assert [s.session_id for s in pruned.security.sessions] == ["fresh"]


def test_one_time_token_is_stored_hashed_and_expires():
    account, raw = domain.issue_password_reset_token(make_account(), NOW)
    assert account.password_reset.token_hash != raw
    assert domain.token_is_valid(account.password_reset, raw, NOW + timedelta(minutes=9))
    assert not domain.token_is_valid(account.password_reset, raw, NOW + timedelta(minutes=11))
    assert not domain.token_is_valid(account.password_reset, "wrong", NOW)


def test_set_password_hash_revokes_sessions_and_reset_token():
    account = domain.open_session(make_account(), "s1", NOW, max_sessions=5)
    account, _ = domain.issue_password_reset_token(account, NOW)
    account = domain.set_password_hash(account, "new-hash", NOW)
    assert account.hashed_password == "new-hash"
    assert account.security.sessions == ()
    assert account.password_reset.token_hash is None


def test_clear_expired_tokens_keeps_live_ones():
    account, _ = domain.issue_email_verification_token(make_account(), NOW)
    account, _ = domain.issue_password_reset_token(account, NOW)
    cleared = domain.clear_expired_tokens(account, NOW + timedelta(hours=1))
    assert cleared.password_reset.token_hash is None
    assert cleared.email_verification.token_hash == account.email_verification.token_hash


def test_follow_is_idempotent_and_rejects_self():
    account = make_account()
    account = domain.follow(account, "u2", NOW)
    assert domain.follow(account, "u2", NOW) is account
    assert len(account.social.following) == 1
    with pytest.raises(ValidationError):
        domain.follow(account, "u1", NOW)
    assert domain.unfollow(account, "u2", NOW).social.following == ()


def test_favorites_do_not_duplicate():
    account = domain.add_favorite(make_account(), "s1", NOW)
    assert domain.add_favorite(account, "s1", NOW) is account
    assert domain.remove_favorite(account, "s1", NOW).collections.favorites == ()


def test_custom_collections():
    account = domain.create_collection(make_account(), "Eid looks", NOW, is_public=True)
    with pytest.raises(ConflictError):
        domain.create_collection(account, "Eid looks", NOW)
    account = domain.add_to_collection(account, "Eid looks", "s1", NOW)
    account = domain.add_to_collection(account, "Eid looks", "s1", NOW)
    assert account.collections.custom_collections[0].styles == ("s1",)
    with pytest.raises(NotFoundError):
        domain.add_to_collection(account, "Missing", "s1", NOW)


def test_points_raise_level_and_reject_non_positive_amounts():
    account = domain.award_points(make_account(), 250, NOW)
    assert account.achievements.points == 250
    assert account.achievements.level == 3
    with pytest.raises(ValidationError):
        domain.award_points(account, 0, NOW)


def test_badges_are_unique_by_name():
    account = domain.add_badge(make_account(), "First Review", NOW, icon="star")
    assert domain.add_badge(account, "First Review", NOW) is account
    assert [b.name for b in account.achievements.badges] == ["First Review"]


def test_suspend_revokes_sessions_and_reactivate_clears_it():
    account = domain.open_session(make_account(), "s1", NOW, max_sessions=5)
    suspended = domain.suspend(account, NOW + timedelta(days=1), "spam", NOW)
    assert domain.is_suspended(suspended, NOW)
    assert suspended.security.sessions == ()
    assert not domain.is_suspended(domain.reactivate(suspended, NOW), NOW)


def test_profile_patch_merges_nested_settings():
    account = domain.apply_profile_patch(
        make_account(),
        {"settings": {"privacy": {"profile_visibility": "Private"}}, "profile": {"bio": "Hello"}},
        NOW,
    )
    assert account.user_settings.privacy.profile_visibility == ProfileVisibility.PRIVATE
    assert account.user_settings.privacy.show_email is False
    assert account.profile.bio == "Hello"
    assert account.hashed_password == "hashed"


def test_age_counts_birthday():
    account = domain.apply_profile_patch(
        make_account(), {"profile": {"date_of_birth": datetime(2000, 6, 15, tzinfo=timezone.utc)}}, NOW
    )
    assert domain.age_of(account, date(2026, 6, 14)) == 25
    assert domain.age_of(account, date(2026, 6, 15)) == 26
    assert domain.age_of(make_account(), date(2026, 6, 15)) is None
