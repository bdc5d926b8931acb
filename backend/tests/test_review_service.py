# 리뷰 서비스 테스트 (인메모리 저장소)
import asyncio

import pytest

from conftest import PASSWORD, run
from hijab_api.core.config import settings
from hijab_api.core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from hijab_api.domain.enums import ReviewStatus, Role

TEXT = "Really elegant and quick to pin."


@pytest.fixture
def creator(accounts):
    return run(accounts.register("Creator", "creator@example.com", PASSWORD))


@pytest.fixture
def author(accounts):
    return run(accounts.register("Author", "author@example.com", PASSWORD))


@pytest.fixture
def voter(accounts):
    return run(accounts.register("Voter", "voter@example.com", PASSWORD))


@pytest.fixture
def moderator(accounts):
    account = run(accounts.register("Mod", "mod@example.com", PASSWORD))
    return run(accounts.change_role(account.id, Role.MODERATOR))


@pytest.fixture
def style(catalog, creator):
    return run(catalog.create(creator, {"name": "Classic Wrap", "image": "https://cdn.example.com/a.jpg"}))


def submit(service, style, actor, rating=4, text=TEXT):
    return run(service.submit(style.id, actor, {"text": text, "rating": rating}))


def test_submit_awards_points_once(review_service, style, author, users):
    review = submit(review_service, style, author)
    assert review.status == ReviewStatus.PUBLISHED
    assert run(users.get(author.id)).achievements.points == settings.POINTS_PER_REVIEW

    with pytest.raises(ConflictError):
        submit(review_service, style, author, rating=5)


def test_submit_rejects_invalid_content_and_missing_style(review_service, style, author):
    with pytest.raises(ValidationError):
        submit(review_service, style, author, text="short")
    with pytest.raises(NotFoundError):
        run(review_service.submit("missing", author, {"text": TEXT, "rating": 4}))


def test_concurrent_submissions_create_one_review(review_service, style, author, reviews):
    async def race():
        return await asyncio.gather(
            review_service.submit(style.id, author, {"text": TEXT, "rating": 4}),
            review_service.submit(style.id, author, {"text": TEXT, "rating": 5}),
            return_exceptions=True,
        )

    results = run(race())
    assert sum(isinstance(r, ConflictError) for r in results) == 1
    assert len(reviews.items) == 1


def test_update_is_author_only_and_records_history(review_service, style, author, voter):
    review = submit(review_service, style, author)
    with pytest.raises(AuthorizationError):
        run(review_service.update(review.id, voter, {"rating": 1}))

    updated = run(review_service.update(review.id, author, {"text": "Updated after a week of wearing.", "rating": 3}))
    assert len(updated.edit_history) == 1
    assert updated.edit_history[0].previous_rating == 4


def test_deleted_review_can_be_submitted_again(review_service, style, author, users):
    review = submit(review_service, style, author)
    run(review_service.delete(review.id, author))
    with pytest.raises(NotFoundError):
        run(review_service.get(review.id))
    assert run(review_service.can_review(style.id, author.id)) == {"can_review": True}

    revived = submit(review_service, style, author, rating=2, text="Second try, did not hold.")
    assert revived.id == review.id
    assert revived.rating == 2
    assert len(revived.edit_history) == 1
    assert run(users.get(author.id)).achievements.points == settings.POINTS_PER_REVIEW


def test_votes(review_service, style, author, voter):
    review = submit(review_service, style, author)
    with pytest.raises(AuthorizationError):
        run(review_service.vote(review.id, author, "helpful"))

    run(review_service.vote(review.id, voter, "helpful"))
    voted = run(review_service.vote(review.id, voter, "unhelpful"))
    assert (voted.helpful_votes, voted.unhelpful_votes) == (0, 1)
    assert len(voted.voters) == 1

    assert run(review_service.vote(review.id, voter, "meh")) == voted
    cleared = run(review_service.remove_vote(review.id, voter))
    assert (cleared.helpful_votes, cleared.unhelpful_votes) == (0, 0)


def test_flags_move_review_to_flagged(review_service, style, author, accounts):
    review = submit(review_service, style, author)
    reporters = [
        run(accounts.register(f"Reporter {i}", f"reporter{i}@example.com", PASSWORD)) for i in range(4)
    ]
    for reporter in reporters[:3]:
        flagged = run(review_service.flag(review.id, reporter, "Spam"))
    assert flagged.status == ReviewStatus.FLAGGED

    flagged = run(review_service.flag(review.id, reporters[3], "Other"))
    assert flagged.status == ReviewStatus.FLAGGED
    with pytest.raises(ConflictError):
        run(review_service.flag(review.id, reporters[0], "Spam"))

    # Flagged 리뷰는 공개 조회에서 제외, 작성자와 운영진만 조회 가능
    with pytest.raises(NotFoundError):
        run(review_service.get(review.id))
    assert run(review_service.get(review.id, author)).id == review.id


def test_creator_response_permissions(review_service, style, author, creator, voter, moderator):
    review = submit(review_service, style, author)
    with pytest.raises(AuthorizationError):
        run(review_service.respond(review.id, voter, "Thanks!"))
    assert run(review_service.respond(review.id, creator, "Thanks!")).creator_response.text == "Thanks!"
    assert run(review_service.respond(review.id, moderator, "Noted")).creator_response.responded_by == moderator.id


def test_stats_and_listing(review_service, style, accounts):
    for i, rating in enumerate([5, 5, 4, 3]):
        actor = run(accounts.register(f"Reviewer {i}", f"reviewer{i}@example.com", PASSWORD))
        submit(review_service, style, actor, rating=rating)

    stats = run(review_service.stats(style.id))
    assert stats.average_rating == 4.3
    assert stats.rating_breakdown == {5: 2, 4: 1, 3: 1, 2: 0, 1: 0}

    page, total = run(review_service.find_for_style(style.id, sort="lowest", page=1, limit=2))
    assert total == 4
    assert [r.rating for r in page] == [3, 4]

    with pytest.raises(ValidationError):
        run(review_service.find_for_style(style.id, sort="random"))
    with pytest.raises(NotFoundError):
        run(review_service.stats("missing"))


def test_unpublished_listing_is_staff_only(review_service, style, author, moderator):
    with pytest.raises(AuthorizationError):
        run(review_service.find_for_style(style.id, status="Hidden", viewer=author))
    assert run(review_service.find_for_style(style.id, status="Hidden", viewer=moderator)) == ([], 0)


def test_user_listing_shows_hidden_reviews_to_owner(review_service, style, author, voter, moderator):
    review = submit(review_service, style, author)
    run(review_service.set_status(review.id, moderator, "Hidden"))
    assert run(review_service.find_for_user(author.id, viewer=voter))[1] == 0
    assert run(review_service.find_for_user(author.id, viewer=author))[1] == 1


def test_search_filters_by_rating(review_service, style, author, voter):
    submit(review_service, style, author, rating=5, text="Elegant for weddings and parties.")
    submit(review_service, style, voter, rating=2, text="Elegant but slips constantly.")
    found, total = run(review_service.search("elegant", min_rating=4))
    assert total == 1
    assert found[0].user_id == author.id
    with pytest.raises(ValidationError):
        run(review_service.search("   "))
    with pytest.raises(ValidationError):
        run(review_service.search("elegant", min_rating=5, max_rating=2))


def test_moderation_requires_staff_and_valid_transition(review_service, style, author, moderator):
    review = submit(review_service, style, author)
    with pytest.raises(AuthorizationError):
        run(review_service.set_status(review.id, author, "Hidden"))
    with pytest.raises(ValidationError):
        run(review_service.set_status(review.id, moderator, "Flagged"))
    assert run(review_service.set_status(review.id, moderator, "Hidden")).status == ReviewStatus.HIDDEN


def test_bulk_operations_report_counts(review_service, style, author, voter, moderator):
    first = submit(review_service, style, author)
    second = submit(review_service, style, voter)
    run(review_service.set_status(second.id, moderator, "Hidden"))

    result = run(review_service.bulk_update_status([first.id, second.id, "missing"], moderator, "Pending"))
    assert result == {"updated": 0, "not_found": 1, "skipped": 2}

    # 이미 Hidden인 리뷰는 상태가 그대로이므로 skipped
    result = run(review_service.bulk_update_status([first.id, second.id], moderator, "Hidden"))
    assert result == {"updated": 1, "not_found": 0, "skipped": 1}

    result = run(review_service.bulk_delete([first.id, first.id, "missing"], moderator))
    assert result == {"deleted": 1, "not_found": 1}


def test_can_review_reports_existing_review(review_service, style, author):
    review = submit(review_service, style, author)
    result = run(review_service.can_review(style.id, author.id))
    assert result["can_review"] is False
    assert result["review_id"] == review.id
