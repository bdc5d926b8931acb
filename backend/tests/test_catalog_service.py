# 카탈로그 서비스 테스트 (인메모리 저장소)
import asyncio

import pytest

from conftest import PASSWORD, run
from fakes import FakeStyleRepository
from hijab_api.core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from hijab_api.core.config import settings
from hijab_api.domain.catalog import SearchFilters
from hijab_api.domain.enums import Difficulty, Occasion, Role, StyleStatus
from hijab_api.services.catalog_service import CatalogService

IMAGE = "https://cdn.example.com/wrap.webp"


@pytest.fixture
def creator(accounts):
    return run(accounts.register("Creator", "creator@example.com", PASSWORD))


@pytest.fixture
def other(accounts):
    return run(accounts.register("Other", "other@example.com", PASSWORD))


@pytest.fixture
def admin(accounts):
    account = run(accounts.register("Admin", "admin@example.com", PASSWORD))
    return run(accounts.change_role(account.id, Role.ADMIN))


def create(catalog, actor, name="Classic Wrap", **data):
    return run(catalog.create(actor, {"name": name, "image": IMAGE, **data}))


def test_create_awards_points_to_creator(catalog, creator, users):
    style = create(catalog, creator)
    assert style.slug == "classic-wrap"
    assert style.created_by == creator.id
    assert run(users.get(creator.id)).achievements.points == settings.POINTS_PER_STYLE


def test_duplicate_slug_is_a_conflict(catalog, creator):
    create(catalog, creator)
    with pytest.raises(ConflictError):
        create(catalog, creator, name="Classic Wrap!!")


def test_update_checks_ownership_and_slug(catalog, creator, other, admin):
    style = create(catalog, creator)
    create(catalog, creator, name="Turban")
    with pytest.raises(AuthorizationError):
        run(catalog.update(style.id, other, {"description": "mine now"}))
    with pytest.raises(ConflictError):
        run(catalog.update(style.id, creator, {"name": "turban"}))

    updated = run(catalog.update(style.id, admin, {"name": "Classic Wrap Deluxe"}))
    assert updated.slug == "classic-wrap-deluxe"


def test_archive_hides_style_from_public(catalog, creator, other):
    style = create(catalog, creator)
    run(catalog.archive(style.id, creator))
    with pytest.raises(NotFoundError):
        run(catalog.get(style.id, other))
    assert run(catalog.get(style.id, creator)).status == StyleStatus.ARCHIVED


def test_like_and_unlike_never_below_zero(catalog, creator):
    style = create(catalog, creator)
    assert run(catalog.toggle_like(style.id, "like")).likes == 1
    assert run(catalog.toggle_like(style.id, "unlike")).likes == 0
    assert run(catalog.toggle_like(style.id, "unlike")).likes == 0
    with pytest.raises(NotFoundError):
        run(catalog.toggle_like("missing"))


def test_views_increment_and_admin_reset(catalog, creator, admin):
    style = create(catalog, creator)
    run(catalog.increment_views(style.id))
    run(catalog.increment_views(style.id))
    assert run(catalog.get(style.id)).views == 2

    with pytest.raises(AuthorizationError):
        run(catalog.reset_views(style.id, creator))
    assert run(catalog.reset_views(style.id, admin)).views == 0


def test_increment_views_on_missing_style_is_quiet(catalog):
    run(catalog.increment_views("missing"))


def test_list_filters_and_paginates(catalog, creator):
    for i in range(5):
        create(catalog, creator, name=f"Office {i}", occasions=[Occasion.OFFICE])
    create(catalog, creator, name="Party Look", occasions=[Occasion.PARTY], difficulty=Difficulty.ADVANCED)

    page, total = run(catalog.list_styles(filters=SearchFilters(occasions=(Occasion.OFFICE,)), page=2, limit=2))
    assert total == 5
    assert len(page) == 2

    advanced, total = run(catalog.list_styles(filters=SearchFilters(difficulty=Difficulty.ADVANCED)))
    assert [s.name for s in advanced] == ["Party Look"]


def test_list_unpublished_requires_owner_or_staff(catalog, creator, other, admin):
    create(catalog, creator, name="Draft Look", status="Draft")
    drafts = SearchFilters(status=StyleStatus.DRAFT)
    with pytest.raises(AuthorizationError):
        run(catalog.list_styles(filters=drafts, viewer=other))
    own, total = run(catalog.list_styles(
        filters=SearchFilters(status=StyleStatus.DRAFT, created_by=creator.id), viewer=creator
    ))
    assert total == 1
    assert run(catalog.list_styles(filters=drafts, viewer=admin))[1] == 1


def test_list_rejects_unknown_sort(catalog):
    with pytest.raises(ValidationError):
        run(catalog.list_styles(sort="random"))


def test_featured_requires_minimum_likes(catalog, creator, styles):
    style = create(catalog, creator)
    create(catalog, creator, name="Unloved")
    run(styles.save(style.model_copy(update={"likes": settings.FEATURED_MIN_LIKES})))
    assert [s.id for s in run(catalog.featured())] == [style.id]


def test_suggestions_need_two_characters(catalog, creator):
    create(catalog, creator, tags=["summer"])
    assert run(catalog.suggestions("c")) == []
    assert run(catalog.suggestions(None)) == []
    assert [s.name for s in run(catalog.suggestions("sum"))] == ["Classic Wrap"]


def test_similar_and_filter_options(catalog, creator):
    reference = create(catalog, creator, occasions=[Occasion.WEDDING], tags=["bridal"])
    create(catalog, creator, name="Bridal Veil", difficulty=Difficulty.ADVANCED, tags=["bridal"])
    create(catalog, creator, name="Gym", difficulty=Difficulty.INTERMEDIATE, occasions=[Occasion.SPORT])

    assert [s.name for s in run(catalog.similar(reference.id))] == ["Bridal Veil"]
    options = run(catalog.filter_options())
    assert options["occasions"] == ["Sport", "Wedding"]
    assert options["tags"] == ["bridal"]


class SlowStyleRepository(FakeStyleRepository):
    # 조회 직후 다른 코루틴이 끼어들 수 있도록 한 번 양보
    async def get(self, entity_id):
        style = await super().get(entity_id)
        await asyncio.sleep(0)
        return style


@pytest.mark.parametrize("write", ["like", "update", "archive"])
def test_style_writes_keep_concurrent_view_increments(write, creator, locks, admin):
    repo = SlowStyleRepository()
    catalog = CatalogService(repo, locks)
    style = create(catalog, creator)
    writes = {
        "like": lambda: catalog.toggle_like(style.id, "like"),
        "update": lambda: catalog.update(style.id, creator, {"description": "Pinned at the side"}),
        "archive": lambda: catalog.archive(style.id, admin),
    }

    async def race():
        await asyncio.gather(writes[write](), catalog.increment_views(style.id))

    run(race())
    after = repo.items[style.id]
    assert after.views == 1
    if write == "like":
        assert after.likes == 1


def test_unlike_at_zero_stays_at_zero_under_concurrency(catalog, creator):
    style = create(catalog, creator)

    async def race():
        await asyncio.gather(*(catalog.toggle_like(style.id, "unlike") for _ in range(3)))

    run(race())
    assert run(catalog.get(style.id)).likes == 0


@pytest.mark.parametrize("field", ["name", "image", "tags", "difficulty"])
def test_update_with_null_required_field_is_a_validation_error(catalog, creator, field):
    style = create(catalog, creator)
    with pytest.raises(ValidationError) as exc:
        run(catalog.update(style.id, creator, {field: None}))
    assert exc.value.errors and exc.value.errors[0].startswith(field)
    assert run(catalog.get(style.id)).name == "Classic Wrap"
