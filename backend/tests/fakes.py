# 테스트용 인메모리 저장소
# - 실제 저장소와 같은 메서드 이름/반환 타입 (스냅샷)을 제공
# - 필터/정렬은 도메인 함수를 그대로 사용

from bson import ObjectId

from hijab_api.core.exceptions import ConflictError, NotFoundError
from hijab_api.domain.account import clear_expired_tokens, prune_sessions
from hijab_api.domain.base import changed_fields
from hijab_api.domain.catalog import matches_filters, popularity_key, rank_similar, sort_styles, toggle_like
from hijab_api.domain.enums import ProfileVisibility, ReviewStatus, StyleStatus
from hijab_api.domain.review import sort_reviews


class _MemoryRepository:
    conflict_message = "Resource already exists"
    resource_name = "Resource"

    def __init__(self):
        self.items = {}

    def _conflicts(self, snapshot) -> bool:
        return False

    async def get(self, entity_id):
        return self.items.get(entity_id)

    async def get_many(self, entity_ids):
        return [self.items[i] for i in entity_ids if i in self.items]

    async def create(self, snapshot):
        if self._conflicts(snapshot):
            raise ConflictError(self.conflict_message)
        created = snapshot.model_copy(update={"id": str(ObjectId())})
        self.items[created.id] = created
        return created

    async def save(self, snapshot):
        if snapshot.id not in self.items:
            raise NotFoundError(self.resource_name)
        self.items[snapshot.id] = snapshot
        return snapshot

    async def save_changes(self, before, after):
        # 바뀐 필드만 현재 저장된 값 위에 덮어씀
        current = self.items.get(after.id)
        if current is None:
            raise NotFoundError(self.resource_name)
        changed = {name: getattr(after, name) for name in changed_fields(before, after)}
        self.items[after.id] = current.model_copy(update=changed)
        return after


class FakeUserRepository(_MemoryRepository):
    conflict_message = "Email already registered"
    resource_name = "User"

    def _conflicts(self, account) -> bool:
        return any(a.email == account.email for a in self.items.values())

    async def get_by_email(self, email):
        return next((a for a in self.items.values() if a.email == email), None)

    async def get_by_verification_hash(self, token_hash):
        return next((a for a in self.items.values() if a.email_verification.token_hash == token_hash), None)

    async def get_by_reset_hash(self, token_hash):
        return next((a for a in self.items.values() if a.password_reset.token_hash == token_hash), None)

    async def search(self, query, limit=20):
        found = [
            a for a in self.items.values()
            if a.account_status.is_active
            and a.user_settings.privacy.profile_visibility != ProfileVisibility.PRIVATE
            and (not query or query.lower() in f"{a.name} {a.profile.bio or ''}".lower())
        ]
        return sorted(found, key=lambda a: -a.achievements.points)[:limit]

    async def trending(self, limit=10):
        found = [
            a for a in self.items.values()
            if a.account_status.is_active
            and a.user_settings.privacy.profile_visibility == ProfileVisibility.PUBLIC
        ]
        return sorted(found, key=lambda a: -a.achievements.points)[:limit]

    async def purge_expired_security_state(self, now, idle_before):
        cleaned = 0
        for account_id, account in list(self.items.items()):
            updated = prune_sessions(clear_expired_tokens(account, now), idle_before)
            if updated != account:
                self.items[account_id] = updated
                cleaned += 1
        return cleaned


class FakeStyleRepository(_MemoryRepository):
    conflict_message = "A style with this name already exists"
    resource_name = "Hijab style"

    def _conflicts(self, style) -> bool:
        return any(s.slug == style.slug for s in self.items.values())

    async def get_by_slug(self, slug):
        return next((s for s in self.items.values() if s.slug == slug), None)

    async def find_page(self, query, filters, sort="newest", skip=0, limit=12):
        found = [s for s in self.items.values() if matches_filters(s, filters)]
        if query:
            words = query.lower().split()
            found = [
                s for s in found
                if any(w in f"{s.name} {s.description or ''} {' '.join(s.tags)}".lower() for w in words)
            ]
        else:
            found = sort_styles(found, sort)
        return found[skip:skip + limit], len(found)

    async def find_similar(self, reference, limit):
        return rank_similar(self.items.values(), reference, limit)

    async def popular(self, limit=10, min_likes=0):
        found = [s for s in self.items.values() if s.status == StyleStatus.PUBLISHED and s.likes >= min_likes]
        return sorted(found, key=popularity_key)[:limit]

    async def suggestions(self, query, limit=10):
        q = query.strip().lower()
        return [
            s for s in self.items.values()
            if s.status == StyleStatus.PUBLISHED and (q in s.name.lower() or any(q in t for t in s.tags))
        ][:limit]

    async def filter_options(self, tag_limit=20):
        published = [s for s in self.items.values() if s.status == StyleStatus.PUBLISHED]
        return {
            "difficulties": sorted({s.difficulty.value for s in published}),
            "occasions": sorted({o.value for s in published for o in s.occasions}),
            "face_shapes": sorted({f.value for s in published for f in s.suitable_face_shapes}),
            "tags": sorted({t for s in published for t in s.tags})[:tag_limit],
        }

    async def adjust_likes(self, style_id, delta):
        style = self.items.get(style_id)
        if style is not None:
            self.items[style_id] = toggle_like(style, increment=delta > 0)

    async def increment_views(self, style_id):
        style = self.items.get(style_id)
        if style is not None:
            self.items[style_id] = style.model_copy(update={"views": style.views + 1})

    async def count_by_creator(self, user_id):
        return sum(1 for s in self.items.values() if s.created_by == user_id and s.status != StyleStatus.ARCHIVED)


class FakeReviewRepository(_MemoryRepository):
    conflict_message = "You have already reviewed this style"
    resource_name = "Review"

    def _conflicts(self, review) -> bool:
        return any(r.style_id == review.style_id and r.user_id == review.user_id for r in self.items.values())

    def _live(self):
        return [r for r in self.items.values() if not r.is_deleted]

    async def get_for_pair(self, style_id, user_id):
        return next(
            (r for r in self.items.values() if r.style_id == style_id and r.user_id == user_id), None
        )

    async def find_for_style(self, style_id, status=ReviewStatus.PUBLISHED, sort="newest", skip=0, limit=10):
        found = sort_reviews([r for r in self._live() if r.style_id == style_id and r.status == status], sort)
        return found[skip:skip + limit], len(found)

    async def find_for_user(self, user_id, statuses=(ReviewStatus.PUBLISHED,), sort="newest", skip=0, limit=10):
        found = sort_reviews([r for r in self._live() if r.user_id == user_id and r.status in statuses], sort)
        return found[skip:skip + limit], len(found)

    async def published_for_style(self, style_id):
        return [r for r in self._live() if r.style_id == style_id and r.status == ReviewStatus.PUBLISHED]

    async def find_helpful(self, limit=5):
        published = [r for r in self._live() if r.status == ReviewStatus.PUBLISHED]
        return sorted(published, key=lambda r: (-r.helpful_votes, -r.rating))[:limit]

    async def search(self, query, style_id=None, user_id=None, min_rating=None, max_rating=None, skip=0, limit=10):
        words = query.lower().split()
        found = [
            r for r in self._live()
            if r.status == ReviewStatus.PUBLISHED
            and any(w in f"{r.text} {r.title or ''}".lower() for w in words)
            and (style_id is None or r.style_id == style_id)
            and (user_id is None or r.user_id == user_id)
            and (min_rating is None or r.rating >= min_rating)
            and (max_rating is None or r.rating <= max_rating)
        ]
        return found[skip:skip + limit], len(found)

    async def count_by_user(self, user_id):
        return sum(1 for r in self._live() if r.user_id == user_id and r.status == ReviewStatus.PUBLISHED)


class FakeMailer:
    def __init__(self):
        self.verifications = []
        self.resets = []

    def send_verification(self, account, raw_token):
        self.verifications.append((account.email, raw_token))

    def send_password_reset(self, account, raw_token):
        self.resets.append((account.email, raw_token))
