# 테스트 공통 설정
# - settings 로드 전에 필수 환경변수 지정 (JWT 비밀키, 빠른 bcrypt)
# - MongoDB 없이 인메모리 저장소로 서비스/API를 조립

import asyncio
import os
import sys
from pathlib import Path

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-pytest-only-0123456789abcdef")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

sys.path.insert(0, str(Path(__file__).parent))

import pytest  # noqa: E402

from fakes import FakeMailer, FakeReviewRepository, FakeStyleRepository, FakeUserRepository  # noqa: E402
from hijab_api.core.locks import KeyedLock  # noqa: E402
from hijab_api.services.account_service import AccountService  # noqa: E402
from hijab_api.services.catalog_service import CatalogService  # noqa: E402
from hijab_api.services.review_service import ReviewService  # noqa: E402

PASSWORD = "Sup3rSecret"


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def users():
    return FakeUserRepository()


@pytest.fixture
def styles():
    return FakeStyleRepository()


@pytest.fixture
def reviews():
    return FakeReviewRepository()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def locks():
    return KeyedLock()


@pytest.fixture
def accounts(users, styles, reviews, locks, mailer):
    return AccountService(users, locks, mailer=mailer, styles=styles, reviews=reviews)


@pytest.fixture
def catalog(styles, locks, accounts):
    return CatalogService(styles, locks, accounts=accounts)


@pytest.fixture
def review_service(reviews, styles, locks, accounts):
    return ReviewService(reviews, styles, locks, accounts=accounts)
