# 재시도 로직 유틸리티
# - MongoDB 시작 시 연결 확인(ping)과 SMTP 메일 발송은 일시적 네트워크 오류로 실패할 수 있습니다.
# - tenacity 라이브러리로 지수 백오프 재시도를 적용합니다.

from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
    after_log,
)
import logging
import smtplib
from typing import Type, Tuple

from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError

# 로거 설정
logger = logging.getLogger(__name__)


def create_retry_decorator(
    max_attempts: int = 3,
    initial_wait: float = 1.0,
    max_wait: float = 10.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    reraise: bool = True,
):
    """
    외부 자원(MongoDB, SMTP) 호출용 재시도 데코레이터를 생성하는 팩토리 함수입니다.

    1. max_attempts: 최대 시도 횟수 (예: 3이면 처음 1번 + 재시도 2번)
    2. initial_wait: 첫 재시도 전 대기 시간 (초). 지수 백오프의 시작 값입니다.
    3. max_wait: 최대 대기 시간 (초)
    4. exceptions: 재시도할 예외 타입
    5. reraise: 모든 시도가 실패하면 마지막 원본 예외를 그대로 다시 발생시킵니다.

    async 함수와 일반 함수 모두에 사용할 수 있습니다.

    사용 예시:
        @create_retry_decorator(max_attempts=3)
        async def ping():
            ...
    """
    return retry(
        # 재시도 중지 조건: 최대 시도 횟수에 도달하면 중지
        stop=stop_after_attempt(max_attempts),

        # 재시도 대기 전략: 지수 백오프 (1초 → 2초 → 4초, 최대 max_wait)
        wait=wait_exponential(
            multiplier=2,
            min=initial_wait,
            max=max_wait
        ),

        retry=retry_if_exception_type(exceptions),

        # 재시도 전 로그 출력
        before_sleep=before_sleep_log(logger, logging.WARNING),

        # 재시도 후 로그 출력
        after=after_log(logger, logging.ERROR),

        reraise=reraise,
    )


# MongoDB 연결 확인용 (서버 선택 타임아웃/연결 실패만 재시도)
storage_retry = create_retry_decorator(
    max_attempts=3,
    initial_wait=1.0,
    max_wait=10.0,
    exceptions=(ConnectionFailure, ServerSelectionTimeoutError),
)

# SMTP 발송용 (SMTP 오류와 소켓 오류만 재시도)
smtp_retry = create_retry_decorator(
    max_attempts=3,
    initial_wait=2.0,
    max_wait=30.0,
    exceptions=(smtplib.SMTPException, OSError),
)
