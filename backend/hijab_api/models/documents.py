# init_beanie에 등록할 Document 목록 (API 서버와 Celery 워커가 함께 사용)

from .review import Review
from .style import HijabStyle
from .user import User

DOCUMENT_MODELS = [User, HijabStyle, Review]
