# 도메인 공통 열거형
# - DB에는 value(문자열)로 저장됩니다.

from enum import Enum


class Role(str, Enum):
    USER = "User"
    CREATOR = "Creator"
    MODERATOR = "Moderator"
    ADMIN = "Admin"


STAFF_ROLES = (Role.MODERATOR, Role.ADMIN)


class Difficulty(str, Enum):
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"


# 사용자 숙련도도 같은 3단계를 사용합니다.
ExperienceLevel = Difficulty


class Occasion(str, Enum):
    CASUAL = "Casual"
    FORMAL = "Formal"
    WEDDING = "Wedding"
    OFFICE = "Office"
    PARTY = "Party"
    RELIGIOUS = "Religious"
    SPORT = "Sport"


class FaceShape(str, Enum):
    ROUND = "Round"
    OVAL = "Oval"
    SQUARE = "Square"
    HEART = "Heart"
    LONG = "Long"
    DIAMOND = "Diamond"


class SkinTone(str, Enum):
    FAIR = "Fair"
    MEDIUM = "Medium"
    OLIVE = "Olive"
    DARK = "Dark"
    DEEP = "Deep"


class Gender(str, Enum):
    FEMALE = "Female"
    MALE = "Male"
    OTHER = "Other"
    UNDISCLOSED = "Prefer not to say"


class ProfileVisibility(str, Enum):
    PUBLIC = "Public"
    FRIENDS = "Friends"
    PRIVATE = "Private"


class Language(str, Enum):
    EN = "en"
    AR = "ar"
    UR = "ur"
    TR = "tr"
    FR = "fr"
    ES = "es"


class Theme(str, Enum):
    LIGHT = "Light"
    DARK = "Dark"
    AUTO = "Auto"


class StyleStatus(str, Enum):
    DRAFT = "Draft"
    PUBLISHED = "Published"
    ARCHIVED = "Archived"


class ReviewStatus(str, Enum):
    PUBLISHED = "Published"
    PENDING = "Pending"
    FLAGGED = "Flagged"
    HIDDEN = "Hidden"


class VoteType(str, Enum):
    HELPFUL = "helpful"
    UNHELPFUL = "unhelpful"


class FlagReason(str, Enum):
    SPAM = "Spam"
    INAPPROPRIATE = "Inappropriate"
    FAKE = "Fake"
    OFFENSIVE = "Offensive"
    OTHER = "Other"


class DifficultyFeedback(str, Enum):
    MUCH_EASIER = "Much Easier"
    EASIER = "Easier"
    AS_EXPECTED = "As Expected"
    HARDER = "Harder"
    MUCH_HARDER = "Much Harder"
