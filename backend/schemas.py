from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class EntityKind(str, Enum):
    PROFILE = "profile"
    POST = "post"
    COMMENT = "comment"
    COMMUNITY = "community"


class PostRating(str, Enum):
    NONE = "none"
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    PLATINUM = "platinum"
    DIAMOND = "diamond"
    ACE = "ace"
    CONQUEROR = "conqueror"


# On-ledger enum discriminants, in declaration order.
POST_RATING_ORDER: List[PostRating] = list(PostRating)


class CreditTier(str, Enum):
    TOP_CONTRIBUTOR = "top_contributor"
    VALUABLE_CONTRIBUTOR = "valuable_contributor"
    AVERAGE_CONTRIBUTOR = "average_contributor"
    LOW_VALUE = "low_value"
    SPAM_USER = "spam_user"


# Ledger records. Field names match the layout descriptors in layout.py;
# `address` is attached by the classifier/cache and is never encoded.

class LedgerRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    address: Optional[str] = None
    is_initialized: bool = True


class Profile(LedgerRecord):
    owner: str
    username: str
    bio: str = ""
    profile_image: str = ""
    cover_image: str = ""
    created_at: int = 0
    followers_count: int = 0
    following_count: int = 0
    user_credit_rating: int = 100  # hundredths
    posts_count: int = 0
    last_post_timestamp: int = 0
    daily_post_count: int = 0
    is_verified: bool = False


class Post(LedgerRecord):
    id: int
    author: str
    content: str
    timestamp: int = 0
    likes: int = 0
    comments: int = 0
    mirrors: int = 0
    images: List[str] = []
    rating_code: int = 0
    in_kill_zone: bool = False


class Comment(LedgerRecord):
    id: int
    parent_post_id: int
    author: str
    content: str
    timestamp: int = 0
    likes: int = 0


class Community(LedgerRecord):
    id: int
    name: str
    description: str = ""
    avatar: str = ""
    creator: str
    member_count: int = 0
    rules: List[str] = []
    is_private: bool = False
    # Not part of the ledger layout.
    created_at: Optional[int] = None


# API views

class ProfileResponse(Profile):
    credit_rating: float
    credit_tier: CreditTier


class PostResponse(Post):
    """A post with derived tier and the caller's local engagement flags.

    ``in_kill_zone`` here is the effective state (stored flag or derived
    from likes and age), not the raw ledger byte.
    """

    rating: PostRating
    liked: bool = False
    bookmarked: bool = False
    author_profile: Optional[ProfileResponse] = None


class CommentResponse(Comment):
    author_profile: Optional[ProfileResponse] = None


class CommunityResponse(Community):
    created_by_count: int = 0


class CommunityEligibility(BaseModel):
    allowed: bool
    created_count: int
    max_allowed: int
    credit_rating: Optional[float] = None
    required_credit: float
    reason: Optional[str] = None


class EngagementView(BaseModel):
    post_id: int
    likes: int
    liked: bool
    bookmarked: bool
    rating: PostRating
    in_kill_zone: bool


class ToggleResponse(BaseModel):
    post_id: int
    liked: Optional[bool] = None
    bookmarked: Optional[bool] = None
    signature: Optional[str] = None


class FollowResponse(BaseModel):
    owner: str
    following: bool
    signature: Optional[str] = None


class SessionConnect(BaseModel):
    wallet_address: str


class SessionResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    wallet_address: str


class PinResponse(BaseModel):
    hash: str
    url: str
    alternates: List[str] = []
