from datetime import datetime
from typing import Literal, Optional, Tuple
from pydantic import AwareDatetime, BaseModel, Field, ConfigDict

LockReason = Literal["off-topic", "too heated", "resolved", "spam", ""]


class ThreadType:
    """GraphQL __typename values returned by the issue search."""
    ISSUE = "Issue"
    PULL_REQUEST = "PullRequest"


class Thread(BaseModel):
    """
    Immutable domain model representing a closed issue or pull request
    returned by GitHub's search.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    typename: str = Field(..., alias="__typename", description="GraphQL type discriminant")
    number: int = Field(..., ge=1, description="Issue or pull request number")
    title: str = Field(..., description="Title of the thread")
    updated_at: AwareDatetime = Field(..., description="Timestamp of the last update")
    closed_at: Optional[AwareDatetime] = Field(None, description="Timestamp the thread was closed")
    locked: bool = Field(False, description="Whether the conversation is already locked")


class RateLimitStatus(BaseModel):
    """Snapshot of one GitHub rate limit resource."""
    model_config = ConfigDict(frozen=True)

    remaining: int = Field(..., ge=0)
    reset_time: Optional[datetime] = None
    reset_time_human_readable: str = ""

    @classmethod
    def exhausted(cls) -> "RateLimitStatus":
        return cls(remaining=0)


class LockRecord(BaseModel):
    """Manifest entry for a thread locked during this run."""
    model_config = ConfigDict(frozen=True)

    number: int
    title: str


class ClassifiedThreads(BaseModel):
    model_config = ConfigDict(frozen=True)

    issues: Tuple[Thread, ...] = ()
    pull_requests: Tuple[Thread, ...] = ()
