import os
from typing import Mapping, Optional
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from inactivity_lock.domain.exceptions import ConfigurationException
from inactivity_lock.domain.models import LockReason
from inactivity_lock.infrastructure.github_client import DEFAULT_API_URL


def input_env_name(name: str) -> str:
    """Environment variable GitHub Actions uses for an action input."""
    return f"INPUT_{name.replace(' ', '_').upper()}"


def get_input(name: str, environ: Mapping[str, str]) -> Optional[str]:
    value = environ.get(input_env_name(name))
    if value is None:
        return None
    return value.strip()


class Settings(BaseModel):
    """
    Configuration for one lock run, read once at start-up and passed down explicitly.
    """
    model_config = ConfigDict(frozen=True)

    token: str = Field(..., min_length=1)
    owner: str = Field(..., min_length=1)
    repo_name: str = Field(..., min_length=1)
    rate_limit_buffer: int = Field(100, ge=0)
    days_inactive_issues: int = Field(90, ge=0)
    days_inactive_prs: int = Field(90, ge=0)
    lock_reason_issues: LockReason = "resolved"
    lock_reason_prs: LockReason = "resolved"
    api_url: str = DEFAULT_API_URL
    graphql_url: Optional[str] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Builds Settings from action inputs (``INPUT_*``) and the runner environment.

        Blank numeric inputs fall back to their defaults. A lock reason that is
        present but empty means "lock without a reason".
        """
        if environ is None:
            load_dotenv()
            environ = os.environ

        repository = environ.get("GITHUB_REPOSITORY", "")
        owner, _, repo_name = repository.partition("/")
        if not owner or not repo_name or "/" in repo_name:
            raise ConfigurationException(
                f"GITHUB_REPOSITORY must look like 'owner/repo', got '{repository}'."
            )

        token = get_input("repo-token", environ) or environ.get("GITHUB_TOKEN", "")
        if not token:
            raise ConfigurationException("repo-token input or GITHUB_TOKEN is required.")

        values = {
            "token": token,
            "owner": owner,
            "repo_name": repo_name,
            "api_url": environ.get("GITHUB_API_URL") or DEFAULT_API_URL,
            "graphql_url": environ.get("GITHUB_GRAPHQL_URL") or None,
        }

        numeric_inputs = {
            "rate_limit_buffer": "rate-limit-buffer",
            "days_inactive_issues": "days-inactive-issues",
            "days_inactive_prs": "days-inactive-prs",
        }
        for field_name, input_name in numeric_inputs.items():
            raw = get_input(input_name, environ)
            if raw:
                values[field_name] = raw

        for field_name, input_name in (
            ("lock_reason_issues", "lock-reason-issues"),
            ("lock_reason_prs", "lock-reason-prs"),
        ):
            raw = get_input(input_name, environ)
            if raw is not None:
                values[field_name] = raw

        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationException(f"Invalid configuration: {e}") from e
