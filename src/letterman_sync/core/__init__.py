"""Remote platform client and async helpers shared by the tool surface."""

from .async_utils import run_sync
from .client import GithubClient

__all__ = ["GithubClient", "run_sync"]
