from abc import ABC, abstractmethod
from typing import List, Optional

from depgraph.models.repo import SourceFile


class RepoLoaderError(Exception):
    """
    Raised by a loader when the remote refuses or fails a request.
    status_code is None for transport-level failures.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class BaseRepoLoader(ABC):
    """
    Abstract base class for remote repository sources.
    Enforces a common interface for snapshot loading.
    """

    @abstractmethod
    async def load(self, repo_url: str, token: Optional[str] = None) -> List[SourceFile]:
        """
        Loads the source files of a repository snapshot.

        Args:
            repo_url: Repository web URL
            token: Optional access credential

        Returns:
            List of SourceFile with repo-relative posix paths.

        Raises:
            ValueError: the URL does not name a repository
            RepoLoaderError: the remote failed the request
        """
        pass
