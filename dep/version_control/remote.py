"""
Remote synchronization.

Reconciles local and remote branch manifests by set difference on commit
hashes, moving commit objects through a pluggable transport.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import requests

from dep.config import config
from dep.logging import get_dep_logger

from .errors import AlreadyExistsError, CorruptedObjectError, RemoteError
from .objects import BranchManifest, Commit, RootSnapshot
from .repository import Repository
from .storage import LOCAL, REMOTE

logger = get_dep_logger("remote")


class Transport(ABC):
    """
    Abstract access to a remote history store.

    Implementations must return parsed objects and raise ``RemoteError`` on
    failure.
    """

    @abstractmethod
    def fetch_root(self, handle: str, repo: str, branch: str) -> RootSnapshot:
        """Fetch the root snapshot of a remote repository."""
        pass

    @abstractmethod
    def fetch_manifest(self, handle: str, repo: str, branch: str) -> BranchManifest:
        """Fetch the commit list of a remote branch."""
        pass

    @abstractmethod
    def fetch_commit(self, handle: str, repo: str, branch: str, commit_hash: str) -> Commit:
        """Fetch one commit object."""
        pass

    @abstractmethod
    def push_commit(self, handle: str, repo: str, branch: str, commit: Commit) -> Any:
        """Upload one commit object; returns the server's acknowledgement."""
        pass


class HttpTransport(Transport):
    """
    JSON-over-HTTP transport.

    Every call is a POST to ``<host>/manifest``, ``<host>/commit`` or
    ``<host>/push``; the personal access token, when configured, travels in
    the request body.
    """

    def __init__(
        self,
        host: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the transport.

        Args:
            host: Base URL of the remote server (default: configured host)
            token: Personal access token
            timeout: Request timeout in seconds
            session: Session to reuse (a new one is created by default)
        """
        self.host = (host or config.remote.host).rstrip("/")
        self.token = token
        self.timeout = timeout or config.remote.timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})

    def _post(self, endpoint: str, body: Dict[str, Any]) -> Any:
        if self.token:
            body = {**body, "personalAccessToken": self.token}

        url = f"{self.host}/{endpoint}"
        try:
            response = self.session.post(url, json=body, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            logger.error(f"Request to {url} failed: {e}")
            raise RemoteError(f"Request to {url} failed: {e}") from e
        except ValueError as e:
            raise RemoteError(f"Invalid JSON from {url}: {e}") from e

    def fetch_root(self, handle: str, repo: str, branch: str) -> RootSnapshot:
        data = self._post(
            "manifest", {"type": "root", "handle": handle, "repo": repo, "branch": branch}
        )
        return RootSnapshot.from_dict(data or {})

    def fetch_manifest(self, handle: str, repo: str, branch: str) -> BranchManifest:
        data = self._post(
            "manifest",
            {"type": "history", "handle": handle, "repo": repo, "branch": branch},
        )
        return BranchManifest.from_dict(data or {})

    def fetch_commit(self, handle: str, repo: str, branch: str, commit_hash: str) -> Commit:
        data = self._post(
            "commit",
            {"handle": handle, "repo": repo, "branch": branch, "hash": commit_hash},
        )
        try:
            return Commit.from_dict(data)
        except CorruptedObjectError as e:
            raise RemoteError(f"Remote returned a malformed commit {commit_hash}: {e}") from e

    def push_commit(self, handle: str, repo: str, branch: str, commit: Commit) -> Any:
        return self._post(
            "push",
            {"handle": handle, "repo": repo, "branch": branch, "commit": commit.to_dict()},
        )


def parse_slug(slug: str) -> Tuple[str, str]:
    """
    Split ``handle/repo`` (or a URL ending in it) into its two parts.

    Raises:
        RemoteError: If there is no ``/`` separator
    """
    parts = [p for p in slug.rstrip("/").split("/") if p]
    if "/" not in slug or len(parts) < 2:
        raise RemoteError("A valid slug is required.")
    return parts[-2], parts[-1]


class RemoteSync:
    """Fetch, pull, and push the active branch of a repository."""

    def __init__(self, repository: Repository, transport: Optional[Transport] = None):
        """
        Args:
            repository: Local repository
            transport: Transport to use (default: HTTP with the stored token)
        """
        self.repository = repository
        self.storage = repository.storage
        if transport is None:
            token = repository.pointer.configuration.get("personalAccessToken") or None
            transport = HttpTransport(token=token)
        self.transport = transport

    def _remote_slug(self) -> Tuple[str, str]:
        remote = self.repository.pointer.remote
        if not remote:
            raise RemoteError('Remote URL not configured. Use "dep remote <url|slug>".')
        return parse_slug(remote)

    def fetch(self) -> int:
        """
        Mirror the remote manifest of the active branch and its missing objects.

        Returns:
            Number of commit objects downloaded
        """
        handle, repo = self._remote_slug()
        branch = self.repository.active_branch

        remote_manifest = self.transport.fetch_manifest(handle, repo, branch)
        self.storage.branch_dir(branch, REMOTE).mkdir(parents=True, exist_ok=True)

        downloaded = 0
        for commit_hash in remote_manifest.commits:
            if self.storage.has_commit(branch, commit_hash, REMOTE):
                continue
            commit = self.transport.fetch_commit(handle, repo, branch, commit_hash)
            self.storage.save_commit(branch, commit, REMOTE)
            downloaded += 1

        self.storage.save_manifest(branch, remote_manifest, REMOTE)
        logger.info(f"Fetched remote history for {branch}: {downloaded} new object(s)")
        return downloaded

    def pull(self) -> List[str]:
        """
        Fetch, then append remote-only commits to the local branch.

        The working directory is force-checked-out afterwards.

        Returns:
            Hashes that were applied, in remote order
        """
        self.fetch()
        branch = self.repository.active_branch

        remote_manifest = self.storage.load_manifest(branch, REMOTE)
        local_manifest = self.storage.load_manifest(branch, LOCAL)
        local_set = set(local_manifest.commits)
        new_commits = [h for h in remote_manifest.commits if h not in local_set]

        if not new_commits:
            return []

        for commit_hash in new_commits:
            self.storage.copy_commit(commit_hash, branch, branch, REMOTE, LOCAL)
            local_manifest.commits.append(commit_hash)

        self.storage.save_manifest(branch, local_manifest, LOCAL)
        self.repository.checkout(branch, force=True)

        logger.info(f"Applied {len(new_commits)} commit(s) from remote")
        return new_commits

    def push(self) -> List[str]:
        """
        Upload local commits that the remote does not have.

        Returns:
            Hashes that were pushed
        """
        handle, repo = self._remote_slug()
        branch = self.repository.active_branch

        local_manifest = self.storage.load_manifest(branch, LOCAL)
        remote_set = set(self.transport.fetch_manifest(handle, repo, branch).commits)
        missing = [h for h in local_manifest.commits if h not in remote_set]

        for commit_hash in missing:
            commit = self.storage.load_commit(branch, commit_hash)
            if commit is None:
                raise RemoteError(f"Commit object {commit_hash} is missing locally.")
            self.transport.push_commit(handle, repo, branch, commit)

        logger.info(f"Pushed {len(missing)} commit(s) to remote")
        return missing

    @classmethod
    def clone(
        cls,
        slug: str,
        destination: Union[str, Path] = ".",
        transport: Optional[Transport] = None,
    ) -> Repository:
        """
        Create a repository from a remote one and replay its history.

        Args:
            slug: ``handle/repo`` of the remote repository
            destination: Directory in which the ``repo`` directory is created
            transport: Transport to use (default: HTTP)

        Raises:
            AlreadyExistsError: If the target directory exists
        """
        handle, repo_name = parse_slug(slug)
        target = Path(destination) / repo_name
        if target.exists():
            raise AlreadyExistsError(f'Destination path "{target}" already exists.')

        target.mkdir(parents=True)
        repository = Repository.init(target)
        storage = repository.storage
        branch = repository.active_branch
        transport = transport or HttpTransport()

        storage.save_root(transport.fetch_root(handle, repo_name, branch))

        manifest = transport.fetch_manifest(handle, repo_name, branch)
        for commit_hash in manifest.commits:
            commit = transport.fetch_commit(handle, repo_name, branch, commit_hash)
            storage.save_commit(branch, commit, LOCAL)
            storage.save_commit(branch, commit, REMOTE)

        storage.save_manifest(branch, manifest, LOCAL)
        storage.save_manifest(branch, manifest, REMOTE)

        repository.remote(f"{handle}/{repo_name}")
        repository.checkout(branch, force=True)

        logger.info(f"Cloned {slug} with {len(manifest.commits)} commit(s)")
        return repository
