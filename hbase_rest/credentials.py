"""
Cluster credentials: gateway URL plus user name and password, turned into a
Basic authorization header.
"""

from __future__ import annotations

import base64
from pathlib import Path
from urllib.parse import urlparse


class ClusterCredentials:
    """
    Credentials for the cluster gateway.
    How the secret is stored is up to the caller; this object only holds it
    in memory and keeps it out of repr().
    """

    def __init__(self, cluster_url: str, username: str, password: str) -> None:
        """
        Args:
            cluster_url: Gateway URL, e.g. https://mycluster.azurehdinsight.net
            username: Cluster login
            password: Cluster password
        """
        if not cluster_url:
            raise ValueError("cluster_url must not be empty")
        if not username:
            raise ValueError("username must not be empty")
        if not password:
            raise ValueError("password must not be empty")
        parsed = urlparse(cluster_url)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError(f"cluster_url is not an absolute URL: {cluster_url}")

        self._cluster_url = cluster_url.rstrip("/")
        self._username = username
        self._password = password

    @classmethod
    def from_file(cls, path: str | Path) -> ClusterCredentials:
        """
        Read credentials from a text file: cluster URL, user name and password
        on the first three non-empty lines.
        """
        lines = [
            line.strip()
            for line in Path(path).read_text(encoding="utf-8").splitlines()
            if line.strip()
        ]
        if len(lines) < 3:
            raise ValueError(
                f"{path}: expected cluster URL, user name and password lines"
            )
        return cls(lines[0], lines[1], lines[2])

    @property
    def cluster_url(self) -> str:
        return self._cluster_url

    @property
    def scheme(self) -> str:
        return urlparse(self._cluster_url).scheme

    @property
    def host(self) -> str:
        return urlparse(self._cluster_url).hostname or ""

    @property
    def username(self) -> str:
        return self._username

    def authorization_header(self) -> dict[str, str]:
        """Return the Authorization header for these credentials."""
        token = base64.b64encode(
            f"{self._username}:{self._password}".encode("utf-8")
        ).decode("ascii")
        return {"Authorization": f"Basic {token}"}

    def __repr__(self) -> str:
        return f"ClusterCredentials({self._cluster_url!r}, username={self._username!r})"
