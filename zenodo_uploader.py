"""Zenodo API client for creating depositions and uploading files.

This module handles direct HTTP communication with the Zenodo deposit
API.  It performs no retries; callers decide what to do on failure.

Environment variables required:
    ZENODO_TOKEN: Zenodo personal access token.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests
from requests.exceptions import RequestException

from deposit_errors import ConfigurationError, TransportError, ZenodoAPIError
from models.zenodo import DepositMetadata

logger = logging.getLogger("zenodo_deposit.client")

PRODUCTION_API = "https://zenodo.org/api"
SANDBOX_API = "https://sandbox.zenodo.org/api"
TOKEN_ENV_VAR = "ZENODO_TOKEN"


# ===================================================================
#  Credentials
# ===================================================================

@dataclass
class Credentials:
    """Zenodo API credentials.

    Attributes:
        token: Personal access token, sent as the ``access_token`` query parameter.
        base_url: Zenodo API base URL, without a trailing slash.
    """

    token: str
    base_url: str


def get_credentials_from_env(sandbox: bool = False) -> Credentials:
    """Load Zenodo credentials from the environment.

    Args:
        sandbox: Use the Zenodo sandbox instead of production.

    Returns:
        Credentials dataclass.

    Raises:
        ConfigurationError: If ``ZENODO_TOKEN`` is not set.
    """
    token = os.getenv(TOKEN_ENV_VAR, "")
    if not token:
        raise ConfigurationError(
            f"{TOKEN_ENV_VAR} not set. Create a personal access token on "
            f"Zenodo and export it before running a deposit."
        )
    return Credentials(token=token, base_url=SANDBOX_API if sandbox else PRODUCTION_API)


# ===================================================================
#  Client
# ===================================================================

class ZenodoClient:
    """Thin wrapper around the Zenodo deposit REST API.

    The production or sandbox endpoint is chosen once, at construction.

    Args:
        access_token: Zenodo personal access token.
        sandbox: Use ``sandbox.zenodo.org``.
        session: Optional ``requests.Session`` to send requests with.

    Raises:
        ConfigurationError: If no access token is given.
    """

    def __init__(
        self,
        access_token: Optional[str],
        sandbox: bool = False,
        session: Optional[requests.Session] = None,
    ):
        if not access_token:
            raise ConfigurationError("Cannot connect to Zenodo without an access token.")

        self.sandbox = sandbox
        self.credentials = Credentials(
            token=access_token,
            base_url=SANDBOX_API if sandbox else PRODUCTION_API,
        )
        self.session = session if session is not None else requests.Session()
        self.session.params = {"access_token": access_token}

    @classmethod
    def from_credentials(cls, credentials: Credentials) -> "ZenodoClient":
        return cls(credentials.token, sandbox=credentials.base_url == SANDBOX_API)

    @property
    def base_url(self) -> str:
        return self.credentials.base_url

    def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        """Send one request and decode the JSON answer.

        Raises:
            ZenodoAPIError: On a non-2xx response.
            TransportError: If no response was received.
        """
        try:
            response = self.session.request(method, url, **kwargs)
        except RequestException as exc:
            logger.error("Error: %s", exc)
            raise TransportError(str(exc)) from exc

        if not response.ok:
            logger.error("API Error: %s %s", response.status_code, response.text)
            raise ZenodoAPIError(response.status_code, response.text)

        if not response.content:
            return None
        return response.json()

    def create_deposit(self, metadata: DepositMetadata) -> Dict[str, Any]:
        """Create a new deposition with the provided metadata.

        Args:
            metadata: Deposition metadata.

        Returns:
            The deposition, including its ``id`` and ``links``.
        """
        return self._request(
            "POST",
            f"{self.base_url}/deposit/depositions",
            json={"metadata": metadata.to_dict()},
        )

    def update_deposit(self, deposit_id: int, metadata: DepositMetadata) -> Dict[str, Any]:
        """Replace the metadata of an existing unpublished deposition.

        Args:
            deposit_id: ID of the deposition.
            metadata: Deposition metadata.

        Returns:
            The updated deposition.
        """
        return self._request(
            "PUT",
            f"{self.base_url}/deposit/depositions/{deposit_id}",
            json={"metadata": metadata.to_dict()},
        )

    def get_deposit(self, deposit_id: int) -> Dict[str, Any]:
        """Retrieve a deposition."""
        return self._request("GET", f"{self.base_url}/deposit/depositions/{deposit_id}")

    def upload_file(self, deposit_id: int, file_path: str) -> Dict[str, Any]:
        """Upload a file to the bucket of an existing deposition.

        The bucket link is read from the deposition, then the file is
        streamed to ``<bucket>/<file name>``.

        Args:
            deposit_id: ID of the deposition.
            file_path: Local path to the file.

        Returns:
            The file record created by Zenodo.

        Raises:
            FileNotFoundError: If the local file does not exist.
            ValueError: If the deposition has no bucket link.
        """
        file_path_obj = Path(file_path)
        if not file_path_obj.is_file():
            raise FileNotFoundError(f"File not found: {file_path}")

        deposition = self.get_deposit(deposit_id)
        bucket_url = (deposition.get("links") or {}).get("bucket")
        if not bucket_url:
            raise ValueError(f"Deposition {deposit_id} has no bucket link")

        url = f"{bucket_url}/{quote(file_path_obj.name, safe='')}"
        headers = {
            "Content-Type": "application/octet-stream",
            "Content-Length": str(file_path_obj.stat().st_size),
        }
        with open(file_path_obj, "rb") as fh:
            return self._request("PUT", url, data=fh, headers=headers)

    def list_files(self, deposit_id: int) -> List[Dict[str, Any]]:
        """List all files in an unpublished deposition."""
        return self._request(
            "GET", f"{self.base_url}/deposit/depositions/{deposit_id}/files"
        )

    def publish_deposit(self, deposit_id: int) -> Dict[str, Any]:
        """Publish a deposition. This registers its DOI and cannot be undone."""
        return self._request(
            "POST", f"{self.base_url}/deposit/depositions/{deposit_id}/actions/publish"
        )
