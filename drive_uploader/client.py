"""
Module containing the HTTP client for the drive storage API.
"""
import logging
import mimetypes
import posixpath
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

import httpx

from .auth import AuthProvider
from .errors import HttpError, NetworkError, SessionError, ValidationError
from .models import ByteRange, RemoteItem, UploadSession

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://graph.microsoft.com/v1.0"

# Characters encodeURIComponent leaves alone besides the unreserved set
_SEGMENT_SAFE = "!*'()"


def _encode_segment(segment: str) -> str:
    return quote(segment, safe=_SEGMENT_SAFE)


def _json_body(response: httpx.Response, what: str) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise SessionError(f"Could not parse {what} response as JSON: {e}") from e


class DriveClient:
    """Thin async client for the drive upload endpoints."""

    def __init__(self, auth: AuthProvider, user_id: Optional[str] = None,
                 base_url: str = DEFAULT_BASE_URL, timeout: float = 60,
                 http_client: Optional[httpx.AsyncClient] = None):
        """Initialize the client.

        Args:
            auth: Source of bearer tokens
            user_id: Owner of the target drive (object id or principal name)
            base_url: Base URL of the API
            timeout: HTTP timeout in seconds
            http_client: Optional pre-built client; it is not closed by this object
        """
        self.auth = auth
        self.user_id = user_id
        self.base_url = base_url.rstrip('/')
        self._timeout = timeout
        self._client = http_client
        self._owns_client = http_client is None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    @staticmethod
    def normalize_directory(directory: str, encode: bool = True) -> str:
        """Normalize a remote directory for use inside an item path.

        Args:
            directory: Remote directory, with either slash style
            encode: Whether to URL-encode each path segment

        Returns:
            "/" for the root, otherwise "/seg/.../seg/"
        """
        if directory.strip() == "":
            return "/"

        directory = directory.strip().replace("\\", "/")
        normalized = posixpath.normpath(directory).strip("/")
        if not normalized or normalized == ".":
            return "/"

        parts = normalized.split("/")
        if encode:
            parts = [_encode_segment(p) for p in parts]
        return "/" + "/".join(parts) + "/"

    def _item_url(self, name: str, remote_dir: str, action: str) -> str:
        if not self.user_id:
            raise ValidationError("user_id must be provided to address a drive")
        directory = self.normalize_directory(remote_dir)
        return (
            f"{self.base_url}/users/{self.user_id}/drive/items/"
            f"root:{directory}{_encode_segment(name)}:/{action}"
        )

    async def _request(self, method: str, url: str, *, authenticate: bool = True,
                       headers: Optional[Dict[str, str]] = None,
                       **kwargs) -> httpx.Response:
        """Send a request, turning failures into tagged errors.

        Raises:
            NetworkError: If no response was received
            HttpError: If the response status is 400 or above
        """
        headers = dict(headers or {})
        if authenticate:
            token = await self.auth.get_access_token()
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = await self._http().request(method, url, headers=headers, **kwargs)
        except httpx.TransportError as e:
            raise NetworkError(f"Network error during {method} {url}: {e}") from e

        if response.is_error:
            raise HttpError(
                response.status_code,
                f"{method} failed: {response.status_code} {response.reason_phrase}",
                body=response.text,
            )
        return response

    async def create_upload_session(self, local_path: Path, remote_dir: str) -> UploadSession:
        """Create a resumable upload session that replaces any existing item.

        Args:
            local_path: File to upload; its name becomes the remote name
            remote_dir: Remote directory

        Returns:
            UploadSession object
        """
        name = Path(local_path).name
        url = self._item_url(name, remote_dir, "createUploadSession")
        body = {
            "item": {
                "@microsoft.graph.conflictBehavior": "replace",
                "name": name,
            }
        }
        response = await self._request("POST", url, json=body)
        session = UploadSession.from_json(_json_body(response, "upload session"))
        logger.debug(f"Created upload session for {name} expiring {session.expiration_date_time}")
        return session

    async def upload_content(self, local_path: Path, remote_dir: str, content: bytes) -> RemoteItem:
        """Upload a whole file in a single PUT.

        Returns:
            The created item descriptor
        """
        name = Path(local_path).name
        url = self._item_url(name, remote_dir, "content")
        content_type = mimetypes.guess_type(name)[0] or "application/octet-stream"
        response = await self._request(
            "PUT", url,
            headers={"Content-Type": content_type},
            content=content,
        )
        return _json_body(response, "upload")

    async def put_chunk(self, upload_url: str, data: bytes, byte_range: ByteRange,
                        total: int) -> Tuple[int, Any]:
        """PUT one chunk to an upload session.

        The upload URL is pre-authorized, so no bearer token is sent.

        Returns:
            (status_code, decoded JSON body)
        """
        headers = {
            "Content-Length": str(byte_range.size),
            "Content-Range": byte_range.content_range(total),
        }
        response = await self._request(
            "PUT", upload_url, authenticate=False, headers=headers, content=data
        )
        return response.status_code, _json_body(response, "chunk upload")

    async def list_users(self, max_users: int = 999) -> List[Dict[str, Any]]:
        """List users in the tenant, following pagination links."""
        users: List[Dict[str, Any]] = []
        next_link: Optional[str] = f"{self.base_url}/users?$top=999"

        while next_link and len(users) < max_users:
            response = await self._request("GET", next_link)
            data = response.json()
            users.extend(data.get("value", []))
            next_link = data.get("@odata.nextLink")
            logger.debug(f"Fetched {len(users)} users so far")

        return users[:max_users]
