"""WebDAV client for the Nextcloud account that holds model assets."""

import time
import xml.etree.ElementTree as ET
from typing import Final
from urllib.parse import quote, unquote, urlsplit

import httpx

from ...constants import NEXTCLOUD_DAV_PREFIX
from ...domain.exceptions import NotFoundError, UpstreamError
from ...logging_config import get_logger
from ...logging_utils import log_upstream_call
from ...metrics import record_upstream_request
from .base import StoredFile, guess_content_type, is_image, unique_filename

logger: Final = get_logger(__name__)

DAV_NAMESPACE: Final = {"d": "DAV:"}
PROPFIND_BODY: Final = (
    '<?xml version="1.0"?>'
    '<d:propfind xmlns:d="DAV:">'
    "<d:prop><d:getcontenttype/><d:resourcetype/></d:prop>"
    "</d:propfind>"
)
# MKCOL on an existing collection answers 405; 409 when Nextcloud is still
# creating a parent.
FOLDER_EXISTS_STATUSES: Final = frozenset({405, 409})


class NextcloudAssetStore:
    """Asset store backed by Nextcloud WebDAV.

    Every request goes through one pooled ``httpx.Client`` with an explicit
    timeout; transport failures and 5xx answers surface as ``UpstreamError``.
    """

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        timeout: float,
        transport: httpx.BaseTransport | None = None,
    ):
        self._dav_root = (
            f"{base_url.rstrip('/')}/{NEXTCLOUD_DAV_PREFIX}/{quote(username)}/"
        )
        self._dav_path = urlsplit(self._dav_root).path
        self._client = httpx.Client(
            auth=(username, password),
            timeout=httpx.Timeout(timeout),
            headers={"OCS-APIRequest": "true"},
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def _url(self, path: str) -> str:
        # Collections keep their trailing slash
        url = self._dav_root + quote(path.strip("/"))
        return url + "/" if path.endswith("/") else url

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        start = time.perf_counter()
        try:
            response = self._client.request(method, self._url(path), **kwargs)
        except httpx.TimeoutException as e:
            self._record(method, path, None, start)
            raise UpstreamError(f"Asset store timed out on {method} {path}") from e
        except httpx.HTTPError as e:
            self._record(method, path, None, start)
            raise UpstreamError(f"Asset store unreachable: {e}") from e

        self._record(method, path, response.status_code, start)
        if response.status_code >= 500:
            raise UpstreamError(
                f"Asset store returned {response.status_code} for {method} {path}"
            )
        return response

    @staticmethod
    def _record(method: str, path: str, status_code: int | None, start: float):
        duration = time.perf_counter() - start
        log_upstream_call(method, path, status_code, duration * 1000)
        record_upstream_request(method, status_code, duration)

    @staticmethod
    def _raise_for_status(response: httpx.Response, method: str, path: str) -> None:
        if response.status_code == 404:
            raise NotFoundError(f"Asset '{path}' not found")
        if response.status_code >= 400:
            raise UpstreamError(
                f"Asset store rejected {method} {path} with {response.status_code}"
            )

    def ensure_folder(self, folder: str) -> None:
        """Create ``folder`` and its parents, one MKCOL per segment."""
        current = ""
        for part in folder.strip("/").split("/"):
            current = f"{current}/{part}" if current else part
            response = self._request("MKCOL", current + "/")
            if response.status_code in FOLDER_EXISTS_STATUSES:
                continue
            self._raise_for_status(response, "MKCOL", current)

    def store(
        self, folder: str, filename: str, content: bytes, content_type: str | None
    ) -> str:
        self.ensure_folder(folder)
        path = f"{folder.strip('/')}/{unique_filename(filename)}"
        response = self._request(
            "PUT",
            path,
            content=content,
            headers={"Content-Type": content_type or guess_content_type(filename)},
        )
        self._raise_for_status(response, "PUT", path)
        logger.info("Asset stored", path=path, size=len(content))
        return path

    def fetch(self, path: str) -> StoredFile:
        response = self._request("GET", path)
        self._raise_for_status(response, "GET", path)
        return StoredFile(
            content=response.content,
            content_type=response.headers.get(
                "content-type", guess_content_type(path)
            ),
            filename=path.rsplit("/", 1)[-1],
        )

    def list_images(self, folder: str) -> list[str]:
        """Image files directly inside ``folder``.

        Listing only feeds galleries, so a failing store yields an empty list.
        """
        try:
            response = self._request(
                "PROPFIND",
                folder.strip("/") + "/",
                content=PROPFIND_BODY,
                headers={"Depth": "1", "Content-Type": "application/xml"},
            )
            if response.status_code == 404:
                return []
            self._raise_for_status(response, "PROPFIND", folder)
            return self._parse_image_listing(response.text)
        except (UpstreamError, NotFoundError) as e:
            logger.warning("Listing images failed", folder=folder, error=e.message)
            return []

    def _parse_image_listing(self, body: str) -> list[str]:
        try:
            root = ET.fromstring(body)
        except ET.ParseError as e:
            raise UpstreamError("Asset store returned an unreadable listing") from e

        images: list[str] = []
        for item in root.findall("d:response", DAV_NAMESPACE):
            href = item.findtext("d:href", default="", namespaces=DAV_NAMESPACE)
            if not href or href.endswith("/"):
                continue
            content_type = item.findtext(
                "d:propstat/d:prop/d:getcontenttype",
                default="",
                namespaces=DAV_NAMESPACE,
            )
            if not is_image(content_type):
                continue
            images.append(self._relative_path(href))
        return sorted(images)

    def _relative_path(self, href: str) -> str:
        path = unquote(urlsplit(href).path)
        root = unquote(self._dav_path)
        if path.startswith(root):
            path = path[len(root) :]
        return path.strip("/")

    def delete(self, path: str) -> None:
        response = self._request("DELETE", path)
        self._raise_for_status(response, "DELETE", path)
        logger.info("Asset deleted", path=path)

    def delete_folder(self, folder: str) -> None:
        response = self._request("DELETE", folder.strip("/") + "/")
        self._raise_for_status(response, "DELETE", folder)
        logger.info("Asset folder deleted", folder=folder)

    def move_folder(self, source: str, destination: str) -> None:
        parent = destination.strip("/").rpartition("/")[0]
        if parent:
            self.ensure_folder(parent)
        response = self._request(
            "MOVE",
            source.strip("/") + "/",
            headers={
                "Destination": self._url(destination) + "/",
                "Overwrite": "F",
            },
        )
        self._raise_for_status(response, "MOVE", source)
        logger.info("Asset folder moved", source=source, destination=destination)
