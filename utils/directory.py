"""
WeCom Directory API Client

Read-only client for the directory and external-contact endpoints used by the
export. The aiohttp session is created by the caller and passed in; an
optional HTTPS proxy is applied per request rather than process-wide.

Usage:
    async with create_session(timeout=30) as session:
        client = DirectoryClient(session, base_url=settings.WECOM_API_BASE)
        token = await client.fetch_access_token(corp_id, corp_secret)
        users = await client.fetch_users(token, ["1", "2"])
"""

import logging
from typing import Any, Optional, Sequence

import aiohttp
import orjson

from utils.logging import log_duration
from utils.pool import DEFAULT_CONCURRENCY, bounded_gather, chunked, fetch_all_pages
from utils.schemas import DirectoryUser, ExternalContactRecord, TagUser

logger = logging.getLogger(__name__)

# batch/get_by_user accepts at most 100 user IDs and returns at most 100 records per page
CONTACT_BATCH_SIZE = 100
CONTACT_PAGE_LIMIT = 100
DEFAULT_CONTACT_CONCURRENCY = 5


class DirectoryAPIError(RuntimeError):
    """
    Raised when the directory API answers with a non-zero errcode.
    """

    def __init__(self, path: str, errcode: int, errmsg: str) -> None:
        super().__init__(f"{path} failed: errcode={errcode}, errmsg={errmsg}")
        self.path = path
        self.errcode = errcode
        self.errmsg = errmsg


def create_session(timeout: int = 30) -> aiohttp.ClientSession:
    """
    Create the HTTP session used for directory API calls.

    Args:
        timeout: Total seconds allowed per request, 0 disables the limit

    Returns:
        aiohttp ClientSession serializing JSON bodies with orjson
    """
    return aiohttp.ClientSession(
        timeout=aiohttp.ClientTimeout(total=timeout or None),
        json_serialize=lambda obj: orjson.dumps(obj).decode("utf-8"),
    )


class DirectoryClient:
    """
    Client for token, department member, tag member and external contact calls.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        *,
        base_url: str,
        proxy: Optional[str] = None,
        list_concurrency: int = DEFAULT_CONCURRENCY,
        contact_concurrency: int = DEFAULT_CONTACT_CONCURRENCY,
    ) -> None:
        self._session = session
        self._base_url = base_url.rstrip("/")
        self._proxy = proxy
        self.list_concurrency = list_concurrency
        self.contact_concurrency = contact_concurrency

    async def fetch_access_token(self, corp_id: str, corp_secret: str) -> str:
        """
        Exchange corp credentials for an access token.

        Raises:
            aiohttp.ClientError: On transport or HTTP status failure
            DirectoryAPIError: If the API rejects the credentials
        """
        with log_duration(logger, "Fetched access token"):
            payload = await self._get_json(
                "/gettoken", {"corpid": corp_id, "corpsecret": corp_secret}
            )
        return payload["access_token"]

    async def fetch_users(self, access_token: str, department_ids: Sequence[str]) -> list[DirectoryUser]:
        """
        List the members of every department, one call per department.

        Members of several departments appear once per department.
        """
        async def fetch_department(department_id: str) -> dict[str, Any]:
            return await self._get_json(
                "/user/simplelist",
                {"access_token": access_token, "department_id": department_id},
            )

        with log_duration(logger, "Fetched users"):
            responses = await bounded_gather(department_ids, fetch_department, self.list_concurrency)
            users = [
                DirectoryUser(**user)
                for response in responses
                for user in response.get("userlist", [])
            ]

        logger.info("Fetched %d users from %d departments", len(users), len(department_ids))
        return users

    async def fetch_tag_users(self, access_token: str, tag_ids: Sequence[str]) -> list[TagUser]:
        """List the members of every tag, one call per tag."""
        async def fetch_tag(tag_id: str) -> dict[str, Any]:
            return await self._get_json(
                "/tag/get",
                {"access_token": access_token, "tagid": tag_id},
            )

        with log_duration(logger, "Fetched tag users"):
            responses = await bounded_gather(tag_ids, fetch_tag, self.list_concurrency)
            tag_users = [
                TagUser(**user)
                for response in responses
                for user in response.get("userlist", [])
            ]

        logger.info("Fetched %d tag users from %d tags", len(tag_users), len(tag_ids))
        return tag_users

    async def fetch_external_contacts(
        self,
        access_token: str,
        user_ids: Sequence[str],
    ) -> list[ExternalContactRecord]:
        """
        Fetch the external contacts of every user.

        User IDs are sent in batches of 100; each batch follows next_cursor
        until exhausted. Batches run `contact_concurrency` at a time.
        """
        async def fetch_page(
            batch: Sequence[str],
            cursor: Optional[str],
        ) -> tuple[list[dict[str, Any]], Optional[str]]:
            body = {"userid_list": list(batch), "limit": CONTACT_PAGE_LIMIT}
            if cursor:
                body["cursor"] = cursor
            payload = await self._post_json(
                "/externalcontact/batch/get_by_user",
                {"access_token": access_token},
                body,
            )
            return payload.get("external_contact_list", []), payload.get("next_cursor") or None

        async def fetch_batch(batch: list[str]) -> list[dict[str, Any]]:
            return await fetch_all_pages(fetch_page, batch)

        batches = list(chunked(user_ids, CONTACT_BATCH_SIZE))

        with log_duration(logger, "Fetched external contacts"):
            results = await bounded_gather(batches, fetch_batch, self.contact_concurrency)
            contacts = [
                ExternalContactRecord(**record)
                for batch_records in results
                for record in batch_records
            ]

        logger.info(
            "Fetched %d external contacts for %d users in %d batches",
            len(contacts), len(user_ids), len(batches),
        )
        return contacts

    async def _get_json(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        async with self._session.get(
            f"{self._base_url}{path}", params=params, proxy=self._proxy
        ) as response:
            response.raise_for_status()
            payload = await response.json(content_type=None)
        return self._check(path, payload)

    async def _post_json(self, path: str, params: dict[str, Any], body: dict[str, Any]) -> dict[str, Any]:
        async with self._session.post(
            f"{self._base_url}{path}", params=params, json=body, proxy=self._proxy
        ) as response:
            response.raise_for_status()
            payload = await response.json(content_type=None)
        return self._check(path, payload)

    @staticmethod
    def _check(path: str, payload: dict[str, Any]) -> dict[str, Any]:
        errcode = payload.get("errcode", 0)
        if errcode != 0:
            raise DirectoryAPIError(path, errcode, payload.get("errmsg", ""))
        return payload
