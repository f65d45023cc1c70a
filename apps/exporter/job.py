"""
External Contact Export Job

Runs one export end to end:
token -> department members -> tag members -> external contacts -> CSV -> delivery.

Every phase is timed and logged. Any failure aborts the remaining phases;
nothing is delivered partially.
"""

import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional

import aiohttp

from apps.exporter.delivery import deliver
from utils.config import Settings
from utils.directory import DirectoryClient, create_session
from utils.logging import log_duration
from utils.report import build_report

logger = logging.getLogger(__name__)


class ExportPhase(str, Enum):
    """Phases of an export run, in execution order."""

    START = "start"
    PROXY_CONFIGURED = "proxy_configured"
    TOKEN_ACQUIRED = "token_acquired"
    USERS_FETCHED = "users_fetched"
    TAG_USERS_FETCHED = "tag_users_fetched"
    EXTERNAL_CONTACTS_FETCHED = "external_contacts_fetched"
    REPORT_BUILT = "report_built"
    DELIVERED = "delivered"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class ExportResult:
    """Outcome of a completed export."""

    file_name: str
    destination: str
    contact_count: int
    phase: ExportPhase = ExportPhase.SUCCESS


class ExportJob:
    """
    Single export run.

    `phase` records the last phase reached so a failure can be reported with
    the step it happened in.
    """

    def __init__(self, config: Settings, session: Optional[aiohttp.ClientSession] = None) -> None:
        self.config = config
        self.session = session
        self.phase = ExportPhase.START

    def _advance(self, phase: ExportPhase) -> None:
        self.phase = phase
        logger.debug("Export phase reached: %s", phase.value)

    async def run(self, today: Optional[date] = None) -> ExportResult:
        """
        Execute all phases.

        Args:
            today: Run date used in the file name, defaults to today

        Returns:
            ExportResult describing the delivered file

        Raises:
            Exception: Whatever the failing phase raised; `phase` is then FAILED
        """
        try:
            if self.session is not None:
                return await self._run(self.session, today)
            async with create_session(self.config.API_TIMEOUT) as session:
                return await self._run(session, today)
        except Exception:
            logger.error("Export aborted after phase=%s", self.phase.value)
            self.phase = ExportPhase.FAILED
            raise

    async def _run(self, session: aiohttp.ClientSession, today: Optional[date]) -> ExportResult:
        config = self.config

        client = DirectoryClient(
            session,
            base_url=config.WECOM_API_BASE,
            proxy=config.proxy,
            list_concurrency=config.LIST_CONCURRENCY,
            contact_concurrency=config.CONTACT_CONCURRENCY,
        )
        if config.proxy:
            logger.info("Routing directory API calls through proxy")
        self._advance(ExportPhase.PROXY_CONFIGURED)

        access_token = await client.fetch_access_token(config.CROP_ID, config.CROP_SECRET)
        self._advance(ExportPhase.TOKEN_ACQUIRED)

        users = await client.fetch_users(access_token, config.department_ids)
        self._advance(ExportPhase.USERS_FETCHED)

        tag_users = await client.fetch_tag_users(access_token, config.tag_ids)
        self._advance(ExportPhase.TAG_USERS_FETCHED)

        # Members of several departments are queried once per department
        user_ids = [user.userid for user in users]
        contacts = await client.fetch_external_contacts(access_token, user_ids)
        self._advance(ExportPhase.EXTERNAL_CONTACTS_FETCHED)

        file_name = config.export_file_name(today)
        stream = build_report(
            contacts,
            tag_users,
            email_domain=config.EMAIL_DOMAIN,
            tag_marker=config.TAG_MARKER,
            tz=config.report_tz,
        )
        self._advance(ExportPhase.REPORT_BUILT)

        destination = deliver(stream, file_name, config)
        self._advance(ExportPhase.DELIVERED)

        self._advance(ExportPhase.SUCCESS)
        return ExportResult(
            file_name=file_name,
            destination=destination,
            contact_count=len(contacts),
        )


async def run_export(
    config: Settings,
    *,
    session: Optional[aiohttp.ClientSession] = None,
    today: Optional[date] = None,
) -> ExportResult:
    """Run one export and return its result."""
    job = ExportJob(config, session=session)
    with log_duration(logger, "Export run"):
        return await job.run(today)
