"""
External Contact Report

Joins external contact records with tag membership and renders them as a
UTF-8 CSV byte stream, one chunk per row.

Usage:
    from utils.report import build_report

    stream = build_report(contacts, tag_users, email_domain="merck.com",
                          tag_marker="APP-研而有信", tz=ZoneInfo("UTC"))
    for chunk in stream:
        sink.write(chunk)
"""

import csv
import io
from datetime import datetime, tzinfo
from typing import Iterable, Iterator, Optional

from utils.schemas import ExternalContactRecord, TagUser

HEADER = (
    "代表邮箱",
    "客户姓名",
    "企微企业名称",
    "微信企业备注",
    "UnionID",
    "添加外部联系人的时间",
    "标签",
)

# 12-hour clock without an AM/PM marker
CREATE_TIME_FORMAT = "%Y/%m/%d %I:%M:%S"


def format_create_time(timestamp: Optional[int], tz: tzinfo) -> str:
    """Render unix seconds as YYYY/MM/DD hh:mm:ss in `tz`, or "" if missing."""
    if timestamp is None:
        return ""
    return datetime.fromtimestamp(timestamp, tz).strftime(CREATE_TIME_FORMAT)


def build_rows(
    contacts: Iterable[ExternalContactRecord],
    tag_users: Iterable[TagUser],
    *,
    email_domain: str,
    tag_marker: str,
    tz: tzinfo,
) -> Iterator[tuple[str, ...]]:
    """Yield the header row followed by one row per external contact."""
    tagged_user_ids = {tag_user.userid for tag_user in tag_users}

    yield HEADER

    for contact in contacts:
        follow = contact.follow_info
        profile = contact.external_contact
        yield (
            f"{follow.userid}@{email_domain}",
            profile.name or "",
            profile.corp_name or "",
            follow.remark_corp_name or "",
            profile.unionid or "",
            format_create_time(follow.createtime, tz),
            tag_marker if follow.userid in tagged_user_ids else "",
        )


def build_report(
    contacts: Iterable[ExternalContactRecord],
    tag_users: Iterable[TagUser],
    *,
    email_domain: str,
    tag_marker: str,
    tz: tzinfo,
) -> Iterator[bytes]:
    """
    Render the export as a lazy stream of UTF-8 encoded CSV rows.

    The returned generator can be consumed once; build a new one for each
    consumer.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")

    for row in build_rows(
        contacts,
        tag_users,
        email_domain=email_domain,
        tag_marker=tag_marker,
        tz=tz,
    ):
        writer.writerow(row)
        yield buffer.getvalue().encode("utf-8")
        buffer.seek(0)
        buffer.truncate()
