"""CloudWatch Logs subscription filter responses."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Iterator, Mapping, Union

from pydantic import Field

from cloudkit.schemas.base import ResponseModel, ResponseParseError, ServiceResult


class SubscriptionFilter(ResponseModel):
    filter_name: str | None = None
    log_group_name: str | None = None
    filter_pattern: str | None = None
    destination_arn: str | None = None
    role_arn: str | None = None
    creation_time: int | None = None

    @property
    def created_at(self) -> datetime | None:
        """``creation_time`` is epoch milliseconds."""
        if self.creation_time is None:
            return None
        return datetime.fromtimestamp(self.creation_time / 1000, tz=timezone.utc)


class DescribeSubscriptionFiltersResult(ResponseModel):
    subscription_filters: list[SubscriptionFilter] = Field(default_factory=list)
    next_token: str | None = None


PageSource = Union[DescribeSubscriptionFiltersResult, ServiceResult, Mapping[str, Any]]


def iter_subscription_filters(
    fetch_page: Callable[[str | None], PageSource],
) -> Iterator[SubscriptionFilter]:
    """Yield every subscription filter across ``nextToken`` pages.

    ``fetch_page`` receives the token for the next page (None first).
    """
    token: str | None = None
    seen: set[str] = set()
    while True:
        page = fetch_page(token)
        if not isinstance(page, DescribeSubscriptionFiltersResult):
            page = DescribeSubscriptionFiltersResult.from_result(page)
        yield from page.subscription_filters
        token = page.next_token
        if not token:
            return
        if token in seen:
            raise ResponseParseError(f"Pagination token repeated: {token}")
        seen.add(token)
