"""Typed response models for cloud API payloads."""

from .apigateway import (
    DocumentationPartLocation,
    DocumentationPartType,
    GetDocumentationPartResult,
)
from .base import ResponseModel, ResponseParseError, ServiceResult
from .logs import (
    DescribeSubscriptionFiltersResult,
    SubscriptionFilter,
    iter_subscription_filters,
)

__all__ = [
    "DescribeSubscriptionFiltersResult",
    "DocumentationPartLocation",
    "DocumentationPartType",
    "GetDocumentationPartResult",
    "ResponseModel",
    "ResponseParseError",
    "ServiceResult",
    "SubscriptionFilter",
    "iter_subscription_filters",
]
