"""Pagination for list endpoints."""
from rest_framework.pagination import PageNumberPagination


class StandardResultsSetPagination(PageNumberPagination):
    """Page number pagination; monthly award lists fit on one page per branch set."""

    page_size = 50
    page_size_query_param = "page_size"
    max_page_size = 500
