"""
Pagination that lets the client override page_size via query param.
Month views list every bill of a property in one page.
"""
from rest_framework.pagination import PageNumberPagination


class FlexiblePageNumberPagination(PageNumberPagination):
    """PageNumberPagination that accepts page_size from query params."""
    page_size = 25
    page_size_query_param = 'page_size'
    max_page_size = 10000
