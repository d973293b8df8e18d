"""Pagination for order lists.

Responses carry the page of orders under ``orders`` and a ``pagination``
block with the current page, page count, total and neighbour flags.
"""

from collections import OrderedDict

from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class OrderPagination(PageNumberPagination):
    page_size = 20
    page_size_query_param = "limit"
    max_page_size = 100

    def get_paginated_response(self, data):
        page = self.page
        return Response(
            OrderedDict(
                [
                    ("orders", data),
                    (
                        "pagination",
                        {
                            "current_page": page.number,
                            "total_pages": page.paginator.num_pages,
                            "total_orders": page.paginator.count,
                            "has_next": page.has_next(),
                            "has_prev": page.has_previous(),
                        },
                    ),
                ]
            )
        )

    def get_paginated_response_schema(self, schema):
        return {
            "type": "object",
            "properties": {
                "orders": schema,
                "pagination": {
                    "type": "object",
                    "properties": {
                        "current_page": {"type": "integer"},
                        "total_pages": {"type": "integer"},
                        "total_orders": {"type": "integer"},
                        "has_next": {"type": "boolean"},
                        "has_prev": {"type": "boolean"},
                    },
                },
            },
        }


class AdminOrderPagination(OrderPagination):
    page_size = 50
