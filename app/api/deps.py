"""Shared route dependencies: pagination, id parsing and the store services."""

import math
import re
from typing import List

from bson import ObjectId
from fastapi import Depends, Query

from app.core.errors import ValidationError
from app.db.mongodb import MongoStore, get_store
from app.services.mongo_service import Services, serialize_docs

OBJECT_ID_RE = re.compile(r"[0-9a-fA-F]{24}")


class Pagination:
    """`page` (>=1, default 1) and `limit` (1-100, default 10) query params."""

    def __init__(
        self,
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1, le=100),
    ):
        self.page = page
        self.limit = limit

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


def paginated(docs: List[dict], total: int, pagination: Pagination) -> dict:
    return {
        "success": True,
        "count": len(docs),
        "total": total,
        "totalPages": math.ceil(total / pagination.limit) if total else 0,
        "currentPage": pagination.page,
        "data": serialize_docs(docs),
    }


def parse_object_id(value: str, name: str) -> ObjectId:
    if not OBJECT_ID_RE.fullmatch(value):
        raise ValidationError(f"Invalid {name} ID")
    return ObjectId(value)


def get_services(store: MongoStore = Depends(get_store)) -> Services:
    return Services(store)
