"""
Common API models and document helpers
"""

import math
from datetime import datetime, timezone
from typing import Annotated, Any

from bson import ObjectId
from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from pleasure_holidays.core.errors import NotFoundError

CURRENCIES = ("INR", "USD", "EUR", "GBP")


class APIResponse(BaseModel):
    """
    Unified API response envelope
    """

    success: bool = Field(default=True, description="False when the request failed")
    message: str | None = Field(default=None, description="Human-readable message")
    data: Any | None = Field(default=None, description="Payload data")

    model_config = ConfigDict(
        json_schema_extra={"example": {"success": True, "message": "ok", "data": {"items": []}}}
    )


def utcnow() -> datetime:
    """Naive UTC now, matching what MongoDB hands back on reads."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# Stored as naive UTC, like values read back from MongoDB
UTCDatetime = Annotated[datetime, AfterValidator(to_naive_utc)]


def parse_object_id(value: str, label: str = "Resource") -> ObjectId:
    """Path ids that are not valid ObjectIds can never match, so report them as missing."""
    if not ObjectId.is_valid(value):
        raise NotFoundError(f"{label} not found")
    return ObjectId(value)


def serialize_doc(doc: Any) -> Any:
    """
    Convert a MongoDB document into a JSON-friendly structure:
    `_id` becomes `id` and ObjectIds become strings, recursively.
    """
    if isinstance(doc, ObjectId):
        return str(doc)
    if isinstance(doc, list):
        return [serialize_doc(item) for item in doc]
    if isinstance(doc, dict):
        out = {}
        for key, value in doc.items():
            if key == "_id":
                out["id"] = serialize_doc(value)
            else:
                out[key] = serialize_doc(value)
        return out
    return doc


class PageParams(BaseModel):
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=10, ge=1, le=100)

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.page_size


def pagination_block(params: PageParams, total: int) -> dict:
    return {
        "current_page": params.page,
        "page_size": params.page_size,
        "total_pages": math.ceil(total / params.page_size) if total else 0,
        "total": total,
        "has_next_page": params.page * params.page_size < total,
        "has_prev_page": params.page > 1,
    }


async def paginate(collection, query: dict, params: PageParams, sort: list[tuple[str, int]]) -> tuple[list[dict], dict]:
    """Offset-based page of documents plus the pagination block."""
    cursor = collection.find(query).sort(sort).skip(params.skip).limit(params.page_size)
    docs = await cursor.to_list(length=params.page_size)
    total = await collection.count_documents(query)
    return docs, pagination_block(params, total)
