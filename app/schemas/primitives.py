from __future__ import annotations

from decimal import Decimal
from typing import Annotated, Any, Dict, List, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from app.core.errors import ValidationError


# --- Numeric primitives ---
NonNegMoney = Annotated[Decimal, Field(ge=0, max_digits=18, decimal_places=2)]
Money = Annotated[Decimal, Field(max_digits=18, decimal_places=2)]


class CamelModel(BaseModel):
    """
    Python side is snake_case, wire/document side is camelCase
    (workProgress, progressImages, mbStageMeasurementBookStag ...).
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class Attachment(CamelModel):
    """
    Reference to a file held by the object store. Never mutated; a parent
    record only creates or replaces the reference.
    """
    url: str = Field(..., min_length=1)
    storage_id: str = Field(..., min_length=1)
    mime_type: str = "application/octet-stream"
    size: int = Field(default=0, ge=0)

    @model_validator(mode="before")
    @classmethod
    def _accept_legacy_keys(cls, data: Any) -> Any:
        # S3-era documents used {key, Location, eTag}
        if isinstance(data, dict):
            data = dict(data)
            if "url" not in data and data.get("Location"):
                data["url"] = data["Location"]
            if "storageId" not in data and "storage_id" not in data:
                legacy_id = data.get("key") or data.get("id")
                if legacy_id:
                    data["storageId"] = legacy_id
        return data


def _has_url(item: Any) -> bool:
    if isinstance(item, Attachment):
        return True
    return isinstance(item, dict) and bool(item.get("url") or item.get("Location"))


def coerce_attachment_list(value: Any) -> List[Any]:
    """
    Normalise the image shapes found in stored documents into a flat list:
    absent, a single attachment, a list, or an {"images": [...]} wrapper.
    Items without a URL are dropped.
    """
    if value is None:
        return []
    if isinstance(value, Attachment):
        return [value]
    if isinstance(value, dict):
        if "images" in value:
            return coerce_attachment_list(value.get("images"))
        return [value] if _has_url(value) else []
    if isinstance(value, (list, tuple)):
        return [item for item in value if _has_url(item)]
    return []


M = TypeVar("M", bound=BaseModel)


def parse_payload(model: Type[M], data: Dict[str, Any]) -> M:
    """Validate `data` into `model`, re-raising as the domain ValidationError."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        fields = []
        for err in exc.errors():
            loc = ".".join(str(p) for p in err.get("loc", ()) if p != "__root__")
            if loc and loc not in fields:
                fields.append(loc)
        raise ValidationError(f"Invalid payload: {exc.error_count()} error(s).", fields=fields) from exc
