from decimal import Decimal
from typing import Annotated, Any, Dict, Optional, Type, TypeVar
from pydantic import BaseModel, BeforeValidator, Field, ConfigDict
from bson import ObjectId
from bson.decimal128 import Decimal128

# Helper to handle ObjectId as string
PyObjectId = Annotated[str, BeforeValidator(str)]


def _from_decimal128(value: Any) -> Any:
    if isinstance(value, Decimal128):
        return value.to_decimal()
    return value


# Currency amounts round-trip through BSON Decimal128
MongoDecimal = Annotated[Decimal, BeforeValidator(_from_decimal128)]

T = TypeVar("T", bound="MongoModel")


def to_bson_value(value: Any) -> Any:
    """Convert Python values Motor cannot encode natively."""
    if isinstance(value, Decimal):
        return Decimal128(value)
    if isinstance(value, dict):
        return {k: to_bson_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [to_bson_value(v) for v in value]
    return value


class MongoModel(BaseModel):
    """
    Base model for MongoDB documents with _id handling and serialization helpers.
    """
    id: Optional[PyObjectId] = Field(default=None, alias="_id")

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
        json_encoders={
            ObjectId: str
        }
    )

    @classmethod
    def from_mongo(cls: Type[T], data: Dict[str, Any]) -> Optional[T]:
        """Convert MongoDB document to Pydantic model."""
        if not data:
            return None
        data = dict(data)
        id = data.pop("_id", None)
        return cls(id=id, **data)

    def to_mongo(self, exclude_none: bool = False) -> Dict[str, Any]:
        """Convert Pydantic model to MongoDB document."""
        data = self.model_dump(by_alias=True, exclude_none=exclude_none)
        if data.get("_id") is None:
            data.pop("_id", None)
        return to_bson_value(data)
