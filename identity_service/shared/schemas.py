from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Optional, Any, List, Literal


class CamelModel(BaseModel):
    """Base schema exposing camelCase field names on the wire."""
    
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BaseResponse(CamelModel):
    """Success envelope."""
    
    status: Literal["success"] = "success"
    message: Optional[str] = None
    data: Optional[Any] = None


class FieldError(BaseModel):
    """A single field-level validation failure."""
    
    field: str
    message: str


class ErrorResponse(CamelModel):
    """Error envelope shared by every failure response."""
    
    status: Literal["error"] = "error"
    message: str
    errors: Optional[List[FieldError]] = None
    retry_after: Optional[int] = None
