"""
Base Model
==========
Shared configuration for instaauth models built from API responses.
"""

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as ModelValidationError
from typing import Any, Dict, Type, TypeVar

from ..exceptions import ProtocolError

M = TypeVar("M", bound="InstaModel")


class InstaModel(BaseModel):
    """
    Base model for Instagram auth data.

    Features:
        - extra="allow": unknown response fields are preserved, not discarded
        - populate_by_name=True: fields can be set by name or alias
        - .from_body(): response dict → model, shape errors → ProtocolError
        - .to_dict(): convert back to plain dict
    """

    model_config = ConfigDict(
        extra="allow",
        populate_by_name=True,
        from_attributes=True,
    )

    @classmethod
    def from_body(cls: Type[M], body: Dict[str, Any], status_code: int = 0) -> M:
        """
        Validate a decoded response body.

        Raises:
            ProtocolError: body does not have the expected shape
        """
        try:
            return cls.model_validate(body)
        except ModelValidationError as e:
            raise ProtocolError(
                f"Unexpected {cls.__name__} response: {e.error_count()} invalid field(s)",
                status_code=status_code,
                response=body if isinstance(body, dict) else {},
            ) from e

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to plain dict."""
        return self.model_dump(by_alias=False, exclude_none=True)
