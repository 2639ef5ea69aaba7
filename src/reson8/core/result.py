"""
Result Pattern Implementation
Type-safe error handling for service-level operations
"""

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict

T = TypeVar('T')


class Result(BaseModel, Generic[T]):
    """Result type for type-safe error handling"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @classmethod
    def ok(cls, data: T) -> 'Result[T]':
        """Create a successful result"""
        return cls(success=True, data=data)

    @classmethod
    def err(cls, error: str, error_code: Optional[str] = None) -> 'Result[T]':
        """Create an error result"""
        return cls(success=False, error=error, error_code=error_code)

    def is_ok(self) -> bool:
        """Check if result is successful"""
        return self.success
