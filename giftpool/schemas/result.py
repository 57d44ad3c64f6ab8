from typing import Generic, Literal, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ActionSuccess(BaseModel, Generic[T]):
    success: Literal[True] = True
    data: T


class ActionFailure(BaseModel):
    success: Literal[False] = False
    error: str
