from enum import Enum as PyEnum
from typing import Type

from sqlalchemy import Enum
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


def str_enum(enum_cls: Type[PyEnum], length: int = 32) -> Enum:
    """VARCHAR column storing the enum *values* ('in_progress', not 'IN_PROGRESS')."""
    return Enum(
        enum_cls,
        native_enum=False,
        length=length,
        values_callable=lambda members: [m.value for m in members],
    )
