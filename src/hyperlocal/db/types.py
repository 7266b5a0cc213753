# src/hyperlocal/db/types.py
"""Column type helpers."""

from enum import Enum

from sqlalchemy import Enum as SAEnum


def enum_type(enum_cls: type[Enum], length: int = 32) -> SAEnum:
    """Store an Enum by value in a VARCHAR column rather than a native enum."""
    return SAEnum(
        enum_cls,
        native_enum=False,
        length=length,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )
