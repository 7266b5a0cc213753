# src/hyperlocal/models/category.py
"""Per-category policy rows."""

from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from hyperlocal.db.session import Base


class CategoryConfigRow(Base):
    """Operator-editable category policy.

    Rows are never read mid-request; they are loaded into an immutable
    snapshot (see ``hyperlocal.core.categories``).
    """

    __tablename__ = "category_config"

    category: Mapped[str] = mapped_column(String(32), primary_key=True)
    fuzz_min_meters: Mapped[int] = mapped_column(Integer, nullable=False)
    fuzz_max_meters: Mapped[int] = mapped_column(Integer, nullable=False)
    default_ttl_hours: Mapped[int] = mapped_column(Integer, nullable=False)
    # 0 disables extensions regardless of max_extensions.
    max_extension_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_extensions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
