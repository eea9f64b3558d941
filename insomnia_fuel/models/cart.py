import sqlalchemy as sa
from sqlalchemy import Column, DateTime, Integer, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.mutable import MutableList

from insomnia_fuel.core.database import Base


class Cart(Base):
    __tablename__ = "carts"

    id = Column(Integer, primary_key=True)
    uid = Column(String(128), unique=True, nullable=False)
    # [{"menuItemId", "name", "price", "quantity"}]
    items = Column(MutableList.as_mutable(JSONB().with_variant(sa.JSON(), "sqlite")), nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
