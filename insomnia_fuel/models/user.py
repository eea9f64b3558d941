from sqlalchemy import Column, DateTime, Integer, String, func

from insomnia_fuel.core.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    uid = Column(String(128), unique=True, nullable=False)  # identity provider uid
    email = Column(String(255), nullable=False)
    display_name = Column(String(120), nullable=False, default="")
    photo_url = Column(String, nullable=False, default="")
    phone = Column(String(30), nullable=False, default="")
    role = Column(String(20), nullable=False, default="user")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
