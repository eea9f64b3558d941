from sqlalchemy import Column, DateTime, Integer, String, func

from insomnia_fuel.core.database import Base


class GalleryImage(Base):
    __tablename__ = "gallery_images"

    id = Column(Integer, primary_key=True)
    object_key = Column(String(512), unique=True, nullable=False)
    url = Column(String, nullable=False)
    width = Column(Integer, nullable=False, default=0)
    height = Column(Integer, nullable=False, default=0)
    format = Column(String(20), nullable=False, default="")
    bytes = Column(Integer, nullable=False, default=0)
    alt = Column(String(255), nullable=False, default="")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
