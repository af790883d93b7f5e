from sqlalchemy import Column, Integer, String, DateTime, Boolean, func
from shufflr.db import Base

class ImageFile(Base):
    __tablename__ = "image_files"
    id = Column(Integer, primary_key=True)
    filename = Column(String(255), unique=True, nullable=False)
    size = Column(Integer, nullable=False)
    mime_type = Column(String(64), nullable=False)
    enabled = Column(Boolean, nullable=False, default=True)
    uploaded_at = Column(DateTime, server_default=func.now())
