from sqlalchemy import Column, Integer, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from shufflr.db import Base

class ApiRequest(Base):
    __tablename__ = "api_requests"
    id = Column(Integer, primary_key=True)
    api_key_id = Column(Integer, ForeignKey("api_keys.id", ondelete="CASCADE"), index=True, nullable=False)
    timestamp = Column(DateTime, server_default=func.now(), index=True)
    image_count = Column(Integer, nullable=False)

    api_key = relationship("ApiKey", back_populates="requests")
