from sqlalchemy import Column, Integer, String, DateTime, Boolean, func
from sqlalchemy.orm import relationship
from shufflr.db import Base

class ApiKey(Base):
    __tablename__ = "api_keys"
    id = Column(Integer, primary_key=True)
    key_hash = Column(String(64), unique=True, nullable=False)   # sha256 of the raw token
    name = Column(String(100), nullable=False)
    enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now())
    last_used = Column(DateTime, nullable=True)

    requests = relationship(
        "ApiRequest",
        back_populates="api_key",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
