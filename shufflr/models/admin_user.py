from sqlalchemy import Column, Integer, String, DateTime, func
from shufflr.db import Base

class AdminUser(Base):
    __tablename__ = "admin_users"
    id = Column(Integer, primary_key=True)
    username = Column(String(255), unique=True, nullable=False)
    password_hash = Column(String(128), nullable=False)   # bcrypt
    created_at = Column(DateTime, server_default=func.now())
