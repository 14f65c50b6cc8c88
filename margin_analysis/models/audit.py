from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from datetime import datetime
from margin_analysis.database import Base


class AuditLog(Base):
    __tablename__ = "audit_log"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    action = Column(String(50), nullable=False)        # CREATE, UPDATE, DELETE, BULK_UPDATE, REFRESH
    table_name = Column(String(50), nullable=True)
    record_id = Column(Integer, nullable=True)
    old_values = Column(Text, nullable=True)           # JSON string
    new_values = Column(Text, nullable=True)           # JSON string
    ip_address = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
