from sqlalchemy import Column, String, DateTime, ForeignKey, Integer, Text, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from feeddiff.core.database import Base


class RequestLog(Base):
    """One comparison event with both full responses."""

    __tablename__ = 'request_logs'

    id = Column(Integer, primary_key=True, autoincrement=True)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    endpoint = Column(String(500), nullable=False, index=True)
    response_left = Column(Text)
    response_right = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    findings = relationship('KeyLog', back_populates='request', passive_deletes=True)

    def __repr__(self):
        return f"<RequestLog {self.id} endpoint={self.endpoint}>"


class KeyLog(Base):
    """One tracked key path of a comparison (a finding)."""

    __tablename__ = 'key_logs'

    id = Column(Integer, primary_key=True, autoincrement=True)
    request_id = Column(Integer, ForeignKey('request_logs.id', ondelete='SET NULL'), nullable=True, index=True)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    endpoint = Column(String(500), nullable=False)
    key_path = Column(String(1000), nullable=False)
    left_value = Column(Text)
    right_value = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    # Relationships
    request = relationship('RequestLog', back_populates='findings')

    __table_args__ = (
        Index('ix_key_logs_lookup', 'endpoint', 'key_path', 'timestamp'),
    )

    def __repr__(self):
        return f"<KeyLog {self.endpoint} {self.key_path}>"
