from sqlalchemy import Column, Integer, String, DateTime, Text, JSON, ForeignKey, Index
from sqlalchemy.orm import relationship
from compadvisor.db.base_class import Base


class ActionRecord(Base):
    """Append-only ledger entry; rows are inserted once and never updated"""
    __tablename__ = "action_records"  # type: ignore[assignment]

    id = Column(Integer, primary_key=True, autoincrement=True)
    ssid = Column(String, ForeignKey("employees.ssid"), nullable=False)
    action = Column(String, nullable=False)  # FIRE, PROMOTE, DECREASE_SALARY, NO_CHANGE
    note = Column(Text, nullable=True)
    details = Column(JSON, nullable=False)
    applied_at = Column(DateTime(timezone=True), nullable=False)

    # Relationships
    employee = relationship("Employee", back_populates="action_records")

    def __repr__(self):
        return f"<ActionRecord {self.id}: {self.ssid} - {self.action}>"


Index('idx_action_records_ssid_applied', ActionRecord.ssid, ActionRecord.applied_at)
