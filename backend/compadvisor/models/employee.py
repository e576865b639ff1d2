from sqlalchemy import Column, Integer, String, Numeric, DateTime, JSON, Index
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from compadvisor.db.base_class import Base

# Money columns are Numeric(MONEY_PRECISION, MONEY_SCALE); values must stay below MONEY_CEILING
MONEY_PRECISION = 14
MONEY_SCALE = 2
MONEY_CEILING = 10 ** (MONEY_PRECISION - MONEY_SCALE)


class Employee(Base):
    __tablename__ = "employees"  # type: ignore[assignment]

    id = Column(Integer, primary_key=True, autoincrement=True)
    ssid = Column(String, unique=True, nullable=False)
    name = Column(String, nullable=False)
    role = Column(String, nullable=False)
    performance = Column(String, nullable=False)  # elite, strong, stable, risk
    experience = Column(String, nullable=False)  # principal, senior, mid, junior
    salary = Column(Numeric(MONEY_PRECISION, MONEY_SCALE), nullable=False)
    revenue = Column(Numeric(MONEY_PRECISION, MONEY_SCALE), nullable=False, default=0)
    status = Column(String, nullable=False, default="active")  # active, fired
    suggestion = Column(JSON, nullable=True)
    last_analyzed = Column(DateTime(timezone=True), nullable=True)
    # Optimistic concurrency counter; every ORM UPDATE is guarded by it
    revision = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    action_records = relationship(
        "ActionRecord",
        back_populates="employee",
        order_by="ActionRecord.applied_at",
        lazy="noload",
    )

    __mapper_args__ = {"version_id_col": revision}

    def __repr__(self):
        return f"<Employee {self.ssid}: {self.status} rev={self.revision}>"


Index('idx_employees_status', Employee.status)
Index('idx_employees_status_ssid', Employee.status, Employee.ssid)
