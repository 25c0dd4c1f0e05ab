"""
Employee model.
Every actor of the review workflow (employee, manager, HR) is an Employee row.
"""
from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
from kpi_backend.database import Base


class EmployeeRole(str, enum.Enum):
    EMPLOYEE = "employee"
    MANAGER = "manager"
    HR = "hr"


class Employee(Base):
    __tablename__ = "employees"
    
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    position = Column(String, nullable=True)
    role = Column(String, default=EmployeeRole.EMPLOYEE.value, nullable=False)
    
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=True, index=True)
    # Direct manager; self-evaluation cannot start without one
    manager_id = Column(Integer, ForeignKey("employees.id"), nullable=True, index=True)
    
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    department = relationship("Department", back_populates="employees")
    manager = relationship("Employee", remote_side=[id], backref="subordinates")
    
    def __repr__(self):
        return f"<Employee {self.email} ({self.role})>"
    
    @property
    def is_hr(self) -> bool:
        return self.role == EmployeeRole.HR.value
    
    @property
    def is_manager(self) -> bool:
        return self.role in [EmployeeRole.MANAGER.value, EmployeeRole.HR.value]
