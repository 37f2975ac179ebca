import uuid

from sqlalchemy import Column, String, Text, DateTime, Float, Boolean, JSON, ForeignKey
from sqlalchemy.orm import relationship

from ..utils.normalize import utcnow
from .base import Base


def new_id() -> str:
    return uuid.uuid4().hex


class Trader(Base):
    """A sales lead / customer tracked by one branch"""
    __tablename__ = 'traders'

    id = Column(String(32), primary_key=True, default=new_id)
    branch_id = Column(String(32), nullable=False, index=True)
    name = Column(String(255), nullable=False, index=True)
    status = Column(String(32), default='New Lead')
    last_activity = Column(DateTime, default=utcnow)
    call_back_date = Column(DateTime, nullable=True)

    # Contact / profile
    phone = Column(String(64), index=True)  # normalized, NULL when absent
    website = Column(String(500))
    address = Column(Text)
    owner_name = Column(String(255))
    owner_profile_link = Column(String(500))

    # Classification
    main_category = Column(String(255))
    categories = Column(Text)  # comma-joined
    workday_timing = Column(Text)
    temporarily_closed_on = Column(String(255))

    # Free text
    description = Column(Text)
    notes = Column(Text)
    reviews = Column(JSON)
    rating = Column(Float)

    # Financial estimates are carried through exactly as uploaded
    total_assets = Column(JSON)
    estimated_annual_revenue = Column(JSON)
    estimated_company_value = Column(JSON)
    employee_count = Column(JSON)

    created_at = Column(DateTime, default=utcnow)

    tasks = relationship(
        'TraderTask',
        back_populates='trader',
        cascade='all, delete-orphan',
        order_by='TraderTask.due_date',
    )

    def __repr__(self):
        return f"<Trader(branch_id='{self.branch_id}', name='{self.name}')>"


class TraderTask(Base):
    """A to-do attached to a trader"""
    __tablename__ = 'trader_tasks'

    id = Column(String(32), primary_key=True, default=new_id)
    trader_id = Column(String(32), ForeignKey('traders.id'), nullable=False, index=True)
    branch_id = Column(String(32), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    due_date = Column(DateTime, default=utcnow)
    completed = Column(Boolean, default=False)

    trader = relationship('Trader', back_populates='tasks')

    def __repr__(self):
        return f"<TraderTask(title='{self.title}', completed={self.completed})>"
