"""
Durable function run state: one run per delivered event, with step checkpoints.
"""
import enum
from sqlalchemy import (
    JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint,
)

from app.models.base import Base, utcnow


class RunStatus(str, enum.Enum):
    running = 'running'
    completed = 'completed'
    failed = 'failed'


class FunctionRun(Base):
    """
    Execution record of a durable function for one event.

    The id combines the event id and function id, so a redelivered event
    resumes the same run. The event is stored with the run so a restarted
    process can rebuild it.
    last_step is the cursor: the most recent step whose output is checkpointed.
    """
    __tablename__ = 'function_runs'

    id = Column(String(150), primary_key=True)
    function_id = Column(String(100), nullable=False)
    event_id = Column(String(100), nullable=False, index=True)
    event_name = Column(String(100), nullable=False)
    event_data = Column(JSON, nullable=False, default=dict)
    status = Column(String(20), nullable=False, default=RunStatus.running.value)
    attempts = Column(Integer, nullable=False, default=0)
    last_step = Column(String(100), nullable=True)
    output = Column(JSON, nullable=True)
    error = Column(Text, nullable=True)
    failure_handled = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f'<FunctionRun {self.id} {self.function_id} status={self.status}>'


class StepCheckpoint(Base):
    """Stored output of a completed step."""
    __tablename__ = 'step_checkpoints'
    __table_args__ = (UniqueConstraint('run_id', 'step_name', name='uq_checkpoint_run_step'),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    run_id = Column(String(150), ForeignKey('function_runs.id'), nullable=False, index=True)
    step_name = Column(String(100), nullable=False)
    position = Column(Integer, nullable=False)
    output = Column(JSON, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
