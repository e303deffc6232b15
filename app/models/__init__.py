"""
SQLAlchemy models.
"""
from app.models.base import Base
from app.models.job import Job, JobKind, JobStatus
from app.models.user import User
from app.models.voice import VoiceAsset
from app.models.run import FunctionRun, RunStatus, StepCheckpoint

__all__ = [
    'Base',
    'Job',
    'JobKind',
    'JobStatus',
    'User',
    'VoiceAsset',
    'FunctionRun',
    'RunStatus',
    'StepCheckpoint',
]
