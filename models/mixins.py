from sqlalchemy import Column, DateTime

from utils.tokens import utcnow


# Python-side defaults keep microsecond ordering on every backend
class CreatedAtMixin:
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class UpdatedAtMixin:
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
