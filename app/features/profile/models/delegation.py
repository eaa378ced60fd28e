from sqlalchemy import Boolean, Column, ForeignKey, Integer

from app.platform.db.base import Base, TimestampMixin


class DelegationGrant(TimestampMixin, Base):
    """A delegate (sub-user) acting under a parent account, with its capabilities."""

    __tablename__ = "delegation_grants"

    delegate_id = Column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), primary_key=True
    )
    parent_id = Column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    can_view = Column(Boolean, default=True, nullable=False)
    can_edit = Column(Boolean, default=False, nullable=False)
    can_add = Column(Boolean, default=False, nullable=False)


    def allows(self, capability: str) -> bool:
        return bool(getattr(self, f"can_{capability}"))

    def __repr__(self):
        return (
            f"<DelegationGrant(delegate={self.delegate_id}, parent={self.parent_id}, "
            f"view={self.can_view}, edit={self.can_edit}, add={self.can_add})>"
        )
