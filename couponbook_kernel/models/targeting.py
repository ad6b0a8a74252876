"""
Module: couponbook_kernel.models.targeting
Responsibility: ORM persistence for saved targeting rules and the coupon
    grants issued from them.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Grant uniqueness: at most one grant per (user_id, coupon_id), backed
      by uq_grant_user_coupon.  CouponGrantService checks first; the
      constraint catches races.
    - current_grants never exceeds max_grants when max_grants is set
      (enforced by CouponGrantService, which increments both in one flush).

Failure modes:
    - IntegrityError on a duplicate (user_id, coupon_id) insert.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from couponbook_kernel.db.base import TrackedBase, UUIDString


class CouponTargetingRule(TrackedBase):
    """
    A saved targeting rule bound to one coupon.

    conditions holds the JSON form of ConditionGroups:
    ``{"all": [...], "any": [...], "none": [...]}``.
    """

    __tablename__ = "coupon_targeting_rules"

    __table_args__ = (
        Index("idx_rule_coupon", "coupon_id"),
        Index("idx_rule_active", "active"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    conditions: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    coupon_id: Mapped[str] = mapped_column(String(100), nullable=False)

    # None = unlimited
    max_grants: Mapped[int | None] = mapped_column(nullable=True)

    current_grants: Mapped[int] = mapped_column(default=0, nullable=False)

    auto_run: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    run_frequency: Mapped[str] = mapped_column(String(20), default="once", nullable=False)

    last_run: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    next_run: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    grants: Mapped[list["CouponGrant"]] = relationship(back_populates="targeting_rule")

    def __repr__(self) -> str:
        return f"<CouponTargetingRule {self.id} {self.name!r}>"

    @property
    def has_capacity(self) -> bool:
        return self.max_grants is None or self.current_grants < self.max_grants


class CouponGrant(TrackedBase):
    """A coupon issued to one user."""

    __tablename__ = "coupon_grants"

    __table_args__ = (
        UniqueConstraint("user_id", "coupon_id", name="uq_grant_user_coupon"),
        UniqueConstraint("redemption_code", name="uq_grant_redemption_code"),
        Index("idx_grant_rule", "targeting_rule_id"),
    )

    coupon_id: Mapped[str] = mapped_column(String(100), nullable=False)

    user_id: Mapped[str] = mapped_column(String(100), nullable=False)

    # GrantType value: purchased | gifted | targeted
    grant_type: Mapped[str] = mapped_column(String(20), nullable=False)

    targeting_rule_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("coupon_targeting_rules.id"),
        nullable=True,
    )

    granted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    used: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    redemption_code: Mapped[str | None] = mapped_column(String(32), nullable=True)

    targeting_rule: Mapped["CouponTargetingRule | None"] = relationship(back_populates="grants")

    def __repr__(self) -> str:
        return f"<CouponGrant {self.user_id} -> {self.coupon_id}>"
