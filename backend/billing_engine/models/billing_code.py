"""SQLAlchemy models for the billing code catalog and derived chains."""

from sqlalchemy import Boolean, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billing_engine.core.database import Base


class Section(Base):
    """Fee schedule section grouping billing codes (e.g. hospital care)."""

    __tablename__ = "sections"

    code: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        unique=True,
    )
    title: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    billing_codes = relationship("BillingCode", back_populates="section")

    def __repr__(self) -> str:
        return f"<Section(id={self.id}, code='{self.code}')>"


class BillingCode(Base):
    """Billing code catalog entry.

    Reference data loaded by an offline job. Codes with a day_range take
    part in day-range chains; billing_record_type 57 marks per-diem codes
    used by rounding.
    """

    __tablename__ = "billing_codes"

    code: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
    )
    section_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("sections.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    day_range: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )
    max_units: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )
    multiple_unit_indicator: Mapped[str | None] = mapped_column(
        String(1),
        nullable=True,
    )
    billing_unit_type: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )
    billing_record_type: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=50,
        index=True,
    )
    fee_cents: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    section = relationship("Section", back_populates="billing_codes")

    def __repr__(self) -> str:
        return f"<BillingCode(id={self.id}, code='{self.code}', type={self.billing_record_type})>"

    @property
    def is_per_diem(self) -> bool:
        """Check if this is a type 57 (rounding) code."""
        return self.billing_record_type == 57


class BillingCodeChainEdge(Base):
    """Predecessor link between two billing codes."""

    __tablename__ = "billing_code_chain_edges"
    __table_args__ = (
        UniqueConstraint("code_id", "previous_code_id", name="uq_chain_edge"),
    )

    code_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("billing_codes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    previous_code_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<BillingCodeChainEdge({self.previous_code_id} → {self.code_id})>"


class BillingCodeChain(Base):
    """Derived chain record, one per (root, code) reachable pair.

    Rebuilt from the catalog and edges by the chain rebuild job.
    """

    __tablename__ = "billing_code_chain"
    __table_args__ = (
        UniqueConstraint("root_id", "code_id", name="uq_chain_root_code"),
    )

    code_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        index=True,
    )
    code: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
    )
    day_range: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    root_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        index=True,
    )
    previous_code_id: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )
    previous_day_range: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    cumulative_day_range: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        index=True,
    )
    prev_plus_self: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    is_last: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    def __repr__(self) -> str:
        return (
            f"<BillingCodeChain(root={self.root_id}, code='{self.code}', "
            f"{self.previous_day_range}-{self.cumulative_day_range})>"
        )
