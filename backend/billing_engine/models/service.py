"""SQLAlchemy models for physicians, services and applied service codes."""

from datetime import date

from sqlalchemy import JSON, Date, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billing_engine.core.config import settings
from billing_engine.core.database import Base
from billing_engine.schemas.base import ServiceStatus


class Physician(Base):
    """Practitioner billing identity and rounding configuration."""

    __tablename__ = "physicians"

    billing_number: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        index=True,
    )
    group_number: Mapped[str | None] = mapped_column(String(3), nullable=True)
    clinic_number: Mapped[str | None] = mapped_column(String(3), nullable=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    street_address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    province: Mapped[str | None] = mapped_column(String(50), nullable=True)
    postal_code: Mapped[str | None] = mapped_column(String(10), nullable=True)
    corporation_indicator: Mapped[str | None] = mapped_column(String(1), nullable=True)
    timezone: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        default=settings.default_timezone,
    )
    most_recent_claim_number: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    preferred_sections = relationship(
        "PhysicianPreferredSection",
        back_populates="physician",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Physician(id={self.id}, billing_number='{self.billing_number}')>"


class PhysicianPreferredSection(Base):
    """Section a physician bills rounding codes from."""

    __tablename__ = "physician_preferred_sections"

    physician_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("physicians.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    section_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("sections.id", ondelete="CASCADE"),
        nullable=False,
    )

    physician = relationship("Physician", back_populates="preferred_sections")
    section = relationship("Section")


class Service(Base):
    """A patient's service (stay). service_date is the admission date."""

    __tablename__ = "services"

    physician_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("physicians.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    service_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ServiceStatus.OPEN.value,
    )

    physician = relationship("Physician")
    service_codes = relationship(
        "ServiceCode",
        back_populates="service",
        cascade="all, delete-orphan",
        order_by="ServiceCode.service_date",
    )

    def __repr__(self) -> str:
        return f"<Service(id={self.id}, service_date={self.service_date}, status={self.status})>"


class ServiceCode(Base):
    """A billing code applied to a service (ServiceCodeInstance).

    The version column gives optimistic concurrency: a concurrent
    rounding that read the same row fails its UPDATE with StaleDataError.
    """

    __tablename__ = "service_codes"

    service_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("services.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    code_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("billing_codes.id"),
        nullable=False,
        index=True,
    )
    number_of_units: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    service_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    service_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    service_location: Mapped[str | None] = mapped_column(String(1), nullable=True)
    location_of_service: Mapped[str | None] = mapped_column(String(1), nullable=True)
    last_rounded_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    service = relationship("Service", back_populates="service_codes")
    billing_code = relationship("BillingCode")
    change_logs = relationship(
        "ServiceCodeChangeLog",
        back_populates="service_code",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return (
            f"<ServiceCode(id={self.id}, code_id={self.code_id}, "
            f"units={self.number_of_units}, {self.service_date}-{self.service_end_date})>"
        )


class ServiceCodeChangeLog(Base):
    """History of rounding and discharge changes to a service code."""

    __tablename__ = "service_code_change_logs"

    service_code_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("service_codes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    change_type: Mapped[str] = mapped_column(String(20), nullable=False)
    previous_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    new_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    changed_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    rounding_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    service_code = relationship("ServiceCode", back_populates="change_logs")
