"""Registry database models.

- ComponentRecord: one row per component, with its ordered version history
- VersionRecord: immutable settings snapshots, keyed by (component, version id)
"""

import json
from datetime import datetime
from typing import Any, ClassVar

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func


class RegistryBase(DeclarativeBase):
    """Base class for registry models."""

    type_annotation_map: ClassVar[dict[type, Any]] = {}


class ComponentRecord(RegistryBase):
    """Component row. History is stored in order since it may repeat ids."""

    __tablename__ = "components"

    component_id: Mapped[str] = mapped_column(String(256), primary_key=True)
    label: Mapped[str] = mapped_column(String(256), nullable=False)
    source: Mapped[str] = mapped_column(String(64), nullable=False)
    source_local_id: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    provider: Mapped[str | None] = mapped_column(String(256), nullable=True)
    category: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    status: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    active_version: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    history_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    fallback_metadata_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )

    versions: Mapped[list["VersionRecord"]] = relationship(
        "VersionRecord", back_populates="component", cascade="all, delete-orphan"
    )

    @property
    def history(self) -> list[str]:
        return json.loads(self.history_json)  # type: ignore[no-any-return]

    @history.setter
    def history(self, value: list[str]) -> None:
        self.history_json = json.dumps(value)

    @property
    def fallback_metadata(self) -> dict[str, Any]:
        return json.loads(self.fallback_metadata_json)  # type: ignore[no-any-return]

    @fallback_metadata.setter
    def fallback_metadata(self, value: dict[str, Any]) -> None:
        self.fallback_metadata_json = json.dumps(value)


class VersionRecord(RegistryBase):
    """One settings snapshot of a component."""

    __tablename__ = "component_versions"
    __table_args__ = (UniqueConstraint("component_id", "version_id", name="uq_component_version"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    component_id: Mapped[str] = mapped_column(
        String(256), ForeignKey("components.component_id", ondelete="CASCADE"), nullable=False
    )
    version_id: Mapped[str] = mapped_column(String(64), nullable=False)
    # Full Version.to_dict() payload: settings, slot definitions, schema, fingerprint
    data_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )

    component: Mapped["ComponentRecord"] = relationship("ComponentRecord", back_populates="versions")

    @property
    def data(self) -> dict[str, Any]:
        return json.loads(self.data_json)  # type: ignore[no-any-return]

    @data.setter
    def data(self, value: dict[str, Any]) -> None:
        self.data_json = json.dumps(value)
