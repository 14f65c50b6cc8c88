from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from margin_analysis.database import Base


class Project(Base):
    """
    Central project table - inputs plus both computed metric snapshots.

    This table stores:
    - Commercial inputs (client, currency, local service value, hours ceiling)
    - The final metrics snapshot (computed from final hours + non-bill hours)
    - The baseline metrics snapshot (computed from baseline hours only)
    - The advisory baseline-hours reconciliation result

    Resource allocations and third-party costs are owned child rows and are
    removed with the project.
    """
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    currency_used = Column(String(3), nullable=False)
    contract_number = Column(String, nullable=True)
    oracle_id = Column(String, nullable=True)
    project_name = Column(String, nullable=False, index=True)

    local_service_value = Column(Float, nullable=False)
    service_value_usd = Column(Float, nullable=True)   # converted at last save
    baseline_hours = Column(Float, nullable=True)      # optional display figure
    total_baseline_hours = Column(Float, nullable=False)
    non_bill_hours = Column(Float, nullable=False, default=0.0)

    # Final (actual) metrics
    total_costs_usd = Column(Float, nullable=True)
    margin_percent = Column(Float, nullable=True)
    net_revenue_usd = Column(Float, nullable=True)
    ebita_usd = Column(Float, nullable=True)
    ps_ratio = Column(Float, nullable=True)
    margin_status = Column(String, nullable=True)
    ps_ratio_status = Column(String, nullable=True)

    # Baseline (budgeted) metrics
    baseline_total_costs_usd = Column(Float, nullable=True)
    baseline_margin_percent = Column(Float, nullable=True)
    baseline_net_revenue_usd = Column(Float, nullable=True)
    baseline_ebita_usd = Column(Float, nullable=True)
    baseline_ps_ratio = Column(Float, nullable=True)
    baseline_margin_status = Column(String, nullable=True)
    baseline_ps_ratio_status = Column(String, nullable=True)

    # Baseline-hours reconciliation (advisory)
    hours_valid = Column(Boolean, nullable=True)
    hours_difference = Column(Float, nullable=True)

    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    client = relationship("Client", back_populates="projects")
    resources = relationship(
        "ProjectResource", back_populates="project",
        cascade="all, delete-orphan", order_by="ProjectResource.resource_type"
    )
    third_party_resources = relationship(
        "ThirdPartyResource", back_populates="project",
        cascade="all, delete-orphan", order_by="ThirdPartyResource.resource_name"
    )

    __table_args__ = (
        Index('idx_project_margin_status', 'margin_status'),
        Index('idx_project_ps_ratio_status', 'ps_ratio_status'),
        Index('idx_project_created', 'created_at'),
    )

    @property
    def client_name(self):
        return self.client.client_name if self.client else None


# ---- Hours allocated to a predefined resource type ----
class ProjectResource(Base):
    __tablename__ = "project_resources"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    resource_type = Column(String, nullable=False)
    hours = Column(Float, nullable=False, default=0.0)           # final hours used for final metrics
    baseline_hours = Column(Float, nullable=False, default=0.0)
    final_hours = Column(Float, nullable=False, default=0.0)
    cost_rate_usd = Column(Float, nullable=False)                # frozen at project creation
    total_cost_usd = Column(Float, nullable=False, default=0.0)  # hours x cost_rate_usd
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    project = relationship("Project", back_populates="resources")


# ---- Third-party cost line (already USD) ----
class ThirdPartyResource(Base):
    __tablename__ = "third_party_resources"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    resource_name = Column(String, nullable=False)
    cost_usd = Column(Float, nullable=False, default=0.0)
    hours = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    project = relationship("Project", back_populates="third_party_resources")
