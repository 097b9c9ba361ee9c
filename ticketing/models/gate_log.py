"""
Gate logs: the append-only ledger of entry/exit scans.

There is no update or delete path for this table. A ticket's
`inside_venue` and "completed" state are re-derived from it on every scan.
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, CheckConstraint, func

from ticketing.db.base import Base


class GateCamera(Base):
    __tablename__ = "gate_cameras"

    id = Column(Integer, primary_key=True, index=True)
    gate_id = Column(String(50), unique=True, nullable=False)
    camera_ref = Column(String(255), nullable=True)


class GateLog(Base):
    __tablename__ = "gate_logs"

    id = Column(Integer, primary_key=True, index=True)
    ticket_id = Column(Integer, ForeignKey("tickets.id"), nullable=False)
    entry_type = Column(String(10), nullable=False)
    gate_id = Column(String(50), nullable=False, default="main_gate")
    camera_ref = Column(String(255), nullable=True)
    scanned_by_id = Column(String(64), nullable=True)
    scanned_by_name = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("entry_type IN ('entry', 'exit')", name="check_gate_log_entry_type"),
        # History is always read per ticket in insertion order
        Index("ix_gate_logs_ticket_id_id", "ticket_id", "id"),
        Index("ix_gate_logs_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<GateLog(id={self.id}, ticket={self.ticket_id}, type={self.entry_type}, gate={self.gate_id})>"
