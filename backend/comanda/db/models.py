from sqlalchemy.orm import DeclarativeBase, mapped_column
from sqlalchemy import String, Text, DateTime, Integer, Index
from datetime import datetime, timezone

# Estados persistidos de la cola
STATUS_PENDING = "pendente"
STATUS_PRINTING = "imprimindo"
STATUS_DONE = "impresso"
STATUS_FAILED = "falhou"  # dead letter: reintentos agotados

JOB_KINDS = ("kitchen", "delivery")


def utcnow() -> datetime:
    # naive UTC: SQLite no guarda tzinfo
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    pass


class PrintJob(Base):
    __tablename__ = "fila_impressao"
    __table_args__ = (
        Index("ix_fila_impressao_status_criacao", "status", "data_criacao"),
    )

    id = mapped_column(Integer, primary_key=True, autoincrement=True)
    document_data = mapped_column("dados_impressao", Text, nullable=False)
    kind = mapped_column("tipo", String(20), nullable=False, default="kitchen")
    order_id = mapped_column(String(64), nullable=True)  # referencia débil, sin FK
    status = mapped_column(String(20), nullable=False, default=STATUS_PENDING)
    created_at = mapped_column("data_criacao", DateTime, nullable=False, default=utcnow)
    completed_at = mapped_column("data_impressao", DateTime, nullable=True)
    claimed_at = mapped_column("data_reserva", DateTime, nullable=True)
    attempts = mapped_column("tentativas", Integer, nullable=False, default=0)
    last_error = mapped_column("ultimo_erro", Text, nullable=True)
    submitted_by_id = mapped_column("criado_por", String(64), nullable=True)
    submitted_by_name = mapped_column("criado_por_nome", String(120), nullable=True)

    def to_dict(self, include_document: bool = False) -> dict:
        data = {
            "id": self.id,
            "kind": self.kind,
            "order_id": self.order_id,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "claimed_at": self.claimed_at.isoformat() if self.claimed_at else None,
            "attempts": self.attempts,
            "last_error": self.last_error,
            "submitted_by_id": self.submitted_by_id,
            "submitted_by_name": self.submitted_by_name,
        }
        if include_document:
            data["document_data"] = self.document_data
        return data
