from __future__ import annotations

from sqlalchemy import Float, Index, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from blockforge.core.database import Base


class CompilationJob(Base):
  __tablename__ = "compilation_jobs"
  __table_args__ = (Index("ix_compilation_jobs_status_created_at", "status", "created_at"),)

  job_id: Mapped[str] = mapped_column(String, primary_key=True)
  request_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  job_kind: Mapped[str] = mapped_column(String, nullable=False)
  contract_type: Mapped[str] = mapped_column(String, nullable=False)
  contract_name: Mapped[str] = mapped_column(String, nullable=False)
  request_json: Mapped[dict] = mapped_column(JSONB, nullable=False)
  status: Mapped[str] = mapped_column(String, nullable=False)
  source_hash: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
  progress: Mapped[float] = mapped_column(Float, nullable=False, server_default=text("0"))
  phase: Mapped[str | None] = mapped_column(String, nullable=True)
  artifact_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
  result_json: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
  error_json: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
  error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
  logs_json: Mapped[list] = mapped_column(JSONB, nullable=False, server_default=text("'[]'::jsonb"))
  created_at: Mapped[str] = mapped_column(String, nullable=False, server_default=text("""to_char((now() AT TIME ZONE 'UTC'), 'YYYY-MM-DD"T"HH24:MI:SS"Z"')"""))
  updated_at: Mapped[str] = mapped_column(String, nullable=False, server_default=text("""to_char((now() AT TIME ZONE 'UTC'), 'YYYY-MM-DD"T"HH24:MI:SS"Z"')"""))
  started_at: Mapped[str | None] = mapped_column(String, nullable=True)
  completed_at: Mapped[str | None] = mapped_column(String, nullable=True)
