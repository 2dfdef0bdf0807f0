from sqlalchemy import Table, Column, String, Integer, DateTime, JSON, MetaData
from sqlalchemy.sql import func

metadata = MetaData()


documents_tbl = Table(
    "documents",
    metadata,
    Column("path", String, primary_key=True),
    Column("collection", String, nullable=False, index=True),
    Column("data", JSON, nullable=False),
    Column("version", Integer, nullable=False, default=1),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
)
