"""SQLAlchemy ORM models - import all to register with Base.metadata."""

from bulkgen.db.models.bulk_job import BulkJobRow

__all__ = ["BulkJobRow"]
