"""Per-job values threaded through the background workers."""

from dataclasses import dataclass, field

from bulkgen.models.bulk_job import SelectedSections
from bulkgen.services.credentials import ForwardedAuth


@dataclass(frozen=True)
class JobContext:
    job_id: str
    owner_id: str
    selected_sections: SelectedSections = None
    auth: ForwardedAuth = field(default_factory=ForwardedAuth)
