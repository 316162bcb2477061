from typing import Optional
from invoice_intake.models.base import MongoModel


class Issue(MongoModel):
    """
    Maintenance issue a contractor invoice may belong to.
    Read-only from the extraction pipeline's point of view.
    """
    building: Optional[str] = None
    unit: Optional[str] = None
    description: Optional[str] = None
