import logging
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorGridFSBucket
from invoice_intake.config import settings
from invoice_intake.repositories.invoice import InvoiceRepository
from invoice_intake.repositories.issue import IssueRepository
from invoice_intake.models.invoice import Invoice
from invoice_intake.models.issue import Issue

logger = logging.getLogger(__name__)

class Database:
    client: AsyncIOMotorClient = None
    fs: AsyncIOMotorGridFSBucket = None

    # Repositories
    invoices: InvoiceRepository = None
    issues: IssueRepository = None

    def connect(self):
        """Initialize database connection and repositories."""
        self.client = AsyncIOMotorClient(settings.MONGODB_URL)
        db = self.client[settings.DB_NAME]
        self.fs = AsyncIOMotorGridFSBucket(db, bucket_name=settings.GRIDFS_BUCKET)

        self.invoices = InvoiceRepository(db.invoices, Invoice)
        self.issues = IssueRepository(db.issues, Issue)

        logger.info("Connected to MongoDB")

    def close(self):
        """Close database connection."""
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")

db = Database()

async def get_db() -> Database:
    """Dependency for FastAPI."""
    return db
