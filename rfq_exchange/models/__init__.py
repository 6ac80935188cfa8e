# Import every model so Base.metadata is complete for create_all / alembic.
from rfq_exchange.models.tender import Tender, TenderReferenceCounter  # noqa: F401
from rfq_exchange.models.bid import Bid  # noqa: F401
from rfq_exchange.models.audit_log import AuditLogRecord  # noqa: F401
from rfq_exchange.models.notification_event import NotificationEvent  # noqa: F401
