"""Import all models so Alembic can discover them via Base.metadata."""
from harbor_realtime.infrastructure.db.models.message import MessageModel, MessageRecipientModel
from harbor_realtime.infrastructure.db.models.outbox import OutboxMessageModel
from harbor_realtime.infrastructure.db.models.tenant import TenantModel, TenantUserModel

__all__ = [
    "MessageModel",
    "MessageRecipientModel",
    "OutboxMessageModel",
    "TenantModel",
    "TenantUserModel",
]
