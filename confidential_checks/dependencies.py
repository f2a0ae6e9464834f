"""
Process-wide service instances and their FastAPI dependency providers.

The ledger and relayer clients are opened and closed by the application
lifespan in main.py; routes get the lifecycle manager through
`get_lifecycle_manager` so tests can override it.
"""

from confidential_checks.services.check_lifecycle_service import CheckLifecycleManager
from confidential_checks.services.codec.confidential_codec import ConfidentialCodec
from confidential_checks.services.ledger.record_store import RecordStoreClient
from confidential_checks.services.transaction_status import (
    TransactionStatusChannel,
    transaction_status,
)

record_store = RecordStoreClient()
confidential_codec = ConfidentialCodec()
lifecycle_manager = CheckLifecycleManager(record_store, confidential_codec, status=transaction_status)


def get_lifecycle_manager() -> CheckLifecycleManager:
    return lifecycle_manager


def get_status_channel() -> TransactionStatusChannel:
    return transaction_status
