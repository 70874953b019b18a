"""
Process-wide chat services used by the HTTP and WebSocket routes.
"""
from app.chat.delivery import DeliveryRouter
from app.chat.receipts import ReadReceiptTracker
from app.chat.registry import ConnectionRegistry

registry = ConnectionRegistry()
delivery = DeliveryRouter(registry)
receipts = ReadReceiptTracker(registry)

__all__ = ["registry", "delivery", "receipts"]
