"""
Purchasing helpers shared by the supplier and purchase order endpoints
"""
from datetime import date, timedelta
from typing import List, Dict, Any, Optional

SUPPLIER_TYPES = [
    "parts_mechanical", "parts_electronic", "parts_safety", "equipment",
    "subcontractor_installation", "subcontractor_renovation", "service_provider", "other"
]
SUPPLIER_STATUSES = ["active", "inactive", "suspended", "blacklisted"]

COMMUNICATION_TYPES = ["email", "phone", "whatsapp", "meeting", "video_call", "note"]
COMMUNICATION_CATEGORIES = [
    "quote_request", "order", "delivery", "complaint",
    "payment", "contract", "general", "technical"
]

PO_STATUSES = ["pending", "ordered", "partially_received", "received", "cancelled"]
SHIPPING_METHODS = ["standard", "express", "pickup", "courier"]


def calculate_supplier_metrics(purchase_orders: List[Any]) -> Dict[str, Any]:
    """Order totals and delivery performance for one supplier; cancelled orders are ignored"""
    orders = [po for po in purchase_orders if po.status != "cancelled"]

    delivered = [po for po in orders if po.actual_delivery_date and po.expected_delivery_date]
    on_time = sum(1 for po in delivered if po.actual_delivery_date <= po.expected_delivery_date)
    ratings = [po.quality_rating for po in orders if po.quality_rating]

    return {
        "total_orders": len(orders),
        "total_spend": round(sum(po.total_amount or 0 for po in orders), 2),
        "last_order_date": max((po.order_date for po in orders if po.order_date), default=None),
        "on_time_delivery_rate": round(on_time / len(delivered) * 100, 1) if delivered else None,
        "quality_rating_average": round(sum(ratings) / len(ratings), 1) if ratings else None,
    }


def expected_delivery(order_date: date, lead_time_days: Optional[int]) -> Optional[date]:
    if not order_date or lead_time_days is None:
        return None
    return order_date + timedelta(days=lead_time_days)


def line_total(quantity: int, unit_price: float) -> float:
    return round(quantity * unit_price, 2)


def order_total(items: List[Any]) -> float:
    return round(sum(item.total_price or 0 for item in items), 2)


def received_status(items: List[Any]) -> Optional[str]:
    """PO status implied by the received quantities, None when nothing arrived yet"""
    if not items:
        return None
    if all((item.quantity_received or 0) >= item.quantity_ordered for item in items):
        return "received"
    if any((item.quantity_received or 0) > 0 for item in items):
        return "partially_received"
    return None
