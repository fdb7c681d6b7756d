"""
Stock level helpers for spare parts.

Stock status is derived from the current quantity and the two thresholds
stored on each part:
- out_of_stock: nothing left
- critical: at or below the reorder point
- low: at or below the minimum stock level
- adequate: everything else
"""
from typing import Dict, Iterable, Any

PART_CATEGORIES = [
    "motor", "cable", "door", "control", "safety",
    "hydraulic", "electrical", "mechanical", "other"
]

PART_LOCATIONS = ["warehouse", "van_1", "van_2", "van_3"]

STOCK_STATUSES = ["out_of_stock", "critical", "low", "adequate"]


def get_stock_status(quantity: int, minimum_stock_level: int, reorder_point: int) -> str:
    if quantity <= 0:
        return "out_of_stock"
    if quantity <= reorder_point:
        return "critical"
    if quantity <= minimum_stock_level:
        return "low"
    return "adequate"


def calculate_part_stats(parts: Iterable[Any]) -> Dict[str, Any]:
    """Aggregate counts and total stock value over a list of parts"""
    total = 0
    low_stock = 0
    out_of_stock = 0
    total_value = 0.0

    for part in parts:
        total += 1
        status = part.stock_status
        if status in ("low", "critical"):
            low_stock += 1
        elif status == "out_of_stock":
            out_of_stock += 1
        total_value += (part.quantity_in_stock or 0) * (part.unit_price or 0)

    return {
        "total": total,
        "low_stock": low_stock,
        "out_of_stock": out_of_stock,
        "total_value": round(total_value, 2)
    }
