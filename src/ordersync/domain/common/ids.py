from __future__ import annotations

from typing import NewType

BranchId = NewType("BranchId", str)
MenuItemId = NewType("MenuItemId", str)
OrderId = NewType("OrderId", str)
OrderItemId = NewType("OrderItemId", str)
