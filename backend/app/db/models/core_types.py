import enum

class Role(str, enum.Enum):
    admin = "admin"
    manager = "manager"
    storekeeper = "storekeeper"

class MovementDirection(str, enum.Enum):
    inbound = "in"
    outbound = "out"

class POStatus(str, enum.Enum):
    draft = "draft"
    sent = "sent"
    confirmed = "confirmed"
    partially_received = "partially_received"
    received = "received"
    cancelled = "cancelled"

class InventoryStatus(str, enum.Enum):
    in_progress = "in_progress"
    closed = "closed"
    validated = "validated"
