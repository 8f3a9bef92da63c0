from enum import Enum


class Role(str, Enum):
    SUPERADMIN = "superadmin"
    COMPANY_ADMIN = "company_admin"
    BRANCH_ADMIN = "branch_admin"
    SELLER = "seller"


class ScheduleStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    DELAYED = "delayed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TicketStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"
    USED = "used"


class ParcelStatus(str, Enum):
    RECEIVED = "received"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class SeatStatus(str, Enum):
    AVAILABLE = "available"
    MAINTENANCE = "maintenance"


class MaintenanceStatus(str, Enum):
    ACTIVE = "active"
    IN_MAINTENANCE = "in_maintenance"
    RETIRED = "retired"


class AssignmentStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class BusLogType(str, Enum):
    SCHEDULE_CREATED = "schedule_created"
    SCHEDULE_UPDATED = "schedule_updated"
    STATUS_CHANGED = "status_changed"
    DEPARTURE = "departure"
    ARRIVAL = "arrival"


class Weekday(str, Enum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"
