"""Domain enumerations shared by the store, tools, and routes."""

from enum import Enum


class UserRole(str, Enum):
    PATIENT = "patient"
    NURSE = "nurse"
    ADMIN = "admin"


class RequestPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RequestStatus(str, Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class NursingDepartment(str, Enum):
    EMERGENCY = "Emergency"
    INTENSIVE_CARE = "Intensive Care"
    PEDIATRICS = "Pediatrics"
    MATERNITY = "Maternity"
    ONCOLOGY = "Oncology"
    CARDIOLOGY = "Cardiology"
    NEUROLOGY = "Neurology"
    ORTHOPEDICS = "Orthopedics"
    PSYCHIATRY = "Psychiatry"
    REHABILITATION = "Rehabilitation"
    GERIATRICS = "Geriatrics"
    SURGERY = "Surgery"
    OUTPATIENT = "Outpatient"


# Roles allowed to subscribe to department rooms
PRIVILEGED_ROLES = {UserRole.NURSE.value, UserRole.ADMIN.value}
