import enum


class ApprovalStatus(str, enum.Enum):
    pending = "PENDING"
    approved = "APPROVED"
    rejected = "REJECTED"


class WithdrawalStatus(str, enum.Enum):
    draft = "DRAFT"
    pending = "PENDING"
    rejected = "REJECTED"
    issued = "ISSUED"  # stock déplacé vers la location cible


class LocationStockStatus(str, enum.Enum):
    active = "ACTIVE"
    reserved = "RESERVED"
    finished = "FINISHED"
    damaged = "DAMAGED"


class FlowKind(str, enum.Enum):
    approval = "APPROVAL"      # approbation d'une demande (quantités approuvées)
    withdrawal = "WITHDRAWAL"  # retrait location -> location


class AvailabilityStatus(str, enum.Enum):
    all_available = "All Available"
    partially_available = "Partially Available"
    not_available = "Not Available"


class UnitState(str, enum.Enum):
    unselected = "UNSELECTED"
    unresolved = "UNRESOLVED"
    resolved = "RESOLVED"
    failed = "FAILED"
