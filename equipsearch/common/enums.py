import enum


class MachineStatus(str, enum.Enum):
    AVAILABLE = "Available"
    ONBOARDING = "Onboarding"


class ApprovalStatus(str, enum.Enum):
    APPROVED = "Approved"


class EmailFormType(str, enum.Enum):
    BOOKING = "booking"
    BUY_NOW = "buy_now"
    CONTACT = "contact"
    QUOTE = "quote"
