from enum import Enum


class DeliveryMode(str, Enum):
    EBOOK = "ebook"
    HARDCOPY = "hardcopy"
    AUDIO = "audio"


class RentalTier(str, Enum):
    # ebook
    SINGLE_READ = "SINGLE_READ"
    UNLIMITED_READS = "UNLIMITED_READS"
    # ebook and audio
    TIME_LIMITED = "TIME_LIMITED"
    # hardcopy
    SHORT_TERM = "SHORT_TERM"
    MEDIUM_TERM = "MEDIUM_TERM"
    LONG_TERM = "LONG_TERM"
    EXTENDED_TERM = "EXTENDED_TERM"
    # audio
    SINGLE_LISTEN = "SINGLE_LISTEN"
    UNLIMITED_LISTENS = "UNLIMITED_LISTENS"


class RentalState(str, Enum):
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    RETURNED = "RETURNED"
    REVOKED = "REVOKED"


class ConditionGrade(str, Enum):
    EXCELLENT = "EXCELLENT"
    VERY_GOOD = "VERY_GOOD"
    GOOD = "GOOD"
    FAIR = "FAIR"
    POOR = "POOR"
    DAMAGED = "DAMAGED"


class TermsCategory(str, Enum):
    EBOOK_RENTAL = "EBOOK_RENTAL"
    HARDCOPY_RENTAL = "HARDCOPY_RENTAL"
    AUDIO_BOOK_RENTAL = "AUDIO_BOOK_RENTAL"
    SUBSCRIPTION = "SUBSCRIPTION"
    GENERAL_RENTAL = "GENERAL_RENTAL"


class AuditEventKind(str, Enum):
    RENTAL_CREATED = "RENTAL_CREATED"
    GUARANTEE_CHARGED = "GUARANTEE_CHARGED"
    GUARANTEE_REFUNDED = "GUARANTEE_REFUNDED"
    BOOK_RETURNED = "BOOK_RETURNED"
    DAMAGE_ASSESSED = "DAMAGE_ASSESSED"
    LATE_FEE_CHARGED = "LATE_FEE_CHARGED"
    RENTAL_COMPLETED = "RENTAL_COMPLETED"
    SECURITY_VIOLATION = "SECURITY_VIOLATION"
    SUSPICIOUS_ACTIVITY = "SUSPICIOUS_ACTIVITY"
    RENTAL_END = "RENTAL_END"
    ACCESS_START = "ACCESS_START"
    ACCESS_END = "ACCESS_END"
    PLAY_SESSION = "PLAY_SESSION"
    LISTEN_COMPLETED = "LISTEN_COMPLETED"
    SHIPMENT_DISPATCHED = "SHIPMENT_DISPATCHED"


REVOKING_EVENTS = {
    AuditEventKind.SECURITY_VIOLATION,
    AuditEventKind.SUSPICIOUS_ACTIVITY,
}

TERMINATING_EVENTS = REVOKING_EVENTS | {AuditEventKind.RENTAL_END}

# Kinds a client or reader may push through the event endpoint
REPORTABLE_EVENTS = TERMINATING_EVENTS


class ReportedEventKind(str, Enum):
    SECURITY_VIOLATION = AuditEventKind.SECURITY_VIOLATION.value
    SUSPICIOUS_ACTIVITY = AuditEventKind.SUSPICIOUS_ACTIVITY.value
    RENTAL_END = AuditEventKind.RENTAL_END.value


def terminating_events_for(mode) -> set:
    """A hardcopy only leaves ACTIVE early through revocation; ending it
    means sending the copy back."""
    if DeliveryMode(mode) == DeliveryMode.HARDCOPY:
        return REVOKING_EVENTS
    return TERMINATING_EVENTS


ALLOWED_TRANSITIONS = {
    RentalState.ACTIVE: [RentalState.EXPIRED, RentalState.RETURNED, RentalState.REVOKED],
    RentalState.EXPIRED: [],
    RentalState.RETURNED: [],
    RentalState.REVOKED: [],
}

TERMS_CATEGORY_BY_MODE = {
    DeliveryMode.EBOOK: TermsCategory.EBOOK_RENTAL,
    DeliveryMode.HARDCOPY: TermsCategory.HARDCOPY_RENTAL,
    DeliveryMode.AUDIO: TermsCategory.AUDIO_BOOK_RENTAL,
}
