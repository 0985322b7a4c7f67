from rental_engine.models.content import Content
from rental_engine.models.order import RentalOrder, RentalOrderItem
from rental_engine.models.rental import (
    RentalBase,
    EbookRental,
    HardcopyRental,
    AudioRental,
    RENTAL_MODELS,
)
from rental_engine.models.subscription import Subscription, SubscriptionContent, UserSubscription
from rental_engine.models.terms import TermsVersion, TermsAcceptance
from rental_engine.models.audit_event import AuditEvent

# add ALL models here
