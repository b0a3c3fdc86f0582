from .base import Candidate, FieldKind, FieldResult, PatternRule, MAX_PRIORITY, generic_kind
from .emails import EMAIL_RULE, EMAIL_KIND
from .phone import PHONE_RULE, PHONE_KIND
from .names import NAME_RULE, NAME_KIND, COMPANY_RULE, COMPANY_KIND
from .dates import DATE_RULE, DATE_KIND
from .amounts import AMOUNT_RULE, AMOUNT_KIND
from .address import ADDRESS_RULE, ADDRESS_KIND
from .document_number import DOCUMENT_NUMBER_RULE, DOCUMENT_NUMBER_KIND

# Built-in rules in priority order
DEFAULT_RULES: dict[str, PatternRule] = {
    "email": EMAIL_RULE,
    "phone": PHONE_RULE,
    "name": NAME_RULE,
    "date": DATE_RULE,
    "amount": AMOUNT_RULE,
    "address": ADDRESS_RULE,
    "document_number": DOCUMENT_NUMBER_RULE,
    "company": COMPANY_RULE,
}

FIELD_KINDS: dict[str, FieldKind] = {
    k.name: k
    for k in (
        EMAIL_KIND,
        PHONE_KIND,
        NAME_KIND,
        DATE_KIND,
        AMOUNT_KIND,
        ADDRESS_KIND,
        DOCUMENT_NUMBER_KIND,
        COMPANY_KIND,
    )
}

def kind_for(field: str) -> FieldKind:
    return FIELD_KINDS.get(field) or generic_kind(field)

__all__ = [
    "Candidate",
    "FieldKind",
    "FieldResult",
    "PatternRule",
    "MAX_PRIORITY",
    "DEFAULT_RULES",
    "FIELD_KINDS",
    "kind_for",
]
