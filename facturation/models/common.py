from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional
import re
import uuid


def gen_id() -> str:
    return str(uuid.uuid4())

def utcnow() -> datetime:
    return datetime.utcnow()

class TimeStamped(BaseModel):
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def touch(self):
        object.__setattr__(self, "updated_at", utcnow())


def clean_decimal(val: Any) -> Optional[Decimal]:
    """
    Conversion "souple" -> Decimal fini, None si illisible.
    Accepte int/float/Decimal et les chaînes FR ("18,50", "1 200 €").
    """
    if val is None or val == "" or isinstance(val, bool):
        return None
    if isinstance(val, Decimal):
        d = val
    elif isinstance(val, (int, float)):
        d = Decimal(str(val))
    else:
        # espaces (y compris insécables) et symbole monétaire seulement
        s = re.sub(r"[\s€]", "", str(val)).replace(",", ".")
        try:
            d = Decimal(s)
        except InvalidOperation:
            return None
    return d if d.is_finite() else None
