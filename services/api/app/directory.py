"""Account number -> {client_name, agency_name} lookups against the customer registry."""
from typing import Iterable
from sqlalchemy import select
from sqlalchemy.orm import Session

from .models import Agency, Client, ClientAccount


def resolve(db: Session, account_names: Iterable[str]) -> dict[str, dict[str, str]]:
    """Return labels for every account name found in the registry.

    Unmatched names are simply absent from the result. A client without an
    agency yields an empty agency_name.
    """
    names = sorted({n for n in account_names if n})
    if not names:
        return {}
    rows = db.execute(
        select(ClientAccount.account_number, Client.name, Agency.name)
        .join(Client, Client.id == ClientAccount.client_id)
        .outerjoin(Agency, Agency.id == Client.agency_id)
        .where(ClientAccount.account_number.in_(names))
        .order_by(ClientAccount.account_number)
    ).all()
    out: dict[str, dict[str, str]] = {}
    for account_number, client_name, agency_name in rows:
        # first registry match wins when an account number is listed twice
        out.setdefault(account_number, {"client_name": client_name or "", "agency_name": agency_name or ""})
    return out
