"""
Payer Directory

Turns the free-text `paidBy` of a record into a tagged identity, once,
when the record enters the ledger:

    "pablito"      -> Payer(COUNTERPARTY, "Pablo")
    "caja"         -> Payer(CASH_BOX, "Caja")
    "El Eucalito"  -> Payer(PROPERTY, "El Eucalito")
    "Desconocido"  -> Payer(EXTERNAL, "Desconocido")

Matching is case- and accent-insensitive.
"""

from typing import Iterable, Optional

from household_ledger.config import CounterpartyProfile, LedgerSettings
from household_ledger.models.transaction import Payer, PayerKind, normalize_key

CASH_BOX_NAME = "Caja"
CLIENT_NAME = "Cliente"
FAMILY_NAME = "Familia"

RESERVED_IDENTITIES: dict[str, PayerKind] = {
    CASH_BOX_NAME: PayerKind.CASH_BOX,
    CLIENT_NAME: PayerKind.CLIENT,
    FAMILY_NAME: PayerKind.FAMILY,
}


class PayerDirectory:
    """
    Resolves payer names against the reserved identities and the cousins.

    Reserved identities win over cousin aliases if they ever collide.
    """

    def __init__(
        self,
        counterparties: Iterable[CounterpartyProfile],
        property_name: Optional[str] = None,
    ):
        self._counterparties = list(counterparties)
        self._lookup: dict[str, Payer] = {}

        for profile in self._counterparties:
            payer = Payer(kind=PayerKind.COUNTERPARTY, name=profile.name)
            for alias in [profile.name, *profile.aliases]:
                self._lookup[normalize_key(alias)] = payer

        reserved = dict(RESERVED_IDENTITIES)
        if property_name:
            reserved[property_name] = PayerKind.PROPERTY
        for name, kind in reserved.items():
            self._lookup[normalize_key(name)] = Payer(kind=kind, name=name)

    @classmethod
    def from_settings(cls, settings: LedgerSettings) -> "PayerDirectory":
        return cls(settings.counterparties, property_name=settings.property_name)

    @property
    def counterparty_names(self) -> list[str]:
        return [profile.name for profile in self._counterparties]

    def resolve(self, raw_name: str) -> Payer:
        """Resolve a name; unknown names come back as EXTERNAL, unchanged."""
        name = raw_name.strip()
        payer = self._lookup.get(normalize_key(name))
        if payer is not None:
            return payer
        return Payer(kind=PayerKind.EXTERNAL, name=name)

    def is_counterparty(self, raw_name: str) -> bool:
        return self.resolve(raw_name).kind is PayerKind.COUNTERPARTY

    def roster_for_prompt(self) -> str:
        """Human-readable roster used by the extraction prompt."""
        return "; ".join(
            f"{p.name} (Alias: {', '.join(p.aliases) or p.name.lower()})"
            for p in self._counterparties
        )
