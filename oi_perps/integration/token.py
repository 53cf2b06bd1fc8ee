"""
In-memory settlement token with role-gated mint/burn and a transfer log.

Implements the ``SettlementToken`` interface the market controller consumes:
balances, allowances, MINTER/BURNER roles, and ``Transfer`` records in which
mints come from and burns go to ``ZERO_ADDRESS``.
"""

from dataclasses import dataclass
from typing import Dict, List, Set, Tuple

from oi_perps.core.market.errors import SettlementError


# Type aliases
Address = str
Amount = int  # Non-negative integer, 18 decimals

ZERO_ADDRESS: Address = "0x" + "00" * 20

MINTER_ROLE = "MINTER"
BURNER_ROLE = "BURNER"
GOVERNOR_ROLE = "GOVERNOR"
ROLES = (MINTER_ROLE, BURNER_ROLE, GOVERNOR_ROLE)


class TokenError(SettlementError):
    """Insufficient balance or allowance, missing role, or bad amount."""


@dataclass(frozen=True)
class Transfer:
    sender: Address
    to: Address
    value: Amount


@dataclass(frozen=True)
class Approval:
    owner: Address
    spender: Address
    value: Amount


class OvlToken:
    """
    Settlement token ledger.

    Note: balances live in a plain dict with zero balances removed. Iteration
    order is not meaningful; ``balances()`` returns a sorted copy.
    """

    def __init__(self, admin: Address):
        """Create an empty token. *admin* may grant and revoke roles."""
        self.admin = admin
        self._balances: Dict[Address, Amount] = {}
        self._allowances: Dict[Tuple[Address, Address], Amount] = {}
        self._roles: Dict[str, Set[Address]] = {role: set() for role in ROLES}
        self._total_supply: Amount = 0
        self.transfers: List[Transfer] = []
        self.approvals: List[Approval] = []

    # -- Roles ---------------------------------------------------------------

    def grant_role(self, sender: Address, role: str, account: Address) -> None:
        """
        Grant *role* to *account*.

        Raises:
            TokenError: If sender is not the admin or the role is unknown
        """
        self._require_admin(sender)
        if role not in self._roles:
            raise TokenError(f"unknown role: {role}")
        self._roles[role].add(account)

    def revoke_role(self, sender: Address, role: str, account: Address) -> None:
        self._require_admin(sender)
        self._roles.get(role, set()).discard(account)

    def has_role(self, role: str, account: Address) -> bool:
        return account in self._roles.get(role, set())

    def _require_admin(self, sender: Address) -> None:
        if sender != self.admin:
            raise TokenError(f"{sender!r} is not the token admin")

    # -- Balances ------------------------------------------------------------

    def balance_of(self, account: Address) -> Amount:
        """Balance of *account*. Returns 0 if not found."""
        return self._balances.get(account, 0)

    def total_supply(self) -> Amount:
        return self._total_supply

    def balances(self) -> Dict[Address, Amount]:
        return dict(sorted(self._balances.items()))

    def _set(self, account: Address, amount: Amount) -> None:
        if amount == 0:
            # Keep the table sparse
            self._balances.pop(account, None)
        else:
            self._balances[account] = amount

    def _move(self, src: Address, dst: Address, amount: Amount) -> None:
        _require_amount(amount)
        current = self.balance_of(src)
        if current < amount:
            raise TokenError(f"insufficient balance: {src!r} has {current}, needs {amount}")
        self._set(src, current - amount)
        self._set(dst, self.balance_of(dst) + amount)
        self.transfers.append(Transfer(src, dst, amount))

    # -- Supply --------------------------------------------------------------

    def mint(self, sender: Address, to: Address, amount: Amount) -> None:
        """
        Create *amount* tokens for *to*.

        Raises:
            TokenError: If sender lacks MINTER_ROLE or amount is negative
        """
        if not self.has_role(MINTER_ROLE, sender):
            raise TokenError(f"{sender!r} lacks {MINTER_ROLE}")
        _require_amount(amount)
        self._set(to, self.balance_of(to) + amount)
        self._total_supply += amount
        self.transfers.append(Transfer(ZERO_ADDRESS, to, amount))

    def burn(self, sender: Address, account: Address, amount: Amount) -> None:
        """
        Destroy *amount* tokens held by *account*.

        A burner may only burn its own balance.

        Raises:
            TokenError: If sender lacks BURNER_ROLE, burns for someone else,
                or the balance is insufficient
        """
        if not self.has_role(BURNER_ROLE, sender):
            raise TokenError(f"{sender!r} lacks {BURNER_ROLE}")
        if sender != account:
            raise TokenError("burners may only burn their own balance")
        _require_amount(amount)
        current = self.balance_of(account)
        if current < amount:
            raise TokenError(f"burn exceeds balance: {current} < {amount}")
        self._set(account, current - amount)
        self._total_supply -= amount
        self.transfers.append(Transfer(account, ZERO_ADDRESS, amount))

    # -- Transfers -----------------------------------------------------------

    def transfer(self, sender: Address, to: Address, amount: Amount) -> None:
        self._move(sender, to, amount)

    def approve(self, owner: Address, spender: Address, amount: Amount) -> None:
        _require_amount(amount)
        self._allowances[(owner, spender)] = amount
        self.approvals.append(Approval(owner, spender, amount))

    def allowance(self, owner: Address, spender: Address) -> Amount:
        return self._allowances.get((owner, spender), 0)

    def transfer_from(self, spender: Address, owner: Address, to: Address, amount: Amount) -> None:
        """
        Move *amount* from *owner* to *to* on *spender*'s allowance.

        Raises:
            TokenError: If the allowance or the owner's balance is insufficient
        """
        allowed = self.allowance(owner, spender)
        if allowed < amount:
            raise TokenError(f"insufficient allowance: {allowed} < {amount}")
        self._move(owner, to, amount)
        self._allowances[(owner, spender)] = allowed - amount

    def verify_supply(self) -> bool:
        """True when balances sum to the total supply."""
        return sum(self._balances.values()) == self._total_supply


def _require_amount(amount: Amount) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
        raise TokenError(f"amount must be a non-negative int: {amount!r}")
