"""
Rokkam Money (RKM) - Ledger Enforcement Layer
Version: 1.0.0

Invariants guarding the supply-chain finance ledger: status transitions,
funds availability and balance conservation, with pre/post checks,
automatic rollback and a signed decision ledger.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Type
from enum import Enum
import hmac
import logging
import os
from abc import ABC, abstractmethod

# ============================================
# SYSTEM CONFIGURATION
# ============================================

SYSTEM_SECRET = os.environ.get(
    "RKM_SYSTEM_SECRET", "ROKKAM_LEDGER_SECRET_ROTATE_QUARTERLY"
).encode()

CURRENCY_SYMBOL = "₹"
INVOICE_ID_PREFIX = "INV-2024"
AUDIT_ID_PREFIX = "TXN"
DEFAULT_PAYMENT_TERMS_DAYS = 30
AMOUNT_QUANTUM = Decimal("0.01")  # paise

GENESIS_BALANCES = {
    "seller": Decimal("1000"),
    "investor": Decimal("50000"),
    "buyer": Decimal("5000"),
}

class InvariantType(Enum):
    STATE = "state"
    TRANSITION = "transition"
    FINANCIAL = "financial"

class Criticality(Enum):
    CRITICAL = "critical"

class EnforcementResult(Enum):
    PROCEED = "proceed"
    ROLLBACK = "rollback"
    REJECT = "reject"

# ============================================
# LOGGING SETUP
# ============================================

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s'
)
logger = logging.getLogger("RKM.Enforcement")

# ============================================
# EXCEPTIONS
# ============================================

class InvariantViolation(Exception):
    """Raised when an invariant is violated."""
    pass

class InsufficientFunds(InvariantViolation):
    """Raised when the paying account cannot cover a transfer."""
    pass

class InvalidTransition(InvariantViolation):
    """Raised when an invoice cannot move to the requested status."""
    pass

class SystemCompromised(Exception):
    """Raised when rollback fails - system integrity lost."""
    pass

# ============================================
# ENFORCEMENT DECISION RECORD
# ============================================

@dataclass(frozen=True)
class EnforcementDecision:
    """Immutable record of enforcement decision."""
    invariant_id: str
    check_type: str  # "PRE" | "POST"
    result: bool
    action: EnforcementResult
    timestamp: datetime
    signature: str

    def verify_signature(self) -> bool:
        """Verify cryptographic signature."""
        expected = sign_decision(self.invariant_id, self.check_type, self.result, self.timestamp)
        return hmac.compare_digest(self.signature, expected)

def sign_decision(invariant_id: str, check_type: str, result: bool, timestamp: datetime) -> str:
    data = f"{invariant_id}:{check_type}:{result}:{timestamp.isoformat()}"
    return hmac.new(SYSTEM_SECRET, data.encode(), 'sha256').hexdigest()

# ============================================
# DECISION LEDGER
# ============================================

class DecisionLedger:
    """Append-only ledger of all enforcement decisions."""

    def __init__(self):
        self.entries: List[EnforcementDecision] = []

    def record(self, decision: EnforcementDecision):
        """Append decision to ledger (write-only)."""
        if not decision.verify_signature():
            raise SystemCompromised("Invalid signature on enforcement decision")

        self.entries.append(decision)
        logger.debug(f"LEDGER: Recorded {decision.check_type} for {decision.invariant_id}: {decision.result}")

    def failures(self) -> List[EnforcementDecision]:
        return [entry for entry in self.entries if not entry.result]

    def verify_chain_integrity(self) -> bool:
        """Verify ledger has not been tampered with."""
        return all(entry.verify_signature() for entry in self.entries)

# ============================================
# BASE INVARIANT CLASS
# ============================================

class Invariant(ABC):
    """Base class for all invariants."""

    # Exception raised by the enforcer when this invariant fails
    violation_class: Type[InvariantViolation] = InvariantViolation

    def __init__(
        self,
        id: str,
        statement: str,
        type: InvariantType,
        criticality: Criticality,
        dependencies: List[str],
        owner: str
    ):
        self.id = id
        self.statement = statement
        self.type = type
        self.criticality = criticality
        self.dependencies = dependencies
        self.owner = owner

    @abstractmethod
    def pre_check(self, **kwargs) -> bool:
        """Execute before action. Returns True if action can proceed."""
        pass

    @abstractmethod
    def post_check(self, result: Any, **kwargs) -> bool:
        """Execute after action. Returns True if invariant still holds."""
        pass

    @abstractmethod
    def rollback_action(self, state_before: Dict[str, Any]):
        """Define rollback procedure."""
        pass

# ============================================
# STATE INVARIANTS
# ============================================

class UniqueInvoiceIDs(Invariant):
    """INV-001: Invoice IDs must be unique."""

    def __init__(self):
        super().__init__(
            id="inv_001_unique_invoice_ids",
            statement="It is FORBIDDEN for two invoices to share an identifier",
            type=InvariantType.STATE,
            criticality=Criticality.CRITICAL,
            dependencies=[],
            owner="invoice_service"
        )

    def pre_check(self, invoice_id: str = None, store=None, **kwargs) -> bool:
        exists = store.invoice_exists(invoice_id)
        logger.info(f"PRE-CHECK {self.id}: invoice_id={invoice_id}, exists={exists}")
        return not exists

    def post_check(self, result: Any, **kwargs) -> bool:
        store = result['store']
        invoice_id = result['invoice_id']
        count = store.count_invoices(invoice_id)
        logger.info(f"POST-CHECK {self.id}: count={count}")
        return count == 1

    def rollback_action(self, state_before: Dict[str, Any]):
        store = state_before['store']
        invoice_id = state_before['invoice_id']
        store.delete_invoice(invoice_id)
        logger.warning(f"ROLLBACK {self.id}: Deleted invoice {invoice_id}")

class OfferPresentBeforeFinancing(Invariant):
    """INV-002: Financing requires a live offer on the invoice."""

    violation_class = InvalidTransition

    def __init__(self):
        super().__init__(
            id="inv_002_offer_present",
            statement="It is FORBIDDEN to disburse capital against an invoice without an offer",
            type=InvariantType.STATE,
            criticality=Criticality.CRITICAL,
            dependencies=[],
            owner="financing_service"
        )

    def pre_check(self, invoice=None, **kwargs) -> bool:
        has_offer = bool(invoice.offers)
        logger.info(f"PRE-CHECK {self.id}: invoice={invoice.id}, offers={len(invoice.offers)}")
        return has_offer

    def post_check(self, result: Any, **kwargs) -> bool:
        invoice = result['invoice']
        return invoice.financed_amount == invoice.offers[0].amount

    def rollback_action(self, state_before: Dict[str, Any]):
        # Invoice fields are restored by ValidStatusTransitions
        pass

# ============================================
# TRANSITION INVARIANTS
# ============================================

class ValidStatusTransitions(Invariant):
    """INV-101: Only valid state machine transitions allowed."""

    violation_class = InvalidTransition

    def __init__(self, allowed_transitions: Dict[Any, List[Any]]):
        super().__init__(
            id="inv_101_valid_transitions",
            statement="It is FORBIDDEN for invoices to transition to states outside valid state machine",
            type=InvariantType.TRANSITION,
            criticality=Criticality.CRITICAL,
            dependencies=[],
            owner="state_machine_service"
        )
        self.allowed_transitions = allowed_transitions

    def pre_check(self, invoice=None, new_status=None, **kwargs) -> bool:
        allowed = self.allowed_transitions.get(invoice.status, [])
        valid = new_status in allowed

        logger.info(f"PRE-CHECK {self.id}: {invoice.status.name} -> {new_status.name}, valid={valid}")
        return valid

    def post_check(self, result: Any, **kwargs) -> bool:
        invoice = result['invoice']
        previous_status = result['previous_status']

        valid = invoice.status in self.allowed_transitions.get(previous_status, [])

        logger.info(f"POST-CHECK {self.id}: {previous_status.name} -> {invoice.status.name}, valid={valid}")
        return valid

    def rollback_action(self, state_before: Dict[str, Any]):
        invoice = state_before.get('invoice')
        snapshot = state_before.get('invoice_snapshot')
        if invoice is None or snapshot is None:
            return

        invoice.restore(snapshot)
        logger.warning(f"ROLLBACK {self.id}: Reverted {invoice.id} to {invoice.status.name}")

# ============================================
# FINANCIAL INVARIANTS
# ============================================

class SufficientFunds(Invariant):
    """INV-201: The paying account must cover the transfer."""

    violation_class = InsufficientFunds

    def __init__(self, payer_role: str):
        super().__init__(
            id=f"inv_201_sufficient_{payer_role}_funds",
            statement=f"It is FORBIDDEN for the {payer_role} balance to go negative",
            type=InvariantType.FINANCIAL,
            criticality=Criticality.CRITICAL,
            dependencies=["inv_101_valid_transitions"],
            owner="balance_service"
        )
        self.payer_role = payer_role

    def pre_check(self, store=None, amount: Decimal = None, **kwargs) -> bool:
        balance = store.balance_of(self.payer_role)
        covered = balance >= amount

        logger.info(f"PRE-CHECK {self.id}: balance={balance}, required={amount}, covered={covered}")
        return covered

    def post_check(self, result: Any, **kwargs) -> bool:
        store = result['store']
        return store.balance_of(self.payer_role) >= 0

    def rollback_action(self, state_before: Dict[str, Any]):
        # Balances are restored by BalanceConservation
        pass

class BalanceConservation(Invariant):
    """INV-301: Transfers move value, never create or destroy it."""

    def __init__(self):
        super().__init__(
            id="inv_301_balance_conservation",
            statement="The system MUST always conserve the sum of all account balances",
            type=InvariantType.FINANCIAL,
            criticality=Criticality.CRITICAL,
            dependencies=[],
            owner="ledger_service"
        )

    def pre_check(self, **kwargs) -> bool:
        return True

    def post_check(self, result: Any, **kwargs) -> bool:
        store = result['store']
        before = sum(result['balances_snapshot'].values(), Decimal("0"))
        after = store.total_balance()
        conserved = before == after

        logger.info(f"POST-CHECK {self.id}: before={before}, after={after}, conserved={conserved}")
        return conserved

    def rollback_action(self, state_before: Dict[str, Any]):
        store = state_before['store']
        snapshot = state_before.get('balances_snapshot')
        if snapshot is not None:
            store.restore_balances(snapshot)
            logger.warning(f"ROLLBACK {self.id}: Restored balances from snapshot")

# ============================================
# INVARIANT ENFORCER
# ============================================

def describe_invariant(inv: Invariant) -> str:
    """One-line summary of an invariant for failure logs."""
    return (
        f"{inv.id} [{inv.criticality.value}/{inv.type.value}] "
        f"owner={inv.owner}: {inv.statement}"
    )

class InvariantEnforcer:
    """Non-bypassable enforcement layer."""

    def __init__(self, invariants: List[Invariant], ledger: DecisionLedger):
        self.invariants = self._topological_sort(invariants)
        self.ledger = ledger

    def _topological_sort(self, invariants: List[Invariant]) -> List[Invariant]:
        """Sort invariants by dependency order, keeping declaration order otherwise."""
        sorted_invs = []
        remaining = [inv.id for inv in invariants]

        while remaining:
            ready = [
                inv for inv in invariants
                if inv.id in remaining
                and all(dep not in remaining for dep in inv.dependencies)
            ]

            if not ready:
                raise InvariantViolation("Circular dependency detected in invariants")

            sorted_invs.extend(ready)
            for inv in ready:
                remaining.remove(inv.id)

        return sorted_invs

    def enforce_action(self, action: Callable[[], Dict[str, Any]], **kwargs) -> Dict[str, Any]:
        """Execute action with full invariant enforcement.

        ``kwargs`` is the state captured before the action; it is handed to
        every pre-check and, on failure, to every rollback. The action must
        return a dict for the post-checks.
        """
        state_before = self._capture_state(kwargs)

        for inv in self.invariants:
            decision = self._check(inv, "PRE", lambda: inv.pre_check(**kwargs))
            self.ledger.record(decision)

            if not decision.result:
                logger.error(f"PRE-CHECK FAILED: {describe_invariant(inv)}")
                raise inv.violation_class(f"Pre-check failed: {inv.id}")

        try:
            result = action()
        except Exception as e:
            logger.error(f"ACTION FAILED: {e}")
            self._rollback(state_before)
            raise

        for inv in self.invariants:
            decision = self._check(inv, "POST", lambda: inv.post_check(result))
            self.ledger.record(decision)

            if not decision.result:
                logger.error(f"POST-CHECK FAILED: {describe_invariant(inv)}")
                self._rollback(state_before)
                raise inv.violation_class(f"Post-check failed: {inv.id}")

        logger.info("All invariant checks PASSED")
        return result

    def _check(self, inv: Invariant, check_type: str, check: Callable[[], bool]) -> EnforcementDecision:
        try:
            result = bool(check())
        except Exception as e:
            logger.error(f"{check_type}-check exception: {inv.id}", exc_info=e)
            result = False

        if result:
            action = EnforcementResult.PROCEED
        else:
            action = EnforcementResult.REJECT if check_type == "PRE" else EnforcementResult.ROLLBACK

        timestamp = datetime.now()
        return EnforcementDecision(
            invariant_id=inv.id,
            check_type=check_type,
            result=result,
            action=action,
            timestamp=timestamp,
            signature=sign_decision(inv.id, check_type, result, timestamp)
        )

    def _rollback(self, state_before: Dict[str, Any]):
        """Automatic rollback to previous state."""
        logger.warning("ROLLBACK INITIATED")

        for inv in reversed(self.invariants):
            try:
                inv.rollback_action(state_before)
            except Exception as e:
                logger.critical(f"ROLLBACK FAILED for {inv.id}: {e}")
                raise SystemCompromised(f"Rollback failed for {inv.id}") from e

        logger.info("ROLLBACK COMPLETE")

    def _capture_state(self, kwargs: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'timestamp': datetime.now(),
            **kwargs
        }
