"""
Rokkam Money (RKM) - Test Suite
Version: 1.0.0

Coverage for the ledger core:
- Unit tests (invariants and enforcer in isolation)
- Audit log tests (ordering, chaining, tamper detection)
- Action tests (register, offer, accept, settle)
- Conservation and rollback tests
"""

import dataclasses
from dataclasses import replace
from decimal import Decimal

import pytest

from rkm_enforcement_v1 import (
    UniqueInvoiceIDs,
    ValidStatusTransitions,
    SufficientFunds,
    BalanceConservation,
    InvariantEnforcer,
    DecisionLedger,
    InvariantViolation,
    InsufficientFunds,
    InvalidTransition
)
from rkm_audit_log_v1 import AuditLog, GENESIS_HASH
from rkm_ledger_service_v1 import (
    FinancingService,
    LedgerStore,
    LedgerConfig,
    SettlementPolicy,
    AccountRole,
    InvoiceStatus,
    Offer,
    OFFER_TRANSITIONS,
    parse_amount
)

# ============================================
# HELPERS
# ============================================

class MockStore:
    """Mock balance store."""

    def __init__(self, **balances):
        self.balances = {role: Decimal(str(amount)) for role, amount in balances.items()}

    def balance_of(self, role: str) -> Decimal:
        return self.balances[role]

    def total_balance(self) -> Decimal:
        return sum(self.balances.values(), Decimal("0"))

    def restore_balances(self, snapshot):
        self.balances = dict(snapshot)

def make_service(**config) -> FinancingService:
    return FinancingService(LedgerStore(LedgerConfig(**config)))

def balances(service: FinancingService):
    return {account.role: account.balance for account in service.accounts()}

# ============================================
# UNIT TESTS - INVARIANTS
# ============================================

class TestUniqueInvoiceIDs:
    """Test INV-001: Unique invoice IDs."""

    def test_pre_check_new_id(self):
        """Unused invoice ID should pass."""
        store = LedgerStore()
        assert UniqueInvoiceIDs().pre_check(invoice_id="INV-2024-999", store=store) == True

    def test_pre_check_existing_id(self):
        """Seeded invoice ID should fail."""
        store = LedgerStore()
        assert UniqueInvoiceIDs().pre_check(invoice_id="INV-2024-001", store=store) == False

    def test_rollback_deletes_invoice(self):
        store = LedgerStore()
        UniqueInvoiceIDs().rollback_action({'store': store, 'invoice_id': 'INV-2024-001'})

        assert not store.invoice_exists("INV-2024-001")
        assert store.invoices() == []

class TestValidStatusTransitions:
    """Test INV-101: Valid state transitions."""

    def test_offer_on_created_is_valid(self):
        store = LedgerStore()
        invoice = store.get_invoice("INV-2024-001")
        inv = ValidStatusTransitions(OFFER_TRANSITIONS)

        assert inv.pre_check(invoice=invoice, new_status=InvoiceStatus.OFFER_MADE) == True

    def test_offer_on_financed_is_invalid(self):
        store = LedgerStore()
        invoice = store.get_invoice("INV-2024-001")
        invoice.status = InvoiceStatus.FINANCED
        inv = ValidStatusTransitions(OFFER_TRANSITIONS)

        assert inv.pre_check(invoice=invoice, new_status=InvoiceStatus.OFFER_MADE) == False

    def test_rollback_restores_snapshot(self):
        store = LedgerStore()
        invoice = store.get_invoice("INV-2024-001")
        snapshot = invoice.snapshot()

        invoice.status = InvoiceStatus.OFFER_MADE
        invoice.offers = [Offer(investor_name="X", amount=Decimal("1"))]

        ValidStatusTransitions(OFFER_TRANSITIONS).rollback_action({
            'invoice': invoice,
            'invoice_snapshot': snapshot
        })

        assert invoice.status == InvoiceStatus.CREATED
        assert invoice.offers == []

class TestSufficientFunds:
    """Test INV-201: Paying account covers the transfer."""

    def test_pre_check_affordable(self):
        store = MockStore(buyer=5000)
        assert SufficientFunds("buyer").pre_check(store=store, amount=Decimal("4000")) == True

    def test_pre_check_exact_balance(self):
        store = MockStore(buyer=5000)
        assert SufficientFunds("buyer").pre_check(store=store, amount=Decimal("5000")) == True

    def test_pre_check_insufficient(self):
        store = MockStore(buyer=5000)
        assert SufficientFunds("buyer").pre_check(store=store, amount=Decimal("10000")) == False

    def test_violation_class(self):
        assert SufficientFunds("buyer").violation_class is InsufficientFunds

class TestBalanceConservation:
    """Test INV-301: Balance total is conserved."""

    def test_post_check_conserved(self):
        store = MockStore(seller=100, investor=200)
        snapshot = dict(store.balances)
        store.balances['seller'] += 50
        store.balances['investor'] -= 50

        result = BalanceConservation().post_check({'store': store, 'balances_snapshot': snapshot})
        assert result == True

    def test_post_check_value_created(self):
        store = MockStore(seller=100, investor=200)
        snapshot = dict(store.balances)
        store.balances['seller'] += 50

        result = BalanceConservation().post_check({'store': store, 'balances_snapshot': snapshot})
        assert result == False

    def test_rollback_restores_balances(self):
        store = MockStore(seller=100, investor=200)
        snapshot = dict(store.balances)
        store.balances['seller'] = Decimal("999")

        BalanceConservation().rollback_action({'store': store, 'balances_snapshot': snapshot})
        assert store.balances == snapshot

# ============================================
# UNIT TESTS - ENFORCER
# ============================================

class TestInvariantEnforcer:
    """Test pre/post checks, rollback and decision signing."""

    def test_pre_check_failure_skips_action(self):
        store = MockStore(buyer=10)
        enforcer = InvariantEnforcer([SufficientFunds("buyer")], DecisionLedger())
        calls = []

        with pytest.raises(InsufficientFunds):
            enforcer.enforce_action(lambda: calls.append(1), store=store, amount=Decimal("50"))

        assert calls == []

    def test_failure_log_names_invariant_metadata(self, caplog):
        store = MockStore(buyer=10)
        enforcer = InvariantEnforcer([SufficientFunds("buyer")], DecisionLedger())

        with pytest.raises(InsufficientFunds):
            enforcer.enforce_action(lambda: {}, store=store, amount=Decimal("50"))

        failure = next(r.getMessage() for r in caplog.records if "PRE-CHECK FAILED" in r.getMessage())
        assert "inv_201_sufficient_buyer_funds" in failure
        assert "[critical/financial]" in failure
        assert "owner=balance_service" in failure
        assert "It is FORBIDDEN for the buyer balance to go negative" in failure

    def test_post_check_failure_rolls_back(self):
        store = MockStore(seller=100, investor=200)
        snapshot = dict(store.balances)
        enforcer = InvariantEnforcer([BalanceConservation()], DecisionLedger())

        def leaky_action():
            store.balances['seller'] += 75
            return {'store': store, 'balances_snapshot': snapshot}

        with pytest.raises(InvariantViolation):
            enforcer.enforce_action(leaky_action, store=store, balances_snapshot=snapshot)

        assert store.balances == snapshot

    def test_action_exception_rolls_back(self):
        store = MockStore(seller=100)
        snapshot = dict(store.balances)
        enforcer = InvariantEnforcer([BalanceConservation()], DecisionLedger())

        def failing_action():
            store.balances['seller'] = Decimal("0")
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            enforcer.enforce_action(failing_action, store=store, balances_snapshot=snapshot)

        assert store.balances == snapshot

    def test_dependency_order(self):
        """Funds check depends on the transition check and runs after it."""
        enforcer = InvariantEnforcer(
            [SufficientFunds("buyer"), ValidStatusTransitions({}), BalanceConservation()],
            DecisionLedger()
        )
        ids = [inv.id for inv in enforcer.invariants]

        assert ids.index("inv_101_valid_transitions") < ids.index("inv_201_sufficient_buyer_funds")

    def test_decisions_signed_and_tamper_evident(self):
        ledger = DecisionLedger()
        store = MockStore(seller=1)
        snapshot = dict(store.balances)
        enforcer = InvariantEnforcer([BalanceConservation()], ledger)

        enforcer.enforce_action(
            lambda: {'store': store, 'balances_snapshot': snapshot},
            store=store,
            balances_snapshot=snapshot
        )

        assert len(ledger.entries) == 2
        assert ledger.verify_chain_integrity() == True

        ledger.entries[1] = replace(ledger.entries[1], result=False)
        assert ledger.verify_chain_integrity() == False

# ============================================
# AUDIT LOG TESTS
# ============================================

class TestAuditLog:
    """Append-only, newest-first, chained hashes."""

    def test_newest_first(self):
        log = AuditLog()
        first = log.record("A", "one")
        second = log.record("B", "two")

        assert log.entries == (second, first)
        assert log.head is second

    def test_hash_chain(self):
        log = AuditLog()
        first = log.record("A", "one")
        second = log.record("B", "two")

        assert first.previous_hash == GENESIS_HASH
        assert second.previous_hash == first.hash
        assert len(first.hash) == 66 and first.hash.startswith("0x")
        assert log.verify_chain_integrity() == True

    def test_unique_ids(self):
        log = AuditLog()
        ids = {log.record("E", str(i)).id for i in range(200)}
        assert len(ids) == 200

    def test_tampered_detail_detected(self):
        log = AuditLog()
        log.record("A", "one")
        log.record("B", "two")

        log._entries[0] = replace(log._entries[0], detail="forged")
        assert log.verify_chain_integrity() == False

    def test_entries_are_immutable(self):
        log = AuditLog()
        entry = log.record("A", "one")

        with pytest.raises(dataclasses.FrozenInstanceError):
            entry.detail = "changed"

# ============================================
# ACTION TESTS
# ============================================

class TestParseAmount:

    @pytest.mark.parametrize("value,expected", [
        ("10000", Decimal("10000")),
        (" 9800.50 ", Decimal("9800.50")),
        (4000, Decimal("4000")),
        (Decimal("1.5"), Decimal("1.5")),
        ("1.234", Decimal("1.23")),
    ])
    def test_valid(self, value, expected):
        assert parse_amount(value) == expected

    def test_quantized_to_paise(self):
        assert parse_amount("9800.5").as_tuple().exponent == -2

    @pytest.mark.parametrize("value", [
        None, "", "   ", "abc", "0", "-5", "NaN", "Infinity", True,
        "0.004", Decimal("0.00000000000000000000000005"), "1e40",
    ])
    def test_missing_or_invalid(self, value):
        assert parse_amount(value) is None

class TestRegisterInvoice:
    """Seller registers invoices."""

    def test_register_creates_invoice_at_front(self):
        service = make_service()
        audit_before = len(service.audit_log())

        invoice = service.register_invoice(10000, "Q4 Circuit Board Supply")

        assert invoice.status == InvoiceStatus.CREATED
        assert invoice.amount == Decimal("10000")
        assert invoice.seller_name == "Siva Electronics Ltd."
        assert invoice.buyer_name == "Rahul Retailers Inc."
        assert service.invoices()[0] is invoice
        assert len(service.audit_log()) == audit_before + 1

        entry = service.audit_log()[0]
        assert entry.event == "Invoice Registered"
        assert entry.detail == f"ID: {invoice.id} | Val: ₹10000"

    def test_ids_are_unique_and_monotonic(self):
        service = make_service()
        ids = [service.register_invoice(100, f"Batch {i}").id for i in range(3)]

        assert ids == ["INV-2024-002", "INV-2024-003", "INV-2024-004"]

    def test_unseeded_store_starts_at_one(self):
        service = make_service(seed_demo_data=False)
        assert service.invoices() == []
        assert service.audit_log() == []

        assert service.register_invoice(100, "First").id == "INV-2024-001"

    @pytest.mark.parametrize("amount,description", [
        (None, "Q4 Circuit Board Supply"),
        ("", "Q4 Circuit Board Supply"),
        ("abc", "Q4 Circuit Board Supply"),
        (10000, ""),
        (10000, "   "),
        (10000, None),
    ])
    def test_missing_input_is_silent_noop(self, amount, description):
        service = make_service()
        invoices_before = service.invoices()
        audit_before = service.audit_log()

        assert service.register_invoice(amount, description) is None
        assert service.invoices() == invoices_before
        assert service.audit_log() == audit_before

    def test_register_does_not_touch_balances(self):
        service = make_service()
        before = balances(service)

        service.register_invoice(2500, "Solder Paste")
        assert balances(service) == before

class TestMakeOffer:
    """Investor issues term sheets."""

    def test_offer_transitions_to_offer_made(self):
        service = make_service()
        invoice = service.make_offer("INV-2024-001", 9800)

        assert invoice.status == InvoiceStatus.OFFER_MADE
        assert invoice.offers == [Offer(investor_name="Lakshmi Capital Corp.", amount=Decimal("9800"))]
        assert service.audit_log()[0].event == "Term Sheet Issued"
        assert service.audit_log()[0].detail == "Ref: INV-2024-001 | Offer: ₹9800"

    def test_second_offer_replaces_first(self):
        service = make_service()
        service.make_offer("INV-2024-001", 9800)
        audit_before = len(service.audit_log())

        invoice = service.make_offer("INV-2024-001", 9500)

        assert len(invoice.offers) == 1
        assert invoice.offers[0].amount == Decimal("9500")
        assert invoice.status == InvoiceStatus.OFFER_MADE
        assert len(service.audit_log()) == audit_before + 1

    def test_offer_above_face_value_is_allowed(self):
        """No bound ties the offer to the invoice amount."""
        service = make_service()
        invoice = service.make_offer("INV-2024-001", 12000)

        assert invoice.offers[0].amount == Decimal("12000")

    def test_unknown_invoice_is_silent_noop(self):
        service = make_service()
        audit_before = service.audit_log()

        assert service.make_offer("INV-9999-999", 9800) is None
        assert service.audit_log() == audit_before

    def test_missing_amount_is_silent_noop(self):
        service = make_service()

        assert service.make_offer("INV-2024-001", "") is None
        assert service.get_invoice("INV-2024-001").status == InvoiceStatus.CREATED
        assert service.get_invoice("INV-2024-001").offers == []

    def test_offer_on_financed_invoice_rejected(self):
        service = make_service()
        service.make_offer("INV-2024-001", 9800)
        service.accept_financing("INV-2024-001")
        audit_before = len(service.audit_log())

        with pytest.raises(InvalidTransition):
            service.make_offer("INV-2024-001", 9000)

        invoice = service.get_invoice("INV-2024-001")
        assert invoice.status == InvoiceStatus.FINANCED
        assert invoice.offers[0].amount == Decimal("9800")
        assert len(service.audit_log()) == audit_before

class TestAcceptFinancing:
    """Seller accepts the investor's capital."""

    def test_disbursement_moves_offer_amount(self):
        service = make_service()
        service.make_offer("INV-2024-001", 9800)

        invoice = service.accept_financing("INV-2024-001")

        assert service.get_account(AccountRole.SELLER).balance == Decimal("10800")
        assert service.get_account(AccountRole.INVESTOR).balance == Decimal("40200")
        assert invoice.status == InvoiceStatus.FINANCED
        assert invoice.financed_amount == Decimal("9800")
        assert service.audit_log()[0].event == "Capital Disbursed"
        assert service.audit_log()[0].detail == "From: Investor -> Seller | Amt: ₹9800"

    def test_stale_invoice_object_is_re_resolved(self):
        """The canonical record is used, not the caller's copy."""
        service = make_service()
        stale = replace(service.get_invoice("INV-2024-001"))
        service.make_offer("INV-2024-001", 9800)

        assert stale.offers == []
        invoice = service.accept_financing(stale)

        assert invoice is service.get_invoice("INV-2024-001")
        assert invoice.financed_amount == Decimal("9800")

    def test_accept_without_offer_rejected(self):
        service = make_service()
        before = balances(service)
        audit_before = len(service.audit_log())

        with pytest.raises(InvalidTransition):
            service.accept_financing("INV-2024-001")

        assert balances(service) == before
        assert service.get_invoice("INV-2024-001").status == InvoiceStatus.CREATED
        assert len(service.audit_log()) == audit_before

    def test_double_accept_rejected(self):
        service = make_service()
        service.make_offer("INV-2024-001", 9800)
        service.accept_financing("INV-2024-001")
        after_first = balances(service)

        with pytest.raises(InvalidTransition):
            service.accept_financing("INV-2024-001")

        assert balances(service) == after_first

    def test_investor_may_overdraw_by_default(self):
        service = make_service(
            seed_demo_data=False,
            initial_balances={"seller": Decimal("0"), "investor": Decimal("100"), "buyer": Decimal("0")}
        )
        invoice = service.register_invoice(10000, "Large order")
        service.make_offer(invoice.id, 5000)
        service.accept_financing(invoice.id)

        assert service.get_account("investor").balance == Decimal("-4900")
        assert service.get_account("seller").balance == Decimal("5000")

    def test_investor_liquidity_enforced_when_enabled(self):
        service = make_service(
            seed_demo_data=False,
            enforce_investor_liquidity=True,
            initial_balances={"seller": Decimal("0"), "investor": Decimal("100"), "buyer": Decimal("0")}
        )
        invoice = service.register_invoice(10000, "Large order")
        service.make_offer(invoice.id, 5000)
        before = balances(service)

        with pytest.raises(InsufficientFunds):
            service.accept_financing(invoice.id)

        assert balances(service) == before
        assert invoice.status == InvoiceStatus.OFFER_MADE

    def test_unknown_invoice_is_silent_noop(self):
        service = make_service()
        assert service.accept_financing("INV-9999-999") is None

class TestSettleInvoice:
    """Buyer settles invoices."""

    def test_insufficient_funds_changes_nothing(self):
        service = make_service()
        service.make_offer("INV-2024-001", 9800)
        service.accept_financing("INV-2024-001")
        before = balances(service)
        audit_before = len(service.audit_log())

        with pytest.raises(InsufficientFunds):
            service.settle_invoice("INV-2024-001")

        assert balances(service) == before
        assert service.get_invoice("INV-2024-001").status == InvoiceStatus.FINANCED
        assert len(service.audit_log()) == audit_before

    def test_financed_invoice_pays_investor(self):
        service = make_service()
        invoice = service.register_invoice(4000, "Capacitor Reel Restock")
        service.make_offer(invoice.id, 3900)
        service.accept_financing(invoice.id)
        investor_before = service.get_account("investor").balance

        service.settle_invoice(invoice.id)

        assert service.get_account("buyer").balance == Decimal("1000")
        assert service.get_account("investor").balance == investor_before + Decimal("4000")
        assert invoice.status == InvoiceStatus.PAID
        assert service.audit_log()[0].event == "Invoice Settled"
        assert service.audit_log()[0].detail == "From: Buyer -> Investor | Amt: ₹4000"

    def test_unfinanced_invoice_pays_seller(self):
        service = make_service()
        invoice = service.register_invoice(4000, "Capacitor Reel Restock")

        service.settle_invoice(invoice.id)

        assert service.get_account("buyer").balance == Decimal("1000")
        assert service.get_account("seller").balance == Decimal("5000")
        assert service.get_account("investor").balance == Decimal("50000")
        assert invoice.status == InvoiceStatus.PAID
        assert service.audit_log()[0].detail == "From: Buyer -> Seller | Amt: ₹4000"

    def test_offer_made_invoice_pays_seller(self):
        service = make_service(
            initial_balances={"seller": Decimal("1000"), "investor": Decimal("50000"), "buyer": Decimal("20000")}
        )
        service.make_offer("INV-2024-001", 3000)

        invoice = service.settle_invoice("INV-2024-001")

        assert service.get_account("seller").balance == Decimal("11000")
        assert service.get_account("investor").balance == Decimal("50000")
        assert service.get_account("buyer").balance == Decimal("10000")
        assert invoice.status == InvoiceStatus.PAID
        assert invoice.offers == [Offer(investor_name="Lakshmi Capital Corp.", amount=Decimal("3000"))]
        assert invoice.financed_amount is None
        assert service.audit_log()[0].detail == "From: Buyer -> Seller | Amt: ₹10000"

    def test_sub_paisa_invoice_is_never_registered(self):
        service = make_service()
        before = balances(service)

        invoice = service.register_invoice("0.00000000000000000000000005", "Dust")

        assert invoice is None
        assert len(service.invoices()) == 1
        assert balances(service) == before

    def test_settlement_moves_exact_amount(self):
        service = make_service()
        invoice = service.register_invoice("1234.567", "Solder Paste")

        service.settle_invoice(invoice.id)

        assert invoice.amount == Decimal("1234.57")
        assert service.get_account("buyer").balance == Decimal("5000") - Decimal("1234.57")
        assert service.get_account("seller").balance == Decimal("1000") + Decimal("1234.57")
        assert service.total_balance() == Decimal("56000")

    def test_always_investor_policy(self):
        service = make_service(settlement_policy=SettlementPolicy.ALWAYS_INVESTOR)
        invoice = service.register_invoice(4000, "Capacitor Reel Restock")

        service.settle_invoice(invoice.id)

        assert service.get_account("investor").balance == Decimal("54000")
        assert service.get_account("seller").balance == Decimal("1000")

    def test_double_settlement_rejected(self):
        service = make_service()
        invoice = service.register_invoice(2000, "Connectors")
        service.settle_invoice(invoice.id)
        after_first = balances(service)

        with pytest.raises(InvalidTransition):
            service.settle_invoice(invoice.id)

        assert balances(service) == after_first

    def test_unknown_invoice_is_silent_noop(self):
        service = make_service()
        assert service.settle_invoice("INV-9999-999") is None

# ============================================
# LEDGER-WIDE PROPERTIES
# ============================================

class TestConservationAndAudit:

    def test_total_balance_conserved_across_all_actions(self):
        service = make_service()
        total = service.total_balance()
        assert total == Decimal("56000")

        invoice = service.register_invoice(4000, "Capacitor Reel Restock")
        assert service.total_balance() == total
        service.make_offer(invoice.id, 3900)
        assert service.total_balance() == total
        service.accept_financing(invoice.id)
        assert service.total_balance() == total

        with pytest.raises(InsufficientFunds):
            service.settle_invoice("INV-2024-001")
        assert service.total_balance() == total

        service.settle_invoice(invoice.id)
        assert service.total_balance() == total

    def test_audit_grows_by_one_per_action_newest_first(self):
        service = make_service()
        lengths = [len(service.audit_log())]

        invoice = service.register_invoice(4000, "Capacitor Reel Restock")
        lengths.append(len(service.audit_log()))
        service.make_offer(invoice.id, 3900)
        lengths.append(len(service.audit_log()))
        service.accept_financing(invoice.id)
        lengths.append(len(service.audit_log()))
        service.settle_invoice(invoice.id)
        lengths.append(len(service.audit_log()))

        assert lengths == [1, 2, 3, 4, 5]
        assert [entry.event for entry in service.audit_log()] == [
            "Invoice Settled",
            "Capital Disbursed",
            "Term Sheet Issued",
            "Invoice Registered",
            "System Init",
        ]
        assert service.store.audit_log.verify_chain_integrity() == True

    def test_failed_post_check_rolls_back_invoice_and_balances(self, monkeypatch):
        service = make_service()
        service.make_offer("INV-2024-001", 9800)
        before = balances(service)
        audit_before = len(service.audit_log())

        # Debit without the matching credit breaks conservation
        monkeypatch.setattr(service.store, "credit", lambda role, amount: None)

        with pytest.raises(InvariantViolation):
            service.accept_financing("INV-2024-001")

        invoice = service.get_invoice("INV-2024-001")
        assert balances(service) == before
        assert invoice.status == InvoiceStatus.OFFER_MADE
        assert invoice.financed_amount is None
        assert len(service.audit_log()) == audit_before

class TestReadAccessors:

    def test_marketplace_excludes_paid(self):
        service = make_service()
        invoice = service.register_invoice(1000, "Resistors")
        service.settle_invoice(invoice.id)

        assert [inv.id for inv in service.marketplace()] == ["INV-2024-001"]

    def test_invoices_filter_by_status(self):
        service = make_service()
        service.register_invoice(1000, "Resistors")
        service.make_offer("INV-2024-001", 9800)

        offered = service.invoices(status=InvoiceStatus.OFFER_MADE)
        assert [inv.id for inv in offered] == ["INV-2024-001"]

    def test_payee_follows_financing(self):
        service = make_service()
        assert service.payee_for("INV-2024-001").role == AccountRole.SELLER

        service.make_offer("INV-2024-001", 9800)
        assert service.payee_for("INV-2024-001").role == AccountRole.SELLER

        service.accept_financing("INV-2024-001")
        assert service.payee_for("INV-2024-001").role == AccountRole.INVESTOR

    def test_genesis_state(self):
        service = make_service()

        assert [a.id for a in service.accounts()] == ["ACC_SELLER_01", "ACC_INVEST_99", "ACC_BUYER_55"]
        seed = service.get_invoice("INV-2024-001")
        assert seed.description == "Q4 Circuit Board Supply"
        assert seed.due_date.isoformat() == "2025-12-01"
        assert service.audit_log()[0].event == "System Init"
        assert service.audit_log()[0].detail == "Ledger Genesis Block"

if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
