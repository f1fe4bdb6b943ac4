"""
Rokkam Money - Prometheus Metrics
Observability for the invoice financing lifecycle
"""

from typing import Optional

from prometheus_client import Counter, Gauge, CollectorRegistry

# Create custom registry
metrics_registry = CollectorRegistry()

# ============================================
# BUSINESS METRICS
# ============================================

invoice_registered_counter = Counter(
    'rkm_invoices_registered_total',
    'Total number of invoices registered',
    registry=metrics_registry
)

offer_issued_counter = Counter(
    'rkm_offers_issued_total',
    'Total number of term sheets issued',
    registry=metrics_registry
)

financing_disbursed_counter = Counter(
    'rkm_financing_disbursed_total',
    'Total number of capital disbursements',
    registry=metrics_registry
)

settlement_completed_counter = Counter(
    'rkm_settlements_completed_total',
    'Total number of invoices settled',
    ['payee_role'],
    registry=metrics_registry
)

action_rejected_counter = Counter(
    'rkm_actions_rejected_total',
    'Total number of ledger actions rejected',
    ['action', 'reason'],
    registry=metrics_registry
)

# ============================================
# LEDGER STATE METRICS
# ============================================

account_balance_gauge = Gauge(
    'rkm_account_balance',
    'Current account balance by role',
    ['role'],
    registry=metrics_registry
)

audit_log_length_gauge = Gauge(
    'rkm_audit_log_entries',
    'Number of audit log entries',
    registry=metrics_registry
)

audit_integrity_gauge = Gauge(
    'rkm_audit_integrity',
    'Audit chain integrity (1=verified, 0=compromised)',
    registry=metrics_registry
)

invariant_check_gauge = Gauge(
    'rkm_invariant_checks',
    'Invariant checks recorded in the decision ledger',
    ['result'],
    registry=metrics_registry
)

# ============================================
# HELPER FUNCTIONS
# ============================================

def record_rejection(action: str, reason: str):
    """Record a rejected ledger action."""
    action_rejected_counter.labels(action=action, reason=reason).inc()

def update_ledger_state(service, audit_integrity: Optional[bool] = None):
    """Refresh gauges from the current ledger state.

    Callers that have just verified the audit chain pass the result in;
    action handlers leave the integrity gauge untouched.
    """
    for account in service.accounts():
        account_balance_gauge.labels(role=account.role.value).set(float(account.balance))

    audit_log = service.store.audit_log
    audit_log_length_gauge.set(len(audit_log))
    if audit_integrity is not None:
        audit_integrity_gauge.set(1 if audit_integrity else 0)

    entries = service.decision_ledger.entries
    failed = len(service.decision_ledger.failures())
    invariant_check_gauge.labels(result="passed").set(len(entries) - failed)
    invariant_check_gauge.labels(result="failed").set(failed)
