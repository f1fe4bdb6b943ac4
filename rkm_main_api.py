"""
Rokkam Money - FastAPI Application
HTTP surface for the invoice financing ledger
"""

from fastapi import FastAPI, HTTPException, Request, status, Depends
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal
import logging
from contextlib import asynccontextmanager

from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from rkm_enforcement_v1 import InvariantViolation, InsufficientFunds
from rkm_ledger_service_v1 import (
    FinancingService,
    LedgerStore,
    LedgerConfig,
    Invoice,
    InvoiceStatus,
    format_amount
)
from rkm_metrics import (
    metrics_registry,
    invoice_registered_counter,
    offer_issued_counter,
    financing_disbursed_counter,
    settlement_completed_counter,
    record_rejection,
    update_ledger_state
)

logger = logging.getLogger("rkm.api")

API_VERSION = "1.0.0"

# ============================================
# PYDANTIC MODELS (API DTOs)
# ============================================

class RegisterInvoiceRequest(BaseModel):
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    description: str = Field(..., min_length=1, max_length=500)

    model_config = {
        "json_schema_extra": {
            "example": {"amount": 10000, "description": "Q4 Circuit Board Supply"}
        }
    }

class OfferRequest(BaseModel):
    amount: Decimal = Field(..., gt=0, decimal_places=2)

    model_config = {
        "json_schema_extra": {"example": {"amount": 9800}}
    }

class AccountResponse(BaseModel):
    id: str
    display_name: str
    role: str
    balance: Decimal

class OfferResponse(BaseModel):
    investor_name: str
    amount: Decimal

class InvoiceResponse(BaseModel):
    id: str
    amount: Decimal
    seller_name: str
    buyer_name: str
    description: str
    status: str
    status_label: str
    due_date: date
    offers: List[OfferResponse]
    financed_amount: Optional[Decimal] = None
    payable_to: str
    created_at: datetime

class ActionResponse(BaseModel):
    message: str
    invoice: InvoiceResponse

class AuditEntryResponse(BaseModel):
    id: str
    hash: str
    event: str
    detail: str
    timestamp: datetime

class HealthResponse(BaseModel):
    status: str
    version: str
    total_invoices: int
    open_invoices: int
    total_balance: Decimal
    audit_entries: int
    audit_integrity: bool
    decision_ledger_integrity: bool

# ============================================
# APPLICATION STATE
# ============================================

def get_service(request: Request) -> FinancingService:
    return request.app.state.financing_service

def _invoice_response(service: FinancingService, invoice: Invoice) -> InvoiceResponse:
    return InvoiceResponse(
        id=invoice.id,
        amount=invoice.amount,
        seller_name=invoice.seller_name,
        buyer_name=invoice.buyer_name,
        description=invoice.description,
        status=invoice.status.name,
        status_label=invoice.status.value,
        due_date=invoice.due_date,
        offers=[
            OfferResponse(investor_name=offer.investor_name, amount=offer.amount)
            for offer in invoice.offers
        ],
        financed_amount=invoice.financed_amount,
        payable_to=service.payee_for(invoice).display_name,
        created_at=invoice.created_at
    )

def _require_invoice(service: FinancingService, invoice_id: str) -> Invoice:
    invoice = service.get_invoice(invoice_id)
    if invoice is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Invoice {invoice_id} not found"
        )
    return invoice

def _parse_status(value: str) -> InvoiceStatus:
    try:
        return InvoiceStatus[value.upper()]
    except KeyError:
        pass
    try:
        return InvoiceStatus(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown invoice status: {value}"
        )

# ============================================
# FASTAPI APPLICATION
# ============================================

def create_app(config: Optional[LedgerConfig] = None) -> FastAPI:
    """Build the application; the ledger store is owned by the app object."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("🚀 Rokkam Money ledger starting...")
        yield
        logger.info("🛑 Rokkam Money ledger shutting down...")

    app = FastAPI(
        title="Rokkam Money",
        description="Supply chain finance ledger: invoice registration, financing and settlement",
        version=API_VERSION,
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json"
    )

    app.state.financing_service = FinancingService(LedgerStore(config))
    update_ledger_state(
        app.state.financing_service,
        audit_integrity=app.state.financing_service.store.audit_log.verify_chain_integrity()
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(InvariantViolation)
    async def invariant_violation_handler(request: Request, exc: InvariantViolation):
        logger.error(f"Invariant violation: {exc}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": f"Ledger invariant violated: {exc}"}
        )

    # ----- health -----

    @app.get("/", tags=["Health"])
    async def root():
        return {
            "service": "Rokkam Money",
            "version": API_VERSION,
            "status": "operational"
        }

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check(service: FinancingService = Depends(get_service)):
        audit_integrity = service.store.audit_log.verify_chain_integrity()
        decision_integrity = service.decision_ledger.verify_chain_integrity()
        update_ledger_state(service, audit_integrity=audit_integrity)

        return HealthResponse(
            status="healthy" if audit_integrity and decision_integrity else "compromised",
            version=API_VERSION,
            total_invoices=len(service.invoices()),
            open_invoices=len(service.marketplace()),
            total_balance=service.total_balance(),
            audit_entries=len(service.store.audit_log),
            audit_integrity=audit_integrity,
            decision_ledger_integrity=decision_integrity
        )

    # ----- read accessors -----

    @app.get("/api/v1/accounts", response_model=List[AccountResponse], tags=["Accounts"])
    async def list_accounts(service: FinancingService = Depends(get_service)):
        return [
            AccountResponse(
                id=account.id,
                display_name=account.display_name,
                role=account.role.label,
                balance=account.balance
            )
            for account in service.accounts()
        ]

    @app.get("/api/v1/invoices", response_model=List[InvoiceResponse], tags=["Invoices"])
    async def list_invoices(
        status: Optional[str] = None,
        open_only: bool = False,
        service: FinancingService = Depends(get_service)
    ):
        """List invoices newest-first, optionally filtered."""
        invoices = service.marketplace() if open_only else service.invoices()
        if status:
            wanted = _parse_status(status)
            invoices = [inv for inv in invoices if inv.status == wanted]
        return [_invoice_response(service, inv) for inv in invoices]

    @app.get("/api/v1/invoices/{invoice_id}", response_model=InvoiceResponse, tags=["Invoices"])
    async def get_invoice(invoice_id: str, service: FinancingService = Depends(get_service)):
        return _invoice_response(service, _require_invoice(service, invoice_id))

    @app.get("/api/v1/audit-log", response_model=List[AuditEntryResponse], tags=["Audit"])
    async def get_audit_log(service: FinancingService = Depends(get_service)):
        return [
            AuditEntryResponse(
                id=entry.id,
                hash=entry.hash,
                event=entry.event,
                detail=entry.detail,
                timestamp=entry.timestamp
            )
            for entry in service.audit_log()
        ]

    # ----- actions -----

    @app.post("/api/v1/invoices", response_model=ActionResponse,
              status_code=status.HTTP_201_CREATED, tags=["Invoices"])
    async def register_invoice(
        request: RegisterInvoiceRequest,
        service: FinancingService = Depends(get_service)
    ):
        """Seller registers a new invoice."""
        invoice = service.register_invoice(request.amount, request.description)
        if invoice is None:
            record_rejection("register", "missing_input")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Amount and description are required"
            )

        invoice_registered_counter.inc()
        update_ledger_state(service)
        return ActionResponse(
            message="Invoice registered on Digital Ledger",
            invoice=_invoice_response(service, invoice)
        )

    @app.post("/api/v1/invoices/{invoice_id}/offers", response_model=ActionResponse, tags=["Financing"])
    async def make_offer(
        invoice_id: str,
        request: OfferRequest,
        service: FinancingService = Depends(get_service)
    ):
        """Investor issues a term sheet."""
        _require_invoice(service, invoice_id)
        try:
            invoice = service.make_offer(invoice_id, request.amount)
        except InvariantViolation:
            record_rejection("offer", "invalid_transition")
            raise

        offer_issued_counter.inc()
        update_ledger_state(service)
        return ActionResponse(
            message="Financing offer sent to Seller",
            invoice=_invoice_response(service, invoice)
        )

    @app.post("/api/v1/invoices/{invoice_id}/accept", response_model=ActionResponse, tags=["Financing"])
    async def accept_financing(invoice_id: str, service: FinancingService = Depends(get_service)):
        """Seller accepts the live offer and receives the capital."""
        _require_invoice(service, invoice_id)
        try:
            invoice = service.accept_financing(invoice_id)
        except InsufficientFunds:
            record_rejection("accept", "insufficient_funds")
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Insufficient investor liquidity"
            )
        except InvariantViolation:
            record_rejection("accept", "invalid_transition")
            raise

        financing_disbursed_counter.inc()
        update_ledger_state(service)
        return ActionResponse(
            message=f"{format_amount(invoice.financed_amount)} credited to your account.",
            invoice=_invoice_response(service, invoice)
        )

    @app.post("/api/v1/invoices/{invoice_id}/settle", response_model=ActionResponse, tags=["Settlement"])
    async def settle_invoice(invoice_id: str, service: FinancingService = Depends(get_service)):
        """Buyer pays the invoice face value."""
        _require_invoice(service, invoice_id)
        payee = service.payee_for(invoice_id)
        try:
            invoice = service.settle_invoice(invoice_id)
        except InsufficientFunds:
            record_rejection("settle", "insufficient_funds")
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Insufficient funds in operating account"
            )
        except InvariantViolation:
            record_rejection("settle", "invalid_transition")
            raise

        settlement_completed_counter.labels(payee_role=payee.role.value).inc()
        update_ledger_state(service)
        return ActionResponse(
            message="Payment processed successfully",
            invoice=_invoice_response(service, invoice)
        )

    # ----- observability -----

    @app.get("/metrics", tags=["Observability"])
    async def metrics():
        """Prometheus metrics endpoint."""
        return Response(
            content=generate_latest(metrics_registry),
            media_type=CONTENT_TYPE_LATEST
        )

    return app

app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "rkm_main_api:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
