"""
FastAPI REST API Module

HTTP surface for the vault ledger: deposits, withdrawals, balance and
counter queries, and audit trail inspection. Ledger errors are returned
with their structured payload.

Every endpoint that touches the ledger holds the system lock, so calls reach
the ledger one at a time. Withdrawals run in the threadpool because the
payout client blocks; health and audit endpoints stay responsive meanwhile.
"""

from datetime import datetime, timezone
import asyncio
from typing import Optional
from fastapi import FastAPI, Depends, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
import uvicorn

from .audit import AuditTrail
from .config import VaultConfig, get_config
from .errors import TransferFailed, VaultError
from .events import EventDispatcher
from .ledger import VaultLedger
from .logging_config import setup_logging
from .transfer import HttpValueTransfer, InMemoryValueTransfer, ValueTransfer


class AmountRequest(BaseModel):
    owner: str = Field(..., min_length=1, description="Vault owner identity")
    amount: int = Field(..., ge=0, description="Amount in the native unit")


class VaultSystem:
    """Vault ledger with its collaborators wired from configuration"""

    def __init__(self, config: Optional[VaultConfig] = None,
                 transfer: Optional[ValueTransfer] = None):
        self.config = config or get_config()
        self.logger = setup_logging(
            level=self.config.log_level,
            log_format=self.config.log_format,
            log_file=self.config.log_file
        )

        if transfer is None:
            if self.config.payout_url:
                transfer = HttpValueTransfer(
                    base_url=self.config.payout_url,
                    timeout=self.config.payout_timeout,
                    api_key=self.config.payout_api_key or None
                )
            else:
                transfer = InMemoryValueTransfer()
        self.transfer = transfer

        self.dispatcher = EventDispatcher()
        self.audit_trail = AuditTrail()
        if self.config.enable_audit_logging:
            self.audit_trail.attach(self.dispatcher)

        self.ledger = VaultLedger.from_config(self.config, self.transfer, self.dispatcher)
        # Serializes ledger access across requests
        self.lock = asyncio.Lock()


# Global vault system instance
vault_system = VaultSystem()


app = FastAPI(
    title="Vault Ledger API",
    description="Single-asset custodial ledger with capped intake and limited withdrawals",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)


def get_vault_system() -> VaultSystem:
    return vault_system


@app.exception_handler(VaultError)
async def vault_error_handler(request: Request, exc: VaultError):
    """Return ledger errors with their structured payload"""
    if isinstance(exc, TransferFailed):
        status_code = status.HTTP_502_BAD_GATEWAY
    else:
        status_code = status.HTTP_400_BAD_REQUEST
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


@app.post("/deposits", status_code=status.HTTP_201_CREATED)
async def deposit(
    request: AmountRequest,
    system: VaultSystem = Depends(get_vault_system)
):
    """Credit an owner's vault"""
    async with system.lock:
        receipt = system.ledger.deposit(request.owner, request.amount)
    return receipt.to_dict()


@app.post("/withdrawals")
async def withdraw(
    request: AmountRequest,
    system: VaultSystem = Depends(get_vault_system)
):
    """
    Debit an owner's vault and pay the amount out

    The payout is synchronous and may take up to ``payout_timeout``. It runs
    in the threadpool while this request holds the system lock, so other
    ledger requests wait for it but the event loop does not.
    """
    async with system.lock:
        receipt = await run_in_threadpool(
            system.ledger.withdraw, request.owner, request.amount
        )
    return receipt.to_dict()


@app.get("/balances/{owner}")
async def get_balance(
    owner: str,
    system: VaultSystem = Depends(get_vault_system)
):
    """Get an owner's balance (0 for unknown owners)"""
    async with system.lock:
        balance = system.ledger.balance_of(owner)
    return {"owner": owner, "balance": balance}


@app.get("/ledger")
async def get_ledger(
    system: VaultSystem = Depends(get_vault_system)
):
    """Totals, limits and operation counters"""
    async with system.lock:
        snapshot = system.ledger.snapshot()
    return {
        "withdraw_limit": snapshot.withdraw_limit,
        "bank_cap": snapshot.bank_cap,
        "total_deposited": snapshot.total_deposited,
        "available": snapshot.available,
        "deposit_count": snapshot.deposit_count,
        "withdrawal_count": snapshot.withdrawal_count,
        "owners": len(snapshot.balances)
    }


@app.get("/audit/events")
async def get_audit_events(
    owner: Optional[str] = None,
    limit: Optional[int] = None,
    system: VaultSystem = Depends(get_vault_system)
):
    """Get audit records, optionally for one owner"""
    if owner:
        records = system.audit_trail.get_events_for_owner(owner, limit)
    else:
        records = system.audit_trail.get_all_events(limit)
    return {"events": [record.to_dict() for record in records]}


@app.get("/audit/integrity")
async def verify_audit_integrity(
    system: VaultSystem = Depends(get_vault_system)
):
    """Verify audit trail integrity"""
    return system.audit_trail.verify_integrity()


@app.get("/")
async def root():
    """Root endpoint with system information"""
    return {
        "system": "Vault Ledger",
        "version": "1.0.0",
        "endpoints": {
            "docs": "/docs",
            "health": "/health",
            "deposits": "/deposits",
            "withdrawals": "/withdrawals",
            "balances": "/balances/{owner}",
            "ledger": "/ledger",
            "audit": "/audit"
        }
    }


def run_server(host: str = "0.0.0.0", port: int = 8091, debug: bool = False):
    """Run the FastAPI server"""
    uvicorn.run(
        "vault_ledger.api:app",
        host=host,
        port=port,
        reload=debug,
        log_level="info"
    )
