"""Request-scoped dependencies shared by the routers."""

from fastapi import Request

from src.ledger.service.ledger_service import LedgerService


def get_ledger(request: Request) -> LedgerService:
    """The ledger service attached to the running application."""
    return request.app.state.ledger
