from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from vibeledger.core.config import settings
from vibeledger.core.database import init_db
from vibeledger.core.exceptions import LedgerError
from vibeledger.core.logging import configure_logging
from vibeledger.endpoints import campaign, subscription, transaction, wallet
from vibeledger.middleware.exceptions import global_exception_handler, ledger_exception_handler, validation_exception_handler
from vibeledger.middleware.logging import RequestLoggingMiddleware

configure_logging()

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

app.add_exception_handler(LedgerError, ledger_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(StarletteHTTPException, global_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

app.include_router(transaction.router, prefix="/transactions", tags=["Transactions"])
app.include_router(wallet.router, prefix="/wallets", tags=["Wallets"])
app.include_router(subscription.router, prefix="/subscriptions", tags=["Subscriptions"])
app.include_router(campaign.router, prefix="/campaigns", tags=["Campaigns"])

@app.on_event("startup")
def startup_event():
    init_db()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
