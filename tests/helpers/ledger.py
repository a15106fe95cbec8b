from decimal import Decimal

from jose import jwt

from vibeledger.core.config import settings
from vibeledger.crud.wallet import wallet as crud_wallet


def token_for(user) -> str:
    return jwt.encode({"sub": str(user.id)}, settings.SECRET_KEY, algorithm=settings.ACCESS_TOKEN_ALGORITHM)

def auth_headers(user):
    return {"Authorization": f"Bearer {token_for(user)}"}

def wallet_balance(db, user_id) -> Decimal:
    """Balance as stored right now, bypassing the session's identity map."""
    db.expire_all()
    return crud_wallet.get_by_user_id(db, user_id=user_id).amount
