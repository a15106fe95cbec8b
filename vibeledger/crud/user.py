from vibeledger.crud.base import CRUDBase
from vibeledger.models.user import User
from vibeledger.schemas.user import UserCreate, UserSchema

class CRUDUser(CRUDBase[User, UserCreate, UserSchema]):
    pass

user = CRUDUser(User)
