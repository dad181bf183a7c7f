from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.domain.schemas import TransactionOut
from storefront.services.transaction_log import TransactionLog

router = APIRouter(prefix="/transactions", tags=["transactions"])


@router.get("/", response_model=List[TransactionOut])
def list_transactions(user_id: str = Query(...), db: Session = Depends(get_db)):
    return TransactionLog(db).list_for_user(user_id)
