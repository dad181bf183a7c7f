# storefront/api/routers/addresses.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.domain.errors import AddressNotFound, AddressValidationError
from storefront.domain.schemas import AddressDraft, AddressOut
from storefront.services.address_service import AddressBook

router = APIRouter(prefix="/users/{user_id}/addresses", tags=["addresses"])


@router.get("/", response_model=List[AddressOut])
def list_addresses(user_id: str, db: Session = Depends(get_db)):
    return AddressBook(db).list_addresses(user_id)


@router.post("/", response_model=AddressOut, status_code=201)
def create_address(user_id: str, payload: AddressDraft, db: Session = Depends(get_db)):
    try:
        return AddressBook(db).create_address(user_id, payload)
    except AddressValidationError as e:
        raise HTTPException(status_code=422, detail={"message": "Invalid address", "errors": e.errors})


@router.post("/{address_id}/default", response_model=AddressOut)
def set_default(user_id: str, address_id: int, db: Session = Depends(get_db)):
    try:
        return AddressBook(db).set_default(user_id, address_id)
    except AddressNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.delete("/{address_id}", status_code=204)
def delete_address(user_id: str, address_id: int, db: Session = Depends(get_db)):
    try:
        AddressBook(db).delete_address(user_id, address_id)
    except AddressNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
