# storefront/services/address_service.py
import re
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from storefront.data.models.address import AddressModel
from storefront.domain.errors import AddressNotFound, AddressValidationError
from storefront.domain.schemas import AddressDraft
from storefront.repos.address_repo import AddressRepo
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

_PHONE_RE = re.compile(r"^[0-9+\-\s()]{10,}$")
_ZIP_RE = re.compile(r"^[0-9]{4,10}$")

_SNAPSHOT_FIELDS = (
    "label", "full_name", "phone", "line1", "line2",
    "city", "state", "zip", "country",
)


def validate_draft(draft: AddressDraft) -> Dict[str, str]:
    errors = {}

    if not draft.full_name.strip():
        errors["full_name"] = "Name is required"
    if not draft.phone.strip():
        errors["phone"] = "Phone is required"
    elif not _PHONE_RE.match(draft.phone):
        errors["phone"] = "Invalid phone number"
    if not draft.line1.strip():
        errors["line1"] = "Address is required"
    if not draft.city.strip():
        errors["city"] = "City is required"
    if not draft.state.strip():
        errors["state"] = "State is required"
    if not draft.zip.strip():
        errors["zip"] = "ZIP/PIN is required"
    elif not _ZIP_RE.match(draft.zip):
        errors["zip"] = "Invalid ZIP/PIN code"
    if not draft.country.strip():
        errors["country"] = "Country is required"

    return errors


def shipping_snapshot(address: AddressModel) -> Dict[str, Any]:
    """Frozen copy of an address. line2 is only present if the address has one."""
    snapshot = {"address_id": address.id}
    for field in _SNAPSHOT_FIELDS:
        value = getattr(address, field)
        if field == "line2" and value is None:
            continue
        snapshot[field] = value
    return snapshot


class AddressBook:
    def __init__(self, db: Session):
        self.repo = AddressRepo(db)

    def list_addresses(self, user_id: str) -> List[AddressModel]:
        return self.repo.list_for_user(user_id)

    def get_address(self, user_id: str, address_id: int) -> AddressModel:
        address = self.repo.get_address(address_id)
        if not address or address.user_id != user_id:
            raise AddressNotFound(address_id)
        return address

    def create_address(self, user_id: str, draft: AddressDraft) -> AddressModel:
        errors = validate_draft(draft)
        if errors:
            raise AddressValidationError(errors)

        #first address of a user becomes the default
        make_default = draft.is_default or not self.repo.list_for_user(user_id)

        try:
            if make_default:
                self.repo.clear_default(user_id)

            address = self.repo.add_address(
                AddressModel(
                    user_id=user_id,
                    label=draft.label.strip() or "Home",
                    full_name=draft.full_name.strip(),
                    phone=draft.phone.strip(),
                    line1=draft.line1.strip(),
                    line2=draft.line2,
                    city=draft.city.strip(),
                    state=draft.state.strip(),
                    zip=draft.zip.strip(),
                    country=draft.country.strip(),
                    is_default=make_default,
                )
            )
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        logger.info(f"Address {address.id} saved for user {user_id} (default={make_default})")
        return address

    def set_default(self, user_id: str, address_id: int) -> AddressModel:
        address = self.get_address(user_id, address_id)
        try:
            self.repo.clear_default(user_id)
            address.is_default = True
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise
        return address

    def delete_address(self, user_id: str, address_id: int) -> None:
        address = self.get_address(user_id, address_id)
        self.repo.delete_address(address)
        self.repo.commit()
        logger.info(f"Address {address_id} deleted for user {user_id}")
