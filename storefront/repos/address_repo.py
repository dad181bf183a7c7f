# storefront/repos/address_repo.py
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from storefront.data.models.address import AddressModel


class AddressRepo:
    def __init__(self, db: Session):
        self.db = db

    def list_for_user(self, user_id: str) -> list[AddressModel]:
        return list(
            self.db.execute(
                select(AddressModel)
                .where(AddressModel.user_id == user_id)
                .order_by(AddressModel.is_default.desc(), AddressModel.id)
            ).scalars()
        )

    def get_address(self, address_id: int) -> AddressModel | None:
        return self.db.get(AddressModel, address_id)

    def clear_default(self, user_id: str) -> int:
        result = self.db.execute(
            update(AddressModel)
            .where(AddressModel.user_id == user_id, AddressModel.is_default.is_(True))
            .values(is_default=False)
        )
        return result.rowcount

    def add_address(self, address: AddressModel) -> AddressModel:
        self.db.add(address)
        self.db.flush()
        return address

    def delete_address(self, address: AddressModel) -> None:
        self.db.delete(address)

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
