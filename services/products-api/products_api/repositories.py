from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import bindparam, delete, func, insert, select, update

from products_api.core.db import DatabaseGateway, StoredProcedure
from products_api.models import products
from products_api.schemas import UPDATABLE_FIELDS, ProductCreate, ProductUpdate

SQL_MODE = "sql"
PROCEDURE_MODE = "procedure"

LIST_PRODUCTS = select(products).order_by(products.c.created_at, products.c.product_id)

GET_PRODUCT = select(products).where(products.c.product_id == bindparam("match_product_id"))

INSERT_PRODUCT = insert(products)

# Absent fields are bound as NULL and keep the stored value.
UPDATE_PRODUCT = (
    update(products)
    .where(products.c.product_id == bindparam("match_product_id"))
    .values(
        {
            products.c[name]: func.coalesce(
                bindparam(f"new_{name}", type_=products.c[name].type), products.c[name]
            )
            for name in UPDATABLE_FIELDS
        }
    )
)

DELETE_PRODUCT = delete(products).where(products.c.product_id == bindparam("match_product_id"))

PROCEDURES = {
    "list": "dbo.usp_ListProducts",
    "get": "dbo.usp_GetProductById",
    "create": "dbo.usp_AddProduct",
    "update": "dbo.usp_UpdateProduct",
    "delete": "dbo.usp_DeleteProduct",
}


class ProductRepository:
    """
    Maps product operations to a single gateway statement each.

    `mode` selects literal parameterized SQL or stored-procedure calls.
    """

    def __init__(self, gateway: DatabaseGateway, mode: str = SQL_MODE) -> None:
        if mode not in (SQL_MODE, PROCEDURE_MODE):
            raise ValueError(f"Unknown statement mode: {mode!r}")
        self.gateway = gateway
        self.mode = mode

    def _procedure(self, operation: str, **params: Any) -> StoredProcedure:
        return StoredProcedure(PROCEDURES[operation], params)

    def list_products(self) -> List[Dict[str, Any]]:
        if self.mode == PROCEDURE_MODE:
            return self.gateway.execute(self._procedure("list")).rows
        return self.gateway.execute(LIST_PRODUCTS).rows

    def get_product(self, product_id: str) -> Optional[Dict[str, Any]]:
        if self.mode == PROCEDURE_MODE:
            return self.gateway.execute(self._procedure("get", productId=product_id)).first()
        return self.gateway.execute(GET_PRODUCT, {"match_product_id": product_id}).first()

    def create_product(self, payload: ProductCreate) -> None:
        values = payload.model_dump()
        values["created_at"] = datetime.now(timezone.utc)

        if self.mode == PROCEDURE_MODE:
            self.gateway.execute(self._procedure("create", **_camel(values)))
            return
        self.gateway.execute(INSERT_PRODUCT, values)

    def update_product(self, product_id: str, payload: ProductUpdate) -> int:
        """Returns the affected row count (-1 when the driver cannot tell)."""
        changes = payload.changes()
        values = {name: changes.get(name) for name in UPDATABLE_FIELDS}

        if self.mode == PROCEDURE_MODE:
            result = self.gateway.execute(self._procedure("update", productId=product_id, **_camel(values)))
        else:
            params = {f"new_{name}": value for name, value in values.items()}
            params["match_product_id"] = product_id
            result = self.gateway.execute(UPDATE_PRODUCT, params)
        return result.rowcount

    def delete_product(self, product_id: str) -> int:
        if self.mode == PROCEDURE_MODE:
            return self.gateway.execute(self._procedure("delete", productId=product_id)).rowcount
        return self.gateway.execute(DELETE_PRODUCT, {"match_product_id": product_id}).rowcount


def _camel(values: Dict[str, Any]) -> Dict[str, Any]:
    out = {}
    for key, value in values.items():
        head, *rest = key.split("_")
        out[head + "".join(p.title() for p in rest)] = value
    return out
