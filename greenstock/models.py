from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields, replace
from enum import Enum
from typing import Any, Optional

from greenstock.utils import to_float


class BatchKind(str, Enum):
    PHYSICAL = "physical"
    SERVICE = "service"

    @classmethod
    def of(cls, is_service: bool) -> "BatchKind":
        return cls.SERVICE if is_service else cls.PHYSICAL


def _str(v: Any) -> str:
    return "" if v is None else str(v)


def _kind_from(d: dict) -> BatchKind:
    if "kind" in d and d["kind"] is not None:
        return BatchKind(str(d["kind"]))
    # Older state stored a boolean flag
    return BatchKind.of(bool(d.get("is_service", d.get("isService", False))))


@dataclass
class Movement:
    """
    One inventory change. An entry if entry_date is set, an exit otherwise.

    For exits, supplier/supplier_code hold the client.
    """

    id: str
    batch_id: str = ""
    entry_date: str = ""
    exit_date: str = ""
    supplier_code: str = ""
    supplier: str = ""
    product_code: str = ""
    product_name: str = ""
    quantity: float = 0.0
    unit_cost: float = 0.0
    kind: BatchKind = BatchKind.PHYSICAL
    observations: str = ""

    @property
    def is_entry(self) -> bool:
        return bool(self.entry_date)

    @property
    def is_exit(self) -> bool:
        return bool(self.exit_date) and not self.entry_date

    @property
    def is_service(self) -> bool:
        return self.kind == BatchKind.SERVICE

    @property
    def date(self) -> str:
        return self.entry_date or self.exit_date

    def to_dict(self) -> dict:
        d = asdict(self)
        d["kind"] = self.kind.value
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "Movement":
        return cls(
            id=_str(d["id"]),
            batch_id=_str(d.get("batch_id", d.get("batchId"))),
            entry_date=_str(d.get("entry_date", d.get("entryDate"))),
            exit_date=_str(d.get("exit_date", d.get("exitDate"))),
            supplier_code=_str(d.get("supplier_code", d.get("supplierCode"))),
            supplier=_str(d.get("supplier")),
            product_code=_str(d.get("product_code", d.get("productCode"))),
            product_name=_str(d.get("product_name", d.get("productName"))),
            quantity=to_float(d.get("quantity")),
            unit_cost=to_float(d.get("unit_cost", d.get("unitCost"))),
            kind=_kind_from(d),
            observations=_str(d.get("observations")),
        )


ASSAY_FIELDS = ("cu", "zn", "mn", "b", "pb", "fe", "cd", "h2o", "mesh35", "ret")


@dataclass
class ProductAnalysis:
    product_code: str = ""
    batch_id: str = ""
    cu: float = 0.0
    zn: float = 0.0
    mn: float = 0.0
    b: float = 0.0
    pb: float = 0.0
    fe: float = 0.0
    cd: float = 0.0  # ppm, the rest are %
    h2o: float = 0.0
    mesh35: float = 0.0
    ret: float = 0.0

    @property
    def key(self) -> str:
        return self.batch_id or self.product_code

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> "ProductAnalysis":
        return cls(
            product_code=_str(d.get("product_code", d.get("productCode"))),
            batch_id=_str(d.get("batch_id", d.get("batchId"))),
            **{f: to_float(d.get(f)) for f in ASSAY_FIELDS},
        )


@dataclass
class Address:
    state: str = ""
    city: str = ""
    neighborhood: str = ""
    street: str = ""
    number: str = ""
    zip: str = ""


@dataclass
class RegistryEntity:
    """A supplier or a client. Both lists share this shape."""

    id: str
    code: str
    name: str
    contact: str = ""
    cnpj: str = ""
    ie: str = ""
    address: Address = field(default_factory=Address)
    phone: str = ""
    email: str = ""

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> "RegistryEntity":
        addr = d.get("address") or {}
        return cls(
            id=_str(d["id"]),
            code=_str(d.get("code")),
            name=_str(d.get("name")),
            contact=_str(d.get("contact")),
            cnpj=_str(d.get("cnpj")),
            ie=_str(d.get("ie")),
            address=Address(**{f.name: _str(addr.get(f.name)) for f in fields(Address)}),
            phone=_str(d.get("phone")),
            email=_str(d.get("email")),
        )


@dataclass
class ProductEntity:
    id: str
    code: str
    name: str

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> "ProductEntity":
        return cls(id=_str(d["id"]), code=_str(d.get("code")), name=_str(d.get("name")))


@dataclass
class ServiceEntity:
    id: str
    code: str
    name: str
    default_price: Optional[float] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> "ServiceEntity":
        price = d.get("default_price", d.get("defaultPrice"))
        return cls(
            id=_str(d["id"]),
            code=_str(d.get("code")),
            name=_str(d.get("name")),
            default_price=None if price is None else to_float(price),
        )


@dataclass(frozen=True)
class ProductionOutput:
    product_name: str
    product_code: str
    quantity: float
    new_batch_id: str
    unit_cost: float = 0.0
    destination_is_service: bool = False

    @classmethod
    def from_dict(cls, d: dict) -> "ProductionOutput":
        return cls(
            product_name=_str(d.get("product_name", d.get("productName"))),
            product_code=_str(d.get("product_code", d.get("productCode"))),
            quantity=to_float(d.get("quantity")),
            new_batch_id=_str(d.get("new_batch_id", d.get("newBatchId"))),
            unit_cost=to_float(d.get("unit_cost", d.get("unitCost"))),
            destination_is_service=bool(d.get("destination_is_service", d.get("destinationIsService", False))),
        )


@dataclass(frozen=True)
class ProductionOrder:
    """Audit record of one processing event. Never mutated after creation."""

    id: str
    date: str
    source_batch_id: str
    source_product: str
    source_is_service: bool
    processed_quantity: float
    supplier: str
    supplier_code: str
    outputs: tuple[ProductionOutput, ...] = ()
    loss: float = 0.0

    @property
    def output_quantity(self) -> float:
        return sum(o.quantity for o in self.outputs)

    def to_dict(self) -> dict:
        d = asdict(self)
        d["outputs"] = [asdict(o) for o in self.outputs]
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "ProductionOrder":
        return cls(
            id=_str(d["id"]),
            date=_str(d.get("date")),
            source_batch_id=_str(d.get("source_batch_id", d.get("sourceBatchId"))),
            source_product=_str(d.get("source_product", d.get("sourceProduct"))),
            source_is_service=bool(d.get("source_is_service", d.get("sourceIsService", False))),
            processed_quantity=to_float(d.get("processed_quantity", d.get("processedQuantity"))),
            supplier=_str(d.get("supplier")),
            supplier_code=_str(d.get("supplier_code", d.get("supplierCode"))),
            outputs=tuple(ProductionOutput.from_dict(o) for o in d.get("outputs") or []),
            loss=to_float(d.get("loss")),
        )


@dataclass
class OutputRequest:
    product_name: str
    product_code: str
    quantity: float
    unit_cost: Optional[float] = None
    destination_is_service: bool = False


@dataclass
class ProcessRequest:
    """
    Input to the processing engine. loss=None lets the ledger compute
    processed_quantity - sum(outputs).
    """

    source_batch_id: str
    source_product: str
    processed_quantity: float
    supplier: str
    supplier_code: str
    date: str
    outputs: list[OutputRequest] = field(default_factory=list)
    source_is_service: bool = False
    source_product_code: str = ""
    loss: Optional[float] = None

    def with_loss(self, loss: float) -> "ProcessRequest":
        return replace(self, loss=loss)


@dataclass
class BatchBalance:
    batch_id: str
    kind: BatchKind
    product_name: str
    product_code: str
    supplier: str
    supplier_code: str
    unit_cost: float = 0.0
    remaining_quantity: float = 0.0
    observations: str = ""
    analysis: ProductAnalysis = field(default_factory=ProductAnalysis)

    @property
    def is_service(self) -> bool:
        return self.kind == BatchKind.SERVICE

    @property
    def estimated_value(self) -> float:
        return self.remaining_quantity * self.unit_cost


@dataclass
class LedgerState:
    """Everything the ledger persists, one list per collection key."""

    movements: list[Movement] = field(default_factory=list)
    analyses: list[ProductAnalysis] = field(default_factory=list)
    suppliers: list[RegistryEntity] = field(default_factory=list)
    clients: list[RegistryEntity] = field(default_factory=list)
    products: list[ProductEntity] = field(default_factory=list)
    services: list[ServiceEntity] = field(default_factory=list)
    production_orders: list[ProductionOrder] = field(default_factory=list)


# Collection key -> record type, in persistence order
RECORD_TYPES: dict[str, Any] = {
    "movements": Movement,
    "analyses": ProductAnalysis,
    "suppliers": RegistryEntity,
    "clients": RegistryEntity,
    "products": ProductEntity,
    "services": ServiceEntity,
    "production_orders": ProductionOrder,
}
