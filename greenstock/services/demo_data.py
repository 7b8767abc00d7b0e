from __future__ import annotations

import random
from datetime import date, timedelta

from greenstock.ledger import Ledger
from greenstock.models import (
    Address,
    BatchKind,
    Movement,
    OutputRequest,
    ProcessRequest,
    ProductAnalysis,
    ProductEntity,
    RegistryEntity,
    ServiceEntity,
)
from greenstock.services.registries import find_by_code


DEFAULT_SUPPLIERS = [
    ("001", "Mineração Vale Verde", "Belo Horizonte", "MG"),
    ("002", "Sulfatos do Sul", "Curitiba", "PR"),
]
DEFAULT_CLIENTS = [
    ("101", "Agro Cerrado Ltda", "Rio Verde", "GO"),
    ("102", "Fertilizantes Paraná", "Londrina", "PR"),
]
DEFAULT_PRODUCTS = [
    ("010", "Óxido de Zinco"),
    ("011", "Sulfato de Zinco"),
    ("020", "Óxido de Cobre"),
    ("021", "Sulfato de Cobre"),
    ("030", "Ácido Bórico"),
]
DEFAULT_SERVICES = [
    ("900", "Moagem (M.O.)", 0.35),
    ("901", "Peneiramento (M.O.)", 0.20),
]


def _entity(code: str, name: str, city: str, state: str) -> RegistryEntity:
    return RegistryEntity(id="", code=code, name=name, address=Address(city=city, state=state))


def upsert_reference_data(ledger: Ledger) -> None:
    for code, name, city, state in DEFAULT_SUPPLIERS:
        if find_by_code(ledger.state.suppliers, code) is None:
            ledger.save_supplier(_entity(code, name, city, state))

    for code, name, city, state in DEFAULT_CLIENTS:
        if find_by_code(ledger.state.clients, code) is None:
            ledger.save_client(_entity(code, name, city, state))

    for code, name in DEFAULT_PRODUCTS:
        if find_by_code(ledger.state.products, code) is None:
            ledger.save_product(ProductEntity(id="", code=code, name=name))

    for code, name, price in DEFAULT_SERVICES:
        if find_by_code(ledger.state.services, code) is None:
            ledger.save_service(ServiceEntity(id="", code=code, name=name, default_price=price))


def load_demo_data(ledger: Ledger, *, seed: int = 7) -> None:
    rng = random.Random(seed)
    upsert_reference_data(ledger)

    suppliers = ledger.state.suppliers
    clients = ledger.state.clients
    products = ledger.state.products

    # Purchases over the last few weeks
    base_date = date.today() - timedelta(days=21)
    for i in range(6):
        sup = suppliers[i % len(suppliers)]
        prod = products[i % len(products)]
        ledger.add_movement(
            Movement(
                id="",
                entry_date=(base_date + timedelta(days=2 * i)).isoformat(),
                supplier=sup.name,
                supplier_code=sup.code,
                product_code=prod.code,
                product_name=prod.name,
                quantity=float(rng.randint(8, 25) * 100),
                unit_cost=round(rng.uniform(4.0, 12.0), 2),
                observations="Demo purchase",
            )
        )

    # Analyses on the first batches
    for b in ledger.available_batches(BatchKind.PHYSICAL)[:3]:
        ledger.save_analysis(
            ProductAnalysis(
                batch_id=b.batch_id,
                product_code=b.product_code,
                cu=round(rng.uniform(0, 25), 2),
                zn=round(rng.uniform(20, 72), 2),
                h2o=round(rng.uniform(0.5, 3.0), 2),
                mesh35=round(rng.uniform(80, 99), 1),
            )
        )

    # A couple of sales
    for b in ledger.available_batches(BatchKind.PHYSICAL)[:2]:
        client = clients[0]
        ledger.add_movement(
            Movement(
                id="",
                batch_id=b.batch_id,
                exit_date=(date.today() - timedelta(days=3)).isoformat(),
                supplier=client.name,
                supplier_code=client.code,
                product_code=b.product_code,
                product_name=b.product_name,
                quantity=round(b.remaining_quantity * 0.3, 1),
            )
        )

    # One processing run: oxide -> sulphate, with some loss
    source = next(
        (b for b in ledger.available_batches(BatchKind.PHYSICAL) if b.product_code == "010"),
        None,
    )
    sulphate = find_by_code(products, "011")
    if source is not None and sulphate is not None:
        processed = round(source.remaining_quantity * 0.5, 1)
        ledger.process_order(
            ProcessRequest(
                source_batch_id=source.batch_id,
                source_product=source.product_name,
                processed_quantity=processed,
                supplier=source.supplier,
                supplier_code=source.supplier_code,
                date=(date.today() - timedelta(days=1)).isoformat(),
                outputs=[
                    OutputRequest(
                        product_name=sulphate.name,
                        product_code=sulphate.code,
                        quantity=round(processed * 0.95, 1),
                        unit_cost=round(source.unit_cost * 1.4, 2),
                    )
                ],
            )
        )

    # Labour received from a client, billed as it is returned
    service = ledger.state.services[0]
    client = clients[1]
    m = ledger.add_movement(
        Movement(
            id="",
            entry_date=(date.today() - timedelta(days=5)).isoformat(),
            supplier=client.name,
            supplier_code=client.code,
            product_code=service.code,
            product_name=service.name,
            quantity=1200.0,
            unit_cost=float(service.default_price or 0.0),
            kind=BatchKind.SERVICE,
            observations="Demo M.O. batch",
        )
    )
    ledger.return_labor(date=date.today().isoformat(), client=client, returns=[(m.batch_id, 400.0)])
