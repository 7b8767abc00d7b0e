"""
Spreadsheet interchange: whole-ledger export to .xlsx and import back.

The workbook layout is a contract with people who edit these files offline:
sheet names and column headers below are versioned. Never rename a header in
place; add the new text to the front of its alias list instead.

Import rules:
  - sheets are found by case-insensitive name, trying each alias in order
  - each field is read from the first header alias present in the row
  - a missing sheet leaves that collection as it is, and so does a sheet
    with no known column or with rows none of which parse
  - unknown columns are ignored with a warning
  - a movement whose kind or product disagrees with earlier rows of its
    batch is dropped with a warning
  - registry and product codes are left-padded to 3 digits
  - dates become YYYY-MM-DD whatever the cell holds

Lossy on a round trip: analyses of depleted batches (they only travel inside
Estoque_Atual), and the derived sheets Estoque_MO and Cobranca_MO, which are
never read back.
"""
from __future__ import annotations

import io
import logging
import re
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Optional

import pandas as pd

from greenstock.errors import ValidationError
from greenstock.models import (
    ASSAY_FIELDS,
    Address,
    BatchKind,
    LedgerState,
    Movement,
    ProductAnalysis,
    ProductEntity,
    ProductionOrder,
    ProductionOutput,
    RegistryEntity,
    ServiceEntity,
)
from greenstock.services.inventory import aggregate, labor_billing
from greenstock.services.movements import require_batch_identity
from greenstock.utils import is_blank, new_id, normalize_date, pad_code, to_float

logger = logging.getLogger(__name__)

EXPORT_FILE_NAME = "banco_dados_controle_estoque.xlsx"

SERVICE_LABEL = "M.O."
PRODUCT_LABEL = "Produto"
_SERVICE_TYPES = {"m.o.", "mo", "m.o", "service", "serviço", "servico"}

# ---------------------------------------------------------------------------
# Sheet names (first alias is the one written on export)
# ---------------------------------------------------------------------------

SHEET_ALIASES: dict[str, tuple[str, ...]] = {
    "stock": ("Estoque_Atual", "Estoque Atual"),
    "movements": ("Entrada_Saida", "Entrada/Saida", "Movimentacoes", "Movimentações"),
    "service_stock": ("Estoque_MO",),
    "labor_billing": ("Cobranca_MO", "Cobrança_MO"),
    "services": ("Cad_Servico", "Servicos", "Serviços"),
    "suppliers": ("Cad_Fornecedores", "Fornecedores"),
    "clients": ("Cad_Clientes", "Clientes"),
    "products": ("Cad_Produtos", "Produtos"),
    "production_orders": ("OP", "OPs", "Ordens de Produção"),
    "production_outputs": ("OP_Saidas", "OP_Saídas"),
}

# ---------------------------------------------------------------------------
# Columns: canonical field -> accepted headers (first one is written on export)
# ---------------------------------------------------------------------------

_REGISTRY_COLUMNS: dict[str, tuple[str, ...]] = {
    "id": ("ID",),
    "code": ("Código", "Codigo", "Cód.", "code"),
    "name": ("Nome", "Razão Social", "name"),
    "contact": ("Contato", "contact"),
    "cnpj": ("CNPJ", "CPF/CNPJ", "cnpj"),
    "ie": ("IE", "Inscrição Estadual", "ie"),
    "state": ("UF", "Estado", "state"),
    "city": ("Cidade", "city"),
    "neighborhood": ("Bairro", "neighborhood"),
    "street": ("Rua", "Endereço", "Logradouro", "street"),
    "number": ("Número", "Numero", "Nº", "number"),
    "zip": ("CEP", "zip"),
    "phone": ("Telefone", "Fone", "phone"),
    "email": ("E-mail", "Email", "email"),
}

COLUMN_ALIASES: dict[str, dict[str, tuple[str, ...]]] = {
    "movements": {
        "batch_id": ("Lote", "Lote ID", "batchId"),
        "kind": ("Tipo", "Type"),
        "product_name": ("Nome do Produto", "Produto", "productName"),
        "product_code": ("Cód. Produto", "Cod. Produto", "Código Produto", "productCode"),
        "supplier": ("Fornecedor", "Fornecedor/Cliente", "Cliente", "supplier"),
        "supplier_code": ("Cód. Fornecedor", "Cod. Fornecedor", "Código Fornecedor", "supplierCode"),
        "entry_date": ("Data Entrada", "Data de Entrada", "entryDate"),
        "exit_date": ("Data Saída", "Data Saida", "Data de Saída", "exitDate"),
        "quantity": ("Quantidade", "Qtd", "Quantidade (Kg)", "quantity"),
        "unit_cost": ("Valor Unitário", "Valor Unitario", "Valor Unit.", "Custo Unitário", "unitCost"),
        "observations": ("Observações", "Observacoes", "Obs", "observations"),
        "id": ("ID",),
    },
    "stock": {
        "batch_id": ("Lote",),
        "product_name": ("Produto",),
        "product_code": ("Código", "Codigo", "Cód. Produto"),
        "supplier": ("Fornecedor",),
        "quantity": ("Saldo (Kg)", "Saldo"),
        "estimated_value": ("V. Estimado", "Valor Estimado"),
        "cu": ("Cu (%)", "Cu"),
        "zn": ("Zn (%)", "Zn"),
        "mn": ("Mn (%)", "Mn"),
        "b": ("B (%)", "B"),
        "pb": ("Pb (%)", "Pb"),
        "fe": ("Fe (%)", "Fe"),
        "cd": ("Cd (ppm)", "Cd"),
        "h2o": ("H2O (%)", "H2O", "Umidade (%)"),
        "mesh35": ("#35 (%)", "#35", "Mesh 35 (%)"),
        "ret": ("Ret. (%)", "Ret. %", "Ret"),
        "observations": ("Observações", "Observacoes"),
    },
    "service_stock": {
        "batch_id": ("Lote",),
        "product_name": ("Serviço",),
        "product_code": ("Código",),
        "supplier": ("Fornecedor",),
        "quantity": ("Saldo",),
        "estimated_value": ("V. Estimado",),
        "observations": ("Observações",),
    },
    "labor_billing": {
        "exit_date": ("Data Saída",),
        "batch_id": ("Lote",),
        "product_name": ("Serviço",),
        "supplier": ("Cliente",),
        "quantity": ("Qtd",),
        "unit_cost": ("Valor Unit.",),
        "total": ("Total",),
    },
    "suppliers": _REGISTRY_COLUMNS,
    "clients": _REGISTRY_COLUMNS,
    "products": {
        "id": ("ID",),
        "code": ("Código", "Codigo", "Cód. Produto", "code"),
        "name": ("Nome", "Produto", "name"),
    },
    "services": {
        "id": ("ID",),
        "code": ("Código", "Codigo", "code"),
        "name": ("Nome", "Serviço", "name"),
        "default_price": ("Preço Padrão", "Preco Padrao", "Valor", "defaultPrice"),
    },
    "production_orders": {
        "id": ("ID",),
        "date": ("Data",),
        "source_batch_id": ("Lote Origem",),
        "source_kind": ("Origem Tipo",),
        "source_product": ("Produto Origem",),
        "processed_quantity": ("Qtd Processada", "Quantidade Processada"),
        "supplier": ("Fornecedor",),
        "supplier_code": ("Cód. Fornecedor", "Cod. Fornecedor"),
        "outputs": ("Saídas", "Saidas"),
        "loss": ("Perda (Kg)", "Perda"),
    },
    "production_outputs": {
        "order_id": ("ID OP", "OP"),
        "new_batch_id": ("Novo Lote", "Lote"),
        "product_name": ("Produto",),
        "product_code": ("Cód. Produto", "Código"),
        "quantity": ("Quantidade", "Qtd"),
        "unit_cost": ("Valor Unitário", "Valor Unit."),
        "destination_kind": ("Destino Tipo", "Tipo"),
    },
}

# Collections an import can replace, in the order they are read
IMPORTED_COLLECTIONS = ("suppliers", "clients", "products", "services", "movements", "analyses", "production_orders")

# "12.5kg Fertilizante [Prod] (001/004/010) R$3.2"
_OUTPUT_SUMMARY = re.compile(
    r"^\s*(?P<qty>-?[\d.,]+)\s*kg\s+(?P<name>.*?)\s+\[(?P<kind>M\.O\.|Prod)\]\s+"
    r"\((?P<batch>[^)]*)\)\s+R\$\s*(?P<cost>-?[\d.,]+)\s*$"
)


@dataclass
class ImportResult:
    applied: bool
    reason: str = ""
    loaded: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass
class ParsedWorkbook:
    collections: dict[str, list] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Generic lookups
# ---------------------------------------------------------------------------


def _norm(s: Any) -> str:
    return str(s).strip().lower()


def find_sheet(sheets: Mapping[str, pd.DataFrame], aliases: Iterable[str]) -> Optional[pd.DataFrame]:
    by_name = {_norm(name): df for name, df in sheets.items()}
    for alias in aliases:
        if _norm(alias) in by_name:
            return by_name[_norm(alias)]
    return None


def find_value(row: Mapping[str, Any], aliases: Iterable[str]) -> Any:
    """Value of the first alias present in the row (case/space-insensitive), else None."""
    keys = {_norm(k): k for k in row}
    for alias in aliases:
        k = keys.get(_norm(alias))
        if k is not None:
            v = row[k]
            return None if is_blank(v) else v
    return None


def _text(v: Any) -> str:
    if is_blank(v):
        return ""
    if isinstance(v, float) and v.is_integer():
        v = int(v)
    return str(v).strip()


def _is_service(v: Any) -> bool:
    return _norm(v) in _SERVICE_TYPES if not is_blank(v) else False


def _records(df: pd.DataFrame) -> list[dict[str, Any]]:
    rows = []
    for r in df.to_dict(orient="records"):
        r = {str(k): v for k, v in r.items()}
        if all(is_blank(v) for v in r.values()):
            continue
        rows.append(r)
    return rows


class _RowReader:
    def __init__(self, collection: str, row: Mapping[str, Any]):
        self.columns = COLUMN_ALIASES[collection]
        self.row = row

    def raw(self, name: str) -> Any:
        return find_value(self.row, self.columns[name])

    def text(self, name: str) -> str:
        return _text(self.raw(name))

    def code(self, name: str) -> str:
        return pad_code(self.raw(name))

    def number(self, name: str) -> float:
        return to_float(self.raw(name))

    def date(self, name: str) -> str:
        return normalize_date(self.raw(name))


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


def _headers(collection: str) -> dict[str, str]:
    return {name: aliases[0] for name, aliases in COLUMN_ALIASES[collection].items()}


def _frame(collection: str, rows: list[dict[str, Any]]) -> pd.DataFrame:
    h = _headers(collection)
    return pd.DataFrame([{h[k]: v for k, v in r.items()} for r in rows], columns=list(h.values()))


def _kind_label(is_service: bool) -> str:
    return SERVICE_LABEL if is_service else PRODUCT_LABEL


def output_summary(o: ProductionOutput) -> str:
    tag = SERVICE_LABEL if o.destination_is_service else "Prod"
    return f"{o.quantity:.4f}kg {o.product_name} [{tag}] ({o.new_batch_id}) R${o.unit_cost:.4f}"


def _stock_rows(state: LedgerState) -> list[dict[str, Any]]:
    rows = []
    for b in aggregate(state.movements, state.analyses, kind=BatchKind.PHYSICAL):
        row = {
            "batch_id": b.batch_id,
            "product_name": b.product_name,
            "product_code": b.product_code,
            "supplier": b.supplier,
            "quantity": b.remaining_quantity,
            "estimated_value": b.estimated_value,
        }
        row.update({f: getattr(b.analysis, f) for f in ASSAY_FIELDS})
        row["observations"] = b.observations
        rows.append(row)
    return rows


def _service_stock_rows(state: LedgerState) -> list[dict[str, Any]]:
    return [
        {
            "batch_id": b.batch_id,
            "product_name": b.product_name,
            "product_code": b.product_code,
            "supplier": b.supplier,
            "quantity": b.remaining_quantity,
            "estimated_value": b.estimated_value,
            "observations": b.observations,
        }
        for b in aggregate(state.movements, state.analyses, kind=BatchKind.SERVICE)
    ]


def _movement_rows(movements: Iterable[Movement]) -> list[dict[str, Any]]:
    return [
        {
            "batch_id": m.batch_id,
            "kind": _kind_label(m.is_service),
            "product_name": m.product_name,
            "product_code": m.product_code,
            "supplier": m.supplier,
            "supplier_code": m.supplier_code,
            "entry_date": m.entry_date,
            "exit_date": m.exit_date,
            "quantity": m.quantity,
            "unit_cost": m.unit_cost,
            "observations": m.observations,
            "id": m.id,
        }
        for m in movements
    ]


def _billing_rows(movements: Iterable[Movement]) -> list[dict[str, Any]]:
    rows, _ = labor_billing(movements)
    return [
        {
            "exit_date": m.exit_date,
            "batch_id": m.batch_id,
            "product_name": m.product_name,
            "supplier": m.supplier,
            "quantity": m.quantity,
            "unit_cost": m.unit_cost,
            "total": m.quantity * m.unit_cost,
        }
        for m in rows
    ]


def _registry_rows(entities: Iterable[RegistryEntity]) -> list[dict[str, Any]]:
    rows = []
    for e in entities:
        rows.append(
            {
                "id": e.id,
                "code": e.code,
                "name": e.name,
                "contact": e.contact,
                "cnpj": e.cnpj,
                "ie": e.ie,
                "state": e.address.state,
                "city": e.address.city,
                "neighborhood": e.address.neighborhood,
                "street": e.address.street,
                "number": e.address.number,
                "zip": e.address.zip,
                "phone": e.phone,
                "email": e.email,
            }
        )
    return rows


def _order_rows(orders: Iterable[ProductionOrder]) -> list[dict[str, Any]]:
    return [
        {
            "id": o.id,
            "date": o.date,
            "source_batch_id": o.source_batch_id,
            "source_kind": _kind_label(o.source_is_service),
            "source_product": o.source_product,
            "processed_quantity": o.processed_quantity,
            "supplier": o.supplier,
            "supplier_code": o.supplier_code,
            "outputs": "; ".join(output_summary(out) for out in o.outputs),
            "loss": o.loss,
        }
        for o in orders
    ]


def _output_rows(orders: Iterable[ProductionOrder]) -> list[dict[str, Any]]:
    return [
        {
            "order_id": o.id,
            "new_batch_id": out.new_batch_id,
            "product_name": out.product_name,
            "product_code": out.product_code,
            "quantity": out.quantity,
            "unit_cost": out.unit_cost,
            "destination_kind": _kind_label(out.destination_is_service),
        }
        for o in orders
        for out in o.outputs
    ]


def export_frames(state: LedgerState) -> dict[str, pd.DataFrame]:
    """One DataFrame per sheet, in workbook order. Stock sheets are derived."""
    return {
        SHEET_ALIASES["stock"][0]: _frame("stock", _stock_rows(state)),
        SHEET_ALIASES["movements"][0]: _frame("movements", _movement_rows(state.movements)),
        SHEET_ALIASES["service_stock"][0]: _frame("service_stock", _service_stock_rows(state)),
        SHEET_ALIASES["labor_billing"][0]: _frame("labor_billing", _billing_rows(state.movements)),
        SHEET_ALIASES["services"][0]: _frame(
            "services",
            [{"id": s.id, "code": s.code, "name": s.name, "default_price": s.default_price} for s in state.services],
        ),
        SHEET_ALIASES["suppliers"][0]: _frame("suppliers", _registry_rows(state.suppliers)),
        SHEET_ALIASES["clients"][0]: _frame("clients", _registry_rows(state.clients)),
        SHEET_ALIASES["products"][0]: _frame(
            "products", [{"id": p.id, "code": p.code, "name": p.name} for p in state.products]
        ),
        SHEET_ALIASES["production_orders"][0]: _frame("production_orders", _order_rows(state.production_orders)),
        SHEET_ALIASES["production_outputs"][0]: _frame("production_outputs", _output_rows(state.production_orders)),
    }


def export_workbook(state: LedgerState) -> bytes:
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        for sheet, df in export_frames(state).items():
            df.to_excel(writer, sheet_name=sheet, index=False)
    return buf.getvalue()


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------


def _parse_movement(row: Mapping[str, Any]) -> Optional[Movement]:
    r = _RowReader("movements", row)
    entry_date = r.date("entry_date")
    exit_date = r.date("exit_date")
    if not entry_date and not exit_date:
        return None
    return Movement(
        id=r.text("id") or new_id(),
        batch_id=r.text("batch_id"),
        entry_date=entry_date,
        exit_date="" if entry_date else exit_date,
        supplier_code=r.code("supplier_code"),
        supplier=r.text("supplier"),
        product_code=r.code("product_code"),
        product_name=r.text("product_name"),
        quantity=r.number("quantity"),
        unit_cost=r.number("unit_cost"),
        kind=BatchKind.of(_is_service(r.raw("kind"))),
        observations=r.text("observations"),
    )


def _parse_analysis(row: Mapping[str, Any]) -> Optional[ProductAnalysis]:
    r = _RowReader("stock", row)
    batch_id = r.text("batch_id")
    product_code = r.code("product_code")
    if not batch_id and not product_code:
        return None
    return ProductAnalysis(
        batch_id=batch_id,
        product_code=product_code,
        **{f: r.number(f) for f in ASSAY_FIELDS},
    )


def _parse_registry(collection: str) -> Callable[[Mapping[str, Any]], Optional[RegistryEntity]]:
    def parse(row: Mapping[str, Any]) -> Optional[RegistryEntity]:
        r = _RowReader(collection, row)
        code = r.code("code")
        name = r.text("name")
        if not code and not name:
            return None
        return RegistryEntity(
            id=r.text("id") or new_id(),
            code=code,
            name=name,
            contact=r.text("contact"),
            cnpj=r.text("cnpj"),
            ie=r.text("ie"),
            address=Address(
                state=r.text("state"),
                city=r.text("city"),
                neighborhood=r.text("neighborhood"),
                street=r.text("street"),
                number=r.text("number"),
                zip=r.text("zip"),
            ),
            phone=r.text("phone"),
            email=r.text("email"),
        )

    return parse


def _parse_product(row: Mapping[str, Any]) -> Optional[ProductEntity]:
    r = _RowReader("products", row)
    code, name = r.code("code"), r.text("name")
    if not code and not name:
        return None
    return ProductEntity(id=r.text("id") or new_id(), code=code, name=name)


def _parse_service(row: Mapping[str, Any]) -> Optional[ServiceEntity]:
    r = _RowReader("services", row)
    code, name = r.code("code"), r.text("name")
    if not code and not name:
        return None
    price = r.raw("default_price")
    return ServiceEntity(
        id=r.text("id") or new_id(),
        code=code,
        name=name,
        default_price=None if price is None else to_float(price),
    )


def _outputs_from_summary(summary: str) -> tuple[ProductionOutput, ...]:
    outputs = []
    for part in summary.split(";"):
        if not part.strip():
            continue
        m = _OUTPUT_SUMMARY.match(part)
        if m is None:
            raise ValueError(f"unreadable output {part.strip()!r}")
        batch = m.group("batch").strip()
        outputs.append(
            ProductionOutput(
                product_name=m.group("name").strip(),
                product_code=batch.split("/")[-1] if batch else "",
                quantity=to_float(m.group("qty")),
                new_batch_id=batch,
                unit_cost=to_float(m.group("cost")),
                destination_is_service=m.group("kind") == SERVICE_LABEL,
            )
        )
    return tuple(outputs)


def _parse_orders(
    order_rows: list[dict[str, Any]],
    output_rows: Optional[list[dict[str, Any]]],
    warnings: list[str],
) -> list[ProductionOrder]:
    by_order: dict[str, list[ProductionOutput]] = defaultdict(list)
    for row in output_rows or []:
        r = _RowReader("production_outputs", row)
        order_id = r.text("order_id")
        if not order_id:
            continue
        by_order[order_id].append(
            ProductionOutput(
                product_name=r.text("product_name"),
                product_code=r.code("product_code"),
                quantity=r.number("quantity"),
                new_batch_id=r.text("new_batch_id"),
                unit_cost=r.number("unit_cost"),
                destination_is_service=_is_service(r.raw("destination_kind")),
            )
        )

    orders = []
    for i, row in enumerate(order_rows, start=2):
        r = _RowReader("production_orders", row)
        order_id = r.text("id")
        if order_id and output_rows is not None:
            outputs = tuple(by_order.get(order_id, ()))
        else:
            # Older workbooks only carry the one-line summary
            try:
                outputs = _outputs_from_summary(r.text("outputs"))
            except ValueError as e:
                warnings.append(f"OP row {i}: {e}; outputs left empty")
                outputs = ()
        orders.append(
            ProductionOrder(
                id=order_id or new_id(),
                date=r.date("date"),
                source_batch_id=r.text("source_batch_id"),
                source_product=r.text("source_product"),
                source_is_service=_is_service(r.raw("source_kind")),
                processed_quantity=r.number("processed_quantity"),
                supplier=r.text("supplier"),
                supplier_code=r.code("supplier_code"),
                outputs=outputs,
                loss=r.number("loss"),
            )
        )
    return orders


def _parse_rows(sheet: str, rows: list[dict[str, Any]], parse: Callable, warnings: list[str]) -> list:
    out = []
    # Row 1 is the header
    for i, row in enumerate(rows, start=2):
        try:
            rec = parse(row)
        except (TypeError, ValueError) as e:
            warnings.append(f"{sheet} row {i}: {e}")
            continue
        if rec is None:
            warnings.append(f"{sheet} row {i}: missing required columns, skipped")
            continue
        out.append(rec)
    return out


def _has_known_columns(sheet: str, df: pd.DataFrame, collection: str, warnings: list[str]) -> bool:
    """Warn once per header no alias knows. False when not a single header is known."""
    known = {_norm(a) for aliases in COLUMN_ALIASES[collection].values() for a in aliases}
    headers = [str(c) for c in df.columns]
    unknown = [h for h in headers if _norm(h) not in known]
    for h in unknown:
        warnings.append(f"{sheet}: unrecognised column {h!r} ignored")
    return len(unknown) < len(headers)


def _consistent_movements(movements: list[Movement], warnings: list[str]) -> list[Movement]:
    """Drop movements whose kind or product disagrees with earlier rows of the same batch."""
    kept: list[Movement] = []
    for m in movements:
        if m.batch_id:
            try:
                require_batch_identity(m, kept)
            except ValidationError as e:
                warnings.append(f"{SHEET_ALIASES['movements'][0]}: movement {m.id} dropped: {e}")
                continue
        kept.append(m)
    return kept


def read_workbook(data: bytes) -> dict[str, pd.DataFrame]:
    return pd.read_excel(io.BytesIO(data), sheet_name=None, engine="openpyxl")


def parse_workbook(sheets: Mapping[str, pd.DataFrame]) -> ParsedWorkbook:
    """
    Map workbook sheets onto ledger collections.

    Only collections whose sheet was found and could be read appear in the
    result; the rest must be left untouched by the caller. A sheet with no
    recognised column, or with rows none of which parse, counts as skipped.
    """
    parsed = ParsedWorkbook()

    simple: list[tuple[str, str, Callable]] = [
        ("suppliers", "suppliers", _parse_registry("suppliers")),
        ("clients", "clients", _parse_registry("clients")),
        ("products", "products", _parse_product),
        ("services", "services", _parse_service),
        ("movements", "movements", _parse_movement),
        ("analyses", "stock", _parse_analysis),
    ]
    for collection, sheet_key, parse in simple:
        df = find_sheet(sheets, SHEET_ALIASES[sheet_key])
        if df is None:
            parsed.skipped.append(collection)
            continue
        sheet = SHEET_ALIASES[sheet_key][0]
        if not _has_known_columns(sheet, df, sheet_key, parsed.warnings):
            parsed.warnings.append(f"{sheet}: no recognised columns; {collection} left as they were")
            parsed.skipped.append(collection)
            continue
        rows = _records(df)
        records = _parse_rows(sheet, rows, parse, parsed.warnings)
        if rows and not records:
            parsed.warnings.append(f"{sheet}: no readable rows; {collection} left as they were")
            parsed.skipped.append(collection)
            continue
        if collection == "movements":
            records = _consistent_movements(records, parsed.warnings)
        parsed.collections[collection] = records

    orders_df = find_sheet(sheets, SHEET_ALIASES["production_orders"])
    orders_sheet = SHEET_ALIASES["production_orders"][0]
    if orders_df is None:
        parsed.skipped.append("production_orders")
    elif not _has_known_columns(orders_sheet, orders_df, "production_orders", parsed.warnings):
        parsed.warnings.append(f"{orders_sheet}: no recognised columns; production_orders left as they were")
        parsed.skipped.append("production_orders")
    else:
        outputs_df = find_sheet(sheets, SHEET_ALIASES["production_outputs"])
        outputs_sheet = SHEET_ALIASES["production_outputs"][0]
        if outputs_df is not None and not _has_known_columns(
            outputs_sheet, outputs_df, "production_outputs", parsed.warnings
        ):
            # Fall back to the summary column
            outputs_df = None
        parsed.collections["production_orders"] = _parse_orders(
            _records(orders_df),
            None if outputs_df is None else _records(outputs_df),
            parsed.warnings,
        )

    known = {_norm(a) for aliases in SHEET_ALIASES.values() for a in aliases}
    for name in sheets:
        if _norm(name) not in known:
            parsed.warnings.append(f"Unrecognised sheet {name!r} ignored")

    for w in parsed.warnings:
        logger.warning("Import: %s", w)
    return parsed


def import_workbook(data: bytes) -> tuple[Optional[ParsedWorkbook], ImportResult]:
    """
    Read and parse a workbook without touching any state.

    Returns (parsed, result). parsed is None when the file could not be used
    at all; result then says why.
    """
    try:
        sheets = read_workbook(data)
    except Exception as e:  # openpyxl/zipfile raise a wide range on bad files
        logger.warning("Import: unreadable workbook: %s", e)
        return None, ImportResult(applied=False, reason=f"Could not read workbook: {e}")

    parsed = parse_workbook(sheets)
    if not parsed.collections:
        return None, ImportResult(
            applied=False,
            reason="No recognised sheets found.",
            skipped=parsed.skipped,
            warnings=parsed.warnings,
        )
    return parsed, ImportResult(
        applied=False,
        loaded=[c for c in IMPORTED_COLLECTIONS if c in parsed.collections],
        skipped=parsed.skipped,
        warnings=parsed.warnings,
    )
