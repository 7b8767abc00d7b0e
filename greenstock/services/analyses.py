from __future__ import annotations

from typing import Iterable, Optional

from greenstock.models import ProductAnalysis


def upsert_analysis(analyses: Iterable[ProductAnalysis], record: ProductAnalysis) -> list[ProductAnalysis]:
    """
    Replace-by-filter: drop whatever shares the record's key, then append.

    The key is the batch id when the record has one, otherwise the product code.
    """
    kept = [a for a in analyses if a.key != record.key]
    return kept + [record]


def find_analysis(
    analyses: Iterable[ProductAnalysis], batch_id: str, product_code: str
) -> Optional[ProductAnalysis]:
    analyses = list(analyses)
    if batch_id:
        for a in analyses:
            if a.batch_id == batch_id:
                return a
    # Legacy: one analysis for the whole product
    for a in analyses:
        if not a.batch_id and product_code and a.product_code == product_code:
            return a
    return None


def resolve_analysis(analyses: Iterable[ProductAnalysis], batch_id: str, product_code: str) -> ProductAnalysis:
    found = find_analysis(analyses, batch_id, product_code)
    if found is not None:
        return found
    return ProductAnalysis(product_code=product_code, batch_id=batch_id)
