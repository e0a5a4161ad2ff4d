"""
Reconciliation pipeline.

Turns parsed sales rows into template quantities:

    sales rows -> per (agent, SKU) totals
               -> join through agent->surveyor and SKU->variants
               -> (surveyor, variant) quantity lookup
               -> template rows with the quantity column rewritten

Pure functions only; loading and saving live in the workflow service.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Mapping
import structlog

from parsers.excel_parser import SalesRecord, ParsedTemplate, TemplateRow
from utils.text_utils import mapping_key

logger = structlog.get_logger(__name__)

ZERO = Decimal("0")


@dataclass(frozen=True)
class AggregatedSale:
    """Summed invoice quantity for one (agent, market SKU) pair."""
    agent_name: str
    market_sku: str
    total_quantity: Decimal


@dataclass
class ReconciliationResult:
    """Rewritten template plus what did not make it into the output."""
    rows: list[TemplateRow]
    lookup: dict[tuple[str, str], Decimal]
    unmapped_skus: list[str] = field(default_factory=list)
    unmapped_agents: list[str] = field(default_factory=list)
    unmatched_keys: list[tuple[str, str]] = field(default_factory=list)

    @property
    def total_quantity(self) -> Decimal:
        return sum(self.lookup.values(), ZERO)


# ===================
# AGGREGATION
# ===================

def summarize_sales(records: Iterable[SalesRecord]) -> list[AggregatedSale]:
    """
    Sum invoice quantities per (agent, SKU).

    Result is sorted by (agent, SKU), so input order never matters.
    """
    totals: dict[tuple[str, str], Decimal] = defaultdict(lambda: ZERO)
    for record in records:
        totals[(record.agent_name, record.market_sku)] += record.invoice_quantity

    return [
        AggregatedSale(agent_name=agent, market_sku=sku, total_quantity=qty)
        for (agent, sku), qty in sorted(totals.items())
    ]


def distinct_agents(summary: Iterable[AggregatedSale]) -> list[str]:
    """Sorted distinct agent names seen in the sales file."""
    return sorted({sale.agent_name for sale in summary})


# ===================
# MAPPING RESOLUTION
# ===================

def build_sku_index(mappings: Iterable[tuple[str, str]]) -> dict[str, list[str]]:
    """
    Group (market SKU, variant description) pairs by normalized SKU.

    One SKU may expand to several variants; duplicate pairs collapse.
    """
    index: dict[str, list[str]] = {}
    for market_sku, variant in mappings:
        key = mapping_key(market_sku)
        variant = (variant or "").strip()
        if not key or not variant:
            continue
        variants = index.setdefault(key, [])
        if variant not in variants:
            variants.append(variant)
    return index


def find_unmapped_skus(
    summary: Iterable[AggregatedSale],
    mappings: Iterable[tuple[str, str]],
) -> list[str]:
    """
    Market SKUs sold but missing from the SKU mapping.

    Comparison is trimmed and case-insensitive. Advisory only: these SKUs
    simply contribute nothing to the output.
    """
    mapped = set(build_sku_index(mappings))
    unmapped = {
        sale.market_sku
        for sale in summary
        if mapping_key(sale.market_sku) not in mapped
    }
    return sorted(unmapped)


def build_quantity_lookup(
    summary: Iterable[AggregatedSale],
    mappings: Iterable[tuple[str, str]],
    agent_mapping: Mapping[str, str],
) -> dict[tuple[str, str], Decimal]:
    """
    Fan-out join of aggregated sales into (surveyor, variant) totals.

    A sale whose agent has no surveyor, or whose SKU has no variants, is
    dropped. A SKU mapped to N variants adds its full quantity to each.
    """
    sku_index = build_sku_index(mappings)
    surveyors = {
        agent.strip(): surveyor.strip()
        for agent, surveyor in agent_mapping.items()
        if agent and surveyor and surveyor.strip()
    }

    lookup: dict[tuple[str, str], Decimal] = defaultdict(lambda: ZERO)
    for sale in summary:
        surveyor = surveyors.get(sale.agent_name.strip())
        if not surveyor:
            continue

        variants = sku_index.get(mapping_key(sale.market_sku))
        if not variants:
            continue

        for variant in variants:
            lookup[(surveyor, variant)] += sale.total_quantity

    return dict(lookup)


# ===================
# TEMPLATE REWRITE
# ===================

def apply_quantities(
    template: ParsedTemplate,
    lookup: Mapping[tuple[str, str], Decimal],
) -> list[TemplateRow]:
    """
    Rewrite each template row's quantity from the lookup.

    Rows with no lookup entry get 0, never their old value. Other cells,
    row order and column order are untouched.
    """
    updated: list[TemplateRow] = []
    for row in template.rows:
        cells = list(row.cells)
        cells[template.quantity_column] = lookup.get(row.key, ZERO)
        updated.append(TemplateRow(
            cells=cells,
            surveyor=row.surveyor,
            variant_description=row.variant_description,
        ))
    return updated


def reconcile(
    template: ParsedTemplate,
    summary: list[AggregatedSale],
    mappings: list[tuple[str, str]],
    agent_mapping: Mapping[str, str],
) -> ReconciliationResult:
    """Run the join and the template rewrite, collecting diagnostics."""
    lookup = build_quantity_lookup(summary, mappings, agent_mapping)
    rows = apply_quantities(template, lookup)

    template_keys = {row.key for row in template.rows}
    unmatched = sorted(key for key in lookup if key not in template_keys)
    unmapped_agents = sorted(
        agent for agent in distinct_agents(summary)
        if not (agent_mapping.get(agent) or "").strip()
    )

    result = ReconciliationResult(
        rows=rows,
        lookup=lookup,
        unmapped_skus=find_unmapped_skus(summary, mappings),
        unmapped_agents=unmapped_agents,
        unmatched_keys=unmatched,
    )

    logger.info(
        "reconciliation_complete",
        template_rows=len(rows),
        lookup_entries=len(lookup),
        unmapped_skus=len(result.unmapped_skus),
        unmatched_keys=len(unmatched),
        total_quantity=str(result.total_quantity),
    )

    return result


# ===================
# REPORTING
# ===================

def expand_mapped_summary(
    summary: Iterable[AggregatedSale],
    mappings: Iterable[tuple[str, str]],
    agent_mapping: Mapping[str, str],
) -> list[dict]:
    """
    One row per (sale, variant) with its surveyor, before summing.

    Used by the distributor report; sales without both mappings are left out.
    """
    sku_index = build_sku_index(mappings)
    rows = []
    for sale in summary:
        surveyor = (agent_mapping.get(sale.agent_name) or "").strip()
        variants = sku_index.get(mapping_key(sale.market_sku), [])
        if not surveyor or not variants:
            continue
        for variant in variants:
            rows.append({
                "surveyor": surveyor,
                "variant_description": variant,
                "total_quantity": sale.total_quantity,
            })
    return rows
