"""
Tabular views of ledger results for the CLI and ad-hoc analysis.
"""

from decimal import Decimal
from typing import Mapping, Sequence

import pandas as pd

from Shared_Utils.dates_and_times import day_key
from Shared_Utils.precision import display_percent

from .models import FleetStats, SiloLevel, UtilizationBucket

LEVEL_COLUMNS = [
    'silo_id', 'silo', 'capacity_kg', 'current_kg', 'utilization_pct',
    'bucket', 'batches', 'unmatched_kg',
]
BATCH_COLUMNS = ['inbound_id', 'entry_date', 'product', 'supplier', 'lot_tf', 'quantity_kg']


def levels_frame(levels: Sequence[SiloLevel]) -> pd.DataFrame:
    """One row per silo."""
    rows = [
        {
            'silo_id': level.silo.id,
            'silo': level.silo.name,
            'capacity_kg': level.silo.capacity,
            'current_kg': level.current_quantity,
            'utilization_pct': display_percent(level.utilization_percentage),
            'bucket': level.bucket.value,
            'batches': len(level.batches),
            'unmatched_kg': level.unmatched_quantity,
        }
        for level in levels
    ]
    return pd.DataFrame(rows, columns=LEVEL_COLUMNS)


def batches_frame(level: SiloLevel) -> pd.DataFrame:
    """Remaining batches of one silo, oldest first."""
    rows = [
        {
            'inbound_id': batch.inbound_id,
            'entry_date': day_key(batch.created_at),
            'product': batch.product,
            'supplier': batch.supplier,
            'lot_tf': batch.lot_tf,
            'quantity_kg': batch.quantity,
        }
        for batch in level.batches
    ]
    return pd.DataFrame(rows, columns=BATCH_COLUMNS)


def breakdown_frame(totals: Mapping[str, Decimal], label: str = 'group') -> pd.DataFrame:
    """Grouped totals sorted by quantity, largest first."""
    df = pd.DataFrame(list(totals.items()), columns=[label, 'quantity_kg'])
    if df.empty:
        return df
    df['share_pct'] = df['quantity_kg'].astype(float) / float(sum(totals.values())) * 100
    return df.sort_values('quantity_kg', ascending=False, key=lambda s: s.astype(float)).reset_index(drop=True)


def format_fleet_stats(stats: FleetStats) -> str:
    lines = [
        "📊 Fleet utilization",
        f"   Silos:           {stats.total_silos}",
        f"   Capacity:        {stats.total_capacity} kg",
        f"   Stored:          {stats.total_used} kg",
        f"   Overall:         {stats.overall_utilization}%",
        f"   Average:         {stats.average_utilization}%",
    ]
    for bucket in UtilizationBucket:
        lines.append(f"   {bucket.value.capitalize():<16} {stats.buckets.get(bucket.value, 0)}")
    return "\n".join(lines)
