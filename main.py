import argparse
import asyncio
import logging
import os
import sys

from Config.environment import env
from Config.validators import validate_all_config
from Shared_Utils.dates_and_times import standardize_timestamp
from Shared_Utils.logger import setup_structured_logging, get_component_logger

from database_manager.database_session_manager import DatabaseSessionManager
from fifo_ledger import (
    LedgerError,
    MovementKind,
    MovementRepository,
    SiloInventoryService,
)
from fifo_ledger.report import levels_frame, batches_frame, breakdown_frame, format_fleet_stats
from fifo_ledger.statistics import GROUP_KEYS


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Silo inventory ledger (FIFO).")
    parser.add_argument('--dsn', default=None, help="Database URL (default: DATABASE_URL or local sqlite)")
    parser.add_argument('--order', choices=['chronological', 'phased'], default=None,
                        help="Ledger processing order (default: LEDGER_PROCESSING_ORDER)")
    parser.add_argument('--verbose', action='store_true', help="Enable detailed DEBUG logs to console")

    sub = parser.add_subparsers(dest='command', required=True)

    sub.add_parser('init-db', help="Create the schema")

    levels = sub.add_parser('levels', help="Show silo levels")
    levels.add_argument('--silo', type=int, action='append', help="Limit to silo id (repeatable)")
    levels.add_argument('--batches', action='store_true', help="Also list remaining batches per silo")

    sub.add_parser('stats', help="Fleet utilization summary")

    breakdown = sub.add_parser('breakdown', help="Movement totals grouped by a key")
    breakdown.add_argument('--kind', choices=[k.value for k in MovementKind], default='inbound')
    breakdown.add_argument('--group-by', choices=sorted(GROUP_KEYS), default='product')
    breakdown.add_argument('--start', default=None, help="Inclusive start (ISO date/time)")
    breakdown.add_argument('--end', default=None, help="Exclusive end (ISO date/time)")

    add_silo = sub.add_parser('add-silo', help="Register a silo")
    add_silo.add_argument('name')
    add_silo.add_argument('capacity')
    add_silo.add_argument('--allow', action='append', help="Restrict to product (repeatable)")

    receive = sub.add_parser('receive', help="Register an inbound movement")
    receive.add_argument('silo_id', type=int)
    receive.add_argument('quantity')
    receive.add_argument('--product', required=True)
    receive.add_argument('--supplier')
    receive.add_argument('--operator')
    receive.add_argument('--lot-tf')
    receive.add_argument('--proteins')
    receive.add_argument('--humidity')
    receive.add_argument('--cleaned', action='store_true')
    receive.add_argument('--notes')

    dispatch = sub.add_parser('dispatch', help="Register an outbound movement")
    dispatch.add_argument('silo_id', type=int)
    dispatch.add_argument('quantity')
    dispatch.add_argument('--operator', required=True)
    dispatch.add_argument('--destination')
    dispatch.add_argument('--notes')

    return parser


async def run(args) -> int:
    logger = get_component_logger('cli')
    db = DatabaseSessionManager(args.dsn or env.database_url)
    service = SiloInventoryService(MovementRepository(db), order=args.order)

    try:
        await db.initialize()

        if args.command == 'init-db':
            logger.info("✅ Schema ready")

        elif args.command == 'levels':
            levels = await service.get_levels(args.silo)
            print(levels_frame(levels).to_string(index=False))
            if args.batches:
                for level in levels:
                    print(f"\n{level.silo.name}")
                    print(batches_frame(level).to_string(index=False))

        elif args.command == 'stats':
            print(format_fleet_stats(await service.fleet_stats()))

        elif args.command == 'breakdown':
            totals = await service.movement_breakdown(
                args.kind, args.group_by,
                start=standardize_timestamp(args.start),
                end=standardize_timestamp(args.end),
            )
            print(breakdown_frame(totals, label=args.group_by).to_string(index=False))

        elif args.command == 'add-silo':
            silo = await service.register_silo(args.name, args.capacity, allowed_products=args.allow)
            print(f"✅ {silo} registered with id {silo.id}")

        elif args.command == 'receive':
            movement = await service.receive({
                'silo_id': args.silo_id,
                'quantity': args.quantity,
                'product': args.product,
                'supplier': args.supplier,
                'operator': args.operator,
                'lot_tf': args.lot_tf,
                'proteins': args.proteins,
                'humidity': args.humidity,
                'cleaned': args.cleaned,
                'notes': args.notes,
            })
            print(f"📥 Inbound #{movement.id}: {movement.quantity} kg")

        elif args.command == 'dispatch':
            movement = await service.dispatch({
                'silo_id': args.silo_id,
                'quantity': args.quantity,
                'operator': args.operator,
                'destination': args.destination,
                'notes': args.notes,
            })
            print(f"📤 Outbound #{movement.id}: {movement.quantity} kg")
            for line in movement.items:
                print(f"   ← inbound #{line.inbound_id} ({line.entry_date}, {line.product}): {line.quantity} kg")

    except LedgerError as e:
        logger.warning(f"❌ {e.message}", extra={'code': e.code})
        return 2
    finally:
        await db.disconnect()

    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    setup_structured_logging(
        log_dir=str(env.log_dir),
        console_level='DEBUG' if args.verbose else 'INFO',
    )
    validate_all_config(raise_on_error=True)

    return asyncio.run(run(args))


if __name__ == "__main__":
    os.environ['PYTHONASYNCIODEBUG'] = '0'
    logging.getLogger('asyncio').setLevel(logging.ERROR)
    sys.exit(main())
