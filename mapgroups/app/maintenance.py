"""Database maintenance commands.

Usage::

    python -m mapgroups.app.maintenance cleanup [--days N]
    python -m mapgroups.app.maintenance stats

``cleanup`` removes devices that have not been seen for ``--days`` days
(default ``INACTIVE_DEVICE_DAYS``) and own no groups. ``stats`` prints
device, group and location counts.
"""

import argparse
import sys

import common.log
import common.settings

from . import database
from .devices import services


def run_cleanup(session_factory: database.SessionFactory, days: int) -> int:
    with session_factory() as session:
        removed = services.cleanup_inactive_devices(session, days)
    print(f'Removed {removed} inactive device(s) unseen for {days} days')
    return removed


def run_stats(session_factory: database.SessionFactory) -> dict[str, int]:
    with session_factory() as session:
        stats = services.get_device_stats(session)
    print(f'Devices:          {stats["total_devices"]}')
    print(f'Active (24h):     {stats["active_24h"]}')
    print(f'Active (7d):      {stats["active_7d"]}')
    print(f'Groups:           {stats["total_groups"]}')
    print(f'Locations:        {stats["total_locations"]}')
    return stats


def _parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(description='Location groups maintenance')
    commands = parser.add_subparsers(dest='command', required=True)

    cleanup = commands.add_parser('cleanup', help='Delete inactive devices without groups')
    cleanup.add_argument(
        '--days',
        type=int,
        default=common.settings.INACTIVE_DEVICE_DAYS,
        help='Days without activity before a device is removed',
    )
    commands.add_parser('stats', help='Print usage counts')
    return parser.parse_args(argv)


def main(argv: list[str], session_factory: database.SessionFactory | None = None) -> None:
    args = _parse_args(argv)
    if session_factory is None:
        database.create_db_and_tables()
        session_factory = database.get_session_factory()

    if args.command == 'cleanup':
        run_cleanup(session_factory, args.days)
    else:
        run_stats(session_factory)


if __name__ == '__main__':
    common.log.configure_logging()
    main(sys.argv[1:])
