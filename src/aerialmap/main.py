"""Command line entry point: inspect and prefetch the tile grid around a position."""

import argparse
import logging
import sys
from pathlib import Path

from aerialmap.domain.models import DisplaySettings
from aerialmap.domain.profiles import load_profile
from aerialmap.geo.mercator import GeoPoint, TileCoordinate, tile_size_meters, tile_to_geo, to_tile_index
from aerialmap.shared.constants import TILE_STORE_MAX_SIZE_MB
from aerialmap.tiles.area import Area, TileId
from aerialmap.tiles.cache import TileCache
from aerialmap.tiles.errors import classify_error_rate
from aerialmap.tiles.fetcher import format_tile_url, is_valid_tile_index, loggable_url
from aerialmap.tiles.store import TileStore

logger = logging.getLogger(__name__)


def setup_logging(level: int = logging.INFO, log_file: Path | None = None) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(str(log_file), encoding='utf-8'))

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='aerialmap',
        description='Aerial map tile grid around a position fix',
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')
    parser.add_argument('--log-file', type=Path, help='Also write the log to this file')

    sub = parser.add_subparsers(dest='command', required=True)
    tiles = sub.add_parser('tiles', help='Show the tile area around a position')
    tiles.add_argument('--lat', type=float, required=True, help='Latitude (deg)')
    tiles.add_argument('--lon', type=float, required=True, help='Longitude (deg)')
    tiles.add_argument('--zoom', type=int, help='Zoom level')
    tiles.add_argument('--blocks', type=int, help='Tile rings around the center tile')
    tiles.add_argument('--url', help='Tile URL template with {x}, {y}, {z}')
    tiles.add_argument('--profile', help='Profile name or path to a .toml file')
    tiles.add_argument('--fetch', action='store_true', help='Load the area through the tile cache')
    tiles.add_argument('--cache-dir', type=Path, help='Persistent tile store directory')
    tiles.add_argument('--timeout', type=float, default=60.0, help='Seconds to wait for --fetch')
    return parser


def _settings_from_args(args: argparse.Namespace) -> DisplaySettings:
    settings = load_profile(args.profile) if args.profile else DisplaySettings()
    overrides = {
        'zoom': args.zoom,
        'blocks': args.blocks,
        'tile_url': args.url,
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}
    if overrides:
        settings = DisplaySettings.model_validate({**settings.model_dump(), **overrides})
    return settings


def _print_area(area: Area, point: GeoPoint, settings: DisplaySettings) -> None:
    center = area.center
    print(f'Center tile: {center}')
    print(f'Tile size:   {tile_size_meters(point.latitude, settings.zoom):.2f} m')
    print(f'Area:        {area.side}x{area.side} tiles')
    for tile_id in area.tile_ids():
        if not settings.tile_url:
            print(f'  {tile_id}')
        elif not is_valid_tile_index(tile_id):
            print(f'  {tile_id}  (outside the map)')
        else:
            print(f'  {tile_id}  {loggable_url(format_tile_url(settings.tile_url, tile_id))}')

    nw = tile_to_geo(area.top_left, settings.zoom)
    se = tile_to_geo(TileCoordinate(area.bottom_right.x + 1, area.bottom_right.y + 1), settings.zoom)
    print(f'North-west:  {nw.latitude:.6f}, {nw.longitude:.6f}')
    print(f'South-east:  {se.latitude:.6f}, {se.longitude:.6f}')


def _fetch_area(area: Area, args: argparse.Namespace) -> int:
    store = TileStore(args.cache_dir) if args.cache_dir else TileStore()
    with TileCache(store=store) as cache:
        cache.request(area)
        if not cache.wait_idle(timeout=args.timeout):
            logger.warning('Timed out after %.0fs waiting for tiles', args.timeout)
        ready = sum(1 for tile_id in area.tile_ids() if cache.ready(tile_id) is not None)
        rate = cache.error_rate(area.center.source_key)
        status = classify_error_rate(rate)
        print(f'Loaded {ready}/{len(area)} tiles, error rate {rate:.2f}: {status.message}')
        store.cleanup_lru(TILE_STORE_MAX_SIZE_MB)
    return 0 if ready == len(area) else 1


def cmd_tiles(args: argparse.Namespace) -> int:
    try:
        settings = _settings_from_args(args)
        point = GeoPoint(args.lat, args.lon)
        center = TileId(settings.tile_url, to_tile_index(point, settings.zoom), settings.zoom)
    except (ValueError, FileNotFoundError) as e:
        logger.error('%s', e)
        return 2

    area = Area(center, settings.blocks)
    _print_area(area, point, settings)

    if args.fetch:
        if not settings.tile_url:
            logger.error('Tile URL is not set')
            return 2
        return _fetch_area(area, args)
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO, args.log_file)

    if args.command == 'tiles':
        return cmd_tiles(args)
    return 2


if __name__ == '__main__':
    sys.exit(main())
