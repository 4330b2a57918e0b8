#!/usr/bin/env python3
"""
Trainingsplan CLI

Command-line interface for listing and filtering trainings, managing
favourites and the saved location, and exporting the training map as a
standalone HTML file.
"""

import argparse
import logging
import sys
from datetime import date

from trainingsplan.lib.config import load_config
from trainingsplan.lib.data_loader import load_feed
from trainingsplan.lib.errors import DataLoadError, TrainingsplanError
from trainingsplan.lib.filter_store import (ResetFilters, SetCategory, SetSearchTerm,
                                            SetTrainingTypeText)
from trainingsplan.lib.map_controller import MapController
from trainingsplan.lib.planner import TrainingsPlaner
from trainingsplan.lib.quick_filters import QuickFilter
from trainingsplan.lib.storage import JsonFileBackend, LocalStore

DEFAULT_STATE_FILE = '.trainingsplan_state.json'


def print_trainings(planner):
    """Print the filtered trainings grouped by weekday"""
    groups = planner.grouped_trainings()
    total = len(planner.all_trainings)

    print(f"\n{'='*60}")
    print(f"Trainings: {len(planner.filtered_trainings)} von {total}")
    quick = planner.filter_state.active_quick_filter
    if quick:
        print(f"Schnellfilter: {quick.label}")
    if planner.user_position:
        position = planner.user_position
        label = position.label or f"{position.lat:.6f}, {position.lng:.6f}"
        print(f"Standort: {label}")
    print(f"{'='*60}\n")

    if not groups:
        print("Keine Trainings gefunden.")
        print("Tip: Weniger Filter verwenden oder --reset")
        return

    for weekday, trainings in groups.items():
        print(f"{weekday}")
        for training in trainings:
            star = ' ⭐' if planner.favorites.is_favorite(training.id) else ''
            trial = ' [Probetraining]' if training.trial else ''
            print(f"  [{training.id}] {training.time_range() or '-'} | {training.training_type}{trial}{star}")
            details = f"      {training.location}"
            if training.distance_text:
                details += f" ({training.distance_text})"
            if training.age_group:
                details += f" | {training.age_group}"
            print(details)
        print()


def print_metadata(planner):
    """Print the values available for each filter"""
    metadata = planner.metadata
    print(f"\n{'='*60}")
    print("Verfügbare Filterwerte")
    print(f"{'='*60}\n")
    print(f"Wochentage:     {', '.join(metadata.weekdays)}")
    print(f"Orte:           {', '.join(metadata.locations)}")
    print(f"Trainingsarten: {', '.join(metadata.training_types)}")
    print(f"Altersgruppen:  {', '.join(metadata.age_groups)}")
    print(f"Schnellfilter:  {', '.join(q.value for q in QuickFilter)}")


def apply_arguments(planner, args):
    """
    Translate filter arguments into commands on the planner

    Returns:
        False if a location-based quick filter could not be applied
    """
    if args.reset:
        planner.dispatch(ResetFilters())

    if args.day:
        planner.dispatch(SetCategory('weekday', args.day))
    if args.location:
        planner.dispatch(SetCategory('location', args.location))
    if args.type:
        planner.dispatch(SetCategory('training_type', args.type))
    if args.age:
        planner.dispatch(SetCategory('age_group', args.age))
    if args.type_text is not None:
        planner.dispatch(SetTrainingTypeText(args.type_text))
    if args.search is not None:
        planner.dispatch(SetSearchTerm(args.search))

    if args.max_distance is not None:
        planner.set_distance_filter(args.max_distance > 0, args.max_distance if args.max_distance > 0 else None)

    if args.quick:
        return planner.apply_quick_filter(args.quick, today=args.today)
    if args.no_quick:
        planner.remove_quick_filter()
    return True


def main():
    """Main function to filter the training plan and export maps"""
    parser = argparse.ArgumentParser(
        description='Browse the training plan, filter trainings and generate maps',
        epilog='Examples:\n'
               '  %(prog)s --day Montag --type Parkour\n'
               '  %(prog)s --lat 48.137 --lng 11.575 --max-distance 5\n'
               '  %(prog)s --quick favoriten --map --output favoriten.html\n',
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    data_group = parser.add_argument_group('data')
    data_group.add_argument('--data', '-d', default=None,
                            help='Training feed: JSON file or URL (default: TRAININGSPLAN_DATA_URL or the public feed)')
    data_group.add_argument('--state', default=DEFAULT_STATE_FILE,
                            help=f'File holding filters, favourites and location between runs (default: {DEFAULT_STATE_FILE})')
    data_group.add_argument('--values', action='store_true',
                            help='List the available filter values and exit')

    filter_group = parser.add_argument_group('filters')
    filter_group.add_argument('--day', action='append', metavar='WOCHENTAG',
                              help='Weekday, repeatable (e.g. Montag)')
    filter_group.add_argument('--location', action='append', metavar='ORT',
                              help='Location name, repeatable')
    filter_group.add_argument('--type', '-t', action='append', metavar='TRAINING',
                              help='Training type, repeatable (exact match)')
    filter_group.add_argument('--type-text', default=None,
                              help='Training type substring')
    filter_group.add_argument('--age', action='append', metavar='ALTERSGRUPPE',
                              help='Age group, repeatable')
    filter_group.add_argument('--search', '-s', default=None,
                              help='Fuzzy search over type, location, trainer, weekday and age group')
    filter_group.add_argument('--max-distance', type=float, default=None,
                              help='Only trainings within this many km of your location (0 disables)')
    filter_group.add_argument('--quick', '-q', choices=[q.value for q in QuickFilter],
                              help='Apply a quick filter')
    filter_group.add_argument('--no-quick', action='store_true',
                              help='Remove the active quick filter')
    filter_group.add_argument('--today', type=date.fromisoformat, default=None,
                              help='Reference date for heute/morgen (YYYY-MM-DD)')
    filter_group.add_argument('--reset', action='store_true',
                              help='Clear all saved filters first')

    location_group = parser.add_argument_group('location')
    location_group.add_argument('--lat', type=float, help='Latitude of your location')
    location_group.add_argument('--lng', type=float, help='Longitude of your location')
    location_group.add_argument('--address', help='Address to geocode as your location (e.g. "Marienplatz, München")')
    location_group.add_argument('--forget-location', action='store_true',
                                help='Forget the saved location')

    favorites_group = parser.add_argument_group('favourites')
    favorites_group.add_argument('--favorite', type=int, action='append', metavar='ID',
                                 help='Toggle a training as favourite, repeatable')

    map_group = parser.add_argument_group('map generation')
    map_group.add_argument('--map', action='store_true', help='Generate an interactive map')
    map_group.add_argument('--output', '-o', default='trainingsplan_map.html',
                           help='Output filename (default: trainingsplan_map.html)')
    map_group.add_argument('--zoom-favorites', action='store_true',
                           help='Zoom the map to your favourites')

    parser.add_argument('--share', metavar='BASE_URL',
                        help='Print a share link for the current filters')
    parser.add_argument('--debug', action='store_true', help='Enable debug output')

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if (args.lat is None) != (args.lng is None):
        print("❌ Error: --lat and --lng must be given together")
        sys.exit(1)

    config = load_config()
    source = args.data or config.data_url
    store = LocalStore(JsonFileBackend(args.state))

    if args.debug:
        print(f"[DEBUG] Data source: {source}")
        print(f"[DEBUG] State file: {args.state}")

    planner = TrainingsPlaner(config, store)
    try:
        planner.load_data(load_feed(source, store=store, max_age=config.cache_duration))
    except DataLoadError as e:
        print(f"❌ Error: {e}")
        print("Tip: Check the --data path or your network connection")
        sys.exit(1)
    planner.restore_filters()

    if args.values:
        print_metadata(planner)
        return

    if args.forget_location:
        planner.geolocation.reset_location()
    if args.lat is not None:
        if planner.geolocation.set_manual_location(args.lat, args.lng) is None:
            print(f"❌ Error: {planner.geolocation.error}")
            sys.exit(1)
    elif args.address:
        print(f"Geocoding address: {args.address}...")
        position = planner.geolocation.set_manual_address(args.address)
        if position is None:
            print(f"❌ Error: Could not find coordinates for '{args.address}'")
            print("Tip: Include the city for better results (e.g. 'Marienplatz, München')")
            sys.exit(1)
        print(f"✓ Found {args.address} at coordinates: {position.lat:.6f}, {position.lng:.6f}")

    try:
        for training_id in args.favorite or []:
            planner.toggle_favorite(training_id)

        if not apply_arguments(planner, args):
            print("❌ Error: This quick filter needs your location.")
            print("Set one with --lat/--lng or --address")
            sys.exit(1)
    except (ValueError, TrainingsplanError) as e:
        print(f"❌ Error: {e}")
        sys.exit(1)

    planner.save_filters()

    for note in planner.pop_notifications():
        if args.debug or note['level'] in ('warning', 'error'):
            print(f"[{note['level']}] {note['message']}")

    print_trainings(planner)

    if args.share:
        print(f"🔗 {planner.share_link(args.share)}\n")

    if args.map:
        controller = MapController(config.map, store)
        planner.build_map(controller)
        if not controller.is_ready:
            print("❌ Error: The map could not be created")
            sys.exit(1)
        if args.zoom_favorites:
            planner.zoom_to_favorites()
        controller.save(args.output)
        controller.destroy()

        print(f"\n✓ Map saved!")
        print(f"  Open {args.output} in your browser to view")


if __name__ == "__main__":
    main()
