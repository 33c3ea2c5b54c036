#!/usr/bin/env python3
import argparse
import logging
import os.path
import time

from ScaleEngine import AxisConfig, setup_logging


def main():
    args_parser = argparse.ArgumentParser()
    example_axes = sorted(AxisConfig.example_names())
    args_parser.add_argument('--axis',
                             choices=example_axes,
                             default=None,
                             help='Which example axis (all by default)')
    args_parser.add_argument('--out',
                             default=None,
                             help='Directory to also write each listing to')
    args_parser.add_argument('--debug',
                             action='store_true',
                             help='Log the engine decisions')
    cli_args = args_parser.parse_args()
    setup_logging(logging.DEBUG if cli_args.debug else logging.INFO)
    base_dir = cli_args.out
    if base_dir:
        os.makedirs(base_dir, exist_ok=True)
    for axis_name in ([cli_args.axis] if cli_args.axis else example_axes):
        print(f'Dividing example axis: {axis_name}')
        try:
            start_time = time.process_time()
            axis = AxisConfig.load(axis_name)
            listing = axis.describe(axis.compute_scale())
            print(listing)
            print(f' Time elapsed: {round(time.process_time() - start_time, 3)}')
            if base_dir:
                listing_filename = os.path.join(base_dir, f'{axis_name}.Division.txt')
                with open(listing_filename, 'w', encoding='utf-8') as listing_file:
                    listing_file.write(listing + '\n')
                print(f' Division listing for: {axis_name} at: {listing_filename}')
        except ValueError as ex:
            print(f'Error processing {axis_name}: {ex}; Skipping')


if __name__ == '__main__':
    main()
