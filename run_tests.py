#!/usr/bin/env python
"""
Test runner script for the Habitly project.
Runs all tests and generates coverage reports.
"""

import os
import sys
import argparse
import subprocess
from datetime import datetime


def parse_args():
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(description='Run Habitly tests')
    parser.add_argument('--app', help='Specific app to test (e.g., friends, ranking)')
    parser.add_argument('--test', help='Specific test to run (e.g., RelationshipServiceTests.test_mutual_request_confirms)')
    parser.add_argument('--coverage', action='store_true', help='Generate coverage report')
    parser.add_argument('--html', action='store_true', help='Generate HTML coverage report')
    parser.add_argument('--verbosity', type=int, default=1, help='Verbosity level (0-3)')
    parser.add_argument('--keepdb', action='store_true', help='Preserve test database between runs')
    return parser.parse_args()


def build_command(args):
    """Build the manage.py test command for the given arguments"""
    cmd = [sys.executable, 'manage.py', 'test']

    if args.app:
        label = args.app
        if args.test:
            label += f".tests.{args.test}"
        cmd.append(label)

    cmd.extend(['--verbosity', str(args.verbosity)])

    if args.keepdb:
        cmd.append('--keepdb')

    if args.coverage:
        cmd = [
            'coverage', 'run',
            '--source=.',
            '--omit=*/migrations/*,*/venv/*,*/tests.py,manage.py,run_tests.py',
        ] + cmd

    return cmd


def run_tests(args):
    """Run the tests with the given arguments"""
    print("=" * 80)
    current_time = datetime.now().strftime('%Y-%m-%d %H:%M:%S')
    print(f"Habitly Test Runner - {current_time}")
    print("=" * 80)

    os.environ['DJANGO_SETTINGS_MODULE'] = 'habitly.test_settings'
    cmd = build_command(args)

    print(f"Running command: {' '.join(cmd)}")
    print("-" * 80)
    result = subprocess.run(cmd)

    if args.coverage and result.returncode == 0:
        print("\n" + "=" * 80)
        print("COVERAGE REPORT")
        print("=" * 80)

        subprocess.run(['coverage', 'report'])

        if args.html:
            subprocess.run(['coverage', 'html'])
            print("\nHTML coverage report generated in htmlcov/ directory")
            print("Open htmlcov/index.html in your browser to view")

    return result.returncode


def main():
    """Main function"""
    args = parse_args()
    sys.exit(run_tests(args))


if __name__ == '__main__':
    main()
