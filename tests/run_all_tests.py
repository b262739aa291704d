#!/usr/bin/env python3
"""
Test runner for QuizCraft.
Runs the whole suite, or one category of test modules, and prints a summary.

Usage (from the project root):
    python -m tests.run_all_tests [category]
"""
import unittest
import sys
import time

TEST_CATEGORIES = {
    'models': ['tests.test_models'],
    'storage': ['tests.test_storage', 'tests.test_snapshots', 'tests.test_scheduled'],
    'stats': ['tests.test_statistics', 'tests.test_stars', 'tests.test_reports'],
    'data': ['tests.test_data_manager'],
    'config': ['tests.test_config_manager'],
    'engine': ['tests.test_quiz_engine'],
    'controller': ['tests.test_quiz_controller'],
    'bot': ['tests.test_bot_discord_integration'],
    'integration': ['tests.test_integration_comprehensive'],
}


def load_suite(module_names):
    loader = unittest.TestLoader()
    suite = unittest.TestSuite()
    for module_name in module_names:
        try:
            suite.addTest(loader.loadTestsFromName(module_name))
            print(f"✓ Loaded tests from {module_name}")
        except Exception as e:
            print(f"✗ Failed to load {module_name}: {e}")
            return None
    return suite


def run_test_suite(module_names):
    """Run the given test modules and print a summary report."""
    print("=" * 70)
    print("QuizCraft - Test Suite")
    print("=" * 70)

    suite = load_suite(module_names)
    if suite is None:
        return False

    runner = unittest.TextTestRunner(verbosity=2, stream=sys.stdout, buffer=True)

    start_time = time.time()
    result = runner.run(suite)
    end_time = time.time()

    total_tests = result.testsRun
    failures = len(result.failures)
    errors = len(result.errors)
    skipped = len(result.skipped)
    passed = total_tests - failures - errors - skipped

    print("\n" + "=" * 70)
    print("Test Summary Report")
    print("=" * 70)
    print(f"Total Tests Run: {total_tests}")
    print(f"Passed: {passed}")
    print(f"Failed: {failures}")
    print(f"Errors: {errors}")
    print(f"Skipped: {skipped}")
    print(f"Success Rate: {(passed/total_tests)*100:.1f}%" if total_tests > 0 else "N/A")
    print(f"Execution Time: {end_time - start_time:.2f} seconds")

    return failures == 0 and errors == 0


if __name__ == '__main__':
    if len(sys.argv) > 1:
        category = sys.argv[1]
        if category not in TEST_CATEGORIES:
            print(f"Unknown category: {category}")
            print(f"Available categories: {', '.join(TEST_CATEGORIES)}")
            sys.exit(1)
        modules = TEST_CATEGORIES[category]
    else:
        modules = [name for names in TEST_CATEGORIES.values() for name in names]

    sys.exit(0 if run_test_suite(modules) else 1)
