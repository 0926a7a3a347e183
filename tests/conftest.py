pytest_plugins = [
    "tests.fixtures.core",
    "tests.fixtures.services",
    "tests.fixtures.api",
]
