pytest_plugins = [
    "localqueue.testing.pytest.fixtures",
]
