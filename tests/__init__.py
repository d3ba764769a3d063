"""
ROLLOFF Test Suite

Test Organization:
    tests/
    ├── __init__.py          # This file
    ├── conftest.py          # Standard pin map, GPIO double, fake clock
    ├── mocks/               # GPIO double and pigpio / RPi.GPIO stand-ins
    ├── integration/         # Controller against the simulated roof
    └── unit/                # Unit tests (no hardware needed)

Running Tests:
    # Run all tests
    pytest tests/

    # Run integration tests only
    pytest tests/ -m integration

Requirements:
    pip install -e ".[test]"
"""
