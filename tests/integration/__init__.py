"""
ROLLOFF Integration Tests

Run the roof controller and driver host against the simulated roof in
``services.simulators.roof_simulator``. No hardware or pigpiod daemon is
needed; a fake clock drives roof travel.

Running:
    pytest tests/integration/ -v
"""
