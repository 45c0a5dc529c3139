"""
Clinic tracking domain

Front desk board for the clinic: resolves each booking's effective status,
applies staff status changes, and books walk-ins.
"""
