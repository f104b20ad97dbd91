"""Phone verification, identity resolution and driver account linking
for the ride-booking platform.
"""

__version__ = "0.1.0"
