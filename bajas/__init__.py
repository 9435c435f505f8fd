"""Sistema de bajas: client disqualification eligibility and route planning sync."""

__version__ = "1.0.0"
