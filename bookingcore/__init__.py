"""
bookingcore - Timezone-aware appointment scheduling and capacity utilization.
"""

__version__ = "0.1.0"
