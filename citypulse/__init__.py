"""
CityPulse event normalization pipeline.

Turns loosely structured text blobs describing local happenings into
clean, de-duplicated, geocoded event records ready for a map.
"""

__version__ = "0.1.0"
