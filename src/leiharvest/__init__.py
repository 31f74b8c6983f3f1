"""
leiharvest - Rate-limited GLEIF LEI record harvester.

Fetches LEI records and their linked relationship resources from the GLEIF
registry API and writes only fully-assembled records to CSV, tracking every
failure in dedicated log files.
"""

__version__ = "0.1.0"
__app_name__ = "leiharvest"
