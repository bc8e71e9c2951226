"""
MediTrack: personal patient tracking.

Patients, time-stamped health measurements, medications and reminders,
persisted to a flat file or SQLite.
"""

__version__ = "0.3.0"
