"""Database models."""

from carequeue.models.appointments import appointments, opd_queue
from carequeue.models.doctors import doctor_schedules, doctors
from carequeue.models.ipd import admissions, bed_transfers, beds, wards
from carequeue.models.metadata import metadata
from carequeue.models.patients import patients
from carequeue.models.sequences import sequence_counters

__all__ = [
    "admissions",
    "appointments",
    "bed_transfers",
    "beds",
    "doctor_schedules",
    "doctors",
    "metadata",
    "opd_queue",
    "patients",
    "sequence_counters",
    "wards",
]
