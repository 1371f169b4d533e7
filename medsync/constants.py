"""Country profiles and shared constants."""

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class MedicalCenterProfile:
    """Simulated medical-center data attached during enrichment."""

    doctor_id: int
    doctor_name: str
    specialty_id: int
    specialty_name: str
    medical_center_id: int
    center_name: str
    center_address: str
    appointment_cost: Decimal


@dataclass(frozen=True)
class CountryProfile:
    """Fixed per-country configuration."""

    code: str
    name: str
    currency: str
    tax_rate: Decimal
    timezone: str
    worker_name: str
    medical_center: MedicalCenterProfile


COUNTRIES: dict[str, CountryProfile] = {
    "PE": CountryProfile(
        code="PE",
        name="Peru",
        currency="PEN",
        tax_rate=Decimal("0.18"),  # IGV
        timezone="America/Lima",
        worker_name="processAppointmentPE",
        medical_center=MedicalCenterProfile(
            doctor_id=1001,
            doctor_name="Dr. María García",
            specialty_id=2001,
            specialty_name="Cardiología",
            medical_center_id=3001,
            center_name="Centro Médico Rimac Lima",
            center_address="Av. Javier Prado Este 4200, Lima, Perú",
            appointment_cost=Decimal("150.00"),
        ),
    ),
    "CL": CountryProfile(
        code="CL",
        name="Chile",
        currency="CLP",
        tax_rate=Decimal("0.19"),  # IVA
        timezone="America/Santiago",
        worker_name="processAppointmentCL",
        medical_center=MedicalCenterProfile(
            doctor_id=2001,
            doctor_name="Dr. Carlos Rodríguez",
            specialty_id=3001,
            specialty_name="Medicina Interna",
            medical_center_id=4001,
            center_name="Centro Médico Rimac Santiago",
            center_address="Av. Providencia 1234, Santiago, Chile",
            appointment_cost=Decimal("45000.00"),
        ),
    ),
}

SUPPORTED_COUNTRIES: tuple[str, ...] = tuple(COUNTRIES)

INSURED_ID_LENGTH = 5

DEFAULT_PAGE_LIMIT = 20
MAX_PAGE_LIMIT = 100

CREATED_MESSAGE = "Appointment creation is being processed"

# Event names
APPOINTMENT_CREATED = "AppointmentCreated"
APPOINTMENT_UPDATED = "AppointmentUpdated"
COMPLETION_DETAIL_TYPE = "Appointment Completion"


def get_country_profile(country: str) -> CountryProfile:
    """
    Get the profile of a supported country.

    Args:
        country: Country ISO code

    Returns:
        Country profile

    Raises:
        KeyError: If the country is not supported
    """
    return COUNTRIES[country]
