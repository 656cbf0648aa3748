"""Shared fixtures for SARMS Core tests."""
import pytest

from sarms_core.models import CustomerImpact, PriorityTier
from sarms_core.schemas import ContactPerson, ImpactAnalysis, SoftwareRequestCreate
from sarms_core.store import InMemoryRequestStore


@pytest.fixture
def store():
    return InMemoryRequestStore()


@pytest.fixture
def request_data():
    """A request whose impact analysis classifies as medium."""
    return SoftwareRequestCreate(
        department_name="Finance",
        cost_center="CC-1001",
        contact_person=ContactPerson(
            name="Dana Reyes",
            email="dana@company.com",
            phone="+1 555 0100",
            position="Controller",
        ),
        requested_solution_name="Invoice Matching Bot",
        purpose_and_justification="Reduce manual three-way matching",
        process_description="AP clerks match PO, receipt and invoice by hand",
        impact_analysis=ImpactAnalysis(
            is_regulatory_requirement=True,
            regulatory_explanation="SOX control",
            financial_impact_usd=75000,
            customer_impact=CustomerImpact.BOTH,
            operational_urgency=True,
            existing_systems="SAP",
        ),
        integration_needs="SAP read access",
        priority=PriorityTier.HIGH,
    )
