"""Demo leads for a fresh install (SEED_SAMPLE_DATA / scripts/seed_demo_data.py)."""

import logging

logger = logging.getLogger(__name__)

SAMPLE_LEADS = [
    {
        "source": "inbound",
        "full_name": "John Smith",
        "email": "john@techcorp.com",
        "phone": "+1-555-0123",
        "company": "TechCorp Inc",
        "website": "https://techcorp.com",
        "services_needed": "Web Development, Mobile App",
        "project_description": "E-commerce platform with mobile app",
        "company_summary": "Leading technology solutions provider",
        "source_id": "webhook-123",
    },
    {
        "source": "manual",
        "full_name": "Sarah Johnson",
        "email": "sarah@startup.io",
        "phone": "+1-555-0456",
        "company": "Startup Solutions",
        "services_needed": "AI/ML Development",
        "project_description": "Machine learning dashboard for analytics",
    },
]


def seed_sample_data(core) -> int:
    """Add the sample leads, each with a pending project, to an empty store.

    Returns the number of leads created (0 when clients already exist).
    """
    if core.store.count("clients"):
        logger.info("Sample data skipped: clients already present")
        return 0
    for lead in SAMPLE_LEADS:
        fields = dict(lead)
        source = fields.pop("source")
        core.lifecycle.open_lead(fields, source=source)
    logger.info("Seeded %d sample leads", len(SAMPLE_LEADS))
    return len(SAMPLE_LEADS)
